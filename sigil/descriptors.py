r"""
Sigil descriptors: declarative markers for commands, options and arguments.

Overview
- Descriptors
  • RootCommand: marks the program root, either on a handler function (the
    root handler) or on a class (a program-scope root descriptor carrying only
    a description).
  • Command: marks a handler function (staticmethod/classmethod when declared
    inside a class) or a class (a handler-less grouping command).
  • Option: named symbol; used as a parameter default or as a module/class
    attribute holding global option storage.
  • Argument: positional symbol; used as a parameter default.

- Decorators
  • @root_command(description, mutually_exclusive=...): attach a RootCommand
    descriptor.
  • @command(name, aliases=..., description=..., hidden=..., mutually_exclusive=...,
    recursive_options=...): attach a Command descriptor. Usable bare (@command).
  • @startup: mark a function to run once after the command tree is built.
  Decorators return the decorated object unchanged; descriptors are recorded
  on the underlying function (or class) in __descriptors__.

- Introspection & representation
  • DescriptorType metaclass provides stable __repr__/__rich_repr__ and exposes
    the fields listed in __introspectable__ through read-only properties.

Metadata (sanitized on construction)
- name: Unset | str, non-empty after trimming. Command names may contain
  spaces (a subcommand path); option/argument names are used verbatim.
- aliases: Iterable[str], distinct non-empty strings (a bare string is rejected).
- description / help_name: Unset | str, non-empty after trimming.
- hidden / required: bool.
- arity: Unset | (minimum, maximum) with 0 <= minimum <= maximum; maximum may
  be Ellipsis for unbounded.
- mutually_exclusive: Unset | str (group expression, parsed at validation time)
  | Iterable[str] (one flat group).
- recursive_options: Unset | class whose Option attributes are visible to the
  command and all its descendants.
- default: any value, Unset meaning "no default".

Quick example:
    >>> from sigil import command, Option, Argument
    >>> @command(aliases=["enc"], description="Encode a string")
    ... def encode(text: str = Argument(description="text to encode"),
    ...            wrap: int = Option(aliases=["w"], default=76)): ...
"""
import builtins
import enum
import functools
import operator
import re
from collections.abc import Iterable
from types import EllipsisType
from typing import NamedTuple

from .utils import *


class DescriptorKind(enum.Enum):
    """
    The four descriptor kinds.
    """
    ROOT_COMMAND = "root-command"
    COMMAND = "command"
    OPTION = "option"
    ARGUMENT = "argument"


class Arity(NamedTuple):
    """
    Minimum/maximum count of values a symbol consumes (maximum None = unbounded).
    """
    minimum: int
    maximum: int | None

    @property
    def bounded(self):
        return self.maximum is not None

    @property
    def optional(self):
        return self.minimum == 0


class DescriptorType(type):
    """
    Metaclass for descriptor classes.

    Responsibilities
    - Derive __typename__ from the class name ("RootCommand" -> "root-command")
      for use in diagnostics.
    - Expose the names listed in __introspectable__ as read-only properties
      mirroring the sanitized "_name" fields.
    - Provide compact __repr__ and __rich_repr__ implementations.
    """
    __introspectable__ = ()

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            # Unset and empty fields are skipped to keep reprs short.
            for name in type(self).__introspectable__:
                if (object := getattr(self, name)) is not Unset and object != ():
                    yield name, object
        self.__rich_repr__ = __rich_repr__

        return self


def _sanitize_text(cls, metadata, key, /):
    if not isinstance(text := metadata[key], str | Unset):
        raise TypeError(f"{cls.__typename__} {key!r} must be a string")
    elif isinstance(text, str) and not (text := text.strip()):
        raise ValueError(f"{cls.__typename__} {key!r} cannot be empty")
    metadata[key] = text


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: normalize and validate the metadata shared by all descriptors.

    Handles whichever of 'name', 'aliases', 'description', 'help_name',
    'hidden', 'required', 'arity' and 'mutually_exclusive' are present in the
    dict, mutating it in place.

    Raises
    - TypeError: when a field has the wrong type (including a bare string
      given as 'aliases').
    - ValueError: when a string is empty after trimming, aliases repeat, or
      the arity bounds are inconsistent.
    """
    for key in ("name", "description", "help_name"):
        if key in metadata:
            _sanitize_text(cls, metadata, key)

    if "aliases" in metadata:
        aliases = metadata["aliases"]
        if isinstance(aliases, str) or not isinstance(aliases, Iterable):
            raise TypeError(f"{cls.__typename__} 'aliases' must be an iterable of strings")
        sanitized = []
        for alias in aliases:
            if not isinstance(alias, str):
                raise TypeError(f"{cls.__typename__} aliases must be strings")
            elif not (alias := alias.strip()):
                raise ValueError(f"{cls.__typename__} aliases cannot be empty-strings")
            elif alias in sanitized:
                raise ValueError(f"{cls.__typename__} aliases cannot contain duplicates")
            sanitized.append(alias)
        metadata["aliases"] = tuple(sanitized)

    for key in ("hidden", "required"):
        if key in metadata and not isinstance(metadata[key], bool):
            raise TypeError(f"{cls.__typename__} {key!r} must be a boolean")

    if "arity" in metadata and (arity := metadata["arity"]) is not Unset:
        if isinstance(arity, str) or not isinstance(arity, Iterable) or len(arity := tuple(arity)) != 2:
            raise TypeError(f"{cls.__typename__} 'arity' must be a (minimum, maximum) pair")
        minimum, maximum = arity
        if not isinstance(minimum, int) or isinstance(minimum, bool):
            raise TypeError(f"{cls.__typename__} 'arity' minimum must be an integer")
        if not isinstance(maximum, int | EllipsisType) or isinstance(maximum, bool):
            raise TypeError(f"{cls.__typename__} 'arity' maximum must be an integer or ellipsis")
        if minimum < 0:
            raise ValueError(f"{cls.__typename__} 'arity' minimum cannot be negative")
        if maximum is not Ellipsis and maximum < minimum:
            raise ValueError(f"{cls.__typename__} 'arity' maximum cannot be lower than its minimum")
        metadata["arity"] = Arity(minimum, None if maximum is Ellipsis else maximum)

    if "mutually_exclusive" in metadata:
        if isinstance(group := metadata["mutually_exclusive"], str):
            if not (group := group.strip()):
                raise ValueError(f"{cls.__typename__} 'mutually_exclusive' cannot be empty")
        elif isinstance(group, Iterable):
            group = tuple(group)
            if not all(isinstance(name, str) for name in group):
                raise TypeError(f"{cls.__typename__} 'mutually_exclusive' names must be strings")
        elif group is not Unset:
            raise TypeError(f"{cls.__typename__} 'mutually_exclusive' must be a string or an iterable of strings")
        metadata["mutually_exclusive"] = group


def _attach(descriptor, target, /):
    """
    Internal: record a command descriptor on a function or class.
    """
    if isinstance(target, Descriptor):
        raise TypeError(f"@{type(descriptor).__typename__}() cannot be applied to a descriptor")
    if not callable(function := unwrap(target)):
        raise TypeError(f"@{type(descriptor).__typename__}() must be applied to a callable or a class")
    try:
        function.__descriptors__ = vars(function).get("__descriptors__", ()) + (descriptor,)
    except (AttributeError, TypeError):
        raise TypeError(f"@{type(descriptor).__typename__}() target cannot carry declarations") from None
    return target


class Descriptor(metaclass=DescriptorType):
    """
    Base of all descriptors; never instantiated directly.
    """
    __kind__ = Unset

    @property
    def kind(self):
        return type(self).__kind__

    def _populate(self, metadata, /):
        for name, object in metadata.items():
            setattr(self, "_" + name, object)

    def __setattr__(self, name, value, /):
        if not name.startswith("_"):
            raise AttributeError(f"{type(self).__typename__} is read-only")
        super().__setattr__(name, value)


class RootCommand(Descriptor):
    """
    Root command declaration.

    On a function, the function becomes the root handler (runs when no
    subcommand is given). On a class, it only supplies the root description.
    At most one root declaration may exist in a program.

    mutually_exclusive applies to the root handler, as for Command.
    """
    __kind__ = DescriptorKind.ROOT_COMMAND

    __introspectable__ = (
        "description",
        "mutually_exclusive",
    )

    def __init__(self, description=Unset, *, mutually_exclusive=Unset):
        metadata = {"description": description, "mutually_exclusive": mutually_exclusive}
        _sanitize_metadata(type(self), metadata)
        self._populate(metadata)

    def __call__(self, target, /):
        return _attach(self, target)


class Command(Descriptor):
    """
    Command declaration.

    Parameters
    - name: Unset | str
      Explicit name; whitespace separates subcommand path segments. When Unset
      the name derives from the decorated identifier (see sigil.naming).
    - aliases: Iterable[str]
      Alternative names for the last path segment.
    - description: Unset | str
      Help text. Functions fall back to the first paragraph of their docstring.
    - hidden: bool
      Hidden commands are omitted from help listings but remain executable.
    - mutually_exclusive: Unset | str | Iterable[str]
      Group expression checked before the handler runs, e.g. "(a,b)(c,d)".
    - recursive_options: Unset | type
      Class whose Option attributes are visible to this command and all its
      descendants.
    """
    __kind__ = DescriptorKind.COMMAND

    __introspectable__ = (
        "name",
        "aliases",
        "description",
        "hidden",
        "mutually_exclusive",
        "recursive_options",
    )

    def __init__(
            self,
            name=Unset,
            /,
            aliases=(),
            description=Unset,
            hidden=False,
            *,
            mutually_exclusive=Unset,
            recursive_options=Unset,
    ):
        metadata = {
            "name": name,
            "aliases": aliases,
            "description": description,
            "hidden": hidden,
            "mutually_exclusive": mutually_exclusive,
            "recursive_options": recursive_options,
        }
        _sanitize_metadata(type(self), metadata)

        if not isinstance(metadata["recursive_options"], type | Unset):
            raise TypeError(f"{type(self).__typename__} 'recursive_options' must be a class")

        self._populate(metadata)

    def __call__(self, target, /):
        return _attach(self, target)


class Option(Descriptor):
    """
    Named symbol declaration.

    As a parameter default it declares a handler option; as a module or class
    attribute it declares global option storage (recursive when the class is
    referenced by a command's recursive_options).

    Parameters
    - name: Unset | str (defaults to the kebab-cased identifier)
    - aliases: Iterable[str] (one character aliases become "-x")
    - description, help_name: Unset | str
    - hidden, required: bool
    - arity: Unset | (minimum, maximum)
    - default: any value; Unset on a parameter means the option is required.
    """
    __kind__ = DescriptorKind.OPTION

    __introspectable__ = (
        "name",
        "aliases",
        "description",
        "help_name",
        "hidden",
        "required",
        "arity",
        "default",
    )

    def __init__(
            self,
            name=Unset,
            /,
            aliases=(),
            description=Unset,
            hidden=False,
            required=False,
            arity=Unset,
            help_name=Unset,
            *,
            default=Unset,
    ):
        metadata = {
            "name": name,
            "aliases": aliases,
            "description": description,
            "help_name": help_name,
            "hidden": hidden,
            "required": required,
            "arity": arity,
            "default": default,
        }
        _sanitize_metadata(type(self), metadata)
        self._populate(metadata)


class Argument(Descriptor):
    """
    Positional symbol declaration (parameter defaults only).

    Parameters
    - name: Unset | str (defaults to the kebab-cased parameter name)
    - description, help_name: Unset | str
    - hidden: bool
    - arity: Unset | (minimum, maximum)
    - default: any value; Unset means the argument is required.
    """
    __kind__ = DescriptorKind.ARGUMENT

    __introspectable__ = (
        "name",
        "description",
        "help_name",
        "hidden",
        "arity",
        "default",
    )

    @property
    def aliases(self):
        return ()

    @property
    def required(self):
        return self.default is Unset

    def __init__(
            self,
            name=Unset,
            /,
            description=Unset,
            hidden=False,
            arity=Unset,
            help_name=Unset,
            *,
            default=Unset,
    ):
        metadata = {
            "name": name,
            "description": description,
            "help_name": help_name,
            "hidden": hidden,
            "arity": arity,
            "default": default,
        }
        _sanitize_metadata(type(self), metadata)
        self._populate(metadata)


def root_command(source=Unset, /, *args, **kwargs):
    """
    Attach a RootCommand descriptor, or return a decorator doing so.

    Forms
    - @root_command
    - @root_command("program description")
    - root_command(callback_or_class, "program description")
    """
    if callable(source) and not isinstance(source, Descriptor):
        return RootCommand(*args, **kwargs)(source)
    return RootCommand(*args, **kwargs) if source is Unset else RootCommand(source, *args, **kwargs)


def command(source=Unset, /, *args, **kwargs):
    """
    Attach a Command descriptor, or return a decorator doing so.

    Forms
    - @command
    - @command("name", aliases=[...], description="...")
    - @command(description="...", mutually_exclusive="(a,b)")
    - command(callback_or_class, "name", ...)

    Returns
    - The decorated object unchanged (direct form) or the Command descriptor
      acting as a decorator.
    """
    if callable(source) and not isinstance(source, Descriptor):
        return Command(*args, **kwargs)(source)
    return Command(source, *args, **kwargs)


def startup(callback, /):
    """
    Mark a function to run once after the command tree is built.

    The function takes either no parameter or one parameter (the Application).
    Returns the function unchanged.
    """
    if not callable(function := unwrap(callback)) or isinstance(function, type):
        raise TypeError("@startup must be applied to a function")
    function.__startup__ = True
    return callback


__all__ = (
    # Public API surface for consumers of sigil.descriptors.
    # These names are re-exported from the package __init__.
    "DescriptorKind",
    "Arity",
    "Descriptor",
    "RootCommand",
    "Command",
    "Option",
    "Argument",
    "root_command",
    "command",
    "startup",
)
