"""
Sigil command tree: command nodes and the symbols they expose.

Overview
- OptionSymbol / ArgumentSymbol
  • Parser-facing entities with resolved names, value type, arity, required
    flag and a default-value provider (a zero-argument callable, or None when
    the symbol has no default).
  • A recursive (or global) option is one object shared by every node of its
    subtree; its identity is what the dispatcher uses to read parsed values.

- CommandNode
  • One command or subcommand: name, aliases, description, hidden flag,
    children, options, arguments, recursive options and an optional handler
    binding.
  • Lookup helpers: find(), get_command(), get_option(), matches(), full_name.

Invariants (enforced by the tree builder and by add())
- child names and aliases are unique under a parent.
- exactly one node has no parent (the root).
"""
import functools
import itertools
import operator
import re

from .descriptors import DescriptorKind
from .naming import apply_dash_prefix, strip_dash_prefix
from .utils import *

_counter = itertools.count(1)


class TreeType(type):
    """
    Metaclass for tree objects.

    Responsibilities
    - Derive __typename__ from the class name for diagnostics.
    - Expose __introspectable__ names as read-only properties over "_name".
    - Provide __repr__/__rich_repr__ limited to __displayable__ (falls back to
      __introspectable__) so printing a node does not dump the whole tree.
    """
    __introspectable__ = ()
    __displayable__ = Unset

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

        if "__rich_repr__" not in namespace:
            @rename("__rich_repr__")
            def __rich_repr__(self):
                for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                    yield name, getattr(self, name)
            self.__rich_repr__ = __rich_repr__

        return self


class Symbol(metaclass=TreeType):
    """
    Common state of options and arguments.
    """
    __kind__ = Unset

    __introspectable__ = (
        "name",
        "aliases",
        "description",
        "help_name",
        "hidden",
        "required",
        "arity",
        "value_type",
        "default",
    )

    __displayable__ = (
        "name",
        "aliases",
        "required",
        "arity",
        "value_type",
    )

    def __init__(
            self,
            name,
            /,
            value_type,
            arity,
            *,
            aliases=(),
            description=Unset,
            help_name=Unset,
            hidden=False,
            required=False,
            default=None,
    ):
        self._name = name
        self._aliases = tuple(aliases)
        self._description = coalesce(description)
        self._help_name = coalesce(help_name)
        self._hidden = hidden
        self._required = required
        self._arity = arity
        self._value_type = value_type
        self._default = default
        self._dest = f"sigil.{type(self).__kind__.value}.{next(_counter)}"

    @property
    def kind(self):
        return type(self).__kind__

    @property
    def dest(self):
        """
        Unique key of this symbol inside the host parser namespace.
        """
        return self._dest

    @property
    def has_default(self):
        return self._default is not None

    def get_default(self):
        """
        Evaluate the default-value provider (None when there is none).
        """
        return self._default() if self._default is not None else None

    def matches(self, name, /):
        return name == self._name


class OptionSymbol(Symbol):
    __kind__ = DescriptorKind.OPTION

    @property
    def names(self):
        """
        Command-line forms of the name and aliases ("-x", "--name").
        """
        return tuple(map(apply_dash_prefix, (self._name, *self._aliases)))

    @property
    def display(self):
        return self.names[0]

    def matches(self, name, /):
        name = strip_dash_prefix(name)
        return any(strip_dash_prefix(candidate) == name for candidate in (self._name, *self._aliases))


class ArgumentSymbol(Symbol):
    __kind__ = DescriptorKind.ARGUMENT

    @property
    def display(self):
        return self._name


class CommandNode(metaclass=TreeType):
    """
    One node of the command tree.

    Properties
    - name: leaf segment; aliases: alternative leaf names.
    - parent: CommandNode | None; children: mapping name -> CommandNode.
    - options / arguments: symbols declared by this node's handler.
    - recursive_options: options declared here and visible to all descendants
      (global options are the root's recursive options).
    - handler: HandlerBinding | None (None for grouping nodes).
    - mutually_exclusive: Unset | group expression checked before dispatch.
    """

    __introspectable__ = (
        "name",
        "aliases",
        "description",
        "hidden",
        "parent",
        "children",
        "options",
        "arguments",
        "recursive_options",
        "handler",
        "mutually_exclusive",
    )

    __displayable__ = (
        "name",
        "aliases",
        "description",
        "hidden",
        "children",
        "options",
        "arguments",
        "recursive_options",
    )

    def __init__(self, name, /, description=Unset, *, aliases=(), hidden=False):
        self._name = name
        self._aliases = tuple(aliases)
        self._description = coalesce(description)
        self._hidden = hidden
        self._parent = None
        self._children = {}
        self._options = []
        self._arguments = []
        self._recursive_options = []
        self._handler = None
        self._mutually_exclusive = Unset

    def __rich_repr__(self):
        # Parents are omitted to avoid cycles in pretty printers.
        for name in type(self).__displayable__:
            if (object := getattr(self, name)) or object is False:
                yield name, object

    @property
    def root(self):
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    @property
    def path(self):
        """
        Ancestry from the root to this node (both included).
        """
        path = [node := self]
        while node.parent is not None:
            path.append(node := node.parent)
        return tuple(reversed(path))

    @property
    def full_name(self):
        """
        Space-separated command path, without the root name ("order create").

        The root itself reports its own name.
        """
        if self._parent is None:
            return self._name
        return " ".join(node.name for node in self.path[1:])

    @property
    def is_root(self):
        return self._parent is None

    def configure(self, *, description=Unset, aliases=Unset, hidden=Unset):
        """
        Update the presentational metadata (used while building the tree).
        """
        if description is not Unset:
            self._description = description
        if aliases is not Unset:
            self._aliases = tuple(aliases)
        if hidden is not Unset:
            self._hidden = hidden

    def add(self, child, /):
        """
        Attach a child node, enforcing unique names and aliases.

        Raises
        - ValueError: when the child already has a parent or one of its names
          is already in use under this node.
        """
        if child.parent is not None:
            raise ValueError(f"{type(self).__typename__} {child.name!r} is already attached")
        for name in (child.name, *child.aliases):
            if self.find(name) is not None:
                raise ValueError(f"{type(self).__typename__} name {name!r} is already in use under {self.full_name!r}")
        child._parent = self
        self._children[child.name] = child
        return child

    def add_option(self, symbol, /, *, recursive=False):
        (self._recursive_options if recursive else self._options).append(symbol)
        return symbol

    def add_argument(self, symbol, /):
        self._arguments.append(symbol)
        return symbol

    def attach(self, handler, /):
        self._handler = handler

    def require_exclusive(self, expression, /):
        self._mutually_exclusive = expression

    def matches(self, name, /):
        return name == self._name or name in self._aliases

    def find(self, name, /):
        """
        Return the direct child named (or aliased) name, else None.
        """
        if (child := self._children.get(name)) is not None:
            return child
        for child in self._children.values():
            if child.matches(name):
                return child
        return None

    def get_command(self, path, /):
        """
        Resolve a space-separated command path relative to this node.

        The first segment may also name this node itself ("root sub").
        Returns None when any segment cannot be resolved.
        """
        node = self
        for index, segment in enumerate(path.split()):
            if index == 0 and node.find(segment) is None and node.matches(segment):
                continue
            if (node := node.find(segment)) is None:
                return None
        return node

    @property
    def inherited_options(self):
        """
        Recursive options visible here, from the root down to this node.
        """
        return tuple(symbol for node in self.path for symbol in node._recursive_options)

    @property
    def visible_symbols(self):
        """
        Every symbol that can appear on the command line for this node.
        """
        return (*self.inherited_options, *self._options, *self._arguments)

    def get_option(self, name, /):
        """
        Return the visible option matching name (dashes optional), else None.
        """
        for symbol in (*self._options, *reversed(self.inherited_options)):
            if symbol.matches(name):
                return symbol
        return None

    def walk(self):
        """
        Yield this node and all descendants, depth-first in insertion order.
        """
        yield self
        for child in self._children.values():
            yield from child.walk()


__all__ = (
    "Symbol",
    "OptionSymbol",
    "ArgumentSymbol",
    "CommandNode",
)
