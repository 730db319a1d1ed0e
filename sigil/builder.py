"""
Sigil tree builder: declarations in, a linked command tree out.

Discovery (discover)
- Sources are modules, classes, or importable module names. Modules are
  scanned for functions and classes defined in them (imported names are
  skipped) and for module-level Option storage; classes are scanned for
  staticmethod/classmethod handlers, class-level descriptors, Option storage
  and nested classes.
- A function carrying a command descriptor inside a class must be a
  staticmethod or classmethod; a function carrying two command descriptors is
  rejected.

Construction (build_tree)
1. root resolution: one root declaration at most (program-scope class or root
   handler); otherwise the sole unnamed command is promoted to root. Without a
   root handler the root only carries a description (declaration, then the
   given description, then the first module docstring).
2. handler-less commands (class-level @command) are created first.
3. handlers are created in ascending path length, reusing existing parents.
   A path already declared by another command is a duplicate command.
4. option storage is split into recursive sets (classes referenced by a
   command's recursive_options) and global options (everything else, attached
   to the root). Each attribute is reset to its declared default and gets an
   initializer writing the parsed value back.
5. each handler is bound: parameters become symbols (Option unless marked
   Argument), registered on the node, in signature order.
6. the finished tree is verified: no empty non-hidden groups, no positional
   arguments next to subcommands, no clashing option names.

Every violation raises ConfigurationError before any argument is parsed.
"""
import copy
import importlib
import inspect
import logging
import sys
import types
import typing
from collections.abc import MutableMapping, MutableSequence, MutableSet
from inspect import Parameter

from .descriptors import Argument, Command, Descriptor, DescriptorKind, Option, RootCommand
from .dispatch import GlobalOptionInitializer, HandlerBinding, ResultShape, Slot
from .faults import ConfigurationError, FaultCode
from .host import RESERVED
from .naming import resolve_command_name, resolve_symbol_name
from .tree import ArgumentSymbol, CommandNode, OptionSymbol
from .utils import *
from .values import resolve_value_type

logger = logging.getLogger(__name__)

# Per-owner record of the Option attributes turned into storage by a build.
_REGISTRY = "__sigil_storage__"


class Declaration:
    """
    A discovered command descriptor and the object it was declared on.
    """
    __slots__ = ("descriptor", "target", "identifier", "segments", "root")

    def __init__(self, descriptor, target, identifier, /):
        self.descriptor = descriptor
        self.target = target
        self.identifier = identifier
        self.segments = ()
        self.root = False

    @property
    def handler(self):
        return not isinstance(self.target, type)

    def __repr__(self):
        return f"Declaration({self.descriptor!r}, {self.identifier!r})"


class Storage:
    """
    A discovered Option attribute (global option storage).
    """
    __slots__ = ("owner", "attribute", "descriptor", "annotation")

    def __init__(self, owner, attribute, descriptor, annotation=Unset, /):
        self.owner = owner
        self.attribute = attribute
        self.descriptor = descriptor
        self.annotation = annotation

    def __repr__(self):
        return f"Storage({getattr(self.owner, '__name__', self.owner)}.{self.attribute})"


class Discovery:
    """
    Everything found in the sources, in discovery order.

    Attributes
    - roots: program-scope RootCommand declarations (on classes).
    - groups: handler-less Command declarations (on classes).
    - handlers: Command/RootCommand declarations on functions.
    - storages: Option attributes.
    - startups: functions marked with @startup.
    - description: first module docstring found (root description fallback).
    """

    def __init__(self):
        self.roots = []
        self.groups = []
        self.handlers = []
        self.storages = []
        self.startups = []
        self.description = Unset
        self._classes = set()
        self._markers = set()

    def _annotations(self, owner, /):
        try:
            return inspect.get_annotations(owner, eval_str=True)
        except Exception:  # NOQA: unresolvable string annotations fall back to inference
            return inspect.get_annotations(owner)

    def _storage(self, owner, attribute, descriptor, annotations, /):
        if id(descriptor) in self._markers:
            return
        self._markers.add(id(descriptor))
        annotation = annotations.get(attribute, Unset)
        self.storages.append(Storage(owner, attribute, descriptor, annotation if not isinstance(annotation, str) else Unset))

    def _unclaimed(self, owner, /):
        # A registered attribute that no longer holds its marker was already
        # consumed by another build; a reloaded module declares fresh markers.
        for attribute in vars(owner).get(_REGISTRY, ()):
            if not isinstance(vars(owner).get(attribute), Option):
                raise ConfigurationError(
                    f"option storage {getattr(owner, '__qualname__', owner.__name__)}.{attribute} belongs to a command tree that was already built",
                    code=FaultCode.ALREADY_BUILT,
                    title="already built",
                    hint="build one application per program, or reload the module first",
                )

    def _function(self, function, callback, identifier, /):
        if getattr(function, "__startup__", False):
            self.startups.append(callback)
        if not (descriptors := vars(function).get("__descriptors__", ())):
            return
        if len(descriptors) > 1:
            raise ConfigurationError(
                f"function {identifier!r} has multiple command declarations",
                code=FaultCode.MULTIPLE_DECLARATIONS,
                title="multiple declarations",
                hint="declare each function as one command only",
            )
        self.handlers.append(Declaration(descriptors[0], callback, function.__name__))

    def scan_class(self, cls, /):
        if cls in self._classes:
            return
        self._classes.add(cls)
        self._unclaimed(cls)

        for descriptor in vars(cls).get("__descriptors__", ()):
            (self.roots if descriptor.kind is DescriptorKind.ROOT_COMMAND else self.groups).append(
                Declaration(descriptor, cls, cls.__name__)
            )

        annotations = self._annotations(cls)
        for name, member in list(vars(cls).items()):
            if name.startswith("__") and name.endswith("__"):
                continue
            if isinstance(member, Option):
                self._storage(cls, name, member, annotations)
            elif isinstance(member, type):
                if member.__qualname__.startswith(cls.__qualname__ + "."):
                    self.scan_class(member)
            elif isinstance(member, staticmethod | classmethod):
                self._function(unwrap(member), getattr(cls, name), f"{cls.__qualname__}.{name}")
            elif inspect.isfunction(member):
                if vars(member).get("__descriptors__") or getattr(member, "__startup__", False):
                    raise ConfigurationError(
                        f"method {cls.__qualname__}.{name} must be a staticmethod or a classmethod",
                        code=FaultCode.NON_STATIC_MEMBER,
                        title="non-static member",
                        hint="decorate the method with @staticmethod or @classmethod",
                    )

    def scan_module(self, module, /):
        if self.description is Unset and (doc := inspect.getdoc(module)):
            self.description = doc
        self._unclaimed(module)
        annotations = self._annotations(module)
        for name, member in list(vars(module).items()):
            if name.startswith("__") and name.endswith("__"):
                continue
            if isinstance(member, Option):
                self._storage(module, name, member, annotations)
            elif isinstance(member, type):
                if member.__module__ == module.__name__:
                    self.scan_class(member)
            elif inspect.isfunction(function := unwrap(member)) and function.__module__ == module.__name__:
                self._function(function, member, name)

    def scan(self, source, /):
        if isinstance(source, str):
            try:
                source = importlib.import_module(source)
            except ImportError:
                raise TypeError(f"unable to import module {source!r}") from None
        if isinstance(source, types.ModuleType):
            self.scan_module(source)
        elif isinstance(source, type):
            self.scan_class(source)
        else:
            raise TypeError("discovery sources must be modules, classes or module names")


def discover(sources, /):
    """
    Scan the given sources and return a Discovery.
    """
    discovery = Discovery()
    for source in sources:
        discovery.scan(source)
    logger.debug(
        "discovered %d handler(s), %d group(s), %d root declaration(s), %d option storage(s)",
        len(discovery.handlers), len(discovery.groups), len(discovery.roots), len(discovery.storages),
    )
    return discovery


class Tree:
    """
    Result of build_tree: the root node and the option initializers.
    """
    __slots__ = ("root", "initializers")

    def __init__(self, root, initializers, /):
        self.root = root
        self.initializers = tuple(initializers)


def _describe(declaration, /):
    if (description := declaration.descriptor.description) is not Unset:
        return description
    if declaration.handler and (doc := inspect.getdoc(declaration.target)):
        return doc.split("\n\n", 1)[0].strip()
    return Unset


def _resolve_root(discovery, /):
    roots = discovery.roots + [handler for handler in discovery.handlers if handler.descriptor.kind is DescriptorKind.ROOT_COMMAND]
    if len(roots) > 1:
        raise ConfigurationError(
            f"only one root command may be declared, found {len(roots)}",
            code=FaultCode.DUPLICATE_ROOT,
            title="duplicate root",
            hint="keep a single @root_command declaration",
        )

    commands = [handler for handler in discovery.handlers if handler.descriptor.kind is DescriptorKind.COMMAND]
    sole = len(commands) == 1 and not discovery.groups and not roots
    for declaration in commands + discovery.groups:
        declaration.segments, declaration.root = resolve_command_name(
            declaration.descriptor.name, declaration.identifier, sole=sole and declaration.handler,
        )

    if roots:
        return roots[0]
    if sole and commands[0].root:
        return commands[0]
    return None


def _create(root, declaration, declared, /):
    node = root
    for segment in declaration.segments:
        if (child := node.children.get(segment)) is None:
            try:
                child = node.add(CommandNode(segment))
            except ValueError:
                raise ConfigurationError(
                    f"command {' '.join(declaration.segments)!r} clashes with an alias of another command",
                    code=FaultCode.DUPLICATE_COMMAND,
                    title="duplicate command",
                    hint="rename the command or the clashing alias",
                ) from None
        node = child

    # Intermediate nodes created implicitly may still be claimed once.
    if node in declared:
        raise ConfigurationError(
            f"command {' '.join(declaration.segments)!r} has multiple declarations",
            code=FaultCode.DUPLICATE_COMMAND,
            title="duplicate command",
            hint="each command path may be declared only once",
        )

    descriptor = declaration.descriptor
    for alias in descriptor.aliases:
        if node.parent.find(alias) is not None:
            raise ConfigurationError(
                f"alias {alias!r} of command {node.full_name!r} is already in use",
                code=FaultCode.DUPLICATE_COMMAND,
                title="duplicate command",
                hint="rename the alias",
            )
    declared.add(node)
    node.configure(description=_describe(declaration), aliases=descriptor.aliases, hidden=descriptor.hidden)
    node.require_exclusive(descriptor.mutually_exclusive)
    return node


def _provider(default, /):
    # Mutable defaults are copied per invocation.
    if isinstance(default, MutableSequence | MutableMapping | MutableSet):
        return lambda: copy.copy(default)
    return lambda: default


def _hints(callback, /):
    try:
        return typing.get_type_hints(callback, include_extras=True)
    except Exception as error:  # NOQA: get_type_hints raises whatever evaluation raises
        raise ConfigurationError(
            f"handler {callback.__qualname__!r} has unresolvable annotations: {error}",
            code=FaultCode.UNSUPPORTED_TYPE,
            title="unsupported type",
            hint="make every annotation importable at module level",
        ) from error


def _bind(node, declaration, /):
    callback = declaration.target
    qualname = getattr(callback, "__qualname__", declaration.identifier)

    if node.handler is not None:
        raise ConfigurationError(
            f"command {node.full_name!r} has multiple handler methods",
            code=FaultCode.MULTIPLE_HANDLERS,
            title="multiple handlers",
            hint="keep one handler per command",
        )

    try:
        signature = inspect.signature(callback)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"handler {qualname!r} is not inspectable",
            code=FaultCode.UNSUPPORTED_PARAMETER,
            title="unsupported parameter",
        ) from None

    hints = _hints(callback)
    slots = []

    for name, parameter in signature.parameters.items():
        if parameter.kind in (Parameter.VAR_POSITIONAL, Parameter.VAR_KEYWORD):
            raise ConfigurationError(
                f"handler {qualname!r} parameter {name!r} cannot be variadic",
                code=FaultCode.UNSUPPORTED_PARAMETER,
                title="unsupported parameter",
                hint="declare one parameter per option or argument",
            )

        if isinstance(marker := parameter.default, Option | Argument):
            descriptor, default = marker, marker.default
        elif isinstance(marker, Descriptor):
            raise ConfigurationError(
                f"handler {qualname!r} parameter {name!r} default must be an option or an argument",
                code=FaultCode.UNSUPPORTED_PARAMETER,
                title="unsupported parameter",
            )
        else:
            descriptor, default = Option(), Unset if marker is Parameter.empty else marker

        kind = descriptor.kind
        value_type = resolve_value_type(hints.get(name, Unset), default, owner=f"parameter {name!r} of {qualname!r}")
        required = descriptor.required or default is Unset
        metadata = {
            "description": descriptor.description,
            "help_name": descriptor.help_name,
            "hidden": descriptor.hidden,
            "required": required,
            "default": None if required else _provider(default),
        }
        arity = coalesce(descriptor.arity, value_type.arity(kind, defaulted=default is not Unset))
        symbol_name = resolve_symbol_name(descriptor.name, name)

        if kind is DescriptorKind.ARGUMENT:
            symbol = node.add_argument(ArgumentSymbol(symbol_name, value_type, arity, **metadata))
        else:
            symbol = node.add_option(OptionSymbol(symbol_name, value_type, arity, aliases=descriptor.aliases, **metadata))

        slots.append(Slot(name, symbol, keyword=parameter.kind is Parameter.KEYWORD_ONLY))

    node.attach(HandlerBinding(node, callback, slots, ResultShape.of(callback, hints.get("return", Unset))))
    logger.debug("bound %r to command %r", qualname, node.full_name)


def _attach_storages(root, discovery, claims, /):
    initializers = []
    for storage in discovery.storages:
        descriptor = storage.descriptor
        owner, attribute = storage.owner, storage.attribute
        node = claims.get(owner, root)

        if _REGISTRY not in vars(owner):
            setattr(owner, _REGISTRY, {})
        getattr(owner, _REGISTRY)[attribute] = descriptor
        setattr(owner, attribute, coalesce(descriptor.default))

        value_type = resolve_value_type(
            storage.annotation, descriptor.default,
            owner=f"option {getattr(owner, '__qualname__', owner.__name__)}.{attribute}",
        )
        symbol = OptionSymbol(
            resolve_symbol_name(descriptor.name, attribute),
            value_type,
            coalesce(descriptor.arity, value_type.arity(DescriptorKind.OPTION)),
            aliases=descriptor.aliases,
            description=descriptor.description,
            help_name=descriptor.help_name,
            hidden=descriptor.hidden,
            required=descriptor.required,
            default=None if descriptor.required else (lambda owner=owner, attribute=attribute: getattr(owner, attribute)),
        )
        node.add_option(symbol, recursive=True)
        initializers.append(GlobalOptionInitializer(owner, attribute, symbol))
    return initializers


def _claim_containers(discovery, nodes, /):
    claims = {}
    for declaration, node in nodes:
        if declaration.descriptor.kind is not DescriptorKind.COMMAND:
            continue
        if (container := declaration.descriptor.recursive_options) is Unset:
            continue
        if container in claims:
            raise ConfigurationError(
                f"recursive options {container.__qualname__!r} are claimed by {claims[container].full_name!r} and {node.full_name!r}",
                code=FaultCode.CONTAINER_CLAIMED,
                title="container claimed",
                hint="give each command its own recursive options class",
            )
        claims[container] = node
        discovery.scan_class(container)
    return claims


def _verify(root, groups, /):
    for node in groups:
        if not node.children and node.handler is None and not node.hidden:
            raise ConfigurationError(
                f"command {node.full_name!r} has no subcommands nor handler methods",
                code=FaultCode.EMPTY_GROUP,
                title="empty group",
                hint="add a subcommand, a handler, or mark the command hidden",
            )

    for node in root.walk():
        if node.children and node.arguments:
            raise ConfigurationError(
                f"command {node.full_name!r} has subcommands and cannot declare positional arguments",
                code=FaultCode.ARGUMENTS_WITH_SUBCOMMANDS,
                title="arguments with subcommands",
                hint="turn the arguments into options or move the handler to a subcommand",
            )

        names = set(RESERVED | ({"--version"} if node.is_root else set()))
        for symbol in (*node.inherited_options, *node.options):
            for name in symbol.names:
                if name in names:
                    raise ConfigurationError(
                        f"command {node.full_name!r} option name {name!r} is already in use",
                        code=FaultCode.DUPLICATE_SYMBOL,
                        title="duplicate symbol",
                        hint="rename the option or its alias",
                    )
                names.add(name)

        arguments = set()
        for symbol in node.arguments:
            if symbol.name in arguments:
                raise ConfigurationError(
                    f"command {node.full_name!r} argument name {symbol.name!r} is already in use",
                    code=FaultCode.DUPLICATE_SYMBOL,
                    title="duplicate symbol",
                    hint="rename the argument",
                )
            arguments.add(symbol.name)


def build_tree(discovery, /, *, name, description=Unset):
    """
    Build the command tree from a Discovery.

    Parameters
    - discovery: Discovery produced by discover().
    - name: str, root command name (the program name).
    - description: Unset | str, root description fallback.

    Returns
    - Tree(root, initializers)

    Raises
    - ConfigurationError: on any declaration inconsistency (see module docs).
    """
    if not discovery.handlers and not discovery.groups:
        raise ConfigurationError(
            "no command declarations were found",
            code=FaultCode.NO_COMMANDS,
            title="no commands",
            hint="decorate at least one function with @command or @root_command",
        )

    root_declaration = _resolve_root(discovery)

    root_description = Unset
    if root_declaration is not None:
        root_description = _describe(root_declaration)
    root = CommandNode(name, coalesce(root_description, coalesce(description, discovery.description)))

    nodes = []
    if root_declaration is not None and root_declaration.handler:
        root.require_exclusive(root_declaration.descriptor.mutually_exclusive)
        nodes.append((root_declaration, root))

    groups, declared = [], {root}
    for declaration in discovery.groups:
        groups.append(node := _create(root, declaration, declared))
        nodes.append((declaration, node))

    handlers = [handler for handler in discovery.handlers if handler is not root_declaration and handler.descriptor.kind is DescriptorKind.COMMAND]
    for declaration in sorted(handlers, key=lambda declaration: len(declaration.segments)):
        nodes.append((declaration, _create(root, declaration, declared)))

    claims = _claim_containers(discovery, nodes)
    initializers = _attach_storages(root, discovery, claims)

    for declaration, node in nodes:
        if declaration.handler:
            _bind(node, declaration)

    _verify(root, groups)
    logger.debug("built command tree %r with %d node(s)", root.name, sum(1 for _ in root.walk()))
    return Tree(root, initializers)


__all__ = (
    "Declaration",
    "Storage",
    "Discovery",
    "Tree",
    "discover",
    "build_tree",
)
