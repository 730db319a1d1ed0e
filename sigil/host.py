"""
Sigil host engine: the command tree compiled onto argparse.

Scope
- The parsing engine itself (tokens to symbols, type coercion, help text,
  usage errors) is argparse. This module only configures it from a finished
  command tree and reads the outcome back.

Overview
- compile(root, prog=..., version=...) -> HostParser
  • one HostParser per command node; children become sub-parsers (aliases
    included, hidden commands omitted from the listing and from the choices
    offered by usage errors).
  • every symbol is registered with default=SUPPRESS and a unique dest, so a
    key present in the namespace means "supplied on the command line".
  • recursive options are registered on every parser of their subtree under
    the same dest: one symbol identity, one value.
  • "-h/--help/-?" on every parser, "--version" on the root.

- parse(parser, tokens) -> ParseResult
  • raises HostExit(status) for help/version (0) and usage errors (2), after
    argparse printed to the current sys.stdout/sys.stderr.
  • enforces what argparse cannot see per sub-parser: required inherited
    options, and "required command was not provided" for nodes without a
    handler.

- ParseResult
  • command / root / tokens, supplied(symbol), value(symbol), result[name].
"""
import argparse
import logging
import sys

from .descriptors import DescriptorKind
from .faults import ConfigurationError, FaultCode
from .utils import *
from .values import SequenceType

logger = logging.getLogger(__name__)

_NODE = "sigil.node"

RESERVED = frozenset(("-h", "--help", "-?"))


class HostExit(Exception):
    """
    Raised instead of sys.exit() when argparse wants the process to stop.
    """

    def __init__(self, status, /):
        super().__init__(status)
        self.status = status


class HostParser(argparse.ArgumentParser):
    """
    ArgumentParser that raises HostExit rather than exiting the interpreter.

    Attributes
    - node: the CommandNode this parser was compiled from.
    - parsers: (root parser only) mapping node -> parser for the whole tree.
    """

    def __init__(self, *args, node=None, **kwargs):
        kwargs.setdefault("allow_abbrev", False)
        kwargs.setdefault("add_help", False)
        kwargs.setdefault("formatter_class", argparse.RawDescriptionHelpFormatter)
        super().__init__(*args, **kwargs)
        self.node = node
        self.parsers = {}

    def exit(self, status=0, message=None):
        if message:
            self._print_message(message, sys.stderr)
        raise HostExit(status)

    def _check_value(self, action, value):
        # Hidden commands stay out of the offered choices.
        if isinstance(action, argparse._SubParsersAction) and value not in action.choices:
            visible = [name for name, parser in action.choices.items() if not parser.node.hidden]
            offer = f" (choose from {', '.join(map(repr, visible))})" if visible else ""
            raise argparse.ArgumentError(action, f"invalid choice: {value!r}{offer}")
        super()._check_value(action, value)


class _SymbolAction(argparse.Action):
    """
    Store the converted value(s) of one symbol, enforcing its arity bounds.
    """

    def __init__(self, option_strings, dest, *, symbol, **kwargs):
        super().__init__(option_strings, dest, **kwargs)
        self.symbol = symbol

    def __call__(self, parser, namespace, values, option_string=None):
        arity, value_type = self.symbol.arity, self.symbol.value_type
        if self.nargs == 0:
            values = True
        elif isinstance(values, list):
            if len(values) < arity.minimum or (arity.bounded and len(values) > arity.maximum):
                bounds = f"{arity.minimum}..{arity.maximum if arity.bounded else 'n'}"
                raise argparse.ArgumentError(self, f"expected {bounds} value(s), got {len(values)}")
        if isinstance(value_type, SequenceType) and values is not None:
            values = value_type.collect(values if isinstance(values, list) else [values])
        setattr(namespace, self.dest, values)


def _nargs(symbol):
    minimum, maximum = symbol.arity
    if (minimum, maximum) == (1, 1):
        return None
    if (minimum, maximum) == (0, 1):
        return "?"
    if minimum == maximum:
        return minimum
    return "*" if minimum == 0 else "+"


def _metavar(symbol):
    if symbol.help_name is not None:
        return f"<{symbol.help_name}>"
    if choices := symbol.value_type.choices:
        return "{" + ",".join(choices) + "}"
    if symbol.kind is DescriptorKind.ARGUMENT:
        return f"<{symbol.name}>"
    return f"<{symbol.value_type.name}>"


def _help(symbol):
    if symbol.hidden:
        return argparse.SUPPRESS
    text = (symbol.description or "").replace("%", "%%")
    if not symbol.required and (default := symbol.get_default()) not in (None, False, "", (), []):
        text = f"{text} [default: {str(default).replace('%', '%%')}]".strip()
    if symbol.required and symbol.kind is DescriptorKind.OPTION:
        text = f"{text} (required)".strip()
    return text


def _register(parser, symbol, *, inherited=False):
    kwargs = {
        "action": _SymbolAction,
        "symbol": symbol,
        "type": symbol.value_type,
        "default": argparse.SUPPRESS,
        "metavar": _metavar(symbol),
        "help": _help(symbol),
    }
    if (nargs := _nargs(symbol)) is not None:
        kwargs["nargs"] = nargs
    if nargs == "?" and symbol.kind is DescriptorKind.OPTION:
        kwargs["const"] = True if symbol.value_type.name == "bool" else None
    if nargs == 0:
        kwargs.pop("metavar")

    try:
        if symbol.kind is DescriptorKind.OPTION:
            # Inherited requirements are checked after parsing: the value may
            # be supplied at any level of the command path.
            parser.add_argument(*symbol.names, dest=symbol.dest, required=symbol.required and not inherited, **kwargs)
        else:
            parser.add_argument(symbol.dest, **kwargs)
    except argparse.ArgumentError as error:
        raise ConfigurationError(
            f"command {parser.node.full_name!r} cannot register {symbol.display!r}: {error.message}",
            code=FaultCode.DUPLICATE_SYMBOL,
            title="duplicate symbol",
            hint="rename the option or give it different aliases",
        ) from None


def _populate(parser, node, registry, /, *, version=Unset):
    registry[node] = parser
    parser.set_defaults(**{_NODE: node})

    parser.add_argument("-h", "--help", "-?", action="help", help="show help and usage information")
    if version is not Unset:
        parser.add_argument("--version", action="version", version=version, help="show version information")

    for symbol in node.inherited_options:
        _register(parser, symbol, inherited=True)
    for symbol in node.options:
        _register(parser, symbol)
    for symbol in node.arguments:
        _register(parser, symbol)

    if not node.children:
        return

    subparsers = parser.add_subparsers(title="commands", metavar="<command>", parser_class=HostParser)
    for child in node.children.values():
        # Without a help entry argparse lists no row for the command.
        listing = {} if child.hidden else {"help": child.description or ""}
        subparser = subparsers.add_parser(
            child.name,
            aliases=list(child.aliases),
            description=child.description,
            node=child,
            **listing,
        )
        _populate(subparser, child, registry)


def compile(root, /, *, prog=Unset, version=Unset):
    """
    Build the argparse parser hierarchy for a command tree.

    Parameters
    - root: CommandNode, the root of a finished tree.
    - prog: Unset | str, program name in usage lines (defaults to root.name).
    - version: Unset | str, text printed by "--version".

    Raises
    - ConfigurationError: when two symbols claim the same command-line name
      on one command (including the reserved help names).
    """
    parser = HostParser(prog=coalesce(prog, root.name), description=root.description, node=root)
    _populate(parser, root, parser.parsers, version=version)
    logger.debug("compiled %d parser(s) for %r", len(parser.parsers), root.name)
    return parser


class ParseResult:
    """
    Outcome of one parse: the matched command and the supplied symbol values.

    Properties
    - command: the matched CommandNode.
    - root: the root CommandNode.
    - tokens: the argument tokens that were parsed.

    Methods
    - supplied(symbol): True when the symbol was present on the command line.
    - value(symbol): the parsed value, else the symbol's default, else None.
    - result[name]: value of the visible symbol matching name (options match
      with or without dashes, aliases included).
    """

    def __init__(self, command, namespace, tokens, /):
        self._command = command
        self._namespace = namespace
        self._tokens = tuple(tokens)

    command = mirror("command")
    tokens = mirror("tokens")

    @property
    def root(self):
        return self._command.root

    def supplied(self, symbol, /):
        return symbol.dest in vars(self._namespace)

    def value(self, symbol, /):
        if self.supplied(symbol):
            return getattr(self._namespace, symbol.dest)
        return symbol.get_default()

    def find(self, name, /):
        for symbol in self._command.visible_symbols:
            if symbol.matches(name):
                return symbol
        return None

    def __getitem__(self, name, /):
        if (symbol := self.find(name)) is None:
            raise KeyError(name)
        return self.value(symbol)

    def __contains__(self, name, /):
        return self.find(name) is not None

    def __repr__(self):
        supplied = {symbol.name: self.value(symbol) for symbol in self._command.visible_symbols if self.supplied(symbol)}
        return f"ParseResult(command={self._command.full_name!r}, supplied={supplied!r})"


def parse(parser, tokens, /):
    """
    Parse tokens with a compiled parser.

    Raises
    - HostExit: for help/version requests and usage errors.
    """
    namespace = parser.parse_args(list(tokens))
    node = getattr(namespace, _NODE)
    result = ParseResult(node, namespace, tokens)
    target = parser.parsers.get(node, parser)

    if missing := [symbol.display for symbol in node.inherited_options if symbol.required and not result.supplied(symbol)]:
        target.error(f"the following arguments are required: {', '.join(missing)}")
    if node.handler is None:
        target.error("required command was not provided")

    logger.debug("parsed %r as command %r", list(tokens), node.full_name)
    return result


__all__ = (
    "HostExit",
    "HostParser",
    "ParseResult",
    "compile",
    "parse",
)
