"""
Sigil validation: mutually-exclusive options and arguments.

Group expressions
- flat:          "a, b, c"          -> one group, all mutually exclusive.
- parenthesized: "(a,b)(c,d)"       -> two independent groups.
  Names are separated by commas, semicolons, pipes or whitespace; option
  names may be given with or without dashes and may use aliases.
- an iterable of names is one flat group.

Rules
- a symbol counts as supplied only when it was present on the command line;
  a value equal to its default does not count.
- lookups cover every symbol visible to the executing command (global and
  recursive options from the root down, then its own options and arguments).
- more than one supplied symbol in a group raises MutuallyExclusiveError
  naming the first two (in group order) and the full command path.
- unmatched or nested parentheses and groups with fewer than two names are
  configuration errors, raised when the expression is validated.
- an optional command allow-list restricts a check to the listed commands
  (space-separated paths or aliases, resolved from the root).
"""
import re

from .faults import ConfigurationError, FaultCode, MutuallyExclusiveError

_SEPARATORS = r"[\s,;|]+"


def _names(text, expression, /):
    names = tuple(name for name in re.split(_SEPARATORS, text) if name)
    if len(names) < 2:
        raise ConfigurationError(
            f"at least two options/arguments must be specified in a mutually exclusive group: {expression!r}",
            code=FaultCode.INSUFFICIENT_GROUP,
            title="insufficient group",
            hint="list two or more names per group, e.g. \"(a,b)\"",
        )
    return names


def parse_groups(expression, /):
    """
    Parse a group expression into a list of name tuples.

    Raises
    - ConfigurationError: on malformed syntax or undersized groups.
    - TypeError: when the expression is neither a string nor an iterable of
      strings.
    """
    if not isinstance(expression, str):
        try:
            names = tuple(expression)
        except TypeError:
            raise TypeError("mutually exclusive expression must be a string or an iterable of strings") from None
        if not all(isinstance(name, str) for name in names):
            raise TypeError("mutually exclusive expression must be a string or an iterable of strings")
        return [_names(" ".join(names), expression)]

    if "(" not in expression and ")" not in expression:
        return [_names(expression, expression)]

    groups = []
    for chunk in re.split(r"(?<=\))", expression):
        if not (chunk := re.sub(rf"^{_SEPARATORS}|{_SEPARATORS}$", "", chunk)):
            continue
        if not (chunk.startswith("(") and chunk.endswith(")")) or re.search(r"[()]", chunk[1:-1]):
            raise ConfigurationError(
                f"invalid mutually exclusive options/arguments syntax (unmatched parentheses): {expression!r}",
                code=FaultCode.MALFORMED_GROUP,
                title="malformed group",
                hint="use one level of parentheses per group, e.g. \"(a,b)(c,d)\"",
            )
        groups.append(_names(chunk[1:-1], expression))
    return groups


def validate_mutually_exclusive(result, expression, /, commands=None):
    """
    Check mutually-exclusive groups against a parse result.

    Parameters
    - result: ParseResult of the executing command.
    - expression: group expression or iterable of names (see module docstring).
    - commands: None | str | Iterable[str], command paths the check applies to.

    Raises
    - MutuallyExclusiveError: when two symbols of one group were supplied.
    - ConfigurationError: when the expression is malformed.
    """
    groups = parse_groups(expression)
    command = result.command

    if commands is not None:
        if isinstance(commands, str):
            commands = (commands,)
        if not any(result.root.get_command(path) is command for path in commands):
            return

    visible = command.visible_symbols
    for group in groups:
        supplied = []
        for name in group:
            for symbol in visible:
                if symbol.matches(name) and result.supplied(symbol) and symbol not in supplied:
                    supplied.append(symbol)
        if len(supplied) > 1:
            first, second = supplied[:2]
            raise MutuallyExclusiveError(
                f"{first.display} and {second.display} are mutually exclusive for command {command.full_name!r}",
                code=FaultCode.MUTUALLY_EXCLUSIVE,
                title="mutually exclusive",
                hint=f"use either {first.display} or {second.display}, not both",
            )


__all__ = (
    "parse_groups",
    "validate_mutually_exclusive",
)
