"""
Sigil faults (errors) and rendering.

Scope
- FaultCode: stable numeric identifiers for every error the package raises,
  grouped by domain so logs and searches stay predictable.
- SigilException: base type carrying message + options (code, title, hint)
  that knows how to render itself through rich.
- ConfigurationError / ValidationError / MutuallyExclusiveError /
  InactiveCommandError: the error taxonomy.
- report(): print any exception to the stderr console (used by the default
  exception handler).

Taxonomy
- configuration errors: malformed declarations found while building the
  command tree, or malformed validation expressions. Programmer errors; they
  always propagate and are never routed through an exception handler.
- validation errors: raised during dispatch (before the handler runs) when the
  parsed input breaks a declared constraint. Routed through the exception
  handler like any handler error.
- inactive-command errors: state accessors used outside of their lifetime
  (e.g., current command read outside of dispatch).

UX goals
- Short lowercased titles, one-sentence bodies, a single clear hint.
- Styling configurable via __styles__ in __main__; code labels via __codes__.
"""
import os.path
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text
from rich.traceback import Traceback

from .utils import Unset

console = Console(stderr=True)
plain = Console(stderr=True, no_color=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the package (stable identifiers).

    grouping (by high-level domain)
    - configuration (211xx)
      • declarations: NO_COMMANDS, DUPLICATE_ROOT, DUPLICATE_COMMAND,
        MULTIPLE_HANDLERS, EMPTY_GROUP, UNRESOLVABLE_NAME,
        MULTIPLE_DECLARATIONS, NON_STATIC_MEMBER
      • bindings: UNSUPPORTED_RETURN, UNSUPPORTED_TYPE, UNSUPPORTED_PARAMETER,
        DUPLICATE_SYMBOL, ARGUMENTS_WITH_SUBCOMMANDS, CONTAINER_CLAIMED,
        INVALID_STARTUP
      • expressions: MALFORMED_GROUP, INSUFFICIENT_GROUP
      • lifecycle: ALREADY_BUILT
    - validation (221xx)
      • MUTUALLY_EXCLUSIVE
    - runtime state (231xx)
      • NOT_BUILT, NO_ACTIVE_COMMAND, NO_PARSE_RESULT
    """
    # --- declaration errors (211xx) ---
    NO_COMMANDS                 = 21101
    DUPLICATE_ROOT              = 21102
    DUPLICATE_COMMAND           = 21103
    MULTIPLE_HANDLERS           = 21104
    EMPTY_GROUP                 = 21105
    UNRESOLVABLE_NAME           = 21106
    MULTIPLE_DECLARATIONS       = 21107
    NON_STATIC_MEMBER           = 21108

    # --- binding errors (211xx) ---
    UNSUPPORTED_RETURN          = 21111
    UNSUPPORTED_TYPE            = 21112
    UNSUPPORTED_PARAMETER       = 21113
    DUPLICATE_SYMBOL            = 21114
    ARGUMENTS_WITH_SUBCOMMANDS  = 21115
    CONTAINER_CLAIMED           = 21116
    INVALID_STARTUP             = 21117

    # --- expression errors (211xx) ---
    MALFORMED_GROUP             = 21121
    INSUFFICIENT_GROUP          = 21122

    # --- lifecycle errors (211xx) ---
    ALREADY_BUILT               = 21131

    # --- validation errors (221xx) ---
    MUTUALLY_EXCLUSIVE          = 22101

    # --- runtime state errors (231xx) ---
    NOT_BUILT                   = 23101
    NO_ACTIVE_COMMAND           = 23102
    NO_PARSE_RESULT             = 23103

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__ to
        override numeric ids with friendlier labels.
        """
        return str(getattr(sys.modules.get("__main__"), "__codes__", {}).get(self, self.value))


class SigilException(Exception):
    """
    base fault: a message plus read-only options.

    recognized options
    - code: FaultCode identifying the fault.
    - title: short lowercase title shown in the rendered header.
    - hint: one actionable sentence shown below the message.
    - colorful: render with styles (defaults to True).
    - fancy: render inside a panel (defaults to False).
    - prog: program name for the header (falls back to __main__.__prog__,
      then to the basename of sys.argv[0]).
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    @property
    def code(self):
        return self.options.get("code")

    def __str__(self):
        return self.message if self.message is not Unset else ""

    def __rich__(self):
        main = sys.modules.get("__main__")
        colorful = self.options.get("colorful", True)

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        } | getattr(main, "__styles__", {}))

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            return Text(str(fragment), styles[style] if colorful else "")

        prog = self.options.get("prog") or getattr(main, "__prog__", os.path.basename(sys.argv[0]) or "sigil")

        parts = ["[ ", text(prog, "prog-name")]
        if (code := self.code) is not None:
            parts += [" — ", text(code.normalize(), "code")]
        if title := self.options.get("title"):
            parts += [" | ", text(title.title(), "error-title")]
        header = Text.assemble(*parts, " ]")

        body = [text(self.message, "error-message")]
        if hint := self.options.get("hint"):
            body.append(Text.assemble(text(" → ", "hint-arrow"), text(hint, "hint")))

        if self.options.get("fancy", False):
            return Panel(Group(*body), title=header, title_align="left")
        return Group(header, *body)


class ConfigurationError(SigilException): ...
class ValidationError(SigilException): ...
class MutuallyExclusiveError(ValidationError): ...
class InactiveCommandError(SigilException, RuntimeError): ...


def report(exception, /, *, colorful=True):
    """
    print an exception to the stderr console.

    behavior
    - sigil faults render through their own __rich__ (header, message, hint).
    - any other exception renders as a rich traceback.
    - colorful=False prints through a console with colors disabled.
    - the console resolves sys.stderr at print time, so redirected streams
      (see Application.run) receive the output.
    """
    if not isinstance(exception, BaseException):
        raise TypeError("report() argument must be an exception")
    target = console if colorful else plain
    if isinstance(exception, SigilException):
        target.print(exception)
    else:
        target.print(Traceback.from_exception(type(exception), exception, exception.__traceback__))


__all__ = (
    # Public fault surface; re-exported from the package __init__.
    "FaultCode",
    "SigilException",
    "ConfigurationError",
    "ValidationError",
    "MutuallyExclusiveError",
    "InactiveCommandError",
    "report",
)
