"""
Sigil naming rules: identifiers to external command/option/argument names.

Rules
- kebab(identifier): insert "-" at every lowercase→uppercase transition, then
  lowercase everything. Consecutive uppercase letters are never split, so an
  acronym run stays intact ("HTTPServer" -> "httpserver", "getHTTP" -> "get-http").
- resolve_command_name(explicit, identifier, sole=False):
  • explicit name containing whitespace: split into path segments verbatim.
  • explicit name without whitespace: one segment, verbatim.
  • otherwise: "_" is a path separator; each segment is kebab-cased.
    ("order_createItem" -> ("order", "create-item")).
  • the root flag is set only for an implicit name on the sole command.
- resolve_symbol_name(explicit, identifier): explicit name verbatim, else the
  kebab-cased identifier with underscores turned into dashes ("dry_run" -> "dry-run").
- apply_dash_prefix(name): "-x" for one character, "--name" otherwise, and
  names already starting with "-" are left untouched.
"""
import re

from .faults import ConfigurationError, FaultCode
from .utils import Unset


def kebab(identifier, /):
    """
    Convert an identifier to its kebab-case external form.
    """
    if not isinstance(identifier, str):
        raise TypeError("kebab() argument must be a string")
    return re.sub(r"(?<=[a-z])(?=[A-Z])", "-", identifier).lower()


def resolve_command_name(explicit, identifier, /, *, sole=False):
    """
    Resolve a command declaration into (segments, is_root_candidate).

    Parameters
    - explicit: Unset | str, the name given on the declaration.
    - identifier: str, the function or class name it was declared on.
    - sole: bool, True when this is the only command in the whole program.

    Raises
    - ConfigurationError: when no segment can be derived (e.g., "__").
    """
    if explicit is not Unset:
        segments = tuple(explicit.split()) if re.search(r"\s", explicit) else (explicit,)
    else:
        segments = tuple(kebab(segment) for segment in identifier.split("_") if segment)

    if not segments:
        raise ConfigurationError(
            f"command declared on {identifier!r} has no resolvable name",
            code=FaultCode.UNRESOLVABLE_NAME,
            title="unresolvable name",
            hint="give the declaration an explicit name",
        )
    return segments, explicit is Unset and sole


def resolve_symbol_name(explicit, identifier, /):
    """
    Resolve an option or argument name (explicit name wins, verbatim).
    """
    if explicit is not Unset:
        return explicit
    if not (name := kebab(re.sub(r"_+", "-", identifier.strip("_")))):
        raise ConfigurationError(
            f"symbol declared on {identifier!r} has no resolvable name",
            code=FaultCode.UNRESOLVABLE_NAME,
            title="unresolvable name",
            hint="give the declaration an explicit name",
        )
    return name


def apply_dash_prefix(name, /):
    """
    Turn a bare option name or alias into its command-line form.
    """
    if name.startswith("-"):
        return name
    return ("-" if len(name) == 1 else "--") + name


def strip_dash_prefix(name, /):
    """
    Inverse of apply_dash_prefix, used for name comparisons.
    """
    return name.lstrip("-")


__all__ = (
    "kebab",
    "resolve_command_name",
    "resolve_symbol_name",
    "apply_dash_prefix",
    "strip_dash_prefix",
)
