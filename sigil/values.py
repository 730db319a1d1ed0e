"""
Sigil value types: the closed set of types an option or argument may carry.

Overview
- ValueType subclasses convert one command-line token into a Python value and
  know their default arity:
  • BoolType: "true/false", "yes/no", "on/off", "1/0" (case-insensitive).
    Options default to arity (0, 0): a bare "--flag" means True. An explicit
    arity of (0, 1) also accepts a value ("--flag false").
  • IntType, FloatType, StrType: the builtin constructors.
  • EnumType: member name (case-insensitive), then member value.
  • PathType: pathlib.Path (or any PurePath subclass).
  • SequenceType: list/tuple/set/frozenset of one scalar type; defaults to
    arity (1, unbounded).

- resolve_value_type(annotation, default) picks the member of the set from a
  parameter annotation, falling back to the type of the default value, then to
  str. Optional[T] and T | None unwrap to T; Annotated[T, ...] unwraps to T.
  Anything else is a configuration error.

Notes
- Instances are callable (token -> value) and expose __name__, so the host
  parser reports conversion failures as "invalid <name> value: 'token'".
"""
import argparse
import collections.abc
import enum
import inspect
import pathlib
import types
import typing

from .descriptors import Arity, DescriptorKind
from .faults import ConfigurationError, FaultCode
from .utils import Unset


class ValueType:
    """
    Base of the value-type set.
    """
    __slots__ = ()

    name = "value"

    @property
    def __name__(self):
        return self.name

    @property
    def choices(self):
        return ()

    def convert(self, token, /):
        raise NotImplementedError

    def collect(self, values, /):
        # Scalars take a single value; arity > 1 keeps the list as parsed.
        return values

    def arity(self, kind, /, *, defaulted=False):
        """
        Default arity for a symbol of this type.
        """
        if kind is DescriptorKind.ARGUMENT and defaulted:
            return Arity(0, 1)
        return Arity(1, 1)

    def __call__(self, token, /):
        # argparse feeds the suppressed default of an omitted optional
        # positional back through the converter.
        if token is argparse.SUPPRESS:
            return token
        return self.convert(token)

    def __eq__(self, other):
        return type(self) is type(other) and self.__getstate__() == other.__getstate__()

    def __hash__(self):
        return hash((type(self), self.__getstate__()))

    def __getstate__(self):
        return tuple(getattr(self, slot) for slot in type(self).__slots__)

    def __repr__(self):
        return f"{type(self).__name__}({', '.join(map(repr, self.__getstate__()))})"


class BoolType(ValueType):
    __slots__ = ()

    name = "bool"

    def convert(self, token, /):
        match token.strip().lower():
            case "true" | "yes" | "on" | "1":
                return True
            case "false" | "no" | "off" | "0":
                return False
        raise ValueError(token)

    def arity(self, kind, /, *, defaulted=False):
        if kind is DescriptorKind.OPTION:
            return Arity(0, 0)
        return super().arity(kind, defaulted=defaulted)


class IntType(ValueType):
    __slots__ = ()

    name = "int"

    def convert(self, token, /):
        return int(token)


class FloatType(ValueType):
    __slots__ = ()

    name = "float"

    def convert(self, token, /):
        return float(token)


class StrType(ValueType):
    __slots__ = ()

    name = "str"

    def convert(self, token, /):
        return token


class EnumType(ValueType):
    __slots__ = ("type",)

    def __init__(self, type, /):
        self.type = type

    @property
    def name(self):
        return self.type.__name__

    @property
    def choices(self):
        return tuple(member.name.lower() for member in self.type)

    def convert(self, token, /):
        for member in self.type:
            if member.name.lower() == token.lower():
                return member
        for member in self.type:
            if str(member.value) == token:
                return member
        raise ValueError(token)


class PathType(ValueType):
    __slots__ = ("type",)

    def __init__(self, type=pathlib.Path, /):
        self.type = type

    @property
    def name(self):
        return "path"

    def convert(self, token, /):
        return self.type(token)


class SequenceType(ValueType):
    __slots__ = ("item", "container")

    def __init__(self, item, container=list, /):
        self.item = item
        self.container = container

    @property
    def name(self):
        return self.item.name

    @property
    def choices(self):
        return self.item.choices

    def convert(self, token, /):
        return self.item.convert(token)

    def collect(self, values, /):
        return self.container(values)

    def arity(self, kind, /, *, defaulted=False):
        return Arity(0 if kind is DescriptorKind.ARGUMENT and defaulted else 1, None)


_scalars = {
    bool: BoolType,
    int: IntType,
    float: FloatType,
    str: StrType,
}

_containers = {
    list: list,
    tuple: tuple,
    set: set,
    frozenset: frozenset,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Set: frozenset,
    collections.abc.MutableSet: set,
    collections.abc.Iterable: list,
}


def _scalar(annotation, /):
    if annotation in _scalars:
        return _scalars[annotation]()
    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return EnumType(annotation)
    if isinstance(annotation, type) and issubclass(annotation, pathlib.PurePath):
        return PathType(annotation)
    return Unset


def resolve_value_type(annotation=Unset, /, default=Unset, *, owner="symbol"):
    """
    Select the value type for a symbol.

    Parameters
    - annotation: Unset | type | typing form, the declared annotation.
    - default: Unset | Any, the declared default (used when not annotated).
    - owner: str, a label for diagnostics (e.g., "parameter 'count' of hello").

    Raises
    - ConfigurationError: when the annotation is outside the supported set.
    """
    if annotation in (Unset, inspect.Parameter.empty, typing.Any):
        if default is Unset or default is None:
            return StrType()
        annotation = type(default)
        if annotation in _containers and default:
            # Infer the item type from the first element of a non-empty default.
            annotation = annotation[type(next(iter(default)))] if annotation is not tuple else tuple[type(default[0]), ...]

    origin, arguments = typing.get_origin(annotation), typing.get_args(annotation)

    if origin is typing.Annotated:
        return resolve_value_type(arguments[0], default, owner=owner)

    if origin in (typing.Union, types.UnionType):
        if len(members := [member for member in arguments if member is not type(None)]) == 1:
            return resolve_value_type(members[0], default, owner=owner)
    elif (scalar := _scalar(annotation)) is not Unset:
        return scalar
    elif annotation in _containers:
        return SequenceType(StrType(), _containers[annotation])
    elif origin in _containers:
        if origin is tuple and not (len(arguments) == 2 and arguments[1] is Ellipsis):
            arguments = ()
        if len(arguments) >= 1 and (item := _scalar(arguments[0])) is not Unset:
            return SequenceType(item, _containers[origin])

    raise ConfigurationError(
        f"{owner} has an unsupported value type {annotation!r}",
        code=FaultCode.UNSUPPORTED_TYPE,
        title="unsupported type",
        hint="use bool, int, float, str, an enum, a path, or a list of those",
    )


__all__ = (
    "ValueType",
    "BoolType",
    "IntType",
    "FloatType",
    "StrType",
    "EnumType",
    "PathType",
    "SequenceType",
    "resolve_value_type",
)
