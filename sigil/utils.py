"""
Sigil utilities (small helpers shared across the package)

Scope
- Building blocks used by the descriptor, tree and dispatch layers. They are
  exported for consumers but exist primarily to keep the higher layers terse.

Overview
- UnsetType / Unset
  • Singleton sentinel meaning "not provided", distinct from None (None is a
    legitimate default value for options and arguments).
  • Falsey, printable as "Unset", and sealed against subclassing.

- coalesce(value, default=None)
  • Materialize Unset into a concrete default while preserving None/0/""/[].

- rename(callable, name) / @rename("name")
  • Give generated wrappers a stable __name__/__qualname__ for tracebacks.

- mirror("attr")
  • Read-only property over a private backing field (self._attr); mutable
    containers are copied on read so public state cannot be mutated through
    the property.

- unwrap(member)
  • Resolve staticmethod/classmethod wrappers to the function that carries the
    declarative markers.

Quick examples
    >>> coalesce(Unset, "fallback")
    'fallback'
    >>> coalesce(None, "fallback") is None
    True
"""
import builtins
import functools
from collections.abc import MutableMapping, MutableSequence, MutableSet
from typing import final


@final
class UnsetType:
    """
    Sentinel type for values that were not provided.

    A single instance, Unset, is exposed. It is used wherever None is a valid
    user value (option defaults, descriptions resolved later) and the API
    needs to tell "absent" apart from "explicitly None".
    """

    def __or__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo, /):
        return self

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


Unset = UnsetType()


def coalesce(object, default=None, /):
    """
    Return object unless it is Unset, in which case return default.

    Falsey values such as None, 0, "" or [] are returned unchanged; only the
    Unset sentinel is replaced.
    """
    return object if object is not Unset else default


def rename(*parameters):
    """
    Assign __name__/__qualname__ to a callable, or build a decorator doing so.

    Forms
    - rename(callable, name) -> callable (updated in place)
    - rename(name) -> decorator

    Raises
    - TypeError: on wrong arity, non-callable targets, non-string names, or
      callables whose names cannot be updated (e.g., built-ins).
    """
    match len(parameters):
        case 2:
            callable, name = parameters
            if not builtins.callable(callable):
                raise TypeError("rename() first argument must be callable")
            if not isinstance(name, str):
                raise TypeError("rename() second argument must be a string")
            try:
                callable.__qualname__ = name
                callable.__name__ = name
            except (AttributeError, TypeError):
                raise TypeError("rename() first argument must be an updatable callable") from None
            return callable
        case 1:
            name, = parameters
            if not isinstance(name, str):
                raise TypeError("@rename() argument must be a string")

            def wrapper(callable):
                if not builtins.callable(callable):
                    raise TypeError("@rename() must be applied to a callable")
                return rename(callable, name)

            return rename(wrapper, "rename")
        case _:
            raise TypeError("rename() takes 1 to 2 arguments but %d were given" % len(parameters))


def _detach(object):
    # Mutable containers are copied; immutable values pass through.
    if isinstance(object, MutableSequence):
        return list(map(_detach, object))
    elif isinstance(object, MutableMapping):
        return dict(zip(object.keys(), map(_detach, object.values())))
    elif isinstance(object, MutableSet):
        return set(map(_detach, object))
    return object


def mirror(name, /):
    """
    Define a read-only property that mirrors the private field "_{name}".

    Mutable containers are copied on read so callers cannot mutate descriptor
    or node state through the public attribute.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _detach(getattr(self, "_" + name))

    return property(getter)


def unwrap(member, /):
    """
    Return the plain function behind a staticmethod/classmethod member.

    Any other object is returned unchanged. Markers are always stored on the
    underlying function so that decorator order does not matter.
    """
    if isinstance(member, staticmethod | classmethod):
        return member.__func__
    return member


__all__ = (
    # Exposed helpers; see module docstring for the contract of each one.
    "UnsetType",
    "Unset",
    "coalesce",
    "rename",
    "mirror",
    "unwrap",
)
