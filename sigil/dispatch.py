"""
Sigil dispatch: from a parse result to a handler call and an exit code.

Overview
- ResultShape: declared result of a handler (void, exit code, deferred,
  deferred exit code), checked once when the handler is bound.
- HandlerBinding: a handler with its ordered parameter slots; builds the call
  arguments from a parse result by symbol identity.
- GlobalOptionInitializer: writes the parsed value of a global/recursive
  option back into its storage attribute.
- ExitStatus: mutable exit code handed to after-command hooks.
- Dispatcher: runs one invocation.

Sequence (per invocation)
1. global option initializers, in registration order.
2. mutually-exclusive groups declared on the command.
3. before-command hooks.
4. parameter values, in slot order.
5. handler call; the result is normalized:
   • None -> 0, int -> itself, awaitable -> awaited, then normalized again.
6. after-command hooks; each may overwrite status.code (last write wins).
7. the final status.code is returned.

Recording the active command and routing exceptions to the exception handler
belong to the caller (see sigil.cli.Application).
"""
import asyncio
import collections.abc
import enum
import inspect
import logging
import types
import typing

from .faults import ConfigurationError, FaultCode
from .utils import Unset
from .validation import validate_mutually_exclusive

logger = logging.getLogger(__name__)


def _unsupported(callback, annotation, /):
    return ConfigurationError(
        f"handler {getattr(callback, '__qualname__', callback)!r} declares an unsupported return type {annotation!r}",
        code=FaultCode.UNSUPPORTED_RETURN,
        title="unsupported return",
        hint="return None or an int, directly or from a coroutine",
    )


class ResultShape(enum.Enum):
    VOID = "void"
    CODE = "code"
    DEFERRED = "deferred"
    DEFERRED_CODE = "deferred-code"

    @property
    def deferred(self):
        return self in (ResultShape.DEFERRED, ResultShape.DEFERRED_CODE)

    @classmethod
    def of(cls, callback, annotation=Unset, /):
        """
        Classify a handler from its return annotation.

        Accepted
        - no annotation (dynamic: None or int, awaited when awaitable).
        - None / NoReturn / Never, int, int | None.
        - Awaitable[...] / Coroutine[..., ..., ...] wrapping one of the above.
        - for "async def" handlers, the annotation is the awaited payload.

        Raises
        - ConfigurationError: for any other annotation.
        """
        deferred = inspect.iscoroutinefunction(callback)
        payload = annotation

        if not deferred and annotation is not Unset:
            origin, arguments = typing.get_origin(annotation), typing.get_args(annotation)
            if origin in (collections.abc.Awaitable, collections.abc.Coroutine, asyncio.Future, asyncio.Task):
                deferred = True
                payload = arguments[-1] if arguments else Unset
            elif annotation in (collections.abc.Awaitable, collections.abc.Coroutine, asyncio.Future, asyncio.Task):
                deferred, payload = True, Unset

        if payload is Unset:
            return cls.DEFERRED_CODE if deferred else cls.CODE
        if payload in (None, type(None), typing.NoReturn, typing.Never):
            return cls.DEFERRED if deferred else cls.VOID
        if payload is int:
            return cls.DEFERRED_CODE if deferred else cls.CODE
        if typing.get_origin(payload) in (typing.Union, types.UnionType):
            if set(typing.get_args(payload)) == {int, type(None)}:
                return cls.DEFERRED_CODE if deferred else cls.CODE
        raise _unsupported(callback, annotation)


class Slot:
    """
    One handler parameter bound to the symbol that feeds it.
    """
    __slots__ = ("name", "keyword", "symbol")

    def __init__(self, name, symbol, /, *, keyword=False):
        self.name = name
        self.symbol = symbol
        self.keyword = keyword

    def __repr__(self):
        return f"Slot({self.name!r}, {self.symbol.name!r}{', keyword=True' if self.keyword else ''})"


class HandlerBinding:
    """
    A command node's handler with its ordered parameter slots and result shape.

    Created once while the tree is built; never mutated afterwards.
    """

    def __init__(self, node, callback, slots, shape, /):
        self._node = node
        self._callback = callback
        self._slots = tuple(slots)
        self._shape = shape

    @property
    def node(self):
        return self._node

    @property
    def callback(self):
        return self._callback

    @property
    def slots(self):
        return self._slots

    @property
    def shape(self):
        return self._shape

    @property
    def symbols(self):
        return tuple(slot.symbol for slot in self._slots)

    def arguments(self, result, /):
        """
        Extract (args, kwargs) for the handler from a parse result.
        """
        args, kwargs = [], {}
        for slot in self._slots:
            if slot.keyword:
                kwargs[slot.name] = result.value(slot.symbol)
            else:
                args.append(result.value(slot.symbol))
        return args, kwargs

    def __repr__(self):
        return f"HandlerBinding({getattr(self._callback, '__qualname__', self._callback)!r}, shape={self._shape.value!r})"


class GlobalOptionInitializer:
    """
    Write an option's parsed (or default) value into its storage attribute.
    """
    __slots__ = ("owner", "attribute", "symbol")

    def __init__(self, owner, attribute, symbol, /):
        self.owner = owner
        self.attribute = attribute
        self.symbol = symbol

    def __call__(self, result, /):
        setattr(self.owner, self.attribute, result.value(self.symbol))

    def __repr__(self):
        return f"GlobalOptionInitializer({getattr(self.owner, '__name__', self.owner)}.{self.attribute})"


class ExitStatus:
    """
    Mutable exit code shared by the after-command hooks of one invocation.
    """
    __slots__ = ("code",)

    def __init__(self, code=0, /):
        self.code = code

    def __int__(self):
        return self.code

    def __repr__(self):
        return f"ExitStatus({self.code})"


def normalize(value, /, *, callback=None):
    """
    Turn a (resolved) handler result into an exit code.

    Raises
    - ConfigurationError: for values other than None or int.
    """
    if value is None:
        return 0
    if isinstance(value, int) and not isinstance(value, bool):
        return int(value)
    raise _unsupported(callback, type(value))


async def _resolve(value, /):
    while inspect.isawaitable(value):
        value = await value
    return value


class Dispatcher:
    """
    Run one command invocation (see the module docstring for the sequence).

    Parameters
    - binding: HandlerBinding of the matched node.
    - initializers: GlobalOptionInitializer sequence (shared, in order).
    - before / after: hook lists; they are read at call time, so hooks
      registered after the dispatcher was created still fire.
    """

    def __init__(self, binding, initializers, before, after, /):
        self._binding = binding
        self._initializers = initializers
        self._before = before
        self._after = after

    @property
    def binding(self):
        return self._binding

    def _prepare(self, result, /):
        for initializer in self._initializers:
            initializer(result)

        if (expression := self._binding.node.mutually_exclusive) is not Unset:
            validate_mutually_exclusive(result, expression)

        for hook in tuple(self._before):
            hook(result)

        return self._binding.arguments(result)

    def _finish(self, result, value, /):
        status = ExitStatus(normalize(value, callback=self._binding.callback))
        for hook in tuple(self._after):
            hook(result, status)
        logger.debug("command %r finished with exit code %d", self._binding.node.full_name, status.code)
        return status.code

    def __call__(self, result, /):
        """
        Synchronous invocation; a deferred result is resolved with asyncio.run.
        """
        args, kwargs = self._prepare(result)
        logger.debug("invoking %r", self._binding)
        value = self._binding.callback(*args, **kwargs)
        if inspect.isawaitable(value):
            value = asyncio.run(_resolve(value))
        return self._finish(result, value)

    async def invoke(self, result, /):
        """
        Asynchronous invocation on the running loop.
        """
        args, kwargs = self._prepare(result)
        logger.debug("invoking %r", self._binding)
        value = await _resolve(self._binding.callback(*args, **kwargs))
        return self._finish(result, value)


__all__ = (
    "ResultShape",
    "Slot",
    "HandlerBinding",
    "GlobalOptionInitializer",
    "ExitStatus",
    "Dispatcher",
    "normalize",
)
