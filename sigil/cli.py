"""
Sigil application: build once, parse, dispatch, return an exit code.

Overview
- Application(*sources, prog=..., description=..., version=..., colorful=...)
  • owns one command tree built from the declarations found in its sources
    (modules, classes or importable module names; "__main__" by default).
  • build(): discovery + tree construction + parser compilation; runs the
    @startup functions. A second call is a configuration error.
  • run(args) / run_async(args): parse the tokens and dispatch the matched
    command; return the exit code. Both build lazily on first use.

- Lifecycle hooks
  • before_command(callback): callback(result) before the handler runs.
  • after_command(callback): callback(result, status) after it returned; may
    overwrite status.code.

- Exception handler
  • exception_handler: (exception) -> int | None. Receives validation errors
    and any exception raised by hooks or handlers; its return value is the
    exit code. Defaults to printing the exception to stderr (rich) and
    returning 1. Set it to None to let exceptions propagate.
  • configuration errors, KeyboardInterrupt, SystemExit and cancellation are
    never routed through it.

- State accessors
  • root: the built tree root.
  • current_command: the command being dispatched (only during dispatch).
  • parse_result: the last parse result (from the first dispatch onwards).

Process-wide default
- default() returns a shared Application over "__main__"; sigil.run() and
  sigil.run_async() delegate to it.

Quick example:
    >>> import sigil
    >>> @sigil.command
    ... def hello(name: str = sigil.Argument()):
    ...     print(f"Hello {name}!")
    >>> raise SystemExit(sigil.run())
"""
import contextlib
import inspect
import logging
import os.path
import shlex
import sys
from collections.abc import Iterable

from . import host
from .builder import build_tree, discover
from .dispatch import Dispatcher
from .faults import ConfigurationError, FaultCode, InactiveCommandError, report
from .utils import *
from .validation import validate_mutually_exclusive

logger = logging.getLogger(__name__)


def _tokenize(args, /):
    if args is None:
        return sys.argv[1:]
    if isinstance(args, str):
        return shlex.split(args)
    if not isinstance(args, Iterable):
        raise TypeError("run() arguments must be a string or an iterable of strings")
    args = list(args)
    if not all(isinstance(arg, str) for arg in args):
        raise TypeError("run() arguments must be strings")
    return args


def _main(name, default=Unset, /):
    return getattr(sys.modules.get("__main__"), name, default)


class Application:
    """
    A command-line program assembled from declarations.

    Parameters
    - *sources: modules, classes or module names to scan ("__main__" when
      none is given).
    - prog: Unset | str, program name (root command name and usage lines);
      falls back to __main__.__prog__, then to the basename of sys.argv[0].
    - description: Unset | str, root description when no root declaration
      provides one; falls back to the first module docstring.
    - version: Unset | str, text printed by "--version"; falls back to
      __main__.__version__, then "1.0.0".
    - colorful: bool, render faults with colors (default exception handler).
    """

    def __init__(self, *sources, prog=Unset, description=Unset, version=Unset, colorful=True):
        for source in sources:
            if not isinstance(source, str | type) and not inspect.ismodule(source):
                raise TypeError("application sources must be modules, classes or module names")
        if not isinstance(prog, str | Unset) or not isinstance(description, str | Unset):
            raise TypeError("application 'prog' and 'description' must be strings")
        if not isinstance(version, str | Unset):
            raise TypeError("application 'version' must be a string")

        self._sources = sources or ("__main__",)
        self._prog = prog
        self._description = description
        self._version = version
        self._colorful = colorful
        self._root = None
        self._parser = None
        self._dispatchers = {}
        self._initializers = ()
        self._before = []
        self._after = []
        self._exception_handler = self._report
        self._current = None
        self._result = None

    def _report(self, exception, /):
        report(exception, colorful=self._colorful)
        return 1

    @property
    def built(self):
        return self._root is not None

    @property
    def root(self):
        """
        The root command node (available once built).
        """
        if self._root is None:
            raise InactiveCommandError(
                "the command tree has not been built yet",
                code=FaultCode.NOT_BUILT,
                title="not built",
                hint="call build() or run() first",
            )
        return self._root

    @property
    def parser(self):
        """
        The compiled host parser (available once built).
        """
        return self._parser if self.root is not None else None

    @property
    def initializers(self):
        """
        Global option initializers (owner, attribute, symbol), in order.

        Embedders running several command lines in one process use them to
        reset global option storage between runs.
        """
        return self._initializers if self.root is not None else ()

    @property
    def current_command(self):
        """
        The command node being dispatched; only valid inside hooks and handlers.
        """
        if self._current is None:
            raise InactiveCommandError(
                "no command is being executed",
                code=FaultCode.NO_ACTIVE_COMMAND,
                title="no active command",
                hint="read current_command from a hook or a handler",
            )
        return self._current

    @property
    def parse_result(self):
        """
        The parse result of the last dispatch.
        """
        if self._result is None:
            raise InactiveCommandError(
                "no command line has been dispatched yet",
                code=FaultCode.NO_PARSE_RESULT,
                title="no parse result",
                hint="read parse_result from a hook, a handler, or after run()",
            )
        return self._result

    @property
    def exception_handler(self):
        return self._exception_handler

    @exception_handler.setter
    def exception_handler(self, handler):
        if handler is not None and not callable(handler):
            raise TypeError("application 'exception_handler' must be callable or None")
        self._exception_handler = handler

    def before_command(self, callback, /):
        """
        Register callback(result) to run before every handler; returns it.
        """
        if not callable(callback):
            raise TypeError("before_command() argument must be callable")
        self._before.append(callback)
        return callback

    def after_command(self, callback, /):
        """
        Register callback(result, status) to run after every handler; returns it.
        """
        if not callable(callback):
            raise TypeError("after_command() argument must be callable")
        self._after.append(callback)
        return callback

    def validate_mutually_exclusive(self, names, /, commands=None):
        """
        Validate a group expression against the active parse result.

        Usable from handlers and before-command hooks. When commands is given,
        the check only applies while one of those commands executes.

        Raises
        - MutuallyExclusiveError: when two symbols of one group were supplied.
        - ConfigurationError: when the expression is malformed.
        """
        validate_mutually_exclusive(self.parse_result, names, commands)

    def build(self):
        """
        Discover declarations, build the command tree and compile the parser.

        Raises
        - ConfigurationError: on malformed declarations, or when called twice.
        """
        if self._root is not None:
            raise ConfigurationError(
                "the command tree has already been built",
                code=FaultCode.ALREADY_BUILT,
                title="already built",
                hint="build() runs once per application",
            )

        discovery = discover(self._sources)
        prog = coalesce(self._prog, _main("__prog__", os.path.basename(sys.argv[0]) or "sigil"))
        version = coalesce(self._version, _main("__version__", "1.0.0"))
        tree = build_tree(discovery, name=prog, description=self._description)
        parser = host.compile(tree.root, prog=prog, version=str(version))

        for node in tree.root.walk():
            if node.handler is not None:
                self._dispatchers[node] = Dispatcher(node.handler, tree.initializers, self._before, self._after)

        self._root, self._parser = tree.root, parser
        self._initializers = tree.initializers
        logger.debug("application %r built", prog)

        for callback in discovery.startups:
            self._startup(callback)
        return self._root

    def _startup(self, callback, /):
        try:
            parameters = inspect.signature(callback).parameters
        except (TypeError, ValueError):
            parameters = None
        if parameters is None or len(parameters) > 1:
            raise ConfigurationError(
                f"startup function {getattr(callback, '__qualname__', callback)!r} must take no parameter or the application",
                code=FaultCode.INVALID_STARTUP,
                title="invalid startup",
                hint="declare def setup(app): ... or def setup(): ...",
            )
        logger.debug("running startup %r", callback)
        if parameters:
            callback(self)
        else:
            callback()

    def _parse(self, args, /):
        if self._root is None:
            self.build()
        return host.parse(self._parser, _tokenize(args))

    def _routable(self, exception, /):
        return self._exception_handler is not None and not isinstance(exception, ConfigurationError)

    @contextlib.contextmanager
    def _redirect(self, output, error, /):
        with contextlib.ExitStack() as stack:
            if output is not None:
                stack.enter_context(contextlib.redirect_stdout(output))
            if error is not None:
                stack.enter_context(contextlib.redirect_stderr(error))
            yield

    def _code(self, exception, /):
        logger.debug("routing %s to the exception handler", type(exception).__name__)
        code = self._exception_handler(exception)
        return 1 if code is None else int(code)

    def run(self, args=None, /, output=None, error=None):
        """
        Parse args and dispatch the matched command.

        Parameters
        - args: None (sys.argv[1:]) | str (split like a shell) | Iterable[str].
        - output / error: text streams replacing sys.stdout / sys.stderr for
          the duration of the call.

        Returns
        - int: the exit code (0 for help/version, 2 for usage errors).
        """
        with self._redirect(output, error):
            try:
                result = self._parse(args)
            except host.HostExit as stop:
                return stop.status

            dispatcher = self._dispatchers[result.command]
            self._result, self._current = result, result.command
            try:
                return dispatcher(result)
            except Exception as exception:
                if not self._routable(exception):
                    raise
                return self._code(exception)
            finally:
                self._current = None

    async def run_async(self, args=None, /, output=None, error=None):
        """
        Same as run(), awaiting deferred handler results on the running loop.
        """
        with self._redirect(output, error):
            try:
                result = self._parse(args)
            except host.HostExit as stop:
                return stop.status

            dispatcher = self._dispatchers[result.command]
            self._result, self._current = result, result.command
            try:
                return await dispatcher.invoke(result)
            except Exception as exception:
                if not self._routable(exception):
                    raise
                return self._code(exception)
            finally:
                self._current = None

    def __repr__(self):
        return f"Application({', '.join(map(repr, self._sources))}{', built' if self.built else ''})"


_default = None


def default():
    """
    Return the process-wide Application over "__main__".
    """
    global _default
    if _default is None:
        _default = Application()
    return _default


def run(args=None, /, output=None, error=None):
    """
    Run the process-wide application (see Application.run).
    """
    return default().run(args, output=output, error=error)


async def run_async(args=None, /, output=None, error=None):
    """
    Run the process-wide application (see Application.run_async).
    """
    return await default().run_async(args, output=output, error=error)


__all__ = (
    "Application",
    "default",
    "run",
    "run_async",
)
