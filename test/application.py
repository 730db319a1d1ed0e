"""
Application behavioral tests (end-to-end runs, exit codes, hooks, state).

Scope
- Base64 encoder end-to-end: output and exit code, aliases, global flags.
- Exit code normalization: None, int, coroutine, awaitable, exceptions.
- Exception handler contract (default, custom, unset, failing).
- Lifecycle hooks (before/after, exit code overwrite) and state accessors.
- Nested commands, recursive options, enum/path/list values, hidden commands.
- Global option storage reuse across runs and snapshot/restore.
- Parse errors, help and version exits.

Conventions
- Test method names follow CamelCase per project convention.
- Fixture programs come from test/programs, reloaded per test.
- Streams are captured through run(output=..., error=...).
"""

import pathlib
import unittest
from unittest import IsolatedAsyncioTestCase, TestCase

from sigil import (
    Application,
    ConfigurationError,
    ExitStatus,
    FaultCode,
    InactiveCommandError,
    MutuallyExclusiveError,
    Option,
    command,
    startup,
)

from support import Snapshot, application, invoke, invoke_async


class TestEncoder(TestCase):
    def setUp(self):
        self.module, self.app = application("encoder")

    def testEncodeHelloWorld(self):
        self.assertEqual(invoke(self.app, ["encode", "Hello World!"]), (0, "SGVsbG8gV29ybGQh\n", ""))

    def testStringArgumentsAreShellSplit(self):
        self.assertEqual(invoke(self.app, 'enc "Hello World!"')[:2], (0, "SGVsbG8gV29ybGQh\n"))

    def testDecode(self):
        self.assertEqual(invoke(self.app, ["dec", "SGVsbG8gV29ybGQh"])[:2], (0, "Hello World!\n"))

    def testGlobalFlagBeforeOrAfterCommand(self):
        with Snapshot(self.app) as snapshot:
            self.assertEqual(invoke(self.app, ["-v", "encode", "hi"])[1], "encoding 2 character(s)\naGk=\n")
            snapshot.restore()
            self.assertEqual(invoke(self.app, ["encode", "-v", "hi"])[1], "encoding 2 character(s)\naGk=\n")

    def testGlobalStoragePersistsAcrossRuns(self):
        invoke(self.app, ["--verbose", "encode", "a"])
        self.assertIs(self.module.verbose, True)
        # Storage is not reset between runs; the stale value wins.
        self.assertEqual(invoke(self.app, ["encode", "a"])[1], "encoding 1 character(s)\nYQ==\n")

    def testSnapshotRestoresGlobalStorage(self):
        snapshot = Snapshot(self.app)
        invoke(self.app, ["--verbose", "encode", "a"])
        snapshot.restore()
        self.assertIs(self.module.verbose, False)
        self.assertEqual(invoke(self.app, ["encode", "a"])[1], "YQ==\n")

    def testCommandRequired(self):
        code, output, error = invoke(self.app, [])
        self.assertEqual(code, 2)
        self.assertEqual(output, "")
        self.assertIn("required command was not provided", error)

    def testMissingArgument(self):
        code, _, error = invoke(self.app, ["encode"])
        self.assertEqual(code, 2)
        self.assertIn("<text>", error)

    def testUnknownOption(self):
        self.assertEqual(invoke(self.app, ["encode", "x", "--wrap", "3"])[0], 2)

    def testUnknownCommand(self):
        self.assertEqual(invoke(self.app, ["compress", "x"])[0], 2)

    def testHelp(self):
        for flag in ("-h", "--help", "-?"):
            with self.subTest(flag=flag):
                code, output, _ = invoke(self.app, [flag])
                self.assertEqual(code, 0)
                self.assertIn("encode", output)
                self.assertIn("Encode a string to Base64.", output)
                self.assertIn("--verbose", output)

    def testCommandHelp(self):
        code, output, _ = invoke(self.app, ["encode", "--help"])
        self.assertEqual(code, 0)
        self.assertIn("text to encode", output)
        self.assertIn("usage: encoder encode", output)

    def testExplicitVersion(self):
        _, app = application("encoder", version="2.3.4")
        self.assertEqual(invoke(app, ["--version"])[:2], (0, "2.3.4\n"))

    def testRootDescriptionFromModuleDocstring(self):
        self.app.build()
        self.assertEqual(self.app.root.description, "Base64 encoder fixture: two commands, one global option.")

    def testArgumentsMustBeStrings(self):
        with self.assertRaises(TypeError):
            self.app.run(["encode", 42])

    def testArgumentsMayBeAnyIterable(self):
        self.assertEqual(invoke(self.app, (arg for arg in ["encode", "hi"]))[:2], (0, "aGk=\n"))

    def testSecondApplicationOverABuiltModule(self):
        self.app.build()
        with self.assertRaises(ConfigurationError) as context:
            Application(self.module, prog="encoder").run(["-v", "encode", "x"])
        self.assertIs(context.exception.code, FaultCode.ALREADY_BUILT)

    def testReloadedModuleBuildsAgain(self):
        self.app.build()
        _, app = application("encoder")
        self.assertEqual(invoke(app, ["-v", "encode", "x"])[:2], (0, "encoding 1 character(s)\neA==\n"))


class TestGreeter(TestCase):
    def setUp(self):
        self.module, self.app = application("greeter")

    def testSoleCommandRunsWithoutArguments(self):
        self.assertEqual(invoke(self.app, [])[:2], (0, "Hello World!\n"))
        self.assertEqual(self.module.calls, ["World"])

    def testDefaultsAreOverridable(self):
        self.assertEqual(invoke(self.app, ["--name", "Ada", "-s"])[:2], (0, "HELLO ADA!\n"))

    def testWrongValueTypeIsAParseError(self):
        code, _, error = invoke(self.app, ["--shout=maybe"])
        self.assertEqual(code, 2)
        self.assertEqual(self.module.calls, [])


class TestExitCodes(TestCase):
    def setUp(self):
        self.module, self.app = application("exits")

    def testNoneIsZero(self):
        self.assertEqual(invoke(self.app, ["zero"])[0], 0)

    def testIntegerIsReturned(self):
        self.assertEqual(invoke(self.app, ["two"])[0], 2)

    def testCoroutineIsAwaited(self):
        self.assertEqual(invoke(self.app, ["three"])[0], 3)

    def testAwaitableIsAwaited(self):
        self.assertEqual(invoke(self.app, ["deferred"])[0], 4)

    def testVoidCoroutineIsZero(self):
        self.assertEqual(invoke(self.app, ["quiet"])[0], 0)

    def testDefaultExceptionHandler(self):
        code, output, error = invoke(self.app, ["fail"])
        self.assertEqual(code, 1)
        self.assertIn("boom", error)

    def testCustomExceptionHandler(self):
        seen = []

        def handler(exception):
            seen.append(exception)
            return 7

        self.app.exception_handler = handler
        self.assertEqual(invoke(self.app, ["fail"])[0], 7)
        (exception,) = seen
        self.assertIsInstance(exception, RuntimeError)
        self.assertEqual(str(exception), "boom")

    def testUnsetExceptionHandlerPropagates(self):
        self.app.exception_handler = None
        with self.assertRaises(RuntimeError):
            invoke(self.app, ["fail"])

    def testFailingExceptionHandlerPropagates(self):
        def handler(exception):
            raise LookupError("handler failed")

        self.app.exception_handler = handler
        with self.assertRaises(LookupError):
            invoke(self.app, ["fail"])

    def testExceptionHandlerMustBeCallable(self):
        with self.assertRaises(TypeError):
            self.app.exception_handler = 42


class TestHooks(TestCase):
    def setUp(self):
        self.module, self.app = application("exits")

    def testAfterHookOverwritesExitCode(self):
        @self.app.after_command
        def override(result, status):
            self.assertIsInstance(status, ExitStatus)
            self.assertEqual(status.code, 0)
            status.code = 5

        self.assertEqual(invoke(self.app, ["zero"])[0], 5)

    def testLastAfterHookWins(self):
        self.app.after_command(lambda result, status: setattr(status, "code", 5))
        self.app.after_command(lambda result, status: setattr(status, "code", status.code + 1))
        self.assertEqual(invoke(self.app, ["two"])[0], 6)

    def testBeforeHookSeesActiveCommand(self):
        seen = []

        @self.app.before_command
        def record(result):
            seen.append((self.app.current_command.full_name, result.command is self.app.parse_result.command))

        invoke(self.app, ["two"])
        self.assertEqual(seen, [("two", True)])

    def testBeforeHookFailureSkipsHandler(self):
        @self.app.before_command
        def refuse(result):
            raise PermissionError("not today")

        after = []
        self.app.after_command(lambda result, status: after.append(status.code))
        self.assertEqual(invoke(self.app, ["two"])[0], 1)
        self.assertEqual(after, [])

    def testHooksMustBeCallable(self):
        with self.assertRaises(TypeError):
            self.app.before_command("hook")
        with self.assertRaises(TypeError):
            self.app.after_command(None)

    def testStartupReceivesApplication(self):
        seen = []

        class Program:
            @staticmethod
            @command
            def handler():
                return 0

            @staticmethod
            @startup
            def setup(app):
                seen.append(app)
                app.after_command(lambda result, status: setattr(status, "code", 9))

            @staticmethod
            @startup
            def announce():
                seen.append("announce")

        app = Application(Program, prog="tool")
        self.assertEqual(invoke(app, [])[0], 9)
        self.assertEqual(seen, [app, "announce"])


class TestState(TestCase):
    def setUp(self):
        self.module, self.app = application("exits")

    def testRootBeforeBuild(self):
        with self.assertRaises(InactiveCommandError) as context:
            self.app.root
        self.assertIs(context.exception.code, FaultCode.NOT_BUILT)

    def testCurrentCommandOutsideDispatch(self):
        with self.assertRaises(InactiveCommandError) as context:
            self.app.current_command
        self.assertIs(context.exception.code, FaultCode.NO_ACTIVE_COMMAND)
        invoke(self.app, ["zero"])
        with self.assertRaises(InactiveCommandError):
            self.app.current_command

    def testParseResultLifetime(self):
        with self.assertRaises(InactiveCommandError) as context:
            self.app.parse_result
        self.assertIs(context.exception.code, FaultCode.NO_PARSE_RESULT)
        invoke(self.app, ["two"])
        self.assertEqual(self.app.parse_result.command.name, "two")
        self.assertEqual(self.app.parse_result.tokens, ("two",))

    def testInactiveCommandErrorIsARuntimeError(self):
        with self.assertRaises(RuntimeError):
            self.app.current_command

    def testRunBuildsLazilyOnce(self):
        invoke(self.app, ["zero"])
        self.assertTrue(self.app.built)
        self.assertEqual(invoke(self.app, ["two"])[0], 2)

    def testMutableDefaultsAreCopiedPerRun(self):
        seen = []

        class Program:
            @staticmethod
            @command
            def collect(tags: list[str] = Option(default=[])):
                tags.append("seen")
                seen.append(tags)

        app = Application(Program, prog="tool")
        invoke(app, [])
        invoke(app, [])
        self.assertEqual(seen, [["seen"], ["seen"]])
        self.assertIsNot(seen[0], seen[1])


class TestOrders(TestCase):
    def setUp(self):
        self.module, self.app = application("orders")
        self.snapshot = Snapshot(self.app)
        self.errors = []
        self.app.exception_handler = self.capture

    def tearDown(self):
        self.snapshot.restore()

    def capture(self, exception):
        self.errors.append(exception)
        return 1

    @property
    def last(self):
        return self.module.invocations[-1]

    def testRootHandler(self):
        self.assertEqual(invoke(self.app, [])[:2], (0, "status: ok (eu)\n"))
        self.assertEqual(invoke(self.app, ["--region", "us", "-v"])[:2], (0, "status: ok (us)\n"))
        self.assertEqual(self.last, ("status", True, "us"))

    def testNestedCommandWithRecursiveOption(self):
        code, output, _ = invoke(self.app, ["order", "create-item", "ABC", "-q", "3", "--store", "north"])
        self.assertEqual(code, 0)
        self.assertEqual(output, "created 3 x ABC in north\n")
        self.assertEqual(self.last, ("order create-item", "ABC", 3, False, "north", False))

    def testRecursiveOptionOnTheGroup(self):
        invoke(self.app, ["order", "--store", "south", "--dry-run", "create-item", "XYZ", "--express"])
        self.assertEqual(self.last, ("order create-item", "XYZ", 1, True, "south", True))

    def testRecursiveOptionIsNotVisibleElsewhere(self):
        self.assertEqual(invoke(self.app, ["report", "--year", "2024", "--store", "x"])[0], 2)

    def testCrossReferencedContainerKeepsItsDefault(self):
        invoke(self.app, ["report", "--year", "2024", "--report-store", "archive", "1", "2"])
        self.assertEqual(self.last, ("report", 2024, [1, 2], "archive", "main"))

    def testRequiredOption(self):
        code, _, error = invoke(self.app, ["report"])
        self.assertEqual(code, 2)
        self.assertIn("--year", error)

    def testOptionalVariadicArgument(self):
        invoke(self.app, ["report", "--year", "1999"])
        self.assertEqual(self.last, ("report", 1999, [], "reports", "main"))

    def testEnumPathAndListValues(self):
        code, *_ = invoke(self.app, ["order", "export", "out.txt", "-f", "JSON", "--tags", "a", "b", "--overwrite"])
        self.assertEqual(code, 0)
        self.assertEqual(self.last, ("order export", pathlib.Path("out.txt"), self.module.Format.JSON, ["a", "b"], True))

    def testEnumDefault(self):
        invoke(self.app, ["order", "export", "missing.txt"])
        self.assertEqual(self.last, ("order export", pathlib.Path("missing.txt"), self.module.Format.TEXT, [], False))

    def testInvalidEnumValue(self):
        self.assertEqual(invoke(self.app, ["order", "export", "out.txt", "--format", "xml"])[0], 2)

    def testAliasAndMutuallyExclusiveGroups(self):
        self.assertEqual(invoke(self.app, ["order", "ls", "--json", "--limit", "5"])[0], 0)
        self.assertEqual(self.last, ("order list", True, False, 5, False, "main"))
        self.assertEqual(self.errors, [])

    def testMutuallyExclusiveViolation(self):
        calls = len(self.module.invocations)
        self.assertEqual(invoke(self.app, ["order", "list", "--json", "--text"])[0], 1)
        self.assertEqual(len(self.module.invocations), calls)
        (error,) = self.errors
        self.assertIsInstance(error, MutuallyExclusiveError)
        self.assertEqual(str(error), "--json and --text are mutually exclusive for command 'order list'")

    def testSuppliedDefaultStillCounts(self):
        invoke(self.app, ["order", "list", "--limit", "10", "--all"])
        (error,) = self.errors
        self.assertIn("--limit and --all", str(error))

    def testHiddenCommandIsExecutableButNotListed(self):
        self.assertEqual(invoke(self.app, ["maintenance", "purge"])[0], 0)
        self.assertEqual(self.last, ("maintenance purge",))
        self.assertNotIn("purge", invoke(self.app, ["maintenance", "--help"])[1])

    def testHiddenCommandIsNotOfferedAsAChoice(self):
        code, _, error = invoke(self.app, ["maintenance", "nope"])
        self.assertEqual(code, 2)
        self.assertIn("invalid choice: 'nope'", error)
        self.assertNotIn("purge", error)
        self.assertIn("'report'", invoke(self.app, ["nope"])[2])

    def testGroupWithoutHandlerRequiresACommand(self):
        code, _, error = invoke(self.app, ["order"])
        self.assertEqual(code, 2)
        self.assertIn("required command was not provided", error)

    def testValidationFromABeforeHook(self):
        self.app.before_command(lambda result: self.app.validate_mutually_exclusive("verbose region", commands="order list"))
        self.assertEqual(invoke(self.app, ["-v", "--region", "us"])[0], 0)
        self.assertEqual(invoke(self.app, ["-v", "--region", "us", "order", "list"])[0], 1)
        (error,) = self.errors
        self.assertEqual(str(error), "--verbose and --region are mutually exclusive for command 'order list'")


class TestAsync(IsolatedAsyncioTestCase):
    def setUp(self):
        self.module, self.app = application("exits")

    async def testCoroutineOnRunningLoop(self):
        self.assertEqual((await invoke_async(self.app, ["three"]))[0], 3)

    async def testSynchronousHandler(self):
        self.assertEqual((await invoke_async(self.app, ["two"]))[0], 2)

    async def testExceptionHandler(self):
        self.app.exception_handler = lambda exception: 8
        self.assertEqual((await invoke_async(self.app, ["fail"]))[0], 8)

    async def testParseErrors(self):
        self.assertEqual((await invoke_async(self.app, ["--bogus"]))[0], 2)


if __name__ == "__main__":
    unittest.main()
