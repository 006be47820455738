"""
Commands module behavioral tests (dispatch, end-to-end runs, help, modes).

Scope
- Validate the walker: names, aliases, stop conditions, nesting.
- Validate end-to-end runs through invoke() and Program.parse().
- Validate help diversion and rendering.
- Validate finalization, strict and pedantic programs.

Conventions
- Test method names follow CamelCase per project convention.
- Tests use the public API (Program, invoke, Flag, Argument).
- Console output is captured by swapping the module consoles for ones writing
  to a StringIO.
"""

from __future__ import annotations

import io
import unittest
import warnings
from unittest import TestCase, mock

from rich.console import Console

from arbor import (
    Program,
    Flag,
    Argument,
    invoke,
    MissingArgumentError,
    MissingFlagValueWarning,
    UnparsedTokensWarning,
)


class _Captured(TestCase):
    """Base case swapping stdout/stderr consoles for buffers."""

    def setUp(self):
        self.stdout = io.StringIO()
        self.stderr = io.StringIO()
        for target, buffer in (("arbor.commands.console", self.stdout), ("arbor.faults.console", self.stderr)):
            patcher = mock.patch(target, Console(file=buffer, width=120))
            patcher.start()
            self.addCleanup(patcher.stop)
        self.calls = []

    def record(self, options):
        self.calls.append(dict(options))
        return "done"

    def build(self, **options):
        program = Program("demo tool", name="tool", version="1.0", **options)
        program.global_flag("v", "verbose", descr="talk more")
        serve = program.command("serve", alias="s", descr="start the server")
        serve.argument("port", typecast=int, descr="port to bind")
        serve.action(self.record)
        remote = program.command("remote", descr="manage remotes")
        remote.command("add").argument("name").argument("url").action(self.record)
        remote.command("remove").argument("name").action(self.record)
        return program


class TestDispatch(_Captured):
    """Walker behavior."""

    def testResolveFollowsNames(self):
        program = self.build()
        resolution = program.resolve(["remote", "add", "origin", "url"])
        self.assertEqual(resolution.command.name, "add")
        self.assertEqual([node.name for node in resolution.path], ["tool", "remote", "add"])
        self.assertEqual(resolution.remainder, ["origin", "url"])

    def testResolveFollowsAliases(self):
        self.assertEqual(self.build().resolve(["s", "80"]).command.name, "serve")

    def testResolveStopsAtFlagPrefixedToken(self):
        resolution = self.build().resolve(["remote", "--x", "add"])
        self.assertEqual(resolution.command.name, "remote")
        self.assertEqual(resolution.remainder, ["--x", "add"])

    def testResolveStopsAtUnknownToken(self):
        program = self.build()
        resolution = program.resolve(["deploy", "serve"])
        self.assertIs(resolution.command, program)
        self.assertEqual(resolution.remainder, ["deploy", "serve"])

    def testResolveWithoutTokensStaysAtRoot(self):
        program = self.build()
        self.assertIs(program.resolve([]).command, program)

    def testNodeWithActionAndChildrenRunsItselfOnUnknownToken(self):
        program = Program(name="tool", shell=False)
        program.argument("target").action(self.record)
        program.command("build").action(lambda options: None)
        invoke(program, "deploy")
        self.assertEqual(self.calls, [{"target": "deploy"}])


class TestRun(_Captured):
    """End-to-end runs."""

    def testServeBindsPortAndVerbose(self):
        result = invoke(self.build(), "serve 8080 --verbose")
        self.assertEqual(result, "done")
        self.assertEqual(self.calls, [{"verbose": True, "port": 8080}])

    def testGlobalFlagsAreFoundAnywhere(self):
        invoke(self.build(), ["--verbose", "s", "8080"])
        self.assertEqual(self.calls, [{"verbose": True, "port": 8080}])

    def testMissingArgumentExitsWithStatusOne(self):
        with self.assertRaises(SystemExit) as context:
            invoke(self.build(), "serve")
        self.assertEqual(context.exception.code, 1)
        self.assertEqual(self.calls, [])
        self.assertIn("'port'", self.stderr.getvalue())
        self.assertIn("tool serve --help", self.stderr.getvalue())

    def testMissingArgumentRaisesInLibraryMode(self):
        with self.assertRaises(MissingArgumentError) as context:
            invoke(self.build(shell=False), "remote add origin")
        self.assertEqual(context.exception.argument.name, "url")
        self.assertEqual(self.calls, [])

    def testParseStripsInterpreterAndScript(self):
        program = self.build()
        seen = []
        program.command("where").action(seen.append)
        program.parse(["/usr/bin/python3", "/opt/bin/tool.py", "where", "extra"])
        options, = seen
        self.assertEqual(options.commands, ("tool.py", "where"))
        self.assertEqual(options.argv, ["extra"])
        self.assertIs(options.program, program)
        self.assertEqual(options.command.name, "where")

    def testNamespaceAccess(self):
        seen = []
        program = self.build()
        program.command("echo").argument("words", "*").action(seen.append)
        invoke(program, "echo a b")
        options, = seen
        self.assertEqual(options["words"], ["a", "b"])
        self.assertEqual(options.words, ["a", "b"])
        self.assertIsNone(options.get("verbose"))
        with self.assertRaises(AttributeError):
            options.verbose
        with self.assertRaises(TypeError):
            options["words"] = []

    def testGlobalsWinKeyCollisions(self):
        program = self.build()
        program.command("loud").flag("l", "loud", key="verbose", typecast=lambda _: "local").action(self.record)
        invoke(program, "loud -l -v")
        self.assertEqual(self.calls, [{"verbose": True}])

    def testInvokeRejectsBadPrompt(self):
        with self.assertRaises(TypeError):
            invoke(self.build(), 42)
        with self.assertRaises(TypeError):
            invoke(self.build(), ["serve", 80])
        with self.assertRaises(TypeError):
            invoke("tool", "serve 80")


class TestHelp(_Captured):
    """Help diversion and rendering."""

    def testHelpFlagSkipsAction(self):
        self.assertIsNone(invoke(self.build(), "serve 8080 --help"))
        self.assertEqual(self.calls, [])
        output = self.stdout.getvalue()
        self.assertIn("tool 1.0", output)
        self.assertIn("demo tool", output)
        self.assertIn("Usage:", output)
        self.assertIn("tool serve [options] <port>", output)
        self.assertIn("start the server", output)
        self.assertIn("-v, --verbose", output)
        self.assertIn("-h, --help", output)

    def testHelpListsGlobalsBeforeOwnFlags(self):
        program = self.build()
        program.command("fetch").flag("d", "depth", True, descr="history depth").action(self.record)
        invoke(program, "fetch -h")
        output = self.stdout.getvalue()
        self.assertLess(output.index("--help"), output.index("--verbose"))
        self.assertLess(output.index("--verbose"), output.index("--depth <argument>"))

    def testActionlessNodeRendersHelp(self):
        invoke(self.build(), "remote")
        self.assertIn("tool remote <add|remove>", self.stdout.getvalue())
        self.assertEqual(self.calls, [])

    def testHooksRunWithoutGeneratedHelp(self):
        hooks = []
        program = self.build()
        program.help(autohelp=False, prolog=lambda options: hooks.append("prolog"), epilog=lambda options: hooks.append("epilog"))
        invoke(program, "--help")
        self.assertEqual(hooks, ["prolog", "epilog"])
        self.assertNotIn("Usage:", self.stdout.getvalue())

    def testChildCopiesHelpConfigurationAtCreation(self):
        program = Program(name="tool")
        program.help(colorful=False)
        child = program.command("child")
        program.help(colorful=True)
        self.assertFalse(child.colorful)
        self.assertTrue(program.colorful)

    def testChildStartsWithoutParentHooks(self):
        hooks = []
        program = Program("demo tool", name="tool", version="1.0")
        program.help(prolog=lambda options: hooks.append("prolog"), epilog=lambda options: hooks.append("epilog"))
        child = program.command("child").action(self.record)
        self.assertIsNone(child.prolog)
        self.assertIsNone(child.epilog)
        invoke(program, "child --help")
        self.assertEqual(hooks, [])
        self.assertIn("tool 1.0", self.stdout.getvalue())
        self.assertEqual(self.calls, [])

    def testRootActionSkippedOnHelp(self):
        program = self.build()
        program.action(self.record)
        self.assertIsNone(invoke(program, "--help"))
        self.assertEqual(self.calls, [])
        self.assertIn("Usage:", self.stdout.getvalue())

    def testReleaseReplacesVersionInHeader(self):
        program = self.build()
        self.assertIs(program.release("2.0"), program)
        invoke(program, "--help")
        self.assertIn("tool 2.0", self.stdout.getvalue())
        with self.assertRaises(RuntimeError):
            program.release("3.0")


class TestModes(_Captured):
    """Finalization, strict and pedantic programs."""

    def testDeclarationsAfterParsingRaise(self):
        program = self.build()
        invoke(program, "serve 80")
        with self.assertRaises(RuntimeError):
            program.command("late")
        with self.assertRaises(RuntimeError):
            program.children[0].flag("x", "extra")

    def testFieldsAreComputedOnFinalize(self):
        program = self.build().finalize()
        serve = program.lookup("serve")
        self.assertEqual(list(serve.fields), ["help", "verbose", "port"])
        self.assertIsInstance(serve.fields["port"], Argument)
        self.assertIsInstance(serve.fields["verbose"], Flag)

    def testStrictRejectsDuplicateFlagForms(self):
        program = self.build(strict=True)
        program.lookup("serve").flag("v", "version")
        with self.assertRaises(ValueError):
            program.finalize()

    def testStrictRejectsDuplicateChildNames(self):
        program = self.build(strict=True)
        program.command("s")
        with self.assertRaises(ValueError):
            program.finalize()

    def testStrictRejectsArgumentsAfterUnlimited(self):
        program = self.build(strict=True)
        program.command("copy").argument("files", "+").argument("dest")
        with self.assertRaises(ValueError):
            program.finalize()

    def testLenientProgramsAcceptAmbiguousTrees(self):
        program = self.build()
        program.command("s")
        program.command("copy").argument("files", "+").argument("dest")
        program.finalize()

    def testPedanticWarnsOnLeftovers(self):
        with self.assertWarns(UnparsedTokensWarning):
            invoke(self.build(shell=False, pedantic=True), "serve 80 extra")
        self.assertEqual(self.calls, [{"port": 80}])

    def testPedanticWarnsOnMissingFlagValue(self):
        program = self.build(shell=False, pedantic=True)
        program.global_flag("o", "out", True)
        with self.assertWarns(MissingFlagValueWarning):
            invoke(program, "serve 80 --out")
        self.assertEqual(self.calls, [{"out": None, "port": 80}])

    def testPedanticShellModePrintsWarnings(self):
        invoke(self.build(pedantic=True), "serve 80 extra")
        self.assertIn("extra", self.stderr.getvalue())
        self.assertEqual(len(self.calls), 1)

    def testLenientProgramsStaySilent(self):
        program = self.build(shell=False)
        program.global_flag("o", "out", True)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            invoke(program, "serve 80 extra --out")
        self.assertEqual(caught, [])


if __name__ == "__main__":
    unittest.main()
