"""
Arbor command layer: build a command tree, dispatch tokens through it, run the
matched action.

What this module provides
- Command: one node of the tree. Holds its own flags, positional arguments,
  children and action; children are created from their parent.
- Program: the root node. Adds global flags (a built-in -h/--help among
  them), the version string and the runtime options (shell, strict,
  pedantic).
- invoke(program, prompt): convenience runner for tokens, strings or argv.

Quick start
    from arbor import Program, invoke

    program = Program("demo tool", version="1.0.0")
    program.global_flag("v", "verbose", descr="talk more")

    serve = program.command("serve", alias="s", descr="start the server")
    serve.argument("port", typecast=int)
    serve.action(lambda options: print(options.port, options.get("verbose")))

    if __name__ == "__main__":
        program.parse()      # or invoke(program, "serve 8080 --verbose")

Pipeline (one parse call)
1. global flags are extracted from the whole token stream;
2. the walker consumes leading command names (or aliases), one node at a time;
3. the resolved node's own flags are extracted from what is left;
4. with --help set (or no action to run) the help renderer takes over;
5. otherwise positional arguments are bound and the action is called with the
   accumulated Namespace.

Only a required argument short of tokens stops the run: it is reported on
stderr and the process exits with status 1 (or the fault is raised when the
program is not in shell mode).
"""
import functools
import operator
import os.path
import re
import shlex
import sys
from collections.abc import Iterable
from typing import NamedTuple

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .faults import *
from .namespace import Namespace
from .parsing import Failure, bind_arguments, extract_flags
from .specs import Argument, Flag
from .utils import *

console = Console(highlight=False)


class Resolution(NamedTuple):
    """Outcome of Program.resolve(): where dispatch stopped and what is left."""
    command: "Command"
    path: tuple
    remainder: list


class CommandType(type):
    """
    Metaclass giving commands their introspection surface.

    - __typename__ derived from the class name ("Program" -> "program").
    - Read-only properties for every name in __introspectable__.
    - __repr__/__rich_repr__ limited to __displayable__ when it is set.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return "%s(%s)" % (
                type(self).__typename__,
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            )
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


class Command(metaclass=CommandType):
    """
    One node of the command tree.

    A node with an action is invocable; a node with children is a dispatch
    point; a node may be both, in which case the action runs whenever the
    next token is not one of the children's names.

    Declarations (flag, argument, command, action, help) only record
    metadata. Nothing is validated beyond coercing the declared values,
    except in strict programs (see Program). Once the tree is finalized,
    which Program.parse does before reading any token, further declarations
    raise RuntimeError.

    The autohelp and colorful settings are copied from the parent when the
    child is created; later changes to the parent are not propagated. Prolog
    and epilog hooks belong to the node they were set on.
    """

    __introspectable__ = (
        "name",
        "alias",
        "descr",
        "flags",
        "arguments",
        "children",
        "parent",
        "callback",
        "autohelp",
        "colorful",
        "prolog",
        "epilog",
        "fields",
    )

    __displayable__ = (
        "name",
        "alias",
        "descr",
        "flags",
        "arguments",
        "children",
    )

    def __init__(self, name, parent=None, /, *, alias=Unset, descr=Unset):
        if parent is not None and not isinstance(parent, Command):
            raise TypeError(f"{type(self).__typename__} 'parent' must be a command")
        self._name = str(name)
        self._alias = str(alias) if alias is not Unset else None
        self._descr = str(descr) if descr is not Unset else None
        self._flags = []
        self._arguments = []
        self._children = []
        self._callback = None
        self._parent = parent
        self._autohelp = getattr(parent, "autohelp", True)
        self._colorful = getattr(parent, "colorful", True)
        self._prolog = None
        self._epilog = None
        self._fields = {}
        self._finalized = False

    @property
    def root(self):
        """
        Return the topmost command of the tree this node belongs to.
        """
        child, parent = self, self.parent
        while parent:
            child, parent = parent, parent.parent
        return child

    @property
    def path(self):
        """
        Return the nodes from the root down to this one.
        """
        path = [command := self]
        while command.parent:
            path.append(command := command.parent)
        return tuple(reversed(path))

    @property
    def visible(self):
        """
        Flags seen while this node is being executed: globals first, then its own.
        """
        return tuple(getattr(self.root, "globals", ())) + tuple(self._flags)

    def _mutable(self):
        if self._finalized:
            raise RuntimeError(f"{type(self).__typename__} {self._name!r} is finalized; declare everything before parsing")

    # ── Declarations ────────────────────────────────────────────────────────

    def command(self, name, /, *, alias=Unset, descr=Unset):
        """
        Create a child command, append it and return it (not self).
        """
        self._mutable()
        child = Command(name, self, alias=alias, descr=descr)
        self._children.append(child)
        return child

    def flag(self, *args, **kwargs):
        """
        Declare a node-local flag; accepts a Flag or the arguments of Flag(...).
        """
        self._mutable()
        self._flags.append(_spec(Flag, args, kwargs))
        return self

    def argument(self, *args, **kwargs):
        """
        Declare the next positional argument; accepts an Argument or the
        arguments of Argument(...). Declaration order is consumption order.
        """
        self._mutable()
        self._arguments.append(_spec(Argument, args, kwargs))
        return self

    def action(self, callback, /):
        """
        Set the callable invoked with the Namespace when this node executes.
        """
        self._mutable()
        if not callable(callback):
            raise TypeError(f"{type(self).__typename__} action must be callable")
        self._callback = callback
        return self

    def describe(self, descr, /):
        """
        Replace the description shown in help.
        """
        self._mutable()
        self._descr = str(descr)
        return self

    def help(self, autohelp=True, colorful=True, prolog=None, epilog=None):
        """
        Configure help output for this node. Children created afterwards start
        with the same autohelp and colorful settings but without the hooks.

        - autohelp: render the generated usage/description/options text.
        - colorful: style it; plain text otherwise.
        - prolog/epilog: callables receiving the Namespace, run before/after.
        """
        self._mutable()
        for name, hook in (("prolog", prolog), ("epilog", epilog)):
            if hook is not None and not callable(hook):
                raise TypeError(f"{type(self).__typename__} {name} must be callable")
        self._autohelp = bool(autohelp)
        self._colorful = bool(colorful)
        self._prolog = prolog
        self._epilog = epilog
        return self

    def finalize(self):
        """
        Freeze this node and its subtree and compute the result schema.

        The schema (fields) maps every result key this node can produce to
        the spec producing it; when two specs share a key the first one wins,
        matching what the parser does.
        """
        if self._finalized:
            return self
        fields = {}
        for spec in self.visible + tuple(self._arguments):
            fields.setdefault(spec.key, spec)
        self._fields = fields
        self._finalized = True
        for child in self._children:
            child.finalize()
        return self

    def lookup(self, token, /):
        """
        Return the child whose name or alias is exactly `token`, or None.
        """
        for child in self._children:
            if token == child.name or (child.alias is not None and token == child.alias):
                return child
        return None

    # ── Help rendering ──────────────────────────────────────────────────────

    def render_help(self, namespace, /):
        """
        Print help for this node on the console.

        Layout
        - header: program name and version, then the global description (or
          the prolog callable when one is set);
        - usage: one line for the action form, one for the children form;
        - description;
        - options: global flags then own flags, "-s, --long <argument>";
        - the epilog callable, when set.

        Reads the namespace but never changes it.
        """
        styles = {
            "title": "bold cyan",
            "label": "underline cyan",
            "option": "bold",
            "descr": "grey50",
        }

        def text(fragment, style=""):
            return Text(str(fragment), styles.get(style, "") if self.colorful else "")

        program = namespace.program
        commands = " ".join(namespace.commands)

        if self.prolog is not None:
            self.prolog(namespace)
        elif self.autohelp:
            console.print(text("%s %s" % (namespace.commands[0], program.version), "title"))
            console.print(Text("  ") + text(program.descr or ""))
            console.print()

        if self.autohelp:
            flags = self.visible

            console.print(text("Usage:", "label"))
            if self.callback is not None:
                usage = Text("  " + commands)
                if flags:
                    usage.append(" [options]")
                for argument in self.arguments:
                    usage.append(" " + _metavar(argument))
                console.print(usage)
            if self.children:
                names = "|".join(child.name for child in self.children)
                console.print(Text("  %s %s" % (commands, "[%s]" % names if self.callback else "<%s>" % names)))
            console.print()

            console.print(text("Description:", "label"))
            console.print(Text("  ") + text(self.descr or ""))
            console.print()

            if flags:
                console.print(text("Options:", "label"))
                table = Table.grid(padding=(0, 2))
                table.add_column(no_wrap=True)
                table.add_column()
                for flag in flags:
                    forms = "-%s, --%s%s" % (flag.short, flag.long, " <argument>" if flag.takes_value else "")
                    table.add_row(Text("  ") + text(forms, "option"), text(flag.descr or "", "descr"))
                console.print(table)

        if self.epilog is not None:
            self.epilog(namespace)


class Program(Command):
    """
    Root of a command tree.

    Besides being a Command (it can have its own flags, arguments and
    action), it owns:
    - globals: flags visible at every node, matched before node-local ones;
      a -h/--help flag is always present;
    - version and the global description, shown in help headers;
    - runtime options:
      • shell: report fatal faults on stderr and exit(1) (True), or raise
        them (False);
      • strict: reject ambiguous trees when finalizing (duplicate flag forms,
        duplicate child names, arguments declared after an unlimited one);
      • pedantic: surface the anomalies the parser otherwise absorbs (value
        flags without value, leftover tokens) as warnings.
    """

    __introspectable__ = Command.__introspectable__ + (
        "version",
        "globals",
        "shell",
        "strict",
        "pedantic",
    )

    __displayable__ = Command.__displayable__ + (
        "version",
        "globals",
    )

    def __init__(
            self,
            descr=Unset,
            /,
            *,
            name=Unset,
            version=Unset,
            shell=True,
            strict=False,
            pedantic=False,
            autohelp=True,
            colorful=True
    ):
        super().__init__(coalesce(name, os.path.basename(sys.argv[0]) or "root"), descr=descr)
        self._version = str(coalesce(version, ""))
        self._globals = [Flag("h", "help", descr="Print this help message")]
        self._shell = bool(shell)
        self._strict = bool(strict)
        self._pedantic = bool(pedantic)
        self._autohelp = bool(autohelp)
        self._colorful = bool(colorful)

    def global_flag(self, *args, **kwargs):
        """
        Declare a flag visible at every node; accepts a Flag or Flag(...) arguments.
        """
        self._mutable()
        self._globals.append(_spec(Flag, args, kwargs))
        return self

    def release(self, version, /):
        """
        Replace the version string shown in help headers.
        """
        self._mutable()
        self._version = str(version)
        return self

    def finalize(self):
        if not self._finalized and self.strict:
            _validate(self)
        return super().finalize()

    def resolve(self, tokens, /):
        """
        Walk the tree along the leading command names of `tokens`.

        Dispatch moves to a child while the next token does not start with
        "-" and equals a child's name or alias; it stops at the first token
        that does not, or when tokens run out. No flags are touched here.
        """
        command, path, remainder = self, [self], list(tokens)
        while remainder and not remainder[0].startswith("-"):
            if (child := command.lookup(remainder[0])) is None:
                break
            command = child
            path.append(child)
            del remainder[0]
        return Resolution(command, tuple(path), remainder)

    def parse(self, argv=Unset, /):
        """
        Parse a raw process vector and run the matched action.

        The first two entries (interpreter and script) are dropped; the
        script's basename becomes the program name shown in help. With no
        argument the current process vector is used.

        Returns whatever the action returns (None after help output).
        """
        argv = [sys.executable, *sys.argv] if argv is Unset else list(argv)
        prog = os.path.basename(argv[1]) if len(argv) > 1 else self.name
        return self.run(argv[2:], prog=prog)

    def run(self, tokens, /, *, prog=Unset):
        """
        Parse already-stripped tokens and run the matched action.
        """
        self.finalize()
        namespace = Namespace(self, coalesce(prog, self.name))

        extraction = extract_flags(tokens, self.globals)
        namespace._bind(extraction.values)

        command, path, remainder = self.resolve(extraction.remainder)
        for node in path[1:]:
            namespace._descend(node)

        local = extract_flags(remainder, command.flags)
        namespace._bind(local.values)

        for flag in extraction.missing + local.missing:
            self._warn(MissingFlagValueWarning(
                "flag '--%s' expects a value but none was given" % flag.long,
                title="missing flag value",
                code=FaultCode.MISSING_FLAG_VALUE,
                hint="pass it as --%s=<value> or -%s<value>" % (flag.long, flag.short),
                flag=flag,
            ), namespace)

        if namespace.get("help") or command.callback is None:
            namespace._argv = local.remainder
            return command.render_help(namespace)

        outcome = bind_arguments(local.remainder, command.arguments)
        namespace._argv = outcome.remainder

        if isinstance(outcome, Failure):
            return trigger(
                outcome.fault,
                prog=namespace.commands[0],
                shell=self.shell,
                colorful=self.colorful,
                hint="run '%s --help' to see the expected arguments" % " ".join(namespace.commands),
            )

        namespace._bind(outcome.values)
        if outcome.remainder:
            self._warn(UnparsedTokensWarning(
                "%d unused %s: %s" % (
                    len(outcome.remainder),
                    "token" if len(outcome.remainder) == 1 else "tokens",
                    " ".join(outcome.remainder),
                ),
                title="unparsed input",
                code=FaultCode.UNPARSED_TOKENS,
                hint="they are still available as argv",
                leftover=list(outcome.remainder),
            ), namespace)

        return command.callback(namespace)

    def _warn(self, warning, namespace):
        if self.pedantic:
            trigger(warning, prog=namespace.commands[0], shell=self.shell, colorful=self.colorful)


def _spec(cls, args, kwargs):
    if len(args) == 1 and not kwargs and isinstance(args[0], cls):
        return args[0]
    return cls(*args, **kwargs)


def _metavar(argument):
    name = argument.name + ("..." if argument.unlimited or isinstance(argument.nargs, int) and argument.nargs > 1 else "")
    return "<%s>" % name if argument.required else "[%s]" % name


def _validate(program):
    """
    Strict-mode checks over the whole tree, raising ValueError on the first problem.
    """
    pending = [program]
    while pending:
        command = pending.pop()
        route = " ".join(node.name for node in command.path)

        seen = set()
        for flag in command.visible:
            for form in flag.forms:
                if form in seen:
                    raise ValueError(f"command {route!r} declares flag form {form!r} more than once")
                seen.add(form)

        unlimited = None
        for argument in command.arguments:
            if unlimited is not None:
                raise ValueError(
                    f"command {route!r} argument {argument.name!r} is unreachable after unlimited {unlimited.name!r}"
                )
            if argument.unlimited:
                unlimited = argument

        names = set()
        for child in command.children:
            for name in filter(None, (child.name, child.alias)):
                if name in names:
                    raise ValueError(f"command {route!r} has more than one child called {name!r}")
                names.add(name)
            pending.append(child)


def invoke(program, prompt=Unset, /):
    """
    Convenience runner.

    Parameters
    - program: a Program.
    - prompt:
      • Unset: read sys.argv[1:].
      • str: split with shlex.split.
      • Iterable[str]: used as tokens.

    Returns the action's result.
    """
    if not isinstance(program, Program):
        raise TypeError("invoke() first argument must be a program")

    if prompt is Unset:
        tokens = sys.argv[1:]
    elif isinstance(prompt, str):
        tokens = shlex.split(prompt)
    elif isinstance(prompt, Iterable):
        tokens = list(prompt)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("invoke() argument must be a string or an iterable of strings")
    else:
        raise TypeError("invoke() argument must be a string or an iterable of strings")

    return program.run(tokens)


__all__ = (
    "Command",
    "Program",
    "Resolution",
    "invoke",
)

# The metaclass is an implementation detail; keep it out of star-imports and docs.
del CommandType
