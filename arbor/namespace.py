"""
Parse result handed to actions.

A Namespace accumulates the bound values of a single parse call: global flags
first, then the resolved command's own flags, then its positional arguments.
Keys are the result keys declared on the specs (camel-cased long forms and
argument names). Besides the bound values it carries the bookkeeping the help
renderer needs: the resolved command path, the command node itself and the
program root.

Actions read it like a mapping or through attributes:

    def serve(options):
        options["port"], options.port, options.get("verbose", False)
"""
from collections.abc import Mapping


class Namespace(Mapping):
    """
    Read-only view over the values bound during one parse.

    Bookkeeping
    - argv: tokens left over after argument binding.
    - commands: the command-name path, program name first.
    - command: the resolved Command node.
    - program: the root Program (version, global description).
    """

    def __init__(self, program, prog):
        self._values = {}
        self._program = program
        self._commands = [prog]
        self._command = program
        self._argv = []

    def __getitem__(self, key):
        return self._values[key]

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def __getattr__(self, name):
        try:
            return self.__dict__["_values"][name]
        except KeyError:
            raise AttributeError(f"namespace has no bound value {name!r}") from None

    def __repr__(self):
        return "namespace(%s)" % ", ".join("%s=%r" % item for item in self._values.items())

    def __rich_repr__(self):
        yield from self._values.items()
        yield "argv", self.argv
        yield "commands", self.commands

    @property
    def argv(self):
        return list(self._argv)

    @property
    def commands(self):
        return tuple(self._commands)

    @property
    def command(self):
        return self._command

    @property
    def program(self):
        return self._program

    def _bind(self, values):
        # later stages never overwrite keys bound by earlier ones (globals win)
        for key, value in values.items():
            self._values.setdefault(key, value)

    def _descend(self, command):
        self._commands.append(command.name)
        self._command = command


__all__ = ("Namespace",)
