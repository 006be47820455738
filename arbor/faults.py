"""
Arbor faults (errors and warnings) and rendering.

Scope
- FaultCode: stable numeric identifiers for every user-facing issue.
- CommandException / CommandWarning: base types carrying a message plus
  options, able to render themselves with rich.
- trigger(): the single entry point that surfaces a fault (raise, warn, or
  print and exit, depending on the shell option).

Policy
- Only a missing required positional argument is fatal. Everything else the
  parser meets (a value flag without value, leftover tokens, a token that is
  not a subcommand) degrades to an empty binding; those anomalies exist here
  as warnings and are surfaced only by pedantic programs.

Integration
- The command layer builds a fault, then calls trigger(fault, **context).
- In library mode (shell=False) exceptions are raised and warnings go through
  the warnings module; in shell mode both are printed on stderr via rich and
  exceptions end the process with status 1.
- Styles can be overridden with a __styles__ mapping in __main__, the program
  label with __prog__ and the code labels with __codes__.
"""
import inspect
import sys
import warnings
from abc import ABC
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes (stable identifiers).

    grouping
    - positionals (1112x)
      • MISSING_ARGUMENT
    - warnings (121xx)
      • MISSING_FLAG_VALUE, UNPARSED_TOKENS

    normalize() lets the host remap codes to custom labels.
    """
    # --- positional errors (11xxx) ---
    MISSING_ARGUMENT            = 11125

    # --- warnings (12xxx) ---
    MISSING_FLAG_VALUE          = 12111
    UNPARSED_TOKENS             = 12141

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _render(fault, palette):
    main = __import__("__main__")
    styles = defaultdict(str, palette | getattr(main, "__styles__", {}))
    colorful = fault.options.get("colorful", True)

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if isinstance(fragment, Text):
            return fragment if colorful else Text(fragment.plain)
        return Text(str(fragment), styles[style] if colorful else "")

    prog = getattr(main, "__prog__", fault.options.get("prog") or "arbor")
    code = fault.options.get("code")

    header = Text.assemble(
        "[ ",
        text(prog, "prog-name"),
        " — ",
        text(code.normalize() if code is not None else "", "code"),
        " | ",
        text(str(fault.options.get("title", "")).title(), "title"),
        " ]"
    )
    message = text(fault.message, "message")
    if not (hint := fault.options.get("hint")):
        return Group(header, message)
    return Group(header, message, Text.assemble(text(" → ", "hint-arrow"), text(hint, "hint")))


class CommandException(Exception):
    """
    Base class of every fatal parse fault.

    The message is the one-line body, options carry the rendering context
    (prog, title, code, hint, colorful, shell) and any payload a caller may
    want to inspect (argument, minimum, got, ...).
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __getattr__(self, name):
        try:
            return self.__dict__["options"][name]
        except KeyError:
            raise AttributeError(name) from None

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "title": "bold #FF4DA6",
            "message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        })

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class MissingArgumentError(CommandException):
    """
    A required positional argument could not reach its minimum token count.

    Options
    - argument: the Argument spec that failed.
    - minimum: how many tokens it needed.
    - got: how many were left.
    """


class CommandWarning(ABC, Warning):
    """
    Base class of non-fatal parse anomalies (only surfaced by pedantic programs).
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #FFB400",
            "title": "bold #FFC2E0",
            "message": "#D6D6DE",
            "hint-arrow": "#B8EFAF dim",
            "hint": "italic #B8EFAF",
        })

    def __trigger__(self):
        if not self.options.get("shell", False):
            return warnings.warn(self, stacklevel=len(inspect.stack()))
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class MissingFlagValueWarning(CommandWarning): ...
class UnparsedTokensWarning(CommandWarning): ...


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via __replace__(**options) first.

    typical options
    - prog, shell, colorful, title, code, hint, plus any payload.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    return fault.__replace__(**options).__trigger__()


__all__ = (
    "CommandException",
    "MissingArgumentError",
    "CommandWarning",
    "MissingFlagValueWarning",
    "UnparsedTokensWarning",
    "FaultCode",
    "trigger",
)
