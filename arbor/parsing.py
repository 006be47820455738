"""
Arbor parsing engine: flag extraction and positional binding.

Both stages are pure functions over a token list. Neither touches the command
tree, the namespace or the console: each returns an outcome object and lets
the dispatcher (arbor.commands) decide what to do with it.

extract_flags(tokens, flags) -> Extraction
- Scans tokens left to right and tests each one against the flags not matched
  yet, in list order, with a prefix match on "-<short>" / "--<long>".
- Value flags take their raw value from an attached suffix ("-fVALUE",
  "-f=VALUE", "--flag=VALUE") or from the following token, which is removed.
  With no following token the raw value is None.
- A flag matches at most once; a repeated occurrence stays in the remainder.
- When two matched flags share a key, the first bound value is kept.
- Never fails.

bind_arguments(tokens, arguments) -> Binding | Failure
- Walks the argument specs in declaration order, each one consuming a prefix
  of what is left.
- Fixed arities take exactly n tokens, "?" takes one if there is one, the
  unlimited arities (0, "*", "+") take everything.
- A required spec short of tokens produces a Failure carrying a
  MissingArgumentError; optional specs simply bind nothing.
- Leftover tokens are returned, not rejected.
"""
from typing import NamedTuple

from .faults import FaultCode, MissingArgumentError
from .utils import Unset


class Extraction(NamedTuple):
    """Outcome of extract_flags()."""
    values: dict
    remainder: list
    missing: tuple = ()


class Binding(NamedTuple):
    """Successful outcome of bind_arguments()."""
    values: dict
    remainder: list


class Failure(NamedTuple):
    """Failed outcome of bind_arguments(); nothing was bound."""
    fault: MissingArgumentError
    remainder: list


def _matches(token, flag):
    short, long = flag.forms
    return token.startswith(short) or token.startswith(long)


def _attached(token, flag):
    """
    Return the value glued to a matched token, or Unset when there is none.

    Long form: only an "=" introduces a value ("--out=x"); anything else that
    merely extends the name ("--outfile") carries no value. Short form: any
    trailing text is the value ("-ox"), an optional leading "=" is dropped.
    """
    short, long = flag.forms
    if token.startswith(long):
        rest = token[len(long):]
        return rest[1:] if rest.startswith("=") else Unset
    if rest := token[len(short):]:
        return rest[1:] if rest.startswith("=") else rest
    return Unset


def extract_flags(tokens, flags, /):
    """
    Strip every token matching one of `flags` out of `tokens`.

    Returns an Extraction with the bound values (by flag key), the untouched
    tokens in their original order, and the value flags that found no value.
    """
    tokens = list(tokens)
    if not tokens or not flags:
        return Extraction({}, tokens)

    pending = list(flags)
    values = {}
    remainder = []
    missing = []

    index = 0
    while index < len(tokens):
        token = tokens[index]
        index += 1

        for position, flag in enumerate(pending):
            if not _matches(token, flag):
                continue
            if not flag.takes_value:
                raw = True
            elif (raw := _attached(token, flag)) is Unset:
                if index < len(tokens):
                    # consumed even when it looks like another flag
                    raw = tokens[index]
                    index += 1
                else:
                    raw = None
                    missing.append(flag)
            values.setdefault(flag.key, flag.typecast(raw))
            del pending[position]
            break
        else:
            remainder.append(token)

    return Extraction(values, remainder, tuple(missing))


def bind_arguments(tokens, arguments, /):
    """
    Distribute `tokens` over `arguments`, left to right.

    Returns Binding(values, remainder) or, as soon as a required argument
    cannot reach its minimum, Failure(fault, remainder).
    """
    remainder = list(tokens)
    values = {}

    for argument in arguments:
        if argument.unlimited:
            count = len(remainder)
        elif argument.nargs == "?":
            count = 1
        else:
            count = argument.nargs

        if len(remainder) < max(count, argument.minimum):
            if argument.required:
                return Failure(MissingArgumentError(
                    "missing required argument %r (expected at least %d %s, got %d)" % (
                        argument.name,
                        argument.minimum,
                        "value" if argument.minimum == 1 else "values",
                        len(remainder),
                    ),
                    title="missing argument",
                    code=FaultCode.MISSING_ARGUMENT,
                    argument=argument,
                    minimum=argument.minimum,
                    got=len(remainder),
                ), remainder)
            continue

        taken, remainder = remainder[:count], remainder[count:]
        if argument.unlimited or count > 1:
            values[argument.key] = [argument.typecast(token) for token in taken]
        else:
            values[argument.key] = argument.typecast(taken[0])

    return Binding(values, remainder)


__all__ = (
    "Extraction",
    "Binding",
    "Failure",
    "extract_flags",
    "bind_arguments",
)
