r"""
Arbor flag and argument specifications.

Overview
- Flag: named switch with a short form (-v) and a long form (--verbose);
  either a presence switch or a value-taking flag (--out FILE).
- Argument: positional, value-bearing slot filled left to right according to
  its arity (nargs).

Both are immutable once built: every field is sanitized in __new__, stored on
a private attribute and exposed through a read-only property. Result keys are
computed here, at build time, so the parser never has to derive names.

Metadata (sanitized on construction)
- Flag
  • short: str, only its first character is kept ("-v", "v" and "verbose" all give "v").
  • long: str, leading dashes dropped ("--dry-run" -> "dry-run").
  • takes_value: bool.
  • typecast: Callable, defaults to the identity.
  • key: result key, camel-cased long form unless given.
- Argument
  • name: str.
  • nargs: int >= 0 | "?" | "*" | "+"; 0 means “every remaining token”.
  • required: bool, derived for "?"/"*"/"+" (False/False/True), defaults to True otherwise.
  • typecast: Callable applied per token, defaults to the identity.
  • key: result key, camel-cased name unless given.
- Shared
  • descr: Unset | str | Text (short help), stripped; None when not given.

Quick example:
    >>> from arbor.specs import Flag, Argument
    >>> Flag("o", "output-file", takes_value=True).key
    'outputFile'
    >>> Argument("files", nargs="+").required
    True
"""
import functools
import operator
import re

from rich.text import Text

from .utils import *


def verbatim(value, /):
    """Default typecast: hand the raw token (or True, or None) back unchanged."""
    return value


class SpecType(type):
    """
    Metaclass giving specs their introspection surface.

    Responsibilities
    - __typename__ derived from the class name (camel-case split with hyphens),
      used in messages.
    - Read-only properties for every name in __introspectable__ (see mirror()).
    - Stable __repr__/__rich_repr__ for diagnostics and rich pretty printing.
    """
    __introspectable__ = ()

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
            for name in type(self).__introspectable__:
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


class _Frozen:
    """
    Shared base: seal instances once __new__ has populated them.
    """
    __slots__ = ()

    def __setattr__(self, name, value, /):
        raise AttributeError(f"{type(self).__typename__} is immutable")

    def __delattr__(self, name, /):
        raise AttributeError(f"{type(self).__typename__} is immutable")

    def _populate(self, metadata):
        for name, value in metadata.items():
            object.__setattr__(self, "_" + name, value)


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: normalize shared metadata ('descr', 'typecast', 'key').

    - descr: Unset | str | Text. Unset becomes None; strings are stripped and
      must stay non-empty.
    - typecast: Unset | Callable. Unset becomes the identity.
    - key: Unset | str. Unset is left for the caller to derive.
    """
    if not isinstance(descr := metadata["descr"], str | Text | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    elif isinstance(descr, str) and not (descr := descr.strip()):
        raise ValueError(f"{cls.__typename__} 'descr' cannot be empty")
    metadata["descr"] = coalesce(descr)

    if not callable(typecast := coalesce(metadata["typecast"], verbatim)):
        raise TypeError(f"{cls.__typename__} 'typecast' must be callable")
    metadata["typecast"] = typecast

    if not isinstance(key := metadata["key"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'key' must be a string")
    elif isinstance(key, str) and not (key := key.strip()):
        raise ValueError(f"{cls.__typename__} 'key' cannot be empty")
    metadata["key"] = key


def _sanitize_flag_metadata(cls, metadata, /):
    """
    Internal: coerce the short/long forms of a Flag.

    Both are stringified first (any object is accepted, as a declarative API
    should). Leading dashes are stripped; the short form keeps only its first
    remaining character. Nothing else is checked: duplicates or overlapping
    prefixes between flags surface at parse time as “first match wins”.
    """
    if not (short := str(metadata["short"]).lstrip("-")):
        raise ValueError(f"{cls.__typename__} 'short' cannot be empty")
    metadata["short"] = short[0]

    if not (long := str(metadata["long"]).lstrip("-")):
        raise ValueError(f"{cls.__typename__} 'long' cannot be empty")
    metadata["long"] = long

    metadata["takes_value"] = bool(metadata["takes_value"])
    metadata["key"] = coalesce(metadata["key"], camelize(long))


def _sanitize_argument_metadata(cls, metadata, /):
    """
    Internal: coerce name/nargs/required of an Argument.

    - nargs must be a non-negative integer or one of "?", "*", "+".
    - required is derived for the symbolic arities ("+" needs at least one
      token, "?" and "*" never fail); any explicit value is ignored for them.
      Integer arities are required unless told otherwise.
    """
    if not (name := str(metadata["name"]).strip()):
        raise ValueError(f"{cls.__typename__} 'name' cannot be empty")
    metadata["name"] = name

    nargs = metadata["nargs"]
    if isinstance(nargs, bool) or not isinstance(nargs, int | str):
        raise TypeError(f"{cls.__typename__} 'nargs' must be a string or an integer")
    if isinstance(nargs, str) and nargs not in ("?", "*", "+"):
        raise ValueError(f"{cls.__typename__} 'nargs' must be one of '?', '*', or '+'")
    if isinstance(nargs, int) and nargs < 0:
        raise ValueError(f"{cls.__typename__} 'nargs' must be a non-negative integer")

    match nargs:
        case "?" | "*":
            metadata["required"] = False
        case "+":
            metadata["required"] = True
        case _:
            metadata["required"] = bool(coalesce(metadata["required"], True))

    metadata["key"] = coalesce(metadata["key"], camelize(name))


class Flag(_Frozen, metaclass=SpecType):
    """
    Named switch specification.

    A token matches a flag when it *begins with* "-<short>" or "--<long>"
    (prefix match, see arbor.parsing.extract_flags). Presence flags bind
    typecast(True); value flags bind typecast(raw) where raw comes from an
    attached suffix (-fVALUE, --flag=VALUE) or the following token.
    """
    __slots__ = ("_short", "_long", "_takes_value", "_typecast", "_descr", "_key")

    __introspectable__ = (
        "short",
        "long",
        "takes_value",
        "typecast",
        "descr",
        "key",
    )

    def __new__(cls, short, long, takes_value=False, descr=Unset, *, typecast=Unset, key=Unset):
        """
        Construct a Flag spec.

        Parameters
        - short: the short form; its first non-dash character is used.
        - long: the long form; leading dashes are dropped.
        - takes_value: whether the flag consumes a value.
        - descr: help text.
        - typecast: converter for the raw value (True for presence flags,
          None when a value flag found no value).
        - key: result key; defaults to camelize(long).
        """
        metadata = {
            "short": short,
            "long": long,
            "takes_value": takes_value,
            "typecast": typecast,
            "descr": descr,
            "key": key,
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_flag_metadata(cls, metadata)

        self = super().__new__(cls)
        self._populate(metadata)
        return self

    @property
    def forms(self):
        """The two literal prefixes a token is tested against, short first."""
        return "-" + self.short, "--" + self.long


class Argument(_Frozen, metaclass=SpecType):
    """
    Positional argument specification.

    Arity
    - n >= 1: exactly n tokens; bound as a value when n == 1, as a list otherwise.
    - "?": one token when available, nothing otherwise.
    - 0, "*", "+": every remaining token, bound as a list.
    """
    __slots__ = ("_name", "_nargs", "_required", "_typecast", "_descr", "_key")

    __introspectable__ = (
        "name",
        "nargs",
        "required",
        "typecast",
        "descr",
        "key",
    )

    def __new__(cls, name, nargs=1, required=Unset, descr=Unset, *, typecast=Unset, key=Unset):
        metadata = {
            "name": name,
            "nargs": nargs,
            "required": required,
            "typecast": typecast,
            "descr": descr,
            "key": key,
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_argument_metadata(cls, metadata)

        self = super().__new__(cls)
        self._populate(metadata)
        return self

    @property
    def unlimited(self):
        """True when the argument swallows every remaining token."""
        return self.nargs in (0, "*", "+")

    @property
    def minimum(self):
        """Minimum token count needed to bind (or to satisfy a required spec)."""
        match self.nargs:
            case "?" | "+":
                return 1
            case "*":
                return 0
            case 0:
                # bare 0 behaves as "+" when required and as "*" otherwise
                return int(self.required)
            case _:
                return self.nargs


__all__ = (
    "Flag",
    "Argument",
    "verbatim",
)

# The metaclass is an implementation detail; keep it out of star-imports and docs.
del SpecType
