# Licensed under the Apache License, Version 2.0
"""
scanf-style parsing of one line of text.

Supported conversions: ``%d %i %u %x %X %o %f %e %E %g %G %s %c %[set]`` and
``%%``, each with an optional ``*`` (match but do not store) and width.
Whitespace in the format matches any run of whitespace, including none.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Pattern

from ..domain.errors import InvalidArgumentError

_TOKEN = re.compile(
    r"%(?P<skip>\*)?(?P<width>\d+)?(?P<conv>[diuxXofeEgGsc]|\[\^?\]?[^\]]*\])"
    r"|(?P<percent>%%)"
    r"|(?P<space>\s+)"
    r"|(?P<literal>[^%\s])"
)

_WHITESPACE = re.compile(r"\s*")


def _to_int_auto(text: str) -> int:
    sign = -1 if text.startswith("-") else 1
    digits = text.lstrip("+-")
    if digits[:2].lower() == "0x":
        return sign * int(digits, 16)
    if len(digits) > 1 and digits.startswith("0"):
        return sign * int(digits, 8)
    return sign * int(digits)


_NUMBER = r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"

# conversion -> (pattern, converter, skips leading whitespace)
_CONVERSIONS = {
    "d": (r"[+-]?\d+", int, True),
    "u": (r"[+-]?\d+", int, True),
    "i": (r"[+-]?(?:0[xX][0-9a-fA-F]+|\d+)", _to_int_auto, True),
    "x": (r"[+-]?(?:0[xX])?[0-9a-fA-F]+", lambda s: int(s, 16), True),
    "X": (r"[+-]?(?:0[xX])?[0-9a-fA-F]+", lambda s: int(s, 16), True),
    "o": (r"[+-]?[0-7]+", lambda s: int(s, 8), True),
    "f": (_NUMBER, float, True),
    "e": (_NUMBER, float, True),
    "E": (_NUMBER, float, True),
    "g": (_NUMBER, float, True),
    "G": (_NUMBER, float, True),
    "s": (r"\S+", str, True),
}


@dataclass(frozen=True)
class _Step:
    pattern: Pattern[str]
    convert: Optional[Callable[[str], Any]]
    skip_space: bool
    width: Optional[int] = None
    store: bool = False


def compile_format(fmt: str) -> List[_Step]:
    steps: List[_Step] = []
    pos = 0
    while pos < len(fmt):
        m = _TOKEN.match(fmt, pos)
        if m is None:
            raise InvalidArgumentError(f"Unsupported conversion in format {fmt!r} at {pos}")
        pos = m.end()
        if m.group("space"):
            steps.append(_Step(_WHITESPACE, None, False))
        elif m.group("percent"):
            steps.append(_Step(re.compile("%"), None, True))
        elif m.group("literal"):
            steps.append(_Step(re.compile(re.escape(m.group("literal"))), None, False))
        else:
            conv = m.group("conv")
            width = int(m.group("width")) if m.group("width") else None
            store = not m.group("skip")
            if conv == "c":
                n = width or 1
                steps.append(_Step(re.compile(".{%d}" % n, re.S), str, False, None, store))
            elif conv.startswith("["):
                steps.append(_Step(re.compile(conv + "+"), str, False, width, store))
            else:
                pattern, convert, skip_space = _CONVERSIONS[conv]
                steps.append(_Step(re.compile(pattern), convert, skip_space, width, store))
    return steps


def scan(fmt: str, text: str) -> List[Any]:
    """
    Match ``text`` against ``fmt`` and return the stored values in order.

    Matching stops at the first conversion that fails; every stored
    conversion after that point is reported as None.
    """
    values: List[Any] = []
    pos = 0
    failed = False
    for step in compile_format(fmt):
        if failed:
            if step.store:
                values.append(None)
            continue
        if step.skip_space:
            pos = _WHITESPACE.match(text, pos).end()
        end = len(text) if step.width is None else min(len(text), pos + step.width)
        m = step.pattern.match(text, pos, end)
        if m is None:
            failed = True
            if step.store:
                values.append(None)
            continue
        pos = m.end()
        if step.store:
            values.append(step.convert(m.group(0)))
    return values
