"""Conversion of snake case identifiers to camel case type names."""

from __future__ import annotations

import string

_ALLOWED = frozenset(string.ascii_letters + string.digits)


def camelize(s: str) -> str:
    """Turn a snake case name into an upper camel case name.

    Underscores are dropped. The first character, and the first lower case
    letter after an underscore, are upper-cased. Raises ValueError if the
    name holds anything other than ASCII letters, digits and underscores.
    """
    out = []
    underscore_seen = False
    for i, ch in enumerate(s):
        if ch not in _ALLOWED and ch != "_":
            raise ValueError(f"not allowed name {s}")
        if ch == "_":
            underscore_seen = True
            continue
        if (i == 0 or underscore_seen) and ch.islower():
            ch = ch.upper()
            underscore_seen = False
        out.append(ch)
    return "".join(out)