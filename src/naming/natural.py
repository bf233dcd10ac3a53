# src/naming/natural.py
"""Natural ("human") ordering for names with embedded numbers.

Digit runs compare by numeric value, text runs compare case-insensitively,
and the raw string breaks remaining ties so that distinct strings never
produce equal keys.
"""

from __future__ import annotations

import re

DIGIT_RUN_RE = re.compile(r"([0-9]+)")

NaturalKey = tuple[tuple[tuple[int, int, str], ...], str]


def natural_sort_key(text: str) -> NaturalKey:
    """Sort key implementing natural-numeric comparison.

    ``"ch2" < "ch10"``, ``"Vol.3" < "vol.20"``, ``"a" < "a1" < "b"``.
    """
    parts: list[tuple[int, int, str]] = []
    for idx, chunk in enumerate(DIGIT_RUN_RE.split(text)):
        if not chunk:
            continue
        if idx % 2:
            # Digit runs sort before text at the same position
            parts.append((0, int(chunk), ""))
        else:
            parts.append((1, 0, chunk.casefold()))
    return tuple(parts), text
