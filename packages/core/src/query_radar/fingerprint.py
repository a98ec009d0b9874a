"""SQL normalization and fingerprinting.

Two statements with the same fingerprint differ only in literal values,
so they represent the same logical query pattern.
"""

import re

# Single-quoted strings, including backslash-escaped quotes
_STRING_LITERAL = re.compile(r"'(?:[^'\\]|\\.)*'")

# Free-standing numbers; the look-behind keeps identifiers like col1 intact
_NUMERIC_LITERAL = re.compile(r"(?<![a-zA-Z_])\b\d+(?:\.\d+)?\b")

_NUMERIC_IN_LIST = re.compile(r"\bIN\s*\(\s*\?\s*(?:,\s*\?\s*)*\)", re.IGNORECASE)
_STRING_IN_LIST = re.compile(r"\bIN\s*\(\s*'\?'\s*(?:,\s*'\?'\s*)*\)", re.IGNORECASE)

# A run of terminators counts as one, so normalization stays idempotent
_TRAILING_TERMINATOR = re.compile(r"(?:;\s*)+$")

_WHITESPACE = re.compile(r"\s+")

_MASK32 = 0xFFFFFFFF


def normalize_sql(sql: str) -> str:
    """Mask literals, collapse IN-lists, lowercase and collapse whitespace.

    Every trailing statement terminator is removed, not just the last one,
    so ``normalize_sql(normalize_sql(s)) == normalize_sql(s)``.
    """
    s = _STRING_LITERAL.sub("'?'", sql)
    s = _NUMERIC_LITERAL.sub("?", s)
    s = _NUMERIC_IN_LIST.sub("IN (?)", s)
    s = _STRING_IN_LIST.sub("IN (?)", s)
    s = s.lower()
    s = _TRAILING_TERMINATOR.sub("", s)
    return _WHITESPACE.sub(" ", s).strip()


def _djb2_hex(text: str) -> str:
    """Two seeded 32-bit djb2 hashes rendered as 16 hex chars."""
    h1 = 5381
    h2 = 52711
    for ch in text:
        code = ord(ch)
        h1 = (h1 * 33 + code) & _MASK32
        h2 = (h2 * 33 + code) & _MASK32
    return f"{h1:08x}{h2:08x}"


def fingerprint(sql: str) -> str:
    """Stable 16-char hex id of the statement's logical shape."""
    return _djb2_hex(normalize_sql(sql))


class FingerprintCache:
    """Memoizes fingerprints by raw SQL text.

    Owned by a single candidate-building invocation so it never grows
    across windows.
    """

    def __init__(self):
        self._by_text: dict[str, str] = {}
        self.hits = 0

    def get(self, sql: str) -> str:
        fp = self._by_text.get(sql)
        if fp is None:
            fp = fingerprint(sql)
            self._by_text[sql] = fp
        else:
            self.hits += 1
        return fp

    def __len__(self) -> int:
        return len(self._by_text)
