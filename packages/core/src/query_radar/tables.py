"""Lightweight table-name extraction from SQL text (no parsing)."""

import re

_IDENT = r"(?:`[^`]+`|[a-zA-Z_][a-zA-Z0-9_]*)"
_DOTTED_NAME = rf"{_IDENT}(?:\.{_IDENT}){{0,2}}"

# Keywords that precede a table reference
_PREFIXES = [
    r"FROM",
    r"JOIN",
    r"INNER\s+JOIN",
    r"LEFT\s+(?:OUTER\s+)?JOIN",
    r"RIGHT\s+(?:OUTER\s+)?JOIN",
    r"FULL\s+(?:OUTER\s+)?JOIN",
    r"CROSS\s+JOIN",
    r"INTO",
    r"UPDATE",
    r"MERGE\s+INTO",
    r"TABLE",
]

_TABLE_REF = re.compile(
    rf"\b(?:{'|'.join(_PREFIXES)})\s+({_DOTTED_NAME})",
    re.IGNORECASE,
)

_NOT_TABLES = {"values", "dual", "select", "exists", "not"}


def extract_table_names(sql: str) -> list[str]:
    """Return distinct schema-qualified table names referenced by the SQL.

    Single-part names are skipped (they are usually CTEs or aliases), as are
    ``system.*`` tables. Backtick quoting is preserved.
    """
    tables: list[str] = []
    seen: set[str] = set()
    for match in _TABLE_REF.finditer(sql):
        name = match.group(1).strip()
        bare = name.replace("`", "").lower()
        if bare.startswith("system.") or bare in _NOT_TABLES or "." not in bare:
            continue
        if name not in seen:
            seen.add(name)
            tables.append(name)
    return tables


def canonical_table_name(name: str) -> str:
    """Lower-cased name without backticks, for catalogue lookups."""
    return name.replace("`", "").lower()
