# File: seagen/attributes.py
"""
Seagen - Column Attribute Resolver
===================================
Decides which ``#[sea_orm(...)]`` parts a column declaration needs.

Sea-ORM infers the storage type from the Rust type. That inference is wrong
or ambiguous for a handful of storage types, which therefore get an explicit
``column_type`` annotation:

    jsonb                    → column_type = "JsonBinary"   (json needs none)
    text / longtext / clob…  → column_type = "Text"
    numeric(p, s)            → column_type = "Decimal(Some((p, s)))"
    inet / bit / point / …   → column_type = "custom(\"inet\")"
                               + select_as = "text", save_as = "inet"
    x[] / _x                 → nothing (Vec<T> carries it)

A field whose identifier no longer spells the database column (a rename
override, ``self`` → ``self_``, ``userId`` → ``user_id``) also carries
``column_name = "<db name>"``.

Plain columns get no attribute at all.
"""

from __future__ import annotations

import logging
import re
from typing import FrozenSet, List, Optional, Tuple

from seagen.dialects import TYPE_STRING, normalize_sql_type
from seagen.models import Column

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("seagen.attributes")

# ---------------------------------------------------------------------------
# Storage type sets
# ---------------------------------------------------------------------------

_JSON_BINARY_TYPES: FrozenSet[str] = frozenset({"jsonb"})

_LONG_TEXT_TYPES: FrozenSet[str] = frozenset(
    {"text", "tinytext", "mediumtext", "longtext", "clob"}
)

_DECIMAL_TYPES: FrozenSet[str] = frozenset({"numeric", "decimal"})

# Map to String but are not interchangeable with varchar/text in storage.
CUSTOM_STRING_TYPES: FrozenSet[str] = frozenset({
    "inet", "cidr", "macaddr", "macaddr8",
    "bit", "varbit", "bit varying",
    "point", "line", "lseg", "box", "path", "polygon", "circle",
    "tsvector", "tsquery",
    "interval", "xml",
})

_DECIMAL_PARAMS_RE: re.Pattern[str] = re.compile(
    r"^\s*(?:numeric|decimal)\s*\(\s*(\d+)\s*,\s*(\d+)\s*\)", re.IGNORECASE
)


def decimal_precision(sql_type: str) -> Optional[Tuple[int, int]]:
    """
    ``(precision, scale)`` for ``numeric(p, s)`` / ``decimal(p, s)``.

    Precision-only and parameterless forms return None.
    """
    match = _DECIMAL_PARAMS_RE.match(sql_type)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def _is_array(sql_type: str, rust_type: str) -> bool:
    lowered: str = sql_type.strip().lower()
    return lowered.endswith("[]") or lowered.startswith("_") or (
        rust_type.startswith("Vec<") and rust_type != "Vec<u8>"
    )


def resolve_column_type(column: Column) -> Optional[str]:
    """The structural ``column_type`` annotation value, or None."""
    if not column.sql_type or _is_array(column.sql_type, column.rust_type):
        return None

    base: str = normalize_sql_type(column.sql_type)

    if base in _JSON_BINARY_TYPES:
        return '"JsonBinary"'
    if base in _LONG_TEXT_TYPES and column.rust_type == TYPE_STRING:
        return '"Text"'
    if base in _DECIMAL_TYPES:
        params: Optional[Tuple[int, int]] = decimal_precision(column.sql_type)
        if params is None:
            return None
        return f'"Decimal(Some(({params[0]}, {params[1]})))"'
    if base in CUSTOM_STRING_TYPES and column.rust_type == TYPE_STRING:
        return f'"custom(\\"{base}\\")"'
    return None


def bare_field_name(column: Column) -> str:
    """Field identifier without the ``r#`` raw prefix."""
    return column.field_name.removeprefix("r#")


def needs_column_name(column: Column) -> bool:
    return bare_field_name(column) != column.name


def resolve_column_attributes(column: Column) -> List[str]:
    """
    Ordered ``#[sea_orm(...)]`` parts for *column*.

    Order: primary_key, auto_increment = false, column_name, column_type,
    select_as / save_as, unique, nullable. ``nullable`` only accompanies a
    column_type; otherwise ``Option<T>`` already says it.
    """
    if column.is_virtual:
        return ["ignore"]

    parts: List[str] = []
    if column.is_primary_key:
        parts.append("primary_key")
        if not column.is_auto_increment:
            parts.append("auto_increment = false")

    if needs_column_name(column):
        parts.append(f'column_name = "{column.name}"')

    column_type: Optional[str] = resolve_column_type(column)
    if column_type is not None:
        parts.append(f"column_type = {column_type}")
        base: str = normalize_sql_type(column.sql_type)
        if base in CUSTOM_STRING_TYPES:
            parts.append('select_as = "text"')
            parts.append(f'save_as = "{base}"')

    if column.is_unique and not column.is_primary_key:
        parts.append("unique")

    if column_type is not None and column.is_nullable:
        parts.append("nullable")

    return parts


def sea_orm_attr(column: Column) -> str:
    """Full attribute line (without indentation) or an empty string."""
    parts: List[str] = resolve_column_attributes(column)
    if not parts:
        return ""
    return f"#[sea_orm({', '.join(parts)})]"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "CUSTOM_STRING_TYPES",
    "bare_field_name",
    "decimal_precision",
    "needs_column_name",
    "resolve_column_type",
    "resolve_column_attributes",
    "sea_orm_attr",
]

logger.debug("seagen.attributes loaded — %d public symbols.", len(__all__))
