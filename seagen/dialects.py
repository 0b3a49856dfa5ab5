# File: seagen/dialects.py
"""
Seagen - SQL Dialect Type Mapping
==================================
Maps raw SQL column types to Rust / Sea-ORM types for PostgreSQL, MySQL and
SQLite, aligned with ``sea-orm-codegen``'s ``Column::get_rs_type``.

Also converts raw schema-reader tables into ``Table`` snapshots
(``read_table``) and guesses the dialect from the types present in a
selection when the settings say ``auto``.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from seagen.models import Column, Dialect, RawTable, Table

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("seagen.dialects")

# ---------------------------------------------------------------------------
# Rust type names used across the generator
# ---------------------------------------------------------------------------

TYPE_DATE_TIME: str = "DateTime"
TYPE_DATE_TIME_WITH_TZ: str = "DateTimeWithTimeZone"
TYPE_DATE: str = "Date"
TYPE_TIME: str = "Time"
TYPE_DECIMAL: str = "Decimal"
TYPE_UUID: str = "Uuid"
TYPE_JSON: str = "Json"
TYPE_STRING: str = "String"
TYPE_BINARY: str = "Vec<u8>"

DATE_TIME_TYPES: FrozenSet[str] = frozenset(
    {TYPE_DATE_TIME, TYPE_DATE_TIME_WITH_TZ, TYPE_DATE, TYPE_TIME}
)
FLOAT_TYPES: FrozenSet[str] = frozenset({"f32", "f64"})

_PARAM_STRIP_RE: re.Pattern[str] = re.compile(r"\(.*\)")
_ARRAY_SUFFIX_RE: re.Pattern[str] = re.compile(r"(\[\])+$")
_WHITESPACE_RE: re.Pattern[str] = re.compile(r"\s+")

# ---------------------------------------------------------------------------
# Type maps
# ---------------------------------------------------------------------------

# Same semantics across PG / MySQL / SQLite. ``timestamp`` is deliberately
# absent: PG and MySQL disagree on its time-zone handling.
_COMMON_TYPES: Dict[str, str] = {
    "smallint": "i16",
    "integer": "i32", "int": "i32",
    "bigint": "i64",
    "real": "f32",
    "double precision": "f64", "double": "f64",
    "numeric": TYPE_DECIMAL, "decimal": TYPE_DECIMAL,
    "bool": "bool", "boolean": "bool",
    "varchar": TYPE_STRING, "character varying": TYPE_STRING,
    "text": TYPE_STRING, "char": TYPE_STRING, "character": TYPE_STRING,
    "date": TYPE_DATE,
    "time": TYPE_TIME,
    "json": TYPE_JSON,
    "blob": TYPE_BINARY, "binary": TYPE_BINARY, "varbinary": TYPE_BINARY,
}

_POSTGRES_TYPES: Dict[str, str] = {
    **_COMMON_TYPES,
    "int2": "i16", "smallserial": "i16", "serial2": "i16",
    "int4": "i32", "serial": "i32", "serial4": "i32",
    "int8": "i64", "bigserial": "i64", "serial8": "i64",
    "float4": "f32",
    "float8": "f64", "float": "f64",
    "money": TYPE_DECIMAL,
    "citext": TYPE_STRING, "name": TYPE_STRING, "bpchar": TYPE_STRING,
    "timestamp": TYPE_DATE_TIME,
    "timestamp without time zone": TYPE_DATE_TIME,
    "timestamptz": TYPE_DATE_TIME_WITH_TZ,
    "timestamp with time zone": TYPE_DATE_TIME_WITH_TZ,
    "time without time zone": TYPE_TIME,
    "timetz": TYPE_TIME, "time with time zone": TYPE_TIME,
    "uuid": TYPE_UUID,
    "jsonb": TYPE_JSON,
    "bytea": TYPE_BINARY,
    # Storage types without a dedicated Rust type; they travel as String and
    # get a custom column_type annotation on the entity.
    "inet": TYPE_STRING, "cidr": TYPE_STRING,
    "macaddr": TYPE_STRING, "macaddr8": TYPE_STRING,
    "bit": TYPE_STRING, "varbit": TYPE_STRING, "bit varying": TYPE_STRING,
    "xml": TYPE_STRING, "interval": TYPE_STRING,
    "point": TYPE_STRING, "line": TYPE_STRING, "lseg": TYPE_STRING,
    "box": TYPE_STRING, "path": TYPE_STRING, "polygon": TYPE_STRING,
    "circle": TYPE_STRING, "tsvector": TYPE_STRING, "tsquery": TYPE_STRING,
    "oid": TYPE_STRING, "pg_lsn": TYPE_STRING,
    "int4range": TYPE_STRING, "int8range": TYPE_STRING, "numrange": TYPE_STRING,
    "tsrange": TYPE_STRING, "tstzrange": TYPE_STRING, "daterange": TYPE_STRING,
    "int4multirange": TYPE_STRING, "int8multirange": TYPE_STRING,
    "nummultirange": TYPE_STRING, "tsmultirange": TYPE_STRING,
    "tstzmultirange": TYPE_STRING, "datemultirange": TYPE_STRING,
}

_MYSQL_TYPES: Dict[str, str] = {
    **_COMMON_TYPES,
    "tinyint": "i8",
    "mediumint": "i32",
    "year": "i16",
    "float": "f32",
    "tinytext": TYPE_STRING, "mediumtext": TYPE_STRING, "longtext": TYPE_STRING,
    "enum": TYPE_STRING, "set": TYPE_STRING,
    "timestamp": TYPE_DATE_TIME_WITH_TZ,
    "datetime": TYPE_DATE_TIME,
    "tinyblob": TYPE_BINARY, "mediumblob": TYPE_BINARY, "longblob": TYPE_BINARY,
}

_SQLITE_TYPES: Dict[str, str] = {
    **_COMMON_TYPES,
    "integer": "i64",
    "int2": "i16", "int8": "i64",
    "tinyint": "i8", "mediumint": "i32",
    "nvarchar": TYPE_STRING, "nchar": TYPE_STRING, "clob": TYPE_STRING,
    "float": "f64",
    "datetime": TYPE_DATE_TIME,
    "timestamp": TYPE_DATE_TIME,
}

# Types whose presence identifies a dialect during auto-detection.
_PG_INDICATORS: FrozenSet[str] = frozenset({
    "int4", "int8", "int2", "timestamptz", "serial", "bigserial",
    "smallserial", "bytea", "jsonb", "citext", "bpchar",
})
_MYSQL_INDICATORS: FrozenSet[str] = frozenset({
    "datetime", "tinyint", "mediumint", "mediumtext", "longtext",
    "tinyblob", "mediumblob", "longblob", "year",
})
_SQLITE_INDICATORS: FrozenSet[str] = frozenset({"clob", "nvarchar", "nchar"})

_SERIAL_TYPES: FrozenSet[str] = frozenset({
    "serial", "serial2", "serial4", "serial8", "smallserial", "bigserial",
})


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------


def normalize_sql_type(sql_type: str) -> str:
    """
    Lower-case, collapse whitespace and strip parenthesised parameters.

        >>> normalize_sql_type("NUMERIC(10, 2)")
        'numeric'
        >>> normalize_sql_type("int4[]")
        'int4[]'
    """
    lowered: str = _WHITESPACE_RE.sub(" ", sql_type.strip().lower())
    return _PARAM_STRIP_RE.sub("", lowered).strip()


def _resolve_from_map(sql_type: str, type_map: Dict[str, str]) -> str:
    lowered: str = _WHITESPACE_RE.sub(" ", sql_type.strip().lower())
    if lowered in type_map:
        return type_map[lowered]
    base: str = _PARAM_STRIP_RE.sub("", lowered).strip()
    return type_map.get(base, TYPE_STRING)


# ---------------------------------------------------------------------------
# Per-dialect mapping
# ---------------------------------------------------------------------------


def _postgres_rust_type(sql_type: str) -> str:
    lowered: str = sql_type.strip().lower()
    # Every array dimension maps to a flat Vec<T>.
    if lowered.endswith("[]"):
        return f"Vec<{_resolve_from_map(_ARRAY_SUFFIX_RE.sub('', lowered), _POSTGRES_TYPES)}>"
    if lowered.startswith("_"):
        return f"Vec<{_resolve_from_map(lowered[1:], _POSTGRES_TYPES)}>"
    return _resolve_from_map(lowered, _POSTGRES_TYPES)


def _mysql_rust_type(sql_type: str) -> str:
    lowered: str = sql_type.strip().lower()
    if lowered.replace(" ", "") == "tinyint(1)":
        return "bool"
    if "unsigned" in lowered:
        base: str = lowered.replace("unsigned", "").strip()
        if base.startswith("bigint"):
            return "u64"
        if base.startswith("int") or base.startswith("integer") or base.startswith("mediumint"):
            return "u32"
        if base.startswith("smallint"):
            return "u16"
        if base.startswith("tinyint"):
            return "u8"
        return _resolve_from_map(base, _MYSQL_TYPES)
    return _resolve_from_map(lowered, _MYSQL_TYPES)


def _sqlite_rust_type(sql_type: str) -> str:
    return _resolve_from_map(sql_type, _SQLITE_TYPES)


_MAPPERS: Dict[Dialect, Callable[[str], str]] = {
    Dialect.POSTGRESQL: _postgres_rust_type,
    Dialect.MYSQL: _mysql_rust_type,
    Dialect.SQLITE: _sqlite_rust_type,
}


def to_rust_type(sql_type: str, dialect: Dialect = Dialect.POSTGRESQL) -> str:
    """Map a raw SQL type to its Rust type. Unknown types map to ``String``."""
    effective: Dialect = Dialect(dialect)
    if effective is Dialect.AUTO:
        effective = Dialect.POSTGRESQL
    return _MAPPERS[effective](sql_type)


def detect_dialect(raw_tables: Iterable[RawTable]) -> Dialect:
    """
    Guess the dialect from indicator types across the selection.
    Falls back to PostgreSQL when nothing identifies one.
    """
    types: set = set()
    for raw in raw_tables:
        types.update(normalize_sql_type(c.sql_type) for c in raw.columns)

    if types & _PG_INDICATORS:
        detected: Dialect = Dialect.POSTGRESQL
    elif types & _MYSQL_INDICATORS:
        detected = Dialect.MYSQL
    elif types & _SQLITE_INDICATORS:
        detected = Dialect.SQLITE
    else:
        detected = Dialect.POSTGRESQL
    logger.debug("Detected dialect %s from %d distinct types", detected.value, len(types))
    return detected


def resolve_timestamp_now_expr(rust_type: Optional[str]) -> str:
    """``chrono`` expression that yields "now" for a timestamp column type."""
    if rust_type == TYPE_DATE_TIME:
        return "Utc::now().naive_utc()"
    return "Utc::now().fixed_offset()"


# ---------------------------------------------------------------------------
# Raw table → Table
# ---------------------------------------------------------------------------


def read_table(raw: RawTable, dialect: Dialect, table_name_prefix: str = "") -> Table:
    """
    Convert raw reader output into an immutable ``Table`` snapshot.

    Primary keys come from the table-level list or per-column flags; a
    single-column unique index marks the column unique. Serial types and
    ``nextval(...)`` defaults count as auto-increment.
    """
    pk_names: List[str] = list(raw.primary_key) or [c.name for c in raw.columns if c.is_primary_key]
    single_unique: set = {
        idx.columns[0] for idx in raw.indexes if idx.unique and len(idx.columns) == 1
    }

    columns: List[Column] = []
    for rc in raw.columns:
        base_type: str = normalize_sql_type(rc.sql_type)
        is_pk: bool = rc.name in pk_names
        auto_inc: bool = (
            rc.is_auto_increment
            or base_type in _SERIAL_TYPES
            or (rc.default_value or "").lower().startswith("nextval(")
        )
        columns.append(
            Column(
                name=rc.name,
                sql_type=rc.sql_type,
                rust_type=to_rust_type(rc.sql_type, dialect),
                is_primary_key=is_pk,
                is_nullable=rc.is_nullable and not is_pk,
                is_auto_increment=auto_inc,
                is_unique=rc.is_unique or rc.name in single_unique,
                comment=rc.comment,
                default_value=rc.default_value,
            )
        )

    table: Table = Table(
        name=raw.name,
        comment=raw.comment,
        columns=columns,
        primary_keys=pk_names,
        table_name_prefix=table_name_prefix,
        schema_name=raw.schema_name,
    )
    logger.debug("Read %r", table)
    return table


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "TYPE_DATE_TIME",
    "TYPE_DATE_TIME_WITH_TZ",
    "TYPE_DATE",
    "TYPE_TIME",
    "TYPE_DECIMAL",
    "TYPE_UUID",
    "TYPE_JSON",
    "TYPE_STRING",
    "TYPE_BINARY",
    "DATE_TIME_TYPES",
    "FLOAT_TYPES",
    "normalize_sql_type",
    "to_rust_type",
    "detect_dialect",
    "resolve_timestamp_now_expr",
    "read_table",
]

logger.debug("seagen.dialects loaded — %d public symbols.", len(__all__))
