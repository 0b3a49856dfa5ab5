"""
tests/test_attributes.py
Unit tests for seagen.attributes: when a column needs an explicit
``#[sea_orm(...)]`` annotation and in what order its parts appear.
"""

from __future__ import annotations

import pytest

from seagen.attributes import (
    decimal_precision,
    resolve_column_attributes,
    resolve_column_type,
    sea_orm_attr,
)
from seagen.dialects import to_rust_type
from seagen.models import Column, Dialect


def _column(sql_type: str, **flags) -> Column:
    dialect = flags.pop("dialect", Dialect.POSTGRESQL)
    return Column(name="c", sql_type=sql_type, rust_type=to_rust_type(sql_type, dialect), **flags)


class TestDecimal:
    def test_precision_and_scale(self) -> None:
        assert decimal_precision("numeric(10,2)") == (10, 2)
        assert decimal_precision("DECIMAL( 12 , 4 )") == (12, 4)

    def test_annotation_carries_precision(self) -> None:
        assert resolve_column_attributes(_column("numeric(10,2)")) == [
            'column_type = "Decimal(Some((10, 2)))"'
        ]

    @pytest.mark.parametrize("sql_type", ["numeric", "decimal", "numeric(10)"])
    def test_no_annotation_without_both_parameters(self, sql_type: str) -> None:
        assert resolve_column_attributes(_column(sql_type)) == []


class TestJson:
    def test_jsonb_always_annotated(self) -> None:
        assert resolve_column_type(_column("jsonb")) == '"JsonBinary"'
        assert resolve_column_attributes(_column("jsonb", is_nullable=True)) == [
            'column_type = "JsonBinary"', "nullable"
        ]
        assert resolve_column_attributes(_column("jsonb", is_nullable=False)) == [
            'column_type = "JsonBinary"'
        ]

    def test_plain_json_needs_nothing(self) -> None:
        assert resolve_column_attributes(_column("json", is_nullable=True)) == []


class TestText:
    def test_text_annotated(self) -> None:
        assert resolve_column_attributes(_column("text")) == ['column_type = "Text"']

    def test_mysql_longtext_annotated(self) -> None:
        column = _column("longtext", dialect=Dialect.MYSQL)
        assert resolve_column_attributes(column) == ['column_type = "Text"']

    def test_text_with_overridden_type_not_annotated(self) -> None:
        column = Column(name="c", sql_type="text", rust_type="serde_json::Value")
        assert resolve_column_attributes(column) == []

    def test_varchar_needs_nothing(self) -> None:
        assert sea_orm_attr(_column("varchar(255)")) == ""


class TestCustomTypes:
    @pytest.mark.parametrize("sql_type", ["inet", "cidr", "macaddr", "bit", "point", "tsvector", "interval", "xml"])
    def test_custom_type_with_casts(self, sql_type: str) -> None:
        assert resolve_column_attributes(_column(sql_type)) == [
            f'column_type = "custom(\\"{sql_type}\\")"',
            'select_as = "text"',
            f'save_as = "{sql_type}"',
        ]

    def test_bit_with_length_uses_base_name(self) -> None:
        parts = resolve_column_attributes(_column("bit(8)"))
        assert parts[-1] == 'save_as = "bit"'


class TestArrays:
    @pytest.mark.parametrize("sql_type", ["text[]", "_int4", "jsonb[]", "inet[]"])
    def test_arrays_need_nothing(self, sql_type: str) -> None:
        assert resolve_column_attributes(_column(sql_type)) == []


class TestOrdering:
    def test_full_order(self) -> None:
        column = _column("inet", is_primary_key=True, is_nullable=True, is_unique=True)
        assert resolve_column_attributes(column) == [
            "primary_key",
            "auto_increment = false",
            'column_type = "custom(\\"inet\\")"',
            'select_as = "text"',
            'save_as = "inet"',
            "nullable",
        ]

    def test_auto_increment_pk(self) -> None:
        column = _column("bigserial", is_primary_key=True, is_auto_increment=True)
        assert sea_orm_attr(column) == "#[sea_orm(primary_key)]"

    def test_manual_pk(self) -> None:
        column = _column("uuid", is_primary_key=True)
        assert sea_orm_attr(column) == "#[sea_orm(primary_key, auto_increment = false)]"

    def test_unique_without_type_annotation(self) -> None:
        column = _column("varchar(255)", is_unique=True, is_nullable=True)
        assert resolve_column_attributes(column) == ["unique"]

    def test_unique_then_nullable_with_annotation(self) -> None:
        column = _column("text", is_unique=True, is_nullable=True)
        assert resolve_column_attributes(column) == ['column_type = "Text"', "unique", "nullable"]

    def test_virtual_column_ignored(self) -> None:
        column = Column(name="score", rust_type="i32", is_virtual=True)
        assert sea_orm_attr(column) == "#[sea_orm(ignore)]"


class TestColumnName:
    def test_renamed_field_keeps_database_name(self) -> None:
        column = Column(name="user_id", sql_type="int8", rust_type="i64", field_name_override="owner")
        assert column.field_name == "owner"
        assert sea_orm_attr(column) == '#[sea_orm(column_name = "user_id")]'

    def test_column_name_precedes_column_type(self) -> None:
        column = Column(
            name="body", sql_type="text", rust_type="String",
            is_primary_key=True, is_nullable=True, field_name_override="content",
        )
        assert resolve_column_attributes(column) == [
            "primary_key",
            "auto_increment = false",
            'column_name = "body"',
            'column_type = "Text"',
            "nullable",
        ]

    def test_raw_identifier_needs_no_column_name(self) -> None:
        column = Column(name="type", sql_type="varchar", rust_type="String")
        assert column.field_name == "r#type"
        assert resolve_column_attributes(column) == []

    def test_escaped_keyword_and_camel_case(self) -> None:
        assert resolve_column_attributes(Column(name="self", rust_type="String")) == [
            'column_name = "self"'
        ]
        assert resolve_column_attributes(Column(name="userId", rust_type="i64")) == [
            'column_name = "userId"'
        ]
