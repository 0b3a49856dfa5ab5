"""
tests/test_models.py
Unit tests for seagen.models.

Tests cover:
- Table naming forms and prefix stripping
- Insertable / updatable / queryable column subsets
- Copy-on-override semantics of TableOverride.apply_to
- CodegenSettings defaults, partial layer blocks and per-table lookups
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from seagen.models import (
    CodegenSettings,
    Column,
    FileKind,
    GeneratedFile,
    RawTable,
    Relation,
    RelationType,
    Table,
    TableOverride,
    VirtualColumn,
)


def _table(**kwargs) -> Table:
    columns = kwargs.pop(
        "columns",
        [
            Column(name="id", rust_type="i64", is_primary_key=True, is_auto_increment=True),
            Column(name="user_name", rust_type="String"),
            Column(name="avatar", rust_type="Vec<u8>", is_nullable=True),
            Column(name="settings", rust_type="Json", is_nullable=True),
            Column(name="created_at", rust_type="DateTimeWithTimeZone"),
            Column(name="updated_at", rust_type="DateTimeWithTimeZone"),
        ],
    )
    return Table(name=kwargs.pop("name", "t_user_roles"), columns=columns, **kwargs)


# ===========================================================================
# Table naming
# ===========================================================================


class TestTableNaming:
    def test_prefix_stripped_in_every_name(self) -> None:
        table = _table(table_name_prefix="t_")
        assert table.stripped_name == "user_roles"
        assert table.entity_name == "UserRoles"
        assert table.module_name == "user_roles"
        assert table.service_name == "UserRolesService"
        assert table.dto_create_name == "CreateUserRolesDto"
        assert table.dto_update_name == "UpdateUserRolesDto"
        assert table.query_name == "UserRolesQuery"
        assert table.vo_name == "UserRolesVo"

    def test_custom_entity_name_drives_module(self) -> None:
        table = _table(custom_entity_name="Member")
        assert table.entity_name == "Member"
        assert table.module_name == "member"

    @pytest.mark.parametrize(
        "schema, expected",
        [(None, ""), ("public", ""), ("dbo", ""), ("Billing", "billing"), ("crm_data", "crm_data")],
    )
    def test_schema_sub_dir(self, schema, expected: str) -> None:
        assert _table(schema_name=schema).schema_sub_dir == expected

    def test_primary_keys_auto_detected_from_columns(self) -> None:
        table = _table()
        assert table.primary_keys == ["id"]
        assert table.primary_key_type == "i64"
        assert not table.has_composite_pk

    def test_no_primary_key_defaults(self) -> None:
        table = _table(columns=[Column(name="label")])
        assert table.primary_key_name == "id"
        assert table.primary_key_type == "i32"

    def test_duplicate_columns_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            Table(name="x", columns=[Column(name="a"), Column(name="a")])

    def test_snapshot_is_frozen(self) -> None:
        table = _table()
        with pytest.raises(PydanticValidationError):
            table.name = "other"  # type: ignore[misc]


# ===========================================================================
# Column subsets
# ===========================================================================


class TestColumnSubsets:
    def test_insert_excludes_auto_increment_and_timestamps(self) -> None:
        names = [c.name for c in _table().insert_columns]
        assert names == ["user_name", "avatar", "settings"]

    def test_update_excludes_pk_and_created(self) -> None:
        names = [c.name for c in _table().update_columns]
        assert names == ["user_name", "avatar", "settings", "updated_at"]

    def test_query_excludes_binary_and_json(self) -> None:
        names = [c.name for c in _table().query_columns]
        assert names == ["id", "user_name", "created_at", "updated_at"]

    def test_virtual_columns_excluded_from_all_subsets(self) -> None:
        table = TableOverride(virtual_columns=[VirtualColumn(name="score", rust_type="i32")]).apply_to(_table())
        for subset in (table.insert_columns, table.update_columns, table.query_columns):
            assert "score" not in [c.name for c in subset]
        assert table.get_column("score").is_virtual

    def test_full_rust_type_wraps_nullable(self) -> None:
        column = Column(name="bio", rust_type="String", is_nullable=True)
        assert column.full_rust_type == "Option<String>"
        assert column.field_name == "bio"


# ===========================================================================
# Overrides
# ===========================================================================


class TestTableOverride:
    def test_apply_returns_new_table_and_keeps_original(self) -> None:
        original = _table()
        override = TableOverride(
            custom_entity_name="Member",
            excluded_columns=["avatar"],
            column_type_overrides={"settings": "serde_json::Value"},
            column_comment_overrides={"user_name": "Login name"},
            column_name_overrides={"user_name": "login"},
            column_ext={"user_name": {"searchable": "true"}},
            virtual_columns=[VirtualColumn(name="score", rust_type="i32")],
        )
        updated = override.apply_to(original)

        assert updated is not original
        assert [c.name for c in original.columns] == [
            "id", "user_name", "avatar", "settings", "created_at", "updated_at",
        ]
        assert original.get_column("user_name").comment is None
        assert original.entity_name == "TUserRoles"

        assert [c.name for c in updated.columns] == [
            "id", "user_name", "settings", "created_at", "updated_at", "score",
        ]
        user_name = updated.get_column("user_name")
        assert user_name.comment == "Login name"
        assert user_name.field_name == "login"
        assert user_name.ext == {"searchable": "true"}
        assert updated.get_column("settings").rust_type == "serde_json::Value"
        assert updated.entity_name == "Member"

    def test_excluded_primary_key_dropped_from_key_list(self) -> None:
        updated = TableOverride(excluded_columns=["id"]).apply_to(_table())
        assert updated.primary_keys == []

    def test_virtual_column_defaults_to_nullable(self) -> None:
        column = VirtualColumn(name="score").to_column()
        assert column.is_virtual
        assert column.full_rust_type == "Option<String>"

    def test_unknown_layer_key_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            TableOverride(layer_enabled={"controller": False})

    def test_referenced_columns_deduplicated(self) -> None:
        override = TableOverride(
            excluded_columns=["a"],
            column_type_overrides={"b": "i32"},
            column_comment_overrides={"b": "x"},
        )
        assert override.referenced_columns == ["a", "b"]


# ===========================================================================
# Raw reader types and planned files
# ===========================================================================


class TestRawAndGenerated:
    def test_raw_column_aliases(self) -> None:
        raw = RawTable.model_validate(
            {
                "name": "users",
                "schema": "auth",
                "columns": [{"name": "id", "type": "int8", "primary_key": True, "nullable": False}],
            }
        )
        assert raw.schema_name == "auth"
        assert raw.columns[0].sql_type == "int8"
        assert raw.columns[0].is_primary_key

    def test_unique_columns_from_indexes_and_flags(self) -> None:
        raw = RawTable.model_validate(
            {
                "name": "profiles",
                "columns": [
                    {"name": "user_id", "type": "int8"},
                    {"name": "email", "type": "text", "unique": True},
                ],
                "indexes": [{"columns": ["user_id"], "unique": True}],
            }
        )
        assert raw.unique_columns == frozenset({"user_id", "email"})

    def test_generated_file_metrics(self) -> None:
        f = GeneratedFile(path="src/entity/mod.rs", content="pub mod a;\npub mod b;\n", kind=FileKind.MODULE_INDEX)
        assert f.line_count == 2
        assert f.size_bytes == len(f.content)
        assert f.kind == FileKind.MODULE_INDEX

    def test_relation_key_is_case_insensitive_on_target(self) -> None:
        rel = Relation(relation_type=RelationType.BELONGS_TO, target_table="Users", from_column="user_id")
        assert rel.key == ("users", "user_id", "id")


# ===========================================================================
# Settings
# ===========================================================================


class TestCodegenSettings:
    def test_defaults(self) -> None:
        settings = CodegenSettings()
        assert settings.enabled_layers == ["entity", "dto", "service", "route"]
        assert settings.entity.extra_derives == ["Serialize", "Deserialize"]
        assert settings.conflict_strategy == "ask"
        assert settings.route_prefix == "/api"

    def test_partial_layer_block_keeps_defaults(self) -> None:
        settings = CodegenSettings.model_validate({"vo": {"enabled": True}, "entity": {"output_dir": "src/model/"}})
        assert settings.vo.enabled
        assert settings.vo.output_dir == "src/vo"
        assert settings.entity.output_dir == "src/model"
        assert settings.entity.extra_derives == ["Serialize", "Deserialize"]

    def test_default_layers_are_independent_copies(self) -> None:
        first = CodegenSettings()
        first.entity.extra_derives.append("Hash")
        assert CodegenSettings().entity.extra_derives == ["Serialize", "Deserialize"]

    def test_route_prefix_normalised(self) -> None:
        assert CodegenSettings(route_prefix="api/v1/").route_prefix == "/api/v1"

    def test_per_table_lookups(self) -> None:
        settings = CodegenSettings(
            table_overrides={
                "posts": TableOverride(
                    layer_enabled={"route": False},
                    output_dirs={"entity": "src/blog/entity/"},
                    extra_derives={"dto": ["Validate"]},
                )
            }
        )
        assert settings.output_dir_for("entity", "posts") == "src/blog/entity"
        assert settings.output_dir_for("entity", "users") == "src/entity"
        assert not settings.is_layer_enabled_for("route", "posts")
        assert settings.is_layer_enabled_for("route", "users")
        assert settings.derives_for("dto", "posts") == ["Validate"]
        assert settings.derives_for("entity", "posts") == ["Serialize", "Deserialize"]

    def test_unknown_layer_lookup(self) -> None:
        with pytest.raises(KeyError):
            CodegenSettings().layer("controller")

    def test_unknown_setting_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            CodegenSettings.model_validate({"not_a_setting": 1})
