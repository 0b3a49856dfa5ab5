"""
tests/test_templates.py
Unit tests for seagen.templates (TemplateEngine) and seagen.layers.

Tests cover:
- Rendering, filters and strict undefined handling
- Custom template directory precedence and init_templates
- Entity generation (markers, derives, relations, timestamps, schemas)
- DTO, view object and route generation
- Layer configuration
"""

from __future__ import annotations

import pathlib
from typing import List

import pytest
from jinja2.exceptions import UndefinedError

from conftest import col, make_raw_table, pk
from seagen.context import ContextBuilder
from seagen.dialects import read_table
from seagen.errors import TemplateNotFoundError
from seagen.layers import (
    DtoLayer,
    EntityLayer,
    RouteLayer,
    ServiceLayer,
    VoLayer,
    build_layer_configs,
    combine_derives,
)
from seagen.merger import GENERATED_END_MARKER, GENERATED_START_MARKER
from seagen.models import CodegenSettings, Dialect, Table, TableOverride
from seagen.relations import detect_relations
from seagen.templates import TemplateEngine, builtin_templates, init_templates


def _builder(settings: CodegenSettings, tables: List[Table], raw=None) -> ContextBuilder:
    relations = detect_relations(raw) if raw else None
    return ContextBuilder(settings, tables, relations)


# ===========================================================================
# Engine
# ===========================================================================


class TestTemplateEngine:
    def test_render_with_filters(self) -> None:
        engine = TemplateEngine()
        out = engine.render("{{ name | pascal_case }}/{{ name | kebab_case }}", {"name": "user_roles"})
        assert out == "UserRoles/user-roles"

    def test_missing_key_raises(self) -> None:
        with pytest.raises(UndefinedError):
            TemplateEngine().render("{{ missing }}", {})

    def test_no_html_escaping(self) -> None:
        assert TemplateEngine().render("{{ t }}", {"t": "Option<String>"}) == "Option<String>"

    def test_custom_directory_wins(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / "entity.rs.j2").write_text("custom {{ table_name }}", encoding="utf-8")
        engine = TemplateEngine(tmp_path)
        assert engine.render_layer("entity", {"table_name": "users"}) == "custom users"
        assert "custom" in engine.load_template("entity")
        # layers the directory does not provide fall back to built-ins
        assert "pub struct {{ service_name }};" in engine.load_template("service")

    def test_missing_custom_directory_falls_back(self, tmp_path: pathlib.Path) -> None:
        engine = TemplateEngine(tmp_path / "nope")
        assert "{{ marker_start }}" in engine.load_template("entity")

    def test_unknown_layer(self) -> None:
        engine = TemplateEngine()
        with pytest.raises(TemplateNotFoundError) as exc_info:
            engine.load_template("controller")
        assert exc_info.value.template_name == "controller.rs.j2"
        with pytest.raises(TemplateNotFoundError):
            engine.render_layer("controller", {})

    def test_builtin_templates_listed(self) -> None:
        assert set(builtin_templates()) == {
            "entity.rs.j2", "dto.rs.j2", "vo.rs.j2", "service.rs.j2", "route.rs.j2",
        }

    def test_init_templates_never_overwrites(self, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "templates"
        target.mkdir()
        (target / "entity.rs.j2").write_text("mine", encoding="utf-8")

        written = init_templates(target)

        assert "entity.rs.j2" not in written
        assert sorted(written) == ["dto.rs.j2", "route.rs.j2", "service.rs.j2", "vo.rs.j2"]
        assert (target / "entity.rs.j2").read_text(encoding="utf-8") == "mine"
        assert init_templates(target) == []


# ===========================================================================
# Entity layer
# ===========================================================================


class TestEntityLayer:
    def test_markers_and_table_attribute(self, two_tables: List[Table], settings: CodegenSettings) -> None:
        layer = EntityLayer(settings, TemplateEngine(), _builder(settings, two_tables))
        code = layer.generate(two_tables[0])

        assert code.startswith(GENERATED_START_MARKER)
        assert code.rstrip().endswith(GENERATED_END_MARKER)
        assert '#[sea_orm(table_name = "users")]' in code
        assert "#[derive(Clone, Debug, PartialEq, Eq, DeriveEntityModel, Serialize, Deserialize)]" in code
        assert "use serde::{Deserialize, Serialize};" in code
        assert "    pub email: String," in code
        assert "#[sea_orm(primary_key)]" in code

    def test_file_and_module_names(self, two_tables: List[Table], settings: CodegenSettings) -> None:
        engine = TemplateEngine()
        builder = _builder(settings, two_tables)
        users = two_tables[0]
        assert EntityLayer(settings, engine, builder).file_name(users) == "users.rs"
        assert DtoLayer(settings, engine, builder).mod_name(users) == "users_dto"
        assert VoLayer(settings, engine, builder).file_name(users) == "users_vo.rs"
        assert ServiceLayer(settings, engine, builder).mod_name(users) == "users_service"
        assert RouteLayer(settings, engine, builder).file_name(users) == "users_route.rs"

    def test_timestamps_set_in_before_save(self, two_tables: List[Table], settings: CodegenSettings) -> None:
        code = EntityLayer(settings, TemplateEngine(), _builder(settings, two_tables)).generate(two_tables[0])
        assert "use chrono::Utc;" in code
        assert "let now = Utc::now().fixed_offset();" in code
        assert "self.created_at = Set(now);" in code
        assert "self.updated_at = Set(now);" in code

    def test_no_timestamps_uses_empty_behavior(self, settings: CodegenSettings) -> None:
        table = read_table(make_raw_table("tags", [pk(), col("label")]), Dialect.POSTGRESQL)
        code = EntityLayer(settings, TemplateEngine(), _builder(settings, [table])).generate(table)
        assert "impl ActiveModelBehavior for ActiveModel {}" in code
        assert "chrono" not in code

    def test_relations_rendered(
        self, two_raw_tables, two_tables: List[Table], settings: CodegenSettings
    ) -> None:
        builder = _builder(settings, two_tables, two_raw_tables)
        layer = EntityLayer(settings, TemplateEngine(), builder)

        posts = layer.generate(two_tables[1])
        assert 'belongs_to = "super::users::Entity"' in posts
        assert 'from = "Column::UserId"' in posts
        assert 'to = "super::users::Column::Id"' in posts
        assert "impl Related<super::users::Entity> for Entity {" in posts

        users = layer.generate(two_tables[0])
        assert '#[sea_orm(has_many = "super::posts::Entity")]' in users
        assert "    Posts," in users

    def test_renamed_column_maps_to_database_name(self, two_raw_tables, two_tables: List[Table]) -> None:
        override = TableOverride(column_name_overrides={"user_id": "owner"})
        settings = CodegenSettings(conflict_strategy="skip", table_overrides={"posts": override})
        tables = [two_tables[0], override.apply_to(two_tables[1])]
        layer = EntityLayer(settings, TemplateEngine(), _builder(settings, tables, two_raw_tables))

        posts = layer.generate(tables[1])
        assert '    #[sea_orm(column_name = "user_id")]\n    pub owner: i64,' in posts
        assert 'from = "Column::Owner"' in posts
        assert "Column::UserId" not in posts

        users_rel = layer.contexts.build(tables[0])["relations"][0]
        assert users_rel["from_column_path"] == "Column::Id"
        assert users_rel["to_column_path"] == "super::posts::Column::Owner"

    def test_relation_on_excluded_column_dropped(self, two_raw_tables, two_tables: List[Table]) -> None:
        override = TableOverride(excluded_columns=["user_id"])
        settings = CodegenSettings(conflict_strategy="skip", table_overrides={"posts": override})
        tables = [two_tables[0], override.apply_to(two_tables[1])]
        layer = EntityLayer(settings, TemplateEngine(), _builder(settings, tables, two_raw_tables))

        posts = layer.generate(tables[1])
        assert "belongs_to" not in posts
        assert "Column::UserId" not in posts
        assert "impl Related" not in posts

        users = layer.generate(tables[0])
        assert "has_many" not in users

    def test_float_column_drops_eq(self) -> None:
        settings = CodegenSettings(
            conflict_strategy="skip",
            table_overrides={"points": TableOverride(extra_derives={"entity": ["Serialize", "Hash"]})},
        )
        table = read_table(make_raw_table("points", [pk(), col("x", "float8")]), Dialect.POSTGRESQL)
        code = EntityLayer(settings, TemplateEngine(), _builder(settings, [table])).generate(table)
        assert "#[derive(Clone, Debug, PartialEq, DeriveEntityModel, Serialize)]" in code

    def test_schema_name_in_attribute(self, settings: CodegenSettings) -> None:
        table = read_table(make_raw_table("invoices", [pk("id", "uuid")], schema="billing"), Dialect.POSTGRESQL)
        code = EntityLayer(settings, TemplateEngine(), _builder(settings, [table])).generate(table)
        assert '#[sea_orm(schema_name = "billing", table_name = "invoices")]' in code
        assert "#[sea_orm(primary_key, auto_increment = false)]" in code

    def test_prelude_auxiliary_file(self, two_tables: List[Table], settings: CodegenSettings) -> None:
        layer = EntityLayer(settings, TemplateEngine(), _builder(settings, two_tables))
        files = layer.auxiliary_files(["posts", "users"], two_tables, "src/entity")
        assert [f.path for f in files] == ["src/entity/prelude.rs"]
        assert "pub use super::users::Entity as Users;" in files[0].content
        assert layer.auxiliary_files([], two_tables, "src/entity") == []


# ===========================================================================
# DTO / VO / service / route layers
# ===========================================================================


class TestDtoLayer:
    def test_create_update_and_query(self, two_tables: List[Table], settings: CodegenSettings) -> None:
        code = DtoLayer(settings, TemplateEngine(), _builder(settings, two_tables)).generate(two_tables[0])

        assert "#[derive(Debug, Deserialize)]" in code
        assert "pub struct CreateUsersDto {" in code
        assert "pub struct UpdateUsersDto {" in code
        assert "pub struct UsersQuery {" in code
        assert "use crate::entity::users::{ActiveModel, Column};" in code
        assert "use sea_orm::prelude::*;" in code
        assert "model.email = Set(value);" in code
        assert "condition = condition.add(Column::Email.eq(value));" in code
        assert "validator" not in code

    def test_validate_derive(self, two_tables: List[Table]) -> None:
        settings = CodegenSettings(
            conflict_strategy="skip",
            table_overrides={"users": TableOverride(extra_derives={"dto": ["Validate"]})},
        )
        code = DtoLayer(settings, TemplateEngine(), _builder(settings, two_tables)).generate(two_tables[0])
        assert "use validator::Validate;" in code
        assert "#[derive(Debug, Deserialize, Validate)]" in code
        assert '#[validate(length(min = 1, message = "email must not be empty"))]' in code

    def test_nullable_update_field_wrapped(self, two_tables: List[Table], settings: CodegenSettings) -> None:
        code = DtoLayer(settings, TemplateEngine(), _builder(settings, two_tables)).generate(two_tables[1])
        assert "pub body: Option<String>," in code
        assert "model.body = Set(Some(value));" in code


class TestVoLayer:
    def test_string_conversions(self, two_tables: List[Table], settings: CodegenSettings) -> None:
        code = VoLayer(settings, TemplateEngine(), _builder(settings, two_tables)).generate(two_tables[0])
        assert "pub struct UsersVo {" in code
        assert "#[derive(Debug, Serialize)]" in code
        assert "pub created_at: String," in code
        assert "created_at: model.created_at.to_string()," in code
        assert "id: model.id," in code


class TestServiceLayer:
    def test_service_struct(self, two_tables: List[Table], settings: CodegenSettings) -> None:
        code = ServiceLayer(settings, TemplateEngine(), _builder(settings, two_tables)).generate(two_tables[0])
        assert "pub struct UsersService;" in code
        assert "id: i64" in code
        assert "use crate::dto::users_dto::{CreateUsersDto, UpdateUsersDto, UsersQuery};" in code


class TestRouteLayer:
    def test_paths(self, two_tables: List[Table], settings: CodegenSettings) -> None:
        code = RouteLayer(settings, TemplateEngine(), _builder(settings, two_tables)).generate(two_tables[0])
        assert '#[get("/api/users")]' in code
        assert '#[get("/api/users/{id}")]' in code
        assert '#[delete("/api/users/{id}")]' in code
        assert "Path(id): Path<i64>," in code
        assert "Json(dto): Json<CreateUsersDto>," in code
        assert "axum_valid" not in code

    def test_composite_key_path(self, settings: CodegenSettings) -> None:
        raw = make_raw_table("user_roles", [col("user_id", "int8"), col("role_id", "int4")])
        table = read_table(raw.model_copy(update={"primary_key": ["user_id", "role_id"]}), Dialect.POSTGRESQL)
        code = RouteLayer(settings, TemplateEngine(), _builder(settings, [table])).generate(table)
        assert '#[get("/api/user-roles/{user_id}/{role_id}")]' in code
        assert "Path((user_id, role_id)): Path<(i64, i32)>," in code

    def test_view_objects_and_validation(self, two_tables: List[Table]) -> None:
        settings = CodegenSettings.model_validate({
            "conflict_strategy": "skip",
            "vo": {"enabled": True},
            "table_overrides": {"users": {"extra_derives": {"dto": ["Validate"]}}},
        })
        code = RouteLayer(settings, TemplateEngine(), _builder(settings, two_tables)).generate(two_tables[0])
        assert "use crate::vo::users_vo::UsersVo;" in code
        assert "Ok(Json(UsersVo::from(model)))" in code
        assert "use axum_valid::Valid;" in code
        assert "Valid(Json(dto)): Valid<Json<CreateUsersDto>>," in code


# ===========================================================================
# Configuration
# ===========================================================================


class TestLayerConfigs:
    def test_combine_derives_keeps_order(self) -> None:
        assert combine_derives(["Debug", "Serialize"], ["Serialize", "Builder"]) == [
            "Debug", "Serialize", "Builder",
        ]

    def test_default_enablement(self, two_tables: List[Table], settings: CodegenSettings) -> None:
        configs = build_layer_configs(settings, TemplateEngine(), _builder(settings, two_tables))
        assert [(c.layer.layer_id, c.enabled) for c in configs] == [
            ("entity", True), ("dto", True), ("vo", False), ("service", True), ("route", True),
        ]
        assert configs[0].output_dir == "src/entity"

    def test_only_narrows_run(self, two_tables: List[Table], settings: CodegenSettings) -> None:
        configs = build_layer_configs(settings, TemplateEngine(), _builder(settings, two_tables), only=["entity"])
        assert [c.layer.layer_id for c in configs if c.enabled] == ["entity"]

    def test_per_table_rules(self, two_tables: List[Table]) -> None:
        settings = CodegenSettings(
            table_overrides={"posts": TableOverride(layer_enabled={"route": False}, output_dirs={"dto": "src/blog"})}
        )
        configs = {c.layer.layer_id: c for c in build_layer_configs(settings, TemplateEngine(), _builder(settings, two_tables))}
        users, posts = two_tables
        assert configs["route"].is_table_enabled(users)
        assert not configs["route"].is_table_enabled(posts)
        assert configs["dto"].output_dir_for_table(posts) == "src/blog"
        assert configs["dto"].output_dir_for_table(users) == "src/dto"
