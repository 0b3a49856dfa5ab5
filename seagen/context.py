# File: seagen/context.py
"""
Seagen - Template Context Builder
==================================
Assembles the flat key/value mapping a layer template is rendered with:
naming forms, column lists and subsets, primary-key facts, timestamp
detection, cross-layer crate paths and the relation buckets.

Keys are snake_case; every value is a plain ``str`` / ``bool`` / ``list`` /
``dict`` so custom templates never see pydantic objects.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence

from seagen.attributes import bare_field_name, resolve_column_attributes, sea_orm_attr
from seagen.dialects import (
    DATE_TIME_TYPES,
    TYPE_DECIMAL,
    TYPE_JSON,
    TYPE_UUID,
    resolve_timestamp_now_expr,
)
from seagen.models import CodegenSettings, Column, Relation, RelationType, Table
from seagen.relations import RelationMap
from seagen.utils import (
    dir_to_crate_path,
    option_of,
    strip_prefix,
    to_kebab_case,
    to_pascal_case,
    to_snake_case,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("seagen.context")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

CREATED_AT_COLUMNS: FrozenSet[str] = frozenset({"created_at", "create_time"})
UPDATED_AT_COLUMNS: FrozenSet[str] = frozenset({"updated_at", "update_time"})

# Rendered as plain strings in view objects.
VO_STRING_TYPES: FrozenSet[str] = DATE_TIME_TYPES | {TYPE_UUID, TYPE_DECIMAL, TYPE_JSON}


def vo_rust_type(column: Column) -> str:
    """View-layer type: API-unfriendly types become ``String``."""
    base: str = column.rust_type
    if base in VO_STRING_TYPES:
        base = "String"
    elif base.startswith("Vec<") and base[4:-1] in VO_STRING_TYPES:
        base = "Vec<String>"
    return option_of(base) if column.is_nullable else base


def vo_conversion(column: Column, var: str = "model") -> str:
    """Rust expression turning the entity field into its view-layer value."""
    access: str = f"{var}.{column.field_name}"
    base: str = column.rust_type
    if base in VO_STRING_TYPES:
        return f"{access}.map(|v| v.to_string())" if column.is_nullable else f"{access}.to_string()"
    if base.startswith("Vec<") and base[4:-1] in VO_STRING_TYPES:
        if column.is_nullable:
            return f"{access}.map(|items| items.into_iter().map(|v| v.to_string()).collect())"
        return f"{access}.into_iter().map(|v| v.to_string()).collect()"
    return access


def column_variant(column: Column) -> str:
    """``Column`` enum variant ``DeriveEntityModel`` derives from the field."""
    return to_pascal_case(bare_field_name(column))


def column_context(column: Column) -> Dict[str, Any]:
    return {
        "name": column.name,
        "field_name": column.field_name,
        "column_variant": column_variant(column),
        "rust_type": column.rust_type,
        "full_rust_type": column.full_rust_type,
        "vo_rust_type": vo_rust_type(column),
        "vo_expr": vo_conversion(column),
        "sql_type": column.sql_type,
        "is_primary_key": column.is_primary_key,
        "is_nullable": column.is_nullable,
        "is_auto_increment": column.is_auto_increment,
        "is_unique": column.is_unique,
        "is_virtual": column.is_virtual,
        "is_date_time_type": column.rust_type in DATE_TIME_TYPES,
        "comment": column.comment or "",
        "default_value": column.default_value or "",
        "ext": dict(column.ext),
        "attributes": resolve_column_attributes(column),
        "sea_orm_attr": sea_orm_attr(column),
    }


def update_column_context(column: Column) -> Dict[str, Any]:
    """Update columns also say whether the entity field itself is optional."""
    ctx: Dict[str, Any] = column_context(column)
    ctx["is_entity_nullable"] = column.is_nullable
    return ctx


class ContextBuilder:
    """
    Builds per-table template contexts.

    *tables* is the whole selection (after overrides); it resolves relation
    targets to their module names and schema sub-directories.
    """

    def __init__(
        self,
        settings: CodegenSettings,
        tables: Sequence[Table],
        relations: Optional[RelationMap] = None,
    ) -> None:
        self.settings: CodegenSettings = settings
        self.relations: RelationMap = dict(relations or {})
        self._tables_by_key: Dict[str, Table] = {t.name.lower(): t for t in tables}

    # -- Crate paths --------------------------------------------------------

    def module_path(self, layer_id: str, table: Table) -> str:
        """``crate::...`` path of the directory holding *table*'s file for *layer_id*."""
        return dir_to_crate_path(
            self.settings.output_dir_for(layer_id, table.name), table.schema_sub_dir
        )

    # -- Relations ----------------------------------------------------------

    def _target_names(self, target_table: str) -> Dict[str, str]:
        target: Optional[Table] = self._tables_by_key.get(target_table.lower())
        if target is not None:
            return {
                "module": target.module_name,
                "entity": target.entity_name,
                "schema_sub_dir": target.schema_sub_dir,
                "table": target.name,
            }
        stripped: str = strip_prefix(target_table, self.settings.table_name_prefix)
        return {
            "module": to_snake_case(stripped),
            "entity": to_pascal_case(stripped),
            "schema_sub_dir": "",
            "table": target_table,
        }

    def relation_contexts(self, table: Table) -> List[Dict[str, Any]]:
        relations: List[Relation] = list(self.relations.get(table.name.lower(), []))
        contexts: List[Dict[str, Any]] = []
        used_variants: set = set()
        related_targets: set = set()

        for rel in relations:
            names: Dict[str, str] = self._target_names(rel.target_table)
            target: Optional[Table] = self._tables_by_key.get(rel.target_table.lower())
            from_col: Optional[Column] = table.get_column(rel.from_column)
            to_col: Optional[Column] = target.get_column(rel.to_column) if target else None
            if from_col is None or (target is not None and to_col is None):
                logger.warning(
                    "Dropping relation %s.%s -> %s.%s: column not in the generated entity",
                    table.name, rel.from_column, rel.target_table, rel.to_column,
                )
                continue

            if target is None or self.module_path("entity", target) == self.module_path("entity", table):
                target_mod: str = f"super::{names['module']}"
            else:
                target_mod = f"{self.module_path('entity', target)}::{names['module']}"

            variant: str = to_pascal_case(names["entity"])
            if rel.relation_type == RelationType.HAS_MANY and not variant.endswith("s"):
                variant = f"{variant}s"
            if variant in used_variants:
                variant = f"{variant}{to_pascal_case(rel.from_column)}"
            used_variants.add(variant)

            to_variant: str = (
                column_variant(to_col) if to_col is not None else to_pascal_case(rel.to_column)
            )

            # Sea-ORM allows one ``impl Related`` per target entity.
            impl_related: bool = target_mod not in related_targets
            related_targets.add(target_mod)

            contexts.append({
                "relation_type": RelationType(rel.relation_type).name,
                "is_belongs_to": rel.relation_type == RelationType.BELONGS_TO,
                "is_has_many": rel.relation_type == RelationType.HAS_MANY,
                "is_has_one": rel.relation_type == RelationType.HAS_ONE,
                "target_table": names["table"],
                "target_module_name": names["module"],
                "target_entity_name": names["entity"],
                "from_column": rel.from_column,
                "to_column": rel.to_column,
                "variant_name": variant,
                "target_entity_path": f"{target_mod}::Entity",
                "from_column_path": f"Column::{column_variant(from_col)}",
                "to_column_path": f"{target_mod}::Column::{to_variant}",
                "impl_related": impl_related,
            })
        return contexts

    # -- Full context -------------------------------------------------------

    def build(self, table: Table, extra: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        pk_columns: List[Column] = table.primary_key_columns
        created_at: Optional[Column] = next(
            (c for c in table.columns if c.name in CREATED_AT_COLUMNS), None
        )
        updated_at: Optional[Column] = next(
            (c for c in table.columns if c.name in UPDATED_AT_COLUMNS), None
        )
        stamp: Optional[Column] = created_at or updated_at

        relations: List[Dict[str, Any]] = self.relation_contexts(table)

        ctx: Dict[str, Any] = {
            # names
            "table_name": table.name,
            "table_comment": table.comment or "",
            "schema_name": table.schema_name or "",
            "schema_sub_dir": table.schema_sub_dir,
            "entity_name": table.entity_name,
            "module_name": table.module_name,
            "service_name": table.service_name,
            "dto_create_name": table.dto_create_name,
            "dto_update_name": table.dto_update_name,
            "query_name": table.query_name,
            "vo_name": table.vo_name,
            # columns
            "columns": [column_context(c) for c in table.columns],
            "insert_columns": [column_context(c) for c in table.insert_columns],
            "update_columns": [update_column_context(c) for c in table.update_columns],
            "query_columns": [column_context(c) for c in table.query_columns],
            # primary key
            "primary_key_name": table.primary_key_name,
            "primary_key_field": pk_columns[0].field_name if pk_columns else "id",
            "primary_key_type": table.primary_key_type,
            "has_primary_key": bool(pk_columns),
            "has_composite_pk": table.has_composite_pk,
            "pk_tuple_type": (
                "(" + ", ".join(c.rust_type for c in pk_columns) + ")"
                if table.has_composite_pk else table.primary_key_type
            ),
            "pk_fields": [
                {
                    "name": c.name,
                    "field_name": c.field_name,
                    "rust_type": c.rust_type,
                    "column_variant": column_variant(c),
                }
                for c in pk_columns
            ],
            # timestamps
            "has_timestamps": stamp is not None,
            "has_created_at": created_at is not None,
            "has_updated_at": updated_at is not None,
            "created_at_nullable": bool(created_at and created_at.is_nullable),
            "updated_at_nullable": bool(updated_at and updated_at.is_nullable),
            "created_at_field_name": created_at.field_name if created_at else "",
            "updated_at_field_name": updated_at.field_name if updated_at else "",
            "timestamp_now_expr": resolve_timestamp_now_expr(stamp.rust_type if stamp else None),
            # routing
            "route_prefix": self.settings.route_prefix,
            "route_path": f"{self.settings.route_prefix}/{to_kebab_case(table.module_name)}",
            # cross-layer imports
            "entity_module_path": self.module_path("entity", table),
            "dto_module_path": self.module_path("dto", table),
            "vo_module_path": self.module_path("vo", table),
            "service_module_path": self.module_path("service", table),
            "vo_enabled": self.settings.vo.enabled
            and self.settings.is_layer_enabled_for("vo", table.name),
            # relations
            "relations": relations,
            "has_relations": bool(relations),
            "belongs_to_relations": [r for r in relations if r["is_belongs_to"]],
            "has_many_relations": [r for r in relations if r["is_has_many"]],
            "has_one_relations": [r for r in relations if r["is_has_one"]],
        }
        if extra:
            ctx.update(extra)
        return ctx


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "CREATED_AT_COLUMNS",
    "UPDATED_AT_COLUMNS",
    "VO_STRING_TYPES",
    "vo_rust_type",
    "vo_conversion",
    "column_variant",
    "column_context",
    "update_column_context",
    "ContextBuilder",
]

logger.debug("seagen.context loaded — %d public symbols.", len(__all__))
