# File: seagen/layers.py
"""
Seagen - Code Generation Layers
================================
One class per generated artifact kind. A layer knows its file and module
naming, the extra template keys it needs and any auxiliary files that sit
next to its per-table files (the entity layer's ``prelude.rs``).

    Layer     File                     Module
    entity    <module>.rs              <module>
    dto       <module>_dto.rs          <module>_dto
    vo        <module>_vo.rs           <module>_vo
    service   <module>_service.rs      <module>_service
    route     <module>_route.rs        <module>_route

``build_layer_configs`` wires the layers to settings as ``LayerConfig``
values the planner consumes.
"""

from __future__ import annotations

import functools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, List, Sequence

from seagen.context import ContextBuilder
from seagen.dialects import FLOAT_TYPES
from seagen.indexes import PRELUDE_FILE_NAME, generate_prelude_content, prelude_entries
from seagen.merger import GENERATED_END_MARKER, GENERATED_START_MARKER
from seagen.models import LAYER_IDS, CodegenSettings, FileKind, GeneratedFile, Table
from seagen.templates import TemplateEngine

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("seagen.layers")

# ---------------------------------------------------------------------------
# Derive names
# ---------------------------------------------------------------------------

DERIVE_CLONE: str = "Clone"
DERIVE_DEBUG: str = "Debug"
DERIVE_PARTIAL_EQ: str = "PartialEq"
DERIVE_EQ: str = "Eq"
DERIVE_HASH: str = "Hash"
DERIVE_SERIALIZE: str = "Serialize"
DERIVE_DESERIALIZE: str = "Deserialize"
DERIVE_BUILDER: str = "Builder"
DERIVE_JSON_SCHEMA: str = "JsonSchema"
DERIVE_VALIDATE: str = "Validate"
DERIVE_ENTITY_MODEL: str = "DeriveEntityModel"

ENTITY_BASE_DERIVES: List[str] = [
    DERIVE_CLONE, DERIVE_DEBUG, DERIVE_PARTIAL_EQ, DERIVE_EQ, DERIVE_ENTITY_MODEL,
]
DTO_BASE_DERIVES: List[str] = [DERIVE_DEBUG, DERIVE_DESERIALIZE]
VO_BASE_DERIVES: List[str] = [DERIVE_DEBUG, DERIVE_SERIALIZE]

# sea_orm::prelude types a DTO needs imported.
_SEA_ORM_PRELUDE_TYPES: FrozenSet[str] = frozenset({
    "Uuid", "Json", "DateTime", "DateTimeWithTimeZone", "Date", "Time", "Decimal",
})


def combine_derives(base: Sequence[str], extra: Sequence[str]) -> List[str]:
    """Base derives followed by extras not already present, order kept."""
    return list(dict.fromkeys([*base, *extra]))


def has_float_column(table: Table) -> bool:
    return any(ft in col.rust_type for col in table.columns for ft in FLOAT_TYPES)


# ---------------------------------------------------------------------------
# Layer base class
# ---------------------------------------------------------------------------


class CodegenLayer(ABC):
    """A generated artifact kind; renders one file per table."""

    layer_id: str = ""
    file_kind: FileKind = FileKind.SOURCE

    def __init__(
        self,
        settings: CodegenSettings,
        engine: TemplateEngine,
        contexts: ContextBuilder,
    ) -> None:
        self.settings: CodegenSettings = settings
        self.engine: TemplateEngine = engine
        self.contexts: ContextBuilder = contexts

    @abstractmethod
    def file_name(self, table: Table) -> str:
        ...

    @abstractmethod
    def mod_name(self, table: Table) -> str:
        ...

    def template_extras(self, table: Table) -> Dict[str, Any]:
        return {}

    def extra_modules(self) -> List[str]:
        """Constant modules listed in every ``mod.rs`` of this layer."""
        return []

    def auxiliary_files(
        self, modules: Sequence[str], tables: Sequence[Table], directory: str
    ) -> List[GeneratedFile]:
        return []

    def derives(self, table: Table) -> List[str]:
        return self.settings.derives_for(self.layer_id, table.name)

    def generate(self, table: Table) -> str:
        context: Dict[str, Any] = self.contexts.build(table, self.template_extras(table))
        return self.engine.render_layer(self.layer_id, context)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.layer_id}>"


# ---------------------------------------------------------------------------
# Concrete layers
# ---------------------------------------------------------------------------


class EntityLayer(CodegenLayer):
    """
    Sea-ORM entity. Output carries the generated-region markers so later
    runs can merge instead of overwrite.
    """

    layer_id = "entity"
    file_kind = FileKind.ENTITY

    def file_name(self, table: Table) -> str:
        return f"{table.module_name}.rs"

    def mod_name(self, table: Table) -> str:
        return table.module_name

    def template_extras(self, table: Table) -> Dict[str, Any]:
        extra: List[str] = self.derives(table)
        base: List[str] = list(ENTITY_BASE_DERIVES)
        # f32/f64 implement neither Eq nor Hash.
        if has_float_column(table):
            base = [d for d in base if d != DERIVE_EQ]
            extra = [d for d in extra if d not in (DERIVE_EQ, DERIVE_HASH)]

        entity_attr: str = f'table_name = "{table.name}"'
        if table.schema_sub_dir:
            entity_attr = f'schema_name = "{table.schema_name}", {entity_attr}'

        return {
            "derives": combine_derives(base, extra),
            "serde_imports": [d for d in (DERIVE_DESERIALIZE, DERIVE_SERIALIZE) if d in extra],
            "add_bon": DERIVE_BUILDER in extra,
            "add_json_schema": DERIVE_JSON_SCHEMA in extra,
            "entity_attr": entity_attr,
            "marker_start": GENERATED_START_MARKER,
            "marker_end": GENERATED_END_MARKER,
        }

    def extra_modules(self) -> List[str]:
        return ["prelude"]

    def auxiliary_files(
        self, modules: Sequence[str], tables: Sequence[Table], directory: str
    ) -> List[GeneratedFile]:
        if not modules:
            return []
        module_set = set(modules)
        entries: Dict[str, str] = prelude_entries(t for t in tables if t.module_name in module_set)
        return [
            GeneratedFile(
                path=f"{directory}/{PRELUDE_FILE_NAME}",
                content=generate_prelude_content(entries),
                kind=FileKind.REEXPORT_INDEX,
            )
        ]


class DtoLayer(CodegenLayer):
    layer_id = "dto"

    def file_name(self, table: Table) -> str:
        return f"{table.module_name}_dto.rs"

    def mod_name(self, table: Table) -> str:
        return f"{table.module_name}_dto"

    def template_extras(self, table: Table) -> Dict[str, Any]:
        extra: List[str] = self.derives(table)
        used = [*table.insert_columns, *table.update_columns, *table.query_columns]
        return {
            "derives": combine_derives(DTO_BASE_DERIVES, extra),
            "add_bon": DERIVE_BUILDER in extra,
            "add_validate": DERIVE_VALIDATE in extra,
            "needs_prelude": any(
                t in col.rust_type for col in used for t in _SEA_ORM_PRELUDE_TYPES
            ),
        }


class VoLayer(CodegenLayer):
    layer_id = "vo"

    def file_name(self, table: Table) -> str:
        return f"{table.module_name}_vo.rs"

    def mod_name(self, table: Table) -> str:
        return f"{table.module_name}_vo"

    def template_extras(self, table: Table) -> Dict[str, Any]:
        extra: List[str] = self.derives(table)
        return {
            "derives": combine_derives(VO_BASE_DERIVES, extra),
            "add_bon": DERIVE_BUILDER in extra,
            "add_json_schema": DERIVE_JSON_SCHEMA in extra,
        }


class ServiceLayer(CodegenLayer):
    layer_id = "service"

    def file_name(self, table: Table) -> str:
        return f"{table.module_name}_service.rs"

    def mod_name(self, table: Table) -> str:
        return f"{table.module_name}_service"


class RouteLayer(CodegenLayer):
    layer_id = "route"

    def file_name(self, table: Table) -> str:
        return f"{table.module_name}_route.rs"

    def mod_name(self, table: Table) -> str:
        return f"{table.module_name}_route"

    def template_extras(self, table: Table) -> Dict[str, Any]:
        return {"add_validate": DERIVE_VALIDATE in self.settings.derives_for("dto", table.name)}


LAYER_CLASSES: Dict[str, type] = {
    "entity": EntityLayer,
    "dto": DtoLayer,
    "vo": VoLayer,
    "service": ServiceLayer,
    "route": RouteLayer,
}


# ---------------------------------------------------------------------------
# Layer configuration
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class LayerConfig:
    """A layer plus its enablement and output-directory rules."""

    layer: CodegenLayer
    enabled: bool
    output_dir: str
    is_table_enabled: Callable[[Table], bool]
    output_dir_for_table: Callable[[Table], str]


def _table_enabled(settings: CodegenSettings, layer_id: str, table: Table) -> bool:
    return settings.is_layer_enabled_for(layer_id, table.name)


def _table_output_dir(settings: CodegenSettings, layer_id: str, table: Table) -> str:
    return settings.output_dir_for(layer_id, table.name)


def build_layer_configs(
    settings: CodegenSettings,
    engine: TemplateEngine,
    contexts: ContextBuilder,
    only: Sequence[str] = (),
) -> List[LayerConfig]:
    """
    One ``LayerConfig`` per layer in fixed order. *only* narrows the run to
    the named layers without touching the settings.
    """
    configs: List[LayerConfig] = []
    for layer_id in LAYER_IDS:
        layer: CodegenLayer = LAYER_CLASSES[layer_id](settings, engine, contexts)
        enabled: bool = settings.layer(layer_id).enabled and (not only or layer_id in only)
        configs.append(
            LayerConfig(
                layer=layer,
                enabled=enabled,
                output_dir=settings.layer(layer_id).output_dir,
                is_table_enabled=functools.partial(_table_enabled, settings, layer_id),
                output_dir_for_table=functools.partial(_table_output_dir, settings, layer_id),
            )
        )
    logger.debug("Layer configs: %s", [(c.layer.layer_id, c.enabled) for c in configs])
    return configs


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ENTITY_BASE_DERIVES",
    "DTO_BASE_DERIVES",
    "VO_BASE_DERIVES",
    "combine_derives",
    "has_float_column",
    "CodegenLayer",
    "EntityLayer",
    "DtoLayer",
    "VoLayer",
    "ServiceLayer",
    "RouteLayer",
    "LAYER_CLASSES",
    "LayerConfig",
    "build_layer_configs",
]

logger.debug("seagen.layers loaded — %d public symbols.", len(__all__))
