# File: seagen/models.py
"""
Seagen - Core Data Models
==========================
Pydantic V2 models for the schema snapshot, per-table overrides, relations,
planned output files and generator settings. These models form the single
source of truth for the pipeline:
Raw schema → Table → (override) → Relations → Plan → Classify → Apply.

Schema values (``Column``, ``Table``, ``Relation``) are frozen. Applying an
override never mutates the source snapshot; it returns a new ``Table`` built
with ``model_copy(update=...)``.
"""

from __future__ import annotations

import copy
import logging
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from seagen.utils import (
    normalize_dir,
    option_of,
    rust_field_name,
    strip_prefix,
    to_pascal_case,
    to_snake_case,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("seagen.models")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

LAYER_IDS: Tuple[str, ...] = ("entity", "dto", "vo", "service", "route")

EXCLUDED_INSERT_COLUMNS: FrozenSet[str] = frozenset(
    {"created_at", "updated_at", "create_time", "update_time"}
)
EXCLUDED_UPDATE_COLUMNS: FrozenSet[str] = frozenset({"id", "created_at", "create_time"})

# Schemas that map to the output directory itself (no sub-directory).
DEFAULT_SCHEMAS: FrozenSet[str] = frozenset({"", "public", "main", "dbo"})

# Target types excluded from query filters.
_NON_QUERYABLE_TYPES: FrozenSet[str] = frozenset({"Vec<u8>", "Json"})

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RelationType(str, Enum):
    """Relation direction inferred from a foreign key."""

    BELONGS_TO = "belongs_to"
    HAS_MANY = "has_many"
    HAS_ONE = "has_one"


class ConflictResolution(str, Enum):
    """What to do with an existing file that a planned file would replace."""

    SKIP = "skip"
    OVERWRITE = "overwrite"
    BACKUP = "backup"


class ConflictStrategy(str, Enum):
    """Configured conflict behaviour. ``ask`` defers to an interactive prompt."""

    ASK = "ask"
    SKIP = "skip"
    OVERWRITE = "overwrite"
    BACKUP = "backup"


class FileKind(str, Enum):
    """Role of a planned file; decides how the write phase treats it."""

    SOURCE = "source"
    ENTITY = "entity"
    MODULE_INDEX = "module_index"
    REEXPORT_INDEX = "reexport_index"


class Dialect(str, Enum):
    """SQL dialect used for type mapping."""

    AUTO = "auto"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    SQLITE = "sqlite"


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    frozen=False,
    extra="forbid",
)

_FROZEN_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    use_enum_values=True,
    frozen=True,
    extra="forbid",
)


# ---------------------------------------------------------------------------
# Relations
# ---------------------------------------------------------------------------


class Relation(BaseModel):
    """
    A relation owned by one table.

    ``from_column`` lives on the owning table; ``to_column`` on the target.
    """

    model_config = _FROZEN_CONFIG

    relation_type: RelationType = Field(..., description="belongs_to / has_many / has_one.")
    target_table: str = Field(..., min_length=1, description="Target table name.")
    from_column: str = Field(..., min_length=1, description="Column on the owning table.")
    to_column: str = Field(default="id", min_length=1, description="Column on the target table.")

    @property
    def key(self) -> Tuple[str, str, str]:
        """Identity used when merging detected and user-declared relations."""
        return (self.target_table.lower(), self.from_column, self.to_column)

    def __repr__(self) -> str:
        return (
            f"<Relation {self.relation_type} {self.target_table} "
            f"({self.from_column} → {self.to_column})>"
        )


# ---------------------------------------------------------------------------
# Schema snapshot: Column / Table
# ---------------------------------------------------------------------------


class Column(BaseModel):
    """
    A single column of a table snapshot.

    ``rust_type`` is the resolved target type, never wrapped in ``Option``;
    ``full_rust_type`` applies the wrapper for nullable columns.
    """

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1, description="Column name.")
    sql_type: str = Field(default="", description="Raw SQL type as reported by the reader.")
    rust_type: str = Field(default="String", min_length=1, description="Resolved Rust type.")
    is_primary_key: bool = Field(default=False)
    is_nullable: bool = Field(default=False)
    is_auto_increment: bool = Field(default=False)
    is_unique: bool = Field(default=False)
    comment: Optional[str] = Field(default=None)
    default_value: Optional[str] = Field(default=None)
    ext: Dict[str, str] = Field(
        default_factory=dict, description="Arbitrary extension properties for templates."
    )
    is_virtual: bool = Field(
        default=False, description="True for user-synthesized columns absent from the schema."
    )
    field_name_override: Optional[str] = Field(
        default=None, description="Custom Rust field name."
    )

    @computed_field  # type: ignore[misc]
    @property
    def field_name(self) -> str:
        return rust_field_name(self.field_name_override or self.name)

    @computed_field  # type: ignore[misc]
    @property
    def full_rust_type(self) -> str:
        return option_of(self.rust_type) if self.is_nullable else self.rust_type

    def __repr__(self) -> str:
        flags: List[str] = []
        if self.is_primary_key:
            flags.append("PK")
        if self.is_virtual:
            flags.append("VIRTUAL")
        flag_str: str = f" [{', '.join(flags)}]" if flags else ""
        return f"<Column {self.name}: {self.full_rust_type}{flag_str}>"


class Table(BaseModel):
    """
    Immutable table snapshot with derived naming forms and column subsets.
    """

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1, description="Table name.")
    comment: Optional[str] = Field(default=None)
    columns: List[Column] = Field(default_factory=list)
    primary_keys: List[str] = Field(default_factory=list, description="PK column names.")
    table_name_prefix: str = Field(default="", description="Prefix stripped from names, e.g. 't_'.")
    schema_name: Optional[str] = Field(default=None, description="Database schema.")
    custom_entity_name: Optional[str] = Field(default=None)

    @model_validator(mode="before")
    @classmethod
    def _auto_detect_pks(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("primary_keys"):
            detected: List[str] = []
            for col in data.get("columns") or []:
                if isinstance(col, Column):
                    if col.is_primary_key:
                        detected.append(col.name)
                elif isinstance(col, dict) and col.get("is_primary_key"):
                    detected.append(col["name"])
            if detected:
                data = {**data, "primary_keys": detected}
        return data

    @model_validator(mode="after")
    def _validate_unique_columns(self) -> "Table":
        seen: set = set()
        for col in self.columns:
            if col.name in seen:
                raise ValueError(f"Duplicate column '{col.name}' in table '{self.name}'")
            seen.add(col.name)
        return self

    # -- Naming forms -------------------------------------------------------

    @computed_field  # type: ignore[misc]
    @property
    def stripped_name(self) -> str:
        return strip_prefix(self.name, self.table_name_prefix)

    @computed_field  # type: ignore[misc]
    @property
    def entity_name(self) -> str:
        return self.custom_entity_name or to_pascal_case(self.stripped_name)

    @computed_field  # type: ignore[misc]
    @property
    def module_name(self) -> str:
        return to_snake_case(self.custom_entity_name or self.stripped_name)

    @computed_field  # type: ignore[misc]
    @property
    def service_name(self) -> str:
        return f"{self.entity_name}Service"

    @computed_field  # type: ignore[misc]
    @property
    def dto_create_name(self) -> str:
        return f"Create{self.entity_name}Dto"

    @computed_field  # type: ignore[misc]
    @property
    def dto_update_name(self) -> str:
        return f"Update{self.entity_name}Dto"

    @computed_field  # type: ignore[misc]
    @property
    def query_name(self) -> str:
        return f"{self.entity_name}Query"

    @computed_field  # type: ignore[misc]
    @property
    def vo_name(self) -> str:
        return f"{self.entity_name}Vo"

    @computed_field  # type: ignore[misc]
    @property
    def schema_sub_dir(self) -> str:
        """Output sub-directory for non-default schemas; '' for the default one."""
        schema: str = (self.schema_name or "").strip()
        if schema.lower() in DEFAULT_SCHEMAS:
            return ""
        return to_snake_case(schema)

    # -- Primary key --------------------------------------------------------

    @property
    def primary_key_columns(self) -> List[Column]:
        by_name: Dict[str, Column] = {c.name: c for c in self.columns}
        return [by_name[n] for n in self.primary_keys if n in by_name]

    @property
    def primary_key_column(self) -> Optional[Column]:
        pks: List[Column] = self.primary_key_columns
        return pks[0] if pks else None

    @property
    def has_composite_pk(self) -> bool:
        return len(self.primary_key_columns) > 1

    @property
    def primary_key_name(self) -> str:
        pk: Optional[Column] = self.primary_key_column
        return pk.name if pk else "id"

    @property
    def primary_key_type(self) -> str:
        pk: Optional[Column] = self.primary_key_column
        return pk.rust_type if pk else "i32"

    # -- Column subsets -----------------------------------------------------

    @property
    def insert_columns(self) -> List[Column]:
        """Columns a create request carries (no auto-increment, no timestamps)."""
        return [
            c for c in self.columns
            if not c.is_virtual
            and not c.is_auto_increment
            and c.name not in EXCLUDED_INSERT_COLUMNS
        ]

    @property
    def update_columns(self) -> List[Column]:
        """Columns an update request may change (no PK, no created-timestamp)."""
        return [
            c for c in self.columns
            if not c.is_virtual
            and not c.is_primary_key
            and c.name not in EXCLUDED_UPDATE_COLUMNS
        ]

    @property
    def query_columns(self) -> List[Column]:
        """Columns usable as list filters."""
        return [
            c for c in self.columns
            if not c.is_virtual and c.rust_type not in _NON_QUERYABLE_TYPES
        ]

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> Optional[Column]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def __repr__(self) -> str:
        return (
            f"<Table {self.name} → {self.entity_name} "
            f"({len(self.columns)} cols, schema={self.schema_sub_dir or '-'})>"
        )


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------


class VirtualColumn(BaseModel):
    """A user-synthesized column appended to the entity but never persisted."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    rust_type: str = Field(default="String", min_length=1)
    is_nullable: bool = Field(default=True)
    comment: Optional[str] = Field(default=None)
    ext: Dict[str, str] = Field(default_factory=dict)

    def to_column(self) -> Column:
        return Column(
            name=self.name,
            sql_type="",
            rust_type=self.rust_type,
            is_nullable=self.is_nullable,
            comment=self.comment,
            ext=dict(self.ext),
            is_virtual=True,
        )


class TableOverride(BaseModel):
    """
    Per-table customization keyed by the original table name.

    Layer maps (``layer_enabled``, ``output_dirs``, ``extra_derives``) are keyed
    by layer id; a missing key means "follow the global setting".
    """

    model_config = _SHARED_CONFIG

    custom_entity_name: Optional[str] = Field(default=None)
    excluded_columns: List[str] = Field(default_factory=list)
    column_type_overrides: Dict[str, str] = Field(default_factory=dict)
    column_comment_overrides: Dict[str, str] = Field(default_factory=dict)
    column_name_overrides: Dict[str, str] = Field(default_factory=dict)
    column_ext: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    virtual_columns: List[VirtualColumn] = Field(default_factory=list)
    relations: List[Relation] = Field(default_factory=list)
    layer_enabled: Dict[str, bool] = Field(default_factory=dict)
    output_dirs: Dict[str, str] = Field(default_factory=dict)
    extra_derives: Dict[str, List[str]] = Field(default_factory=dict)

    @field_validator("layer_enabled", "output_dirs", "extra_derives")
    @classmethod
    def _known_layers(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        unknown: List[str] = [k for k in v if k not in LAYER_IDS]
        if unknown:
            raise ValueError(f"Unknown layer id(s): {unknown}; expected one of {list(LAYER_IDS)}")
        return v

    @property
    def referenced_columns(self) -> List[str]:
        """Every column name this override refers to (for validation)."""
        names: List[str] = list(self.excluded_columns)
        for mapping in (
            self.column_type_overrides,
            self.column_comment_overrides,
            self.column_name_overrides,
            self.column_ext,
        ):
            names.extend(mapping.keys())
        return list(dict.fromkeys(names))

    def is_layer_enabled(self, layer_id: str, default: bool = True) -> bool:
        return self.layer_enabled.get(layer_id, default)

    def output_dir_for(self, layer_id: str) -> Optional[str]:
        return self.output_dirs.get(layer_id) or None

    def derives_for(self, layer_id: str) -> Optional[List[str]]:
        return self.extra_derives.get(layer_id)

    def apply_to(self, table: Table) -> Table:
        """
        Return a new ``Table`` with this override applied.

        Order: drop excluded columns, rewrite type/comment/name/ext of the
        retained ones, then append virtual columns.
        """
        excluded: FrozenSet[str] = frozenset(self.excluded_columns)
        columns: List[Column] = []
        for col in table.columns:
            if col.name in excluded:
                continue
            update: Dict[str, Any] = {}
            if col.name in self.column_type_overrides:
                update["rust_type"] = self.column_type_overrides[col.name]
            if col.name in self.column_comment_overrides:
                update["comment"] = self.column_comment_overrides[col.name]
            if col.name in self.column_name_overrides:
                update["field_name_override"] = self.column_name_overrides[col.name]
            if col.name in self.column_ext:
                update["ext"] = {**col.ext, **self.column_ext[col.name]}
            columns.append(col.model_copy(update=update) if update else col)

        columns.extend(vc.to_column() for vc in self.virtual_columns)

        return table.model_copy(
            update={
                "columns": columns,
                "primary_keys": [n for n in table.primary_keys if n not in excluded],
                "custom_entity_name": self.custom_entity_name or table.custom_entity_name,
            }
        )


# ---------------------------------------------------------------------------
# Raw schema-reader output
# ---------------------------------------------------------------------------


class RawColumn(BaseModel):
    """Column facts as delivered by the (external) schema reader."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    sql_type: str = Field(..., alias="type", min_length=1)
    is_nullable: bool = Field(default=True, alias="nullable")
    is_auto_increment: bool = Field(default=False, alias="auto_increment")
    is_primary_key: bool = Field(default=False, alias="primary_key")
    is_unique: bool = Field(default=False, alias="unique")
    comment: Optional[str] = Field(default=None)
    default_value: Optional[str] = Field(default=None, alias="default")


class RawForeignKey(BaseModel):
    """
    Foreign-key constraint. ``ref_table`` may be missing when the reader could
    not resolve it; relation detection then falls back to the constraint name.
    """

    model_config = _SHARED_CONFIG

    name: str = Field(default="")
    columns: List[str] = Field(..., min_length=1)
    ref_table: Optional[str] = Field(default=None)
    ref_columns: List[str] = Field(default_factory=list)


class RawIndex(BaseModel):
    model_config = _SHARED_CONFIG

    name: str = Field(default="")
    columns: List[str] = Field(..., min_length=1)
    unique: bool = Field(default=False)


class RawTable(BaseModel):
    """One table of raw schema-reader output."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    schema_name: Optional[str] = Field(default=None, alias="schema")
    comment: Optional[str] = Field(default=None)
    columns: List[RawColumn] = Field(default_factory=list)
    primary_key: List[str] = Field(default_factory=list)
    foreign_keys: List[RawForeignKey] = Field(default_factory=list)
    indexes: List[RawIndex] = Field(default_factory=list)

    @property
    def unique_columns(self) -> FrozenSet[str]:
        """Columns that participate in any unique index or unique constraint."""
        cols: set = {c.name for c in self.columns if c.is_unique}
        for idx in self.indexes:
            if idx.unique:
                cols.update(idx.columns)
        return frozenset(cols)


# ---------------------------------------------------------------------------
# Planned output
# ---------------------------------------------------------------------------


class GeneratedFile(BaseModel):
    """A single planned file: project-relative path plus content."""

    model_config = _SHARED_CONFIG

    path: str = Field(..., min_length=1, description="Project-relative path.")
    content: str = Field(..., description="Full file content.")
    kind: FileKind = Field(default=FileKind.SOURCE, description="Write-phase role.")

    @computed_field  # type: ignore[misc]
    @property
    def line_count(self) -> int:
        return self.content.count("\n") + (1 if self.content and not self.content.endswith("\n") else 0)

    @computed_field  # type: ignore[misc]
    @property
    def size_bytes(self) -> int:
        return len(self.content.encode("utf-8"))

    def __repr__(self) -> str:
        return f"<GeneratedFile {self.path} ({self.kind}, {self.line_count} lines)>"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class LayerSettings(BaseModel):
    """Global settings for one output layer."""

    model_config = _SHARED_CONFIG

    enabled: bool = Field(default=True)
    output_dir: str = Field(..., min_length=1)
    extra_derives: List[str] = Field(default_factory=list)

    @field_validator("output_dir")
    @classmethod
    def _normalize_dir(cls, v: str) -> str:
        return v.replace("\\", "/").strip().rstrip("/")


# Defaults for each layer block; a partial block in the input is laid over these.
LAYER_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "entity": {"enabled": True, "output_dir": "src/entity", "extra_derives": ["Serialize", "Deserialize"]},
    "dto": {"enabled": True, "output_dir": "src/dto", "extra_derives": []},
    "vo": {"enabled": False, "output_dir": "src/vo", "extra_derives": []},
    "service": {"enabled": True, "output_dir": "src/service", "extra_derives": []},
    "route": {"enabled": True, "output_dir": "src/route", "extra_derives": []},
}


def _default_layer(layer_id: str) -> "LayerSettings":
    return LayerSettings(**copy.deepcopy(LAYER_DEFAULTS[layer_id]))


class CodegenSettings(BaseModel):
    """
    Generator settings. Loaded from the ``settings`` key of the input file;
    CLI flags override individual values.
    """

    model_config = _SHARED_CONFIG

    entity: LayerSettings = Field(default_factory=lambda: _default_layer("entity"))
    dto: LayerSettings = Field(default_factory=lambda: _default_layer("dto"))
    vo: LayerSettings = Field(default_factory=lambda: _default_layer("vo"))
    service: LayerSettings = Field(default_factory=lambda: _default_layer("service"))
    route: LayerSettings = Field(default_factory=lambda: _default_layer("route"))

    route_prefix: str = Field(default="/api")
    table_name_prefix: str = Field(default="")
    dialect: Dialect = Field(default=Dialect.AUTO)
    conflict_strategy: ConflictStrategy = Field(default=ConflictStrategy.ASK)
    use_custom_templates: bool = Field(default=False)
    custom_template_path: str = Field(default=".spring-rs/templates")
    selected_tables: Optional[List[str]] = Field(
        default=None, description="Tables to generate; None selects every table."
    )
    table_overrides: Dict[str, TableOverride] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fill_layer_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        filled: Dict[str, Any] = dict(data)
        for layer_id in LAYER_IDS:
            block: Any = filled.get(layer_id)
            if isinstance(block, dict):
                filled[layer_id] = {**copy.deepcopy(LAYER_DEFAULTS[layer_id]), **block}
        return filled

    @field_validator("route_prefix")
    @classmethod
    def _normalize_route_prefix(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            v = "/" + v
        return v

    def layer(self, layer_id: str) -> LayerSettings:
        if layer_id not in LAYER_IDS:
            raise KeyError(f"Unknown layer '{layer_id}'")
        return getattr(self, layer_id)

    def override_for(self, table_name: str) -> Optional[TableOverride]:
        return self.table_overrides.get(table_name)

    def output_dir_for(self, layer_id: str, table_name: str) -> str:
        """Effective output directory: per-table override or the layer default."""
        ov: Optional[TableOverride] = self.override_for(table_name)
        custom: Optional[str] = ov.output_dir_for(layer_id) if ov else None
        if custom:
            return normalize_dir(custom)
        return self.layer(layer_id).output_dir

    def is_layer_enabled_for(self, layer_id: str, table_name: str) -> bool:
        ov: Optional[TableOverride] = self.override_for(table_name)
        return ov.is_layer_enabled(layer_id) if ov else True

    def derives_for(self, layer_id: str, table_name: str) -> List[str]:
        """Per-table extra derives, falling back to the layer's global selection."""
        ov: Optional[TableOverride] = self.override_for(table_name)
        custom: Optional[List[str]] = ov.derives_for(layer_id) if ov else None
        return list(custom) if custom is not None else list(self.layer(layer_id).extra_derives)

    @property
    def enabled_layers(self) -> List[str]:
        return [lid for lid in LAYER_IDS if self.layer(lid).enabled]


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "LAYER_IDS",
    "LAYER_DEFAULTS",
    "EXCLUDED_INSERT_COLUMNS",
    "EXCLUDED_UPDATE_COLUMNS",
    "DEFAULT_SCHEMAS",
    "RelationType",
    "ConflictResolution",
    "ConflictStrategy",
    "FileKind",
    "Dialect",
    "Relation",
    "Column",
    "Table",
    "VirtualColumn",
    "TableOverride",
    "RawColumn",
    "RawForeignKey",
    "RawIndex",
    "RawTable",
    "GeneratedFile",
    "LayerSettings",
    "CodegenSettings",
]

logger.debug("seagen.models loaded — %d public symbols.", len(__all__))
