# File: seagen/__init__.py
"""
Seagen — Sea-ORM / spring-rs Layered Code Generator
=====================================================

Turns relational schema metadata (JSON/YAML) into Sea-ORM entities, DTOs,
VOs, services and spring-rs route handlers, and re-runs safely against a
crate that has been edited by hand.

Architecture overview::

    ┌──────────────┐     ┌────────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│ CodeGenerator  │────▶│ planner + layers │
    │   (cli.py)   │     │ (generator.py) │     │ (Jinja2 render)  │
    └──────────────┘     └───────┬────────┘     └──────────────────┘
                                 │
              ┌──────────────────┼──────────────────┐
              ▼                  ▼                  ▼
       ┌────────────┐     ┌────────────┐     ┌──────────────┐
       │ validators │     │ relations  │     │  exporters   │
       │ dialects   │     │ attributes │     │ merger/index │
       └────────────┘     └────────────┘     └──────────────┘

Usage::

    # As a library
    from seagen import CodeGenerator
    report = CodeGenerator(dry_run=True).generate_from_file(Path("schema.yaml"), Path("."))
    print(report.summary())

    # From the command line
    seagen -s schema.yaml -p ./my_crate -v
"""

from __future__ import annotations

__version__: str = "0.1.0"
__license__: str = "MIT"

from seagen.errors import ConfigError, SeagenError, TemplateNotFoundError
from seagen.models import (
    CodegenSettings,
    Column,
    ConflictResolution,
    ConflictStrategy,
    Dialect,
    GeneratedFile,
    LayerSettings,
    RawTable,
    Relation,
    RelationType,
    Table,
    TableOverride,
    VirtualColumn,
)
from seagen.relations import detect_relations, merge_relations
from seagen.attributes import resolve_column_attributes
from seagen.merger import merge_generated_region
from seagen.planner import PlanResult, plan
from seagen.exporters import ConflictPolicy, ExportResult, ProjectExporter, classify, resolve_conflicts
from seagen.dependencies import ensure_dependencies, patch_manifest
from seagen.validators import ValidationResult, validate_full
from seagen.templates import TemplateEngine
from seagen.utils import Timer, to_pascal_case, to_snake_case
from seagen.generator import CodeGenerator, GenerationReport

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    "__version__",
    "__license__",
    # Core orchestrator
    "CodeGenerator",
    "GenerationReport",
    # Errors
    "SeagenError",
    "ConfigError",
    "TemplateNotFoundError",
    # Models
    "CodegenSettings",
    "Column",
    "ConflictResolution",
    "ConflictStrategy",
    "Dialect",
    "GeneratedFile",
    "LayerSettings",
    "RawTable",
    "Relation",
    "RelationType",
    "Table",
    "TableOverride",
    "VirtualColumn",
    # Engine
    "detect_relations",
    "merge_relations",
    "resolve_column_attributes",
    "merge_generated_region",
    "plan",
    "PlanResult",
    "classify",
    "resolve_conflicts",
    "ConflictPolicy",
    "ProjectExporter",
    "ExportResult",
    "ensure_dependencies",
    "patch_manifest",
    "validate_full",
    "ValidationResult",
    "TemplateEngine",
    # Utilities
    "Timer",
    "to_pascal_case",
    "to_snake_case",
]
