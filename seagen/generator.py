# File: seagen/generator.py
"""
Seagen - Generation Pipeline (Orchestrator)
============================================

Connects every phase of a run:

    Input → Validation → Schema model → Relations → Plan → Classify → Apply
          → Cargo.toml

Workflow::

    1. Load ``tables`` + ``settings`` from a YAML/JSON file (or accept
       in-memory objects).
    2. Narrow to the selected tables and validate them with the overrides.
    3. Convert raw tables to ``Table`` snapshots and apply overrides.
    4. Detect relations and merge them with user-declared ones.
    5. Plan the files of every enabled layer.
    6. Classify planned files against disk and resolve conflicts. This is the
       last point at which the conflict prompt may be called.
    7. Apply the writes (skipped in dry-run mode).
    8. Patch the project's Cargo.toml with required crates.

Error handling strategy:
    - Validation errors abort the run in strict mode; otherwise only the
      tables they concern are dropped.
    - A table that fails to build or render is skipped; the rest proceed.
    - Write errors are recorded per file; files already written stay.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple

import yaml
from pydantic import ValidationError as PydanticValidationError

from seagen.context import ContextBuilder
from seagen.dependencies import ensure_dependencies
from seagen.dialects import detect_dialect, read_table
from seagen.errors import ConfigError
from seagen.exporters import (
    ConflictPolicy,
    ConflictPrompt,
    ExportResult,
    FileAction,
    PlannedWrite,
    ProjectExporter,
    classify,
    resolve_conflicts,
)
from seagen.layers import DERIVE_VALIDATE, LayerConfig, build_layer_configs
from seagen.models import (
    LAYER_IDS,
    CodegenSettings,
    ConflictResolution,
    Dialect,
    RawTable,
    Relation,
    Table,
)
from seagen.planner import PlanResult, plan
from seagen.relations import RelationMap, detect_relations, merge_relations
from seagen.templates import TemplateEngine
from seagen.utils import Timer
from seagen.validators import ValidationResult, validate_full

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("seagen.generator")

STEP_VALIDATE: str = "validate"
STEP_GENERATE: str = "generate"
STEP_EXPORT: str = "export"


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """Everything ``CodeGenerator.generate()`` did, or would do in a dry run."""

    success: bool = False
    project_root: str = ""
    dry_run: bool = False
    failed_step: Optional[str] = None

    total_tables_processed: int = 0
    total_elapsed_seconds: float = 0.0
    dialect: str = ""

    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    validation_errors: List[str] = field(default_factory=list)
    validation_warnings: List[str] = field(default_factory=list)
    generation_errors: List[str] = field(default_factory=list)
    export_errors: List[str] = field(default_factory=list)
    export_warnings: List[str] = field(default_factory=list)
    skipped_tables: List[str] = field(default_factory=list)

    files_planned: List[str] = field(default_factory=list)
    files_written: List[str] = field(default_factory=list)
    files_merged: List[str] = field(default_factory=list)
    files_skipped: List[str] = field(default_factory=list)
    files_unchanged: List[str] = field(default_factory=list)
    backups: List[str] = field(default_factory=list)
    modules_registered: List[str] = field(default_factory=list)
    dependencies_added: List[str] = field(default_factory=list)

    planned: List[PlannedWrite] = field(default_factory=list)
    decisions: Dict[str, ConflictResolution] = field(default_factory=dict)

    def actions(self) -> Dict[str, str]:
        """``{path: action}`` for every planned file, conflicts shown with their resolution."""
        out: Dict[str, str] = {}
        for pw in self.planned:
            if pw.action is FileAction.CONFLICT:
                resolution = self.decisions.get(pw.path, ConflictResolution.SKIP)
                out[pw.path] = f"conflict:{ConflictResolution(resolution).value}"
            else:
                out[pw.path] = pw.action.value
        return out

    def summary(self) -> str:
        lines: List[str] = []
        status: str = "SUCCESS" if self.success else "FAILED"
        if self.dry_run:
            status += " (dry run)"
        lines.append("=" * 60)
        lines.append("  Seagen — Generation Report")
        lines.append("=" * 60)
        lines.append(f"  Status:           {status}")
        lines.append(f"  Project root:     {self.project_root}")
        lines.append(f"  Dialect:          {self.dialect or '-'}")
        lines.append(f"  Tables processed: {self.total_tables_processed}")
        lines.append(f"  Files planned:    {len(self.files_planned)}")
        if not self.dry_run:
            lines.append(f"  Written:          {len(self.files_written)}")
            lines.append(f"  Merged:           {len(self.files_merged)}")
            lines.append(f"  Skipped:          {len(self.files_skipped)}")
            lines.append(f"  Unchanged:        {len(self.files_unchanged)}")
            lines.append(f"  Backups:          {len(self.backups)}")
        lines.append(f"  Total time:       {self.total_elapsed_seconds:.3f}s")
        lines.append("-" * 60)

        if self.step_metrics:
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.step_name:<24s} {step.elapsed_seconds:>7.3f}s  {step.detail}"
                )

        if self.dry_run and self.planned:
            lines.append("-" * 60)
            lines.append("  Planned Actions:")
            for path, action in self.actions().items():
                lines.append(f"    {action:<16s} {path}")

        sections: List[Tuple[str, List[str], str]] = [
            ("Validation Errors", self.validation_errors, "✗"),
            ("Validation Warnings", self.validation_warnings, "!"),
            ("Generation Errors", self.generation_errors, "✗"),
            ("Export Errors", self.export_errors, "✗"),
            ("Export Warnings", self.export_warnings, "!"),
            ("Skipped Tables", self.skipped_tables, "⊘"),
            ("Cargo.toml Additions", self.dependencies_added, "+"),
        ]
        for title, items, icon in sections:
            if items:
                lines.append("-" * 60)
                lines.append(f"  {title} ({len(items)}):")
                for item in items:
                    lines.append(f"    {icon} {item}")

        lines.append("=" * 60)
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Input loader helpers
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Dict[str, Any]:
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a JSON object at top level, got {type(data).__name__}.")
    return data


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping at top level, got {type(data).__name__}.")
    return data


def load_input_file(path: Path) -> Dict[str, Any]:
    """
    Load a generator input file (JSON or YAML), dispatching on extension.

    Raises:
        ConfigError: missing file or unparseable content.
    """
    if not path.exists():
        raise ConfigError(f"Input file not found: {path}")
    if not path.is_file():
        raise ConfigError(f"Input path is not a file: {path}")

    suffix: str = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _load_yaml_file(path)
    if suffix == ".json":
        return _load_json_file(path)

    logger.info("Unknown extension '%s' — trying JSON then YAML.", suffix)
    try:
        return _load_json_file(path)
    except ConfigError:
        return _load_yaml_file(path)


def parse_input(
    raw: Mapping[str, Any],
    settings_overrides: Optional[Mapping[str, Any]] = None,
) -> Tuple[List[RawTable], CodegenSettings]:
    """
    Parse ``{"tables": [...], "settings": {...}}`` into models.

    *settings_overrides* (typically from CLI flags) are laid over the file's
    ``settings`` before validation.

    Raises:
        ConfigError: missing ``tables`` or a model that fails validation.
    """
    tables_data: Any = raw.get("tables")
    if not isinstance(tables_data, list):
        raise ConfigError("Cannot find table list in input. Expected top-level key: 'tables'.")

    settings_data: Dict[str, Any] = dict(raw.get("settings") or {})
    if settings_overrides:
        settings_data.update(settings_overrides)

    try:
        raw_tables: List[RawTable] = [RawTable.model_validate(t) for t in tables_data]
    except PydanticValidationError as exc:
        raise ConfigError(f"Table input validation failed: {exc}") from exc
    try:
        settings: CodegenSettings = CodegenSettings.model_validate(settings_data)
    except PydanticValidationError as exc:
        raise ConfigError(f"Settings validation failed: {exc}") from exc

    logger.info("Parsed input: %d table(s).", len(raw_tables))
    return raw_tables, settings


def select_tables(raw_tables: Sequence[RawTable], settings: CodegenSettings) -> List[RawTable]:
    """Tables in the selection, input order kept. ``None`` selects all."""
    if settings.selected_tables is None:
        return list(raw_tables)
    wanted: Set[str] = set(settings.selected_tables)
    return [t for t in raw_tables if t.name in wanted]


def resolve_dialect(raw_tables: Sequence[RawTable], settings: CodegenSettings) -> Dialect:
    dialect = Dialect(settings.dialect)
    if dialect is Dialect.AUTO:
        dialect = detect_dialect(raw_tables)
        logger.info("Detected dialect: %s", dialect.value)
    return dialect


def custom_relations(settings: CodegenSettings, names: Sequence[str]) -> Dict[str, List[Relation]]:
    """User-declared relations of the given tables, keyed by table name."""
    out: Dict[str, List[Relation]] = {}
    for name in names:
        override = settings.override_for(name)
        if override is not None and override.relations:
            out[name] = list(override.relations)
    return out


# ---------------------------------------------------------------------------
# CodeGenerator : pipeline orchestrator
# ---------------------------------------------------------------------------


class CodeGenerator:
    """
    Runs the generation pipeline for one project.

    Usage::

        generator = CodeGenerator(dry_run=True)
        report = generator.generate_from_file(Path("schema.yaml"), Path("."))
        print(report.summary())

    ``conflict_prompt`` is consulted for conflicts when the settings ask for
    interactive resolution. It is only ever called during classification.
    """

    def __init__(
        self,
        *,
        strict_validation: bool = False,
        dry_run: bool = False,
        only_layers: Sequence[str] = (),
        conflict_prompt: Optional[ConflictPrompt] = None,
        atomic_writes: bool = True,
    ) -> None:
        unknown: List[str] = [lid for lid in only_layers if lid not in LAYER_IDS]
        if unknown:
            raise ConfigError(f"Unknown layer id(s): {unknown}; expected one of {list(LAYER_IDS)}")
        self._strict_validation: bool = strict_validation
        self._dry_run: bool = dry_run
        self._only_layers: Tuple[str, ...] = tuple(only_layers)
        self._conflict_prompt: Optional[ConflictPrompt] = conflict_prompt
        self._atomic_writes: bool = atomic_writes

        logger.debug(
            "CodeGenerator initialised: strict=%s, dry_run=%s, layers=%s.",
            strict_validation, dry_run, list(only_layers) or "all",
        )

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def generate_from_file(
        self,
        input_path: Path,
        project_root: Path,
        *,
        settings_overrides: Optional[Mapping[str, Any]] = None,
    ) -> GenerationReport:
        """Load *input_path* and run the pipeline. Raises ``ConfigError`` on bad input."""
        raw_tables, settings = parse_input(load_input_file(input_path), settings_overrides)
        return self.generate(raw_tables, settings, project_root)

    def validate_only(
        self, raw_tables: Sequence[RawTable], settings: CodegenSettings
    ) -> ValidationResult:
        selected: List[RawTable] = select_tables(raw_tables, settings)
        return validate_full(selected, settings, [t.name for t in raw_tables])

    def generate(
        self,
        raw_tables: Sequence[RawTable],
        settings: CodegenSettings,
        project_root: Path,
    ) -> GenerationReport:
        report = GenerationReport(project_root=str(project_root.resolve()), dry_run=self._dry_run)
        pipeline_start: float = time.perf_counter()

        selected: List[RawTable] = select_tables(raw_tables, settings)
        blocked: Optional[Set[str]] = self._step_validate(selected, raw_tables, settings, report)
        if blocked is None:
            return self._finalise_report(report, time.perf_counter() - pipeline_start)
        selected = [t for t in selected if t.name not in blocked]

        tables, relations = self._step_build_model(selected, settings, report)
        plan_result: PlanResult = self._step_plan(tables, relations, settings, project_root, report)
        if not plan_result.files:
            if tables:
                report.generation_errors.append("No files were generated.")
                report.failed_step = STEP_GENERATE
            return self._finalise_report(report, time.perf_counter() - pipeline_start)

        planned: List[PlannedWrite] = self._step_classify(
            plan_result, settings, project_root, report
        )
        if report.failed_step is not None:
            return self._finalise_report(report, time.perf_counter() - pipeline_start)
        if planned and not self._dry_run:
            self._step_export(planned, report.decisions, project_root, report)
        self._step_dependencies(tables, settings, project_root, report)

        return self._finalise_report(report, time.perf_counter() - pipeline_start)

    # -----------------------------------------------------------------
    # Pipeline step: Validation
    # -----------------------------------------------------------------

    def _step_validate(
        self,
        selected: Sequence[RawTable],
        all_tables: Sequence[RawTable],
        settings: CodegenSettings,
        report: GenerationReport,
    ) -> Optional[Set[str]]:
        """
        Returns the table names to drop, or None when the run must stop.
        """
        with Timer("validation") as t:
            result: ValidationResult = validate_full(selected, settings, [r.name for r in all_tables])

        report.validation_errors.extend(str(e) for e in result.errors)
        report.validation_warnings.extend(str(w) for w in result.warnings)
        for warn in result.warnings:
            logger.warning("  ! %s", warn)

        blocked: Set[str] = result.tables_with_errors()
        global_errors: bool = any(e.table is None for e in result.errors)
        stop: bool = result.has_errors and (self._strict_validation or global_errors)

        report.step_metrics.append(GenerationStepMetric(
            step_name="Validate",
            success=not stop,
            elapsed_seconds=t.elapsed,
            detail=f"{result.error_count} error(s), {result.warning_count} warning(s)",
        ))

        if stop:
            report.failed_step = STEP_VALIDATE
            for err in result.errors:
                logger.error("  ✗ %s", err)
            return None

        for name in sorted(blocked):
            logger.warning("Skipping table %s: validation errors", name)
            report.skipped_tables.append(name)
        return blocked

    # -----------------------------------------------------------------
    # Pipeline step: Schema model and relations
    # -----------------------------------------------------------------

    def _step_build_model(
        self,
        selected: Sequence[RawTable],
        settings: CodegenSettings,
        report: GenerationReport,
    ) -> Tuple[List[Table], RelationMap]:
        with Timer("schema_model") as t:
            dialect: Dialect = resolve_dialect(selected, settings)
            report.dialect = dialect.value

            tables: List[Table] = []
            built_raw: List[RawTable] = []
            for raw in selected:
                try:
                    table: Table = read_table(raw, dialect, settings.table_name_prefix)
                    override = settings.override_for(raw.name)
                    if override is not None:
                        table = override.apply_to(table)
                except (ValueError, PydanticValidationError) as exc:
                    msg: str = f"{raw.name}: {type(exc).__name__}: {exc}"
                    logger.warning("Skipping table %s", msg)
                    report.generation_errors.append(msg)
                    report.skipped_tables.append(raw.name)
                    continue
                tables.append(table)
                built_raw.append(raw)

            detected: RelationMap = detect_relations(built_raw)
            names: List[str] = [t.name for t in tables]
            relations: RelationMap = merge_relations(
                detected, custom_relations(settings, names), names
            )

        report.total_tables_processed = len(tables)
        relation_count: int = sum(len(v) for v in relations.values())
        report.step_metrics.append(GenerationStepMetric(
            step_name="Schema Model",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{len(tables)} table(s), {relation_count} relation(s), {dialect.value}",
        ))
        return tables, relations

    # -----------------------------------------------------------------
    # Pipeline step: Planning
    # -----------------------------------------------------------------

    def _template_engine(self, settings: CodegenSettings, project_root: Path) -> TemplateEngine:
        if settings.use_custom_templates:
            return TemplateEngine(project_root / settings.custom_template_path)
        return TemplateEngine()

    def _layer_configs(
        self, settings: CodegenSettings, tables: Sequence[Table], relations: RelationMap,
        project_root: Path,
    ) -> List[LayerConfig]:
        engine: TemplateEngine = self._template_engine(settings, project_root)
        contexts = ContextBuilder(settings, tables, relations)
        return build_layer_configs(settings, engine, contexts, self._only_layers)

    def _step_plan(
        self,
        tables: Sequence[Table],
        relations: RelationMap,
        settings: CodegenSettings,
        project_root: Path,
        report: GenerationReport,
    ) -> PlanResult:
        with Timer("plan") as t:
            configs: List[LayerConfig] = self._layer_configs(settings, tables, relations, project_root)
            result: PlanResult = plan(configs, tables)

        for failure in result.failures:
            report.generation_errors.append(f"{failure.table_name} [{failure.layer_id}]: {failure.error}")
        for name in result.skipped_tables:
            if name not in report.skipped_tables:
                report.skipped_tables.append(name)
        report.files_planned = [f.path for f in result.files]

        report.step_metrics.append(GenerationStepMetric(
            step_name="Plan",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{len(result.files)} file(s), {len(result.failures)} failure(s)",
        ))
        return result

    # -----------------------------------------------------------------
    # Pipeline step: Classification (last point where prompting is allowed)
    # -----------------------------------------------------------------

    def _step_classify(
        self,
        plan_result: PlanResult,
        settings: CodegenSettings,
        project_root: Path,
        report: GenerationReport,
    ) -> List[PlannedWrite]:
        with Timer("classify") as t:
            try:
                planned: List[PlannedWrite] = classify(plan_result.files, project_root)
            except (OSError, UnicodeDecodeError) as exc:
                error_msg: str = f"Cannot read existing files: {type(exc).__name__}: {exc}"
                report.export_errors.append(error_msg)
                report.failed_step = STEP_EXPORT
                logger.error(error_msg)
                planned = []
            prompt: Optional[ConflictPrompt] = None if self._dry_run else self._conflict_prompt
            policy = ConflictPolicy.from_strategy(settings.conflict_strategy, prompt)
            report.decisions = resolve_conflicts(planned, policy)
        report.planned = planned

        conflict_count: int = sum(1 for pw in planned if pw.action is FileAction.CONFLICT)
        report.step_metrics.append(GenerationStepMetric(
            step_name="Classify",
            success=report.failed_step is None,
            elapsed_seconds=t.elapsed,
            detail=f"{conflict_count} conflict(s)",
        ))
        return planned

    # -----------------------------------------------------------------
    # Pipeline step: Export
    # -----------------------------------------------------------------

    def _step_export(
        self,
        planned: Sequence[PlannedWrite],
        decisions: Mapping[str, ConflictResolution],
        project_root: Path,
        report: GenerationReport,
    ) -> None:
        with Timer("export") as t:
            exporter = ProjectExporter(project_root, atomic_writes=self._atomic_writes)
            result: ExportResult = exporter.apply(planned, decisions)

        report.files_written = list(result.written)
        report.files_merged = list(result.merged)
        report.files_skipped = list(result.skipped)
        report.files_unchanged = list(result.unchanged)
        report.backups = list(result.backed_up)
        report.modules_registered = list(result.registered)
        report.export_errors.extend(result.errors)
        report.export_warnings.extend(result.warnings)
        if not result.success:
            report.failed_step = STEP_EXPORT

        report.step_metrics.append(GenerationStepMetric(
            step_name="Export",
            success=result.success,
            elapsed_seconds=t.elapsed,
            detail=(
                f"{len(result.written)} written, {len(result.merged)} merged, "
                f"{len(result.skipped)} skipped"
            ),
        ))

    # -----------------------------------------------------------------
    # Pipeline step: Cargo dependencies
    # -----------------------------------------------------------------

    def _active_layers(self, settings: CodegenSettings) -> List[str]:
        return [
            lid for lid in settings.enabled_layers
            if not self._only_layers or lid in self._only_layers
        ]

    def _step_dependencies(
        self,
        tables: Sequence[Table],
        settings: CodegenSettings,
        project_root: Path,
        report: GenerationReport,
    ) -> None:
        layers: List[str] = self._active_layers(settings)
        derives: List[str] = []
        for layer_id in layers:
            for table in tables:
                if settings.is_layer_enabled_for(layer_id, table.name):
                    derives.extend(settings.derives_for(layer_id, table.name))
        route_tables: List[Table] = [
            t for t in tables if "route" in layers and settings.is_layer_enabled_for("route", t.name)
        ]
        route_with_validate: bool = any(
            DERIVE_VALIDATE in settings.derives_for("dto", t.name) for t in route_tables
        )

        with Timer("dependencies") as t:
            try:
                added: List[str] = ensure_dependencies(
                    project_root,
                    dict.fromkeys(derives),
                    tables,
                    route_enabled=bool(route_tables),
                    route_with_validate=route_with_validate,
                    dry_run=self._dry_run,
                )
            except OSError as exc:
                error_msg: str = f"Failed to patch Cargo.toml: {type(exc).__name__}: {exc}"
                report.export_errors.append(error_msg)
                report.failed_step = report.failed_step or STEP_EXPORT
                logger.error(error_msg)
                added = []
        report.dependencies_added = added

        report.step_metrics.append(GenerationStepMetric(
            step_name="Cargo Dependencies",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=", ".join(added) if added else "nothing to add",
        ))

    # -----------------------------------------------------------------
    # Internal: finalise report
    # -----------------------------------------------------------------

    def _finalise_report(self, report: GenerationReport, total_elapsed: float) -> GenerationReport:
        report.total_elapsed_seconds = total_elapsed
        report.success = report.failed_step is None
        if report.success:
            logger.info("Generation finished in %.3fs.", total_elapsed)
        else:
            logger.error("Generation failed at step '%s'.", report.failed_step)
        return report


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "STEP_VALIDATE",
    "STEP_GENERATE",
    "STEP_EXPORT",
    "GenerationStepMetric",
    "GenerationReport",
    "load_input_file",
    "parse_input",
    "select_tables",
    "resolve_dialect",
    "custom_relations",
    "CodeGenerator",
]

logger.debug("seagen.generator loaded — %d public symbols.", len(__all__))
