# File: seagen/validators.py
"""
Seagen - Schema & Override Validators
======================================
Cross-entity checks run before planning. Pydantic already guards each model's
own shape; this module checks how raw tables, overrides and settings fit
together.

Every check returns a ``ValidationResult``; nothing raises. Items that
concern one table carry ``{"table": name}`` in their context so the
generator can drop just that table in non-strict mode.

Usage:
    from seagen.validators import validate_full
    result = validate_full(raw_tables, settings)
    if not result:
        print(result.format_report())
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from seagen.models import LAYER_IDS, CodegenSettings, RawTable

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("seagen.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------

LEVEL_ERROR: str = "error"
LEVEL_WARNING: str = "warning"
LEVEL_INFO: str = "info"

_LEVEL_MARKS: Dict[str, str] = {LEVEL_ERROR: "✗", LEVEL_WARNING: "!", LEVEL_INFO: "i"}


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """One finding; ``context["table"]`` names the table it concerns, if any."""

    level: str
    code: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def table(self) -> Optional[str]:
        return self.context.get("table")

    def __str__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"


@dataclass(slots=True)
class ValidationResult:
    """
    Issues collected by the checks, in the order they were found.

    Truthy when no issue is an error, so ``if not result:`` reads as
    "validation failed".
    """

    issues: List[ValidationIssue] = field(default_factory=list)

    def _add(self, level: str, code: str, message: str, context: Optional[Dict[str, Any]]) -> None:
        self.issues.append(ValidationIssue(level, code, message, dict(context or {})))

    def add_error(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._add(LEVEL_ERROR, code, message, context)

    def add_warning(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._add(LEVEL_WARNING, code, message, context)

    def add_info(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._add(LEVEL_INFO, code, message, context)

    def merge(self, other: "ValidationResult") -> None:
        self.issues.extend(other.issues)

    def of_level(self, level: str) -> List[ValidationIssue]:
        return [i for i in self.issues if i.level == level]

    @property
    def errors(self) -> List[ValidationIssue]:
        return self.of_level(LEVEL_ERROR)

    @property
    def warnings(self) -> List[ValidationIssue]:
        return self.of_level(LEVEL_WARNING)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    @property
    def has_errors(self) -> bool:
        return any(i.level == LEVEL_ERROR for i in self.issues)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def codes(self) -> List[str]:
        return [i.code for i in self.issues]

    def tables_with_errors(self) -> Set[str]:
        return {i.table for i in self.errors if i.table}

    def summary(self) -> str:
        return (
            f"Validation: {self.error_count} error(s), {self.warning_count} warning(s), "
            f"{len(self.issues)} total item(s)."
        )

    def format_report(self, include_info: bool = False, indent: str = "  ") -> str:
        """Summary line followed by one line per issue and its context."""
        lines: List[str] = [self.summary()]
        for issue in self.issues:
            if issue.level == LEVEL_INFO and not include_info:
                continue
            lines.append(f"{indent}{_LEVEL_MARKS[issue.level]} [{issue.code}] {issue.message}")
            lines.extend(f"{indent}     {k}: {v}" for k, v in issue.context.items())
        return "\n".join(lines)

    def __bool__(self) -> bool:
        return self.is_valid

    def __len__(self) -> int:
        return len(self.issues)


# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

_RUST_TYPE_NAME_RE: re.Pattern[str] = re.compile(r"^[A-Z][A-Za-z0-9]*$")
_SRC_DIR_RE: re.Pattern[str] = re.compile(r"^src(/|$)")


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def validate_column_names(raw_tables: Sequence[RawTable]) -> ValidationResult:
    """Column names must be unique within a table."""
    result = ValidationResult()
    for raw in raw_tables:
        counts = Counter(c.name for c in raw.columns)
        for name, count in counts.items():
            if count > 1:
                result.add_error(
                    "DUPLICATE_COLUMN_NAME",
                    f"Column '{name}' appears {count} times in table '{raw.name}'.",
                    {"table": raw.name, "column": name},
                )
    return result


def validate_primary_keys(raw_tables: Sequence[RawTable]) -> ValidationResult:
    result = ValidationResult()
    for raw in raw_tables:
        has_pk: bool = bool(raw.primary_key) or any(c.is_primary_key for c in raw.columns)
        if not has_pk:
            result.add_warning(
                "NO_PRIMARY_KEY",
                f"Table '{raw.name}' has no primary key; service and route lookups "
                f"will not compile until one is declared.",
                {"table": raw.name},
            )
    return result


def validate_overrides(
    raw_tables: Sequence[RawTable], settings: CodegenSettings
) -> ValidationResult:
    """Overrides must name real tables and columns and must not collide."""
    result = ValidationResult()
    by_name: Dict[str, RawTable] = {t.name: t for t in raw_tables}

    for table_name, override in settings.table_overrides.items():
        ctx: Dict[str, Any] = {"table": table_name}
        raw: Optional[RawTable] = by_name.get(table_name)
        if raw is None:
            result.add_warning(
                "OVERRIDE_UNKNOWN_TABLE",
                f"Override defined for table '{table_name}' which is not in the schema.",
                {"override": table_name},
            )
            continue

        columns: Set[str] = {c.name for c in raw.columns}
        for name in override.referenced_columns:
            if name not in columns:
                result.add_warning(
                    "OVERRIDE_UNKNOWN_COLUMN",
                    f"Override for '{table_name}' refers to unknown column '{name}'.",
                    {**ctx, "column": name},
                )

        retained: Set[str] = columns - set(override.excluded_columns)
        seen_virtual: Set[str] = set()
        for vc in override.virtual_columns:
            if vc.name in retained or vc.name in seen_virtual:
                result.add_error(
                    "VIRTUAL_COLUMN_COLLISION",
                    f"Virtual column '{vc.name}' collides with an existing column "
                    f"of '{table_name}'.",
                    {**ctx, "column": vc.name},
                )
            seen_virtual.add(vc.name)

        name = override.custom_entity_name
        if name is not None and not _RUST_TYPE_NAME_RE.match(name):
            result.add_error(
                "INVALID_ENTITY_NAME",
                f"Custom entity name '{name}' for '{table_name}' is not a PascalCase identifier.",
                {**ctx, "entity_name": name},
            )
    return result


def validate_relations(
    raw_tables: Sequence[RawTable], settings: CodegenSettings
) -> ValidationResult:
    """User-declared relations should point at tables in the selection."""
    result = ValidationResult()
    selected: Set[str] = {t.name.lower() for t in raw_tables}
    for table_name, override in settings.table_overrides.items():
        for rel in override.relations:
            if rel.target_table.lower() not in selected:
                result.add_warning(
                    "RELATION_TARGET_NOT_SELECTED",
                    f"Relation {rel.relation_type} from '{table_name}' targets "
                    f"'{rel.target_table}', which is not selected; it will reference "
                    f"a module that is not generated.",
                    {"table": table_name, "target": rel.target_table},
                )
    return result


def validate_output_dirs(settings: CodegenSettings) -> ValidationResult:
    """Output directories outside ``src/`` cannot be declared from the crate root."""
    result = ValidationResult()
    for layer_id in LAYER_IDS:
        directory: str = settings.layer(layer_id).output_dir
        if not _SRC_DIR_RE.match(directory):
            result.add_warning(
                "OUTPUT_DIR_OUTSIDE_SRC",
                f"Layer '{layer_id}' writes to '{directory}', outside src/.",
                {"layer": layer_id, "dir": directory},
            )
    for table_name, override in settings.table_overrides.items():
        for layer_id, directory in override.output_dirs.items():
            if directory and not _SRC_DIR_RE.match(directory.replace("\\", "/").strip("/")):
                result.add_warning(
                    "OUTPUT_DIR_OUTSIDE_SRC",
                    f"Table '{table_name}' writes layer '{layer_id}' to '{directory}', outside src/.",
                    {"table": table_name, "layer": layer_id, "dir": directory},
                )
    return result


def validate_selection(
    all_table_names: Sequence[str], settings: CodegenSettings
) -> ValidationResult:
    result = ValidationResult()
    if settings.selected_tables is None:
        return result
    known: Set[str] = set(all_table_names)
    for name in settings.selected_tables:
        if name not in known:
            result.add_warning(
                "SELECTED_TABLE_UNKNOWN",
                f"Selected table '{name}' is not in the schema.",
                {"selected": name},
            )
    if not settings.selected_tables:
        result.add_info("EMPTY_SELECTION", "No tables selected; nothing will be generated.")
    return result


# ---------------------------------------------------------------------------
# Aggregate entry point
# ---------------------------------------------------------------------------


def validate_full(
    raw_tables: Sequence[RawTable],
    settings: CodegenSettings,
    all_table_names: Optional[Sequence[str]] = None,
) -> ValidationResult:
    """
    Run every check against the selected *raw_tables* and *settings*.

    *all_table_names* is the unfiltered schema, used to report selected
    names that do not exist.
    """
    logger.info("Starting validation — %d table(s)", len(raw_tables))
    result = ValidationResult()

    table_checks: List[Callable[[Sequence[RawTable]], ValidationResult]] = [
        validate_column_names,
        validate_primary_keys,
    ]
    for check in table_checks:
        logger.debug("Running validator: %s", check.__name__)
        result.merge(check(raw_tables))

    result.merge(validate_overrides(raw_tables, settings))
    result.merge(validate_relations(raw_tables, settings))
    result.merge(validate_output_dirs(settings))
    result.merge(
        validate_selection(
            all_table_names if all_table_names is not None else [t.name for t in raw_tables],
            settings,
        )
    )

    if result.has_errors:
        logger.error("Validation FAILED with %d error(s). %s", result.error_count, result.summary())
    else:
        logger.info("Validation PASSED. %s", result.summary())
    return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ValidationIssue",
    "ValidationResult",
    "validate_column_names",
    "validate_primary_keys",
    "validate_overrides",
    "validate_relations",
    "validate_output_dirs",
    "validate_selection",
    "validate_full",
]

logger.debug("seagen.validators loaded — %d public symbols.", len(__all__))
