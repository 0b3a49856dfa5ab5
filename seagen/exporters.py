# File: seagen/exporters.py
"""
Seagen - Project Exporter (Conflict Resolution & Write Phase)
==============================================================

Writing happens in two strictly separated phases:

    1. ``classify()``: read-only. Compares each planned file with what is on
       disk and decides its action (create / merge / unchanged / conflict).
       ``resolve_conflicts()`` then turns every conflict into a resolution,
       asking the ``ConflictPolicy`` prompt where needed.
    2. ``ProjectExporter.apply()``: performs the mutations with every
       decision already known. It never prompts.

File roles:
    * Module and re-export indexes are always merged, never conflict.
    * Entity files merge their marked region when both markers exist;
      otherwise they are ordinary conflicts.
    * Everything else is written when absent and is a conflict when present
      with different content.

An unresolved conflict is skipped: nothing is overwritten without a
decision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from seagen.indexes import (
    CRATE_ROOT_CANDIDATES,
    MOD_FILE_NAME,
    extract_modules,
    extract_prelude,
    insert_mod_declaration,
    merge_mod_content,
    merge_prelude_content,
    module_chain,
)
from seagen.merger import merge_generated_region
from seagen.models import ConflictResolution, ConflictStrategy, FileKind, GeneratedFile
from seagen.utils import Timer, copy_file, count_lines, read_file, sha256_hex, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("seagen.exporters")

BACKUP_SUFFIX: str = ".bak"


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class FileAction(str, Enum):
    CREATE = "create"
    MERGE_INDEX = "merge_index"
    MERGE_REGION = "merge_region"
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"


@dataclass(frozen=True, slots=True)
class PlannedWrite:
    """
    A planned file paired with its classification.

    ``content`` is what gets written for CREATE, MERGE_* and a resolved
    CONFLICT: the merged text for merges, the generated text otherwise.
    """

    file: GeneratedFile
    action: FileAction
    content: str

    @property
    def path(self) -> str:
        return self.file.path


def _classify_one(file: GeneratedFile, target: Path) -> PlannedWrite:
    if not target.is_file():
        return PlannedWrite(file, FileAction.CREATE, file.content)

    existing: str = read_file(target)

    if file.kind == FileKind.MODULE_INDEX:
        merged: Optional[str] = merge_mod_content(existing, extract_modules(file.content))
        action = FileAction.UNCHANGED if merged == existing else FileAction.MERGE_INDEX
        return PlannedWrite(file, action, merged)

    if file.kind == FileKind.REEXPORT_INDEX:
        merged = merge_prelude_content(existing, extract_prelude(file.content))
        action = FileAction.UNCHANGED if merged == existing else FileAction.MERGE_INDEX
        return PlannedWrite(file, action, merged)

    if file.kind == FileKind.ENTITY:
        merged = merge_generated_region(existing, file.content)
        if merged is not None:
            action = FileAction.UNCHANGED if merged == existing else FileAction.MERGE_REGION
            return PlannedWrite(file, action, merged)
        logger.info("No generated-region markers in %s; treating as conflict", file.path)

    if existing == file.content:
        return PlannedWrite(file, FileAction.UNCHANGED, file.content)
    return PlannedWrite(file, FileAction.CONFLICT, file.content)


def classify(files: Iterable[GeneratedFile], project_root: Path) -> List[PlannedWrite]:
    """Read-only pass: decide what each planned file needs. Mutates nothing."""
    planned: List[PlannedWrite] = [_classify_one(f, project_root / f.path) for f in files]
    counts: Dict[str, int] = {}
    for pw in planned:
        counts[pw.action.value] = counts.get(pw.action.value, 0) + 1
    logger.info("Classified %d file(s): %s", len(planned), counts)
    return planned


def conflicts(planned: Sequence[PlannedWrite]) -> List[PlannedWrite]:
    return [pw for pw in planned if pw.action is FileAction.CONFLICT]


# ---------------------------------------------------------------------------
# Conflict policy
# ---------------------------------------------------------------------------

# Returns (resolution, apply_to_all_remaining).
ConflictPrompt = Callable[[PlannedWrite], Tuple[ConflictResolution, bool]]


@dataclass(slots=True)
class ConflictPolicy:
    """
    How conflicts are resolved in one run.

    A fixed ``default`` answers every conflict. Without one, ``prompt`` is
    asked per conflict; with neither, conflicts are skipped.
    """

    default: Optional[ConflictResolution] = None
    prompt: Optional[ConflictPrompt] = None

    @classmethod
    def from_strategy(
        cls,
        strategy: ConflictStrategy | str,
        prompt: Optional[ConflictPrompt] = None,
    ) -> "ConflictPolicy":
        chosen = ConflictStrategy(strategy)
        if chosen is ConflictStrategy.ASK:
            return cls(prompt=prompt)
        return cls(default=ConflictResolution(chosen.value))


def resolve_conflicts(
    planned: Sequence[PlannedWrite],
    policy: Optional[ConflictPolicy] = None,
) -> Dict[str, ConflictResolution]:
    """
    Decide every conflict before any file is touched.

    An "apply to all" answer from the prompt covers the remaining conflicts
    of this call only.
    """
    policy = policy or ConflictPolicy()
    decisions: Dict[str, ConflictResolution] = {}
    apply_all: Optional[ConflictResolution] = None

    for pw in conflicts(planned):
        if apply_all is not None:
            resolution = apply_all
        elif policy.default is not None:
            resolution = ConflictResolution(policy.default)
        elif policy.prompt is not None:
            resolution, to_all = policy.prompt(pw)
            resolution = ConflictResolution(resolution)
            if to_all:
                apply_all = resolution
        else:
            resolution = ConflictResolution.SKIP
        decisions[pw.path] = resolution
        logger.debug("Conflict %s -> %s", pw.path, resolution.value)

    return decisions


# ---------------------------------------------------------------------------
# Export results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileRecord:
    """Immutable record of a single file written during ``apply()``."""

    relative_path: str
    action: str
    size_bytes: int
    line_count: int
    sha256: str


@dataclass(frozen=True, slots=True)
class ExportResult:
    success: bool
    records: Tuple[FileRecord, ...]
    written: Tuple[str, ...]
    merged: Tuple[str, ...]
    skipped: Tuple[str, ...]
    backed_up: Tuple[str, ...]
    unchanged: Tuple[str, ...]
    registered: Tuple[str, ...]
    errors: Tuple[str, ...]
    warnings: Tuple[str, ...]
    elapsed_seconds: float

    @property
    def changed_count(self) -> int:
        return len(self.written) + len(self.merged) + len(self.registered)


@dataclass(slots=True)
class _ExportState:
    records: List[FileRecord] = field(default_factory=list)
    written: List[str] = field(default_factory=list)
    merged: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    backed_up: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    registered: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# ProjectExporter class
# ---------------------------------------------------------------------------


class ProjectExporter:
    """
    Applies classified writes under a project root.

    Usage::

        planned = classify(files, root)
        decisions = resolve_conflicts(planned, policy)
        result = ProjectExporter(root).apply(planned, decisions)

    Thread-safety: NOT thread-safe. Use one exporter per run.
    """

    def __init__(
        self,
        project_root: Path,
        *,
        atomic_writes: bool = True,
        register_modules: bool = True,
    ) -> None:
        self._root: Path = project_root.resolve()
        self._atomic_writes: bool = atomic_writes
        self._register_modules: bool = register_modules
        logger.debug(
            "ProjectExporter initialised: root=%s, atomic=%s.", self._root, self._atomic_writes
        )

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def apply(
        self,
        planned: Sequence[PlannedWrite],
        decisions: Optional[Mapping[str, ConflictResolution]] = None,
    ) -> ExportResult:
        """Mutation phase. Conflicts missing from *decisions* are skipped."""
        decisions = decisions or {}
        state = _ExportState()

        with Timer("export") as timer:
            for pw in planned:
                try:
                    self._apply_one(pw, decisions, state)
                except Exception as exc:
                    error_msg: str = f"Failed to write {pw.path}: {type(exc).__name__}: {exc}"
                    state.errors.append(error_msg)
                    logger.error(error_msg)

            if self._register_modules:
                self._register_output_dirs(planned, state)

        result = ExportResult(
            success=not state.errors,
            records=tuple(state.records),
            written=tuple(state.written),
            merged=tuple(state.merged),
            skipped=tuple(state.skipped),
            backed_up=tuple(state.backed_up),
            unchanged=tuple(state.unchanged),
            registered=tuple(state.registered),
            errors=tuple(state.errors),
            warnings=tuple(state.warnings),
            elapsed_seconds=timer.elapsed,
        )

        if result.success:
            logger.info(
                "Export completed: %d written, %d merged, %d skipped, %d unchanged in %.3fs.",
                len(result.written), len(result.merged), len(result.skipped),
                len(result.unchanged), timer.elapsed,
            )
        else:
            logger.error(
                "Export completed with %d error(s) in %.3fs.", len(result.errors), timer.elapsed
            )
        return result

    # -----------------------------------------------------------------
    # Internal: per-file mutation
    # -----------------------------------------------------------------

    def _write(self, rel_path: str, content: str, action: str, state: _ExportState) -> None:
        size: int = write_file(self._root / rel_path, content, atomic=self._atomic_writes)
        state.records.append(
            FileRecord(
                relative_path=rel_path,
                action=action,
                size_bytes=size,
                line_count=count_lines(content),
                sha256=sha256_hex(content),
            )
        )

    def _apply_one(
        self,
        pw: PlannedWrite,
        decisions: Mapping[str, ConflictResolution],
        state: _ExportState,
    ) -> None:
        if pw.action is FileAction.UNCHANGED:
            state.unchanged.append(pw.path)
            return

        if pw.action is FileAction.CREATE:
            self._write(pw.path, pw.content, pw.action.value, state)
            state.written.append(pw.path)
            return

        if pw.action in (FileAction.MERGE_INDEX, FileAction.MERGE_REGION):
            self._write(pw.path, pw.content, pw.action.value, state)
            state.merged.append(pw.path)
            return

        resolution = ConflictResolution(decisions.get(pw.path, ConflictResolution.SKIP))
        if resolution is ConflictResolution.SKIP:
            logger.info("Skipped existing file %s", pw.path)
            state.skipped.append(pw.path)
            return

        if resolution is ConflictResolution.BACKUP:
            target: Path = self._root / pw.path
            backup: Path = target.with_name(target.name + BACKUP_SUFFIX)
            copy_file(target, backup)
            state.backed_up.append(pw.path + BACKUP_SUFFIX)
            logger.info("Backed up %s", pw.path)

        self._write(pw.path, pw.content, resolution.value, state)
        state.written.append(pw.path)

    # -----------------------------------------------------------------
    # Internal: module registration
    # -----------------------------------------------------------------

    def _crate_root(self) -> Optional[Path]:
        for candidate in CRATE_ROOT_CANDIDATES:
            path: Path = self._root / candidate
            if path.is_file():
                return path
        return None

    def _register_output_dirs(self, planned: Sequence[PlannedWrite], state: _ExportState) -> None:
        """Declare every directory holding a generated ``mod.rs`` up to the crate root."""
        dirs: List[str] = sorted({
            pw.path.rsplit("/", 1)[0]
            for pw in planned
            if pw.file.kind == FileKind.MODULE_INDEX and "/" in pw.path
        })
        pairs: Dict[Tuple[str, str], None] = {}
        for directory in dirs:
            for pair in module_chain(directory):
                pairs[pair] = None

        for parent, child in pairs:
            try:
                if parent == "src":
                    self._declare_in_crate_root(child, state)
                else:
                    self._declare_in_mod_file(parent, child, state)
            except Exception as exc:
                error_msg: str = f"Failed to register module {child} in {parent}: {type(exc).__name__}: {exc}"
                state.errors.append(error_msg)
                logger.error(error_msg)

    def _declare_in_crate_root(self, module: str, state: _ExportState) -> None:
        root_file: Optional[Path] = self._crate_root()
        if root_file is None:
            warning_msg: str = f"No crate root ({' or '.join(CRATE_ROOT_CANDIDATES)}); mod {module} not declared"
            if warning_msg not in state.warnings:
                state.warnings.append(warning_msg)
                logger.warning(warning_msg)
            return
        existing: str = read_file(root_file, keep_newlines=True)
        updated: str = insert_mod_declaration(existing, module)
        if updated != existing:
            rel: str = root_file.relative_to(self._root).as_posix()
            self._write(rel, updated, "register", state)
            state.registered.append(f"{rel}:{module}")

    def _declare_in_mod_file(self, parent: str, module: str, state: _ExportState) -> None:
        mod_path: Path = self._root / parent / MOD_FILE_NAME
        existing: str = read_file(mod_path) if mod_path.is_file() else ""
        updated: str = merge_mod_content(existing, [module])
        if updated != existing:
            rel: str = f"{parent}/{MOD_FILE_NAME}"
            self._write(rel, updated, "register", state)
            state.registered.append(f"{rel}:{module}")


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "BACKUP_SUFFIX",
    "FileAction",
    "PlannedWrite",
    "classify",
    "conflicts",
    "ConflictPrompt",
    "ConflictPolicy",
    "resolve_conflicts",
    "FileRecord",
    "ExportResult",
    "ProjectExporter",
]

logger.debug("seagen.exporters loaded — %d public symbols.", len(__all__))
