# File: seagen/planner.py
"""
Seagen - Codegen Planner
=========================
Decides which files a run produces. Nothing here touches the filesystem.

For every enabled layer:
    1. Group selected tables by effective output directory.
    2. Within a directory, group by schema sub-directory ('' = default).
    3. Render one file per table; a table whose rendering raises is logged,
       recorded as a failure and left out of the group's indexes.
    4. A group that produced modules gets a ``mod.rs`` listing them (plus the
       layer's extra modules) and the layer's auxiliary files.
    5. A directory with non-default schema groups gets a parent ``mod.rs``
       that lists default-schema modules and the schema sub-directory names.

Output order is deterministic: layers in fixed order, directories and schema
groups sorted, tables in input order.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from seagen.indexes import MOD_FILE_NAME, generate_mod_content
from seagen.layers import LayerConfig
from seagen.models import FileKind, GeneratedFile, Table
from seagen.utils import Timer

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("seagen.planner")


@dataclass(frozen=True, slots=True)
class TableFailure:
    """A table that could not be rendered for one layer."""

    layer_id: str
    table_name: str
    error: str


@dataclass(slots=True)
class PlanResult:
    files: List[GeneratedFile] = field(default_factory=list)
    failures: List[TableFailure] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def skipped_tables(self) -> List[str]:
        return sorted({f.table_name for f in self.failures})

    def files_of_kind(self, kind: FileKind) -> List[GeneratedFile]:
        return [f for f in self.files if f.kind == kind]


def _join(directory: str, *parts: str) -> str:
    return "/".join(p for p in (directory, *parts) if p)


def group_tables(
    config: LayerConfig, tables: Sequence[Table]
) -> Dict[str, Dict[str, List[Table]]]:
    """``{output_dir: {schema_sub_dir: [tables]}}``, enabled tables only."""
    groups: Dict[str, Dict[str, List[Table]]] = {}
    for table in tables:
        if not config.is_table_enabled(table):
            logger.debug("Layer %s disabled for %s", config.layer.layer_id, table.name)
            continue
        directory: str = config.output_dir_for_table(table)
        groups.setdefault(directory, {}).setdefault(table.schema_sub_dir, []).append(table)
    return groups


def _plan_group(
    config: LayerConfig,
    directory: str,
    tables: Sequence[Table],
    result: PlanResult,
) -> List[str]:
    """Render one (directory, schema) group; return the modules that succeeded."""
    layer = config.layer
    modules: List[str] = []
    rendered: List[Table] = []
    for table in tables:
        try:
            content: str = layer.generate(table)
        except Exception as exc:
            logger.warning(
                "Skipping table %s for layer %s: %s: %s",
                table.name, layer.layer_id, type(exc).__name__, exc,
                exc_info=True,
            )
            result.failures.append(
                TableFailure(layer.layer_id, table.name, f"{type(exc).__name__}: {exc}")
            )
            continue
        result.files.append(
            GeneratedFile(
                path=_join(directory, layer.file_name(table)),
                content=content,
                kind=layer.file_kind,
            )
        )
        modules.append(layer.mod_name(table))
        rendered.append(table)

    if modules:
        result.files.append(
            GeneratedFile(
                path=_join(directory, MOD_FILE_NAME),
                content=generate_mod_content([*modules, *layer.extra_modules()]),
                kind=FileKind.MODULE_INDEX,
            )
        )
        result.files.extend(layer.auxiliary_files(modules, rendered, directory))
    return modules


def plan_layer(config: LayerConfig, tables: Sequence[Table], result: PlanResult) -> None:
    layer = config.layer
    for base_dir, schemas in sorted(group_tables(config, tables).items()):
        default_modules: List[str] = []
        schema_dirs: List[str] = []
        for sub_dir in sorted(schemas):
            directory: str = _join(base_dir, sub_dir)
            modules: List[str] = _plan_group(config, directory, schemas[sub_dir], result)
            if not sub_dir:
                default_modules = modules
            elif modules:
                schema_dirs.append(sub_dir)

        if schema_dirs:
            parent: List[str] = [*default_modules, *schema_dirs]
            if default_modules:
                parent.extend(layer.extra_modules())
            result.files.append(
                GeneratedFile(
                    path=_join(base_dir, MOD_FILE_NAME),
                    content=generate_mod_content(parent),
                    kind=FileKind.MODULE_INDEX,
                )
            )


def _dedupe(files: Sequence[GeneratedFile]) -> List[GeneratedFile]:
    """One file per path; the last plan wins, the first position is kept."""
    by_path: "OrderedDict[str, GeneratedFile]" = OrderedDict()
    for f in files:
        by_path[f.path] = f
    return list(by_path.values())


def plan(configs: Sequence[LayerConfig], tables: Sequence[Table]) -> PlanResult:
    """Plan every enabled layer for *tables*."""
    result = PlanResult()
    with Timer("plan") as timer:
        for config in configs:
            if not config.enabled:
                continue
            before: int = len(result.files)
            plan_layer(config, tables, result)
            logger.info(
                "Layer %-8s planned %d file(s)", config.layer.layer_id, len(result.files) - before
            )
        result.files = _dedupe(result.files)
    result.elapsed_seconds = timer.elapsed
    if result.failures:
        logger.warning(
            "%d table/layer combination(s) failed: %s",
            len(result.failures),
            ", ".join(f"{f.table_name}[{f.layer_id}]" for f in result.failures),
        )
    return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "TableFailure",
    "PlanResult",
    "group_tables",
    "plan_layer",
    "plan",
]

logger.debug("seagen.planner loaded — %d public symbols.", len(__all__))
