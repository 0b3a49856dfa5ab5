# File: seagen/dependencies.py
"""
Seagen - Cargo Dependency Manager
==================================
Adds the crates generated code actually needs to ``Cargo.toml``.

Requirements come from three places:
    1. Derive macros selected for any layer (serde, bon, schemars, validator).
    2. Column target types present in the generated tables (chrono,
       rust_decimal, uuid, serde_json).
    3. The route layer: ``serde_json`` always, ``axum-valid`` when request
       bodies are validated.

A crate already declared anywhere in the manifest is never added twice, so
patching is idempotent. A project without a manifest is left alone.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping

from seagen.layers import (
    DERIVE_BUILDER,
    DERIVE_DESERIALIZE,
    DERIVE_JSON_SCHEMA,
    DERIVE_SERIALIZE,
    DERIVE_VALIDATE,
)
from seagen.models import Table
from seagen.utils import read_file, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("seagen.dependencies")

MANIFEST_FILE_NAME: str = "Cargo.toml"
PATCH_HEADER: str = "# Added by spring-rs code generator"


@dataclass(frozen=True, slots=True)
class CrateDep:
    """Crate name plus the TOML line that declares it."""

    crate: str
    toml: str


CHRONO_DEP = CrateDep("chrono", 'chrono = { version = "0.4", features = ["serde"] }')
SERDE_DEP = CrateDep("serde", 'serde = { version = "1", features = ["derive"] }')
SERDE_JSON_DEP = CrateDep("serde_json", 'serde_json = "1"')
AXUM_VALID_DEP = CrateDep("axum-valid", 'axum-valid = { version = "0.24", features = ["validator"] }')

DERIVE_DEPS: Dict[str, CrateDep] = {
    DERIVE_SERIALIZE: SERDE_DEP,
    DERIVE_DESERIALIZE: SERDE_DEP,
    DERIVE_BUILDER: CrateDep("bon", 'bon = "3"'),
    DERIVE_JSON_SCHEMA: CrateDep(
        "schemars", 'schemars = { version = "0.8", features = ["chrono", "uuid1"] }'
    ),
    DERIVE_VALIDATE: CrateDep("validator", 'validator = { version = "0.20", features = ["derive"] }'),
}

TYPE_DEPS: Dict[str, CrateDep] = {
    "DateTime": CHRONO_DEP,
    "DateTimeWithTimeZone": CHRONO_DEP,
    "Date": CHRONO_DEP,
    "Time": CHRONO_DEP,
    "Decimal": CrateDep("rust_decimal", 'rust_decimal = "1"'),
    "Uuid": CrateDep("uuid", 'uuid = { version = "1", features = ["v4", "serde"] }'),
    "Json": SERDE_JSON_DEP,
}

_TYPE_TOKEN_RE: re.Pattern[str] = re.compile(r"\w+")
_DEPENDENCIES_HEADER_RE: re.Pattern[str] = re.compile(r"(?m)^\[dependencies\]")
_NEXT_SECTION_RE: re.Pattern[str] = re.compile(r"(?m)^\[(?!dependencies\])")


def required_crates(
    derives: Iterable[str],
    tables: Iterable[Table] = (),
    route_enabled: bool = False,
    route_with_validate: bool = False,
) -> Dict[str, str]:
    """``{crate: toml_line}`` for everything the generated code uses, in discovery order."""
    needed: Dict[str, str] = {}

    def require(dep: CrateDep) -> None:
        needed.setdefault(dep.crate, dep.toml)

    for derive in derives:
        dep = DERIVE_DEPS.get(derive)
        if dep is not None:
            require(dep)

    # Vec<Uuid> and friends still need the element type's crate.
    for table in tables:
        for column in table.columns:
            for token in _TYPE_TOKEN_RE.findall(column.rust_type):
                dep = TYPE_DEPS.get(token)
                if dep is not None:
                    require(dep)

    if route_enabled:
        require(SERDE_JSON_DEP)
    if route_with_validate:
        require(AXUM_VALID_DEP)
    return needed


def is_crate_present(content: str, crate: str) -> bool:
    return re.search(rf"(?m)^\s*{re.escape(crate)}\s*=", content) is not None


def missing_crates(content: str, needed: Mapping[str, str]) -> Dict[str, str]:
    return {crate: line for crate, line in needed.items() if not is_crate_present(content, crate)}


def patch_manifest(content: str, needed: Mapping[str, str]) -> str:
    """
    Return *content* with every missing crate declared.

    The block goes at the end of ``[dependencies]`` (before the next section
    header); without that section a new one is appended.
    """
    lines: List[str] = list(missing_crates(content, needed).values())
    if not lines:
        return content

    header = _DEPENDENCIES_HEADER_RE.search(content)
    if header is not None:
        block: str = f"\n{PATCH_HEADER}\n" + "\n".join(lines) + "\n"
        following = _NEXT_SECTION_RE.search(content, header.end())
        pos: int = following.start() if following is not None else len(content)
        prefix: str = content[:pos]
        if pos > 0 and not prefix.endswith("\n"):
            prefix += "\n"
        return prefix + block + content[pos:]

    suffix: str = "" if not content or content.endswith("\n") else "\n"
    return content + suffix + "\n[dependencies]\n" + "\n".join(lines) + "\n"


def ensure_dependencies(
    project_root: Path,
    derives: Iterable[str],
    tables: Iterable[Table] = (),
    route_enabled: bool = False,
    route_with_validate: bool = False,
    dry_run: bool = False,
) -> List[str]:
    """
    Patch ``<project_root>/Cargo.toml``; return the crates added.

    No manifest means nothing to do. With *dry_run* the crates that would be
    added are returned and the file is left untouched.
    """
    manifest: Path = project_root / MANIFEST_FILE_NAME
    if not manifest.is_file():
        logger.debug("No %s under %s; dependency patch skipped", MANIFEST_FILE_NAME, project_root)
        return []

    content: str = read_file(manifest)
    needed: Dict[str, str] = required_crates(derives, tables, route_enabled, route_with_validate)
    missing: Dict[str, str] = missing_crates(content, needed)
    if not missing:
        logger.debug("Cargo.toml already declares every required crate")
        return []

    if not dry_run:
        write_file(manifest, patch_manifest(content, missing))
    added: List[str] = list(missing)
    logger.info("%s Cargo.toml: %s", "Would add to" if dry_run else "Added to", ", ".join(added))
    return added


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "MANIFEST_FILE_NAME",
    "PATCH_HEADER",
    "CrateDep",
    "DERIVE_DEPS",
    "TYPE_DEPS",
    "required_crates",
    "is_crate_present",
    "missing_crates",
    "patch_manifest",
    "ensure_dependencies",
]

logger.debug("seagen.dependencies loaded — %d public symbols.", len(__all__))
