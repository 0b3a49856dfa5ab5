# File: seagen/indexes.py
"""
Seagen - Index Files
=====================
Generation and append-only merging of the two index-file kinds, plus the
crate-root ``mod`` declarations that make output directories reachable.

Module listing (``mod.rs``)::

    pub mod post;
    pub mod user;

Entity re-export map (``prelude.rs``)::

    pub use super::post::Entity as Post;
    pub use super::user::Entity as User;

Both are sorted, de-duplicated and never lose an existing entry. Lines in an
existing index file that are not entries (comments, hand-written ``pub use``)
are kept above the entries.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from seagen.models import Table
from seagen.utils import normalize_dir

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("seagen.indexes")

MOD_FILE_NAME: str = "mod.rs"
PRELUDE_FILE_NAME: str = "prelude.rs"
CRATE_ROOT_CANDIDATES: Tuple[str, ...] = ("src/lib.rs", "src/main.rs")

_MOD_RE: re.Pattern[str] = re.compile(r"^\s*pub\s+mod\s+(\w+)\s*;")
_PRELUDE_RE: re.Pattern[str] = re.compile(
    r"^\s*pub\s+use\s+super::(\w+)::Entity\s+as\s+(\w+)\s*;"
)
_ANY_MOD_DECL_RE: re.Pattern[str] = re.compile(r"^\s*(?:pub(?:\([^)]*\))?\s+)?mod\s+(\w+)\s*[;{]")
_USE_RE: re.Pattern[str] = re.compile(r"^\s*(?:pub\s+)?use\s+")
_PREAMBLE_RE: re.Pattern[str] = re.compile(r"^\s*(?:#!\[.*\]|//.*)?\s*$")


def _split_lines(content: str, pattern: re.Pattern[str]) -> Tuple[List[str], List[re.Match[str]]]:
    """Separate entry lines matching *pattern* from everything else."""
    other: List[str] = []
    entries: List[re.Match[str]] = []
    for line in content.splitlines():
        match = pattern.match(line)
        if match:
            entries.append(match)
        elif line.strip():
            other.append(line.rstrip())
    return other, entries


def _assemble(header: Sequence[str], entries: Sequence[str]) -> str:
    parts: List[str] = []
    if header:
        parts.append("\n".join(header))
    if entries:
        parts.append("\n".join(entries))
    return "\n\n".join(parts) + "\n" if parts else ""


# ---------------------------------------------------------------------------
# Module listing
# ---------------------------------------------------------------------------


def generate_mod_content(modules: Iterable[str]) -> str:
    """``pub mod`` lines, sorted and de-duplicated, with one trailing newline."""
    return _assemble([], [f"pub mod {m};" for m in sorted(set(modules))])


def extract_modules(content: str) -> List[str]:
    return [m.group(1) for m in _split_lines(content, _MOD_RE)[1]]


def merge_mod_content(existing: str, modules: Iterable[str]) -> str:
    """Union of existing and new modules; non-entry lines are kept on top."""
    header, matches = _split_lines(existing, _MOD_RE)
    merged = sorted({m.group(1) for m in matches} | set(modules))
    return _assemble(header, [f"pub mod {m};" for m in merged])


# ---------------------------------------------------------------------------
# Entity re-export map
# ---------------------------------------------------------------------------


def prelude_entries(tables: Iterable[Table]) -> Dict[str, str]:
    return {t.module_name: t.entity_name for t in tables}


def _prelude_lines(entries: Mapping[str, str]) -> List[str]:
    return [
        f"pub use super::{module}::Entity as {entries[module]};"
        for module in sorted(entries)
    ]


def generate_prelude_content(entries: Mapping[str, str]) -> str:
    return _assemble([], _prelude_lines(entries))


def extract_prelude(content: str) -> Dict[str, str]:
    return {m.group(1): m.group(2) for m in _split_lines(content, _PRELUDE_RE)[1]}


def merge_prelude_content(existing: str, entries: Mapping[str, str]) -> str:
    """Union keyed by module; a new entry replaces only its own key's export name."""
    header, matches = _split_lines(existing, _PRELUDE_RE)
    merged: Dict[str, str] = {m.group(1): m.group(2) for m in matches}
    merged.update(entries)
    return _assemble(header, _prelude_lines(merged))


# ---------------------------------------------------------------------------
# Crate-root declarations
# ---------------------------------------------------------------------------


def module_chain(output_dir: str) -> List[Tuple[str, str]]:
    """
    (parent_dir, child_module) pairs needed to reach *output_dir* from ``src``.

        >>> module_chain("src/app/entity")
        [('src', 'app'), ('src/app', 'entity')]
    """
    parts: List[str] = [p for p in normalize_dir(output_dir).split("/") if p]
    if len(parts) < 2 or parts[0] != "src":
        return []
    chain: List[Tuple[str, str]] = []
    for i in range(1, len(parts)):
        chain.append(("/".join(parts[:i]), parts[i]))
    return chain


def has_mod_declaration(content: str, module: str) -> bool:
    for line in content.splitlines():
        match = _ANY_MOD_DECL_RE.match(line)
        if match and match.group(1) == module:
            return True
    return False


def insert_mod_declaration(content: str, module: str) -> str:
    """
    Add ``mod <module>;`` to a crate root unless already declared.

    Placement: after the last ``mod`` line; else before the first ``use``;
    else after the leading inner attributes and comments. A CRLF file stays
    CRLF.
    """
    if has_mod_declaration(content, module):
        return content

    lines: List[str] = content.splitlines()
    declaration: str = f"mod {module};"
    newline: str = "\r\n" if "\r\n" in content else "\n"

    last_mod: Optional[int] = None
    first_use: Optional[int] = None
    for i, line in enumerate(lines):
        if _ANY_MOD_DECL_RE.match(line) and line.rstrip().endswith(";"):
            last_mod = i
        elif first_use is None and _USE_RE.match(line):
            first_use = i

    if last_mod is not None:
        lines.insert(last_mod + 1, declaration)
    elif first_use is not None:
        lines[first_use:first_use] = [declaration, ""]
    else:
        pos: int = 0
        while pos < len(lines) and _PREAMBLE_RE.match(lines[pos]):
            pos += 1
        while pos > 0 and not lines[pos - 1].strip():
            pos -= 1
        insert: List[str] = [declaration]
        if pos > 0:
            insert.insert(0, "")
        if pos < len(lines) and lines[pos].strip():
            insert.append("")
        lines[pos:pos] = insert

    logger.debug("Declared mod %s in crate root", module)
    return newline.join(lines) + newline


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "MOD_FILE_NAME",
    "PRELUDE_FILE_NAME",
    "CRATE_ROOT_CANDIDATES",
    "generate_mod_content",
    "extract_modules",
    "merge_mod_content",
    "prelude_entries",
    "generate_prelude_content",
    "extract_prelude",
    "merge_prelude_content",
    "module_chain",
    "has_mod_declaration",
    "insert_mod_declaration",
]

logger.debug("seagen.indexes loaded — %d public symbols.", len(__all__))
