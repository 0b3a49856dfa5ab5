# File: seagen/utils.py
"""
Seagen - Utility Functions & Helpers
=====================================
Deterministic naming conversions, Rust identifier helpers, crate-path
arithmetic and small file-I/O helpers used throughout the generation
pipeline.

Naming strategy:
- ``to_pascal_case`` / ``to_snake_case`` are pure, total and locale-free.
  They only ever see identifier-like strings (table, column, schema names).
- Both are decorated with ``@lru_cache(maxsize=None)``; the same names are
  converted once per layer per table, so repeated calls are amortised.
"""

from __future__ import annotations

import functools
import hashlib
import logging
import os
import re
import shutil
import tempfile
import time
from pathlib import Path
from typing import FrozenSet, List, Optional

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("seagen.utils")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns (compiled once at module load)
# ---------------------------------------------------------------------------

_LOWER_UPPER_RE: re.Pattern[str] = re.compile(r"([a-z])([A-Z])")
_ACRONYM_BOUNDARY_RE: re.Pattern[str] = re.compile(r"([A-Z]+)([A-Z][a-z])")
_SEGMENT_SPLIT_RE: re.Pattern[str] = re.compile(r"[_\-]")

# Rust strict + reserved keywords. Fields named after one of these are
# emitted as raw identifiers (``r#type``).
_RUST_KEYWORDS: FrozenSet[str] = frozenset({
    "as", "break", "const", "continue", "else", "enum", "extern",
    "false", "fn", "for", "if", "impl", "in", "let", "loop", "match",
    "mod", "move", "mut", "pub", "ref", "return", "static", "struct",
    "trait", "true", "type", "unsafe", "use", "where", "while",
    "async", "await", "dyn", "abstract", "become", "box", "do", "final",
    "macro", "override", "priv", "typeof", "unsized", "virtual", "yield",
    "try", "gen",
})

# Keywords that cannot be raw identifiers at all.
_RUST_NON_RAW_KEYWORDS: FrozenSet[str] = frozenset({
    "self", "Self", "super", "crate",
})


# ---------------------------------------------------------------------------
# Cached string transformation functions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def to_pascal_case(name: str) -> str:
    """
    Convert ``user_accounts`` / ``userAccounts`` / ``user-accounts`` to
    ``UserAccounts``.

    Examples:
        >>> to_pascal_case("user_profile")
        'UserProfile'
        >>> to_pascal_case("orderItem")
        'OrderItem'
        >>> to_pascal_case("HTTPServer")
        'HTTPServer'
    """
    if not name:
        return ""
    bounded: str = _LOWER_UPPER_RE.sub(r"\1_\2", name)
    segments: List[str] = [s for s in _SEGMENT_SPLIT_RE.split(bounded) if s]
    return "".join(s[0].upper() + s[1:] for s in segments)


@functools.lru_cache(maxsize=None)
def to_snake_case(name: str) -> str:
    """
    Convert ``UserAccounts`` / ``user-accounts`` to ``user_accounts``.

    Acronym runs are split before the word that follows them:

        >>> to_snake_case("HTTPResponse")
        'http_response'
        >>> to_snake_case("already_snake")
        'already_snake'
    """
    if not name:
        return ""
    s: str = _LOWER_UPPER_RE.sub(r"\1_\2", name)
    s = _ACRONYM_BOUNDARY_RE.sub(r"\1_\2", s)
    return s.lower().replace("-", "_")


@functools.lru_cache(maxsize=None)
def to_camel_case(name: str) -> str:
    """``user_accounts`` → ``userAccounts``."""
    pascal: str = to_pascal_case(name)
    if not pascal:
        return ""
    return pascal[0].lower() + pascal[1:]


@functools.lru_cache(maxsize=None)
def to_kebab_case(name: str) -> str:
    """``UserAccounts`` → ``user-accounts`` (used for route paths)."""
    return to_snake_case(name).replace("_", "-")


def strip_prefix(name: str, prefix: str) -> str:
    """
    Remove a table-name prefix such as ``t_`` (case-insensitive).

    A name equal to the prefix is returned unchanged so it never collapses
    to an empty identifier.
    """
    if not prefix:
        return name
    if name.lower().startswith(prefix.lower()) and len(name) > len(prefix):
        return name[len(prefix):]
    return name


@functools.lru_cache(maxsize=None)
def rust_field_name(name: str) -> str:
    """
    Safe Rust field identifier for a column name.

    ``type`` → ``r#type``; ``self`` → ``self_`` (cannot be a raw identifier).
    """
    snake: str = to_snake_case(name)
    if snake in _RUST_NON_RAW_KEYWORDS:
        return f"{snake}_"
    if snake in _RUST_KEYWORDS:
        return f"r#{snake}"
    if snake and snake[0].isdigit():
        return f"_{snake}"
    return snake


def is_rust_keyword(name: str) -> bool:
    return name in _RUST_KEYWORDS or name in _RUST_NON_RAW_KEYWORDS


def option_of(rust_type: str) -> str:
    """Wrap a Rust type in ``Option<...>``."""
    return f"Option<{rust_type}>"


# ---------------------------------------------------------------------------
# Output-directory arithmetic
# ---------------------------------------------------------------------------


def normalize_dir(path: str) -> str:
    """Normalise a relative output directory to forward slashes, no trailing slash."""
    return path.replace("\\", "/").strip().rstrip("/")


def resolve_schema_dir(base_dir: str, schema_sub_dir: str) -> str:
    """Directory that holds the files of one schema group."""
    base: str = normalize_dir(base_dir)
    return f"{base}/{schema_sub_dir}" if schema_sub_dir else base


def dir_to_crate_path(directory: str, schema_sub_dir: str = "") -> str:
    """
    Convert an output directory to a Rust crate path.

        >>> dir_to_crate_path("src/entity")
        'crate::entity'
        >>> dir_to_crate_path("src/models/entity", "app")
        'crate::models::entity::app'
    """
    stripped: str = normalize_dir(directory)
    if stripped.startswith("src/"):
        stripped = stripped[len("src/"):]
    elif stripped == "src":
        stripped = ""
    base: str = "crate" + "".join(f"::{seg}" for seg in stripped.split("/") if seg)
    return f"{base}::{schema_sub_dir}" if schema_sub_dir else base


# ---------------------------------------------------------------------------
# File I/O helpers
# ---------------------------------------------------------------------------


def ensure_directory(path: Path) -> None:
    """Create directory (and parents) if it doesn't exist."""
    path.mkdir(parents=True, exist_ok=True)
    logger.debug("Ensured directory exists: %s", path)


def write_file(path: Path, content: str, atomic: bool = True) -> int:
    """
    Write *content* to *path*.

    When *atomic* is True, writes to a temporary file in the same directory
    first then renames it over the target, so a crash never leaves a
    half-written source file behind.

    Returns the number of bytes written.
    """
    ensure_directory(path.parent)

    encoded: bytes = content.encode("utf-8")

    if atomic:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(encoded)
            os.replace(tmp_path, str(path))
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
    else:
        path.write_bytes(encoded)

    logger.debug("Wrote %d bytes to %s", len(encoded), path)
    return len(encoded)


def read_file(path: Path, keep_newlines: bool = False) -> str:
    """Read a UTF-8 text file; *keep_newlines* skips ``\\r\\n`` translation."""
    with path.open("r", encoding="utf-8", newline="" if keep_newlines else None) as fh:
        return fh.read()


def copy_file(source: Path, target: Path) -> None:
    """Copy *source* over *target*, replacing any existing file."""
    shutil.copyfile(str(source), str(target))
    logger.debug("Copied %s → %s", source, target)


# ---------------------------------------------------------------------------
# Checksum & metrics
# ---------------------------------------------------------------------------


def sha256_hex(content: str) -> str:
    """Return SHA-256 hex digest of a string."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def count_lines(content: str) -> int:
    """Count the number of lines in a string."""
    if not content:
        return 0
    return content.count("\n") + (1 if not content.endswith("\n") else 0)


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Context-manager timer for profiling pipeline steps.

    Usage:
        with Timer("plan") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.info("Timer [%s]: %.4f seconds", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "to_pascal_case",
    "to_snake_case",
    "to_camel_case",
    "to_kebab_case",
    "strip_prefix",
    "rust_field_name",
    "is_rust_keyword",
    "option_of",
    "normalize_dir",
    "resolve_schema_dir",
    "dir_to_crate_path",
    "ensure_directory",
    "write_file",
    "read_file",
    "copy_file",
    "sha256_hex",
    "count_lines",
    "Timer",
]

logger.debug("seagen.utils loaded — %d public symbols.", len(__all__))
