"""
tests/conftest.py
Shared fixtures for the seagen test suite.

No external mocking libraries are used; real file I/O is performed
inside temporary directories managed by pytest's tmp_path fixtures.
"""

from __future__ import annotations

import copy
import pathlib
import textwrap
from typing import Any, Dict, List, Optional

import pytest
import yaml

from seagen.dialects import read_table
from seagen.generator import parse_input
from seagen.models import CodegenSettings, Dialect, RawTable, Table


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

ROOT_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
SCHEMA_EXAMPLE_PATH: pathlib.Path = ROOT_DIR / "schema_example.yaml"


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_raw_table(
    name: str,
    columns: List[Dict[str, Any]],
    *,
    foreign_keys: Optional[List[Dict[str, Any]]] = None,
    indexes: Optional[List[Dict[str, Any]]] = None,
    schema: Optional[str] = None,
) -> RawTable:
    """Build a ``RawTable`` from reader-style dicts."""
    data: Dict[str, Any] = {"name": name, "columns": columns}
    if foreign_keys:
        data["foreign_keys"] = foreign_keys
    if indexes:
        data["indexes"] = indexes
    if schema is not None:
        data["schema"] = schema
    return RawTable.model_validate(data)


def pk(name: str = "id", sql_type: str = "bigserial") -> Dict[str, Any]:
    return {"name": name, "type": sql_type, "primary_key": True, "nullable": False}


def col(name: str, sql_type: str = "varchar(255)", **flags: Any) -> Dict[str, Any]:
    return {"name": name, "type": sql_type, **flags}


# ---------------------------------------------------------------------------
# Reference schema fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def raw_schema_dict() -> Dict[str, Any]:
    """Load the reference schema_example.yaml once per session and return as dict."""
    assert SCHEMA_EXAMPLE_PATH.exists(), (
        f"Reference schema not found at {SCHEMA_EXAMPLE_PATH}. "
        "Make sure schema_example.yaml is in the project root."
    )
    with open(SCHEMA_EXAMPLE_PATH, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    assert isinstance(data, dict), "Top-level YAML must be a mapping."
    return data


@pytest.fixture()
def schema_dict(raw_schema_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Return a deep copy so each test can mutate freely."""
    return copy.deepcopy(raw_schema_dict)


@pytest.fixture()
def schema_yaml_path(schema_dict: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    """Write the schema dict to a temporary YAML file and return its path."""
    path = tmp_path / "schema.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(schema_dict, fh, default_flow_style=False, allow_unicode=True)
    return path


@pytest.fixture()
def example_raw_tables(schema_dict: Dict[str, Any]) -> List[RawTable]:
    raw_tables, _ = parse_input(schema_dict)
    return raw_tables


@pytest.fixture()
def example_settings(schema_dict: Dict[str, Any]) -> CodegenSettings:
    _, settings = parse_input(schema_dict)
    return settings


# ---------------------------------------------------------------------------
# Minimal two-table schema: users <- posts
# ---------------------------------------------------------------------------


@pytest.fixture()
def users_raw() -> RawTable:
    return make_raw_table(
        "users",
        [
            pk(),
            col("email", nullable=False),
            col("created_at", "timestamptz", nullable=False),
            col("updated_at", "timestamptz", nullable=False),
        ],
    )


@pytest.fixture()
def posts_raw() -> RawTable:
    return make_raw_table(
        "posts",
        [
            pk(),
            col("user_id", "int8", nullable=False),
            col("title", nullable=False),
            col("body", "text"),
        ],
        foreign_keys=[
            {"name": "posts_user_id_fkey", "columns": ["user_id"], "ref_table": "users", "ref_columns": ["id"]}
        ],
    )


@pytest.fixture()
def two_raw_tables(users_raw: RawTable, posts_raw: RawTable) -> List[RawTable]:
    return [users_raw, posts_raw]


@pytest.fixture()
def two_tables(two_raw_tables: List[RawTable]) -> List[Table]:
    return [read_table(raw, Dialect.POSTGRESQL) for raw in two_raw_tables]


@pytest.fixture()
def settings() -> CodegenSettings:
    """Default settings with non-interactive conflict handling."""
    return CodegenSettings(conflict_strategy="skip")


# ---------------------------------------------------------------------------
# Target crate on disk
# ---------------------------------------------------------------------------

CARGO_TOML: str = textwrap.dedent(
    """\
    [package]
    name = "demo"
    version = "0.1.0"
    edition = "2021"

    [dependencies]
    spring = "0.4"
    sea-orm = { version = "1", features = ["sqlx-postgres"] }

    [dev-dependencies]
    tokio = "1"
    """
)

LIB_RS: str = textwrap.dedent(
    """\
    //! demo crate

    mod config;

    pub fn run() {}
    """
)


@pytest.fixture()
def rust_project(tmp_path: pathlib.Path) -> pathlib.Path:
    """A crate skeleton with Cargo.toml and src/lib.rs."""
    root = tmp_path / "crate"
    (root / "src").mkdir(parents=True)
    (root / "Cargo.toml").write_text(CARGO_TOML, encoding="utf-8")
    (root / "src" / "lib.rs").write_text(LIB_RS, encoding="utf-8")
    return root
