"""
tests/test_dependencies.py
Unit tests for seagen.dependencies: crate discovery and Cargo.toml patching.
"""

from __future__ import annotations

import pathlib
from typing import List

from conftest import CARGO_TOML
from seagen.dependencies import (
    PATCH_HEADER,
    ensure_dependencies,
    is_crate_present,
    missing_crates,
    patch_manifest,
    required_crates,
)
from seagen.models import Column, Table


def _table(*rust_types: str) -> Table:
    return Table(
        name="t",
        columns=[Column(name=f"c{i}", rust_type=rt) for i, rt in enumerate(rust_types)],
    )


class TestRequiredCrates:
    def test_derives_types_and_route(self, two_tables: List[Table]) -> None:
        needed = required_crates(["Serialize", "Deserialize"], two_tables, route_enabled=True)
        assert list(needed) == ["serde", "chrono", "serde_json"]
        assert needed["serde"] == 'serde = { version = "1", features = ["derive"] }'

    def test_element_types_count(self) -> None:
        needed = required_crates([], [_table("Vec<Uuid>", "Option<Decimal>")])
        assert list(needed) == ["uuid", "rust_decimal"]

    def test_validation(self) -> None:
        needed = required_crates(["Validate"], route_enabled=True, route_with_validate=True)
        assert list(needed) == ["validator", "serde_json", "axum-valid"]

    def test_unknown_derives_and_plain_types_need_nothing(self) -> None:
        assert required_crates(["Clone", "Hash"], [_table("i64", "String", "Vec<u8>")]) == {}


class TestPatchManifest:
    def test_presence_is_exact(self) -> None:
        assert is_crate_present(CARGO_TOML, "sea-orm")
        assert not is_crate_present('serde_json = "1"\n', "serde")

    def test_block_goes_before_next_section(self) -> None:
        needed = required_crates(["Serialize"], [_table("Uuid")])
        patched = patch_manifest(CARGO_TOML, needed)

        assert PATCH_HEADER in patched
        deps = patched.index("[dependencies]")
        dev = patched.index("[dev-dependencies]")
        assert deps < patched.index("serde = ") < dev
        assert deps < patched.index("uuid = ") < dev
        assert patched.endswith('[dev-dependencies]\ntokio = "1"\n')

    def test_existing_crates_not_repeated(self) -> None:
        content = CARGO_TOML.replace('spring = "0.4"', 'spring = "0.4"\nserde = "1"')
        needed = required_crates(["Serialize"], route_enabled=True)
        assert list(missing_crates(content, needed)) == ["serde_json"]
        assert patch_manifest(content, needed).count("serde =") == 1

    def test_idempotent(self) -> None:
        needed = required_crates(["Serialize"], route_enabled=True)
        once = patch_manifest(CARGO_TOML, needed)
        assert patch_manifest(once, needed) == once

    def test_dependencies_section_at_end(self) -> None:
        content = '[package]\nname = "x"\n\n[dependencies]\nspring = "0.4"'
        patched = patch_manifest(content, {"serde_json": 'serde_json = "1"'})
        assert patched == (
            '[package]\nname = "x"\n\n[dependencies]\nspring = "0.4"\n'
            f'\n{PATCH_HEADER}\nserde_json = "1"\n'
        )

    def test_missing_section_appended(self) -> None:
        patched = patch_manifest('[package]\nname = "x"', {"serde_json": 'serde_json = "1"'})
        assert patched == '[package]\nname = "x"\n\n[dependencies]\nserde_json = "1"\n'


class TestEnsureDependencies:
    def test_no_manifest(self, tmp_path: pathlib.Path) -> None:
        assert ensure_dependencies(tmp_path, ["Serialize"]) == []
        assert not (tmp_path / "Cargo.toml").exists()

    def test_dry_run_leaves_manifest(self, rust_project: pathlib.Path) -> None:
        added = ensure_dependencies(rust_project, ["Serialize"], route_enabled=True, dry_run=True)
        assert added == ["serde", "serde_json"]
        assert (rust_project / "Cargo.toml").read_text(encoding="utf-8") == CARGO_TOML

    def test_patch_then_nothing_left(self, rust_project: pathlib.Path, two_tables: List[Table]) -> None:
        added = ensure_dependencies(rust_project, ["Serialize"], two_tables, route_enabled=True)
        assert added == ["serde", "chrono", "serde_json"]
        content = (rust_project / "Cargo.toml").read_text(encoding="utf-8")
        assert 'chrono = { version = "0.4", features = ["serde"] }' in content
        assert ensure_dependencies(rust_project, ["Serialize"], two_tables, route_enabled=True) == []
