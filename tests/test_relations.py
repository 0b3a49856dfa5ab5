"""
tests/test_relations.py
Unit tests for seagen.relations: foreign-key detection, the
constraint-name fallback, mirror generation and relation merging.
"""

from __future__ import annotations

from typing import List

from conftest import col, make_raw_table, pk
from seagen.models import Relation, RelationType, RawTable
from seagen.relations import (
    detect_relations,
    infer_table_from_constraint,
    merge_relations,
    mirror_relations,
    resolve_referenced_table,
)


def _users() -> RawTable:
    return make_raw_table("users", [pk(), col("email")])


def _orders(unique_user: bool, ref_table: str = "users", fk_name: str = "orders_user_id_fkey") -> RawTable:
    fk = {"name": fk_name, "columns": ["user_id"], "ref_columns": ["id"]}
    if ref_table:
        fk["ref_table"] = ref_table
    indexes = [{"name": "orders_user_id_key", "columns": ["user_id"], "unique": True}] if unique_user else []
    return make_raw_table("orders", [pk(), col("user_id", "int8")], foreign_keys=[fk], indexes=indexes)


class TestDetectRelations:
    def test_unique_fk_column_gives_has_one(self) -> None:
        relations = detect_relations([_users(), _orders(unique_user=True)])

        assert relations["orders"] == [
            Relation(relation_type=RelationType.BELONGS_TO, target_table="users", from_column="user_id", to_column="id")
        ]
        assert relations["users"] == [
            Relation(relation_type=RelationType.HAS_ONE, target_table="orders", from_column="id", to_column="user_id")
        ]

    def test_non_unique_fk_column_gives_has_many(self) -> None:
        relations = detect_relations([_users(), _orders(unique_user=False)])
        assert relations["users"][0].relation_type == RelationType.HAS_MANY
        assert relations["users"][0].to_column == "user_id"

    def test_unique_flag_on_column_counts(self) -> None:
        orders = make_raw_table(
            "orders",
            [pk(), col("user_id", "int8", unique=True)],
            foreign_keys=[{"columns": ["user_id"], "ref_table": "users"}],
        )
        relations = detect_relations([_users(), orders])
        assert relations["users"][0].relation_type == RelationType.HAS_ONE

    def test_target_outside_selection_skipped(self) -> None:
        relations = detect_relations([_orders(unique_user=False)])
        assert relations == {}

    def test_missing_ref_column_defaults_to_id(self) -> None:
        orders = make_raw_table(
            "orders",
            [pk(), col("user_id", "int8")],
            foreign_keys=[{"name": "x", "columns": ["user_id"], "ref_table": "users"}],
        )
        relations = detect_relations([_users(), orders])
        assert relations["orders"][0].to_column == "id"

    def test_fallback_to_constraint_name(self) -> None:
        relations = detect_relations([_users(), _orders(False, ref_table="", fk_name="fk_orders_users")])
        assert relations["orders"][0].target_table == "users"

    def test_fallback_without_match_yields_nothing(self) -> None:
        relations = detect_relations([_users(), _orders(False, ref_table="", fk_name="fk_42")])
        assert relations == {}

    def test_keys_are_lowercase_and_names_preserved(self) -> None:
        users = make_raw_table("Users", [pk()])
        orders = make_raw_table(
            "Orders",
            [pk(), col("user_id", "int8")],
            foreign_keys=[{"columns": ["user_id"], "ref_table": "USERS"}],
        )
        relations = detect_relations([users, orders])
        assert set(relations) == {"users", "orders"}
        assert relations["orders"][0].target_table == "Users"
        assert relations["users"][0].target_table == "Orders"


class TestReferencedTable:
    def test_structured_lookup_wins(self) -> None:
        fk = {"name": "fk_orders_items", "ref_table": "Users"}
        assert resolve_referenced_table(fk, "orders", ["users", "items"]) == "users"

    def test_longest_known_name_wins(self) -> None:
        known = ["users", "users_roles", "orders"]
        assert infer_table_from_constraint("fk_orders_users_roles", "orders", known) == "users_roles"

    def test_source_table_never_inferred(self) -> None:
        assert infer_table_from_constraint("fk_orders_self", "orders", ["orders"]) is None

    def test_empty_name(self) -> None:
        assert infer_table_from_constraint(None, "orders", ["users"]) is None


class TestMergeRelations:
    def test_user_declared_wins_on_same_key(self) -> None:
        detected = {"orders": [
            Relation(relation_type=RelationType.BELONGS_TO, target_table="users", from_column="user_id", to_column="id")
        ]}
        user_rel = Relation(relation_type=RelationType.HAS_ONE, target_table="users", from_column="user_id", to_column="id")
        merged = merge_relations(detected, {"orders": [user_rel]}, ["orders"])

        assert merged["orders"] == [user_rel]

    def test_distinct_relations_kept(self) -> None:
        detected = {"orders": [
            Relation(relation_type=RelationType.BELONGS_TO, target_table="users", from_column="user_id")
        ]}
        custom = {"orders": [
            Relation(relation_type=RelationType.BELONGS_TO, target_table="users", from_column="approver_id")
        ]}
        merged = merge_relations(detected, custom, ["orders", "users"])
        assert [r.from_column for r in merged["orders"]] == ["approver_id", "user_id"]

    def test_custom_belongs_to_mirrored_on_selected_target(self) -> None:
        custom = {"orders": [
            Relation(relation_type=RelationType.BELONGS_TO, target_table="users", from_column="approver_id")
        ]}
        merged = merge_relations({}, custom, ["orders", "users"])
        assert merged["users"] == [
            Relation(relation_type=RelationType.HAS_MANY, target_table="orders", from_column="id", to_column="approver_id")
        ]

    def test_no_mirror_for_unselected_target(self) -> None:
        custom = {"orders": [
            Relation(relation_type=RelationType.BELONGS_TO, target_table="users", from_column="approver_id")
        ]}
        assert mirror_relations(custom, ["orders"]) == {}

    def test_mirror_beats_detected_duplicate(self) -> None:
        detected = {"users": [
            Relation(relation_type=RelationType.HAS_ONE, target_table="orders", from_column="id", to_column="user_id")
        ]}
        custom = {"orders": [
            Relation(relation_type=RelationType.BELONGS_TO, target_table="users", from_column="user_id")
        ]}
        merged = merge_relations(detected, custom, ["orders", "users"])
        users: List[Relation] = merged["users"]
        assert len(users) == 1
        assert users[0].relation_type == RelationType.HAS_MANY
