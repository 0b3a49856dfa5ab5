# File: seagen/relations.py
"""
Seagen - Relation Detection & Merging
======================================
Infers belongs-to / has-many / has-one relations from raw foreign-key
metadata and merges them with user-declared relations.

Referenced-table lookup:
    1. Structured metadata (``ref_table`` on the foreign key).
    2. Fallback: the longest known table name (other than the source) that
       occurs in the constraint name, e.g. ``fk_posts_users_author``.
       A constraint name that mentions no selected table, or mentions the
       wrong one, yields no relation or a wrong one. That is a known
       limitation of naming-based inference.

Result maps are keyed by lower-cased owning-table name.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from seagen.models import Relation, RelationType, RawTable

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("seagen.relations")

RelationMap = Dict[str, List[Relation]]


# ---------------------------------------------------------------------------
# Metadata access
# ---------------------------------------------------------------------------


def _probe(obj: Any, name: str) -> Any:
    """Read *name* from a model, plain object or mapping; None when unavailable."""
    try:
        if isinstance(obj, Mapping):
            return obj.get(name)
        return getattr(obj, name)
    except (AttributeError, LookupError, TypeError):
        return None


def infer_table_from_constraint(
    constraint_name: Optional[str],
    source_key: str,
    known_keys: Iterable[str],
) -> Optional[str]:
    """
    Naming-convention fallback for a foreign key without a referenced table.

    Returns the lower-cased name of the longest known table (other than the
    source) that appears in the constraint name, or None.
    """
    if not constraint_name:
        return None
    lowered: str = constraint_name.lower()
    candidates: List[str] = [k for k in known_keys if k != source_key and k in lowered]
    if not candidates:
        return None
    return max(candidates, key=len)


def resolve_referenced_table(
    fk: Any, source_key: str, known_keys: Sequence[str]
) -> Optional[str]:
    """Lower-cased referenced table name for *fk*, structured lookup first."""
    structured: Optional[str] = _probe(fk, "ref_table")
    if structured:
        return str(structured).lower()
    inferred: Optional[str] = infer_table_from_constraint(_probe(fk, "name"), source_key, known_keys)
    if inferred:
        logger.debug("FK %r: referenced table inferred from name → %s", _probe(fk, "name"), inferred)
    return inferred


def _referenced_column(fk: Any) -> str:
    ref_columns = _probe(fk, "ref_columns") or []
    return str(ref_columns[0]) if ref_columns else "id"


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


def detect_relations(raw_tables: Sequence[RawTable]) -> RelationMap:
    """
    Detect relations among the selected tables.

    Each accepted foreign key emits ``BELONGS_TO`` on the source table and, on
    the referenced table, ``HAS_ONE`` when the source column is uniquely
    constrained, otherwise ``HAS_MANY``. Foreign keys whose referenced table is
    outside the selection are skipped.
    """
    by_key: Dict[str, RawTable] = {t.name.lower(): t for t in raw_tables}
    known_keys: List[str] = list(by_key)
    result: RelationMap = {}

    for raw in raw_tables:
        source_key: str = raw.name.lower()
        unique_cols = {c.lower() for c in raw.unique_columns}

        for fk in raw.foreign_keys:
            columns = _probe(fk, "columns") or []
            if not columns:
                continue
            from_col: str = columns[0]

            target_key: Optional[str] = resolve_referenced_table(fk, source_key, known_keys)
            if target_key is None:
                logger.debug("FK %r on %s: referenced table unknown; skipped", _probe(fk, "name"), raw.name)
                continue
            if target_key not in by_key:
                logger.debug("FK on %s → %s: target not selected; skipped", raw.name, target_key)
                continue

            to_col: str = _referenced_column(fk)
            target_name: str = by_key[target_key].name

            result.setdefault(source_key, []).append(
                Relation(
                    relation_type=RelationType.BELONGS_TO,
                    target_table=target_name,
                    from_column=from_col,
                    to_column=to_col,
                )
            )
            reverse_type: RelationType = (
                RelationType.HAS_ONE if from_col.lower() in unique_cols else RelationType.HAS_MANY
            )
            result.setdefault(target_key, []).append(
                Relation(
                    relation_type=reverse_type,
                    target_table=raw.name,
                    from_column=to_col,
                    to_column=from_col,
                )
            )

    logger.info(
        "Detected %d relation(s) across %d table(s)",
        sum(len(v) for v in result.values()),
        len(result),
    )
    return result


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def mirror_relations(custom: Mapping[str, Sequence[Relation]], selected: Iterable[str]) -> RelationMap:
    """Has-many mirrors for user-declared belongs-to relations whose target is selected."""
    selected_keys = {s.lower() for s in selected}
    mirrors: RelationMap = {}
    for owner, relations in custom.items():
        for rel in relations:
            if rel.relation_type != RelationType.BELONGS_TO:
                continue
            target_key: str = rel.target_table.lower()
            if target_key not in selected_keys:
                continue
            mirrors.setdefault(target_key, []).append(
                Relation(
                    relation_type=RelationType.HAS_MANY,
                    target_table=owner,
                    from_column=rel.to_column,
                    to_column=rel.from_column,
                )
            )
    return mirrors


def merge_relations(
    detected: Mapping[str, Sequence[Relation]],
    custom: Mapping[str, Sequence[Relation]],
    selected: Iterable[str],
) -> RelationMap:
    """
    Combine detected and user-declared relations per owning table.

    Precedence on a (target, from_column, to_column) collision:
    user-declared, then mirrors of user belongs-to relations, then detected.
    Non-colliding relations from every source are kept.
    """
    selected_list: List[str] = list(selected)
    custom_by_key: RelationMap = {}
    for owner, rels in custom.items():
        custom_by_key.setdefault(owner.lower(), []).extend(rels)
    mirrors: RelationMap = mirror_relations(custom, selected_list)

    owners: List[str] = list(dict.fromkeys([*detected.keys(), *custom_by_key.keys(), *mirrors.keys()]))
    merged: RelationMap = {}
    for owner in owners:
        seen: set = set()
        combined: List[Relation] = []
        for source in (custom_by_key.get(owner, []), mirrors.get(owner, []), detected.get(owner, [])):
            for rel in source:
                key: Tuple[str, str, str] = rel.key
                if key in seen:
                    continue
                seen.add(key)
                combined.append(rel)
        if combined:
            merged[owner] = combined
    return merged


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "RelationMap",
    "infer_table_from_constraint",
    "resolve_referenced_table",
    "detect_relations",
    "mirror_relations",
    "merge_relations",
]

logger.debug("seagen.relations loaded — %d public symbols.", len(__all__))
