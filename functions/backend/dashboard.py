"""
Family overview for the admin dashboard.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from backend.db import DbClient
from backend.family_session import FAMILIES_COLLECTION
from shared.family_stats import count_members, family_sort_key
from shared.member_convert import normalize_member


@dataclass
class FamilySummary:
    id: str
    name: str
    member_count: int


def list_families(
    db: DbClient,
    query: Optional[str] = None,
    collection: str = FAMILIES_COLLECTION,
) -> List[FamilySummary]:
    """Lists families ordered by the number in their id, optionally filtered by name or id."""
    families = []
    for doc_id, data in db.list_documents(collection):
        root = normalize_member({"id": doc_id, **data}, fallback_id=doc_id)
        families.append(
            FamilySummary(id=doc_id, name=root.name, member_count=count_members(root))
        )
    families.sort(key=lambda family: family_sort_key(family.id))

    if not query or not query.strip():
        return families
    needle = query.lower()
    return [
        family
        for family in families
        if needle in family.name.lower() or needle in family.id.lower()
    ]
