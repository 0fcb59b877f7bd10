"""
User roster management.

Accounts have been written under several collection spellings over time, so
listing reads every variant and merges the results. Changes are always
written to the primary `Users` collection.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from backend.db import DbClient

logger = logging.getLogger(__name__)

PRIMARY_USERS_COLLECTION = "Users"
USER_COLLECTION_VARIANTS = ("users", "Users", "user", "User")


@dataclass
class UserRecord:
    id: str
    name: str = ""
    email: str = ""
    role: str = "user"
    suspended: bool = False

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "UserRecord":
        return cls(
            id=doc_id,
            name=data.get("name") or "",
            email=data.get("email") or "",
            role=data.get("role") or "user",
            suspended=bool(data.get("suspended", False)),
        )


@dataclass
class UserListing:
    users: List[UserRecord] = field(default_factory=list)
    error: Optional[str] = None


def search_users(users: List[UserRecord], query: Optional[str]) -> List[UserRecord]:
    if not query or not query.strip():
        return users
    needle = query.lower()
    return [
        user
        for user in users
        if needle in user.name.lower() or needle in user.email.lower()
    ]


class UserService:
    def __init__(
        self,
        db: DbClient,
        collections: tuple[str, ...] = USER_COLLECTION_VARIANTS,
        primary_collection: str = PRIMARY_USERS_COLLECTION,
    ):
        self.db = db
        self.collections = collections
        self.primary_collection = primary_collection

    def list_users(self) -> UserListing:
        """
        Reads every collection variant; a failing variant is skipped.

        Only a failure of the primary collection is reported back, next to
        whatever users the other variants returned.
        """
        found: List[UserRecord] = []
        error = None
        for collection in self.collections:
            try:
                documents = self.db.list_documents(collection)
            except Exception as e:
                logger.warning("Failed to fetch %s: %s", collection, e)
                if collection == self.primary_collection:
                    error = f"Failed to load '{collection}' collection: {e}"
                continue
            logger.debug("%s: found %d docs", collection, len(documents))
            found.extend(
                UserRecord.from_document(doc_id, data) for doc_id, data in documents
            )

        # Later duplicates win but keep the first position.
        unique = {user.id: user for user in found}
        if not unique:
            logger.warning("No users found in any collection variant")
        return UserListing(users=list(unique.values()), error=error)

    def toggle_suspended(self, user_id: str, currently_suspended: bool) -> bool:
        suspended = not currently_suspended
        self.db.update_document(
            self.primary_collection, user_id, {"suspended": suspended}
        )
        logger.info("User %s suspended=%s", user_id, suspended)
        return suspended

    def rename_user(self, user_id: str, name: str) -> None:
        # Roles are not editable from the console.
        self.db.update_document(self.primary_collection, user_id, {"name": name})

    def delete_user(self, user_id: str) -> None:
        self.db.delete_document(self.primary_collection, user_id)
        logger.info("Deleted user %s", user_id)
