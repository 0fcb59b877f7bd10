"""
Editing sessions for one family tree.

A session loads the family document, normalizes it, builds the shared id
registry and the root member editor, and holds the authoritative current
tree until it is saved or closed. Saving writes the whole tree back as one
document, overwriting whatever is stored.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Set

from backend.db import DbClient
from backend.member_editor import MemberEditor
from backend.storage import StorageClient
from shared.family_stats import count_members
from shared.member import Member
from shared.member_convert import member_to_document, normalize_member
from shared.member_ids import IdRegistry, collect_member_ids

logger = logging.getLogger(__name__)

FAMILIES_COLLECTION = "families"


def _assign_missing_ids(
    member: Member,
    registry: IdRegistry,
    seen: Set[str],
    spouse_of: Optional[str] = None,
) -> Member:
    """
    Gives members stored without an id, or with an id already used earlier
    in the tree, a freshly allocated one.
    """
    member_id = member.id
    if not member_id or member_id in seen:
        if spouse_of and registry.spouse_id_for(spouse_of) not in registry:
            member_id = registry.allocate_spouse_id(spouse_of)
        else:
            member_id = registry.allocate_child_id()
        if member.id:
            logger.warning("Duplicate member id %s reassigned to %s", member.id, member_id)
    seen.add(member_id)
    spouse = (
        _assign_missing_ids(member.spouse, registry, seen, spouse_of=member_id)
        if member.spouse
        else None
    )
    children = (
        [_assign_missing_ids(child, registry, seen) for child in member.children]
        if member.children
        else None
    )
    return replace(member, id=member_id, spouse=spouse, children=children)


class FamilyEditorSession:
    """Root container for editing one family."""

    def __init__(
        self,
        family_id: str,
        *,
        db: DbClient,
        storage: StorageClient,
        collection: str = FAMILIES_COLLECTION,
        image_url_expires_in: int = 3600,
        confirm: Optional[Callable[[str], bool]] = None,
    ):
        self.family_id = family_id
        self.db = db
        self.storage = storage
        self.collection = collection
        self.image_url_expires_in = image_url_expires_in
        self.session_id: Optional[str] = None

        self.family: Optional[Member] = None
        self.registry: Optional[IdRegistry] = None
        self.editor: Optional[MemberEditor] = None
        self.notifications: List[str] = []
        self.saving = False
        self.closed = False
        self.last_used = 0.0
        # Held by the HTTP layer around every read and edit of the tree.
        self.lock = threading.RLock()

        self._confirm_callback = confirm
        self._confirmation = False

    @classmethod
    def open(cls, family_id: str, **kwargs) -> "FamilyEditorSession":
        session = cls(family_id, **kwargs)
        session.reload()
        return session

    @property
    def loading(self) -> bool:
        return self.family is None

    @property
    def member_ids(self) -> List[str]:
        return self.registry.ids if self.registry else []

    def reload(self) -> bool:
        """
        Loads the family document.

        A missing document or a failed read leaves the session loading; there
        is no separate "not found" state.
        """
        try:
            data = self.db.get_document(self.collection, self.family_id)
        except Exception as e:
            logger.warning("Failed to load family %s: %s", self.family_id, e)
            return False
        if data is None:
            logger.info("Family %s not found", self.family_id)
            return False

        raw = {"id": self.family_id, **data}
        root = normalize_member(raw, fallback_id=self.family_id)
        registry = IdRegistry(
            member_id for member_id in collect_member_ids(root) if member_id
        )
        root = _assign_missing_ids(root, registry, set())
        with self.lock:
            self._set_root(root, registry)
        logger.info(
            "Opened family %s with %d members", root.id, len(registry)
        )
        return True

    def _set_root(self, root: Member, registry: IdRegistry) -> None:
        if self.editor is not None:
            self.editor.close()
        self.family = root
        self.registry = registry
        self.editor = MemberEditor(
            root,
            registry=registry,
            storage=self.storage,
            on_update=self._on_root_update,
            on_delete=self._on_root_delete,
            notify=self.notify,
            confirm=self._confirm,
            image_url_expires_in=self.image_url_expires_in,
        )

    def _on_root_update(self, updated: Member) -> None:
        self.family = updated

    def _on_root_delete(self) -> None:
        self.notify("Cannot delete root family member")

    def notify(self, message: str) -> None:
        logger.info("[%s] %s", self.family_id, message)
        self.notifications.append(message)

    def drain_notifications(self) -> List[str]:
        messages, self.notifications = self.notifications, []
        return messages

    def _confirm(self, message: str) -> bool:
        if self._confirm_callback is not None:
            return self._confirm_callback(message)
        answer, self._confirmation = self._confirmation, False
        return answer

    def editor_for(self, member_id: str) -> Optional[MemberEditor]:
        if self.editor is None:
            return None
        return self.editor.find(member_id)

    def delete_member(self, member_id: str, confirmed: bool) -> bool:
        """Deletes a member when the caller has already confirmed the deletion."""
        with self.lock:
            editor = self.editor_for(member_id)
            if editor is None:
                raise KeyError(member_id)
            self._confirmation = confirmed
            try:
                # The root only reports that it cannot be deleted.
                return editor.delete() and editor is not self.editor
            finally:
                self._confirmation = False

    def save(self) -> bool:
        with self.lock:
            family = self.family
        if family is None:
            return False
        self.saving = True
        try:
            self.db.set_document(self.collection, family.id, member_to_document(family))
        except Exception as e:
            logger.error("Failed to save family %s: %s", family.id, e)
            self.notify(f"Failed to save: {str(e) or 'Unknown error'}")
            return False
        finally:
            self.saving = False
        logger.info("Saved family %s (%d members)", family.id, count_members(family))
        self.notify("Family saved successfully!")
        return True

    def close(self) -> None:
        with self.lock:
            if self.editor is not None:
                self.editor.close()
            self.closed = True


class SessionStore:
    """
    Open editing sessions, keyed by a random id.

    Sessions idle for longer than `idle_timeout` seconds are closed, and the
    least recently used one is closed when `max_sessions` would be exceeded.
    Unsaved edits of an evicted session are lost.
    """

    def __init__(
        self,
        idle_timeout: float = 1800,
        max_sessions: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.sessions: Dict[str, FamilyEditorSession] = {}
        self.idle_timeout = idle_timeout
        self.max_sessions = max_sessions
        self.clock = clock
        self._lock = threading.Lock()

    def _pop_idle(self, now: float) -> List[FamilyEditorSession]:
        expired = [
            session_id
            for session_id, session in self.sessions.items()
            if now - session.last_used > self.idle_timeout
        ]
        return [self.sessions.pop(session_id) for session_id in expired]

    def _close_evicted(self, evicted: List[FamilyEditorSession]) -> None:
        for session in evicted:
            logger.info("Evicting session %s (%s)", session.session_id, session.family_id)
            session.close()

    def add(self, session: FamilyEditorSession) -> str:
        session_id = uuid.uuid4().hex
        with self._lock:
            now = self.clock()
            evicted = self._pop_idle(now)
            while self.sessions and len(self.sessions) >= self.max_sessions:
                oldest = min(self.sessions, key=lambda key: self.sessions[key].last_used)
                evicted.append(self.sessions.pop(oldest))
            session.session_id = session_id
            session.last_used = now
            self.sessions[session_id] = session
        self._close_evicted(evicted)
        return session_id

    def get(self, session_id: str) -> Optional[FamilyEditorSession]:
        with self._lock:
            now = self.clock()
            evicted = self._pop_idle(now)
            session = self.sessions.get(session_id)
            if session is not None:
                session.last_used = now
        self._close_evicted(evicted)
        return session

    def close(self, session_id: str) -> bool:
        with self._lock:
            session = self.sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        return True

    def reset(self) -> None:
        with self._lock:
            sessions = list(self.sessions.values())
            self.sessions.clear()
        for session in sessions:
            session.close()
