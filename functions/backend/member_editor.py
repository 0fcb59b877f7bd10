"""
Recursive editor for one member of a family tree.

Each editor owns the editable state of exactly one member and hands the
rendering of its spouse and children to further editors. Edits never mutate
a member in place: the editor builds a replacement member and reports it
through `on_update`, and every ancestor does the same for its own subtree, so
the root always ends up holding the current tree.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, List, Optional

from backend.storage import StorageClient
from shared.member import Member, MemberStatus, create_member
from shared.member_ids import IdRegistry

logger = logging.getLogger(__name__)

IMAGE_STORAGE_PREFIX = "images/"

DEPTH_COLORS = [
    "blue",
    "yellow",
    "red",
    "green",
    "purple",
    "orange",
    "pink",
    "cyan",
    "lime",
    "indigo",
]

EDITABLE_FIELDS = ("name", "address", "phone", "occupation", "status", "image")

UpdateCallback = Callable[[Member], None]
DeleteCallback = Callable[[], None]
NotifyCallback = Callable[[str], None]
ConfirmCallback = Callable[[str], bool]


def image_filename(member_id: str) -> str:
    return f"{member_id}.jpg"


def image_storage_path(filename: str) -> str:
    return f"{IMAGE_STORAGE_PREFIX}{filename}"


def _coerce_field_value(field: str, value):
    if field == "name":
        return "" if value is None else str(value)
    if field == "status":
        # Raises ValueError for anything but "Deceased".
        return MemberStatus(value) if value else None
    return value or None


def _log_notification(message: str) -> None:
    logger.info("Notification: %s", message)


def _decline(message: str) -> bool:
    return False


class ImagePreview:
    """
    A local copy of a chosen photo, shown before its upload settles.

    The copy is a temporary file; `release` must be called once the preview
    is superseded, removed or its editor is discarded.
    """

    def __init__(self, path: str):
        self.path = path
        self.released = False

    @classmethod
    def create(cls, data: bytes, suffix: str = ".jpg") -> "ImagePreview":
        fd, path = tempfile.mkstemp(prefix="member-preview-", suffix=suffix)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        return cls(path)

    @property
    def url(self) -> str:
        return Path(self.path).as_uri()

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        Path(self.path).unlink(missing_ok=True)


class MemberEditor:
    """Editable state for one member plus cached editors for its spouse and children."""

    def __init__(
        self,
        member: Member,
        *,
        registry: IdRegistry,
        storage: StorageClient,
        on_update: UpdateCallback,
        on_delete: DeleteCallback,
        notify: Optional[NotifyCallback] = None,
        confirm: Optional[ConfirmCallback] = None,
        depth: int = 0,
        image_url_expires_in: int = 3600,
    ):
        self.member = member
        self.registry = registry
        self.storage = storage
        self.on_update = on_update
        self.on_delete = on_delete
        self.notify = notify or _log_notification
        self.confirm = confirm or _decline
        self.depth = depth
        self.image_url_expires_in = image_url_expires_in
        self.uploading = False

        self._preview: Optional[ImagePreview] = None
        self._fetched_image_url: Optional[str] = None
        self._fetched_image_for: Optional[str] = None
        self._spouse_editor: Optional[MemberEditor] = None
        self._child_editors: Dict[str, MemberEditor] = {}

    @property
    def color(self) -> str:
        return DEPTH_COLORS[self.depth % len(DEPTH_COLORS)]

    @property
    def preview(self) -> Optional[ImagePreview]:
        return self._preview

    def sync(self, member: Member) -> None:
        """Adopts the parent's current copy of this member."""
        self.member = member

    # Field edits

    def change_field(self, field: str, value) -> Member:
        if field not in EDITABLE_FIELDS:
            raise ValueError(f"Unknown member field: {field}")
        self._apply(field, _coerce_field_value(field, value))
        return self.member

    def _apply(self, field: str, value) -> None:
        updated = replace(self.member, **{field: value})
        self.member = updated
        self.on_update(updated)

    # Photo

    @property
    def image_url(self) -> Optional[str]:
        """
        The local preview while an upload is pending, otherwise the stored image.

        A settled preview stays held until it is superseded or removed, but its
        local path is not handed out once the upload has finished.
        """
        if self._preview is not None and self.uploading:
            return self._preview.url
        return self._resolve_image_url()

    def _resolve_image_url(self) -> Optional[str]:
        image = self.member.image
        if not image:
            return None
        if self._fetched_image_for == image:
            return self._fetched_image_url
        try:
            url = self.storage.get_download_url(
                image_storage_path(image), expires_in=self.image_url_expires_in
            )
        except Exception as e:
            logger.warning("Could not fetch existing image for %s: %s", self.member.id, e)
            url = None
        self._fetched_image_url = url
        self._fetched_image_for = image
        return url

    def _replace_preview(self, preview: Optional[ImagePreview]) -> None:
        if self._preview is not None and self._preview is not preview:
            self._preview.release()
        self._preview = preview

    def attach_image(self, data: bytes, content_type: str = "image/jpeg") -> bool:
        """
        Uploads a photo for this member under a key derived from its id.

        The preview is shown at once. The image field only changes once the
        upload and URL lookup both succeed; on failure the user is notified
        and the preview is dropped.
        """
        if not data:
            return False

        self._replace_preview(ImagePreview.create(data))
        self.uploading = True
        filename = image_filename(self.member.id)
        path = image_storage_path(filename)
        try:
            self.storage.upload_bytes(path, data, content_type=content_type)
            url = self.storage.get_download_url(
                path, expires_in=self.image_url_expires_in
            )
        except Exception as e:
            logger.error("Image upload failed for %s: %s", self.member.id, e)
            self.notify(f"Upload failed: {str(e) or 'Unknown error'}")
            self._replace_preview(None)
            return False
        finally:
            self.uploading = False

        self._fetched_image_url = url
        self._fetched_image_for = filename
        self.change_field("image", filename)
        logger.info("Uploaded image %s for %s", path, self.member.id)
        return True

    def remove_image(self) -> None:
        self._replace_preview(None)
        self._fetched_image_url = None
        self._fetched_image_for = None
        self.change_field("image", None)

    # Structure

    def add_spouse(self, name: str) -> Optional[Member]:
        if not name or not name.strip():
            return None
        spouse = create_member(self.registry.allocate_spouse_id(self.member.id), name)
        self._discard_spouse_editor()
        self._apply("spouse", spouse)
        return spouse

    def add_child(self, name: str) -> Optional[Member]:
        if not name or not name.strip():
            return None
        child = create_member(self.registry.allocate_child_id(), name)
        self._apply("children", [*(self.member.children or []), child])
        return child

    def delete(self) -> bool:
        if not self.confirm(f"Delete {self.member.name}? This cannot be undone."):
            return False
        self.on_delete()
        return True

    # Sub-editors

    def _spawn(
        self, member: Member, on_update: UpdateCallback, on_delete: DeleteCallback
    ) -> "MemberEditor":
        return MemberEditor(
            member,
            registry=self.registry,
            storage=self.storage,
            on_update=on_update,
            on_delete=on_delete,
            notify=self.notify,
            confirm=self.confirm,
            depth=self.depth + 1,
            image_url_expires_in=self.image_url_expires_in,
        )

    @property
    def spouse_editor(self) -> Optional["MemberEditor"]:
        spouse = self.member.spouse
        if spouse is None:
            self._discard_spouse_editor()
            return None
        editor = self._spouse_editor
        if editor is None or editor.member.id != spouse.id:
            self._discard_spouse_editor()
            editor = self._spawn(spouse, self._update_spouse, self._delete_spouse)
            self._spouse_editor = editor
        else:
            editor.sync(spouse)
        return editor

    @property
    def child_editors(self) -> List["MemberEditor"]:
        editors: Dict[str, MemberEditor] = {}
        for child in self.member.children or []:
            editor = self._child_editors.pop(child.id, None)
            if editor is None:
                editor = self._spawn(
                    child,
                    lambda updated, child_id=child.id: self._update_child(
                        child_id, updated
                    ),
                    lambda child_id=child.id: self._delete_child(child_id),
                )
            else:
                editor.sync(child)
            editors[child.id] = editor
        for stale in self._child_editors.values():
            stale.close()
        self._child_editors = editors
        return list(editors.values())

    def _update_spouse(self, updated: Member) -> None:
        self._apply("spouse", updated)

    def _delete_spouse(self) -> None:
        # The spouse's own children go with it.
        self._discard_spouse_editor()
        self._apply("spouse", None)

    def _update_child(self, child_id: str, updated: Member) -> None:
        children = [
            updated if child.id == child_id else child
            for child in self.member.children or []
        ]
        self._apply("children", children)

    def _delete_child(self, child_id: str) -> None:
        remaining = [
            child for child in self.member.children or [] if child.id != child_id
        ]
        editor = self._child_editors.pop(child_id, None)
        if editor is not None:
            editor.close()
        self._apply("children", remaining or None)

    def _discard_spouse_editor(self) -> None:
        if self._spouse_editor is not None:
            self._spouse_editor.close()
            self._spouse_editor = None

    def find(self, member_id: str) -> Optional["MemberEditor"]:
        """Returns the editor for `member_id` anywhere in this subtree."""
        if self.member.id == member_id:
            return self
        spouse_editor = self.spouse_editor
        if spouse_editor is not None:
            found = spouse_editor.find(member_id)
            if found is not None:
                return found
        for editor in self.child_editors:
            found = editor.find(member_id)
            if found is not None:
                return found
        return None

    def close(self) -> None:
        """Releases every preview held in this subtree."""
        self._replace_preview(None)
        self._discard_spouse_editor()
        for editor in self._child_editors.values():
            editor.close()
        self._child_editors = {}
