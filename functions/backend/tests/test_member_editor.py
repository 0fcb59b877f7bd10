import os
import threading
import time
import unittest
from unittest.mock import MagicMock

from backend.member_editor import DEPTH_COLORS, ImagePreview, MemberEditor
from backend.storage import InMemoryStorageClient
from shared.member import Member, MemberStatus, create_member
from shared.member_ids import IdRegistry


class EditorHarness:
    """Holds the root member the way a session would."""

    def __init__(self, member: Member, storage=None):
        self.family = member
        self.deleted = False
        self.notifications = []
        self.confirm_answer = True
        self.registry = IdRegistry.from_member(member)
        self.storage = storage or InMemoryStorageClient()
        self.editor = MemberEditor(
            member,
            registry=self.registry,
            storage=self.storage,
            on_update=self._on_update,
            on_delete=self._on_delete,
            notify=self.notifications.append,
            confirm=lambda message: self.confirm_answer,
        )

    def _on_update(self, member):
        self.family = member

    def _on_delete(self):
        self.deleted = True


class MemberEditorFieldTest(unittest.TestCase):
    def setUp(self):
        self.harness = EditorHarness(
            create_member("1", "Ann", address="Main St", phone="555")
        )

    def test_change_field_only_changes_that_field(self):
        self.harness.editor.change_field("occupation", "Farmer")
        family = self.harness.family
        self.assertEqual(family.occupation, "Farmer")
        self.assertEqual(family.address, "Main St")
        self.assertEqual(family.phone, "555")
        self.assertEqual(family.name, "Ann")

    def test_empty_value_is_stored_as_none(self):
        self.harness.editor.change_field("phone", "")
        self.assertIsNone(self.harness.family.phone)

    def test_status_is_coerced(self):
        self.harness.editor.change_field("status", "Deceased")
        self.assertEqual(self.harness.family.status, MemberStatus.DECEASED)
        self.harness.editor.change_field("status", None)
        self.assertIsNone(self.harness.family.status)

    def test_invalid_status_is_rejected(self):
        with self.assertRaises(ValueError):
            self.harness.editor.change_field("status", "Alive")
        self.assertIsNone(self.harness.family.status)

    def test_unknown_field_is_rejected(self):
        with self.assertRaises(ValueError):
            self.harness.editor.change_field("id", "2")

    def test_color_cycles_with_depth(self):
        self.assertEqual(self.harness.editor.color, "blue")
        editor = MemberEditor(
            create_member("2", "B"),
            registry=IdRegistry(),
            storage=InMemoryStorageClient(),
            on_update=lambda member: None,
            on_delete=lambda: None,
            depth=len(DEPTH_COLORS) + 2,
        )
        self.assertEqual(editor.color, "red")


class MemberEditorStructureTest(unittest.TestCase):
    def setUp(self):
        self.harness = EditorHarness(create_member("5", "Eve"))

    def test_add_spouse_uses_holder_id(self):
        spouse = self.harness.editor.add_spouse("Frank")
        self.assertEqual(spouse.id, "5s")
        self.assertEqual(self.harness.family.spouse.name, "Frank")
        self.assertIn("5s", self.harness.registry)

    def test_blank_names_are_ignored(self):
        self.assertIsNone(self.harness.editor.add_spouse("  "))
        self.assertIsNone(self.harness.editor.add_child(""))
        self.assertIsNone(self.harness.family.spouse)
        self.assertIsNone(self.harness.family.children)

    def test_add_child_to_member_without_children(self):
        child = self.harness.editor.add_child("Gus")
        self.assertEqual(child.id, "6")
        self.assertEqual(len(self.harness.family.children), 1)
        self.assertEqual(self.harness.family.children[0].name, "Gus")

    def test_child_ids_skip_spouse_numbers(self):
        self.harness.editor.add_spouse("Frank")
        first = self.harness.editor.add_child("Gus")
        second = self.harness.editor.add_child("Hal")
        self.assertEqual([first.id, second.id], ["6", "7"])

    def test_deleting_only_child_leaves_no_children(self):
        self.harness.editor.add_child("Gus")
        (child_editor,) = self.harness.editor.child_editors
        self.assertTrue(child_editor.delete())
        self.assertIsNone(self.harness.family.children)
        self.assertEqual(self.harness.editor.child_editors, [])

    def test_deleted_child_id_is_not_reused(self):
        self.harness.editor.add_child("Gus")
        self.harness.editor.child_editors[0].delete()
        child = self.harness.editor.add_child("Hal")
        self.assertEqual(child.id, "7")

    def test_declined_delete_keeps_member(self):
        self.harness.editor.add_child("Gus")
        self.harness.confirm_answer = False
        self.assertFalse(self.harness.editor.child_editors[0].delete())
        self.assertEqual(len(self.harness.family.children), 1)

    def test_deleting_spouse_clears_slot(self):
        self.harness.editor.add_spouse("Frank")
        self.harness.editor.spouse_editor.delete()
        self.assertIsNone(self.harness.family.spouse)
        self.assertIsNone(self.harness.editor.spouse_editor)

    def test_nested_edit_propagates_to_root(self):
        self.harness.editor.add_child("Gus")
        child_editor = self.harness.editor.child_editors[0]
        child_editor.add_child("Ivy")
        grandchild_editor = child_editor.child_editors[0]
        grandchild_editor.change_field("phone", "123")

        grandchild = self.harness.family.children[0].children[0]
        self.assertEqual(grandchild.name, "Ivy")
        self.assertEqual(grandchild.phone, "123")
        self.assertEqual(grandchild_editor.depth, 2)

    def test_sibling_edits_after_deletion_hit_the_right_child(self):
        self.harness.editor.add_child("Gus")
        self.harness.editor.add_child("Hal")
        gus_editor, hal_editor = self.harness.editor.child_editors
        gus_editor.delete()
        hal_editor.change_field("occupation", "Smith")

        (hal,) = self.harness.family.children
        self.assertEqual(hal.name, "Hal")
        self.assertEqual(hal.occupation, "Smith")

    def test_child_editors_are_cached(self):
        self.harness.editor.add_child("Gus")
        first = self.harness.editor.child_editors[0]
        self.harness.editor.add_child("Hal")
        self.assertIs(self.harness.editor.child_editors[0], first)

    def test_concurrent_child_allocations_get_distinct_ids(self):
        registry = self.harness.registry
        next_child_id = registry.next_child_id

        def slow_next_child_id():
            child_id = next_child_id()
            time.sleep(0.05)
            return child_id

        registry.next_child_id = slow_next_child_id
        child_ids = []
        threads = [
            threading.Thread(target=lambda: child_ids.append(registry.allocate_child_id()))
            for _ in range(2)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(child_ids), ["6", "7"])
        self.assertIn("6", registry)
        self.assertIn("7", registry)

    def test_find_locates_nested_members(self):
        self.harness.editor.add_spouse("Frank")
        self.harness.editor.add_child("Gus")
        self.assertEqual(self.harness.editor.find("5s").member.name, "Frank")
        self.assertEqual(self.harness.editor.find("6").member.name, "Gus")
        self.assertIsNone(self.harness.editor.find("99"))


class MemberEditorImageTest(unittest.TestCase):
    def setUp(self):
        self.storage = InMemoryStorageClient()
        self.harness = EditorHarness(create_member("3", "Cal"), storage=self.storage)

    def test_attach_image_uploads_under_member_id(self):
        self.assertTrue(self.harness.editor.attach_image(b"jpeg-bytes"))
        self.assertEqual(self.harness.family.image, "3.jpg")
        self.assertEqual(self.storage.get_bytes("images/3.jpg"), b"jpeg-bytes")
        self.assertFalse(self.harness.editor.uploading)
        # The settled preview is held but only the stored image is shown.
        self.assertFalse(self.harness.editor.preview.released)
        self.assertEqual(
            self.harness.editor.image_url,
            "https://example.test/storage/images/3.jpg?op=get&expires=3600",
        )

    def test_preview_is_shown_while_uploading(self):
        seen_urls = []
        storage = MagicMock()
        storage.get_download_url.return_value = "https://signed/3.jpg"
        harness = EditorHarness(create_member("3", "Cal"), storage)
        storage.upload_bytes.side_effect = lambda *args, **kwargs: seen_urls.append(
            harness.editor.image_url
        )

        self.assertTrue(harness.editor.attach_image(b"jpeg-bytes"))
        self.assertEqual(len(seen_urls), 1)
        self.assertTrue(seen_urls[0].startswith("file://"))
        self.assertEqual(harness.editor.image_url, "https://signed/3.jpg")

    def test_empty_image_is_ignored(self):
        self.assertFalse(self.harness.editor.attach_image(b""))
        self.assertIsNone(self.harness.family.image)

    def test_upload_failure_notifies_and_keeps_field(self):
        storage = MagicMock()
        storage.upload_bytes.side_effect = RuntimeError("bucket unavailable")
        harness = EditorHarness(create_member("3", "Cal", image="old.jpg"), storage)

        self.assertFalse(harness.editor.attach_image(b"jpeg-bytes"))
        self.assertEqual(harness.family.image, "old.jpg")
        self.assertEqual(harness.notifications, ["Upload failed: bucket unavailable"])
        self.assertIsNone(harness.editor.preview)
        self.assertFalse(harness.editor.uploading)

    def test_remove_image_releases_preview(self):
        self.harness.editor.attach_image(b"jpeg-bytes")
        preview = self.harness.editor.preview
        self.assertTrue(os.path.exists(preview.path))

        self.harness.editor.remove_image()
        self.assertTrue(preview.released)
        self.assertFalse(os.path.exists(preview.path))
        self.assertIsNone(self.harness.family.image)
        self.assertIsNone(self.harness.editor.image_url)

    def test_new_preview_releases_previous_one(self):
        self.harness.editor.attach_image(b"first")
        first = self.harness.editor.preview
        self.harness.editor.attach_image(b"second")
        self.assertTrue(first.released)
        self.assertFalse(self.harness.editor.preview.released)

    def test_existing_image_resolves_download_url(self):
        self.storage.upload_bytes("images/3.jpg", b"x", content_type="image/jpeg")
        self.harness.editor.change_field("image", "3.jpg")
        self.assertIn("images/3.jpg", self.harness.editor.image_url)

    def test_missing_image_resolves_to_none(self):
        self.harness.editor.change_field("image", "gone.jpg")
        self.assertIsNone(self.harness.editor.image_url)

    def test_close_releases_nested_previews(self):
        self.harness.editor.add_child("Dee")
        child_editor = self.harness.editor.child_editors[0]
        child_editor.attach_image(b"child")
        preview = child_editor.preview
        self.harness.editor.close()
        self.assertTrue(preview.released)


class ImagePreviewTest(unittest.TestCase):
    def test_release_is_idempotent(self):
        preview = ImagePreview.create(b"data")
        self.assertTrue(preview.url.startswith("file://"))
        preview.release()
        preview.release()
        self.assertFalse(os.path.exists(preview.path))


if __name__ == "__main__":
    unittest.main()
