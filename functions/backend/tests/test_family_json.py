import tempfile
import unittest
from pathlib import Path

from backend.storage import InMemoryStorageClient
from scripts.family_json import download_member_images
from shared.member import Member, create_member


class DownloadMemberImagesTests(unittest.TestCase):
    def test_copies_photos_of_whole_tree(self):
        storage = InMemoryStorageClient()
        storage.upload_bytes("images/1.jpg", b"root")
        storage.upload_bytes("images/1s.jpg", b"spouse")
        storage.upload_bytes("images/2.jpg", b"child")
        family = Member(
            id="1",
            name="Root",
            image="1.jpg",
            spouse=create_member("1s", "Partner", image="1s.jpg"),
            children=[
                create_member("2", "Kid", image="2.jpg"),
                create_member("3", "No photo"),
                create_member("4", "Lost photo", image="4.jpg"),
            ],
        )

        with tempfile.TemporaryDirectory() as tmp:
            directory = Path(tmp) / "images"
            written = download_member_images(family, storage, directory)

            self.assertEqual(written, ["1.jpg", "1s.jpg", "2.jpg"])
            self.assertEqual((directory / "1s.jpg").read_bytes(), b"spouse")
            self.assertFalse((directory / "4.jpg").exists())


if __name__ == "__main__":
    unittest.main()
