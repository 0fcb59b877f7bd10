import unittest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

from backend.storage import CosStorageClient, InMemoryStorageClient


class InMemoryStorageClientTests(unittest.TestCase):
    def test_upload_and_resolve(self):
        storage = InMemoryStorageClient()
        self.assertEqual(storage.upload_bytes("images/1.jpg", b"x"), "images/1.jpg")
        self.assertEqual(
            storage.get_download_url("images/1.jpg", expires_in=60),
            "https://example.test/storage/images/1.jpg?op=get&expires=60",
        )
        self.assertEqual(storage.get_bytes("images/1.jpg"), b"x")

    def test_missing_object(self):
        storage = InMemoryStorageClient()
        with self.assertRaises(FileNotFoundError):
            storage.get_download_url("images/none.jpg")
        with self.assertRaises(FileNotFoundError):
            storage.get_bytes("images/none.jpg")


class CosStorageClientTests(unittest.TestCase):
    def setUp(self):
        patcher = patch("backend.storage.boto3.client")
        self.addCleanup(patcher.stop)
        self.s3 = MagicMock()
        patcher.start().return_value = self.s3
        self.storage = CosStorageClient(
            bucket="family",
            region="ap-guangzhou",
            endpoint="https://cos.example.test",
            access_key_id="key",
            secret_access_key="secret",
        )

    def test_upload_bytes_sets_content_type(self):
        self.storage.upload_bytes("images/1.jpg", b"x", content_type="image/jpeg")
        self.s3.put_object.assert_called_once_with(
            Bucket="family", Key="images/1.jpg", Body=b"x", ContentType="image/jpeg"
        )

    def test_download_url_is_presigned(self):
        self.s3.generate_presigned_url.return_value = "https://signed"
        self.assertEqual(
            self.storage.get_download_url("images/1.jpg", expires_in=60),
            "https://signed",
        )
        self.s3.head_object.assert_called_once_with(Bucket="family", Key="images/1.jpg")

    def test_download_url_for_missing_object(self):
        self.s3.head_object.side_effect = ClientError(
            {"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject"
        )
        with self.assertRaises(FileNotFoundError):
            self.storage.get_download_url("images/none.jpg")
        self.s3.generate_presigned_url.assert_not_called()

    def test_other_client_errors_propagate(self):
        self.s3.head_object.side_effect = ClientError(
            {"Error": {"Code": "403", "Message": "Forbidden"}}, "HeadObject"
        )
        with self.assertRaises(ClientError):
            self.storage.get_download_url("images/1.jpg")

    def test_get_bytes_for_missing_object(self):
        no_such_key = type("NoSuchKey", (Exception,), {})
        self.s3.exceptions.NoSuchKey = no_such_key
        self.s3.get_object.side_effect = no_such_key()
        with self.assertRaises(FileNotFoundError):
            self.storage.get_bytes("images/none.jpg")


if __name__ == "__main__":
    unittest.main()
