import os
import tempfile
import unittest

from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import ClientError

from volt_browser import services
from volt_browser.models import Credentials
from volt_browser.services import Boto3Backend


class FakeS3Client:
    def __init__(self, object_responses=None, head_sizes=None, errors=None, transfer_sequences=None):
        self.object_responses = iter(object_responses or [])
        self.head_sizes = head_sizes or {}
        self.errors = errors or {}
        self.transfer_sequences = transfer_sequences or {}
        self.calls = []
        self.list_objects_kwargs = []

    def _maybe_raise(self, name):
        error = self.errors.get(name)
        if error:
            raise error

    def head_bucket(self, **kwargs):
        self.calls.append(("head_bucket", kwargs))
        self._maybe_raise("head_bucket")

    def list_objects_v2(self, **kwargs):
        self.list_objects_kwargs.append(kwargs)
        return next(self.object_responses)

    def put_object(self, **kwargs):
        self.calls.append(("put_object", kwargs))
        self._maybe_raise("put_object")

    def upload_file(self, filename, bucket, key, Callback=None, Config=None):
        self.calls.append(("upload_file", (filename, bucket, key)))
        self._maybe_raise("upload_file")

    def upload_fileobj(self, fileobj, bucket, key, Callback=None, Config=None):
        self.calls.append(("upload_fileobj", (fileobj.read(), bucket, key, Config)))
        self._maybe_raise("upload_fileobj")
        if Callback:
            for amount in self.transfer_sequences.get(("upload", key), []):
                Callback(amount)

    def head_object(self, **kwargs):
        return {"ContentLength": self.head_sizes.get(kwargs["Key"], 0)}

    def download_file(self, bucket, key, filename, Callback=None):
        self.calls.append(("download_file", (bucket, key, filename)))
        self._maybe_raise("download_file")
        if Callback:
            for amount in self.transfer_sequences.get(("download", key), []):
                Callback(amount)

    def delete_object(self, **kwargs):
        self.calls.append(("delete_object", kwargs))
        self._maybe_raise("delete_object")

    def delete_objects(self, **kwargs):
        self.calls.append(("delete_objects", kwargs))
        return {}

    def copy_object(self, **kwargs):
        self.calls.append(("copy_object", kwargs))

    def generate_presigned_url(self, client_method, Params=None, ExpiresIn=3600):
        self.calls.append(("generate_presigned_url", (client_method, Params, ExpiresIn)))
        return "https://signed.example/" + Params["Key"]

    def calls_named(self, name):
        return [args for call_name, args in self.calls if call_name == name]


class FakeCredentialStorage:
    def __init__(self, stored=None):
        self.stored = stored
        self.cleared = False

    def load(self):
        return self.stored

    def save(self, credentials):
        self.stored = credentials

    def clear(self):
        self.cleared = True
        self.stored = None


def client_error(code="AccessDenied", operation="Operation"):
    return ClientError({"Error": {"Code": code, "Message": "Denied"}}, operation)


CONNECT_PAYLOAD = {
    "accessKeyId": "access",
    "secretAccessKey": "secret",
    "region": "eu-west-1",
    "bucket": "bucket-one",
    "endpoint": "https://minio.local",
}


class Boto3BackendTests(unittest.TestCase):
    def make_backend(self, client, **kwargs):
        self.factory_calls = []
        self.storage = kwargs.pop("credential_storage", FakeCredentialStorage())

        def factory(*args, **factory_kwargs):
            self.factory_calls.append((args, factory_kwargs))
            return client

        backend = Boto3Backend(client_factory=factory, credential_storage=self.storage, **kwargs)
        self.events = []
        backend.on_transfer_progress(self.events.append)
        return backend

    def connected_backend(self, client, **kwargs):
        backend = self.make_backend(client, **kwargs)
        self.assertEqual({"success": True}, backend.connect_s3(CONNECT_PAYLOAD))
        return backend

    def test_connect_validates_bucket_and_saves_credentials(self):
        client = FakeS3Client()
        backend = self.make_backend(client)

        result = backend.connect_s3(CONNECT_PAYLOAD)

        self.assertEqual({"success": True}, result)
        args, kwargs = self.factory_calls[0]
        self.assertEqual(("s3",), args)
        self.assertEqual("https://minio.local", kwargs["endpoint_url"])
        self.assertEqual("eu-west-1", kwargs["region_name"])
        self.assertEqual([{"Bucket": "bucket-one"}], client.calls_named("head_bucket"))
        self.assertEqual(
            Credentials(
                access_key_id="access",
                secret_access_key="secret",
                region="eu-west-1",
                bucket="bucket-one",
                endpoint_url="https://minio.local",
            ),
            self.storage.stored,
        )

    def test_connect_reports_client_errors(self):
        client = FakeS3Client(errors={"head_bucket": client_error("403", "HeadBucket")})
        backend = self.make_backend(client)

        result = backend.connect_s3(CONNECT_PAYLOAD)

        self.assertFalse(result["success"])
        self.assertIn("403", result["error"])
        self.assertIsNone(self.storage.stored)

    def test_connect_requires_fields(self):
        backend = self.make_backend(FakeS3Client())

        result = backend.connect_s3({"accessKeyId": "a", "bucket": "b"})

        self.assertFalse(result["success"])
        self.assertEqual([], self.factory_calls)

    def test_get_and_clear_credentials(self):
        stored = Credentials(access_key_id="a", secret_access_key="b", region="r", bucket="c")
        backend = self.make_backend(FakeS3Client(), credential_storage=FakeCredentialStorage(stored))

        self.assertEqual(
            {"accessKeyId": "a", "secretAccessKey": "b", "region": "r", "bucket": "c", "endpoint": ""},
            backend.get_credentials(),
        )

        backend.clear_credentials()

        self.assertTrue(self.storage.cleared)
        self.assertIsNone(backend.get_credentials())

    def test_operations_require_connection(self):
        backend = self.make_backend(FakeS3Client())

        with self.assertRaises(RuntimeError):
            backend.list_objects({"bucket": "bucket-one", "prefix": ""})

    def test_list_objects_follows_continuation_tokens(self):
        client = FakeS3Client(
            object_responses=[
                {
                    "Contents": [{"Key": "docs/a.txt", "Size": 1, "StorageClass": "STANDARD"}],
                    "CommonPrefixes": [{"Prefix": "docs/sub/"}],
                    "IsTruncated": True,
                    "NextContinuationToken": "token-1",
                },
                {"Contents": [{"Key": "docs/b.txt", "Size": 2}], "IsTruncated": False},
            ]
        )
        backend = self.connected_backend(client)

        result = backend.list_objects({"bucket": "bucket-one", "prefix": "docs/"})

        self.assertEqual(["docs/a.txt", "docs/b.txt"], [obj["Key"] for obj in result["objects"]])
        self.assertEqual([{"Prefix": "docs/sub/"}], result["folders"])
        self.assertEqual("/", client.list_objects_kwargs[0]["Delimiter"])
        self.assertEqual("docs/", client.list_objects_kwargs[0]["Prefix"])
        self.assertNotIn("ContinuationToken", client.list_objects_kwargs[0])
        self.assertEqual("token-1", client.list_objects_kwargs[1]["ContinuationToken"])

    def test_upload_file_from_data_and_path(self):
        client = FakeS3Client()
        backend = self.connected_backend(client)

        backend.upload_file({"bucket": "bucket-one", "key": "docs/a.txt", "data": b"abc"})
        backend.upload_file({"bucket": "bucket-one", "key": "docs/b.txt", "filePath": "/tmp/b.txt"})

        self.assertEqual(
            [{"Bucket": "bucket-one", "Key": "docs/a.txt", "Body": b"abc"}],
            client.calls_named("put_object"),
        )
        self.assertEqual([("/tmp/b.txt", "bucket-one", "docs/b.txt")], client.calls_named("upload_file"))

    def test_upload_file_reports_errors(self):
        client = FakeS3Client(errors={"put_object": client_error()})
        backend = self.connected_backend(client)

        result = backend.upload_file({"bucket": "bucket-one", "key": "a.txt", "data": b"abc"})

        self.assertFalse(result["success"])

    def test_upload_file_from_path_reports_transfer_errors(self):
        client = FakeS3Client(errors={"upload_file": S3UploadFailedError("Failed to upload b.txt: Access Denied")})
        backend = self.connected_backend(client)

        result = backend.upload_file({"bucket": "bucket-one", "key": "b.txt", "filePath": "/tmp/b.txt"})

        self.assertEqual({"success": False, "error": "Failed to upload b.txt: Access Denied"}, result)

    def test_upload_with_progress_emits_events(self):
        client = FakeS3Client(transfer_sequences={("upload", "a.txt"): [2, 2]})
        backend = self.connected_backend(client)

        result = backend.upload_file_with_progress(
            {"bucket": "bucket-one", "key": "a.txt", "data": b"abcd", "transferId": "t1"}
        )

        self.assertEqual({"success": True}, result)
        self.assertEqual([0.0, 0.5, 1.0, 1.0], [event["progress"] for event in self.events])
        self.assertEqual("completed", self.events[-1]["status"])
        self.assertTrue(all(event["transferId"] == "t1" for event in self.events))
        self.assertTrue(all(event["kind"] == "upload" for event in self.events))

    def test_upload_with_progress_emits_failure(self):
        client = FakeS3Client(errors={"upload_fileobj": S3UploadFailedError("Failed to upload a.txt: Access Denied")})
        backend = self.connected_backend(client)

        result = backend.upload_file_with_progress(
            {"bucket": "bucket-one", "key": "a.txt", "data": b"abcd", "transferId": "t1"}
        )

        self.assertEqual({"success": False, "error": "Failed to upload a.txt: Access Denied"}, result)
        self.assertEqual(
            {
                "transferId": "t1",
                "kind": "upload",
                "status": "failed",
                "error": "Failed to upload a.txt: Access Denied",
            },
            self.events[-1],
        )

    def test_upload_uses_configured_transfer_settings(self):
        class FakeTransferConfig:
            def __init__(self, **kwargs):
                self.kwargs = kwargs

        original_config = services.TransferConfig
        services.TransferConfig = FakeTransferConfig
        try:
            client = FakeS3Client()
            backend = self.connected_backend(client)
            backend.configure_transfers(multipart_threshold=1024, multipart_chunk_size=2048, max_concurrency=0)
            backend.upload_file_with_progress(
                {"bucket": "bucket-one", "key": "a.txt", "data": b"x", "transferId": "t1"}
            )
        finally:
            services.TransferConfig = original_config

        config = client.calls_named("upload_fileobj")[0][3]
        self.assertEqual(
            {
                "multipart_threshold": 1024,
                "multipart_chunksize": 2048,
                "max_concurrency": services.DEFAULT_MAX_CONCURRENCY,
            },
            config.kwargs,
        )

    def test_download_file_returns_presigned_url(self):
        client = FakeS3Client()
        backend = self.connected_backend(client, presigned_url_expiry=600)

        result = backend.download_file({"bucket": "bucket-one", "key": "docs/a.txt"})

        self.assertEqual({"url": "https://signed.example/docs/a.txt"}, result)
        self.assertEqual(
            [("get_object", {"Bucket": "bucket-one", "Key": "docs/a.txt"}, 600)],
            client.calls_named("generate_presigned_url"),
        )

    def test_open_url_uses_opener(self):
        opened = []
        backend = self.make_backend(FakeS3Client(), url_opener=opened.append)

        backend.open_url("https://example.com")

        self.assertEqual(["https://example.com"], opened)

    def test_download_with_progress_uses_picker_and_reports_cancel(self):
        client = FakeS3Client(head_sizes={"docs/a.txt": 4}, transfer_sequences={("download", "docs/a.txt"): [4]})
        suggestions = []
        backend = self.connected_backend(
            client,
            save_path_picker=lambda name: suggestions.append(name) or "/tmp/a.txt",
        )

        result = backend.download_file_with_progress(
            {"bucket": "bucket-one", "key": "docs/a.txt", "transferId": "t1", "savePath": None}
        )

        self.assertEqual({"success": True}, result)
        self.assertEqual(["a.txt"], suggestions)
        self.assertEqual([("bucket-one", "docs/a.txt", "/tmp/a.txt")], client.calls_named("download_file"))
        self.assertEqual("completed", self.events[-1]["status"])

        backend.save_path_picker = lambda name: None
        result = backend.download_file_with_progress(
            {"bucket": "bucket-one", "key": "docs/a.txt", "transferId": "t2"}
        )
        self.assertEqual({"canceled": True}, result)
        self.assertEqual({"transferId": "t2", "kind": "download", "status": "canceled"}, self.events[-1])

    def test_download_files_into_selected_directory(self):
        client = FakeS3Client()
        backend = self.connected_backend(client, directory_picker=lambda: "/tmp/out")

        result = backend.download_files(
            {"bucket": "bucket-one", "keys": ["docs/a.txt", "b.txt"], "transferIds": ["t1", "t2"]}
        )

        self.assertEqual({"success": True}, result)
        self.assertEqual(
            [
                ("bucket-one", "docs/a.txt", os.path.join("/tmp/out", "a.txt")),
                ("bucket-one", "b.txt", os.path.join("/tmp/out", "b.txt")),
            ],
            client.calls_named("download_file"),
        )

    def test_download_files_cancelled_without_directory(self):
        backend = self.connected_backend(FakeS3Client(), directory_picker=lambda: None)

        result = backend.download_files({"bucket": "bucket-one", "keys": ["a"], "transferIds": ["t1"]})

        self.assertEqual({"canceled": True}, result)
        self.assertEqual("canceled", self.events[-1]["status"])

    def test_download_folder_recreates_structure(self):
        client = FakeS3Client(
            object_responses=[
                {
                    "Contents": [{"Key": "docs/"}, {"Key": "docs/a.txt"}, {"Key": "docs/sub/b.txt"}],
                    "IsTruncated": False,
                }
            ]
        )
        with tempfile.TemporaryDirectory() as tmp:
            tmp = os.path.realpath(tmp)
            backend = self.connected_backend(client, directory_picker=lambda: tmp)

            result = backend.download_folder({"bucket": "bucket-one", "prefix": "docs/", "folderName": "docs"})

            self.assertEqual({"success": True}, result)
            self.assertEqual(
                [
                    ("bucket-one", "docs/a.txt", os.path.join(tmp, "docs", "a.txt")),
                    ("bucket-one", "docs/sub/b.txt", os.path.join(tmp, "docs", "sub", "b.txt")),
                ],
                client.calls_named("download_file"),
            )
            self.assertTrue(os.path.isdir(os.path.join(tmp, "docs", "sub")))
        self.assertNotIn("Delimiter", client.list_objects_kwargs[0])

    def test_download_folder_keeps_files_inside_target(self):
        client = FakeS3Client(
            object_responses=[
                {
                    "Contents": [{"Key": "docs/../../evil.txt"}, {"Key": "docs/.."}, {"Key": "docs/ok.txt"}],
                    "IsTruncated": False,
                }
            ]
        )
        with tempfile.TemporaryDirectory() as tmp:
            tmp = os.path.realpath(tmp)
            target = os.path.join(tmp, "target")
            os.makedirs(target)
            backend = self.connected_backend(client, directory_picker=lambda: target)

            result = backend.download_folder({"bucket": "bucket-one", "prefix": "docs/", "folderName": "docs"})

            self.assertEqual({"success": True}, result)
            root = os.path.join(target, "docs")
            destinations = [call[2] for call in client.calls_named("download_file")]
            self.assertEqual(
                [os.path.join(root, "evil.txt"), os.path.join(root, "ok.txt")],
                destinations,
            )
            self.assertFalse(os.path.exists(os.path.join(tmp, "evil.txt")))

    def test_download_folder_cancelled(self):
        backend = self.connected_backend(FakeS3Client(), directory_picker=lambda: None)

        self.assertEqual(
            {"canceled": True},
            backend.download_folder({"bucket": "bucket-one", "prefix": "docs/", "folderName": "docs"}),
        )

    def test_delete_file_and_folder(self):
        client = FakeS3Client(
            object_responses=[{"Contents": [{"Key": "docs/a.txt"}, {"Key": "docs/b.txt"}], "IsTruncated": False}]
        )
        backend = self.connected_backend(client)

        self.assertEqual({"success": True}, backend.delete_file({"bucket": "bucket-one", "key": "x.txt"}))
        self.assertEqual({"success": True}, backend.delete_folder({"bucket": "bucket-one", "prefix": "docs/"}))

        self.assertEqual([{"Bucket": "bucket-one", "Key": "x.txt"}], client.calls_named("delete_object"))
        batch = client.calls_named("delete_objects")[0]
        self.assertEqual(
            [{"Key": "docs/a.txt"}, {"Key": "docs/b.txt"}],
            batch["Delete"]["Objects"],
        )

    def test_delete_folder_rejects_empty_prefix(self):
        client = FakeS3Client()
        backend = self.connected_backend(client)

        result = backend.delete_folder({"bucket": "bucket-one", "prefix": ""})

        self.assertFalse(result["success"])
        self.assertEqual([], client.list_objects_kwargs)
        self.assertEqual([], client.calls_named("delete_objects"))

    def test_delete_file_reports_errors(self):
        client = FakeS3Client(errors={"delete_object": client_error()})
        backend = self.connected_backend(client)

        self.assertFalse(backend.delete_file({"bucket": "bucket-one", "key": "x.txt"})["success"])

    def test_create_folder_appends_separator(self):
        client = FakeS3Client()
        backend = self.connected_backend(client)

        backend.create_folder({"bucket": "bucket-one", "folderName": "docs/reports"})

        self.assertEqual(
            [{"Bucket": "bucket-one", "Key": "docs/reports/", "Body": b""}],
            client.calls_named("put_object"),
        )

    def test_rename_file_copies_then_deletes(self):
        client = FakeS3Client()
        backend = self.connected_backend(client)

        result = backend.rename_file({"bucket": "bucket-one", "oldKey": "docs/a.txt", "newKey": "docs/b.txt"})

        self.assertEqual({"success": True}, result)
        self.assertEqual(
            [{"Bucket": "bucket-one", "Key": "docs/b.txt", "CopySource": {"Bucket": "bucket-one", "Key": "docs/a.txt"}}],
            client.calls_named("copy_object"),
        )
        self.assertEqual([{"Bucket": "bucket-one", "Key": "docs/a.txt"}], client.calls_named("delete_object"))

    def test_rename_folder_moves_every_key(self):
        client = FakeS3Client(
            object_responses=[
                {"Contents": [{"Key": "docs/old/"}, {"Key": "docs/old/a.txt"}], "IsTruncated": False}
            ]
        )
        backend = self.connected_backend(client)

        result = backend.rename_folder(
            {"bucket": "bucket-one", "oldPrefix": "docs/old/", "newPrefix": "docs/new/"}
        )

        self.assertEqual({"success": True}, result)
        self.assertEqual(
            ["docs/new/", "docs/new/a.txt"],
            [call["Key"] for call in client.calls_named("copy_object")],
        )
        self.assertEqual(
            [{"Key": "docs/old/"}, {"Key": "docs/old/a.txt"}],
            client.calls_named("delete_objects")[0]["Delete"]["Objects"],
        )

    def test_open_file_dialog_uses_picker(self):
        backend = self.make_backend(FakeS3Client())
        self.assertIsNone(backend.open_file_dialog())

        backend.file_picker = lambda: ["/tmp/a.txt"]
        self.assertEqual(["/tmp/a.txt"], backend.open_file_dialog())


if __name__ == "__main__":
    unittest.main()
