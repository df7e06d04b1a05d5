import io
from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException

from app.config import settings
from app.services.attachments import AttachmentStore, attachments


def _settings(**overrides):
    return patch("app.services.attachments.settings", replace(settings, **overrides))


@pytest.fixture()
def s3_settings():
    with _settings(
        s3_endpoint_url="http://minio:9000/",
        s3_access_key="access",
        s3_secret_key="secret",
        s3_bucket_name="uploads",
    ):
        yield


class TestValidation:
    def test_rejects_disallowed_type(self) -> None:
        with pytest.raises(HTTPException) as exc:
            attachments.validate("run.exe", "application/x-msdownload", 10)
        assert exc.value.status_code == 400

    def test_rejects_oversize(self) -> None:
        with _settings(attachment_max_size_bytes=5), pytest.raises(HTTPException):
            attachments.validate("photo.jpg", "image/jpeg", 6)

    def test_rejects_missing_name(self) -> None:
        with pytest.raises(HTTPException):
            attachments.validate("", "image/jpeg", 1)

    def test_read_bounded(self) -> None:
        with _settings(attachment_max_size_bytes=200_000):
            data = attachments.read_bounded(io.BytesIO(b"x" * 150_000))
        assert len(data) == 150_000

    def test_read_bounded_stops_at_limit(self) -> None:
        stream = io.BytesIO(b"x" * 300_000)
        with _settings(attachment_max_size_bytes=100_000), pytest.raises(
            HTTPException
        ) as exc:
            attachments.read_bounded(stream)
        assert exc.value.status_code == 400
        assert stream.tell() < 300_000

    def test_storage_key(self) -> None:
        key = AttachmentStore.generate_storage_key("photo.jpg")
        assert key.startswith("attachments/")
        assert key.endswith("/photo.jpg")


class TestSave:
    def test_not_configured(self) -> None:
        with _settings(s3_endpoint_url=""):
            assert not attachments.is_configured()
            with pytest.raises(RuntimeError):
                attachments.save(b"data", "photo.jpg", "image/jpeg")

    @patch("app.services.attachments.boto3.client")
    def test_uploads_and_returns_metadata(self, mock_client, s3_settings) -> None:
        client = MagicMock()
        mock_client.return_value = client

        meta = attachments.save(b"jpeg-bytes", "photo.jpg", "image/jpeg")

        put = client.put_object.call_args.kwargs
        assert put["Bucket"] == "uploads"
        assert put["ContentType"] == "image/jpeg"
        assert put["Body"] == b"jpeg-bytes"
        assert meta["url"] == f"http://minio:9000/uploads/{put['Key']}"
        assert meta["original_name"] == "photo.jpg"
        assert meta["size_bytes"] == len(b"jpeg-bytes")
