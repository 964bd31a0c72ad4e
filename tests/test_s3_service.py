"""Object key construction and S3 upload error handling."""

import re

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from gatepass.core.config import Settings
from gatepass.services.s3_service import S3Service, StorageError, build_object_key, sanitize_file_name


class FakeS3Client:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def put_object(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error


@pytest.fixture
def s3_settings():
    return Settings(AWS_S3_BUCKET_NAME="gate-bucket", AWS_REGION="ap-south-1")


@pytest.mark.parametrize("name,expected", [
    ("Jane Doe.png", "Jane_Doe.png"),
    ("  José  Ñúñez .jpg", "Jos_ez_.jpg"),
    ("../../etc/passwd", "....etcpasswd"),
    ("???", "file"),
])
def test_sanitize_file_name(name, expected):
    assert sanitize_file_name(name) == expected


def test_object_key_layout():
    assert build_object_key("Jane Doe.png", "visitor-photos", timestamp_ms=1767225600000) == \
        "visitor-photos/1767225600000_Jane_Doe.png"
    assert build_object_key("pass.pdf", "/visitor-passes/", timestamp_ms=5) == "visitor-passes/5_pass.pdf"
    assert build_object_key("pass.pdf", timestamp_ms=5) == "5_pass.pdf"


def test_upload_puts_object_and_returns_public_url(s3_settings):
    client = FakeS3Client()
    service = S3Service(s3_settings, client=client)

    url = service.upload_file(b"png-bytes", "Jane Doe.png", "visitor-photos")

    call = client.calls[0]
    assert call["Bucket"] == "gate-bucket"
    assert re.fullmatch(r"visitor-photos/\d{13}_Jane_Doe\.png", call["Key"])
    assert call["Body"] == b"png-bytes"
    assert call["ContentType"] == "image/png"
    assert url == f"https://gate-bucket.s3.ap-south-1.amazonaws.com/{call['Key']}"


def test_upload_explicit_content_type(s3_settings):
    client = FakeS3Client()

    S3Service(s3_settings, client=client).upload_file(b"%PDF", "Jane Doe.pdf", "visitor-passes",
                                                      content_type="application/pdf")

    assert client.calls[0]["ContentType"] == "application/pdf"


def test_upload_unknown_extension_is_octet_stream(s3_settings):
    client = FakeS3Client()

    S3Service(s3_settings, client=client).upload_file(b"??", "blob.zzz-unknown")

    assert client.calls[0]["ContentType"] == "application/octet-stream"


@pytest.mark.parametrize("error", [
    ClientError({"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "PutObject"),
    EndpointConnectionError(endpoint_url="https://s3.ap-south-1.amazonaws.com"),
])
def test_upload_failure_raises_storage_error(s3_settings, error):
    service = S3Service(s3_settings, client=FakeS3Client(error=error))

    with pytest.raises(StorageError):
        service.upload_file(b"png-bytes", "Jane Doe.png", "visitor-photos")
