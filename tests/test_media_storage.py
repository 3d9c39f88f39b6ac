import pytest
from botocore.exceptions import ClientError, ReadTimeoutError

from schoolshop.config import settings
from schoolshop.errors import AlreadyExistsError, UpstreamFailureError, UpstreamTimeoutError
from schoolshop.services.media_storage import MediaStorage, MediaStorageConfigurationError


def _client_error(code: str, status: int, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code}, "ResponseMetadata": {"HTTPStatusCode": status}}, operation)


class FakeS3Client:
    def __init__(self, existing=()):
        self.existing = set(existing)
        self.deleted = []
        self.put = []

    def head_object(self, *, Bucket, Key):
        if (Bucket, Key) not in self.existing:
            raise _client_error("404", 404, "HeadObject")
        return {}

    def put_object(self, **kwargs):
        self.put.append(kwargs)

    def get_object(self, *, Bucket, Key):
        raise _client_error("NoSuchKey", 404, "GetObject")

    def delete_object(self, *, Bucket, Key):
        self.deleted.append((Bucket, Key))


@pytest.fixture()
def storage(monkeypatch):
    monkeypatch.setattr(settings, "MEDIA_STORAGE_ENDPOINT", "https://s3.example.com")
    monkeypatch.setattr(settings, "MEDIA_STORAGE_ACCESS_KEY", "key")
    monkeypatch.setattr(settings, "MEDIA_STORAGE_SECRET_KEY", "secret")
    return MediaStorage()


def test_requires_endpoint(monkeypatch):
    monkeypatch.setattr(settings, "MEDIA_STORAGE_ENDPOINT", None)
    with pytest.raises(MediaStorageConfigurationError, match="MEDIA_STORAGE_ENDPOINT is required"):
        MediaStorage()


def test_client_uses_configured_timeout(storage):
    assert storage.client.meta.config.read_timeout == settings.MEDIA_STORAGE_TIMEOUT_SECONDS


def test_delete_reports_missing_object(storage):
    storage.client = FakeS3Client(existing={("product-images", "a.png")})

    assert storage.delete_object(bucket="product-images", key="a.png") is True
    assert storage.delete_object(bucket="product-images", key="gone.png") is False
    assert storage.client.deleted == [("product-images", "a.png")]


def test_upload_without_overwrite_refuses_existing_object(storage):
    storage.client = FakeS3Client(existing={("print-files", "a.pdf")})

    with pytest.raises(AlreadyExistsError):
        storage.upload_bytes(bucket="print-files", key="a.pdf", data=b"x", content_type=None, overwrite=False)

    storage.upload_bytes(bucket="print-files", key="b.pdf", data=b"x", content_type="application/pdf", overwrite=False)
    assert storage.client.put[0]["ContentType"] == "application/pdf"


def test_download_errors_are_translated(storage):
    storage.client = FakeS3Client()

    with pytest.raises(UpstreamFailureError) as excinfo:
        storage.download_bytes(bucket="product-images", key="missing.png")
    assert excinfo.value.upstream_status == 404


def test_timeouts_are_translated(storage):
    class SlowClient(FakeS3Client):
        def get_object(self, *, Bucket, Key):
            raise ReadTimeoutError(endpoint_url="https://s3.example.com")

    storage.client = SlowClient()

    with pytest.raises(UpstreamTimeoutError):
        storage.download_bytes(bucket="product-images", key="a.png")


def test_list_prefix_walks_all_pages(storage):
    class PagedClient(FakeS3Client):
        def get_paginator(self, name):
            assert name == "list_objects_v2"

            class Paginator:
                def paginate(self, *, Bucket, Prefix):
                    yield {"Contents": [{"Key": f"{Prefix}a.png"}]}
                    yield {"Contents": [{"Key": f"{Prefix}b.png"}]}
                    yield {}

            return Paginator()

    storage.client = PagedClient()

    assert storage.list_prefix(bucket="product-images", prefix="shops/gap/") == [
        "shops/gap/a.png",
        "shops/gap/b.png",
    ]
