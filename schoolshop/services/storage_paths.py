from __future__ import annotations

import mimetypes
import re
from dataclasses import dataclass
from typing import Iterable, Union
from urllib.parse import quote, unquote, urlparse

from schoolshop.config import settings
from schoolshop.services.naming import image_type_label, normalize

_SUPABASE_OBJECT_PATH_RE = re.compile(r"/storage/(?:v\d+/)?object/(?:public|sign)/([^/]+)/(.+)")

_PRINT_FILE_CONTENT_TYPES = {
    "pdf": "application/pdf",
    "svg": "image/svg+xml",
    "eps": "application/postscript",
    "ai": "application/postscript",
    "psd": "image/vnd.adobe.photoshop",
}


@dataclass(frozen=True)
class StoragePath:
    bucket: str
    path: str

    @property
    def directory(self) -> str:
        return self.path.rsplit("/", 1)[0] if "/" in self.path else ""

    @property
    def filename(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def extension(self) -> str:
        name = self.filename
        return name.rsplit(".", 1)[-1] if "." in name else ""

    def with_filename(self, filename: str) -> "StoragePath":
        directory = self.directory
        return StoragePath(bucket=self.bucket, path=f"{directory}/{filename}" if directory else filename)


@dataclass(frozen=True)
class StorageUrlParseError:
    url: str
    reason: str


StorageUrlParseResult = Union[StoragePath, StorageUrlParseError]


def known_buckets() -> tuple[str, str]:
    return (settings.MEDIA_STORAGE_IMAGE_BUCKET, settings.MEDIA_STORAGE_PRINT_BUCKET)


def _parse_object_route(pathname: str) -> StoragePath | None:
    match = _SUPABASE_OBJECT_PATH_RE.search(pathname)
    if not match:
        return None
    return StoragePath(bucket=unquote(match.group(1)), path=unquote(match.group(2)))


def _parse_known_bucket_segment(pathname: str, buckets: Iterable[str]) -> StoragePath | None:
    parts = pathname.split("/")
    bucket_names = set(buckets)
    for index, part in enumerate(parts):
        if part in bucket_names and index < len(parts) - 1:
            path = "/".join(parts[index + 1 :])
            if path:
                return StoragePath(bucket=part, path=unquote(path))
    return None


def parse_storage_url(url: str | None, *, buckets: Iterable[str] | None = None) -> StorageUrlParseResult:
    """Recover ``(bucket, path)`` from a public or signed object URL.

    Rules, first match wins:
    1. ``/storage[/vN]/object/(public|sign)/<bucket>/<path>``
    2. a path segment equal to a known bucket name, the rest being the object path
    """
    if not url or not isinstance(url, str):
        return StorageUrlParseError(url=str(url or ""), reason="empty url")
    try:
        parsed = urlparse(url.strip())
    except ValueError as exc:
        return StorageUrlParseError(url=url, reason=f"malformed url: {exc}")
    if not parsed.scheme or not parsed.netloc:
        return StorageUrlParseError(url=url, reason="url is not absolute")

    result = _parse_object_route(parsed.path)
    if result is not None:
        return result
    result = _parse_known_bucket_segment(parsed.path, buckets or known_buckets())
    if result is not None:
        return result
    return StorageUrlParseError(url=url, reason="no bucket/path pattern matched")


def public_url(bucket: str, path: str) -> str:
    base = settings.public_storage_base_url
    if not base:
        raise ValueError("MEDIA_STORAGE_PUBLIC_BASE_URL or MEDIA_STORAGE_ENDPOINT is required to build public URLs")
    return f"{base}/storage/v1/object/public/{quote(bucket)}/{quote(path, safe='/')}"


def print_file_upload_path(
    *,
    textile_id: str,
    color: str | None,
    position: str,
    base_name: str | None,
    extension: str | None,
) -> str:
    """Wizard upload location: ``lead-configs/<textile>/print/<color>/<position>_<name>.<ext>``."""
    file_stem = normalize(base_name, "file")
    ext = (extension or "").lstrip(".") or "dat"
    return f"lead-configs/{textile_id}/print/{normalize(color)}/{image_type_label(position)}_{file_stem}.{ext}"


def print_file_content_type(extension: str) -> str:
    return _PRINT_FILE_CONTENT_TYPES.get(extension.lower(), "application/octet-stream")


def image_content_type(extension: str, fallback: str = "image/jpeg") -> str:
    guessed = mimetypes.guess_type(f"file.{extension}")[0] if extension else None
    return guessed or fallback
