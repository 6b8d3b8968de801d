"""Blob stores for source PDFs and extracted images."""

import logging
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Protocol
from urllib.parse import quote

import boto3

from .config import Settings

logger = logging.getLogger(__name__)

S3_DELETE_BATCH = 1000


class BlobStore(Protocol):
    """Object storage bound to one bucket, addressed by slash-separated paths."""

    bucket: str

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Store ``data`` at ``path``, overwriting any existing object."""

    def download(self, path: str) -> bytes:
        ...

    def public_url(self, path: str) -> str:
        ...

    def list(self, prefix: str) -> List[str]:
        """Return the full paths of all objects under ``prefix``."""

    def remove(self, paths: Iterable[str]) -> int:
        """Delete objects, returning how many were removed."""


class LocalBlobStore:
    """Filesystem-backed store: ``<root>/<bucket>/<path>``."""

    def __init__(self, root: Path, bucket: str, public_base_url: Optional[str] = None):
        self.root = Path(root)
        self.bucket = bucket
        self.bucket_dir = self.root / bucket
        self.bucket_dir.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Invalid object path: {path}")
        return self.bucket_dir.joinpath(*relative.parts)

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".part")
        tmp.write_bytes(data)
        tmp.replace(target)
        logger.debug(f"Stored {len(data)} bytes ({content_type}) at {target}")

    def download(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def public_url(self, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{self.bucket}/{quote(path)}"
        return self._resolve(path).resolve().as_uri()

    def list(self, prefix: str) -> List[str]:
        base = self._resolve(prefix.rstrip("/")) if prefix.strip("/") else self.bucket_dir
        if not base.is_dir():
            return []
        return sorted(
            file.relative_to(self.bucket_dir).as_posix()
            for file in base.rglob("*")
            if file.is_file() and not file.name.endswith(".part")
        )

    def remove(self, paths: Iterable[str]) -> int:
        removed = 0
        for path in paths:
            target = self._resolve(path)
            if target.is_file():
                target.unlink()
                removed += 1
        return removed


class S3BlobStore:
    """S3-backed store; each logical bucket maps to one S3 bucket."""

    def __init__(self, bucket: str, client=None, public_base_url: Optional[str] = None):
        self.bucket = bucket
        self.s3 = client or boto3.client("s3")
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        self.s3.put_object(Bucket=self.bucket, Key=path, Body=data, ContentType=content_type)

    def download(self, path: str) -> bytes:
        response = self.s3.get_object(Bucket=self.bucket, Key=path)
        return response["Body"].read()

    def public_url(self, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{quote(path)}"
        return f"https://{self.bucket}.s3.amazonaws.com/{quote(path)}"

    def list(self, prefix: str) -> List[str]:
        keys = []
        paginator = self.s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            for obj in page.get("Contents", []):
                if not obj["Key"].endswith("/"):
                    keys.append(obj["Key"])
        return keys

    def remove(self, paths: Iterable[str]) -> int:
        keys = list(paths)
        removed = 0
        for start in range(0, len(keys), S3_DELETE_BATCH):
            batch = keys[start:start + S3_DELETE_BATCH]
            response = self.s3.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
            )
            errors = response.get("Errors", [])
            for error in errors:
                logger.error(f"Failed to delete s3://{self.bucket}/{error.get('Key')}: {error.get('Message')}")
            removed += len(batch) - len(errors)
        return removed


def create_blob_store(settings: Settings, bucket: str) -> BlobStore:
    """Build the configured store for one logical bucket."""
    if settings.blob_backend == "s3":
        return S3BlobStore(f"{settings.s3_bucket_prefix}{bucket}", public_base_url=settings.public_base_url)
    return LocalBlobStore(Path(settings.blob_root), bucket, public_base_url=settings.public_base_url)
