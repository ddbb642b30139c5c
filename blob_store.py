"""Storage for uploaded files and generated PDFs.

Two interchangeable backends behind one small interface:
  - LocalBlobStore: files under DATA_DIR/uploads, served at /uploads/<ref>
  - S3BlobStore:    an S3 (or MinIO) bucket via boto3

Records elsewhere keep only the returned reference id.
"""

from __future__ import annotations

import logging
import mimetypes
import re
import uuid
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Protocol

from flask import current_app, url_for
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)


@dataclass
class BlobRef:
    reference_id: str
    url: str


class BlobStore(Protocol):
    def upload_stream(self, folder: str, data: bytes, filename: str = "", content_type: str = "") -> BlobRef: ...
    def delete(self, reference_id: str) -> bool: ...
    def url_for(self, reference_id: str) -> str: ...


_SAFE_SEGMENT = re.compile(r"[^A-Za-z0-9._-]+")


def make_reference(folder: str, filename: str = "") -> str:
    """Build a unique 'folder/stem_abcdef.ext' reference id."""
    parts = [_SAFE_SEGMENT.sub("_", p) for p in PurePosixPath(folder).parts if p not in ("", ".", "..", "/")]
    name = secure_filename(filename) or "file"
    stem, dot, ext = name.rpartition(".")
    if not dot:
        stem, ext = name, ""
    unique = f"{stem}_{uuid.uuid4().hex[:8]}" + (f".{ext}" if ext else "")
    return "/".join([*parts, unique])


class LocalBlobStore:
    def __init__(self, root: Path | str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, reference_id: str) -> Path:
        path = (self.root / reference_id).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"reference escapes upload root: {reference_id}")
        return path

    def upload_stream(self, folder: str, data: bytes, filename: str = "", content_type: str = "") -> BlobRef:
        ref = make_reference(folder, filename)
        path = self._path(ref)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info("Stored %d bytes at %s", len(data), ref)
        return BlobRef(reference_id=ref, url=self.url_for(ref))

    def delete(self, reference_id: str) -> bool:
        try:
            path = self._path(reference_id)
        except ValueError:
            return False
        if not path.exists():
            return False
        path.unlink()
        return True

    def url_for(self, reference_id: str) -> str:
        return url_for("core.uploaded_file", reference_id=reference_id)


class S3BlobStore:
    def __init__(self, client, bucket: str, public_url: str = ""):
        self._client = client
        self.bucket = bucket
        self.public_url = public_url.rstrip("/")

    @classmethod
    def from_config(cls, config) -> S3BlobStore:
        import boto3

        kwargs = {}
        if config.get("S3_REGION"):
            kwargs["region_name"] = config["S3_REGION"]
        if config.get("S3_ENDPOINT_URL"):
            kwargs["endpoint_url"] = config["S3_ENDPOINT_URL"]
        client = boto3.client("s3", **kwargs)
        return cls(client, config["S3_BUCKET"], config.get("S3_PUBLIC_URL", ""))

    def upload_stream(self, folder: str, data: bytes, filename: str = "", content_type: str = "") -> BlobRef:
        ref = make_reference(folder, filename)
        content_type = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
        self._client.put_object(Bucket=self.bucket, Key=ref, Body=data, ContentType=content_type)
        logger.info("Uploaded %d bytes to s3://%s/%s", len(data), self.bucket, ref)
        return BlobRef(reference_id=ref, url=self.url_for(ref))

    def delete(self, reference_id: str) -> bool:
        from botocore.exceptions import ClientError

        try:
            self._client.delete_object(Bucket=self.bucket, Key=reference_id)
        except ClientError as e:
            logger.error("S3 delete failed for %s: %s", reference_id, e)
            return False
        return True

    def url_for(self, reference_id: str) -> str:
        if self.public_url:
            return f"{self.public_url}/{reference_id}"
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": reference_id},
            ExpiresIn=3600,
        )


def init_blob_store(app) -> BlobStore:
    """Choose the blob backend from BLOB_BACKEND. Call once from create_app()."""
    backend = app.config.get("BLOB_BACKEND", "local")
    if backend == "s3" and app.config.get("S3_BUCKET"):
        store: BlobStore = S3BlobStore.from_config(app.config)
        app.logger.info("Blob store: S3 (bucket=%s)", app.config["S3_BUCKET"])
    else:
        root = Path(app.config.get("DATA_DIR", "data")) / "uploads"
        store = LocalBlobStore(root)
        app.logger.info("Blob store: local (%s)", root)
    app.extensions["blob_store"] = store
    return store


def get_blob_store() -> BlobStore:
    return current_app.extensions["blob_store"]
