"""
Attachment Manager.

Validates incident media, stores it in the blob store under a key derived
from the owning incident, and issues signed retrieval URLs on read.
Only storage references (bucket-relative keys) are ever persisted.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Iterable, List, Optional, Sequence
from urllib.parse import unquote, urlparse

from backend.app.core.exceptions import PayloadTooLarge, UnsupportedMediaType, UpstreamFailure
from backend.app.core.logging import get_logger
from backend.app.core.observability import get_tracer
from backend.app.core.resilience import CircuitBreaker, CircuitBreakerOpenException, storage_circuit_breaker
from backend.app.services.blob_store import BlobStore, BlobStoreError

logger = get_logger(__name__)
tracer = get_tracer(__name__)

ALLOWED_MEDIA_PREFIXES = ("image/", "video/")


@dataclass(frozen=True)
class AttachmentUpload:
    """A file received at the API boundary, fully read into memory."""
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class StorageReference:
    path: str
    content_type: str


def is_allowed_media_type(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.lower().startswith(ALLOWED_MEDIA_PREFIXES)


class AttachmentManager:
    def __init__(
        self,
        blob_store: BlobStore,
        max_file_bytes: int = 10 * 1024 * 1024,
        max_files: int = 10,
        signed_url_ttl_seconds: int = 3600,
        circuit_breaker: CircuitBreaker = storage_circuit_breaker,
    ):
        self.blob_store = blob_store
        self.max_file_bytes = max_file_bytes
        self.max_files = max_files
        self.signed_url_ttl_seconds = signed_url_ttl_seconds
        self.circuit_breaker = circuit_breaker

    def validate_batch(self, files: Sequence[AttachmentUpload]) -> None:
        """
        Reject the whole batch if any file breaks the type, size or count limits.

        Also accepts UploadFile objects, so a batch can be rejected before it
        is read; a file whose size is not yet known passes the size check.
        """
        if len(files) > self.max_files:
            raise PayloadTooLarge(f"Too many files: at most {self.max_files} attachments are allowed")
        for f in files:
            if not is_allowed_media_type(f.content_type):
                raise UnsupportedMediaType("Only image and video files are allowed")
            if f.size is not None and f.size > self.max_file_bytes:
                raise PayloadTooLarge(
                    f"File '{f.filename}' exceeds the {self.max_file_bytes // (1024 * 1024)}MB limit"
                )

    @staticmethod
    def build_storage_key(incident_id: str, filename: str, uploaded_at: Optional[datetime] = None) -> str:
        """`{incident_id}/{upload_ms}-{original_name}`; the name is reduced to its base name."""
        uploaded_at = uploaded_at or datetime.now(timezone.utc)
        millis = int(uploaded_at.timestamp() * 1000)
        name = PurePosixPath((filename or "").replace("\\", "/")).name or "file"
        return f"{incident_id}/{millis}-{name}"

    def resolve_storage_key(self, reference: str) -> str:
        """Bucket-relative key for a stored reference; scheme, host and bucket prefix are dropped."""
        path = urlparse(reference).path if "://" in reference else reference
        path = path.split("?", 1)[0].lstrip("/")
        marker = f"{self.blob_store.bucket}/"
        if marker in path:
            path = path.split(marker, 1)[1]
        return unquote(path)

    async def _call(self, operation: str, func, *args, **kwargs):
        with tracer.start_as_current_span(f"blob.{operation}"):
            try:
                return await self.circuit_breaker.call(func, *args, **kwargs)
            except CircuitBreakerOpenException as e:
                raise UpstreamFailure("Attachment storage is temporarily unavailable") from e
            except BlobStoreError as e:
                raise UpstreamFailure(str(e)) from e

    async def store(self, incident_id: str, upload: AttachmentUpload,
                    uploaded_at: Optional[datetime] = None) -> StorageReference:
        key = self.build_storage_key(incident_id, upload.filename, uploaded_at)
        path = await self._call("upload", self.blob_store.upload, key, upload.data, upload.content_type, upsert=False)
        logger.info(
            f"Stored attachment {path}",
            extra={"extra_data": {"incident_id": incident_id, "size": upload.size, "file_type": upload.content_type}},
        )
        return StorageReference(path=path, content_type=upload.content_type)

    async def sign(self, reference: str) -> str:
        key = self.resolve_storage_key(reference)
        return await self._call("sign", self.blob_store.create_signed_url, key, self.signed_url_ttl_seconds)

    async def remove(self, references: Iterable[str]) -> List[str]:
        keys = [self.resolve_storage_key(r) for r in references]
        if keys:
            await self._call("remove", self.blob_store.remove, keys)
        return keys
