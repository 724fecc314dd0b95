"""
Blob Store Abstraction Layer.

Vendor-agnostic interface over the object storage that holds incident media.
Objects are private; reads go through time-limited signed URLs.

SupabaseBlobStore talks to the Supabase Storage REST API.
InMemoryBlobStore keeps objects in process for development and CI.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx
from jose import jwt

from backend.app.core.config import Settings
from backend.app.core.logging import get_logger

logger = get_logger(__name__)


class BlobStoreError(Exception):
    """
    Raised when the storage service rejects or fails a request.

    `retryable` is False when the store answered and refused the request
    (missing object, existing key, bad input); such errors do not count
    as an outage.
    """

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


class BlobStore(ABC):
    """Abstract blob store."""

    bucket: str

    @abstractmethod
    async def upload(self, key: str, data: bytes, content_type: str, upsert: bool = False) -> str:
        """Store `data` under `key` and return the bucket-relative path. Never overwrites unless upsert."""
        ...

    @abstractmethod
    async def create_signed_url(self, key: str, expires_in: int) -> str:
        ...

    @abstractmethod
    async def remove(self, keys: List[str]) -> None:
        ...


class SupabaseBlobStore(BlobStore):
    """Supabase Storage over its REST API, authenticated with the service key."""

    def __init__(self, base_url: str, service_key: str, bucket: str, timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }

    def _object_url(self, *parts: str) -> str:
        return "/".join([f"{self.base_url}/storage/v1/object", *parts])

    @staticmethod
    def _raise_for_status(resp: httpx.Response, operation: str, key: str) -> None:
        if resp.is_success:
            return
        try:
            detail = resp.json().get("message") or resp.text
        except ValueError:
            detail = resp.text
        raise BlobStoreError(
            f"Storage {operation} failed for '{key}' ({resp.status_code}): {detail}",
            retryable=resp.status_code >= 500 or resp.status_code == 429,
        )

    async def upload(self, key: str, data: bytes, content_type: str, upsert: bool = False) -> str:
        headers = {
            **self._headers,
            "Content-Type": content_type,
            "x-upsert": "true" if upsert else "false",
        }
        try:
            async with self._client() as client:
                resp = await client.post(
                    self._object_url(self.bucket, quote(key, safe="/")),
                    content=data,
                    headers=headers,
                )
        except httpx.HTTPError as e:
            raise BlobStoreError(f"Storage upload failed for '{key}': {e}") from e
        self._raise_for_status(resp, "upload", key)
        # Response "Key" is "<bucket>/<path>"; callers persist the bucket-relative path
        stored = resp.json().get("Key", f"{self.bucket}/{key}")
        return stored.split("/", 1)[1] if stored.startswith(f"{self.bucket}/") else stored

    async def create_signed_url(self, key: str, expires_in: int) -> str:
        try:
            async with self._client() as client:
                resp = await client.post(
                    self._object_url("sign", self.bucket, quote(key, safe="/")),
                    json={"expiresIn": expires_in},
                    headers=self._headers,
                )
        except httpx.HTTPError as e:
            raise BlobStoreError(f"Storage sign failed for '{key}': {e}") from e
        self._raise_for_status(resp, "sign", key)
        signed_path = resp.json().get("signedURL") or resp.json().get("signedUrl")
        if not signed_path:
            raise BlobStoreError(f"Storage sign returned no URL for '{key}'")
        return f"{self.base_url}/storage/v1{signed_path}"

    async def remove(self, keys: List[str]) -> None:
        if not keys:
            return
        try:
            async with self._client() as client:
                resp = await client.request(
                    "DELETE",
                    self._object_url(self.bucket),
                    json={"prefixes": keys},
                    headers=self._headers,
                )
        except httpx.HTTPError as e:
            raise BlobStoreError(f"Storage remove failed: {e}") from e
        self._raise_for_status(resp, "remove", ",".join(keys))


class InMemoryBlobStore(BlobStore):
    """
    In-process blob store for development, tests and CI.
    Signed URLs carry a short-lived JWT naming the object key.
    """

    def __init__(self, bucket: str, public_base_url: str, signing_key: str, algorithm: str = "HS256"):
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self.signing_key = signing_key
        self.algorithm = algorithm
        self._objects: Dict[str, Tuple[bytes, str]] = {}

    async def upload(self, key: str, data: bytes, content_type: str, upsert: bool = False) -> str:
        if key in self._objects and not upsert:
            raise BlobStoreError(f"The resource already exists: {key}", retryable=False)
        self._objects[key] = (data, content_type)
        return key

    async def create_signed_url(self, key: str, expires_in: int) -> str:
        if key not in self._objects:
            raise BlobStoreError(f"Object not found: {key}", retryable=False)
        expire = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        token = jwt.encode({"key": key, "exp": expire}, self.signing_key, algorithm=self.algorithm)
        return f"{self.public_base_url}/{self.bucket}/{quote(key, safe='/')}?token={token}"

    async def remove(self, keys: List[str]) -> None:
        for key in keys:
            self._objects.pop(key, None)

    def verify_signed_token(self, token: str) -> str:
        """Return the object key a signed URL token grants access to."""
        return jwt.decode(token, self.signing_key, algorithms=[self.algorithm])["key"]

    def get(self, key: str) -> Optional[Tuple[bytes, str]]:
        return self._objects.get(key)

    def keys(self) -> List[str]:
        return sorted(self._objects)


def get_blob_store(settings: Settings) -> BlobStore:
    """Factory. Returns the blob store configured by STORAGE_BACKEND."""
    if settings.storage_backend == "supabase":
        logger.info(f"Using Supabase storage bucket '{settings.storage_bucket}'")
        return SupabaseBlobStore(
            base_url=settings.supabase_url,
            service_key=settings.supabase_service_key,
            bucket=settings.storage_bucket,
            timeout=settings.storage_timeout_seconds,
        )
    logger.warning("Using in-memory blob store; attachments are lost on restart")
    return InMemoryBlobStore(
        bucket=settings.storage_bucket,
        public_base_url=settings.storage_public_base_url,
        signing_key=settings.secret_key,
        algorithm=settings.algorithm,
    )
