"""
Signed object downloads for the in-memory blob store.

Supabase serves its own signed URLs; this router only answers for
InMemoryBlobStore, whose URLs point at `storage_public_base_url`.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from jose import JWTError

from backend.app.core.context import get_attachment_manager
from backend.app.core.exceptions import AuthenticationError, NotFound
from backend.app.services.attachment_service import AttachmentManager
from backend.app.services.blob_store import InMemoryBlobStore

router = APIRouter()


@router.get("/{bucket}/{key:path}")
async def download_signed_object(
    bucket: str,
    key: str,
    token: Optional[str] = None,
    attachments: AttachmentManager = Depends(get_attachment_manager),
):
    """Return the object when `token` is a live signature for exactly this key."""
    store = attachments.blob_store
    if not isinstance(store, InMemoryBlobStore) or bucket != store.bucket:
        raise NotFound("Object not found")
    if not token:
        raise AuthenticationError("Signed URL token required")
    try:
        granted_key = store.verify_signed_token(token)
    except JWTError:
        raise AuthenticationError("Invalid or expired signed URL")
    if granted_key != key:
        raise AuthenticationError("Invalid or expired signed URL")

    stored = store.get(key)
    if stored is None:
        raise NotFound("Object not found")
    data, content_type = stored
    return Response(content=data, media_type=content_type)
