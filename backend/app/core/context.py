"""
Application context.

Collaborators shared by every request are built once at startup, in this
order: settings -> blob store -> attachment manager. The context is stored
on `app.state.context` and is not mutated afterwards.
"""
from dataclasses import dataclass

from fastapi import Request

from backend.app.core.config import Settings
from backend.app.services.attachment_service import AttachmentManager
from backend.app.services.blob_store import BlobStore, get_blob_store


@dataclass(frozen=True)
class AppContext:
    settings: Settings
    blob_store: BlobStore
    attachments: AttachmentManager


def build_app_context(settings: Settings) -> AppContext:
    blob_store = get_blob_store(settings)
    attachments = AttachmentManager(
        blob_store,
        max_file_bytes=settings.max_attachment_bytes,
        max_files=settings.max_attachments_per_incident,
        signed_url_ttl_seconds=settings.signed_url_ttl_seconds,
    )
    return AppContext(settings=settings, blob_store=blob_store, attachments=attachments)


def get_app_context(request: Request) -> AppContext:
    """Dependency returning the context built in the application lifespan."""
    return request.app.state.context


def get_attachment_manager(request: Request) -> AttachmentManager:
    return get_app_context(request).attachments
