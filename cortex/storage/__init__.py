"""Persistence for application state and attachments."""

from .attachments import Attachment, AttachmentStore
from .gateway import STATE_KEY, PersistenceGateway, ResolvedAttachment

__all__ = [
    "Attachment",
    "AttachmentStore",
    "PersistenceGateway",
    "ResolvedAttachment",
    "STATE_KEY",
]
