"""Persistence adapters: local SQLite store and remote Supabase store."""

from .base import DocumentStore, StoreResult
from .local import LocalDocumentStore
from .remote import SupabaseDocumentStore
from .schema import ensure_schema

__all__ = [
    "DocumentStore",
    "LocalDocumentStore",
    "StoreResult",
    "SupabaseDocumentStore",
    "ensure_schema",
]
