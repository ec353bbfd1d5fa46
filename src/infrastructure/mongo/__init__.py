"""
MongoDB integration for the video registry.

Includes an in-memory mock store for local development without a server.
"""

from .client import MongoConfig, MongoHandle
from .repository import MockDocumentStore, MongoRecordStore

__all__ = ["MongoConfig", "MongoHandle", "MockDocumentStore", "MongoRecordStore"]
