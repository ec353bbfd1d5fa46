"""
Google Drive integration.

Implements the BlobStore and CredentialProvider protocols from
core.videos.service, with in-memory mocks for local development.
"""

from .client import GoogleDriveBlobStore, MockDriveBlobStore, translate_drive_error
from .credentials import (
    GoogleCredentialProvider,
    MockCredentialProvider,
    OAuthConfig,
    build_authorization_url,
    exchange_code,
)

__all__ = [
    "GoogleDriveBlobStore",
    "MockDriveBlobStore",
    "translate_drive_error",
    "GoogleCredentialProvider",
    "MockCredentialProvider",
    "OAuthConfig",
    "build_authorization_url",
    "exchange_code",
]
