"""
DriveLink configuration.

Admin credentials, Google OAuth client, registry file location and the
optional MongoDB connection all come from the environment (or .env).
DRIVE_MOCK_MODE and MONGO_MOCK_MODE run the API without either service.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
