"""
DriveLink - short links for videos hosted on Google Drive.

This package contains the complete application:
- core: Framework-agnostic registry and orchestration logic
- infrastructure: External service integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
