"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: JSON registry file
- mongo: MongoDB document store
- drive: Google Drive blob store and OAuth credentials

These wrappers translate between external formats and our domain models.
"""
