"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: Object storage (S3)
- snowflake: Media records and user settings

These wrappers translate between external formats and our domain models.
"""
