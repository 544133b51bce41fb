"""
Cloud Builder - upload HTML documents to S3 and keep track of them.

This package contains the complete application:
- core: Framework-agnostic upload logic
- infrastructure: S3 and Snowflake integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
