"""
Core business logic for the cloud builder.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
Snowflake or any other infrastructure concern. Collaborators are passed in
through Protocols, so the upload logic can be tested with in-memory
implementations.
"""
