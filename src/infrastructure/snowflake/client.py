"""
Snowflake database connection management.

Provides connection factory and context manager for Snowflake operations.
Includes mock mode with in-memory storage for local development.

Most code never touches this module directly - it goes through the
repositories, which handle the translation between domain models and
database rows.
"""

import base64
import logging
import re
from contextlib import ExitStack, contextmanager
from typing import Callable, ContextManager, Generator, Optional

from .repositories.media import MEDIA_COLUMNS, SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """Raised when Snowflake connection fails."""
    pass


def _load_private_key(key_bytes: bytes) -> bytes:
    """
    Convert a PEM private key into the DER bytes snowflake-connector expects.
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    private_key = serialization.load_pem_private_key(
        key_bytes,
        password=None,  # No password on the key
        backend=default_backend()
    )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


def _read_private_key(config: SnowflakeConfig) -> Optional[bytes]:
    """Private key from file path or base64 setting, whichever is configured."""
    if config.private_key_path:
        with open(config.private_key_path, 'rb') as key_file:
            return _load_private_key(key_file.read())
    if config.private_key_base64:
        return _load_private_key(base64.b64decode(config.private_key_base64))
    return None


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide Snowflake connection with automatic cleanup.

    Supports both password and key-pair authentication:
    - If a private key (path or base64) is set, uses key-pair auth
    - Otherwise, uses password auth

    Usage:
        with get_snowflake_connection(config) as conn:
            cursor = conn.cursor()
            # do work
            conn.commit()
    """
    try:
        import snowflake.connector
    except ImportError:
        raise ImportError(
            "snowflake-connector-python is required. "
            "Install with: pip install snowflake-connector-python"
        )

    conn = None
    try:
        connect_params = {
            'account': config.account,
            'user': config.user,
            'database': config.database,
            'schema': config.schema,
            'warehouse': config.warehouse,
            'role': config.role,
            'client_session_keep_alive': True,
        }

        private_key = _read_private_key(config)
        if private_key:
            logger.info("Using key-pair authentication for Snowflake")
            connect_params['private_key'] = private_key
        elif config.password:
            logger.info("Using password authentication for Snowflake")
            connect_params['password'] = config.password
        else:
            raise SnowflakeConnectionError(
                "Either password or a private key must be provided"
            )

        conn = snowflake.connector.connect(**connect_params)

        logger.debug(
            "Established Snowflake connection",
            extra={
                "account": config.account,
                "database": config.database,
                "schema": config.schema,
            }
        )

    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}")

    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Closed Snowflake connection")
        except Exception as e:
            logger.warning(
                "Error closing Snowflake connection",
                extra={"error": str(e)}
            )


# ---------------------------------------------------------------------------
# Mock Connection for Local Development
# ---------------------------------------------------------------------------

def _like_to_regex(pattern: str) -> re.Pattern:
    """Translate a SQL LIKE pattern into a case-insensitive regex."""
    parts = []
    for char in pattern:
        if char == '%':
            parts.append('.*')
        elif char == '_':
            parts.append('.')
        else:
            parts.append(re.escape(char))
    return re.compile(''.join(parts), re.IGNORECASE | re.DOTALL)


class MockSnowflakeCursor:
    """
    Mock Snowflake cursor for testing.

    Implements just enough of the cursor interface to support the
    repository queries without a real database. Statements are
    recognised by table name and verb; parameters are read by position,
    matching the statements in the repositories.
    """

    def __init__(self, storage: dict) -> None:
        self._storage = storage
        self._results: list = []
        self._rowcount: int = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> 'MockSnowflakeCursor':
        logger.debug(
            "Mock cursor execute",
            extra={"query": query[:100]}
        )

        query_upper = ' '.join(query.upper().split())
        params = params or ()
        self._results = []
        self._rowcount = 0

        if query_upper == 'SELECT 1':
            self._results = [(1,)]

        elif 'MEDIA_RECORDS' in query_upper:
            if query_upper.startswith('INSERT INTO'):
                self._insert_media(params)
            elif query_upper.startswith('UPDATE'):
                self._update_media(params)
            elif query_upper.startswith('DELETE'):
                self._delete_media(params)
            elif 'WHERE MEDIA_ID = %S' in query_upper:
                self._select_media_by_id(params)
            elif 'WHERE USER_ID = %S' in query_upper:
                self._select_media_for_user(params)

        elif 'USER_SETTINGS' in query_upper:
            if 'MERGE INTO' in query_upper:
                self._merge_settings(params)
            elif query_upper.startswith('SELECT'):
                self._select_settings(params)

        return self

    # media_records ---------------------------------------------------------

    def _insert_media(self, params: tuple) -> None:
        row = dict(zip(MEDIA_COLUMNS, params))
        self._storage['sequence'] += 1
        row['_seq'] = self._storage['sequence']
        self._storage['media_records'][str(row['media_id'])] = row
        self._rowcount = 1

    def _update_media(self, params: tuple) -> None:
        name, thumbnail_url, updated_at, media_id = params
        row = self._storage['media_records'].get(str(media_id))
        if row is None:
            return
        if name is not None:
            row['name'] = name
        if thumbnail_url is not None:
            row['thumbnail_url'] = thumbnail_url
        row['updated_at'] = updated_at
        self._rowcount = 1

    def _delete_media(self, params: tuple) -> None:
        if self._storage['media_records'].pop(str(params[0]), None) is not None:
            self._rowcount = 1

    def _select_media_by_id(self, params: tuple) -> None:
        row = self._storage['media_records'].get(str(params[0]))
        self._results = [self._media_row(row)] if row else []

    def _select_media_for_user(self, params: tuple) -> None:
        user_id, bucket, _, media_type, _, pattern, _, limit = params
        matcher = _like_to_regex(pattern) if pattern is not None else None

        rows = [
            row for row in self._storage['media_records'].values()
            if row['user_id'] == user_id
            and (bucket is None or row['bucket_name'] == bucket)
            and (media_type is None or row['media_type'] == media_type)
            and (matcher is None or matcher.fullmatch(row['name'] or ''))
        ]
        rows.sort(key=lambda row: (row['created_at'], row['_seq']), reverse=True)
        self._results = [self._media_row(row) for row in rows[:limit]]

    @staticmethod
    def _media_row(row: dict) -> tuple:
        return tuple(row[column] for column in MEDIA_COLUMNS)

    # user_settings ---------------------------------------------------------

    def _merge_settings(self, params: tuple) -> None:
        user_id, aws_accounts, updated_at = params[0], params[1], params[2]
        self._storage['user_settings'][str(user_id)] = {
            'user_id': str(user_id),
            'aws_accounts': aws_accounts,
            'updated_at': updated_at,
        }
        self._rowcount = 1

    def _select_settings(self, params: tuple) -> None:
        row = self._storage['user_settings'].get(str(params[0]))
        self._results = [(row['aws_accounts'],)] if row else []

    def fetchone(self):
        """Fetch one row from results."""
        if not self._results:
            return None
        return self._results[0]

    def fetchall(self) -> list:
        """Fetch all rows from results."""
        return self._results

    def close(self) -> None:
        """Close cursor (no-op for mock)."""
        pass

    @property
    def rowcount(self) -> int:
        """Return number of rows affected."""
        return self._rowcount


class MockSnowflakeConnection:
    """
    Mock Snowflake connection for local development.

    Stores data in memory using a simple dictionary structure.
    This enables testing the full API without a real database.
    """

    def __init__(self) -> None:
        # In-memory storage: {table_name: {id: row_dict}}
        self._storage: dict = {
            'media_records': {},
            'user_settings': {},
            'sequence': 0,
        }

        logger.info("Initialized mock Snowflake connection (in-memory)")

    def cursor(self) -> MockSnowflakeCursor:
        """Create a mock cursor."""
        return MockSnowflakeCursor(self._storage)

    def commit(self) -> None:
        """Commit transaction (no-op for mock, always auto-commits)."""
        logger.debug("Mock connection commit")

    def rollback(self) -> None:
        """Rollback transaction (no-op for mock)."""
        logger.debug("Mock connection rollback")

    def close(self) -> None:
        """Close connection (no-op for mock)."""
        logger.debug("Mock connection close")

    # Helper methods for testing
    def _media_count(self) -> int:
        """Number of stored media records (for test assertions)."""
        return len(self._storage['media_records'])

    def _clear(self) -> None:
        """Clear all mock storage (for test cleanup)."""
        self._storage['media_records'].clear()
        self._storage['user_settings'].clear()
        self._storage['sequence'] = 0


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """
    Create Snowflake connection based on configuration.

    Args:
        config: Snowflake configuration (required if not mock_mode)
        mock_mode: If True, return mock connection for testing

    Yields:
        SnowflakeConnection implementation (real or mock)
    """
    if mock_mode:
        conn = MockSnowflakeConnection()
        try:
            yield conn
        finally:
            conn.close()
    else:
        if config is None:
            raise ValueError("config is required when not in mock mode")

        with get_snowflake_connection(config) as conn:
            yield conn


def snowflake_config_from_settings(settings) -> SnowflakeConfig:
    """Build the connection config from application settings."""
    return SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        private_key_base64=settings.snowflake_private_key_base64,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )


# ---------------------------------------------------------------------------
# Deferred Connection
# ---------------------------------------------------------------------------

class LazySnowflakeConnection:
    """
    Connection that opens on the first cursor() call.

    A connection failure is therefore raised from whichever repository
    call first needs the database, not when the connection is handed out.
    Unused connections are never opened.
    """

    def __init__(self, opener: Callable[[], ContextManager[SnowflakeConnection]]) -> None:
        self._opener = opener
        self._stack = ExitStack()
        self._conn: Optional[SnowflakeConnection] = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def cursor(self):
        if self._conn is None:
            self._conn = self._stack.enter_context(self._opener())
        return self._conn.cursor()

    def commit(self) -> None:
        if self._conn is not None:
            self._conn.commit()

    def close(self) -> None:
        self._stack.close()
        self._conn = None
