"""
Snowflake repository for media records.

This is the media store: one row per uploaded object, with create / get /
find / patch / remove in the shape of a document collection. The
application never writes SQL directly; it asks the repository for what it
needs in domain terms.

Name search is pushed down to Snowflake as a case-insensitive ILIKE, so
how loosely names match is the database's business, not ours.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

from src.core.media.errors import MediaNotFoundError
from src.core.media.models import (
    CloudProvider,
    MediaQuery,
    MediaRecord,
    MediaType,
)


logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "CLOUD_BUILDER"
    schema: str = "MEDIA"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


# Column order shared by every SELECT and the INSERT below
MEDIA_COLUMNS = (
    "media_id",
    "user_id",
    "name",
    "thumbnail_url",
    "object_key",
    "bucket_name",
    "region",
    "media_type",
    "cloud_provider",
    "account_label",
    "created_at",
    "updated_at",
)

_SELECT_COLUMNS = ", ".join(MEDIA_COLUMNS)


class MediaStoreRepository:
    """
    Repository for media record persistence.

    Each method corresponds to an operation the cloud builder and the
    media-store API need:
    - create: Persist a new record
    - get: Load a record by ID
    - find: Filter a user's records, newest first
    - patch: Update name and/or location
    - remove: Delete a record (the stored object is left alone)
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def create(self, record: MediaRecord) -> MediaRecord:
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO media_records ({_SELECT_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """, (
                record.id,
                record.user_id,
                record.name,
                record.thumbnail_url,
                record.object_key,
                record.bucket_name,
                record.region,
                record.media_type.value,
                record.cloud_provider.value,
                record.account_label,
                record.created_at,
                record.updated_at,
            ))
            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to create media record",
                extra={"media_id": record.id, "error": str(e)}
            )
            raise
        finally:
            cursor.close()

        return record

    def get(self, media_id: str) -> MediaRecord:
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {_SELECT_COLUMNS}
                FROM media_records
                WHERE media_id = %s
            """, (str(media_id),))

            row = cursor.fetchone()
            if not row:
                raise MediaNotFoundError(f"Media {media_id} not found")

            return self._build_record(row)

        finally:
            cursor.close()

    def find(self, query: MediaQuery) -> list[MediaRecord]:
        """
        Find a user's records matching the query, most recent first.

        Optional filters are passed as NULL-able parameters so the
        statement text stays the same for every query.
        """
        media_type = query.media_type.value if query.media_type else None
        pattern = f"%{query.search}%" if query.search else None

        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {_SELECT_COLUMNS}
                FROM media_records
                WHERE user_id = %s
                  AND (%s IS NULL OR bucket_name = %s)
                  AND (%s IS NULL OR media_type = %s)
                  AND (%s IS NULL OR name ILIKE %s)
                ORDER BY created_at DESC
                LIMIT %s
            """, (
                query.user_id,
                query.bucket_name, query.bucket_name,
                media_type, media_type,
                pattern, pattern,
                query.limit,
            ))

            rows = cursor.fetchall()
            return [self._build_record(row) for row in rows]

        finally:
            cursor.close()

    def patch(
        self,
        media_id: str,
        name: Optional[str] = None,
        thumbnail_url: Optional[str] = None,
    ) -> MediaRecord:
        """Update the given fields and return the stored record."""
        cursor = self._conn.cursor()

        try:
            cursor.execute("""
                UPDATE media_records
                SET name = COALESCE(%s, name),
                    thumbnail_url = COALESCE(%s, thumbnail_url),
                    updated_at = %s
                WHERE media_id = %s
            """, (name, thumbnail_url, datetime.now(timezone.utc), str(media_id)))

            if cursor.rowcount == 0:
                raise MediaNotFoundError(f"Media {media_id} not found")

            self._conn.commit()

        finally:
            cursor.close()

        return self.get(media_id)

    def remove(self, media_id: str) -> MediaRecord:
        """Delete a record and return what was deleted."""
        record = self.get(media_id)
        cursor = self._conn.cursor()

        try:
            cursor.execute(
                "DELETE FROM media_records WHERE media_id = %s",
                (str(media_id),),
            )
            self._conn.commit()
        finally:
            cursor.close()

        logger.info("Removed media record", extra={"media_id": str(media_id)})
        return record

    def ping(self) -> bool:
        """Cheap round trip used by the readiness check."""
        cursor = self._conn.cursor()
        try:
            cursor.execute("SELECT 1")
            return cursor.fetchone() is not None
        finally:
            cursor.close()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _build_record(self, row) -> MediaRecord:
        values = dict(zip(MEDIA_COLUMNS, row))
        return MediaRecord(
            id=values["media_id"],
            user_id=values["user_id"],
            name=values["name"],
            thumbnail_url=values["thumbnail_url"],
            object_key=values["object_key"],
            bucket_name=values["bucket_name"],
            region=values["region"],
            media_type=MediaType(values["media_type"]),
            cloud_provider=CloudProvider(values["cloud_provider"]),
            account_label=values["account_label"],
            created_at=values["created_at"],
            updated_at=values["updated_at"],
        )
