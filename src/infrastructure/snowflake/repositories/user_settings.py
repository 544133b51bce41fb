"""
User settings repository.

Holds the AWS credential sets each user has saved, keyed by account
label. The cloud builder only reads them; the settings API and the seed
script write them.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from src.core.media.models import CredentialSet

logger = logging.getLogger(__name__)


class UserSettingsRepository:
    """
    Repository for per-user settings.

    Credential sets are stored as a JSON array in a single VARCHAR
    column, one settings row per user.
    """

    def __init__(self, connection) -> None:
        """
        Initialize repository with a database connection.

        Args:
            connection: Snowflake connection (or mock for testing)
        """
        self._conn = connection

    def get_aws_accounts(self, user_id: str) -> list[CredentialSet]:
        """All credential sets saved by a user, in the order they were added."""
        cursor = self._conn.cursor()

        try:
            cursor.execute("""
                SELECT aws_accounts
                FROM user_settings
                WHERE user_id = %s
            """, (str(user_id),))

            row = cursor.fetchone()
        finally:
            cursor.close()

        if not row or not row[0]:
            return []

        return [
            CredentialSet(
                label=account.get("label", ""),
                access_key=account.get("accessKey"),
                secret_key=account.get("secretKey"),
            )
            for account in json.loads(row[0])
        ]

    def get_aws_account(self, user_id: str, label: str) -> Optional[CredentialSet]:
        for account in self.get_aws_accounts(user_id):
            if account.label == label:
                return account
        return None

    def upsert_aws_account(self, user_id: str, credentials: CredentialSet) -> None:
        """
        Save a credential set, replacing any existing one with the same label.
        """
        accounts = [
            account for account in self.get_aws_accounts(user_id)
            if account.label != credentials.label
        ]
        accounts.append(credentials)

        accounts_json = json.dumps([
            {
                "label": account.label,
                "accessKey": account.access_key,
                "secretKey": account.secret_key,
            }
            for account in accounts
        ])
        now = datetime.now(timezone.utc)

        cursor = self._conn.cursor()

        try:
            cursor.execute("""
                MERGE INTO user_settings AS target
                USING (SELECT %s AS user_id) AS source
                ON target.user_id = source.user_id
                WHEN MATCHED THEN UPDATE SET
                    aws_accounts = %s,
                    updated_at = %s
                WHEN NOT MATCHED THEN INSERT (
                    user_id, aws_accounts, updated_at
                ) VALUES (%s, %s, %s)
            """, (
                str(user_id),
                accounts_json, now,
                str(user_id), accounts_json, now,
            ))
            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to save AWS account",
                extra={"user_id": user_id, "account_label": credentials.label, "error": str(e)}
            )
            raise
        finally:
            cursor.close()

        logger.info(
            "Saved AWS account",
            extra={"user_id": user_id, "account_label": credentials.label}
        )
