#!/usr/bin/env python3
"""
Save an AWS account into a user's settings.

Reads the Snowflake connection settings from the environment (.env is
loaded first) and stores one credential set for the given user, the same
way PUT /api/v1/settings/aws-accounts does.

Usage:
    python scripts/seed_aws_account.py --user-id u1 --label personal

The access and secret keys default to AWS_ACCESS_KEY_ID and
AWS_SECRET_ACCESS_KEY from the environment.

Requires:
    - .env file with Snowflake credentials
    - Tables from scripts/setup_snowflake.sql
"""

import argparse
import os
import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from src.config.settings import get_settings
from src.core.media.models import CredentialSet
from src.infrastructure.snowflake.client import (
    create_snowflake_connection,
    snowflake_config_from_settings,
)
from src.infrastructure.snowflake.repositories.user_settings import UserSettingsRepository


def main():
    parser = argparse.ArgumentParser(description='Save an AWS account for a user')
    parser.add_argument('--user-id', required=True, help='User the account belongs to')
    parser.add_argument('--label', required=True, help='Account label used when uploading')
    parser.add_argument('--access-key', default=os.getenv('AWS_ACCESS_KEY_ID'))
    parser.add_argument('--secret-key', default=os.getenv('AWS_SECRET_ACCESS_KEY'))
    parser.add_argument('--dry-run', action='store_true', help='Validate only, don\'t write')
    args = parser.parse_args()

    credentials = CredentialSet(
        label=args.label,
        access_key=args.access_key,
        secret_key=args.secret_key,
    )

    if not credentials.is_complete:
        print("ERROR: Missing access key or secret key")
        sys.exit(1)

    if args.dry_run:
        print(f"Would save account '{credentials.label}' for user {args.user_id}")
        sys.exit(0)

    settings = get_settings()
    if not settings.snowflake_account or not settings.snowflake_user:
        print("ERROR: Missing SNOWFLAKE_ACCOUNT or SNOWFLAKE_USER")
        sys.exit(1)

    try:
        print(f"Connecting to Snowflake account: {settings.snowflake_account}")
        with create_snowflake_connection(config=snowflake_config_from_settings(settings)) as conn:
            UserSettingsRepository(conn).upsert_aws_account(args.user_id, credentials)
    except Exception as e:
        print(f"ERROR saving account: {e}")
        sys.exit(1)

    print(f"[OK] Saved account '{credentials.label}' for user {args.user_id}")


if __name__ == '__main__':
    main()
