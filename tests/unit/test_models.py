"""
Unit tests for the media domain models.

These tests verify the core value objects without touching external
services (no AWS, no database).

Testing philosophy:
- Test behavior, not implementation
- Each test should have a clear "given/when/then" structure
- Use descriptive names that explain what we're testing
"""

from datetime import datetime, timezone

import pytest

from src.core.media.builder import (
    CREDENTIALS_MISSING_MESSAGE,
    GENERIC_ERROR_MESSAGE,
    error_message_for,
)
from src.core.media.errors import (
    AwsErrorCode,
    CredentialsMissingError,
    InvalidCredentialsError,
    MediaNotFoundError,
    ProviderError,
)
from src.core.media.models import (
    BucketSummary,
    CloudProvider,
    CredentialSet,
    MediaQuery,
    MediaRecord,
    MediaType,
    ResultStatus,
    ServiceResult,
    UploadRequest,
)


# ---------------------------------------------------------------------------
# Credential Set Tests
# ---------------------------------------------------------------------------

class TestCredentialSet:

    def test_complete_when_both_keys_present(self):
        assert CredentialSet("personal", "AKIA", "secret").is_complete

    @pytest.mark.parametrize("access_key,secret_key", [
        (None, "secret"),
        ("AKIA", None),
        ("", "secret"),
        ("AKIA", ""),
    ])
    def test_incomplete_when_a_key_is_missing(self, access_key, secret_key):
        assert not CredentialSet("personal", access_key, secret_key).is_complete

    def test_repr_hides_keys(self):
        """Keys must never end up in logs."""
        text = repr(CredentialSet("personal", "AKIAEXAMPLE", "topsecret"))

        assert "personal" in text
        assert "AKIAEXAMPLE" not in text
        assert "topsecret" not in text


# ---------------------------------------------------------------------------
# Request Tests
# ---------------------------------------------------------------------------

class TestUploadRequest:

    def test_defaults(self):
        request = UploadRequest(
            account_label="personal",
            bucket_name="my-bucket",
            file_name="index.html",
            html_content="<p>hi</p>",
        )

        assert request.cloud_provider is CloudProvider.S3
        assert request.is_new_bucket is False
        assert request.region is None

    def test_rejects_blank_file_name(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            UploadRequest(
                account_label="personal",
                bucket_name="my-bucket",
                file_name="   ",
                html_content="<p>hi</p>",
            )


class TestMediaQuery:

    def test_default_limit(self):
        assert MediaQuery(user_id="u1").limit == 50

    def test_rejects_non_positive_limit(self):
        with pytest.raises(ValueError, match="positive"):
            MediaQuery(user_id="u1", limit=0)


# ---------------------------------------------------------------------------
# Media Record Tests
# ---------------------------------------------------------------------------

class TestMediaRecord:

    def test_new_records_get_unique_ids(self):
        first = MediaRecord("u1", "a.html", "https://x/a", "k/a", "b")
        second = MediaRecord("u1", "a.html", "https://x/a", "k/a", "b")

        assert first.id != second.id

    def test_to_dict_uses_client_field_names(self):
        """Given a record, when serialized, then the store field names are used."""
        created = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        record = MediaRecord(
            user_id="u1",
            name="index.html",
            thumbnail_url="https://my-bucket.s3.eu-west-1.amazonaws.com/dir/u1/index.html",
            object_key="dir/u1/index.html",
            bucket_name="my-bucket",
            region="eu-west-1",
            account_label="personal",
            id="m1",
            created_at=created,
            updated_at=created,
        )

        assert record.to_dict() == {
            "_id": "m1",
            "userId": "u1",
            "name": "index.html",
            "thumb": "https://my-bucket.s3.eu-west-1.amazonaws.com/dir/u1/index.html",
            "key": "dir/u1/index.html",
            "bucket": "my-bucket",
            "region": "eu-west-1",
            "type": "html",
            "cloud": "s3",
            "awsAccount": "personal",
            "createdAt": created.isoformat(),
            "updatedAt": created.isoformat(),
        }

    def test_defaults_to_html_on_s3(self):
        record = MediaRecord("u1", "a.html", "https://x/a", "k/a", "b")

        assert record.media_type is MediaType.HTML
        assert record.cloud_provider is CloudProvider.S3


class TestBucketSummary:

    def test_to_dict_without_creation_date(self):
        assert BucketSummary(name="b").to_dict() == {"name": "b", "creation_date": None}

    def test_to_dict_formats_creation_date(self):
        created = datetime(2024, 1, 2, tzinfo=timezone.utc)
        assert BucketSummary(name="b", creation_date=created).to_dict()["creation_date"] == created.isoformat()


# ---------------------------------------------------------------------------
# Service Result Tests
# ---------------------------------------------------------------------------

class TestServiceResult:

    def test_success_envelope(self):
        result = ServiceResult.success({"name": "a.html"})

        assert result.ok
        assert result.to_dict() == {"status": "success", "data": {"name": "a.html"}}

    def test_error_envelope_carries_message(self):
        result = ServiceResult.error("boom")

        assert not result.ok
        assert result.status is ResultStatus.ERROR
        assert result.to_dict() == {"status": "error", "data": "boom"}


# ---------------------------------------------------------------------------
# Error Mapping Tests
# ---------------------------------------------------------------------------

class TestErrorMessages:

    @pytest.mark.parametrize("code,message", [
        (AwsErrorCode.NO_SUCH_BUCKET, "The specified bucket does not exist."),
        (AwsErrorCode.INVALID_BUCKET_NAME, "The specified bucket is not valid."),
        (AwsErrorCode.BUCKET_ALREADY_EXISTS, "The specified bucket already exists."),
        (AwsErrorCode.BUCKET_ALREADY_OWNED_BY_YOU, "The specified bucket already owned by you."),
    ])
    def test_known_provider_codes(self, code, message):
        assert error_message_for(ProviderError(code, "details")) == message

    def test_unknown_provider_code_is_generic(self):
        assert error_message_for(ProviderError("AccessDenied")) == GENERIC_ERROR_MESSAGE

    def test_transport_failure_is_generic(self):
        error = ProviderError(None, "connection reset")

        assert error.is_upstream_unavailable
        assert error_message_for(error) == GENERIC_ERROR_MESSAGE

    def test_missing_credentials(self):
        assert error_message_for(CredentialsMissingError()) == CREDENTIALS_MISSING_MESSAGE

    def test_client_factory_rejection_counts_as_missing_credentials(self):
        assert error_message_for(InvalidCredentialsError()) == CREDENTIALS_MISSING_MESSAGE

    @pytest.mark.parametrize("error", [
        MediaNotFoundError("gone"),
        RuntimeError("unexpected"),
        KeyError("x"),
    ])
    def test_everything_else_is_generic(self, error):
        assert error_message_for(error) == GENERIC_ERROR_MESSAGE
