"""
Unit tests for the cloud builder handlers and the upload orchestrator.

Wired to the in-memory object store and the mock Snowflake connection,
so every test runs the real orchestration end to end without AWS or a
warehouse.
"""

import asyncio

import pytest

from src.core.media.builder import (
    CREDENTIALS_MISSING_MESSAGE,
    GENERIC_ERROR_MESSAGE,
    CloudBuilder,
    FindParams,
)
from src.core.media.errors import AwsErrorCode, ProviderError
from src.core.media.models import (
    CredentialSet,
    MediaQuery,
    UpdateRequest,
    UploadRequest,
    UploadResult,
)
from src.core.media.orchestrator import UploadOrchestrator
from src.infrastructure.snowflake.client import MockSnowflakeConnection
from src.infrastructure.snowflake.repositories import (
    MediaStoreRepository,
    UserSettingsRepository,
)
from src.infrastructure.storage.client import (
    MockObjectStore,
    StorageConfig,
    build_object_key,
)


USER_ID = "u1"
ACCOUNT = CredentialSet("acct1", "AKIAACCT1", "secret-1")


def run(coro):
    return asyncio.run(coro)


class RecordingObjectStore(MockObjectStore):
    """In-memory store that remembers which provider calls were made."""

    def __init__(self, config):
        super().__init__(config)
        self.calls = []

    async def create_bucket(self, credentials, region, name):
        self.calls.append(("create_bucket", region, name))
        return await super().create_bucket(credentials, region, name)

    async def list_buckets(self, credentials):
        self.calls.append(("list_buckets", credentials.label))
        return await super().list_buckets(credentials)

    async def upload_object(self, credentials, region, bucket, user_id, file_name, body):
        self.calls.append(("upload_object", region, bucket))
        key = build_object_key(self._config.key_prefix, user_id, file_name)
        location = await super().put_object(credentials, region, bucket, key, body)
        return UploadResult(location=location, bucket=bucket, key=key)

    async def get_object(self, credentials, region, bucket, key):
        self.calls.append(("get_object", region, bucket))
        return await super().get_object(credentials, region, bucket, key)

    async def put_object(self, credentials, region, bucket, key, body):
        self.calls.append(("put_object", region, bucket))
        return await super().put_object(credentials, region, bucket, key, body)


class FailingObjectStore(MockObjectStore):
    """Object store whose bucket creation always fails with a given error."""

    def __init__(self, error):
        super().__init__(StorageConfig(key_prefix="cloud-builder"))
        self._error = error

    async def create_bucket(self, credentials, region, name):
        raise self._error


@pytest.fixture
def connection():
    return MockSnowflakeConnection()


@pytest.fixture
def media_repo(connection):
    return MediaStoreRepository(connection)


@pytest.fixture
def settings_repo(connection):
    repo = UserSettingsRepository(connection)
    repo.upsert_aws_account(USER_ID, ACCOUNT)
    return repo


@pytest.fixture
def object_store():
    return RecordingObjectStore(StorageConfig(default_region="us-east-1", key_prefix="cloud-builder"))


@pytest.fixture
def orchestrator(object_store, media_repo, settings_repo):
    return UploadOrchestrator(object_store, media_repo, settings_repo, default_region="us-east-1")


@pytest.fixture
def builder(orchestrator):
    return CloudBuilder(orchestrator)


def upload_request(**overrides):
    values = dict(
        account_label="acct1",
        bucket_name="mybucket",
        file_name="doc.html",
        html_content="<p>hi</p>",
        is_new_bucket=True,
    )
    values.update(overrides)
    return UploadRequest(**values)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

class TestCreate:

    def test_create_with_new_bucket(self, builder, object_store, media_repo):
        """Given valid credentials, bucket is created, object uploaded, record saved."""
        result = run(builder.create(upload_request(), USER_ID))

        assert result.ok
        assert result.data["name"] == "doc.html"
        assert result.data["location"] == (
            "https://mybucket.s3.us-east-1.amazonaws.com/cloud-builder/u1/doc.html"
        )

        assert object_store._get_object_bytes("mybucket", "cloud-builder/u1/doc.html") == b"<p>hi</p>"

        record = media_repo.get(result.data["_id"])
        assert record.user_id == USER_ID
        assert record.object_key == "cloud-builder/u1/doc.html"
        assert record.bucket_name == "mybucket"
        assert record.region == "us-east-1"
        assert record.account_label == "acct1"
        assert record.thumbnail_url == result.data["location"]

    def test_existing_bucket_is_not_created_again(self, builder, object_store):
        object_store._add_bucket("mybucket", owner=ACCOUNT.access_key)

        result = run(builder.create(upload_request(is_new_bucket=False), USER_ID))

        assert result.ok
        assert [call[0] for call in object_store.calls] == ["upload_object"]

    def test_missing_account_makes_no_provider_call(self, builder, object_store, media_repo):
        result = run(builder.create(upload_request(account_label="unknown"), USER_ID))

        assert result.to_dict() == {"status": "error", "data": CREDENTIALS_MISSING_MESSAGE}
        assert object_store.calls == []
        assert media_repo.find(MediaQuery(user_id=USER_ID)) == []

    @pytest.mark.parametrize("access_key,secret_key", [("", "secret"), ("AKIA", "")])
    def test_incomplete_account_makes_no_provider_call(
        self, builder, object_store, settings_repo, access_key, secret_key
    ):
        settings_repo.upsert_aws_account(USER_ID, CredentialSet("half", access_key, secret_key))

        result = run(builder.create(upload_request(account_label="half"), USER_ID))

        assert result.data == CREDENTIALS_MISSING_MESSAGE
        assert object_store.calls == []

    def test_user_without_settings(self, builder, object_store):
        result = run(builder.create(upload_request(), "someone-else"))

        assert result.data == CREDENTIALS_MISSING_MESSAGE
        assert object_store.calls == []

    def test_bucket_owned_by_another_account(self, builder, object_store):
        object_store._add_bucket("mybucket", owner="AKIASOMEONEELSE")

        result = run(builder.create(upload_request(), USER_ID))

        assert result.to_dict() == {
            "status": "error",
            "data": "The specified bucket already exists.",
        }

    def test_bucket_already_owned(self, builder, object_store):
        object_store._add_bucket("mybucket", owner=ACCOUNT.access_key)

        result = run(builder.create(upload_request(), USER_ID))

        assert result.data == "The specified bucket already owned by you."

    def test_invalid_bucket_name(self, builder):
        result = run(builder.create(upload_request(bucket_name="Not_Valid"), USER_ID))

        assert result.data == "The specified bucket is not valid."

    def test_upload_to_missing_bucket(self, builder, media_repo):
        result = run(builder.create(upload_request(is_new_bucket=False), USER_ID))

        assert result.data == "The specified bucket does not exist."
        assert media_repo.find(MediaQuery(user_id=USER_ID)) == []

    @pytest.mark.parametrize("error", [
        ProviderError("AccessDenied", "nope"),
        ProviderError(None, "timed out"),
        RuntimeError("boom"),
    ])
    def test_unmapped_failures_are_generic(self, media_repo, settings_repo, error):
        orchestrator = UploadOrchestrator(FailingObjectStore(error), media_repo, settings_repo)

        result = run(CloudBuilder(orchestrator).create(upload_request(), USER_ID))

        assert result.to_dict() == {"status": "error", "data": GENERIC_ERROR_MESSAGE}


# ---------------------------------------------------------------------------
# Region inference
# ---------------------------------------------------------------------------

class TestRegionInference:

    def test_reuses_region_of_earlier_upload(self, builder, object_store, media_repo):
        run(builder.create(upload_request(region="eu-west-1"), USER_ID))

        result = run(builder.create(
            upload_request(file_name="second.html", is_new_bucket=False),
            USER_ID,
        ))

        assert result.ok
        assert ("upload_object", "eu-west-1", "mybucket") in object_store.calls
        assert "s3.eu-west-1.amazonaws.com" in result.data["location"]
        assert media_repo.get(result.data["_id"]).region == "eu-west-1"

    def test_falls_back_to_default_region(self, orchestrator):
        assert orchestrator.infer_region(USER_ID, "never-used") == "us-east-1"

    def test_other_users_uploads_are_ignored(self, orchestrator, media_repo):
        run(orchestrator.upload(USER_ID, upload_request(region="ap-south-1")))

        assert orchestrator.infer_region("u2", "mybucket") == "us-east-1"

    def test_explicit_region_wins(self, builder, object_store):
        run(builder.create(upload_request(region="eu-west-1"), USER_ID))

        run(builder.create(
            upload_request(file_name="b.html", is_new_bucket=False, region="eu-central-1"),
            USER_ID,
        ))

        assert object_store.calls[-1] == ("upload_object", "eu-central-1", "mybucket")


# ---------------------------------------------------------------------------
# Find
# ---------------------------------------------------------------------------

class TestFind:

    def test_bucket_list(self, builder, object_store):
        object_store._add_bucket("alpha", owner=ACCOUNT.access_key)
        object_store._add_bucket("beta", owner=ACCOUNT.access_key)

        result = run(builder.find(FindParams(bucket_list=True), USER_ID))

        assert result.ok
        assert [bucket["name"] for bucket in result.data] == ["alpha", "beta"]

    def test_bucket_list_uses_named_account(self, builder, object_store, settings_repo):
        other = CredentialSet("acct2", "AKIAACCT2", "secret-2")
        settings_repo.upsert_aws_account(USER_ID, other)
        object_store._add_bucket("first-account-bucket", owner=ACCOUNT.access_key)
        object_store._add_bucket("second-account-bucket", owner=other.access_key)

        result = run(builder.find(FindParams(bucket_list=True, account_label="acct2"), USER_ID))

        assert [bucket["name"] for bucket in result.data] == ["second-account-bucket"]
        assert object_store.calls == [("list_buckets", "acct2")]

    def test_bucket_list_without_credentials(self, builder):
        result = run(builder.find(FindParams(bucket_list=True), "nobody"))

        assert result.data == CREDENTIALS_MISSING_MESSAGE

    def test_documents_newest_first(self, builder):
        run(builder.create(upload_request(file_name="first.html"), USER_ID))
        run(builder.create(upload_request(file_name="second.html", is_new_bucket=False), USER_ID))

        result = run(builder.find(FindParams(), USER_ID))

        assert result.ok
        assert [doc["name"] for doc in result.data] == ["second.html", "first.html"]
        assert all(doc["type"] == "html" for doc in result.data)

    def test_documents_search_and_bucket_filter(self, builder, object_store):
        run(builder.create(upload_request(file_name="landing.html"), USER_ID))
        run(builder.create(upload_request(file_name="about.html", is_new_bucket=False), USER_ID))

        by_search = run(builder.find(FindParams(search="LAND"), USER_ID))
        by_bucket = run(builder.find(FindParams(bucket_name="elsewhere"), USER_ID))

        assert [doc["name"] for doc in by_search.data] == ["landing.html"]
        assert by_bucket.data == []


# ---------------------------------------------------------------------------
# Get and Update
# ---------------------------------------------------------------------------

class TestGetAndUpdate:

    def test_get_returns_uploaded_content(self, builder):
        created = run(builder.create(upload_request(html_content="<p>héllo</p>"), USER_ID))

        result = run(builder.get(created.data["_id"], USER_ID))

        assert result.to_dict() == {"status": "success", "data": "<p>héllo</p>"}

    def test_get_binary_document(self, builder, object_store):
        """Given bytes that aren't UTF-8, the read succeeds and the stored bytes stay intact."""
        raw = b"\x89PNG\r\n\x1a\n\xff\xfe"
        created = run(builder.create(upload_request(file_name="img.png", html_content=raw), USER_ID))

        result = run(builder.get(created.data["_id"], USER_ID))

        assert result.ok
        assert result.data == raw.decode("utf-8", errors="replace")
        assert object_store._get_object_bytes("mybucket", "cloud-builder/u1/img.png") == raw

    def test_get_unknown_id(self, builder):
        result = run(builder.get("missing", USER_ID))

        assert result.to_dict() == {"status": "error", "data": GENERIC_ERROR_MESSAGE}

    def test_get_other_users_document(self, builder, settings_repo):
        created = run(builder.create(upload_request(), USER_ID))
        settings_repo.upsert_aws_account("u2", ACCOUNT)

        result = run(builder.get(created.data["_id"], "u2"))

        assert not result.ok

    def test_get_uses_the_uploading_account(self, builder, object_store, settings_repo):
        """Given a second saved account, get still reads with the one that uploaded."""
        created = run(builder.create(upload_request(region="eu-west-1"), USER_ID))
        settings_repo.upsert_aws_account(USER_ID, CredentialSet("acct0", "AKIAOTHER", "s"))

        result = run(builder.get(created.data["_id"], USER_ID))

        assert result.ok
        assert object_store.calls[-1] == ("get_object", "eu-west-1", "mybucket")

    def test_update_overwrites_in_place(self, builder, object_store, media_repo):
        created = run(builder.create(upload_request(), USER_ID))
        media_id = created.data["_id"]

        result = run(builder.update(
            media_id,
            UpdateRequest(html_content="<p>v2</p>", name="renamed.html"),
            USER_ID,
        ))

        assert result.ok
        assert result.data == {"location": created.data["location"], "name": "renamed.html"}
        assert object_store._get_object_bytes("mybucket", "cloud-builder/u1/doc.html") == b"<p>v2</p>"

        record = media_repo.get(media_id)
        assert record.name == "renamed.html"
        assert record.object_key == "cloud-builder/u1/doc.html"
        assert record.thumbnail_url == created.data["location"]

    def test_update_twice_is_idempotent(self, builder):
        created = run(builder.create(upload_request(), USER_ID))
        media_id = created.data["_id"]
        request = UpdateRequest(html_content="<p>same</p>", name="doc.html")

        first = run(builder.update(media_id, request, USER_ID))
        second = run(builder.update(media_id, request, USER_ID))

        assert first.data == second.data
        assert second.data["location"].startswith("https://mybucket.s3.us-east-1.amazonaws.com/")
        assert run(builder.get(media_id, USER_ID)).data == "<p>same</p>"

    def test_update_prefers_id_in_body(self, builder):
        created = run(builder.create(upload_request(), USER_ID))

        result = run(builder.update(
            "ignored",
            UpdateRequest(html_content="<p>v2</p>", name="x.html", media_id=created.data["_id"]),
            USER_ID,
        ))

        assert result.ok

    def test_update_unknown_id(self, builder, object_store):
        result = run(builder.update(
            "missing",
            UpdateRequest(html_content="<p>v2</p>", name="x.html"),
            USER_ID,
        ))

        assert result.data == GENERIC_ERROR_MESSAGE
        assert object_store.calls == []

    def test_update_after_bucket_vanished(self, builder, object_store):
        created = run(builder.create(upload_request(), USER_ID))
        object_store._clear()

        result = run(builder.update(
            created.data["_id"],
            UpdateRequest(html_content="<p>v2</p>", name="doc.html"),
            USER_ID,
        ))

        assert result.data == "The specified bucket does not exist."


class TestResolveCredentials:

    def test_first_account_is_default(self, orchestrator, settings_repo):
        settings_repo.upsert_aws_account(USER_ID, CredentialSet("acct2", "AKIA2", "s2"))

        assert orchestrator.resolve_credentials(USER_ID, None).label == "acct1"

    def test_named_account(self, orchestrator, settings_repo):
        settings_repo.upsert_aws_account(USER_ID, CredentialSet("acct2", "AKIA2", "s2"))

        assert orchestrator.resolve_credentials(USER_ID, "acct2").access_key == "AKIA2"


def test_provider_error_codes_reach_the_handler_unchanged(media_repo, settings_repo):
    orchestrator = UploadOrchestrator(
        FailingObjectStore(ProviderError(AwsErrorCode.NO_SUCH_BUCKET)),
        media_repo,
        settings_repo,
    )

    result = run(CloudBuilder(orchestrator).create(upload_request(), USER_ID))

    assert result.data == "The specified bucket does not exist."
