"""
Tests for pre-signed upload confirmation.
Confirmation trusts the client by default, including duplicate records.
"""
import pytest
from botocore.exceptions import EndpointConnectionError
from botocore.stub import Stubber
from unittest.mock import patch
from sqlalchemy import func, select

from upload_relay.exceptions import InvalidInput, StorageUnavailable, UploadNotFound
from upload_relay.models.upload_record import UploadRecord, UploadPathway
from upload_relay.services.confirmation_service import ConfirmationHandler
from upload_relay.storage.presign import CredentialIssuer, UploadRequest


async def count_records(db_session) -> int:
    result = await db_session.execute(select(func.count()).select_from(UploadRecord))
    return result.scalar_one()


class TestConfirmSingle:
    """Tests for ConfirmationHandler.confirm_single."""

    @pytest.mark.asyncio
    async def test_confirm_single(self, db_session, s3_client):
        handler = ConfirmationHandler(db_session, s3_client, verify=False)
        url = "https://bucket.example/uploads/123-a.png"

        record = await handler.confirm_single(url)

        assert record.single_url == url
        assert record.multiple_urls == []
        assert record.pathway == UploadPathway.PRESIGNED

    @pytest.mark.asyncio
    async def test_unverified_url_is_accepted(self, db_session, s3_client):
        """Nothing checks that the object exists or was ever issued."""
        handler = ConfirmationHandler(db_session, s3_client, verify=False)

        record = await handler.confirm_single("https://elsewhere.example/never-issued.png")

        assert record.id is not None
        assert await count_records(db_session) == 1

    @pytest.mark.asyncio
    async def test_duplicate_confirmation_creates_two_records(self, db_session, s3_client):
        handler = ConfirmationHandler(db_session, s3_client, verify=False)
        url = "https://bucket.example/uploads/123-a.png"

        first = await handler.confirm_single(url)
        second = await handler.confirm_single(url)

        assert first.id != second.id
        assert await count_records(db_session) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["", "  "])
    async def test_empty_url(self, db_session, s3_client, url):
        handler = ConfirmationHandler(db_session, s3_client, verify=False)

        with pytest.raises(InvalidInput):
            await handler.confirm_single(url)

        assert await count_records(db_session) == 0

    @pytest.mark.asyncio
    async def test_round_trip_from_issuance(self, db_session, s3_client):
        credential = await CredentialIssuer(s3_client).issue_single(
            UploadRequest("a.png", "image/png")
        )

        record = await ConfirmationHandler(db_session, s3_client, verify=False).confirm_single(
            credential.public_url
        )

        assert record.single_url == credential.public_url


class TestConfirmBatch:
    """Tests for ConfirmationHandler.confirm_batch."""

    @pytest.mark.asyncio
    async def test_batch_is_one_record(self, db_session, s3_client):
        handler = ConfirmationHandler(db_session, s3_client, verify=False)

        record = await handler.confirm_batch(["u1", "u2", "u3"])

        assert record.multiple_urls == ["u1", "u2", "u3"]
        assert record.single_url is None
        assert record.pathway == UploadPathway.PRESIGNED
        assert await count_records(db_session) == 1

    @pytest.mark.asyncio
    async def test_empty_batch_writes_nothing(self, db_session, s3_client):
        handler = ConfirmationHandler(db_session, s3_client, verify=False)

        with pytest.raises(InvalidInput):
            await handler.confirm_batch([])

        assert await count_records(db_session) == 0

    @pytest.mark.asyncio
    async def test_blank_entry_rejects_batch(self, db_session, s3_client):
        handler = ConfirmationHandler(db_session, s3_client, verify=False)

        with pytest.raises(InvalidInput, match=r"fileUrls\[1\]"):
            await handler.confirm_batch(["u1", "", "u3"])

        assert await count_records(db_session) == 0


class TestVerifiedConfirmation:
    """Tests for confirmation with a storage HEAD check."""

    @pytest.mark.asyncio
    async def test_existing_object_is_recorded(self, db_session, s3_client):
        url = s3_client.public_url_for("uploads/1-abc-a.png")
        handler = ConfirmationHandler(db_session, s3_client, verify=True)

        with Stubber(s3_client._client) as stubber:
            stubber.add_response(
                "head_object",
                {"ContentLength": 10},
                {"Bucket": "test-bucket", "Key": "uploads/1-abc-a.png"},
            )
            record = await handler.confirm_single(url)

        assert record.single_url == url

    @pytest.mark.asyncio
    async def test_missing_object_is_rejected(self, db_session, s3_client):
        url = s3_client.public_url_for("uploads/1-abc-a.png")
        handler = ConfirmationHandler(db_session, s3_client, verify=True)

        with Stubber(s3_client._client) as stubber:
            stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)
            with pytest.raises(UploadNotFound):
                await handler.confirm_single(url)

        assert await count_records(db_session) == 0

    @pytest.mark.asyncio
    async def test_foreign_url_is_rejected(self, db_session, s3_client):
        handler = ConfirmationHandler(db_session, s3_client, verify=True)

        with pytest.raises(UploadNotFound, match="does not belong"):
            await handler.confirm_single("https://elsewhere.example/a.png")

        assert await count_records(db_session) == 0

    @pytest.mark.asyncio
    async def test_batch_with_one_missing_object_writes_nothing(self, db_session, s3_client):
        urls = [
            s3_client.public_url_for("uploads/1-a.png"),
            s3_client.public_url_for("uploads/2-b.png"),
        ]
        handler = ConfirmationHandler(db_session, s3_client, verify=True)

        with Stubber(s3_client._client) as stubber:
            stubber.add_response("head_object", {"ContentLength": 1})
            stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)
            with pytest.raises(UploadNotFound):
                await handler.confirm_batch(urls)

        assert await count_records(db_session) == 0

    @pytest.mark.asyncio
    async def test_access_denied_is_storage_failure(self, db_session, s3_client):
        url = s3_client.public_url_for("uploads/1-abc-a.png")
        handler = ConfirmationHandler(db_session, s3_client, verify=True)

        with Stubber(s3_client._client) as stubber:
            stubber.add_client_error(
                "head_object", service_error_code="403", http_status_code=403
            )
            with pytest.raises(StorageUnavailable):
                await handler.confirm_single(url)

        assert await count_records(db_session) == 0

    @pytest.mark.asyncio
    async def test_connection_error_is_storage_failure(self, db_session, s3_client):
        url = s3_client.public_url_for("uploads/1-abc-a.png")
        handler = ConfirmationHandler(db_session, s3_client, verify=True)
        error = EndpointConnectionError(endpoint_url="https://s3.example")

        with patch.object(s3_client._client, "head_object", side_effect=error):
            with pytest.raises(StorageUnavailable):
                await handler.confirm_batch([url])

        assert await count_records(db_session) == 0
