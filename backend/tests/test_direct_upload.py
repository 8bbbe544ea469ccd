"""
Tests for direct proxy uploads.
"""
import io
import pytest
from unittest.mock import patch
from starlette.datastructures import Headers, UploadFile

from upload_relay.exceptions import InvalidInput, StorageUnavailable
from upload_relay.models.upload_record import StorageBackend, UploadPathway
from upload_relay.repositories.upload_ledger import UploadLedger
from upload_relay.services.direct_upload_service import DirectUploadService, LocalUploadService
from upload_relay.storage.local_store import LocalStore


def make_upload(filename="a.png", content=b"\x89PNG data", content_type="image/png"):
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


class TestValidation:
    """Tests for DirectUploadService.validate_file."""

    def test_allowed_file(self):
        DirectUploadService.validate_file(make_upload())

    def test_disallowed_type(self):
        with pytest.raises(InvalidInput, match="Invalid file type"):
            DirectUploadService.validate_file(make_upload("a.txt", b"hi", "text/plain"))

    def test_oversized_file(self):
        with patch("upload_relay.services.direct_upload_service.settings.max_upload_bytes", 4):
            with pytest.raises(InvalidInput, match="File size too large"):
                DirectUploadService.validate_file(make_upload(content=b"12345"))

    def test_missing_filename(self):
        with pytest.raises(InvalidInput):
            DirectUploadService.validate_file(make_upload(filename=""))


class TestDirectUploadService:
    """Tests for uploads through the server."""

    @pytest.mark.asyncio
    async def test_upload_single(self, db_session, s3_client):
        with patch.object(s3_client, "upload_fileobj", return_value=True) as put:
            record = await DirectUploadService(db_session, s3_client).upload_single(make_upload())

        put.assert_called_once()
        key = put.call_args.args[0]
        assert key.endswith("-a.png")
        assert put.call_args.args[2] == "image/png"
        assert record.single_url == s3_client.public_url_for(key)
        assert record.pathway == UploadPathway.DIRECT_PROXY

    @pytest.mark.asyncio
    async def test_upload_multiple_is_one_record(self, db_session, s3_client):
        files = [make_upload("a.png"), make_upload("b.pdf", b"%PDF", "application/pdf")]

        with patch.object(s3_client, "upload_fileobj", return_value=True) as put:
            record = await DirectUploadService(db_session, s3_client).upload_multiple(files)

        assert put.call_count == 2
        assert len(record.multiple_urls) == 2
        assert record.multiple_urls[0].endswith("-a.png")
        assert record.multiple_urls[1].endswith("-b.pdf")
        assert len(await UploadLedger(db_session).list_records()) == 1

    @pytest.mark.asyncio
    async def test_invalid_file_stops_before_any_upload(self, db_session, s3_client):
        files = [make_upload("a.png"), make_upload("b.exe", b"MZ", "application/octet-stream")]

        with patch.object(s3_client, "upload_fileobj", return_value=True) as put:
            with pytest.raises(InvalidInput):
                await DirectUploadService(db_session, s3_client).upload_multiple(files)

        put.assert_not_called()

    @pytest.mark.asyncio
    async def test_storage_failure_writes_no_record(self, db_session, s3_client):
        with patch.object(s3_client, "upload_fileobj", return_value=False):
            with pytest.raises(StorageUnavailable):
                await DirectUploadService(db_session, s3_client).upload_single(make_upload())

        assert await UploadLedger(db_session).list_records() == []

    @pytest.mark.asyncio
    async def test_no_file(self, db_session, s3_client):
        service = DirectUploadService(db_session, s3_client)
        with pytest.raises(InvalidInput):
            await service.upload_single(None)
        with pytest.raises(InvalidInput):
            await service.upload_multiple([])


class TestLocalUploadService:
    """Tests for uploads written to local disk."""

    @pytest.mark.asyncio
    async def test_upload_single(self, db_session, tmp_path):
        store = LocalStore(tmp_path, "/uploads")

        record = await LocalUploadService(db_session, store).upload_single(
            make_upload(content=b"\x89PNG local")
        )

        assert record.single_url.startswith("/uploads/")
        assert record.single_url.endswith("-a.png")
        assert record.pathway == UploadPathway.DIRECT_PROXY
        assert record.backend == StorageBackend.LOCAL

        name = record.single_url.rsplit("/", 1)[1]
        assert (tmp_path / name).read_bytes() == b"\x89PNG local"

    @pytest.mark.asyncio
    async def test_upload_multiple_is_one_record(self, db_session, tmp_path):
        store = LocalStore(tmp_path, "/uploads")
        files = [make_upload("a.png"), make_upload("a.png")]

        record = await LocalUploadService(db_session, store).upload_multiple(files)

        assert len(record.multiple_urls) == 2
        assert record.multiple_urls[0] != record.multiple_urls[1]
        assert len(list(tmp_path.iterdir())) == 2

    @pytest.mark.asyncio
    async def test_unsafe_name_stays_in_directory(self, db_session, tmp_path):
        root = tmp_path / "store"
        store = LocalStore(root, "/uploads")

        record = await LocalUploadService(db_session, store).upload_single(
            make_upload("../../etc/passwd.png")
        )

        name = record.single_url.rsplit("/", 1)[1]
        assert "/" not in name
        assert (root / name).is_file()
        assert [p.name for p in tmp_path.iterdir()] == ["store"]

    @pytest.mark.asyncio
    async def test_invalid_file_writes_nothing(self, db_session, tmp_path):
        store = LocalStore(tmp_path, "/uploads")

        with pytest.raises(InvalidInput):
            await LocalUploadService(db_session, store).upload_single(
                make_upload("a.txt", b"hi", "text/plain")
            )

        assert list(tmp_path.iterdir()) == []
        assert await UploadLedger(db_session).list_records() == []

    @pytest.mark.asyncio
    async def test_disk_failure_writes_no_record(self, db_session, tmp_path):
        store = LocalStore(tmp_path, "/uploads")

        with patch.object(store, "save", side_effect=OSError("No space left on device")):
            with pytest.raises(StorageUnavailable):
                await LocalUploadService(db_session, store).upload_single(make_upload())

        assert await UploadLedger(db_session).list_records() == []
