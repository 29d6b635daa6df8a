"""Tests for the MongoDB user directory and client lifecycle."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, call, patch

import pytest
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

import src.database as database_module
from src.database import close_database, ensure_indexes, get_client
from src.models.user import UserRecord
from src.services.user_directory import DuplicateKeyViolation, MongoUserDirectory

USER_ID = ObjectId("0123456789abcdef01234567")


class AsyncCursor:
    """Minimal stand-in for a Motor cursor."""

    def __init__(self, documents):
        self.documents = documents
        self.sort = MagicMock(return_value=self)
        self.skip = MagicMock(return_value=self)
        self.limit = MagicMock(return_value=self)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for document in self.documents:
            yield document


def make_document(**overrides) -> dict:
    document = {
        "_id": USER_ID,
        "roleId": 1,
        "firstName": "Alice",
        "middleName": None,
        "lastName": "Smith",
        "username": "alice",
        "mobile": "+15551234567",
        "email": "alice@x.com",
        "passwordHash": "$2b$04$hash",
        "registeredAt": datetime(2026, 1, 1, tzinfo=UTC),
        "lastLogin": None,
        "intro": None,
        "profile": None,
    }
    document.update(overrides)
    return document


def duplicate_key_error(field: str, with_details: bool = True) -> DuplicateKeyError:
    details = {"keyPattern": {field: 1}, "keyValue": {field: "x"}} if with_details else None
    return DuplicateKeyError(
        f"E11000 duplicate key error collection: identity.users index: {field}_1 dup key",
        11000,
        details,
    )


@pytest.fixture
def collection():
    return MagicMock()


@pytest.fixture
def mongo_directory(collection):
    return MongoUserDirectory(collection)


class TestUserRecord:
    """Tests for converting between documents and records."""

    def test_from_document(self):
        record = UserRecord.from_document(make_document())
        assert record.id == "0123456789abcdef01234567"
        assert record.first_name == "Alice"
        assert record.password_hash == "$2b$04$hash"

    def test_to_document_uses_camel_case_without_id(self):
        document = UserRecord.from_document(make_document()).to_document()
        assert "_id" not in document
        assert document["passwordHash"] == "$2b$04$hash"
        assert document["roleId"] == 1
        assert "password_hash" not in document


class TestMongoUserDirectory:
    """Tests for MongoUserDirectory."""

    @pytest.mark.asyncio
    async def test_find_by_username(self, mongo_directory, collection):
        collection.find_one = AsyncMock(return_value=make_document())

        record = await mongo_directory.find_by_username("alice")

        assert record.username == "alice"
        collection.find_one.assert_awaited_once_with({"username": "alice"})

    @pytest.mark.asyncio
    async def test_find_by_email_missing(self, mongo_directory, collection):
        collection.find_one = AsyncMock(return_value=None)
        assert await mongo_directory.find_by_email("nobody@x.com") is None

    @pytest.mark.asyncio
    async def test_find_by_id_converts_object_id(self, mongo_directory, collection):
        collection.find_one = AsyncMock(return_value=make_document())

        await mongo_directory.find_by_id(str(USER_ID))

        collection.find_one.assert_awaited_once_with({"_id": USER_ID})

    @pytest.mark.asyncio
    async def test_find_by_invalid_id_skips_query(self, mongo_directory, collection):
        collection.find_one = AsyncMock()

        assert await mongo_directory.find_by_id("not-an-id") is None
        collection.find_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_insert_returns_record_with_id(self, mongo_directory, collection):
        collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=USER_ID))
        record = UserRecord.from_document(make_document(_id=None))

        inserted = await mongo_directory.insert(record)

        assert inserted.id == str(USER_ID)
        stored = collection.insert_one.await_args.args[0]
        assert stored["username"] == "alice"
        assert "_id" not in stored

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["username", "email"])
    @pytest.mark.parametrize("with_details", [True, False])
    async def test_insert_duplicate_key(self, mongo_directory, collection, field, with_details):
        """Test unique-index violations name the offending field."""
        collection.insert_one = AsyncMock(side_effect=duplicate_key_error(field, with_details))
        record = UserRecord.from_document(make_document(_id=None))

        with pytest.raises(DuplicateKeyViolation) as exc_info:
            await mongo_directory.insert(record)

        assert exc_info.value.field == field

    @pytest.mark.asyncio
    async def test_update_by_id_sets_camel_case_fields(self, mongo_directory, collection):
        collection.find_one_and_update = AsyncMock(return_value=make_document(lastName="Jones"))

        record = await mongo_directory.update_by_id(str(USER_ID), {"last_name": "Jones"})

        assert record.last_name == "Jones"
        collection.find_one_and_update.assert_awaited_once_with(
            {"_id": USER_ID},
            {"$set": {"lastName": "Jones"}},
            return_document=ReturnDocument.AFTER,
        )

    @pytest.mark.asyncio
    async def test_update_by_id_missing(self, mongo_directory, collection):
        collection.find_one_and_update = AsyncMock(return_value=None)
        assert await mongo_directory.update_by_id(str(USER_ID), {"intro": "x"}) is None

    @pytest.mark.asyncio
    async def test_update_duplicate_key(self, mongo_directory, collection):
        collection.find_one_and_update = AsyncMock(side_effect=duplicate_key_error("email"))

        with pytest.raises(DuplicateKeyViolation) as exc_info:
            await mongo_directory.update_by_id(str(USER_ID), {"email": "bob@x.com"})

        assert exc_info.value.field == "email"

    @pytest.mark.asyncio
    async def test_delete_by_id(self, mongo_directory, collection):
        collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
        assert await mongo_directory.delete_by_id(str(USER_ID)) is True

        collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=0))
        assert await mongo_directory.delete_by_id(str(USER_ID)) is False

    @pytest.mark.asyncio
    async def test_list_users(self, mongo_directory, collection):
        cursor = AsyncCursor([make_document(), make_document(username="bob")])
        collection.find = MagicMock(return_value=cursor)

        users = await mongo_directory.list_users(role_id=2, skip=10, limit=5)

        assert [user.username for user in users] == ["alice", "bob"]
        collection.find.assert_called_once_with({"roleId": 2})
        cursor.sort.assert_called_once_with("registeredAt", -1)
        cursor.skip.assert_called_once_with(10)
        cursor.limit.assert_called_once_with(5)

    @pytest.mark.asyncio
    async def test_count(self, mongo_directory, collection):
        collection.count_documents = AsyncMock(return_value=7)

        assert await mongo_directory.count() == 7
        collection.count_documents.assert_awaited_once_with({})


class TestClientLifecycle:
    """Tests for the process-wide Motor client."""

    def test_creates_client_once(self):
        database_module._client = None

        with patch("src.database.AsyncIOMotorClient") as mock_client_cls:
            first = get_client()
            second = get_client()

            assert first is second
            mock_client_cls.assert_called_once()
            assert mock_client_cls.call_args.kwargs["tz_aware"] is True

        database_module._client = None

    @pytest.mark.asyncio
    async def test_close_database_resets_client(self):
        mock_client = MagicMock()
        database_module._client = mock_client

        await close_database()

        mock_client.close.assert_called_once()
        assert database_module._client is None

    @pytest.mark.asyncio
    async def test_close_database_without_client(self):
        database_module._client = None
        await close_database()
        assert database_module._client is None

    @pytest.mark.asyncio
    async def test_ensure_indexes(self):
        users = MagicMock()
        users.create_index = AsyncMock()
        db = MagicMock()
        db.__getitem__.return_value = users

        await ensure_indexes(db)

        db.__getitem__.assert_called_with("users")
        assert users.create_index.await_args_list == [
            call("username", unique=True),
            call("email", unique=True),
            call("mobile"),
            call("roleId"),
        ]
