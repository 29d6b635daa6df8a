"""User directory: the persistence boundary for user records."""

import logging
from abc import ABC, abstractmethod
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from src.models.user import UserRecord

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"

UNIQUE_FIELDS = ("username", "email")


class DuplicateKeyViolation(Exception):
    """Raised when a write collides with a unique index."""

    def __init__(self, field: str):
        super().__init__(f"Duplicate value for unique field '{field}'")
        self.field = field


class UserDirectory(ABC):
    """Durable store of user records keyed by id, username and email.

    Implementations enforce uniqueness of ``username`` and ``email`` and
    report collisions as ``DuplicateKeyViolation``.
    """

    @abstractmethod
    async def find_by_id(self, user_id: str) -> UserRecord | None: ...

    @abstractmethod
    async def find_by_username(self, username: str) -> UserRecord | None: ...

    @abstractmethod
    async def find_by_email(self, email: str) -> UserRecord | None: ...

    @abstractmethod
    async def insert(self, record: UserRecord) -> UserRecord: ...

    @abstractmethod
    async def update_by_id(self, user_id: str, changes: dict[str, Any]) -> UserRecord | None:
        """Apply ``changes`` (snake_case field names) and return the updated record."""

    @abstractmethod
    async def delete_by_id(self, user_id: str) -> bool: ...

    @abstractmethod
    async def list_users(
        self, role_id: int | None = None, skip: int = 0, limit: int = 10
    ) -> list[UserRecord]:
        """Return users newest-registered first."""

    @abstractmethod
    async def count(self, role_id: int | None = None) -> int: ...


def _object_id(user_id: str) -> ObjectId | None:
    try:
        return ObjectId(user_id)
    except (InvalidId, TypeError):
        return None


def _duplicate_field(error: DuplicateKeyError) -> str:
    """Work out which unique index a DuplicateKeyError refers to."""
    details = error.details or {}
    key_pattern = details.get("keyPattern") or details.get("keyValue") or {}
    for field in UNIQUE_FIELDS:
        if field in key_pattern:
            return field
    # Older servers only report the index name in the message
    message = str(error)
    for field in UNIQUE_FIELDS:
        if f"{field}_1" in message:
            return field
    logger.warning(f"Could not map duplicate key error to a field: {message}")
    return "unknown"


class MongoUserDirectory(UserDirectory):
    """User directory backed by a MongoDB collection."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def _find_one(self, query: dict[str, Any]) -> UserRecord | None:
        document = await self.collection.find_one(query)
        if document is None:
            return None
        return UserRecord.from_document(document)

    async def find_by_id(self, user_id: str) -> UserRecord | None:
        oid = _object_id(user_id)
        if oid is None:
            return None
        return await self._find_one({"_id": oid})

    async def find_by_username(self, username: str) -> UserRecord | None:
        return await self._find_one({"username": username})

    async def find_by_email(self, email: str) -> UserRecord | None:
        return await self._find_one({"email": email})

    async def insert(self, record: UserRecord) -> UserRecord:
        try:
            result = await self.collection.insert_one(record.to_document())
        except DuplicateKeyError as e:
            raise DuplicateKeyViolation(_duplicate_field(e)) from e
        return record.model_copy(update={"id": str(result.inserted_id)})

    async def update_by_id(self, user_id: str, changes: dict[str, Any]) -> UserRecord | None:
        oid = _object_id(user_id)
        if oid is None:
            return None
        update = {UserRecord.model_fields[name].alias: value for name, value in changes.items()}
        try:
            document = await self.collection.find_one_and_update(
                {"_id": oid},
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            raise DuplicateKeyViolation(_duplicate_field(e)) from e
        if document is None:
            return None
        return UserRecord.from_document(document)

    async def delete_by_id(self, user_id: str) -> bool:
        oid = _object_id(user_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid})
        return result.deleted_count > 0

    async def list_users(
        self, role_id: int | None = None, skip: int = 0, limit: int = 10
    ) -> list[UserRecord]:
        query = {} if role_id is None else {"roleId": role_id}
        cursor = (
            self.collection.find(query).sort("registeredAt", DESCENDING).skip(skip).limit(limit)
        )
        return [UserRecord.from_document(document) async for document in cursor]

    async def count(self, role_id: int | None = None) -> int:
        query = {} if role_id is None else {"roleId": role_id}
        return await self.collection.count_documents(query)
