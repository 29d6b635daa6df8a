"""User document model."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class UserRecord(BaseModel):
    """User document as stored in the ``users`` collection.

    Stored keys are camelCase (``firstName``, ``passwordHash``...) and the
    MongoDB ``_id`` is carried as its 24-character hex string.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str | None = Field(default=None, alias="_id")
    role_id: int
    first_name: str
    middle_name: str | None = None
    last_name: str
    username: str
    mobile: str
    email: str
    password_hash: str
    registered_at: datetime
    last_login: datetime | None = None
    intro: str | None = None
    profile: str | None = None

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "UserRecord":
        """Build a record from a raw MongoDB document."""
        data = dict(document)
        if data.get("_id") is not None:
            data["_id"] = str(data["_id"])
        return cls.model_validate(data)

    def to_document(self) -> dict[str, Any]:
        """Serialize to a MongoDB document, leaving ``_id`` to the server."""
        return self.model_dump(by_alias=True, exclude={"id"})
