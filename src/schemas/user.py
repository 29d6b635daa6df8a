"""User request and response schemas.

Request models are grouped by the part of the HTTP request they describe:
``body``, ``query`` and ``params``. JSON field names are camelCase.

Field types here normalize values and enforce lengths and ranges. Pattern
and format rules live in ``src.services.validation`` so they are reported
alongside a length failure on the same field.
"""

import re
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

from src.models.user import UserRecord

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")
MOBILE_RE = re.compile(r"^\+?[0-9]{10,15}$")
USER_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")

# Largest value BSON stores as a 64-bit integer
MAX_INT64 = 2**63 - 1
# Keeps (page - 1) * limit within a 32-bit skip for any allowed limit
MAX_PAGE = 2**31 // 100


def _matches(pattern: re.Pattern, message: str):
    def check(value: str) -> str:
        if not pattern.fullmatch(value):
            raise ValueError(message)
        return value

    return check


def _length(
    label: str,
    min_length: int = 0,
    max_length: int | None = None,
    unit: str = "characters",
    too_short: str | None = None,
):
    """Build a length check whose messages name the field."""

    def check(value: str) -> str:
        if len(value) < min_length:
            if too_short is not None:
                raise ValueError(too_short)
            if min_length == 1:
                raise ValueError(f"{label} is required")
            raise ValueError(f"{label} must be at least {min_length} {unit}")
        if max_length is not None and len(value) > max_length:
            raise ValueError(f"{label} must be max {max_length} {unit}")
        return value

    return check


def _positive(label: str):
    def check(value: int) -> int:
        if value <= 0:
            raise ValueError(f"{label} must be a positive integer")
        if value > MAX_INT64:
            raise ValueError(f"{label} is too large")
        return value

    return check


Trimmed = StringConstraints(strip_whitespace=True)

FirstName = Annotated[str, Trimmed, AfterValidator(_length("First name", 1, 50))]
MiddleName = Annotated[str, Trimmed, AfterValidator(_length("Middle name", max_length=50))]
LastName = Annotated[str, Trimmed, AfterValidator(_length("Last name", 1, 50))]
Username = Annotated[str, Trimmed, AfterValidator(_length("Username", 3, 50))]
Mobile = Annotated[str, Trimmed, AfterValidator(_length("Mobile number", 10, 15, unit="digits"))]
Email = Annotated[
    str,
    StringConstraints(strip_whitespace=True, to_lower=True),
    AfterValidator(_length("Email", max_length=50)),
]
Password = Annotated[str, AfterValidator(_length("Password", 8, 255))]
Intro = Annotated[str, Trimmed, AfterValidator(_length("Intro", max_length=500))]
Profile = Annotated[str, Trimmed, AfterValidator(_length("Profile", max_length=2000))]
RoleId = Annotated[int, AfterValidator(_positive("Role ID"))]
UserId = Annotated[str, AfterValidator(_matches(USER_ID_RE, "Invalid user ID format"))]


class CamelModel(BaseModel):
    """Base model using camelCase JSON names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Requests


class UserRegister(CamelModel):
    """User registration body."""

    role_id: RoleId
    first_name: FirstName
    middle_name: MiddleName | None = None
    last_name: LastName
    username: Username
    mobile: Mobile
    email: Email
    password: Password
    intro: Intro | None = None
    profile: Profile | None = None


class UserLogin(CamelModel):
    """User login body."""

    username_or_email: Annotated[
        str,
        Trimmed,
        AfterValidator(_length("Username or email", 3, too_short="Username or email is required")),
    ]
    password: Annotated[str, AfterValidator(_length("Password", 1))]


class UserUpdate(CamelModel):
    """Partial user update body. Password changes are not accepted here."""

    role_id: RoleId | None = None
    first_name: FirstName | None = None
    middle_name: MiddleName | None = None
    last_name: LastName | None = None
    username: Username | None = None
    mobile: Mobile | None = None
    email: Email | None = None
    intro: Intro | None = None
    profile: Profile | None = None


class UserIdParams(BaseModel):
    """Path parameters addressing a single user."""

    id: UserId


class UserListQuery(CamelModel):
    """Query string for listing users."""

    page: int = Field(1, ge=1, le=MAX_PAGE)
    limit: int = Field(10, ge=1, le=100)
    role_id: RoleId | None = None


class RegisterRequest(BaseModel):
    body: UserRegister


class LoginRequest(BaseModel):
    body: UserLogin


class UserIdRequest(BaseModel):
    params: UserIdParams


class UpdateUserRequest(BaseModel):
    params: UserIdParams
    body: UserUpdate


class ListUsersRequest(BaseModel):
    query: UserListQuery


# Responses


class UserResponse(CamelModel):
    """Public user view. Never includes the password hash."""

    id: str
    role_id: int
    first_name: str
    middle_name: str | None
    last_name: str
    username: str
    mobile: str
    email: str
    registered_at: datetime
    last_login: datetime | None
    intro: str | None
    profile: str | None

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserResponse":
        return cls.model_validate(record.model_dump(exclude={"password_hash"}))


class LoginResponse(CamelModel):
    """Login response with token and user info."""

    token: str
    token_type: str = "bearer"  # noqa: S105
    user: UserResponse


class Pagination(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int


class UserListResponse(CamelModel):
    users: list[UserResponse]
    pagination: Pagination


class MessageResponse(BaseModel):
    message: str
