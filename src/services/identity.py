"""Identity service: registration, login and user management."""

import logging
import math
from datetime import UTC, datetime

from starlette.concurrency import run_in_threadpool

from src.models.user import UserRecord
from src.schemas.user import (
    LoginResponse,
    Pagination,
    UserListResponse,
    UserRegister,
    UserResponse,
    UserUpdate,
)
from src.services.auth import PasswordHasher, TokenService
from src.services.result import Err, ErrorKind, Ok, Result
from src.services.user_directory import DuplicateKeyViolation, UserDirectory

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = Err(ErrorKind.INVALID_CREDENTIALS, "Invalid credentials")
USER_NOT_FOUND = Err(ErrorKind.NOT_FOUND, "User not found")


def duplicate_error(field: str) -> Err:
    """Error for a username or email that is already taken."""
    if field == "email":
        return Err(ErrorKind.DUPLICATE_EMAIL, "Email already exists", field_name="email")
    return Err(ErrorKind.DUPLICATE_USERNAME, "Username already exists", field_name="username")


class IdentityService:
    """Service for account registration, authentication and user records."""

    def __init__(self, directory: UserDirectory, hasher: PasswordHasher, tokens: TokenService):
        self.directory = directory
        self.hasher = hasher
        self.tokens = tokens

    async def _check_unique(
        self, username: str | None, email: str | None, current: UserRecord | None = None
    ) -> Err | None:
        """Best-effort duplicate check; the unique indexes are authoritative."""
        if username is not None and (current is None or username != current.username):
            if await self.directory.find_by_username(username):
                return duplicate_error("username")
        if email is not None and (current is None or email != current.email):
            if await self.directory.find_by_email(email):
                return duplicate_error("email")
        return None

    async def register(self, data: UserRegister) -> Result[UserResponse]:
        """Register a new user."""
        duplicate = await self._check_unique(data.username, data.email)
        if duplicate:
            logger.warning(f"Registration rejected for '{data.username}': {duplicate.detail}")
            return duplicate

        password_hash = await run_in_threadpool(self.hasher.hash, data.password)
        record = UserRecord(
            role_id=data.role_id,
            first_name=data.first_name,
            middle_name=data.middle_name,
            last_name=data.last_name,
            username=data.username,
            mobile=data.mobile,
            email=data.email,
            password_hash=password_hash,
            registered_at=datetime.now(UTC),
            last_login=None,
            intro=data.intro,
            profile=data.profile,
        )

        try:
            record = await self.directory.insert(record)
        except DuplicateKeyViolation as e:
            # Lost a race with a concurrent registration
            logger.warning(f"Registration for '{data.username}' hit unique index on {e.field}")
            return duplicate_error(e.field)

        logger.info(f"User registered: id={record.id} username={record.username}")
        return Ok(UserResponse.from_record(record))

    async def login(self, username_or_email: str, password: str) -> Result[LoginResponse]:
        """Authenticate by username or email and issue an access token.

        Unknown identifiers and wrong passwords produce the same error.
        """
        user = await self.directory.find_by_username(username_or_email)
        if user is None:
            user = await self.directory.find_by_email(username_or_email.lower())

        if user is None:
            await run_in_threadpool(self.hasher.dummy_verify)
            logger.warning("Login failed: invalid credentials")
            return INVALID_CREDENTIALS
        if not await run_in_threadpool(self.hasher.verify, password, user.password_hash):
            logger.warning("Login failed: invalid credentials")
            return INVALID_CREDENTIALS

        updated = await self.directory.update_by_id(user.id, {"last_login": datetime.now(UTC)})
        if updated is not None:
            user = updated

        token = self.tokens.issue(
            {
                "sub": user.id,
                "username": user.username,
                "email": user.email,
                "roleId": user.role_id,
            }
        )
        logger.info(f"User logged in: id={user.id} username={user.username}")
        return Ok(LoginResponse(token=token, user=UserResponse.from_record(user)))

    async def get_by_id(self, user_id: str) -> Result[UserResponse]:
        """Get a user's public view."""
        user = await self.directory.find_by_id(user_id)
        if user is None:
            return USER_NOT_FOUND
        return Ok(UserResponse.from_record(user))

    async def update(self, user_id: str, data: UserUpdate) -> Result[UserResponse]:
        """Update a user, re-checking uniqueness for a changed username or email."""
        user = await self.directory.find_by_id(user_id)
        if user is None:
            return USER_NOT_FOUND

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return Ok(UserResponse.from_record(user))

        duplicate = await self._check_unique(changes.get("username"), changes.get("email"), user)
        if duplicate:
            logger.warning(f"Update of user {user_id} rejected: {duplicate.detail}")
            return duplicate

        try:
            updated = await self.directory.update_by_id(user_id, changes)
        except DuplicateKeyViolation as e:
            logger.warning(f"Update of user {user_id} hit unique index on {e.field}")
            return duplicate_error(e.field)
        if updated is None:
            return USER_NOT_FOUND

        logger.info(f"User updated: id={user_id} fields={sorted(changes)}")
        return Ok(UserResponse.from_record(updated))

    async def list_users(
        self, page: int = 1, limit: int = 10, role_id: int | None = None
    ) -> Result[UserListResponse]:
        """List users newest first, one page at a time."""
        skip = (page - 1) * limit
        users = await self.directory.list_users(role_id=role_id, skip=skip, limit=limit)
        total = await self.directory.count(role_id=role_id)
        return Ok(
            UserListResponse(
                users=[UserResponse.from_record(user) for user in users],
                pagination=Pagination(
                    total=total, page=page, limit=limit, total_pages=math.ceil(total / limit)
                ),
            )
        )

    async def delete(self, user_id: str) -> Result[None]:
        """Delete a user."""
        if not await self.directory.delete_by_id(user_id):
            return USER_NOT_FOUND
        logger.info(f"User deleted: id={user_id}")
        return Ok(None)
