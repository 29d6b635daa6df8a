"""FastAPI dependencies for authentication, validation and services."""

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from src.api.errors import ServiceError, unwrap
from src.database import get_user_directory
from src.services.auth import (
    InvalidTokenError,
    PasswordHasher,
    TokenService,
    get_password_hasher,
    get_token_service,
)
from src.services.identity import IdentityService
from src.services.result import Err, ErrorKind, FieldError
from src.services.user_directory import UserDirectory
from src.services.validation import validate_request

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

BODY_METHODS = {"POST", "PUT", "PATCH"}


@dataclass(frozen=True)
class AuthenticatedContext:
    """Identity of the caller, decoded from a verified access token."""

    user_id: str
    username: str
    email: str | None
    role_id: int | None
    issued_at: datetime
    expires_at: datetime


def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> AuthenticatedContext:
    """Verify the bearer token and return the caller's identity.

    The reason a token was refused is never sent to the client.
    """
    if credentials is None:
        raise ServiceError(Err(ErrorKind.MISSING_TOKEN, "No token provided"))

    try:
        claims = tokens.verify(credentials.credentials)
    except InvalidTokenError as e:
        logger.warning(f"Rejected access token: {e}")
        raise ServiceError(Err(ErrorKind.INVALID_TOKEN, "Invalid or expired token")) from e

    user_id = claims.get("sub")
    username = claims.get("username")
    if not user_id or not username:
        logger.warning("Rejected access token: missing subject or username")
        raise ServiceError(Err(ErrorKind.INVALID_TOKEN, "Invalid or expired token"))

    return AuthenticatedContext(
        user_id=user_id,
        username=username,
        email=claims.get("email"),
        role_id=claims.get("roleId"),
        issued_at=datetime.fromtimestamp(claims.get("iat", 0), UTC),
        expires_at=datetime.fromtimestamp(claims["exp"], UTC),
    )


def validated(schema_id: str) -> Callable[[Request], Awaitable[BaseModel]]:
    """Build a dependency validating the request against a registered schema.

    The route handler only runs when every section of the request is valid,
    and it receives the normalized values.
    """

    async def dependency(request: Request) -> BaseModel:
        body = None
        if request.method in BODY_METHODS:
            raw = await request.body()
            if raw:
                try:
                    body = json.loads(raw)
                except ValueError as e:
                    logger.warning(f"Malformed JSON body on {request.method} {request.url.path}")
                    raise ServiceError(
                        Err(
                            ErrorKind.VALIDATION_FAILED,
                            "Validation failed",
                            errors=[FieldError(field="body", message="Invalid JSON")],
                        )
                    ) from e

        result = validate_request(
            schema_id,
            body=body,
            query=dict(request.query_params),
            params=dict(request.path_params),
        )
        if isinstance(result, Err):
            logger.warning(
                f"Validation failed for {request.method} {request.url.path}: "
                f"{[error.field for error in result.errors]}"
            )
        return unwrap(result)

    return dependency


def get_identity_service(
    directory: Annotated[UserDirectory, Depends(get_user_directory)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> IdentityService:
    """Get identity service with dependencies."""
    return IdentityService(directory, hasher, tokens)
