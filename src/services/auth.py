"""Password hashing and JWT handling."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from src.config import get_settings


class InvalidTokenError(Exception):
    """Raised when a token is malformed, forged or expired."""


class PasswordHasher:
    """Salted bcrypt hashing with a configurable cost factor."""

    def __init__(self, rounds: int = 12):
        self.context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, password: str) -> str:
        """Hash a password. The salt is embedded in the returned digest."""
        return self.context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against its hash.

        A digest that cannot be parsed counts as a mismatch.
        """
        try:
            return self.context.verify(password, password_hash)
        except (ValueError, TypeError):
            return False

    def dummy_verify(self) -> None:
        """Spend the time of a real verification without a stored hash."""
        self.context.dummy_verify()


class TokenService:
    """Issues and verifies signed, stateless access tokens."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expires_minutes: int = 1440,
        clock: Callable[[], datetime] | None = None,
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.lifetime = timedelta(minutes=expires_minutes)
        self.clock = clock or (lambda: datetime.now(UTC))

    def issue(self, claims: dict[str, Any]) -> str:
        """Create a JWT carrying ``claims`` plus ``iat`` and ``exp``."""
        issued_at = self.clock()
        to_encode = {
            **claims,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.lifetime).timestamp()),
        }
        return jwt.encode(to_encode, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> dict[str, Any]:
        """Decode a JWT and check its signature and expiry.

        Expiry is checked against ``self.clock`` rather than by the JWT
        library so that verification depends only on the token and the
        injected time.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as e:
            raise InvalidTokenError("Token could not be decoded") from e

        exp = payload.get("exp")
        if not isinstance(exp, int | float):
            raise InvalidTokenError("Token has no expiry")
        if self.clock().timestamp() >= exp:
            raise InvalidTokenError("Token has expired")
        return payload


@lru_cache
def get_password_hasher() -> PasswordHasher:
    """Get the process-wide password hasher."""
    return PasswordHasher(rounds=get_settings().bcrypt_rounds)


@lru_cache
def get_token_service() -> TokenService:
    """Get the process-wide token service."""
    settings = get_settings()
    return TokenService(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expires_minutes=settings.jwt_expiration_minutes,
    )
