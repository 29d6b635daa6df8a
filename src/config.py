"""Runtime settings for the identity service.

Values come from environment variables (or a ``.env`` file) with names
matching the field names, e.g. ``JWT_SECRET`` or ``MONGO_URI``.
"""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "change-me-in-production"  # noqa: S105


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    mongo_uri: str = Field(default="mongodb://localhost:27017")
    mongo_db_name: str = Field(default="identity")

    # Tokens are signed with HS256 and live for a day unless overridden
    jwt_secret: str = Field(default=DEFAULT_JWT_SECRET)
    jwt_algorithm: str = Field(default="HS256")
    jwt_expiration_minutes: int = Field(default=24 * 60, gt=0)

    # bcrypt cost factor; tests drop this to the minimum
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    @model_validator(mode="after")
    def reject_insecure_production_values(self) -> "Settings":
        """Refuse to start in production with development defaults."""
        if not self.is_production:
            return self
        problems = []
        if self.jwt_secret == DEFAULT_JWT_SECRET:
            problems.append("JWT_SECRET is still the development default")
        if "localhost" in self.mongo_uri or "127.0.0.1" in self.mongo_uri:
            problems.append("MONGO_URI points at a local database")
        if problems:
            raise ValueError(f"Insecure production settings: {'; '.join(problems)}")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    return Settings()
