"""MongoDB document models."""

from src.models.user import UserRecord

__all__ = ["UserRecord"]
