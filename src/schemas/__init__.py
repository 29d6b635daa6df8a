"""Pydantic schemas for API requests and responses."""

from src.schemas.user import (
    LoginResponse,
    UserListResponse,
    UserLogin,
    UserRegister,
    UserResponse,
    UserUpdate,
)

__all__ = [
    "UserRegister",
    "UserLogin",
    "UserUpdate",
    "UserResponse",
    "LoginResponse",
    "UserListResponse",
]
