"""User and authentication API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from src.api.dependencies import (
    AuthenticatedContext,
    get_current_identity,
    get_identity_service,
    validated,
)
from src.api.errors import unwrap
from src.schemas.user import (
    ListUsersRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    UpdateUserRequest,
    UserIdRequest,
    UserListResponse,
    UserResponse,
)
from src.services.identity import IdentityService

router = APIRouter(prefix="/api/v1/users", tags=["users"])

Identity = Annotated[AuthenticatedContext, Depends(get_current_identity)]
Service = Annotated[IdentityService, Depends(get_identity_service)]


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: Annotated[RegisterRequest, Depends(validated("register"))],
    service: Service,
):
    """Register a new user."""
    return unwrap(await service.register(payload.body))


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: Annotated[LoginRequest, Depends(validated("login"))],
    service: Service,
):
    """Login with username or email and password."""
    return unwrap(await service.login(payload.body.username_or_email, payload.body.password))


@router.get("/profile", response_model=UserResponse)
async def get_profile(identity: Identity, service: Service):
    """Get the current user's profile."""
    return unwrap(await service.get_by_id(identity.user_id))


@router.get("", response_model=UserListResponse)
async def list_users(
    identity: Identity,
    payload: Annotated[ListUsersRequest, Depends(validated("list_users"))],
    service: Service,
):
    """List users, newest registrations first."""
    query = payload.query
    return unwrap(await service.list_users(query.page, query.limit, query.role_id))


@router.get("/{id}", response_model=UserResponse)
async def get_user(
    identity: Identity,
    payload: Annotated[UserIdRequest, Depends(validated("get_user_by_id"))],
    service: Service,
):
    """Get a specific user."""
    return unwrap(await service.get_by_id(payload.params.id))


@router.patch("/{id}", response_model=UserResponse)
async def update_user(
    identity: Identity,
    payload: Annotated[UpdateUserRequest, Depends(validated("update_user"))],
    service: Service,
):
    """Update a user."""
    return unwrap(await service.update(payload.params.id, payload.body))


@router.delete("/{id}", response_model=MessageResponse)
async def delete_user(
    identity: Identity,
    payload: Annotated[UserIdRequest, Depends(validated("delete_user"))],
    service: Service,
):
    """Delete a user."""
    unwrap(await service.delete(payload.params.id))
    return MessageResponse(message="User deleted successfully")
