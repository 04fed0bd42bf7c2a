"""
PeerRate Backend - User Route Handlers
======================================

What:  /api/users endpoints: own profile, picture upload, search, social
       linking, other users' profiles and follow connections.
How:   Thin handlers: resolve the acting user and session, delegate to
       UserService.

Route order:
    Static paths (/me, /search, /link-social) are declared before
    /{user_id}; FastAPI matches in declaration order.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from peerrate.database import get_db_session
from peerrate.dependencies import get_current_user, get_user_service
from peerrate.models.user import User
from peerrate.schemas.common import ErrorResponse
from peerrate.schemas.user import (
    LinkSocialAccountRequest,
    ProfilePictureUpload,
    UserProfileResponse,
    UserResponse,
    UserUpdate,
)
from peerrate.services.user_service import UserService

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(
    prefix="/api/users",
    tags=["Users"],
    responses={401: {"description": "Missing or unknown X-User-ID", "model": ErrorResponse}},
)


@router.get("/me", response_model=UserResponse, summary="Get own profile")
async def get_self(
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    return await user_service.get_self(current_user)


@router.put(
    "/me",
    response_model=UserResponse,
    summary="Update own name and headline",
    description="Only `name` and `headline` can be changed. Omitted fields are left unchanged.",
)
async def update_self(
    payload: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    return await user_service.update_self(db, current_user, payload)


@router.put(
    "/me/profile-picture",
    response_model=UserResponse,
    responses={
        400: {"description": "Not a jpg/jpeg/png data URL", "model": ErrorResponse},
        500: {"description": "Upload failed", "model": ErrorResponse},
    },
    summary="Upload a profile picture",
    description="Body: `{\"file\": \"data:image/png;base64,...\"}`.",
)
async def update_profile_picture(
    payload: ProfilePictureUpload,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    return await user_service.update_profile_picture(db, current_user, payload.file)


@router.get(
    "/search",
    response_model=List[UserProfileResponse],
    responses={400: {"description": "Missing search term", "model": ErrorResponse}},
    summary="Search users by name or email",
)
async def search_users(
    query: str | None = Query(default=None, description="Substring of name or email"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    user_service: UserService = Depends(get_user_service),
) -> List[UserProfileResponse]:
    return await user_service.search_users(
        db, current_user.id, query, limit=limit, offset=offset
    )


@router.post(
    "/link-social",
    response_model=UserResponse,
    responses={
        400: {"description": "Unsupported provider or rejected token", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
        409: {"description": "Email belongs to another user", "model": ErrorResponse},
        503: {"description": "Provider unreachable", "model": ErrorResponse},
    },
    summary="Link a social account to a user",
)
async def link_social_account(
    payload: LinkSocialAccountRequest,
    db: AsyncSession = Depends(get_db_session),
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    # The target user comes from the body; no acting user is required
    return await user_service.link_social_account(
        db, payload.user_id, payload.provider, payload.access_token
    )


@router.get(
    "/{user_id}",
    response_model=UserProfileResponse,
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="Get a user's profile",
)
async def get_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    user_service: UserService = Depends(get_user_service),
) -> UserProfileResponse:
    return await user_service.get_user(db, current_user.id, user_id)


@router.post(
    "/{user_id}/connection",
    response_model=UserProfileResponse,
    summary="Follow a user",
)
async def follow_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    user_service: UserService = Depends(get_user_service),
) -> UserProfileResponse:
    return await user_service.follow_user(db, current_user, user_id)


@router.delete(
    "/{user_id}/connection",
    response_model=UserProfileResponse,
    summary="Unfollow a user",
)
async def unfollow_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    user_service: UserService = Depends(get_user_service),
) -> UserProfileResponse:
    return await user_service.unfollow_user(db, current_user, user_id)
