"""
PeerRate Backend - Review Route Handlers
========================================

What:  /api/reviews endpoints: submit and list reviews for a user, the
       user's average rating, single-review reads and favorites.
How:   Thin handlers over ReviewService; every endpoint needs an acting
       user (X-User-ID).

Caching:
    GET /user/{id}/average is served from Redis when present; the response
    carries no HTTP cache headers because a new review changes it at once.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from peerrate.database import get_db_session
from peerrate.dependencies import get_current_user, get_review_service
from peerrate.models.user import User
from peerrate.schemas.common import ErrorResponse
from peerrate.schemas.review import AverageRating, ReviewCreate, ReviewRecord
from peerrate.services.review_service import ReviewService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/reviews",
    tags=["Reviews"],
    responses={401: {"description": "Missing or unknown X-User-ID", "model": ErrorResponse}},
)


@router.get(
    "/user/{user_id}",
    response_model=List[ReviewRecord],
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="List reviews a user has received",
    description="Newest first. `is_own_review` and `is_favorite` are relative to the caller.",
)
async def get_reviews_for_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    review_service: ReviewService = Depends(get_review_service),
) -> List[ReviewRecord]:
    return await review_service.get_reviews_for_user(db, current_user, user_id)


@router.post(
    "/user/{user_id}",
    response_model=ReviewRecord,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Cannot review yourself", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Review a user",
)
async def submit_review(
    user_id: UUID,
    payload: ReviewCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    review_service: ReviewService = Depends(get_review_service),
) -> ReviewRecord:
    return await review_service.submit_review(db, current_user, user_id, payload)


@router.get(
    "/user/{user_id}/average",
    response_model=AverageRating,
    summary="Average rating received by a user",
    description="All zeros when the user has no reviews.",
)
async def get_average_rating(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    review_service: ReviewService = Depends(get_review_service),
) -> AverageRating:
    return await review_service.get_average_rating(db, user_id)


@router.get(
    "/{review_id}",
    response_model=ReviewRecord,
    responses={404: {"description": "Review not found", "model": ErrorResponse}},
    summary="Get a single review",
)
async def get_review(
    review_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    review_service: ReviewService = Depends(get_review_service),
) -> ReviewRecord:
    return await review_service.get_review(db, current_user, review_id)


@router.post(
    "/{review_id}/favorite",
    response_model=ReviewRecord,
    responses={404: {"description": "Review not found", "model": ErrorResponse}},
    summary="Favorite a review",
)
async def favorite_review(
    review_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    review_service: ReviewService = Depends(get_review_service),
) -> ReviewRecord:
    return await review_service.favorite_review(db, current_user, review_id)


@router.delete(
    "/{review_id}/favorite",
    response_model=ReviewRecord,
    responses={404: {"description": "Review or favorite not found", "model": ErrorResponse}},
    summary="Remove a favorite",
)
async def unfavorite_review(
    review_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    review_service: ReviewService = Depends(get_review_service),
) -> ReviewRecord:
    return await review_service.unfavorite_review(db, current_user, review_id)
