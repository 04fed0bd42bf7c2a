"""
PeerRate Backend - Request Dependencies
=======================================

What:  FastAPI dependencies shared by the routers: the acting user and the
       service instances built in the lifespan.
How:   The acting user is identified by the X-User-ID header, which an
       upstream gateway sets after authenticating the caller. Services are
       read from app.state so tests can swap them via dependency_overrides.
"""

import uuid

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from peerrate.database import get_db_session
from peerrate.exceptions import AuthenticationError
from peerrate.models.user import User
from peerrate.services.review_service import ReviewService
from peerrate.services.storage_base import ObjectStorage
from peerrate.services.user_service import UserService


async def get_current_user(
    x_user_id: str | None = Header(default=None, alias="X-User-ID"),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """
    Resolve the acting user.

    Raises:
        AuthenticationError: header missing, not a UUID, or no such user
    """
    if not x_user_id:
        raise AuthenticationError(message="Missing X-User-ID header")

    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        raise AuthenticationError(message="Malformed X-User-ID header")

    user = await db.get(User, user_id)
    if user is None:
        raise AuthenticationError(
            message="Unknown user",
            context={"user_id": str(user_id)},
        )
    return user


def get_review_service(request: Request) -> ReviewService:
    return request.app.state.review_service


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_object_storage(request: Request) -> ObjectStorage:
    return request.app.state.object_storage
