"""
PeerRate Backend - User Service
===============================

What:  Profiles, profile-picture upload, user search, follow connections and
       social-account linking.
How:   Composes the database session with an injected ObjectStorage and
       SocialProfileClient.
Who:   Called by the /api/users route handlers.

Profile Picture Flow:
    ┌───────────┐    ┌────────────┐    ┌──────────────┐    ┌────────────┐
    │ Data URL  │───▶│ MIME check │───▶│ storage.put  │───▶│ UPDATE     │
    │ (client)  │    │ + base64   │    │ profile-     │    │ users.     │
    └───────────┘    └────────────┘    │ pictures/<id>│    │ picture_url│
                         400           └──────────────┘    └────────────┘
                                            500 on fail     only after put

Profile Query (one round trip):
    SELECT users.*,
           (SELECT count(*) FROM connections WHERE following_id = users.id),
           (SELECT count(*) FROM reviews     WHERE posted_to_id = users.id),
           EXISTS (SELECT 1 FROM connections
                   WHERE follower_id = :viewer AND following_id = users.id)
    FROM users ...
"""

import base64
import binascii
import logging
import re
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import delete, exists, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from peerrate.config import settings
from peerrate.database import insert_ignore
from peerrate.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    PeerRateError,
    StorageError,
    ValidationError,
)
from peerrate.models.connection import Connection, LinkedSocialAccount
from peerrate.models.review import Review
from peerrate.models.user import User
from peerrate.schemas.user import UserProfileResponse, UserResponse, UserUpdate
from peerrate.services.social_service import SUPPORTED_PROVIDERS, SocialProfileClient
from peerrate.services.storage_base import ObjectStorage

logger = logging.getLogger(__name__)

# ── Profile Picture Rules ─────────────────────────────────────────────────
ALLOWED_IMAGE_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png"}

DATA_URL_PATTERN = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<payload>.*)$",
    re.DOTALL,
)

PROFILE_PICTURE_PREFIX = "profile-pictures"


def decode_image_data_url(data_url: str, max_size: int = settings.max_file_size) -> Tuple[str, bytes]:
    """
    Split a base64 image data URL into (mime type, raw bytes).

    Raises:
        ValidationError: not a data URL, MIME type not allowed, payload not
                         valid base64, empty, or larger than max_size bytes
    """
    match = DATA_URL_PATTERN.match(data_url.strip())
    if match is None:
        raise ValidationError(
            message="Profile picture must be a base64 data URL",
            field="file",
        )

    mime = match.group("mime").lower()
    if mime not in ALLOWED_IMAGE_MIME_TYPES:
        raise ValidationError(
            message="Only jpg, jpeg and png images are allowed",
            field="file",
            context={"mime_type": mime, "allowed": sorted(ALLOWED_IMAGE_MIME_TYPES)},
        )

    try:
        data = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError(message="Profile picture payload is not valid base64", field="file")

    if not data:
        raise ValidationError(message="Profile picture is empty", field="file")
    if len(data) > max_size:
        raise ValidationError(
            message=f"Profile picture exceeds the {max_size // (1024 * 1024)}MB limit",
            field="file",
            context={"size": len(data), "max_size": max_size},
        )

    return mime, data


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so a search term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class UserService:
    """
    Business logic layer for user profiles and relationships.

    Error Handling Strategy:
        Application errors propagate unchanged. SQLAlchemy failures become
        DatabaseError. Anything unexpected from the storage backend becomes
        StorageError, and the user row is left untouched.
    """

    def __init__(self, storage: ObjectStorage, social_client: SocialProfileClient):
        self.storage = storage
        self.social_client = social_client

    # ── Profiles ──────────────────────────────────────────────────────────

    async def get_self(self, acting_user: User) -> UserResponse:
        return UserResponse.model_validate(acting_user)

    async def get_user(
        self,
        db: AsyncSession,
        viewer_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> UserProfileResponse:
        """Profile of `user_id` with counts, as seen by `viewer_id`."""
        try:
            result = await db.execute(self._profile_query(viewer_id).where(User.id == user_id))
            row = result.one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching user %s: %s", user_id, str(e))
            raise DatabaseError(context={"user_id": str(user_id)})

        if row is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return self._profile_from_row(row)

    async def update_self(
        self,
        db: AsyncSession,
        acting_user: User,
        payload: UserUpdate,
    ) -> UserResponse:
        """Apply name/headline changes. Fields the client omitted stay as stored."""
        changes = payload.model_dump(exclude_unset=True)
        # name is NOT NULL; an explicit null is treated as "no change"
        if changes.get("name") is None:
            changes.pop("name", None)

        try:
            for field, value in changes.items():
                setattr(acting_user, field, value)
            await db.flush()
            await db.refresh(acting_user)
        except SQLAlchemyError as e:
            logger.error("Database error updating user %s: %s", acting_user.id, str(e))
            raise DatabaseError(context={"user_id": str(acting_user.id)})

        logger.info("User %s updated fields: %s", acting_user.id, sorted(changes))
        return UserResponse.model_validate(acting_user)

    async def update_profile_picture(
        self,
        db: AsyncSession,
        acting_user: User,
        data_url: str,
    ) -> UserResponse:
        """
        Store a new profile picture and point the user at it.

        Raises:
            ValidationError: bad data URL (see decode_image_data_url)
            StorageError:    the upload failed; profile_picture_url unchanged
        """
        mime, data = decode_image_data_url(data_url)
        key = f"{PROFILE_PICTURE_PREFIX}/{acting_user.id}"

        try:
            url = await self.storage.put(key, data, content_type=mime)
        except PeerRateError:
            raise
        except Exception as e:
            logger.error("Unexpected storage failure for %s: %s", key, str(e))
            raise StorageError(context={"key": key, "error_type": type(e).__name__})

        try:
            acting_user.profile_picture_url = url
            await db.flush()
            await db.refresh(acting_user)
        except SQLAlchemyError as e:
            logger.error("Database error saving picture URL for %s: %s", acting_user.id, str(e))
            raise DatabaseError(context={"user_id": str(acting_user.id)})

        logger.info("Profile picture updated for user %s (%d bytes)", acting_user.id, len(data))
        return UserResponse.model_validate(acting_user)

    # ── Search ────────────────────────────────────────────────────────────

    async def search_users(
        self,
        db: AsyncSession,
        viewer_id: uuid.UUID,
        term: Optional[str],
        limit: int = 20,
        offset: int = 0,
    ) -> List[UserProfileResponse]:
        """
        Case-insensitive substring search over name and email, ordered by name.

        Raises:
            ValidationError: term missing or blank
        """
        if term is None or not term.strip():
            raise ValidationError(message="Search term is required", field="query")

        pattern = f"%{escape_like(term.strip())}%"
        try:
            result = await db.execute(
                self._profile_query(viewer_id)
                .where(
                    or_(
                        User.name.ilike(pattern, escape="\\"),
                        User.email.ilike(pattern, escape="\\"),
                    )
                )
                .order_by(User.name.asc(), User.id.asc())
                .limit(limit)
                .offset(offset)
            )
            rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Database error searching users: %s", str(e))
            raise DatabaseError(context={"query": term})

        logger.debug("Search '%s' matched %d users", term, len(rows))
        return [self._profile_from_row(row) for row in rows]

    # ── Connections ───────────────────────────────────────────────────────

    async def follow_user(
        self,
        db: AsyncSession,
        acting_user: User,
        user_id: uuid.UUID,
    ) -> UserProfileResponse:
        """Follow `user_id`. Following twice leaves one connection."""
        await self._check_connection_target(db, acting_user, user_id)
        try:
            await insert_ignore(
                db,
                Connection,
                {"follower_id": acting_user.id, "following_id": user_id},
                conflict_columns=("follower_id", "following_id"),
            )
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error following %s: %s", user_id, str(e))
            raise DatabaseError(context={"user_id": str(user_id)})

        logger.info("User %s follows %s", acting_user.id, user_id)
        return await self.get_user(db, acting_user.id, user_id)

    async def unfollow_user(
        self,
        db: AsyncSession,
        acting_user: User,
        user_id: uuid.UUID,
    ) -> UserProfileResponse:
        await self._check_connection_target(db, acting_user, user_id)
        try:
            result = await db.execute(
                delete(Connection).where(
                    Connection.follower_id == acting_user.id,
                    Connection.following_id == user_id,
                )
            )
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error unfollowing %s: %s", user_id, str(e))
            raise DatabaseError(context={"user_id": str(user_id)})

        if result.rowcount == 0:
            raise NotFoundError(resource="connection", resource_id=str(user_id))

        logger.info("User %s unfollowed %s", acting_user.id, user_id)
        return await self.get_user(db, acting_user.id, user_id)

    # ── Social Accounts ───────────────────────────────────────────────────

    async def link_social_account(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        provider: str,
        access_token: str,
    ) -> UserResponse:
        """
        Attach a google/github/linkedin account to `user_id`.

        Order of checks: user exists (404), provider supported (400), provider
        resolves the token to an email (400/503), email not owned by a
        different user (409).
        """
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))

        provider = provider.strip().lower()
        if provider not in SUPPORTED_PROVIDERS:
            raise ValidationError(
                message=f"Unsupported social provider '{provider}'",
                field="provider",
                context={"supported": sorted(SUPPORTED_PROVIDERS)},
            )

        email = await self.social_client.fetch_email(provider, access_token)

        try:
            owner_id = await db.scalar(select(User.id).where(func.lower(User.email) == email))
            if owner_id is not None and owner_id != user.id:
                raise ConflictError(
                    message="Social account already linked to a different user",
                    context={"provider": provider},
                )

            db.add(
                LinkedSocialAccount(
                    user_id=user.id,
                    platform=provider,
                    email=email,
                    access_token=access_token,
                )
            )
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error linking %s account for %s: %s", provider, user_id, str(e))
            raise DatabaseError(context={"user_id": str(user_id), "provider": provider})

        logger.info("Linked %s account to user %s", provider, user_id)
        return UserResponse.model_validate(user)

    # ── Internals ─────────────────────────────────────────────────────────

    async def _check_connection_target(
        self,
        db: AsyncSession,
        acting_user: User,
        user_id: uuid.UUID,
    ) -> None:
        if await db.get(User, user_id) is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        if acting_user.id == user_id:
            raise ValidationError(message="You cannot follow yourself", field="user_id")

    @staticmethod
    def _profile_query(viewer_id: uuid.UUID):
        connections_count = (
            select(func.count())
            .select_from(Connection)
            .where(Connection.following_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        ratings_count = (
            select(func.count())
            .select_from(Review)
            .where(Review.posted_to_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        is_connection = exists().where(
            Connection.follower_id == viewer_id,
            Connection.following_id == User.id,
        ).correlate(User)

        return select(
            User,
            connections_count.label("connections_count"),
            ratings_count.label("ratings_count"),
            is_connection.label("is_connection"),
        )

    @staticmethod
    def _profile_from_row(row) -> UserProfileResponse:
        user, connections_count, ratings_count, is_connection = row
        base = UserResponse.model_validate(user).model_dump()
        return UserProfileResponse(
            **base,
            connections_count=connections_count or 0,
            ratings_count=ratings_count or 0,
            is_connection=bool(is_connection),
        )
