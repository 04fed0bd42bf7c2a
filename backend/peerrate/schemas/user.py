"""
PeerRate Backend - User Request/Response Schemas
================================================

What:  Pydantic models for profile reads, profile updates, picture upload,
       search results and social-account linking.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class UserUpdate(BaseModel):
    """
    Body of PUT /api/users/me. Only name and headline are editable;
    omitted fields keep their stored value.
    """
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    headline: Optional[str] = Field(default=None, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        stripped = v.strip()
        if not stripped:
            raise ValueError("name must not be blank")
        return stripped


class ProfilePictureUpload(BaseModel):
    """Body of PUT /api/users/me/profile-picture."""
    file: str = Field(
        min_length=1,
        description="Image as a data URL: data:image/png;base64,<payload>",
    )


class LinkSocialAccountRequest(BaseModel):
    """Body of POST /api/users/link-social."""
    user_id: uuid.UUID
    provider: str = Field(min_length=1, max_length=50)
    access_token: str = Field(min_length=1)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class UserResponse(BaseModel):
    """The stored profile fields of a user."""
    id: uuid.UUID
    email: str
    name: str
    headline: Optional[str] = None
    profile_picture_url: Optional[str] = None
    is_email_verified: bool
    joined_at: datetime

    model_config = {"from_attributes": True}


class UserProfileResponse(UserResponse):
    """
    A profile as seen by another user: stored fields plus relationship counts.

    connections_count: users following this user
    ratings_count:     reviews this user has received
    is_connection:     whether the viewer follows this user
    """
    connections_count: int = 0
    ratings_count: int = 0
    is_connection: bool = False
