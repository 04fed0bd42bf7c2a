"""
PeerRate Backend - Review Request/Response Schemas
==================================================

What:  Pydantic models for the review API contract.
How:   FastAPI validates ReviewCreate bodies (422 on schema errors) and
       serializes ReviewRecord / AverageRating responses.

ReviewRecord is always shaped *for a viewer*: author identity is dropped
for anonymous reviews, and the two boolean flags are relative to the
acting user. See peerrate.services.review_mapper.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class ReviewCreate(BaseModel):
    """
    Body of POST /api/reviews/user/{user_id}.

    anonymous may be omitted or null; ReviewService treats both as False.
    """
    professionalism: int = Field(ge=1, le=5, description="Score 1-5")
    reliability: int = Field(ge=1, le=5, description="Score 1-5")
    communication: int = Field(ge=1, le=5, description="Score 1-5")
    comment: str = Field(default="", max_length=5000, description="Free-text comment")
    anonymous: Optional[bool] = Field(
        default=None,
        description="Hide the author's identity from every viewer",
    )


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class AuthorSummary(BaseModel):
    """Public identity of a non-anonymous review author."""
    id: uuid.UUID
    name: str
    is_email_verified: bool
    profile_picture_url: Optional[str] = None

    model_config = {"from_attributes": True}


class ReviewRecord(BaseModel):
    """A review as seen by one particular viewer."""
    id: uuid.UUID = Field(description="Review identifier")
    posted_to_id: uuid.UUID = Field(description="Recipient user id")
    posted_by: Optional[AuthorSummary] = Field(
        default=None,
        description="Author details; null for anonymous reviews",
    )
    is_anonymous: bool
    professionalism: int
    reliability: int
    communication: int
    comment: str
    created_at: datetime
    state: str = Field(description="Lifecycle state: published, hidden")
    is_own_review: bool = Field(description="True when the viewer wrote this review")
    is_favorite: bool = Field(description="True when the viewer favorited this review")


class AverageRating(BaseModel):
    """
    Mean scores received by a user. Zero per dimension when the user has
    no reviews; never null.
    """
    professionalism: float = 0.0
    reliability: float = 0.0
    communication: float = 0.0
    overall: float = Field(default=0.0, description="Mean of the three dimension averages")
