"""
PeerRate Backend - Review Authorship and Response Shaping
=========================================================

What:  The tagged author representation and the pure function that turns a
       stored review into the ReviewRecord a given viewer receives.
Who:   ReviewService; unit-tested directly in tests/test_review_mapper.py.

A stored review's posted_by_id column is NULL exactly when the review is
anonymous. Code outside this module works with `Author` values instead of
testing that column for None.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Collection, Optional, Union

from peerrate.schemas.review import AuthorSummary, ReviewRecord


@dataclass(frozen=True)
class IdentifiedAuthor:
    user_id: uuid.UUID


@dataclass(frozen=True)
class AnonymousAuthor:
    pass


Author = Union[IdentifiedAuthor, AnonymousAuthor]

ANONYMOUS = AnonymousAuthor()


def author_for_submission(acting_user_id: uuid.UUID, anonymous: bool) -> Author:
    """The author a new review is recorded with. Anonymous drops the caller's id."""
    if anonymous:
        return ANONYMOUS
    return IdentifiedAuthor(user_id=acting_user_id)


def author_column(author: Author) -> Optional[uuid.UUID]:
    """Value stored in reviews.posted_by_id for the given author."""
    if isinstance(author, IdentifiedAuthor):
        return author.user_id
    return None


def author_of(review: Any) -> Author:
    """Reads the author back from a stored review row."""
    if review.anonymous or review.posted_by_id is None:
        return ANONYMOUS
    return IdentifiedAuthor(user_id=review.posted_by_id)


def build_review_record(
    review: Any,
    viewer_id: uuid.UUID,
    favorite_user_ids: Collection[uuid.UUID],
) -> ReviewRecord:
    """
    Shape a stored review for one viewer.

    Input:
        review:            Review row (or any object with the same attributes);
                           `author` must be loaded when the review is not
                           anonymous
        viewer_id:         id of the acting user
        favorite_user_ids: ids of users who favorited this review (callers
                           may pass only the viewer's id, or nothing)

    Output rules:
        - posted_by is None for anonymous reviews, whatever posted_by_id holds
        - is_own_review compares the stored posted_by_id with viewer_id
        - is_favorite is viewer_id ∈ favorite_user_ids
    """
    author = author_of(review)

    posted_by = None
    if isinstance(author, IdentifiedAuthor) and review.author is not None:
        posted_by = AuthorSummary.model_validate(review.author)

    return ReviewRecord(
        id=review.id,
        posted_to_id=review.posted_to_id,
        posted_by=posted_by,
        is_anonymous=isinstance(author, AnonymousAuthor),
        professionalism=review.professionalism,
        reliability=review.reliability,
        communication=review.communication,
        comment=review.comment,
        created_at=review.created_at,
        state=review.state,
        is_own_review=review.posted_by_id is not None and review.posted_by_id == viewer_id,
        is_favorite=viewer_id in favorite_user_ids,
    )
