"""
PeerRate Backend - User Service Tests
=====================================

What:  UserService against in-memory SQLite, a temp-dir LocalObjectStorage
       and a mocked SocialProfileClient.

What we test:
    ✅ Profile counts and is_connection
    ✅ Partial profile updates
    ✅ Picture upload: MIME and payload validation, storage failure
    ✅ Search: blank term, case-insensitive match, wildcard escaping, paging
    ✅ Follow/unfollow rules
    ✅ Social linking: not found, unsupported provider, conflict, success
"""

import base64
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from peerrate.exceptions import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from peerrate.models.connection import Connection, LinkedSocialAccount
from peerrate.models.review import Review
from peerrate.schemas.user import UserUpdate
from peerrate.services.user_service import decode_image_data_url, escape_like


def data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode()}"


class TestDecodeImageDataUrl:

    def test_png(self, sample_png_bytes):
        mime, data = decode_image_data_url(data_url(sample_png_bytes))
        assert mime == "image/png"
        assert data == sample_png_bytes

    @pytest.mark.parametrize("mime", ["image/jpeg", "image/jpg"])
    def test_jpeg_variants_accepted(self, mime):
        assert decode_image_data_url(data_url(b"\xff\xd8\xff", mime))[0] == mime

    def test_gif_rejected(self):
        with pytest.raises(ValidationError):
            decode_image_data_url(data_url(b"GIF89a", "image/gif"))

    def test_not_a_data_url(self):
        with pytest.raises(ValidationError):
            decode_image_data_url("https://example.test/me.png")

    def test_invalid_base64(self):
        with pytest.raises(ValidationError):
            decode_image_data_url("data:image/png;base64,***")

    def test_empty_payload(self):
        with pytest.raises(ValidationError):
            decode_image_data_url("data:image/png;base64,")

    def test_oversize_payload(self):
        with pytest.raises(ValidationError):
            decode_image_data_url(data_url(b"x" * 11), max_size=10)


def test_escape_like():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"


class TestProfiles:

    @pytest.mark.asyncio
    async def test_get_user_counts_and_connection(self, db_session, user_service, make_user):
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        carol = await make_user("Carol")
        db_session.add_all(
            [
                Connection(follower_id=alice.id, following_id=bob.id),
                Connection(follower_id=carol.id, following_id=bob.id),
                Review(
                    posted_to_id=bob.id,
                    posted_by_id=alice.id,
                    professionalism=5,
                    reliability=5,
                    communication=5,
                ),
            ]
        )
        await db_session.commit()

        as_alice = await user_service.get_user(db_session, alice.id, bob.id)
        as_bob = await user_service.get_user(db_session, bob.id, bob.id)

        assert as_alice.connections_count == 2
        assert as_alice.ratings_count == 1
        assert as_alice.is_connection is True
        assert as_bob.is_connection is False

    @pytest.mark.asyncio
    async def test_get_unknown_user(self, db_session, user_service, make_user):
        alice = await make_user("Alice")

        with pytest.raises(NotFoundError):
            await user_service.get_user(db_session, alice.id, uuid4())

    @pytest.mark.asyncio
    async def test_update_self_changes_only_given_fields(self, db_session, user_service, make_user):
        alice = await make_user("Alice", headline="Engineer")

        result = await user_service.update_self(db_session, alice, UserUpdate(name="  Alice B  "))

        assert result.name == "Alice B"
        assert result.headline == "Engineer"
        assert result.email == alice.email


class TestProfilePicture:

    @pytest.mark.asyncio
    async def test_upload_sets_url(self, db_session, user_service, local_storage, make_user, sample_png_bytes):
        alice = await make_user("Alice")

        result = await user_service.update_profile_picture(db_session, alice, data_url(sample_png_bytes))

        assert result.profile_picture_url == f"http://files.test/api/files/profile-pictures/{alice.id}"
        stored = local_storage.storage_root / "profile-pictures" / str(alice.id)
        assert stored.read_bytes() == sample_png_bytes

    @pytest.mark.asyncio
    async def test_unsupported_type_never_reaches_storage(self, db_session, user_service, make_user):
        alice = await make_user("Alice")
        user_service.storage = AsyncMock()

        with pytest.raises(ValidationError):
            await user_service.update_profile_picture(db_session, alice, data_url(b"x", "image/webp"))

        user_service.storage.put.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_storage_failure_leaves_url_unchanged(self, db_session, user_service, make_user, sample_png_bytes):
        alice = await make_user("Alice", profile_picture_url="https://old.test/pic")
        user_service.storage = AsyncMock()
        user_service.storage.put.side_effect = StorageError(context={"key": "k"})

        with pytest.raises(StorageError):
            await user_service.update_profile_picture(db_session, alice, data_url(sample_png_bytes))

        assert alice.profile_picture_url == "https://old.test/pic"

    @pytest.mark.asyncio
    async def test_unexpected_storage_exception_wrapped(self, db_session, user_service, make_user, sample_png_bytes):
        alice = await make_user("Alice")
        user_service.storage = AsyncMock()
        user_service.storage.put.side_effect = RuntimeError("boom")

        with pytest.raises(StorageError):
            await user_service.update_profile_picture(db_session, alice, data_url(sample_png_bytes))

        assert alice.profile_picture_url is None


class TestSearch:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("term", [None, "", "   "])
    async def test_blank_term_rejected(self, db_session, user_service, make_user, term):
        alice = await make_user("Alice")

        with pytest.raises(ValidationError):
            await user_service.search_users(db_session, alice.id, term)

    @pytest.mark.asyncio
    async def test_matches_name_or_email_case_insensitively(self, db_session, user_service, make_user):
        viewer = await make_user("Viewer")
        await make_user("Dana Scully", email="dana@fbi.test")
        await make_user("Fox Mulder", email="fox@fbi.test")
        await make_user("Walter Skinner", email="walter@doj.test")

        by_name = await user_service.search_users(db_session, viewer.id, "SCULLY")
        by_email = await user_service.search_users(db_session, viewer.id, "fbi")

        assert [u.name for u in by_name] == ["Dana Scully"]
        assert [u.name for u in by_email] == ["Dana Scully", "Fox Mulder"]

    @pytest.mark.asyncio
    async def test_wildcards_match_literally(self, db_session, user_service, make_user):
        viewer = await make_user("Viewer")
        await make_user("Percent 100%", email="p@example.test")
        await make_user("Plain", email="plain@example.test")

        results = await user_service.search_users(db_session, viewer.id, "%")

        assert [u.name for u in results] == ["Percent 100%"]

    @pytest.mark.asyncio
    async def test_limit_and_offset(self, db_session, user_service, make_user):
        viewer = await make_user("Viewer")
        for name in ["Amy Team", "Ben Team", "Cal Team"]:
            await make_user(name)

        page = await user_service.search_users(db_session, viewer.id, "team", limit=2, offset=1)

        assert [u.name for u in page] == ["Ben Team", "Cal Team"]


class TestConnections:

    @pytest.mark.asyncio
    async def test_follow_is_idempotent(self, db_session, user_service, make_user):
        alice = await make_user("Alice")
        bob = await make_user("Bob")

        await user_service.follow_user(db_session, alice, bob.id)
        profile = await user_service.follow_user(db_session, alice, bob.id)

        assert profile.is_connection is True
        assert profile.connections_count == 1

    @pytest.mark.asyncio
    async def test_self_follow_rejected(self, db_session, user_service, make_user):
        alice = await make_user("Alice")

        with pytest.raises(ValidationError):
            await user_service.follow_user(db_session, alice, alice.id)

    @pytest.mark.asyncio
    async def test_follow_unknown_user(self, db_session, user_service, make_user):
        alice = await make_user("Alice")

        with pytest.raises(NotFoundError):
            await user_service.follow_user(db_session, alice, uuid4())

    @pytest.mark.asyncio
    async def test_unfollow(self, db_session, user_service, make_user):
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        await user_service.follow_user(db_session, alice, bob.id)

        profile = await user_service.unfollow_user(db_session, alice, bob.id)

        assert profile.is_connection is False
        assert profile.connections_count == 0

    @pytest.mark.asyncio
    async def test_unfollow_without_connection(self, db_session, user_service, make_user):
        alice = await make_user("Alice")
        bob = await make_user("Bob")

        with pytest.raises(NotFoundError):
            await user_service.unfollow_user(db_session, alice, bob.id)


class TestLinkSocialAccount:

    @pytest.mark.asyncio
    async def test_links_account(self, db_session, user_service, social_client, make_user):
        alice = await make_user("Alice")

        result = await user_service.link_social_account(db_session, alice.id, "GitHub", "tok")

        assert result.id == alice.id
        social_client.fetch_email.assert_awaited_once_with("github", "tok")
        link = await db_session.scalar(select(LinkedSocialAccount))
        assert link.platform == "github"
        assert link.email == "linked@example.test"
        assert link.user_id == alice.id

    @pytest.mark.asyncio
    async def test_email_of_same_user_is_allowed(self, db_session, user_service, social_client, make_user):
        alice = await make_user("Alice", email="alice@example.test")
        social_client.fetch_email.return_value = "alice@example.test"

        await user_service.link_social_account(db_session, alice.id, "google", "tok")

        assert await db_session.scalar(select(func.count()).select_from(LinkedSocialAccount)) == 1

    @pytest.mark.asyncio
    async def test_email_owned_by_other_user_conflicts(self, db_session, user_service, social_client, make_user):
        alice = await make_user("Alice")
        await make_user("Bob", email="bob@example.test")
        social_client.fetch_email.return_value = "bob@example.test"

        with pytest.raises(ConflictError):
            await user_service.link_social_account(db_session, alice.id, "google", "tok")

        assert await db_session.scalar(select(func.count()).select_from(LinkedSocialAccount)) == 0

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session, user_service, social_client):
        with pytest.raises(NotFoundError):
            await user_service.link_social_account(db_session, uuid4(), "google", "tok")

        social_client.fetch_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unsupported_provider(self, db_session, user_service, social_client, make_user):
        alice = await make_user("Alice")

        with pytest.raises(ValidationError):
            await user_service.link_social_account(db_session, alice.id, "myspace", "tok")

        social_client.fetch_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_outage_propagates(self, db_session, user_service, social_client, make_user):
        alice = await make_user("Alice")
        social_client.fetch_email.side_effect = ExternalServiceError()

        with pytest.raises(ExternalServiceError):
            await user_service.link_social_account(db_session, alice.id, "google", "tok")
