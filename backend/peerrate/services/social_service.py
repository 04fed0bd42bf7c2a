"""
PeerRate Backend - Social Profile Client
========================================

What:  Resolves the email address behind a provider access token so a
       social account can be linked to a PeerRate user.
How:   One authenticated GET against the provider's userinfo endpoint via a
       shared httpx.AsyncClient. GitHub accounts with a private email need a
       second call to /user/emails to find the primary address.
Who:   UserService.link_social_account().

Provider Responses:
    401 / 403            → ValidationError  (token rejected, caller's fault)
    other 4xx / 5xx      → ExternalServiceError
    network / timeout    → ExternalServiceError
    200 without an email → ValidationError
"""

import logging
from typing import Any, Dict, Optional

import httpx

from peerrate.config import settings
from peerrate.exceptions import ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)

PROVIDER_PROFILE_URLS: Dict[str, str] = {
    "google": "https://openidconnect.googleapis.com/v1/userinfo",
    "github": "https://api.github.com/user",
    "linkedin": "https://api.linkedin.com/v2/userinfo",
}

GITHUB_EMAILS_URL = "https://api.github.com/user/emails"

SUPPORTED_PROVIDERS = frozenset(PROVIDER_PROFILE_URLS)


class SocialProfileClient:
    """
    Thin async client over the providers' profile endpoints.

    The underlying httpx.AsyncClient is created lazily unless one is passed
    in (tests pass a client backed by httpx.MockTransport). Call aclose() on
    shutdown.
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = settings.social_http_timeout,
    ):
        self._client = http_client
        self.timeout = timeout

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def fetch_email(self, provider: str, access_token: str) -> str:
        """
        Returns the lower-cased email of the account owning `access_token`.

        Raises:
            ValidationError:      unknown provider, rejected token, or the
                                  account exposes no email
            ExternalServiceError: the provider could not be reached or failed
        """
        if provider not in SUPPORTED_PROVIDERS:
            raise ValidationError(
                message=f"Unsupported social provider '{provider}'",
                field="provider",
                context={"supported": sorted(SUPPORTED_PROVIDERS)},
            )

        profile = await self._get_json(provider, PROVIDER_PROFILE_URLS[provider], access_token)
        email = profile.get("email") if isinstance(profile, dict) else None

        if not email and provider == "github":
            emails = await self._get_json(provider, GITHUB_EMAILS_URL, access_token)
            email = next(
                (e.get("email") for e in emails if isinstance(e, dict) and e.get("primary")),
                None,
            )

        if not email:
            raise ValidationError(
                message="The social account has no email address",
                field="access_token",
                context={"provider": provider},
            )

        logger.info("Resolved %s account email", provider)
        return email.strip().lower()

    async def _get_json(self, provider: str, url: str, access_token: str) -> Any:
        try:
            response = await self.client.get(
                url,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as e:
            logger.error("%s profile request failed: %s", provider, str(e))
            raise ExternalServiceError(
                context={"provider": provider, "error_type": type(e).__name__},
            )

        if response.status_code in (401, 403):
            raise ValidationError(
                message="Invalid social account",
                field="access_token",
                context={"provider": provider, "status_code": response.status_code},
            )
        if response.is_error:
            logger.error("%s profile request returned %d", provider, response.status_code)
            raise ExternalServiceError(
                context={"provider": provider, "status_code": response.status_code},
            )

        try:
            return response.json()
        except ValueError:
            raise ExternalServiceError(
                message="The social account provider returned an unreadable response",
                context={"provider": provider},
            )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
