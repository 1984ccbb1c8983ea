import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
import jwt

from votebot.logger import get_logger
from votebot.settings import (
    GITHUB_API_URL,
    GITHUB_APP_ID,
    GITHUB_ORG,
    GITHUB_PRIVATE_KEY_PATH,
)


logger = get_logger("votebot.github.auth")

APP_TOKEN_VALIDITY_SECONDS = 120
INSTALLATION_TOKEN_VALIDITY_SECONDS = 3600


class AuthFailure(Exception):
    """
    Raised when the app token cannot be minted or exchanged.
    """
    pass


@dataclass(frozen=True)
class TokenRecord:
    value: str
    minted_at: float
    validity: float

    def is_fresh(self, now: float) -> bool:
        return now - self.minted_at < self.validity


class CredentialCache:
    """
    Process-wide holder of the app JWT and the installation token.

    Refresh is single-flight: concurrent callers that all find the
    installation token expired wait on one lock and reuse the token the
    first caller obtained.
    """

    def __init__(
        self,
        app_id: Optional[str] = GITHUB_APP_ID,
        private_key_path: Optional[str] = GITHUB_PRIVATE_KEY_PATH,
        org: str = GITHUB_ORG,
        api_url: str = GITHUB_API_URL,
        clock: Callable[[], float] = time.time,
    ):
        self.app_id = app_id
        self.private_key_path = private_key_path
        self.org = org
        self.api_url = api_url.rstrip("/")
        self._clock = clock
        self._private_key: Optional[str] = None
        self._app_token: Optional[TokenRecord] = None
        self._installation_token: Optional[TokenRecord] = None
        self._lock = asyncio.Lock()

    def _load_private_key(self) -> str:
        if self._private_key is not None:
            return self._private_key

        if not self.private_key_path:
            raise AuthFailure("GITHUB_PRIVATE_KEY_PATH is not set")

        try:
            with open(self.private_key_path, "r") as f:
                self._private_key = f.read()
                return self._private_key
        except OSError as exc:
            raise AuthFailure(
                f"Failed to read GitHub private key at {self.private_key_path}"
            ) from exc

    def mint_app_token(self, now: float) -> str:
        if not self.app_id:
            raise AuthFailure("GITHUB_APP_ID is not set")

        try:
            issued_at = int(now)
            payload = {
                "iat": issued_at,
                "exp": issued_at + APP_TOKEN_VALIDITY_SECONDS,
                # PyJWT only accepts a string issuer
                "iss": str(int(self.app_id)),
            }
            return jwt.encode(payload, self._load_private_key(), algorithm="RS256")
        except (jwt.PyJWTError, ValueError, TypeError) as exc:
            raise AuthFailure("Failed to sign GitHub app token") from exc

    async def exchange(self, app_token: str) -> str:
        headers = {
            "Authorization": f"Bearer {app_token}",
            "Accept": "application/vnd.github+json",
        }

        try:
            async with httpx.AsyncClient() as client:
                installation_resp = await client.get(
                    f"{self.api_url}/orgs/{self.org}/installation",
                    headers=headers,
                )
                installation_resp.raise_for_status()
                installation_id = installation_resp.json()["id"]

                token_resp = await client.post(
                    f"{self.api_url}/app/installations/{installation_id}/access_tokens",
                    headers=headers,
                )
                token_resp.raise_for_status()
                return token_resp.json()["token"]
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            raise AuthFailure(
                f"Failed to exchange app token for installation token of {self.org}"
            ) from exc

    async def get_installation_token(self) -> str:
        """
        Return an installation token, refreshing it when older than an hour.
        """
        token = self._installation_token
        if token is not None and token.is_fresh(self._clock()):
            return token.value

        async with self._lock:
            now = self._clock()
            token = self._installation_token
            if token is not None and token.is_fresh(now):
                return token.value

            logger.info("Refresh installation token because it is expired or missing")

            app_token = self._app_token
            if app_token is None or not app_token.is_fresh(now):
                logger.info("Refresh app token because it is expired or missing")
                app_token = TokenRecord(
                    value=self.mint_app_token(now),
                    minted_at=now,
                    validity=APP_TOKEN_VALIDITY_SECONDS,
                )
                self._app_token = app_token

            value = await self.exchange(app_token.value)
            self._installation_token = TokenRecord(
                value=value,
                minted_at=self._clock(),
                validity=INSTALLATION_TOKEN_VALIDITY_SECONDS,
            )
            logger.info("GitHub installation token obtained")

            return value


_cache: Optional[CredentialCache] = None


def get_credential_cache() -> CredentialCache:
    global _cache

    if _cache is None:
        _cache = CredentialCache()

    return _cache


async def get_installation_token() -> str:
    return await get_credential_cache().get_installation_token()
