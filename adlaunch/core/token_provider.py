# adlaunch/core/token_provider.py
"""
Access token providers for ad platform clients.

Clients never look at expiry times themselves; they call
``get_valid_token()`` before every request and the provider decides
whether a refresh is needed.
"""
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Optional

import requests

from adlaunch.core import config
from adlaunch.core.clock import utcnow
from adlaunch.core.exceptions import AuthError, TransientNetworkError

log = logging.getLogger("adlaunch.tokens")

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"


class TokenProvider(ABC):
    """Supplies a bearer token that is valid at the time of the call"""

    @abstractmethod
    def get_valid_token(self) -> str:
        ...


class StaticTokenProvider(TokenProvider):
    """Long-lived token, e.g. a Meta system user token"""

    def __init__(self, token: str):
        self._token = token

    def get_valid_token(self) -> str:
        if not self._token:
            raise AuthError("No access token configured")
        return self._token


class OAuthRefreshTokenProvider(TokenProvider):
    """
    OAuth2 refresh-token grant with refresh-before-expiry.

    The cached access token is replaced once it is within ``refresh_skew``
    of its expiry time.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        token_url: str = GOOGLE_TOKEN_URL,
        refresh_skew: timedelta = timedelta(seconds=60),
        timeout: float = None,
        clock: Callable[[], datetime] = utcnow,
        session: Optional[requests.Session] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.token_url = token_url
        self.refresh_skew = refresh_skew
        self.timeout = timeout or config.HTTP_TIMEOUT_SECONDS
        self._clock = clock
        self._session = session or requests.Session()
        self._access_token: Optional[str] = None
        self._expires_at: Optional[datetime] = None
        self._lock = threading.Lock()

    def _needs_refresh(self) -> bool:
        if not self._access_token or not self._expires_at:
            return True
        return self._clock() >= self._expires_at - self.refresh_skew

    def get_valid_token(self) -> str:
        with self._lock:
            if self._needs_refresh():
                self._refresh()
            return self._access_token

    def _refresh(self):
        if not self.refresh_token:
            raise AuthError("No refresh token configured")

        log.debug(f"Refreshing access token via {self.token_url}")
        try:
            response = self._session.post(
                self.token_url,
                data={
                    "grant_type": "refresh_token",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": self.refresh_token,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransientNetworkError(f"Token refresh failed: {e}") from e

        if response.status_code >= 500:
            raise TransientNetworkError(f"Token endpoint returned {response.status_code}")
        payload = response.json() if response.content else {}
        if response.status_code >= 400 or "access_token" not in payload:
            raise AuthError(
                f"Token refresh rejected: {payload.get('error_description') or payload.get('error') or response.status_code}",
                platform_code=payload.get("error"),
                http_status=response.status_code,
            )

        self._access_token = payload["access_token"]
        self._expires_at = self._clock() + timedelta(seconds=int(payload.get("expires_in", 3600)))
        log.info(f"✅ Access token refreshed, expires at {self._expires_at.isoformat()}")


def meta_token_provider() -> TokenProvider:
    return StaticTokenProvider(config.META_SYSTEM_USER_TOKEN)


def google_token_provider() -> TokenProvider:
    return OAuthRefreshTokenProvider(
        client_id=config.GOOGLE_ADS_CLIENT_ID,
        client_secret=config.GOOGLE_ADS_CLIENT_SECRET,
        refresh_token=config.GOOGLE_ADS_REFRESH_TOKEN,
    )
