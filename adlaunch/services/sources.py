# adlaunch/services/sources.py
"""
Collaborators the orchestrator reads from: the upstream campaign manager
and the user's connected ad accounts.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

import requests
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from adlaunch.core import config
from adlaunch.core.exceptions import (
    AdAccountNotReady,
    AuthError,
    RecordNotFound,
    TransientNetworkError,
    ValidationError,
)
from adlaunch.core.logging_config import log_api_request, log_api_response
from adlaunch.db.session import SessionLocal, get_db_session
from adlaunch.models.ad_account import READY_FOR_CAMPAIGNS, AdAccount
from adlaunch.schemas.campaign import CampaignData

log = logging.getLogger("adlaunch.sources")

META_FAMILY = "META"
GOOGLE_FAMILY = "GOOGLE"


def account_family(platform: str) -> str:
    """FACEBOOK and INSTAGRAM share one Meta ad account"""
    return GOOGLE_FAMILY if platform.upper() == "GOOGLE" else META_FAMILY


@dataclass(frozen=True)
class AdAccountConfig:
    external_account_id: str
    currency: Optional[str] = None
    pixel_or_conversion_id: Optional[str] = None
    page_or_publisher_ref: Optional[str] = None
    instagram_actor_id: Optional[str] = None


# ────────────────────────────────────────────
# Campaigns
# ────────────────────────────────────────────

class CampaignSource(ABC):
    @abstractmethod
    def get_campaign(self, campaign_id: str) -> CampaignData:
        ...


class HttpCampaignSource(CampaignSource):
    """Reads campaigns from the campaign manager's internal API"""

    def __init__(self, base_url: str = None, api_key: str = None, session: requests.Session = None, timeout: float = None):
        self.base_url = (base_url or config.MANAGER_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else config.INTERNAL_API_KEY
        self.session = session or requests.Session()
        self.timeout = timeout or config.HTTP_TIMEOUT_SECONDS

    def get_campaign(self, campaign_id: str) -> CampaignData:
        url = f"{self.base_url}/internal/campaign/{campaign_id}"
        headers = {"x-api-key": self.api_key}
        log_api_request(log, "GET", url, headers=headers)

        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            log_api_response(log, 0, None, error=e)
            raise TransientNetworkError(f"Campaign manager unreachable: {e}") from e

        if response.status_code == 404:
            raise RecordNotFound(f"Campaign {campaign_id} not found", {"campaignId": campaign_id})
        if response.status_code >= 400:
            log_api_response(log, response.status_code, response.text[:500], error=Exception(response.reason))
            message = f"Campaign manager returned {response.status_code} for campaign {campaign_id}"
            if response.status_code in (401, 403):
                raise AuthError(message, http_status=response.status_code)
            if response.status_code < 500 and response.status_code != 429:
                raise ValidationError(message, {"campaignId": campaign_id, "status": response.status_code})
            raise TransientNetworkError(message, http_status=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise TransientNetworkError(f"Campaign manager sent a non-JSON body for campaign {campaign_id}") from e
        log_api_response(log, response.status_code, "campaign payload received")
        data = payload.get("data", payload) if isinstance(payload, dict) else payload
        if not data:
            raise RecordNotFound(f"Campaign {campaign_id} not found", {"campaignId": campaign_id})

        try:
            return CampaignData.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Campaign {campaign_id} payload is invalid: {e}") from e


# ────────────────────────────────────────────
# Ad accounts
# ────────────────────────────────────────────

class AdAccountSource(ABC):
    @abstractmethod
    def get_primary_ad_account(self, user_id: str, platform: str) -> AdAccountConfig:
        ...


class SqlAdAccountSource(AdAccountSource):
    """Reads the user's primary ad account from the ``ad_accounts`` table"""

    def __init__(self, session_factory: Callable[[], Session] = None):
        self.session_factory = session_factory or SessionLocal

    def get_primary_ad_account(self, user_id: str, platform: str) -> AdAccountConfig:
        family = account_family(platform)
        with get_db_session(self.session_factory) as db:
            account = db.query(AdAccount).filter(
                AdAccount.user_id == user_id,
                AdAccount.platform == family,
                AdAccount.is_primary.is_(True),
            ).first()

            if account is None:
                raise RecordNotFound(
                    f"No primary {family} ad account for user {user_id}",
                    {"userId": user_id, "platform": family},
                )
            if account.integration_status != READY_FOR_CAMPAIGNS:
                raise AdAccountNotReady(
                    f"Ad account {account.external_account_id} is {account.integration_status}, "
                    f"expected {READY_FOR_CAMPAIGNS}",
                    {"userId": user_id, "platform": family},
                )

            return AdAccountConfig(
                external_account_id=account.external_account_id,
                currency=account.currency,
                pixel_or_conversion_id=account.pixel_or_conversion_id,
                page_or_publisher_ref=account.page_or_publisher_ref,
                instagram_actor_id=account.instagram_actor_id,
            )
