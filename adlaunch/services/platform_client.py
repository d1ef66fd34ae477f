# adlaunch/services/platform_client.py
"""
Ad platform client contract.

Step executors only talk to a platform through these calls. Clients do not
retry; every failure surfaces as a typed ``PlatformError``.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import requests

from adlaunch.core import config
from adlaunch.core.exceptions import PlatformValidationError, TransientNetworkError
from adlaunch.core.logging_config import log_api_request, log_api_response
from adlaunch.core.token_provider import TokenProvider


class PlatformClient(ABC):
    """Base HTTP client shared by the Meta and Google Ads clients"""

    platform_name = "platform"

    def __init__(self, token_provider: TokenProvider, session: requests.Session = None, timeout: float = None):
        self.token_provider = token_provider
        self.session = session or requests.Session()
        self.timeout = timeout or config.HTTP_TIMEOUT_SECONDS
        self.log = logging.getLogger(f"adlaunch.clients.{self.platform_name}")

    # ────────────────────────────────────────────
    # Contract
    # ────────────────────────────────────────────

    @abstractmethod
    def create_campaign_container(
        self,
        account_id: str,
        name: str,
        status: str = "PAUSED",
        budget_ref: Optional[str] = None,
        bidding_strategy_ref: Optional[str] = None,
        **options,
    ) -> str:
        """Create the top-level campaign; returns its platform id"""

    def create_budget(self, account_id: str, name: str, amount_micros: int) -> str:
        raise NotImplementedError(f"{self.platform_name} has no standalone budgets")

    def create_bidding_strategy(
        self,
        account_id: str,
        name: str,
        target_roas: float,
        cpc_ceiling_micros: int,
        cpc_floor_micros: int,
    ) -> str:
        raise NotImplementedError(f"{self.platform_name} has no portfolio bidding strategies")

    @abstractmethod
    def create_targeting_unit(
        self,
        account_id: str,
        campaign_ref: str,
        name: str,
        daily_budget: Optional[int] = None,
        targeting: Optional[Dict[str, Any]] = None,
        status: str = "PAUSED",
        **options,
    ) -> str:
        """Create an ad set / ad group under the campaign"""

    def create_creative(self, account_id: str, name: str, asset_spec: Dict[str, Any], **options) -> str:
        raise NotImplementedError(f"{self.platform_name} has no standalone creatives")

    @abstractmethod
    def create_ad_linking_unit(
        self,
        account_id: str,
        targeting_unit_ref: str,
        name: str,
        creative_ref: Optional[str] = None,
        asset_spec: Optional[Dict[str, Any]] = None,
        status: str = "PAUSED",
    ) -> str:
        """Create an ad inside a targeting unit"""

    @abstractmethod
    def set_status(self, account_id: str, resource_ref: str, status: str, resource_type: str = "campaign") -> None:
        """Change the delivery status of a campaign, targeting unit or ad"""

    def add_geo_targeting(
        self,
        account_id: str,
        campaign_ref: str,
        country_code: str,
        location_names: List[str],
    ) -> List[str]:
        raise NotImplementedError(f"{self.platform_name} sets geo targeting on targeting units")

    def generate_keyword_ideas(self, account_id: str, url: str, page_size: int = 30) -> List[str]:
        raise NotImplementedError(f"{self.platform_name} has no keyword planner")

    def add_keywords(
        self,
        account_id: str,
        targeting_unit_ref: str,
        keywords: List[str],
        match_types: Sequence[str] = ("EXACT", "BROAD", "PHRASE"),
    ) -> List[str]:
        raise NotImplementedError(f"{self.platform_name} does not target keywords")

    # ────────────────────────────────────────────
    # HTTP plumbing
    # ────────────────────────────────────────────

    @abstractmethod
    def _auth(self, headers: Dict[str, str], params: Dict[str, Any]):
        """Attach credentials to an outgoing request"""

    @abstractmethod
    def _raise_for_error(self, response: requests.Response, payload: Dict[str, Any]):
        """Raise the typed error matching a failed response"""

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        headers: Dict[str, str] = {}
        params = dict(params or {})
        self._auth(headers, params)
        log_api_request(self.log, method, url, data=data or json)

        try:
            response = self.session.request(
                method, url, params=params, data=data, json=json, headers=headers, timeout=self.timeout
            )
        except requests.Timeout as e:
            log_api_response(self.log, 0, None, error=e)
            raise TransientNetworkError(f"{self.platform_name} request timed out: {method} {url}") from e
        except requests.RequestException as e:
            log_api_response(self.log, 0, None, error=e)
            raise TransientNetworkError(f"{self.platform_name} request failed: {e}") from e

        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {}

        if response.status_code >= 400 or (isinstance(payload, dict) and "error" in payload):
            log_api_response(self.log, response.status_code, payload, error=Exception(response.reason))
            self._raise_for_error(response, payload if isinstance(payload, dict) else {})
            # Fallback when the error mapping did not raise
            raise PlatformValidationError(
                f"{self.platform_name} request failed with status {response.status_code}",
                http_status=response.status_code,
            )

        log_api_response(self.log, response.status_code, payload)
        return payload
