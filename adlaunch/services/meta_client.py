# adlaunch/services/meta_client.py
"""
Meta Marketing API (Graph API) client.

Objects are created PAUSED and activated separately through ``set_status``.
"""
import json
from typing import Any, Dict, Optional

import requests

from adlaunch.core import config
from adlaunch.core.exceptions import (
    AuthError,
    DuplicateNameError,
    PlatformValidationError,
    QuotaOrPermissionError,
    TransientNetworkError,
)
from adlaunch.core.token_provider import TokenProvider
from adlaunch.services.platform_client import PlatformClient

GRAPH_BASE_URL = "https://graph.facebook.com"

AUTH_ERROR_CODES = {190}
THROTTLE_ERROR_CODES = {4, 17, 32, 613, 80004}
PERMISSION_ERROR_CODES = {10}
TRANSIENT_ERROR_CODES = {1, 2}


def normalize_account_id(account_id: str) -> str:
    """Ensure the ``act_`` prefix the Graph API expects"""
    account_id = str(account_id)
    return account_id if account_id.startswith("act_") else f"act_{account_id}"


class MetaAdsClient(PlatformClient):
    platform_name = "meta"

    def __init__(
        self,
        token_provider: TokenProvider,
        api_version: str = None,
        session: requests.Session = None,
        timeout: float = None,
    ):
        super().__init__(token_provider, session=session, timeout=timeout)
        self.api_version = api_version or config.META_GRAPH_API_VERSION
        self.base_url = f"{GRAPH_BASE_URL}/{self.api_version}"

    def _auth(self, headers, params):
        params["access_token"] = self.token_provider.get_valid_token()

    def _post(self, endpoint: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"{self.base_url}/{endpoint}", data=data)

    # ────────────────────────────────────────────
    # Campaign objects
    # ────────────────────────────────────────────

    def create_campaign_container(self, account_id, name, status="PAUSED", budget_ref=None,
                                  bidding_strategy_ref=None, **options) -> str:
        data = {
            "name": name,
            "objective": options.get("objective", "OUTCOME_SALES"),
            "status": status,
            "special_ad_categories": json.dumps(options.get("special_ad_categories", [])),
            "is_adset_budget_sharing_enabled": "false",
        }
        result = self._post(f"{normalize_account_id(account_id)}/campaigns", data)
        return result["id"]

    def create_targeting_unit(self, account_id, campaign_ref, name, daily_budget=None, targeting=None,
                              status="PAUSED", **options) -> str:
        """
        Create an ad set optimised for offsite conversions.

        Options: ``pixel_id`` (required for conversions), ``start_time`` and
        ``end_time`` (datetimes).
        """
        targeting = dict(targeting or {})
        targeting.setdefault("targeting_automation", {"advantage_audience": 0})

        data = {
            "campaign_id": campaign_ref,
            "name": name,
            "daily_budget": daily_budget,
            "billing_event": "IMPRESSIONS",
            "optimization_goal": "OFFSITE_CONVERSIONS",
            "bid_strategy": "LOWEST_COST_WITHOUT_CAP",
            "targeting": json.dumps(targeting),
            "status": status,
        }
        if options.get("pixel_id"):
            data["promoted_object"] = json.dumps({
                "pixel_id": options["pixel_id"],
                "custom_event_type": "PURCHASE",
            })
        if options.get("start_time"):
            data["start_time"] = int(options["start_time"].timestamp())
        if options.get("end_time"):
            data["end_time"] = int(options["end_time"].timestamp())

        result = self._post(f"{normalize_account_id(account_id)}/adsets", data)
        return result["id"]

    def create_creative(self, account_id, name, asset_spec, **options) -> str:
        story_spec: Dict[str, Any] = {"page_id": options.get("page_ref")}
        if options.get("instagram_actor_id"):
            story_spec["instagram_actor_id"] = options["instagram_actor_id"]

        data = {
            "name": name,
            "object_story_spec": json.dumps(story_spec),
            "asset_feed_spec": json.dumps(asset_spec),
        }
        result = self._post(f"{normalize_account_id(account_id)}/adcreatives", data)
        return result["id"]

    def create_ad_linking_unit(self, account_id, targeting_unit_ref, name, creative_ref=None,
                               asset_spec=None, status="PAUSED") -> str:
        data = {
            "name": name,
            "adset_id": targeting_unit_ref,
            "creative": json.dumps({"creative_id": creative_ref}),
            "status": status,
        }
        result = self._post(f"{normalize_account_id(account_id)}/ads", data)
        return result["id"]

    def set_status(self, account_id, resource_ref, status, resource_type="campaign") -> None:
        self._post(str(resource_ref), {"status": status})
        self.log.info(f"✅ {resource_type} {resource_ref} set to {status}")

    # ────────────────────────────────────────────
    # Errors
    # ────────────────────────────────────────────

    def _raise_for_error(self, response: requests.Response, payload: Dict[str, Any]):
        error = payload.get("error") or {}
        code: Optional[int] = error.get("code")
        message = error.get("error_user_msg") or error.get("message") or response.reason or "Unknown Graph API error"
        kwargs = {"platform_code": code, "http_status": response.status_code, "details": {
            "error_subcode": error.get("error_subcode"),
            "fbtrace_id": error.get("fbtrace_id"),
        }}

        if code in AUTH_ERROR_CODES:
            raise AuthError(message, **kwargs)
        if code in THROTTLE_ERROR_CODES or code in PERMISSION_ERROR_CODES or (
            isinstance(code, int) and 200 <= code <= 299
        ):
            raise QuotaOrPermissionError(message, **kwargs)
        if "duplicate" in message.lower() or "already exists" in message.lower():
            raise DuplicateNameError(message, **kwargs)
        if code in TRANSIENT_ERROR_CODES or error.get("is_transient") or response.status_code >= 500:
            raise TransientNetworkError(message, **kwargs)
        raise PlatformValidationError(message, **kwargs)
