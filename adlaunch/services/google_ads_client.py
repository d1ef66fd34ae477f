# adlaunch/services/google_ads_client.py
"""
Google Ads REST client.

Uses ``customers/{id}/<resource>:mutate`` endpoints. Resource names returned
by the API (``customers/1/campaigns/2``) are used as references everywhere.
"""
from typing import Any, Dict, List, Optional

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

GOOGLE_ADS_BASE_URL = "https://googleads.googleapis.com"

STATUS_MAP = {"ACTIVE": "ENABLED", "ENABLED": "ENABLED", "PAUSED": "PAUSED", "REMOVED": "REMOVED"}
RESOURCE_COLLECTIONS = {"campaign": "campaigns", "targeting_unit": "adGroups", "ad": "adGroupAds"}
KEYWORD_MATCH_TYPES = ("EXACT", "BROAD", "PHRASE")


def normalize_customer_id(customer_id: str) -> str:
    return str(customer_id).replace("-", "").strip()


def _error_codes(payload: Dict[str, Any]) -> List[str]:
    """Flatten googleAdsFailure error codes, e.g. DUPLICATE_CAMPAIGN_NAME"""
    codes = []
    for detail in (payload.get("error") or {}).get("details", []) or []:
        for err in detail.get("errors", []) or []:
            codes.extend(str(v) for v in (err.get("errorCode") or {}).values())
    return codes


class GoogleAdsClient(PlatformClient):
    platform_name = "google"

    def __init__(
        self,
        token_provider: TokenProvider,
        developer_token: str = None,
        login_customer_id: Optional[str] = None,
        api_version: str = None,
        session: requests.Session = None,
        timeout: float = None,
    ):
        super().__init__(token_provider, session=session, timeout=timeout)
        self.developer_token = developer_token if developer_token is not None else config.GOOGLE_ADS_DEVELOPER_TOKEN
        self.login_customer_id = login_customer_id or config.GOOGLE_ADS_LOGIN_CUSTOMER_ID
        self.api_version = api_version or config.GOOGLE_ADS_API_VERSION
        self.base_url = f"{GOOGLE_ADS_BASE_URL}/{self.api_version}"

    def _auth(self, headers, params):
        headers["Authorization"] = f"Bearer {self.token_provider.get_valid_token()}"
        headers["developer-token"] = self.developer_token
        if self.login_customer_id:
            headers["login-customer-id"] = normalize_customer_id(self.login_customer_id)

    def _mutate(self, customer_id: str, collection: str, operations: List[Dict[str, Any]]) -> List[str]:
        url = f"{self.base_url}/customers/{normalize_customer_id(customer_id)}/{collection}:mutate"
        result = self._request("POST", url, json={"operations": operations})
        return [r["resourceName"] for r in result.get("results", [])]

    def _create(self, customer_id: str, collection: str, resource: Dict[str, Any]) -> str:
        return self._mutate(customer_id, collection, [{"create": resource}])[0]

    # ────────────────────────────────────────────
    # Campaign objects
    # ────────────────────────────────────────────

    def create_budget(self, account_id, name, amount_micros) -> str:
        return self._create(account_id, "campaignBudgets", {
            "name": name,
            "amountMicros": str(amount_micros),
            "deliveryMethod": "STANDARD",
            "explicitlyShared": False,
        })

    def create_bidding_strategy(self, account_id, name, target_roas, cpc_ceiling_micros, cpc_floor_micros) -> str:
        return self._create(account_id, "biddingStrategies", {
            "name": name,
            "targetRoas": {
                "targetRoas": target_roas,
                "cpcBidCeilingMicros": str(cpc_ceiling_micros),
                "cpcBidFloorMicros": str(cpc_floor_micros),
            },
        })

    def create_campaign_container(self, account_id, name, status="PAUSED", budget_ref=None,
                                  bidding_strategy_ref=None, **options) -> str:
        campaign = {
            "name": name,
            "status": STATUS_MAP.get(status, status),
            "advertisingChannelType": "SEARCH",
            "campaignBudget": budget_ref,
            "biddingStrategy": bidding_strategy_ref,
            "networkSettings": {
                "targetGoogleSearch": True,
                "targetSearchNetwork": True,
                "targetContentNetwork": False,
            },
        }
        if options.get("start_date"):
            campaign["startDate"] = options["start_date"].strftime("%Y-%m-%d")
        if options.get("end_date"):
            campaign["endDate"] = options["end_date"].strftime("%Y-%m-%d")
        return self._create(account_id, "campaigns", campaign)

    def create_targeting_unit(self, account_id, campaign_ref, name, daily_budget=None, targeting=None,
                              status="PAUSED", **options) -> str:
        return self._create(account_id, "adGroups", {
            "name": name,
            "campaign": campaign_ref,
            "status": STATUS_MAP.get(status, status),
            "type": "SEARCH_STANDARD",
        })

    def create_ad_linking_unit(self, account_id, targeting_unit_ref, name, creative_ref=None,
                               asset_spec=None, status="PAUSED") -> str:
        """Create a responsive search ad from a headline/description bundle"""
        spec = asset_spec or {}
        return self._create(account_id, "adGroupAds", {
            "adGroup": targeting_unit_ref,
            "status": STATUS_MAP.get(status, status),
            "ad": {
                "name": name,
                "finalUrls": spec.get("final_urls", []),
                "responsiveSearchAd": {
                    "headlines": [{"text": h} for h in spec.get("headlines", [])],
                    "descriptions": [{"text": d} for d in spec.get("descriptions", [])],
                },
            },
        })

    def set_status(self, account_id, resource_ref, status, resource_type="campaign") -> None:
        collection = RESOURCE_COLLECTIONS.get(resource_type, "campaigns")
        self._mutate(account_id, collection, [{
            "update": {"resourceName": resource_ref, "status": STATUS_MAP.get(status, status)},
            "updateMask": "status",
        }])
        self.log.info(f"✅ {resource_type} {resource_ref} set to {STATUS_MAP.get(status, status)}")

    # ────────────────────────────────────────────
    # Geo targeting
    # ────────────────────────────────────────────

    def suggest_geo_target_constants(self, country_code: str, location_names: List[str]) -> List[str]:
        result = self._request("POST", f"{self.base_url}/geoTargetConstants:suggest", json={
            "locale": "en",
            "countryCode": country_code,
            "locationNames": {"names": location_names},
        })
        constants = []
        for suggestion in result.get("geoTargetConstantSuggestions", []):
            name = (suggestion.get("geoTargetConstant") or {}).get("resourceName")
            if name and name not in constants:
                constants.append(name)
        return constants

    def add_geo_targeting(self, account_id, campaign_ref, country_code, location_names) -> List[str]:
        constants = self.suggest_geo_target_constants(country_code, location_names)
        if not constants:
            self.log.warning(f"⚠️ No geo target constants found for {country_code}: {location_names}")
            return []
        return self._mutate(account_id, "campaignCriteria", [
            {"create": {"campaign": campaign_ref, "location": {"geoTargetConstant": constant}}}
            for constant in constants
        ])

    # ────────────────────────────────────────────
    # Keywords
    # ────────────────────────────────────────────

    def generate_keyword_ideas(self, account_id, url, page_size=30) -> List[str]:
        """Keyword planner ideas seeded from a product landing page"""
        result = self._request(
            "POST",
            f"{self.base_url}/customers/{normalize_customer_id(account_id)}:generateKeywordIdeas",
            json={
                "includeAdultKeywords": False,
                "keywordPlanNetwork": "GOOGLE_SEARCH",
                "pageSize": page_size,
                "urlSeed": {"url": url},
            },
        )
        ideas = []
        for idea in result.get("results", []):
            text = (idea.get("text") or "").strip()
            if text and text not in ideas:
                ideas.append(text)
        return ideas

    def add_keywords(self, account_id, targeting_unit_ref, keywords, match_types=KEYWORD_MATCH_TYPES) -> List[str]:
        if not keywords:
            return []
        return self._mutate(account_id, "adGroupCriteria", [
            {"create": {
                "adGroup": targeting_unit_ref,
                "status": "ENABLED",
                "keyword": {"text": keyword, "matchType": match_type},
            }}
            for keyword in keywords
            for match_type in match_types
        ])

    # ────────────────────────────────────────────
    # Errors
    # ────────────────────────────────────────────

    def _raise_for_error(self, response: requests.Response, payload: Dict[str, Any]):
        error = payload.get("error") or {}
        status = error.get("status")
        message = error.get("message") or response.reason or "Unknown Google Ads error"
        codes = _error_codes(payload)
        kwargs = {"platform_code": codes[0] if codes else status, "http_status": response.status_code,
                  "details": {"errorCodes": codes, "status": status}}

        if response.status_code == 401:
            raise AuthError(message, **kwargs)
        if response.status_code in (403, 429) or status == "RESOURCE_EXHAUSTED":
            raise QuotaOrPermissionError(message, **kwargs)
        if any(code.startswith("DUPLICATE_") for code in codes):
            raise DuplicateNameError(message, **kwargs)
        if response.status_code >= 500:
            raise TransientNetworkError(message, **kwargs)
        raise PlatformValidationError(message, **kwargs)
