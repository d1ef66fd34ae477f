"""
Pytest fixtures for adlaunch.

Provides an in-memory database, fake collaborators and a fake platform
client that records every call and can be told to fail.
"""
import os
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

# Settings are read at import time
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["INTERNAL_API_KEY"] = "test-internal-key"
os.environ.pop("SANDBOX_AD_ACCOUNT_ID", None)

import pytest
from sqlalchemy.orm import sessionmaker

from adlaunch.core.exceptions import RecordNotFound
from adlaunch.db.session import init_db, make_engine
from adlaunch.schemas.campaign import CampaignData
from adlaunch.services.google_orchestrator import GoogleAdsCampaignOrchestrator
from adlaunch.services.meta_orchestrator import MetaCampaignOrchestrator
from adlaunch.services.sources import AdAccountConfig, AdAccountSource, CampaignSource
from adlaunch.services.tracking_store import TrackingRecordStore

START = datetime(2026, 11, 1)
END = START + timedelta(days=10)


# =============================================================================
# FAKES
# =============================================================================

class FakeClock:
    def __init__(self, now: datetime = datetime(2026, 10, 1, 12, 0, 0)):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


class FakePlatformClient:
    """Records calls in order; queued failures are raised on the next call of a method"""

    def __init__(self):
        self.calls: List[tuple] = []
        self.failures: Dict[str, List[Optional[Exception]]] = defaultdict(list)
        self.geo_results: Dict[str, List[str]] = {}
        self.keyword_results: Dict[str, List[str]] = {}
        self._counter = 0

    def fail_next(self, method: str, exc: Exception, times: int = 1, after: int = 0):
        """Let ``after`` calls succeed, then raise ``exc`` ``times`` times"""
        self.failures[method].extend([None] * after + [exc] * times)

    def _call(self, method: str, prefix: str, *args, **kwargs) -> str:
        self.calls.append((method, args, kwargs))
        if self.failures[method]:
            exc = self.failures[method].pop(0)
            if exc is not None:
                raise exc
        self._counter += 1
        return f"{prefix}_{self._counter}"

    def called(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method]

    def create_campaign_container(self, account_id, name, status="PAUSED", budget_ref=None,
                                  bidding_strategy_ref=None, **options):
        return self._call("create_campaign_container", "campaign", account_id, name, status=status,
                          budget_ref=budget_ref, bidding_strategy_ref=bidding_strategy_ref, **options)

    def create_budget(self, account_id, name, amount_micros):
        return self._call("create_budget", "budget", account_id, name, amount_micros)

    def create_bidding_strategy(self, account_id, name, target_roas, cpc_ceiling_micros, cpc_floor_micros):
        return self._call("create_bidding_strategy", "strategy", account_id, name, target_roas=target_roas,
                          cpc_ceiling_micros=cpc_ceiling_micros, cpc_floor_micros=cpc_floor_micros)

    def create_targeting_unit(self, account_id, campaign_ref, name, daily_budget=None, targeting=None,
                              status="PAUSED", **options):
        return self._call("create_targeting_unit", "unit", account_id, campaign_ref, name,
                          daily_budget=daily_budget, targeting=targeting, status=status, **options)

    def create_creative(self, account_id, name, asset_spec, **options):
        return self._call("create_creative", "creative", account_id, name, asset_spec, **options)

    def create_ad_linking_unit(self, account_id, targeting_unit_ref, name, creative_ref=None,
                               asset_spec=None, status="PAUSED"):
        return self._call("create_ad_linking_unit", "ad", account_id, targeting_unit_ref, name,
                          creative_ref=creative_ref, asset_spec=asset_spec, status=status)

    def set_status(self, account_id, resource_ref, status, resource_type="campaign"):
        self._call("set_status", "status", account_id, resource_ref, status, resource_type=resource_type)

    def add_geo_targeting(self, account_id, campaign_ref, country_code, location_names):
        self._call("add_geo_targeting", "geo", account_id, campaign_ref, country_code, list(location_names))
        return self.geo_results.get(country_code, [f"geoTargetConstants/{country_code}"])

    def generate_keyword_ideas(self, account_id, url, page_size=30):
        self._call("generate_keyword_ideas", "ideas", account_id, url, page_size=page_size)
        if url in self.keyword_results:
            return list(self.keyword_results[url])
        slug = url.rstrip("/").rsplit("/", 1)[-1]
        return [f"{slug} shoes", f"buy {slug}", f"{slug} sale"]

    def add_keywords(self, account_id, targeting_unit_ref, keywords, match_types=("EXACT", "BROAD", "PHRASE")):
        self._call("add_keywords", "keywords", account_id, targeting_unit_ref, list(keywords))
        return [f"{targeting_unit_ref}~{k}~{m}" for k in keywords for m in match_types]


class FakeCampaignSource(CampaignSource):
    def __init__(self):
        self.campaigns: Dict[str, Dict[str, Any]] = {}
        self.fetches = 0

    def add(self, payload: Dict[str, Any]):
        self.campaigns[payload["campaignId"]] = payload

    def get_campaign(self, campaign_id: str) -> CampaignData:
        self.fetches += 1
        if campaign_id not in self.campaigns:
            raise RecordNotFound(f"Campaign {campaign_id} not found")
        return CampaignData.model_validate(self.campaigns[campaign_id])


class FakeAdAccountSource(AdAccountSource):
    def __init__(self, account: AdAccountConfig):
        self.account = account

    def get_primary_ad_account(self, user_id: str, platform: str) -> AdAccountConfig:
        return self.account


# =============================================================================
# PAYLOADS
# =============================================================================

def creative_entries(count: int = 3) -> List[Dict[str, str]]:
    return [
        {
            "url": f"https://cdn.example.com/shoe-{i}.png",
            "headline": f"Run Faster {i}",
            "primaryText": f"Lightweight trainers, model {i}",
            "description": f"Breathable mesh and cushioned sole, version {i}",
        }
        for i in range(1, count + 1)
    ]


def make_product(product_id: str = "prod-1", title: str = "Trail Runner", entries=None) -> Dict[str, Any]:
    entries = creative_entries() if entries is None else entries
    return {
        "shopifyId": product_id,
        "title": title,
        "price": 89.0,
        "description": "All-terrain running shoe",
        "features": ["Waterproof", "Grippy sole"],
        "imageLink": f"https://cdn.example.com/{product_id}.png",
        "productLink": f"https://shop.example.com/products/{product_id}",
        "creatives": [
            {"channel": "facebook", "data": entries},
            {"channel": "instagram", "data": entries},
            {"channel": "google", "data": entries},
        ],
    }


def make_campaign(campaign_id: str = "cmp-1", platforms=("FACEBOOK",), products=None, locations=None, **extra):
    payload = {
        "campaignId": campaign_id,
        "userId": "user-1",
        "name": "Autumn Launch",
        "type": "Sales",
        "tone": "playful",
        "startDate": START.isoformat(),
        "endDate": END.isoformat(),
        "totalBudget": 300,
        "platforms": list(platforms),
        "location": locations if locations is not None else [{"country": "United States"}],
        "products": products if products is not None else [make_product()],
    }
    payload.update(extra)
    return payload


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://")
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return TrackingRecordStore(session_factory)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client():
    return FakePlatformClient()


@pytest.fixture
def campaigns():
    source = FakeCampaignSource()
    source.add(make_campaign())
    source.add(make_campaign("cmp-google", platforms=["GOOGLE"], locations=[
        {"country": "US", "state": "California"},
        {"country": "DEU"},
        {"country": "Atlantis"},
    ]))
    return source


@pytest.fixture
def meta_account():
    return FakeAdAccountSource(AdAccountConfig(
        external_account_id="act_1001",
        currency="USD",
        pixel_or_conversion_id="pixel-1",
        page_or_publisher_ref="page-1",
        instagram_actor_id="ig-1",
    ))


@pytest.fixture
def google_account():
    return FakeAdAccountSource(AdAccountConfig(
        external_account_id="123-456-7890",
        currency="USD",
        pixel_or_conversion_id="conversion-1",
    ))


@pytest.fixture
def meta(client, store, campaigns, meta_account, clock):
    return MetaCampaignOrchestrator("FACEBOOK", client, store, campaigns, meta_account, clock=clock)


@pytest.fixture
def google(client, store, campaigns, google_account, clock):
    return GoogleAdsCampaignOrchestrator("GOOGLE", client, store, campaigns, google_account, clock=clock)
