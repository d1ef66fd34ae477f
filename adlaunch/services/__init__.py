# adlaunch/services/__init__.py
"""
Service layer initialization.
Holds the shared platform clients and builds the orchestrator for a platform.
"""
from typing import Dict, Optional

from adlaunch.core.exceptions import ValidationError
from adlaunch.core.token_provider import google_token_provider, meta_token_provider
from adlaunch.models.tracking import Platform
from adlaunch.services.google_ads_client import GoogleAdsClient
from adlaunch.services.google_orchestrator import GoogleAdsCampaignOrchestrator
from adlaunch.services.meta_client import MetaAdsClient
from adlaunch.services.meta_orchestrator import MetaCampaignOrchestrator
from adlaunch.services.orchestrator import CampaignOrchestrator
from adlaunch.services.platform_client import PlatformClient
from adlaunch.services.sources import (
    GOOGLE_FAMILY,
    META_FAMILY,
    AdAccountSource,
    CampaignSource,
    HttpCampaignSource,
    SqlAdAccountSource,
    account_family,
)
from adlaunch.services.tracking_store import TrackingRecordStore

# Global platform clients, one per account family
_clients: Dict[str, PlatformClient] = {}


def set_platform_client(family: str, client: Optional[PlatformClient]):
    """Set (or clear with None) the client used for an account family"""
    if client is None:
        _clients.pop(family, None)
    else:
        _clients[family] = client


def get_platform_client(family: str) -> PlatformClient:
    """Get the client for META or GOOGLE, creating it on first use"""
    if family not in _clients:
        if family == GOOGLE_FAMILY:
            _clients[family] = GoogleAdsClient(google_token_provider())
        else:
            _clients[family] = MetaAdsClient(meta_token_provider())
    return _clients[family]


def parse_platform(value: str) -> str:
    try:
        return Platform(str(value).upper()).value
    except ValueError:
        raise ValidationError(
            f"Unsupported platform: {value!r}",
            {"validPlatforms": [p.value.lower() for p in Platform]},
        )


def get_orchestrator(
    platform: str,
    store: TrackingRecordStore = None,
    client: PlatformClient = None,
    campaign_source: CampaignSource = None,
    ad_account_source: AdAccountSource = None,
    **options,
) -> CampaignOrchestrator:
    """Build the orchestrator implementation for one platform"""
    platform = parse_platform(platform)
    family = account_family(platform)
    orchestrator_cls = GoogleAdsCampaignOrchestrator if family == GOOGLE_FAMILY else MetaCampaignOrchestrator

    return orchestrator_cls(
        platform=platform,
        client=client or get_platform_client(family),
        store=store or TrackingRecordStore(),
        campaign_source=campaign_source or HttpCampaignSource(),
        ad_account_source=ad_account_source or SqlAdAccountSource(),
        **options,
    )


__all__ = [
    'CampaignOrchestrator',
    'MetaCampaignOrchestrator',
    'GoogleAdsCampaignOrchestrator',
    'TrackingRecordStore',
    'META_FAMILY',
    'GOOGLE_FAMILY',
    'set_platform_client',
    'get_platform_client',
    'parse_platform',
    'get_orchestrator',
]
