# adlaunch/schemas/tracking.py
"""
Tracking record snapshots, sub-resource items and API payloads.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from adlaunch.schemas.campaign import CampaignData


class TargetingUnit(BaseModel):
    """Ad set (Meta) or ad group (Google)"""
    unit_id: str
    name: str
    daily_budget: Optional[int] = None
    currency: Optional[str] = None
    status: str = "PAUSED"
    product_ids: List[str] = Field(default_factory=list)
    targeting: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class CreativeAsset(BaseModel):
    """A creative created on the platform, or a Google ad text bundle"""
    creative_id: str
    name: str
    product_id: Optional[str] = None
    asset_spec: Dict[str, Any] = Field(default_factory=dict)
    status: str = "CREATED"
    created_at: Optional[datetime] = None


class AdUnit(BaseModel):
    """Ad linking one targeting unit to one creative"""
    ad_id: str
    targeting_unit_id: str
    creative_id: str
    name: str
    product_id: Optional[str] = None
    status: str = "PAUSED"
    created_at: Optional[datetime] = None


class GeoTarget(BaseModel):
    country_code: str
    location_names: List[str] = Field(default_factory=list)
    criteria: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class KeywordBatch(BaseModel):
    """Keyword ideas generated for one product and the criteria created for them"""
    product_id: str
    targeting_unit_id: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    criteria: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class TrackingRecord(BaseModel):
    """Read-only snapshot of a campaign tracking row"""
    model_config = ConfigDict(from_attributes=True)

    campaign_id: str
    platform: str
    user_id: Optional[str] = None
    external_account_id: Optional[str] = None
    pixel_id: Optional[str] = None
    page_ref: Optional[str] = None
    instagram_actor_id: Optional[str] = None

    processing_status: str
    failed_step: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    retryable: Optional[bool] = None
    retry_count: int = 0
    step_claimed_at: Optional[datetime] = None
    last_processed_at: Optional[datetime] = None

    external_campaign_id: Optional[str] = None
    external_campaign_name: Optional[str] = None
    external_campaign_status: Optional[str] = None
    external_budget_ref: Optional[str] = None
    external_bidding_strategy_ref: Optional[str] = None

    targeting_units: List[TargetingUnit] = Field(default_factory=list)
    creatives: List[CreativeAsset] = Field(default_factory=list)
    ads: List[AdUnit] = Field(default_factory=list)
    geo_targets: List[GeoTarget] = Field(default_factory=list)
    keyword_batches: List[KeywordBatch] = Field(default_factory=list)
    keywords_added: bool = False

    allocated_budget: Optional[float] = None
    daily_budget: Optional[int] = None
    currency: str = "USD"

    original_campaign_data: Dict[str, Any]
    version: int

    @property
    def campaign(self) -> CampaignData:
        return CampaignData.model_validate(self.original_campaign_data)


# ────────────────────────────────────────────
# API payloads
# ────────────────────────────────────────────

class RetryStepRequest(BaseModel):
    step: str = Field(..., description="The step that failed, e.g. CREATING_TARGETING_UNITS")


class StepResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    message: str
    current_step: str
    next_step: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class StatusResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    campaign_id: str
    platform: str
    processing_status: str
    external_campaign_status: Optional[str] = None
    failed_step: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int = 0
    targeting_units_created: int = 0
    creatives_created: int = 0
    ads_created: int = 0
    next_step: Optional[str] = None
    is_ready_for_next_step: bool = False
