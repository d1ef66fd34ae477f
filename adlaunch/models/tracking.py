# adlaunch/models/tracking.py
"""
Campaign tracking record - one row per (campaign, platform).

The row is the single source of truth for what has already been created on
the ad platform and which step the campaign has reached.
"""
import enum
from sqlalchemy import Column, String, Text, Integer, BigInteger, Float, Boolean, DateTime, JSON, UniqueConstraint
from adlaunch.models.base import BaseModel


class Platform(str, enum.Enum):
    """Ad platforms a campaign can be provisioned on"""
    FACEBOOK = "FACEBOOK"
    INSTAGRAM = "INSTAGRAM"
    GOOGLE = "GOOGLE"


class ProcessingStatus(str, enum.Enum):
    """Provisioning state machine (shared by all platforms)"""
    PENDING = "PENDING"
    INITIALIZING = "INITIALIZING"
    INITIALIZED = "INITIALIZED"
    CREATING_TARGETING_UNITS = "CREATING_TARGETING_UNITS"
    TARGETING_UNITS_CREATED = "TARGETING_UNITS_CREATED"
    CREATING_CREATIVES = "CREATING_CREATIVES"
    CREATIVES_CREATED = "CREATIVES_CREATED"
    CREATING_ADS = "CREATING_ADS"
    ADS_CREATED = "ADS_CREATED"
    ADDING_GEO_TARGETING = "ADDING_GEO_TARGETING"
    GEO_TARGETING_ADDED = "GEO_TARGETING_ADDED"
    LAUNCHING = "LAUNCHING"
    LAUNCHED = "LAUNCHED"
    FAILED = "FAILED"


class CampaignTrackingRecord(BaseModel):
    __tablename__ = "campaign_tracking_records"

    # Identity
    campaign_id = Column(String(100), index=True, nullable=False)
    platform = Column(String(20), nullable=False)
    user_id = Column(String(100), index=True, nullable=True)

    # Ad account the resources live in (locked at first initialization)
    external_account_id = Column(String(100), nullable=True)
    pixel_id = Column(String(100), nullable=True)
    page_ref = Column(String(100), nullable=True)
    instagram_actor_id = Column(String(100), nullable=True)

    # State machine
    processing_status = Column(String(40), nullable=False, default=ProcessingStatus.PENDING.value, index=True)
    failed_step = Column(String(40), nullable=True)
    error_message = Column(Text, nullable=True)
    error_code = Column(String(100), nullable=True)
    retryable = Column(Boolean, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    step_claimed_at = Column(DateTime, nullable=True)
    last_processed_at = Column(DateTime, nullable=True)

    # Remote identifiers (presence = step output exists)
    external_campaign_id = Column(String(255), nullable=True)
    external_campaign_name = Column(String(255), nullable=True)
    external_campaign_status = Column(String(40), nullable=True)
    external_budget_ref = Column(String(255), nullable=True)
    external_bidding_strategy_ref = Column(String(255), nullable=True)

    # Sub-resources, tracked per item
    targeting_units = Column(JSON, nullable=False, default=list)
    creatives = Column(JSON, nullable=False, default=list)
    ads = Column(JSON, nullable=False, default=list)
    geo_targets = Column(JSON, nullable=False, default=list)
    keyword_batches = Column(JSON, nullable=False, default=list)
    keywords_added = Column(Boolean, nullable=False, default=False)

    # Calculator outputs, persisted once
    allocated_budget = Column(Float, nullable=True)
    daily_budget = Column(BigInteger, nullable=True)  # platform minor units (cents / micros)
    currency = Column(String(10), nullable=False, default="USD")

    # Upstream campaign snapshot taken at first initialization
    original_campaign_data = Column(JSON, nullable=False)

    # Optimistic concurrency token
    version = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("campaign_id", "platform", name="uq_tracking_campaign_platform"),
    )
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<CampaignTrackingRecord {self.campaign_id}/{self.platform} - {self.processing_status}>"
