# adlaunch/services/meta_orchestrator.py
"""
Facebook / Instagram campaign provisioning through the Meta Marketing API.

Both platforms share this executor; the tracking record's platform decides
which creative channel is used and whether an Instagram actor is attached.
"""
from typing import Any, Dict

from adlaunch.core import config
from adlaunch.core.exceptions import (
    InsufficientAdContent,
    MissingPageConfiguration,
    MissingPixelConfiguration,
    PreconditionFailed,
)
from adlaunch.models.tracking import Platform, ProcessingStatus as S
from adlaunch.schemas.tracking import AdUnit, CreativeAsset, TargetingUnit, TrackingRecord
from adlaunch.services.calculator import BudgetPlan, build_targeting
from adlaunch.services.creative_assets import build_meta_asset_spec
from adlaunch.services.orchestrator import CampaignOrchestrator, Step, StepResult
from adlaunch.services.sources import AdAccountConfig
from adlaunch.services.tracking_store import ItemUpdate, RecordPatch

ACTIVE = "ACTIVE"
PAUSED = "PAUSED"

META_STEPS = (
    Step("initialize", "INITIALIZE", S.INITIALIZING, S.INITIALIZED, S.PENDING),
    Step("create_targeting_units", "CREATE_TARGETING_UNITS", S.CREATING_TARGETING_UNITS, S.TARGETING_UNITS_CREATED, S.INITIALIZED),
    Step("create_creatives", "CREATE_CREATIVES", S.CREATING_CREATIVES, S.CREATIVES_CREATED, S.TARGETING_UNITS_CREATED),
    Step("create_ads", "CREATE_ADS", S.CREATING_ADS, S.ADS_CREATED, S.CREATIVES_CREATED),
    Step("launch", "LAUNCH", S.LAUNCHING, S.LAUNCHED, S.ADS_CREATED),
)


class MetaCampaignOrchestrator(CampaignOrchestrator):
    steps = META_STEPS

    def create_creatives(self, campaign_id: str) -> StepResult:
        return self._execute(self.step("create_creatives"), campaign_id)

    def create_ads(self, campaign_id: str) -> StepResult:
        return self._execute(self.step("create_ads"), campaign_id)

    def _platform_daily_budget(self, budget: BudgetPlan) -> int:
        return budget.daily_budget_minor

    def _account_id(self, account: AdAccountConfig) -> str:
        if config.use_sandbox_account():
            self.log.info(f"🧪 Using sandbox ad account {config.SANDBOX_AD_ACCOUNT_ID}")
            return config.SANDBOX_AD_ACCOUNT_ID
        return account.external_account_id

    @property
    def channel(self) -> str:
        return self.platform.lower()

    # ────────────────────────────────────────────
    # Initialize
    # ────────────────────────────────────────────

    def _has_initialize(self, record: TrackingRecord) -> bool:
        return bool(record.external_campaign_id)

    def _run_initialize(self, record: TrackingRecord, force: bool = False) -> TrackingRecord:
        campaign = record.campaign
        # Deterministic so a re-run after a lost response hits a duplicate-name error
        name = f"Campaign - {campaign.type} - {campaign.campaign_id}"
        campaign_ref = self.client.create_campaign_container(record.external_account_id, name, status=PAUSED)
        self.log.info(f"📦 [{record.campaign_id}] Campaign container created: {campaign_ref}")
        return self._save(record, RecordPatch(set={
            "external_campaign_id": campaign_ref,
            "external_campaign_name": name,
            "external_campaign_status": PAUSED,
        }))

    def _result_initialize(self, record: TrackingRecord) -> Dict[str, Any]:
        return {"externalCampaignId": record.external_campaign_id, "campaignName": record.external_campaign_name}

    # ────────────────────────────────────────────
    # Ad sets
    # ────────────────────────────────────────────

    def _has_create_targeting_units(self, record: TrackingRecord) -> bool:
        return len(record.targeting_units) >= 1

    def _run_create_targeting_units(self, record: TrackingRecord, force: bool = False) -> TrackingRecord:
        account = self._current_account(record)
        pixel_id = account.pixel_or_conversion_id
        if not pixel_id:
            raise MissingPixelConfiguration(
                f"Ad account {account.external_account_id} has no pixel configured",
                {"adAccountId": account.external_account_id},
            )

        campaign = record.campaign
        budget = self._budget_for(record)
        targeting = build_targeting(campaign.location)
        name = f"Ad Set - {campaign.name or campaign.campaign_id}"

        unit_id = self.client.create_targeting_unit(
            record.external_account_id,
            record.external_campaign_id,
            name,
            daily_budget=budget.daily_budget_minor,
            targeting=targeting.as_meta_targeting(),
            status=PAUSED,
            pixel_id=pixel_id,
            start_time=campaign.start_date,
            end_time=campaign.end_date,
        )
        self.log.info(
            f"🎯 [{record.campaign_id}] Ad set {unit_id} created: "
            f"{budget.daily_budget_minor} {record.currency} minor units/day, countries {targeting.countries}"
        )
        unit = TargetingUnit(
            unit_id=unit_id,
            name=name,
            daily_budget=budget.daily_budget_minor,
            currency=record.currency,
            status=PAUSED,
            product_ids=[p.shopify_id for p in campaign.products],
            targeting=targeting.as_meta_targeting(),
            created_at=self.clock(),
        )
        return self._save(record, RecordPatch(
            set={"pixel_id": pixel_id, "daily_budget": budget.daily_budget_minor},
            push={"targeting_units": [unit]},
        ))

    def _result_create_targeting_units(self, record: TrackingRecord) -> Dict[str, Any]:
        return {"count": len(record.targeting_units), "unitIds": [u.unit_id for u in record.targeting_units]}

    # ────────────────────────────────────────────
    # Creatives
    # ────────────────────────────────────────────

    def _has_create_creatives(self, record: TrackingRecord) -> bool:
        products = record.campaign.products
        covered = {c.product_id for c in record.creatives}
        return bool(products) and all(p.shopify_id in covered for p in products)

    def _run_create_creatives(self, record: TrackingRecord, force: bool = False) -> TrackingRecord:
        campaign = record.campaign
        if not campaign.products:
            raise InsufficientAdContent(f"Campaign {campaign.campaign_id} has no products")

        account = self._current_account(record)
        page_ref = account.page_or_publisher_ref or record.page_ref
        if not page_ref:
            raise MissingPageConfiguration(
                f"Ad account {account.external_account_id} has no Facebook page configured",
                {"adAccountId": account.external_account_id},
            )
        instagram_actor_id = None
        if self.platform == Platform.INSTAGRAM.value:
            instagram_actor_id = account.instagram_actor_id or record.instagram_actor_id

        covered = {c.product_id for c in record.creatives}
        for product in campaign.products:
            if product.shopify_id in covered:
                self.log.debug(f"[{record.campaign_id}] Creative for product {product.shopify_id} exists, skipping")
                continue

            asset_spec = build_meta_asset_spec(product, self.channel, campaign.tone)
            name = f"Creative - {product.title} - {campaign.campaign_id}"
            creative_id = self.client.create_creative(
                record.external_account_id,
                name,
                asset_spec,
                page_ref=page_ref,
                instagram_actor_id=instagram_actor_id,
            )
            self.log.info(f"🎨 [{record.campaign_id}] Creative {creative_id} created for product {product.shopify_id}")
            record = self._save(record, RecordPatch(push={"creatives": [CreativeAsset(
                creative_id=creative_id,
                name=name,
                product_id=product.shopify_id,
                asset_spec=asset_spec,
                created_at=self.clock(),
            )]}))
        return record

    def _result_create_creatives(self, record: TrackingRecord) -> Dict[str, Any]:
        return {"count": len(record.creatives), "creativeIds": [c.creative_id for c in record.creatives]}

    # ────────────────────────────────────────────
    # Ads
    # ────────────────────────────────────────────

    def _has_create_ads(self, record: TrackingRecord) -> bool:
        linked = {a.creative_id for a in record.ads}
        return bool(record.creatives) and all(c.creative_id in linked for c in record.creatives)

    def _run_create_ads(self, record: TrackingRecord, force: bool = False) -> TrackingRecord:
        if not record.targeting_units or not record.creatives:
            raise PreconditionFailed(
                "Ads need at least one ad set and one creative",
                {"targetingUnits": len(record.targeting_units), "creatives": len(record.creatives)},
            )

        unit = record.targeting_units[0]
        linked = {a.creative_id for a in record.ads}
        for creative in record.creatives:
            if creative.creative_id in linked:
                continue
            name = f"Ad - {creative.name}"
            ad_id = self.client.create_ad_linking_unit(
                record.external_account_id, unit.unit_id, name, creative_ref=creative.creative_id, status=PAUSED
            )
            self.log.info(f"📣 [{record.campaign_id}] Ad {ad_id} created for creative {creative.creative_id}")
            record = self._save(record, RecordPatch(push={"ads": [AdUnit(
                ad_id=ad_id,
                targeting_unit_id=unit.unit_id,
                creative_id=creative.creative_id,
                name=name,
                product_id=creative.product_id,
                created_at=self.clock(),
            )]}))
        return record

    def _result_create_ads(self, record: TrackingRecord) -> Dict[str, Any]:
        return {"count": len(record.ads), "adIds": [a.ad_id for a in record.ads]}

    # ────────────────────────────────────────────
    # Launch
    # ────────────────────────────────────────────

    def _has_launch(self, record: TrackingRecord) -> bool:
        return record.processing_status == S.LAUNCHED.value

    def _run_launch(self, record: TrackingRecord, force: bool = False) -> TrackingRecord:
        """Activate bottom-up: ads, then ad sets, then the campaign"""
        account_id = record.external_account_id

        for ad in record.ads:
            if ad.status == ACTIVE and not force:
                continue
            self.client.set_status(account_id, ad.ad_id, ACTIVE, resource_type="ad")
            record = self._save(record, RecordPatch(update_items={"ads": [ItemUpdate("ad_id", ad.ad_id, {"status": ACTIVE})]}))

        for unit in record.targeting_units:
            if unit.status == ACTIVE and not force:
                continue
            self.client.set_status(account_id, unit.unit_id, ACTIVE, resource_type="targeting_unit")
            record = self._save(record, RecordPatch(update_items={
                "targeting_units": [ItemUpdate("unit_id", unit.unit_id, {"status": ACTIVE})]
            }))

        if record.external_campaign_status != ACTIVE or force:
            self.client.set_status(account_id, record.external_campaign_id, ACTIVE, resource_type="campaign")
            record = self._save(record, RecordPatch(set={"external_campaign_status": ACTIVE}))

        self.log.info(f"🚀 [{record.campaign_id}] Campaign {record.external_campaign_id} is live on {self.platform}")
        return record

    def _result_launch(self, record: TrackingRecord) -> Dict[str, Any]:
        return {"status": record.processing_status, "externalCampaignStatus": record.external_campaign_status}
