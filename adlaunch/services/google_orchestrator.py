# adlaunch/services/google_orchestrator.py
"""
Google Ads search campaign provisioning.

Step 1 creates budget, bidding strategy and campaign; step 2 one ad group
plus a responsive search ad per text bundle, then keyword planner ideas per
product landing page; step 3 geo targeting per country; step 4 enables the
ads, the ad group and finally the campaign.
"""
import math
from typing import Any, Dict, List

from adlaunch.core import config
from adlaunch.core.exceptions import InsufficientAdContent, NoValidLocations
from adlaunch.models.tracking import ProcessingStatus as S
from adlaunch.schemas.tracking import (
    AdUnit,
    CreativeAsset,
    GeoTarget,
    KeywordBatch,
    TargetingUnit,
    TrackingRecord,
)
from adlaunch.services.calculator import (
    MICROS_PER_UNIT,
    BudgetPlan,
    country_name,
    group_locations_by_country,
)
from adlaunch.services.creative_assets import build_google_bundles
from adlaunch.services.orchestrator import CampaignOrchestrator, Step, StepResult
from adlaunch.services.tracking_store import ItemUpdate, RecordPatch

ENABLED = "ENABLED"
PAUSED = "PAUSED"
MAX_TARGET_ROAS = 1000.0
KEYWORD_IDEAS_PER_PRODUCT = 30

GOOGLE_STEPS = (
    Step("initialize", "INITIALIZE", S.INITIALIZING, S.INITIALIZED, S.PENDING),
    Step("create_targeting_units", "CREATE_TARGETING_UNITS", S.CREATING_TARGETING_UNITS, S.TARGETING_UNITS_CREATED, S.INITIALIZED),
    Step("add_geo_targeting", "ADD_GEO_TARGETING", S.ADDING_GEO_TARGETING, S.GEO_TARGETING_ADDED, S.TARGETING_UNITS_CREATED),
    Step("launch", "LAUNCH", S.LAUNCHING, S.LAUNCHED, S.GEO_TARGETING_ADDED),
)


def cpc_bounds_micros(daily_budget: int) -> Dict[str, int]:
    """CPC ceiling/floor: 80% and 20% of the daily budget spread over 10 clicks"""
    return {
        "ceiling": math.ceil(daily_budget * 0.8 / 10) * MICROS_PER_UNIT,
        "floor": math.ceil(daily_budget * 0.2 / 10) * MICROS_PER_UNIT,
    }


def distribute_keywords(keywords: List[str], group_count: int) -> List[List[str]]:
    """Deal keywords round-robin across ``group_count`` ad groups"""
    groups: List[List[str]] = [[] for _ in range(max(group_count, 0))]
    if not groups:
        return groups
    for index, keyword in enumerate(keywords):
        groups[index % group_count].append(keyword)
    return groups


class GoogleAdsCampaignOrchestrator(CampaignOrchestrator):
    steps = GOOGLE_STEPS

    def add_geo_targeting(self, campaign_id: str) -> StepResult:
        return self._execute(self.step("add_geo_targeting"), campaign_id)

    def _platform_daily_budget(self, budget: BudgetPlan) -> int:
        return budget.daily_budget_micros

    # ────────────────────────────────────────────
    # Budget, bidding strategy, campaign
    # ────────────────────────────────────────────

    def _has_initialize(self, record: TrackingRecord) -> bool:
        return bool(
            record.external_budget_ref and record.external_bidding_strategy_ref and record.external_campaign_id
        )

    def _run_initialize(self, record: TrackingRecord, force: bool = False) -> TrackingRecord:
        campaign = record.campaign
        budget = self._budget_for(record)
        account_id = record.external_account_id

        if not record.external_budget_ref:
            budget_ref = self.client.create_budget(
                account_id, f"Budget - {campaign.campaign_id}", budget.daily_budget_micros
            )
            self.log.info(f"💰 [{record.campaign_id}] Budget {budget_ref} created ({budget.daily_budget_micros} micros/day)")
            record = self._save(record, RecordPatch(set={
                "external_budget_ref": budget_ref,
                "daily_budget": budget.daily_budget_micros,
            }))

        if not record.external_bidding_strategy_ref:
            bounds = cpc_bounds_micros(budget.daily_budget)
            strategy_ref = self.client.create_bidding_strategy(
                account_id,
                f"Target ROAS - {campaign.campaign_id}",
                target_roas=min(config.GOOGLE_ADS_TARGET_ROAS, MAX_TARGET_ROAS),
                cpc_ceiling_micros=bounds["ceiling"],
                cpc_floor_micros=bounds["floor"],
            )
            self.log.info(f"📈 [{record.campaign_id}] Bidding strategy {strategy_ref} created")
            record = self._save(record, RecordPatch(set={"external_bidding_strategy_ref": strategy_ref}))

        if not record.external_campaign_id:
            name = f"Campaign - {campaign.type} - {campaign.campaign_id}"
            campaign_ref = self.client.create_campaign_container(
                account_id,
                name,
                status=PAUSED,
                budget_ref=record.external_budget_ref,
                bidding_strategy_ref=record.external_bidding_strategy_ref,
                start_date=campaign.start_date,
                end_date=campaign.end_date,
            )
            self.log.info(f"📦 [{record.campaign_id}] Campaign {campaign_ref} created")
            record = self._save(record, RecordPatch(set={
                "external_campaign_id": campaign_ref,
                "external_campaign_name": name,
                "external_campaign_status": PAUSED,
            }))
        return record

    def _result_initialize(self, record: TrackingRecord) -> Dict[str, Any]:
        return {
            "externalCampaignId": record.external_campaign_id,
            "campaignName": record.external_campaign_name,
            "budgetRef": record.external_budget_ref,
            "biddingStrategyRef": record.external_bidding_strategy_ref,
        }

    # ────────────────────────────────────────────
    # Ad group and responsive search ads
    # ────────────────────────────────────────────

    def _has_create_targeting_units(self, record: TrackingRecord) -> bool:
        linked = {a.creative_id for a in record.ads}
        return (
            bool(record.targeting_units)
            and bool(record.creatives)
            and all(c.creative_id in linked for c in record.creatives)
            and record.keywords_added
        )

    def _bundles(self, record: TrackingRecord) -> List[CreativeAsset]:
        campaign = record.campaign
        bundles = []
        for product in campaign.products:
            product_bundles = build_google_bundles(product)
            if not product_bundles:
                self.log.warning(
                    f"⚠️ [{record.campaign_id}] Product {product.shopify_id} has fewer than 3 headlines "
                    f"or descriptions, skipping"
                )
                continue
            for index, bundle in enumerate(product_bundles):
                bundles.append(CreativeAsset(
                    creative_id=f"{product.shopify_id}:{index}",
                    name=f"RSA - {product.title} - {index + 1}",
                    product_id=product.shopify_id,
                    asset_spec={**bundle, "final_urls": [product.product_link] if product.product_link else []},
                    status="BUNDLED",
                    created_at=self.clock(),
                ))
        return bundles

    def _run_create_targeting_units(self, record: TrackingRecord, force: bool = False) -> TrackingRecord:
        if not record.creatives:
            bundles = self._bundles(record)
            if not bundles:
                raise InsufficientAdContent(
                    "No product has at least 3 headlines and 3 descriptions for a responsive search ad"
                )
        else:
            bundles = []

        if not record.targeting_units:
            name = f"Ad Group - {record.campaign.campaign_id}"
            unit_id = self.client.create_targeting_unit(
                record.external_account_id, record.external_campaign_id, name, status=PAUSED
            )
            self.log.info(f"🎯 [{record.campaign_id}] Ad group {unit_id} created")
            record = self._save(record, RecordPatch(push={"targeting_units": [TargetingUnit(
                unit_id=unit_id,
                name=name,
                daily_budget=record.daily_budget,
                currency=record.currency,
                status=PAUSED,
                product_ids=sorted({b.product_id for b in bundles}) if bundles else [],
                created_at=self.clock(),
            )]}))

        if bundles:
            record = self._save(record, RecordPatch(push={"creatives": bundles}))

        unit = record.targeting_units[0]
        linked = {a.creative_id for a in record.ads}
        for creative in record.creatives:
            if creative.creative_id in linked:
                continue
            ad_ref = self.client.create_ad_linking_unit(
                record.external_account_id,
                unit.unit_id,
                creative.name,
                creative_ref=creative.creative_id,
                asset_spec=creative.asset_spec,
                status=PAUSED,
            )
            self.log.info(f"📣 [{record.campaign_id}] Responsive search ad {ad_ref} created for {creative.creative_id}")
            record = self._save(record, RecordPatch(push={"ads": [AdUnit(
                ad_id=ad_ref,
                targeting_unit_id=unit.unit_id,
                creative_id=creative.creative_id,
                name=creative.name,
                product_id=creative.product_id,
                created_at=self.clock(),
            )]}))

        if not record.keywords_added:
            record = self._add_keywords(record)
        return record

    def _add_keywords(self, record: TrackingRecord) -> TrackingRecord:
        """
        Ask the keyword planner for ideas seeded from each product page and
        deal them across the ad groups. Each product's batch is saved as soon
        as its criteria exist, so a retry only queries the remaining products.
        """
        unit_ids = [u.unit_id for u in record.targeting_units]
        done = {b.product_id for b in record.keyword_batches}
        added = {k for b in record.keyword_batches for k in b.keywords}

        for product in record.campaign.products:
            if product.shopify_id in done:
                continue
            if not product.product_link:
                self.log.warning(f"⚠️ [{record.campaign_id}] Product {product.shopify_id} has no landing page, no keywords")
                continue

            ideas = self.client.generate_keyword_ideas(
                record.external_account_id, product.product_link, page_size=KEYWORD_IDEAS_PER_PRODUCT
            )
            keywords = [k for k in ideas if k not in added]
            if not keywords:
                self.log.warning(f"⚠️ [{record.campaign_id}] No new keyword ideas for product {product.shopify_id}")
                continue

            criteria: List[str] = []
            for unit_id, unit_keywords in zip(unit_ids, distribute_keywords(keywords, len(unit_ids))):
                if unit_keywords:
                    criteria.extend(self.client.add_keywords(record.external_account_id, unit_id, unit_keywords))
            self.log.info(
                f"🔑 [{record.campaign_id}] {len(keywords)} keywords ({len(criteria)} criteria) "
                f"added for product {product.shopify_id}"
            )
            record = self._save(record, RecordPatch(push={"keyword_batches": [KeywordBatch(
                product_id=product.shopify_id,
                targeting_unit_id=unit_ids[0] if len(unit_ids) == 1 else None,
                keywords=keywords,
                criteria=criteria,
                created_at=self.clock(),
            )]}))
            added.update(keywords)

        if not record.keyword_batches:
            raise InsufficientAdContent("No keyword ideas could be generated for any product landing page")
        return self._save(record, RecordPatch(set={"keywords_added": True}))

    def _result_create_targeting_units(self, record: TrackingRecord) -> Dict[str, Any]:
        return {
            "count": len(record.targeting_units),
            "unitIds": [u.unit_id for u in record.targeting_units],
            "adCount": len(record.ads),
            "adIds": [a.ad_id for a in record.ads],
            "keywordCount": sum(len(b.keywords) for b in record.keyword_batches),
        }

    # ────────────────────────────────────────────
    # Geo targeting
    # ────────────────────────────────────────────

    def _has_add_geo_targeting(self, record: TrackingRecord) -> bool:
        try:
            wanted = set(group_locations_by_country(record.campaign.location))
        except NoValidLocations:
            return False
        done = {g.country_code for g in record.geo_targets}
        return wanted <= done and any(g.criteria for g in record.geo_targets)

    def _run_add_geo_targeting(self, record: TrackingRecord, force: bool = False) -> TrackingRecord:
        grouped = group_locations_by_country(record.campaign.location)
        done = {g.country_code for g in record.geo_targets}

        for country_code, names in grouped.items():
            if country_code in done:
                continue
            location_names = names or [country_name(country_code)]
            criteria = self.client.add_geo_targeting(
                record.external_account_id, record.external_campaign_id, country_code, location_names
            )
            if criteria:
                self.log.info(f"🌍 [{record.campaign_id}] {len(criteria)} geo criteria added for {country_code}")
            else:
                self.log.warning(f"⚠️ [{record.campaign_id}] No geo targets resolved for {country_code}: {location_names}")
            record = self._save(record, RecordPatch(push={"geo_targets": [GeoTarget(
                country_code=country_code,
                location_names=location_names,
                criteria=criteria,
                created_at=self.clock(),
            )]}))

        if not any(g.criteria for g in record.geo_targets):
            raise NoValidLocations("No geo targets could be resolved for any campaign location")
        return record

    def _result_add_geo_targeting(self, record: TrackingRecord) -> Dict[str, Any]:
        return {
            "count": sum(len(g.criteria) for g in record.geo_targets),
            "countries": [g.country_code for g in record.geo_targets if g.criteria],
        }

    # ────────────────────────────────────────────
    # Launch
    # ────────────────────────────────────────────

    def _has_launch(self, record: TrackingRecord) -> bool:
        return record.processing_status == S.LAUNCHED.value

    def _run_launch(self, record: TrackingRecord, force: bool = False) -> TrackingRecord:
        """Enable ads, then the ad group, then the campaign"""
        account_id = record.external_account_id

        for ad in record.ads:
            if ad.status == ENABLED and not force:
                continue
            self.client.set_status(account_id, ad.ad_id, ENABLED, resource_type="ad")
            record = self._save(record, RecordPatch(update_items={
                "ads": [ItemUpdate("ad_id", ad.ad_id, {"status": ENABLED})],
            }))

        for unit in record.targeting_units:
            if unit.status == ENABLED and not force:
                continue
            self.client.set_status(account_id, unit.unit_id, ENABLED, resource_type="targeting_unit")
            record = self._save(record, RecordPatch(update_items={
                "targeting_units": [ItemUpdate("unit_id", unit.unit_id, {"status": ENABLED})],
            }))

        if record.external_campaign_status != ENABLED or force:
            self.client.set_status(account_id, record.external_campaign_id, ENABLED, resource_type="campaign")
            record = self._save(record, RecordPatch(set={"external_campaign_status": ENABLED}))
        self.log.info(f"🚀 [{record.campaign_id}] Campaign {record.external_campaign_id} enabled on Google Ads")
        return record

    def _result_launch(self, record: TrackingRecord) -> Dict[str, Any]:
        return {"status": record.processing_status, "externalCampaignStatus": record.external_campaign_status}
