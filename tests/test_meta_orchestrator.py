"""Facebook / Instagram provisioning: happy path, idempotency, failures and retries"""
import pytest

from adlaunch.core import config
from adlaunch.core.exceptions import (
    ConcurrentModification,
    DuplicateNameError,
    MissingPixelConfiguration,
    PreconditionFailed,
    RetryLimitExceeded,
    StepInProgress,
    TransientNetworkError,
    UnknownStep,
    ValidationError,
)
from adlaunch.services.meta_orchestrator import MetaCampaignOrchestrator
from adlaunch.services.sources import AdAccountConfig
from adlaunch.services.tracking_store import RecordPatch, TrackingRecordStore

from conftest import make_campaign, make_product


def run_all(meta, campaign_id="cmp-1"):
    meta.initialize(campaign_id)
    meta.create_targeting_units(campaign_id)
    meta.create_creatives(campaign_id)
    meta.create_ads(campaign_id)
    return meta.launch(campaign_id)


# =============================================================================
# HAPPY PATH
# =============================================================================

def test_end_to_end(meta, client, store):
    result = run_all(meta)

    record = store.get("cmp-1", "FACEBOOK")
    assert result.status == "LAUNCHED"
    assert result.next_step is None
    assert len(record.targeting_units) == 1
    assert len(record.creatives) == 1
    assert len(record.ads) == 1
    assert record.external_campaign_status == "ACTIVE"
    assert record.targeting_units[0].status == "ACTIVE"
    assert record.ads[0].status == "ACTIVE"

    # Bottom-up activation: ad, then ad set, then campaign
    activations = [(c[1][1], c[2]["resource_type"]) for c in client.called("set_status")]
    assert activations == [
        (record.ads[0].ad_id, "ad"),
        (record.targeting_units[0].unit_id, "targeting_unit"),
        (record.external_campaign_id, "campaign"),
    ]


def test_initialize_snapshots_campaign_and_budget(meta, store, client):
    result = meta.initialize("cmp-1")

    record = store.get("cmp-1", "FACEBOOK")
    assert result.status == "INITIALIZED"
    assert result.next_step == "CREATE_TARGETING_UNITS"
    assert result.data["externalCampaignId"] == record.external_campaign_id
    assert record.original_campaign_data["campaignId"] == "cmp-1"
    assert record.daily_budget == 3000
    assert record.allocated_budget == 300
    assert record.external_account_id == "act_1001"

    _, args, kwargs = client.called("create_campaign_container")[0]
    assert args == ("act_1001", "Campaign - Sales - cmp-1")
    assert kwargs["status"] == "PAUSED"


def test_targeting_unit_uses_full_daily_budget_and_pixel(meta, client):
    meta.initialize("cmp-1")
    meta.create_targeting_units("cmp-1")

    _, _, kwargs = client.called("create_targeting_unit")[0]
    assert kwargs["daily_budget"] == 3000
    assert kwargs["pixel_id"] == "pixel-1"
    assert kwargs["targeting"] == {"geo_locations": {"countries": ["US"]}}


def test_status_reports_next_step(meta):
    meta.initialize("cmp-1")
    status = meta.get_status("cmp-1")
    assert status["processing_status"] == "INITIALIZED"
    assert status["next_step"] == "CREATE_TARGETING_UNITS"
    assert status["is_ready_for_next_step"] is True

    run_all(meta)
    status = meta.get_status("cmp-1")
    assert status["next_step"] is None
    assert status["is_ready_for_next_step"] is False


# =============================================================================
# IDEMPOTENCY
# =============================================================================

def test_steps_called_twice_hit_platform_once(meta, client):
    first = meta.initialize("cmp-1")
    second = meta.initialize("cmp-1")
    assert first.data == second.data
    assert len(client.called("create_campaign_container")) == 1

    units = meta.create_targeting_units("cmp-1")
    assert meta.create_targeting_units("cmp-1").data == units.data
    assert len(client.called("create_targeting_unit")) == 1

    meta.create_creatives("cmp-1")
    meta.create_creatives("cmp-1")
    assert len(client.called("create_creative")) == 1

    meta.create_ads("cmp-1")
    meta.create_ads("cmp-1")
    assert len(client.called("create_ad_linking_unit")) == 1


def test_launch_is_idempotent_unless_forced(meta, client):
    run_all(meta)
    meta.launch("cmp-1")
    assert len(client.called("set_status")) == 3

    forced = meta.launch("cmp-1", force=True)
    assert forced.status == "LAUNCHED"
    assert len(client.called("set_status")) == 6


def test_earlier_step_after_launch_returns_stored_result(meta, client, store):
    run_all(meta)
    result = meta.initialize("cmp-1")
    assert result.status == "LAUNCHED"
    assert result.data["externalCampaignId"] == store.get("cmp-1", "FACEBOOK").external_campaign_id
    assert len(client.called("create_campaign_container")) == 1


def test_stored_output_with_unfinished_status_is_settled(meta, client, store):
    meta.initialize("cmp-1")
    meta.create_targeting_units("cmp-1")
    meta.create_creatives("cmp-1")
    meta.create_ads("cmp-1")
    # Crash after the last ad was stored but before the status moved on
    store.apply("cmp-1", "FACEBOOK", RecordPatch(set={"processing_status": "CREATING_ADS"}))

    result = meta.create_ads("cmp-1")
    assert result.status == "ADS_CREATED"
    assert len(client.called("create_ad_linking_unit")) == 1


# =============================================================================
# ORDERING AND CONCURRENCY
# =============================================================================

def test_steps_must_run_in_order(meta, client):
    meta.initialize("cmp-1")
    with pytest.raises(PreconditionFailed):
        meta.create_creatives("cmp-1")
    with pytest.raises(PreconditionFailed):
        meta.launch("cmp-1")
    assert meta.get_status("cmp-1")["processing_status"] == "INITIALIZED"
    assert client.called("create_creative") == []


def test_step_in_progress_until_lease_expires(meta, store, clock, client):
    meta.initialize("cmp-1")
    store.apply("cmp-1", "FACEBOOK", RecordPatch(set={
        "processing_status": "CREATING_TARGETING_UNITS",
        "step_claimed_at": clock(),
    }))

    with pytest.raises(StepInProgress):
        meta.create_targeting_units("cmp-1")
    assert client.called("create_targeting_unit") == []

    clock.advance(config.STEP_LEASE_SECONDS + 1)
    result = meta.create_targeting_units("cmp-1")
    assert result.status == "TARGETING_UNITS_CREATED"


def test_duplicate_after_lost_initialize_is_recorded(meta, store, clock, client):
    # A previous invocation died mid-initialize; the campaign may exist remotely
    meta._ensure_record("cmp-1")
    store.apply("cmp-1", "FACEBOOK", RecordPatch(set={
        "processing_status": "INITIALIZING",
        "step_claimed_at": clock(),
    }))
    clock.advance(config.STEP_LEASE_SECONDS + 1)
    client.fail_next("create_campaign_container", DuplicateNameError("Campaign name already exists"))

    with pytest.raises(DuplicateNameError) as exc_info:
        meta.initialize("cmp-1")
    assert isinstance(exc_info.value, ValidationError)

    record = store.get("cmp-1", "FACEBOOK")
    assert record.processing_status == "FAILED"
    assert record.failed_step == "INITIALIZING"
    assert record.error_code == "DuplicateNameError"
    assert record.retryable is False
    assert record.external_campaign_id is None


class RacingStore(TrackingRecordStore):
    """Runs a one-shot hook right after a read, or right after a write that pushed items"""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.after_get = None
        self.after_push = None

    def get(self, campaign_id, platform):
        record = super().get(campaign_id, platform)
        hook, self.after_get = self.after_get, None
        if hook:
            hook()
        return record

    def apply(self, campaign_id, platform, patch, expected_version=None):
        record = super().apply(campaign_id, platform, patch, expected_version=expected_version)
        if patch.push:
            hook, self.after_push = self.after_push, None
            if hook:
                hook()
        return record


@pytest.fixture
def racing(session_factory, client, campaigns, meta_account, clock):
    store = RacingStore(session_factory)
    first = MetaCampaignOrchestrator("FACEBOOK", client, store, campaigns, meta_account, clock=clock)
    second = MetaCampaignOrchestrator("FACEBOOK", client, store, campaigns, meta_account, clock=clock)
    return store, first, second


def test_two_invocations_racing_for_the_same_claim(racing, client):
    store, first, second = racing
    first.initialize("cmp-1")
    # The second invocation runs the whole step between the first one's read and claim
    store.after_get = lambda: second.create_targeting_units("cmp-1")

    with pytest.raises(ConcurrentModification):
        first.create_targeting_units("cmp-1")

    record = store.get("cmp-1", "FACEBOOK")
    assert len(client.called("create_targeting_unit")) == 1
    assert record.processing_status == "TARGETING_UNITS_CREATED"
    assert len(record.targeting_units) == 1
    assert record.failed_step is None


def test_completion_already_recorded_by_another_invocation(racing, client):
    store, first, second = racing
    first.initialize("cmp-1")
    # The second invocation finds the stored unit and settles the step first
    store.after_push = lambda: second.create_targeting_units("cmp-1")

    result = first.create_targeting_units("cmp-1")

    record = store.get("cmp-1", "FACEBOOK")
    assert result.status == "TARGETING_UNITS_CREATED"
    assert record.processing_status == "TARGETING_UNITS_CREATED"
    assert len(client.called("create_targeting_unit")) == 1
    assert len(record.targeting_units) == 1


def test_platform_must_be_requested_by_campaign(client, store, campaigns, meta_account, clock):
    instagram = MetaCampaignOrchestrator("INSTAGRAM", client, store, campaigns, meta_account, clock=clock)
    with pytest.raises(ValidationError):
        instagram.initialize("cmp-1")
    assert store.find("cmp-1", "INSTAGRAM") is None


def test_unknown_step(meta):
    with pytest.raises(UnknownStep):
        meta.run_step("cmp-1", "ADD_GEO_TARGETING")


def test_run_step_dispatch(meta):
    assert meta.run_step("cmp-1", "INITIALIZE").status == "INITIALIZED"
    assert meta.run_step("cmp-1", "CREATE_TARGETING_UNITS").status == "TARGETING_UNITS_CREATED"


# =============================================================================
# FAILURES AND RETRY
# =============================================================================

def test_failure_then_retry(meta, client, store):
    meta.initialize("cmp-1")
    client.fail_next("create_targeting_unit", TransientNetworkError("Connection reset"))

    with pytest.raises(TransientNetworkError):
        meta.create_targeting_units("cmp-1")

    status = meta.get_status("cmp-1")
    assert status["processing_status"] == "FAILED"
    assert status["failed_step"] == "CREATING_TARGETING_UNITS"
    assert status["error_message"] == "Connection reset"
    assert status["is_ready_for_next_step"] is False
    assert status["next_step"] == "CREATE_TARGETING_UNITS"
    record = store.get("cmp-1", "FACEBOOK")
    assert record.error_code == "TransientNetworkError"
    assert record.retryable is True

    outcome = meta.retry_step("cmp-1", "CREATING_TARGETING_UNITS")
    assert outcome["completedStep"] == "CREATING_TARGETING_UNITS"
    assert outcome["nextStep"] == "CREATE_CREATIVES"

    record = store.get("cmp-1", "FACEBOOK")
    assert record.processing_status == "TARGETING_UNITS_CREATED"
    assert record.retry_count == 1
    assert record.failed_step is None
    assert record.error_message is None
    assert len(record.targeting_units) == 1
    assert outcome["data"]["unitIds"] == [record.targeting_units[0].unit_id]


def test_retry_is_bounded(meta, client):
    meta.initialize("cmp-1")
    client.fail_next("create_targeting_unit", TransientNetworkError("Timeout"), times=3)

    with pytest.raises(TransientNetworkError):
        meta.create_targeting_units("cmp-1")
    for _ in range(2):
        with pytest.raises(TransientNetworkError):
            meta.retry_step("cmp-1", "CREATING_TARGETING_UNITS")

    # Third retry is refused even though the platform would now succeed
    with pytest.raises(RetryLimitExceeded):
        meta.retry_step("cmp-1", "CREATING_TARGETING_UNITS")
    assert len(client.called("create_targeting_unit")) == 3
    assert meta.get_status("cmp-1")["retry_count"] == 2


def test_retry_only_the_failed_step(meta, client):
    meta.initialize("cmp-1")
    with pytest.raises(PreconditionFailed):
        meta.retry_step("cmp-1", "CREATING_TARGETING_UNITS")

    client.fail_next("create_targeting_unit", TransientNetworkError("Timeout"))
    with pytest.raises(TransientNetworkError):
        meta.create_targeting_units("cmp-1")
    with pytest.raises(PreconditionFailed):
        meta.retry_step("cmp-1", "CREATING_CREATIVES")


def test_failed_record_blocks_normal_invocation(meta, client):
    meta.initialize("cmp-1")
    client.fail_next("create_targeting_unit", TransientNetworkError("Timeout"))
    with pytest.raises(TransientNetworkError):
        meta.create_targeting_units("cmp-1")

    with pytest.raises(PreconditionFailed):
        meta.create_targeting_units("cmp-1")
    assert len(client.called("create_targeting_unit")) == 1


def test_partial_creatives_are_not_recreated(client, store, campaigns, meta_account, clock):
    campaigns.add(make_campaign("cmp-2", products=[
        make_product("prod-1", "Trail Runner"),
        make_product("prod-2", "Road Racer"),
        make_product("prod-3", "Court Classic"),
    ]))
    meta = MetaCampaignOrchestrator("FACEBOOK", client, store, campaigns, meta_account, clock=clock)
    meta.initialize("cmp-2")
    meta.create_targeting_units("cmp-2")

    client.fail_next("create_creative", TransientNetworkError("Rate limited"), after=1)
    with pytest.raises(TransientNetworkError):
        meta.create_creatives("cmp-2")
    record = store.get("cmp-2", "FACEBOOK")
    assert [c.product_id for c in record.creatives] == ["prod-1"]

    meta.retry_step("cmp-2", "CREATING_CREATIVES")
    record = store.get("cmp-2", "FACEBOOK")
    assert [c.product_id for c in record.creatives] == ["prod-1", "prod-2", "prod-3"]
    # 1 success + 1 failure + 2 on retry
    assert len(client.called("create_creative")) == 4

    meta.create_ads("cmp-2")
    assert len(store.get("cmp-2", "FACEBOOK").ads) == 3


def test_error_message_is_truncated(meta, client, store):
    meta.initialize("cmp-1")
    client.fail_next("create_targeting_unit", TransientNetworkError("x" * 5000))
    with pytest.raises(TransientNetworkError):
        meta.create_targeting_units("cmp-1")
    assert len(store.get("cmp-1", "FACEBOOK").error_message) == config.ERROR_MESSAGE_MAX_LENGTH


def test_unexpected_errors_are_recorded_and_raised(meta, client, store):
    meta.initialize("cmp-1")
    client.fail_next("create_targeting_unit", RuntimeError("boom"))
    with pytest.raises(RuntimeError):
        meta.create_targeting_units("cmp-1")
    record = store.get("cmp-1", "FACEBOOK")
    assert record.processing_status == "FAILED"
    assert record.error_code == "RuntimeError"
    assert record.retryable is True


def test_missing_pixel_fails_fast_and_can_be_retried_once_fixed(meta, meta_account, client, store):
    meta.initialize("cmp-1")
    meta_account.account = AdAccountConfig(external_account_id="act_1001", page_or_publisher_ref="page-1")

    with pytest.raises(MissingPixelConfiguration):
        meta.create_targeting_units("cmp-1")
    record = store.get("cmp-1", "FACEBOOK")
    assert record.failed_step == "CREATING_TARGETING_UNITS"
    assert record.retryable is False
    assert client.called("create_targeting_unit") == []

    meta_account.account = AdAccountConfig(external_account_id="act_1001", pixel_or_conversion_id="pixel-9")
    meta.retry_step("cmp-1", "CREATE_TARGETING_UNITS")
    assert store.get("cmp-1", "FACEBOOK").pixel_id == "pixel-9"


def test_create_ads_requires_creatives(meta, store):
    meta.initialize("cmp-1")
    meta.create_targeting_units("cmp-1")
    store.apply("cmp-1", "FACEBOOK", RecordPatch(set={"processing_status": "CREATIVES_CREATED"}))

    with pytest.raises(PreconditionFailed):
        meta.create_ads("cmp-1")
    assert store.get("cmp-1", "FACEBOOK").failed_step == "CREATING_ADS"


# =============================================================================
# PLATFORM VARIANTS
# =============================================================================

def test_instagram_creatives_use_actor_and_channel(client, store, campaigns, meta_account, clock):
    campaigns.add(make_campaign("cmp-ig", platforms=["FACEBOOK", "INSTAGRAM"]))
    instagram = MetaCampaignOrchestrator("INSTAGRAM", client, store, campaigns, meta_account, clock=clock)
    instagram.initialize("cmp-ig")
    instagram.create_targeting_units("cmp-ig")
    instagram.create_creatives("cmp-ig")

    _, _, kwargs = client.called("create_creative")[0]
    assert kwargs["instagram_actor_id"] == "ig-1"
    assert kwargs["page_ref"] == "page-1"
    # Budget is split across the two requested platforms
    assert store.get("cmp-ig", "INSTAGRAM").daily_budget == 1500


def test_sandbox_account_outside_production(meta, client, store, monkeypatch):
    monkeypatch.setattr(config, "ENVIRONMENT", "test")
    monkeypatch.setattr(config, "SANDBOX_AD_ACCOUNT_ID", "act_sandbox")

    meta.initialize("cmp-1")
    assert store.get("cmp-1", "FACEBOOK").external_account_id == "act_sandbox"
    assert client.called("create_campaign_container")[0][1][0] == "act_sandbox"


def test_no_sandbox_in_production(meta, store, monkeypatch):
    monkeypatch.setattr(config, "ENVIRONMENT", "production")
    monkeypatch.setattr(config, "SANDBOX_AD_ACCOUNT_ID", "act_sandbox")

    meta.initialize("cmp-1")
    assert store.get("cmp-1", "FACEBOOK").external_account_id == "act_1001"
