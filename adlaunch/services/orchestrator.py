# adlaunch/services/orchestrator.py
"""
Campaign provisioning orchestrator.

Each platform subclass declares its ordered ``steps`` and, per step, three
hooks named after the step:

- ``_has_<name>(record)``   - is the step's output already stored?
- ``_run_<name>(record, force)`` - perform the remote calls, persisting each
  created sub-resource immediately, and return the latest record
- ``_result_<name>(record)`` - the caller-facing summary

The shared template below handles record creation, the idempotency guard,
the step claim, failure recording, retries and status reporting.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple

from adlaunch.core import config
from adlaunch.core.clock import utcnow
from adlaunch.core.exceptions import (
    ConcurrentModification,
    PreconditionFailed,
    RetryLimitExceeded,
    StepInProgress,
    UnknownStep,
    ValidationError,
)
from adlaunch.core.logging_config import get_orchestration_logger
from adlaunch.models.tracking import ProcessingStatus
from adlaunch.schemas.tracking import TrackingRecord
from adlaunch.services.calculator import BudgetPlan, compute_budget
from adlaunch.services.platform_client import PlatformClient
from adlaunch.services.sources import AdAccountConfig, AdAccountSource, CampaignSource
from adlaunch.services.tracking_store import RecordPatch, TrackingRecordStore

log = logging.getLogger("adlaunch.orchestrator")


@dataclass(frozen=True)
class Step:
    name: str                       # public method, e.g. "create_targeting_units"
    hint: str                       # next-step hint, e.g. "CREATE_TARGETING_UNITS"
    running: ProcessingStatus
    done: ProcessingStatus
    previous: ProcessingStatus


@dataclass
class StepResult:
    step: str
    status: str
    next_step: Optional[str]
    data: Dict[str, Any] = field(default_factory=dict)
    message: str = ""


class CampaignOrchestrator(ABC):
    """Drives one platform's campaign through its ordered steps"""

    steps: Tuple[Step, ...] = ()

    def __init__(
        self,
        platform: str,
        client: PlatformClient,
        store: TrackingRecordStore,
        campaign_source: CampaignSource,
        ad_account_source: AdAccountSource,
        clock: Callable[[], datetime] = None,
        max_retries: int = None,
        lease_seconds: int = None,
    ):
        self.platform = platform.upper()
        self.client = client
        self.store = store
        self.campaign_source = campaign_source
        self.ad_account_source = ad_account_source
        self.clock = clock or utcnow
        self.max_retries = config.MAX_STEP_RETRIES if max_retries is None else max_retries
        self.lease = timedelta(seconds=config.STEP_LEASE_SECONDS if lease_seconds is None else lease_seconds)
        self.log = get_orchestration_logger(self.platform.lower())

    # ────────────────────────────────────────────
    # Step lookup
    # ────────────────────────────────────────────

    def step(self, key: str) -> Step:
        """Find a step by hint, method name or running state"""
        normalized = str(key or "").strip()
        for step in self.steps:
            if normalized in (step.hint, step.name, step.running.value):
                return step
        raise UnknownStep(
            f"Unknown step {key!r} for {self.platform}",
            {"validSteps": [s.hint for s in self.steps]},
        )

    def _following(self, step: Step) -> Optional[Step]:
        index = self.steps.index(step)
        return self.steps[index + 1] if index + 1 < len(self.steps) else None

    def _next_hint(self, step: Step) -> Optional[str]:
        following = self._following(step)
        return following.hint if following else None

    def _position(self, status: str) -> int:
        """Index of the last completed step for a status, -1 for PENDING"""
        for index, step in enumerate(self.steps):
            if status == step.done.value:
                return index
            if status == step.running.value:
                return index - 1
        return -1

    # ────────────────────────────────────────────
    # Public operations
    # ────────────────────────────────────────────

    def initialize(self, campaign_id: str) -> StepResult:
        self._ensure_record(campaign_id)
        return self._execute(self.step("initialize"), campaign_id)

    def create_targeting_units(self, campaign_id: str) -> StepResult:
        return self._execute(self.step("create_targeting_units"), campaign_id)

    def launch(self, campaign_id: str, force: bool = False) -> StepResult:
        return self._execute(self.step("launch"), campaign_id, force=force)

    def run_step(self, campaign_id: str, hint: str) -> StepResult:
        """Generic dispatch used by queue workers"""
        return getattr(self, self.step(hint).name)(campaign_id)

    def get_status(self, campaign_id: str) -> Dict[str, Any]:
        record = self.store.get(campaign_id, self.platform)
        status = record.processing_status
        next_step, ready = None, False

        if status == ProcessingStatus.FAILED.value:
            next_step = self.step(record.failed_step).hint if record.failed_step else None
        elif status == ProcessingStatus.PENDING.value:
            next_step, ready = self.steps[0].hint, True
        elif status != ProcessingStatus.LAUNCHED.value:
            for step in self.steps:
                if status == step.running.value:
                    next_step = step.hint
                    break
                if status == step.done.value:
                    next_step, ready = self._next_hint(step), True
                    break

        return {
            "campaign_id": record.campaign_id,
            "platform": record.platform,
            "processing_status": status,
            "external_campaign_status": record.external_campaign_status,
            "failed_step": record.failed_step,
            "error_message": record.error_message,
            "retry_count": record.retry_count,
            "targeting_units_created": len(record.targeting_units),
            "creatives_created": len(record.creatives),
            "ads_created": len(record.ads),
            "next_step": next_step,
            "is_ready_for_next_step": ready and next_step is not None,
        }

    def retry_step(self, campaign_id: str, step_name: str) -> Dict[str, Any]:
        """
        Re-run the step that failed. Only the failed step can be retried, and
        only ``max_retries`` times per record.
        """
        step = self.step(step_name)
        record = self.store.get(campaign_id, self.platform)

        if record.processing_status != ProcessingStatus.FAILED.value or record.failed_step != step.running.value:
            raise PreconditionFailed(
                f"Cannot retry {step.running.value}: campaign is {record.processing_status}"
                + (f" (failed at {record.failed_step})" if record.failed_step else ""),
                {"processingStatus": record.processing_status, "failedStep": record.failed_step},
            )
        if record.retry_count >= self.max_retries:
            raise RetryLimitExceeded(
                f"Retry limit of {self.max_retries} reached for {step.running.value}",
                {"retryCount": record.retry_count},
            )

        self.log.info(
            f"🔁 [{campaign_id}] Retrying {step.running.value} "
            f"(attempt {record.retry_count + 1}/{self.max_retries})"
        )
        self.store.apply(campaign_id, self.platform, RecordPatch(set={
            "retry_count": record.retry_count + 1,
            "error_message": None,
            "error_code": None,
            "last_processed_at": self.clock(),
        }), expected_version=record.version)

        result = self._execute(step, campaign_id, allow_failed=True)
        return {"completedStep": step.running.value, "nextStep": result.next_step, "data": result.data}

    # ────────────────────────────────────────────
    # Record creation
    # ────────────────────────────────────────────

    def _ensure_record(self, campaign_id: str) -> TrackingRecord:
        record = self.store.find(campaign_id, self.platform)
        if record is not None:
            return record

        campaign = self.campaign_source.get_campaign(campaign_id)
        if self.platform not in campaign.platforms:
            raise ValidationError(
                f"Campaign {campaign_id} does not target {self.platform}",
                {"platforms": campaign.platforms},
            )
        account = self.ad_account_source.get_primary_ad_account(campaign.user_id, self.platform)
        budget = compute_budget(campaign.total_budget, campaign.platforms, campaign.start_date, campaign.end_date)

        self.log.info(
            f"📋 [{campaign_id}] Creating tracking record: {budget.per_platform_budget:.2f} over "
            f"{budget.duration_days} days, daily {budget.daily_budget}"
        )
        return self.store.insert({
            "campaign_id": campaign_id,
            "platform": self.platform,
            "user_id": campaign.user_id,
            "external_account_id": self._account_id(account),
            "pixel_id": account.pixel_or_conversion_id,
            "page_ref": account.page_or_publisher_ref,
            "instagram_actor_id": account.instagram_actor_id,
            "processing_status": ProcessingStatus.PENDING.value,
            "retry_count": 0,
            "targeting_units": [],
            "creatives": [],
            "ads": [],
            "geo_targets": [],
            "keyword_batches": [],
            "keywords_added": False,
            "allocated_budget": budget.per_platform_budget,
            "daily_budget": self._platform_daily_budget(budget),
            "currency": account.currency or config.DEFAULT_CURRENCY,
            "original_campaign_data": campaign.snapshot(),
            "last_processed_at": self.clock(),
        })

    def _account_id(self, account: AdAccountConfig) -> str:
        return account.external_account_id

    @abstractmethod
    def _platform_daily_budget(self, budget: BudgetPlan) -> int:
        """Daily budget in the platform's minor unit"""

    def _budget_for(self, record: TrackingRecord) -> BudgetPlan:
        campaign = record.campaign
        return compute_budget(campaign.total_budget, campaign.platforms, campaign.start_date, campaign.end_date)

    def _current_account(self, record: TrackingRecord) -> AdAccountConfig:
        return self.ad_account_source.get_primary_ad_account(record.user_id, self.platform)

    # ────────────────────────────────────────────
    # Step template
    # ────────────────────────────────────────────

    def _execute(self, step: Step, campaign_id: str, allow_failed: bool = False, force: bool = False) -> StepResult:
        record = self.store.get(campaign_id, self.platform)
        has_output = getattr(self, f"_has_{step.name}")

        # Idempotency guard
        if not force and has_output(record):
            self.log.info(f"⏭️ [{campaign_id}] {step.hint} already done, returning stored result")
            record = self._settle(step, record, allow_failed)
            return self._step_result(step, record)

        self._check_entry(step, record, allow_failed, force)
        claimed = self.store.apply(campaign_id, self.platform, RecordPatch(set={
            "processing_status": step.running.value,
            "failed_step": None,
            "error_message": None,
            "step_claimed_at": self.clock(),
            "last_processed_at": self.clock(),
        }), expected_version=record.version)

        self.log.info(f"▶️ [{campaign_id}] {step.running.value} started")
        try:
            record = getattr(self, f"_run_{step.name}")(claimed, force)
        except ConcurrentModification:
            self.log.warning(f"⚠️ [{campaign_id}] {step.running.value} lost its claim to another invocation")
            raise
        except Exception as exc:
            self._record_failure(campaign_id, step, exc)
            raise

        try:
            record = self.store.apply(campaign_id, self.platform, RecordPatch(set={
                "processing_status": step.done.value,
                "failed_step": None,
                "error_message": None,
                "error_code": None,
                "retryable": None,
                "step_claimed_at": None,
                "last_processed_at": self.clock(),
            }), expected_version=record.version)
        except ConcurrentModification:
            # Another invocation may already have marked the stored output done
            latest = self.store.get(campaign_id, self.platform)
            if self._position(latest.processing_status) < self.steps.index(step):
                raise
            self.log.info(f"⏭️ [{campaign_id}] {step.done.value} already recorded by another invocation")
            record = latest
        self.log.info(f"✅ [{campaign_id}] {step.done.value}")
        return self._step_result(step, record)

    def _check_entry(self, step: Step, record: TrackingRecord, allow_failed: bool, force: bool):
        status = record.processing_status

        if status == step.previous.value:
            return
        if force and status == step.done.value:
            return
        if status == ProcessingStatus.FAILED.value and allow_failed:
            return
        if status == step.running.value:
            if self._lease_is_live(record):
                raise StepInProgress(
                    f"{step.running.value} is already running for campaign {record.campaign_id}",
                    {"claimedAt": record.step_claimed_at.isoformat() if record.step_claimed_at else None},
                )
            self.log.warning(f"⚠️ [{record.campaign_id}] Reclaiming stale {step.running.value} claim")
            return

        raise PreconditionFailed(
            f"Cannot run {step.hint}: campaign is {status}, expected {step.previous.value}",
            {"processingStatus": status, "failedStep": record.failed_step},
        )

    def _lease_is_live(self, record: TrackingRecord) -> bool:
        return bool(record.step_claimed_at) and self.clock() - record.step_claimed_at < self.lease

    def _settle(self, step: Step, record: TrackingRecord, allow_failed: bool) -> TrackingRecord:
        """Advance the status of a step whose output exists but was never marked done"""
        status = record.processing_status
        repairable = status in (step.previous.value, step.running.value) or (
            allow_failed and status == ProcessingStatus.FAILED.value
        )
        if not repairable:
            return record
        try:
            return self.store.apply(record.campaign_id, self.platform, RecordPatch(set={
                "processing_status": step.done.value,
                "failed_step": None,
                "error_message": None,
                "error_code": None,
                "retryable": None,
                "step_claimed_at": None,
                "last_processed_at": self.clock(),
            }), expected_version=record.version)
        except ConcurrentModification:
            return self.store.get(record.campaign_id, self.platform)

    def _record_failure(self, campaign_id: str, step: Step, exc: Exception):
        message = str(getattr(exc, "message", None) or exc or type(exc).__name__)
        retryable = bool(getattr(exc, "retryable", True))
        self.log.error(f"❌ [{campaign_id}] {step.running.value} failed: {type(exc).__name__}: {message}")
        try:
            self.store.apply(campaign_id, self.platform, RecordPatch(set={
                "processing_status": ProcessingStatus.FAILED.value,
                "failed_step": step.running.value,
                "error_message": message[:config.ERROR_MESSAGE_MAX_LENGTH],
                "error_code": type(exc).__name__,
                "retryable": retryable,
                "step_claimed_at": None,
                "last_processed_at": self.clock(),
            }))
        except Exception as store_error:
            self.log.error(f"❌ [{campaign_id}] Could not record failure of {step.running.value}: {store_error}")

    def _step_result(self, step: Step, record: TrackingRecord) -> StepResult:
        data = getattr(self, f"_result_{step.name}")(record)
        position = self._position(record.processing_status)
        next_step = None
        if record.processing_status == ProcessingStatus.FAILED.value:
            next_step = self.step(record.failed_step).hint if record.failed_step else None
        elif record.processing_status != ProcessingStatus.LAUNCHED.value and 0 <= position + 1 < len(self.steps):
            next_step = self.steps[position + 1].hint
        return StepResult(
            step=step.hint,
            status=record.processing_status,
            next_step=next_step,
            data=data,
            message=f"{step.hint} complete, campaign is {record.processing_status}",
        )

    # ────────────────────────────────────────────
    # Persistence helpers for step bodies
    # ────────────────────────────────────────────

    def _save(self, record: TrackingRecord, patch: RecordPatch) -> TrackingRecord:
        """Persist step progress against the version this step last saw"""
        if "last_processed_at" not in patch.set:
            patch.set["last_processed_at"] = self.clock()
        return self.store.apply(record.campaign_id, self.platform, patch, expected_version=record.version)
