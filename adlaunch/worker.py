# adlaunch/worker.py
"""
Queue-message step driver.

A message ``{"campaignId": ..., "platform": ..., "step": ...}`` runs exactly
one step and yields the follow-up message, so a queue consumer can chain
steps one message at a time. ``{"retryStep": ...}`` retries a failed step.
"""
import logging
from typing import Any, Callable, Dict, Optional

from adlaunch.core.exceptions import OrchestrationError, RecordNotFound, ValidationError
from adlaunch.models.tracking import ProcessingStatus
from adlaunch.services import get_orchestrator
from adlaunch.services.orchestrator import CampaignOrchestrator

log = logging.getLogger("adlaunch.worker")

Message = Dict[str, Any]
OrchestratorFactory = Callable[[str], CampaignOrchestrator]


def _pending_step(orchestrator: CampaignOrchestrator, campaign_id: str) -> Optional[str]:
    try:
        status = orchestrator.get_status(campaign_id)
    except RecordNotFound:
        return orchestrator.steps[0].hint
    return status["next_step"] if status["is_ready_for_next_step"] else None


def _follow_up(campaign_id: str, platform: str, **fields) -> Message:
    return {"campaignId": campaign_id, "platform": platform, **fields}


def _on_failure(orchestrator: CampaignOrchestrator, campaign_id: str, platform: str, exc: OrchestrationError):
    if not exc.retryable:
        log.error(f"❌ [{campaign_id}/{platform}] {exc.code}: {exc.message} - needs manual intervention")
        return None

    status = orchestrator.get_status(campaign_id)
    if status["processing_status"] == ProcessingStatus.FAILED.value and status["retry_count"] < orchestrator.max_retries:
        log.warning(f"🔁 [{campaign_id}/{platform}] {exc.code}, scheduling retry of {status['failed_step']}")
        return _follow_up(campaign_id, platform, retryStep=status["failed_step"])

    log.error(f"❌ [{campaign_id}/{platform}] {exc.code}: {exc.message} - retries exhausted")
    return None


def process_message(message: Message, orchestrator_factory: OrchestratorFactory = None) -> Optional[Message]:
    """
    Run the step a message asks for and return the next message, or None
    when the campaign is launched or cannot progress without intervention.
    """
    campaign_id = message.get("campaignId")
    platform = message.get("platform")
    if not campaign_id or not platform:
        raise ValidationError("Message needs campaignId and platform", {"message": message})

    orchestrator = (orchestrator_factory or get_orchestrator)(platform)
    platform = orchestrator.platform

    try:
        if message.get("retryStep"):
            outcome = orchestrator.retry_step(campaign_id, message["retryStep"])
            next_step = outcome["nextStep"]
        else:
            step = message.get("step") or _pending_step(orchestrator, campaign_id)
            if step is None:
                log.info(f"[{campaign_id}/{platform}] Nothing to do")
                return None
            next_step = orchestrator.run_step(campaign_id, step).next_step
    except OrchestrationError as exc:
        return _on_failure(orchestrator, campaign_id, platform, exc)

    if next_step is None:
        log.info(f"🏁 [{campaign_id}/{platform}] Campaign provisioning finished")
        return None
    return _follow_up(campaign_id, platform, step=next_step)


def drive_campaign(campaign_id: str, platform: str, orchestrator_factory: OrchestratorFactory = None) -> Dict[str, Any]:
    """Run every remaining step for one campaign in-process and return its status"""
    factory = orchestrator_factory or get_orchestrator
    message: Optional[Message] = _follow_up(campaign_id, platform)
    while message is not None:
        log.debug(f"Processing message: {message}")
        message = process_message(message, factory)
    return factory(platform).get_status(campaign_id)
