# adlaunch/api/v1/campaigns.py
"""
Campaign provisioning routes - one route per step.

Routes are thin: every rule lives in the orchestrator, and errors are
rendered by the OrchestrationError handler in main.py.
"""
import logging

from fastapi import APIRouter, Depends, Query

from adlaunch.api.deps import get_orchestrator
from adlaunch.core.exceptions import UnknownStep
from adlaunch.schemas.tracking import RetryStepRequest, StatusResponse, StepResponse
from adlaunch.services.google_orchestrator import GoogleAdsCampaignOrchestrator
from adlaunch.services.meta_orchestrator import MetaCampaignOrchestrator
from adlaunch.services.orchestrator import CampaignOrchestrator, StepResult

log = logging.getLogger("adlaunch.api.campaigns")

router = APIRouter()


def to_response(result: StepResult) -> StepResponse:
    return StepResponse(
        success=True,
        message=result.message,
        current_step=result.status,
        next_step=result.next_step,
        data=result.data,
    )


def require_support(orchestrator: CampaignOrchestrator, cls: type, step: str):
    if not isinstance(orchestrator, cls):
        raise UnknownStep(
            f"{step} is not a step of {orchestrator.platform} campaigns",
            {"validSteps": [s.hint for s in orchestrator.steps]},
        )


# ────────────────────────────────────────────
# Steps
# ────────────────────────────────────────────

@router.post("/{platform}/{campaign_id}/initialize", response_model=StepResponse)
def initialize(campaign_id: str, orchestrator: CampaignOrchestrator = Depends(get_orchestrator)):
    """Create the tracking record and the paused campaign container"""
    log.info(f"📥 initialize {orchestrator.platform}/{campaign_id}")
    return to_response(orchestrator.initialize(campaign_id))


@router.post("/{platform}/{campaign_id}/create-targeting-units", response_model=StepResponse)
def create_targeting_units(campaign_id: str, orchestrator: CampaignOrchestrator = Depends(get_orchestrator)):
    log.info(f"📥 create-targeting-units {orchestrator.platform}/{campaign_id}")
    return to_response(orchestrator.create_targeting_units(campaign_id))


@router.post("/{platform}/{campaign_id}/create-creatives", response_model=StepResponse)
def create_creatives(campaign_id: str, orchestrator: CampaignOrchestrator = Depends(get_orchestrator)):
    require_support(orchestrator, MetaCampaignOrchestrator, "CREATE_CREATIVES")
    log.info(f"📥 create-creatives {orchestrator.platform}/{campaign_id}")
    return to_response(orchestrator.create_creatives(campaign_id))


@router.post("/{platform}/{campaign_id}/create-ads", response_model=StepResponse)
def create_ads(campaign_id: str, orchestrator: CampaignOrchestrator = Depends(get_orchestrator)):
    require_support(orchestrator, MetaCampaignOrchestrator, "CREATE_ADS")
    log.info(f"📥 create-ads {orchestrator.platform}/{campaign_id}")
    return to_response(orchestrator.create_ads(campaign_id))


@router.post("/{platform}/{campaign_id}/add-geo-targeting", response_model=StepResponse)
def add_geo_targeting(campaign_id: str, orchestrator: CampaignOrchestrator = Depends(get_orchestrator)):
    require_support(orchestrator, GoogleAdsCampaignOrchestrator, "ADD_GEO_TARGETING")
    log.info(f"📥 add-geo-targeting {orchestrator.platform}/{campaign_id}")
    return to_response(orchestrator.add_geo_targeting(campaign_id))


@router.post("/{platform}/{campaign_id}/launch", response_model=StepResponse)
def launch(
    campaign_id: str,
    force: bool = Query(False, description="Re-issue activation calls even if already launched"),
    orchestrator: CampaignOrchestrator = Depends(get_orchestrator),
):
    log.info(f"📥 launch {orchestrator.platform}/{campaign_id} (force={force})")
    return to_response(orchestrator.launch(campaign_id, force=force))


# ────────────────────────────────────────────
# Status and retry
# ────────────────────────────────────────────

@router.get("/{platform}/{campaign_id}/status", response_model=StatusResponse)
def get_status(campaign_id: str, orchestrator: CampaignOrchestrator = Depends(get_orchestrator)):
    return StatusResponse(**orchestrator.get_status(campaign_id))


@router.post("/{platform}/{campaign_id}/retry-step", response_model=StepResponse)
def retry_step(
    campaign_id: str,
    body: RetryStepRequest,
    orchestrator: CampaignOrchestrator = Depends(get_orchestrator),
):
    """Retry the step recorded as failed"""
    log.info(f"📥 retry-step {orchestrator.platform}/{campaign_id}: {body.step}")
    outcome = orchestrator.retry_step(campaign_id, body.step)
    status = orchestrator.get_status(campaign_id)
    return StepResponse(
        success=True,
        message=f"Retried {outcome['completedStep']}",
        current_step=status["processing_status"],
        next_step=outcome["nextStep"],
        data=outcome,
    )
