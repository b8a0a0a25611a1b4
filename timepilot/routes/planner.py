"""
Planner API endpoints. Stateless: every request carries the tasks, settings,
commitments and plans it works on.
"""

import logging
from typing import List

from fastapi import APIRouter, Body, HTTPException

from ..exceptions import TimePilotError
from ..schemas import (
    AddTaskAssessment, CommitmentConflict, CommitmentConflictRequest, CommitmentSessionsRequest, FeasibilityRequest,
    FeasibilityResult, GeneratedSession, PlanRequest, PlanResult, RedistributeRequest, RedistributionResult,
    SettingsChangeRequest, SettingsChangeValidation
)
from ..services.commitment_sessions import generate_flexible_commitment_sessions
from ..services.study_plan_service import (
    assess_add_task_feasibility, check_commitment_conflicts, check_task_feasibility, generate_new_study_plan,
    generate_new_study_plan_with_preservation, redistribute_missed_sessions, validate_settings_change
)
from ..scheduling.utils.time_utils import resolve_today

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/generate", response_model=PlanResult)
def generate_plan(request: PlanRequest = Body(...)):
    """Generate a fresh study plan."""
    try:
        return generate_new_study_plan(request.tasks, request.settings, request.commitments,
                                       request.existing_plans, today=request.today)
    except TimePilotError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/generate-preserving", response_model=PlanResult)
def generate_plan_preserving(request: PlanRequest = Body(...)):
    """Generate a plan that keeps completed, skipped and manually moved sessions."""
    try:
        return generate_new_study_plan_with_preservation(request.tasks, request.settings, request.commitments,
                                                         request.existing_plans, today=request.today)
    except TimePilotError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/redistribute", response_model=RedistributionResult)
def redistribute(request: RedistributeRequest = Body(...)):
    """Move missed sessions into future slots."""
    try:
        return redistribute_missed_sessions(request.plans, request.tasks, request.settings, request.commitments,
                                            options=request.options, today=request.today)
    except TimePilotError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/feasibility", response_model=FeasibilityResult)
def feasibility(request: FeasibilityRequest = Body(...)):
    """Check a task draft before it is saved."""
    return check_task_feasibility(request.task, request.settings, request.tasks, request.plans,
                                  request.commitments, today=request.today)


@router.post("/assess-add-task", response_model=AddTaskAssessment)
def assess_add_task(request: FeasibilityRequest = Body(...)):
    """Trial-plan a new task against the current workload."""
    if request.task.estimated_hours <= 0:
        raise HTTPException(status_code=400, detail="Estimated hours must be greater than zero")
    try:
        return assess_add_task_feasibility(request.task, request.tasks, request.settings, request.commitments,
                                           request.plans, today=request.today)
    except TimePilotError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/commitment-sessions", response_model=List[GeneratedSession])
def commitment_sessions(request: CommitmentSessionsRequest = Body(...)):
    """Generate weekly sessions for a flexible commitment."""
    commitment = request.commitment
    if commitment.session_duration_range.min > commitment.session_duration_range.max:
        raise HTTPException(status_code=400, detail="Session duration minimum exceeds maximum")
    if not commitment.preferred_days or not commitment.preferred_time_ranges:
        raise HTTPException(status_code=400, detail="Flexible commitments need preferred days and time ranges")

    sessions = generate_flexible_commitment_sessions(commitment, request.settings, request.commitments,
                                                     request.plans, today=resolve_today(request.today))
    logger.debug("Generated %s commitment sessions", len(sessions), extra={"commitment_id": commitment.id})
    return sessions


@router.post("/validate-settings", response_model=SettingsChangeValidation)
def validate_settings(request: SettingsChangeRequest = Body(...)):
    """List manually rescheduled sessions that new settings would strand."""
    return validate_settings_change(request.old_settings, request.new_settings, request.plans)


@router.post("/commitment-conflicts", response_model=CommitmentConflict)
def commitment_conflicts(request: CommitmentConflictRequest = Body(...)):
    """Check a new or edited commitment against the existing ones."""
    return check_commitment_conflicts(request.commitment, request.commitments,
                                      exclude_commitment_id=request.exclude_commitment_id)
