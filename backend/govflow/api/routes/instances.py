"""Instance API Routes - Running workflows, transitions and votes"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from ..deps import get_container_dep, get_current_user_dep
from ...domain.models import (
    ActorContext, AvailableTransition, VisibleField, VotingRequired, WorkflowInstance, WorkflowVote
)
from ...domain.enums import InstanceStatus, VoteChoice
from ...domain.errors import ValidationError
from ...services.container import ServiceContainer
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================

class StartWorkflowRequest(BaseModel):
    """Request to start an instance"""
    definition_id: str
    field_values: Dict[str, Any] = Field(default_factory=dict)
    doc_ref: Optional[str] = None
    committee: Optional[str] = None


class ExecuteTransitionRequest(BaseModel):
    comment: Optional[str] = Field(None, max_length=5000)
    attachments: List[str] = Field(default_factory=list)


class UpdateFieldsRequest(BaseModel):
    field_values: Dict[str, Any]


class CancelInstanceRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class CastVoteRequest(BaseModel):
    choice: VoteChoice
    comment: Optional[str] = Field(None, max_length=5000)


# ============================================================================
# Instances
# ============================================================================

@router.post("", response_model=WorkflowInstance, status_code=status.HTTP_201_CREATED)
async def start_workflow(
    request: StartWorkflowRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    return container.engine.start_workflow(
        actor,
        request.definition_id,
        request.field_values,
        doc_ref=request.doc_ref,
        committee=request.committee
    )


@router.get("", response_model=List[WorkflowInstance])
async def list_instances(
    definition_id: Optional[str] = Query(None),
    doc_ref: Optional[str] = Query(None),
    committee: Optional[str] = Query(None),
    status: Optional[InstanceStatus] = Query(None),
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    """List instances by definition, document or committee"""
    if definition_id:
        return container.engine.list_instances(definition_id, status)
    if doc_ref:
        instances = container.engine.list_instances_for_document(doc_ref)
        return [i for i in instances if status is None or i.status == status]
    if committee:
        return container.engine.list_instances_for_committee(committee, status)
    raise ValidationError(
        "One of definition_id, doc_ref or committee is required",
        violations=[{"path": "query", "message": "No filter given"}]
    )


@router.get("/{instance_id}", response_model=WorkflowInstance)
async def get_instance(
    instance_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    return container.engine.get_instance(instance_id)


@router.get("/{instance_id}/transitions", response_model=List[AvailableTransition])
async def get_available_transitions(
    instance_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    return container.engine.get_available_transitions(actor, instance_id)


@router.post("/{instance_id}/transitions/{transition_id}")
async def execute_transition(
    instance_id: str,
    transition_id: str,
    request: ExecuteTransitionRequest,
    response: Response,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    """
    Execute a transition

    Vote-gated transitions are not executed here: the response is 202 with
    the transition's ballot box, and the transition runs when the vote passes.
    """
    result = container.engine.execute_transition(
        actor, instance_id, transition_id,
        comment=request.comment,
        attachments=request.attachments
    )
    if isinstance(result, VotingRequired):
        response.status_code = status.HTTP_202_ACCEPTED
    return result


@router.get("/{instance_id}/fields", response_model=List[VisibleField])
async def get_visible_fields(
    instance_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    return container.engine.get_visible_fields(instance_id)


@router.patch("/{instance_id}/fields", response_model=WorkflowInstance)
async def update_field_values(
    instance_id: str,
    request: UpdateFieldsRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    return container.engine.update_field_values(actor, instance_id, request.field_values)


@router.post("/{instance_id}/cancel", response_model=WorkflowInstance)
async def cancel_instance(
    instance_id: str,
    request: CancelInstanceRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    return container.engine.cancel_instance(actor, instance_id, request.reason)


# ============================================================================
# Votes
# ============================================================================

@router.get("/{instance_id}/votes", response_model=List[WorkflowVote])
async def list_votes(
    instance_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    container.engine.get_instance(instance_id)
    return container.engine.vote_repo.list_for_instance(instance_id)


@router.get("/{instance_id}/votes/{transition_id}", response_model=WorkflowVote)
async def get_vote(
    instance_id: str,
    transition_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    return container.votes.get_vote(instance_id, transition_id)


@router.post("/{instance_id}/votes/{transition_id}", response_model=WorkflowVote)
async def cast_vote(
    instance_id: str,
    transition_id: str,
    request: CastVoteRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    """Cast or replace the caller's ballot; a passing ballot executes the transition"""
    return container.votes.cast_vote(actor, instance_id, transition_id, request.choice, request.comment)
