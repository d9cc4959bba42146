"""Routing API Routes - Workflow suggestions and auto-start"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..deps import get_container_dep, get_current_user_dep
from ...domain.models import ActorContext, RouterContext, WorkflowInstance, WorkflowSuggestion
from ...services.container import ServiceContainer

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================

class AutoStartRequest(BaseModel):
    """Context to route plus caller-supplied start fields"""
    context: RouterContext
    initial_fields: Dict[str, Any] = Field(default_factory=dict)


class RouteDocumentRequest(BaseModel):
    doc_ref: str
    document_type: str
    category: Optional[str] = None
    committee: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class RouteToCommitteeRequest(BaseModel):
    committee: str
    document_type: str
    doc_ref: Optional[str] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)


class AutoStartResponse(BaseModel):
    """started is False when no auto-start rule won"""
    started: bool
    instance: Optional[WorkflowInstance] = None


# ============================================================================
# Routes
# ============================================================================

@router.post("/suggest", response_model=List[WorkflowSuggestion])
async def suggest_workflows(
    context: RouterContext,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    return container.router.suggest(context)


@router.post("/auto-start", response_model=AutoStartResponse)
async def auto_start(
    request: AutoStartRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    instance = container.router.auto_start(actor, request.context, request.initial_fields)
    return AutoStartResponse(started=instance is not None, instance=instance)


@router.post("/documents", response_model=AutoStartResponse)
async def route_document(
    request: RouteDocumentRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    instance = container.router.route_document(
        actor,
        request.doc_ref,
        request.document_type,
        category=request.category,
        committee=request.committee,
        tags=request.tags
    )
    return AutoStartResponse(started=instance is not None, instance=instance)


@router.post("/committees", response_model=AutoStartResponse)
async def route_to_committee(
    request: RouteToCommitteeRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    instance = container.router.route_to_committee(
        actor,
        request.committee,
        request.document_type,
        doc_ref=request.doc_ref,
        custom_fields=request.custom_fields
    )
    return AutoStartResponse(started=instance is not None, instance=instance)
