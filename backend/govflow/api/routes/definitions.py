"""Definition API Routes - Workflow definition store"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query, status

from ..deps import get_container_dep, get_current_user_dep
from ...domain.models import ActorContext, ValidationReport, WorkflowDefinition
from ...services.container import ServiceContainer
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Routes
# ============================================================================

@router.post("", response_model=WorkflowDefinition, status_code=status.HTTP_201_CREATED)
async def create_definition(
    payload: Dict[str, Any],
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    """
    Create a workflow definition (administrators only)

    The body is validated as a whole; every problem is reported in
    error.details.violations.
    """
    return container.definitions.create(payload, actor)


@router.get("", response_model=List[WorkflowDefinition])
async def list_definitions(
    category: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    return container.definitions.list_definitions(category=category, is_active=is_active)


@router.post("/validate", response_model=ValidationReport)
async def validate_definition(
    payload: Dict[str, Any],
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    """Validate a definition without storing it"""
    return container.definitions.validate(payload)


@router.get("/{definition_id}", response_model=WorkflowDefinition)
async def get_definition(
    definition_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    return container.definitions.get(definition_id)


@router.post("/{definition_id}/versions", response_model=WorkflowDefinition, status_code=status.HTTP_201_CREATED)
async def publish_new_version(
    definition_id: str,
    payload: Dict[str, Any],
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    """Publish a new version; the superseded version is deactivated"""
    return container.definitions.publish_new_version(definition_id, payload, actor)


@router.post("/{definition_id}/deactivate", response_model=WorkflowDefinition)
async def deactivate_definition(
    definition_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    return container.definitions.deactivate(definition_id, actor)
