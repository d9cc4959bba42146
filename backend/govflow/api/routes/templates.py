"""Template API Routes - Pre-built workflow templates"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from ..deps import get_container_dep, get_current_user_dep
from ...domain.models import ActorContext, WorkflowDefinition, WorkflowTemplate
from ...services.container import ServiceContainer

router = APIRouter()


class InstantiateTemplateRequest(BaseModel):
    """Request to create a definition from a template"""
    overrides: Dict[str, Any] = Field(default_factory=dict)


@router.get("", response_model=List[WorkflowTemplate])
async def list_templates(
    category: Optional[str] = Query(None),
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    return container.templates.list_templates(category)


@router.get("/{template_id}", response_model=WorkflowTemplate)
async def get_template(
    template_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    return container.templates.get_template(template_id)


@router.post("/{template_id}/instantiate", response_model=WorkflowDefinition, status_code=status.HTTP_201_CREATED)
async def instantiate_template(
    template_id: str,
    request: InstantiateTemplateRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    container: ServiceContainer = Depends(get_container_dep)
):
    return container.templates.instantiate_template(template_id, actor, request.overrides)
