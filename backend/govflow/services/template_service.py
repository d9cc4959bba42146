"""Template Service - Instantiate pre-built workflow templates"""
from typing import Any, Dict, List, Optional

from ..domain.models import ActorContext, WorkflowDefinition, WorkflowTemplate
from ..domain.errors import TemplateNotFoundError
from ..templates import get_workflow_template, list_workflow_templates
from ..utils.logger import get_logger
from .definition_service import DefinitionService

logger = get_logger(__name__)


class TemplateService:
    """Service for workflow templates"""

    def __init__(self, definition_service: DefinitionService):
        self.definitions = definition_service

    def list_templates(self, category: Optional[str] = None) -> List[WorkflowTemplate]:
        return list_workflow_templates(category)

    def get_template(self, template_id: str) -> WorkflowTemplate:
        template = get_workflow_template(template_id)
        if template is None:
            raise TemplateNotFoundError(
                f"Workflow template {template_id} not found",
                details={"template_id": template_id}
            )
        return template

    def instantiate_template(
        self,
        template_id: str,
        actor: ActorContext,
        overrides: Optional[Dict[str, Any]] = None
    ) -> WorkflowDefinition:
        """
        Create a definition from a template

        Top-level definition keys in overrides replace the template's values;
        a settings override is merged into the template settings.
        """
        template = self.get_template(template_id)
        payload = template.definition.model_dump(mode="json")

        for key, value in (overrides or {}).items():
            if key == "settings" and isinstance(value, dict):
                payload["settings"] = {**payload["settings"], **value}
            else:
                payload[key] = value

        definition = self.definitions.create(payload, actor)
        logger.info(
            f"Instantiated template {template_id} as {definition.definition_id}",
            extra={"definition_id": definition.definition_id, "actor": actor.upn}
        )
        return definition
