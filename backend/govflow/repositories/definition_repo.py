"""Definition Repository - Data access for workflow definitions"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError
from pydantic import ValidationError

from .mongo_client import get_collection, DEFINITIONS
from ..domain.models import WorkflowDefinition
from ..domain.errors import DefinitionNotFoundError, AlreadyExistsError
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class DefinitionRepository:
    """Repository for workflow definitions (insert-only versions)"""

    def __init__(self):
        self._definitions: Collection = get_collection(DEFINITIONS)

    def create(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        """Store a new definition version"""
        doc = definition.model_dump(mode="json")
        doc["_id"] = definition.definition_id

        try:
            self._definitions.insert_one(doc)
        except DuplicateKeyError:
            raise AlreadyExistsError(f"Definition {definition.definition_id} already exists")

        logger.info(
            f"Stored definition: {definition.definition_id} v{definition.version}",
            extra={"definition_id": definition.definition_id}
        )
        return definition

    def get(self, definition_id: str) -> Optional[WorkflowDefinition]:
        """Get definition by ID (active or not)"""
        doc = self._definitions.find_one({"definition_id": definition_id})
        return self._to_model(doc) if doc else None

    def get_or_raise(self, definition_id: str) -> WorkflowDefinition:
        """Get definition by ID or raise error"""
        definition = self.get(definition_id)
        if not definition:
            raise DefinitionNotFoundError(f"Workflow definition {definition_id} not found")
        return definition

    def get_latest_in_lineage(self, lineage_id: str) -> Optional[WorkflowDefinition]:
        """Get the highest version of a lineage"""
        doc = self._definitions.find_one({"lineage_id": lineage_id}, sort=[("version", DESCENDING)])
        return self._to_model(doc) if doc else None

    def list_definitions(
        self,
        category: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> List[WorkflowDefinition]:
        """List definitions in creation order. Corrupted records are skipped."""
        query: Dict[str, Any] = {}
        if category:
            query["category"] = category
        if is_active is not None:
            query["is_active"] = is_active

        definitions = []
        for doc in self._definitions.find(query):
            definition = self._to_model(doc)
            if definition:
                definitions.append(definition)

        # Stable sort keeps store order for equal timestamps
        definitions.sort(key=lambda d: d.created_at)
        return definitions

    def set_active(self, definition_id: str, is_active: bool) -> WorkflowDefinition:
        """Flip the soft-deactivation flag"""
        result = self._definitions.update_one(
            {"definition_id": definition_id},
            {"$set": {"is_active": is_active, "updated_at": utc_now().isoformat()}}
        )
        if result.matched_count == 0:
            raise DefinitionNotFoundError(f"Workflow definition {definition_id} not found")

        logger.info(
            f"Definition {definition_id} is_active={is_active}",
            extra={"definition_id": definition_id}
        )
        return self.get_or_raise(definition_id)

    def _to_model(self, doc: Dict[str, Any]) -> Optional[WorkflowDefinition]:
        doc.pop("_id", None)
        try:
            return WorkflowDefinition.model_validate(doc)
        except ValidationError as e:
            definition_id = doc.get("definition_id", "unknown")
            logger.error(
                f"Corrupted definition data for {definition_id}: {str(e)[:500]}",
                extra={"definition_id": definition_id}
            )
            return None
