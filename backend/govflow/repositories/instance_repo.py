"""Instance Repository - Data access for workflow instances"""
from datetime import timedelta
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection, INSTANCES
from ..domain.models import WorkflowInstance
from ..domain.enums import InstanceStatus
from ..domain.errors import InstanceNotFoundError, ConcurrencyError, AlreadyExistsError
from ..config.settings import settings
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class InstanceRepository:
    """Repository for workflow instances with optimistic concurrency"""

    def __init__(self, retention_days: Optional[int] = None):
        self._instances: Collection = get_collection(INSTANCES)
        self._retention = timedelta(days=retention_days or settings.instance_retention_days)

    def create(self, instance: WorkflowInstance) -> WorkflowInstance:
        """Insert a new instance"""
        doc = self._to_doc(instance)
        doc["_id"] = instance.instance_id

        try:
            self._instances.insert_one(doc)
        except DuplicateKeyError:
            raise AlreadyExistsError(f"Instance {instance.instance_id} already exists")

        logger.info(
            f"Created instance: {instance.instance_id}",
            extra={"instance_id": instance.instance_id, "definition_id": instance.definition_id}
        )
        return instance

    def get(self, instance_id: str) -> Optional[WorkflowInstance]:
        """Get instance by ID"""
        doc = self._instances.find_one({"instance_id": instance_id})
        return self._to_model(doc) if doc else None

    def get_or_raise(self, instance_id: str) -> WorkflowInstance:
        """Get instance by ID or raise error"""
        instance = self.get(instance_id)
        if not instance:
            raise InstanceNotFoundError(f"Workflow instance {instance_id} not found")
        return instance

    def save(self, instance: WorkflowInstance, expected_version: int) -> WorkflowInstance:
        """
        Compare-and-swap write of the whole instance

        The write only applies if the stored version still equals
        expected_version; the stored version becomes expected_version + 1.

        Raises:
            ConcurrencyError: If the instance was modified since it was read
            InstanceNotFoundError: If the instance does not exist
        """
        instance.version = expected_version + 1
        instance.updated_at = utc_now()
        doc = self._to_doc(instance)

        result = self._instances.find_one_and_update(
            {"instance_id": instance.instance_id, "version": expected_version},
            {"$set": doc},
            return_document=ReturnDocument.AFTER
        )

        if result is None:
            instance.version = expected_version
            exists = self._instances.find_one({"instance_id": instance.instance_id})
            if exists:
                raise ConcurrencyError(
                    f"Instance {instance.instance_id} was modified concurrently",
                    details={
                        "expected_version": expected_version,
                        "current_version": exists.get("version")
                    }
                )
            raise InstanceNotFoundError(f"Workflow instance {instance.instance_id} not found")

        return self._to_model(result)

    def list_by_definition(
        self,
        definition_id: str,
        status: Optional[InstanceStatus] = None
    ) -> List[WorkflowInstance]:
        """List instances of a definition"""
        query: Dict[str, Any] = {"definition_id": definition_id}
        if status:
            query["status"] = status.value
        return self._find(query)

    def list_by_doc_ref(self, doc_ref: str) -> List[WorkflowInstance]:
        """List instances attached to a document"""
        return self._find({"doc_ref": doc_ref})

    def list_by_committee(
        self,
        committee: str,
        status: Optional[InstanceStatus] = None
    ) -> List[WorkflowInstance]:
        """List instances assigned to a committee"""
        query: Dict[str, Any] = {"assigned_committee": committee}
        if status:
            query["status"] = status.value
        return self._find(query)

    def list_active(self, limit: int = 500) -> List[WorkflowInstance]:
        """Active instances, oldest state entry first (SLA monitor)"""
        return self._find({"status": InstanceStatus.ACTIVE.value}, limit=limit)

    def _find(self, query: Dict[str, Any], limit: int = 0) -> List[WorkflowInstance]:
        cursor = self._instances.find(query).sort("started_at", ASCENDING)
        if limit:
            cursor = cursor.limit(limit)
        return [self._to_model(doc) for doc in cursor]

    def _to_doc(self, instance: WorkflowInstance) -> Dict[str, Any]:
        doc = instance.model_dump(mode="json")
        # Native datetime for the TTL index
        doc["expires_at"] = instance.updated_at + self._retention
        return doc

    def _to_model(self, doc: Dict[str, Any]) -> WorkflowInstance:
        doc.pop("_id", None)
        doc.pop("expires_at", None)
        return WorkflowInstance.model_validate(doc)
