"""Audit Repository - Data access for audit events"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection, AUDIT_EVENTS
from ..domain.models import AuditEvent
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AuditRepository:
    """Repository for audit event operations (append-only)"""

    def __init__(self):
        self._audit_events: Collection = get_collection(AUDIT_EVENTS)

    def create_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event

        Returns:
            False if an event with the same idempotency key already exists
        """
        doc = event.model_dump(mode="json")
        doc["_id"] = event.event_id

        try:
            self._audit_events.insert_one(doc)
        except DuplicateKeyError:
            logger.info(
                f"Duplicate audit event ignored: {event.idempotency_key}",
                extra={"action": event.event_type}
            )
            return False

        logger.info(
            f"Created audit event: {event.event_type}",
            extra={"action": event.event_type, "actor": event.actor}
        )
        return True

    def get_by_idempotency_key(self, idempotency_key: str) -> Optional[AuditEvent]:
        doc = self._audit_events.find_one({"idempotency_key": idempotency_key})
        if doc:
            doc.pop("_id", None)
            return AuditEvent.model_validate(doc)
        return None

    def list_events(
        self,
        instance_id: Optional[str] = None,
        event_type: Optional[str] = None,
        namespace: Optional[str] = None,
        limit: int = 200
    ) -> List[AuditEvent]:
        """List audit events, oldest first"""
        query: Dict[str, Any] = {}
        if instance_id:
            query["payload.instance_id"] = instance_id
        if event_type:
            query["event_type"] = event_type
        if namespace:
            query["namespace"] = namespace

        cursor = self._audit_events.find(query).sort("timestamp", ASCENDING).limit(limit)

        events = []
        for doc in cursor:
            doc.pop("_id", None)
            events.append(AuditEvent.model_validate(doc))
        return events

    def count_events(self, event_type: str, instance_id: Optional[str] = None) -> int:
        query: Dict[str, Any] = {"event_type": event_type}
        if instance_id:
            query["payload.instance_id"] = instance_id
        return self._audit_events.count_documents(query)
