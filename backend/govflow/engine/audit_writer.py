"""Audit Writer - Append-only, idempotent audit events"""
from typing import Any, Dict, Optional

from ..domain.models import AuditEvent, WorkflowDefinition
from ..domain.enums import AuditEventType
from ..repositories.audit_repo import AuditRepository
from ..config.settings import settings
from ..utils.idgen import generate_audit_event_id
from ..utils.time import utc_now
from ..utils.logger import get_logger, get_correlation_id

logger = get_logger(__name__)


class AuditWriter:
    """
    Write audit events (append-only)

    Every event carries an idempotency key; writing the same key twice is a
    no-op, so retried operations never produce duplicate events.
    """

    def __init__(self, repo: Optional[AuditRepository] = None, default_namespace: Optional[str] = None):
        self.repo = repo or AuditRepository()
        self.default_namespace = default_namespace or settings.audit_namespace

    def namespace_for(self, definition: Optional[WorkflowDefinition]) -> str:
        """Audit namespace of a definition (site collection override or default)"""
        if definition is not None and definition.settings.site_collection:
            return definition.settings.site_collection
        return self.default_namespace

    def record_event(
        self,
        event_type: AuditEventType,
        actor: str,
        payload: Dict[str, Any],
        idempotency_key: str,
        namespace: Optional[str] = None
    ) -> bool:
        """
        Write a single audit event

        Returns:
            False if the idempotency key was already recorded
        """
        event = AuditEvent(
            event_id=generate_audit_event_id(),
            event_type=event_type.value if isinstance(event_type, AuditEventType) else str(event_type),
            actor=actor,
            payload=payload,
            idempotency_key=idempotency_key,
            namespace=namespace or self.default_namespace,
            timestamp=utc_now(),
            correlation_id=get_correlation_id()
        )
        return self.repo.create_event(event)
