"""Action Executor - Best-effort execution of configured workflow actions"""
from typing import Any, Dict, List, Sequence, Tuple, TYPE_CHECKING

from ..domain.models import (
    ActorContext, ActionResult, WorkflowDefinition, WorkflowInstance,
    NotifyAction, AssignAction, UpdateFieldAction, DocumentAction,
    WebhookAction, AuditAction, LOCAL_ACTION_TYPES
)
from ..domain.enums import ActionPhase, AuditEventType
from ..domain.errors import DomainError
from ..utils.logger import get_logger
from .audit_writer import AuditWriter

if TYPE_CHECKING:
    from ..services.notification_service import NotificationService
    from ..services.document_service import DocumentService
    from ..services.webhook_client import WebhookClient

logger = get_logger(__name__)

PhasedAction = Tuple[ActionPhase, Any]


def split_actions(phased: Sequence[PhasedAction]) -> Tuple[List[PhasedAction], List[PhasedAction]]:
    """Split into (local, external) keeping declaration order within each"""
    local = [(phase, action) for phase, action in phased if action.type in LOCAL_ACTION_TYPES]
    external = [(phase, action) for phase, action in phased if action.type not in LOCAL_ACTION_TYPES]
    return local, external


class ActionExecutor:
    """
    Executes the closed action vocabulary

    Local actions (assign, update_field) mutate the instance in memory and are
    persisted by the caller's compare-and-swap write. External actions
    (notify, document, webhook, audit) call collaborators and must only be
    dispatched after that write succeeded. A failing action never raises.
    """

    def __init__(
        self,
        notification_service: "NotificationService",
        document_service: "DocumentService",
        webhook_client: "WebhookClient",
        audit_writer: AuditWriter
    ):
        self.notifications = notification_service
        self.documents = document_service
        self.webhooks = webhook_client
        self.audit = audit_writer

    # =========================================================================
    # Local actions
    # =========================================================================

    def apply_local(
        self,
        phased: Sequence[PhasedAction],
        instance: WorkflowInstance
    ) -> List[ActionResult]:
        """Apply assign / update_field actions to the in-memory instance"""
        results = []
        for phase, action in phased:
            try:
                if isinstance(action, AssignAction):
                    if action.assign_to_user:
                        instance.assigned_to = action.assign_to_user
                    if action.assign_to_committee:
                        instance.assigned_committee = action.assign_to_committee
                elif isinstance(action, UpdateFieldAction):
                    instance.field_values[action.field_name] = action.field_value
                else:
                    raise ValueError(f"{action.type} is not a local action")
                results.append(ActionResult(action_type=action.type, phase=phase, success=True))
            except Exception as e:
                logger.error(
                    f"Local action {action.type} failed: {e}",
                    extra={"instance_id": instance.instance_id, "action": action.type}
                )
                results.append(ActionResult(action_type=action.type, phase=phase, success=False, error=str(e)))
        return results

    # =========================================================================
    # External actions
    # =========================================================================

    def dispatch(
        self,
        phased: Sequence[PhasedAction],
        instance: WorkflowInstance,
        definition: WorkflowDefinition,
        actor: ActorContext,
        event: str
    ) -> List[ActionResult]:
        """
        Run external actions in order after the state change committed

        Args:
            event: Short label of the triggering event, used in payloads and
                idempotency keys (e.g. "transition", "started")
        """
        results = []
        for index, (phase, action) in enumerate(phased):
            try:
                self._run_external(action, instance, definition, actor, event, index)
                results.append(ActionResult(action_type=action.type, phase=phase, success=True))
            except Exception as e:
                results.append(ActionResult(action_type=action.type, phase=phase, success=False, error=str(e)))
                self._record_failure(action.type, phase, e, instance, definition, actor, event, index)
        return results

    def _run_external(
        self,
        action,
        instance: WorkflowInstance,
        definition: WorkflowDefinition,
        actor: ActorContext,
        event: str,
        index: int
    ) -> None:
        if isinstance(action, NotifyAction):
            self.notifications.notify(
                roles=action.notify_roles,
                users=action.notify_users,
                committees=action.notify_committees,
                template=action.template or "workflow_update",
                payload={
                    **self._base_payload(instance, definition, event),
                    "message": action.message,
                    "actor": actor.upn,
                }
            )

        elif isinstance(action, DocumentAction):
            if not instance.doc_ref:
                raise ValueError("Instance has no document reference")
            self.documents.update_document_state(
                instance.doc_ref,
                action.document_state_change,
                actor.upn
            )

        elif isinstance(action, WebhookAction):
            payload = {**action.webhook_payload, **self._base_payload(instance, definition, event)}
            self.webhooks.post(action.webhook_url, payload)

        elif isinstance(action, AuditAction):
            self.audit.record_event(
                AuditEventType.CUSTOM_ACTION,
                actor.upn,
                {
                    "message": action.audit_message,
                    "severity": action.audit_severity.value,
                    **self._base_payload(instance, definition, event),
                },
                idempotency_key=f"workflow_action_{instance.instance_id}_{instance.version}_{event}_{index}",
                namespace=self.audit.namespace_for(definition)
            )

        else:
            raise ValueError(f"{action.type} is not an external action")

    def _record_failure(
        self,
        action_type: str,
        phase: ActionPhase,
        error: Exception,
        instance: WorkflowInstance,
        definition: WorkflowDefinition,
        actor: ActorContext,
        event: str,
        index: int
    ) -> None:
        error_code = error.error_code if isinstance(error, DomainError) else type(error).__name__
        logger.warning(
            f"Action {action_type} failed for {instance.instance_id}: {error}",
            extra={"instance_id": instance.instance_id, "action": action_type, "error_code": error_code}
        )
        try:
            self.audit.record_event(
                AuditEventType.ACTION_FAILED,
                actor.upn,
                {
                    **self._base_payload(instance, definition, event),
                    "action_type": action_type,
                    "phase": phase.value,
                    "error": str(error),
                    "error_code": error_code,
                },
                idempotency_key=f"workflow_action_failed_{instance.instance_id}_{instance.version}_{event}_{index}",
                namespace=self.audit.namespace_for(definition)
            )
        except Exception as e:
            logger.error(f"Failed to audit action failure: {e}", extra={"instance_id": instance.instance_id})

    @staticmethod
    def _base_payload(
        instance: WorkflowInstance,
        definition: WorkflowDefinition,
        event: str
    ) -> Dict[str, Any]:
        return {
            "instance_id": instance.instance_id,
            "definition_id": definition.definition_id,
            "definition_name": definition.name,
            "current_state": instance.current_state,
            "status": instance.status.value,
            "doc_ref": instance.doc_ref,
            "event": event,
        }
