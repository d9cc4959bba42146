"""
Workflow Engine - The Brain of the System

This module contains the WorkflowEngine class that owns the lifecycle of
workflow instances: start, field updates, guarded transitions, cancellation,
automations and time signals.

=============================================================================
MODULE STRUCTURE
=============================================================================

1. INITIALIZATION
   - Constructor with repository, service and guard dependencies

2. START
   - start_workflow: create an instance in the initial state

3. TRANSITIONS
   - execute_transition: guarded state change, or VotingRequired
   - _apply_transition: in-memory state change applied inside the write

4. FIELDS & CANCELLATION
   - update_field_values: validated partial field update
   - cancel_instance: terminal, idempotent cancellation

5. AUTOMATIONS & TIME SIGNALS
   - record_vote: vote history entry and voteCast automations
   - run_automation: run one automation now
   - check_time_signals: SLA warning / breach and timeElapsed automations

6. READ OPERATIONS
   - get_instance, list_instances*, get_available_transitions, get_visible_fields

=============================================================================
CONCURRENCY
=============================================================================

Every mutating operation runs a read-validate-write cycle against a
version-stamped instance and retries the whole cycle on ConcurrencyError.
External actions (notify, document, webhook, audit) are only dispatched
after the write committed, so a retried cycle never repeats them.

=============================================================================
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar, Union, TYPE_CHECKING

from ..domain.models import (
    ActorContext, ActionResult, AvailableTransition, UserPermissions, VisibleField,
    VotingRequired, WorkflowAutomation, WorkflowDefinition, WorkflowHistoryEntry,
    WorkflowInstance, WorkflowState, WorkflowTransition, WorkflowVote
)
from ..domain.enums import (
    ActionPhase, AuditEventType, AutomationTrigger, HistoryAction, InstanceStatus,
    VoteChoice, VoteStatus
)
from ..domain.errors import (
    AttachmentsRequiredError, CommentRequiredError, ConcurrencyError, ConditionNotMetError,
    DefinitionNotFoundError, FieldValidationError, ForbiddenError, InvalidStateError,
    InvalidTransitionError, InvariantViolationError, NotFoundError
)
from ..repositories.instance_repo import InstanceRepository
from ..repositories.vote_repo import VoteRepository
from ..config.settings import settings
from ..utils.idgen import generate_instance_id, generate_history_entry_id
from ..utils.time import utc_now
from ..utils.logger import get_logger
from .action_executor import ActionExecutor, PhasedAction, split_actions
from .audit_writer import AuditWriter
from .condition_evaluator import ConditionEvaluator
from .field_validator import FieldValidator
from .permission_guard import PermissionGuard
from .sla_evaluator import (
    SLA_BREACH_SIGNAL, SLA_WARNING_SIGNAL, automation_signal, evaluate_sla
)

if TYPE_CHECKING:
    from ..services.access_control import AccessControlService
    from ..services.definition_service import DefinitionService
    from ..services.notification_service import NotificationService

logger = get_logger(__name__)

T = TypeVar("T")


class WorkflowEngine:
    """
    The Workflow Engine - Central orchestrator for instance operations

    Responsibilities:
    - Start instances from active definitions
    - Validate and apply transitions, deferring vote-gated ones
    - Enforce permissions via PermissionGuard
    - Run configured actions best-effort and write audit events
    - Ensure concurrency safety with version-stamped writes
    """

    # =========================================================================
    # 1. INITIALIZATION
    # =========================================================================

    def __init__(
        self,
        definition_service: "DefinitionService",
        access_control: "AccessControlService",
        action_executor: ActionExecutor,
        audit_writer: AuditWriter,
        notification_service: "NotificationService",
        instance_repo: Optional[InstanceRepository] = None,
        vote_repo: Optional[VoteRepository] = None,
        max_retries: Optional[int] = None
    ):
        self.definitions = definition_service
        self.access = access_control
        self.actions = action_executor
        self.audit = audit_writer
        self.notifications = notification_service
        self.instance_repo = instance_repo or InstanceRepository()
        self.vote_repo = vote_repo or VoteRepository()
        self.permission_guard = PermissionGuard()
        self.conditions = ConditionEvaluator()
        self.field_validator = FieldValidator()
        self.max_retries = max_retries or settings.max_concurrency_retries

    def with_retries(self, operation: str, instance_id: str, cycle: Callable[[], T]) -> T:
        """Run a read-validate-write cycle, retrying on version conflicts"""
        for attempt in range(1, self.max_retries + 1):
            try:
                return cycle()
            except ConcurrencyError:
                if attempt == self.max_retries:
                    logger.error(
                        f"{operation} gave up after {attempt} concurrent modifications",
                        extra={"instance_id": instance_id, "action": operation}
                    )
                    raise
                logger.warning(
                    f"{operation} hit a concurrent modification, retrying ({attempt}/{self.max_retries})",
                    extra={"instance_id": instance_id, "action": operation}
                )
        raise ConcurrencyError(f"{operation} could not be applied to {instance_id}")

    def _history(self, actor: ActorContext, action: HistoryAction, now: datetime, **kwargs) -> WorkflowHistoryEntry:
        return WorkflowHistoryEntry(
            entry_id=generate_history_entry_id(),
            timestamp=now,
            actor=actor.upn,
            action=action,
            **kwargs
        )

    def _permissions(self, actor: ActorContext) -> UserPermissions:
        return self.access.get_user_permissions(actor)

    # =========================================================================
    # 2. START
    # =========================================================================

    def start_workflow(
        self,
        actor: ActorContext,
        definition_id: str,
        initial_fields: Optional[Dict[str, Any]] = None,
        doc_ref: Optional[str] = None,
        committee: Optional[str] = None
    ) -> WorkflowInstance:
        """
        Start a new instance in the definition's initial state

        Raises:
            DefinitionNotFoundError: Definition missing or inactive
            InvariantViolationError: Definition has no single initial state
            ForbiddenError: Actor may not start this workflow
            FieldValidationError: Initial field values are invalid
        """
        definition = self.definitions.get(definition_id)
        if not definition.is_active:
            raise DefinitionNotFoundError(
                f"Workflow definition {definition_id} is not active",
                details={"definition_id": definition_id}
            )

        initial_state = definition.get_initial_state()
        if initial_state is None:
            logger.error(
                f"Definition {definition_id} has no single initial state",
                extra={"definition_id": definition_id}
            )
            raise InvariantViolationError(f"Workflow definition {definition_id} has no initial state")

        permissions = self._permissions(actor)
        if not self.permission_guard.can_start(permissions, definition.settings):
            raise ForbiddenError(
                "You are not allowed to start this workflow",
                details={"definition_id": definition_id}
            )

        field_values = {
            f.name: f.default_value for f in definition.fields if f.default_value is not None
        }
        field_values.update(initial_fields or {})

        violations = self.field_validator.validate_start(definition, initial_state.id, field_values)
        if violations:
            raise FieldValidationError("Invalid field values", violations=violations)

        now = utc_now()
        instance = WorkflowInstance(
            instance_id=generate_instance_id(),
            definition_id=definition.definition_id,
            definition_version=definition.version,
            current_state=initial_state.id,
            state_entered_at=now,
            doc_ref=doc_ref,
            field_values=field_values,
            assigned_committee=committee,
            history=[self._history(actor, HistoryAction.STARTED, now, to_state=initial_state.id)],
            status=InstanceStatus.ACTIVE,
            started_at=now,
            started_by=actor.upn,
            updated_at=now,
        )

        phased: List[PhasedAction] = [(ActionPhase.ON_ENTER, a) for a in initial_state.on_enter]
        phased += self._automation_actions(
            definition, instance, permissions, AutomationTrigger.STATE_ENTER, state_id=initial_state.id
        )
        local, external = split_actions(phased)
        results = self.actions.apply_local(local, instance)

        self.instance_repo.create(instance)
        logger.info(
            f"Started workflow instance {instance.instance_id}",
            extra={"instance_id": instance.instance_id, "definition_id": definition_id, "actor": actor.upn}
        )

        results += self.actions.dispatch(external, instance, definition, actor, "started")
        self.audit.record_event(
            AuditEventType.INSTANCE_STARTED,
            actor.upn,
            {
                "instance_id": instance.instance_id,
                "definition_id": definition.definition_id,
                "definition_version": definition.version,
                "initial_state": initial_state.id,
                "doc_ref": doc_ref,
                "committee": committee,
                "action_results": [r.model_dump(mode="json") for r in results],
            },
            idempotency_key=f"workflow_instance_{instance.instance_id}",
            namespace=self.audit.namespace_for(definition)
        )
        return instance

    # =========================================================================
    # 3. TRANSITIONS
    # =========================================================================

    def execute_transition(
        self,
        actor: ActorContext,
        instance_id: str,
        transition_id: str,
        comment: Optional[str] = None,
        attachments: Optional[List[str]] = None,
        vote_passed: bool = False
    ) -> Union[WorkflowInstance, VotingRequired]:
        """
        Execute a transition from the instance's current state

        Args:
            vote_passed: Set only by the vote tally when the transition's
                ballot box has just passed; skips the vote, comment and
                attachment requirements. A box that passed during the
                current visit to the source state has the same effect, so
                a transition whose automatic execution failed can be
                retried by calling this again.

        Returns:
            The updated instance, or VotingRequired for vote-gated transitions
        """
        attachments = list(attachments or [])

        def cycle() -> Union[WorkflowInstance, VotingRequired]:
            instance = self.instance_repo.get_or_raise(instance_id)
            if instance.status != InstanceStatus.ACTIVE:
                raise InvalidStateError(
                    f"Instance {instance_id} is {instance.status.value}",
                    details={"instance_id": instance_id, "status": instance.status.value}
                )

            definition = self.definitions.get(instance.definition_id)
            transition = self._find_transition(definition, instance, transition_id)

            permissions = self._permissions(actor)
            reason = self.permission_guard.check_transition(permissions, transition)
            if reason:
                raise ForbiddenError(reason, details={"transition_id": transition_id})

            now = utc_now()
            failing = self.conditions.first_failing(transition.conditions, instance, permissions, now)
            if failing is not None:
                raise ConditionNotMetError(
                    f"Condition not met: {self.conditions.describe(failing)}",
                    details={"transition_id": transition_id, "condition": failing.model_dump(mode="json")}
                )

            passed = vote_passed
            box = None
            if transition.requires_vote and not passed:
                box = self.vote_repo.get(instance_id, transition_id)
                # A box that passed in this state visit but whose transition never ran
                passed = self._box_passed_here(box, instance)

            transition_comment = comment
            if passed and not transition_comment:
                transition_comment = "Vote passed"

            if not passed:
                if transition.requires_comment and not (comment and comment.strip()):
                    raise CommentRequiredError(
                        f"Transition '{transition.label}' requires a comment",
                        details={"transition_id": transition_id}
                    )
                if transition.requires_attachments and len(attachments) < max(transition.min_attachments, 1):
                    raise AttachmentsRequiredError(
                        f"Transition '{transition.label}' requires at least "
                        f"{max(transition.min_attachments, 1)} attachment(s)",
                        details={"transition_id": transition_id, "provided": len(attachments)}
                    )
                if transition.requires_vote:
                    return VotingRequired(
                        instance_id=instance_id,
                        transition_id=transition_id,
                        vote_type=transition.effective_vote_type,
                        vote=box
                    )

            source = definition.get_state(instance.current_state)
            target = definition.get_state(transition.to_state)
            if source is None or target is None:
                self._mark_error(instance, definition, actor, f"Transition {transition_id} references a missing state")
                raise InvariantViolationError(
                    f"Definition {definition.definition_id} is corrupted: transition {transition_id} "
                    f"references a missing state",
                    details={"instance_id": instance_id, "transition_id": transition_id}
                )

            expected_version = instance.version
            local_results, external = self._apply_transition(
                instance, definition, permissions, source, target, transition, actor, transition_comment,
                attachments, now
            )
            saved = self.instance_repo.save(instance, expected_version)
            return self._after_transition(saved, definition, actor, source, target, transition, transition_comment,
                                          attachments, local_results, external)

        result = self.with_retries("execute_transition", instance_id, cycle)
        return result

    def _find_transition(
        self,
        definition: WorkflowDefinition,
        instance: WorkflowInstance,
        transition_id: str
    ) -> WorkflowTransition:
        transition = definition.get_transition(transition_id)
        if transition is None or transition.from_state != instance.current_state:
            raise InvalidTransitionError(
                f"Transition {transition_id} is not available from state '{instance.current_state}'",
                details={
                    "instance_id": instance.instance_id,
                    "transition_id": transition_id,
                    "current_state": instance.current_state
                }
            )
        return transition

    @staticmethod
    def _box_passed_here(box: Optional[WorkflowVote], instance: WorkflowInstance) -> bool:
        return (
            box is not None
            and box.status == VoteStatus.PASSED
            and box.state_entered_at == instance.state_entered_at
        )

    def _apply_transition(
        self,
        instance: WorkflowInstance,
        definition: WorkflowDefinition,
        permissions: UserPermissions,
        source: WorkflowState,
        target: WorkflowState,
        transition: WorkflowTransition,
        actor: ActorContext,
        comment: Optional[str],
        attachments: List[str],
        now: datetime
    ) -> Tuple[List[ActionResult], List[PhasedAction]]:
        """Mutate the in-memory instance; returns local results and pending external actions"""
        phased: List[PhasedAction] = [(ActionPhase.ON_EXIT, a) for a in source.on_exit]
        phased += self._automation_actions(
            definition, instance, permissions, AutomationTrigger.STATE_EXIT, state_id=source.id
        )
        phased += [(ActionPhase.TRANSITION, a) for a in transition.actions]
        local, external = split_actions(phased)
        results = self.actions.apply_local(local, instance)

        instance.current_state = target.id
        instance.state_entered_at = now
        instance.signals_fired = []
        instance.history.append(self._history(
            actor, HistoryAction.TRANSITION, now,
            from_state=source.id,
            to_state=target.id,
            transition_id=transition.id,
            comment=comment,
            attachments=attachments
        ))
        if target.is_final:
            instance.status = InstanceStatus.COMPLETED
            instance.completed_at = now

        entering: List[PhasedAction] = [(ActionPhase.ON_ENTER, a) for a in target.on_enter]
        entering += self._automation_actions(
            definition, instance, permissions, AutomationTrigger.STATE_ENTER, state_id=target.id
        )
        enter_local, enter_external = split_actions(entering)
        results += self.actions.apply_local(enter_local, instance)

        return results, external + enter_external

    def _after_transition(
        self,
        saved: WorkflowInstance,
        definition: WorkflowDefinition,
        actor: ActorContext,
        source: WorkflowState,
        target: WorkflowState,
        transition: WorkflowTransition,
        comment: Optional[str],
        attachments: List[str],
        results: List[ActionResult],
        external: List[PhasedAction]
    ) -> WorkflowInstance:
        logger.info(
            f"Instance {saved.instance_id} moved {source.id} -> {target.id}",
            extra={
                "instance_id": saved.instance_id,
                "transition_id": transition.id,
                "actor": actor.upn,
                "status": saved.status.value
            }
        )
        results = results + self.actions.dispatch(external, saved, definition, actor, "transition")
        self.audit.record_event(
            AuditEventType.INSTANCE_TRANSITIONED,
            actor.upn,
            {
                "instance_id": saved.instance_id,
                "definition_id": definition.definition_id,
                "transition_id": transition.id,
                "from_state": source.id,
                "to_state": target.id,
                "status": saved.status.value,
                "comment": comment,
                "attachments": attachments,
                "action_results": [r.model_dump(mode="json") for r in results],
            },
            idempotency_key=f"workflow_transition_{saved.instance_id}_{saved.version}",
            namespace=self.audit.namespace_for(definition)
        )
        return saved

    def _mark_error(
        self,
        instance: WorkflowInstance,
        definition: WorkflowDefinition,
        actor: ActorContext,
        reason: str
    ) -> None:
        """Move an instance whose definition is corrupted to error status"""
        logger.error(
            f"Instance {instance.instance_id} moved to error: {reason}",
            extra={"instance_id": instance.instance_id, "definition_id": definition.definition_id}
        )
        expected_version = instance.version
        instance.status = InstanceStatus.ERROR
        try:
            saved = self.instance_repo.save(instance, expected_version)
        except ConcurrencyError:
            logger.error(
                f"Could not mark {instance.instance_id} as error: concurrent modification",
                extra={"instance_id": instance.instance_id}
            )
            return
        self.audit.record_event(
            AuditEventType.INSTANCE_ERROR,
            actor.upn,
            {"instance_id": saved.instance_id, "definition_id": definition.definition_id, "reason": reason},
            idempotency_key=f"workflow_error_{saved.instance_id}_{saved.version}",
            namespace=self.audit.namespace_for(definition)
        )

    # =========================================================================
    # 4. FIELDS & CANCELLATION
    # =========================================================================

    def update_field_values(
        self,
        actor: ActorContext,
        instance_id: str,
        field_updates: Dict[str, Any]
    ) -> WorkflowInstance:
        """
        Validate and apply a partial field update

        All violations are reported together and nothing is written if any
        field is invalid.
        """

        def cycle() -> WorkflowInstance:
            instance = self.instance_repo.get_or_raise(instance_id)
            if instance.status != InstanceStatus.ACTIVE:
                raise InvalidStateError(
                    f"Instance {instance_id} is {instance.status.value}",
                    details={"instance_id": instance_id, "status": instance.status.value}
                )

            definition = self.definitions.get(instance.definition_id)
            permissions = self._permissions(actor)
            if not self.permission_guard.can_update_fields(actor, permissions, instance, definition):
                raise ForbiddenError(
                    "You are not allowed to update fields on this instance",
                    details={"instance_id": instance_id}
                )

            violations = self.field_validator.validate_update(
                definition, instance.current_state, field_updates
            )
            if violations:
                raise FieldValidationError("Invalid field values", violations=violations)

            changed = [
                name for name, value in field_updates.items()
                if instance.field_values.get(name) != value
            ]
            if not changed:
                return instance

            now = utc_now()
            expected_version = instance.version
            for name in changed:
                instance.history.append(self._history(
                    actor, HistoryAction.FIELD_UPDATE, now,
                    field_name=name,
                    old_value=instance.field_values.get(name),
                    new_value=field_updates[name]
                ))
                instance.field_values[name] = field_updates[name]

            phased: List[PhasedAction] = []
            for name in changed:
                phased += self._automation_actions(
                    definition, instance, permissions, AutomationTrigger.FIELD_CHANGED, field_name=name
                )
            local, external = split_actions(phased)
            results = self.actions.apply_local(local, instance)

            saved = self.instance_repo.save(instance, expected_version)
            logger.info(
                f"Updated {len(changed)} field(s) on {instance_id}",
                extra={"instance_id": instance_id, "actor": actor.upn}
            )

            results += self.actions.dispatch(external, saved, definition, actor, "fields_updated")
            self.audit.record_event(
                AuditEventType.INSTANCE_FIELDS_UPDATED,
                actor.upn,
                {
                    "instance_id": instance_id,
                    "definition_id": definition.definition_id,
                    "fields": changed,
                    "action_results": [r.model_dump(mode="json") for r in results],
                },
                idempotency_key=f"workflow_fields_{instance_id}_{saved.version}",
                namespace=self.audit.namespace_for(definition)
            )
            return saved

        return self.with_retries("update_field_values", instance_id, cycle)

    def cancel_instance(
        self,
        actor: ActorContext,
        instance_id: str,
        reason: Optional[str] = None
    ) -> WorkflowInstance:
        """Cancel an instance; a terminal instance is returned unchanged"""

        def cycle() -> WorkflowInstance:
            instance = self.instance_repo.get_or_raise(instance_id)
            if instance.status.is_terminal:
                return instance

            definition = self.definitions.get(instance.definition_id)
            permissions = self._permissions(actor)
            if not self.permission_guard.can_cancel(actor, permissions, instance, definition):
                raise ForbiddenError(
                    "You are not allowed to cancel this instance",
                    details={"instance_id": instance_id}
                )

            now = utc_now()
            expected_version = instance.version
            instance.status = InstanceStatus.CANCELLED
            instance.completed_at = now
            instance.history.append(self._history(
                actor, HistoryAction.CANCEL, now,
                from_state=instance.current_state,
                comment=reason
            ))
            saved = self.instance_repo.save(instance, expected_version)
            logger.info(
                f"Cancelled instance {instance_id}",
                extra={"instance_id": instance_id, "actor": actor.upn}
            )

            self.audit.record_event(
                AuditEventType.INSTANCE_CANCELLED,
                actor.upn,
                {
                    "instance_id": instance_id,
                    "definition_id": definition.definition_id,
                    "state": saved.current_state,
                    "reason": reason,
                },
                idempotency_key=f"workflow_cancel_{instance_id}",
                namespace=self.audit.namespace_for(definition)
            )
            return saved

        return self.with_retries("cancel_instance", instance_id, cycle)

    # =========================================================================
    # 5. AUTOMATIONS & TIME SIGNALS
    # =========================================================================

    def _automation_actions(
        self,
        definition: WorkflowDefinition,
        instance: WorkflowInstance,
        permissions: UserPermissions,
        trigger: AutomationTrigger,
        state_id: Optional[str] = None,
        field_name: Optional[str] = None
    ) -> List[PhasedAction]:
        """Actions of event automations that match the trigger and whose conditions hold"""
        phased: List[PhasedAction] = []
        for automation in definition.automations:
            if automation.trigger != trigger:
                continue
            if state_id is not None and automation.trigger_state and automation.trigger_state != state_id:
                continue
            if field_name is not None and automation.trigger_field != field_name:
                continue
            if self.conditions.first_failing(automation.conditions, instance, permissions) is not None:
                continue
            logger.info(
                f"Automation {automation.id} triggered by {trigger.value}",
                extra={"instance_id": instance.instance_id, "action": automation.id}
            )
            phased += [(ActionPhase.AUTOMATION, a) for a in automation.actions]
        return phased

    def record_vote(
        self,
        actor: ActorContext,
        instance_id: str,
        transition_id: str,
        choice: VoteChoice,
        comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> WorkflowInstance:
        """Append a vote history entry and run voteCast automations"""

        def cycle() -> WorkflowInstance:
            instance = self.instance_repo.get_or_raise(instance_id)
            definition = self.definitions.get(instance.definition_id)
            permissions = self._permissions(actor)

            now = utc_now()
            expected_version = instance.version
            instance.history.append(self._history(
                actor, HistoryAction.VOTE, now,
                transition_id=transition_id,
                vote_choice=choice,
                comment=comment,
                metadata=metadata or {}
            ))
            phased = self._automation_actions(
                definition, instance, permissions, AutomationTrigger.VOTE_CAST,
                state_id=instance.current_state
            )
            local, external = split_actions(phased)
            self.actions.apply_local(local, instance)
            saved = self.instance_repo.save(instance, expected_version)
            self.actions.dispatch(external, saved, definition, actor, "vote_cast")
            return saved

        return self.with_retries("record_vote", instance_id, cycle)

    def run_automation(
        self,
        actor: ActorContext,
        instance_id: str,
        automation_id: str,
        mark_fired: bool = False
    ) -> WorkflowInstance:
        """
        Run one automation against an active instance now

        Args:
            mark_fired: Record the automation as fired for the current state
                entry (used for timeElapsed automations)
        """

        def cycle() -> WorkflowInstance:
            instance = self.instance_repo.get_or_raise(instance_id)
            if instance.status != InstanceStatus.ACTIVE:
                raise InvalidStateError(
                    f"Instance {instance_id} is {instance.status.value}",
                    details={"instance_id": instance_id, "status": instance.status.value}
                )

            definition = self.definitions.get(instance.definition_id)
            automation = self._find_automation(definition, automation_id)
            signal = automation_signal(automation.id)
            if mark_fired and signal in instance.signals_fired:
                return instance

            permissions = self._permissions(actor)
            if self.conditions.first_failing(automation.conditions, instance, permissions) is not None:
                logger.info(
                    f"Automation {automation_id} skipped: conditions not met",
                    extra={"instance_id": instance_id, "action": automation_id}
                )
                if not mark_fired:
                    return instance
                phased: List[PhasedAction] = []
            else:
                phased = [(ActionPhase.AUTOMATION, a) for a in automation.actions]

            now = utc_now()
            expected_version = instance.version
            local, external = split_actions(phased)
            results = self.actions.apply_local(local, instance)
            if mark_fired:
                instance.signals_fired.append(signal)
            if phased:
                instance.history.append(self._history(
                    actor, HistoryAction.AUTOMATION, now,
                    metadata={"automation_id": automation.id, "trigger": automation.trigger.value}
                ))
            saved = self.instance_repo.save(instance, expected_version)
            results += self.actions.dispatch(external, saved, definition, actor, f"automation_{automation.id}")
            logger.info(
                f"Automation {automation_id} ran on {instance_id}",
                extra={"instance_id": instance_id, "action": automation_id}
            )
            return saved

        return self.with_retries("run_automation", instance_id, cycle)

    @staticmethod
    def _find_automation(definition: WorkflowDefinition, automation_id: str) -> WorkflowAutomation:
        for automation in definition.automations:
            if automation.id == automation_id:
                return automation
        raise NotFoundError(
            f"Automation {automation_id} not found in definition {definition.definition_id}",
            details={"automation_id": automation_id}
        )

    def check_time_signals(self, instance_id: str, now: Optional[datetime] = None) -> List[str]:
        """
        Fire due SLA warnings, breaches and timeElapsed automations

        Each signal fires at most once per state entry.

        Returns:
            Signals fired by this call
        """
        actor = ActorContext.system()

        def cycle() -> Tuple[List[str], Optional[WorkflowInstance], Optional[WorkflowDefinition], Any]:
            instance = self.instance_repo.get_or_raise(instance_id)
            if instance.status != InstanceStatus.ACTIVE:
                return [], None, None, None
            definition = self.definitions.get(instance.definition_id)
            evaluation = evaluate_sla(instance, definition, now)

            signals = []
            if evaluation.warning_due:
                signals.append(SLA_WARNING_SIGNAL)
            if evaluation.breach_due:
                signals.append(SLA_BREACH_SIGNAL)
            if not signals:
                return [], instance, definition, evaluation

            expected_version = instance.version
            instance.signals_fired.extend(signals)
            saved = self.instance_repo.save(instance, expected_version)
            return signals, saved, definition, evaluation

        signals, instance, definition, evaluation = self.with_retries("check_time_signals", instance_id, cycle)
        if instance is None:
            return []

        if SLA_WARNING_SIGNAL in signals:
            self._notify_sla(instance, definition, evaluation, breached=False)
        if SLA_BREACH_SIGNAL in signals:
            self._notify_sla(instance, definition, evaluation, breached=True)

        fired = list(signals)
        for automation in evaluation.due_automations:
            try:
                self.run_automation(actor, instance_id, automation.id, mark_fired=True)
                fired.append(automation_signal(automation.id))
            except (InvalidStateError, NotFoundError) as e:
                logger.warning(
                    f"Time automation {automation.id} not run: {e}",
                    extra={"instance_id": instance_id, "action": automation.id}
                )
        return fired

    def _notify_sla(
        self,
        instance: WorkflowInstance,
        definition: WorkflowDefinition,
        evaluation,
        breached: bool
    ) -> None:
        roles = [evaluation.escalate_to] if breached and evaluation.escalate_to else []
        payload = {
            "instance_id": instance.instance_id,
            "definition_id": definition.definition_id,
            "definition_name": definition.name,
            "state": evaluation.state_id,
            "hours_in_state": round(evaluation.hours_in_state, 2),
        }
        try:
            self.notifications.notify(
                roles=roles,
                users=[instance.assigned_to] if instance.assigned_to else [],
                committees=[instance.assigned_committee] if instance.assigned_committee else [],
                template="workflow_sla_breached" if breached else "workflow_sla_warning",
                payload=payload
            )
        except Exception as e:
            logger.error(f"SLA notification failed: {e}", extra={"instance_id": instance.instance_id})

        event_type = AuditEventType.SLA_BREACHED if breached else AuditEventType.SLA_WARNING
        self.audit.record_event(
            event_type,
            ActorContext.system().upn,
            {**payload, "escalate_to": evaluation.escalate_to},
            idempotency_key=(
                f"workflow_sla_{'breach' if breached else 'warning'}_{instance.instance_id}_"
                f"{instance.state_entered_at.isoformat()}"
            ),
            namespace=self.audit.namespace_for(definition)
        )
        log = logger.warning if breached else logger.info
        log(
            f"SLA {'breached' if breached else 'warning'} for {instance.instance_id} in {evaluation.state_id}",
            extra={"instance_id": instance.instance_id, "status": "breached" if breached else "warning"}
        )

    # =========================================================================
    # 6. READ OPERATIONS
    # =========================================================================

    def get_instance(self, instance_id: str) -> WorkflowInstance:
        return self.instance_repo.get_or_raise(instance_id)

    def list_instances(
        self,
        definition_id: str,
        status: Optional[InstanceStatus] = None
    ) -> List[WorkflowInstance]:
        return self.instance_repo.list_by_definition(definition_id, status)

    def list_instances_for_document(self, doc_ref: str) -> List[WorkflowInstance]:
        return self.instance_repo.list_by_doc_ref(doc_ref)

    def list_instances_for_committee(
        self,
        committee: str,
        status: Optional[InstanceStatus] = None
    ) -> List[WorkflowInstance]:
        return self.instance_repo.list_by_committee(committee, status)

    def get_available_transitions(
        self,
        actor: ActorContext,
        instance_id: str
    ) -> List[AvailableTransition]:
        """Transitions from the current state with the actor's eligibility"""
        instance = self.instance_repo.get_or_raise(instance_id)
        if instance.status != InstanceStatus.ACTIVE:
            return []

        definition = self.definitions.get(instance.definition_id)
        permissions = self._permissions(actor)
        now = utc_now()

        available = []
        for transition in definition.transitions_from(instance.current_state):
            reason = self.permission_guard.check_transition(permissions, transition)
            if reason is None:
                failing = self.conditions.first_failing(transition.conditions, instance, permissions, now)
                if failing is not None:
                    reason = f"Condition not met: {self.conditions.describe(failing)}"
            available.append(AvailableTransition(
                transition_id=transition.id,
                label=transition.label,
                to_state=transition.to_state,
                allowed=reason is None,
                reason=reason,
                requires_comment=transition.requires_comment,
                requires_vote=transition.requires_vote,
                vote_type=transition.effective_vote_type if transition.requires_vote else None,
                requires_attachments=transition.requires_attachments,
                min_attachments=transition.min_attachments if transition.requires_attachments else 0,
                confirmation_message=transition.confirmation_message
            ))
        return available

    def get_visible_fields(self, instance_id: str) -> List[VisibleField]:
        """Fields visible in the current state, with editability and required-ness"""
        instance = self.instance_repo.get_or_raise(instance_id)
        definition = self.definitions.get(instance.definition_id)
        state_id = instance.current_state
        active = instance.status == InstanceStatus.ACTIVE

        return [
            VisibleField(
                field=field,
                value=instance.field_values.get(field.name),
                editable=active and field.is_editable_in(state_id),
                required=field.is_required_in(state_id)
            )
            for field in definition.fields
            if field.is_visible_in(state_id)
        ]

