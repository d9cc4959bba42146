"""Tests for WorkflowEngine lifecycle operations"""
import pytest

from govflow.domain.enums import (
    AuditEventType, DocumentState, HistoryAction, InstanceStatus, VoteType
)
from govflow.domain.errors import (
    AttachmentsRequiredError, CommentRequiredError, ConditionNotMetError,
    DefinitionNotFoundError, FieldValidationError, ForbiddenError,
    InstanceNotFoundError, InvalidStateError, InvalidTransitionError, InvariantViolationError
)
from govflow.domain.models import VotingRequired
from govflow.repositories.audit_repo import AuditRepository
from govflow.repositories.mongo_client import DEFINITIONS


# =============================================================================
# Start
# =============================================================================

class TestStartWorkflow:

    def test_start_creates_single_history_entry(self, start_instance, officer, definition):
        instance = start_instance()

        assert instance.current_state == "draft"
        assert instance.status == InstanceStatus.ACTIVE
        assert instance.version == 1
        assert instance.definition_version == definition.version
        assert instance.started_by == officer.upn
        assert len(instance.history) == 1
        assert instance.history[0].action == HistoryAction.STARTED
        assert instance.history[0].to_state == "draft"

    def test_start_writes_audit_event(self, start_instance):
        instance = start_instance()

        event = AuditRepository().get_by_idempotency_key(f"workflow_instance_{instance.instance_id}")
        assert event is not None
        assert event.event_type == AuditEventType.INSTANCE_STARTED.value
        assert event.payload["initial_state"] == "draft"

    def test_start_applies_field_defaults(self, create_definition, make_definition, start_instance):
        payload = make_definition()
        payload["fields"][3]["default_value"] = "medium"
        defn = create_definition(payload)

        instance = start_instance(definition_id=defn.definition_id)
        assert instance.field_values["priority"] == "medium"

    def test_start_reports_all_field_violations(self, start_instance):
        with pytest.raises(FieldValidationError) as exc_info:
            start_instance(fields={"amount": -5, "colour": "red"})

        fields = {v["field"] for v in exc_info.value.violations}
        assert fields == {"title", "amount", "colour"}

    def test_start_inactive_definition_fails(self, container, admin, definition, start_instance):
        container.definitions.deactivate(definition.definition_id, admin)

        with pytest.raises(DefinitionNotFoundError):
            start_instance()

    def test_start_unknown_definition_fails(self, start_instance):
        with pytest.raises(DefinitionNotFoundError):
            start_instance(definition_id="WFD-missing")

    def test_start_restricted_by_roles(self, create_definition, start_instance, officer, outsider):
        defn = create_definition(settings={"allowed_roles": ["ComplaintsOfficer"]})

        assert start_instance(actor=officer, definition_id=defn.definition_id).status == InstanceStatus.ACTIVE
        with pytest.raises(ForbiddenError):
            start_instance(actor=outsider, definition_id=defn.definition_id)

    def test_admin_may_always_start(self, create_definition, start_instance, admin):
        defn = create_definition(settings={"allowed_committees": ["SomeOtherCommittee"]})

        instance = start_instance(actor=admin, definition_id=defn.definition_id)
        assert instance.started_by == admin.upn


# =============================================================================
# Transitions
# =============================================================================

class TestExecuteTransition:

    def test_submit_moves_state_and_applies_local_actions(self, container, officer, start_instance):
        instance = start_instance()

        updated = container.engine.execute_transition(officer, instance.instance_id, "submit")

        assert updated.current_state == "review"
        assert updated.assigned_committee == "ReviewBoard"
        assert updated.version == 2
        assert updated.history[-1].action == HistoryAction.TRANSITION
        assert updated.history[-1].from_state == "draft"
        assert updated.history[-1].to_state == "review"

    def test_on_enter_notification_queued_after_write(self, container, in_review):
        pending = container.notifications.get_pending()

        queued = [n for n in pending if n.template == "review_started"]
        assert len(queued) == 1
        assert queued[0].notify_roles == ["Executive"]
        assert queued[0].payload["instance_id"] == in_review.instance_id

    def test_invalid_transition_leaves_instance_unchanged(self, container, officer, start_instance):
        instance = start_instance()

        with pytest.raises(InvalidTransitionError):
            container.engine.execute_transition(officer, instance.instance_id, "approve")

        stored = container.engine.get_instance(instance.instance_id)
        assert stored.current_state == "draft"
        assert stored.version == 1
        assert len(stored.history) == 1

    def test_unknown_transition_fails(self, container, officer, start_instance):
        instance = start_instance()

        with pytest.raises(InvalidTransitionError):
            container.engine.execute_transition(officer, instance.instance_id, "does-not-exist")

    def test_unknown_instance_fails(self, container, officer, definition):
        with pytest.raises(InstanceNotFoundError):
            container.engine.execute_transition(officer, "WFI-missing", "submit")

    def test_final_state_completes_instance(self, container, officer, document_service, start_instance):
        instance = start_instance()

        updated = container.engine.execute_transition(
            officer, instance.instance_id, "fast-track", attachments=["att-1", "att-2"]
        )

        assert updated.current_state == "approved"
        assert updated.status == InstanceStatus.COMPLETED
        assert updated.completed_at is not None
        assert document_service.calls == [("DOC-1", DocumentState.APPROVED, officer.upn)]

    def test_completed_instance_rejects_transitions(self, container, officer, start_instance):
        instance = start_instance()
        container.engine.execute_transition(officer, instance.instance_id, "fast-track", attachments=["a", "b"])

        with pytest.raises(InvalidStateError):
            container.engine.execute_transition(officer, instance.instance_id, "submit")

    def test_condition_not_met(self, container, officer, start_instance):
        instance = start_instance(fields={"title": "Capital plan", "amount": 5000})

        with pytest.raises(ConditionNotMetError):
            container.engine.execute_transition(
                officer, instance.instance_id, "fast-track", attachments=["a", "b"]
            )

    def test_attachments_required(self, container, officer, start_instance):
        instance = start_instance()

        with pytest.raises(AttachmentsRequiredError) as exc_info:
            container.engine.execute_transition(officer, instance.instance_id, "fast-track", attachments=["a"])
        assert exc_info.value.details["provided"] == 1

    def test_comment_required(self, container, officer, in_review):
        with pytest.raises(CommentRequiredError):
            container.engine.execute_transition(officer, in_review.instance_id, "reject")
        with pytest.raises(CommentRequiredError):
            container.engine.execute_transition(officer, in_review.instance_id, "reject", comment="   ")

        updated = container.engine.execute_transition(
            officer, in_review.instance_id, "reject", comment="Figures are incomplete"
        )
        assert updated.current_state == "rejected"
        assert updated.history[-1].comment == "Figures are incomplete"

    def test_reject_delivers_webhook(self, container, officer, webhook_client, in_review):
        container.engine.execute_transition(officer, in_review.instance_id, "reject", comment="No")

        assert len(webhook_client.calls) == 1
        url, payload = webhook_client.calls[0]
        assert url == "https://hooks.example.org/rejected"
        assert payload["source"] == "govflow"
        assert payload["instance_id"] == in_review.instance_id
        assert payload["current_state"] == "rejected"

    def test_access_level_required(self, container, officer, board_members, in_review):
        with pytest.raises(ForbiddenError):
            container.engine.execute_transition(board_members[0], in_review.instance_id, "approve")

        updated = container.engine.execute_transition(officer, in_review.instance_id, "approve")
        assert updated.status == InstanceStatus.COMPLETED

    def test_audit_action_writes_custom_event(self, container, officer, in_review):
        container.engine.execute_transition(officer, in_review.instance_id, "approve")

        events = AuditRepository().list_events(
            instance_id=in_review.instance_id, event_type=AuditEventType.CUSTOM_ACTION.value
        )
        assert len(events) == 1
        assert events[0].payload["message"] == "Approved by an executive"

    def test_vote_gated_transition_returns_voting_required(self, container, board_members, in_review):
        result = container.engine.execute_transition(board_members[0], in_review.instance_id, "board-approve")

        assert isinstance(result, VotingRequired)
        assert result.vote_type == VoteType.SIMPLE_MAJORITY
        assert result.vote is None
        assert container.engine.get_instance(in_review.instance_id).current_state == "review"

    def test_missing_target_state_moves_instance_to_error(self, container, officer, clock, mongo_db,
                                                          start_instance):
        instance = start_instance()
        mongo_db[DEFINITIONS].update_one(
            {"definition_id": instance.definition_id},
            {"$set": {"transitions.0.to_state": "ghost"}}
        )
        clock.advance(301)

        with pytest.raises(InvariantViolationError):
            container.engine.execute_transition(officer, instance.instance_id, "submit")

        stored = container.engine.get_instance(instance.instance_id)
        assert stored.status == InstanceStatus.ERROR
        assert stored.current_state == "draft"
        assert AuditRepository().count_events(AuditEventType.INSTANCE_ERROR.value, instance.instance_id) == 1

        with pytest.raises(InvalidStateError):
            container.engine.execute_transition(officer, instance.instance_id, "fast-track", attachments=["a", "b"])


class TestActionFailures:

    def test_failing_document_action_does_not_fail_transition(
        self, container, officer, document_service, start_instance
    ):
        document_service.fail = True
        instance = start_instance()

        updated = container.engine.execute_transition(
            officer, instance.instance_id, "fast-track", attachments=["a", "b"]
        )

        assert updated.status == InstanceStatus.COMPLETED
        assert AuditRepository().count_events(AuditEventType.ACTION_FAILED.value, instance.instance_id) == 1

    def test_document_action_without_doc_ref_is_recorded(self, container, officer, document_service, start_instance):
        instance = start_instance(doc_ref=None)

        updated = container.engine.execute_transition(
            officer, instance.instance_id, "fast-track", attachments=["a", "b"]
        )

        assert updated.current_state == "approved"
        assert document_service.calls == []
        assert AuditRepository().count_events(AuditEventType.ACTION_FAILED.value, instance.instance_id) == 1

    def test_failing_webhook_does_not_fail_transition(self, container, officer, webhook_client, in_review):
        webhook_client.fail = True

        updated = container.engine.execute_transition(officer, in_review.instance_id, "reject", comment="No")

        assert updated.current_state == "rejected"
        transitioned = AuditRepository().list_events(
            instance_id=in_review.instance_id, event_type=AuditEventType.INSTANCE_TRANSITIONED.value
        )
        results = transitioned[-1].payload["action_results"]
        assert {"action_type": "webhook", "phase": "transition", "success": False,
                "error": "Webhook returned 500"} in results

    def test_failing_action_does_not_stop_later_actions(
        self, container, officer, document_service, webhook_client, create_definition, make_definition,
        start_instance
    ):
        payload = make_definition()
        approved = next(s for s in payload["states"] if s["id"] == "approved")
        approved["on_enter"] = [
            {"type": "document", "document_state_change": "Approved"},
            {"type": "webhook", "webhook_url": "https://hooks.example.org/approved", "webhook_payload": {}},
        ]
        defn = create_definition(payload)
        instance = start_instance(definition_id=defn.definition_id)
        container.engine.execute_transition(officer, instance.instance_id, "submit")
        document_service.fail = True

        updated = container.engine.execute_transition(officer, instance.instance_id, "approve")

        assert updated.current_state == "approved"
        assert [url for url, _ in webhook_client.calls] == ["https://hooks.example.org/approved"]
        assert AuditRepository().count_events(AuditEventType.ACTION_FAILED.value, instance.instance_id) == 1


# =============================================================================
# Fields
# =============================================================================

class TestUpdateFieldValues:

    def test_update_records_history(self, container, officer, start_instance):
        instance = start_instance()

        updated = container.engine.update_field_values(officer, instance.instance_id, {"notes": "First draft"})

        assert updated.field_values["notes"] == "First draft"
        assert updated.version == 2
        entry = updated.history[-1]
        assert entry.action == HistoryAction.FIELD_UPDATE
        assert entry.field_name == "notes"
        assert entry.old_value is None
        assert entry.new_value == "First draft"

    def test_non_editable_field_rejected_and_unchanged(self, container, officer, in_review):
        with pytest.raises(FieldValidationError) as exc_info:
            container.engine.update_field_values(officer, in_review.instance_id, {"notes": "Too late"})

        assert exc_info.value.violations[0]["field"] == "notes"
        stored = container.engine.get_instance(in_review.instance_id)
        assert "notes" not in stored.field_values
        assert stored.version == in_review.version

    def test_all_violations_reported(self, container, officer, start_instance):
        instance = start_instance()

        with pytest.raises(FieldValidationError) as exc_info:
            container.engine.update_field_values(
                officer, instance.instance_id, {"amount": "lots", "priority": "urgent", "title": ""}
            )

        assert {v["field"] for v in exc_info.value.violations} == {"amount", "priority", "title"}
        assert container.engine.get_instance(instance.instance_id).field_values["amount"] == 500

    def test_unchanged_values_are_not_written(self, container, officer, start_instance):
        instance = start_instance()

        result = container.engine.update_field_values(officer, instance.instance_id, {"amount": 500})

        assert result.version == 1
        assert len(result.history) == 1

    def test_field_changed_automation(self, container, officer, create_definition, make_definition, start_instance):
        defn = create_definition(make_definition(automations=[
            {
                "id": "big-amount",
                "name": "Flag large amounts",
                "trigger": "fieldChanged",
                "trigger_field": "amount",
                "conditions": [{"type": "field", "field_name": "amount", "operator": "greaterThan", "value": 10000}],
                "actions": [{"type": "update_field", "field_name": "priority", "field_value": "high"}],
            }
        ]))
        instance = start_instance(definition_id=defn.definition_id)

        small = container.engine.update_field_values(officer, instance.instance_id, {"amount": 900})
        assert "priority" not in small.field_values

        large = container.engine.update_field_values(officer, instance.instance_id, {"amount": 25000})
        assert large.field_values["priority"] == "high"

    def test_restricted_definition_allows_assignee(self, container, create_definition, start_instance,
                                                   admin, outsider):
        defn = create_definition(settings={"allowed_roles": ["ComplaintsOfficer"]})
        instance = start_instance(actor=admin, definition_id=defn.definition_id)

        with pytest.raises(ForbiddenError):
            container.engine.update_field_values(outsider, instance.instance_id, {"notes": "x"})

        stored = container.engine.get_instance(instance.instance_id)
        stored.assigned_to = outsider.upn
        container.engine.instance_repo.save(stored, stored.version)

        updated = container.engine.update_field_values(outsider, instance.instance_id, {"notes": "x"})
        assert updated.field_values["notes"] == "x"


# =============================================================================
# Cancellation
# =============================================================================

class TestCancelInstance:

    def test_cancel_is_idempotent(self, container, officer, start_instance):
        instance = start_instance()

        cancelled = container.engine.cancel_instance(officer, instance.instance_id, "Raised in error")
        again = container.engine.cancel_instance(officer, instance.instance_id, "Second attempt")

        assert cancelled.status == InstanceStatus.CANCELLED
        assert again.version == cancelled.version
        assert len(again.history) == len(cancelled.history)
        assert cancelled.history[-1].action == HistoryAction.CANCEL
        assert AuditRepository().count_events(AuditEventType.INSTANCE_CANCELLED.value, instance.instance_id) == 1

    def test_cancel_completed_instance_is_noop(self, container, officer, start_instance):
        instance = start_instance()
        completed = container.engine.execute_transition(
            officer, instance.instance_id, "fast-track", attachments=["a", "b"]
        )

        result = container.engine.cancel_instance(officer, instance.instance_id)
        assert result.status == InstanceStatus.COMPLETED
        assert result.version == completed.version

    def test_cancel_permission(self, container, create_definition, start_instance, officer, outsider):
        defn = create_definition(settings={"allowed_roles": ["ComplaintsOfficer"]})
        instance = start_instance(actor=officer, definition_id=defn.definition_id)

        with pytest.raises(ForbiddenError):
            container.engine.cancel_instance(outsider, instance.instance_id)

    def test_starter_may_cancel(self, container, start_instance, outsider):
        instance = start_instance(actor=outsider)

        assert container.engine.cancel_instance(outsider, instance.instance_id).status == InstanceStatus.CANCELLED


# =============================================================================
# Reads
# =============================================================================

class TestReadOperations:

    def test_available_transitions_reflect_actor(self, container, board_members, officer, in_review):
        member_view = {t.transition_id: t for t in
                       container.engine.get_available_transitions(board_members[0], in_review.instance_id)}
        officer_view = {t.transition_id: t for t in
                        container.engine.get_available_transitions(officer, in_review.instance_id)}

        assert set(member_view) == {"approve", "reject", "board-approve"}
        assert member_view["approve"].allowed is False
        assert member_view["board-approve"].allowed is True
        assert member_view["board-approve"].requires_vote is True
        assert member_view["board-approve"].vote_type == VoteType.SIMPLE_MAJORITY
        assert officer_view["approve"].allowed is True
        assert officer_view["board-approve"].allowed is False
        assert officer_view["reject"].requires_comment is True

    def test_no_transitions_for_terminal_instance(self, container, officer, start_instance):
        instance = start_instance()
        container.engine.cancel_instance(officer, instance.instance_id)

        assert container.engine.get_available_transitions(officer, instance.instance_id) == []

    def test_visible_fields(self, container, in_review):
        fields = {f.field.name: f for f in container.engine.get_visible_fields(in_review.instance_id)}

        assert fields["title"].required is True
        assert fields["title"].value == "Annual report"
        assert fields["notes"].editable is False
        assert fields["amount"].editable is True

    def test_list_instances(self, container, admin, definition, start_instance):
        first = start_instance(doc_ref="DOC-7")
        start_instance(doc_ref="DOC-8")
        container.engine.cancel_instance(admin, first.instance_id)

        assert len(container.engine.list_instances(definition.definition_id)) == 2
        assert len(container.engine.list_instances(definition.definition_id, InstanceStatus.ACTIVE)) == 1
        assert [i.instance_id for i in container.engine.list_instances_for_document("DOC-7")] == [first.instance_id]

    def test_list_instances_for_committee(self, container, in_review, start_instance):
        start_instance()

        listed = container.engine.list_instances_for_committee("ReviewBoard")
        assert [i.instance_id for i in listed] == [in_review.instance_id]

