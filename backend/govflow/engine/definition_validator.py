"""Definition Validator - Structural checks for workflow definitions"""
import re
from collections import Counter, deque
from typing import Any, Dict, Iterable, List, Set

from ..domain.models import (
    WorkflowDefinitionCreate, ValidationReport, FieldCondition, UpdateFieldAction
)
from ..domain.enums import AutomationTrigger, FieldType
from .condition_evaluator import is_empty
from .field_validator import FieldValidator


class DefinitionValidator:
    """
    Validates a definition payload and reports every problem found

    Errors block storage; warnings are informational.
    """

    def __init__(self, field_validator: FieldValidator = None):
        self._fields = field_validator or FieldValidator()

    def validate(self, definition: WorkflowDefinitionCreate) -> ValidationReport:
        errors: List[Dict[str, Any]] = []
        warnings: List[str] = []

        def error(path: str, message: str) -> None:
            errors.append({"path": path, "message": message})

        state_ids = [s.id for s in definition.states]
        known_states = set(state_ids)
        field_names = {f.name for f in definition.fields}

        # States
        if not definition.states:
            error("states", "Workflow must have at least one state")
        initial = [s.id for s in definition.states if s.is_initial]
        if definition.states and len(initial) != 1:
            error("states", f"Workflow must have exactly one initial state, found {len(initial)}")
        if definition.states and not any(s.is_final for s in definition.states):
            error("states", "Workflow must have at least one final state")

        for kind, ids in (
            ("states", state_ids),
            ("transitions", [t.id for t in definition.transitions]),
            ("fields", [f.name for f in definition.fields]),
            ("assignment_rules", [r.id for r in definition.assignment_rules]),
            ("automations", [a.id for a in definition.automations]),
        ):
            for duplicate in sorted(self._duplicates(ids)):
                error(kind, f"Duplicate id in {kind}: {duplicate}")

        for state in definition.states:
            path = f"states.{state.id}"
            if state.sla and state.sla.warning_at_hours is not None:
                if state.sla.warning_at_hours >= state.sla.max_duration_hours:
                    error(f"{path}.sla", "warning_at_hours must be less than max_duration_hours")
            self._check_actions(state.on_enter, f"{path}.on_enter", field_names, error)
            self._check_actions(state.on_exit, f"{path}.on_exit", field_names, error)

        # Transitions
        for transition in definition.transitions:
            path = f"transitions.{transition.id}"
            if transition.from_state not in known_states:
                error(f"{path}.from_state", f"Transition references unknown state: {transition.from_state}")
            if transition.to_state not in known_states:
                error(f"{path}.to_state", f"Transition references unknown state: {transition.to_state}")
            if transition.requires_vote and transition.vote_type is None:
                warnings.append(f"Transition {transition.id} requires a vote but has no vote_type; simple-majority is used")
            self._check_conditions(transition.conditions, f"{path}.conditions", field_names, error)
            self._check_actions(transition.actions, f"{path}.actions", field_names, error)

        final_states = {s.id for s in definition.states if s.is_final}
        for transition in definition.transitions:
            if transition.from_state in final_states:
                warnings.append(f"Transition {transition.id} leaves final state {transition.from_state}")

        if len(initial) == 1:
            reachable = self._reachable(initial[0], definition.transitions)
            for state_id in state_ids:
                if state_id not in reachable:
                    warnings.append(f"State {state_id} is unreachable from the initial state")

        # Fields
        for field in definition.fields:
            path = f"fields.{field.name}"
            for attr in ("visible_in_states", "editable_in_states", "required_in_states"):
                for state_id in getattr(field, attr):
                    if state_id not in known_states:
                        error(f"{path}.{attr}", f"Field references unknown state: {state_id}")
            if field.validation and field.validation.pattern:
                try:
                    re.compile(field.validation.pattern)
                except re.error as e:
                    error(f"{path}.validation.pattern", f"Invalid pattern: {e}")
            if field.type in (FieldType.SELECT, FieldType.MULTISELECT):
                if not field.validation or not field.validation.options:
                    warnings.append(f"Field {field.name} is a {field.type.value} without options")
            if not is_empty(field.default_value):
                message = self._fields.validate_value(field, field.default_value)
                if message:
                    error(f"{path}.default_value", message)

        # Assignment rules
        for rule in definition.assignment_rules:
            if not rule.has_criteria:
                warnings.append(f"Assignment rule {rule.id} has no match criteria and is ignored")

        # Automations
        for automation in definition.automations:
            path = f"automations.{automation.id}"
            if automation.trigger_state and automation.trigger_state not in known_states:
                error(f"{path}.trigger_state", f"Automation references unknown state: {automation.trigger_state}")
            if automation.trigger in (AutomationTrigger.STATE_ENTER, AutomationTrigger.STATE_EXIT):
                if not automation.trigger_state:
                    error(f"{path}.trigger_state", f"{automation.trigger.value} automation requires trigger_state")
            if automation.trigger == AutomationTrigger.FIELD_CHANGED:
                if automation.trigger_field not in field_names:
                    error(f"{path}.trigger_field", f"Automation references unknown field: {automation.trigger_field}")
            if automation.trigger == AutomationTrigger.TIME_ELAPSED and automation.time_elapsed_hours is None:
                error(f"{path}.time_elapsed_hours", "timeElapsed automation requires time_elapsed_hours")
            self._check_conditions(automation.conditions, f"{path}.conditions", field_names, error)
            self._check_actions(automation.actions, f"{path}.actions", field_names, error)

        return ValidationReport(valid=not errors, errors=errors, warnings=warnings)

    @staticmethod
    def _duplicates(ids: Iterable[str]) -> Set[str]:
        return {value for value, count in Counter(ids).items() if count > 1}

    @staticmethod
    def _reachable(start: str, transitions) -> Set[str]:
        seen = {start}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            for transition in transitions:
                if transition.from_state == current and transition.to_state not in seen:
                    seen.add(transition.to_state)
                    queue.append(transition.to_state)
        return seen

    @staticmethod
    def _check_conditions(conditions, path: str, field_names: Set[str], error) -> None:
        for index, condition in enumerate(conditions):
            if isinstance(condition, FieldCondition) and condition.field_name not in field_names:
                error(f"{path}[{index}]", f"Condition references unknown field: {condition.field_name}")

    @staticmethod
    def _check_actions(actions, path: str, field_names: Set[str], error) -> None:
        for index, action in enumerate(actions):
            if isinstance(action, UpdateFieldAction) and action.field_name not in field_names:
                error(f"{path}[{index}]", f"Action references unknown field: {action.field_name}")
