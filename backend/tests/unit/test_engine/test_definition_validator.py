"""Tests for structural validation of workflow definitions"""
import pytest

from govflow.domain.models import WorkflowDefinitionCreate
from govflow.engine.definition_validator import DefinitionValidator


@pytest.fixture
def validate(make_definition):
    validator = DefinitionValidator()

    def _validate(**overrides):
        return validator.validate(WorkflowDefinitionCreate.model_validate(make_definition(**overrides)))

    return _validate


def _paths(report):
    return [e["path"] for e in report.errors]


def test_standard_definition_is_valid(validate):
    report = validate()

    assert report.valid
    assert report.errors == []


def test_no_states(validate):
    report = validate(states=[], transitions=[], fields=[])

    assert not report.valid
    assert any("at least one state" in e["message"] for e in report.errors)


def test_exactly_one_initial_state(validate, make_definition):
    states = make_definition()["states"]
    states[1]["is_initial"] = True

    report = validate(states=states)

    assert not report.valid
    assert any("exactly one initial state, found 2" in e["message"] for e in report.errors)


def test_final_state_required(validate):
    report = validate(
        states=[
            {"id": "a", "label": "A", "is_initial": True},
            {"id": "b", "label": "B"},
        ],
        transitions=[{"id": "go", "label": "Go", "from_state": "a", "to_state": "b"}],
        fields=[],
    )

    assert not report.valid
    assert any("final state" in e["message"] for e in report.errors)


def test_duplicate_ids_reported(validate, make_definition):
    payload = make_definition()
    payload["states"].append({"id": "draft", "label": "Second draft"})
    payload["fields"].append({"name": "title", "label": "Again", "type": "text"})

    report = validate(states=payload["states"], fields=payload["fields"])

    assert "states" in _paths(report)
    assert "fields" in _paths(report)


def test_unknown_transition_states(validate, make_definition):
    transitions = make_definition()["transitions"]
    transitions.append({"id": "vanish", "label": "Vanish", "from_state": "limbo", "to_state": "nowhere"})

    report = validate(transitions=transitions)

    assert "transitions.vanish.from_state" in _paths(report)
    assert "transitions.vanish.to_state" in _paths(report)


def test_sla_warning_must_precede_breach(validate, make_definition):
    states = make_definition()["states"]
    states[1]["sla"] = {"max_duration_hours": 24, "warning_at_hours": 24}

    report = validate(states=states)

    assert "states.review.sla" in _paths(report)


def test_unreachable_state_is_warning(validate, make_definition):
    states = make_definition()["states"]
    states.append({"id": "archived", "label": "Archived", "is_final": True})

    report = validate(states=states)

    assert report.valid
    assert "State archived is unreachable from the initial state" in report.warnings


def test_all_errors_reported_together(validate, make_definition):
    payload = make_definition()
    payload["states"][1]["sla"] = {"max_duration_hours": 10, "warning_at_hours": 12}
    payload["transitions"].append({"id": "bad", "label": "Bad", "from_state": "draft", "to_state": "ghost"})
    payload["fields"][0]["visible_in_states"] = ["nowhere"]

    report = validate(states=payload["states"], transitions=payload["transitions"], fields=payload["fields"])

    assert len(report.errors) == 3


def test_references_to_unknown_fields(validate, make_definition):
    transitions = make_definition()["transitions"]
    transitions[0]["conditions"] = [{"type": "field", "field_name": "budget", "operator": "isNotEmpty"}]
    transitions[0]["actions"] = [{"type": "update_field", "field_name": "budget", "field_value": 1}]

    report = validate(transitions=transitions)

    assert "transitions.submit.conditions[0]" in _paths(report)
    assert "transitions.submit.actions[0]" in _paths(report)


def test_invalid_default_value(validate, make_definition):
    fields = make_definition()["fields"]
    fields[3]["default_value"] = "urgent"

    report = validate(fields=fields)

    assert "fields.priority.default_value" in _paths(report)


def test_invalid_pattern(validate, make_definition):
    fields = make_definition()["fields"]
    fields[0]["validation"] = {"pattern": "([unclosed"}

    report = validate(fields=fields)

    assert "fields.title.validation.pattern" in _paths(report)


def test_automation_checks(validate):
    report = validate(automations=[
        {"id": "enter", "name": "Enter", "trigger": "stateEnter", "actions": []},
        {"id": "change", "name": "Change", "trigger": "fieldChanged", "trigger_field": "budget", "actions": []},
        {"id": "timer", "name": "Timer", "trigger": "timeElapsed", "actions": []},
    ])

    assert "automations.enter.trigger_state" in _paths(report)
    assert "automations.change.trigger_field" in _paths(report)
    assert "automations.timer.time_elapsed_hours" in _paths(report)


def test_rule_without_criteria_is_warning(validate):
    report = validate(assignment_rules=[{"id": "empty", "priority": 3}])

    assert report.valid
    assert any("empty" in w for w in report.warnings)


def test_vote_without_type_is_warning(validate, make_definition):
    transitions = make_definition()["transitions"]
    next(t for t in transitions if t["id"] == "board-approve").pop("vote_type")

    report = validate(transitions=transitions)

    assert report.valid
    assert any("board-approve" in w and "simple-majority" in w for w in report.warnings)
