"""Tests for field value validation"""
import pytest

from govflow.domain.models import WorkflowField
from govflow.engine.field_validator import FieldValidator

validator = FieldValidator()


def _field(type_: str, **kwargs) -> WorkflowField:
    return WorkflowField(name="f", label="Field", type=type_, **kwargs)


@pytest.mark.parametrize("field,value", [
    (_field("text"), "hello"),
    (_field("text", validation={"pattern": r"^\d{4}$"}), "2024"),
    (_field("number", validation={"min": 1, "max": 10}), 10),
    (_field("number"), 2.5),
    (_field("date"), "2024-05-01"),
    (_field("date"), "2024-05-01T09:30:00Z"),
    (_field("boolean"), False),
    (_field("select", validation={"options": ["a", "b"]}), "b"),
    (_field("multiselect", validation={"options": ["a", "b", "c"]}), ["a", "c"]),
    (_field("document"), "DOC-42"),
    (_field("user"), "someone@unite.org"),
])
def test_valid_values(field, value):
    assert validator.validate_value(field, value) is None


@pytest.mark.parametrize("field,value,message", [
    (_field("text"), 12, "Field must be a string"),
    (_field("text", validation={"pattern": r"^\d{4}$"}), "24", "Field format is invalid"),
    (_field("number"), "12", "Field must be a number"),
    (_field("number"), True, "Field must be a number"),
    (_field("number", validation={"min": 1}), 0, "Field must be at least 1"),
    (_field("number", validation={"max": 10}), 11, "Field must be at most 10"),
    (_field("date"), "next tuesday", "Field must be an ISO 8601 date"),
    (_field("boolean"), "yes", "Field must be true or false"),
    (_field("select", validation={"options": ["a", "b"]}), "z", "Field must be one of: a, b"),
    (_field("multiselect", validation={"options": ["a"]}), "a", "Field must be a list"),
    (_field("multiselect", validation={"options": ["a"]}), ["a", "x"], "Field contains invalid options: x"),
    (_field("user"), "", "Field must be a reference string"),
])
def test_invalid_values(field, value, message):
    assert validator.validate_value(field, value) == message


class TestValidateUpdate:

    @pytest.fixture
    def stored(self, definition):
        return definition

    def test_unknown_field(self, stored):
        violations = validator.validate_update(stored, "draft", {"colour": "red"})

        assert violations == [{"field": "colour", "message": "Unknown field: colour"}]

    def test_required_in_state(self, create_definition, make_definition):
        payload = make_definition()
        payload["fields"][1]["required_in_states"] = ["review"]
        defn = create_definition(payload)

        assert validator.validate_update(defn, "draft", {"amount": None}) == []
        violations = validator.validate_update(defn, "review", {"amount": None})
        assert violations[0]["field"] == "amount"

    def test_editable_only_in_listed_states(self, stored):
        assert validator.validate_update(stored, "draft", {"notes": "ok"}) == []
        assert validator.validate_update(stored, "review", {"notes": "late"})[0]["field"] == "notes"
