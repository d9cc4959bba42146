"""Field Validator - Schema validation of instance field values"""
import re
from typing import Any, Dict, List, Optional

from ..domain.models import WorkflowDefinition, WorkflowField
from ..domain.enums import FieldType
from ..utils.time import parse_iso
from .condition_evaluator import is_empty


def _violation(field_name: str, message: str) -> Dict[str, Any]:
    return {"field": field_name, "message": message}


class FieldValidator:
    """
    Validates field values against a definition's field schema

    Every check collects violations instead of stopping at the first one,
    so callers can report them all in a single ValidationError.
    """

    def validate_value(self, field: WorkflowField, value: Any) -> Optional[str]:
        """
        Validate a non-empty value against the field's type and rules

        Returns:
            Error message, or None if the value is valid
        """
        rules = field.validation
        label = field.label

        if field.type == FieldType.TEXT:
            if not isinstance(value, str):
                return f"{label} must be a string"
            if rules and rules.pattern:
                try:
                    if not re.search(rules.pattern, value):
                        return f"{label} format is invalid"
                except re.error:
                    return f"{label} has an invalid pattern"

        elif field.type == FieldType.NUMBER:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return f"{label} must be a number"
            if rules and rules.min is not None and value < rules.min:
                return f"{label} must be at least {rules.min:g}"
            if rules and rules.max is not None and value > rules.max:
                return f"{label} must be at most {rules.max:g}"

        elif field.type == FieldType.DATE:
            if not isinstance(value, str):
                return f"{label} must be an ISO 8601 date"
            try:
                parse_iso(value)
            except ValueError:
                return f"{label} must be an ISO 8601 date"

        elif field.type == FieldType.BOOLEAN:
            if not isinstance(value, bool):
                return f"{label} must be true or false"

        elif field.type == FieldType.SELECT:
            if rules and rules.options is not None and value not in rules.options:
                return f"{label} must be one of: {', '.join(str(o) for o in rules.options)}"

        elif field.type == FieldType.MULTISELECT:
            if not isinstance(value, list):
                return f"{label} must be a list"
            if rules and rules.options is not None:
                invalid = [v for v in value if v not in rules.options]
                if invalid:
                    return f"{label} contains invalid options: {', '.join(str(v) for v in invalid)}"

        elif field.type in (FieldType.DOCUMENT, FieldType.USER):
            if not isinstance(value, str) or not value:
                return f"{label} must be a reference string"

        return None

    def validate_start(
        self,
        definition: WorkflowDefinition,
        state_id: str,
        values: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Validate the complete field map of a new instance"""
        violations = []

        for name in values:
            if definition.get_field(name) is None:
                violations.append(_violation(name, f"Unknown field: {name}"))

        for field in definition.fields:
            value = values.get(field.name)
            if is_empty(value):
                if field.is_required_in(state_id):
                    violations.append(_violation(field.name, f"Required field missing: {field.label}"))
                continue
            error = self.validate_value(field, value)
            if error:
                violations.append(_violation(field.name, error))

        return violations

    def validate_update(
        self,
        definition: WorkflowDefinition,
        state_id: str,
        updates: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Validate a partial update in the given state"""
        violations = []

        for name, value in updates.items():
            field = definition.get_field(name)
            if field is None:
                violations.append(_violation(name, f"Unknown field: {name}"))
                continue
            if not field.is_editable_in(state_id):
                violations.append(_violation(name, f"{field.label} is not editable in state '{state_id}'"))
                continue
            if is_empty(value):
                if field.is_required_in(state_id):
                    violations.append(_violation(name, f"{field.label} is required in state '{state_id}'"))
                continue
            error = self.validate_value(field, value)
            if error:
                violations.append(_violation(name, error))

        return violations
