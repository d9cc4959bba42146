"""Condition Evaluator - Safe evaluation of transition and automation conditions"""
from datetime import datetime
from typing import Any, Iterable, List, Optional

from ..domain.models import (
    FieldCondition, RoleCondition, TimeCondition, UserPermissions, WorkflowInstance
)
from ..domain.enums import ConditionOperator
from ..utils.logger import get_logger
from ..utils.time import hours_since

logger = get_logger(__name__)


def is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


class ConditionEvaluator:
    """
    Evaluate the closed condition vocabulary (field, role, time)

    Uses a simple DSL - no eval() or exec().
    """

    def evaluate(
        self,
        condition,
        instance: WorkflowInstance,
        permissions: UserPermissions,
        now: Optional[datetime] = None
    ) -> bool:
        """
        Evaluate a single condition

        Returns:
            True if the condition holds
        """
        if isinstance(condition, FieldCondition):
            value = instance.field_values.get(condition.field_name)
            return self._compare(value, condition.operator, condition.value)

        if isinstance(condition, RoleCondition):
            return self._evaluate_role(condition, permissions)

        if isinstance(condition, TimeCondition):
            hours = hours_since(instance.state_entered_at, now)
            if condition.minimum_hours_in_state is not None and hours < condition.minimum_hours_in_state:
                return False
            if condition.maximum_hours_in_state is not None and hours > condition.maximum_hours_in_state:
                return False
            return True

        logger.warning(f"Unknown condition type: {type(condition).__name__}")
        return False  # Fail closed

    def first_failing(
        self,
        conditions: Iterable,
        instance: WorkflowInstance,
        permissions: UserPermissions,
        now: Optional[datetime] = None
    ):
        """Return the first condition that does not hold, or None if all hold"""
        for condition in conditions:
            if not self.evaluate(condition, instance, permissions, now):
                return condition
        return None

    def describe(self, condition) -> str:
        """Human readable description for error messages"""
        if isinstance(condition, FieldCondition):
            if condition.operator in (ConditionOperator.IS_EMPTY, ConditionOperator.IS_NOT_EMPTY):
                return f"field '{condition.field_name}' {condition.operator.value}"
            return f"field '{condition.field_name}' {condition.operator.value} {condition.value!r}"
        if isinstance(condition, RoleCondition):
            parts: List[str] = []
            if condition.user_must_have_role:
                parts.append(f"role in {condition.user_must_have_role}")
            if condition.user_must_be_in_committee:
                parts.append(f"committee in {condition.user_must_be_in_committee}")
            return " and ".join(parts) or "role condition"
        if isinstance(condition, TimeCondition):
            parts = []
            if condition.minimum_hours_in_state is not None:
                parts.append(f"at least {condition.minimum_hours_in_state}h in state")
            if condition.maximum_hours_in_state is not None:
                parts.append(f"at most {condition.maximum_hours_in_state}h in state")
            return " and ".join(parts) or "time condition"
        return str(condition)

    def _evaluate_role(self, condition: RoleCondition, permissions: UserPermissions) -> bool:
        if condition.user_must_have_role:
            if not set(condition.user_must_have_role) & set(permissions.roles):
                return False
        if condition.user_must_be_in_committee:
            if not set(condition.user_must_be_in_committee) & set(permissions.committees):
                return False
        return True

    def _compare(
        self,
        field_value: Any,
        operator: ConditionOperator,
        compare_value: Any
    ) -> bool:
        """Compare values using operator"""

        if operator == ConditionOperator.EQUALS:
            return field_value == compare_value

        elif operator == ConditionOperator.NOT_EQUALS:
            return field_value != compare_value

        elif operator == ConditionOperator.GREATER_THAN:
            return self._compare_ordered(field_value, compare_value, lambda a, b: a > b)

        elif operator == ConditionOperator.LESS_THAN:
            return self._compare_ordered(field_value, compare_value, lambda a, b: a < b)

        elif operator == ConditionOperator.CONTAINS:
            if field_value is None:
                return False
            if isinstance(field_value, list):
                return compare_value in field_value
            return str(compare_value) in str(field_value)

        elif operator == ConditionOperator.IS_EMPTY:
            return is_empty(field_value)

        elif operator == ConditionOperator.IS_NOT_EMPTY:
            return not is_empty(field_value)

        return False

    def _compare_ordered(self, field_value: Any, compare_value: Any, comparator) -> bool:
        """Numeric comparison; ISO date strings compare lexically"""
        if field_value is None or compare_value is None:
            return False
        if isinstance(field_value, str) and isinstance(compare_value, str):
            try:
                return comparator(float(field_value), float(compare_value))
            except ValueError:
                return comparator(field_value, compare_value)
        try:
            return comparator(float(field_value), float(compare_value))
        except (ValueError, TypeError):
            return False
