"""SLA Evaluator - Time-based signals for active instances"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from ..domain.models import WorkflowAutomation, WorkflowDefinition, WorkflowInstance
from ..domain.enums import AutomationTrigger
from ..utils.time import hours_since

SLA_WARNING_SIGNAL = "sla_warning"
SLA_BREACH_SIGNAL = "sla_breach"


def automation_signal(automation_id: str) -> str:
    return f"automation:{automation_id}"


class SlaEvaluation(BaseModel):
    """Signals due for one instance at one point in time"""
    instance_id: str
    state_id: str
    hours_in_state: float
    warning_due: bool = False
    breach_due: bool = False
    escalate_to: Optional[str] = None
    due_automations: List[WorkflowAutomation] = Field(default_factory=list)

    @property
    def has_signals(self) -> bool:
        return self.warning_due or self.breach_due or bool(self.due_automations)


def evaluate_sla(
    instance: WorkflowInstance,
    definition: WorkflowDefinition,
    now: Optional[datetime] = None
) -> SlaEvaluation:
    """
    Decide which SLA signals and timeElapsed automations are due

    Signals already recorded in instance.signals_fired for the current state
    entry are not due again.
    """
    hours = hours_since(instance.state_entered_at, now)
    evaluation = SlaEvaluation(
        instance_id=instance.instance_id,
        state_id=instance.current_state,
        hours_in_state=hours
    )

    if instance.status.is_terminal:
        return evaluation

    fired = set(instance.signals_fired)
    state = definition.get_state(instance.current_state)

    if state is not None and state.sla is not None:
        sla = state.sla
        evaluation.escalate_to = sla.escalate_to
        if hours >= sla.max_duration_hours and SLA_BREACH_SIGNAL not in fired:
            evaluation.breach_due = True
        if (
            sla.warning_at_hours is not None
            and hours >= sla.warning_at_hours
            and SLA_WARNING_SIGNAL not in fired
            and SLA_BREACH_SIGNAL not in fired
            and not evaluation.breach_due
        ):
            evaluation.warning_due = True

    for automation in definition.automations:
        if automation.trigger != AutomationTrigger.TIME_ELAPSED:
            continue
        if automation.trigger_state and automation.trigger_state != instance.current_state:
            continue
        if automation.time_elapsed_hours is None or hours < automation.time_elapsed_hours:
            continue
        if automation_signal(automation.id) in fired:
            continue
        evaluation.due_automations.append(automation)

    return evaluation
