"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, ConfigDict

from .enums import (
    InstanceStatus, AccessLevel, DocumentState, FieldType, ConditionOperator,
    MatchOperator, VoteType, VoteChoice, VoteStatus, HistoryAction,
    AutomationTrigger, ActionPhase, AuditSeverity, NotificationStatus
)


# ============================================================================
# Identity & Permissions
# ============================================================================

SYSTEM_USER_ID = "system"
SYSTEM_UPN = "system@govflow"


class ActorContext(BaseModel):
    """Current actor context from JWT token"""
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(..., description="Directory object ID (oid)")
    upn: str = Field(..., description="User principal name")
    display_name: str = Field(..., description="User display name")
    roles: List[str] = Field(default_factory=list, description="Roles carried by the token")

    @classmethod
    def system(cls) -> "ActorContext":
        """Actor used by the scheduler for time-based automations"""
        return cls(
            user_id=SYSTEM_USER_ID,
            upn=SYSTEM_UPN,
            display_name="Workflow Scheduler",
            roles=["Admin"]
        )

    @property
    def is_system(self) -> bool:
        return self.user_id == SYSTEM_USER_ID


class UserPermissions(BaseModel):
    """Resolved permissions of a user"""
    user_id: str
    access_level: AccessLevel = Field(default=AccessLevel.PUBLIC)
    committees: List[str] = Field(default_factory=list)
    roles: List[str] = Field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return self.access_level == AccessLevel.ADMIN


class Committee(BaseModel):
    """Committee membership record"""
    committee_id: str
    name: str
    members: List[str] = Field(default_factory=list, description="Member user ids")


# ============================================================================
# Actions
# ============================================================================

class NotifyAction(BaseModel):
    """Queue a notification for roles, users or committees"""
    model_config = ConfigDict(extra="forbid")

    type: Literal["notify"] = "notify"
    notify_roles: List[str] = Field(default_factory=list)
    notify_users: List[str] = Field(default_factory=list)
    notify_committees: List[str] = Field(default_factory=list)
    template: Optional[str] = Field(None, description="Notification template key")
    message: Optional[str] = None


class AssignAction(BaseModel):
    """Assign the instance to a user and/or committee"""
    model_config = ConfigDict(extra="forbid")

    type: Literal["assign"] = "assign"
    assign_to_user: Optional[str] = None
    assign_to_committee: Optional[str] = None


class UpdateFieldAction(BaseModel):
    """Set a field value on the instance"""
    model_config = ConfigDict(extra="forbid")

    type: Literal["update_field"] = "update_field"
    field_name: str
    field_value: Any = None


class DocumentAction(BaseModel):
    """Change the state of the instance's document"""
    model_config = ConfigDict(extra="forbid")

    type: Literal["document"] = "document"
    document_state_change: DocumentState


class WebhookAction(BaseModel):
    """POST a payload to an external endpoint"""
    model_config = ConfigDict(extra="forbid")

    type: Literal["webhook"] = "webhook"
    webhook_url: str
    webhook_payload: Dict[str, Any] = Field(default_factory=dict)


class AuditAction(BaseModel):
    """Write a custom audit event"""
    model_config = ConfigDict(extra="forbid")

    type: Literal["audit"] = "audit"
    audit_message: str
    audit_severity: AuditSeverity = Field(default=AuditSeverity.INFO)


WorkflowAction = Annotated[
    Union[NotifyAction, AssignAction, UpdateFieldAction, DocumentAction, WebhookAction, AuditAction],
    Field(discriminator="type")
]

# Actions that mutate the instance and are applied inside the state-change write
LOCAL_ACTION_TYPES = ("assign", "update_field")


# ============================================================================
# Conditions
# ============================================================================

class FieldCondition(BaseModel):
    """Compare a field value against a constant"""
    model_config = ConfigDict(extra="forbid")

    type: Literal["field"] = "field"
    field_name: str
    operator: ConditionOperator
    value: Any = None


class RoleCondition(BaseModel):
    """Actor must hold one of the roles and/or sit on one of the committees"""
    model_config = ConfigDict(extra="forbid")

    type: Literal["role"] = "role"
    user_must_have_role: List[str] = Field(default_factory=list)
    user_must_be_in_committee: List[str] = Field(default_factory=list)


class TimeCondition(BaseModel):
    """Bound the hours spent in the current state"""
    model_config = ConfigDict(extra="forbid")

    type: Literal["time"] = "time"
    minimum_hours_in_state: Optional[float] = Field(None, ge=0)
    maximum_hours_in_state: Optional[float] = Field(None, ge=0)


WorkflowCondition = Annotated[
    Union[FieldCondition, RoleCondition, TimeCondition],
    Field(discriminator="type")
]


# ============================================================================
# States & Transitions
# ============================================================================

class StateSla(BaseModel):
    """Service-level target for time spent in a state"""
    model_config = ConfigDict(extra="forbid")

    max_duration_hours: float = Field(..., gt=0)
    warning_at_hours: Optional[float] = Field(None, gt=0)
    escalate_to: Optional[str] = Field(None, description="Role notified on breach")


class WorkflowState(BaseModel):
    """A node in the workflow graph"""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    label: str
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    is_initial: bool = False
    is_final: bool = False
    allowed_actions: List[str] = Field(default_factory=list, description="Capability tags")
    on_enter: List[WorkflowAction] = Field(default_factory=list)
    on_exit: List[WorkflowAction] = Field(default_factory=list)
    sla: Optional[StateSla] = None


class WorkflowTransition(BaseModel):
    """A directed edge between two states"""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    label: str
    from_state: str
    to_state: str
    required_roles: List[str] = Field(default_factory=list)
    required_access_level: Optional[AccessLevel] = None
    required_committees: List[str] = Field(default_factory=list)
    conditions: List[WorkflowCondition] = Field(default_factory=list)
    requires_comment: bool = False
    requires_vote: bool = False
    vote_type: Optional[VoteType] = None
    requires_attachments: bool = False
    min_attachments: int = Field(default=1, ge=0)
    actions: List[WorkflowAction] = Field(default_factory=list)
    confirmation_message: Optional[str] = None

    @property
    def effective_vote_type(self) -> VoteType:
        return self.vote_type or VoteType.SIMPLE_MAJORITY


# ============================================================================
# Assignment Rules
# ============================================================================

class CustomFieldMatch(BaseModel):
    """Predicate over a custom context field"""
    model_config = ConfigDict(extra="forbid")

    field_name: str
    operator: MatchOperator = Field(default=MatchOperator.EQUALS)
    value: Any = None


class AssignmentRule(BaseModel):
    """Routing rule selecting a definition for a context"""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    priority: int = 0
    document_type: List[str] = Field(default_factory=list)
    document_category: List[str] = Field(default_factory=list)
    committee: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    custom_field_matches: List[CustomFieldMatch] = Field(default_factory=list)
    auto_start: bool = Field(default=False, description="Start the workflow when this rule wins")

    @property
    def has_criteria(self) -> bool:
        return bool(
            self.document_type or self.document_category or self.committee
            or self.tags or self.custom_field_matches
        )


# ============================================================================
# Fields
# ============================================================================

class FieldValidation(BaseModel):
    """Validation rules for a workflow field"""
    model_config = ConfigDict(extra="forbid")

    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None
    options: Optional[List[Any]] = None


class WorkflowField(BaseModel):
    """Typed field carried by instances"""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    label: str
    type: FieldType
    required: bool = False
    description: Optional[str] = None
    validation: Optional[FieldValidation] = None
    visible_in_states: List[str] = Field(default_factory=list, description="Empty = visible everywhere")
    editable_in_states: List[str] = Field(default_factory=list, description="Empty = editable everywhere")
    required_in_states: List[str] = Field(default_factory=list)
    default_value: Any = None

    def is_required_in(self, state_id: str) -> bool:
        return self.required or state_id in self.required_in_states

    def is_visible_in(self, state_id: str) -> bool:
        return not self.visible_in_states or state_id in self.visible_in_states

    def is_editable_in(self, state_id: str) -> bool:
        return not self.editable_in_states or state_id in self.editable_in_states


# ============================================================================
# Automations & Settings
# ============================================================================

class WorkflowAutomation(BaseModel):
    """Event-triggered actions"""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    name: str
    trigger: AutomationTrigger
    trigger_state: Optional[str] = None
    trigger_field: Optional[str] = None
    time_elapsed_hours: Optional[float] = Field(None, gt=0)
    conditions: List[WorkflowCondition] = Field(default_factory=list)
    actions: List[WorkflowAction] = Field(default_factory=list)


class WorkflowSettings(BaseModel):
    """Per-definition settings"""
    model_config = ConfigDict(extra="forbid")

    # Access control (empty = unrestricted)
    allowed_access_levels: List[AccessLevel] = Field(default_factory=list)
    allowed_committees: List[str] = Field(default_factory=list)
    allowed_roles: List[str] = Field(default_factory=list)

    # Documents
    require_document: bool = False
    allow_multiple_documents: bool = False
    allowed_file_types: List[str] = Field(default_factory=list)
    max_file_size_mb: Optional[int] = None

    # Versioning
    enable_version_history: bool = True
    auto_version_on_state_change: bool = False

    # Notifications
    enable_email_notifications: bool = True
    enable_teams_notifications: bool = False

    # Audit
    audit_all_actions: bool = True
    retention_period_days: Optional[int] = Field(None, gt=0)

    # Integration
    dms_library: Optional[str] = None
    site_collection: Optional[str] = Field(None, description="Audit namespace override")


# ============================================================================
# Workflow Definition
# ============================================================================

class WorkflowDefinitionCreate(BaseModel):
    """Payload for creating or versioning a definition"""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    states: List[WorkflowState] = Field(default_factory=list)
    transitions: List[WorkflowTransition] = Field(default_factory=list)
    assignment_rules: List[AssignmentRule] = Field(default_factory=list)
    fields: List[WorkflowField] = Field(default_factory=list)
    automations: List[WorkflowAutomation] = Field(default_factory=list)
    settings: WorkflowSettings = Field(default_factory=WorkflowSettings)


class WorkflowDefinition(WorkflowDefinitionCreate):
    """Stored, immutable workflow definition version"""
    model_config = ConfigDict(extra="ignore")

    definition_id: str = Field(..., description="Unique id of this version")
    lineage_id: str = Field(..., description="Shared by all versions")
    version: int = Field(default=1, ge=1)
    supersedes: Optional[str] = Field(None, description="Previous version id")
    is_active: bool = True
    created_at: datetime
    created_by: str
    updated_at: datetime

    def get_state(self, state_id: str) -> Optional[WorkflowState]:
        for state in self.states:
            if state.id == state_id:
                return state
        return None

    def get_initial_state(self) -> Optional[WorkflowState]:
        initial = [s for s in self.states if s.is_initial]
        return initial[0] if len(initial) == 1 else None

    def get_transition(self, transition_id: str) -> Optional[WorkflowTransition]:
        for transition in self.transitions:
            if transition.id == transition_id:
                return transition
        return None

    def transitions_from(self, state_id: str) -> List[WorkflowTransition]:
        return [t for t in self.transitions if t.from_state == state_id]

    def get_field(self, name: str) -> Optional[WorkflowField]:
        for field in self.fields:
            if field.name == name:
                return field
        return None

    def to_create_payload(self) -> WorkflowDefinitionCreate:
        return WorkflowDefinitionCreate.model_validate(
            self.model_dump(include=set(WorkflowDefinitionCreate.model_fields))
        )


# ============================================================================
# Workflow Instance
# ============================================================================

class WorkflowHistoryEntry(BaseModel):
    """Immutable record of something that happened to an instance"""
    entry_id: str
    timestamp: datetime
    actor: str = Field(..., description="UPN of the acting user")
    action: HistoryAction
    from_state: Optional[str] = None
    to_state: Optional[str] = None
    transition_id: Optional[str] = None
    field_name: Optional[str] = None
    old_value: Any = None
    new_value: Any = None
    comment: Optional[str] = None
    attachments: List[str] = Field(default_factory=list)
    vote_choice: Optional[VoteChoice] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class WorkflowInstance(BaseModel):
    """A running (or finished) execution of a definition"""
    instance_id: str
    definition_id: str
    definition_version: int
    current_state: str
    state_entered_at: datetime
    doc_ref: Optional[str] = None
    field_values: Dict[str, Any] = Field(default_factory=dict)
    assigned_to: Optional[str] = None
    assigned_committee: Optional[str] = None
    history: List[WorkflowHistoryEntry] = Field(default_factory=list)
    status: InstanceStatus = InstanceStatus.ACTIVE
    started_at: datetime
    started_by: str
    completed_at: Optional[datetime] = None
    updated_at: datetime
    version: int = Field(default=1, ge=1, description="Optimistic concurrency stamp")
    signals_fired: List[str] = Field(
        default_factory=list,
        description="SLA / time automation signals already fired in the current state entry"
    )


# ============================================================================
# Voting
# ============================================================================

class Ballot(BaseModel):
    """One user's vote"""
    user_id: str
    upn: Optional[str] = None
    choice: VoteChoice
    comment: Optional[str] = None
    cast_at: datetime


class WorkflowVote(BaseModel):
    """Ballot box for a vote-gated transition"""
    vote_id: str
    instance_id: str
    transition_id: str
    vote_type: VoteType
    ballots: List[Ballot] = Field(default_factory=list)
    votes_for: int = 0
    votes_against: int = 0
    votes_abstain: int = 0
    required_votes: int = Field(..., ge=1)
    status: VoteStatus = VoteStatus.PENDING
    created_at: datetime
    closed_at: Optional[datetime] = None
    state_entered_at: Optional[datetime] = None
    version: int = Field(default=1, ge=1)

    @property
    def total_votes(self) -> int:
        return self.votes_for + self.votes_against + self.votes_abstain

    def get_ballot(self, user_id: str) -> Optional[Ballot]:
        for ballot in self.ballots:
            if ballot.user_id == user_id:
                return ballot
        return None


# ============================================================================
# Routing
# ============================================================================

class RouterContext(BaseModel):
    """Runtime context matched against assignment rules"""
    document_type: Optional[str] = None
    document_category: Optional[str] = None
    committee: Optional[str] = None
    team: Optional[str] = None
    priority: Optional[str] = Field(None, description="low, medium, high or critical")
    submitted_by: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    doc_ref: Optional[str] = None


class WorkflowSuggestion(BaseModel):
    """A scored definition for a context"""
    definition: WorkflowDefinition
    rule_id: str
    match_score: int
    match_reasons: List[str] = Field(default_factory=list)
    auto_start: bool = False


# ============================================================================
# Engine Results
# ============================================================================

class ActionResult(BaseModel):
    """Outcome of one configured action"""
    action_type: str
    phase: ActionPhase
    success: bool
    error: Optional[str] = None


class VotingRequired(BaseModel):
    """Returned instead of a state change when a transition is vote-gated"""
    instance_id: str
    transition_id: str
    vote_type: VoteType
    vote: Optional[WorkflowVote] = None
    message: str = "This transition requires a vote"


class AvailableTransition(BaseModel):
    """Transition offered from the current state, with actor eligibility"""
    transition_id: str
    label: str
    to_state: str
    allowed: bool
    reason: Optional[str] = None
    requires_comment: bool = False
    requires_vote: bool = False
    vote_type: Optional[VoteType] = None
    requires_attachments: bool = False
    min_attachments: int = 0
    confirmation_message: Optional[str] = None


class VisibleField(BaseModel):
    """A field as seen in the instance's current state"""
    field: WorkflowField
    value: Any = None
    editable: bool = True
    required: bool = False


class ValidationReport(BaseModel):
    """Definition validation result"""
    valid: bool
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


# ============================================================================
# Audit & Notifications
# ============================================================================

class AuditEvent(BaseModel):
    """Append-only audit record"""
    event_id: str
    event_type: str
    actor: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    idempotency_key: str
    namespace: str
    timestamp: datetime
    correlation_id: Optional[str] = None


class NotificationOutbox(BaseModel):
    """Queued notification for an external delivery worker"""
    notification_id: str
    template: str
    notify_roles: List[str] = Field(default_factory=list)
    notify_users: List[str] = Field(default_factory=list)
    notify_committees: List[str] = Field(default_factory=list)
    payload: Dict[str, Any] = Field(default_factory=dict)
    status: NotificationStatus = NotificationStatus.PENDING
    retry_count: int = 0
    created_at: datetime
    sent_at: Optional[datetime] = None


# ============================================================================
# Templates
# ============================================================================

class WorkflowTemplate(BaseModel):
    """Pre-built definition that can be instantiated and customized"""
    template_id: str
    name: str
    description: str
    category: str
    icon: Optional[str] = None
    definition: WorkflowDefinitionCreate
    use_cases: List[str] = Field(default_factory=list)
    setup_instructions: Optional[str] = None
