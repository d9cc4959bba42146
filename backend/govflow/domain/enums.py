"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class InstanceStatus(str, Enum):
    """Lifecycle status of a workflow instance"""
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self != InstanceStatus.ACTIVE


class AccessLevel(str, Enum):
    """Platform access levels, lowest to highest"""
    PUBLIC = "Public"
    DIPLOMATE = "Diplomate"
    COMMITTEE_MEMBER = "CommitteeMember"
    EXECUTIVE = "Executive"
    ADMIN = "Admin"

    @property
    def rank(self) -> int:
        return _ACCESS_LEVEL_ORDER.index(self)

    def satisfies(self, required: "AccessLevel") -> bool:
        """True if this level is at least the required level"""
        return self.rank >= required.rank


_ACCESS_LEVEL_ORDER = [
    AccessLevel.PUBLIC,
    AccessLevel.DIPLOMATE,
    AccessLevel.COMMITTEE_MEMBER,
    AccessLevel.EXECUTIVE,
    AccessLevel.ADMIN,
]


class DocumentState(str, Enum):
    """Document lifecycle states owned by the document service"""
    DRAFT = "Draft"
    PENDING_APPROVAL = "PendingApproval"
    APPROVED = "Approved"
    PUBLISHED = "Published"
    REDACTED = "Redacted"
    RESCINDED = "Rescinded"


class FieldType(str, Enum):
    """Types of workflow fields"""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    SELECT = "select"
    MULTISELECT = "multiselect"
    DOCUMENT = "document"
    USER = "user"


class ConditionOperator(str, Enum):
    """Operators for field conditions on transitions"""
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    IS_EMPTY = "isEmpty"
    IS_NOT_EMPTY = "isNotEmpty"


class MatchOperator(str, Enum):
    """Operators for assignment-rule custom field predicates"""
    EQUALS = "equals"
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"


class VoteType(str, Enum):
    """Quorum rule for vote-gated transitions"""
    SIMPLE_MAJORITY = "simple-majority"
    TWO_THIRDS = "two-thirds"
    UNANIMOUS = "unanimous"


class VoteChoice(str, Enum):
    """A single ballot"""
    FOR = "for"
    AGAINST = "against"
    ABSTAIN = "abstain"


class VoteStatus(str, Enum):
    """Ballot box status"""
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


class HistoryAction(str, Enum):
    """Kinds of instance history entries"""
    STARTED = "started"
    TRANSITION = "transition"
    FIELD_UPDATE = "field_update"
    COMMENT = "comment"
    ASSIGNMENT = "assignment"
    VOTE = "vote"
    CANCEL = "cancel"
    AUTOMATION = "automation"


class AutomationTrigger(str, Enum):
    """Automation trigger events"""
    STATE_ENTER = "stateEnter"
    STATE_EXIT = "stateExit"
    TIME_ELAPSED = "timeElapsed"
    FIELD_CHANGED = "fieldChanged"
    VOTE_CAST = "voteCast"


class ActionPhase(str, Enum):
    """Where an action was configured"""
    ON_EXIT = "on_exit"
    TRANSITION = "transition"
    ON_ENTER = "on_enter"
    AUTOMATION = "automation"


class AuditSeverity(str, Enum):
    """Severity of custom audit actions"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEventType(str, Enum):
    """Audit event types emitted by the engine"""
    DEFINITION_CREATED = "workflow.definition.created"
    DEFINITION_VERSIONED = "workflow.definition.versioned"
    DEFINITION_DEACTIVATED = "workflow.definition.deactivated"
    INSTANCE_STARTED = "workflow.instance.started"
    INSTANCE_TRANSITIONED = "workflow.instance.transitioned"
    INSTANCE_FIELDS_UPDATED = "workflow.instance.fields_updated"
    INSTANCE_CANCELLED = "workflow.instance.cancelled"
    INSTANCE_ERROR = "workflow.instance.error"
    VOTE_CAST = "workflow.vote.cast"
    ACTION_FAILED = "workflow.action.failed"
    CUSTOM_ACTION = "workflow.custom_action"
    SLA_WARNING = "workflow.sla.warning"
    SLA_BREACHED = "workflow.sla.breached"


class NotificationStatus(str, Enum):
    """Notification outbox status"""
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
