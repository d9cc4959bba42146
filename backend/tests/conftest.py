"""
Pytest Configuration and Fixtures

This file contains shared fixtures and configuration for all tests:
an in-memory MongoDB (mongomock), fake document / webhook collaborators,
seeded users and committees, and a factory for workflow definitions.
"""

import copy
from typing import Any, Callable, Dict, List, Optional, Tuple

import mongomock
import pytest

from govflow.domain.enums import AccessLevel
from govflow.domain.errors import DocumentServiceError, WebhookError
from govflow.domain.models import ActorContext, Committee, UserPermissions, WorkflowDefinition
from govflow.engine.definition_cache import DefinitionCache
from govflow.repositories import mongo_client
from govflow.repositories.access_repo import AccessRepository
from govflow.services.container import ServiceContainer, set_container


# =============================================================================
# Fakes
# =============================================================================

class FakeDocumentService:
    """Records document state changes instead of calling the DMS"""

    def __init__(self):
        self.calls: List[Tuple[str, str, str]] = []
        self.fail = False

    def update_document_state(self, doc_ref: str, new_state: str, actor: str) -> Dict[str, Any]:
        if self.fail:
            raise DocumentServiceError("Document service returned 503", details={"doc_ref": doc_ref})
        self.calls.append((doc_ref, new_state, actor))
        return {}


class FakeWebhookClient:
    """Records webhook deliveries"""

    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.fail = False

    def post(self, url: str, payload: Dict[str, Any]) -> int:
        if self.fail:
            raise WebhookError("Webhook returned 500", details={"url": url})
        self.calls.append((url, payload))
        return 200


class FakeClock:
    """Monotonic clock that only moves when told to"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# Database
# =============================================================================

@pytest.fixture(autouse=True)
def mongo_db():
    """Fresh in-memory database per test"""
    mongo_client._client = mongomock.MongoClient(tz_aware=True)
    mongo_client._database = mongo_client._client["govflow_test"]
    mongo_client.create_indexes()
    yield mongo_client._database
    mongo_client.close_connection()
    set_container(None)


# =============================================================================
# Actors
# =============================================================================

BOARD_COMMITTEE = "ReviewBoard"
PANEL_COMMITTEE = "PanelOfTwo"


@pytest.fixture
def admin() -> ActorContext:
    return ActorContext(user_id="u-admin", upn="admin@unite.org", display_name="Ada Admin", roles=["Admin"])


@pytest.fixture
def officer() -> ActorContext:
    return ActorContext(
        user_id="u-officer", upn="officer@unite.org", display_name="Olu Officer", roles=["ComplaintsOfficer"]
    )


@pytest.fixture
def board_members() -> List[ActorContext]:
    return [
        ActorContext(user_id=f"u-board-{i}", upn=f"board{i}@unite.org", display_name=f"Board Member {i}",
                     roles=["Board"])
        for i in (1, 2, 3)
    ]


@pytest.fixture
def outsider() -> ActorContext:
    return ActorContext(user_id="u-public", upn="someone@example.org", display_name="Sam Public")


@pytest.fixture
def access_repo(mongo_db, admin, officer, board_members, outsider) -> AccessRepository:
    """Access-control source data for the standard actors"""
    repo = AccessRepository()
    repo.upsert_user_permissions(UserPermissions(user_id=admin.user_id, access_level=AccessLevel.ADMIN))
    repo.upsert_user_permissions(UserPermissions(
        user_id=officer.user_id,
        access_level=AccessLevel.EXECUTIVE,
        roles=["ComplaintsOfficer"]
    ))
    for member in board_members:
        repo.upsert_user_permissions(UserPermissions(
            user_id=member.user_id,
            access_level=AccessLevel.COMMITTEE_MEMBER,
            roles=["Board"]
        ))
    repo.upsert_committee(Committee(
        committee_id=BOARD_COMMITTEE,
        name="Review Board",
        members=[m.user_id for m in board_members]
    ))
    repo.upsert_committee(Committee(
        committee_id=PANEL_COMMITTEE,
        name="Panel of Two",
        members=[m.user_id for m in board_members[:2]]
    ))
    return repo


# =============================================================================
# Container
# =============================================================================

@pytest.fixture
def document_service() -> FakeDocumentService:
    return FakeDocumentService()


@pytest.fixture
def webhook_client() -> FakeWebhookClient:
    return FakeWebhookClient()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def container(access_repo, document_service, webhook_client, clock) -> ServiceContainer:
    """Fully wired services on top of the in-memory database"""
    services = ServiceContainer(
        document_service=document_service,
        webhook_client=webhook_client,
        cache=DefinitionCache(ttl_seconds=300, clock=clock)
    )
    set_container(services)
    return services


# =============================================================================
# Definitions
# =============================================================================

BASE_DEFINITION: Dict[str, Any] = {
    "name": "Report Approval",
    "description": "Draft, review and approve a report",
    "category": "approval",
    "states": [
        {"id": "draft", "label": "Draft", "is_initial": True},
        {
            "id": "review",
            "label": "In Review",
            "on_enter": [
                {"type": "notify", "notify_roles": ["Executive"], "template": "review_started"}
            ],
            "sla": {"max_duration_hours": 48, "warning_at_hours": 24, "escalate_to": "Executive"},
        },
        {
            "id": "approved",
            "label": "Approved",
            "is_final": True,
            "on_enter": [{"type": "document", "document_state_change": "Approved"}],
        },
        {"id": "rejected", "label": "Rejected", "is_final": True},
    ],
    "transitions": [
        {
            "id": "submit",
            "label": "Submit for Review",
            "from_state": "draft",
            "to_state": "review",
            "actions": [{"type": "assign", "assign_to_committee": BOARD_COMMITTEE}],
        },
        {
            "id": "approve",
            "label": "Approve",
            "from_state": "review",
            "to_state": "approved",
            "required_access_level": "Executive",
            "actions": [{"type": "audit", "audit_message": "Approved by an executive"}],
        },
        {
            "id": "reject",
            "label": "Reject",
            "from_state": "review",
            "to_state": "rejected",
            "requires_comment": True,
            "actions": [
                {
                    "type": "webhook",
                    "webhook_url": "https://hooks.example.org/rejected",
                    "webhook_payload": {"source": "govflow"},
                }
            ],
        },
        {
            "id": "board-approve",
            "label": "Board Approval",
            "from_state": "review",
            "to_state": "approved",
            "required_committees": [BOARD_COMMITTEE],
            "requires_vote": True,
            "vote_type": "simple-majority",
        },
        {
            "id": "fast-track",
            "label": "Fast Track",
            "from_state": "draft",
            "to_state": "approved",
            "conditions": [{"type": "field", "field_name": "amount", "operator": "lessThan", "value": 1000}],
            "requires_attachments": True,
            "min_attachments": 2,
        },
    ],
    "assignment_rules": [
        {"id": "rule-report", "priority": 2, "document_type": ["report"], "tags": ["finance"]}
    ],
    "fields": [
        {"name": "title", "label": "Title", "type": "text", "required": True},
        {"name": "amount", "label": "Amount", "type": "number", "validation": {"min": 0}},
        {"name": "notes", "label": "Notes", "type": "text", "editable_in_states": ["draft"]},
        {
            "name": "priority",
            "label": "Priority",
            "type": "select",
            "validation": {"options": ["low", "medium", "high"]},
        },
    ],
}


@pytest.fixture
def make_definition() -> Callable[..., Dict[str, Any]]:
    """Factory for definition payloads; keyword arguments replace top-level keys"""

    def _make(**overrides: Any) -> Dict[str, Any]:
        payload = copy.deepcopy(BASE_DEFINITION)
        payload.update(copy.deepcopy(overrides))
        return payload

    return _make


@pytest.fixture
def create_definition(container, admin, make_definition) -> Callable[..., WorkflowDefinition]:
    """Store a definition through the service as the administrator"""

    def _create(payload: Optional[Dict[str, Any]] = None, **overrides: Any) -> WorkflowDefinition:
        return container.definitions.create(payload or make_definition(**overrides), admin)

    return _create


@pytest.fixture
def definition(create_definition) -> WorkflowDefinition:
    return create_definition()


@pytest.fixture
def start_instance(container, officer, definition):
    """Start an instance of the standard definition"""

    def _start(actor: Optional[ActorContext] = None, fields: Optional[Dict[str, Any]] = None,
               definition_id: Optional[str] = None, doc_ref: Optional[str] = "DOC-1", **kwargs: Any):
        return container.engine.start_workflow(
            actor or officer,
            definition_id or definition.definition_id,
            fields if fields is not None else {"title": "Annual report", "amount": 500},
            doc_ref=doc_ref,
            **kwargs
        )

    return _start


@pytest.fixture
def in_review(container, officer, start_instance):
    """An instance moved to the review state"""
    instance = start_instance()
    return container.engine.execute_transition(officer, instance.instance_id, "submit")
