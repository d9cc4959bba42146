"""Definition Service - Workflow definition store business logic"""
from typing import Any, Dict, List, Optional, Union, TYPE_CHECKING
from pydantic import ValidationError as PydanticValidationError

from ..domain.models import (
    ActorContext, RouterContext, ValidationReport, WorkflowDefinition, WorkflowDefinitionCreate
)
from ..domain.enums import AuditEventType
from ..domain.errors import (
    DefinitionNotFoundError, DefinitionValidationError, ForbiddenError, InvalidStateError
)
from ..repositories.definition_repo import DefinitionRepository
from ..engine.audit_writer import AuditWriter
from ..engine.definition_cache import DefinitionCache
from ..engine.definition_validator import DefinitionValidator
from ..engine.router import RuleMatcher
from ..config.settings import settings
from ..utils.idgen import generate_definition_id, generate_lineage_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from .access_control import AccessControlService

logger = get_logger(__name__)

DefinitionPayload = Union[WorkflowDefinitionCreate, Dict[str, Any]]


class DefinitionService:
    """
    Service for workflow definitions

    Definitions are immutable once stored. A change is a new version in the
    same lineage; the previous version is deactivated. All reads are served
    through the DefinitionCache and every write invalidates it.
    """

    def __init__(
        self,
        access_control: "AccessControlService",
        audit_writer: AuditWriter,
        repo: Optional[DefinitionRepository] = None,
        cache: Optional[DefinitionCache] = None,
        validator: Optional[DefinitionValidator] = None,
        matcher: Optional[RuleMatcher] = None
    ):
        self.access = access_control
        self.audit = audit_writer
        self.repo = repo or DefinitionRepository()
        self.cache = cache or DefinitionCache(ttl_seconds=settings.definition_cache_ttl_seconds)
        self.validator = validator or DefinitionValidator()
        self.matcher = matcher or RuleMatcher()

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self, payload: DefinitionPayload) -> ValidationReport:
        """Validate a definition without storing it"""
        try:
            definition = self._parse(payload)
        except DefinitionValidationError as e:
            return ValidationReport(valid=False, errors=e.violations)
        return self.validator.validate(definition)

    @staticmethod
    def _parse(payload: DefinitionPayload) -> WorkflowDefinitionCreate:
        if isinstance(payload, WorkflowDefinitionCreate):
            return payload
        try:
            return WorkflowDefinitionCreate.model_validate(payload)
        except PydanticValidationError as e:
            violations = [
                {
                    "path": ".".join(str(part) for part in err["loc"]) or "definition",
                    "message": err["msg"]
                }
                for err in e.errors()
            ]
            raise DefinitionValidationError("Workflow definition is malformed", violations=violations)

    def _validated(self, payload: DefinitionPayload) -> WorkflowDefinitionCreate:
        definition = self._parse(payload)
        report = self.validator.validate(definition)
        if not report.valid:
            logger.warning(
                f"Definition '{definition.name}' rejected with {len(report.errors)} error(s)"
            )
            raise DefinitionValidationError(
                "Workflow definition is invalid",
                violations=report.errors,
                details={"warnings": report.warnings}
            )
        if report.warnings:
            logger.info(f"Definition '{definition.name}' accepted with {len(report.warnings)} warning(s)")
        return definition

    def _require_admin(self, actor: ActorContext, operation: str) -> None:
        permissions = self.access.get_user_permissions(actor)
        if not permissions.is_admin:
            raise ForbiddenError(
                f"Only administrators may {operation} workflow definitions",
                details={"actor": actor.upn}
            )

    # =========================================================================
    # Writes
    # =========================================================================

    def create(self, payload: DefinitionPayload, actor: ActorContext) -> WorkflowDefinition:
        """
        Create and store the first version of a definition

        Raises:
            ForbiddenError: Actor is not an administrator
            DefinitionValidationError: Definition breaks one or more invariants
        """
        self._require_admin(actor, "create")
        validated = self._validated(payload)

        now = utc_now()
        definition = WorkflowDefinition(
            **validated.model_dump(),
            definition_id=generate_definition_id(),
            lineage_id=generate_lineage_id(),
            version=1,
            is_active=True,
            created_at=now,
            created_by=actor.upn,
            updated_at=now
        )
        self.repo.create(definition)
        self.cache.invalidate()

        self.audit.record_event(
            AuditEventType.DEFINITION_CREATED,
            actor.upn,
            {
                "definition_id": definition.definition_id,
                "lineage_id": definition.lineage_id,
                "name": definition.name,
                "version": definition.version,
            },
            idempotency_key=f"workflow_def_{definition.definition_id}",
            namespace=self.audit.namespace_for(definition)
        )
        logger.info(
            f"Created workflow definition {definition.definition_id}: {definition.name}",
            extra={"definition_id": definition.definition_id, "actor": actor.upn}
        )
        return definition

    def publish_new_version(
        self,
        definition_id: str,
        payload: DefinitionPayload,
        actor: ActorContext
    ) -> WorkflowDefinition:
        """
        Store a new version of an existing definition and deactivate the old one

        Only the latest version of a lineage can be superseded. Running
        instances keep the version they were started with.
        """
        self._require_admin(actor, "version")
        previous = self.repo.get_or_raise(definition_id)

        latest = self.repo.get_latest_in_lineage(previous.lineage_id)
        if latest is not None and latest.definition_id != previous.definition_id:
            raise InvalidStateError(
                f"Definition {definition_id} has already been superseded by {latest.definition_id}",
                details={"definition_id": definition_id, "latest_definition_id": latest.definition_id}
            )

        validated = self._validated(payload)
        now = utc_now()
        definition = WorkflowDefinition(
            **validated.model_dump(),
            definition_id=generate_definition_id(),
            lineage_id=previous.lineage_id,
            version=previous.version + 1,
            supersedes=previous.definition_id,
            is_active=True,
            created_at=now,
            created_by=actor.upn,
            updated_at=now
        )
        self.repo.create(definition)
        if previous.is_active:
            self.repo.set_active(previous.definition_id, False)
        self.cache.invalidate()

        self.audit.record_event(
            AuditEventType.DEFINITION_VERSIONED,
            actor.upn,
            {
                "definition_id": definition.definition_id,
                "lineage_id": definition.lineage_id,
                "version": definition.version,
                "supersedes": previous.definition_id,
            },
            idempotency_key=f"workflow_def_{definition.definition_id}",
            namespace=self.audit.namespace_for(definition)
        )
        logger.info(
            f"Published {definition.definition_id} v{definition.version} superseding {previous.definition_id}",
            extra={"definition_id": definition.definition_id, "actor": actor.upn}
        )
        return definition

    def deactivate(self, definition_id: str, actor: ActorContext) -> WorkflowDefinition:
        """Soft-deactivate a definition; deactivating twice is a no-op"""
        self._require_admin(actor, "deactivate")
        definition = self.repo.get_or_raise(definition_id)
        if not definition.is_active:
            return definition

        definition = self.repo.set_active(definition_id, False)
        self.cache.invalidate()

        self.audit.record_event(
            AuditEventType.DEFINITION_DEACTIVATED,
            actor.upn,
            {"definition_id": definition_id, "lineage_id": definition.lineage_id, "version": definition.version},
            idempotency_key=f"workflow_def_deactivated_{definition_id}",
            namespace=self.audit.namespace_for(definition)
        )
        logger.info(f"Deactivated definition {definition_id}", extra={"definition_id": definition_id})
        return definition

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, definition_id: str) -> WorkflowDefinition:
        """Get a definition version (active or not) or raise DefinitionNotFoundError"""
        cached = self.cache.get(definition_id)
        if cached is not None:
            return cached

        definition = self.repo.get(definition_id)
        if definition is None:
            raise DefinitionNotFoundError(
                f"Workflow definition {definition_id} not found",
                details={"definition_id": definition_id}
            )
        self.cache.put(definition)
        return definition

    def list_definitions(
        self,
        category: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> List[WorkflowDefinition]:
        """List definitions in creation order"""
        definitions = self.cache.get_all()
        if definitions is None:
            definitions = self.repo.list_definitions()
            self.cache.put_all(definitions)

        return [
            d for d in definitions
            if (category is None or d.category == category)
            and (is_active is None or d.is_active == is_active)
        ]

    def find_matching(self, context: RouterContext) -> List[WorkflowDefinition]:
        """Active definitions with a rule matching the context, best first"""
        suggestions = self.matcher.rank(self.list_definitions(is_active=True), context)
        return [s.definition for s in suggestions]
