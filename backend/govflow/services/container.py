"""Service Container - Wires repositories, services and the engine together

One container per process so that the definition cache is shared by every
request and by the SLA scheduler.
"""
from typing import Optional

from ..config.settings import settings
from ..engine.action_executor import ActionExecutor
from ..engine.audit_writer import AuditWriter
from ..engine.definition_cache import DefinitionCache
from ..engine.engine import WorkflowEngine
from ..engine.router import RuleMatcher, WorkflowRouter
from ..engine.vote_tally import VoteTally
from ..repositories.instance_repo import InstanceRepository
from ..repositories.vote_repo import VoteRepository
from .access_control import AccessControlService
from .definition_service import DefinitionService
from .document_service import DocumentService
from .notification_service import NotificationService
from .template_service import TemplateService
from .webhook_client import WebhookClient


class ServiceContainer:
    """Holds the long-lived collaborators of the application"""

    def __init__(
        self,
        access_control: Optional[AccessControlService] = None,
        document_service: Optional[DocumentService] = None,
        webhook_client: Optional[WebhookClient] = None,
        notification_service: Optional[NotificationService] = None,
        cache: Optional[DefinitionCache] = None
    ):
        self.access_control = access_control or AccessControlService()
        self.documents = document_service or DocumentService()
        self.webhooks = webhook_client or WebhookClient()
        self.notifications = notification_service or NotificationService()
        self.audit = AuditWriter()

        self.definitions = DefinitionService(
            self.access_control,
            self.audit,
            cache=cache or DefinitionCache(ttl_seconds=settings.definition_cache_ttl_seconds),
            matcher=RuleMatcher()
        )
        self.templates = TemplateService(self.definitions)

        self.actions = ActionExecutor(self.notifications, self.documents, self.webhooks, self.audit)
        self.engine = WorkflowEngine(
            self.definitions,
            self.access_control,
            self.actions,
            self.audit,
            self.notifications,
            instance_repo=InstanceRepository(),
            vote_repo=VoteRepository()
        )
        self.votes = VoteTally(self.engine, self.access_control)
        self.router = WorkflowRouter(self.definitions, self.engine)


# Global container instance
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """Get or create the container"""
    global _container
    if _container is None:
        _container = ServiceContainer()
    return _container


def set_container(container: Optional[ServiceContainer]) -> None:
    """Replace the global container (None resets it)"""
    global _container
    _container = container
