"""Service modules - Business logic layer"""
from .access_control import AccessControlService
from .definition_service import DefinitionService
from .document_service import DocumentService
from .notification_service import NotificationService
from .template_service import TemplateService
from .webhook_client import WebhookClient
from .container import ServiceContainer, get_container, set_container

__all__ = [
    "AccessControlService",
    "DefinitionService",
    "DocumentService",
    "NotificationService",
    "TemplateService",
    "WebhookClient",
    "ServiceContainer",
    "get_container",
    "set_container",
]
