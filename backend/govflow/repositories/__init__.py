"""Repository modules - Data access layer"""
from .mongo_client import get_database, get_collection
from .definition_repo import DefinitionRepository
from .instance_repo import InstanceRepository
from .vote_repo import VoteRepository
from .audit_repo import AuditRepository
from .notification_repo import NotificationRepository
from .access_repo import AccessRepository

__all__ = [
    "get_database",
    "get_collection",
    "DefinitionRepository",
    "InstanceRepository",
    "VoteRepository",
    "AuditRepository",
    "NotificationRepository",
    "AccessRepository",
]
