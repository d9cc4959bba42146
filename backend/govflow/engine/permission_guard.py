"""Permission Guard - Authorization predicates for workflow operations"""
from typing import Optional

from ..domain.models import (
    ActorContext, UserPermissions, WorkflowDefinition, WorkflowInstance,
    WorkflowSettings, WorkflowTransition
)
from ..domain.enums import AccessLevel
from ..utils.logger import get_logger

logger = get_logger(__name__)


class PermissionGuard:
    """
    Permission enforcement for workflow operations

    Rules:
    - Admin may start any workflow
    - Start restrictions (access levels, roles, committees) apply only when populated
    - Transitions require any-of roles, a minimum access level and any-of committees
    - Field updates: start authorization or being the assignee
    - Cancellation: Admin, the starter, or start authorization
    """

    def can_start(self, permissions: UserPermissions, settings: WorkflowSettings) -> bool:
        """Check if the user may start instances of a definition"""
        if permissions.is_admin:
            return True

        if settings.allowed_access_levels and permissions.access_level not in settings.allowed_access_levels:
            return False

        if settings.allowed_roles and not set(settings.allowed_roles) & set(permissions.roles):
            return False

        if settings.allowed_committees and not set(settings.allowed_committees) & set(permissions.committees):
            return False

        return True

    def check_transition(
        self,
        permissions: UserPermissions,
        transition: WorkflowTransition
    ) -> Optional[str]:
        """
        Evaluate the transition's authorization predicate

        Returns:
            Reason the actor is not allowed, or None if allowed
        """
        if transition.required_roles and not set(transition.required_roles) & set(permissions.roles):
            return f"Requires one of roles: {', '.join(transition.required_roles)}"

        if transition.required_access_level is not None:
            if not permissions.access_level.satisfies(transition.required_access_level):
                return f"Requires access level {transition.required_access_level.value}"

        if transition.required_committees:
            if not set(transition.required_committees) & set(permissions.committees):
                return f"Requires membership of: {', '.join(transition.required_committees)}"

        return None

    def can_update_fields(
        self,
        actor: ActorContext,
        permissions: UserPermissions,
        instance: WorkflowInstance,
        definition: WorkflowDefinition
    ) -> bool:
        """Check if actor can edit field values of the instance"""
        if self._is_assignee(actor, instance):
            return True
        return self.can_start(permissions, definition.settings)

    def can_cancel(
        self,
        actor: ActorContext,
        permissions: UserPermissions,
        instance: WorkflowInstance,
        definition: WorkflowDefinition
    ) -> bool:
        """Check if actor can cancel the instance"""
        if permissions.access_level == AccessLevel.ADMIN:
            return True
        if actor.upn.lower() == instance.started_by.lower():
            return True
        return self.can_start(permissions, definition.settings)

    @staticmethod
    def _is_assignee(actor: ActorContext, instance: WorkflowInstance) -> bool:
        if not instance.assigned_to:
            return False
        assignee = instance.assigned_to.lower()
        return assignee in (actor.user_id.lower(), actor.upn.lower())
