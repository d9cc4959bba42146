"""Access Control Service - Permission resolution for workflow actors"""
from typing import Iterable, List, Optional

from ..domain.models import ActorContext, UserPermissions
from ..domain.enums import AccessLevel
from ..repositories.access_repo import AccessRepository
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AccessControlService:
    """
    Resolves what an actor may do

    Stored permissions win over token claims for the access level; roles
    carried by the token are always merged in. Committee membership is the
    union of the stored list and the committees that list the user as member.
    """

    def __init__(self, repo: Optional[AccessRepository] = None):
        self.repo = repo or AccessRepository()

    def get_user_permissions(self, actor: ActorContext) -> UserPermissions:
        if actor.is_system:
            return UserPermissions(
                user_id=actor.user_id,
                access_level=AccessLevel.ADMIN,
                roles=list(actor.roles)
            )

        stored = self.repo.get_user_permissions(actor.user_id)
        access_level = stored.access_level if stored else self._level_from_roles(actor.roles)

        roles = list(stored.roles) if stored else []
        roles += [r for r in actor.roles if r not in roles]

        committees = list(stored.committees) if stored else []
        for committee in self.repo.list_committees_for_member(actor.user_id):
            if committee.committee_id not in committees:
                committees.append(committee.committee_id)

        return UserPermissions(
            user_id=actor.user_id,
            access_level=access_level,
            committees=committees,
            roles=roles
        )

    @staticmethod
    def _level_from_roles(roles: Iterable[str]) -> AccessLevel:
        """Highest access level named by a token role"""
        level = AccessLevel.PUBLIC
        for role in roles:
            try:
                candidate = AccessLevel(role)
            except ValueError:
                continue
            if candidate.rank > level.rank:
                level = candidate
        return level

    def can_access_resource(
        self,
        actor: ActorContext,
        required_access_level: Optional[AccessLevel] = None,
        committees: Optional[List[str]] = None,
        roles: Optional[List[str]] = None
    ) -> bool:
        """Check a resource restriction; empty restrictions allow everyone"""
        permissions = self.get_user_permissions(actor)
        if permissions.is_admin:
            return True
        if required_access_level and not permissions.access_level.satisfies(required_access_level):
            return False
        if committees and not set(committees) & set(permissions.committees):
            return False
        if roles and not set(roles) & set(permissions.roles):
            return False
        return True

    def count_eligible_voters(self, committees: Iterable[str]) -> int:
        """Distinct members across the given committees"""
        members = set()
        for committee in self.repo.list_committees(committees):
            members.update(committee.members)
        return len(members)
