"""Access Repository - User permissions and committee membership"""
from typing import Iterable, List, Optional
from pymongo.collection import Collection

from .mongo_client import get_collection, USER_PERMISSIONS, COMMITTEES
from ..domain.models import UserPermissions, Committee
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AccessRepository:
    """Read side of the access-control source data"""

    def __init__(self):
        self._permissions: Collection = get_collection(USER_PERMISSIONS)
        self._committees: Collection = get_collection(COMMITTEES)

    # =========================================================================
    # User permissions
    # =========================================================================

    def get_user_permissions(self, user_id: str) -> Optional[UserPermissions]:
        doc = self._permissions.find_one({"user_id": user_id})
        if doc:
            doc.pop("_id", None)
            return UserPermissions.model_validate(doc)
        return None

    def upsert_user_permissions(self, permissions: UserPermissions) -> UserPermissions:
        doc = permissions.model_dump(mode="json")
        self._permissions.update_one(
            {"user_id": permissions.user_id},
            {"$set": doc},
            upsert=True
        )
        logger.info(f"Upserted permissions for {permissions.user_id}")
        return permissions

    # =========================================================================
    # Committees
    # =========================================================================

    def get_committee(self, committee_id: str) -> Optional[Committee]:
        doc = self._committees.find_one({"committee_id": committee_id})
        if doc:
            doc.pop("_id", None)
            return Committee.model_validate(doc)
        return None

    def list_committees(self, committee_ids: Iterable[str]) -> List[Committee]:
        ids = list(committee_ids)
        committees = []
        for doc in self._committees.find({"committee_id": {"$in": ids}}):
            doc.pop("_id", None)
            committees.append(Committee.model_validate(doc))
        return committees

    def upsert_committee(self, committee: Committee) -> Committee:
        doc = committee.model_dump(mode="json")
        self._committees.update_one(
            {"committee_id": committee.committee_id},
            {"$set": doc},
            upsert=True
        )
        logger.info(f"Upserted committee {committee.committee_id}")
        return committee

    def list_committees_for_member(self, user_id: str) -> List[Committee]:
        committees = []
        for doc in self._committees.find({"members": user_id}):
            doc.pop("_id", None)
            committees.append(Committee.model_validate(doc))
        return committees
