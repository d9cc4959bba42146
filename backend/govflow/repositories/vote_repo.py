"""Vote Repository - Data access for ballot boxes"""
from datetime import timedelta
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection, VOTES
from ..domain.models import WorkflowVote
from ..domain.errors import VoteNotFoundError, ConcurrencyError
from ..config.settings import settings
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class VoteRepository:
    """Repository for per (instance, transition) ballot boxes"""

    def __init__(self, retention_days: Optional[int] = None):
        self._votes: Collection = get_collection(VOTES)
        self._retention = timedelta(days=retention_days or settings.instance_retention_days)

    def create(self, vote: WorkflowVote) -> WorkflowVote:
        """
        Insert a new ballot box

        Raises:
            ConcurrencyError: If another caller created the box first
        """
        doc = self._to_doc(vote)
        doc["_id"] = vote.vote_id

        try:
            self._votes.insert_one(doc)
        except DuplicateKeyError:
            raise ConcurrencyError(
                f"Ballot box for {vote.instance_id}/{vote.transition_id} already exists",
                details={"instance_id": vote.instance_id, "transition_id": vote.transition_id}
            )

        logger.info(
            f"Opened ballot box {vote.vote_id}",
            extra={"vote_id": vote.vote_id, "instance_id": vote.instance_id, "transition_id": vote.transition_id}
        )
        return vote

    def get(self, instance_id: str, transition_id: str) -> Optional[WorkflowVote]:
        """Get the ballot box for an instance transition"""
        doc = self._votes.find_one({"instance_id": instance_id, "transition_id": transition_id})
        return self._to_model(doc) if doc else None

    def get_or_raise(self, instance_id: str, transition_id: str) -> WorkflowVote:
        vote = self.get(instance_id, transition_id)
        if not vote:
            raise VoteNotFoundError(
                f"No vote for transition {transition_id} on instance {instance_id}"
            )
        return vote

    def list_for_instance(self, instance_id: str) -> List[WorkflowVote]:
        return [self._to_model(doc) for doc in self._votes.find({"instance_id": instance_id})]

    def save(self, vote: WorkflowVote, expected_version: int) -> WorkflowVote:
        """
        Compare-and-swap write of the ballot box

        Raises:
            ConcurrencyError: If the box was modified since it was read
        """
        vote.version = expected_version + 1
        doc = self._to_doc(vote)

        result = self._votes.find_one_and_update(
            {"vote_id": vote.vote_id, "version": expected_version},
            {"$set": doc},
            return_document=ReturnDocument.AFTER
        )

        if result is None:
            vote.version = expected_version
            if self._votes.find_one({"vote_id": vote.vote_id}):
                raise ConcurrencyError(
                    f"Ballot box {vote.vote_id} was modified concurrently",
                    details={"expected_version": expected_version}
                )
            raise VoteNotFoundError(f"Ballot box {vote.vote_id} not found")

        return self._to_model(result)

    def _to_doc(self, vote: WorkflowVote) -> Dict[str, Any]:
        doc = vote.model_dump(mode="json")
        doc["expires_at"] = utc_now() + self._retention
        return doc

    def _to_model(self, doc: Dict[str, Any]) -> WorkflowVote:
        doc.pop("_id", None)
        doc.pop("expires_at", None)
        return WorkflowVote.model_validate(doc)
