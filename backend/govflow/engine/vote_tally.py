"""Vote Tally - Ballot boxes for vote-gated transitions"""
from datetime import datetime
from typing import Optional, Tuple, TYPE_CHECKING

from ..domain.models import (
    ActorContext, Ballot, WorkflowDefinition, WorkflowInstance, WorkflowTransition, WorkflowVote
)
from ..domain.enums import (
    AuditEventType, InstanceStatus, VoteChoice, VoteStatus, VoteType
)
from ..domain.errors import (
    ConditionNotMetError, ForbiddenError, InvalidStateError, InvalidTransitionError
)
from ..repositories.vote_repo import VoteRepository
from ..config.settings import settings
from ..utils.idgen import generate_vote_id
from ..utils.time import format_iso, utc_now
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from .engine import WorkflowEngine
    from ..services.access_control import AccessControlService

logger = get_logger(__name__)


# =============================================================================
# Pure tally rules
# =============================================================================

def apply_ballot(
    vote: WorkflowVote,
    user_id: str,
    choice: VoteChoice,
    now: datetime,
    upn: Optional[str] = None,
    comment: Optional[str] = None
) -> None:
    """Record a ballot, replacing any previous ballot from the same user"""
    previous = vote.get_ballot(user_id)
    if previous is not None:
        _adjust(vote, previous.choice, -1)
        vote.ballots = [b for b in vote.ballots if b.user_id != user_id]

    vote.ballots.append(Ballot(user_id=user_id, upn=upn, choice=choice, comment=comment, cast_at=now))
    _adjust(vote, choice, +1)


def _adjust(vote: WorkflowVote, choice: VoteChoice, delta: int) -> None:
    if choice == VoteChoice.FOR:
        vote.votes_for += delta
    elif choice == VoteChoice.AGAINST:
        vote.votes_against += delta
    else:
        vote.votes_abstain += delta


def vote_passes(vote_type: VoteType, votes_for: int, votes_against: int, total: int) -> bool:
    """Pass rule of a vote type over the current tallies"""
    if vote_type == VoteType.SIMPLE_MAJORITY:
        return votes_for > votes_against
    if vote_type == VoteType.TWO_THIRDS:
        # for >= ceil(2/3 * total)
        return votes_for >= -(-2 * total // 3)
    if vote_type == VoteType.UNANIMOUS:
        return votes_for == total and votes_against == 0
    return False


def evaluate(vote: WorkflowVote) -> VoteStatus:
    """
    Status of a ballot box

    Pending until quorum (total >= required). At quorum the box either passes
    or, its pass condition no longer being reachable, fails.
    """
    total = vote.total_votes
    if total < vote.required_votes:
        return VoteStatus.PENDING
    if vote_passes(vote.vote_type, vote.votes_for, vote.votes_against, total):
        return VoteStatus.PASSED
    return VoteStatus.FAILED


# =============================================================================
# Vote Tally
# =============================================================================

class VoteTally:
    """
    Per (instance, transition) ballot boxes

    The caller whose compare-and-swap flips a box from pending to passed is
    the only one that executes the gated transition.
    """

    def __init__(
        self,
        engine: "WorkflowEngine",
        access_control: "AccessControlService",
        vote_repo: Optional[VoteRepository] = None,
        default_required_votes: Optional[int] = None
    ):
        self.engine = engine
        self.access = access_control
        self.repo = vote_repo or engine.vote_repo
        self.default_required_votes = default_required_votes or settings.default_required_votes

    def get_vote(self, instance_id: str, transition_id: str) -> WorkflowVote:
        return self.repo.get_or_raise(instance_id, transition_id)

    def cast_vote(
        self,
        actor: ActorContext,
        instance_id: str,
        transition_id: str,
        choice: VoteChoice,
        comment: Optional[str] = None
    ) -> WorkflowVote:
        """
        Cast (or replace) the actor's ballot

        Raises:
            InvalidStateError: Instance not active, or the box is closed
            InvalidTransitionError: Transition unknown, not vote-gated, or not
                available from the current state
            ForbiddenError: Actor fails the transition's authorization predicate
            ConditionNotMetError: A transition condition currently fails
        """
        saved, closed_now, definition = self._cast_with_retries(actor, instance_id, transition_id, choice, comment)
        namespace = self.engine.audit.namespace_for(definition)

        logger.info(
            f"Vote cast on {instance_id}/{transition_id}: {choice.value}",
            extra={"vote_id": saved.vote_id, "instance_id": instance_id, "actor": actor.upn}
        )

        self.engine.record_vote(
            actor, instance_id, transition_id, choice, comment,
            metadata={
                "vote_id": saved.vote_id,
                "votes_for": saved.votes_for,
                "votes_against": saved.votes_against,
                "votes_abstain": saved.votes_abstain,
            }
        )
        self.engine.audit.record_event(
            AuditEventType.VOTE_CAST,
            actor.upn,
            {
                "instance_id": instance_id,
                "transition_id": transition_id,
                "vote_id": saved.vote_id,
                "choice": choice.value,
                "votes_for": saved.votes_for,
                "votes_against": saved.votes_against,
                "votes_abstain": saved.votes_abstain,
                "required_votes": saved.required_votes,
                "status": saved.status.value,
                "closed_at": format_iso(saved.closed_at) if saved.closed_at else None,
            },
            idempotency_key=f"workflow_vote_{saved.vote_id}_{actor.user_id}_{saved.version}",
            namespace=namespace
        )

        if closed_now and saved.status == VoteStatus.PASSED:
            logger.info(
                f"Vote {saved.vote_id} passed, executing {transition_id}",
                extra={"vote_id": saved.vote_id, "instance_id": instance_id, "transition_id": transition_id}
            )
            self.engine.execute_transition(actor, instance_id, transition_id, vote_passed=True)
        elif closed_now:
            logger.info(
                f"Vote {saved.vote_id} failed",
                extra={"vote_id": saved.vote_id, "instance_id": instance_id, "transition_id": transition_id}
            )

        return saved

    def _cast_with_retries(
        self,
        actor: ActorContext,
        instance_id: str,
        transition_id: str,
        choice: VoteChoice,
        comment: Optional[str]
    ) -> Tuple[WorkflowVote, bool, WorkflowDefinition]:
        """Returns (saved box, box closed by this call, definition)"""

        def cycle() -> Tuple[WorkflowVote, bool, WorkflowDefinition]:
            instance = self.engine.instance_repo.get_or_raise(instance_id)
            if instance.status != InstanceStatus.ACTIVE:
                raise InvalidStateError(
                    f"Instance {instance_id} is {instance.status.value}",
                    details={"instance_id": instance_id, "status": instance.status.value}
                )

            definition = self.engine.definitions.get(instance.definition_id)
            transition = definition.get_transition(transition_id)
            if transition is None or not transition.requires_vote or transition.from_state != instance.current_state:
                raise InvalidTransitionError(
                    f"Transition {transition_id} is not open for voting in state '{instance.current_state}'",
                    details={"instance_id": instance_id, "transition_id": transition_id}
                )

            permissions = self.access.get_user_permissions(actor)
            reason = self.engine.permission_guard.check_transition(permissions, transition)
            if reason:
                raise ForbiddenError(reason, details={"transition_id": transition_id})

            # A box must never pass for a transition whose conditions fail
            now = utc_now()
            failing = self.engine.conditions.first_failing(transition.conditions, instance, permissions, now)
            if failing is not None:
                raise ConditionNotMetError(
                    f"Condition not met: {self.engine.conditions.describe(failing)}",
                    details={"transition_id": transition_id, "condition": failing.model_dump(mode="json")}
                )

            vote = self.repo.get(instance_id, transition_id)
            if vote is None:
                vote = self.repo.create(self._open_box(instance, transition))
            elif vote.state_entered_at != instance.state_entered_at:
                # Left over from an earlier visit to the source state
                logger.info(
                    f"Resetting ballot box {vote.vote_id} for a new visit to '{instance.current_state}'",
                    extra={"vote_id": vote.vote_id, "instance_id": instance_id, "transition_id": transition_id}
                )
                vote = self._open_box(instance, transition, previous=vote)

            if vote.status != VoteStatus.PENDING:
                raise InvalidStateError(
                    f"Vote on {transition_id} is closed ({vote.status.value})",
                    details={"vote_id": vote.vote_id, "status": vote.status.value}
                )

            expected_version = vote.version
            apply_ballot(vote, actor.user_id, choice, now, upn=actor.upn, comment=comment)
            status = evaluate(vote)
            if status != VoteStatus.PENDING:
                vote.status = status
                vote.closed_at = now

            saved = self.repo.save(vote, expected_version)
            return saved, status != VoteStatus.PENDING, definition

        return self.engine.with_retries("cast_vote", instance_id, cycle)

    def _open_box(
        self,
        instance: WorkflowInstance,
        transition: WorkflowTransition,
        previous: Optional[WorkflowVote] = None
    ) -> WorkflowVote:
        """
        Build an empty box for the instance's current visit to the source state

        When replacing a previous box, its vote_id and version are kept so the
        reset is saved as a compare-and-swap over the stored document.
        """
        committees = list(transition.required_committees)
        if not committees and instance.assigned_committee:
            committees = [instance.assigned_committee]
        required = self.access.count_eligible_voters(committees) if committees else 0
        if required <= 0:
            required = self.default_required_votes

        return WorkflowVote(
            vote_id=previous.vote_id if previous else generate_vote_id(),
            instance_id=instance.instance_id,
            transition_id=transition.id,
            vote_type=transition.effective_vote_type,
            required_votes=required,
            created_at=utc_now(),
            state_entered_at=instance.state_entered_at,
            version=previous.version if previous else 1
        )
