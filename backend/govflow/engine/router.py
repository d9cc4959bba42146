"""Workflow Router - Rule matching and auto-start of workflows"""
from typing import Any, Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

from ..domain.models import (
    ActorContext, AssignmentRule, CustomFieldMatch, RouterContext,
    WorkflowDefinition, WorkflowInstance, WorkflowSuggestion
)
from ..domain.enums import MatchOperator
from ..config.settings import settings
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from .engine import WorkflowEngine
    from ..services.definition_service import DefinitionService

logger = get_logger(__name__)

DOCUMENT_TYPE_BONUS = 10
CATEGORY_BONUS = 5
COMMITTEE_BONUS = 5
TAG_BONUS = 1
CUSTOM_FIELD_BONUS = 3


class RuleMatcher:
    """
    Scores definitions against a routing context

    A criterion is only considered when it is populated on the rule and the
    corresponding value is present in the context. A failed type, category,
    committee or custom-field criterion disqualifies the rule; tags never do.
    A rule counts only if it is not disqualified and earned at least one bonus.
    """

    def __init__(self, committee_implies_auto_start: Optional[bool] = None):
        if committee_implies_auto_start is None:
            committee_implies_auto_start = settings.router_committee_implies_auto_start
        self.committee_implies_auto_start = committee_implies_auto_start

    def score_rule(
        self,
        rule: AssignmentRule,
        context: RouterContext
    ) -> Optional[Tuple[int, List[str], bool]]:
        """
        Score one rule

        Returns:
            (score, reasons, committee matched), or None if the rule does not apply
        """
        if not rule.has_criteria:
            return None

        score = rule.priority
        reasons: List[str] = []
        earned = False
        committee_matched = False

        if rule.document_type and context.document_type:
            if context.document_type not in rule.document_type:
                return None
            score += DOCUMENT_TYPE_BONUS
            reasons.append(f"Matches document type: {context.document_type}")
            earned = True

        if rule.document_category and context.document_category:
            if context.document_category not in rule.document_category:
                return None
            score += CATEGORY_BONUS
            reasons.append(f"Matches category: {context.document_category}")
            earned = True

        if rule.committee and context.committee:
            if context.committee not in rule.committee:
                return None
            score += COMMITTEE_BONUS
            reasons.append(f"Matches committee: {context.committee}")
            earned = True
            committee_matched = True

        if rule.tags and context.tags:
            matched_tags = [t for t in context.tags if t in rule.tags]
            if matched_tags:
                score += TAG_BONUS * len(matched_tags)
                reasons.append(f"Matches tags: {', '.join(matched_tags)}")
                earned = True

        for match in rule.custom_field_matches:
            if match.field_name not in context.custom_fields:
                continue
            if not self.field_matches(match, context.custom_fields[match.field_name]):
                return None
            score += CUSTOM_FIELD_BONUS
            reasons.append(f"Custom field match: {match.field_name}")
            earned = True

        if not earned:
            return None
        return score, reasons, committee_matched

    def score_definition(
        self,
        definition: WorkflowDefinition,
        context: RouterContext
    ) -> Optional[Tuple[WorkflowSuggestion, int]]:
        """Best surviving rule of a definition as (suggestion, winning rule priority)"""
        best: Optional[Tuple[WorkflowSuggestion, int]] = None

        for rule in definition.assignment_rules:
            scored = self.score_rule(rule, context)
            if scored is None:
                continue
            score, reasons, committee_matched = scored
            if best is not None and (score, rule.priority) <= (best[0].match_score, best[1]):
                continue
            auto_start = rule.auto_start or (self.committee_implies_auto_start and committee_matched)
            best = (
                WorkflowSuggestion(
                    definition=definition,
                    rule_id=rule.id,
                    match_score=score,
                    match_reasons=reasons,
                    auto_start=auto_start
                ),
                rule.priority
            )

        return best

    def rank(
        self,
        definitions: Sequence[WorkflowDefinition],
        context: RouterContext
    ) -> List[WorkflowSuggestion]:
        """
        Suggestions ordered by score, then winning rule priority, then
        definition creation order
        """
        ordered = sorted(
            enumerate(definitions),
            key=lambda pair: (pair[1].created_at, pair[0])
        )

        scored = []
        for position, (_, definition) in enumerate(ordered):
            result = self.score_definition(definition, context)
            if result is not None:
                suggestion, priority = result
                scored.append((-suggestion.match_score, -priority, position, suggestion))

        scored.sort(key=lambda item: item[:3])
        return [item[3] for item in scored]

    @staticmethod
    def field_matches(match: CustomFieldMatch, value: Any) -> bool:
        """Evaluate a custom field predicate"""
        expected = match.value
        if match.operator == MatchOperator.EQUALS:
            return value == expected
        if value is None:
            return False
        if match.operator == MatchOperator.CONTAINS:
            if isinstance(value, list):
                return expected in value
            return str(expected) in str(value)
        if match.operator == MatchOperator.STARTS_WITH:
            return str(value).startswith(str(expected))
        try:
            if match.operator == MatchOperator.GREATER_THAN:
                return float(value) > float(expected)
            if match.operator == MatchOperator.LESS_THAN:
                return float(value) < float(expected)
        except (TypeError, ValueError):
            return False
        return False


class WorkflowRouter:
    """
    Suggests and auto-starts workflows for documents and committees
    """

    def __init__(
        self,
        definition_service: "DefinitionService",
        engine: "WorkflowEngine",
        matcher: Optional[RuleMatcher] = None
    ):
        self.definitions = definition_service
        self.engine = engine
        self.matcher = matcher or definition_service.matcher

    def suggest(self, context: RouterContext) -> List[WorkflowSuggestion]:
        """Active definitions scored against the context, best first"""
        suggestions = self.matcher.rank(self.definitions.list_definitions(is_active=True), context)
        logger.info(
            f"Routing found {len(suggestions)} matching workflow(s)",
            extra={"action": "suggest"}
        )
        return suggestions

    def auto_start(
        self,
        actor: ActorContext,
        context: RouterContext,
        initial_fields: Optional[Dict[str, Any]] = None
    ) -> Optional[WorkflowInstance]:
        """Start the best match if its winning rule is auto-start, else None"""
        suggestions = self.suggest(context)
        if not suggestions:
            return None

        best = suggestions[0]
        if not best.auto_start:
            logger.info(
                f"Best match {best.definition.definition_id} is not auto-start",
                extra={"definition_id": best.definition.definition_id}
            )
            return None

        field_values = dict(initial_fields or {})
        field_values.update(self.context_field_values(best.definition, context))

        logger.info(
            f"Auto-starting {best.definition.definition_id} (score {best.match_score})",
            extra={"definition_id": best.definition.definition_id, "actor": actor.upn}
        )
        return self.engine.start_workflow(
            actor,
            best.definition.definition_id,
            field_values,
            doc_ref=context.doc_ref,
            committee=context.committee
        )

    def route_document(
        self,
        actor: ActorContext,
        doc_ref: str,
        document_type: str,
        category: Optional[str] = None,
        committee: Optional[str] = None,
        tags: Optional[List[str]] = None
    ) -> Optional[WorkflowInstance]:
        context = RouterContext(
            doc_ref=doc_ref,
            document_type=document_type,
            document_category=category,
            committee=committee,
            tags=tags or [],
            submitted_by=actor.upn
        )
        return self.auto_start(actor, context)

    def route_to_committee(
        self,
        actor: ActorContext,
        committee: str,
        document_type: str,
        doc_ref: Optional[str] = None,
        custom_fields: Optional[Dict[str, Any]] = None
    ) -> Optional[WorkflowInstance]:
        context = RouterContext(
            committee=committee,
            document_type=document_type,
            doc_ref=doc_ref,
            custom_fields=custom_fields or {},
            submitted_by=actor.upn
        )
        return self.auto_start(actor, context)

    @staticmethod
    def context_field_values(definition: WorkflowDefinition, context: RouterContext) -> Dict[str, Any]:
        """Context values for the fields the definition declares"""
        candidates: Dict[str, Any] = {
            "document_type": context.document_type,
            "category": context.document_category,
            "committee": context.committee,
            "team": context.team,
            "priority": context.priority,
            "submitted_by": context.submitted_by,
            "tags": context.tags or None,
        }
        candidates.update(context.custom_fields)

        return {
            name: value
            for name, value in candidates.items()
            if value is not None and definition.get_field(name) is not None
        }
