"""Tests for rule matching and workflow routing"""
import pytest

from govflow.domain.enums import InstanceStatus, MatchOperator
from govflow.domain.models import CustomFieldMatch, RouterContext
from govflow.engine.router import RuleMatcher, WorkflowRouter


@pytest.fixture
def templates(container, admin):
    """Complaint, approval and ethics workflows instantiated from the built-in templates"""
    return {
        template_id: container.templates.instantiate_template(template_id, admin)
        for template_id in ("student-complaint", "document-approval", "research-ethics")
    }


def _ids(suggestions):
    return [s.definition.definition_id for s in suggestions]


# =============================================================================
# Scoring
# =============================================================================

class TestRuleMatcher:

    def test_complaint_context_scores_complaint_workflow(self, container, templates):
        context = RouterContext(document_type="complaint", document_category="student", tags=["complaint"])

        suggestions = container.router.suggest(context)

        assert len(suggestions) == 1
        best = suggestions[0]
        assert best.definition.definition_id == templates["student-complaint"].definition_id
        assert best.match_score >= 10
        assert best.match_score == 10 + 10 + 5 + 1
        assert best.rule_id == "rule-student-complaint"
        assert "Matches document type: complaint" in best.match_reasons

    def test_contract_context_disqualifies_complaint(self, container, templates):
        context = RouterContext(document_type="contract", tags=["complaint"])

        suggestions = container.router.suggest(context)

        assert _ids(suggestions) == [templates["document-approval"].definition_id]
        assert suggestions[0].match_score == 5 + 10

    def test_category_mismatch_disqualifies(self, container, templates):
        context = RouterContext(document_type="complaint", document_category="staff")

        assert container.router.suggest(context) == []

    def test_tags_alone_never_disqualify(self, container, definition):
        matched = container.router.suggest(RouterContext(tags=["finance", "budget"]))
        unmatched = container.router.suggest(RouterContext(tags=["budget"]))

        assert _ids(matched) == [definition.definition_id]
        assert matched[0].match_score == 2 + 1
        assert unmatched == []

    def test_empty_context_matches_nothing(self, container, templates):
        assert container.router.suggest(RouterContext()) == []

    def test_inactive_definitions_are_ignored(self, container, admin, templates):
        container.definitions.deactivate(templates["document-approval"].definition_id, admin)

        assert container.router.suggest(RouterContext(document_type="contract")) == []

    def test_custom_field_matches(self, container, create_definition):
        defn = create_definition(assignment_rules=[{
            "id": "rule-large",
            "custom_field_matches": [{"field_name": "amount", "operator": "greaterThan", "value": 1000}],
        }])

        large = container.router.suggest(RouterContext(custom_fields={"amount": 5000}))
        small = container.router.suggest(RouterContext(custom_fields={"amount": 500}))
        absent = container.router.suggest(RouterContext(custom_fields={"other": 1}))

        assert _ids(large) == [defn.definition_id]
        assert large[0].match_score == 3
        assert small == []
        assert absent == []

    def test_ties_resolved_by_priority_then_creation(self, container, create_definition):
        by_category = create_definition(name="By category", assignment_rules=[
            {"id": "r1", "priority": 0, "document_type": ["report"], "document_category": ["finance"]}
        ])
        by_priority = create_definition(name="By priority", assignment_rules=[
            {"id": "r2", "priority": 5, "document_type": ["report"]}
        ])
        twin = create_definition(name="Twin", assignment_rules=[
            {"id": "r3", "priority": 5, "document_type": ["report"]}
        ])

        suggestions = container.router.suggest(RouterContext(document_type="report", document_category="finance"))

        assert [s.match_score for s in suggestions] == [15, 15, 15]
        assert _ids(suggestions) == [by_priority.definition_id, twin.definition_id, by_category.definition_id]

    def test_best_rule_of_definition_wins(self, container, create_definition):
        defn = create_definition(assignment_rules=[
            {"id": "weak", "priority": 1, "tags": ["finance"]},
            {"id": "strong", "priority": 1, "document_type": ["report"]},
        ])

        suggestions = container.router.suggest(RouterContext(document_type="report", tags=["finance"]))

        assert _ids(suggestions) == [defn.definition_id]
        assert suggestions[0].rule_id == "strong"

    def test_committee_match_implies_auto_start_only_when_enabled(self, container, create_definition):
        create_definition(assignment_rules=[{"id": "rc", "committee": ["ReviewBoard"]}])
        context = RouterContext(committee="ReviewBoard")
        definitions = container.definitions.list_definitions(is_active=True)

        assert RuleMatcher(committee_implies_auto_start=False).rank(definitions, context)[0].auto_start is False
        assert RuleMatcher(committee_implies_auto_start=True).rank(definitions, context)[0].auto_start is True

    def test_find_matching_returns_definitions(self, container, templates):
        matches = container.definitions.find_matching(RouterContext(document_type="ethics-application"))

        assert [d.definition_id for d in matches] == [templates["research-ethics"].definition_id]


@pytest.mark.parametrize("operator,expected,value,result", [
    (MatchOperator.EQUALS, "high", "high", True),
    (MatchOperator.EQUALS, "high", None, False),
    (MatchOperator.CONTAINS, "urgent", ["urgent", "finance"], True),
    (MatchOperator.CONTAINS, "fin", "finance", True),
    (MatchOperator.STARTS_WITH, "FIN-", "FIN-2024-7", True),
    (MatchOperator.STARTS_WITH, "FIN-", "HR-1", False),
    (MatchOperator.GREATER_THAN, 10, "12", True),
    (MatchOperator.LESS_THAN, 10, "abc", False),
    (MatchOperator.LESS_THAN, 10, None, False),
])
def test_field_matches(operator, expected, value, result):
    match = CustomFieldMatch(field_name="x", operator=operator, value=expected)

    assert RuleMatcher.field_matches(match, value) is result


# =============================================================================
# Auto-start
# =============================================================================

ETHICS_FIELDS = {
    "researcher_name": "Dr. Amara Osei",
    "research_title": "Sleep patterns in first-year students",
    "research_type": "Human Subjects",
    "risk_level": "Low",
    "participant_count": 120,
}


class TestAutoStart:

    def test_route_to_committee_starts_ethics_workflow(self, container, admin, templates):
        instance = container.router.route_to_committee(
            admin, "EthicsCommittee", "ethics-application", doc_ref="DOC-ETH-1", custom_fields=ETHICS_FIELDS
        )

        assert instance is not None
        assert instance.definition_id == templates["research-ethics"].definition_id
        assert instance.status == InstanceStatus.ACTIVE
        assert instance.current_state == "submitted"
        assert instance.assigned_committee == "EthicsCommittee"
        assert instance.doc_ref == "DOC-ETH-1"
        assert instance.field_values["participant_count"] == 120

    def test_best_match_without_auto_start_returns_none(self, container, admin, templates):
        instance = container.router.route_document(admin, "DOC-9", "contract")

        assert instance is None
        assert container.engine.list_instances_for_document("DOC-9") == []

    def test_no_match_returns_none(self, container, admin, templates):
        assert container.router.auto_start(admin, RouterContext(document_type="memo")) is None

    def test_context_values_override_initial_fields(self, container, admin, create_definition, make_definition):
        payload = make_definition(assignment_rules=[{"id": "auto", "document_type": ["report"], "auto_start": True}])
        payload["fields"].append({"name": "document_type", "label": "Document Type", "type": "text"})
        create_definition(payload)

        instance = container.router.auto_start(
            admin,
            RouterContext(document_type="report", doc_ref="DOC-3"),
            initial_fields={"title": "Quarterly", "document_type": "memo"}
        )

        assert instance.field_values["document_type"] == "report"
        assert instance.field_values["title"] == "Quarterly"

    def test_context_field_values_only_for_declared_fields(self, definition):
        context = RouterContext(
            document_type="report",
            priority="high",
            custom_fields={"amount": 12, "unknown": "x"}
        )

        values = WorkflowRouter.context_field_values(definition, context)

        assert values == {"priority": "high", "amount": 12}
