"""Script to validate a workflow definition

Usage:
    python scripts/validate_workflow.py path/to/definition.json
    python scripts/validate_workflow.py WFD-1234ABCD   # stored definition
"""
import argparse
import json
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))

from govflow.domain.models import WorkflowDefinitionCreate  # noqa: E402
from govflow.engine.definition_validator import DefinitionValidator  # noqa: E402
from govflow.repositories.definition_repo import DefinitionRepository  # noqa: E402


def load_definition(source: str) -> WorkflowDefinitionCreate:
    if os.path.isfile(source):
        with open(source, "r", encoding="utf-8") as f:
            return WorkflowDefinitionCreate.model_validate(json.load(f))
    return DefinitionRepository().get_or_raise(source).to_create_payload()


def print_summary(definition: WorkflowDefinitionCreate) -> None:
    print(f"Workflow: {definition.name}")
    print(f"   Category: {definition.category or '-'}")
    print()

    print("=" * 60)
    print(f"STATES ({len(definition.states)})")
    print("=" * 60)
    for state in definition.states:
        marks = []
        if state.is_initial:
            marks.append("initial")
        if state.is_final:
            marks.append("final")
        if state.sla:
            marks.append(f"sla {state.sla.max_duration_hours}h")
        suffix = f" [{', '.join(marks)}]" if marks else ""
        print(f"   • {state.id}: {state.label}{suffix}")

    print()
    print("=" * 60)
    print(f"TRANSITIONS ({len(definition.transitions)})")
    print("=" * 60)
    for transition in definition.transitions:
        vote = f" (vote: {transition.effective_vote_type.value})" if transition.requires_vote else ""
        print(f"   • {transition.id}: {transition.from_state} -> {transition.to_state}{vote}")

    print()
    print(f"Fields: {len(definition.fields)}  Rules: {len(definition.assignment_rules)}  "
          f"Automations: {len(definition.automations)}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate a workflow definition")
    parser.add_argument("source", help="Definition JSON file or stored definition id")
    args = parser.parse_args()

    definition = load_definition(args.source)
    print_summary(definition)

    report = DefinitionValidator().validate(definition)
    print()
    for error in report.errors:
        print(f"ERROR   {error['path']}: {error['message']}")
    for warning in report.warnings:
        print(f"WARNING {warning}")

    print()
    print("VALID" if report.valid else f"INVALID ({len(report.errors)} error(s))")
    return 0 if report.valid else 1


if __name__ == "__main__":
    sys.exit(main())
