"""Workflow Engine - The brain of the system"""
from .engine import WorkflowEngine
from .permission_guard import PermissionGuard
from .condition_evaluator import ConditionEvaluator
from .audit_writer import AuditWriter
from .action_executor import ActionExecutor
from .definition_cache import DefinitionCache
from .definition_validator import DefinitionValidator
from .router import RuleMatcher, WorkflowRouter
from .vote_tally import VoteTally

__all__ = [
    "WorkflowEngine",
    "PermissionGuard",
    "ConditionEvaluator",
    "AuditWriter",
    "ActionExecutor",
    "DefinitionCache",
    "DefinitionValidator",
    "RuleMatcher",
    "WorkflowRouter",
    "VoteTally",
]
