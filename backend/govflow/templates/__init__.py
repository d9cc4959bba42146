"""
Workflow Templates Package

Pre-built governance workflows that can be instantiated as definitions.
"""
from .workflow_templates import (
    get_workflow_template,
    list_workflow_templates,
    TEMPLATE_REGISTRY
)

__all__ = [
    "get_workflow_template",
    "list_workflow_templates",
    "TEMPLATE_REGISTRY"
]
