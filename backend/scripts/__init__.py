"""
Backend Scripts Module

Operator scripts for workflow definitions.

Available scripts:
    - validate_workflow.py: Validates a definition file or a stored definition

Usage:
    python scripts/validate_workflow.py path/to/definition.json
"""
