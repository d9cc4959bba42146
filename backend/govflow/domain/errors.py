"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, List, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# Authentication & Authorization Errors
class AuthenticationError(DomainError):
    """Token missing, invalid, or expired"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class ForbiddenError(DomainError):
    """Authorization predicate failed"""
    error_code = "FORBIDDEN"
    http_status = 403


# Validation Errors
class ValidationError(DomainError):
    """Bad definition or field values; carries every violation found"""
    error_code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(
        self,
        message: str,
        violations: Optional[List[Dict[str, Any]]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        details = dict(details or {})
        self.violations = list(violations or [])
        if self.violations:
            details["violations"] = self.violations
        super().__init__(message, details=details)


class DefinitionValidationError(ValidationError):
    """Workflow definition validation failed"""
    error_code = "DEFINITION_VALIDATION_ERROR"


class FieldValidationError(ValidationError):
    """Field values failed schema validation"""
    error_code = "FIELD_VALIDATION_ERROR"


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class DefinitionNotFoundError(NotFoundError):
    """Workflow definition not found (or inactive where an active one is required)"""
    error_code = "DEFINITION_NOT_FOUND"


class InstanceNotFoundError(NotFoundError):
    """Workflow instance not found"""
    error_code = "INSTANCE_NOT_FOUND"


class VoteNotFoundError(NotFoundError):
    """Ballot box not found"""
    error_code = "VOTE_NOT_FOUND"


class TemplateNotFoundError(NotFoundError):
    """Workflow template not found"""
    error_code = "TEMPLATE_NOT_FOUND"


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict (e.g., concurrent modification)"""
    error_code = "CONFLICT"
    http_status = 409


class ConcurrencyError(ConflictError):
    """Optimistic concurrency conflict"""
    error_code = "CONCURRENCY_CONFLICT"


class AlreadyExistsError(ConflictError):
    """Resource already exists"""
    error_code = "ALREADY_EXISTS"


class InvalidStateError(ConflictError):
    """Operation not legal for the instance's current status"""
    error_code = "INVALID_STATE"


class InvalidTransitionError(ConflictError):
    """Unknown transition, or transition not valid from the current state"""
    error_code = "INVALID_TRANSITION"


# Transition Guard Errors
class TransitionGuardError(DomainError):
    """A transition requirement was not satisfied"""
    error_code = "TRANSITION_GUARD_FAILED"
    http_status = 422


class ConditionNotMetError(TransitionGuardError):
    """A transition condition evaluated false"""
    error_code = "CONDITION_NOT_MET"


class CommentRequiredError(TransitionGuardError):
    """Transition requires a comment"""
    error_code = "COMMENT_REQUIRED"


class AttachmentsRequiredError(TransitionGuardError):
    """Transition requires attachments"""
    error_code = "ATTACHMENTS_REQUIRED"


# Engine Errors
class InvariantViolationError(DomainError):
    """Corrupted definition or impossible engine state"""
    error_code = "INVARIANT_VIOLATION"
    http_status = 500


# External Service Errors
class ExternalServiceError(DomainError):
    """External collaborator failure"""
    error_code = "EXTERNAL_SERVICE_ERROR"
    http_status = 502


class DocumentServiceError(ExternalServiceError):
    """Document management service call failed"""
    error_code = "DOCUMENT_SERVICE_ERROR"


class WebhookError(ExternalServiceError):
    """Webhook delivery failed"""
    error_code = "WEBHOOK_ERROR"
