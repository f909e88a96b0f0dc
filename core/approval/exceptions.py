"""Errors raised by the approval chain manager.

Every error leaves persisted state untouched; callers surface ``str(exc)``
to the user and may map ``http_status`` onto the response.
"""

from rest_framework import status


class ApprovalError(Exception):
    """Base class for approval chain errors."""

    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Approval request failed"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


class ValidationError(ApprovalError):
    """Malformed chain/step configuration or decision input."""

    default_message = "Invalid approval chain configuration"


class NoApplicableChainError(ValidationError):
    """No active chain matches the submitted entity."""

    default_message = "No active approval chain matches this request"


class DuplicateProgressError(ApprovalError):
    http_status = status.HTTP_409_CONFLICT
    default_message = "A pending approval already exists for this entity"


class NotPendingError(ApprovalError):
    http_status = status.HTTP_409_CONFLICT
    default_message = "Approval is already resolved"


class WrongStepError(ApprovalError):
    http_status = status.HTTP_409_CONFLICT
    default_message = "Decision submitted for a step that is not current"


class UnauthorizedApproverError(ApprovalError):
    http_status = status.HTTP_403_FORBIDDEN
    default_message = "User is not an approver for the current step"


class DuplicateApprovalError(ApprovalError):
    http_status = status.HTTP_409_CONFLICT
    default_message = "Approver already recorded a decision at this step"


class PersistenceError(ApprovalError):
    """Storage failure; the caller may retry the whole operation."""

    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Approval storage is unavailable"


class ConcurrentDecisionError(PersistenceError):
    """Progress changed between read and write."""

    default_message = "Approval was modified concurrently; reload and retry"
