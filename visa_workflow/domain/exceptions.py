from typing import Optional


class VisaWorkflowError(Exception):
    """Base class for every error raised by the visa workflow."""


class UnknownStageError(VisaWorkflowError, LookupError):
    """
    Raised when a stage key is not part of the catalog or schema registry.
    This is a programming error, not a recoverable runtime condition.
    """
    def __init__(self, stage_key: str):
        super().__init__(f"Unknown visa stage: {stage_key!r}")
        self.stage_key = stage_key


class VisaServiceError(VisaWorkflowError):
    """
    Raised by port adapters when the remote service cannot fulfil a call.
    """
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class TransientFetchError(VisaWorkflowError):
    """Raised when a workflow record could not be fetched."""
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class SubmissionError(VisaWorkflowError):
    """Raised when a create/update submission is rejected or cannot be delivered."""
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class PreconditionViolation(VisaWorkflowError, ValueError):
    """Raised when an operation is attempted before its local preconditions hold."""


class WorkflowStateError(VisaWorkflowError):
    """Raised when an orchestrator operation is not allowed in the current state."""
    def __init__(self, operation: str, status: str):
        super().__init__(f"Operation {operation!r} is not allowed while {status}")
        self.operation = operation
        self.status = status
