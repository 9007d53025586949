"""Domain-specific exceptions"""

from typing import Sequence


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class WorkflowStateError(DomainException):
    """Operation is not allowed in the workflow's current stage"""

    pass


class StepBlockedError(WorkflowStateError):
    """Forward transition attempted while the current stage has validation errors"""

    def __init__(self, stage: str, errors: Sequence[str]):
        super().__init__(f"Cannot advance from {stage}: {len(errors)} validation error(s)")
        self.stage = stage
        self.errors = list(errors)


class ApplicationNotFoundError(DomainException):
    """No in-flight application with the given id"""

    pass


class ApplicationConflictError(DomainException):
    """Participant already has an in-flight application"""

    pass


class SubmissionDeliveryError(DomainException):
    """Recordkeeper rejected or never acknowledged a confirmed submission"""

    pass
