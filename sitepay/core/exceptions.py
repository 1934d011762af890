class DomainError(Exception):
    """Base exception for payroll business rule violations."""

    status_code = 400


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    status_code = 400


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    status_code = 403


class NotFoundError(DomainError):
    """Raised when a referenced worker, setting or snapshot does not exist."""

    status_code = 404


class InvalidTransitionError(DomainError):
    """Raised when a status change skips or reverses a workflow step."""

    status_code = 409

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move from '{current}' to '{target}'")
