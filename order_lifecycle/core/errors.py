from typing import Any, Dict, List, Optional


class OrderLifecycleError(Exception):
    """Base class for errors raised by the status services."""

    def __init__(self, message: str, details: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = list(details or [])

    def to_detail(self) -> Dict[str, Any]:
        return {"message": self.message, "details": self.details}


class ValidationFailed(OrderLifecycleError):
    pass


class InvalidTransition(ValidationFailed):
    """Carries the validator's error list as `details`."""

    def __init__(self, errors: List[str]):
        super().__init__("Invalid status update: " + ", ".join(errors), details=errors)
        self.errors = list(errors)


class NotFound(OrderLifecycleError):
    pass


class OptimisticLockError(OrderLifecycleError):
    pass
