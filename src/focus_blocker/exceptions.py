"""
Exception classes for the focus blocker engine.

All exceptions inherit from BlockingError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional

from .enums import ErrorCode


class BlockingError(Exception):
    """Base exception for all focus blocker errors."""

    error_code = ErrorCode.SYSTEM_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        code: Optional[str] = None,
    ) -> None:
        self.code = code or self.error_code.value
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(BlockingError):
    """Raised when a target, cron expression, duration or platform is malformed."""

    error_code = ErrorCode.VALIDATION

    def __init__(
        self,
        field: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.field = field
        merged = {"field": field}
        merged.update(details or {})
        super().__init__(message, merged)


class NotFoundError(BlockingError):
    """Raised when a rule id is unknown."""

    error_code = ErrorCode.NOT_FOUND

    def __init__(self, rule_id: str, message: Optional[str] = None) -> None:
        self.rule_id = rule_id
        super().__init__(
            message or f"Rule '{rule_id}' not found",
            {"rule_id": rule_id},
        )


class AlreadyExistsError(BlockingError):
    """Raised when a rule with the same (rule type, target) already exists."""

    error_code = ErrorCode.ALREADY_EXISTS

    def __init__(self, rule_type: str, target: str) -> None:
        self.target = target
        super().__init__(
            f"A {rule_type} rule for '{target}' already exists",
            {"rule_type": rule_type, "target": target},
        )


class PermissionDeniedError(BlockingError):
    """Raised when the current enforcement lock forbids a weakening mutation."""

    error_code = ErrorCode.PERMISSION_DENIED


class PreconditionFailedError(BlockingError):
    """Raised when a transition is not legal from the current state."""

    error_code = ErrorCode.PRECONDITION_FAILED


class BlockingSystemError(BlockingError):
    """Raised when storage or the host environment fails."""

    error_code = ErrorCode.SYSTEM_ERROR


class PersistenceError(BlockingSystemError):
    """Raised when persistence operations fail (file I/O, HMAC validation)."""

    pass


class TamperingError(PersistenceError):
    """Raised when HMAC validation fails, indicating data tampering."""

    pass
