"""
Enumeration types for the focus blocker engine.

These enums provide type-safe constants for rule kinds, lock states,
error codes, and configuration options throughout the system.
"""

from enum import Enum


class RuleType(Enum):
    """Kind of target a block rule points at."""

    WEBSITE = "website"
    APP = "app"
    CATEGORY = "category"


class Strictness(Enum):
    """Severity a downstream enforcer may use to choose its response."""

    SOFT = "soft"
    MEDIUM = "medium"
    HARD = "hard"

    @property
    def rank(self) -> int:
        return _STRICTNESS_RANK[self]


_STRICTNESS_RANK = {
    Strictness.SOFT: 0,
    Strictness.MEDIUM: 1,
    Strictness.HARD: 2,
}


class ScheduleType(Enum):
    """When a rule is in force."""

    ALWAYS = "always"
    FOCUS_ONLY = "focus_only"
    SCHEDULED = "scheduled"


class LockKind(Enum):
    """Discriminator for the enforcement lock variants."""

    UNLOCKED = "unlocked"
    STRICT_MODE = "strict_mode"
    NUCLEAR = "nuclear"


class MutationKind(Enum):
    """Mutations that pass through the enforcement gate."""

    CREATE_RULE = "create_rule"
    ENABLE_RULE = "enable_rule"
    RAISE_STRICTNESS = "raise_strictness"
    ENABLE_BLOCKING = "enable_blocking"
    DISABLE_RULE = "disable_rule"
    LOWER_STRICTNESS = "lower_strictness"
    REMOVE_RULE = "remove_rule"
    DISABLE_BLOCKING = "disable_blocking"

    @property
    def weakens(self) -> bool:
        """True when the mutation loosens enforcement."""
        return self in _WEAKENING_MUTATIONS


_WEAKENING_MUTATIONS = frozenset({
    MutationKind.DISABLE_RULE,
    MutationKind.LOWER_STRICTNESS,
    MutationKind.REMOVE_RULE,
    MutationKind.DISABLE_BLOCKING,
})


class OverallPermissionStatus(Enum):
    """Overall assessment of the host's enforcement capabilities."""

    FULLY_FUNCTIONAL = "fully_functional"
    DEGRADED = "degraded"
    NON_FUNCTIONAL = "non_functional"


class ErrorCode(Enum):
    """Machine-readable error taxonomy."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    PERMISSION_DENIED = "permission_denied"
    PRECONDITION_FAILED = "precondition_failed"
    SYSTEM_ERROR = "system_error"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def severity(self) -> int:
        return _LOG_SEVERITY[self]


_LOG_SEVERITY = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}
