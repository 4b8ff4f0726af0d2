"""
Data models for the focus blocker engine.

This module defines block rules, enforcement locks, block events, derived
statistics and permission reports. Rules and locks are closed tagged unions:
every consumer dispatches over all variants and raises on anything else.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import NoReturn, Optional, Union

from .enums import (
    LockKind,
    OverallPermissionStatus,
    RuleType,
    ScheduleType,
    Strictness,
)
from .identifiers import AppName, CronExpression, Domain, RuleId


# ---------------------------------------------------------------------------
# Block rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WebsiteRule:
    """Blocks a website and its subdomains."""

    id: RuleId
    target: Domain
    enabled: bool
    strictness: Strictness
    created_at: datetime
    schedule_type: ScheduleType
    schedule_cron: Optional[CronExpression] = None

    rule_type = RuleType.WEBSITE


@dataclass(frozen=True)
class AppRule:
    """Blocks an application by process name."""

    id: RuleId
    target: AppName
    enabled: bool
    strictness: Strictness
    created_at: datetime
    schedule_type: ScheduleType
    schedule_cron: Optional[CronExpression] = None

    rule_type = RuleType.APP


@dataclass(frozen=True)
class CategoryRule:
    """Blocks every target of a predefined category."""

    id: RuleId
    target: str  # category id, see categories.CATEGORY_TARGETS
    enabled: bool
    strictness: Strictness
    created_at: datetime
    schedule_type: ScheduleType
    schedule_cron: Optional[CronExpression] = None

    rule_type = RuleType.CATEGORY


BlockRule = Union[WebsiteRule, AppRule, CategoryRule]


def unhandled_variant(value: NoReturn) -> NoReturn:
    """Fail loudly when a closed union grows a variant a call site missed."""
    raise TypeError(f"Unhandled variant: {type(value).__name__}")


def as_aware(value: datetime) -> datetime:
    """Read a naive instant as UTC, the same way persisted timestamps are read."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def rule_key(rule: BlockRule) -> tuple[RuleType, str]:
    """The (rule type, target) pair that must be unique across the store."""
    if isinstance(rule, WebsiteRule):
        return (RuleType.WEBSITE, rule.target.value)
    if isinstance(rule, AppRule):
        return (RuleType.APP, rule.target.match_key)
    if isinstance(rule, CategoryRule):
        return (RuleType.CATEGORY, rule.target)
    unhandled_variant(rule)


def target_text(rule: BlockRule) -> str:
    """Display form of a rule's target."""
    if isinstance(rule, (WebsiteRule, AppRule)):
        return rule.target.value
    if isinstance(rule, CategoryRule):
        return rule.target
    unhandled_variant(rule)


def with_enabled(rule: BlockRule, enabled: bool) -> BlockRule:
    return replace(rule, enabled=enabled)


def with_strictness(rule: BlockRule, strictness: Strictness) -> BlockRule:
    return replace(rule, strictness=strictness)


@dataclass(frozen=True)
class CreateRuleRequest:
    """Raw input for creating a rule; validated by the rule store."""

    rule_type: RuleType
    target: str
    schedule_type: ScheduleType = ScheduleType.ALWAYS
    schedule_cron: Optional[str] = None
    strictness: Strictness = Strictness.MEDIUM
    enabled: bool = True


@dataclass(frozen=True)
class RuleFilter:
    """Optional criteria for listing rules. None means 'any'."""

    rule_type: Optional[RuleType] = None
    enabled: Optional[bool] = None
    schedule_type: Optional[ScheduleType] = None

    def matches(self, rule: BlockRule) -> bool:
        if self.rule_type is not None and rule.rule_type != self.rule_type:
            return False
        if self.enabled is not None and rule.enabled != self.enabled:
            return False
        if self.schedule_type is not None and rule.schedule_type != self.schedule_type:
            return False
        return True


# ---------------------------------------------------------------------------
# Enforcement lock
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Unlocked:
    """No lock; every mutation is allowed."""

    kind = LockKind.UNLOCKED


@dataclass(frozen=True)
class StrictMode:
    """Lock bound to a focus session; weakening is forbidden until it ends."""

    session_id: str
    can_disable: bool
    started_at: datetime

    kind = LockKind.STRICT_MODE


@dataclass(frozen=True)
class Nuclear:
    """Time-bounded lock with no manual way out."""

    started_at: datetime
    ends_at: datetime
    duration_minutes: int

    kind = LockKind.NUCLEAR


EnforcementLock = Union[Unlocked, StrictMode, Nuclear]


@dataclass(frozen=True)
class StrictModeStatus:
    """Strict mode as seen by callers."""

    enabled: bool
    session_id: Optional[str]
    started_at: Optional[datetime]
    can_disable: bool


@dataclass(frozen=True)
class NuclearOptionStatus:
    """Nuclear option as seen by callers."""

    active: bool
    duration_minutes: int
    started_at: Optional[datetime]
    ends_at: Optional[datetime]
    remaining_seconds: Optional[int]


# ---------------------------------------------------------------------------
# Block events and statistics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BlockAttempt:
    """An enforcement attempt reported by the outer enforcer."""

    rule_id: RuleId
    target: str
    timestamp: datetime
    was_bypassed: bool = False
    session_id: Optional[str] = None
    process_name: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class BlockEvent:
    """Immutable record of a block; appended only."""

    id: str
    rule_id: RuleId
    blocked_at: datetime
    target: str
    was_bypassed: bool
    created_at: datetime
    session_id: Optional[str] = None
    process_name: Optional[str] = None


@dataclass(frozen=True)
class BypassRequest:
    """Request to temporarily permit access to a blocked target."""

    rule_id: RuleId
    requested_at: datetime
    bypass_code: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class RuleStats:
    """Per-rule statistics recomputed from the event log."""

    rule_id: RuleId
    total_blocks: int
    bypasses: int
    last_triggered: Optional[datetime]
    avg_blocks_per_day: float


@dataclass(frozen=True)
class BlockedTargetStats:
    target: str
    rule_type: str
    count: int
    last_attempt: datetime


@dataclass(frozen=True)
class BlockStatistics:
    """Aggregate view over the whole event log."""

    total_attempts: int
    attempts_today: int
    attempts_this_week: int
    attempts_this_month: int
    top_blocked_targets: list[BlockedTargetStats] = field(default_factory=list)
    attempts_by_hour: list[int] = field(default_factory=lambda: [0] * 24)
    attempts_by_type: dict[str, int] = field(default_factory=dict)
    recent_blocks: list[BlockEvent] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Permission reports
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one capability probe."""

    success: bool
    error: Optional[str] = None
    duration_ms: float = 0.0


@dataclass
class PermissionStatus:
    """What the host environment allows the enforcer to do."""

    hosts_file_writable: bool
    hosts_file_error: Optional[str]
    hosts_file_path: str
    process_monitoring_available: bool
    process_monitoring_error: Optional[str]
    process_termination_available: bool
    process_termination_error: Optional[str]
    overall_status: OverallPermissionStatus
    recommendations: list[str]
    platform: str


@dataclass(frozen=True)
class PermissionMethod:
    """One way of granting the engine's collaborators the rights they need."""

    name: str
    steps: list[str]
    is_permanent: bool
    is_recommended: bool
    grants: list[str]


@dataclass(frozen=True)
class PlatformInstructions:
    """Remediation guidance for one operating system."""

    platform: str
    primary_method: PermissionMethod
    alternative_methods: list[PermissionMethod]
    requires_restart: bool
    security_notes: list[str]


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

@dataclass
class PersistedState:
    """Everything the engine keeps across restarts."""

    version: int
    rules: list[BlockRule] = field(default_factory=list)
    lock: EnforcementLock = field(default_factory=Unlocked)
    blocking_enabled: bool = True
    events: list[BlockEvent] = field(default_factory=list)
    bypass_requests: list[BypassRequest] = field(default_factory=list)
    last_updated: str = ""
    hmac: str = ""
