"""
Focus Blocker - Policy engine for website and application blocking.

This package decides what is blocked and when: block rules with schedules
and categories, strict mode bound to a focus session, a time-bounded nuclear
lock, capability probes for the enforcer, and an HMAC-protected event log.
"""

__version__ = "0.1.0"
__author__ = "Focus Blocker Team"

from focus_blocker.exceptions import (
    BlockingError,
    ValidationError,
    NotFoundError,
    AlreadyExistsError,
    PermissionDeniedError,
    PreconditionFailedError,
    BlockingSystemError,
    PersistenceError,
    TamperingError,
)
from focus_blocker.enums import (
    RuleType,
    Strictness,
    ScheduleType,
    LockKind,
    MutationKind,
    OverallPermissionStatus,
    ErrorCode,
    LogLevel,
)
from focus_blocker.identifiers import (
    RuleId,
    Domain,
    AppName,
    CronExpression,
    normalize_domain,
)
from focus_blocker.categories import (
    CATEGORY_TARGETS,
    list_categories,
    is_known_category,
    expand_categories,
)
from focus_blocker.config import (
    RetryConfig,
    WebhookConfig,
    NotificationConfig,
    PersistenceConfig,
    LoggingConfig,
    ProbeConfig,
    NuclearConfig,
    ClockConfig,
    EngineConfig,
    ConfigValidationResult,
    validate_config,
)
from focus_blocker.models import (
    WebsiteRule,
    AppRule,
    CategoryRule,
    BlockRule,
    CreateRuleRequest,
    RuleFilter,
    Unlocked,
    StrictMode,
    Nuclear,
    EnforcementLock,
    StrictModeStatus,
    NuclearOptionStatus,
    BlockAttempt,
    BlockEvent,
    BypassRequest,
    RuleStats,
    BlockedTargetStats,
    BlockStatistics,
    PermissionStatus,
    PermissionMethod,
    PlatformInstructions,
    PersistedState,
)
from focus_blocker.rule_store import (
    RuleStore,
)
from focus_blocker.schedule_evaluator import (
    ScheduleEvaluator,
)
from focus_blocker.enforcement import (
    SessionContext,
    InMemorySessionContext,
    TimedSessionContext,
    EnforcementController,
    evaluate_expiry,
)
from focus_blocker.permissions import (
    PermissionDetector,
    detect_platform,
)
from focus_blocker.event_recorder import (
    BlockEventRecorder,
)
from focus_blocker.state_store import (
    StateStore,
    SessionStore,
)
from focus_blocker.audit_logger import (
    AuditLogger,
    LogEntry,
)
from focus_blocker.notifications import (
    NotificationPayload,
    NotificationResult,
    NotificationChannel,
    WebhookChannel,
    NotificationRouter,
)
from focus_blocker.i18n import (
    get_message,
    get_all_message_keys,
    has_translation,
    get_missing_translations,
    TRANSLATIONS,
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
)
from focus_blocker.scheduler import (
    Scheduler,
    CronSchedule,
    CronField,
    CronParser,
    CronParseError,
    ScheduledTask,
)
from focus_blocker.engine import (
    BlockingEngine,
    local_now,
)
from focus_blocker.cli import (
    main as cli_main,
    create_parser,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
)

__all__ = [
    # Exceptions
    "BlockingError",
    "ValidationError",
    "NotFoundError",
    "AlreadyExistsError",
    "PermissionDeniedError",
    "PreconditionFailedError",
    "BlockingSystemError",
    "PersistenceError",
    "TamperingError",
    # Enums
    "RuleType",
    "Strictness",
    "ScheduleType",
    "LockKind",
    "MutationKind",
    "OverallPermissionStatus",
    "ErrorCode",
    "LogLevel",
    # Identifiers
    "RuleId",
    "Domain",
    "AppName",
    "CronExpression",
    "normalize_domain",
    # Categories
    "CATEGORY_TARGETS",
    "list_categories",
    "is_known_category",
    "expand_categories",
    # Configuration
    "RetryConfig",
    "WebhookConfig",
    "NotificationConfig",
    "PersistenceConfig",
    "LoggingConfig",
    "ProbeConfig",
    "NuclearConfig",
    "ClockConfig",
    "EngineConfig",
    "ConfigValidationResult",
    "validate_config",
    # Models
    "WebsiteRule",
    "AppRule",
    "CategoryRule",
    "BlockRule",
    "CreateRuleRequest",
    "RuleFilter",
    "Unlocked",
    "StrictMode",
    "Nuclear",
    "EnforcementLock",
    "StrictModeStatus",
    "NuclearOptionStatus",
    "BlockAttempt",
    "BlockEvent",
    "BypassRequest",
    "RuleStats",
    "BlockedTargetStats",
    "BlockStatistics",
    "PermissionStatus",
    "PermissionMethod",
    "PlatformInstructions",
    "PersistedState",
    # Rule Store
    "RuleStore",
    # Schedule Evaluator
    "ScheduleEvaluator",
    # Enforcement
    "SessionContext",
    "InMemorySessionContext",
    "TimedSessionContext",
    "EnforcementController",
    "evaluate_expiry",
    # Permissions
    "PermissionDetector",
    "detect_platform",
    # Event Recorder
    "BlockEventRecorder",
    # State Store
    "StateStore",
    "SessionStore",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Notifications
    "NotificationPayload",
    "NotificationResult",
    "NotificationChannel",
    "WebhookChannel",
    "NotificationRouter",
    # I18n
    "get_message",
    "get_all_message_keys",
    "has_translation",
    "get_missing_translations",
    "TRANSLATIONS",
    "SUPPORTED_LANGUAGES",
    "DEFAULT_LANGUAGE",
    # Scheduler
    "Scheduler",
    "CronSchedule",
    "CronField",
    "CronParser",
    "CronParseError",
    "ScheduledTask",
    # Engine
    "BlockingEngine",
    "local_now",
    # CLI
    "cli_main",
    "create_parser",
    "create_default_config",
    "load_config_from_file",
    "save_config_to_file",
]
