"""
Blocking Engine for the focus blocker system.

This module provides the facade that owns every piece of mutable state and
coordinates the components:
- Rule store for the rule set
- Schedule evaluator for "is this target blocked now?"
- Enforcement controller for the lock state machine and mutation gate
- Block event recorder for the event log and statistics
- Permission detector for capability probes
- State store for HMAC-protected persistence
- Notification router for lock transition alerts

All writes and reads go through one re-entrant lock, so check-then-act
sequences such as two concurrent nuclear activations cannot both succeed.
"""

import asyncio
import threading
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Union

from .audit_logger import AuditLogger
from .categories import CategoryTarget
from .categories import expand_categories as expand_category_ids
from .config import EngineConfig
from .enforcement import EnforcementController, InMemorySessionContext, SessionContext
from .enums import LockKind, LogLevel, MutationKind, Strictness
from .event_recorder import BlockEventRecorder
from .exceptions import BlockingError
from .identifiers import AppName, Domain, RuleId
from .models import (
    BlockAttempt,
    BlockEvent,
    BlockRule,
    BlockStatistics,
    BypassRequest,
    CreateRuleRequest,
    EnforcementLock,
    Nuclear,
    NuclearOptionStatus,
    PermissionStatus,
    PersistedState,
    PlatformInstructions,
    RuleFilter,
    RuleStats,
    StrictMode,
    StrictModeStatus,
    Unlocked,
    unhandled_variant,
)
from .notifications import (
    NUCLEAR_ACTIVATED,
    NUCLEAR_EXPIRED,
    STRICT_MODE_DISABLEABLE,
    STRICT_MODE_DISABLED,
    STRICT_MODE_ENABLED,
    NotificationPayload,
    NotificationResult,
    NotificationRouter,
    WebhookChannel,
)
from .permissions import PermissionDetector
from .rule_store import RuleStore
from .schedule_evaluator import ScheduleEvaluator
from .scheduler import Scheduler
from .state_store import StateStore


def local_now() -> datetime:
    """Current local time, timezone-aware. Cron schedules match in this zone."""
    return datetime.now(timezone.utc).astimezone()


class BlockingEngine:
    """
    Single owner of the rule set, the enforcement lock and the event log.

    Decision components never persist; the engine saves after every call
    that changed state, including a lazy nuclear expiry observed by a read.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        session_context: Optional[SessionContext] = None,
        state_store: Optional[StateStore] = None,
        notification_router: Optional[NotificationRouter] = None,
        permission_detector: Optional[PermissionDetector] = None,
        logger: Optional[AuditLogger] = None,
        initial_state: Optional[PersistedState] = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            config: Engine configuration
            clock: Returns the current instant (timezone-aware)
            session_context: Focus session collaborator
            state_store: Optional persistence; None keeps state in memory
            notification_router: Optional router for lock transitions
            permission_detector: Replacement capability detector
            logger: Optional audit logger
            initial_state: State to resume from, usually loaded from state_store
        """
        self._config = config or EngineConfig()
        self._clock = clock or local_now
        self._logger = logger
        self._state_store = state_store
        self._notification_router = notification_router
        self._lock = threading.RLock()
        self._dirty = False
        self._pending_notifications: list[NotificationPayload] = []
        # queued by transitions, released once the change is saved
        self._uncommitted_notifications: list[NotificationPayload] = []

        state = initial_state or PersistedState(version=StateStore.VERSION)
        self._committed = state

        self._rule_store = RuleStore(clock=self._clock, logger=logger)
        self._rule_store.replace_all(state.rules)
        self._blocking_enabled = state.blocking_enabled

        self._evaluator = ScheduleEvaluator(logger=logger)
        self._controller = EnforcementController(
            clock=self._clock,
            session_context=session_context or InMemorySessionContext(),
            nuclear_config=self._config.nuclear,
            logger=logger,
            initial_lock=state.lock,
            on_transition=self._on_lock_transition,
        )
        self._recorder = BlockEventRecorder(
            rule_lookup=self._rule_store.find_rule,
            clock=self._clock,
            logger=logger,
            events=state.events,
            bypass_requests=state.bypass_requests,
        )
        self._detector = permission_detector or PermissionDetector(
            probe_config=self._config.probes,
            logger=logger,
        )

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        clock: Optional[Callable[[], datetime]] = None,
        session_context: Optional[SessionContext] = None,
        logger: Optional[AuditLogger] = None,
    ) -> "BlockingEngine":
        """
        Build an engine with persistence and notifications from configuration.

        Raises:
            TamperingError: If the state file fails HMAC validation
            PersistenceError: If the state file cannot be read
        """
        state_store = None
        initial_state = None
        if config.persistence is not None:
            state_store = StateStore(
                config.persistence.state_file_path,
                config.persistence.hmac_secret,
            )
            try:
                initial_state = state_store.load()
            except BlockingError as e:
                if logger:
                    logger.log_error("BlockingEngine", "Refusing to start with unreadable state", e)
                raise

        router = None
        if config.notifications.webhook is not None:
            router = NotificationRouter(config.notifications.retry, logger)
            router.register_channel(WebhookChannel(config.notifications.webhook))

        engine = cls(
            config=config,
            clock=clock,
            session_context=session_context,
            state_store=state_store,
            notification_router=router,
            logger=logger,
            initial_state=initial_state,
        )
        engine._log(
            LogLevel.INFO,
            "Engine started",
            {
                "rules": len(engine._rule_store),
                "lock": engine.lock.kind.value,
                "persistent": state_store is not None,
            },
        )
        return engine

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def create_rule(self, request: CreateRuleRequest) -> BlockRule:
        """Add a rule. Adding is allowed under every lock."""
        with self._lock:
            self._controller.check_mutation(MutationKind.CREATE_RULE)
            rule = self._rule_store.create_rule(request)
            self._dirty = True
            self._persist_if_dirty()
            return rule

    def remove_rule(self, rule_id: RuleId) -> None:
        with self._lock:
            self._rule_store.get_rule(rule_id)
            self._controller.check_mutation(MutationKind.REMOVE_RULE)
            self._rule_store.remove_rule(rule_id)
            self._dirty = True
            self._persist_if_dirty()

    def set_enabled(self, rule_id: RuleId, enabled: bool) -> BlockRule:
        """
        Enable or disable a rule.

        Disabling an enabled rule weakens enforcement and is gated; enabling,
        or disabling a rule that is already disabled, always passes.
        """
        with self._lock:
            current = self._rule_store.get_rule(rule_id)
            weakens = current.enabled and not enabled
            self._controller.check_mutation(
                MutationKind.DISABLE_RULE if weakens else MutationKind.ENABLE_RULE
            )
            rule = self._rule_store.set_enabled(rule_id, enabled)
            self._dirty = True
            self._persist_if_dirty()
            return rule

    def set_strictness(self, rule_id: RuleId, level: Strictness) -> BlockRule:
        """Change a rule's strictness. Lowering it is gated."""
        with self._lock:
            current = self._rule_store.get_rule(rule_id)
            lowers = isinstance(level, Strictness) and level.rank < current.strictness.rank
            self._controller.check_mutation(
                MutationKind.LOWER_STRICTNESS if lowers else MutationKind.RAISE_STRICTNESS
            )
            rule = self._rule_store.set_strictness(rule_id, level)
            self._dirty = True
            self._persist_if_dirty()
            return rule

    def get_rule(self, rule_id: RuleId) -> BlockRule:
        with self._lock:
            return self._rule_store.get_rule(rule_id)

    def list_rules(self, rule_filter: Optional[RuleFilter] = None) -> list[BlockRule]:
        with self._lock:
            return self._rule_store.list_rules(rule_filter)

    def expand_categories(self, category_ids: Iterable[str]) -> frozenset[CategoryTarget]:
        return expand_category_ids(category_ids)

    # ------------------------------------------------------------------
    # Blocking decisions
    # ------------------------------------------------------------------

    def set_blocking_enabled(self, enabled: bool) -> None:
        """Master switch for all rules. Turning blocking off is gated."""
        with self._lock:
            weakens = self._blocking_enabled and not enabled
            self._controller.check_mutation(
                MutationKind.DISABLE_BLOCKING if weakens else MutationKind.ENABLE_BLOCKING
            )
            if self._blocking_enabled != bool(enabled):
                self._blocking_enabled = bool(enabled)
                self._dirty = True
                self._log(
                    LogLevel.INFO,
                    "Blocking enabled" if enabled else "Blocking disabled",
                    {},
                )
            self._persist_if_dirty()

    def is_blocking_enabled(self) -> bool:
        with self._lock:
            return self._blocking_enabled

    def is_blocking_active_for(
        self,
        target: Union[str, Domain, AppName],
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Check whether a website or application is blocked at an instant.

        Args:
            target: Domain, app name, or a raw string that is either
            now: Instant to evaluate; defaults to the engine clock
        """
        with self._lock:
            self._controller.refresh()
            self._persist_if_dirty()
            if not self._blocking_enabled:
                return False
            return self._evaluator.is_blocking_active_for(
                target,
                now or self._clock(),
                self._controller.session_context.has_active_session(),
                self._rule_store.list_rules(),
            )

    # ------------------------------------------------------------------
    # Enforcement lock
    # ------------------------------------------------------------------

    def enable_strict_mode(self, session_id: str) -> StrictModeStatus:
        with self._lock:
            self._controller.enable_strict_mode(session_id)
            self._persist_if_dirty()
            return self._controller.get_strict_mode_status()

    def notify_session_ended(self, session_id: str) -> StrictModeStatus:
        with self._lock:
            self._controller.notify_session_ended(session_id)
            self._persist_if_dirty()
            return self._controller.get_strict_mode_status()

    def disable_strict_mode(self) -> StrictModeStatus:
        with self._lock:
            self._controller.disable_strict_mode()
            self._persist_if_dirty()
            return self._controller.get_strict_mode_status()

    def get_strict_mode_status(self) -> StrictModeStatus:
        with self._lock:
            status = self._controller.get_strict_mode_status()
            self._persist_if_dirty()
            return status

    def activate_nuclear_option(self, duration_minutes: int) -> NuclearOptionStatus:
        with self._lock:
            self._controller.activate_nuclear_option(duration_minutes)
            self._persist_if_dirty()
            return self._controller.get_nuclear_option_status()

    def get_nuclear_option_status(self) -> NuclearOptionStatus:
        with self._lock:
            status = self._controller.get_nuclear_option_status()
            self._persist_if_dirty()
            return status

    @property
    def lock(self) -> EnforcementLock:
        with self._lock:
            current = self._controller.lock
            self._persist_if_dirty()
            return current

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    async def check_permissions(self) -> PermissionStatus:
        return await self._detector.check_permissions()

    def get_permission_instructions(self, platform: str = "") -> PlatformInstructions:
        return self._detector.get_permission_instructions(platform)

    # ------------------------------------------------------------------
    # Events and statistics
    # ------------------------------------------------------------------

    def record_block_attempt(self, attempt: BlockAttempt) -> BlockEvent:
        with self._lock:
            event = self._recorder.record_block_attempt(attempt)
            self._dirty = True
            self._persist_if_dirty()
            return event

    def record_bypass_request(self, request: BypassRequest) -> BypassRequest:
        with self._lock:
            recorded = self._recorder.record_bypass_request(request)
            self._dirty = True
            self._persist_if_dirty()
            return recorded

    def get_rule_stats(self, rule_id: RuleId, now: Optional[datetime] = None) -> RuleStats:
        with self._lock:
            rule = self._rule_store.get_rule(rule_id)
            return self._recorder.get_rule_stats(rule, now or self._clock())

    def get_block_statistics(self, now: Optional[datetime] = None) -> BlockStatistics:
        with self._lock:
            return self._recorder.get_block_statistics(now or self._clock())

    def get_session_blocks(self, session_id: str) -> list[BlockEvent]:
        with self._lock:
            return self._recorder.get_session_blocks(session_id)

    @property
    def events(self) -> tuple[BlockEvent, ...]:
        with self._lock:
            return self._recorder.events

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    def tick(self, now: Optional[datetime] = None) -> EnforcementLock:
        """Apply nuclear expiry at an instant and persist any change."""
        with self._lock:
            current = self._controller.refresh(now)
            self._persist_if_dirty()
            return current

    async def run_clock(self, stop_event: asyncio.Event) -> None:
        """
        Drive tick() once per minute until stop_event is set.

        Pending lock notifications are delivered after every tick.
        """
        scheduler = Scheduler(
            check_interval_seconds=self._config.clock.tick_seconds,
            clock=self._clock,
            logger=self._logger,
        )

        async def on_minute(minute: datetime) -> None:
            self.tick()
            await self.flush_notifications()

        scheduler.schedule("lock-expiry", "* * * * *", on_minute)
        await self.flush_notifications()
        await scheduler.run(stop_event)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def drain_notifications(self) -> list[NotificationPayload]:
        """Remove and return lock transition notifications not yet delivered."""
        with self._lock:
            pending = self._pending_notifications
            self._pending_notifications = []
            return pending

    async def flush_notifications(self) -> list[NotificationResult]:
        """Deliver pending notifications. Failures are logged by the router."""
        pending = self.drain_notifications()
        if self._notification_router is None:
            return []

        results: list[NotificationResult] = []
        for payload in pending:
            results.extend(await self._notification_router.notify(payload))
        return results

    def _on_lock_transition(self, old: EnforcementLock, new: EnforcementLock) -> None:
        self._dirty = True
        event, details = _describe_transition(old, new)
        if event is None:
            return
        self._uncommitted_notifications.append(
            NotificationPayload(
                event=event,
                lock=new.kind,
                timestamp=self._clock().isoformat(),
                details=details,
                language=self._config.language,
            )
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> PersistedState:
        """Current state as it would be persisted."""
        with self._lock:
            state = self._build_state()
            self._persist_if_dirty()
            return state

    def _build_state(self) -> PersistedState:
        return PersistedState(
            version=StateStore.VERSION,
            rules=self._rule_store.list_rules(),
            lock=self._controller.lock,
            blocking_enabled=self._blocking_enabled,
            events=list(self._recorder.events),
            bypass_requests=list(self._recorder.bypass_requests),
        )

    def _persist_if_dirty(self) -> None:
        """
        Save a changed state, or roll the change back if saving fails.

        A caller that sees the error can retry: nothing of the failed call
        stays in memory and its notifications are discarded.
        """
        if not self._dirty:
            return
        if self._state_store is None:
            self._dirty = False
            self._commit_notifications()
            return

        state = self._build_state()
        self._dirty = False
        try:
            self._state_store.save(state)
        except BlockingError as e:
            self._rollback()
            if self._logger:
                self._logger.log_error("BlockingEngine", "Failed to persist state", e)
            raise
        self._committed = state
        self._commit_notifications()

    def _rollback(self) -> None:
        state = self._committed
        self._rule_store.replace_all(state.rules)
        self._controller.restore(state.lock)
        self._blocking_enabled = state.blocking_enabled
        self._recorder.restore(state.events, state.bypass_requests)
        self._uncommitted_notifications = []
        self._dirty = False

    def _commit_notifications(self) -> None:
        self._pending_notifications.extend(self._uncommitted_notifications)
        self._uncommitted_notifications = []

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "BlockingEngine", message, data)


def _describe_transition(
    old: EnforcementLock,
    new: EnforcementLock,
) -> tuple[Optional[str], dict]:
    """Notification event and message arguments for a lock change."""
    if isinstance(new, StrictMode):
        if isinstance(old, StrictMode):
            if new.can_disable and not old.can_disable:
                return STRICT_MODE_DISABLEABLE, {"session_id": new.session_id}
            return None, {}
        return STRICT_MODE_ENABLED, {"session_id": new.session_id}
    if isinstance(new, Nuclear):
        return NUCLEAR_ACTIVATED, {
            "duration_minutes": new.duration_minutes,
            "ends_at": new.ends_at.isoformat(),
        }
    if isinstance(new, Unlocked):
        if old.kind is LockKind.NUCLEAR:
            return NUCLEAR_EXPIRED, {}
        if old.kind is LockKind.STRICT_MODE:
            return STRICT_MODE_DISABLED, {}
        return None, {}
    unhandled_variant(new)
