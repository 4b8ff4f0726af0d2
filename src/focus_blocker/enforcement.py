"""
Enforcement Controller for the focus blocker engine.

Implements the lock state machine (Unlocked, StrictMode, Nuclear) and the
mutation gate that decides whether enforcement may be weakened.

Transitions:
- enable_strict_mode: Unlocked -> StrictMode(can_disable=False), requires an
  active session
- notify_session_ended: StrictMode(session) -> StrictMode(can_disable=True)
- disable_strict_mode: StrictMode(can_disable=True) -> Unlocked
- activate_nuclear_option: Unlocked -> Nuclear
- expiry: Nuclear -> Unlocked once now >= ends_at

There is no manual way out of Nuclear. Expiry is a pure function of the
stored end time and the current time, evaluated before every read and
mutation, so a restarted process computes the same answer from persisted
state alone.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from .audit_logger import AuditLogger
from .config import NuclearConfig
from .enums import LogLevel, MutationKind
from .exceptions import PermissionDeniedError, PreconditionFailedError, ValidationError
from .models import (
    EnforcementLock,
    Nuclear,
    NuclearOptionStatus,
    StrictMode,
    StrictModeStatus,
    Unlocked,
    as_aware,
    unhandled_variant,
)


class SessionContext(Protocol):
    """Source of truth for focus sessions, owned by an outer collaborator."""

    def is_session_active(self, session_id: str) -> bool:
        """Return True if the given session is currently running."""
        ...

    def has_active_session(self) -> bool:
        """Return True if any session is currently running."""
        ...


class InMemorySessionContext:
    """Session context backed by a set of running session ids."""

    def __init__(self) -> None:
        self._active: set[str] = set()

    def start_session(self, session_id: str) -> None:
        self._active.add(session_id)

    def end_session(self, session_id: str) -> None:
        self._active.discard(session_id)

    def is_session_active(self, session_id: str) -> bool:
        return session_id in self._active

    def has_active_session(self) -> bool:
        return bool(self._active)


def evaluate_expiry(lock: EnforcementLock, now: datetime) -> EnforcementLock:
    """
    Resolve an expired nuclear lock.

    Args:
        lock: Current lock value
        now: Current instant

    Returns:
        Unlocked if lock is Nuclear and now >= ends_at, otherwise lock
    """
    if isinstance(lock, Nuclear) and now >= lock.ends_at:
        return Unlocked()
    return lock


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimedSessionContext:
    """
    Session context for sessions with a planned end.

    A session is running until its end time, so an owner that cannot
    report the end itself (a one-shot command) never has to.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        sessions: Optional[dict[str, datetime]] = None,
    ) -> None:
        self._clock = clock or _utc_now
        self._ends: dict[str, datetime] = dict(sessions or {})

    @property
    def sessions(self) -> dict[str, datetime]:
        return dict(self._ends)

    def start_session(self, session_id: str, ends_at: datetime) -> None:
        self._ends[session_id] = as_aware(ends_at)

    def ends_at(self, session_id: str) -> Optional[datetime]:
        return self._ends.get(session_id)

    def is_session_active(self, session_id: str) -> bool:
        ends_at = self._ends.get(session_id)
        return ends_at is not None and as_aware(self._clock()) < ends_at

    def has_active_session(self) -> bool:
        now = as_aware(self._clock())
        return any(now < ends_at for ends_at in self._ends.values())


TransitionListener = Callable[[EnforcementLock, EnforcementLock], None]


class EnforcementController:
    """
    Owner of the enforcement lock.

    Not thread-safe on its own; the engine serializes every call.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        session_context: Optional[SessionContext] = None,
        nuclear_config: Optional[NuclearConfig] = None,
        logger: Optional[AuditLogger] = None,
        initial_lock: Optional[EnforcementLock] = None,
        on_transition: Optional[TransitionListener] = None,
    ) -> None:
        """
        Initialize the controller.

        Args:
            clock: Returns the current instant (timezone-aware UTC)
            session_context: Answers whether focus sessions are active
            nuclear_config: Allowed nuclear durations
            logger: Optional audit logger
            initial_lock: Lock restored from persisted state
            on_transition: Called with (old, new) after every lock change,
                including lazy expiry
        """
        self._clock = clock or _utc_now
        self._sessions = session_context or InMemorySessionContext()
        self._nuclear_config = nuclear_config or NuclearConfig()
        self._logger = logger
        self._lock: EnforcementLock = initial_lock or Unlocked()
        self._on_transition = on_transition

    @property
    def lock(self) -> EnforcementLock:
        """Current lock with expiry applied."""
        return self._current(self._clock())

    @property
    def session_context(self) -> SessionContext:
        return self._sessions

    def refresh(self, now: Optional[datetime] = None) -> EnforcementLock:
        """Apply expiry at a given instant (used by the periodic clock)."""
        return self._current(as_aware(now or self._clock()))

    def restore(self, lock: EnforcementLock) -> None:
        """Put back a previously committed lock without a transition."""
        self._lock = lock

    def enable_strict_mode(self, session_id: str) -> StrictMode:
        """
        Lock weakening for the duration of a focus session.

        Raises:
            ValidationError: If session_id is blank
            PreconditionFailedError: If not Unlocked or the session is not active
        """
        if not isinstance(session_id, str) or not session_id.strip():
            raise ValidationError("session_id", "Session id cannot be empty")

        now = self._clock()
        current = self._current(now)
        if not isinstance(current, Unlocked):
            raise PreconditionFailedError(
                f"Strict mode can only be enabled when unlocked (current: {current.kind.value})",
                {"lock": current.kind.value},
            )
        if not self._sessions.is_session_active(session_id):
            raise PreconditionFailedError(
                "Strict mode requires an active focus session",
                {"session_id": session_id},
            )

        new_lock = StrictMode(session_id=session_id, can_disable=False, started_at=now)
        self._set_lock(new_lock)
        self._log(LogLevel.INFO, "Strict mode enabled", {"session_id": session_id})
        return new_lock

    def notify_session_ended(self, session_id: str) -> EnforcementLock:
        """Make strict mode disable-eligible when its session ends. Otherwise a no-op."""
        current = self._current(self._clock())
        if isinstance(current, StrictMode) and current.session_id == session_id:
            if not current.can_disable:
                updated = StrictMode(
                    session_id=current.session_id,
                    can_disable=True,
                    started_at=current.started_at,
                )
                self._set_lock(updated)
                self._log(
                    LogLevel.INFO,
                    "Session ended, strict mode may now be disabled",
                    {"session_id": session_id},
                )
                return updated
        return current

    def disable_strict_mode(self) -> Unlocked:
        """
        Leave strict mode after its session has ended.

        Idempotent when already unlocked.

        Raises:
            PermissionDeniedError: Under Nuclear or while the session is running
        """
        current = self._current(self._clock())
        if isinstance(current, Unlocked):
            return current
        if isinstance(current, StrictMode):
            if not current.can_disable:
                self._deny(
                    "Strict mode cannot be disabled while its session is active",
                    {"session_id": current.session_id},
                )
            new_lock = Unlocked()
            self._set_lock(new_lock)
            self._log(LogLevel.INFO, "Strict mode disabled", {"session_id": current.session_id})
            return new_lock
        if isinstance(current, Nuclear):
            self._deny(
                "Nuclear lock is active; it can only expire",
                {"ends_at": current.ends_at.isoformat()},
            )
        unhandled_variant(current)

    def activate_nuclear_option(self, duration_minutes: int) -> Nuclear:
        """
        Lock all weakening for a fixed number of minutes.

        Raises:
            ValidationError: If the duration is not a positive integer or not
                one of the configured durations
            PreconditionFailedError: If not Unlocked
        """
        self._validate_duration(duration_minutes)

        now = self._clock()
        current = self._current(now)
        if not isinstance(current, Unlocked):
            raise PreconditionFailedError(
                f"Nuclear option can only be activated when unlocked (current: {current.kind.value})",
                {"lock": current.kind.value},
            )

        new_lock = Nuclear(
            started_at=now,
            ends_at=now + timedelta(minutes=duration_minutes),
            duration_minutes=duration_minutes,
        )
        self._set_lock(new_lock)
        self._log(
            LogLevel.WARN,
            "Nuclear option activated",
            {
                "duration_minutes": duration_minutes,
                "ends_at": new_lock.ends_at.isoformat(),
            },
        )
        return new_lock

    def check_mutation(self, kind: MutationKind) -> None:
        """
        Gate a rule or blocking mutation against the current lock.

        Strengthening mutations always pass.

        Raises:
            PermissionDeniedError: If kind weakens enforcement under Nuclear or
                under StrictMode that cannot yet be disabled
        """
        if not kind.weakens:
            return

        current = self._current(self._clock())
        if isinstance(current, Unlocked):
            return
        if isinstance(current, StrictMode):
            if not current.can_disable:
                self._deny(
                    f"Strict mode forbids {kind.value}",
                    {"mutation": kind.value, "session_id": current.session_id},
                )
            return
        if isinstance(current, Nuclear):
            self._deny(
                f"Nuclear lock forbids {kind.value}",
                {"mutation": kind.value, "ends_at": current.ends_at.isoformat()},
            )
        unhandled_variant(current)

    def get_strict_mode_status(self) -> StrictModeStatus:
        current = self._current(self._clock())
        if isinstance(current, StrictMode):
            return StrictModeStatus(
                enabled=True,
                session_id=current.session_id,
                started_at=current.started_at,
                can_disable=current.can_disable,
            )
        return StrictModeStatus(
            enabled=False,
            session_id=None,
            started_at=None,
            can_disable=False,
        )

    def get_nuclear_option_status(self) -> NuclearOptionStatus:
        now = self._clock()
        current = self._current(now)
        if isinstance(current, Nuclear):
            remaining = max(0, int((current.ends_at - now).total_seconds()))
            return NuclearOptionStatus(
                active=True,
                duration_minutes=current.duration_minutes,
                started_at=current.started_at,
                ends_at=current.ends_at,
                remaining_seconds=remaining,
            )
        return NuclearOptionStatus(
            active=False,
            duration_minutes=0,
            started_at=None,
            ends_at=None,
            remaining_seconds=None,
        )

    def _validate_duration(self, duration_minutes: int) -> None:
        if (
            isinstance(duration_minutes, bool)
            or not isinstance(duration_minutes, int)
            or duration_minutes <= 0
        ):
            raise ValidationError(
                "duration_minutes",
                f"Duration must be a positive number of minutes, got {duration_minutes!r}",
            )

        allowed = self._nuclear_config.allowed_durations
        if allowed is not None and duration_minutes not in allowed:
            raise ValidationError(
                "duration_minutes",
                f"Duration must be one of {sorted(allowed)}, got {duration_minutes}",
                {"allowed_durations": sorted(allowed)},
            )

    def _current(self, now: datetime) -> EnforcementLock:
        resolved = evaluate_expiry(self._lock, now)
        if resolved is not self._lock:
            self._set_lock(resolved)
            self._log(LogLevel.INFO, "Nuclear lock expired", {"expired_at": now.isoformat()})
        return resolved

    def _set_lock(self, new_lock: EnforcementLock) -> None:
        old_lock = self._lock
        self._lock = new_lock
        if self._on_transition is not None:
            self._on_transition(old_lock, new_lock)

    def _deny(self, message: str, details: dict) -> None:
        error = PermissionDeniedError(message, details)
        self._log(LogLevel.WARN, "Mutation denied", error.to_dict())
        raise error

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "EnforcementController", message, data)
