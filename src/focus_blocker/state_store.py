"""
State Store module for persistent engine state.

This module provides HMAC-protected storage for the rule set, the current
enforcement lock, the global blocking flag and the block event log,
ensuring data integrity and detecting tampering. Focus sessions started from
the command line keep their planned end in a second signed document.
"""

import hashlib
import hmac
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .enums import LockKind, RuleType, ScheduleType, Strictness
from .exceptions import BlockingError, PersistenceError, TamperingError
from .identifiers import AppName, CronExpression, Domain, RuleId
from .models import (
    AppRule,
    BlockEvent,
    BlockRule,
    BypassRequest,
    CategoryRule,
    EnforcementLock,
    Nuclear,
    PersistedState,
    StrictMode,
    Unlocked,
    WebsiteRule,
    as_aware,
    target_text,
    unhandled_variant,
)


class SignedJsonStore:
    """
    JSON document on disk protected by an HMAC-SHA256 signature.

    The signature covers version, last_updated and PAYLOAD_FIELDS. A file
    that fails validation is never loaded; the caller decides how to proceed.
    """

    VERSION = 1
    DOCUMENT = "state file"
    PAYLOAD_FIELDS: tuple[str, ...] = ()

    def __init__(self, file_path: Path, hmac_secret: str) -> None:
        """
        Initialize the store.

        Args:
            file_path: Path to the document (JSON format)
            hmac_secret: Secret key for HMAC computation
        """
        if not hmac_secret:
            raise PersistenceError(
                code="config_error",
                message="HMAC secret cannot be empty",
                details={"file_path": str(file_path)},
            )
        self._file_path = Path(file_path)
        self._hmac_secret = hmac_secret.encode("utf-8")

    def _read_signed(self) -> Optional[dict]:
        """
        Read the document and validate its HMAC.

        Returns:
            The raw JSON object, or None if the file doesn't exist

        Raises:
            TamperingError: If HMAC validation fails
            PersistenceError: If the file cannot be read or parsed
        """
        if not self._file_path.exists():
            return None

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Failed to parse {self.DOCUMENT}: {e}",
                details={"file_path": str(self._file_path)},
            ) from e
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to read {self.DOCUMENT}: {e}",
                details={"file_path": str(self._file_path)},
            ) from e

        if not isinstance(raw_data, dict):
            raise PersistenceError(
                code="parse_error",
                message=f"{self.DOCUMENT.capitalize()} does not contain a JSON object",
                details={"file_path": str(self._file_path)},
            )

        stored_hmac = raw_data.get("hmac", "")
        computed_hmac = self.compute_hmac(self._signed_fields(raw_data))

        if not isinstance(stored_hmac, str) or not self.validate_hmac(stored_hmac, computed_hmac):
            raise TamperingError(
                code="hmac_mismatch",
                message="HMAC validation failed - data may have been tampered with",
                details={"file_path": str(self._file_path)},
            )
        return raw_data

    def _write_signed(self, data: dict) -> str:
        """
        Sign and atomically write a document.

        Returns:
            The HMAC written with the document

        Raises:
            PersistenceError: If the file cannot be written
        """
        computed_hmac = self.compute_hmac(data)
        output_data = dict(data, hmac=computed_hmac)

        self._file_path.parent.mkdir(parents=True, exist_ok=True)

        # Write to a sibling file first so a crash never leaves half a document
        tmp_path = self._file_path.with_name(self._file_path.name + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(output_data, f, indent=2, sort_keys=True)
            tmp_path.replace(self._file_path)
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to write {self.DOCUMENT}: {e}",
                details={"file_path": str(self._file_path)},
            ) from e
        return computed_hmac

    def _signed_fields(self, raw_data: dict) -> dict:
        data = {
            "version": raw_data.get("version"),
            "last_updated": raw_data.get("last_updated"),
        }
        for name in self.PAYLOAD_FIELDS:
            data[name] = raw_data.get(name)
        return data

    def compute_hmac(self, data: dict) -> str:
        """
        Compute HMAC-SHA256 over serialized data.

        Args:
            data: Dictionary to compute HMAC over

        Returns:
            Hexadecimal HMAC string
        """
        serialized = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hmac.new(
            self._hmac_secret,
            serialized.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def validate_hmac(self, stored_hmac: str, computed_hmac: str) -> bool:
        """Validate HMAC using constant-time comparison."""
        return hmac.compare_digest(stored_hmac, computed_hmac)

    @property
    def file_path(self) -> Path:
        """Get the document path."""
        return self._file_path


class StateStore(SignedJsonStore):
    """
    Persistent engine state with HMAC protection.

    Stores rules, the lock, the blocking flag and the event log to disk with
    HMAC validation to detect tampering.
    """

    # Fields covered by the HMAC, in addition to version and last_updated
    PAYLOAD_FIELDS = ("rules", "lock", "blocking_enabled", "events", "bypass_requests")

    def __init__(self, file_path: Path, hmac_secret: str) -> None:
        super().__init__(file_path, hmac_secret)
        self._state: Optional[PersistedState] = None

    def load(self) -> Optional[PersistedState]:
        """
        Load state from file and validate HMAC.

        Returns:
            PersistedState if file exists and is valid, None if file doesn't exist

        Raises:
            TamperingError: If HMAC validation fails
            PersistenceError: If file cannot be read or parsed
        """
        raw_data = self._read_signed()
        if raw_data is None:
            return None

        try:
            state = PersistedState(
                version=raw_data.get("version", self.VERSION),
                rules=[rule_from_dict(item) for item in raw_data.get("rules", [])],
                lock=lock_from_dict(raw_data.get("lock") or {"kind": LockKind.UNLOCKED.value}),
                blocking_enabled=bool(raw_data.get("blocking_enabled", True)),
                events=[event_from_dict(item) for item in raw_data.get("events", [])],
                bypass_requests=[
                    bypass_request_from_dict(item)
                    for item in raw_data.get("bypass_requests", [])
                ],
                last_updated=raw_data.get("last_updated", ""),
                hmac=raw_data.get("hmac", ""),
            )
        except (KeyError, TypeError, ValueError, BlockingError) as e:
            raise PersistenceError(
                code="parse_error",
                message=f"State file contains invalid data: {e}",
                details={"file_path": str(self._file_path)},
            ) from e

        self._state = state
        return self._state

    def save(self, state: Optional[PersistedState] = None) -> None:
        """
        Save state to file with HMAC protection.

        Args:
            state: State to save. If None, saves the current internal state.

        Raises:
            PersistenceError: If file cannot be written
        """
        if state is not None:
            self._state = state

        if self._state is None:
            raise PersistenceError(
                code="no_state",
                message="No state to save",
                details={},
            )

        now = datetime.now(timezone.utc).isoformat()
        data = {
            "version": self._state.version,
            "rules": [rule_to_dict(rule) for rule in self._state.rules],
            "lock": lock_to_dict(self._state.lock),
            "blocking_enabled": self._state.blocking_enabled,
            "events": [event_to_dict(event) for event in self._state.events],
            "bypass_requests": [
                bypass_request_to_dict(request) for request in self._state.bypass_requests
            ],
            "last_updated": now,
        }
        computed_hmac = self._write_signed(data)

        self._state.last_updated = now
        self._state.hmac = computed_hmac

    @property
    def state(self) -> Optional[PersistedState]:
        """Get the current internal state."""
        return self._state


class SessionStore(SignedJsonStore):
    """
    Planned end times of focus sessions started from the command line.

    Signed with the same secret as the engine state, so a session cannot be
    cut short by editing the file.
    """

    DOCUMENT = "session file"
    PAYLOAD_FIELDS = ("sessions",)

    def load(self) -> dict[str, datetime]:
        """
        Load session end times, keyed by session id.

        Raises:
            TamperingError: If HMAC validation fails
            PersistenceError: If file cannot be read or parsed
        """
        raw_data = self._read_signed()
        if raw_data is None:
            return {}
        try:
            return {
                str(session_id): as_aware(datetime.fromisoformat(ends_at))
                for session_id, ends_at in raw_data["sessions"].items()
            }
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Session file contains invalid data: {e}",
                details={"file_path": str(self._file_path)},
            ) from e

    def save(self, sessions: dict[str, datetime]) -> None:
        """Save session end times with HMAC protection."""
        self._write_signed({
            "version": self.VERSION,
            "sessions": {
                session_id: _dt_to_str(ends_at) for session_id, ends_at in sessions.items()
            },
            "last_updated": datetime.now(timezone.utc).isoformat(),
        })


def _dt_to_str(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _dt_from_str(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return as_aware(datetime.fromisoformat(value))


def rule_to_dict(rule: BlockRule) -> dict[str, Any]:
    return {
        "id": rule.id.value,
        "rule_type": rule.rule_type.value,
        "target": target_text(rule),
        "enabled": rule.enabled,
        "strictness": rule.strictness.value,
        "created_at": _dt_to_str(rule.created_at),
        "schedule_type": rule.schedule_type.value,
        "schedule_cron": rule.schedule_cron.value if rule.schedule_cron else None,
    }


def rule_from_dict(data: dict[str, Any]) -> BlockRule:
    rule_type = RuleType(data["rule_type"])
    cron = data.get("schedule_cron")
    common = dict(
        id=RuleId(data["id"]),
        enabled=bool(data["enabled"]),
        strictness=Strictness(data["strictness"]),
        created_at=_dt_from_str(data["created_at"]),
        schedule_type=ScheduleType(data["schedule_type"]),
        schedule_cron=CronExpression.stored(cron) if cron else None,
    )
    if rule_type is RuleType.WEBSITE:
        return WebsiteRule(target=Domain(data["target"]), **common)
    if rule_type is RuleType.APP:
        return AppRule(target=AppName(data["target"]), **common)
    if rule_type is RuleType.CATEGORY:
        return CategoryRule(target=str(data["target"]), **common)
    unhandled_variant(rule_type)


def lock_to_dict(lock: EnforcementLock) -> dict[str, Any]:
    if isinstance(lock, Unlocked):
        return {"kind": lock.kind.value}
    if isinstance(lock, StrictMode):
        return {
            "kind": lock.kind.value,
            "session_id": lock.session_id,
            "can_disable": lock.can_disable,
            "started_at": _dt_to_str(lock.started_at),
        }
    if isinstance(lock, Nuclear):
        return {
            "kind": lock.kind.value,
            "started_at": _dt_to_str(lock.started_at),
            "ends_at": _dt_to_str(lock.ends_at),
            "duration_minutes": lock.duration_minutes,
        }
    unhandled_variant(lock)


def lock_from_dict(data: dict[str, Any]) -> EnforcementLock:
    kind = LockKind(data["kind"])
    if kind is LockKind.UNLOCKED:
        return Unlocked()
    if kind is LockKind.STRICT_MODE:
        return StrictMode(
            session_id=str(data["session_id"]),
            can_disable=bool(data["can_disable"]),
            started_at=_dt_from_str(data["started_at"]),
        )
    if kind is LockKind.NUCLEAR:
        return Nuclear(
            started_at=_dt_from_str(data["started_at"]),
            ends_at=_dt_from_str(data["ends_at"]),
            duration_minutes=int(data["duration_minutes"]),
        )
    unhandled_variant(kind)


def event_to_dict(event: BlockEvent) -> dict[str, Any]:
    return {
        "id": event.id,
        "rule_id": event.rule_id.value,
        "blocked_at": _dt_to_str(event.blocked_at),
        "target": event.target,
        "was_bypassed": event.was_bypassed,
        "created_at": _dt_to_str(event.created_at),
        "session_id": event.session_id,
        "process_name": event.process_name,
    }


def event_from_dict(data: dict[str, Any]) -> BlockEvent:
    return BlockEvent(
        id=str(data["id"]),
        rule_id=RuleId(data["rule_id"]),
        blocked_at=_dt_from_str(data["blocked_at"]),
        target=str(data["target"]),
        was_bypassed=bool(data["was_bypassed"]),
        created_at=_dt_from_str(data["created_at"]),
        session_id=data.get("session_id"),
        process_name=data.get("process_name"),
    )


def bypass_request_to_dict(request: BypassRequest) -> dict[str, Any]:
    return {
        "rule_id": request.rule_id.value,
        "requested_at": _dt_to_str(request.requested_at),
        "bypass_code": request.bypass_code,
        "reason": request.reason,
    }


def bypass_request_from_dict(data: dict[str, Any]) -> BypassRequest:
    return BypassRequest(
        rule_id=RuleId(data["rule_id"]),
        requested_at=_dt_from_str(data["requested_at"]),
        bypass_code=data.get("bypass_code"),
        reason=data.get("reason"),
    )
