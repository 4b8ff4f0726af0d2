"""
Block Event Recorder for the focus blocker engine.

Appends immutable block events and bypass requests and derives per-rule and
aggregate statistics from the log. Events are never mutated or deleted.
"""

import uuid
from collections import Counter
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .audit_logger import AuditLogger
from .enums import LogLevel, RuleType
from .exceptions import NotFoundError, ValidationError
from .identifiers import RuleId
from .models import (
    BlockAttempt,
    BlockedTargetStats,
    BlockEvent,
    BlockRule,
    BlockStatistics,
    BypassRequest,
    RuleStats,
    as_aware,
)


TOP_TARGETS_LIMIT = 10
RECENT_BLOCKS_LIMIT = 20
WEEK_DAYS = 7
MONTH_DAYS = 30

RuleLookup = Callable[[RuleId], Optional[BlockRule]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BlockEventRecorder:
    """
    Append-only log of block events and bypass requests.

    Rule ids are validated against the rule store at record time. Events
    outlive their rule; statistics for a removed rule stay computable.
    """

    def __init__(
        self,
        rule_lookup: RuleLookup,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[AuditLogger] = None,
        events: Iterable[BlockEvent] = (),
        bypass_requests: Iterable[BypassRequest] = (),
    ) -> None:
        self._rule_lookup = rule_lookup
        self._clock = clock or _utc_now
        self._logger = logger
        self._events: list[BlockEvent] = list(events)
        self._bypass_requests: list[BypassRequest] = list(bypass_requests)
        # rule type per rule id, kept so removed rules still aggregate by type
        self._rule_types: dict[RuleId, RuleType] = {}

    @property
    def events(self) -> tuple[BlockEvent, ...]:
        return tuple(self._events)

    @property
    def bypass_requests(self) -> tuple[BypassRequest, ...]:
        return tuple(self._bypass_requests)

    def restore(
        self,
        events: Iterable[BlockEvent],
        bypass_requests: Iterable[BypassRequest],
    ) -> None:
        """Reset the log to a previously committed state."""
        self._events = list(events)
        self._bypass_requests = list(bypass_requests)

    def record_block_attempt(self, attempt: BlockAttempt) -> BlockEvent:
        """
        Append a block event for an enforcement attempt.

        Raises:
            NotFoundError: If the attempt names an unknown rule
            ValidationError: If the target is blank
        """
        rule = self._require_rule(attempt.rule_id)
        if not isinstance(attempt.target, str) or not attempt.target.strip():
            raise ValidationError("target", "Blocked target cannot be empty")

        event = BlockEvent(
            id=str(uuid.uuid4()),
            rule_id=rule.id,
            blocked_at=as_aware(attempt.timestamp),
            target=attempt.target.strip(),
            was_bypassed=bool(attempt.was_bypassed),
            created_at=self._clock(),
            session_id=attempt.session_id,
            process_name=attempt.process_name,
        )
        self._events.append(event)
        self._rule_types[rule.id] = rule.rule_type

        self._log(
            LogLevel.DEBUG,
            "Block attempt recorded",
            {
                "rule_id": rule.id.value,
                "target": event.target,
                "was_bypassed": event.was_bypassed,
                "user_agent": attempt.user_agent,
            },
        )
        return event

    def record_bypass_request(self, request: BypassRequest) -> BypassRequest:
        """
        Append a bypass request after validation. Nothing is granted here.

        Raises:
            NotFoundError: If the request names an unknown rule
            ValidationError: If a bypass code is given but blank
        """
        self._require_rule(request.rule_id)
        if request.bypass_code is not None and not request.bypass_code.strip():
            raise ValidationError("bypass_code", "Bypass code cannot be blank")

        self._bypass_requests.append(request)
        self._log(
            LogLevel.INFO,
            "Bypass requested",
            {
                "rule_id": request.rule_id.value,
                "bypass_code": request.bypass_code,
                "reason": request.reason,
            },
        )
        return request

    def get_rule_stats(self, rule: BlockRule, now: Optional[datetime] = None) -> RuleStats:
        """
        Statistics for one rule, recomputed from the event log.

        avg_blocks_per_day divides by the whole days since the rule was
        created, at least one.
        """
        now = as_aware(now or self._clock())
        rule_events = [event for event in self._events if event.rule_id == rule.id]

        days = max(1, (now - rule.created_at).days)
        total = len(rule_events)

        return RuleStats(
            rule_id=rule.id,
            total_blocks=total,
            bypasses=sum(1 for event in rule_events if event.was_bypassed),
            last_triggered=max((event.blocked_at for event in rule_events), default=None),
            avg_blocks_per_day=total / days,
        )

    def get_block_statistics(self, now: Optional[datetime] = None) -> BlockStatistics:
        """
        Aggregate statistics over the whole log.

        Windows are calendar dates in the time zone of now: today counts
        events on the date of now, week and month count events on or after
        the date 7 and 30 days back. Events are converted into that zone
        before their date or hour is taken. Top targets, hourly and
        per-type counts cover the week window.
        """
        now = as_aware(now or self._clock())
        zone = now.tzinfo
        today = now.date()
        week_start = (now - timedelta(days=WEEK_DAYS)).date()
        month_start = (now - timedelta(days=MONTH_DAYS)).date()

        local_times = [(e, e.blocked_at.astimezone(zone)) for e in self._events]
        week = [(e, local) for e, local in local_times if local.date() >= week_start]
        week_events = [e for e, _ in week]

        attempts_by_hour = [0] * 24
        for _, local in week:
            attempts_by_hour[local.hour] += 1

        attempts_by_type = {rule_type.value: 0 for rule_type in RuleType}
        for event in week_events:
            rule_type = self._rule_type_of(event.rule_id)
            if rule_type is not None:
                attempts_by_type[rule_type.value] += 1

        recent = sorted(self._events, key=lambda e: e.blocked_at, reverse=True)

        return BlockStatistics(
            total_attempts=len(self._events),
            attempts_today=sum(1 for _, local in local_times if local.date() == today),
            attempts_this_week=len(week_events),
            attempts_this_month=sum(
                1 for _, local in local_times if local.date() >= month_start
            ),
            top_blocked_targets=self._top_targets(week_events),
            attempts_by_hour=attempts_by_hour,
            attempts_by_type=attempts_by_type,
            recent_blocks=recent[:RECENT_BLOCKS_LIMIT],
        )

    def get_session_blocks(self, session_id: str) -> list[BlockEvent]:
        """Events recorded during a focus session, newest first."""
        return sorted(
            (e for e in self._events if e.session_id == session_id),
            key=lambda e: e.blocked_at,
            reverse=True,
        )

    def _top_targets(self, events: list[BlockEvent]) -> list[BlockedTargetStats]:
        counts: Counter = Counter()
        last_attempt: dict[tuple[str, str], datetime] = {}
        for event in events:
            rule_type = self._rule_type_of(event.rule_id)
            key = (rule_type.value if rule_type else "unknown", event.target)
            counts[key] += 1
            if key not in last_attempt or event.blocked_at > last_attempt[key]:
                last_attempt[key] = event.blocked_at

        return [
            BlockedTargetStats(
                target=target,
                rule_type=rule_type,
                count=count,
                last_attempt=last_attempt[(rule_type, target)],
            )
            for (rule_type, target), count in counts.most_common(TOP_TARGETS_LIMIT)
        ]

    def _rule_type_of(self, rule_id: RuleId) -> Optional[RuleType]:
        rule_type = self._rule_types.get(rule_id)
        if rule_type is None:
            rule = self._rule_lookup(rule_id)
            if rule is not None:
                rule_type = rule.rule_type
                self._rule_types[rule_id] = rule_type
        return rule_type

    def _require_rule(self, rule_id: RuleId) -> BlockRule:
        if not isinstance(rule_id, RuleId):
            rule_id = RuleId(rule_id)
        rule = self._rule_lookup(rule_id)
        if rule is None:
            raise NotFoundError(rule_id.value)
        return rule

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "BlockEventRecorder", message, data)
