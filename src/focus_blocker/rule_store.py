"""
Rule Store module for the focus blocker engine.

Holds the set of block rules, validates raw input into typed rules and
enforces uniqueness of (rule type, target). The store performs no lock
checks; the engine gates every mutation before calling in.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from .audit_logger import AuditLogger
from .categories import is_known_category, list_categories
from .enums import LogLevel, RuleType, ScheduleType, Strictness
from .exceptions import AlreadyExistsError, NotFoundError, ValidationError
from .identifiers import AppName, CronExpression, Domain, RuleId
from .models import (
    AppRule,
    BlockRule,
    CategoryRule,
    CreateRuleRequest,
    RuleFilter,
    WebsiteRule,
    rule_key,
    target_text,
    unhandled_variant,
    with_enabled,
    with_strictness,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RuleStore:
    """
    In-memory rule collection keyed by rule id.

    Rules are immutable; every update replaces the stored instance, so a
    snapshot returned by list_rules never changes under the caller.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._clock = clock or _utc_now
        self._logger = logger
        self._rules: dict[RuleId, BlockRule] = {}

    def create_rule(self, request: CreateRuleRequest) -> BlockRule:
        """
        Validate a request and add the resulting rule.

        Args:
            request: Raw rule input

        Returns:
            The stored rule

        Raises:
            ValidationError: If the target, schedule or strictness is invalid
            AlreadyExistsError: If a rule for the same (type, target) exists
        """
        rule = self.build_rule(request, RuleId.generate(), self._clock())

        key = rule_key(rule)
        if any(rule_key(existing) == key for existing in self._rules.values()):
            raise AlreadyExistsError(rule.rule_type.value, target_text(rule))

        self._rules[rule.id] = rule
        self._log(
            LogLevel.INFO,
            "Rule created",
            {
                "rule_id": rule.id.value,
                "rule_type": rule.rule_type.value,
                "target": target_text(rule),
                "schedule_type": rule.schedule_type.value,
            },
        )
        return rule

    @staticmethod
    def build_rule(
        request: CreateRuleRequest,
        rule_id: RuleId,
        created_at: datetime,
    ) -> BlockRule:
        """Turn raw request data into a typed rule without storing it."""
        if not isinstance(request.rule_type, RuleType):
            raise ValidationError("rule_type", f"Invalid rule type: {request.rule_type!r}")
        if not isinstance(request.schedule_type, ScheduleType):
            raise ValidationError(
                "schedule_type", f"Invalid schedule type: {request.schedule_type!r}"
            )
        if not isinstance(request.strictness, Strictness):
            raise ValidationError("strictness", f"Invalid strictness: {request.strictness!r}")

        schedule_cron = _build_schedule(request.schedule_type, request.schedule_cron)
        common = dict(
            id=rule_id,
            enabled=bool(request.enabled),
            strictness=request.strictness,
            created_at=created_at,
            schedule_type=request.schedule_type,
            schedule_cron=schedule_cron,
        )

        if request.rule_type is RuleType.WEBSITE:
            return WebsiteRule(target=Domain(request.target), **common)
        if request.rule_type is RuleType.APP:
            return AppRule(target=AppName(request.target), **common)
        if request.rule_type is RuleType.CATEGORY:
            category_id = (request.target or "").strip().lower()
            if not is_known_category(category_id):
                raise ValidationError(
                    "target",
                    f"Unknown category: {request.target}",
                    {"category": request.target, "known_categories": list_categories()},
                )
            return CategoryRule(target=category_id, **common)
        unhandled_variant(request.rule_type)

    def remove_rule(self, rule_id: RuleId) -> BlockRule:
        """Remove a rule and return it. Raises NotFoundError when absent."""
        rule = self._require(rule_id)
        del self._rules[rule.id]
        self._log(LogLevel.INFO, "Rule removed", {"rule_id": rule.id.value})
        return rule

    def set_enabled(self, rule_id: RuleId, enabled: bool) -> BlockRule:
        rule = with_enabled(self._require(rule_id), bool(enabled))
        self._rules[rule.id] = rule
        self._log(
            LogLevel.INFO,
            "Rule enabled" if enabled else "Rule disabled",
            {"rule_id": rule.id.value},
        )
        return rule

    def set_strictness(self, rule_id: RuleId, level: Strictness) -> BlockRule:
        if not isinstance(level, Strictness):
            raise ValidationError("strictness", f"Invalid strictness: {level!r}")
        rule = with_strictness(self._require(rule_id), level)
        self._rules[rule.id] = rule
        self._log(
            LogLevel.INFO,
            "Rule strictness changed",
            {"rule_id": rule.id.value, "strictness": level.value},
        )
        return rule

    def get_rule(self, rule_id: RuleId) -> BlockRule:
        return self._require(rule_id)

    def find_rule(self, rule_id: RuleId) -> Optional[BlockRule]:
        """Like get_rule, but returns None for an unknown id."""
        return self._rules.get(rule_id)

    def list_rules(self, rule_filter: Optional[RuleFilter] = None) -> list[BlockRule]:
        """
        Snapshot of the stored rules, oldest first.

        Args:
            rule_filter: Optional criteria; None returns every rule
        """
        rules = sorted(self._rules.values(), key=lambda r: (r.created_at, r.id.value))
        if rule_filter is None:
            return rules
        return [rule for rule in rules if rule_filter.matches(rule)]

    def replace_all(self, rules: list[BlockRule]) -> None:
        """
        Replace the stored rules, e.g. after loading persisted state.

        Raises:
            AlreadyExistsError: If the input violates (type, target) uniqueness
        """
        replacement: dict[RuleId, BlockRule] = {}
        keys: set[tuple[RuleType, str]] = set()
        for rule in rules:
            key = rule_key(rule)
            if key in keys:
                raise AlreadyExistsError(rule.rule_type.value, target_text(rule))
            keys.add(key)
            replacement[rule.id] = rule
        self._rules = replacement

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    def _require(self, rule_id: RuleId) -> BlockRule:
        if not isinstance(rule_id, RuleId):
            rule_id = RuleId(rule_id)
        rule = self._rules.get(rule_id)
        if rule is None:
            raise NotFoundError(rule_id.value)
        return rule

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "RuleStore", message, data)


def _build_schedule(
    schedule_type: ScheduleType,
    raw_cron: Optional[str],
) -> Optional[CronExpression]:
    """Validate the schedule pair: a cron is required for scheduled rules only."""
    has_cron = raw_cron is not None and raw_cron.strip() != ""
    if schedule_type is ScheduleType.SCHEDULED:
        if not has_cron:
            raise ValidationError(
                "schedule_cron",
                "A scheduled rule requires a cron expression",
            )
        return CronExpression(raw_cron)
    if has_cron:
        raise ValidationError(
            "schedule_cron",
            f"A cron expression is only valid for scheduled rules, not '{schedule_type.value}'",
            {"schedule_type": schedule_type.value},
        )
    return None
