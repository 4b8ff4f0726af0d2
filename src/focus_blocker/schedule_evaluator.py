"""
Schedule Evaluator for the focus blocker engine.

Turns a rule plus the current time and session context into an
active/inactive decision, and answers whether a given website or
application is blocked right now.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Optional, Union

from .audit_logger import AuditLogger
from .categories import CategoryTarget, expand_categories
from .enums import ScheduleType
from .exceptions import ValidationError
from .identifiers import AppName, Domain
from .models import AppRule, BlockRule, CategoryRule, WebsiteRule, unhandled_variant
from .scheduler import CronParseError, CronParser, CronSchedule


class ScheduleEvaluator:
    """
    Decides when rules are in force.

    Cron expressions are parsed once and cached. A stored expression that
    no longer parses makes its rule inactive and is reported once.
    """

    def __init__(self, logger: Optional[AuditLogger] = None) -> None:
        self._logger = logger
        self._parser = CronParser()
        self._schedules: dict[str, CronSchedule] = {}
        self._invalid_expressions: set[str] = set()

    def is_rule_active_now(
        self,
        rule: BlockRule,
        now: datetime,
        has_active_session: bool,
    ) -> bool:
        """
        Check whether a rule's schedule applies at the given instant.

        The enabled flag is not considered here.
        """
        if rule.schedule_type is ScheduleType.ALWAYS:
            return True
        if rule.schedule_type is ScheduleType.FOCUS_ONLY:
            return has_active_session
        if rule.schedule_type is ScheduleType.SCHEDULED:
            if rule.schedule_cron is None:
                return False
            schedule = self._schedule_for(rule.schedule_cron.value, rule)
            return schedule is not None and schedule.matches(now)
        unhandled_variant(rule.schedule_type)

    def resolve_targets(self, rule: BlockRule) -> frozenset[CategoryTarget]:
        """The concrete domains and apps a rule covers."""
        if isinstance(rule, (WebsiteRule, AppRule)):
            return frozenset({rule.target})
        if isinstance(rule, CategoryRule):
            return expand_categories([rule.target])
        unhandled_variant(rule)

    def is_blocking_active_for(
        self,
        target: Union[str, Domain, AppName],
        now: datetime,
        has_active_session: bool,
        rules: Iterable[BlockRule],
    ) -> bool:
        """
        Check whether any enabled, currently active rule covers a target.

        A plain string is matched as a domain when it is one, and as an
        application name otherwise. Domains also match their parents, so
        'api.facebook.com' is covered by a rule for 'facebook.com'.
        """
        domain_keys, app_key = _target_keys(target)

        for rule in rules:
            if not rule.enabled:
                continue
            if not self._covers(rule, domain_keys, app_key):
                continue
            if self.is_rule_active_now(rule, now, has_active_session):
                return True
        return False

    def _covers(
        self,
        rule: BlockRule,
        domain_keys: frozenset[str],
        app_key: Optional[str],
    ) -> bool:
        for resolved in self.resolve_targets(rule):
            if isinstance(resolved, Domain):
                if resolved.value in domain_keys:
                    return True
            elif isinstance(resolved, AppName):
                if app_key is not None and resolved.match_key == app_key:
                    return True
            else:
                unhandled_variant(resolved)
        return False

    def _schedule_for(self, expression: str, rule: BlockRule) -> Optional[CronSchedule]:
        schedule = self._schedules.get(expression)
        if schedule is not None:
            return schedule
        if expression in self._invalid_expressions:
            return None

        try:
            schedule = self._parser.parse(expression)
        except CronParseError as e:
            self._invalid_expressions.add(expression)
            if self._logger:
                self._logger.warn(
                    "ScheduleEvaluator",
                    "Invalid cron expression, rule treated as inactive",
                    {
                        "rule_id": rule.id.value,
                        "expression": expression,
                        "error": e.message,
                    },
                )
            return None

        self._schedules[expression] = schedule
        return schedule


def _target_keys(
    target: Union[str, Domain, AppName],
) -> tuple[frozenset[str], Optional[str]]:
    """Domain keys (the domain and its parents) and app key for a target."""
    if isinstance(target, Domain):
        return _domain_keys(target), None
    if isinstance(target, AppName):
        return frozenset(), target.match_key

    app = AppName(target)
    try:
        domain = Domain(target)
    except ValidationError:
        return frozenset(), app.match_key
    return _domain_keys(domain), app.match_key


def _domain_keys(domain: Domain) -> frozenset[str]:
    return frozenset([domain.value] + [parent.value for parent in domain.parents()])
