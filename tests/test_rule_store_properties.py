"""
Property-based tests for Rule Store module.

Uses Hypothesis for property-based testing to verify rule validation,
(rule type, target) uniqueness and ordering of listed rules.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from focus_blocker.enums import RuleType, ScheduleType, Strictness
from focus_blocker.exceptions import AlreadyExistsError, NotFoundError, ValidationError
from focus_blocker.identifiers import AppName, Domain, RuleId
from focus_blocker.models import (
    AppRule,
    CategoryRule,
    CreateRuleRequest,
    RuleFilter,
    WebsiteRule,
)
from focus_blocker.rule_store import RuleStore


def stepping_clock(start: datetime, step: timedelta = timedelta(seconds=1)) -> Callable[[], datetime]:
    """Clock that advances by step on every call."""
    state = {"now": start}

    def clock() -> datetime:
        current = state["now"]
        state["now"] = current + step
        return current

    return clock


START = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)


# Strategies for generating valid test data

@st.composite
def site_name(draw) -> str:
    """Generate a simple valid domain."""
    label = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz"),
        min_size=1,
        max_size=12,
    ))
    tld = draw(st.sampled_from(["com", "de", "org"]))
    return f"{label}.{tld}"


class TestRuleCreationProperty:
    """Valid requests produce typed, normalized rules."""

    @given(domain=site_name(), strictness=st.sampled_from(list(Strictness)))
    @settings(max_examples=100)
    def test_website_rule_is_normalized(self, domain: str, strictness: Strictness) -> None:
        store = RuleStore(clock=stepping_clock(START))
        rule = store.create_rule(CreateRuleRequest(
            rule_type=RuleType.WEBSITE,
            target=domain.upper(),
            strictness=strictness,
        ))

        assert isinstance(rule, WebsiteRule)
        assert rule.target == Domain(domain)
        assert rule.strictness is strictness
        assert rule.enabled
        assert rule.schedule_type is ScheduleType.ALWAYS
        assert rule.schedule_cron is None
        assert rule.created_at == START
        assert store.get_rule(rule.id) == rule

    def test_app_rule_keeps_display_name(self) -> None:
        store = RuleStore()
        rule = store.create_rule(CreateRuleRequest(rule_type=RuleType.APP, target=" Slack "))

        assert isinstance(rule, AppRule)
        assert rule.target == AppName("Slack")

    def test_category_rule_id_is_normalized(self) -> None:
        store = RuleStore()
        rule = store.create_rule(
            CreateRuleRequest(rule_type=RuleType.CATEGORY, target=" Social_Media ")
        )

        assert isinstance(rule, CategoryRule)
        assert rule.target == "social_media"

    def test_unknown_category_rejected(self) -> None:
        store = RuleStore()
        try:
            store.create_rule(CreateRuleRequest(rule_type=RuleType.CATEGORY, target="sports"))
            assert False, "Expected ValidationError for unknown category"
        except ValidationError as e:
            assert e.field == "target"
            assert "social_media" in e.details["known_categories"]
        assert len(store) == 0

    def test_scheduled_rule_keeps_cron(self) -> None:
        store = RuleStore()
        rule = store.create_rule(CreateRuleRequest(
            rule_type=RuleType.WEBSITE,
            target="reddit.com",
            schedule_type=ScheduleType.SCHEDULED,
            schedule_cron="*  9-17 * * 1-5",
        ))

        assert rule.schedule_cron is not None
        assert rule.schedule_cron.value == "* 9-17 * * 1-5"

    @pytest.mark.parametrize("schedule_type,cron", [
        (ScheduleType.SCHEDULED, None),
        (ScheduleType.SCHEDULED, "   "),
        (ScheduleType.SCHEDULED, "every day"),
        (ScheduleType.SCHEDULED, "0 9 * *"),
        (ScheduleType.ALWAYS, "0 9 * * *"),
        (ScheduleType.FOCUS_ONLY, "0 9 * * *"),
    ])
    def test_inconsistent_schedule_rejected(self, schedule_type: ScheduleType, cron) -> None:
        store = RuleStore()
        with pytest.raises(ValidationError) as exc_info:
            store.create_rule(CreateRuleRequest(
                rule_type=RuleType.WEBSITE,
                target="reddit.com",
                schedule_type=schedule_type,
                schedule_cron=cron,
            ))
        assert exc_info.value.field == "schedule_cron"
        assert len(store) == 0

    @pytest.mark.parametrize("request_kwargs,field", [
        ({"rule_type": "website"}, "rule_type"),
        ({"rule_type": RuleType.WEBSITE, "strictness": "hard"}, "strictness"),
        ({"rule_type": RuleType.WEBSITE, "schedule_type": "always"}, "schedule_type"),
    ])
    def test_untyped_values_rejected(self, request_kwargs: dict, field: str) -> None:
        store = RuleStore()
        with pytest.raises(ValidationError) as exc_info:
            store.create_rule(CreateRuleRequest(target="reddit.com", **request_kwargs))
        assert exc_info.value.field == field

    def test_invalid_domain_rejected(self) -> None:
        store = RuleStore()
        with pytest.raises(ValidationError):
            store.create_rule(CreateRuleRequest(rule_type=RuleType.WEBSITE, target="not a domain"))


class TestRuleUniquenessProperty:
    """No two rules share a (rule type, target) pair."""

    @given(domains=st.lists(site_name(), min_size=1, max_size=10))
    @settings(max_examples=100)
    def test_duplicate_targets_rejected(self, domains: list[str]) -> None:
        store = RuleStore(clock=stepping_clock(START))
        created = set()

        for domain in domains:
            request = CreateRuleRequest(rule_type=RuleType.WEBSITE, target=domain)
            if domain in created:
                with pytest.raises(AlreadyExistsError):
                    store.create_rule(request)
            else:
                store.create_rule(request)
                created.add(domain)

        assert len(store) == len(created)
        keys = [(r.rule_type, r.target.value) for r in store.list_rules()]
        assert len(keys) == len(set(keys))

    def test_case_variants_are_duplicates(self) -> None:
        store = RuleStore()
        store.create_rule(CreateRuleRequest(rule_type=RuleType.WEBSITE, target="Example.com"))
        store.create_rule(CreateRuleRequest(rule_type=RuleType.APP, target="Slack"))

        with pytest.raises(AlreadyExistsError):
            store.create_rule(CreateRuleRequest(rule_type=RuleType.WEBSITE, target="example.COM."))
        with pytest.raises(AlreadyExistsError):
            store.create_rule(CreateRuleRequest(rule_type=RuleType.APP, target="slack"))

    def test_same_text_with_different_type_allowed(self) -> None:
        store = RuleStore()
        store.create_rule(CreateRuleRequest(rule_type=RuleType.WEBSITE, target="steam.com"))
        store.create_rule(CreateRuleRequest(rule_type=RuleType.APP, target="steam.com"))

        assert len(store) == 2

    def test_replace_all_rejects_duplicates(self) -> None:
        rule = WebsiteRule(
            id=RuleId("a"),
            target=Domain("example.com"),
            enabled=True,
            strictness=Strictness.MEDIUM,
            created_at=START,
            schedule_type=ScheduleType.ALWAYS,
        )
        twin = WebsiteRule(
            id=RuleId("b"),
            target=Domain("example.com"),
            enabled=True,
            strictness=Strictness.MEDIUM,
            created_at=START,
            schedule_type=ScheduleType.ALWAYS,
        )
        store = RuleStore()
        with pytest.raises(AlreadyExistsError):
            store.replace_all([rule, twin])
        assert len(store) == 0


class TestRuleUpdatesProperty:
    """Updates replace immutable rules and report unknown ids."""

    def test_updates_do_not_change_earlier_snapshots(self) -> None:
        store = RuleStore()
        rule = store.create_rule(CreateRuleRequest(rule_type=RuleType.WEBSITE, target="x.com"))

        disabled = store.set_enabled(rule.id, False)
        hardened = store.set_strictness(rule.id, Strictness.HARD)

        assert rule.enabled and rule.strictness is Strictness.MEDIUM
        assert not disabled.enabled
        assert hardened.strictness is Strictness.HARD and not hardened.enabled
        assert store.get_rule(rule.id) == hardened

    def test_invalid_strictness_rejected(self) -> None:
        store = RuleStore()
        rule = store.create_rule(CreateRuleRequest(rule_type=RuleType.WEBSITE, target="x.com"))
        with pytest.raises(ValidationError):
            store.set_strictness(rule.id, "extreme")

    def test_unknown_id_raises_not_found(self) -> None:
        store = RuleStore()
        missing = RuleId("missing")

        for operation in (
            lambda: store.get_rule(missing),
            lambda: store.remove_rule(missing),
            lambda: store.set_enabled(missing, True),
            lambda: store.set_strictness(missing, Strictness.HARD),
        ):
            try:
                operation()
                assert False, "Expected NotFoundError"
            except NotFoundError as e:
                assert e.rule_id == "missing"
                assert e.code == "not_found"

        assert store.find_rule(missing) is None

    def test_remove_returns_rule(self) -> None:
        store = RuleStore()
        rule = store.create_rule(CreateRuleRequest(rule_type=RuleType.WEBSITE, target="x.com"))

        assert store.remove_rule(rule.id) == rule
        assert rule.id not in store
        # The target can be blocked again after removal
        store.create_rule(CreateRuleRequest(rule_type=RuleType.WEBSITE, target="x.com"))


class TestRuleListingProperty:
    """Listing is ordered by creation time and honours filters."""

    @given(count=st.integers(min_value=0, max_value=15))
    @settings(max_examples=50)
    def test_listed_oldest_first(self, count: int) -> None:
        store = RuleStore(clock=stepping_clock(START))
        created = [
            store.create_rule(CreateRuleRequest(rule_type=RuleType.WEBSITE, target=f"site{i}.com"))
            for i in range(count)
        ]

        assert store.list_rules() == created

    def test_filter_by_type_and_enabled(self) -> None:
        store = RuleStore(clock=stepping_clock(START))
        site = store.create_rule(CreateRuleRequest(rule_type=RuleType.WEBSITE, target="x.com"))
        app = store.create_rule(CreateRuleRequest(rule_type=RuleType.APP, target="Slack"))
        off = store.create_rule(
            CreateRuleRequest(rule_type=RuleType.APP, target="Discord", enabled=False)
        )

        assert store.list_rules(RuleFilter(rule_type=RuleType.APP)) == [app, off]
        assert store.list_rules(RuleFilter(enabled=True)) == [site, app]
        assert store.list_rules(RuleFilter(rule_type=RuleType.APP, enabled=False)) == [off]
        assert store.list_rules(RuleFilter(schedule_type=ScheduleType.SCHEDULED)) == []
