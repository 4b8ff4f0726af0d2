"""
Property-based tests for Scheduler module.

Uses Hypothesis for property-based testing to verify cron parsing, crontab
day matching and the minute-resolution task loop.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from io import StringIO

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from focus_blocker.audit_logger import AuditLogger
from focus_blocker.enums import LogLevel
from focus_blocker.scheduler import (
    CronParseError,
    CronParser,
    CronSchedule,
    Scheduler,
)


# Strategies for generating cron expressions

@st.composite
def cron_field_value(draw, min_val: int, max_val: int) -> str:
    """Generate a valid single cron field."""
    kind = draw(st.sampled_from(["star", "value", "range", "step", "list", "star_step"]))

    if kind == "star":
        return "*"
    if kind == "value":
        return str(draw(st.integers(min_value=min_val, max_value=max_val)))
    if kind == "range":
        start = draw(st.integers(min_value=min_val, max_value=max_val))
        end = draw(st.integers(min_value=start, max_value=max_val))
        return f"{start}-{end}"
    if kind == "step":
        start = draw(st.integers(min_value=min_val, max_value=max_val))
        step = draw(st.integers(min_value=1, max_value=max(1, max_val - min_val)))
        return f"{start}/{step}"
    if kind == "star_step":
        step = draw(st.integers(min_value=1, max_value=max(1, max_val - min_val)))
        return f"*/{step}"
    values = draw(st.lists(
        st.integers(min_value=min_val, max_value=max_val),
        min_size=1,
        max_size=4,
        unique=True,
    ))
    return ",".join(str(v) for v in values)


@st.composite
def valid_cron_expression(draw) -> str:
    """Generate a valid five-field cron expression."""
    return " ".join([
        draw(cron_field_value(0, 59)),
        draw(cron_field_value(0, 23)),
        draw(cron_field_value(1, 31)),
        draw(cron_field_value(1, 12)),
        draw(cron_field_value(0, 7)),
    ])


@st.composite
def minute_datetime(draw) -> datetime:
    """Generate a timezone-aware datetime with minute precision."""
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    minutes = draw(st.integers(min_value=0, max_value=366 * 24 * 60))
    return base + timedelta(minutes=minutes)


class TestCronParsingProperty:
    """Property-based tests for cron expression parsing."""

    @given(expression=valid_cron_expression())
    @settings(max_examples=100)
    def test_valid_cron_parses_successfully(self, expression: str) -> None:
        """
        Any valid five-field expression parses, and every field value lies
        within the field's range.
        """
        schedule = CronParser().parse(expression)

        assert isinstance(schedule, CronSchedule)
        assert schedule.original_expression == expression

        assert all(0 <= v <= 59 for v in schedule.minute.values)
        assert all(0 <= v <= 23 for v in schedule.hour.values)
        assert all(1 <= v <= 31 for v in schedule.day_of_month.values)
        assert all(1 <= v <= 12 for v in schedule.month.values)
        # 7 is folded into Sunday
        assert all(0 <= v <= 6 for v in schedule.day_of_week.values)

    @given(expression=valid_cron_expression(), dt=minute_datetime())
    @settings(max_examples=100)
    def test_matching_is_deterministic(self, expression: str, dt: datetime) -> None:
        """Matching the same instant twice gives the same answer."""
        schedule = CronParser().parse(expression)
        assert schedule.matches(dt) == schedule.matches(dt)

    @given(dt=minute_datetime())
    @settings(max_examples=100)
    def test_all_wildcards_match_every_minute(self, dt: datetime) -> None:
        assert CronParser().parse("* * * * *").matches(dt)

    def test_step_values_generate_correct_sequence(self) -> None:
        schedule = CronParser().parse("*/15 * * * *")
        assert schedule.minute.values == frozenset({0, 15, 30, 45})

    def test_value_with_step_runs_to_field_maximum(self) -> None:
        schedule = CronParser().parse("5/20 * * * *")
        assert schedule.minute.values == frozenset({5, 25, 45})

    def test_range_and_list_values(self) -> None:
        schedule = CronParser().parse("0 9-11 * * 1,3,5")
        assert schedule.hour.values == frozenset({9, 10, 11})
        assert schedule.day_of_week.values == frozenset({1, 3, 5})

    def test_month_and_weekday_names(self) -> None:
        schedule = CronParser().parse("0 0 * jan-mar mon-fri")
        assert schedule.month.values == frozenset({1, 2, 3})
        assert schedule.day_of_week.values == frozenset({1, 2, 3, 4, 5})

    def test_whitespace_between_fields_is_ignored(self) -> None:
        schedule = CronParser().parse("  0   9 * *   1-5 ")
        assert schedule.original_expression == "0   9 * *   1-5"
        assert schedule.hour.values == frozenset({9})


class TestCronMatchingSemantics:
    """Day-of-month and day-of-week follow crontab(5)."""

    def test_weekday_schedule_matches_working_days_only(self) -> None:
        schedule = CronParser().parse("0 9 * * 1-5")

        # 2024-01-01 is a Monday
        assert schedule.matches(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))
        assert schedule.matches(datetime(2024, 1, 5, 9, 0, tzinfo=timezone.utc))
        assert not schedule.matches(datetime(2024, 1, 6, 9, 0, tzinfo=timezone.utc))
        assert not schedule.matches(datetime(2024, 1, 7, 9, 0, tzinfo=timezone.utc))
        assert not schedule.matches(datetime(2024, 1, 1, 9, 1, tzinfo=timezone.utc))

    def test_restricted_day_fields_combine_with_or(self) -> None:
        schedule = CronParser().parse("0 0 13 * 5")

        # Friday the 5th matches through day of week
        assert schedule.matches(datetime(2024, 1, 5, 0, 0, tzinfo=timezone.utc))
        # Saturday the 13th matches through day of month
        assert schedule.matches(datetime(2024, 1, 13, 0, 0, tzinfo=timezone.utc))
        # Thursday the 4th matches neither
        assert not schedule.matches(datetime(2024, 1, 4, 0, 0, tzinfo=timezone.utc))

    def test_star_step_day_of_week_is_unrestricted(self) -> None:
        schedule = CronParser().parse("0 0 1 * */2")

        assert not schedule.day_of_week.restricted
        # Only the day of month applies
        assert schedule.matches(datetime(2024, 2, 1, 0, 0, tzinfo=timezone.utc))
        assert not schedule.matches(datetime(2024, 2, 4, 0, 0, tzinfo=timezone.utc))

    @pytest.mark.parametrize("weekday_field", ["0", "7", "sun"])
    def test_sunday_aliases(self, weekday_field: str) -> None:
        schedule = CronParser().parse(f"0 0 * * {weekday_field}")

        # 2024-01-07 is a Sunday
        assert schedule.matches(datetime(2024, 1, 7, 0, 0, tzinfo=timezone.utc))
        assert not schedule.matches(datetime(2024, 1, 8, 0, 0, tzinfo=timezone.utc))


class TestCronParsingInvalidExpressions:
    """Tests that invalid cron expressions raise appropriate errors."""

    @pytest.mark.parametrize("expression", [
        "",
        "   ",
        "* * * *",
        "0 0 * * * *",
        "60 * * * *",
        "* 24 * * *",
        "* * 0 * *",
        "* * * 13 *",
        "* * * * 8",
        "5-1 * * * *",
        "*/0 * * * *",
        "a * * * *",
        "1,,2 * * * *",
        "1_0 9 * * 1-5",
        "+5 * * * *",
        " * -1 * * *",
        "*/+2 * * * *",
        "*/1_0 * * * *",
        "\u0665 * * * *",
        "1-\uff13 * * * *",
    ])
    def test_invalid_expression_raises_error(self, expression: str) -> None:
        try:
            CronParser().parse(expression)
            assert False, f"Expected CronParseError for '{expression}'"
        except CronParseError as e:
            assert e.message

    def test_none_expression_raises_error(self) -> None:
        with pytest.raises(CronParseError):
            CronParser().parse(None)


class TestSchedulerTasks:
    """The task loop runs matching tasks at most once per minute."""

    def test_duplicate_task_name_rejected(self) -> None:
        scheduler = Scheduler()

        async def noop(minute: datetime) -> None:
            return None

        scheduler.schedule("tick", "* * * * *", noop)
        with pytest.raises(ValueError):
            scheduler.schedule("tick", "* * * * *", noop)

        assert scheduler.unschedule("tick")
        assert not scheduler.unschedule("tick")

    def test_invalid_cron_rejected_when_scheduling(self) -> None:
        scheduler = Scheduler()

        async def noop(minute: datetime) -> None:
            return None

        with pytest.raises(CronParseError):
            scheduler.schedule("bad", "every minute", noop)
        assert scheduler.get_task("bad") is None

    @given(dt=minute_datetime(), seconds=st.integers(min_value=0, max_value=59))
    @settings(max_examples=50)
    def test_task_runs_once_per_minute(self, dt: datetime, seconds: int) -> None:
        scheduler = Scheduler()
        calls: list[datetime] = []

        async def record(minute: datetime) -> None:
            calls.append(minute)

        scheduler.schedule("tick", "* * * * *", record)

        async def run_twice() -> None:
            await scheduler.run_pending(dt)
            await scheduler.run_pending(dt + timedelta(seconds=seconds))

        asyncio.run(run_twice())

        assert calls == [dt.replace(second=0, microsecond=0)]

    def test_non_matching_task_does_not_run(self) -> None:
        scheduler = Scheduler()
        calls: list[datetime] = []

        async def record(minute: datetime) -> None:
            calls.append(minute)

        scheduler.schedule("nine", "0 9 * * *", record)
        ran = asyncio.run(
            scheduler.run_pending(datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc))
        )

        assert ran == []
        assert calls == []

    def test_failing_task_is_logged_and_others_still_run(self) -> None:
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output)
        scheduler = Scheduler(logger=logger)
        calls: list[str] = []

        async def boom(minute: datetime) -> None:
            raise RuntimeError("boom")

        async def record(minute: datetime) -> None:
            calls.append("ok")

        scheduler.schedule("boom", "* * * * *", boom)
        scheduler.schedule("ok", "* * * * *", record)

        ran = asyncio.run(
            scheduler.run_pending(datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc))
        )

        assert ran == ["boom", "ok"]
        assert calls == ["ok"]
        errors = [e for e in logger.entries if e.level == LogLevel.ERROR]
        assert len(errors) == 1
        assert errors[0].component == "Scheduler"
        assert errors[0].data["error_message"] == "boom"

    def test_run_stops_when_stop_event_is_set(self) -> None:
        now = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
        scheduler = Scheduler(check_interval_seconds=0.01, clock=lambda: now)
        calls: list[datetime] = []

        async def record(minute: datetime) -> None:
            calls.append(minute)

        scheduler.schedule("tick", "* * * * *", record)

        async def run_then_stop() -> None:
            stop_event = asyncio.Event()
            task = asyncio.create_task(scheduler.run(stop_event))
            await asyncio.sleep(0.05)
            stop_event.set()
            await asyncio.wait_for(task, timeout=1.0)

        asyncio.run(run_then_stop())

        assert calls == [now]
        assert not scheduler.is_running()
