"""
Scheduler module for the focus blocker engine.

Provides the five-field cron parser used by scheduled block rules and a
minute-resolution clock that drives periodic engine work such as nuclear
lock expiry and schedule re-evaluation.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from .enums import LogLevel

if TYPE_CHECKING:
    from .audit_logger import AuditLogger


def _is_plain_number(text: str) -> bool:
    # int() also takes signs, underscores and non-ASCII digits
    return text.isascii() and text.isdigit()


class CronParseError(Exception):
    """Raised when a cron expression cannot be parsed."""

    def __init__(self, message: str, expression: str) -> None:
        self.message = message
        self.expression = expression
        super().__init__(f"{message}: '{expression}'")


@dataclass(frozen=True)
class CronField:
    """Represents a parsed cron field with allowed values."""

    values: frozenset[int]
    min_value: int
    max_value: int
    restricted: bool = True  # False when the field text starts with '*'

    def matches(self, value: int) -> bool:
        """Check if a value matches this field."""
        return value in self.values


@dataclass(frozen=True)
class CronSchedule:
    """Represents a parsed cron schedule."""

    minute: CronField
    hour: CronField
    day_of_month: CronField
    month: CronField
    day_of_week: CronField  # 0 = Sunday, as in crontab(5)
    original_expression: str

    def matches(self, dt: datetime) -> bool:
        """Check if a datetime (minute precision) matches this schedule."""
        if not (
            self.minute.matches(dt.minute)
            and self.hour.matches(dt.hour)
            and self.month.matches(dt.month)
        ):
            return False

        cron_weekday = (dt.weekday() + 1) % 7
        dom_match = self.day_of_month.matches(dt.day)
        dow_match = self.day_of_week.matches(cron_weekday)

        if self.day_of_month.restricted and self.day_of_week.restricted:
            # Both restricted: either may match (crontab(5) semantics)
            return dom_match or dow_match
        if self.day_of_week.restricted:
            return dow_match
        if self.day_of_month.restricted:
            return dom_match
        return True


class CronParser:
    """Parser for standard five-field cron expressions."""

    # Field definitions: (min, max, name)
    FIELD_DEFS = [
        (0, 59, "minute"),
        (0, 23, "hour"),
        (1, 31, "day_of_month"),
        (1, 12, "month"),
        (0, 7, "day_of_week"),  # 7 is folded into 0 (Sunday)
    ]

    MONTH_NAMES = {
        "jan": 1, "feb": 2, "mar": 3, "apr": 4,
        "may": 5, "jun": 6, "jul": 7, "aug": 8,
        "sep": 9, "oct": 10, "nov": 11, "dec": 12,
    }

    DOW_NAMES = {
        "sun": 0, "mon": 1, "tue": 2, "wed": 3,
        "thu": 4, "fri": 5, "sat": 6,
    }

    def parse(self, expression: str) -> CronSchedule:
        """
        Parse a cron expression into a CronSchedule.

        Fields, in order: minute (0-59), hour (0-23), day of month (1-31),
        month (1-12 or jan-dec), day of week (0-7 or sun-sat, 0 and 7 are
        Sunday). Supports '*', lists (','), ranges ('-') and steps ('/').

        Args:
            expression: The cron expression to parse

        Returns:
            A CronSchedule object

        Raises:
            CronParseError: If the expression is invalid
        """
        if expression is None:
            raise CronParseError("Empty cron expression", "")

        expression = expression.strip()
        if not expression:
            raise CronParseError("Empty cron expression", expression)

        fields = expression.split()
        if len(fields) != 5:
            raise CronParseError(
                f"Invalid number of fields (expected 5, got {len(fields)})",
                expression,
            )

        parsed_fields = []
        for field_str, (min_val, max_val, name) in zip(fields, self.FIELD_DEFS):
            try:
                parsed_fields.append(
                    self._parse_field(field_str, min_val, max_val, name)
                )
            except ValueError as e:
                raise CronParseError(f"Invalid {name} field: {e}", expression) from e

        return CronSchedule(
            minute=parsed_fields[0],
            hour=parsed_fields[1],
            day_of_month=parsed_fields[2],
            month=parsed_fields[3],
            day_of_week=parsed_fields[4],
            original_expression=expression,
        )

    def _parse_field(
        self, field_str: str, min_val: int, max_val: int, field_name: str
    ) -> CronField:
        """Parse a single cron field."""
        values: set[int] = set()

        field_str = field_str.lower()
        if field_name == "month":
            field_str = self._substitute_names(field_str, self.MONTH_NAMES)
        elif field_name == "day_of_week":
            field_str = self._substitute_names(field_str, self.DOW_NAMES)

        for part in field_str.split(","):
            if not part:
                raise ValueError("Empty list element")

            step = 1
            has_step = "/" in part
            if has_step:
                part, step_str = part.split("/", 1)
                if not _is_plain_number(step_str):
                    raise ValueError(f"Invalid step value: {step_str}")
                step = int(step_str)
                if step < 1:
                    raise ValueError(f"Step must be >= 1, got {step}")

            if part == "*":
                values.update(range(min_val, max_val + 1, step))
                continue

            if "-" in part:
                start_str, end_str = part.split("-", 1)
                start = self._parse_int(start_str, min_val, max_val)
                end = self._parse_int(end_str, min_val, max_val)
                if start > end:
                    raise ValueError(f"Range start {start} > end {end}")
                values.update(range(start, end + 1, step))
                continue

            val = self._parse_int(part, min_val, max_val)
            if has_step:
                # 'a/n' means every n-th value from a to the field maximum
                values.update(range(val, max_val + 1, step))
            else:
                values.add(val)

        if not values:
            raise ValueError("No values parsed from field")

        if field_name == "day_of_week" and 7 in values:
            values.discard(7)
            values.add(0)

        return CronField(
            values=frozenset(values),
            min_value=min_val,
            max_value=6 if field_name == "day_of_week" else max_val,
            restricted=not field_str.startswith("*"),
        )

    @staticmethod
    def _substitute_names(field_str: str, names: dict[str, int]) -> str:
        for name, num in names.items():
            field_str = field_str.replace(name, str(num))
        return field_str

    @staticmethod
    def _parse_int(text: str, min_val: int, max_val: int) -> int:
        if not _is_plain_number(text):
            raise ValueError(f"Invalid value: {text}")
        val = int(text)
        if val < min_val or val > max_val:
            raise ValueError(f"Value {val} out of bounds [{min_val}-{max_val}]")
        return val


@dataclass
class ScheduledTask:
    """Represents a scheduled task."""

    name: str
    schedule: CronSchedule
    callback: Callable[[datetime], Awaitable[None]]
    last_run: Optional[datetime] = None
    enabled: bool = True


class Scheduler:
    """
    Minute-resolution cron scheduler.

    The engine registers a '* * * * *' task that re-evaluates lock expiry.
    The loop is cancellable through a stop event; its absence never affects
    correctness because every engine query evaluates expiry lazily.
    """

    def __init__(
        self,
        check_interval_seconds: float = 60.0,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional["AuditLogger"] = None,
    ) -> None:
        self._parser = CronParser()
        self._tasks: dict[str, ScheduledTask] = {}
        self._running = False
        self._check_interval_seconds = check_interval_seconds
        self._clock = clock or datetime.now
        self._logger = logger

    def schedule(
        self,
        name: str,
        cron_expression: str,
        callback: Callable[[datetime], Awaitable[None]],
    ) -> CronSchedule:
        """
        Schedule a task with a cron expression.

        Args:
            name: Unique name for the task
            cron_expression: Five-field cron expression
            callback: Async function called with the matching minute

        Returns:
            The parsed CronSchedule

        Raises:
            CronParseError: If the cron expression is invalid
            ValueError: If a task with the same name already exists
        """
        if name in self._tasks:
            raise ValueError(f"Task '{name}' already exists")

        schedule = self._parser.parse(cron_expression)
        self._tasks[name] = ScheduledTask(
            name=name,
            schedule=schedule,
            callback=callback,
        )
        return schedule

    def unschedule(self, name: str) -> bool:
        """Remove a scheduled task. Returns False if it didn't exist."""
        if name in self._tasks:
            del self._tasks[name]
            return True
        return False

    def get_task(self, name: str) -> Optional[ScheduledTask]:
        """Get a scheduled task by name."""
        return self._tasks.get(name)

    async def run_pending(self, now: Optional[datetime] = None) -> list[str]:
        """
        Run every enabled task whose schedule matches the current minute.

        Each task runs at most once per minute. A failing callback is logged
        and does not prevent the remaining tasks from running.

        Returns:
            Names of the tasks that ran
        """
        now_minute = (now or self._clock()).replace(second=0, microsecond=0)
        ran: list[str] = []

        for task in list(self._tasks.values()):
            if not task.enabled or not task.schedule.matches(now_minute):
                continue
            if task.last_run is not None and task.last_run >= now_minute:
                continue

            task.last_run = now_minute
            ran.append(task.name)
            try:
                await task.callback(now_minute)
            except Exception as e:
                if self._logger is not None:
                    self._logger.log_error(
                        "Scheduler",
                        f"Scheduled task '{task.name}' failed",
                        error=e,
                    )

        return ran

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Run the scheduler loop until stop_event is set.

        Args:
            stop_event: Event that ends the loop; pending tasks run first
            on every iteration before the event is checked again
        """
        self._running = True
        if self._logger is not None:
            self._logger.log(
                LogLevel.DEBUG,
                "Scheduler",
                "Scheduler started",
                {"tasks": [task.name for task in self._tasks.values()]},
            )

        try:
            while not stop_event.is_set():
                await self.run_pending()
                try:
                    await asyncio.wait_for(
                        stop_event.wait(), timeout=self._check_interval_seconds
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            self._running = False

    def is_running(self) -> bool:
        """Check if the scheduler is running."""
        return self._running
