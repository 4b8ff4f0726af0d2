"""
Validated identifier types.

RuleId, Domain, AppName and CronExpression wrap a raw string that has been
checked once at the boundary. Internal code passes the wrapper around and
never re-validates a raw string.
"""

import re
import uuid
from dataclasses import dataclass

import idna

from .exceptions import ValidationError
from .scheduler import CronParseError, CronParser, CronSchedule


# Characters that can never appear in a host name, checked before IDNA
# encoding so the error names the offending input rather than an IDNA failure
FORBIDDEN_CHARS_PATTERN = re.compile(
    r'[\x00-\x1f\x7f'
    r'\s'
    r'!@#$%^&*()+=\[\]{}|\\:;"\'<>,?/`~_]'
)

# One or more labels followed by a final label; 1-63 chars each, no
# leading or trailing hyphen
DOMAIN_PATTERN = re.compile(
    r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+"
    r"[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$"
)

MAX_DOMAIN_LENGTH = 253

_cron_parser = CronParser()


@dataclass(frozen=True)
class RuleId:
    """Opaque identifier of a block rule."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.strip():
            raise ValidationError("rule_id", "Rule id cannot be empty")
        object.__setattr__(self, "value", self.value.strip())

    @classmethod
    def generate(cls) -> "RuleId":
        return cls(str(uuid.uuid4()))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Domain:
    """A host name in canonical form (lowercase, IDNA-encoded)."""

    value: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", normalize_domain(self.value))

    @property
    def labels(self) -> list[str]:
        return self.value.split(".")

    def parents(self) -> list["Domain"]:
        """Enclosing domains, nearest first ('a.b.com' -> ['b.com'])."""
        labels = self.labels
        return [Domain(".".join(labels[i:])) for i in range(1, len(labels) - 1)]

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class AppName:
    """Name of an application as reported by the process table."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.strip():
            raise ValidationError("target", "App name cannot be empty")
        object.__setattr__(self, "value", self.value.strip())

    @property
    def match_key(self) -> str:
        return self.value.lower()

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CronExpression:
    """A five-field cron expression that is known to parse."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise ValidationError("schedule_cron", "Cron expression must be a string")
        normalized = " ".join(self.value.split())
        try:
            _cron_parser.parse(normalized)
        except CronParseError as e:
            raise ValidationError(
                "schedule_cron",
                e.message,
                {"expression": self.value},
            ) from e
        object.__setattr__(self, "value", normalized)

    @classmethod
    def stored(cls, value: str) -> "CronExpression":
        """
        Wrap an expression read back from storage without parsing it.

        A stored expression that no longer parses must not prevent the state
        from loading; the schedule evaluator reports it instead.
        """
        expression = object.__new__(cls)
        object.__setattr__(expression, "value", " ".join(str(value).split()))
        return expression

    def schedule(self) -> CronSchedule:
        return _cron_parser.parse(self.value)

    def __str__(self) -> str:
        return self.value


def normalize_domain(raw_domain: str) -> str:
    """
    Convert a raw host name into canonical form and validate it.

    Args:
        raw_domain: Domain as typed by a user (may contain uppercase or
            international characters, and a trailing dot)

    Returns:
        Canonical domain string

    Raises:
        ValidationError: If the input is not a valid host name
    """
    if not isinstance(raw_domain, str) or not raw_domain.strip():
        raise ValidationError("target", "Domain input is empty", {"raw_input": raw_domain})

    domain = raw_domain.strip().lower()
    if domain.endswith("."):
        domain = domain[:-1]

    forbidden = FORBIDDEN_CHARS_PATTERN.findall(domain)
    if forbidden:
        raise ValidationError(
            "target",
            f"Invalid domain: {raw_domain}",
            {"raw_input": raw_domain, "forbidden_chars": forbidden},
        )

    if any(ord(c) > 127 for c in domain):
        try:
            domain = idna.encode(domain, uts46=True).decode("ascii")
        except idna.IDNAError as e:
            raise ValidationError(
                "target",
                f"IDNA encoding failed: {e}",
                {"raw_input": raw_domain, "idna_error": str(e)},
            ) from e

    if len(domain) > MAX_DOMAIN_LENGTH or not DOMAIN_PATTERN.match(domain):
        raise ValidationError(
            "target",
            f"Invalid domain: {raw_domain}",
            {"raw_input": raw_domain},
        )

    return domain
