"""Typed booking rule configuration.

The rulebook is stored as string key/value rows. It is parsed once into an
immutable RuleConfig which callers load per request (or per sweep run) and
pass explicitly into the rules engine, the series generator and the sweeper.
"""

import enum
import logging

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidRuleValue
from app.models.base import utcnow
from app.models.rule import BookingRule

logger = logging.getLogger(__name__)


class RuleKey(enum.StrEnum):
    DAY_START_HOUR = "day_start_hour"
    DAY_END_HOUR = "day_end_hour"
    COURTS_COUNT = "courts_count"
    SLOT_DURATION_MINUTES = "slot_duration_minutes"
    BOOKING_WINDOW_HOURS = "booking_window_hours"
    HALF_BOOKING_MIN_HOURS = "half_booking_min_hours"
    HALF_BOOKING_MAX_HOURS = "half_booking_max_hours"
    HALF_BOOKING_EXPIRY_HOURS = "half_booking_expiry_hours"
    CORE_TIME_START = "core_time_start"
    CORE_TIME_END = "core_time_end"
    CORE_TIME_DAYS = "core_time_days"
    SINGLE_MAX_PER_DAY = "single_max_per_day"
    SINGLE_MAX_PER_WEEK = "single_max_per_week"
    DOUBLE_MAX_PER_DAY = "double_max_per_day"
    DOUBLE_MAX_PER_WEEK = "double_max_per_week"
    EMAIL_NOTIFICATIONS_ENABLED = "email_notifications_enabled"


# Seed values and admin-facing descriptions
DEFAULT_RULES: dict[RuleKey, tuple[str, str]] = {
    RuleKey.DAY_START_HOUR: ("8", "First bookable slot (hour)"),
    RuleKey.DAY_END_HOUR: ("22", "Hour at which the last slot ends"),
    RuleKey.COURTS_COUNT: ("6", "Number of courts"),
    RuleKey.SLOT_DURATION_MINUTES: ("60", "Length of one slot in minutes"),
    RuleKey.BOOKING_WINDOW_HOURS: ("24", "How many hours ahead a member may book"),
    RuleKey.HALF_BOOKING_MIN_HOURS: ("12", "Half-bookings: minimum hours before start"),
    RuleKey.HALF_BOOKING_MAX_HOURS: ("24", "Half-bookings: maximum hours before start"),
    RuleKey.HALF_BOOKING_EXPIRY_HOURS: (
        "12",
        "Half-bookings without a partner are deleted this many hours before start",
    ),
    RuleKey.CORE_TIME_START: ("17", "Core time starts (hour)"),
    RuleKey.CORE_TIME_END: ("20", "Core time ends (hour)"),
    RuleKey.CORE_TIME_DAYS: ("1,2,3,4,5", "Core-time weekdays (ISO, 1=Mon..7=Sun)"),
    RuleKey.SINGLE_MAX_PER_DAY: ("1", "Singles: max core-time hours per day"),
    RuleKey.SINGLE_MAX_PER_WEEK: ("3", "Singles: max core-time hours per week"),
    RuleKey.DOUBLE_MAX_PER_DAY: ("2", "Doubles: max core-time hours per day"),
    RuleKey.DOUBLE_MAX_PER_WEEK: ("6", "Doubles: max core-time hours per week"),
    RuleKey.EMAIL_NOTIFICATIONS_ENABLED: ("false", "Send email notifications"),
}


class RuleConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    day_start_hour: int = 8
    day_end_hour: int = 22
    courts_count: int = 6
    slot_duration_minutes: int = 60
    booking_window_hours: int = 24
    half_booking_min_hours: int = 12
    half_booking_max_hours: int = 24
    half_booking_expiry_hours: int = 12
    core_time_start: int = 17
    core_time_end: int = 20
    core_time_days: frozenset[int] = frozenset({1, 2, 3, 4, 5})
    single_max_per_day: int = 1
    single_max_per_week: int = 3
    double_max_per_day: int = 2
    double_max_per_week: int = 6
    email_notifications_enabled: bool = False

    @field_validator("core_time_days", mode="before")
    @classmethod
    def _parse_weekdays(cls, value):
        if isinstance(value, str):
            value = [int(part) for part in value.split(",") if part.strip()]
        days = frozenset(value)
        if any(d < 1 or d > 7 for d in days):
            raise ValueError("weekdays must be ISO numbers 1 (Mon) to 7 (Sun)")
        return days

    @field_validator("email_notifications_enabled", mode="before")
    @classmethod
    def _parse_flag(cls, value):
        # Anything other than "true" means off
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return value

    @field_validator(
        "day_start_hour", "day_end_hour", "core_time_start", "core_time_end", mode="after"
    )
    @classmethod
    def _check_hour(cls, value: int) -> int:
        if not 0 <= value <= 24:
            raise ValueError("hour must be between 0 and 24")
        return value

    @field_validator(
        "courts_count",
        "slot_duration_minutes",
        "booking_window_hours",
        "half_booking_min_hours",
        "half_booking_max_hours",
        "half_booking_expiry_hours",
        "single_max_per_day",
        "single_max_per_week",
        "double_max_per_day",
        "double_max_per_week",
        mode="after",
    )
    @classmethod
    def _check_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @model_validator(mode="after")
    def _check_ranges(self) -> "RuleConfig":
        if self.day_start_hour >= self.day_end_hour:
            raise ValueError("day_start_hour must be before day_end_hour")
        if self.half_booking_min_hours > self.half_booking_max_hours:
            raise ValueError("half_booking_min_hours must not exceed half_booking_max_hours")
        return self

    @classmethod
    def from_rules(cls, rules: dict[str, str]) -> "RuleConfig":
        """Parse stored string rules. Unknown keys and empty values are ignored."""
        known = {k: v for k, v in rules.items() if k in cls.model_fields and v is not None and str(v).strip()}
        try:
            return cls(**known)
        except ValidationError as exc:
            raise InvalidRuleValue(_format_validation_error(exc)) from None

    @property
    def hours(self) -> range:
        return range(self.day_start_hour, self.day_end_hour)

    @property
    def courts(self) -> range:
        return range(1, self.courts_count + 1)

    def is_core_time(self, slot_date, hour: int) -> bool:
        return slot_date.isoweekday() in self.core_time_days and self.core_time_start <= hour < self.core_time_end


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "rules"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


async def get_all_rules(db: AsyncSession) -> dict[str, str]:
    result = await db.execute(select(BookingRule))
    return {rule.key: rule.value for rule in result.scalars().all()}


async def load_rule_config(db: AsyncSession) -> RuleConfig:
    """Read the rulebook and parse it. Called once per request or sweep run."""
    return RuleConfig.from_rules(await get_all_rules(db))


async def set_rule(db: AsyncSession, key: str, value: str) -> BookingRule:
    """Validate and store one rule value.

    The whole rulebook is re-parsed with the new value so that cross-field
    constraints (e.g. start before end) are checked before writing.
    """
    try:
        rule_key = RuleKey(key)
    except ValueError:
        raise InvalidRuleValue(f"Unknown rule: {key}") from None

    value = value.strip()
    rules = await get_all_rules(db)
    rules[rule_key.value] = value
    RuleConfig.from_rules(rules)

    result = await db.execute(select(BookingRule).where(BookingRule.key == rule_key.value))
    rule = result.scalar_one_or_none()
    if rule is None:
        rule = BookingRule(key=rule_key.value, value=value, description=DEFAULT_RULES[rule_key][1])
        db.add(rule)
    else:
        rule.value = value
        rule.updated_at = utcnow()
    await db.flush()

    logger.info("Rule %s set to %r", rule_key.value, value)
    return rule


async def seed_default_rules(db: AsyncSession) -> int:
    """Insert any missing rule with its default value. Returns the number added."""
    existing = await get_all_rules(db)
    added = 0
    for key, (value, description) in DEFAULT_RULES.items():
        if key.value not in existing:
            db.add(BookingRule(key=key.value, value=value, description=description))
            added += 1
    await db.flush()
    return added


async def list_rules(db: AsyncSession) -> list[dict]:
    """Every known rule with its stored value, or its default if never stored."""
    result = await db.execute(select(BookingRule))
    stored = {rule.key: rule for rule in result.scalars().all()}
    rules = []
    for key, (default, description) in DEFAULT_RULES.items():
        rule = stored.get(key.value)
        rules.append(
            {
                "key": key.value,
                "value": rule.value if rule else default,
                "description": (rule.description if rule else None) or description,
                "updated_at": rule.updated_at if rule else None,
            }
        )
    return rules
