"""
Capacity rule data models
"""

from pydantic import BaseModel, Field, field_validator, ValidationInfo
from datetime import date, datetime, time
from typing import Optional, List
from enum import Enum
from .base import BaseEntity, TimestampMixin

# Half-open windows cannot express 24:00, so "until close" ends at the last instant of the day
END_OF_DAY = time.max

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
WEEKDAY_ABBREVIATIONS = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]


class RuleScope(str, Enum):
    """Dimension a rule restricts"""
    STORE = "store"
    SEAT_TYPE = "seat_type"
    MENU_ITEM = "menu_item"
    STAFF = "staff"


class LimitType(str, Enum):
    """Counting bucket"""
    PER_HOUR = "per_hour"
    PER_DAY = "per_day"
    PER_WINDOW = "per_window"


class RuleKind(str, Enum):
    LIMIT = "limit"        # regular capacity limit
    STOP = "stop"          # zero-capacity hard stop
    CEILING = "ceiling"    # store-wide daily ceiling, evaluated last


def weekday_index(day: date) -> int:
    """Weekday of ``day`` with 0=Sunday .. 6=Saturday"""
    return day.isoweekday() % 7


def format_time(value: time) -> str:
    if value == END_OF_DAY:
        return "24:00"
    return value.strftime("%H:%M")


def describe_days(weekdays: List[int], effective_date: Optional[date] = None) -> str:
    if effective_date is not None:
        return effective_date.isoformat()
    if not weekdays:
        return "Every day"
    return ", ".join(WEEKDAY_ABBREVIATIONS[day].capitalize() for day in weekdays)


def describe_rule(rule: "CapacityRuleBase") -> str:
    """Generated human-readable description, e.g. ``Sat, Sun 11:00-15:00: up to 5 per hour``"""
    days = describe_days(rule.weekdays, rule.effective_date)
    if rule.kind == RuleKind.STOP:
        return f"{days}: reservations stopped from {format_time(rule.time_start)}"

    window = ""
    if not (rule.time_start == time(0, 0) and rule.time_end == END_OF_DAY):
        window = f" {format_time(rule.time_start)}-{format_time(rule.time_end)}"
    unit = {
        LimitType.PER_HOUR: "per hour",
        LimitType.PER_DAY: "per day",
        LimitType.PER_WINDOW: "in this window",
    }[rule.limit_type]
    scope = ""
    if rule.scope_type != RuleScope.STORE:
        scope = f" [{rule.scope_type.value}: {', '.join(rule.scope_ids)}]"
    prefix = "Daily ceiling" if rule.kind == RuleKind.CEILING else days
    return f"{prefix}{window}{scope}: up to {rule.limit_value} {unit}"


class CapacityRuleBase(BaseModel):
    """Rule fields supplied by the creator.

    Field order matters: validators for later fields read earlier ones.
    """
    store_id: str = Field(..., min_length=1, description="Owning store")
    kind: RuleKind = Field(RuleKind.LIMIT, description="Rule kind")
    scope_type: RuleScope = Field(RuleScope.STORE, description="Scope dimension")
    scope_ids: List[str] = Field(default_factory=list, description="Identifiers narrowing the scope")
    weekdays: List[int] = Field(default_factory=list, description="Active weekdays, 0=Sunday; empty means every day")
    effective_date: Optional[date] = Field(None, description="Only match candidates on this date")
    time_start: time = Field(time(0, 0), description="Window start (inclusive)")
    time_end: time = Field(END_OF_DAY, description="Window end (exclusive)")
    limit_type: LimitType = Field(..., description="Counting bucket")
    limit_value: int = Field(..., description="Capacity per bucket")
    priority: int = Field(0, description="Higher is evaluated first")
    description: str = Field("", max_length=500, description="Rejection message text")
    created_by: Optional[str] = Field(None, description="Operator that created the rule")

    @field_validator("scope_ids")
    @classmethod
    def validate_scope_ids(cls, v: List[str], info: ValidationInfo) -> List[str]:
        ids = []
        for scope_id in v:
            scope_id = str(scope_id).strip()
            if scope_id and scope_id not in ids:
                ids.append(scope_id)
        scope_type = info.data.get("scope_type")
        if scope_type is not None and scope_type != RuleScope.STORE and not ids:
            raise ValueError(f"scope_ids is required for scope_type {scope_type.value}")
        return ids

    @field_validator("weekdays")
    @classmethod
    def validate_weekdays(cls, v: List[int]) -> List[int]:
        for day in v:
            if day < 0 or day > 6:
                raise ValueError(f"weekday {day} is outside 0..6")
        return sorted(set(v))

    @field_validator("time_end")
    @classmethod
    def validate_time_end(cls, v: time, info: ValidationInfo) -> time:
        start = info.data.get("time_start")
        if start is not None and not start < v:
            raise ValueError(
                f"time_end {format_time(v)} must be later than time_start {format_time(start)}"
                " (windows may not wrap past midnight)"
            )
        return v

    @field_validator("limit_value")
    @classmethod
    def validate_limit_value(cls, v: int, info: ValidationInfo) -> int:
        kind = info.data.get("kind")
        if kind == RuleKind.STOP:
            if v != 0:
                raise ValueError("stop rules must have limit_value 0")
        elif v <= 0:
            raise ValueError("limit_value must be a positive integer")
        return v

    @field_validator("limit_type")
    @classmethod
    def validate_ceiling(cls, v: LimitType, info: ValidationInfo) -> LimitType:
        if info.data.get("kind") == RuleKind.CEILING:
            if v != LimitType.PER_DAY:
                raise ValueError("ceiling rules must use per_day")
            if info.data.get("scope_type") != RuleScope.STORE:
                raise ValueError("ceiling rules must be store-wide")
        return v


class CapacityRule(CapacityRuleBase, BaseEntity, TimestampMixin):
    """Persisted capacity rule"""
    id: Optional[int] = Field(None, description="Assigned by the rule store")
    active: bool = Field(True, description="Inactive rules never match")

    @property
    def is_ceiling(self) -> bool:
        return self.kind == RuleKind.CEILING


# Fields an update may never touch
IMMUTABLE_RULE_FIELDS = frozenset({"id", "store_id", "created_at", "created_by"})


class CapacityRulePatch(BaseModel):
    """Partial update; unset fields keep their current value"""
    kind: Optional[RuleKind] = None
    scope_type: Optional[RuleScope] = None
    scope_ids: Optional[List[str]] = None
    weekdays: Optional[List[int]] = None
    effective_date: Optional[date] = None
    time_start: Optional[time] = None
    time_end: Optional[time] = None
    limit_type: Optional[LimitType] = None
    limit_value: Optional[int] = None
    priority: Optional[int] = None
    active: Optional[bool] = None
    description: Optional[str] = None

    model_config = {"extra": "forbid"}


class RuleMutationResult(BaseModel):
    """Outcome of update/deactivate; a missing rule is a result, not an exception"""
    found: bool
    rule: Optional[CapacityRule] = None
    message: str = ""
