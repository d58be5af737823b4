"""
Operator command parser
Turns the short chat commands operators send to the bot into rule
creations or queries. The parser holds no state and performs no I/O; the
admission service applies the result through the rule store.

Grammar (whitespace-delimited):
- /limits                                list the store's active rules
- /limit <days> [<window>] <n>[/h|/d]    create a limit rule
- /stop <days> <HH:MM>-                  stop reservations from a time until close

<days>   today | all | comma list of weekday names (sat,sun)
<window> lunch | dinner | HH:MM-HH:MM | HH:MM-
<n>/h    per hour; <n>/d or a bare <n> per day
"""

import re
from datetime import date, time
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel

from ..core.exceptions import ValidationError
from ..models.base import build_model
from ..models.capacity_rule import (
    CapacityRuleBase,
    END_OF_DAY,
    LimitType,
    RuleKind,
    RuleScope,
    WEEKDAY_ABBREVIATIONS,
    WEEKDAY_NAMES,
    describe_rule,
    weekday_index,
)

NAMED_PERIODS = {
    "lunch": (time(11, 0), time(15, 0)),
    "dinner": (time(17, 0), time(22, 0)),
}

STOP_PRIORITY = 100

_DAY_LOOKUP = {abbr: index for index, abbr in enumerate(WEEKDAY_ABBREVIATIONS)}
_DAY_LOOKUP.update({name.lower(): index for index, name in enumerate(WEEKDAY_NAMES)})

_CLOCK = r"(\d{1,2}):(\d{2})"
_WINDOW_RE = re.compile(rf"^{_CLOCK}-(?:{_CLOCK})?$")
_STOP_TIME_RE = re.compile(rf"^{_CLOCK}-?$")
_LIMIT_RE = re.compile(r"^(\d+)(?:/([a-z]+))?$")

_UNITS = {"h": LimitType.PER_HOUR, "d": LimitType.PER_DAY}

HELP_TEXT = (
    "Available commands:\n"
    "/limits ... show the current capacity rules\n"
    "/limit today 20 ... at most 20 reservations today\n"
    "/limit sat,sun lunch 5/h ... weekend lunch, 5 per hour\n"
    "/stop today 18:00- ... stop taking reservations from 18:00 today"
)


class CommandAction(str, Enum):
    LIST_RULES = "list_rules"
    CREATE_RULE = "create_rule"
    UNRECOGNIZED = "unrecognized"


class ParsedCommand(BaseModel):
    action: CommandAction
    verb: str = ""
    rule: Optional[CapacityRuleBase] = None


def _clock(hours: str, minutes: str, token: str, allow_end_of_day: bool = False) -> time:
    h, m = int(hours), int(minutes)
    if allow_end_of_day and h == 24 and m == 0:
        return END_OF_DAY
    if h > 23 or m > 59:
        raise ValidationError(f"Invalid time in '{token}'", token=token)
    return time(h, m)


def parse_days(token: str, today: date) -> Tuple[List[int], Optional[date]]:
    """Weekdays and optional effective date for a <days> token"""
    lowered = token.lower()
    if lowered == "today":
        return [weekday_index(today)], today
    if lowered == "all":
        return [], None

    days = []
    for part in lowered.split(","):
        if part not in _DAY_LOOKUP:
            raise ValidationError(
                f"Unknown day '{part or token}': use today, all or weekday names like sat,sun",
                token=part or token,
            )
        days.append(_DAY_LOOKUP[part])
    return sorted(set(days)), None


def parse_window(token: str) -> Tuple[time, time]:
    """Start and end of a <window> token"""
    lowered = token.lower()
    if lowered in NAMED_PERIODS:
        return NAMED_PERIODS[lowered]

    matched = _WINDOW_RE.match(lowered)
    if not matched:
        raise ValidationError(
            f"Unknown time window '{token}': use lunch, dinner or HH:MM-HH:MM", token=token
        )
    start = _clock(matched.group(1), matched.group(2), token)
    end = END_OF_DAY
    if matched.group(3) is not None:
        end = _clock(matched.group(3), matched.group(4), token, allow_end_of_day=True)
    if not start < end:
        raise ValidationError(
            f"Time window '{token}' must end after it starts (windows may not wrap past midnight)",
            token=token,
        )
    return start, end


def parse_limit(token: str) -> Tuple[int, LimitType]:
    """Capacity and bucket for a <n>/<unit> token"""
    matched = _LIMIT_RE.match(token.lower())
    if not matched:
        raise ValidationError(f"Invalid limit '{token}': use a count like 5/h or 20/d", token=token)
    value = int(matched.group(1))
    unit = matched.group(2) or "d"
    if unit not in _UNITS:
        raise ValidationError(f"Unknown unit in '{token}': use h (per hour) or d (per day)", token=token)
    if value <= 0:
        raise ValidationError(f"Limit '{token}' must be a positive number", token=token)
    return value, _UNITS[unit]


def parse_stop_time(token: str) -> time:
    matched = _STOP_TIME_RE.match(token)
    if not matched:
        raise ValidationError(f"Invalid stop time '{token}': use HH:MM-", token=token)
    return _clock(matched.group(1), matched.group(2), token)


def _parse_limit_command(args: List[str], store_id: str, user_id: Optional[str],
                         today: date) -> CapacityRuleBase:
    if not args:
        raise ValidationError("Missing days: /limit <days> [<window>] <n>/h", field="days")
    weekdays, effective_date = parse_days(args[0], today)

    rest = args[1:]
    if not rest:
        raise ValidationError("Missing limit: add a count like 5/h or 20/d", field="limit")
    if len(rest) > 2:
        raise ValidationError(f"Unexpected token '{rest[2]}'", token=rest[2])

    start, end = time(0, 0), END_OF_DAY
    if len(rest) == 2:
        start, end = parse_window(rest[0])
    limit_value, limit_type = parse_limit(rest[-1])

    data = dict(
        store_id=store_id,
        kind=RuleKind.LIMIT,
        scope_type=RuleScope.STORE,
        weekdays=weekdays,
        effective_date=effective_date,
        time_start=start,
        time_end=end,
        limit_type=limit_type,
        limit_value=limit_value,
        created_by=user_id,
    )
    rule = build_model(CapacityRuleBase, data)
    return rule.model_copy(update={"description": describe_rule(rule)})


def _parse_stop_command(args: List[str], store_id: str, user_id: Optional[str],
                        today: date) -> CapacityRuleBase:
    if not args:
        raise ValidationError("Missing days: /stop <days> <HH:MM>-", field="days")
    weekdays, effective_date = parse_days(args[0], today)
    if len(args) < 2:
        raise ValidationError("Missing stop time: /stop <days> <HH:MM>-", field="time")
    if len(args) > 2:
        raise ValidationError(f"Unexpected token '{args[2]}'", token=args[2])
    start = parse_stop_time(args[1])

    data = dict(
        store_id=store_id,
        kind=RuleKind.STOP,
        scope_type=RuleScope.STORE,
        weekdays=weekdays,
        effective_date=effective_date,
        time_start=start,
        time_end=END_OF_DAY,
        limit_type=LimitType.PER_WINDOW,
        limit_value=0,
        priority=STOP_PRIORITY,
        created_by=user_id,
    )
    rule = build_model(CapacityRuleBase, data)
    return rule.model_copy(update={"description": describe_rule(rule)})


def parse_command(text: str, store_id: str, user_id: Optional[str] = None,
                  today: Optional[date] = None) -> ParsedCommand:
    """
    Parse one operator command

    Args:
        text: raw message text
        store_id: store the command applies to
        user_id: operator issuing the command, recorded on created rules
        today: date ``today`` refers to; defaults to the current date

    Returns:
        ParsedCommand: LIST_RULES, CREATE_RULE with the rule to create, or
        UNRECOGNIZED for anything that is not a capacity command

    Raises:
        ValidationError: a token could not be parsed; ``details["token"]``
        names it. No partial rule is ever produced.
    """
    tokens = (text or "").strip().split()
    if not tokens:
        return ParsedCommand(action=CommandAction.UNRECOGNIZED)

    verb = tokens[0].lower()
    args = tokens[1:]
    today = today or date.today()

    if verb == "/limits":
        return ParsedCommand(action=CommandAction.LIST_RULES, verb=verb)
    if verb == "/limit":
        rule = _parse_limit_command(args, store_id, user_id, today)
        return ParsedCommand(action=CommandAction.CREATE_RULE, verb=verb, rule=rule)
    if verb == "/stop":
        rule = _parse_stop_command(args, store_id, user_id, today)
        return ParsedCommand(action=CommandAction.CREATE_RULE, verb=verb, rule=rule)
    return ParsedCommand(action=CommandAction.UNRECOGNIZED, verb=verb)
