from datetime import time

import pytest

from ..core.exceptions import ValidationError
from ..models.capacity_rule import END_OF_DAY, LimitType, RuleKind, RuleScope
from ..services.command_parser import CommandAction, parse_command, parse_days, parse_window
from .conftest import SATURDAY, STORE


def parse(text):
    return parse_command(text, STORE, user_id="owner-1", today=SATURDAY)


def parse_error(text) -> ValidationError:
    with pytest.raises(ValidationError) as exc_info:
        parse(text)
    return exc_info.value


class TestLimitCommand:

    def test_weekend_lunch_per_hour(self):
        parsed = parse("/limit sat,sun lunch 5/h")
        rule = parsed.rule
        assert parsed.action == CommandAction.CREATE_RULE
        assert rule.weekdays == [0, 6]
        assert rule.limit_type == LimitType.PER_HOUR
        assert rule.limit_value == 5
        assert (rule.time_start, rule.time_end) == (time(11, 0), time(15, 0))
        assert rule.scope_type == RuleScope.STORE
        assert rule.created_by == "owner-1"
        assert rule.description == "Sun, Sat 11:00-15:00: up to 5 per hour"

    def test_today_pins_the_date(self):
        rule = parse("/limit today 20").rule
        assert rule.effective_date == SATURDAY
        assert rule.weekdays == [6]
        assert rule.limit_type == LimitType.PER_DAY
        assert (rule.time_start, rule.time_end) == (time(0, 0), END_OF_DAY)

    def test_all_days_dinner_per_day(self):
        rule = parse("/limit all dinner 10/d").rule
        assert rule.weekdays == []
        assert rule.effective_date is None
        assert (rule.time_start, rule.time_end) == (time(17, 0), time(22, 0))
        assert rule.limit_type == LimitType.PER_DAY

    def test_explicit_window_and_full_day_names(self):
        rule = parse("/limit Friday,saturday 18:00-20:30 4/h").rule
        assert rule.weekdays == [5, 6]
        assert (rule.time_start, rule.time_end) == (time(18, 0), time(20, 30))

    def test_window_may_end_at_midnight(self):
        rule = parse("/limit fri 21:00-24:00 2/h").rule
        assert rule.time_end == END_OF_DAY

    def test_unknown_day_names_the_token(self):
        error = parse_error("/limit xyz 5/h")
        assert error.token == "xyz"
        assert error.details["token"] == "xyz"
        assert "xyz" in error.message

    def test_one_bad_day_in_a_list(self):
        assert parse_error("/limit sat,funday lunch 5/h").token == "funday"

    def test_reversed_window_is_rejected(self):
        assert parse_error("/limit sat 15:00-11:00 5/h").token == "15:00-11:00"

    def test_invalid_clock_time(self):
        assert parse_error("/limit sat 25:00-26:00 5/h").token == "25:00-26:00"

    def test_unknown_unit(self):
        assert parse_error("/limit sat lunch 5/w").token == "5/w"

    def test_zero_limit(self):
        assert parse_error("/limit sat lunch 0/h").token == "0/h"

    def test_missing_limit(self):
        assert parse_error("/limit sat").field == "limit"

    def test_extra_tokens(self):
        assert parse_error("/limit sat lunch 5/h please").token == "please"


class TestStopCommand:

    def test_stop_until_close(self):
        rule = parse("/stop today 18:00-").rule
        assert rule.kind == RuleKind.STOP
        assert rule.limit_value == 0
        assert rule.limit_type == LimitType.PER_WINDOW
        assert (rule.time_start, rule.time_end) == (time(18, 0), END_OF_DAY)
        assert rule.priority == 100
        assert rule.effective_date == SATURDAY
        assert rule.description == "2025-06-07: reservations stopped from 18:00"

    def test_bad_stop_time(self):
        assert parse_error("/stop today six").token == "six"

    def test_missing_stop_time(self):
        assert parse_error("/stop sun").field == "time"


class TestOtherInput:

    def test_limits_lists(self):
        assert parse("/limits").action == CommandAction.LIST_RULES

    def test_plain_text_is_unrecognized(self):
        assert parse("hello").action == CommandAction.UNRECOGNIZED
        assert parse("").action == CommandAction.UNRECOGNIZED

    def test_unknown_verb_is_unrecognized(self):
        parsed = parse("/cancel 12")
        assert parsed.action == CommandAction.UNRECOGNIZED
        assert parsed.rule is None


def test_parse_days_dedupes_and_sorts():
    assert parse_days("sun,sat,sun", SATURDAY) == ([0, 6], None)


def test_parse_window_open_ended():
    assert parse_window("20:00-") == (time(20, 0), END_OF_DAY)
