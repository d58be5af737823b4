"""
Admission Evaluator
Decides whether a reservation candidate is admitted.

Algorithm:
1. match the store's rules against the candidate (priority ordered,
   the daily ceiling last)
2. for each rule, reject as soon as its bucket is at or over the limit;
   lower-priority rules are not consulted after the first violation
3. admit when every matched rule still has room

Each call is stateless: the only input besides the candidate and the rule
snapshot is what the usage counter reports. Alternative suggestions are
advisory and never re-validated against other rules.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List

from ..core.exceptions import BackendUnavailableError
from ..models.capacity_rule import (
    CapacityRule,
    END_OF_DAY,
    WEEKDAY_NAMES,
    describe_rule,
)
from ..models.decision import Decision
from ..models.reservation import ReservationCandidate
from .rule_matcher import match
from .usage_counter import UsageCounter

logger = logging.getLogger(__name__)

UNAVAILABLE_REASON = "Capacity check is temporarily unavailable, please try again later"


class AdmissionEvaluator:
    """Priority-ordered capacity decision"""

    def __init__(self, counter: UsageCounter, fail_open: bool = True,
                 suggestion_offset_minutes: int = 30):
        self.counter = counter
        self.fail_open = fail_open
        self.offset = timedelta(minutes=suggestion_offset_minutes)

    def evaluate(self, candidate: ReservationCandidate, rules: Iterable[CapacityRule]) -> Decision:
        """
        Evaluate ``candidate`` against a snapshot of the store's rules

        Args:
            candidate: reservation to admit
            rules: the store's rules; inactive and non-matching ones are ignored

        Returns:
            Decision: ADMITTED, or REJECTED citing the first violated rule.
            When a count cannot be obtained the configured fail-open/
            fail-closed policy decides and the decision is marked degraded.
        """
        matched = match(candidate, rules)
        warnings: List[str] = []

        for rule in matched:
            try:
                used = self.counter.count(rule, candidate)
            except BackendUnavailableError as e:
                if not self.fail_open:
                    logger.warning("Rule #%s count unavailable, rejecting (fail-closed): %s",
                                   rule.id, e.message)
                    return Decision.rejected(UNAVAILABLE_REASON, warnings=[e.message])
                logger.warning("Rule #%s count unavailable, skipping (fail-open): %s",
                               rule.id, e.message)
                warnings.append(f"Rule #{rule.id} not checked: {e.message}")
                continue

            if used >= rule.limit_value:
                return self.rejection_for(rule, candidate, warnings)

        if matched:
            message = f"Within capacity ({len(matched)} rule(s) checked)"
        else:
            message = "No capacity rules apply"
        return Decision.admitted(message, warnings=warnings)

    def rejection_for(self, rule: CapacityRule, candidate: ReservationCandidate,
                      warnings: List[str] = None) -> Decision:
        return Decision.rejected(
            reason=rule.description or describe_rule(rule),
            violated_rule=rule.id,
            alternative_times=self.alternative_times(rule, candidate),
            alternative_days=self.alternative_days(rule, candidate),
            warnings=warnings,
        )

    def alternative_times(self, rule: CapacityRule, candidate: ReservationCandidate) -> List[str]:
        """Just before the window opens and just after it closes, same day only"""
        suggestions: List[str] = []
        day_start = datetime.combine(candidate.date, datetime.min.time())

        earlier = datetime.combine(candidate.date, rule.time_start) - self.offset
        if earlier >= day_start:
            suggestions.append(earlier.strftime("%H:%M"))

        if rule.time_end != END_OF_DAY:
            later = datetime.combine(candidate.date, rule.time_end) + self.offset
            if later.date() == candidate.date:
                suggestions.append(later.strftime("%H:%M"))
        return suggestions

    @staticmethod
    def alternative_days(rule: CapacityRule, candidate: ReservationCandidate) -> List[str]:
        """Weekdays the rule does not cover, starting from the day after the candidate's"""
        if not rule.weekdays:
            return []
        days = []
        for step in range(1, 7):
            day = (candidate.weekday + step) % 7
            if day not in rule.weekdays:
                days.append(WEEKDAY_NAMES[day])
        return days
