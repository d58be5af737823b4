"""
Rule Matcher
Selects the rules that apply to a reservation candidate, in the order the
evaluator must check them.

A rule matches when it is active, belongs to the candidate's store, is
active on the candidate's weekday (or on every day), covers the candidate
time in its half-open window [time_start, time_end), is effective on the
candidate date when it carries one, and its scope includes the candidate.
"""

from datetime import datetime
from typing import Iterable, List, Tuple

from ..models.capacity_rule import CapacityRule, RuleScope
from ..models.reservation import ReservationCandidate


def rule_applies(rule: CapacityRule, candidate: ReservationCandidate) -> bool:
    """True when ``rule`` applies to ``candidate``"""
    if not rule.active or rule.store_id != candidate.store_id:
        return False
    if rule.effective_date is not None and rule.effective_date != candidate.date:
        return False
    if rule.weekdays and candidate.weekday not in rule.weekdays:
        return False
    if not (rule.time_start <= candidate.time < rule.time_end):
        return False
    if rule.scope_type == RuleScope.STORE:
        return True
    value = candidate.scope_value(rule.scope_type)
    return value is not None and value in rule.scope_ids


def evaluation_order(rule: CapacityRule) -> Tuple:
    """Sort key: ceilings last, then priority descending, creation order, id"""
    return (
        rule.is_ceiling,
        -rule.priority,
        rule.created_at or datetime.min,
        rule.id if rule.id is not None else -1,
    )


def match(candidate: ReservationCandidate, rules: Iterable[CapacityRule]) -> List[CapacityRule]:
    """Applicable rules in evaluation order; empty when nothing applies"""
    return sorted((rule for rule in rules if rule_applies(rule, candidate)), key=evaluation_order)
