"""
Domain models for rules, reservations and admission decisions.
"""

from .capacity_rule import (
    CapacityRule,
    CapacityRuleBase,
    CapacityRulePatch,
    RuleMutationResult,
    RuleScope,
    LimitType,
    RuleKind,
    END_OF_DAY,
    WEEKDAY_NAMES,
    WEEKDAY_ABBREVIATIONS,
    weekday_index,
    format_time,
    describe_rule,
    describe_days,
)
from .reservation import Reservation, ReservationCandidate, ReservationStatus
from .decision import Decision, DecisionStatus, CommandResult, CommandStatus, CapacityStat

__all__ = [
    "CapacityRule",
    "CapacityRuleBase",
    "CapacityRulePatch",
    "RuleMutationResult",
    "RuleScope",
    "LimitType",
    "RuleKind",
    "END_OF_DAY",
    "WEEKDAY_NAMES",
    "WEEKDAY_ABBREVIATIONS",
    "weekday_index",
    "format_time",
    "describe_rule",
    "describe_days",
    "Reservation",
    "ReservationCandidate",
    "ReservationStatus",
    "Decision",
    "DecisionStatus",
    "CommandResult",
    "CommandStatus",
    "CapacityStat",
]
