"""
Business logic services.
Capacity admission core, reservation booking and LINE messaging.
"""

from .admission_evaluator import AdmissionEvaluator
from .admission_service import AdmissionService
from .audit_log import AuditLog
from .command_parser import parse_command
from .line_client import LineReplyClient
from .message_service import MessageService
from .reservation_service import ReservationService
from .rule_matcher import match
from .rule_store import DuckDBRuleStore, RuleStore
from .usage_counter import DuckDBUsageBackend, UsageBackend, UsageCounter

__all__ = [
    "AdmissionEvaluator",
    "AdmissionService",
    "AuditLog",
    "DuckDBRuleStore",
    "DuckDBUsageBackend",
    "LineReplyClient",
    "MessageService",
    "ReservationService",
    "RuleStore",
    "UsageBackend",
    "UsageCounter",
    "match",
    "parse_command",
]
