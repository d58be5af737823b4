"""
Admission service tests over an in-memory DuckDB
"""

from datetime import time

import pytest

from ..core.exceptions import ValidationError
from ..models.decision import CommandStatus
from ..models.reservation import ReservationCandidate
from ..services.admission_evaluator import UNAVAILABLE_REASON
from ..services.admission_service import AdmissionService
from ..services.audit_log import AuditLog
from ..services.rule_store import DuckDBRuleStore, RuleStore
from ..services.usage_counter import DuckDBUsageBackend
from .conftest import MONDAY, SATURDAY, STORE, StaticUsageBackend


def candidate(at=time(12, 0), on_date=SATURDAY, **extra) -> ReservationCandidate:
    return ReservationCandidate(store_id=STORE, date=on_date, time=at, **extra)


def weekend_lunch(service: AdmissionService, limit_value=3, limit_type="per_hour"):
    return service.create_rule({
        "store_id": STORE,
        "weekdays": [0, 6],
        "time_start": "11:00",
        "time_end": "15:00",
        "limit_type": limit_type,
        "limit_value": limit_value,
    }, actor_id="owner-1")


class BrokenRuleStore(RuleStore):
    def list_active_rules(self, store_id):
        raise RuntimeError("rule store offline")

    def get_rule(self, rule_id):
        raise RuntimeError("rule store offline")

    def create_rule(self, rule):
        raise RuntimeError("rule store offline")

    def update_rule(self, rule_id, patch):
        raise RuntimeError("rule store offline")

    def deactivate_rule(self, rule_id):
        raise RuntimeError("rule store offline")


class TestCommands:

    def test_limits_on_empty_store(self, admission):
        result = admission.apply_command("/limits", "owner-1", STORE)
        assert result.status == CommandStatus.SUCCESS
        assert result.success is True
        assert "No capacity rules are configured" in result.message
        assert result.rules == []

    def test_limit_creates_and_lists(self, admission):
        created = admission.apply_command("/limit sat,sun lunch 5/h", "owner-1", STORE)
        assert created.status == CommandStatus.SUCCESS
        assert created.rule.id is not None
        assert created.rule.created_by == "owner-1"

        listed = admission.apply_command("/limits", "owner-1", STORE)
        assert f"ID: #{created.rule.id} 🟢" in listed.message
        assert "Sun, Sat 11:00-15:00: up to 5 per hour" in listed.message

    def test_invalid_command_never_creates_a_rule(self, admission):
        result = admission.apply_command("/limit xyz 5/h", "owner-1", STORE)
        assert result.status == CommandStatus.REJECTED
        assert result.error_code == "VALIDATION_ERROR"
        assert result.details["token"] == "xyz"
        assert admission.list_rules(STORE) == []

    def test_unrecognized_command(self, admission):
        result = admission.apply_command("/dance", "owner-1", STORE)
        assert result.status == CommandStatus.UNRECOGNIZED
        assert "/limits" in result.message
        assert admission.list_rules(STORE) == []

    def test_stop_today_blocks_evening(self, admission):
        admission.apply_command("/stop today 18:00-", "owner-1", STORE)
        rejected = admission.evaluate(candidate(time(19, 0)))
        assert rejected.allowed is False
        assert "stopped from 18:00" in rejected.reason
        assert admission.evaluate(candidate(time(17, 0))).allowed is True
        assert admission.evaluate(candidate(time(19, 0), on_date=MONDAY)).allowed is True

    def test_command_audited(self, admission, test_db):
        admission.apply_command("/limit sat lunch 5/h", "owner-1", STORE)
        entries = AuditLog(test_db).recent(STORE)
        assert entries[0]["action"] == "rule_created"
        assert entries[0]["actor_id"] == "owner-1"

    def test_store_failure_is_reported_not_raised(self, test_settings):
        service = AdmissionService(BrokenRuleStore(), StaticUsageBackend(), config=test_settings)
        result = service.apply_command("/limits", "owner-1", STORE)
        assert result.status == CommandStatus.REJECTED
        assert result.error_code == "BACKEND_UNAVAILABLE"


class TestEvaluate:

    def test_full_hour_rejected_next_hour_admitted(self, admission, add_reservation):
        rule = weekend_lunch(admission)
        for minute in (0, 15, 45):
            add_reservation(at=time(12, minute))
        decision = admission.evaluate(candidate(time(12, 30)))
        assert decision.allowed is False
        assert decision.violated_rule == rule.id
        assert admission.evaluate(candidate(time(13, 10))).allowed is True

    def test_rejection_is_audited(self, admission, add_reservation, test_db):
        weekend_lunch(admission, limit_value=1)
        add_reservation()
        admission.evaluate(candidate())
        assert AuditLog(test_db).recent(STORE)[0]["action"] == "admission_rejected"

    def test_deactivated_rule_no_longer_applies(self, admission, add_reservation):
        rule = weekend_lunch(admission, limit_value=1)
        add_reservation()
        assert admission.evaluate(candidate()).allowed is False
        admission.deactivate_rule(rule.id, "owner-1")
        assert admission.evaluate(candidate()).allowed is True

    def test_slow_backend_fails_open(self, test_db, test_settings):
        config = test_settings.model_copy(update={"collaborator_timeout_seconds": 0.25})
        store = DuckDBRuleStore(test_db)
        service = AdmissionService(store, StaticUsageBackend(count=0, delay=1.0), config=config)
        service.create_rule({"store_id": STORE, "limit_type": "per_day", "limit_value": 5})
        decision = service.evaluate(candidate())
        assert decision.allowed is True
        assert decision.degraded is True

    def test_slow_backend_fails_closed_when_configured(self, test_db, test_settings):
        config = test_settings.model_copy(update={
            "collaborator_timeout_seconds": 0.25,
            "capacity_fail_open": False,
        })
        service = AdmissionService(DuckDBRuleStore(test_db), StaticUsageBackend(delay=1.0), config=config)
        service.create_rule({"store_id": STORE, "limit_type": "per_day", "limit_value": 5})
        decision = service.evaluate(candidate())
        assert decision.allowed is False
        assert decision.reason == UNAVAILABLE_REASON

    def test_rule_store_outage_fails_open(self, test_settings):
        service = AdmissionService(BrokenRuleStore(), StaticUsageBackend(), config=test_settings)
        decision = service.evaluate(candidate())
        assert decision.allowed is True
        assert decision.degraded is True
        assert "rule store offline" in decision.warnings[0]


class TestRuleAdministration:

    def test_create_rejects_wrapping_window(self, admission):
        with pytest.raises(ValidationError) as exc_info:
            admission.create_rule({
                "store_id": STORE, "time_start": "22:00", "time_end": "02:00",
                "limit_type": "per_hour", "limit_value": 3,
            })
        assert exc_info.value.field == "time_end"

    def test_create_rejects_non_positive_limit(self, admission):
        with pytest.raises(ValidationError) as exc_info:
            admission.create_rule({"store_id": STORE, "limit_type": "per_day", "limit_value": 0})
        assert exc_info.value.field == "limit_value"

    def test_create_rejects_bad_weekday(self, admission):
        with pytest.raises(ValidationError):
            admission.create_rule({"store_id": STORE, "weekdays": [7], "limit_type": "per_day",
                                   "limit_value": 3})

    def test_generated_description(self, admission):
        rule = weekend_lunch(admission)
        assert rule.description == "Sun, Sat 11:00-15:00: up to 3 per hour"

    def test_update_changes_limit(self, admission):
        rule = weekend_lunch(admission)
        result = admission.update_rule(rule.id, {"limit_value": 8}, "owner-1")
        assert result.found is True
        assert result.rule.limit_value == 8
        assert admission.get_rule(rule.id).limit_value == 8

    def test_update_refreshes_generated_description(self, admission):
        rule = weekend_lunch(admission)
        result = admission.update_rule(rule.id, {"limit_value": 8, "time_end": "14:00"})
        assert result.rule.description == "Sun, Sat 11:00-14:00: up to 8 per hour"

    def test_update_keeps_custom_description(self, admission):
        rule = weekend_lunch(admission)
        admission.update_rule(rule.id, {"description": "Weekend lunch rush"})
        result = admission.update_rule(rule.id, {"limit_value": 8})
        assert result.rule.description == "Weekend lunch rush"

    def test_update_rejects_identity_fields(self, admission):
        rule = weekend_lunch(admission)
        with pytest.raises(ValidationError) as exc_info:
            admission.update_rule(rule.id, {"store_id": "elsewhere"})
        assert exc_info.value.field == "store_id"

    def test_update_revalidates_merged_rule(self, admission):
        rule = weekend_lunch(admission)
        with pytest.raises(ValidationError):
            admission.update_rule(rule.id, {"time_end": "10:00"})

    def test_update_unknown_rule(self, admission):
        result = admission.update_rule(999, {"limit_value": 2})
        assert result.found is False

    def test_deactivate_is_soft(self, admission):
        rule = weekend_lunch(admission)
        result = admission.deactivate_rule(rule.id, "owner-1")
        assert result.found is True
        assert result.rule.active is False
        assert admission.list_rules(STORE) == []
        assert admission.get_rule(rule.id).active is False

    def test_deactivate_unknown_rule(self, admission):
        assert admission.deactivate_rule(12345).found is False

    def test_rules_listed_in_evaluation_order(self, admission):
        low = admission.create_rule({"store_id": STORE, "limit_type": "per_day", "limit_value": 9, "priority": 1})
        high = admission.create_rule({"store_id": STORE, "limit_type": "per_day", "limit_value": 9, "priority": 7})
        assert [r.id for r in admission.list_rules(STORE)] == [high.id, low.id]


class TestStats:

    def test_per_day_utilization(self, admission, add_reservation):
        rule = admission.create_rule({"store_id": STORE, "limit_type": "per_day", "limit_value": 4})
        add_reservation(at=time(12, 0))
        add_reservation(at=time(19, 0))
        [stat] = admission.capacity_stats(STORE, SATURDAY)
        assert stat.rule_id == rule.id
        assert stat.current_count == 2
        assert stat.utilization == 0.5
        assert stat.status == "warning"

    def test_per_hour_reports_busiest_hour(self, admission, add_reservation):
        weekend_lunch(admission, limit_value=2)
        add_reservation(at=time(12, 0))
        add_reservation(at=time(12, 30))
        add_reservation(at=time(13, 0))
        [stat] = admission.capacity_stats(STORE, SATURDAY)
        assert stat.current_count == 2
        assert stat.status == "full"

    def test_rules_inactive_on_the_date_are_skipped(self, admission):
        weekend_lunch(admission)
        assert admission.capacity_stats(STORE, MONDAY) == []

    def test_stop_rule_reports_stopped(self, admission):
        admission.apply_command("/stop today 18:00-", "owner-1", STORE)
        [stat] = admission.capacity_stats(STORE, SATURDAY)
        assert stat.status == "stopped"


class TestAtomicAdmission:

    def test_slots_are_taken_and_released(self, test_db, test_settings):
        config = test_settings.model_copy(update={"atomic_admission": True})
        service = AdmissionService(DuckDBRuleStore(test_db), DuckDBUsageBackend(test_db), config=config)
        service.create_rule({"store_id": STORE, "limit_type": "per_day", "limit_value": 1})

        assert service.reserve(candidate()).allowed is True
        # No reservation row exists yet; the slot counter alone blocks the second booking
        assert service.reserve(candidate(time(18, 0))).allowed is False

        service.release(candidate())
        assert service.reserve(candidate(time(18, 0))).allowed is True
