"""
Admission service
Single entry point of the capacity admission core.

Main features:
- evaluate(candidate): admit/reject a reservation candidate
- apply_command(text, user_id, store_id): operator chat commands
- rule administration (create, update, deactivate, list)
- per-rule utilization statistics for a date
- optional atomic slot reservation when the backend supports it

Contract:
- every call into the rule store or the usage backend is bounded by
  ``collaborator_timeout_seconds``
- a failed or timed-out collaborator applies the fail-open/fail-closed
  policy (``capacity_fail_open``, default fail-open: admit with a warning)
- evaluate and apply_command never raise; they always return a result
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from datetime import date, time
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config.settings import Settings, settings as default_settings
from ..core.exceptions import (
    BackendUnavailableError,
    BaseApplicationError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from ..models.base import build_model
from ..models.capacity_rule import (
    CapacityRule,
    CapacityRuleBase,
    LimitType,
    RuleKind,
    RuleMutationResult,
    describe_rule,
    weekday_index,
)
from ..models.decision import CapacityStat, CommandResult, CommandStatus, Decision
from ..models.reservation import ReservationCandidate
from .admission_evaluator import AdmissionEvaluator, UNAVAILABLE_REASON
from .audit_log import AuditLog
from .command_parser import CommandAction, HELP_TEXT, parse_command
from .rule_matcher import evaluation_order, match
from .rule_store import RuleStore
from .usage_counter import UsageBackend, UsageCounter

logger = logging.getLogger(__name__)

WARNING_UTILIZATION = 0.5

_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="capacity-collaborator")


class BoundedUsageCounter(UsageCounter):
    """UsageCounter whose backend calls go through the service's timeout guard"""

    def __init__(self, backend: UsageBackend, call: Callable[..., Any]):
        super().__init__(backend)
        self._call = call

    def count(self, rule: CapacityRule, candidate: ReservationCandidate) -> int:
        return self._call("usage_counter", super().count, rule, candidate)


class AdmissionService:
    """Orchestrates matcher, counter, evaluator and command parser"""

    def __init__(self, rule_store: RuleStore, usage_backend: UsageBackend,
                 audit: Optional[AuditLog] = None, config: Optional[Settings] = None,
                 today: Optional[Callable[[], date]] = None):
        self.config = config or default_settings
        self.rule_store = rule_store
        self.usage_backend = usage_backend
        self.audit = audit
        self.today = today or date.today
        self.counter = BoundedUsageCounter(usage_backend, self._call)
        self.evaluator = AdmissionEvaluator(
            self.counter,
            fail_open=self.config.capacity_fail_open,
            suggestion_offset_minutes=self.config.suggestion_offset_minutes,
        )

    # ------------------------------------------------------------------
    # collaborator guard

    def _call(self, collaborator: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Run a collaborator call with the configured timeout.

        Validation and not-found errors pass through; anything else the
        collaborator raises, and timeouts, become BackendUnavailableError.
        """
        timeout = self.config.collaborator_timeout_seconds
        future = _executor.submit(fn, *args, **kwargs)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            raise BackendUnavailableError(f"{collaborator} timed out after {timeout}s", collaborator)
        except (ValidationError, NotFoundError, BackendUnavailableError):
            raise
        except DatabaseError as e:
            raise BackendUnavailableError(f"{collaborator} failed: {e.message}", collaborator)
        except Exception as e:
            raise BackendUnavailableError(f"{collaborator} failed: {e}", collaborator)

    def _unavailable_decision(self, error: BaseApplicationError) -> Decision:
        if self.config.capacity_fail_open:
            logger.warning("Admitting without capacity check (fail-open): %s", error.message)
            return Decision.admitted("Admitted without a complete capacity check",
                                     warnings=[error.message])
        logger.warning("Rejecting, capacity check unavailable (fail-closed): %s", error.message)
        return Decision.rejected(UNAVAILABLE_REASON, warnings=[error.message])

    # ------------------------------------------------------------------
    # admission

    def _evaluate(self, candidate: ReservationCandidate) -> Tuple[Decision, List[CapacityRule]]:
        try:
            rules = self._call("rule_store", self.rule_store.list_active_rules, candidate.store_id)
        except BackendUnavailableError as e:
            return self._unavailable_decision(e), []

        try:
            decision = self.evaluator.evaluate(candidate, rules)
        except Exception as e:
            logger.exception("Capacity evaluation failed for store %s", candidate.store_id)
            return self._unavailable_decision(BackendUnavailableError(str(e), "evaluator")), []

        if not decision.allowed and self.audit is not None:
            self.audit.record("admission_rejected", candidate.store_id, None, {
                "candidate": candidate.model_dump(mode="json"),
                "violated_rule": decision.violated_rule,
                "reason": decision.reason,
            })
        return decision, rules

    def evaluate(self, candidate: ReservationCandidate) -> Decision:
        """
        Decide whether ``candidate`` may be booked

        The booking flow must call this before persisting a reservation and
        must not persist when the decision is REJECTED.
        """
        decision, _ = self._evaluate(candidate)
        return decision

    def reserve(self, candidate: ReservationCandidate) -> Decision:
        """
        Evaluate and, when atomic admission is enabled and supported, take
        one slot in every matched rule's bucket with compare-and-increment.
        """
        decision, rules = self._evaluate(candidate)
        if not decision.allowed or not self._atomic_enabled():
            return decision

        taken: List[CapacityRule] = []
        try:
            for rule in match(candidate, rules):
                bucket = self.counter.bucket_for(rule, candidate)
                if not self._call("usage_counter", self.usage_backend.try_reserve_slot, rule, bucket):
                    self._release_rules(taken, candidate)
                    return self.evaluator.rejection_for(rule, candidate)
                taken.append(rule)
        except BackendUnavailableError as e:
            self._release_rules(taken, candidate)
            return self._unavailable_decision(e)
        return decision

    def release(self, candidate: ReservationCandidate) -> None:
        """Return the slots a canceled reservation held"""
        if not self._atomic_enabled():
            return
        try:
            rules = self._call("rule_store", self.rule_store.list_active_rules, candidate.store_id)
        except BackendUnavailableError as e:
            logger.warning("Could not release capacity slots: %s", e.message)
            return
        self._release_rules(match(candidate, rules), candidate)

    def _atomic_enabled(self) -> bool:
        return self.config.atomic_admission and self.usage_backend.supports_atomic_reserve

    def _release_rules(self, rules: List[CapacityRule], candidate: ReservationCandidate) -> None:
        for rule in rules:
            bucket = self.counter.bucket_for(rule, candidate)
            try:
                self._call("usage_counter", self.usage_backend.release_slot, rule, bucket)
            except BackendUnavailableError as e:
                logger.warning("Slot release failed for rule #%s: %s", rule.id, e.message)

    # ------------------------------------------------------------------
    # commands

    def apply_command(self, text: str, user_id: Optional[str], store_id: str) -> CommandResult:
        """
        Apply an operator command

        Returns:
            CommandResult: SUCCESS with the reply text, REJECTED naming the
            offending token, or UNRECOGNIZED with the command help
        """
        try:
            parsed = parse_command(text, store_id, user_id, today=self.today())
        except ValidationError as e:
            return CommandResult(
                status=CommandStatus.REJECTED,
                success=False,
                message=f"⚠️ {e.message}\n\n{HELP_TEXT}",
                error_code=e.error_code,
                details=e.details,
            )

        if parsed.action == CommandAction.UNRECOGNIZED:
            return CommandResult(
                status=CommandStatus.UNRECOGNIZED,
                success=False,
                message=f"Unrecognized command.\n\n{HELP_TEXT}",
            )

        try:
            if parsed.action == CommandAction.LIST_RULES:
                rules = self._call("rule_store", self.rule_store.list_active_rules, store_id)
                return CommandResult(
                    status=CommandStatus.SUCCESS,
                    success=True,
                    message=render_rule_list(rules),
                    rules=rules,
                )

            rule = self._create(parsed.rule, user_id)
            return CommandResult(
                status=CommandStatus.SUCCESS,
                success=True,
                message=f"✅ Capacity rule #{rule.id} created:\n{rule.description}",
                rule=rule,
            )
        except ValidationError as e:
            return CommandResult(status=CommandStatus.REJECTED, success=False,
                                 message=f"⚠️ {e.message}", error_code=e.error_code, details=e.details)
        except BackendUnavailableError as e:
            logger.warning("Command %s failed: %s", parsed.verb, e.message)
            return CommandResult(
                status=CommandStatus.REJECTED,
                success=False,
                message="Capacity rules are temporarily unavailable, please try again later",
                error_code=e.error_code,
                details=e.details,
            )

    # ------------------------------------------------------------------
    # rule administration

    def _create(self, rule: CapacityRuleBase, actor_id: Optional[str]) -> CapacityRule:
        if not rule.description:
            rule = rule.model_copy(update={"description": describe_rule(rule)})
        created = self._call("rule_store", self.rule_store.create_rule, rule)
        logger.info("Capacity rule #%s created for store %s", created.id, created.store_id)
        if self.audit is not None:
            self.audit.record("rule_created", created.store_id, actor_id,
                              {"rule": created.model_dump(mode="json")})
        return created

    def create_rule(self, data: Dict[str, Any], actor_id: Optional[str] = None) -> CapacityRule:
        """
        Create a rule from a field mapping

        Raises:
            ValidationError: a field breaks a rule invariant
            BackendUnavailableError: the rule store failed
        """
        rule = build_model(CapacityRuleBase, {**data, "created_by": actor_id or data.get("created_by")})
        return self._create(rule, actor_id)

    def update_rule(self, rule_id: int, patch: Dict[str, Any],
                    actor_id: Optional[str] = None) -> RuleMutationResult:
        """Patch a rule; an unknown id yields ``found=False``"""
        updated = self._call("rule_store", self.rule_store.update_rule, rule_id, patch)
        if updated is None:
            return RuleMutationResult(found=False, message=f"Capacity rule #{rule_id} not found")
        if self.audit is not None:
            self.audit.record("rule_updated", updated.store_id, actor_id,
                              {"rule_id": rule_id, "patch": patch})
        return RuleMutationResult(found=True, rule=updated, message="Capacity rule updated")

    def deactivate_rule(self, rule_id: int, actor_id: Optional[str] = None) -> RuleMutationResult:
        """Soft-delete a rule; an unknown id yields ``found=False``"""
        existing = self._call("rule_store", self.rule_store.get_rule, rule_id)
        if existing is None or not self._call("rule_store", self.rule_store.deactivate_rule, rule_id):
            return RuleMutationResult(found=False, message=f"Capacity rule #{rule_id} not found")
        if self.audit is not None:
            self.audit.record("rule_deactivated", existing.store_id, actor_id, {"rule_id": rule_id})
        return RuleMutationResult(
            found=True,
            rule=existing.model_copy(update={"active": False}),
            message="Capacity rule deactivated",
        )

    def get_rule(self, rule_id: int) -> Optional[CapacityRule]:
        return self._call("rule_store", self.rule_store.get_rule, rule_id)

    def list_rules(self, store_id: str) -> List[CapacityRule]:
        rules = self._call("rule_store", self.rule_store.list_active_rules, store_id)
        return sorted(rules, key=evaluation_order)

    # ------------------------------------------------------------------
    # statistics

    def capacity_stats(self, store_id: str, on_date: date) -> List[CapacityStat]:
        """
        Utilization of every rule active on ``on_date``

        per_hour rules report their busiest hour inside the window.
        """
        stats = []
        for rule in self.list_rules(store_id):
            if rule.effective_date is not None and rule.effective_date != on_date:
                continue
            if rule.weekdays and weekday_index(on_date) not in rule.weekdays:
                continue

            current = self._stat_count(rule, store_id, on_date)
            if rule.kind == RuleKind.STOP:
                utilization, status = 1.0, "stopped"
            else:
                utilization = round(current / rule.limit_value, 2)
                if current >= rule.limit_value:
                    status = "full"
                elif utilization >= WARNING_UTILIZATION:
                    status = "warning"
                else:
                    status = "ok"
            stats.append(CapacityStat(
                rule_id=rule.id,
                description=rule.description,
                limit_type=rule.limit_type.value,
                limit_value=rule.limit_value,
                current_count=current,
                utilization=utilization,
                status=status,
            ))
        return stats

    def _stat_count(self, rule: CapacityRule, store_id: str, on_date: date) -> int:
        sample_times = [rule.time_start]
        if rule.limit_type == LimitType.PER_HOUR:
            sample_times += [time(hour, 0) for hour in range(rule.time_start.hour + 1, 24)
                             if time(hour, 0) < rule.time_end]
        counts = []
        for sample in sample_times:
            candidate = ReservationCandidate(store_id=store_id, date=on_date, time=sample)
            counts.append(self.counter.count(rule, candidate))
        return max(counts)


def render_rule_list(rules: List[CapacityRule]) -> str:
    """Reply text for /limits"""
    message = "📋 Current capacity rules:\n\n"
    if not rules:
        message += "No capacity rules are configured.\n"
    else:
        for index, rule in enumerate(sorted(rules, key=evaluation_order), start=1):
            message += f"{index}. {rule.description}\n"
            message += f"   ID: #{rule.id} 🟢\n\n"
    return f"{message}\n{HELP_TEXT}"
