"""
Capacity rule administration routes
Rule CRUD, chat-style commands, utilization stats and a pre-booking check.
"""

from datetime import date as date_type, time as time_type
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status

from ...config.settings import settings
from ...core.exceptions import BackendUnavailableError, RuleNotFoundError, ValidationError
from ...core.security import ensure_store_access, require_operator
from ...models.base import build_model
from ...models.capacity_rule import CapacityRule
from ...models.decision import CommandResult, CommandStatus
from ...models.reservation import ReservationCandidate
from ...schemas.capacity import (
    CapacityRuleCreateRequest,
    CapacityRuleListResponse,
    CapacityStatsResponse,
    CapacityValidateResponse,
    CommandRequest,
)
from ...schemas.common import ApiResponse, ErrorResponse
from ...services.admission_service import AdmissionService
from ..dependencies import get_admission_service

router = APIRouter()


def _raise_for_result(result: CommandResult) -> None:
    """Turn a failed command into the matching HTTP error"""
    if result.error_code == "BACKEND_UNAVAILABLE":
        raise BackendUnavailableError(result.message, result.details.get("collaborator"))
    if result.status == CommandStatus.UNRECOGNIZED:
        raise ValidationError("Unrecognized command", field="command")
    raise ValidationError(result.message, details=result.details)


def _owned_rule(service: AdmissionService, rule_id: int, operator: Dict[str, Any]) -> CapacityRule:
    rule = service.get_rule(rule_id)
    if rule is None:
        raise RuleNotFoundError(rule_id)
    ensure_store_access(operator, rule.store_id)
    return rule


@router.get("/rules", response_model=CapacityRuleListResponse)
def list_rules(
    store_id: Optional[str] = None,
    operator: Dict[str, Any] = Depends(require_operator),
    service: AdmissionService = Depends(get_admission_service),
):
    """Active rules of a store in evaluation order"""
    store_id = store_id or settings.default_store_id
    ensure_store_access(operator, store_id)
    rules = service.list_rules(store_id)
    return CapacityRuleListResponse(store_id=store_id, rules=rules, total=len(rules))


@router.post("/rules", response_model=ApiResponse[CapacityRule], status_code=status.HTTP_201_CREATED,
             responses={400: {"model": ErrorResponse}})
def create_rule(
    req: CapacityRuleCreateRequest,
    operator: Dict[str, Any] = Depends(require_operator),
    service: AdmissionService = Depends(get_admission_service),
):
    """Create a rule from explicit fields or from a /limit or /stop command"""
    store_id = req.store_id or settings.default_store_id
    ensure_store_access(operator, store_id)

    if req.command:
        result = service.apply_command(req.command, operator["sub"], store_id)
        if not result.success:
            _raise_for_result(result)
        if result.rule is None:
            raise ValidationError("Command does not create a rule; use /limit or /stop", field="command")
        return ApiResponse(success=True, data=result.rule, message=result.message)

    rule = service.create_rule({**req.rule_fields(), "store_id": store_id}, operator["sub"])
    return ApiResponse(success=True, data=rule, message=f"Capacity rule #{rule.id} created")


@router.patch("/rules/{rule_id}", response_model=ApiResponse[CapacityRule])
def update_rule(
    rule_id: int,
    patch: Dict[str, Any],
    operator: Dict[str, Any] = Depends(require_operator),
    service: AdmissionService = Depends(get_admission_service),
):
    """Partial update; identity fields are rejected"""
    _owned_rule(service, rule_id, operator)
    result = service.update_rule(rule_id, patch, operator["sub"])
    if not result.found:
        raise RuleNotFoundError(rule_id)
    return ApiResponse(success=True, data=result.rule, message=result.message)


@router.delete("/rules/{rule_id}", response_model=ApiResponse[CapacityRule])
def deactivate_rule(
    rule_id: int,
    operator: Dict[str, Any] = Depends(require_operator),
    service: AdmissionService = Depends(get_admission_service),
):
    """Deactivate a rule; it stays stored but never matches again"""
    _owned_rule(service, rule_id, operator)
    result = service.deactivate_rule(rule_id, operator["sub"])
    if not result.found:
        raise RuleNotFoundError(rule_id)
    return ApiResponse(success=True, data=result.rule, message=result.message)


@router.post("/commands", response_model=CommandResult)
def apply_command(
    req: CommandRequest,
    operator: Dict[str, Any] = Depends(require_operator),
    service: AdmissionService = Depends(get_admission_service),
):
    """Apply a chat command; the result carries the reply text either way"""
    store_id = req.store_id or settings.default_store_id
    ensure_store_access(operator, store_id)
    return service.apply_command(req.command, req.user_id or operator["sub"], store_id)


@router.get("/stats", response_model=CapacityStatsResponse)
def capacity_stats(
    store_id: Optional[str] = None,
    date: Optional[date_type] = None,
    operator: Dict[str, Any] = Depends(require_operator),
    service: AdmissionService = Depends(get_admission_service),
):
    """Per-rule utilization for one date (default today)"""
    store_id = store_id or settings.default_store_id
    ensure_store_access(operator, store_id)
    on_date = date or date_type.today()
    return CapacityStatsResponse(store_id=store_id, date=on_date,
                                 stats=service.capacity_stats(store_id, on_date))


@router.get("/validate", response_model=CapacityValidateResponse)
def validate_reservation(
    date: date_type,
    time: time_type,
    store_id: Optional[str] = None,
    seat_type: Optional[str] = None,
    menu: Optional[str] = None,
    staff: Optional[str] = None,
    people: int = Query(1, ge=1, le=100),
    service: AdmissionService = Depends(get_admission_service),
):
    """Check a slot before booking; nothing is written"""
    candidate = build_model(ReservationCandidate, {
        "store_id": store_id or settings.default_store_id,
        "date": date,
        "time": time,
        "seat_type": seat_type,
        "menu": menu,
        "staff": staff,
        "people": people,
    })
    return CapacityValidateResponse(decision=service.evaluate(candidate))
