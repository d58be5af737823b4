"""
Reservation routes
Every booking passes the capacity admission check before it is stored.
"""

from datetime import date as date_type
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status

from ...config.settings import settings
from ...core.exceptions import AuthenticationError, AuthorizationError, CapacityExceededError
from ...core.security import ensure_store_access, optional_operator, require_operator
from ...models.decision import Decision
from ...models.reservation import Reservation
from ...schemas.common import ErrorResponse
from ...schemas.reservation import (
    ReservationCreateRequest,
    ReservationListResponse,
    ReservationResponse,
    ReservationUpdateRequest,
)
from ...services.reservation_service import ReservationService
from ..dependencies import get_reservation_service

router = APIRouter()


def _capacity_error(decision: Decision) -> CapacityExceededError:
    return CapacityExceededError(
        decision.reason or "Capacity exceeded",
        details={"decision": decision.model_dump(mode="json")},
    )


@router.get("", response_model=ReservationListResponse)
def list_reservations(
    store_id: Optional[str] = None,
    date: Optional[date_type] = None,
    include_canceled: bool = False,
    operator: Dict[str, Any] = Depends(require_operator),
    service: ReservationService = Depends(get_reservation_service),
):
    """Reservations of a store, optionally for one date"""
    store_id = store_id or settings.default_store_id
    ensure_store_access(operator, store_id)
    reservations = service.list_reservations(store_id, date, include_canceled)
    return ReservationListResponse(reservations=reservations, total=len(reservations))


@router.post("", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED,
             responses={409: {"model": ErrorResponse}})
def create_reservation(
    req: ReservationCreateRequest,
    service: ReservationService = Depends(get_reservation_service),
):
    """Book a table; a rejected booking answers 409 with the decision"""
    decision, reservation = service.create_reservation(req)
    if reservation is None:
        raise _capacity_error(decision)
    return ReservationResponse(success=True, reservation=reservation, decision=decision,
                               message=decision.message)


def _accessible_reservation(service: ReservationService, reservation_id: str,
                            operator: Optional[Dict[str, Any]], user_id: Optional[str]) -> Reservation:
    """Operators reach their stores' bookings; customers only their own"""
    reservation = service.get_reservation(reservation_id)
    if operator is not None:
        ensure_store_access(operator, reservation.store_id)
    elif not user_id:
        raise AuthenticationError("Operator token or user_id required")
    elif reservation.user_id != user_id:
        raise AuthorizationError("Reservation belongs to another customer")
    return reservation


@router.get("/{reservation_id}", response_model=ReservationResponse)
def get_reservation(
    reservation_id: str,
    user_id: Optional[str] = None,
    operator: Optional[Dict[str, Any]] = Depends(optional_operator),
    service: ReservationService = Depends(get_reservation_service),
):
    reservation = _accessible_reservation(service, reservation_id, operator, user_id)
    return ReservationResponse(success=True, reservation=reservation)


@router.put("/{reservation_id}", response_model=ReservationResponse)
def update_reservation(
    reservation_id: str,
    req: ReservationUpdateRequest,
    user_id: Optional[str] = None,
    operator: Optional[Dict[str, Any]] = Depends(optional_operator),
    service: ReservationService = Depends(get_reservation_service),
):
    """Change a reservation; moving it re-runs the admission check"""
    _accessible_reservation(service, reservation_id, operator, user_id)
    decision, reservation = service.update_reservation(
        reservation_id, req.model_dump(exclude_unset=True)
    )
    if not decision.allowed:
        raise _capacity_error(decision)
    return ReservationResponse(success=True, reservation=reservation, decision=decision)


@router.delete("/{reservation_id}", response_model=ReservationResponse)
def cancel_reservation(
    reservation_id: str,
    user_id: Optional[str] = None,
    operator: Optional[Dict[str, Any]] = Depends(optional_operator),
    service: ReservationService = Depends(get_reservation_service),
):
    _accessible_reservation(service, reservation_id, operator, user_id)
    reservation = service.cancel_reservation(reservation_id)
    return ReservationResponse(success=True, reservation=reservation, message="Reservation canceled")
