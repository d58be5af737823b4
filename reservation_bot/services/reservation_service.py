"""
Reservation service
Durable reservation storage behind the booking endpoints.

Main features:
- create: admission check first, persistence only when admitted
- list/get by store and date
- update: a capacity-relevant change is re-admitted as a new booking
  (old booking released, new one evaluated, old one restored on rejection)
- cancel: status change, capacity slots released

Reservations live in the ``reservations`` table; nothing is kept in
process memory between requests.
"""

import logging
import time as clock
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from ..config.settings import settings
from ..core.database import DatabaseManager
from ..core.exceptions import ReservationNotFoundError
from ..models.base import build_model
from ..models.decision import Decision
from ..models.reservation import Reservation, ReservationCandidate, ReservationStatus
from ..schemas.reservation import ReservationCreateRequest
from .admission_service import AdmissionService

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, store_id, user_id, customer_name, date, time, people, seat_type, menu, staff, "
    "note, status, created_at, updated_at"
)

# Changing any of these can move the booking into another capacity bucket
CAPACITY_FIELDS = ("date", "time", "seat_type", "menu", "staff", "people")

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def new_reservation_id() -> str:
    """``R`` followed by the current time in base 36, e.g. R1ABC2DEF3"""
    value = clock.time_ns() // 1000
    digits = ""
    while value:
        value, rem = divmod(value, 36)
        digits = _BASE36[rem] + digits
    return "R" + (digits or "0")


def _row_to_reservation(row: tuple) -> Reservation:
    return Reservation(
        id=row[0],
        store_id=row[1],
        user_id=row[2],
        customer_name=row[3],
        date=row[4],
        time=row[5],
        people=row[6],
        seat_type=row[7],
        menu=row[8],
        staff=row[9],
        note=row[10] or "",
        status=row[11],
        created_at=row[12],
        updated_at=row[13],
    )


class ReservationService:
    """Booking flow over the reservations table"""

    def __init__(self, db: DatabaseManager, admission: AdmissionService):
        self.db = db
        self.admission = admission

    def create_reservation(self, request: ReservationCreateRequest
                           ) -> Tuple[Decision, Optional[Reservation]]:
        """
        Admit and persist a new reservation

        Args:
            request: validated booking request

        Returns:
            (decision, reservation): reservation is None when the decision
            is REJECTED, in which case nothing was written
        """
        store_id = request.store_id or settings.default_store_id
        candidate = ReservationCandidate(
            store_id=store_id,
            date=request.date,
            time=request.time,
            seat_type=request.seat_type,
            menu=request.menu,
            staff=request.staff,
            people=request.people,
        )
        decision = self.admission.reserve(candidate)
        if not decision.allowed:
            logger.info("Reservation rejected for store %s on %s %s: %s",
                        store_id, request.date, request.time, decision.reason)
            return decision, None

        now = datetime.now()
        reservation = Reservation(
            id=new_reservation_id(),
            store_id=store_id,
            user_id=request.user_id,
            customer_name=request.customer_name,
            date=request.date,
            time=request.time,
            people=request.people,
            seat_type=candidate.seat_type,
            menu=candidate.menu,
            staff=candidate.staff,
            note=request.note,
            status=ReservationStatus.CONFIRMED,
            created_at=now,
            updated_at=now,
        )
        try:
            self._insert(reservation)
        except Exception:
            self.admission.release(candidate)
            raise
        logger.info("Reservation %s created for store %s", reservation.id, store_id)
        return decision, reservation

    def _insert(self, reservation: Reservation) -> None:
        self.db.execute_query(
            f"INSERT INTO reservations({_COLUMNS}) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?)",
            [
                reservation.id,
                reservation.store_id,
                reservation.user_id,
                reservation.customer_name,
                reservation.date,
                reservation.time,
                reservation.people,
                reservation.seat_type,
                reservation.menu,
                reservation.staff,
                reservation.note,
                reservation.status.value,
                reservation.created_at,
                reservation.updated_at,
            ],
        )

    def list_reservations(self, store_id: str, on_date: Optional[date] = None,
                          include_canceled: bool = False) -> List[Reservation]:
        query = f"SELECT {_COLUMNS} FROM reservations WHERE store_id = ?"
        params: list = [store_id]
        if on_date is not None:
            query += " AND date = ?"
            params.append(on_date)
        if not include_canceled:
            query += " AND status = ?"
            params.append(ReservationStatus.CONFIRMED.value)
        query += " ORDER BY date, time, created_at"
        return [_row_to_reservation(row) for row in self.db.execute_query(query, params)]

    def get_reservation(self, reservation_id: str) -> Reservation:
        row = self.db.execute_one(
            f"SELECT {_COLUMNS} FROM reservations WHERE id = ?", [reservation_id]
        )
        if not row:
            raise ReservationNotFoundError(reservation_id)
        return _row_to_reservation(row)

    def _set_status(self, reservation_id: str, status: ReservationStatus) -> None:
        self.db.execute_query(
            "UPDATE reservations SET status = ?, updated_at = ? WHERE id = ?",
            [status.value, datetime.now(), reservation_id],
        )

    def _restore(self, reservation_id: str, candidate: Optional[ReservationCandidate]) -> None:
        """Put a booking back after a failed move, re-taking its slots when they were released"""
        # Re-take the slots while the row is still canceled so it is not counted twice
        if candidate is not None:
            restored = self.admission.reserve(candidate)
            if not restored.allowed:
                logger.warning("Reservation %s restored over capacity: %s",
                               reservation_id, restored.reason)
        self._set_status(reservation_id, ReservationStatus.CONFIRMED)

    def update_reservation(self, reservation_id: str, changes: Dict[str, Any]
                           ) -> Tuple[Decision, Reservation]:
        """
        Apply ``changes`` to a reservation

        Returns:
            (decision, reservation): on rejection the reservation is returned
            unchanged

        Raises:
            ReservationNotFoundError: unknown id
            ValidationError: the changed reservation is invalid; nothing was
                written
        """
        current = self.get_reservation(reservation_id)
        updated = build_model(Reservation, {
            **current.model_dump(), **changes, "updated_at": datetime.now(),
        })
        new_candidate = build_model(ReservationCandidate, {
            field: getattr(updated, field) for field in ("store_id",) + CAPACITY_FIELDS
        })
        decision = Decision.admitted("No capacity-relevant change")

        relevant = current.status == ReservationStatus.CONFIRMED and any(
            getattr(current, field) != getattr(updated, field) for field in CAPACITY_FIELDS
        )
        if relevant:
            old_candidate = current.to_candidate()
            # Re-admit as a new booking: the old one must not count against itself
            self._set_status(reservation_id, ReservationStatus.CANCELED)
            released = False
            try:
                self.admission.release(old_candidate)
                released = True
                decision = self.admission.reserve(new_candidate)
            except Exception:
                self._restore(reservation_id, old_candidate if released else None)
                raise
            if not decision.allowed:
                self._restore(reservation_id, old_candidate)
                return decision, current

        self.db.execute_query(
            """
            UPDATE reservations SET customer_name=?, date=?, time=?, people=?, seat_type=?, menu=?,
                staff=?, note=?, status=?, updated_at=?
            WHERE id = ?
            """,
            [
                updated.customer_name,
                updated.date,
                updated.time,
                updated.people,
                updated.seat_type,
                updated.menu,
                updated.staff,
                updated.note,
                current.status.value,
                updated.updated_at,
                reservation_id,
            ],
        )
        return decision, self.get_reservation(reservation_id)

    def cancel_reservation(self, reservation_id: str) -> Reservation:
        """Cancel a reservation; canceling twice is a no-op"""
        current = self.get_reservation(reservation_id)
        if current.status == ReservationStatus.CANCELED:
            return current
        self._set_status(reservation_id, ReservationStatus.CANCELED)
        self.admission.release(current.to_candidate())
        logger.info("Reservation %s canceled", reservation_id)
        return self.get_reservation(reservation_id)
