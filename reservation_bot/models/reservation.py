"""
Reservation data models
"""

from pydantic import BaseModel, Field, field_validator
from datetime import date as date_type, time as time_type
from typing import Optional
from enum import Enum
from .base import BaseEntity, TimestampMixin
from .capacity_rule import RuleScope, weekday_index


class ReservationStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELED = "canceled"


class ReservationCandidate(BaseModel):
    """A booking to be admitted; never persisted by the admission core"""
    store_id: str = Field(..., min_length=1, description="Store")
    date: date_type = Field(..., description="Reservation date")
    time: time_type = Field(..., description="Reservation time of day")
    seat_type: Optional[str] = Field(None, description="Seat type")
    menu: Optional[str] = Field(None, description="Menu item")
    staff: Optional[str] = Field(None, description="Requested staff member")
    people: int = Field(1, ge=1, le=100, description="Party size")

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("seat_type", "menu", "staff")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def weekday(self) -> int:
        """0=Sunday .. 6=Saturday"""
        return weekday_index(self.date)

    def scope_value(self, scope_type: RuleScope) -> Optional[str]:
        """Candidate attribute compared against a rule's scope_ids"""
        if scope_type == RuleScope.SEAT_TYPE:
            return self.seat_type
        if scope_type == RuleScope.MENU_ITEM:
            return self.menu
        if scope_type == RuleScope.STAFF:
            return self.staff
        return None


class Reservation(BaseEntity, TimestampMixin):
    """Persisted reservation"""
    id: str = Field(..., description="Reservation id, e.g. R1ABC2DEF")
    store_id: str
    user_id: Optional[str] = None
    customer_name: str = Field(..., min_length=1, max_length=100)
    date: date_type
    time: time_type
    people: int = Field(2, ge=1, le=100)
    seat_type: Optional[str] = None
    menu: Optional[str] = None
    staff: Optional[str] = None
    note: str = ""
    status: ReservationStatus = ReservationStatus.CONFIRMED

    def to_candidate(self) -> ReservationCandidate:
        return ReservationCandidate(
            store_id=self.store_id,
            date=self.date,
            time=self.time,
            seat_type=self.seat_type,
            menu=self.menu,
            staff=self.staff,
            people=self.people,
        )
