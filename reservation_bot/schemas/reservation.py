"""
Reservation request/response schemas
"""

from pydantic import BaseModel, Field, model_validator
from datetime import date as date_type, time as time_type
from typing import Any, List, Optional
from ..models.decision import Decision
from ..models.reservation import Reservation

REQUIRED_ON_UPDATE = ("customer_name", "date", "time", "people", "note")


class ReservationCreateRequest(BaseModel):
    """New reservation from LIFF, the web form or the admin screen"""
    customer_name: str = Field(..., min_length=1, max_length=100, description="Customer name")
    date: date_type = Field(..., description="Reservation date")
    time: time_type = Field(..., description="Reservation time")
    people: int = Field(2, ge=1, le=100, description="Party size")
    store_id: Optional[str] = Field(None, description="Store; defaults to the configured store")
    seat_type: Optional[str] = Field(None, description="Seat type")
    menu: Optional[str] = Field(None, description="Menu item")
    staff: Optional[str] = Field(None, description="Requested staff member")
    note: str = Field("", max_length=1000, description="Allergies and other notes")
    user_id: Optional[str] = Field(None, description="LINE user id")

    model_config = {"extra": "forbid"}


class ReservationUpdateRequest(BaseModel):
    """Partial reservation update"""
    customer_name: Optional[str] = Field(None, min_length=1, max_length=100)
    date: Optional[date_type] = None
    time: Optional[time_type] = None
    people: Optional[int] = Field(None, ge=1, le=100)
    seat_type: Optional[str] = None
    menu: Optional[str] = None
    staff: Optional[str] = None
    note: Optional[str] = Field(None, max_length=1000)

    model_config = {"extra": "forbid"}

    @model_validator(mode="before")
    @classmethod
    def reject_explicit_nulls(cls, data: Any) -> Any:
        # Omit a field to keep it; only the scope fields may be cleared
        if isinstance(data, dict):
            for field in REQUIRED_ON_UPDATE:
                if field in data and data[field] is None:
                    raise ValueError(f"{field} cannot be null")
        return data


class ReservationResponse(BaseModel):
    success: bool
    reservation: Optional[Reservation] = None
    decision: Optional[Decision] = None
    message: Optional[str] = None


class ReservationListResponse(BaseModel):
    success: bool = True
    reservations: List[Reservation]
    total: int
