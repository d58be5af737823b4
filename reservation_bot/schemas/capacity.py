"""
Capacity rule request/response schemas
"""

from pydantic import BaseModel, Field
from datetime import date as date_type, time
from typing import List, Optional
from ..models.capacity_rule import CapacityRule, LimitType, RuleKind, RuleScope
from ..models.decision import CapacityStat, Decision


class CapacityRuleCreateRequest(BaseModel):
    """
    Either a chat-style ``command`` or explicit rule fields.
    Rule fields are validated by the rule model itself.
    """
    command: Optional[str] = Field(None, description="Operator command, e.g. /limit sat,sun lunch 5/h")
    store_id: Optional[str] = Field(None, description="Store; defaults to the configured store")
    kind: Optional[RuleKind] = None
    scope_type: Optional[RuleScope] = None
    scope_ids: Optional[List[str]] = None
    weekdays: Optional[List[int]] = None
    effective_date: Optional[date_type] = None
    time_start: Optional[time] = None
    time_end: Optional[time] = None
    limit_type: Optional[LimitType] = None
    limit_value: Optional[int] = None
    priority: Optional[int] = None
    description: Optional[str] = None

    model_config = {"extra": "forbid"}

    def rule_fields(self) -> dict:
        return self.model_dump(exclude_none=True, exclude={"command", "store_id"})


class CommandRequest(BaseModel):
    command: str = Field(..., min_length=1, description="Operator command text")
    user_id: Optional[str] = Field(None, description="Operator issuing the command")
    store_id: Optional[str] = None


class CapacityRuleListResponse(BaseModel):
    success: bool = True
    store_id: str
    rules: List[CapacityRule]
    total: int


class CapacityStatsResponse(BaseModel):
    success: bool = True
    store_id: str
    date: date_type
    stats: List[CapacityStat]


class CapacityValidateResponse(BaseModel):
    success: bool = True
    decision: Decision
