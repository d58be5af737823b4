"""
Admission decision and command result models
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from enum import Enum
from .capacity_rule import CapacityRule


class DecisionStatus(str, Enum):
    PENDING = "PENDING"
    ADMITTED = "ADMITTED"
    REJECTED = "REJECTED"


class Decision(BaseModel):
    """Result of evaluating one reservation candidate"""
    status: DecisionStatus = Field(..., description="Terminal state")
    allowed: bool = Field(..., description="True when admitted")
    reason: Optional[str] = Field(None, description="Rendered rejection message")
    violated_rule: Optional[int] = Field(None, description="Id of the rule that rejected")
    alternative_times: List[str] = Field(default_factory=list, description="Suggested times, HH:MM")
    alternative_days: List[str] = Field(default_factory=list, description="Suggested weekday names")
    message: Optional[str] = Field(None, description="Confirmation text on admission")
    degraded: bool = Field(False, description="Admitted or rejected without a complete capacity check")
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def admitted(cls, message: str = "Capacity check passed", warnings: List[str] = None):
        return cls(
            status=DecisionStatus.ADMITTED,
            allowed=True,
            message=message,
            degraded=bool(warnings),
            warnings=warnings or [],
        )

    @classmethod
    def rejected(cls, reason: str, violated_rule: Optional[int] = None,
                 alternative_times: List[str] = None, alternative_days: List[str] = None,
                 warnings: List[str] = None):
        return cls(
            status=DecisionStatus.REJECTED,
            allowed=False,
            reason=reason,
            violated_rule=violated_rule,
            alternative_times=alternative_times or [],
            alternative_days=alternative_days or [],
            degraded=bool(warnings),
            warnings=warnings or [],
        )


class CommandStatus(str, Enum):
    SUCCESS = "SUCCESS"
    REJECTED = "REJECTED"
    UNRECOGNIZED = "UNRECOGNIZED"


class CommandResult(BaseModel):
    """Result of an operator command; ``message`` is the reply text"""
    status: CommandStatus
    success: bool
    message: str
    rule: Optional[CapacityRule] = None
    rules: List[CapacityRule] = Field(default_factory=list)
    error_code: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class CapacityStat(BaseModel):
    """Utilization of one rule on one date"""
    rule_id: int
    description: str
    limit_type: str
    limit_value: int
    current_count: int
    utilization: float
    status: str  # ok | warning | full | stopped
