"""
Base data models
Shared model base classes and helpers
"""

from pydantic import BaseModel, ValidationError as PydanticValidationError
from datetime import datetime
from typing import Optional, Type, TypeVar, Dict, Any

from ..core.exceptions import ValidationError

M = TypeVar("M", bound=BaseModel)


class TimestampMixin(BaseModel):
    """Timestamp fields"""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BaseEntity(BaseModel):
    """Base entity model"""

    model_config = {"from_attributes": True}


def build_model(model_cls: Type[M], data: Dict[str, Any]) -> M:
    """Validate ``data`` into ``model_cls``, naming the first offending field on failure"""
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        message = first.get("msg", "invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        raise ValidationError(
            f"{field}: {message}" if field else message,
            field=field,
            details={"errors": [
                {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
                for err in e.errors()
            ]},
        )
