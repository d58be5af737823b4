"""
LINE webhook payload
Only the fields the bot reads are modelled; everything else is ignored.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class WebhookBody(BaseModel):
    destination: Optional[str] = None
    events: List[Dict[str, Any]] = Field(default_factory=list)


class WebhookAck(BaseModel):
    ok: bool = True
    skip: Optional[bool] = None
    warning: Optional[str] = None
    error: Optional[str] = None
    replies: int = 0
