"""Audit event response schemas."""

import json
from datetime import datetime
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field


class AuditEventResponse(BaseModel):
    id: int
    user_id: Optional[int]
    actor_id: Optional[int] = None
    action: str
    target_type: Optional[str]
    target_id: Optional[str]
    ip_address: Optional[str]
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime]

    @classmethod
    def from_event(cls, event) -> "AuditEventResponse":
        try:
            metadata = json.loads(event.metadata_json) if event.metadata_json else {}
        except json.JSONDecodeError:
            metadata = {"raw": event.metadata_json}
        return cls(
            id=event.id,
            user_id=event.user_id,
            actor_id=event.actor_id,
            action=event.action,
            target_type=event.target_type,
            target_id=event.target_id,
            ip_address=event.ip_address,
            metadata=metadata,
            created_at=event.created_at,
        )
