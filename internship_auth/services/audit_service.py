"""Audit service for security-sensitive session events."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from internship_auth.models.audit import AuditEvent


class AuditService:
    """Persist immutable audit trail entries."""

    @staticmethod
    def log_event(
        db: Session,
        *,
        user_id: Optional[int],
        action: str,
        actor_id: Optional[int] = None,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> AuditEvent:
        """Record an event; with commit=False it joins the caller's transaction."""
        event = AuditEvent(
            user_id=user_id,
            actor_id=actor_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            ip_address=ip_address,
            metadata_json=json.dumps(metadata or {}, ensure_ascii=False),
        )
        db.add(event)
        if commit:
            db.commit()
            db.refresh(event)
        else:
            db.flush()
        return event

    @staticmethod
    def events_for_user(db: Session, user_id: int, action: Optional[str] = None) -> List[AuditEvent]:
        query = db.query(AuditEvent).filter(AuditEvent.user_id == user_id)
        if action:
            query = query.filter(AuditEvent.action == action)
        return query.order_by(AuditEvent.id.asc()).all()


audit_service = AuditService()
