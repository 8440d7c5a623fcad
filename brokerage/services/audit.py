import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger("brokerage")


def audit_event(
    action: str,
    user_id: Optional[int],
    payload: Dict[str, Any],
    *,
    db: Session | None = None,
    request_id: str | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
) -> Optional[int]:
    """
    Persist an audit event; if the DB write fails, the event goes to the log instead.

    Returns the created audit log id when available.
    """
    event = {
        "action": action,
        "user_id": user_id,
        "payload": payload,
        "timestamp": datetime.utcnow().isoformat(),
    }

    created_session = False
    session: Session | None = db
    try:
        from brokerage import models

        if session is None:
            from brokerage.database import SessionLocal

            session = SessionLocal()
            created_session = True

        log = models.AuditLog(
            action=action,
            user_id=user_id,
            payload_json=json.dumps(payload or {}, default=str),
            request_id=request_id,
            ip=ip,
            user_agent=(user_agent or None) and user_agent[:256],
        )
        session.add(log)
        session.commit()
        session.refresh(log)
        return log.id
    except SQLAlchemyError:
        if session is not None:
            session.rollback()
        logger.exception("audit_write_failed", extra={"event": event})
        return None
    finally:
        if created_session and session is not None:
            session.close()
