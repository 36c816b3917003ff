"""Audit routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from ..deps import current_principal, db_session
from ..domain.models import AccessLog, AccessLogRead

router = APIRouter()


@router.get("/logs", response_model=List[AccessLogRead], dependencies=[Depends(current_principal)])
def audit_logs(
    actor_id: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    allowed: Optional[bool] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    session: Session = Depends(db_session),
) -> List[AccessLogRead]:
    stmt = select(AccessLog)
    if actor_id:
        stmt = stmt.where(AccessLog.actor_id == actor_id)
    if action:
        stmt = stmt.where(AccessLog.action == action)
    if allowed is not None:
        stmt = stmt.where(AccessLog.allowed == allowed)
    stmt = stmt.order_by(AccessLog.created_at.desc()).limit(limit)
    return session.exec(stmt).all()
