"""Dependency injection utilities."""
from collections.abc import Generator
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlmodel import Session

from .domain.clock import NowFn
from .domain.models import Member
from .domain.schemas import Principal
from .infra.db import get_session
from .infra.feed import ChangeFeed
from .services.members import MemberService
from .services.shifts import PresenceRegistry


def db_session() -> Generator[Session, None, None]:
    """Provide a scoped DB session to FastAPI endpoints."""
    with get_session() as session:
        yield session


def current_principal(
    x_principal_id: Optional[str] = Header(None),
    x_principal_email: Optional[str] = Header(None),
) -> Principal:
    """Identity asserted by the upstream identity provider."""
    if not x_principal_id or not x_principal_email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing identity")
    return Principal(id=x_principal_id.strip(), email=x_principal_email)


def now_fn(request: Request) -> NowFn:
    return request.app.state.now_fn


def change_feed(request: Request) -> ChangeFeed:
    return request.app.state.feed


def presence_registry(request: Request) -> PresenceRegistry:
    return request.app.state.presence


def current_member(
    org_id: str,
    principal: Principal = Depends(current_principal),
    session: Session = Depends(db_session),
    clock: NowFn = Depends(now_fn),
) -> Optional[Member]:
    """The caller's member record in ``org_id``; None means every check denies."""
    service = MemberService(session, now_fn=clock)
    service.get_organization(org_id)
    return service.link_principal(org_id, principal)
