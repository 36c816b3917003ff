"""Organization bootstrap, team management and permission lookups."""
import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from ..deps import current_member, current_principal, db_session, now_fn, presence_registry
from ..domain.clock import NowFn
from ..domain.models import Member
from ..domain.policy import effective_role, permission_bundle
from ..domain.schemas import (
    CompletionCheck,
    MemberCreate,
    MemberOut,
    MemberUpdate,
    OrganizationCreate,
    OrganizationOut,
    PermissionBundle,
    Principal,
)
from ..services.authz import can_complete_for_patient
from ..services.members import MemberService
from ..services.shifts import PresenceRegistry, ShiftService

router = APIRouter()


def _require_member(member: Optional[Member]) -> Member:
    if member is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return member


@router.post("/", response_model=OrganizationOut, status_code=status.HTTP_201_CREATED)
def create_organization(
    payload: OrganizationCreate,
    principal: Principal = Depends(current_principal),
    session: Session = Depends(db_session),
    clock: NowFn = Depends(now_fn),
):
    org, _ = MemberService(session, now_fn=clock).bootstrap_organization(principal, payload.name)
    return org


@router.get("/{org_id}", response_model=OrganizationOut)
def get_organization(
    org_id: str,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
):
    _require_member(member)
    return MemberService(session).get_organization(org_id)


@router.get("/{org_id}/me", response_model=MemberOut)
def whoami(member: Optional[Member] = Depends(current_member)):
    return _require_member(member)


@router.get("/{org_id}/permissions", response_model=PermissionBundle)
def my_permissions(member: Optional[Member] = Depends(current_member)):
    member = _require_member(member)
    return PermissionBundle(
        member_id=member.id,
        role=member.role,
        effective_role=effective_role(member.role, member.can_elevate),
        flags=permission_bundle(member.role, member.can_elevate),
    )


@router.get("/{org_id}/permissions/complete", response_model=CompletionCheck)
def can_complete(
    org_id: str,
    patient_id: str = Query(...),
    date: Optional[dt.date] = Query(None),
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
    registry: PresenceRegistry = Depends(presence_registry),
):
    day = date or dt.date.today()
    allowed = False
    if member is not None:
        allowed = can_complete_for_patient(
            effective_role(member.role, member.can_elevate),
            member.id,
            patient_id,
            ShiftService(session).presence_index(org_id, registry),
            day,
        )
    return CompletionCheck(patient_id=patient_id, date=day, allowed=allowed)


@router.get("/{org_id}/members", response_model=List[MemberOut])
def list_members(
    org_id: str,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
):
    _require_member(member)
    return MemberService(session).list_members(org_id)


@router.post("/{org_id}/members", response_model=MemberOut, status_code=status.HTTP_201_CREATED)
def create_member(
    org_id: str,
    payload: MemberCreate,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
    clock: NowFn = Depends(now_fn),
):
    return MemberService(session, now_fn=clock).create_member(org_id, member, payload)


@router.patch("/{org_id}/members/{member_id}", response_model=MemberOut)
def update_member(
    org_id: str,
    member_id: str,
    payload: MemberUpdate,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
    clock: NowFn = Depends(now_fn),
):
    return MemberService(session, now_fn=clock).update_member(org_id, member, member_id, payload)


@router.delete("/{org_id}/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    org_id: str,
    member_id: str,
    hard: bool = Query(False, description="hard delete instead of deactivating"),
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
    clock: NowFn = Depends(now_fn),
):
    service = MemberService(session, now_fn=clock)
    if hard:
        service.delete_member(org_id, member, member_id)
    else:
        service.deactivate_member(org_id, member, member_id)
