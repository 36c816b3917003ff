"""Shift roster endpoints."""
import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from ..deps import change_feed, current_member, db_session, now_fn
from ..domain.clock import NowFn
from ..domain.models import Member
from ..domain.schemas import ShiftCreate, ShiftOut
from ..infra.feed import ChangeFeed
from ..services.shifts import ShiftService

router = APIRouter()


@router.get("/{org_id}/shifts", response_model=List[ShiftOut])
def list_shifts(
    org_id: str,
    start: Optional[dt.date] = Query(None),
    end: Optional[dt.date] = Query(None),
    caregiver_id: Optional[str] = Query(None),
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
):
    return ShiftService(session).list_shifts(org_id, member, start, end, caregiver_id)


@router.post("/{org_id}/shifts", response_model=ShiftOut, status_code=status.HTTP_201_CREATED)
def create_shift(
    org_id: str,
    payload: ShiftCreate,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
    feed: ChangeFeed = Depends(change_feed),
    clock: NowFn = Depends(now_fn),
):
    return ShiftService(session, feed=feed, now_fn=clock).create_shift(org_id, member, payload)


@router.delete("/{org_id}/shifts/{shift_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_shift(
    org_id: str,
    shift_id: str,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
    feed: ChangeFeed = Depends(change_feed),
):
    ShiftService(session, feed=feed).delete_shift(org_id, member, shift_id)
