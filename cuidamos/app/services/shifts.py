"""Shift roster: creation, deletion and the live presence snapshot."""
from __future__ import annotations

import datetime as dt
import logging
from threading import Lock
from typing import Any, Callable, Dict, Iterable, Optional

from sqlmodel import Session, select

from ..domain.clock import NowFn, utcnow
from ..domain.errors import NotFound
from ..domain.models import Member, Patient, Shift
from ..domain.policy import Action, Role
from ..domain.presence import PresenceIndex
from ..domain.schemas import ShiftCreate, ShiftOut
from ..infra.db import storage_errors
from ..infra.feed import ChangeFeed, publish_on_commit
from .authz import AccessEvaluator, context_for

logger = logging.getLogger(__name__)

SHIFTS = "shifts"


class PresenceRegistry:
    """One presence index per organization, each following the change feed.

    Indexes are built lazily from the stored roster and then replaced by every
    committed shift snapshot. Only shift writes made through this process's
    feed are seen, so write paths re-read the roster instead.
    """

    def __init__(self, feed: ChangeFeed) -> None:
        self.feed = feed
        self._indexes: Dict[str, PresenceIndex] = {}
        self._lock = Lock()

    def index_for(self, organization_id: str, load: Callable[[], Iterable[Any]]) -> PresenceIndex:
        with self._lock:
            index = self._indexes.get(organization_id)
            if index is None:
                index = PresenceIndex()
                index.bind(self.feed, organization_id)
                index.replace(load())
                self._indexes[organization_id] = index
            return index


class ShiftService:
    def __init__(
        self,
        session: Session,
        feed: Optional[ChangeFeed] = None,
        now_fn: NowFn = utcnow,
    ) -> None:
        self.session = session
        self.feed = feed
        self.now_fn = now_fn

    def roster(self, organization_id: str) -> list[Shift]:
        """All shifts of the organization, unfiltered, for presence checks."""
        stmt = select(Shift).where(Shift.organization_id == organization_id)
        return list(self.session.exec(stmt).all())

    def presence_index(self, organization_id: str, registry: PresenceRegistry) -> PresenceIndex:
        return registry.index_for(organization_id, lambda: self.roster(organization_id))

    def list_shifts(
        self,
        organization_id: str,
        actor: Optional[Member],
        start: Optional[dt.date] = None,
        end: Optional[dt.date] = None,
        caregiver_id: Optional[str] = None,
    ) -> list[Shift]:
        AccessEvaluator(self.session).enforce(
            context_for(actor), Action.VIEW_SHIFTS, f"organizations/{organization_id}/shifts"
        )
        stmt = select(Shift).where(Shift.organization_id == organization_id)
        if start is not None:
            stmt = stmt.where(Shift.date >= start)
        if end is not None:
            stmt = stmt.where(Shift.date <= end)
        if caregiver_id:
            stmt = stmt.where(Shift.caregiver_id == caregiver_id)
        stmt = stmt.order_by(Shift.date, Shift.start_time)
        return list(self.session.exec(stmt).all())

    def create_shift(self, organization_id: str, actor: Optional[Member], data: ShiftCreate) -> Shift:
        AccessEvaluator(self.session).enforce(
            context_for(actor), Action.CREATE_SHIFT, f"organizations/{organization_id}/shifts"
        )
        patient = self.session.get(Patient, data.patient_id)
        if not patient or patient.organization_id != organization_id:
            raise NotFound("Patient not found")
        caregiver = self.session.get(Member, data.caregiver_id)
        if (
            not caregiver
            or caregiver.organization_id != organization_id
            or not caregiver.active
            or caregiver.role != Role.CAREGIVER
        ):
            raise NotFound("Caregiver not found")

        shift = Shift(
            organization_id=organization_id,
            patient_id=patient.id,
            patient_name=patient.name,
            caregiver_id=caregiver.id,
            caregiver_name=caregiver.name,
            caregiver_color=caregiver.color,
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            created_by=actor.id if actor else None,
            created_at=self.now_fn(),
        )
        with storage_errors("create shift"):
            self.session.add(shift)
            self.session.flush()
            self.session.refresh(shift)
        self._publish(organization_id)
        return shift

    def delete_shift(self, organization_id: str, actor: Optional[Member], shift_id: str) -> None:
        AccessEvaluator(self.session).enforce(
            context_for(actor), Action.DELETE_SHIFT, f"organizations/{organization_id}/shifts/{shift_id}"
        )
        shift = self.session.get(Shift, shift_id)
        if not shift or shift.organization_id != organization_id:
            raise NotFound("Shift not found")
        with storage_errors("delete shift"):
            self.session.delete(shift)
            self.session.flush()
        self._publish(organization_id)

    def _publish(self, organization_id: str) -> None:
        if self.feed is None:
            return
        snapshot = [ShiftOut.model_validate(shift) for shift in self.roster(organization_id)]
        publish_on_commit(self.session, self.feed, SHIFTS, organization_id, snapshot)
        logger.debug("queued shift snapshot for %s until commit", organization_id)
