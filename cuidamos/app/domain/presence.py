"""Shift presence: is a caregiver rostered with a patient on a given day."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Iterable, Optional, Set, Tuple, Union

from .clock import today

logger = logging.getLogger(__name__)

DayLike = Union[date, str, None]
PresenceKey = Tuple[str, str, date]


def as_day(value: DayLike) -> Optional[date]:
    """Normalize a calendar day given as ``date`` or ``YYYY-MM-DD``.

    Returns None for anything unparseable so callers fail closed.
    """
    if value is None:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        return None


def _key(shift: Any) -> Optional[PresenceKey]:
    day = as_day(shift.date)
    if day is None or not shift.caregiver_id or not shift.patient_id:
        return None
    return (shift.caregiver_id, shift.patient_id, day)


def is_scheduled(
    caregiver_id: Optional[str],
    patient_id: Optional[str],
    shifts: Iterable[Any],
    day: DayLike = None,
) -> bool:
    """True iff some shift matches caregiver, patient and day exactly.

    ``shifts`` is either an iterable of shift records or a ``PresenceIndex``.

    The match is on the shift's start date only; an overnight shift does not
    count as presence on the following day.
    """
    if isinstance(shifts, PresenceIndex):
        return shifts.is_scheduled(caregiver_id, patient_id, day)
    if not caregiver_id or not patient_id:
        return False
    target = as_day(day) if day is not None else today()
    if target is None:
        return False
    wanted = (caregiver_id, patient_id, target)
    return any(_key(shift) == wanted for shift in shifts)


class PresenceIndex:
    """Set of (caregiver, patient, day) triples for repeated O(1) lookups."""

    def __init__(self, shifts: Iterable[Any] = ()) -> None:
        self._keys: Set[PresenceKey] = set()
        self.replace(shifts)

    def replace(self, shifts: Iterable[Any]) -> None:
        keys = set()
        for shift in shifts:
            key = _key(shift)
            if key is not None:
                keys.add(key)
        self._keys = keys

    def is_scheduled(
        self,
        caregiver_id: Optional[str],
        patient_id: Optional[str],
        day: DayLike = None,
    ) -> bool:
        if not caregiver_id or not patient_id:
            return False
        target = as_day(day) if day is not None else today()
        if target is None:
            return False
        return (caregiver_id, patient_id, target) in self._keys

    def bind(self, feed, organization_id: str) -> Callable[[], None]:
        """Follow the organization's shift snapshots published on ``feed``."""

        def _on_snapshot(shifts):
            self.replace(shifts)
            logger.debug("presence index refreshed for %s: %d keys", organization_id, len(self))

        return feed.subscribe("shifts", organization_id, _on_snapshot)

    def __len__(self) -> int:
        return len(self._keys)
