"""Authorization engine: role policy plus shift presence, with access logging."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Union

from fastapi import HTTPException, status
from sqlmodel import Session

from ..domain.models import AccessLog, Member
from ..domain.policy import (
    Action,
    PolicyContext,
    Role,
    RoleLike,
    coerce_role,
    is_allowed,
)
from ..domain.presence import DayLike, is_scheduled

logger = logging.getLogger(__name__)

COMPLETION_ACTIONS = {Action.COMPLETE_TASK, Action.COMPLETE_MEDICATION}


def can_complete_for_patient(
    role: RoleLike,
    member_id: Optional[str],
    patient_id: Optional[str],
    shifts: Iterable[Any],
    day: DayLike = None,
) -> bool:
    """Decide whether ``member_id`` may mark care work done for ``patient_id``.

    ``role`` must already be the effective role. Clinical staff may complete
    for any patient; a caregiver only for a patient they are rostered with on
    ``day`` (default today). Missing context denies.
    """
    resolved = coerce_role(role)
    if resolved is None or not member_id or not patient_id:
        return False
    if resolved in (Role.COORDINATOR, Role.NURSE):
        return True
    if resolved is Role.CAREGIVER:
        return is_scheduled(member_id, patient_id, shifts, day)
    return False


def context_for(member: Optional[Member]) -> PolicyContext:
    """Policy context of a member; inactive or missing members get no role."""
    if member is None or not member.active:
        return PolicyContext(subject_id=None, role=None)
    return PolicyContext(subject_id=member.id, role=member.role, can_elevate=member.can_elevate)


class AccessEvaluator:
    """Evaluates and records authorization decisions.

    ``check`` returns the decision; ``enforce`` raises 403 for the HTTP layer.
    Denials are an expected outcome and are only logged at debug level.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def check(
        self,
        context: PolicyContext,
        action: Union[Action, str],
        resource: str,
    ) -> bool:
        return self._record(context, action, resource, is_allowed(context, action))

    def check_completion(
        self,
        context: PolicyContext,
        patient_id: str,
        shifts: Iterable[Any],
        day: DayLike = None,
        action: Action = Action.COMPLETE_TASK,
        resource: Optional[str] = None,
    ) -> bool:
        allowed = (
            action in COMPLETION_ACTIONS
            and is_allowed(context, action)
            and can_complete_for_patient(
                context.effective_role, context.subject_id, patient_id, shifts, day
            )
        )
        return self._record(context, action, resource or patient_id, allowed)

    def enforce(self, context: PolicyContext, action: Union[Action, str], resource: str) -> None:
        if not self.check(context, action, resource):
            raise self._denied()

    def enforce_completion(
        self,
        context: PolicyContext,
        patient_id: str,
        shifts: Iterable[Any],
        day: DayLike = None,
        action: Action = Action.COMPLETE_TASK,
        resource: Optional[str] = None,
    ) -> None:
        if not self.check_completion(context, patient_id, shifts, day, action, resource):
            raise self._denied()

    def _record(
        self,
        context: PolicyContext,
        action: Union[Action, str],
        resource: str,
        allowed: bool,
    ) -> bool:
        role = context.effective_role
        action_name = action.value if isinstance(action, Action) else str(action)
        self.session.add(
            AccessLog(
                actor_id=context.subject_id or "anonymous",
                role=role.value if role else "none",
                action=action_name,
                resource=resource,
                allowed=allowed,
            )
        )
        if not allowed:
            logger.debug("denied %s on %s for %s", action_name, resource, context.subject_id)
        return allowed

    def _denied(self) -> HTTPException:
        # callers enforce before writing; commit so the audit row outlives the 403 rollback
        self.session.commit()
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
