"""Role policy: the static role -> action table and nurse elevation."""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Union


class Role(str, Enum):
    COORDINATOR = "coordinator"
    NURSE = "nurse"
    CAREGIVER = "caregiver"


class Action(str, Enum):
    MANAGE_TEAM = "manage_team"
    CREATE_PATIENT = "create_patient"
    DELETE_PATIENT = "delete_patient"
    EDIT_PATIENT = "edit_patient"
    VIEW_PATIENTS = "view_patients"
    CREATE_TASK = "create_task"
    DELETE_TASK = "delete_task"
    COMPLETE_TASK = "complete_task"
    CREATE_MEDICATION = "create_medication"
    DELETE_MEDICATION = "delete_medication"
    COMPLETE_MEDICATION = "complete_medication"
    CREATE_SHIFT = "create_shift"
    DELETE_SHIFT = "delete_shift"
    VIEW_SHIFTS = "view_shifts"
    VIEW_CALENDAR = "view_calendar"


ROLE_PERMISSIONS: Dict[Role, FrozenSet[Action]] = {
    Role.COORDINATOR: frozenset(Action),
    Role.NURSE: frozenset(
        {
            Action.VIEW_PATIENTS,
            Action.CREATE_TASK,
            Action.DELETE_TASK,
            Action.COMPLETE_TASK,
            Action.CREATE_MEDICATION,
            Action.DELETE_MEDICATION,
            Action.COMPLETE_MEDICATION,
            Action.VIEW_SHIFTS,
            Action.VIEW_CALENDAR,
        }
    ),
    Role.CAREGIVER: frozenset(
        {
            Action.VIEW_PATIENTS,
            Action.COMPLETE_TASK,
            Action.COMPLETE_MEDICATION,
            Action.VIEW_SHIFTS,
            Action.VIEW_CALENDAR,
        }
    ),
}

# Flags handed to the UI, one per gated affordance.
BUNDLE_ACTIONS: Dict[str, Action] = {
    "can_manage_team": Action.MANAGE_TEAM,
    "can_create_patient": Action.CREATE_PATIENT,
    "can_delete_patient": Action.DELETE_PATIENT,
    "can_edit_patient": Action.EDIT_PATIENT,
    "can_view_patients": Action.VIEW_PATIENTS,
    "can_create_task": Action.CREATE_TASK,
    "can_delete_task": Action.DELETE_TASK,
    "can_create_medication": Action.CREATE_MEDICATION,
    "can_delete_medication": Action.DELETE_MEDICATION,
    "can_create_shift": Action.CREATE_SHIFT,
    "can_delete_shift": Action.DELETE_SHIFT,
    "can_view_shifts": Action.VIEW_SHIFTS,
    "can_view_calendar": Action.VIEW_CALENDAR,
}

RoleLike = Union[Role, str, None]


def coerce_role(role: RoleLike) -> Optional[Role]:
    """Return the Role for ``role`` or None when it is missing or unknown."""
    if not role:
        return None
    try:
        return Role(role)
    except ValueError:
        return None


def can_role(role: RoleLike, action: Union[Action, str]) -> bool:
    resolved = coerce_role(role)
    if resolved is None:
        return False
    try:
        return Action(action) in ROLE_PERMISSIONS[resolved]
    except ValueError:
        return False


def effective_role(role: RoleLike, can_elevate: bool = False) -> Optional[Role]:
    """Resolve the role permission checks run against.

    A nurse flagged ``can_elevate`` is treated as a coordinator. Every other
    role is returned unchanged, so the displayed role never changes.
    """
    resolved = coerce_role(role)
    if resolved is Role.NURSE and can_elevate is True:
        return Role.COORDINATOR
    return resolved


@dataclass
class PolicyContext:
    subject_id: Optional[str]
    role: RoleLike
    can_elevate: bool = False

    @property
    def effective_role(self) -> Optional[Role]:
        return effective_role(self.role, self.can_elevate)


def is_allowed(context: PolicyContext, action: Union[Action, str]) -> bool:
    return can_role(context.effective_role, action)


def permission_bundle(role: RoleLike, can_elevate: bool = False) -> Dict[str, bool]:
    resolved = effective_role(role, can_elevate)
    return {flag: can_role(resolved, action) for flag, action in BUNDLE_ACTIONS.items()}
