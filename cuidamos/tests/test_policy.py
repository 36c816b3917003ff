import pytest

from cuidamos.app.domain.policy import (
    Action,
    PolicyContext,
    Role,
    can_role,
    effective_role,
    is_allowed,
    permission_bundle,
)

EXPECTED = {
    Role.COORDINATOR: set(Action),
    Role.NURSE: {
        Action.VIEW_PATIENTS,
        Action.CREATE_TASK,
        Action.DELETE_TASK,
        Action.COMPLETE_TASK,
        Action.CREATE_MEDICATION,
        Action.DELETE_MEDICATION,
        Action.COMPLETE_MEDICATION,
        Action.VIEW_SHIFTS,
        Action.VIEW_CALENDAR,
    },
    Role.CAREGIVER: {
        Action.VIEW_PATIENTS,
        Action.COMPLETE_TASK,
        Action.COMPLETE_MEDICATION,
        Action.VIEW_SHIFTS,
        Action.VIEW_CALENDAR,
    },
}


@pytest.mark.parametrize("action", list(Action))
@pytest.mark.parametrize("role", list(Role))
def test_role_table_matches_every_pair(role, action):
    assert can_role(role, action) is (action in EXPECTED[role])


@pytest.mark.parametrize("action", list(Action))
def test_missing_role_always_denies(action):
    assert can_role(None, action) is False
    assert can_role("", action) is False


def test_plain_strings_and_unknown_values():
    assert can_role("nurse", "create_task") is True
    assert can_role("caregiver", "create_task") is False
    assert can_role("admin", "view_patients") is False
    assert can_role(Role.COORDINATOR, "launch_rockets") is False


def test_effective_role_elevation():
    assert effective_role(Role.NURSE, True) == Role.COORDINATOR
    assert effective_role(Role.NURSE, False) == Role.NURSE
    for flag in (True, False):
        assert effective_role(Role.COORDINATOR, flag) == Role.COORDINATOR
        assert effective_role(Role.CAREGIVER, flag) == Role.CAREGIVER
    assert effective_role(None, True) is None


def test_elevation_requires_a_real_true():
    assert effective_role(Role.NURSE, "yes") == Role.NURSE
    assert effective_role(Role.NURSE, 1) == Role.NURSE


def test_policy_context_uses_effective_role():
    plain = PolicyContext(subject_id="m1", role=Role.NURSE)
    elevated = PolicyContext(subject_id="m2", role=Role.NURSE, can_elevate=True)
    assert not is_allowed(plain, Action.MANAGE_TEAM)
    assert is_allowed(elevated, Action.MANAGE_TEAM)
    assert is_allowed(elevated, Action.CREATE_SHIFT)


def test_permission_bundle_flags():
    caregiver = permission_bundle(Role.CAREGIVER)
    assert caregiver["can_view_patients"] is True
    assert caregiver["can_create_task"] is False
    assert caregiver["can_manage_team"] is False

    elevated = permission_bundle(Role.NURSE, can_elevate=True)
    assert all(elevated.values())

    assert not any(permission_bundle(None).values())
