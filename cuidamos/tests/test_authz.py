import pytest
from fastapi import HTTPException
from sqlmodel import Session, SQLModel, create_engine, select

from cuidamos.app.domain.models import AccessLog, Member, Shift
from cuidamos.app.domain.policy import Action, PolicyContext, Role
from cuidamos.app.services.authz import AccessEvaluator, can_complete_for_patient, context_for


def _session_factory():
    engine = create_engine("sqlite://", echo=False)
    SQLModel.metadata.create_all(engine)
    return Session(engine)


def _shift(caregiver_id: str, patient_id: str, day: str) -> Shift:
    return Shift(
        organization_id="org-1",
        caregiver_id=caregiver_id,
        patient_id=patient_id,
        date=day,
        start_time="08:00",
        end_time="20:00",
    )


ROSTER = [_shift("m1", "p7", "2024-06-01")]


def test_caregiver_on_shift_can_complete_that_day_only():
    assert can_complete_for_patient(Role.CAREGIVER, "m1", "p7", ROSTER, "2024-06-01") is True
    assert can_complete_for_patient(Role.CAREGIVER, "m1", "p7", ROSTER, "2024-06-02") is False


def test_caregiver_scheduled_other_days_is_denied():
    roster = [_shift("m1", "p7", "2024-06-01"), _shift("m1", "p7", "2024-06-03")]
    assert can_complete_for_patient(Role.CAREGIVER, "m1", "p7", roster, "2024-06-02") is False


def test_caregiver_for_unassigned_patient_is_denied():
    assert can_complete_for_patient(Role.CAREGIVER, "m1", "p8", ROSTER, "2024-06-01") is False


@pytest.mark.parametrize("role", [Role.COORDINATOR, Role.NURSE])
def test_clinical_staff_ignore_roster(role):
    assert can_complete_for_patient(role, "m9", "p7", [], "2024-06-02") is True
    assert can_complete_for_patient(role, "m9", "p7", ROSTER, "1999-01-01") is True


@pytest.mark.parametrize(
    "role, member_id, patient_id",
    [
        (None, "m1", "p7"),
        (Role.CAREGIVER, None, "p7"),
        (Role.COORDINATOR, None, "p7"),
        (Role.CAREGIVER, "m1", None),
        ("superuser", "m1", "p7"),
    ],
)
def test_missing_context_denies(role, member_id, patient_id):
    assert can_complete_for_patient(role, member_id, patient_id, ROSTER, "2024-06-01") is False


def test_context_for_inactive_member_has_no_role():
    member = Member(id="m1", organization_id="org-1", email="a@b.c", role=Role.COORDINATOR, active=False)
    context = context_for(member)
    assert context.role is None
    assert context_for(None).effective_role is None


def test_evaluator_records_decisions():
    session = _session_factory()
    with session:
        evaluator = AccessEvaluator(session)
        caregiver = PolicyContext(subject_id="m1", role=Role.CAREGIVER)
        assert evaluator.check(caregiver, Action.VIEW_PATIENTS, "organizations/org-1/patients")
        assert not evaluator.check(caregiver, Action.CREATE_PATIENT, "organizations/org-1/patients")
        session.commit()

        logs = session.exec(select(AccessLog).order_by(AccessLog.allowed)).all()
        assert [(log.action, log.allowed) for log in logs] == [
            ("create_patient", False),
            ("view_patients", True),
        ]


def test_enforce_raises_and_keeps_the_audit_row():
    session = _session_factory()
    with session:
        evaluator = AccessEvaluator(session)
        with pytest.raises(HTTPException) as exc:
            evaluator.enforce(PolicyContext(subject_id=None, role=None), Action.VIEW_SHIFTS, "shifts")
        assert exc.value.status_code == 403
        session.rollback()

        denied = session.exec(select(AccessLog).where(AccessLog.allowed == False)).all()  # noqa: E712
        assert len(denied) == 1
        assert denied[0].actor_id == "anonymous"


def test_completion_check_combines_role_and_roster():
    session = _session_factory()
    with session:
        evaluator = AccessEvaluator(session)
        caregiver = PolicyContext(subject_id="m1", role=Role.CAREGIVER)
        assert evaluator.check_completion(caregiver, "p7", ROSTER, "2024-06-01")
        assert not evaluator.check_completion(caregiver, "p7", ROSTER, "2024-06-02")
        assert evaluator.check_completion(
            caregiver, "p7", ROSTER, "2024-06-01", action=Action.COMPLETE_MEDICATION
        )
        # only completion actions go through the roster path
        assert not evaluator.check_completion(
            caregiver, "p7", ROSTER, "2024-06-01", action=Action.CREATE_TASK
        )
