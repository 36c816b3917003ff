from datetime import date

from sqlmodel import Session, SQLModel, create_engine, select

from cuidamos.app.domain.models import Member, Patient, Shift
from cuidamos.app.domain.policy import Role
from cuidamos.app.domain.schemas import ShiftCreate
from cuidamos.app.infra.feed import ChangeFeed
from cuidamos.app.services.authz import can_complete_for_patient
from cuidamos.app.services.shifts import PresenceRegistry, ShiftService


def _session_factory():
    engine = create_engine("sqlite://", echo=False)
    SQLModel.metadata.create_all(engine)
    return Session(engine)


def _seed(session):
    coordinator = Member(organization_id="org-1", email="coord@cuidamos.org", role=Role.COORDINATOR)
    carla = Member(
        organization_id="org-1", email="carla@cuidamos.org", name="Carla", role=Role.CAREGIVER, color="#f97316"
    )
    rosa = Patient(organization_id="org-1", name="Rosa")
    session.add_all([coordinator, carla, rosa])
    session.commit()
    return coordinator, carla.id, rosa.id


def _shift(carla_id, rosa_id, day):
    return ShiftCreate(patient_id=rosa_id, caregiver_id=carla_id, date=day, start_time="08:00", end_time="16:00")


def test_presence_index_only_sees_committed_shifts():
    session = _session_factory()
    with session:
        coordinator, carla_id, rosa_id = _seed(session)
        feed = ChangeFeed()
        registry = PresenceRegistry(feed)
        service = ShiftService(session, feed=feed)
        index = service.presence_index("org-1", registry)
        assert len(index) == 0

        first = service.create_shift("org-1", coordinator, _shift(carla_id, rosa_id, date(2024, 6, 1)))
        assert first.caregiver_color == "#f97316"
        assert not index.is_scheduled(carla_id, rosa_id, date(2024, 6, 1))
        session.commit()
        assert index.is_scheduled(carla_id, rosa_id, date(2024, 6, 1))

        service.create_shift("org-1", coordinator, _shift(carla_id, rosa_id, date(2024, 6, 2)))
        session.rollback()
        assert not index.is_scheduled(carla_id, rosa_id, date(2024, 6, 2))
        assert len(session.exec(select(Shift)).all()) == 1
        assert can_complete_for_patient(Role.CAREGIVER, carla_id, rosa_id, index, "2024-06-01") is True
        assert can_complete_for_patient(Role.CAREGIVER, carla_id, rosa_id, index, "2024-06-02") is False

        service.delete_shift("org-1", coordinator, first.id)
        session.commit()
        assert len(index) == 0


def test_registry_reuses_one_index_per_organization():
    session = _session_factory()
    with session:
        _seed(session)
        registry = PresenceRegistry(ChangeFeed())
        service = ShiftService(session)
        assert service.presence_index("org-1", registry) is service.presence_index("org-1", registry)
        assert registry.feed.subscriber_count("shifts", "org-1") == 1
