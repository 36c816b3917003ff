from datetime import date

from cuidamos.app.domain.models import Shift
from cuidamos.app.domain.presence import PresenceIndex, as_day, is_scheduled
from cuidamos.app.infra.feed import ChangeFeed


def _shift(caregiver_id: str, patient_id: str, day) -> Shift:
    return Shift(
        organization_id="org-1",
        caregiver_id=caregiver_id,
        patient_id=patient_id,
        date=day,
        start_time="08:00",
        end_time="16:00",
    )


def test_exact_triple_matches():
    shifts = [_shift("m1", "p7", "2024-06-01")]
    assert is_scheduled("m1", "p7", shifts, "2024-06-01")
    assert is_scheduled("m1", "p7", shifts, date(2024, 6, 1))


def test_adjacent_dates_do_not_match():
    shifts = [_shift("m1", "p7", date(2024, 6, 1))]
    assert not is_scheduled("m1", "p7", shifts, "2024-05-31")
    assert not is_scheduled("m1", "p7", shifts, "2024-06-02")


def test_other_caregiver_or_patient_do_not_match():
    shifts = [_shift("m1", "p7", "2024-06-01")]
    assert not is_scheduled("m2", "p7", shifts, "2024-06-01")
    assert not is_scheduled("m1", "p8", shifts, "2024-06-01")


def test_overnight_shift_only_counts_on_start_date():
    overnight = _shift("m1", "p7", "2024-06-01")
    overnight.start_time, overnight.end_time = "22:00", "06:00"
    assert is_scheduled("m1", "p7", [overnight], "2024-06-01")
    assert not is_scheduled("m1", "p7", [overnight], "2024-06-02")


def test_defaults_to_today():
    assert is_scheduled("m1", "p7", [_shift("m1", "p7", date.today())])


def test_missing_or_bad_inputs_fail_closed():
    shifts = [_shift("m1", "p7", "2024-06-01")]
    assert not is_scheduled(None, "p7", shifts, "2024-06-01")
    assert not is_scheduled("m1", None, shifts, "2024-06-01")
    assert not is_scheduled("m1", "p7", shifts, "not-a-date")
    assert not is_scheduled("m1", "p7", [], "2024-06-01")
    assert as_day("2024-13-01") is None


def test_index_agrees_with_scan():
    shifts = [
        _shift("m1", "p7", "2024-06-01"),
        _shift("m1", "p8", "2024-06-02"),
        _shift("m2", "p7", "2024-06-02"),
    ]
    index = PresenceIndex(shifts)
    assert len(index) == 3
    for caregiver in ("m1", "m2"):
        for patient in ("p7", "p8"):
            for day in ("2024-06-01", "2024-06-02", "2024-06-03"):
                assert index.is_scheduled(caregiver, patient, day) == is_scheduled(
                    caregiver, patient, shifts, day
                )


def test_index_follows_feed_snapshots():
    feed = ChangeFeed()
    index = PresenceIndex()
    unsubscribe = index.bind(feed, "org-1")

    feed.publish("shifts", "org-1", [_shift("m1", "p7", "2024-06-01")])
    assert index.is_scheduled("m1", "p7", "2024-06-01")

    feed.publish("shifts", "org-2", [])
    assert index.is_scheduled("m1", "p7", "2024-06-01")

    feed.publish("shifts", "org-1", [])
    assert not index.is_scheduled("m1", "p7", "2024-06-01")

    unsubscribe()
    feed.publish("shifts", "org-1", [_shift("m1", "p7", "2024-06-01")])
    assert not index.is_scheduled("m1", "p7", "2024-06-01")
