from datetime import datetime, timedelta

from app.models.job_check_in import JobCheckIn
from app.services.check_in_recorder import (
    CHECKED_IN,
    CHECKED_OUT,
    NOT_CHECKED_IN,
    check_in_status,
    elapsed_on_site,
    job_duration,
)

NINE = datetime(2026, 3, 2, 9, 0, 0)


def _row(id_, kind, at):
    return JobCheckIn(id=id_, type=kind, checked_at=at)


def test_no_events_is_not_checked_in():
    assert check_in_status([]) == NOT_CHECKED_IN
    assert elapsed_on_site([], now=NINE) == 0
    assert job_duration([]) is None


def test_closed_visit_counts_full_duration():
    rows = [
        _row(1, "check_in", NINE),
        _row(2, "check_out", NINE + timedelta(minutes=130)),
    ]
    assert check_in_status(rows) == CHECKED_OUT
    assert elapsed_on_site(rows, now=NINE + timedelta(hours=8)) == 130
    assert job_duration(rows) == 130


def test_open_visit_counts_up_to_now():
    rows = [_row(1, "check_in", NINE)]
    assert check_in_status(rows) == CHECKED_IN
    assert elapsed_on_site(rows, now=NINE + timedelta(minutes=45, seconds=59)) == 45
    assert job_duration(rows) is None


def test_partial_minutes_are_floored():
    rows = [
        _row(1, "check_in", NINE),
        _row(2, "check_out", NINE + timedelta(minutes=12, seconds=30)),
    ]
    assert elapsed_on_site(rows, now=NINE + timedelta(hours=1)) == 12
    assert job_duration(rows) == 12


def test_check_out_without_check_in_adds_nothing():
    rows = [_row(1, "check_out", NINE)]
    assert check_in_status(rows) == CHECKED_OUT
    assert elapsed_on_site(rows, now=NINE + timedelta(hours=1)) == 0
    assert job_duration(rows) is None
