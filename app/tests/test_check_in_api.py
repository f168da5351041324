from app.database import SessionLocal
from app.models.event_outbox import EventOutbox
from app.models.invoice import Invoice
from app.models.job import Job
from app.models.job_check_in import JobCheckIn
from app.models.job_event import JobEvent

SITE = {"site_latitude": 51.5000, "site_longitude": -0.1278}
ON_SITE = {"latitude": 51.5005, "longitude": -0.1278, "locationAccuracy": 12.5}


def _events(company_id: int):
    db = SessionLocal()
    try:
        return db.query(EventOutbox).filter(EventOutbox.company_id == company_id).order_by(EventOutbox.id).all()
    finally:
        db.close()


def test_check_in_on_site_starts_job_and_notifies(client, staffed_job, sent_emails):
    s = staffed_job(**SITE)

    r = client.post(
        f"/jobs/{s.job.id}/check-in",
        json={"type": "check_in", **ON_SITE, "deviceType": "mobile"},
        headers=s.headers[0],
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["check_in"]["type"] == "check_in"
    assert body["check_in"]["is_within_range"] is True
    assert body["check_in"]["location_accuracy"] == 12.5
    assert body["check_in"]["device_type"] == "mobile"
    assert 50 < body["check_in"]["distance_from_job_site"] < 60
    assert body["job"]["status"] == "in_progress"
    assert body["job"]["started_at"] is not None
    assert body["job_completed"] is False

    events = _events(s.company.id)
    assert sorted(e.event_type for e in events) == ["EMPLOYEE_CHECKED_IN", "JOB_STARTED"]
    assert all(e.processed for e in events)

    subjects = [m["subject"] for m in sent_emails]
    assert f"Your cleaning has started: {s.job.title}" in subjects
    assert any(m["to"] == "carla@example.test" for m in sent_emails)
    assert any("checked in" in subject for subject in subjects)


def test_check_in_far_from_site_is_recorded_out_of_range(client, staffed_job):
    s = staffed_job(**SITE)

    r = client.post(
        f"/jobs/{s.job.id}/check-in",
        json={"type": "check_in", "latitude": 51.6, "longitude": -0.1278},
        headers=s.headers[0],
    )
    assert r.status_code == 200, r.text
    assert r.json()["check_in"]["is_within_range"] is False
    assert r.json()["check_in"]["distance_from_job_site"] > 10_000


def test_check_in_without_location_is_not_blocked(client, staffed_job):
    s = staffed_job(**SITE)

    r = client.post(f"/jobs/{s.job.id}/check-in", json={"type": "check_in"}, headers=s.headers[0])
    assert r.status_code == 200, r.text
    row = r.json()["check_in"]
    assert row["captured_address"] == "Location unavailable"
    assert row["is_within_range"] is False
    assert row["distance_from_job_site"] is None
    assert row["latitude"] == 0.0


def test_second_check_in_is_rejected(client, staffed_job):
    s = staffed_job()

    first = client.post(f"/jobs/{s.job.id}/check-in", json={"type": "check_in", **ON_SITE}, headers=s.headers[0])
    assert first.status_code == 200, first.text

    second = client.post(f"/jobs/{s.job.id}/check-in", json={"type": "check_in", **ON_SITE}, headers=s.headers[0])
    assert second.status_code == 400
    assert "already checked in" in second.json()["detail"]

    db = SessionLocal()
    try:
        count = db.query(JobCheckIn).filter(JobCheckIn.job_id == s.job.id, JobCheckIn.type == "check_in").count()
        assert count == 1
    finally:
        db.close()


def test_check_out_requires_check_in(client, staffed_job):
    s = staffed_job()

    r = client.post(f"/jobs/{s.job.id}/check-in", json={"type": "check_out", **ON_SITE}, headers=s.headers[0])
    assert r.status_code == 400
    assert r.json()["detail"] == "You must check in before checking out."
    assert _events(s.company.id) == []


def test_second_check_out_is_rejected(client, staffed_job):
    s = staffed_job(team=2)
    url = f"/jobs/{s.job.id}/check-in"

    assert client.post(url, json={"type": "check_in"}, headers=s.headers[0]).status_code == 200
    assert client.post(url, json={"type": "check_out"}, headers=s.headers[0]).status_code == 200

    again = client.post(url, json={"type": "check_out"}, headers=s.headers[0])
    assert again.status_code == 400
    assert "already checked out" in again.json()["detail"]


def test_check_out_comment_reaches_timeline_and_office(client, staffed_job, sent_emails):
    s = staffed_job(team=2)
    url = f"/jobs/{s.job.id}/check-in"

    assert client.post(url, json={"type": "check_in"}, headers=s.headers[0]).status_code == 200
    r = client.post(
        url,
        json={"type": "check_out", "comment": "  Back door key left with neighbour  "},
        headers=s.headers[0],
    )
    assert r.status_code == 200, r.text
    assert r.json()["assignment"]["status"] == "completed"
    assert r.json()["job_completed"] is False

    db = SessionLocal()
    try:
        event = db.query(JobEvent).filter(JobEvent.job_id == s.job.id, JobEvent.type == "check_out_comment").one()
        assert event.message == "Back door key left with neighbour"
        assert event.actor_id == s.employees[0].id
    finally:
        db.close()

    checked_out = [m for m in sent_emails if "checked out" in m["subject"]]
    assert len(checked_out) == 1
    assert "Back door key left with neighbour" in checked_out[0]["body"]


def test_check_in_summary(client, staffed_job):
    s = staffed_job(team=2)
    url = f"/jobs/{s.job.id}/check-in"

    empty = client.get(url, headers=s.headers[0])
    assert empty.status_code == 200, empty.text
    assert empty.json()["status"] == "not_checked_in"
    assert empty.json()["has_checked_in"] is False
    assert empty.json()["check_ins"] == []

    assert client.post(url, json={"type": "check_in", **ON_SITE}, headers=s.headers[0]).status_code == 200
    during = client.get(url, headers=s.headers[0]).json()
    assert during["status"] == "checked_in"
    assert during["last_check_in"] is not None
    assert during["last_check_out"] is None
    assert during["job_duration"] is None

    assert client.post(url, json={"type": "check_out", **ON_SITE}, headers=s.headers[0]).status_code == 200
    after = client.get(url, headers=s.headers[0]).json()
    assert after["status"] == "checked_out"
    assert after["has_checked_in"] is True
    assert after["has_checked_out"] is True
    assert after["job_duration"] == 0
    assert after["total_time_on_site"] == 0
    assert [row["type"] for row in after["check_ins"]] == ["check_out", "check_in"]

    # The teammate's summary is independent.
    other = client.get(url, headers=s.headers[1]).json()
    assert other["status"] == "not_checked_in"


def test_job_started_email_sent_once_for_the_team(client, staffed_job, sent_emails):
    s = staffed_job(team=2)
    url = f"/jobs/{s.job.id}/check-in"

    assert client.post(url, json={"type": "check_in"}, headers=s.headers[0]).status_code == 200
    assert client.post(url, json={"type": "check_in"}, headers=s.headers[1]).status_code == 200

    started = [m for m in sent_emails if m["subject"].startswith("Your cleaning has started")]
    assert len(started) == 1

    kinds = [e.event_type for e in _events(s.company.id)]
    assert kinds.count("JOB_STARTED") == 1
    assert kinds.count("EMPLOYEE_CHECKED_IN") == 2


def test_job_of_another_company_is_not_found(client, staffed_job):
    mine = staffed_job()
    theirs = staffed_job()

    r = client.post(f"/jobs/{theirs.job.id}/check-in", json={"type": "check_in"}, headers=mine.headers[0])
    assert r.status_code == 404


def test_unassigned_job_is_not_found(client, staffed_job, job_factory):
    s = staffed_job()
    other_job = job_factory(company_id=s.company.id)

    r = client.post(f"/jobs/{other_job.id}/check-in", json={"type": "check_in"}, headers=s.headers[0])
    assert r.status_code == 404
    assert r.json()["detail"] == "Job not found or not assigned to you"


def test_unknown_employee_is_unauthorized(client, staffed_job, auth_headers):
    s = staffed_job()

    r = client.post(
        f"/jobs/{s.job.id}/check-in",
        json={"type": "check_in"},
        headers=auth_headers(s.company.id, 999_999),
    )
    assert r.status_code == 401


def test_manager_token_cannot_check_in(client, staffed_job, auth_headers):
    s = staffed_job()

    r = client.post(
        f"/jobs/{s.job.id}/check-in",
        json={"type": "check_in"},
        headers=auth_headers(s.company.id, s.employees[0].id, role="MANAGER"),
    )
    assert r.status_code == 401


def test_invalid_check_in_type_is_bad_request(client, staffed_job):
    s = staffed_job()

    r = client.post(f"/jobs/{s.job.id}/check-in", json={"type": "lunch_break"}, headers=s.headers[0])
    assert r.status_code == 400


def test_check_in_after_check_out_is_rejected(client, staffed_job):
    s = staffed_job(team=2)
    url = f"/jobs/{s.job.id}/check-in"

    assert client.post(url, json={"type": "check_in"}, headers=s.headers[0]).status_code == 200
    assert client.post(url, json={"type": "check_out"}, headers=s.headers[0]).status_code == 200

    again = client.post(url, json={"type": "check_in"}, headers=s.headers[0])
    assert again.status_code == 400
    assert "already checked in" in again.json()["detail"]

    summary = client.get(url, headers=s.headers[0]).json()
    assert summary["status"] == "checked_out"
    assert len(summary["check_ins"]) == 2


def test_check_in_after_completing_is_rejected(client, staffed_job, sent_emails):
    s = staffed_job()
    url = f"/jobs/{s.job.id}/check-in"

    done = client.patch(f"/jobs/{s.job.id}", json={"action": "complete"}, headers=s.headers[0])
    assert done.status_code == 200, done.text
    assert done.json()["status"] == "completed"

    r = client.post(url, json={"type": "check_in"}, headers=s.headers[0])
    assert r.status_code == 400
    assert r.json()["detail"] == "Job is completed; check-in is closed."

    summary = client.get(url, headers=s.headers[0]).json()
    assert summary["status"] == "checked_out"
    assert summary["total_time_on_site"] == 0
    assert not [m for m in sent_emails if m["subject"].startswith("Your cleaning has started")]


def test_teammate_who_completed_cannot_check_in(client, staffed_job, sent_emails):
    s = staffed_job(team=2)
    url = f"/jobs/{s.job.id}/check-in"

    assert client.patch(f"/jobs/{s.job.id}", json={"action": "complete"}, headers=s.headers[0]).status_code == 200

    r = client.post(url, json={"type": "check_in"}, headers=s.headers[0])
    assert r.status_code == 400
    assert r.json()["detail"] == "You have already completed this job."
    assert "JOB_STARTED" not in [e.event_type for e in _events(s.company.id)]
    assert client.get(url, headers=s.headers[0]).json()["status"] == "checked_out"


def test_cancelled_or_rejected_job_refuses_check_in(client, staffed_job):
    for status in ("cancelled", "rejected"):
        s = staffed_job(status=status)

        r = client.post(f"/jobs/{s.job.id}/check-in", json={"type": "check_in"}, headers=s.headers[0])
        assert r.status_code == 400
        assert r.json()["detail"] == f"Job is {status}; check-in is closed."
        assert _events(s.company.id) == []


def test_job_cancelled_mid_visit_is_not_completed_by_check_out(client, staffed_job, auth_headers):
    s = staffed_job()
    url = f"/jobs/{s.job.id}/check-in"

    assert client.post(url, json={"type": "check_in"}, headers=s.headers[0]).status_code == 200
    manager = auth_headers(s.company.id, "office", role="MANAGER")
    assert client.post(f"/manage/jobs/{s.job.id}/cancel", headers=manager).status_code == 200

    r = client.post(url, json={"type": "check_out"}, headers=s.headers[0])
    assert r.status_code == 400
    assert r.json()["detail"] == "Job is cancelled; check-out is closed."

    db = SessionLocal()
    try:
        assert db.query(Invoice).filter(Invoice.job_id == s.job.id).count() == 0
        assert db.query(Job).filter(Job.id == s.job.id).one().status == "cancelled"
    finally:
        db.close()
    assert "JOB_COMPLETED" not in [e.event_type for e in _events(s.company.id)]


def test_out_of_range_coordinates_are_rejected(client, staffed_job):
    s = staffed_job()
    url = f"/jobs/{s.job.id}/check-in"

    assert client.post(url, json={"type": "check_in", "latitude": 91, "longitude": 0.1}, headers=s.headers[0]).status_code == 400
    assert client.post(url, json={"type": "check_in", "latitude": 51.5, "longitude": -181}, headers=s.headers[0]).status_code == 400
    assert _events(s.company.id) == []
