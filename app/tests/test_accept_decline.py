from app.database import SessionLocal
from app.models.event_outbox import EventOutbox
from app.models.job import Job
from app.models.job_event import JobEvent


def _job(job_id: int) -> Job:
    db = SessionLocal()
    try:
        return db.query(Job).filter(Job.id == job_id).one()
    finally:
        db.close()


def _confirmations(sent_emails):
    return [m for m in sent_emails if m["subject"].startswith("Booking confirmed")]


def _decline(client, s, i=0, reason=None):
    body = {"reason": reason} if reason is not None else None
    return client.request("DELETE", f"/jobs/{s.job.id}/accept", json=body, headers=s.headers[i])


def test_customer_confirmed_once_whole_team_accepts(client, staffed_job, sent_emails):
    s = staffed_job(team=2)
    url = f"/jobs/{s.job.id}/accept"

    first = client.post(url, headers=s.headers[0])
    assert first.status_code == 200, first.text
    assert first.json()["awaiting_others"] is True
    assert first.json()["assignment"]["status"] == "accepted"
    assert first.json()["job"]["employee_accepted"] is False
    assert _confirmations(sent_emails) == []

    second = client.post(url, headers=s.headers[1])
    assert second.status_code == 200, second.text
    body = second.json()
    assert body["success"] is True
    assert body["awaiting_others"] is False
    assert body["message"] == "Job accepted successfully! Customer has been notified."
    assert body["job"]["employee_accepted"] is True
    assert body["job"]["customer_confirmation_sent"] is True

    confirmations = _confirmations(sent_emails)
    assert len(confirmations) == 1
    assert confirmations[0]["to"] == "carla@example.test"
    for e in s.employees:
        assert e.full_name in confirmations[0]["body"]

    assert any(m["subject"].startswith("Job accepted") for m in sent_emails)


def test_accepting_twice_is_rejected(client, staffed_job):
    s = staffed_job()
    url = f"/jobs/{s.job.id}/accept"

    assert client.post(url, headers=s.headers[0]).status_code == 200
    again = client.post(url, headers=s.headers[0])
    assert again.status_code == 400
    assert again.json()["detail"] == "You have already accepted this job"


def test_new_member_does_not_trigger_second_confirmation(client, staffed_job, employee_factory, auth_headers, sent_emails):
    s = staffed_job()
    assert client.post(f"/jobs/{s.job.id}/accept", headers=s.headers[0]).status_code == 200
    assert len(_confirmations(sent_emails)) == 1

    newcomer = employee_factory(company_id=s.company.id)
    manager = auth_headers(s.company.id, "office-1", role="MANAGER")
    r = client.post(f"/manage/jobs/{s.job.id}/assignments", json={"employee_id": newcomer.id}, headers=manager)
    assert r.status_code == 200, r.text
    assert _job(s.job.id).employee_accepted is False

    r = client.post(f"/jobs/{s.job.id}/accept", headers=auth_headers(s.company.id, newcomer.id))
    assert r.status_code == 200, r.text
    assert r.json()["awaiting_others"] is False
    assert r.json()["job"]["employee_accepted"] is True

    assert len(_confirmations(sent_emails)) == 1
    assert len([m for m in sent_emails if m["subject"].startswith("Job accepted")]) == 2


def test_decline_hands_job_to_remaining_teammate(client, staffed_job, sent_emails):
    s = staffed_job(team=2)

    r = _decline(client, s, 0, reason="Car broke down")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["message"] == "Job declined"
    assert body["assignment"]["status"] == "declined"
    assert body["job"]["assigned_to"] == s.employees[1].id
    assert body["job"]["status"] == "scheduled"
    assert "Reason: Car broke down" in body["job"]["internal_notes"]

    db = SessionLocal()
    try:
        event = db.query(JobEvent).filter(JobEvent.job_id == s.job.id, JobEvent.type == "declined").one()
        assert event.message == "Car broke down"
    finally:
        db.close()

    declined = [m for m in sent_emails if m["subject"].startswith("Job declined")]
    assert len(declined) == 1
    assert "Car broke down" in declined[0]["body"]


def test_decline_by_last_assignee_leaves_job_pending(client, staffed_job):
    s = staffed_job()

    r = _decline(client, s)
    assert r.status_code == 200, r.text
    assert r.json()["job"]["status"] == "pending"
    assert r.json()["job"]["assigned_to"] is None

    assert client.get(f"/jobs/{s.job.id}", headers=s.headers[0]).status_code == 404
    listing = client.get("/jobs", headers=s.headers[0])
    assert listing.status_code == 200
    assert listing.json() == []


def test_declined_employee_can_accept_again(client, staffed_job):
    s = staffed_job()
    assert _decline(client, s).status_code == 200

    r = client.post(f"/jobs/{s.job.id}/accept", headers=s.headers[0])
    assert r.status_code == 200, r.text
    assert r.json()["job"]["status"] == "scheduled"
    assert r.json()["job"]["assigned_to"] == s.employees[0].id
    assert r.json()["awaiting_others"] is False


def test_declining_twice_is_rejected(client, staffed_job):
    s = staffed_job(team=2)
    assert _decline(client, s).status_code == 200

    again = _decline(client, s)
    assert again.status_code == 400


def test_completed_job_cannot_be_declined(client, staffed_job):
    s = staffed_job()
    assert client.patch(f"/jobs/{s.job.id}", json={"action": "complete"}, headers=s.headers[0]).status_code == 200

    r = _decline(client, s)
    assert r.status_code == 400
    assert r.json()["detail"] == "Completed jobs cannot be declined."
    assert _job(s.job.id).status == "completed"


def test_cancelled_job_cannot_be_accepted(client, staffed_job):
    s = staffed_job(status="cancelled")

    r = client.post(f"/jobs/{s.job.id}/accept", headers=s.headers[0])
    assert r.status_code == 400


def test_decline_without_body(client, staffed_job):
    s = staffed_job(team=2)

    r = client.request("DELETE", f"/jobs/{s.job.id}/accept", headers=s.headers[0])
    assert r.status_code == 200, r.text

    db = SessionLocal()
    try:
        rows = db.query(EventOutbox).filter(EventOutbox.event_type == "JOB_DECLINED").all()
        assert len(rows) == 1
        assert rows[0].payload["reason"] is None
    finally:
        db.close()


def test_last_decline_keeps_cancelled_job_cancelled(client, staffed_job):
    s = staffed_job(status="cancelled")

    r = _decline(client, s, reason="Job was called off")
    assert r.status_code == 200, r.text
    assert r.json()["job"]["status"] == "cancelled"

    job = _job(s.job.id)
    assert job.status == "cancelled"
    assert job.assigned_to is None
