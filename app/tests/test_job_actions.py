from app.database import SessionLocal
from app.models.event_outbox import EventOutbox


def _patch(client, s, body, i=0):
    return client.patch(f"/jobs/{s.job.id}", json=body, headers=s.headers[i])


def test_start_pause_resume(client, staffed_job, sent_emails):
    s = staffed_job()

    started = _patch(client, s, {"action": "start"})
    assert started.status_code == 200, started.text
    assert started.json()["status"] == "in_progress"
    assert started.json()["started_at"] is not None

    paused = _patch(client, s, {"action": "pause"})
    assert paused.status_code == 200, paused.text
    assert paused.json()["status"] == "paused"

    resumed = _patch(client, s, {"action": "start"})
    assert resumed.status_code == 200, resumed.text
    assert resumed.json()["status"] == "in_progress"

    started_emails = [m for m in sent_emails if m["subject"].startswith("Your cleaning has started")]
    assert len(started_emails) == 1

    db = SessionLocal()
    try:
        assert db.query(EventOutbox).filter(EventOutbox.event_type == "JOB_STARTED").count() == 1
    finally:
        db.close()


def test_start_then_check_in_sends_one_started_email(client, staffed_job, sent_emails):
    s = staffed_job()

    assert _patch(client, s, {"action": "start"}).status_code == 200
    r = client.post(f"/jobs/{s.job.id}/check-in", json={"type": "check_in"}, headers=s.headers[0])
    assert r.status_code == 200, r.text

    assert len([m for m in sent_emails if m["subject"].startswith("Your cleaning has started")]) == 1


def test_pause_only_from_active_states(client, staffed_job):
    s = staffed_job()
    assert _patch(client, s, {"action": "pause"}).status_code == 200

    again = _patch(client, s, {"action": "pause"})
    assert again.status_code == 400
    assert again.json()["detail"] == "Only scheduled or in-progress jobs can be paused."


def test_reject_is_final(client, staffed_job):
    s = staffed_job()

    rejected = _patch(client, s, {"action": "reject"})
    assert rejected.status_code == 200, rejected.text
    assert rejected.json()["status"] == "rejected"
    assert rejected.json()["rejected_at"] is not None

    again = _patch(client, s, {"action": "reject"})
    assert again.status_code == 400
    assert again.json()["detail"] == "Job is already completed or rejected."

    assert _patch(client, s, {"action": "start"}).status_code == 400
    assert _patch(client, s, {"action": "complete"}).status_code == 400


def test_failed_transition_keeps_notes(client, staffed_job):
    s = staffed_job()
    assert _patch(client, s, {"notes": "Gate code 1234"}).status_code == 200
    assert _patch(client, s, {"action": "reject"}).status_code == 200

    r = _patch(client, s, {"action": "reject", "notes": "overwritten?"})
    assert r.status_code == 400

    detail = client.get(f"/jobs/{s.job.id}", headers=s.headers[0])
    assert detail.json()["job"]["internal_notes"] == "Gate code 1234"


def test_notes_only_update(client, staffed_job):
    s = staffed_job()

    r = _patch(client, s, {"notes": "Gate code 1234"})
    assert r.status_code == 200, r.text
    assert r.json()["internal_notes"] == "Gate code 1234"
    assert r.json()["status"] == "scheduled"


def test_action_with_notes_replaces_notes(client, staffed_job):
    s = staffed_job()
    assert _patch(client, s, {"notes": "old"}).status_code == 200

    r = _patch(client, s, {"action": "start", "notes": "Parking on the left"})
    assert r.status_code == 200, r.text
    assert r.json()["internal_notes"] == "Parking on the left"


def test_action_without_notes_keeps_notes(client, staffed_job):
    s = staffed_job()
    assert _patch(client, s, {"notes": "keep me"}).status_code == 200

    r = _patch(client, s, {"action": "pause"})
    assert r.status_code == 200, r.text
    assert r.json()["internal_notes"] == "keep me"


def test_unknown_action_is_bad_request(client, staffed_job):
    s = staffed_job()

    r = _patch(client, s, {"action": "dance"})
    assert r.status_code == 400


def test_unexpected_fields_are_bad_request(client, staffed_job):
    s = staffed_job()

    r = _patch(client, s, {"action": "start", "status": "completed"})
    assert r.status_code == 400


def test_empty_body_is_bad_request(client, staffed_job):
    s = staffed_job()

    r = _patch(client, s, {})
    assert r.status_code == 400
