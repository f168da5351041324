def _manager(auth_headers, company_id: int) -> dict:
    return auth_headers(company_id, "office", role="MANAGER")


def test_manager_creates_staffed_job_with_checklist(client, company_factory, employee_factory, customer_factory, auth_headers):
    company = company_factory()
    customer = customer_factory(company_id=company.id)
    alice = employee_factory(company_id=company.id)
    bob = employee_factory(company_id=company.id)

    r = client.post(
        "/manage/jobs",
        headers=_manager(auth_headers, company.id),
        json={
            "customer_id": customer.id,
            "title": "Move-out clean",
            "location": "4 Mill Lane",
            "site_latitude": 51.45,
            "site_longitude": -2.58,
            "scheduled_for": "2026-11-02T09:00:00",
            "estimated_price": "140.00",
            "employee_ids": [alice.id, bob.id, alice.id],
            "tasks": ["Oven", "Fridge", "Skirting boards"],
        },
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["job"]["status"] == "scheduled"
    assert body["job"]["assigned_to"] == alice.id
    assert body["job"]["company_id"] == company.id
    assert [t["title"] for t in body["tasks"]] == ["Oven", "Fridge", "Skirting boards"]
    assert [a["employee_id"] for a in body["assignments"]] == [alice.id, bob.id]
    assert all(a["status"] == "assigned" for a in body["assignments"])

    mine = client.get("/jobs", headers=auth_headers(company.id, bob.id))
    assert mine.status_code == 200, mine.text
    assert [j["id"] for j in mine.json()] == [body["job"]["id"]]


def test_job_without_team_is_pending(client, company_factory, customer_factory, auth_headers):
    company = company_factory()
    customer = customer_factory(company_id=company.id)

    r = client.post(
        "/manage/jobs",
        headers=_manager(auth_headers, company.id),
        json={"customer_id": customer.id, "title": "Window clean"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["job"]["status"] == "pending"
    assert r.json()["job"]["assigned_to"] is None


def test_create_rejects_foreign_customer_and_employee(client, company_factory, customer_factory, employee_factory, auth_headers):
    company = company_factory()
    other = company_factory()
    foreign_customer = customer_factory(company_id=other.id)
    customer = customer_factory(company_id=company.id)
    foreign_employee = employee_factory(company_id=other.id)
    headers = _manager(auth_headers, company.id)

    r = client.post("/manage/jobs", headers=headers, json={"customer_id": foreign_customer.id, "title": "X"})
    assert r.status_code == 404
    assert r.json()["detail"] == "Customer not found"

    r = client.post(
        "/manage/jobs",
        headers=headers,
        json={"customer_id": customer.id, "title": "X", "employee_ids": [foreign_employee.id]},
    )
    assert r.status_code == 404
    assert r.json()["detail"] == "Employee not found"

    assert client.get("/manage/jobs", headers=headers).json() == []


def test_assigning_twice_conflicts(client, staffed_job, auth_headers):
    s = staffed_job()
    headers = _manager(auth_headers, s.company.id)

    r = client.post(
        f"/manage/jobs/{s.job.id}/assignments",
        headers=headers,
        json={"employee_id": s.employees[0].id},
    )
    assert r.status_code == 409
    assert r.json()["detail"] == "Employee is already assigned to this job"


def test_assign_with_pay_amount(client, staffed_job, employee_factory, auth_headers):
    s = staffed_job()
    extra = employee_factory(company_id=s.company.id)

    r = client.post(
        f"/manage/jobs/{s.job.id}/assignments",
        headers=_manager(auth_headers, s.company.id),
        json={"employee_id": extra.id, "pay_amount": "45.00"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "assigned"
    assert float(r.json()["pay_amount"]) == 45.0

    detail = client.get(f"/manage/jobs/{s.job.id}", headers=_manager(auth_headers, s.company.id))
    assert len(detail.json()["assignments"]) == 2


def test_cancel_job(client, staffed_job, employee_factory, auth_headers):
    s = staffed_job()
    headers = _manager(auth_headers, s.company.id)

    r = client.post(f"/manage/jobs/{s.job.id}/cancel", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "cancelled"

    again = client.post(f"/manage/jobs/{s.job.id}/cancel", headers=headers)
    assert again.status_code == 400

    late = employee_factory(company_id=s.company.id)
    r = client.post(f"/manage/jobs/{s.job.id}/assignments", headers=headers, json={"employee_id": late.id})
    assert r.status_code == 400


def test_list_filters_by_status(client, company_factory, job_factory, auth_headers):
    company = company_factory()
    scheduled = job_factory(company_id=company.id)
    job_factory(company_id=company.id, status="completed")
    headers = _manager(auth_headers, company.id)

    r = client.get("/manage/jobs", params={"status": "scheduled"}, headers=headers)
    assert r.status_code == 200, r.text
    assert [j["id"] for j in r.json()] == [scheduled.id]

    assert len(client.get("/manage/jobs", headers=headers).json()) == 2


def test_manage_jobs_cross_company_isolation(client, staffed_job, company_factory, auth_headers):
    s = staffed_job()
    other = company_factory()

    r = client.get(f"/manage/jobs/{s.job.id}", headers=_manager(auth_headers, other.id))
    assert r.status_code == 404


def test_unknown_status_filter_is_rejected(client, company_factory, auth_headers):
    company = company_factory()

    r = client.get("/manage/jobs", params={"status": "finished"}, headers=_manager(auth_headers, company.id))
    assert r.status_code == 400
    assert r.json()["detail"] == "Unknown job status: finished"
