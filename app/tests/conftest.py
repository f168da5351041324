import os
import tempfile

_default_test_secret = "test-jwt-secret-for-pytest-only-0000000000000000"
if len(os.environ.get("JWT_SECRET", "")) < 32:
    os.environ["JWT_SECRET"] = _default_test_secret

os.environ["ENV"] = "test"
os.environ.pop("SMTP_HOST", None)

import subprocess
from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url

_default_sqlite_path = os.path.join(tempfile.mkdtemp(prefix="jobflow-tests-"), "test.db")
TEST_DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{_default_sqlite_path}")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["PHOTO_STORAGE_DIR"] = tempfile.mkdtemp(prefix="jobflow-photos-")

from fastapi.testclient import TestClient

from app import database
from app.database import SessionLocal
from app.main import app
from app.models.company import Company
from app.models.customer import Customer
from app.models.employee import Employee
from app.models.job import Job
from app.models.job_assignment import JobAssignment
from app.models.job_task import JobTask
from app.models.user import User


def _ensure_database_exists(database_url: str) -> None:
    url = make_url(database_url)

    if not url.drivername.startswith("postgresql"):
        return

    db_name = url.database
    admin_url = url.set(database="postgres")
    admin_engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")

    try:
        with admin_engine.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": db_name},
            ).scalar()
            if not exists:
                safe_db_name = db_name.replace('"', '""')
                conn.execute(text(f'CREATE DATABASE "{safe_db_name}"'))
    finally:
        admin_engine.dispose()


@pytest.fixture(scope="session", autouse=True)
def _prepare_test_database() -> None:
    _ensure_database_exists(TEST_DATABASE_URL)

    env = os.environ.copy()
    env["DATABASE_URL"] = TEST_DATABASE_URL

    subprocess.run(
        ["alembic", "upgrade", "head"],
        check=True,
        cwd=Path(__file__).resolve().parents[2],
        env=env,
    )

    database.configure_database()


def _clear_tables() -> None:
    with database.engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            names = [t.name for t in database.Base.metadata.sorted_tables]
            quoted = ", ".join(f'"{name}"' for name in names)
            conn.execute(text(f"TRUNCATE TABLE {quoted} RESTART IDENTITY CASCADE"))
            return
        for table in reversed(database.Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="function", autouse=True)
def _truncate_tables_between_tests():
    _clear_tables()
    yield
    _clear_tables()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Every email the code tries to send, captured instead of going to SMTP."""
    sent = []

    def _capture(to, subject, body, *, attachments=()):
        if not to:
            return False
        sent.append({"to": to, "subject": subject, "body": body, "attachments": list(attachments)})
        return True

    monkeypatch.setattr("app.services.mailer.send_email", _capture)
    return sent


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def auth_headers(client):
    def make(company_id: int, subject_id, role: str = "EMPLOYEE") -> dict:
        resp = client.post(
            "/auth/token",
            json={"subject_id": str(subject_id), "company_id": company_id, "role": role},
        )
        assert resp.status_code == 200, f"token request failed: {resp.status_code} {resp.text}"
        data = resp.json()
        assert "access_token" in data, f"token response missing access_token: {data}"
        return {"X-Company-Id": str(company_id), "Authorization": f"Bearer {data['access_token']}"}

    return make


def _save(row):
    db = SessionLocal()
    try:
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
    finally:
        db.close()


@pytest.fixture
def company_factory():
    counter = {"n": 0}

    def make(**kwargs) -> Company:
        counter["n"] += 1
        n = counter["n"]
        kwargs.setdefault("name", f"Sparkle Cleaning {n}")
        kwargs.setdefault("email", f"office{n}@sparkle.test")
        company = _save(Company(**kwargs))
        _save(
            User(
                company_id=company.id,
                first_name="Olivia",
                last_name="Office",
                email=f"admin{n}@sparkle.test",
                role="admin",
            )
        )
        return company

    return make


@pytest.fixture
def employee_factory():
    counter = {"n": 0}

    def make(*, company_id: int, **kwargs) -> Employee:
        counter["n"] += 1
        kwargs.setdefault("first_name", f"Worker{counter['n']}")
        kwargs.setdefault("last_name", "Clean")
        kwargs.setdefault("email", f"worker{counter['n']}@sparkle.test")
        kwargs.setdefault("is_active", True)
        return _save(Employee(company_id=company_id, **kwargs))

    return make


@pytest.fixture
def customer_factory():
    def make(*, company_id: int, **kwargs) -> Customer:
        kwargs.setdefault("first_name", "Carla")
        kwargs.setdefault("last_name", "Customer")
        kwargs.setdefault("email", "carla@example.test")
        kwargs.setdefault("address", "1 High Street")
        kwargs.setdefault("city", "Bristol")
        kwargs.setdefault("postcode", "BS1 1AA")
        return _save(Customer(company_id=company_id, **kwargs))

    return make


@pytest.fixture
def job_factory(customer_factory):
    def make(*, company_id: int, customer_id=None, **kwargs) -> Job:
        if customer_id is None:
            customer_id = customer_factory(company_id=company_id).id
        kwargs.setdefault("title", "End of tenancy clean")
        kwargs.setdefault("status", "scheduled")
        kwargs.setdefault("duration_minutes", 120)
        kwargs.setdefault("estimated_price", Decimal("85.00"))
        kwargs.setdefault("currency", "GBP")
        return _save(Job(company_id=company_id, customer_id=customer_id, **kwargs))

    return make


@pytest.fixture
def task_factory():
    def make(*, job_id: int, title: str = "Hoover carpets", status: str = "pending", sort_order: int = 0) -> JobTask:
        return _save(JobTask(job_id=job_id, title=title, status=status, sort_order=sort_order))

    return make


@pytest.fixture
def assignment_factory():
    def make(*, job: Job, employee_id: int, status: str = "assigned") -> JobAssignment:
        row = _save(
            JobAssignment(
                company_id=job.company_id,
                job_id=job.id,
                employee_id=employee_id,
                status=status,
            )
        )
        db = SessionLocal()
        try:
            db.query(Job).filter(Job.id == job.id, Job.assigned_to.is_(None)).update(
                {"assigned_to": employee_id}, synchronize_session=False
            )
            db.commit()
        finally:
            db.close()
        return row

    return make


@pytest.fixture
def staffed_job(company_factory, employee_factory, job_factory, assignment_factory, auth_headers):
    """A company with a job worked by `team` employees, plus each employee's request headers."""

    def make(team: int = 1, *, assignment_status: str = "assigned", **job_kwargs) -> SimpleNamespace:
        company = company_factory()
        job = job_factory(company_id=company.id, **job_kwargs)
        employees = [employee_factory(company_id=company.id) for _ in range(team)]
        for employee in employees:
            assignment_factory(job=job, employee_id=employee.id, status=assignment_status)
        return SimpleNamespace(
            company=company,
            job=job,
            employees=employees,
            headers=[auth_headers(company.id, e.id) for e in employees],
        )

    return make
