import os

# must be set before entitlement_api.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CREATE_TABLES_ON_STARTUP"] = "false"
os.environ["API_KEY"] = ""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from entitlement_api.db import init_db, utcnow
from entitlement_api.deps import get_db
from entitlement_api.main import app
from entitlement_api.models import Application, ApplicationStatus, Employee, Employer, Job, Plan
from entitlement_api.services.plans import activate_plan
from entitlement_api.services.repository import ApplicationRepository


@pytest.fixture()
def engine(tmp_path):
    eng = create_engine(
        f"sqlite:///{tmp_path / 'entitlements.db'}",
        connect_args={"check_same_thread": False},
    )
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# -----------------------
# Builders
# -----------------------
def make_plan(db, **fields) -> Plan:
    values = {
        "name": "Plan",
        "type": "employer",
        "price": 0,
        "validity_days": 30,
        "is_default": False,
        "jobs_can_post": 0,
        "employee_contact_details_can_view": 0,
        "jobs_can_apply": 0,
        "allows_free_contact_view": False,
    }
    values.update(fields)
    plan = Plan(**values)
    db.add(plan)
    db.commit()
    return plan


def make_employer(db, **fields) -> Employer:
    employer = Employer(company_name=fields.pop("company_name", "Acme Ltd"),
                        email=fields.pop("email", "hr@acme.test"), **fields)
    db.add(employer)
    db.commit()
    return employer


def make_employee(db, **fields) -> Employee:
    values = {
        "name": "Jo Applicant",
        "email": "jo@example.test",
        "mobile": "+61 400 000 000",
        "address": {"street": "1 Main St", "city": "Geelong", "state": "VIC", "zip": "3220", "country": "AU"},
    }
    values.update(fields)
    employee = Employee(**values)
    db.add(employee)
    db.commit()
    return employee


def make_job(db, employer, **fields) -> Job:
    job = Job(employer_id=employer.id, title=fields.pop("title", "Network Engineer"), **fields)
    db.add(job)
    db.commit()
    return job


def make_application(db, job, employee, status=ApplicationStatus.APPLIED) -> Application:
    application = ApplicationRepository(db).add_application(job, employee.id)
    application.status = status
    db.commit()
    return application


def subscribe(db, account, plan, days_ago=0):
    return activate_plan(db, account.id, plan.id, started_at=utcnow() - timedelta(days=days_ago))


@pytest.fixture()
def default_plans(db):
    """Free employer plan (2 views, 1 job) and free employee plan (5 applications)."""
    employer_plan = make_plan(
        db, name="Employer Free", type="employer", is_default=True, validity_days=0,
        jobs_can_post=1, employee_contact_details_can_view=2,
    )
    employee_plan = make_plan(
        db, name="Employee Free", type="employee", is_default=True, validity_days=0,
        jobs_can_apply=5,
    )
    return employer_plan, employee_plan


@pytest.fixture()
def premium_employee_plan(db):
    return make_plan(
        db, name="Employee Premium", type="employee", price=9.99,
        jobs_can_apply=-1, allows_free_contact_view=True,
    )


@pytest.fixture()
def employer(db, default_plans):
    return make_employer(db)


@pytest.fixture()
def employee(db, default_plans):
    return make_employee(db)


@pytest.fixture()
def job(db, employer):
    return make_job(db, employer)


@pytest.fixture()
def application(db, job, employee):
    return make_application(db, job, employee)


def employer_headers(employer):
    return {"X-Account-Id": employer.id}


def employee_headers(employee):
    return {"X-Account-Id": employee.id}
