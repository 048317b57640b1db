from conftest import (
    employee_headers,
    employer_headers,
    make_application,
    make_employee,
    make_plan,
    subscribe,
)
from entitlement_api.config import settings


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True


def test_requires_known_account(client, application):
    r = client.post(f"/employer/applications/{application.id}/status", json={"status": "shortlisted"})
    assert r.status_code == 401
    r = client.post(
        f"/employer/applications/{application.id}/status",
        json={"status": "shortlisted"},
        headers={"X-Account-Id": "nobody"},
    )
    assert r.status_code == 401


def test_api_key_enforced_when_configured(client, employer, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", "s3cret")
    r = client.get("/employer/plan/current", headers=employer_headers(employer))
    assert r.status_code == 401
    r = client.get("/employer/plan/current", headers={**employer_headers(employer), "X-API-Key": "s3cret"})
    assert r.status_code == 200


def test_status_update_flow(client, employer, application):
    url = f"/employer/applications/{application.id}/status"
    headers = employer_headers(employer)

    r = client.post(url, json={"status": "shortlisted"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["application"]["status"] == "shortlisted"

    r = client.post(url, json={"status": "interview_scheduled"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"] == "MissingInterviewDetails"

    r = client.put(url, json={
        "status": "interview_scheduled",
        "interview_date": "2026-11-02",
        "interview_time": "09:00",
        "interview_location": "HQ",
    }, headers=headers)
    assert r.status_code == 200
    body = r.json()["application"]
    assert body["interview_location"] == "HQ"

    r = client.post(url, json={"status": "shortlisted"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"] == "InvalidTransition"
    assert r.json()["from_status"] == "interview_scheduled"

    r = client.post(url, json={"status": "interview_scheduled", "interview_date": "x",
                               "interview_time": "y", "interview_location": "z"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"] == "AlreadyInState"

    r = client.get(f"/employer/applications/{application.id}/history", headers=headers)
    assert [e["to_status"] for e in r.json()["events"]] == ["applied", "shortlisted", "interview_scheduled"]


def test_status_update_unknown_application(client, employer):
    r = client.post("/employer/applications/nope/status", json={"status": "shortlisted"},
                    headers=employer_headers(employer))
    assert r.status_code == 404
    assert r.json()["error"] == "ApplicationNotFound"


def test_unknown_status_value_is_validation_error(client, employer, application):
    r = client.post(f"/employer/applications/{application.id}/status", json={"status": "hired"},
                    headers=employer_headers(employer))
    assert r.status_code == 422


def test_view_contact_then_exhausted(client, db, employer, job, application):
    headers = employer_headers(employer)
    r = client.post(f"/employer/applications/{application.id}/view-contact", headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body["already_viewed"] is False
    assert body["contact_details"]["email"] == "jo@example.test"
    assert body["views_remaining"] == 1

    r = client.post(f"/employer/applications/{application.id}/view-contact", headers=headers)
    assert r.json()["already_viewed"] is True
    assert r.json()["views_remaining"] == 1

    # spend the last credit on someone else, then try a third applicant
    second = make_application(db, job, make_employee(db, email="b@example.test"))
    third = make_application(db, job, make_employee(db, email="c@example.test"))
    assert client.post(f"/employer/applications/{second.id}/view-contact", headers=headers).status_code == 200
    r = client.post(f"/employer/applications/{third.id}/view-contact", headers=headers)
    assert r.status_code == 402
    assert r.json()["error"] == "QuotaExhausted"
    assert r.json()["upgrade_url"] == "/employer/upgrade-plan"


def test_view_contact_unlimited(client, db, employer, application):
    subscribe(db, employer, make_plan(db, name="Enterprise", employee_contact_details_can_view=-1))
    r = client.post(f"/employer/applications/{application.id}/view-contact", headers=employer_headers(employer))
    assert r.json()["views_remaining"] == "unlimited"


def test_job_applications_listing(client, employer, job, application):
    headers = employer_headers(employer)
    r = client.get(f"/employer/jobs/{job.id}/applications", headers=headers)
    assert r.status_code == 200
    item = r.json()["applications"][0]
    assert item["contact_details_viewed"] is False
    assert item["contact_details"] is None
    assert item["employee"]["name"] == "Jo Applicant"
    assert "email" not in item["employee"]

    client.post(f"/employer/applications/{application.id}/view-contact", headers=headers)
    item = client.get(f"/employer/jobs/{job.id}/applications", headers=headers).json()["applications"][0]
    assert item["contact_details_viewed"] is True
    assert item["contact_details"]["mobile"] == "+61 400 000 000"


def test_employer_plan_snapshot(client, employer, job):
    r = client.get("/employer/plan/current", headers=employer_headers(employer))
    plan = r.json()["plan"]
    assert plan["name"] == "Employer Free"
    assert plan["is_default"] is True
    assert plan["jobs_can_post"] == 1
    assert plan["jobs_remaining"] == 0
    assert plan["contact_views_remaining"] == 2


def test_employer_plan_snapshot_unlimited(client, db, employer):
    subscribe(db, employer, make_plan(db, name="Enterprise", jobs_can_post=-1,
                                      employee_contact_details_can_view=-1, price=499))
    plan = client.get("/employer/plan/current", headers=employer_headers(employer)).json()["plan"]
    assert plan["contact_views_remaining"] == -1
    assert plan["jobs_remaining"] == -1
    assert plan["is_active"] is True
    assert plan["days_remaining"] is not None


def test_post_job(client, employer):
    headers = employer_headers(employer)
    r = client.post("/employer/jobs", json={"title": "SOC Analyst"}, headers=headers)
    assert r.status_code == 201
    assert r.json()["title"] == "SOC Analyst"
    r = client.post("/employer/jobs", json={"title": "Another"}, headers=headers)
    assert r.status_code == 402
    assert r.json()["error"] == "JobQuotaExhausted"


def test_employee_apply_and_list(client, job, employee):
    headers = employee_headers(employee)
    r = client.post(f"/employee/jobs/{job.id}/apply", headers=headers)
    assert r.status_code == 201
    assert r.json()["application"]["status"] == "applied"

    r = client.post(f"/employee/jobs/{job.id}/apply", headers=headers)
    assert r.status_code == 409
    assert r.json()["error"] == "AlreadyApplied"

    apps = client.get("/employee/applications", headers=headers).json()["applications"]
    assert len(apps) == 1
    assert apps[0]["job"]["title"] == "Network Engineer"


def test_employee_plan_snapshot(client, db, employee, premium_employee_plan):
    headers = employee_headers(employee)
    plan = client.get("/employee/plan/current", headers=headers).json()["plan"]
    assert plan["allows_free_contact_view"] is False
    assert plan["applications_remaining"] == 5

    subscribe(db, employee, premium_employee_plan)
    plan = client.get("/employee/plan/current", headers=headers).json()["plan"]
    assert plan["allows_free_contact_view"] is True
    assert plan["applications_remaining"] == -1


def test_employer_cannot_use_employee_routes(client, employer):
    r = client.get("/employee/plan/current", headers=employer_headers(employer))
    assert r.status_code == 401
