from fastapi import APIRouter, Depends

from ..deps import current_employee, get_gateway, require_api_key
from ..models import Employee
from ..schemas import (
    ApplicationOut,
    ApplicationResponse,
    EmployeeApplicationItem,
    EmployeeApplicationsResponse,
    EmployeePlanResponse,
    EmployeePlanSnapshot,
    JobSummary,
)
from ..services.gateway import EntitlementGateway

router = APIRouter(prefix="/employee", tags=["employee"], dependencies=[Depends(require_api_key)])


@router.get("/plan/current", response_model=EmployeePlanResponse)
def current_plan(
    employee: Employee = Depends(current_employee),
    gateway: EntitlementGateway = Depends(get_gateway),
):
    ent = gateway.plan_snapshot(employee.id, "employee")
    return EmployeePlanResponse(plan=EmployeePlanSnapshot(
        plan_id=ent.plan_id,
        name=ent.plan_name,
        description=ent.description,
        price=ent.price,
        is_default=ent.is_default,
        is_active=not ent.is_expired,
        is_expired=ent.is_expired,
        expires_at=ent.expires_at,
        days_remaining=ent.days_remaining,
        jobs_can_apply=ent.jobs.total.to_raw(),
        jobs_applied=ent.jobs.consumed,
        applications_remaining=ent.jobs.remaining.to_raw(),
        contact_details_can_view=ent.contact_views.total.to_raw(),
        allows_free_contact_view=ent.allows_free_contact_view,
    ))


@router.post("/jobs/{job_id}/apply", response_model=ApplicationResponse, status_code=201)
def apply(
    job_id: str,
    employee: Employee = Depends(current_employee),
    gateway: EntitlementGateway = Depends(get_gateway),
):
    application = gateway.apply(employee.id, job_id)
    return ApplicationResponse(application=ApplicationOut.model_validate(application))


@router.get("/applications", response_model=EmployeeApplicationsResponse)
def my_applications(
    employee: Employee = Depends(current_employee),
    gateway: EntitlementGateway = Depends(get_gateway),
):
    items = [
        EmployeeApplicationItem(
            **ApplicationOut.model_validate(a).model_dump(),
            job=JobSummary.model_validate(a.job),
        )
        for a in gateway.employee_applications(employee.id)
    ]
    return EmployeeApplicationsResponse(applications=items)
