from fastapi import APIRouter, BackgroundTasks, Depends

from ..deps import current_employer, get_gateway, require_api_key
from ..models import ApplicationStatus, Employer
from ..schemas import (
    ApplicationEventOut,
    ApplicationHistory,
    ApplicationOut,
    ApplicationResponse,
    ContactRevealOut,
    EmployeeSummary,
    EmployerPlanResponse,
    EmployerPlanSnapshot,
    JobApplicationItem,
    JobApplicationsResponse,
    JobCreate,
    JobOut,
    StatusUpdate,
)
from ..services.gateway import EntitlementGateway
from ..services.notifications import notify_status_change
from ..services.plans import PlanEntitlement

router = APIRouter(prefix="/employer", tags=["employer"], dependencies=[Depends(require_api_key)])


def employer_plan_snapshot(ent: PlanEntitlement) -> EmployerPlanSnapshot:
    return EmployerPlanSnapshot(
        plan_id=ent.plan_id,
        name=ent.plan_name,
        description=ent.description,
        price=ent.price,
        is_default=ent.is_default,
        is_active=not ent.is_expired,
        is_expired=ent.is_expired,
        expires_at=ent.expires_at,
        days_remaining=ent.days_remaining,
        jobs_can_post=ent.jobs.total.to_raw(),
        jobs_posted=ent.jobs.consumed,
        jobs_remaining=ent.jobs.remaining.to_raw(),
        employee_contact_details_can_view=ent.contact_views.total.to_raw(),
        contact_views_used=ent.contact_views.consumed,
        contact_views_remaining=ent.contact_views.remaining.to_raw(),
    )


@router.get("/plan/current", response_model=EmployerPlanResponse)
def current_plan(
    employer: Employer = Depends(current_employer),
    gateway: EntitlementGateway = Depends(get_gateway),
):
    ent = gateway.plan_snapshot(employer.id, "employer")
    return EmployerPlanResponse(plan=employer_plan_snapshot(ent))


@router.post("/jobs", response_model=JobOut, status_code=201)
def create_job(
    payload: JobCreate,
    employer: Employer = Depends(current_employer),
    gateway: EntitlementGateway = Depends(get_gateway),
):
    job = gateway.post_job(employer.id, payload.model_dump())
    return JobOut.model_validate(job)


@router.get("/jobs/{job_id}/applications", response_model=JobApplicationsResponse)
def job_applications(
    job_id: str,
    employer: Employer = Depends(current_employer),
    gateway: EntitlementGateway = Depends(get_gateway),
):
    items = []
    for row in gateway.list_job_applications(employer.id, job_id):
        base = ApplicationOut.model_validate(row["application"]).model_dump()
        items.append(JobApplicationItem(
            **base,
            employee=EmployeeSummary.model_validate(row["employee"]),
            contact_details_viewed=row["contact_details_viewed"],
            employee_allows_free_contact_view=row["employee_allows_free_contact_view"],
            contact_details=row["contact_details"],
        ))
    return JobApplicationsResponse(job_id=job_id, applications=items)


# the web client historically used PUT for this route
@router.post("/applications/{application_id}/status", response_model=ApplicationResponse)
@router.put("/applications/{application_id}/status", response_model=ApplicationResponse)
def update_status(
    application_id: str,
    payload: StatusUpdate,
    background_tasks: BackgroundTasks,
    employer: Employer = Depends(current_employer),
    gateway: EntitlementGateway = Depends(get_gateway),
):
    result = gateway.transition_status(
        application_id,
        payload.status,
        payload.model_dump(exclude={"status"}),
        employer_id=employer.id,
    )
    application = ApplicationOut.model_validate(result.application)
    interview = None
    if application.status == ApplicationStatus.INTERVIEW_SCHEDULED:
        interview = {
            "interview_date": application.interview_date,
            "interview_time": application.interview_time,
            "interview_location": application.interview_location,
        }
    background_tasks.add_task(
        notify_status_change,
        application.id,
        application.employee_id,
        result.from_status.value,
        application.status.value,
        interview,
    )
    return ApplicationResponse(application=application)


@router.post("/applications/{application_id}/view-contact", response_model=ContactRevealOut)
def view_contact(
    application_id: str,
    employer: Employer = Depends(current_employer),
    gateway: EntitlementGateway = Depends(get_gateway),
):
    return gateway.reveal_application_contact(employer.id, application_id)


@router.get("/applications/{application_id}/history", response_model=ApplicationHistory)
def application_history(
    application_id: str,
    employer: Employer = Depends(current_employer),
    gateway: EntitlementGateway = Depends(get_gateway),
):
    events = gateway.history(application_id, employer_id=employer.id)
    return ApplicationHistory(
        application_id=application_id,
        events=[ApplicationEventOut.model_validate(e) for e in events],
    )
