from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Union
from datetime import datetime

from .models import ApplicationStatus


class StatusUpdate(BaseModel):
    status: ApplicationStatus
    interview_date: Optional[str] = None
    interview_time: Optional[str] = None
    interview_location: Optional[str] = None


class ApplicationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    job_id: str
    employee_id: str
    employer_id: str
    status: ApplicationStatus
    applied_at: datetime
    updated_at: Optional[datetime] = None
    interview_date: Optional[str] = None
    interview_time: Optional[str] = None
    interview_location: Optional[str] = None
    version: int


class ApplicationResponse(BaseModel):
    application: ApplicationOut


class ApplicationEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    from_status: Optional[str] = None
    to_status: str
    details: Optional[Dict[str, Any]] = None
    created_at: datetime


class ApplicationHistory(BaseModel):
    application_id: str
    events: List[ApplicationEventOut] = []


class ContactDetails(BaseModel):
    email: str
    mobile: str = ""
    address: Optional[Dict[str, Any]] = None


class ContactRevealOut(BaseModel):
    contact_details: ContactDetails
    already_viewed: bool
    consumed_quota: bool
    free_view: bool = False
    # number, or the literal "unlimited"
    views_remaining: Union[int, str]
    message: str


class EmployeeSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: Optional[str] = None
    skills: Optional[List[str]] = None


class JobApplicationItem(ApplicationOut):
    employee: EmployeeSummary
    contact_details_viewed: bool
    employee_allows_free_contact_view: bool
    contact_details: Optional[ContactDetails] = None


class JobApplicationsResponse(BaseModel):
    job_id: str
    applications: List[JobApplicationItem] = []


class JobSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str


class EmployeeApplicationItem(ApplicationOut):
    job: JobSummary


class EmployeeApplicationsResponse(BaseModel):
    applications: List[EmployeeApplicationItem] = []


class JobCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=512)
    description: Optional[str] = None
    salary: Optional[str] = None


class JobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    employer_id: str
    title: str
    description: Optional[str] = None
    salary: Optional[str] = None
    created_at: datetime


class PlanSnapshot(BaseModel):
    """Entitlement snapshot; every limit uses -1 for unlimited."""

    plan_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    price: float = 0.0
    is_default: bool
    is_active: bool
    is_expired: bool
    expires_at: Optional[datetime] = None
    days_remaining: Optional[int] = None


class EmployerPlanSnapshot(PlanSnapshot):
    jobs_can_post: int
    jobs_posted: int
    jobs_remaining: int
    employee_contact_details_can_view: int
    contact_views_used: int
    contact_views_remaining: int


class EmployeePlanSnapshot(PlanSnapshot):
    jobs_can_apply: int
    jobs_applied: int
    applications_remaining: int
    contact_details_can_view: int
    allows_free_contact_view: bool


class EmployerPlanResponse(BaseModel):
    plan: EmployerPlanSnapshot


class EmployeePlanResponse(BaseModel):
    plan: EmployeePlanSnapshot


__all__ = [
    "StatusUpdate",
    "ApplicationOut",
    "ApplicationResponse",
    "ApplicationEventOut",
    "ApplicationHistory",
    "ContactDetails",
    "ContactRevealOut",
    "EmployeeSummary",
    "JobApplicationItem",
    "JobApplicationsResponse",
    "JobSummary",
    "EmployeeApplicationItem",
    "EmployeeApplicationsResponse",
    "JobCreate",
    "JobOut",
    "PlanSnapshot",
    "EmployerPlanSnapshot",
    "EmployeePlanSnapshot",
    "EmployerPlanResponse",
    "EmployeePlanResponse",
]
