"""Persistence boundary for applications and contact views.

Nothing outside this module issues queries against ``applications`` or
``contact_views``; the ledger and the gateway go through
:class:`ApplicationRepository`.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from ..db import utcnow
from ..models import (
    Application,
    ApplicationEvent,
    ApplicationStatus,
    ContactView,
    Employee,
    Employer,
    Job,
)


class ApplicationRepository:
    def __init__(self, db: Session):
        self.db = db

    # -----------------------
    # Applications
    # -----------------------
    def get_application(self, application_id: str) -> Optional[Application]:
        return self.db.get(Application, application_id, populate_existing=True)

    def list_for_job(self, job_id: str) -> List[Application]:
        stmt = (
            select(Application)
            .options(joinedload(Application.employee))
            .where(Application.job_id == job_id)
            .order_by(Application.applied_at.desc())
        )
        return list(self.db.scalars(stmt))

    def list_for_employee(self, employee_id: str) -> List[Application]:
        stmt = (
            select(Application)
            .options(joinedload(Application.job))
            .where(Application.employee_id == employee_id)
            .order_by(Application.applied_at.desc())
        )
        return list(self.db.scalars(stmt))

    def count_applications_since(self, employee_id: str, since: Optional[datetime]) -> int:
        stmt = select(func.count()).select_from(Application).where(Application.employee_id == employee_id)
        if since is not None:
            stmt = stmt.where(Application.applied_at >= since)
        return int(self.db.scalar(stmt) or 0)

    def add_application(self, job: Job, employee_id: str) -> Application:
        """Stage a new application and its first history event; caller commits."""
        application = Application(
            job_id=job.id,
            employee_id=employee_id,
            employer_id=job.employer_id,
            status=ApplicationStatus.APPLIED,
            applied_at=utcnow(),
        )
        self.db.add(application)
        self.db.flush()
        self.db.add(ApplicationEvent(
            application_id=application.id,
            from_status=None,
            to_status=ApplicationStatus.APPLIED.value,
        ))
        return application

    def record_transition(self, application: Application, from_status: ApplicationStatus) -> ApplicationEvent:
        event = ApplicationEvent(
            application_id=application.id,
            from_status=from_status.value,
            to_status=application.status.value,
            details=_interview_details(application),
        )
        self.db.add(event)
        return event

    def history(self, application_id: str) -> List[ApplicationEvent]:
        stmt = (
            select(ApplicationEvent)
            .where(ApplicationEvent.application_id == application_id)
            .order_by(ApplicationEvent.id)
        )
        return list(self.db.scalars(stmt))

    # -----------------------
    # Contact views
    # -----------------------
    def find_contact_view(self, employer_id: str, employee_id: str) -> Optional[ContactView]:
        stmt = select(ContactView).where(
            ContactView.employer_id == employer_id,
            ContactView.employee_id == employee_id,
        )
        return self.db.scalars(stmt).first()

    def viewed_employee_ids(self, employer_id: str, employee_ids: Iterable[str]) -> Set[str]:
        ids = list(set(employee_ids))
        if not ids:
            return set()
        stmt = select(ContactView.employee_id).where(
            ContactView.employer_id == employer_id,
            ContactView.employee_id.in_(ids),
        )
        return set(self.db.scalars(stmt))

    def count_consumed_views(self, employer_id: str, period_key: str) -> int:
        stmt = select(func.count()).select_from(ContactView).where(
            ContactView.employer_id == employer_id,
            ContactView.period_key == period_key,
            ContactView.consumed_quota.is_(True),
        )
        return int(self.db.scalar(stmt) or 0)

    def add_contact_view(
        self,
        employer_id: str,
        employee: Employee,
        period_key: str,
        consumed_quota: bool,
        application_id: Optional[str] = None,
    ) -> ContactView:
        """Insert a contact view and flush it so the uniqueness constraint fires now."""
        view = ContactView(
            employer_id=employer_id,
            employee_id=employee.id,
            application_id=application_id,
            period_key=period_key,
            consumed_quota=consumed_quota,
            contact_snapshot=contact_details(employee),
            viewed_at=utcnow(),
        )
        self.db.add(view)
        self.db.flush()
        return view

    def lock_account(self, model, account_id: str):
        """SELECT ... FOR UPDATE on an account row; serialises quota debits per account.

        SQLite has no row locks and compiles this to a plain SELECT.
        """
        stmt = select(model).where(model.id == account_id).with_for_update()
        return self.db.scalars(stmt).first()

    def lock_employer(self, employer_id: str) -> Optional[Employer]:
        return self.lock_account(Employer, employer_id)

    def lock_employee(self, employee_id: str) -> Optional[Employee]:
        return self.lock_account(Employee, employee_id)


def contact_details(employee: Employee) -> Dict[str, object]:
    return {
        "email": employee.email,
        "mobile": employee.mobile or "",
        "address": employee.address or None,
    }


def _interview_details(application: Application) -> Optional[Dict[str, str]]:
    if application.status != ApplicationStatus.INTERVIEW_SCHEDULED:
        return None
    return {
        "interview_date": application.interview_date,
        "interview_time": application.interview_time,
        "interview_location": application.interview_location,
    }
