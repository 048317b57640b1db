"""The service the HTTP layer calls.

One gateway per request/session. It composes the repository, the plan
resolver, the disclosure ledger and the status policy, and owns commit,
rollback and the single optimistic-lock retry for transitions.
"""
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..config import settings
from ..errors import (
    AccountNotFound,
    AlreadyApplied,
    ApplicationNotFound,
    ApplyQuotaExhausted,
    ConcurrencyConflict,
    EntitlementError,
    JobNotFound,
    JobQuotaExhausted,
)
from ..logging_config import get_logger
from ..models import (
    AccountType,
    Application,
    ApplicationEvent,
    ApplicationStatus,
    Job,
)
from ..schemas import ContactRevealOut
from .ledger import ContactDisclosureLedger
from .plans import PlanEntitlement, PlanEntitlementResolver, Quota
from .repository import ApplicationRepository, contact_details
from .state_machine import ApplicationStateMachine

logger = get_logger(__name__)


class TransitionResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    application: Application
    from_status: ApplicationStatus


def remaining_message(remaining: Quota) -> str:
    if remaining.is_unlimited:
        return "You have unlimited contact views remaining."
    n = remaining.limit
    return f"You have {n} contact view{'' if n == 1 else 's'} remaining."


class EntitlementGateway:
    def __init__(self, db: Session, retry_limit: Optional[int] = None):
        self.db = db
        self.repository = ApplicationRepository(db)
        self.resolver = PlanEntitlementResolver(db, self.repository)
        self.ledger = ContactDisclosureLedger(db, self.repository, self.resolver)
        self.state_machine = ApplicationStateMachine()
        self.retry_limit = settings.TRANSITION_RETRY_LIMIT if retry_limit is None else retry_limit

    # -----------------------
    # Contact disclosure
    # -----------------------
    def reveal_contact(
        self, employer_id: str, employee_id: str, application_id: Optional[str] = None
    ) -> ContactRevealOut:
        result = self.ledger.reveal(employer_id, employee_id, application_id)
        # read back from committed rows rather than adjusting a local counter
        entitlement = self.resolver.resolve(employer_id, AccountType.EMPLOYER)
        remaining = entitlement.quota_remaining
        prefix = (
            "Contact details are now visible." if result.already_viewed
            else "Contact details unlocked!"
        )
        return ContactRevealOut(
            contact_details=result.contact,
            already_viewed=result.already_viewed,
            consumed_quota=result.consumed_quota,
            free_view=result.free_view,
            views_remaining=remaining.to_display(),
            message=f"{prefix} {remaining_message(remaining)}",
        )

    def reveal_application_contact(self, employer_id: str, application_id: str) -> ContactRevealOut:
        application = self._owned_application(application_id, employer_id)
        return self.reveal_contact(employer_id, application.employee_id, application.id)

    # -----------------------
    # Status transitions
    # -----------------------
    def transition_status(
        self,
        application_id: str,
        target: ApplicationStatus,
        payload: Optional[Mapping[str, Any]] = None,
        employer_id: Optional[str] = None,
    ) -> TransitionResult:
        attempt = 0
        while True:
            application = self._owned_application(application_id, employer_id)
            previous = application.status
            try:
                self.state_machine.transition(application, target, payload)
            except EntitlementError:
                self.db.rollback()
                raise
            self.repository.record_transition(application, previous)
            try:
                self.db.commit()
            except StaleDataError:
                self.db.rollback()
                if attempt >= self.retry_limit:
                    logger.warning(
                        "giving up on application=%s -> %s after %d conflict(s)",
                        application_id, ApplicationStatus(target).value, attempt + 1,
                    )
                    raise ConcurrencyConflict(application_id)
                attempt += 1
                logger.info(
                    "version conflict on application=%s; re-reading and re-validating (retry %d)",
                    application_id, attempt,
                )
                continue
            logger.info(
                "application=%s moved %s -> %s (version %s)",
                application.id, previous.value, application.status.value, application.version,
            )
            return TransitionResult(application=application, from_status=previous)

    def history(self, application_id: str, employer_id: Optional[str] = None) -> List[ApplicationEvent]:
        self._owned_application(application_id, employer_id)
        return self.repository.history(application_id)

    # -----------------------
    # Listings and snapshots
    # -----------------------
    def plan_snapshot(self, account_id: str, account_type: AccountType) -> PlanEntitlement:
        return self.resolver.resolve(account_id, account_type)

    def list_job_applications(self, employer_id: str, job_id: str) -> List[Dict[str, Any]]:
        """Applications for one job with the disclosure state of each applicant.

        Contact details are embedded only for applicants this employer has
        already revealed; everyone else goes through ``reveal_contact``.
        """
        job = self.db.get(Job, job_id)
        if job is None or job.employer_id != employer_id:
            raise JobNotFound(job_id)
        applications = self.repository.list_for_job(job_id)
        viewed = self.repository.viewed_employee_ids(employer_id, (a.employee_id for a in applications))
        free_cache: Dict[str, bool] = {}
        rows = []
        for application in applications:
            employee_id = application.employee_id
            if employee_id not in free_cache:
                free_cache[employee_id] = self.resolver.allows_free_contact_view(employee_id)
            is_viewed = employee_id in viewed
            rows.append({
                "application": application,
                "employee": application.employee,
                "contact_details_viewed": is_viewed,
                "employee_allows_free_contact_view": free_cache[employee_id],
                "contact_details": contact_details(application.employee) if is_viewed else None,
            })
        return rows

    def employee_applications(self, employee_id: str) -> List[Application]:
        return self.repository.list_for_employee(employee_id)

    # -----------------------
    # Applying and posting
    # -----------------------
    def apply(self, employee_id: str, job_id: str) -> Application:
        job = self.db.get(Job, job_id)
        if job is None:
            raise JobNotFound(job_id)
        if self.repository.lock_employee(employee_id) is None:
            self.db.rollback()
            raise AccountNotFound(employee_id)
        entitlement = self.resolver.resolve(employee_id, AccountType.EMPLOYEE)
        if entitlement.jobs.exhausted:
            self.db.rollback()
            logger.info("application refused employee=%s job=%s: apply quota exhausted", employee_id, job_id)
            raise ApplyQuotaExhausted(employee_id)
        try:
            application = self.repository.add_application(job, employee_id)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise AlreadyApplied(job_id, employee_id)
        logger.info("employee=%s applied to job=%s application=%s", employee_id, job_id, application.id)
        return application

    def post_job(self, employer_id: str, fields: Mapping[str, Any]) -> Job:
        if self.repository.lock_employer(employer_id) is None:
            self.db.rollback()
            raise AccountNotFound(employer_id)
        entitlement = self.resolver.resolve(employer_id, AccountType.EMPLOYER)
        if entitlement.jobs.exhausted:
            self.db.rollback()
            logger.info("job post refused employer=%s: job quota exhausted", employer_id)
            raise JobQuotaExhausted(employer_id)
        job = Job(employer_id=employer_id, **dict(fields))
        self.db.add(job)
        self.db.commit()
        logger.info("employer=%s posted job=%s", employer_id, job.id)
        return job

    def _owned_application(self, application_id: str, employer_id: Optional[str]) -> Application:
        application = self.repository.get_application(application_id)
        # another employer's application is reported as missing
        if application is None or (employer_id is not None and application.employer_id != employer_id):
            raise ApplicationNotFound(application_id)
        return application

