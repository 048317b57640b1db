"""Caller-facing faults raised by the entitlement core.

Every error here is deterministic: retrying the same request without changing
it produces the same error, so none of them is retried automatically. The API
layer renders them through a single exception handler using ``http_status``
and ``code``.
"""
from typing import Any, Dict, Optional


class EntitlementError(Exception):
    http_status = 400
    code = "entitlement_error"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "detail": self.message, **self.extra}


class InvalidTransition(EntitlementError):
    code = "InvalidTransition"

    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            f"cannot move application from '{from_status}' to '{to_status}'",
            from_status=from_status,
            to_status=to_status,
        )
        self.from_status = from_status
        self.to_status = to_status


class AlreadyInState(EntitlementError):
    code = "AlreadyInState"

    def __init__(self, status: str):
        super().__init__(f"application is already '{status}'", status=status)
        self.status = status


class MissingInterviewDetails(EntitlementError):
    code = "MissingInterviewDetails"

    def __init__(self, missing):
        missing = list(missing)
        super().__init__(
            "interview_date, interview_time and interview_location are required",
            missing=missing,
        )
        self.missing = missing


class ApplicationNotFound(EntitlementError):
    http_status = 404
    code = "ApplicationNotFound"

    def __init__(self, application_id: str):
        super().__init__(f"application {application_id} not found", application_id=application_id)


class JobNotFound(EntitlementError):
    http_status = 404
    code = "JobNotFound"

    def __init__(self, job_id: str):
        super().__init__(f"job {job_id} not found", job_id=job_id)


class AccountNotFound(EntitlementError):
    http_status = 404
    code = "AccountNotFound"

    def __init__(self, account_id: str):
        super().__init__(f"account {account_id} not found", account_id=account_id)


class QuotaExhausted(EntitlementError):
    """No contact-view credits left on the employer's current plan."""

    http_status = 402
    code = "QuotaExhausted"

    def __init__(self, employer_id: str, plan_name: Optional[str] = None):
        super().__init__(
            "contact view limit reached for the current plan; upgrade to view more contacts",
            employer_id=employer_id,
            plan_name=plan_name,
            upgrade_url="/employer/upgrade-plan",
        )


class JobQuotaExhausted(EntitlementError):
    http_status = 402
    code = "JobQuotaExhausted"

    def __init__(self, employer_id: str):
        super().__init__(
            "job posting limit reached for the current plan",
            employer_id=employer_id,
            upgrade_url="/employer/upgrade-plan",
        )


class ApplyQuotaExhausted(EntitlementError):
    http_status = 402
    code = "ApplyQuotaExhausted"

    def __init__(self, employee_id: str):
        super().__init__(
            "application limit reached for the current plan",
            employee_id=employee_id,
            upgrade_url="/employee/upgrade-plan",
        )


class AlreadyApplied(EntitlementError):
    http_status = 409
    code = "AlreadyApplied"

    def __init__(self, job_id: str, employee_id: str):
        super().__init__("already applied to this job", job_id=job_id, employee_id=employee_id)


class ConcurrencyConflict(EntitlementError):
    """The application changed underneath us more times than we retry."""

    http_status = 409
    code = "ConcurrencyConflict"

    def __init__(self, application_id: str):
        super().__init__(
            f"application {application_id} was modified concurrently; reload and try again",
            application_id=application_id,
        )
