"""Recruiting status policy for job applications.

This is the one place the allowed status edges live. Routers, dashboards and
list views ask :func:`allowed_targets` instead of re-deriving the table.

    applied             -> shortlisted | interview_scheduled | rejected
    shortlisted         -> interview_scheduled | selected | rejected
    interview_scheduled -> selected | rejected
    selected, rejected  -> (terminal)
"""
from typing import Dict, FrozenSet, Mapping, Optional

from ..db import utcnow
from ..errors import AlreadyInState, InvalidTransition, MissingInterviewDetails
from ..models import Application, ApplicationStatus

S = ApplicationStatus

TRANSITIONS: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    S.APPLIED: frozenset({S.SHORTLISTED, S.INTERVIEW_SCHEDULED, S.REJECTED}),
    S.SHORTLISTED: frozenset({S.INTERVIEW_SCHEDULED, S.SELECTED, S.REJECTED}),
    S.INTERVIEW_SCHEDULED: frozenset({S.SELECTED, S.REJECTED}),
    S.SELECTED: frozenset(),
    S.REJECTED: frozenset(),
}

INTERVIEW_FIELDS = ("interview_date", "interview_time", "interview_location")

STATUS_LABELS = {
    S.APPLIED: "Applied",
    S.SHORTLISTED: "Shortlisted",
    S.INTERVIEW_SCHEDULED: "Interview Scheduled",
    S.SELECTED: "Selected",
    S.REJECTED: "Rejected",
}


def allowed_targets(status: ApplicationStatus) -> FrozenSet[ApplicationStatus]:
    return TRANSITIONS[status]


def is_terminal(status: ApplicationStatus) -> bool:
    return not TRANSITIONS[status]


def _interview_payload(payload: Optional[Mapping[str, object]]) -> Dict[str, str]:
    payload = payload or {}
    values = {}
    missing = []
    for field in INTERVIEW_FIELDS:
        raw = payload.get(field)
        value = str(raw).strip() if raw is not None else ""
        if not value:
            missing.append(field)
        values[field] = value
    if missing:
        raise MissingInterviewDetails(missing)
    return values


class ApplicationStateMachine:
    """Validates a requested status change and applies it to the application.

    ``transition`` either raises before touching the application or updates
    status and interview fields together. It does not persist or notify.
    """

    def transition(
        self,
        application: Application,
        target: ApplicationStatus,
        payload: Optional[Mapping[str, object]] = None,
    ) -> Application:
        target = ApplicationStatus(target)
        current = application.status
        if current == target:
            raise AlreadyInState(current.value)
        if target not in TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value)

        interview = None
        if target == S.INTERVIEW_SCHEDULED:
            interview = _interview_payload(payload)

        application.status = target
        if interview is not None:
            application.interview_date = interview["interview_date"]
            application.interview_time = interview["interview_time"]
            application.interview_location = interview["interview_location"]
        application.updated_at = utcnow()
        return application
