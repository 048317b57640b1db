from typing import Dict, Optional

from ..logging_config import get_logger

logger = get_logger(__name__)


def notify_status_change(
    application_id: str,
    employee_id: str,
    from_status: str,
    to_status: str,
    interview: Optional[Dict[str, str]] = None,
):
    """Tell the employee their application moved.

    Runs as a FastAPI background task after the transition has committed, so a
    failure here never undoes the transition. Delivery (email, push) belongs to
    the messaging service; this hook only records the event.
    """
    if interview:
        logger.info(
            "notify employee=%s application=%s %s -> %s interview=%s %s at %s",
            employee_id, application_id, from_status, to_status,
            interview.get("interview_date"), interview.get("interview_time"),
            interview.get("interview_location"),
        )
    else:
        logger.info(
            "notify employee=%s application=%s %s -> %s",
            employee_id, application_id, from_status, to_status,
        )
