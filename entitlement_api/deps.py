# entitlement_api/deps.py
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .config import settings
from .db import SessionLocal
from .models import Employee, Employer
from .services.gateway import EntitlementGateway


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def require_api_key(x_api_key: str | None = Header(None)):
    """Require a matching X-API-Key header when API_KEY is configured.

    - If API_KEY is empty/missing, auth is effectively disabled (no-op).
    - If API_KEY is set and header doesn't match, raise 401.
    """
    expected = settings.API_KEY.strip()
    if not expected:
        # auth disabled when no API key configured
        return
    if x_api_key != expected:
        raise HTTPException(status_code=401, detail="Unauthorized: invalid API key")
    return


def get_gateway(db: Session = Depends(get_db)) -> EntitlementGateway:
    return EntitlementGateway(db)


# The identity provider authenticates the caller upstream and forwards the
# account id; these only check the account exists and has the right role.
def current_employer(
    x_account_id: str | None = Header(None),
    db: Session = Depends(get_db),
) -> Employer:
    employer = db.get(Employer, x_account_id) if x_account_id else None
    if employer is None:
        raise HTTPException(status_code=401, detail="Unauthorized: employer account required")
    return employer


def current_employee(
    x_account_id: str | None = Header(None),
    db: Session = Depends(get_db),
) -> Employee:
    employee = db.get(Employee, x_account_id) if x_account_id else None
    if employee is None:
        raise HTTPException(status_code=401, detail="Unauthorized: employee account required")
    return employee
