"""Contact disclosure ledger.

A reveal is a one-time event per (employer, employee) pair. The row in
``contact_views`` is both the disclosure record and, when
``consumed_quota`` is true, the quota debit. The unique constraint on the pair
is what makes concurrent reveals safe: whichever insert commits first wins and
every other caller re-reads and reports ``already_viewed``.
"""
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import AccountNotFound, QuotaExhausted
from ..logging_config import get_logger
from ..models import AccountType, ContactView, Employee, Employer
from .plans import PlanEntitlementResolver
from .repository import ApplicationRepository

logger = get_logger(__name__)


class RevealResult(BaseModel):
    contact: Dict[str, Any]
    already_viewed: bool
    consumed_quota: bool
    free_view: bool = False


class ContactDisclosureLedger:
    def __init__(
        self,
        db: Session,
        repository: Optional[ApplicationRepository] = None,
        resolver: Optional[PlanEntitlementResolver] = None,
        transient_retries: Optional[int] = None,
    ):
        self.db = db
        self.repository = repository or ApplicationRepository(db)
        self.resolver = resolver or PlanEntitlementResolver(db, self.repository)
        self.transient_retries = (
            settings.TRANSIENT_RETRY_LIMIT if transient_retries is None else transient_retries
        )

    def reveal(self, employer_id: str, employee_id: str, application_id: Optional[str] = None) -> RevealResult:
        attempt = 0
        while True:
            try:
                return self._reveal_once(employer_id, employee_id, application_id)
            except OperationalError as e:
                # a retry starts from the pair read, so an insert that did
                # commit is reported as already viewed, never debited twice
                self.db.rollback()
                if attempt >= self.transient_retries:
                    raise
                attempt += 1
                logger.warning(
                    "transient db error revealing employee=%s to employer=%s (attempt %d): %s",
                    employee_id, employer_id, attempt, e,
                )

    def _reveal_once(self, employer_id: str, employee_id: str, application_id: Optional[str]) -> RevealResult:
        existing = self.repository.find_contact_view(employer_id, employee_id)
        if existing is not None:
            return self._already_viewed(existing)

        employee = self.db.get(Employee, employee_id)
        if employee is None:
            raise AccountNotFound(employee_id)
        if self.db.get(Employer, employer_id) is None:
            raise AccountNotFound(employer_id)

        if self.resolver.allows_free_contact_view(employee_id):
            # still recorded, for idempotency and audit, but not debited
            period_key = self.resolver.active_plan(employer_id, AccountType.EMPLOYER).period_key
            view, inserted = self._insert(employer_id, employee, period_key, False, application_id)
            if not inserted:
                return self._already_viewed(view)
            logger.info("free contact view employer=%s employee=%s", employer_id, employee_id)
            return RevealResult(
                contact=view.contact_snapshot,
                already_viewed=False,
                consumed_quota=False,
                free_view=True,
            )

        # Serialise debits per employer so two different employees cannot both
        # take the last credit. The pair check is repeated under the lock.
        if self.repository.lock_employer(employer_id) is None:
            self.db.rollback()
            raise AccountNotFound(employer_id)
        existing = self.repository.find_contact_view(employer_id, employee_id)
        if existing is not None:
            result = self._already_viewed(existing)
            self.db.rollback()
            return result

        entitlement = self.resolver.resolve(employer_id, AccountType.EMPLOYER)
        if entitlement.contact_views.exhausted:
            # the last credit may have gone to this very pair
            existing = self.repository.find_contact_view(employer_id, employee_id)
            if existing is not None:
                result = self._already_viewed(existing)
                self.db.rollback()
                return result
            self.db.rollback()
            logger.info(
                "contact view refused employer=%s employee=%s: quota exhausted (%d/%s on %s)",
                employer_id, employee_id, entitlement.quota_consumed,
                entitlement.quota_total.to_display(), entitlement.plan_name,
            )
            raise QuotaExhausted(employer_id, entitlement.plan_name)

        view, inserted = self._insert(employer_id, employee, entitlement.period_key, True, application_id)
        if not inserted:
            return self._already_viewed(view)

        logger.info(
            "contact view debited employer=%s employee=%s period=%s consumed=%d/%s",
            employer_id, employee_id, entitlement.period_key,
            entitlement.quota_consumed + 1, entitlement.quota_total.to_display(),
        )
        return RevealResult(
            contact=view.contact_snapshot,
            already_viewed=False,
            consumed_quota=True,
        )

    def _insert(
        self,
        employer_id: str,
        employee: Employee,
        period_key: str,
        consumed_quota: bool,
        application_id: Optional[str],
    ) -> Tuple[ContactView, bool]:
        """Insert and commit the view as one unit.

        Returns the view and whether this call created it. When another caller
        won the pair, their committed view is returned instead.
        """
        employee_id = employee.id
        try:
            view = self.repository.add_contact_view(
                employer_id, employee, period_key, consumed_quota, application_id
            )
            self.db.commit()
            return view, True
        except IntegrityError:
            self.db.rollback()
            existing = self.repository.find_contact_view(employer_id, employee_id)
            if existing is not None:
                logger.info(
                    "concurrent reveal employer=%s employee=%s; using committed view",
                    employer_id, employee_id,
                )
                return existing, False
            # not the pair constraint; an account row went missing
            if self.db.get(Employer, employer_id) is None:
                raise AccountNotFound(employer_id)
            if self.db.get(Employee, employee_id) is None:
                raise AccountNotFound(employee_id)
            raise
        except Exception:
            self.db.rollback()
            raise

    def _already_viewed(self, view: ContactView) -> RevealResult:
        return RevealResult(
            contact=view.contact_snapshot,
            already_viewed=True,
            consumed_quota=False,
            free_view=not view.consumed_quota,
        )
