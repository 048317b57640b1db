"""Plan entitlement resolution.

Limits are stored as integers with ``-1`` meaning unlimited. That sentinel is
converted to a :class:`Quota` on the way in and back on the way out; nothing in
between does arithmetic on ``-1``.

Consumption is never a stored counter. Contact views are counted from
``contact_views`` rows debited in the current consumption window, which is
keyed by subscription id (``default:<account_id>`` on the default plan), so an
upgrade starts from zero without rewriting history. Jobs posted and
applications made are counted from the start of the same window. The free
period that follows a lapsed subscription is a new window starting at the
lapse, keyed ``default:<account_id>:<subscription_id>``.
"""
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from pydantic import BaseModel, ConfigDict
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..db import utcnow
from ..errors import AccountNotFound
from ..logging_config import get_logger
from ..models import AccountType, Employee, Employer, Job, Plan, Subscription
from .repository import ApplicationRepository

logger = get_logger(__name__)

UNLIMITED = -1


class Quota(BaseModel):
    """Either ``Unlimited`` (``limit is None``) or ``Limited(n)``."""

    model_config = ConfigDict(frozen=True)

    limit: Optional[int] = None

    @classmethod
    def unlimited(cls) -> "Quota":
        return cls(limit=None)

    @classmethod
    def limited(cls, n: int) -> "Quota":
        if n < 0:
            raise ValueError(f"limited quota cannot be negative: {n}")
        return cls(limit=n)

    @classmethod
    def from_raw(cls, raw: Optional[int]) -> "Quota":
        if raw == UNLIMITED:
            return cls.unlimited()
        return cls.limited(max(int(raw or 0), 0))

    @property
    def is_unlimited(self) -> bool:
        return self.limit is None

    def remaining(self, consumed: int) -> "Quota":
        if self.is_unlimited:
            return self
        return Quota.limited(max(self.limit - consumed, 0))

    def to_raw(self) -> int:
        return UNLIMITED if self.is_unlimited else self.limit

    def to_display(self) -> Union[int, str]:
        return "unlimited" if self.is_unlimited else self.limit


class QuotaUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: Quota
    consumed: int = 0

    @property
    def remaining(self) -> Quota:
        return self.total.remaining(self.consumed)

    @property
    def exhausted(self) -> bool:
        return self.remaining.limit == 0


class PlanEntitlement(BaseModel):
    model_config = ConfigDict(frozen=True)

    account_id: str
    account_type: AccountType
    plan_id: Optional[str] = None
    plan_name: str
    description: Optional[str] = None
    price: float = 0.0
    is_default: bool
    is_expired: bool = False
    subscription_id: Optional[str] = None
    period_key: str
    started_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    days_remaining: Optional[int] = None
    # employer: jobs posted; employee: jobs applied to
    jobs: QuotaUsage
    # employer: employee contact reveals; employee: employer contact reveals
    contact_views: QuotaUsage
    allows_free_contact_view: bool = False

    @property
    def quota_total(self) -> Quota:
        return self.contact_views.total

    @property
    def quota_consumed(self) -> int:
        return self.contact_views.consumed

    @property
    def quota_remaining(self) -> Quota:
        return self.contact_views.remaining


class ActivePlan(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    plan: Plan
    subscription: Optional[Subscription] = None
    period_key: str
    started_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_expired: bool = False


def default_period_key(account_id: str, lapsed_subscription_id: Optional[str] = None) -> str:
    if lapsed_subscription_id is None:
        return f"default:{account_id}"
    return f"default:{account_id}:{lapsed_subscription_id}"


def _empty_plan(account_type: AccountType) -> Plan:
    # transient; never added to the session
    return Plan(
        id=None,
        name="Free",
        type=account_type.value,
        price=0,
        validity_days=0,
        is_default=True,
        jobs_can_post=0,
        employee_contact_details_can_view=0,
        jobs_can_apply=0,
        allows_free_contact_view=False,
    )


class PlanEntitlementResolver:
    def __init__(
        self,
        db: Session,
        repository: Optional[ApplicationRepository] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.repository = repository or ApplicationRepository(db)
        self.clock = clock

    def _default_plan(self, account_type: AccountType) -> Plan:
        stmt = (
            select(Plan)
            .where(Plan.type == account_type.value, Plan.is_default.is_(True))
            .order_by(Plan.price)
        )
        plan = self.db.scalars(stmt).first()
        if plan is None:
            logger.warning("no default %s plan configured; using zero limits", account_type.value)
            return _empty_plan(account_type)
        return plan

    def active_plan(self, account_id: str, account_type: AccountType) -> ActivePlan:
        """Current paid subscription, or the default plan when none is live."""
        account_type = AccountType(account_type)
        stmt = (
            select(Subscription)
            .where(
                Subscription.account_id == account_id,
                Subscription.account_type == account_type.value,
                Subscription.is_active.is_(True),
            )
            .order_by(Subscription.started_at.desc())
        )
        subscription = self.db.scalars(stmt).first()
        lapsed_at = None
        if subscription is not None:
            plan = subscription.plan
            expires_at = subscription.started_at + timedelta(days=plan.validity_days or 0)
            if expires_at < self.clock():
                lapsed_at = expires_at
                logger.info(
                    "subscription %s for %s %s lapsed at %s; falling back to default plan",
                    subscription.id, account_type.value, account_id, expires_at,
                )
            else:
                return ActivePlan(
                    plan=plan,
                    subscription=subscription,
                    period_key=subscription.id,
                    started_at=subscription.started_at,
                    expires_at=expires_at,
                )

        if lapsed_at is None:
            return ActivePlan(
                plan=self._default_plan(account_type),
                period_key=default_period_key(account_id),
            )
        # the free period after a lapse is a window of its own
        return ActivePlan(
            plan=self._default_plan(account_type),
            period_key=default_period_key(account_id, subscription.id),
            started_at=lapsed_at,
            is_expired=True,
        )

    def resolve(self, account_id: str, account_type: AccountType) -> PlanEntitlement:
        account_type = AccountType(account_type)
        active = self.active_plan(account_id, account_type)
        plan = active.plan

        if account_type == AccountType.EMPLOYER:
            jobs = QuotaUsage(
                total=Quota.from_raw(plan.jobs_can_post),
                consumed=self._jobs_posted(account_id, active.started_at),
            )
            contact_views = QuotaUsage(
                total=Quota.from_raw(plan.employee_contact_details_can_view),
                consumed=self.repository.count_consumed_views(account_id, active.period_key),
            )
        else:
            jobs = QuotaUsage(
                total=Quota.from_raw(plan.jobs_can_apply),
                consumed=self.repository.count_applications_since(account_id, active.started_at),
            )
            # employees never reveal contacts through this service
            contact_views = QuotaUsage(total=Quota.from_raw(plan.employee_contact_details_can_view))

        days_remaining = None
        if active.expires_at is not None:
            days_remaining = max((active.expires_at - self.clock()).days, 0)

        return PlanEntitlement(
            account_id=account_id,
            account_type=account_type,
            plan_id=plan.id,
            plan_name=plan.name,
            description=plan.description,
            price=float(plan.price or 0),
            is_default=active.subscription is None,
            is_expired=active.is_expired,
            subscription_id=active.subscription.id if active.subscription else None,
            period_key=active.period_key,
            started_at=active.started_at,
            expires_at=active.expires_at,
            days_remaining=days_remaining,
            jobs=jobs,
            contact_views=contact_views,
            allows_free_contact_view=bool(plan.allows_free_contact_view),
        )

    def allows_free_contact_view(self, employee_id: str) -> bool:
        """Free-view override from the employee's live plan."""
        plan = self.active_plan(employee_id, AccountType.EMPLOYEE).plan
        return bool(plan.allows_free_contact_view)

    def _jobs_posted(self, employer_id: str, since: Optional[datetime]) -> int:
        stmt = select(func.count()).select_from(Job).where(Job.employer_id == employer_id)
        if since is not None:
            stmt = stmt.where(Job.created_at >= since)
        return int(self.db.scalar(stmt) or 0)


def activate_plan(
    db: Session,
    account_id: str,
    plan_id: str,
    started_at: Optional[datetime] = None,
) -> Subscription:
    """Start a new subscription window, closing any previous one.

    Called by the payment flow once a payment is verified. Consumption from the
    previous window stays attached to its old period key.
    """
    plan = db.get(Plan, plan_id)
    if plan is None:
        raise ValueError(f"unknown plan {plan_id}")
    account_type = AccountType(plan.type)
    model = Employer if account_type == AccountType.EMPLOYER else Employee
    if db.get(model, account_id) is None:
        raise AccountNotFound(account_id)

    previous = db.scalars(
        select(Subscription).where(
            Subscription.account_id == account_id,
            Subscription.account_type == account_type.value,
            Subscription.is_active.is_(True),
        )
    ).all()
    for sub in previous:
        sub.is_active = False

    subscription = Subscription(
        account_id=account_id,
        account_type=account_type.value,
        plan_id=plan.id,
        started_at=started_at or utcnow(),
        is_active=True,
    )
    db.add(subscription)
    db.commit()
    logger.info(
        "activated plan %s (%s) for %s %s; closed %d previous subscription(s)",
        plan.name, plan.id, account_type.value, account_id, len(previous),
    )
    return subscription
