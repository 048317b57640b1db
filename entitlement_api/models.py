import enum
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .db import Base, utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


class ApplicationStatus(str, enum.Enum):
    APPLIED = "applied"
    SHORTLISTED = "shortlisted"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    SELECTED = "selected"
    REJECTED = "rejected"


class AccountType(str, enum.Enum):
    EMPLOYER = "employer"
    EMPLOYEE = "employee"


class Plan(Base):
    __tablename__ = "plans"
    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(16), nullable=False)    # AccountType value
    price = Column(Numeric(10, 2), nullable=False, default=0)
    validity_days = Column(Integer, nullable=False, default=30)
    is_default = Column(Boolean, nullable=False, default=False)
    # -1 means unlimited for every limit column
    jobs_can_post = Column(Integer, nullable=False, default=0)
    employee_contact_details_can_view = Column(Integer, nullable=False, default=0)
    jobs_can_apply = Column(Integer, nullable=False, default=0)
    allows_free_contact_view = Column(Boolean, nullable=False, default=False)


class Subscription(Base):
    __tablename__ = "subscriptions"
    id = Column(String(36), primary_key=True, default=_uuid)
    account_id = Column(String(36), nullable=False, index=True)
    account_type = Column(String(16), nullable=False)
    plan_id = Column(String(36), ForeignKey("plans.id"), nullable=False)
    started_at = Column(DateTime, nullable=False, default=utcnow)
    is_active = Column(Boolean, nullable=False, default=True)

    plan = relationship("Plan")


class Employer(Base):
    __tablename__ = "employers"
    id = Column(String(36), primary_key=True, default=_uuid)
    company_name = Column(String(256), nullable=False)
    email = Column(String(256), nullable=False)
    contact = Column(String(64), nullable=True)
    address = Column(JSON, nullable=True)

    jobs = relationship("Job", back_populates="employer")


class Employee(Base):
    __tablename__ = "employees"
    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(256), nullable=True)
    email = Column(String(256), nullable=False)
    mobile = Column(String(64), nullable=True)
    address = Column(JSON, nullable=True)
    skills = Column(JSON, nullable=True)


class Job(Base):
    __tablename__ = "jobs"
    id = Column(String(36), primary_key=True, default=_uuid)
    employer_id = Column(String(36), ForeignKey("employers.id"), nullable=False, index=True)
    title = Column(String(512), nullable=False)
    description = Column(Text, nullable=True)
    salary = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    employer = relationship("Employer", back_populates="jobs")


class Application(Base):
    __tablename__ = "applications"
    id = Column(String(36), primary_key=True, default=_uuid)
    job_id = Column(String(36), ForeignKey("jobs.id"), nullable=False, index=True)
    employee_id = Column(String(36), ForeignKey("employees.id"), nullable=False, index=True)
    employer_id = Column(String(36), ForeignKey("employers.id"), nullable=False, index=True)
    status = Column(
        Enum(
            ApplicationStatus,
            native_enum=False,
            length=32,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ApplicationStatus.APPLIED,
    )
    applied_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True)
    interview_date = Column(String(32), nullable=True)
    interview_time = Column(String(32), nullable=True)
    interview_location = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)

    job = relationship("Job")
    employee = relationship("Employee")
    events = relationship(
        "ApplicationEvent", back_populates="application", order_by="ApplicationEvent.id"
    )

    __table_args__ = (
        UniqueConstraint("job_id", "employee_id", name="uq_applications_job_employee"),
    )
    # UPDATE ... WHERE version = :seen; zero rows raises StaleDataError
    __mapper_args__ = {"version_id_col": version}


class ApplicationEvent(Base):
    """Append-only status history; applications are never hard-deleted."""

    __tablename__ = "application_events"
    id = Column(Integer, primary_key=True, autoincrement=True)
    application_id = Column(String(36), ForeignKey("applications.id"), nullable=False, index=True)
    from_status = Column(String(32), nullable=True)
    to_status = Column(String(32), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    application = relationship("Application", back_populates="events")


class ContactView(Base):
    __tablename__ = "contact_views"
    id = Column(Integer, primary_key=True, autoincrement=True)
    employer_id = Column(String(36), ForeignKey("employers.id"), nullable=False)
    employee_id = Column(String(36), ForeignKey("employees.id"), nullable=False)
    # application the reveal was requested from, kept for audit only
    application_id = Column(String(36), ForeignKey("applications.id"), nullable=True)
    # subscription id, or "default:<employer_id>" when on the default plan
    period_key = Column(String(64), nullable=False, index=True)
    consumed_quota = Column(Boolean, nullable=False)
    contact_snapshot = Column(JSON, nullable=False)
    viewed_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("employer_id", "employee_id", name="uq_contact_views_employer_employee"),
    )
