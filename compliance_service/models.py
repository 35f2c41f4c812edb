import datetime
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)

from .database import Base


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class Startup(Base):
    __tablename__ = "startups"
    __table_args__ = (
        CheckConstraint(
            "compliance_status IN ('Compliant', 'Pending', 'Non-Compliant')",
            name="ck_startups_compliance_status_allowed",
        ),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(length=255), nullable=False)
    user_id = Column(String, nullable=False, index=True)
    country_of_registration = Column(String(length=128), nullable=True)
    company_type = Column(String(length=128), nullable=True)
    registration_date = Column(Date, nullable=True)
    compliance_status = Column(String(length=16), nullable=False, default="Pending")
    ca_service_code = Column(String(length=64), nullable=True, index=True)
    cs_service_code = Column(String(length=64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class Subsidiary(Base):
    __tablename__ = "subsidiaries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    startup_id = Column(Integer, ForeignKey("startups.id", ondelete="CASCADE"), nullable=False, index=True)
    country = Column(String(length=128), nullable=False)
    company_type = Column(String(length=128), nullable=False)
    registration_date = Column(Date, nullable=True)
    ca_code = Column(String(length=64), nullable=True)
    cs_code = Column(String(length=64), nullable=True)


class InternationalOperation(Base):
    __tablename__ = "international_operations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    startup_id = Column(Integer, ForeignKey("startups.id", ondelete="CASCADE"), nullable=False, index=True)
    country = Column(String(length=128), nullable=False)
    company_type = Column(String(length=128), nullable=False)
    start_date = Column(Date, nullable=True)


class ComplianceRule(Base):
    __tablename__ = "compliance_rules"
    __table_args__ = (
        CheckConstraint(
            "frequency IN ('first-year', 'monthly', 'quarterly', 'annual')",
            name="ck_compliance_rules_frequency_allowed",
        ),
        CheckConstraint(
            "verification_required IN ('CA', 'CS', 'both')",
            name="ck_compliance_rules_verification_required_allowed",
        ),
        Index("ix_compliance_rules_country_company_type", "country_code", "company_type"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    country_code = Column(String(length=8), nullable=False)
    country_name = Column(String(length=128), nullable=False)
    company_type = Column(String(length=128), nullable=False)
    compliance_name = Column(String(length=255), nullable=False)
    compliance_description = Column(String(length=2000), nullable=True)
    frequency = Column(String(length=16), nullable=False)
    verification_required = Column(String(length=8), nullable=False)
    ca_type = Column(String(length=128), nullable=True)
    cs_type = Column(String(length=128), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class ComplianceCheck(Base):
    __tablename__ = "compliance_checks"
    __table_args__ = (
        UniqueConstraint("startup_id", "task_id", name="uq_compliance_checks_startup_task"),
        CheckConstraint(
            "ca_status IN ('Pending', 'Verified', 'Rejected')",
            name="ck_compliance_checks_ca_status_allowed",
        ),
        CheckConstraint(
            "cs_status IN ('Pending', 'Verified', 'Rejected')",
            name="ck_compliance_checks_cs_status_allowed",
        ),
        Index("ix_compliance_checks_startup_entity_year", "startup_id", "entity_identifier", "year"),
    )

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    startup_id = Column(Integer, ForeignKey("startups.id", ondelete="CASCADE"), nullable=False, index=True)
    task_id = Column(String(length=255), nullable=False)
    rule_id = Column(Integer, nullable=True)
    entity_identifier = Column(String(length=32), nullable=False, default="parent")
    entity_display_name = Column(String(length=128), nullable=False)
    year = Column(Integer, nullable=False)
    period = Column(String(length=8), nullable=True)
    frequency = Column(String(length=16), nullable=True)
    task_name = Column(String(length=255), nullable=False)
    description = Column(String(length=2000), nullable=True)
    ca_required = Column(Boolean, nullable=False, default=False)
    cs_required = Column(Boolean, nullable=False, default=False)
    ca_status = Column(String(length=16), nullable=False, default="Pending")
    cs_status = Column(String(length=16), nullable=False, default="Pending")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class ComplianceUpload(Base):
    __tablename__ = "compliance_uploads"
    __table_args__ = (
        CheckConstraint(
            "verification_status IN ('pending', 'verified', 'rejected', 'under_review')",
            name="ck_compliance_uploads_verification_status_allowed",
        ),
        Index("ix_compliance_uploads_startup_task", "startup_id", "task_id"),
    )

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    startup_id = Column(Integer, ForeignKey("startups.id", ondelete="CASCADE"), nullable=False)
    task_id = Column(String(length=255), nullable=False)
    file_name = Column(String(length=255), nullable=False)
    file_url = Column(String(length=1000), nullable=False)
    uploaded_by = Column(String, nullable=False)
    file_size = Column(Integer, nullable=True)
    file_type = Column(String(length=128), nullable=True)
    document_type = Column(String(length=64), nullable=False, default="compliance_document")
    verification_status = Column(String(length=16), nullable=False, default="pending")
    verification_confidence = Column(Float, nullable=True)
    verification_reasons = Column(JSON, nullable=False, default=list)
    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class RuleSubmission(Base):
    __tablename__ = "rule_submissions"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'under_review', 'approved', 'rejected')",
            name="ck_rule_submissions_status_allowed",
        ),
        CheckConstraint(
            "operation_type IN ('parent', 'subsidiary', 'international')",
            name="ck_rule_submissions_operation_type_allowed",
        ),
        Index("ix_rule_submissions_status", "status"),
        Index("ix_rule_submissions_submitter_created_at", "submitted_by_user_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    submitted_by_user_id = Column(String, nullable=False)
    submitted_by_role = Column(String(length=64), nullable=False)
    submitted_by_email = Column(String(length=255), nullable=True)
    company_name = Column(String(length=255), nullable=False)
    company_type = Column(String(length=128), nullable=False)
    operation_type = Column(String(length=16), nullable=False)
    country_code = Column(String(length=8), nullable=False)
    country_name = Column(String(length=128), nullable=False)
    ca_type = Column(String(length=128), nullable=True)
    cs_type = Column(String(length=128), nullable=True)
    compliance_name = Column(String(length=255), nullable=False)
    compliance_description = Column(String(length=2000), nullable=True)
    frequency = Column(String(length=16), nullable=False)
    verification_required = Column(String(length=8), nullable=False)
    justification = Column(String(length=2000), nullable=True)
    regulatory_reference = Column(String(length=500), nullable=True)
    supporting_documents = Column(JSON, nullable=False, default=list)
    status = Column(String(length=16), nullable=False, default="pending")
    reviewed_by_user_id = Column(String, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    review_notes = Column(String(length=2000), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class ServiceAssignment(Base):
    __tablename__ = "service_assignments"
    __table_args__ = (
        CheckConstraint("role IN ('CA', 'CS')", name="ck_service_assignments_role_allowed"),
        CheckConstraint(
            "status IN ('pending', 'active', 'rejected', 'removed')",
            name="ck_service_assignments_status_allowed",
        ),
        Index("ix_service_assignments_user_status", "user_id", "status"),
        Index("ix_service_assignments_startup_status", "startup_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    startup_id = Column(Integer, ForeignKey("startups.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, nullable=False)
    role = Column(String(length=8), nullable=False)
    service_code = Column(String(length=64), nullable=True)
    status = Column(String(length=16), nullable=False, default="pending")
    notes = Column(String(length=1000), nullable=True)
    requested_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    decided_at = Column(DateTime(timezone=True), nullable=True)
