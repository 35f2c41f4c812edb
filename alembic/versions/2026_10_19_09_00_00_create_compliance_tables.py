"""create compliance tables

Revision ID: 5d2e8c1a7b90
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5d2e8c1a7b90"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "startups",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("country_of_registration", sa.String(length=128), nullable=True),
        sa.Column("company_type", sa.String(length=128), nullable=True),
        sa.Column("registration_date", sa.Date(), nullable=True),
        sa.Column("compliance_status", sa.String(length=16), nullable=False),
        sa.Column("ca_service_code", sa.String(length=64), nullable=True),
        sa.Column("cs_service_code", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "compliance_status IN ('Compliant', 'Pending', 'Non-Compliant')",
            name="ck_startups_compliance_status_allowed",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_startups_id"), "startups", ["id"], unique=False)
    op.create_index(op.f("ix_startups_user_id"), "startups", ["user_id"], unique=False)
    op.create_index(op.f("ix_startups_ca_service_code"), "startups", ["ca_service_code"], unique=False)
    op.create_index(op.f("ix_startups_cs_service_code"), "startups", ["cs_service_code"], unique=False)

    op.create_table(
        "subsidiaries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("startup_id", sa.Integer(), nullable=False),
        sa.Column("country", sa.String(length=128), nullable=False),
        sa.Column("company_type", sa.String(length=128), nullable=False),
        sa.Column("registration_date", sa.Date(), nullable=True),
        sa.Column("ca_code", sa.String(length=64), nullable=True),
        sa.Column("cs_code", sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(["startup_id"], ["startups.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_subsidiaries_id"), "subsidiaries", ["id"], unique=False)
    op.create_index(op.f("ix_subsidiaries_startup_id"), "subsidiaries", ["startup_id"], unique=False)

    op.create_table(
        "international_operations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("startup_id", sa.Integer(), nullable=False),
        sa.Column("country", sa.String(length=128), nullable=False),
        sa.Column("company_type", sa.String(length=128), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(["startup_id"], ["startups.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_international_operations_id"), "international_operations", ["id"], unique=False)
    op.create_index(
        op.f("ix_international_operations_startup_id"),
        "international_operations",
        ["startup_id"],
        unique=False,
    )

    op.create_table(
        "compliance_rules",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("country_code", sa.String(length=8), nullable=False),
        sa.Column("country_name", sa.String(length=128), nullable=False),
        sa.Column("company_type", sa.String(length=128), nullable=False),
        sa.Column("compliance_name", sa.String(length=255), nullable=False),
        sa.Column("compliance_description", sa.String(length=2000), nullable=True),
        sa.Column("frequency", sa.String(length=16), nullable=False),
        sa.Column("verification_required", sa.String(length=8), nullable=False),
        sa.Column("ca_type", sa.String(length=128), nullable=True),
        sa.Column("cs_type", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "frequency IN ('first-year', 'monthly', 'quarterly', 'annual')",
            name="ck_compliance_rules_frequency_allowed",
        ),
        sa.CheckConstraint(
            "verification_required IN ('CA', 'CS', 'both')",
            name="ck_compliance_rules_verification_required_allowed",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_compliance_rules_id"), "compliance_rules", ["id"], unique=False)
    op.create_index(
        "ix_compliance_rules_country_company_type",
        "compliance_rules",
        ["country_code", "company_type"],
        unique=False,
    )

    op.create_table(
        "compliance_checks",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("startup_id", sa.Integer(), nullable=False),
        sa.Column("task_id", sa.String(length=255), nullable=False),
        sa.Column("rule_id", sa.Integer(), nullable=True),
        sa.Column("entity_identifier", sa.String(length=32), nullable=False),
        sa.Column("entity_display_name", sa.String(length=128), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("period", sa.String(length=8), nullable=True),
        sa.Column("frequency", sa.String(length=16), nullable=True),
        sa.Column("task_name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=2000), nullable=True),
        sa.Column("ca_required", sa.Boolean(), nullable=False),
        sa.Column("cs_required", sa.Boolean(), nullable=False),
        sa.Column("ca_status", sa.String(length=16), nullable=False),
        sa.Column("cs_status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "ca_status IN ('Pending', 'Verified', 'Rejected')",
            name="ck_compliance_checks_ca_status_allowed",
        ),
        sa.CheckConstraint(
            "cs_status IN ('Pending', 'Verified', 'Rejected')",
            name="ck_compliance_checks_cs_status_allowed",
        ),
        sa.ForeignKeyConstraint(["startup_id"], ["startups.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("startup_id", "task_id", name="uq_compliance_checks_startup_task"),
    )
    op.create_index(op.f("ix_compliance_checks_id"), "compliance_checks", ["id"], unique=False)
    op.create_index(op.f("ix_compliance_checks_startup_id"), "compliance_checks", ["startup_id"], unique=False)
    op.create_index(
        "ix_compliance_checks_startup_entity_year",
        "compliance_checks",
        ["startup_id", "entity_identifier", "year"],
        unique=False,
    )

    op.create_table(
        "compliance_uploads",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("startup_id", sa.Integer(), nullable=False),
        sa.Column("task_id", sa.String(length=255), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_url", sa.String(length=1000), nullable=False),
        sa.Column("uploaded_by", sa.String(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("file_type", sa.String(length=128), nullable=True),
        sa.Column("document_type", sa.String(length=64), nullable=False),
        sa.Column("verification_status", sa.String(length=16), nullable=False),
        sa.Column("verification_confidence", sa.Float(), nullable=True),
        sa.Column("verification_reasons", sa.JSON(), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "verification_status IN ('pending', 'verified', 'rejected', 'under_review')",
            name="ck_compliance_uploads_verification_status_allowed",
        ),
        sa.ForeignKeyConstraint(["startup_id"], ["startups.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_compliance_uploads_id"), "compliance_uploads", ["id"], unique=False)
    op.create_index(
        "ix_compliance_uploads_startup_task",
        "compliance_uploads",
        ["startup_id", "task_id"],
        unique=False,
    )

    op.create_table(
        "rule_submissions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("submitted_by_user_id", sa.String(), nullable=False),
        sa.Column("submitted_by_role", sa.String(length=64), nullable=False),
        sa.Column("submitted_by_email", sa.String(length=255), nullable=True),
        sa.Column("company_name", sa.String(length=255), nullable=False),
        sa.Column("company_type", sa.String(length=128), nullable=False),
        sa.Column("operation_type", sa.String(length=16), nullable=False),
        sa.Column("country_code", sa.String(length=8), nullable=False),
        sa.Column("country_name", sa.String(length=128), nullable=False),
        sa.Column("ca_type", sa.String(length=128), nullable=True),
        sa.Column("cs_type", sa.String(length=128), nullable=True),
        sa.Column("compliance_name", sa.String(length=255), nullable=False),
        sa.Column("compliance_description", sa.String(length=2000), nullable=True),
        sa.Column("frequency", sa.String(length=16), nullable=False),
        sa.Column("verification_required", sa.String(length=8), nullable=False),
        sa.Column("justification", sa.String(length=2000), nullable=True),
        sa.Column("regulatory_reference", sa.String(length=500), nullable=True),
        sa.Column("supporting_documents", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("reviewed_by_user_id", sa.String(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_notes", sa.String(length=2000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'under_review', 'approved', 'rejected')",
            name="ck_rule_submissions_status_allowed",
        ),
        sa.CheckConstraint(
            "operation_type IN ('parent', 'subsidiary', 'international')",
            name="ck_rule_submissions_operation_type_allowed",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_rule_submissions_id"), "rule_submissions", ["id"], unique=False)
    op.create_index("ix_rule_submissions_status", "rule_submissions", ["status"], unique=False)
    op.create_index(
        "ix_rule_submissions_submitter_created_at",
        "rule_submissions",
        ["submitted_by_user_id", "created_at"],
        unique=False,
    )

    op.create_table(
        "service_assignments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("startup_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("role", sa.String(length=8), nullable=False),
        sa.Column("service_code", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("role IN ('CA', 'CS')", name="ck_service_assignments_role_allowed"),
        sa.CheckConstraint(
            "status IN ('pending', 'active', 'rejected', 'removed')",
            name="ck_service_assignments_status_allowed",
        ),
        sa.ForeignKeyConstraint(["startup_id"], ["startups.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_service_assignments_id"), "service_assignments", ["id"], unique=False)
    op.create_index("ix_service_assignments_user_status", "service_assignments", ["user_id", "status"], unique=False)
    op.create_index(
        "ix_service_assignments_startup_status",
        "service_assignments",
        ["startup_id", "status"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_service_assignments_startup_status", table_name="service_assignments")
    op.drop_index("ix_service_assignments_user_status", table_name="service_assignments")
    op.drop_index(op.f("ix_service_assignments_id"), table_name="service_assignments")
    op.drop_table("service_assignments")

    op.drop_index("ix_rule_submissions_submitter_created_at", table_name="rule_submissions")
    op.drop_index("ix_rule_submissions_status", table_name="rule_submissions")
    op.drop_index(op.f("ix_rule_submissions_id"), table_name="rule_submissions")
    op.drop_table("rule_submissions")

    op.drop_index("ix_compliance_uploads_startup_task", table_name="compliance_uploads")
    op.drop_index(op.f("ix_compliance_uploads_id"), table_name="compliance_uploads")
    op.drop_table("compliance_uploads")

    op.drop_index("ix_compliance_checks_startup_entity_year", table_name="compliance_checks")
    op.drop_index(op.f("ix_compliance_checks_startup_id"), table_name="compliance_checks")
    op.drop_index(op.f("ix_compliance_checks_id"), table_name="compliance_checks")
    op.drop_table("compliance_checks")

    op.drop_index("ix_compliance_rules_country_company_type", table_name="compliance_rules")
    op.drop_index(op.f("ix_compliance_rules_id"), table_name="compliance_rules")
    op.drop_table("compliance_rules")

    op.drop_index(op.f("ix_international_operations_startup_id"), table_name="international_operations")
    op.drop_index(op.f("ix_international_operations_id"), table_name="international_operations")
    op.drop_table("international_operations")

    op.drop_index(op.f("ix_subsidiaries_startup_id"), table_name="subsidiaries")
    op.drop_index(op.f("ix_subsidiaries_id"), table_name="subsidiaries")
    op.drop_table("subsidiaries")

    op.drop_index(op.f("ix_startups_cs_service_code"), table_name="startups")
    op.drop_index(op.f("ix_startups_ca_service_code"), table_name="startups")
    op.drop_index(op.f("ix_startups_user_id"), table_name="startups")
    op.drop_index(op.f("ix_startups_id"), table_name="startups")
    op.drop_table("startups")
