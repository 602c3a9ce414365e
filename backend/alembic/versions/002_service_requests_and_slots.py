"""
Service requests and document slots

Revision ID: 002
Revises: 001
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


ENUMS = {
    "requeststatus": ("pending", "converted", "rejected", "cancelled"),
    "requesturgency": ("low", "normal", "high", "urgent"),
    "slotstatus": ("not_started", "requested", "linked", "uploaded", "approved", "rejected"),
}


def enum(name: str) -> postgresql.ENUM:
    if name in ENUMS:
        return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)
    # Created by 001
    return postgresql.ENUM(name=name, create_type=False)


def tenant_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("firm_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("firms.id"), nullable=False),
    ]


def tenant_indexes(table: str, *columns: str) -> None:
    op.create_index(f"ix_{table}_firm_id", table, ["firm_id"])
    for column in columns:
        op.create_index(f"ix_{table}_{column}", table, [column])


def upgrade() -> None:
    for name, values in ENUMS.items():
        quoted = ", ".join(f"'{v}'" for v in values)
        op.execute(f"CREATE TYPE {name} AS ENUM ({quoted})")

    # ========================
    # TABLE: service_requests
    # ========================
    op.create_table(
        "service_requests",
        *tenant_columns(),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("service_type", enum("servicetype"), nullable=False, server_default="other"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("urgency", enum("requesturgency"), nullable=False, server_default="normal"),
        sa.Column("preferred_due_date", sa.Date(), nullable=True),
        sa.Column("financial_year", sa.String(9), nullable=True),
        sa.Column("assessment_year", sa.String(9), nullable=True),
        sa.Column("status", enum("requeststatus"), nullable=False, server_default="pending"),
        # Review
        sa.Column("reviewed_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reviewed_by_role", enum("userrole"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approval_notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("quoted_fee", sa.Numeric(12, 2), nullable=True),
        sa.Column("service_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("services.id"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    tenant_indexes("service_requests", "client_id", "status")

    # ========================
    # TABLE: service_document_slots
    # ========================
    op.create_table(
        "service_document_slots",
        *tenant_columns(),
        sa.Column(
            "service_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("services.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("document_name", sa.String(255), nullable=False),
        sa.Column("document_code", sa.String(100), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("is_custom", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("status", enum("slotstatus"), nullable=False, server_default="not_started"),
        # Linked
        sa.Column("linked_document_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("documents.id"), nullable=True),
        sa.Column("linked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("linked_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        # Requested
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("requested_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("deadline", sa.Date(), nullable=True),
        sa.Column("request_message", sa.Text(), nullable=True),
        sa.Column("priority", enum("requesturgency"), nullable=False, server_default="normal"),
        # Uploaded
        sa.Column("uploaded_document_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("documents.id"), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=True),
        # Review
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    tenant_indexes("service_document_slots", "service_id", "client_id")


def downgrade() -> None:
    op.drop_table("service_document_slots")
    op.drop_table("service_requests")

    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
