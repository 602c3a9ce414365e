"""
Initial migration - CA Firm practice management

Revision ID: 001
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


ENUMS = {
    "userrole": ("super_admin", "admin", "project_manager", "team_member", "client"),
    "servicetype": (
        "itr_filing", "gst_registration", "gst_return", "tds_return", "tds_compliance",
        "roc_filing", "audit", "book_keeping", "payroll", "consultation", "other",
    ),
    "servicestatus": (
        "pending", "assigned", "in_progress", "waiting_for_client", "on_hold",
        "under_review", "changes_requested", "completed", "delivered", "invoiced",
        "closed", "cancelled",
    ),
    "serviceorigin": ("client_request", "firm_created", "recurring", "compliance"),
    "taskstatus": ("pending", "in_progress", "completed", "cancelled"),
    "taskpriority": ("low", "medium", "high"),
    "documenttype": (
        "pan_card", "aadhaar_card", "gst_certificate", "bank_statement", "itr", "form_16",
        "financial_statement", "invoice", "agreement", "deliverable", "other",
    ),
    "documentstatus": ("pending", "approved", "rejected"),
    "invoicestatus": ("draft", "sent", "partially_paid", "paid", "overdue", "cancelled"),
    "paymentmethod": ("cash", "upi", "bank_transfer", "cheque", "card", "other"),
}


def enum(name: str) -> postgresql.ENUM:
    # Types are created up front in upgrade()
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def tenant_columns() -> list[sa.Column]:
    return base_columns() + [
        sa.Column("firm_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("firms.id"), nullable=False),
    ]


def account_columns() -> list[sa.Column]:
    return tenant_columns() + [
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("must_change_password", sa.Boolean(), nullable=False, server_default="false"),
        # Two-factor login
        sa.Column("two_factor_enabled", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("otp_code", sa.String(6), nullable=True),
        sa.Column("otp_expires_at", sa.DateTime(timezone=True), nullable=True),
        # Lockout
        sa.Column("failed_login_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        # Password reset
        sa.Column("password_reset_token", sa.String(64), nullable=True),
        sa.Column("password_reset_expires_at", sa.DateTime(timezone=True), nullable=True),
    ]


def tenant_indexes(table: str, *columns: str) -> None:
    op.create_index(f"ix_{table}_firm_id", table, ["firm_id"])
    for column in columns:
        op.create_index(f"ix_{table}_{column}", table, [column])


ACCOUNT_TABLES = ("super_admins", "admins", "project_managers", "team_members", "clients")


def upgrade() -> None:
    # ========================
    # ENUMS (values of the Python enums)
    # ========================
    for name, values in ENUMS.items():
        quoted = ", ".join(f"'{v}'" for v in values)
        op.execute(f"CREATE TYPE {name} AS ENUM ({quoted})")

    # ========================
    # TABLE: firms (tenant)
    # ========================
    op.create_table(
        "firms",
        *base_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("gstin", sa.String(15), nullable=True, unique=True),
        sa.Column("pan", sa.String(10), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.PrimaryKeyConstraint("id"),
    )

    # ========================
    # ACCOUNT TABLES, one per role
    # ========================
    for table in ("super_admins", "admins", "project_managers"):
        op.create_table(table, *account_columns(), sa.PrimaryKeyConstraint("id"))

    op.create_table(
        "team_members",
        *account_columns(),
        sa.Column("designation", sa.String(100), nullable=True),
        sa.Column("is_trainee", sa.Boolean(), nullable=False, server_default="false"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "clients",
        *account_columns(),
        sa.Column("company_name", sa.String(255), nullable=True),
        sa.Column("contact_person", sa.String(255), nullable=True),
        sa.Column("pan", sa.String(10), nullable=True),
        sa.Column("gstin", sa.String(15), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("state", sa.String(100), nullable=True),
        sa.Column("pincode", sa.String(10), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "managed_by_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("project_managers.id"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_clients_pan", "clients", ["pan"])
    op.create_index("ix_clients_managed_by_id", "clients", ["managed_by_id"])

    for table in ACCOUNT_TABLES:
        tenant_indexes(table, "password_reset_token")

    # ========================
    # TABLE: client_assignments
    # ========================
    op.create_table(
        "client_assignments",
        *tenant_columns(),
        sa.Column(
            "team_member_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("team_members.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "client_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("clients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("assigned_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("assigned_by_role", enum("userrole"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("team_member_id", "client_id", name="uq_assignment_member_client"),
    )
    tenant_indexes("client_assignments", "team_member_id", "client_id")

    # ========================
    # TABLE: services
    # ========================
    op.create_table(
        "services",
        *tenant_columns(),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column(
            "project_manager_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("project_managers.id"),
            nullable=True,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", enum("servicetype"), nullable=False, server_default="other"),
        sa.Column("status", enum("servicestatus"), nullable=False, server_default="pending"),
        sa.Column("origin", enum("serviceorigin"), nullable=False, server_default="firm_created"),
        sa.Column("financial_year", sa.String(9), nullable=True),
        sa.Column("assessment_year", sa.String(9), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("fee_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("internal_notes", sa.Text(), nullable=True),
        sa.Column("current_assignee_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("current_assignee_role", enum("userrole"), nullable=True),
        sa.Column("created_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_by_role", enum("userrole"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    tenant_indexes(
        "services", "client_id", "project_manager_id", "status", "due_date", "current_assignee_id"
    )

    op.create_table(
        "service_status_history",
        *tenant_columns(),
        sa.Column(
            "service_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("services.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("from_status", enum("servicestatus"), nullable=True),
        sa.Column("to_status", enum("servicestatus"), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("changed_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("changed_by_role", enum("userrole"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    tenant_indexes("service_status_history", "service_id")

    # ========================
    # TABLE: tasks
    # ========================
    op.create_table(
        "tasks",
        *tenant_columns(),
        sa.Column(
            "service_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("services.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "assigned_to_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("team_members.id"),
            nullable=True,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", enum("taskstatus"), nullable=False, server_default="pending"),
        sa.Column("priority", enum("taskpriority"), nullable=False, server_default="medium"),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    tenant_indexes("tasks", "service_id", "assigned_to_id")

    # ========================
    # TABLE: documents
    # ========================
    op.create_table(
        "documents",
        *tenant_columns(),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("mime_type", sa.String(150), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("storage_path", sa.String(500), nullable=False, unique=True),
        sa.Column("sha256", sa.String(64), nullable=True),
        sa.Column("document_type", enum("documenttype"), nullable=False, server_default="other"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", enum("documentstatus"), nullable=False, server_default="pending"),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=True),
        sa.Column(
            "team_member_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("team_members.id"),
            nullable=True,
        ),
        sa.Column("service_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("services.id"), nullable=True),
        sa.Column("uploaded_by_role", enum("userrole"), nullable=False),
        sa.Column("uploaded_by_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    tenant_indexes("documents", "client_id", "team_member_id", "service_id", "is_deleted")

    op.create_table(
        "document_hidden_roles",
        *tenant_columns(),
        sa.Column(
            "document_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("documents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", enum("userrole"), nullable=False),
        sa.Column("hidden_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("document_id", "role", name="uq_document_hidden_role"),
    )
    tenant_indexes("document_hidden_roles", "document_id")

    # ========================
    # BILLING
    # ========================
    op.create_table(
        "invoices",
        *tenant_columns(),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("service_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("services.id"), nullable=True),
        sa.Column("invoice_number", sa.String(20), nullable=False),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("discount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("tax_rate", sa.Numeric(5, 2), nullable=False, server_default="18"),
        sa.Column("tax_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("status", enum("invoicestatus"), nullable=False, server_default="draft"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("firm_id", "invoice_number", name="uq_invoice_firm_number"),
    )
    tenant_indexes("invoices", "client_id", "service_id", "due_date", "status")

    op.create_table(
        "invoice_items",
        *tenant_columns(),
        sa.Column(
            "invoice_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("invoices.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("quantity", sa.Numeric(10, 2), nullable=False, server_default="1"),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("tax_rate", sa.Numeric(5, 2), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    tenant_indexes("invoice_items", "invoice_id")

    op.create_table(
        "payments",
        *tenant_columns(),
        sa.Column(
            "invoice_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("invoices.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("method", enum("paymentmethod"), nullable=False, server_default="bank_transfer"),
        sa.Column("reference", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("recorded_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    tenant_indexes("payments", "invoice_id", "client_id")

    # ========================
    # TABLE: activity_logs
    # ========================
    op.create_table(
        "activity_logs",
        *tenant_columns(),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("actor_role", enum("userrole"), nullable=True),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("entity_name", sa.String(255), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.PrimaryKeyConstraint("id"),
    )
    tenant_indexes("activity_logs", "actor_id", "action", "entity_type", "entity_id")


def downgrade() -> None:
    # Reverse order (foreign keys)
    op.drop_table("activity_logs")
    op.drop_table("payments")
    op.drop_table("invoice_items")
    op.drop_table("invoices")
    op.drop_table("document_hidden_roles")
    op.drop_table("documents")
    op.drop_table("tasks")
    op.drop_table("service_status_history")
    op.drop_table("services")
    op.drop_table("client_assignments")
    for table in reversed(ACCOUNT_TABLES):
        op.drop_table(table)
    op.drop_table("firms")

    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
