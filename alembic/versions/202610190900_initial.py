"""initial schema

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610190900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("email", sa.String(length=320)),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("dob", sa.Date()),
        sa.Column("ni_number", sa.String(length=9)),
        sa.Column("country", sa.String(length=80)),
        sa.Column("occupation", sa.String(length=120)),
        sa.Column("account_method", sa.String(length=80)),
        sa.Column("phone_number", sa.String(length=32)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "filings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("tax_year", sa.Integer(), nullable=False),
        sa.Column("month", sa.String(length=12)),
        sa.Column(
            "status",
            sa.Enum("draft", "open", "submitted", name="filingstatus"),
            nullable=False,
        ),
        sa.Column("submitted_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_filings_user_year", "filings", ["user_id", "tax_year"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column(
            "filing_id",
            sa.Integer(),
            sa.ForeignKey("filings.id", ondelete="SET NULL"),
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "type", sa.Enum("income", "expense", name="transactiontype"), nullable=False
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=100)),
        sa.Column("description", sa.Text()),
        sa.Column("receipt_url", sa.String(length=500)),
        sa.Column(
            "source",
            sa.Enum("manual", "import", name="transactionsource"),
            nullable=False,
            server_default="manual",
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_transactions_user_date", "transactions", ["user_id", "date"]
    )
    op.create_index(
        "ix_transactions_filing_date", "transactions", ["filing_id", "date"]
    )


def downgrade():
    op.drop_index("ix_transactions_filing_date", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_filings_user_year", table_name="filings")
    op.drop_table("filings")
    op.drop_table("profiles")
    sa.Enum(name="transactionsource").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="transactiontype").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="filingstatus").drop(op.get_bind(), checkfirst=True)
