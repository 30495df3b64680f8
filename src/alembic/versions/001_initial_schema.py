"""Initial schema -- users with WePay columns, campaigns, payments.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from alembic import op

from wepay_link.schema_sql import indexes, tables_core

revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _execute_all(statements: list[str]) -> None:
    """Execute a list of SQL statements sequentially."""
    for stmt in statements:
        op.execute(stmt)


def upgrade() -> None:
    _execute_all(tables_core.ALL)
    _execute_all(indexes.ALL)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS payment_downloads;")
    op.execute("DROP TABLE IF EXISTS payments;")
    op.execute("DROP TABLE IF EXISTS campaigns;")
    op.execute("DROP TABLE IF EXISTS users;")
