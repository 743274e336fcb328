"""Row-level security on tenant-scoped tables

Every account-scoped table gets a tenant_isolation policy keyed by the
session variable app.current_account_id (set per request by the API).
channel_products has no account_id of its own and is scoped through its
channel. RLS is forced so the table owner cannot bypass it.

Revision ID: 002
Revises: 001
Create Date: 2026-09-14
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ACCOUNT_TABLES = [
    "accounts",
    "channels",
    "products",
    "channel_products_staging",
    "sync_logs",
]


def upgrade() -> None:
    for table in ACCOUNT_TABLES:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY")
        op.execute(
            f"CREATE POLICY tenant_isolation ON {table} "
            f"USING (account_id::text = current_setting('app.current_account_id', true))"
        )

    op.execute("ALTER TABLE channel_products ENABLE ROW LEVEL SECURITY")
    op.execute("ALTER TABLE channel_products FORCE ROW LEVEL SECURITY")
    op.execute(
        "CREATE POLICY tenant_isolation ON channel_products "
        "USING (channel_id IN ("
        "SELECT channel_id FROM channels "
        "WHERE account_id::text = current_setting('app.current_account_id', true)))"
    )


def downgrade() -> None:
    for table in [*ACCOUNT_TABLES, "channel_products"]:
        op.execute(f"DROP POLICY IF EXISTS tenant_isolation ON {table}")
        op.execute(f"ALTER TABLE {table} NO FORCE ROW LEVEL SECURITY")
        op.execute(f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY")
