"""Order item and payment records, owner RLS, change notifications.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

TABLES = ("order_item", "order_payment")


def upgrade():
    # One row per (owner, customer, product); id = owner:customer:product
    op.execute("""
        CREATE TABLE order_item (
            id TEXT PRIMARY KEY,
            owner_id TEXT NOT NULL,
            client_key TEXT NOT NULL,
            client_name TEXT NOT NULL DEFAULT '',
            product TEXT NOT NULL,
            quantity INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)

    # One row per (owner, customer); id = owner:customer, paid is the running total
    op.execute("""
        CREATE TABLE order_payment (
            id TEXT PRIMARY KEY,
            owner_id TEXT NOT NULL,
            client_key TEXT NOT NULL,
            client_name TEXT NOT NULL DEFAULT '',
            paid NUMERIC(12, 2) NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)

    op.execute("CREATE INDEX idx_order_item_owner_client ON order_item(owner_id, client_key);")
    op.execute("CREATE INDEX idx_order_payment_owner_client ON order_payment(owner_id, client_key);")

    for table in TABLES:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY")
        op.execute(f"""
            CREATE POLICY {table}_owner
            ON {table}
            FOR ALL
            USING (owner_id = current_setting('app.owner_id', true))
            WITH CHECK (owner_id = current_setting('app.owner_id', true));
        """)

    op.execute("""
        CREATE FUNCTION notify_order_change() RETURNS trigger AS $$
        DECLARE
            row_owner TEXT;
        BEGIN
            IF TG_OP = 'DELETE' THEN
                row_owner := OLD.owner_id;
            ELSE
                row_owner := NEW.owner_id;
            END IF;
            PERFORM pg_notify(
                'order_changes',
                json_build_object('collection', TG_TABLE_NAME, 'owner_id', row_owner)::text
            );
            RETURN NULL;
        END;
        $$ LANGUAGE plpgsql;
    """)

    for table in TABLES:
        op.execute(f"""
            CREATE TRIGGER {table}_notify
            AFTER INSERT OR UPDATE OR DELETE ON {table}
            FOR EACH ROW EXECUTE FUNCTION notify_order_change();
        """)


def downgrade():
    for table in TABLES:
        op.execute(f"DROP TRIGGER IF EXISTS {table}_notify ON {table}")
    op.execute("DROP FUNCTION IF EXISTS notify_order_change()")
    op.execute("DROP TABLE IF EXISTS order_payment")
    op.execute("DROP TABLE IF EXISTS order_item")
