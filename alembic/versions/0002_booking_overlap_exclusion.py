from alembic import op

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

# Rejects two live bookings of one equipment whose [start, end) windows intersect.
# PostgreSQL only; other backends rely on the row lock taken while booking.


def upgrade():
    if op.get_bind().dialect.name != "postgresql":
        return

    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
    op.execute(
        """
        ALTER TABLE bookings
        ADD CONSTRAINT ex_bookings_no_overlap
        EXCLUDE USING gist (
            equipment_id WITH =,
            tstzrange(start_time, end_time, '[)') WITH &&
        )
        WHERE (status <> 'cancelled')
        """
    )


def downgrade():
    if op.get_bind().dialect.name != "postgresql":
        return

    op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS ex_bookings_no_overlap")
