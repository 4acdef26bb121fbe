from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

TS = sa.DateTime(timezone=True)
MONEY = sa.Numeric(12, 2)


def upgrade():
    op.create_table(
        "auth_users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password", sa.String(), nullable=False),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_index("ix_auth_users_email", "auth_users", ["email"], unique=True)

    op.create_table(
        "auth_sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("auth_users.id"), nullable=False),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("expires_at", TS, nullable=False),
        sa.Column("revoked_at", TS, nullable=True),
    )
    op.create_index("ix_auth_sessions_user_id", "auth_sessions", ["user_id"], unique=False)

    op.create_table(
        "profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("auth_users.id"), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column("rating", sa.Numeric(3, 2), nullable=False, server_default="0"),
        sa.Column("total_reviews", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=False),
    )
    op.create_index("ix_profiles_role", "profiles", ["role"], unique=False)

    op.create_table(
        "equipment",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("owner_id", sa.String(36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("type", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("daily_rate", MONEY, nullable=False),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("address", sa.String(500), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("specifications", sa.JSON(), nullable=False),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=False),
    )
    op.create_index("ix_equipment_owner_id", "equipment", ["owner_id"], unique=False)
    op.create_index("ix_equipment_category", "equipment", ["category"], unique=False)
    op.create_index("ix_equipment_city", "equipment", ["city"], unique=False)
    op.create_index("ix_equipment_status", "equipment", ["status"], unique=False)

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("equipment_id", sa.String(36), sa.ForeignKey("equipment.id"), nullable=False),
        sa.Column("client_id", sa.String(36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("operator_id", sa.String(36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("start_time", TS, nullable=False),
        sa.Column("end_time", TS, nullable=False),
        sa.Column("duration_hours", sa.Integer(), nullable=False),
        sa.Column("base_price", MONEY, nullable=False),
        sa.Column("gst_amount", MONEY, nullable=False),
        sa.Column("total_price", MONEY, nullable=False),
        sa.Column("advance_amount", MONEY, nullable=False),
        sa.Column("balance_amount", MONEY, nullable=False),
        sa.Column("client_name", sa.String(100), nullable=False),
        sa.Column("client_phone", sa.String(20), nullable=False),
        sa.Column("pickup_address", sa.String(500), nullable=False),
        sa.Column("delivery_address", sa.String(500), nullable=False),
        sa.Column("special_requirements", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=False),
        sa.CheckConstraint("end_time > start_time", name="ck_bookings_window"),
    )
    op.create_index("ix_bookings_client_id", "bookings", ["client_id"], unique=False)
    op.create_index("ix_bookings_operator_id", "bookings", ["operator_id"], unique=False)
    op.create_index("ix_bookings_status", "bookings", ["status"], unique=False)
    op.create_index(
        "ix_bookings_equipment_window", "bookings", ["equipment_id", "start_time", "end_time"], unique=False
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("razorpay_order_id", sa.String(100), nullable=False, unique=True),
        sa.Column("razorpay_payment_id", sa.String(100), nullable=True),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("payment_date", TS, nullable=True),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=False),
    )
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"], unique=False)
    op.create_index("ix_payments_status", "payments", ["status"], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("recipient_id", sa.String(36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(40), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"], unique=False)

    op.create_table(
        "reviews",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.id"), nullable=False, unique=True),
        sa.Column("equipment_id", sa.String(36), sa.ForeignKey("equipment.id"), nullable=False),
        sa.Column("reviewer_id", sa.String(36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("operator_id", sa.String(36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("created_at", TS, nullable=False),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),
    )
    op.create_index("ix_reviews_equipment_id", "reviews", ["equipment_id"], unique=False)
    op.create_index("ix_reviews_operator_id", "reviews", ["operator_id"], unique=False)

    op.create_table(
        "custom_quotes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36), sa.ForeignKey("profiles.id"), nullable=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(20), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("equipment_type", sa.String(100), nullable=False),
        sa.Column("project_description", sa.Text(), nullable=False),
        sa.Column("location", sa.String(200), nullable=False),
        sa.Column("duration", sa.String(100), nullable=False),
        sa.Column("budget_range", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_at", TS, nullable=False),
    )


def downgrade():
    op.drop_table("custom_quotes")
    op.drop_index("ix_reviews_operator_id", table_name="reviews")
    op.drop_index("ix_reviews_equipment_id", table_name="reviews")
    op.drop_table("reviews")
    op.drop_index("ix_notifications_recipient_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_payments_status", table_name="payments")
    op.drop_index("ix_payments_booking_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("ix_bookings_equipment_window", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_operator_id", table_name="bookings")
    op.drop_index("ix_bookings_client_id", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_equipment_status", table_name="equipment")
    op.drop_index("ix_equipment_city", table_name="equipment")
    op.drop_index("ix_equipment_category", table_name="equipment")
    op.drop_index("ix_equipment_owner_id", table_name="equipment")
    op.drop_table("equipment")
    op.drop_index("ix_profiles_role", table_name="profiles")
    op.drop_table("profiles")
    op.drop_index("ix_auth_sessions_user_id", table_name="auth_sessions")
    op.drop_table("auth_sessions")
    op.drop_index("ix_auth_users_email", table_name="auth_users")
    op.drop_table("auth_users")
