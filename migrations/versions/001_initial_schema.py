"""Initial schema: tenants, users, vehicles and rides.

Revision ID: 001
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

RIDE_STATUS = postgresql.ENUM(
    "requested",
    "searching",
    "driver_assigned",
    "driver_arriving",
    "arrived",
    "in_progress",
    "completed",
    "cancelled_by_rider",
    "cancelled_by_driver",
    "no_drivers_available",
    name="ride_status",
    create_type=False,
)
VEHICLE_TYPE = postgresql.ENUM(
    "standard", "comfort", "xl", "accessible", "electric",
    name="vehicle_type",
    create_type=False,
)
PAYMENT_METHOD = postgresql.ENUM(
    "card", "mobilepay", "cash", name="payment_method", create_type=False
)


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in (RIDE_STATUS, VEHICLE_TYPE, PAYMENT_METHOD):
        enum_type.create(bind, checkfirst=True)

    # ── tenants ───────────────────────────────────────────────────────
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("slug", sa.String(50), unique=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("default_currency", sa.String(3), nullable=False, server_default="EUR"),
        sa.Column("pricing_config", sa.JSON, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False
        ),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("user_type", sa.String(20), nullable=False, server_default="rider"),
        sa.Column("status", sa.String(30), nullable=False, server_default="active"),
        sa.Column("average_rating", sa.Float, server_default="5.0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_users_tenant", "users", ["tenant_id"])
    op.create_index(
        "idx_users_email_tenant", "users", ["email", "tenant_id"], unique=True
    )

    # ── vehicles ──────────────────────────────────────────────────────
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False
        ),
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("make", sa.String(50), nullable=False),
        sa.Column("model", sa.String(50), nullable=False),
        sa.Column("color", sa.String(30), server_default=""),
        sa.Column("registration_number", sa.String(10), nullable=False),
        sa.Column("vehicle_type", VEHICLE_TYPE, server_default="standard"),
        sa.Column("taximeter_serial_number", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_vehicles_tenant", "vehicles", ["tenant_id"])
    op.create_index("idx_vehicles_driver", "vehicles", ["driver_id"])

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False
        ),
        sa.Column(
            "rider_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column(
            "vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=True
        ),
        sa.Column("status", RIDE_STATUS, nullable=False, server_default="requested"),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("pickup_address", sa.String(500), server_default=""),
        sa.Column("pickup_h3", sa.String(20), nullable=True),
        sa.Column("dropoff_lat", sa.Float, nullable=False),
        sa.Column("dropoff_lng", sa.Float, nullable=False),
        sa.Column("dropoff_address", sa.String(500), server_default=""),
        sa.Column("vehicle_type_requested", VEHICLE_TYPE, server_default="standard"),
        sa.Column("estimated_distance_m", sa.Float, nullable=True),
        sa.Column("estimated_duration_s", sa.Integer, nullable=True),
        sa.Column("estimated_fare", sa.Float, nullable=True),
        sa.Column("base_fare", sa.Float, nullable=True),
        sa.Column("surge_multiplier", sa.Float, nullable=False, server_default="1.0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="EUR"),
        sa.Column("final_fare", sa.Float, nullable=True),
        sa.Column("distance_fare", sa.Float, nullable=True),
        sa.Column("time_fare", sa.Float, nullable=True),
        sa.Column("vat_amount", sa.Float, nullable=True),
        sa.Column("actual_distance_m", sa.Float, nullable=True),
        sa.Column("actual_duration_s", sa.Integer, nullable=True),
        sa.Column("taximeter_fare", sa.Float, nullable=True),
        sa.Column("taximeter_serial_number", sa.String(50), nullable=True),
        sa.Column("taximeter_receipt_number", sa.String(50), nullable=True),
        sa.Column("payment_method", PAYMENT_METHOD, server_default="card"),
        sa.Column("is_scheduled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("scheduled_pickup_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("passenger_count", sa.Integer, nullable=False, server_default="1"),
        sa.Column(
            "requires_child_seat", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "requires_wheelchair_access",
            sa.Boolean,
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("cancelled_by", sa.String(20), nullable=True),
        sa.Column("cancellation_reason", sa.String(500), nullable=True),
        sa.Column("driver_assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("driver_arrived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ride_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ride_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_rides_tenant", "rides", ["tenant_id"])
    op.create_index("idx_rides_status", "rides", ["status"])
    op.create_index("idx_rides_driver", "rides", ["driver_id"])
    op.create_index("idx_rides_rider", "rides", ["rider_id"])
    op.create_index("idx_rides_status_h3", "rides", ["status", "pickup_h3"])


def downgrade() -> None:
    op.drop_table("rides")
    op.drop_table("vehicles")
    op.drop_table("users")
    op.drop_table("tenants")
    op.execute("DROP TYPE IF EXISTS payment_method")
    op.execute("DROP TYPE IF EXISTS vehicle_type")
    op.execute("DROP TYPE IF EXISTS ride_status")
