"""Initial schema: vehicles, drivers, trips and maintenance orders.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    vehicle_type = sa.Enum("truck", "van", "bike", name="vehicletype")

    # ── vehicles ──────────────────────────────────────────────────────
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("license_plate", sa.String(32), unique=True, nullable=False),
        sa.Column("type", vehicle_type, nullable=False),
        sa.Column("max_capacity", sa.Float, nullable=False),
        sa.Column("odometer", sa.Float, nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum(
                "available",
                "on_trip",
                "in_shop",
                "retired",
                "suspended",
                name="vehiclestatus",
            ),
            nullable=False,
            server_default="available",
        ),
        sa.Column("region", sa.String(64), nullable=True),
        sa.Column("acquisition_cost", sa.Float, nullable=True),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_vehicles_status", "vehicles", ["status"])
    op.create_index("idx_vehicles_type", "vehicles", ["type"])

    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("license_number", sa.String(64), unique=True, nullable=False),
        sa.Column(
            "license_category",
            # created with the vehicles table
            postgresql.ENUM("truck", "van", "bike", name="vehicletype", create_type=False),
            nullable=False,
        ),
        sa.Column("license_expiry", sa.Date, nullable=False),
        sa.Column("safety_score", sa.Float, nullable=False, server_default="100"),
        sa.Column(
            "status",
            sa.Enum("off_duty", "on_duty", "suspended", name="driverstatus"),
            nullable=False,
            server_default="off_duty",
        ),
        sa.Column("trips_completed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_drivers_status", "drivers", ["status"])

    # ── trips ─────────────────────────────────────────────────────────
    op.create_table(
        "trips",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("reference", sa.String(32), unique=True, nullable=True),
        sa.Column("vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=False),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("origin", sa.String(255), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("cargo_weight", sa.Float, nullable=False),
        sa.Column(
            "state",
            sa.Enum("draft", "dispatched", "completed", "cancelled", name="tripstate"),
            nullable=False,
            server_default="draft",
        ),
        sa.Column("date_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("date_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("odometer_start", sa.Float, nullable=True),
        sa.Column("odometer_end", sa.Float, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_trips_state", "trips", ["state"])
    op.create_index("idx_trips_vehicle", "trips", ["vehicle_id"])
    op.create_index("idx_trips_driver", "trips", ["driver_id"])

    # ── maintenance_orders ────────────────────────────────────────────
    op.create_table(
        "maintenance_orders",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("cost", sa.Float, nullable=True),
        sa.Column("mechanic", sa.String(120), nullable=True),
        sa.Column(
            "state",
            sa.Enum("scheduled", "in_progress", "done", name="maintenancestate"),
            nullable=False,
            server_default="scheduled",
        ),
        sa.Column("service_date", sa.Date, nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "idx_maintenance_vehicle_state", "maintenance_orders", ["vehicle_id", "state"]
    )


def downgrade() -> None:
    op.drop_table("maintenance_orders")
    op.drop_table("trips")
    op.drop_table("drivers")
    op.drop_table("vehicles")
    op.execute("DROP TYPE IF EXISTS maintenancestate")
    op.execute("DROP TYPE IF EXISTS tripstate")
    op.execute("DROP TYPE IF EXISTS driverstatus")
    op.execute("DROP TYPE IF EXISTS vehiclestatus")
    op.execute("DROP TYPE IF EXISTS vehicletype")
