"""Trip lifecycle and driver expense settlement schema

Revision ID: 20260301_trip_engine
Revises:
Create Date: 2026-03-01
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20260301_trip_engine"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*names):
    return [
        sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False)
        for name in names
    ]


def upgrade():
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("organizations", schema=None) as batch_op:
        batch_op.create_index("ix_organizations_code", ["code"], unique=True)
        batch_op.create_index("ix_organizations_is_active", ["is_active"], unique=False)

    op.create_table(
        "organization_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(128), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("updated_by_user_id", sa.Integer(), nullable=True),
        *_timestamps("updated_at"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "key", name="uq_org_settings_key"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("organization_settings", schema=None) as batch_op:
        batch_op.create_index("ix_organization_settings_org_id", ["org_id"], unique=False)

    op.create_table(
        "vehicle_types",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("driver_expense_rate", sa.Numeric(7, 2), nullable=True),
        *_timestamps("created_at"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "name", name="uq_vehicle_types_org_name"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("vehicle_types", schema=None) as batch_op:
        batch_op.create_index("ix_vehicle_types_org_id", ["org_id"], unique=False)

    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("vehicle_number", sa.String(32), nullable=False),
        sa.Column("vehicle_type_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps("created_at"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["vehicle_type_id"], ["vehicle_types.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "vehicle_number", name="uq_vehicles_org_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("vehicles", schema=None) as batch_op:
        batch_op.create_index("ix_vehicles_org_id", ["org_id"], unique=False)
        batch_op.create_index("ix_vehicles_vehicle_type_id", ["vehicle_type_id"], unique=False)

    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps("created_at"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("drivers", schema=None) as batch_op:
        batch_op.create_index("ix_drivers_org_id", ["org_id"], unique=False)
        batch_op.create_index("ix_drivers_user_id", ["user_id"], unique=False)

    op.create_table(
        "driver_expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(16), nullable=False, server_default="DRIVER_COST"),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "key", name="uq_driver_expenses_org_key"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("driver_expenses", schema=None) as batch_op:
        batch_op.create_index("ix_driver_expenses_org_id", ["org_id"], unique=False)

    op.create_table(
        "routes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("driver_cost", sa.Numeric(18, 4), nullable=True),
        sa.Column("bridge_toll", sa.Numeric(18, 4), nullable=True),
        sa.Column("subcontractor_cost", sa.Numeric(18, 4), nullable=True),
        sa.Column("other_cost", sa.Numeric(18, 4), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps("created_at"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "code", name="uq_routes_org_code"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("routes", schema=None) as batch_op:
        batch_op.create_index("ix_routes_org_id", ["org_id"], unique=False)

    op.create_table(
        "route_driver_expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("route_id", sa.Integer(), nullable=False),
        sa.Column("driver_expense_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 4), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["route_id"], ["routes.id"]),
        sa.ForeignKeyConstraint(["driver_expense_id"], ["driver_expenses.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("route_driver_expenses", schema=None) as batch_op:
        batch_op.create_index("ix_route_driver_expenses_route", ["route_id", "sort_order"], unique=False)
        batch_op.create_index("ix_route_driver_expenses_driver_expense_id", ["driver_expense_id"], unique=False)

    op.create_table(
        "driver_reports",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(32), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_photo_required", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_bill_of_lading_required", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps("created_at", "updated_at"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "display_order", name="uq_driver_reports_org_display_order"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("driver_reports", schema=None) as batch_op:
        batch_op.create_index("ix_driver_reports_org_id", ["org_id"], unique=False)
        batch_op.create_index("ix_driver_reports_org_type", ["org_id", "type"], unique=False)

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("route_id", sa.Integer(), nullable=True),
        sa.Column("weight", sa.Numeric(14, 3), nullable=True),
        sa.Column("last_status_type", sa.String(32), nullable=False, server_default="NEW"),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps("created_at"),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by_user_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["route_id"], ["routes.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "code", name="uq_orders_org_code"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("orders", schema=None) as batch_op:
        batch_op.create_index("ix_orders_org_id", ["org_id"], unique=False)
        batch_op.create_index("ix_orders_route_id", ["route_id"], unique=False)
        batch_op.create_index("ix_orders_org_status", ["org_id", "last_status_type"], unique=False)

    op.create_table(
        "order_statuses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps("created_at"),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("order_statuses", schema=None) as batch_op:
        batch_op.create_index("ix_order_statuses_order_id", ["order_id"], unique=False)

    op.create_table(
        "order_trips",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(80), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("weight", sa.Numeric(14, 3), nullable=False),
        sa.Column("pickup_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("vehicle_id", sa.Integer(), nullable=True),
        sa.Column("driver_id", sa.Integer(), nullable=True),
        sa.Column("driver_cost", sa.Numeric(18, 4), nullable=True),
        sa.Column("subcontractor_cost", sa.Numeric(18, 4), nullable=True),
        sa.Column("bridge_toll", sa.Numeric(18, 4), nullable=True),
        sa.Column("other_cost", sa.Numeric(18, 4), nullable=True),
        sa.Column("last_status_type", sa.String(32), nullable=False, server_default="NEW"),
        sa.Column("bill_of_lading", sa.String(255), nullable=True),
        sa.Column("bill_of_lading_received", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("bill_of_lading_received_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notification_scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps("created_at"),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by_user_id", sa.Integer(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.ForeignKeyConstraint(["vehicle_id"], ["vehicles.id"]),
        sa.ForeignKeyConstraint(["driver_id"], ["drivers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "order_id", "code", name="uq_order_trips_org_order_code"),
        sa.UniqueConstraint("org_id", "code", name="uq_order_trips_org_code"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("order_trips", schema=None) as batch_op:
        batch_op.create_index("ix_order_trips_org_id", ["org_id"], unique=False)
        batch_op.create_index("ix_order_trips_order_id", ["order_id"], unique=False)
        batch_op.create_index("ix_order_trips_vehicle_id", ["vehicle_id"], unique=False)
        batch_op.create_index("ix_order_trips_org_driver", ["org_id", "driver_id"], unique=False)
        batch_op.create_index("ix_order_trips_org_status", ["org_id", "last_status_type"], unique=False)

    op.create_table(
        "order_trip_statuses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("driver_report_id", sa.Integer(), nullable=True),
        *_timestamps("created_at"),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["trip_id"], ["order_trips.id"]),
        sa.ForeignKeyConstraint(["driver_report_id"], ["driver_reports.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("order_trip_statuses", schema=None) as batch_op:
        batch_op.create_index("ix_order_trip_statuses_trip_id", ["trip_id"], unique=False)
        batch_op.create_index("ix_order_trip_statuses_driver_report_id", ["driver_report_id"], unique=False)
        batch_op.create_index("ix_order_trip_statuses_trip_type_created", ["trip_id", "type", "created_at"], unique=False)

    op.create_table(
        "trip_driver_expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.Column("driver_expense_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 4), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps("created_at"),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["trip_id"], ["order_trips.id"]),
        sa.ForeignKeyConstraint(["driver_expense_id"], ["driver_expenses.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("trip_driver_expenses", schema=None) as batch_op:
        batch_op.create_index("ix_trip_driver_expenses_trip_id", ["trip_id"], unique=False)

    op.create_table(
        "bill_of_lading_images",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.Column("image_ref", sa.String(512), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps("created_at"),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["trip_id"], ["order_trips.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("trip_id", "image_ref", name="uq_bol_images_trip_ref"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("bill_of_lading_images", schema=None) as batch_op:
        batch_op.create_index("ix_bill_of_lading_images_trip_id", ["trip_id"], unique=False)

    op.create_table(
        "notification_outbox",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("audience_roles", sa.JSON(), nullable=False),
        sa.Column("recipient_user_ids", sa.JSON(), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        *_timestamps("created_at"),
        sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("notification_outbox", schema=None) as batch_op:
        batch_op.create_index("ix_notification_outbox_org_id", ["org_id"], unique=False)
        batch_op.create_index("ix_notification_outbox_org_dispatched", ["org_id", "dispatched_at"], unique=False)


def downgrade():
    op.drop_table("notification_outbox")
    op.drop_table("bill_of_lading_images")
    op.drop_table("trip_driver_expenses")
    op.drop_table("order_trip_statuses")
    op.drop_table("order_trips")
    op.drop_table("order_statuses")
    op.drop_table("orders")
    op.drop_table("driver_reports")
    op.drop_table("route_driver_expenses")
    op.drop_table("routes")
    op.drop_table("driver_expenses")
    op.drop_table("drivers")
    op.drop_table("vehicles")
    op.drop_table("vehicle_types")
    op.drop_table("organization_settings")
    op.drop_table("organizations")
