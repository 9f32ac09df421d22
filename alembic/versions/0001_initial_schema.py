"""Initial fleetmon schema."""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create fleet tables and enums."""
    bind = op.get_bind()

    # Enum columns store member names
    hoststatus = sa.Enum(
        "UNPROVISIONED",
        "PROVISIONING",
        "RUNNING",
        "DECOMMISSIONED",
        "TERMINATED",
        "PROVISION_FAILED",
        name="hoststatus",
    )
    taskstatus = sa.Enum(
        "UNDISPATCHED",
        "DISPATCHED",
        "RUNNING",
        "SUCCEEDED",
        "FAILED",
        name="taskstatus",
    )
    resourcetype = sa.Enum("HOST", name="resourcetype")
    eventtype = sa.Enum(
        "HOST_CREATED",
        "HOST_STATUS_CHANGED",
        "HOST_DNS_NAME_SET",
        "HOST_PROVISIONED",
        "HOST_PROVISION_FAILED",
        "HOST_RUNNING_TASK_SET",
        "HOST_RUNNING_TASK_CLEARED",
        "HOST_TASK_PID_SET",
        "HOST_MONITOR_FLAG",
        name="eventtype",
    )

    hoststatus.create(bind, checkfirst=True)
    taskstatus.create(bind, checkfirst=True)
    resourcetype.create(bind, checkfirst=True)
    eventtype.create(bind, checkfirst=True)

    op.create_table(
        "hosts",
        sa.Column("id", sa.String(length=255), primary_key=True),
        sa.Column("host_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("distro_id", sa.String(length=255), nullable=False),
        sa.Column("provider", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("status", postgresql.ENUM(name="hoststatus", create_type=False), nullable=False),
        sa.Column("started_by", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("user_host", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("creation_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("provision_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expiration_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("termination_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_task_completed_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_reachability_check", sa.DateTime(timezone=True), nullable=True),
        sa.Column("running_task", sa.String(length=255), nullable=True),
        sa.Column("notifications", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
    )
    op.create_index("idx_hosts_status", "hosts", ["status", "creation_time"])
    op.create_index("idx_hosts_distro_status", "hosts", ["distro_id", "status"])

    op.create_table(
        "tasks",
        sa.Column("id", sa.String(length=255), primary_key=True),
        sa.Column("display_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("project", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("distro_id", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("host_id", sa.String(length=255), nullable=True),
        sa.Column("status", postgresql.ENUM(name="taskstatus", create_type=False), nullable=False),
        sa.Column("execution", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("dispatch_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finish_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_heartbeat", sa.DateTime(timezone=True), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
    )
    op.create_index("idx_tasks_status_heartbeat", "tasks", ["status", "last_heartbeat"])

    op.create_table(
        "distros",
        sa.Column("id", sa.String(length=255), primary_key=True),
        sa.Column("provider", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("pool_size", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ssh_port", sa.Integer(), nullable=False, server_default="22"),
    )

    op.create_table(
        "project_refs",
        sa.Column("identifier", sa.String(length=255), primary_key=True),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "projects",
        sa.Column("identifier", sa.String(length=255), primary_key=True),
        sa.Column("config", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "events",
        sa.Column("sequence", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("resource_id", sa.String(length=255), nullable=False),
        sa.Column(
            "resource_type",
            postgresql.ENUM(name="resourcetype", create_type=False),
            nullable=False,
        ),
        sa.Column("event_type", postgresql.ENUM(name="eventtype", create_type=False), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("trace_id", sa.Text(), nullable=True),
        sa.UniqueConstraint("event_id", name="uq_events_event_id"),
    )
    op.create_index("idx_events_resource", "events", ["resource_id", "timestamp", "sequence"])
    op.create_index("idx_events_type", "events", ["event_type", "timestamp"])


def downgrade() -> None:
    """Drop all tables and enums."""
    op.drop_index("idx_events_type", table_name="events")
    op.drop_index("idx_events_resource", table_name="events")
    op.drop_table("events")

    op.drop_table("projects")
    op.drop_table("project_refs")
    op.drop_table("distros")

    op.drop_index("idx_tasks_status_heartbeat", table_name="tasks")
    op.drop_table("tasks")

    op.drop_index("idx_hosts_distro_status", table_name="hosts")
    op.drop_index("idx_hosts_status", table_name="hosts")
    op.drop_table("hosts")

    bind = op.get_bind()
    sa.Enum(name="eventtype").drop(bind, checkfirst=True)
    sa.Enum(name="resourcetype").drop(bind, checkfirst=True)
    sa.Enum(name="taskstatus").drop(bind, checkfirst=True)
    sa.Enum(name="hoststatus").drop(bind, checkfirst=True)
