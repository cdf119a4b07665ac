"""
Typed table schemas for the local embedded store.

Application fields are camelCase. Bookings additionally carry the
snake_case audit columns mirrored from the cloud schema.
"""

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text

metadata = MetaData()

bookings = Table(
    "bookings",
    metadata,
    Column("id", String, primary_key=True),
    Column("clientId", String, nullable=False, server_default=""),
    Column("clientName", String, nullable=False),
    Column("clientPhone", String, nullable=False, server_default=""),
    Column("category", String, nullable=False),
    Column("title", String, nullable=False),
    Column("location", String, server_default=""),
    Column("shootDate", String),
    Column("status", String, nullable=False),
    Column("totalAmount", Float, nullable=False, server_default="0"),
    Column("paidAmount", Float, nullable=False, server_default="0"),
    Column("currency", String, nullable=False, server_default="IQD"),
    Column("exchangeRate", Float),
    Column("servicePackage", String, server_default=""),
    Column("notes", Text, server_default=""),
    Column("details", Text),
    Column("statusHistory", Text),
    Column("createdBy", String),
    Column("createdByName", String),
    Column("updatedBy", String),
    Column("updatedByName", String),
    Column("created_by", String),
    Column("updated_by", String),
    Column("lastEditorRank", String),
    Column("createdAt", String),
    Column("updatedAt", String),
    Column("deletedAt", Integer),
    Column("selectionDeadline", String),
    Column("actualSelectionDate", String),
    Column("deliveryDeadline", String),
    Column("photoEditCompletedAt", String),
    Column("printCompletedAt", String),
    Column("approvalStatus", String),
    Column("approvedBy", String),
    Column("approvedAt", String),
    Column("client_token", String),
)

reminders = Table(
    "reminders",
    metadata,
    Column("id", String, primary_key=True),
    Column("bookingId", String),
    Column("title", String, nullable=False),
    Column("dueDate", String, nullable=False),
    Column("completed", Integer, nullable=False, server_default="0"),
    Column("type", String, nullable=False, server_default="general"),
    Column("customIcon", String),
    Column("deletedAt", Integer),
)

dashboard_tasks = Table(
    "dashboard_tasks",
    metadata,
    Column("id", String, primary_key=True),
    Column("title", String, nullable=False),
    Column("time", String),
    Column("createdAt", String),
    Column("completed", Integer, nullable=False, server_default="0"),
    Column("type", String, nullable=False, server_default="general"),
    Column("source", String, server_default="manual"),
    Column("relatedBookingId", String),
    Column("priority", String, server_default="normal"),
    Column("deletedAt", Integer),
)

sync_queue = Table(
    "sync_queue",
    metadata,
    Column("id", String, primary_key=True),
    Column("seq", Integer, nullable=False, unique=True),
    Column("action", String, nullable=False),
    Column("entity", String, nullable=False),
    Column("entityId", String, nullable=False),
    Column("data", Text, nullable=False),
    Column("status", String, nullable=False, server_default="pending"),
    Column("createdAt", String, nullable=False),
    Column("retryCount", Integer, nullable=False, server_default="0"),
    Column("lastError", Text),
    Column("baseVersion", String),
)

booking_conflicts = Table(
    "booking_conflicts",
    metadata,
    Column("id", String, primary_key=True),
    Column("booking_id", String, nullable=False),
    Column("proposed_by", String),
    Column("proposed_by_name", String),
    Column("proposed_by_rank", String),
    Column("proposed_data", Text, nullable=False),
    Column("status", String, nullable=False, server_default="PENDING"),
    Column("created_at", String),
    Column("resolved_by", String),
    Column("resolved_at", String),
)

activity_logs = Table(
    "activity_logs",
    metadata,
    Column("id", String, primary_key=True),
    Column("userId", String, nullable=False),
    Column("userName", String, nullable=False),
    Column("action", String, nullable=False),
    Column("entityType", String, nullable=False),
    Column("entityId", String),
    Column("details", Text),
    Column("createdAt", String, nullable=False),
)

notifications = Table(
    "notifications",
    metadata,
    Column("id", String, primary_key=True),
    Column("title", String, nullable=False),
    Column("message", Text, nullable=False),
    Column("time", String, nullable=False),
    Column("read", Integer, nullable=False, server_default="0"),
    Column("type", String, nullable=False, server_default="info"),
    Column("targetRoles", Text),
    Column("bookingId", String),
)

inventory = Table(
    "inventory",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("type", String, nullable=False),
    Column("icon", String),
    Column("status", String, nullable=False, server_default="storage"),
    Column("assignedTo", String),
    Column("batteryCharged", Integer),
    Column("batteryTotal", Integer),
    Column("memoryFree", Integer),
    Column("memoryTotal", Integer),
    Column("notes", Text, server_default=""),
    Column("createdAt", String),
    Column("updatedAt", String),
    Column("deletedAt", Integer),
)

inventory_logs = Table(
    "inventory_logs",
    metadata,
    Column("id", String, primary_key=True),
    Column("itemId", String, nullable=False),
    Column("action", String, nullable=False),
    Column("userId", String, nullable=False),
    Column("details", Text),
    Column("createdAt", String, nullable=False),
)
