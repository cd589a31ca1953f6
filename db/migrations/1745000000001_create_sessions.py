"""Create the sessions table.

Rows are never deleted: expiring a session moves expires_at into the past,
which keeps the row as an audit record.
"""

from sqlalchemy import Column, DateTime, ForeignKey, MetaData, String, Table, Uuid
from sqlalchemy.engine import Connection


def up(connection: Connection) -> None:
    metadata = MetaData()
    # Reference-only stub so the foreign key resolves; users already exists.
    Table("users", metadata, Column("id", Uuid, primary_key=True))
    sessions = Table(
        "sessions",
        metadata,
        Column("id", Uuid, primary_key=True),
        Column("token", String(96), nullable=False, unique=True),
        Column("user_id", Uuid, ForeignKey("users.id"), nullable=False),
        Column("expires_at", DateTime(timezone=True), nullable=False),
        Column("created_at", DateTime(timezone=True), nullable=False),
        Column("updated_at", DateTime(timezone=True), nullable=False),
    )
    sessions.create(connection)
