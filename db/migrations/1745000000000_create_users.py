"""Create the users table.

Uniqueness of username and email is case-insensitive, so the unique indexes
are on LOWER(column). They back up the existence probes in auth/store.py
when two signups for the same name race each other.
"""

from sqlalchemy import Column, DateTime, Index, MetaData, String, Table, Uuid, func
from sqlalchemy.engine import Connection


def up(connection: Connection) -> None:
    metadata = MetaData()
    users = Table(
        "users",
        metadata,
        Column("id", Uuid, primary_key=True),
        Column("username", String(30), nullable=False),
        Column("email", String(254), nullable=False),
        Column("password", String(60), nullable=False),  # bcrypt, always 60 chars
        Column("created_at", DateTime(timezone=True), nullable=False),
        Column("updated_at", DateTime(timezone=True), nullable=False),
    )
    Index("users_username_lower_key", func.lower(users.c.username), unique=True)
    Index("users_email_lower_key", func.lower(users.c.email), unique=True)
    metadata.create_all(connection)
