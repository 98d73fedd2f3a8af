"""
PostgreSQL lead store.

Implements the LeadStore port on top of psycopg for deployments that keep
leads in Postgres.
"""

from contextlib import contextmanager
from typing import Any, Generator

import psycopg
from psycopg.rows import dict_row

from lead_intake.config import settings
from lead_intake.core.logging import get_logger
from lead_intake.core.models import (
    Conversation,
    ConversationMessage,
    LeadRecord,
    LeadStatus,
    MERGEABLE_FIELDS,
)
from lead_intake.core.store import LeadStore

log = get_logger(__name__)

LEAD_COLUMNS = "id, email, first_name, last_name, phone, vehicle_interest, lead_source, status, created_at, updated_at"


class PostgresLeadStore(LeadStore):
    """PostgreSQL operations for leads and their conversations."""

    def __init__(self, connection_string: str | None = None):
        """
        Initialize database connection.

        Args:
            connection_string: PostgreSQL connection URL. Uses settings if not provided.
        """
        self.connection_string = connection_string or settings.database_url
        if not self.connection_string:
            raise ValueError("PostgresLeadStore needs a connection string (DATABASE_URL)")

    @contextmanager
    def get_connection(self) -> Generator[psycopg.Connection, None, None]:
        """Get a database connection as a context manager."""
        conn = psycopg.connect(self.connection_string, row_factory=dict_row)
        try:
            yield conn
        finally:
            conn.close()

    def init_schema(self) -> None:
        """Initialize database schema (create tables if not exist)."""
        schema_sql = """
        CREATE TABLE IF NOT EXISTS leads (
            id SERIAL PRIMARY KEY,
            email TEXT NOT NULL,
            first_name TEXT,
            last_name TEXT,
            phone TEXT,
            vehicle_interest TEXT,
            lead_source TEXT,
            status VARCHAR(50) DEFAULT 'new',
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE UNIQUE INDEX IF NOT EXISTS idx_leads_email_lower ON leads(LOWER(email));

        CREATE TABLE IF NOT EXISTS conversations (
            id SERIAL PRIMARY KEY,
            lead_id INTEGER REFERENCES leads(id) ON DELETE CASCADE,
            subject TEXT,
            status VARCHAR(50) DEFAULT 'active',
            created_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE TABLE IF NOT EXISTS conversation_messages (
            id SERIAL PRIMARY KEY,
            conversation_id INTEGER REFERENCES conversations(id) ON DELETE CASCADE,
            sender_id INTEGER,
            content TEXT,
            message_type VARCHAR(50) DEFAULT 'email',
            created_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE INDEX IF NOT EXISTS idx_messages_conversation ON conversation_messages(conversation_id);
        """

        with self.get_connection() as conn:
            conn.execute(schema_sql)
            conn.commit()
            log.info("database_schema_initialized")

    def get_by_email(self, email: str) -> LeadRecord | None:
        with self.get_connection() as conn:
            row = conn.execute(
                f"SELECT {LEAD_COLUMNS} FROM leads WHERE LOWER(email) = LOWER(%s) LIMIT 1",
                (email.strip(),),
            ).fetchone()
            return self._row_to_lead(row) if row else None

    def create(self, data: dict[str, Any]) -> LeadRecord:
        values = {name: data.get(name) for name in MERGEABLE_FIELDS}
        values["email"] = data["email"]
        values["status"] = LeadStatus(data.get("status", LeadStatus.NEW)).value

        sql = f"""
        INSERT INTO leads (email, first_name, last_name, phone, vehicle_interest, lead_source, status)
        VALUES (
            %(email)s, %(first_name)s, %(last_name)s, %(phone)s,
            %(vehicle_interest)s, %(lead_source)s, %(status)s
        )
        RETURNING {LEAD_COLUMNS}
        """
        with self.get_connection() as conn:
            row = conn.execute(sql, values).fetchone()
            conn.commit()
            log.info("lead_inserted", lead_id=row["id"])
            return self._row_to_lead(row)

    def update(self, lead_id: int, changes: dict[str, Any]) -> LeadRecord:
        columns = [name for name in changes if name in MERGEABLE_FIELDS or name == "status"]
        params = {name: changes[name] for name in columns}
        if "status" in params:
            params["status"] = LeadStatus(params["status"]).value
        params["id"] = lead_id

        assignments = ", ".join(f"{name} = %({name})s" for name in columns)
        set_clause = f"{assignments}, updated_at = NOW()" if assignments else "updated_at = NOW()"
        sql = f"UPDATE leads SET {set_clause} WHERE id = %(id)s RETURNING {LEAD_COLUMNS}"

        with self.get_connection() as conn:
            row = conn.execute(sql, params).fetchone()
            conn.commit()
            if row is None:
                raise KeyError(f"Lead {lead_id} not found")
            return self._row_to_lead(row)

    def create_conversation(
        self,
        subject: str,
        status: str = "active",
        lead_id: int | None = None,
    ) -> Conversation:
        with self.get_connection() as conn:
            row = conn.execute(
                """
                INSERT INTO conversations (lead_id, subject, status)
                VALUES (%s, %s, %s)
                RETURNING id, lead_id, subject, status, created_at
                """,
                (lead_id, subject, status),
            ).fetchone()
            conn.commit()
            return Conversation(**row)

    def create_conversation_message(
        self,
        conversation_id: int,
        sender_id: int | None,
        content: str,
        message_type: str = "email",
    ) -> ConversationMessage:
        with self.get_connection() as conn:
            row = conn.execute(
                """
                INSERT INTO conversation_messages (conversation_id, sender_id, content, message_type)
                VALUES (%s, %s, %s, %s)
                RETURNING id, conversation_id, sender_id, content, message_type, created_at
                """,
                (conversation_id, sender_id, content, message_type),
            ).fetchone()
            conn.commit()
            return ConversationMessage(**row)

    def _row_to_lead(self, row: dict) -> LeadRecord:
        """Convert database row to LeadRecord."""
        return LeadRecord(
            id=row["id"],
            email=row["email"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            phone=row["phone"],
            vehicle_interest=row["vehicle_interest"],
            lead_source=row["lead_source"],
            status=LeadStatus(row["status"] or LeadStatus.NEW),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
