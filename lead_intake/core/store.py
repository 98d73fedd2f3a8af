"""
Lead persistence port and an in-memory adapter.

The schema is owned by the host application; the intake pipeline only goes
through this interface.
"""

import itertools
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Any

from lead_intake.core.models import (
    Conversation,
    ConversationMessage,
    LeadRecord,
)


class LeadStore(ABC):
    """Abstract lead store."""

    @abstractmethod
    def get_by_email(self, email: str) -> LeadRecord | None:
        """Find a lead by email, ignoring case."""

    @abstractmethod
    def create(self, data: dict[str, Any]) -> LeadRecord:
        """Create a lead from field values (must include email)."""

    @abstractmethod
    def update(self, lead_id: int, changes: dict[str, Any]) -> LeadRecord:
        """Apply field changes to an existing lead."""

    @abstractmethod
    def create_conversation(
        self,
        subject: str,
        status: str = "active",
        lead_id: int | None = None,
    ) -> Conversation:
        pass

    @abstractmethod
    def create_conversation_message(
        self,
        conversation_id: int,
        sender_id: int | None,
        content: str,
        message_type: str = "email",
    ) -> ConversationMessage:
        pass


class InMemoryLeadStore(LeadStore):
    """Dict-backed store, used when no database is configured and in tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self.leads: dict[int, LeadRecord] = {}
        self.conversations: dict[int, Conversation] = {}
        self.messages: list[ConversationMessage] = []

    def get_by_email(self, email: str) -> LeadRecord | None:
        key = email.strip().lower()
        with self._lock:
            for lead in self.leads.values():
                if lead.email.lower() == key:
                    return lead
        return None

    def create(self, data: dict[str, Any]) -> LeadRecord:
        with self._lock:
            lead = LeadRecord(id=next(self._ids), **data)
            self.leads[lead.id] = lead
            return lead

    def update(self, lead_id: int, changes: dict[str, Any]) -> LeadRecord:
        with self._lock:
            if lead_id not in self.leads:
                raise KeyError(f"Lead {lead_id} not found")
            lead = replace(self.leads[lead_id], **changes, updated_at=datetime.now())
            self.leads[lead_id] = lead
            return lead

    def create_conversation(
        self,
        subject: str,
        status: str = "active",
        lead_id: int | None = None,
    ) -> Conversation:
        with self._lock:
            conversation = Conversation(id=next(self._ids), subject=subject, status=status, lead_id=lead_id)
            self.conversations[conversation.id] = conversation
            return conversation

    def create_conversation_message(
        self,
        conversation_id: int,
        sender_id: int | None,
        content: str,
        message_type: str = "email",
    ) -> ConversationMessage:
        with self._lock:
            message = ConversationMessage(
                id=next(self._ids),
                conversation_id=conversation_id,
                sender_id=sender_id,
                content=content,
                message_type=message_type,
            )
            self.messages.append(message)
            return message


__all__ = ["LeadStore", "InMemoryLeadStore"]
