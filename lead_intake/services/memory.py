"""
Optional lead memory service.

Receives a note about every new inbound lead so downstream agents have more
context. The pipeline stays correct without it: NullMemorySink is the default.
"""

from abc import ABC, abstractmethod

import httpx

from lead_intake.config import settings
from lead_intake.core.logging import get_logger
from lead_intake.core.models import LeadRecord, ParsedLeadCandidate, RawMessage

log = get_logger(__name__)


class LeadMemorySink(ABC):
    """Port for the lead memory service."""

    @abstractmethod
    def add_lead_memory(
        self,
        lead: LeadRecord,
        candidate: ParsedLeadCandidate,
        message: RawMessage,
    ) -> None:
        pass


class NullMemorySink(LeadMemorySink):
    """Used when no memory service is configured."""

    def add_lead_memory(self, lead, candidate, message) -> None:
        return None


class HTTPMemorySink(LeadMemorySink):
    """Posts lead memories to the memory service over HTTP."""

    def __init__(self, base_url: str | None = None, timeout: float = 10.0):
        self.base_url = (base_url or settings.memory_sink_url or "").rstrip("/")
        self._client = httpx.Client(timeout=timeout)

    def add_lead_memory(
        self,
        lead: LeadRecord,
        candidate: ParsedLeadCandidate,
        message: RawMessage,
    ) -> None:
        payload = {
            "type": "lead_msg",
            "leadEmail": lead.email,
            "content": f"New lead from email: {message.subject}\n\nContent: {message.body[:3000]}",
            "meta": {
                "source": "email_ingestion",
                "emailSubject": message.subject,
                "emailFrom": message.sender,
                "emailDate": message.email_date.isoformat() if message.email_date else None,
                "leadSource": candidate.lead_source,
            },
        }

        try:
            response = self._client.post(f"{self.base_url}/memories", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RuntimeError(f"Memory service error: {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise RuntimeError(f"Failed to reach memory service: {e}") from e

        log.info("lead_memory_written", lead_id=lead.id)

    def close(self) -> None:
        self._client.close()
