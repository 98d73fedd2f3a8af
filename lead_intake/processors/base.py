"""
Abstract mailbox interface used to finalize processed messages.
"""

from abc import ABC, abstractmethod

from lead_intake.core.models import ProcessingOutcome


class Mailbox(ABC):
    """Where the intake processor reports what it did with a message."""

    @abstractmethod
    def mark_processed(self, uid: int, outcome: ProcessingOutcome) -> None:
        """
        Mark a message as handled.

        Args:
            uid: Message UID
            outcome: Processing outcome; decides the optional destination folder
        """
        pass
