from __future__ import annotations

from dataclasses import dataclass

KEY_SEPARATOR = "--"


@dataclass(frozen=True)
class Event:
    """A single free slot on the calendar.

    The time label is kept exactly as the page shows it (only stripped),
    so two events are equal only if both the date and the raw time match.
    """

    date: str  # YYYY-MM-DD
    time: str

    @property
    def key(self) -> str:
        return f"{self.date}{KEY_SEPARATOR}{self.time}"


class MalformedDescriptor(ValueError):
    """The filter blob is not base64-encoded JSON object."""


class InvalidDateFormat(ValueError):
    """A date label on the page does not look like 'D. M. YYYY'."""


class DeliveryError(RuntimeError):
    """Telegram message could not be delivered to some of the recipients."""

    def __init__(self, failed_chat_ids: list[str]):
        self.failed_chat_ids = failed_chat_ids
        super().__init__(f"Failed to send telegram message to some recipients: {', '.join(failed_chat_ids)}")
