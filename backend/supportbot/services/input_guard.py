"""Validation and normalization of inbound chat input."""
import re
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

MAX_MESSAGE_LENGTH = 2000

# Canonical 8-4-4-4-12 form only (no braces, no urn: prefix)
SESSION_ID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE
)

# ASCII control characters except tab, newline and carriage return
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


class InputRejected(Exception):
    """Raised when input fails validation. Nothing has been persisted yet."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


@dataclass(frozen=True)
class GuardedMessage:
    message: str
    truncated: bool = False


def sanitize(text: str) -> str:
    """Drop control characters and surrounding whitespace."""
    return CONTROL_CHARS.sub("", text).strip()


def guard_message(text: Optional[str], max_length: int = MAX_MESSAGE_LENGTH) -> GuardedMessage:
    """
    Validate a user message and cap its length.

    Raises:
        InputRejected: If the message is missing, empty or whitespace only
    """
    if not isinstance(text, str) or not text:
        raise InputRejected(["Message cannot be empty"])

    message = sanitize(text)
    if not message:
        raise InputRejected(["Message cannot be empty or whitespace only"])

    if len(message) > max_length:
        return GuardedMessage(message=message[:max_length], truncated=True)

    return GuardedMessage(message=message)


def guard_session_id(value: Optional[str]) -> Optional[UUID]:
    """
    Parse an optional session id.

    Returns:
        UUID, or None when no id was supplied

    Raises:
        InputRejected: If the id is not a canonical UUID string
    """
    if value is None or value == "":
        return None

    if not isinstance(value, str) or not SESSION_ID_PATTERN.fullmatch(value):
        raise InputRejected(["Invalid session ID format"])

    return UUID(value)
