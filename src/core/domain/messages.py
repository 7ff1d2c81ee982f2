"""System messages (Pydantic v2).

Portal payloads look like:

    {"system_messages": {"data": [
        {"type": "motd", "date_time": "2023-01-01T10:00:00Z",
         "message": "Hello" | {"en-US": "Hello", "nl-NL": "Hallo"}}]}}

`type` and `date_time` are mandatory: a message without them is a decode
error. `message` is decoded leniently, as a string *or* a locale map; a value
that is neither leaves the message without content instead of failing.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, tzinfo
from enum import Enum
from typing import Any, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from core.domain.language import pick_localized
from core.errors import DecodeError

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_BLANK_RUNS_RE = re.compile(r"\n{3,}")


class NotificationType(str, Enum):
    NOTIFICATION = "notification"
    MOTD = "motd"
    MAINTENANCE = "maintenance"


class MessageAudience(str, Enum):
    SYSTEM = "system"
    USER = "user"


def _string_map(value: object) -> dict[str, str] | None:
    if not isinstance(value, Mapping):
        return None
    if not all(isinstance(k, str) and isinstance(v, str) for k, v in value.items()):
        return None
    return dict(value)


class Message(BaseModel):
    """A single portal message. Immutable once decoded."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    message: str | None = Field(
        default=None,
        description="Single, non-localized text.",
    )
    messages: dict[str, str] | None = Field(
        default=None,
        description="Text per locale tag; wins over `message` when present.",
    )
    date_time: datetime = Field(..., description="When the message was issued.")
    begin: datetime | None = Field(default=None, description="Start of validity.")
    end: datetime | None = Field(default=None, description="End of validity.")
    type: NotificationType
    audience: MessageAudience = MessageAudience.USER

    @model_validator(mode="before")
    @classmethod
    def _split_message_field(cls, data: Any) -> Any:
        # On the wire both shapes share the `message` key; try both, keep what fits.
        if not isinstance(data, Mapping) or "messages" in data or "message" not in data:
            return data
        out = dict(data)
        raw = out.get("message")
        out["message"] = raw if isinstance(raw, str) else None
        out["messages"] = _string_map(raw)
        return out

    def display_string(self, preferred_locales: Sequence[str], tz: tzinfo | None = None) -> str | None:
        return display_string(self, preferred_locales, tz)


class SystemMessages(BaseModel):
    model_config = ConfigDict(frozen=True)

    system_messages: list[Message] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.system_messages)

    def display_string(self, preferred_locales: Sequence[str], tz: tzinfo | None = None) -> str:
        """All displayable messages separated by a single blank line."""

        pieces = [display_string(m, preferred_locales, tz) for m in self.system_messages]
        return "\n\n".join(piece for piece in pieces if piece is not None)


def decode_message(payload: Mapping[str, Any], *, audience: MessageAudience | None = None) -> Message:
    data = dict(payload)
    if audience is not None:
        data["audience"] = audience
    try:
        return Message.model_validate(data)
    except ValidationError as exc:
        raise DecodeError(
            f"Invalid message: {exc.error_count()} error(s)",
            errors=exc.errors(include_url=False),
        ) from exc


def decode_system_messages(payload: bytes | str | Mapping[str, Any]) -> SystemMessages:
    """Decode a `system_messages` document; every message is stamped `system`."""

    if isinstance(payload, (bytes, str)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"System messages are not valid JSON: {exc}") from exc

    if not isinstance(payload, Mapping):
        raise DecodeError("System messages payload must be a JSON object")
    container = payload.get("system_messages")
    if not isinstance(container, Mapping):
        raise DecodeError("Missing `system_messages` object")
    data = container.get("data")
    if not isinstance(data, list):
        raise DecodeError("Missing `system_messages.data` list")

    messages: list[Message] = []
    for index, item in enumerate(data):
        if not isinstance(item, Mapping):
            raise DecodeError(f"system_messages.data[{index}] is not an object")
        messages.append(decode_message(item, audience=MessageAudience.SYSTEM))
    return SystemMessages(system_messages=messages)


def localized_message(message: Message, preferred_locales: Sequence[str]) -> str:
    """Text for the first preferred locale present; `""` when none matches.

    A single raw string is returned as-is whatever the preferences are.
    """

    if message.messages is not None:
        picked = pick_localized(message.messages, preferred_locales)
        return picked if picked is not None else ""
    if message.message is not None:
        return message.message
    return ""


def format_timestamp(value: datetime, tz: tzinfo | None = None) -> str:
    """Medium date + medium time, e.g. `Jan 1, 2023 at 10:00:00 AM`.

    Rendered in the timestamp's own zone unless `tz` is given.
    """

    if tz is not None and value.tzinfo is not None:
        value = value.astimezone(tz)
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return (
        f"{_MONTHS[value.month - 1]} {value.day}, {value.year} "
        f"at {hour}:{value.minute:02d}:{value.second:02d} {meridiem}"
    )


def display_string(message: Message, preferred_locales: Sequence[str], tz: tzinfo | None = None) -> str | None:
    text = localized_message(message, preferred_locales).strip("\n")
    if not text.strip():
        return None
    text = _BLANK_RUNS_RE.sub("\n\n", text)
    return f"{format_timestamp(message.date_time, tz)}\n{text}"
