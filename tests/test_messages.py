from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from core.domain.messages import (
    Message,
    MessageAudience,
    NotificationType,
    SystemMessages,
    decode_message,
    decode_system_messages,
    display_string,
    format_timestamp,
    localized_message,
)
from core.errors import DecodeError

WHEN = datetime(2023, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


def _msg(message: object, **extra: object) -> Message:
    return decode_message({"type": "motd", "date_time": "2023-01-01T10:00:00Z", "message": message, **extra})


def test_end_to_end_localized_display_string() -> None:
    payload = (
        '{"system_messages":{"data":[{"type":"motd","date_time":"2023-01-01T10:00:00Z",'
        '"message":{"en-US":"Hello","nl-NL":"Hallo"}}]}}'
    )

    decoded = decode_system_messages(payload)

    assert decoded.display_string(["nl-NL", "en-US"]) == "Jan 1, 2023 at 10:00:00 AM\nHallo"
    assert decoded.system_messages[0].audience is MessageAudience.SYSTEM
    assert decoded.system_messages[0].type is NotificationType.MOTD


def test_locale_map_follows_preference_order() -> None:
    message = _msg({"en-US": "Hello", "nl-NL": "Hallo", "de-DE": "Hallo!"})

    assert localized_message(message, ["de-DE", "nl-NL"]) == "Hallo!"
    assert localized_message(message, ["fr-FR", "en-US", "nl-NL"]) == "Hello"


def test_locale_map_without_match_is_empty() -> None:
    message = _msg({"en-US": "Hello"})

    assert localized_message(message, ["fr-FR", "de-DE"]) == ""
    assert localized_message(message, []) == ""
    assert display_string(message, ["fr-FR"]) is None


def test_locale_tags_compare_case_and_separator_insensitive() -> None:
    message = _msg({"nl-NL": "Hallo"})

    assert localized_message(message, ["nl_nl"]) == "Hallo"


def test_single_string_ignores_preferences() -> None:
    message = _msg("Maintenance tonight")

    assert message.message == "Maintenance tonight"
    assert message.messages is None
    assert localized_message(message, []) == "Maintenance tonight"
    assert localized_message(message, ["nl-NL"]) == "Maintenance tonight"


def test_message_field_is_lenient() -> None:
    assert localized_message(_msg(42), ["en-US"]) == ""
    assert localized_message(_msg({"en-US": ["not", "a", "string"]}), ["en-US"]) == ""

    missing = decode_message({"type": "notification", "date_time": "2023-01-01T10:00:00Z"})
    assert missing.message is None and missing.messages is None
    assert display_string(missing, ["en-US"]) is None


@pytest.mark.parametrize(
    "payload",
    [
        {"date_time": "2023-01-01T10:00:00Z", "message": "x"},
        {"type": "motd", "message": "x"},
        {"type": "unknown", "date_time": "2023-01-01T10:00:00Z"},
        {"type": "motd", "date_time": "yesterday"},
    ],
)
def test_missing_or_bad_required_fields_fail(payload: dict) -> None:
    with pytest.raises(DecodeError) as info:
        decode_message(payload)
    assert info.value.errors


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        "[]",
        '{"data": []}',
        '{"system_messages": {"data": {}}}',
        '{"system_messages": {"data": [1]}}',
        '{"system_messages": {"data": [{"type": "motd"}]}}',
    ],
)
def test_bad_documents_fail(payload: str) -> None:
    with pytest.raises(DecodeError):
        decode_system_messages(payload)


def test_validity_window_is_decoded() -> None:
    message = _msg("x", begin="2023-01-01T00:00:00Z", end="2023-01-02T00:00:00Z")

    assert message.begin == datetime(2023, 1, 1, tzinfo=timezone.utc)
    assert message.end == datetime(2023, 1, 2, tzinfo=timezone.utc)


def test_messages_are_immutable() -> None:
    message = _msg("x")
    with pytest.raises(Exception):
        message.message = "y"  # type: ignore[misc]


def test_format_timestamp() -> None:
    assert format_timestamp(WHEN) == "Jan 1, 2023 at 10:00:00 AM"
    assert format_timestamp(WHEN.replace(hour=0, minute=5)) == "Jan 1, 2023 at 12:05:00 AM"
    assert format_timestamp(WHEN.replace(month=12, hour=23, second=9)) == "Dec 1, 2023 at 11:00:09 PM"
    assert format_timestamp(WHEN, timezone(timedelta(hours=1))) == "Jan 1, 2023 at 11:00:00 AM"


def test_system_messages_join_with_single_blank_line_and_skip_empty() -> None:
    data = [
        {"type": "motd", "date_time": "2023-01-01T10:00:00Z", "message": "First\n\n\n\nparagraph\n"},
        {"type": "notification", "date_time": "2023-01-02T10:00:00Z", "message": {"de-DE": "Nur Deutsch"}},
        {"type": "maintenance", "date_time": "2023-01-03T10:00:00Z", "message": "   "},
        {"type": "maintenance", "date_time": "2023-01-04T15:30:00Z", "message": {"en-US": "\nLast"}},
    ]
    decoded = decode_system_messages(json.dumps({"system_messages": {"data": data}}))

    text = decoded.display_string(["en-US"])

    assert text == (
        "Jan 1, 2023 at 10:00:00 AM\nFirst\n\nparagraph"
        "\n\n"
        "Jan 4, 2023 at 3:30:00 PM\nLast"
    )
    assert "\n\n\n" not in text


def test_empty_system_messages() -> None:
    assert SystemMessages().display_string(["en-US"]) == ""
    assert len(decode_system_messages(b'{"system_messages": {"data": []}}')) == 0


def test_user_audience_is_default() -> None:
    message = Message(message="hi", date_time=WHEN, type=NotificationType.NOTIFICATION)

    assert message.audience is MessageAudience.USER
    assert message.display_string(["en-US"]) == "Jan 1, 2023 at 10:00:00 AM\nhi"
