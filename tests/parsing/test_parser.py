from __future__ import annotations

import base64

from inbox_triage.parsing.parser import (
    extract_body_from_payload,
    headers_from_payload,
    message_id_header,
    sender_display_name,
    split_recipients,
)


def _b64(text: str) -> str:
    # Gmail omits padding.
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def test_single_part_body_is_decoded() -> None:
    payload = {"mimeType": "text/plain", "body": {"data": _b64("Hallo Welt, schöne Grüße")}}
    assert extract_body_from_payload(payload) == "Hallo Welt, schöne Grüße"


def test_nested_multipart_prefers_first_plain_part() -> None:
    payload = {
        "mimeType": "multipart/mixed",
        "parts": [
            {
                "mimeType": "multipart/alternative",
                "parts": [
                    {"mimeType": "text/html", "body": {"data": _b64("<b>html</b>")}},
                    {"mimeType": "text/plain", "body": {"data": _b64("first plain")}},
                ],
            },
            {"mimeType": "text/plain", "body": {"data": _b64("attachment text")}},
        ],
    }
    assert extract_body_from_payload(payload) == "first plain"


def test_html_only_message_has_empty_body() -> None:
    payload = {
        "mimeType": "multipart/alternative",
        "parts": [{"mimeType": "text/html", "body": {"data": _b64("<p>hi</p>")}}],
    }
    assert extract_body_from_payload(payload) == ""
    assert extract_body_from_payload({}) == ""


def test_headers_and_message_id() -> None:
    headers = headers_from_payload(
        {"headers": [{"name": "Subject", "value": "Hi"}, {"name": "Message-Id", "value": "<a@b>"}]}
    )
    assert headers["Subject"] == "Hi"
    assert message_id_header(headers) == "<a@b>"
    assert message_id_header({}) == ""


def test_split_recipients() -> None:
    assert split_recipients("a@x.example, Bob <b@x.example>,") == ["a@x.example", "Bob <b@x.example>"]
    assert split_recipients("") == []


def test_sender_display_name() -> None:
    assert sender_display_name('"Bob Stone" <bob@acme.example>') == "Bob Stone"
    assert sender_display_name("bob@acme.example") == "bob"
    assert sender_display_name("") == ""

