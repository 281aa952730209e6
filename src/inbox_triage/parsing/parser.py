from __future__ import annotations

import base64
import binascii
from email.utils import parseaddr
from typing import Dict, List, Optional


def _decode(data: str) -> str:
    # Gmail strips base64 padding, add it back before decoding.
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""


def extract_body_from_payload(payload: dict) -> str:
    """
    Extract the plain text body from a Gmail message payload.
    Multipart messages without a text/plain part decode to "".
    """
    def find_part(part: dict) -> Optional[str]:
        # Depth-first search through multipart payloads.
        if part.get("mimeType") == "text/plain" and part.get("body", {}).get("data"):
            return _decode(part["body"]["data"])
        for child in part.get("parts", []) or []:
            found = find_part(child)
            if found is not None:
                return found
        return None

    if not payload:
        return ""

    if payload.get("body", {}).get("data") and not payload.get("parts"):
        return _decode(payload["body"]["data"])

    return find_part(payload) or ""


def headers_from_payload(payload: dict) -> Dict[str, str]:
    return {
        h["name"]: h["value"]
        for h in (payload or {}).get("headers", []) or []
        if h.get("name") and h.get("value") is not None
    }


def split_recipients(value: str) -> List[str]:
    return [addr.strip() for addr in (value or "").split(",") if addr.strip()]


def sender_display_name(value: str) -> str:
    """Best human name for a From header: display name, else the address local part."""
    display, address = parseaddr(value or "")
    display = display.strip().strip('"').strip()
    if display and "@" not in display:
        return display
    address = address or (value or "").strip()
    return address.split("@", 1)[0] if address else ""


def message_id_header(headers: Dict[str, str]) -> str:
    for key, value in headers.items():
        if key.lower() == "message-id":
            return value
    return ""
