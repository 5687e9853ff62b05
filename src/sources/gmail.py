# src/sources/gmail.py
"""Convert Gmail API message resources (users.messages.get, format=full) into RawItems."""

from typing import Dict, Any, List, Optional
import base64
import binascii
import logging

from src.models.schemas import RawItem, Platform


logger = logging.getLogger(__name__)


def get_header(headers: List[Dict[str, str]], name: str) -> str:
    """Case-insensitive header lookup, empty string when absent."""
    for header in headers:
        if (header.get("name") or "").lower() == name.lower():
            return header.get("value") or ""
    return ""


def decode_body_data(data: str) -> str:
    """Decode base64url body data as UTF-8, replacing undecodable bytes."""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Could not decode message body: {e}")
        return ""


def _part_data(part: Dict[str, Any]) -> Optional[str]:
    return (part.get("body") or {}).get("data")


def extract_body(payload: Dict[str, Any]) -> str:
    """
    Extract the message body from a payload.

    Order: payload body data, a text/plain part, a text/html part, then nested parts.
    """
    data = _part_data(payload)
    if data:
        return decode_body_data(data)

    parts = payload.get("parts") or []

    for mime_type in ("text/plain", "text/html"):
        for part in parts:
            data = _part_data(part)
            if part.get("mimeType") == mime_type and data:
                return decode_body_data(data)

    for part in parts:
        if part.get("parts"):
            nested = extract_body(part)
            if nested:
                return nested

    return ""


def parse_gmail_message(message: Dict[str, Any]) -> RawItem:
    """
    Build a RawItem from a Gmail message resource.

    Args:
        message: Message resource as returned by the Gmail API

    Returns:
        RawItem for the gmail platform

    Raises:
        InvalidInputError: If the message has no id or malformed fields
    """
    payload = message.get("payload") or {}
    headers = payload.get("headers") or []

    return RawItem.parse({
        "source_id": message.get("id"),
        "platform": Platform.GMAIL,
        "subject": get_header(headers, "Subject"),
        "from": get_header(headers, "From"),
        "to": get_header(headers, "To"),
        "date_header": get_header(headers, "Date") or None,
        "body": extract_body(payload),
        "snippet": message.get("snippet"),
        "thread_id": message.get("threadId"),
        "internal_date": message.get("internalDate"),
    })
