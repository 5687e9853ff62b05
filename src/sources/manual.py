# src/sources/manual.py
from typing import Optional
from datetime import datetime, timezone
import hashlib

from src.exceptions import InvalidInputError
from src.filtering.normalize import to_iso
from src.models.schemas import RawItem, Platform


def manual_item(
    content: str,
    subject: Optional[str] = None,
    sender: Optional[str] = None,
    source_id: Optional[str] = None,
    submitted_at: Optional[datetime] = None
) -> RawItem:
    """Build a RawItem for a manually submitted piece of feedback.

    Without an explicit source_id the id is a hash of the content, so resubmitting
    identical text maps to the same storage key.
    """
    if content is not None and not isinstance(content, str):
        raise InvalidInputError(f"Manual content must be a string, got {type(content).__name__}")

    if source_id is None:
        source_id = hashlib.sha256((content or "").encode("utf-8")).hexdigest()[:32]

    submitted_at = submitted_at or datetime.now(timezone.utc)

    return RawItem.parse({
        "source_id": source_id,
        "platform": Platform.MANUAL,
        "subject": subject,
        "body": content,
        "from": sender,
        "date_header": to_iso(submitted_at),
    })
