# src/filtering/normalize.py
from typing import Optional, Union
from datetime import datetime, timedelta, timezone
import logging

from dateutil import parser as dateparser

from src.models.schemas import RawItem, ClassificationResult, NormalizedRecord, FeedbackMetadata


logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "No Subject"
DEFAULT_SENDER = "Unknown Sender"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_iso(value: datetime) -> str:
    """Format a datetime as UTC ISO-8601 with millisecond precision and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_header(date_header: Optional[str]) -> Optional[datetime]:
    if not date_header or not date_header.strip():
        return None
    try:
        parsed = dateparser.parse(date_header)
        if parsed.tzinfo:
            return parsed.astimezone(timezone.utc)
        return parsed.replace(tzinfo=timezone.utc)
    except (ValueError, OverflowError) as e:
        logger.debug(f"Unparseable date header {date_header!r}: {e}")
        return None


def _parse_epoch_millis(internal_date: Optional[Union[int, str]]) -> Optional[datetime]:
    if internal_date is None or isinstance(internal_date, bool):
        return None
    try:
        millis = int(internal_date)
        return EPOCH + timedelta(milliseconds=millis)
    except (ValueError, OverflowError, OSError) as e:
        logger.debug(f"Unparseable internal timestamp {internal_date!r}: {e}")
        return None


def resolve_datetime(
    date_header: Optional[str],
    internal_date: Optional[Union[int, str]],
    now: Optional[datetime] = None
) -> datetime:
    """
    Resolve the best-effort receive time of an item.

    Args:
        date_header: Explicit date header (RFC 2822 or ISO-8601)
        internal_date: Platform internal timestamp in epoch milliseconds
        now: Processing time, used when neither source parses

    Returns:
        Timezone-aware UTC datetime
    """
    return (
        _parse_header(date_header)
        or _parse_epoch_millis(internal_date)
        or now
        or datetime.now(timezone.utc)
    )


def resolve_date(
    date_header: Optional[str],
    internal_date: Optional[Union[int, str]],
    now: Optional[datetime] = None
) -> str:
    """Resolve the receive time of an item as an ISO-8601 string. Never raises."""
    return to_iso(resolve_datetime(date_header, internal_date, now))


def build_normalized_record(
    item: RawItem,
    result: ClassificationResult,
    auto_processed: bool = False,
    now: Optional[datetime] = None
) -> NormalizedRecord:
    """
    Build the record handed to the storage collaborator for an accepted item.

    Args:
        item: Accepted raw item
        result: Classifier output for the item
        auto_processed: True when accepted by unattended ingestion
        now: Processing time (defaults to the current UTC time)

    Returns:
        NormalizedRecord with category, priority and sentiment copied from the result
    """
    now = now or datetime.now(timezone.utc)

    metadata = FeedbackMetadata(
        subject=item.subject or DEFAULT_SUBJECT,
        sender=item.sender or DEFAULT_SENDER,
        to=item.to,
        date=resolve_date(item.date_header, item.internal_date, now),
        processed_at=to_iso(now),
        thread_id=item.thread_id,
        ai_analyzed=True,
        auto_processed=auto_processed
    )

    return NormalizedRecord(
        content=item.content,
        category=result.category,
        priority=result.priority,
        sentiment=result.sentiment,
        metadata=metadata,
        ai_analysis=result.model_dump(mode="json")
    )
