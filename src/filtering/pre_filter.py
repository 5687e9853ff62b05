# src/filtering/pre_filter.py
"""
Rule-based pre-filter that rejects obvious non-feedback (marketing, notifications,
transactional mail) before any classifier call is made.
"""

from typing import Optional
import re

from src.models.schemas import RawItem


# Common marketing/notification patterns, matched as lowercase substrings
MARKETING_PATTERNS = [
    "unsubscribe", "newsletter", "promotion", "sale", "discount", "offer",
    "marketing", "advertisement", "spam", "noreply", "no-reply",
    "password reset", "verify", "confirmation", "welcome to",
    "thank you for signing up", "activate your account",
    "privacy policy", "terms of service", "terms & conditions",
    "pinterest.com", "facebook.com", "twitter.com", "instagram.com",
    "linkedin.com", "youtube.com", "tiktok.com",
    "to view this content", "open the following url",
    "help centre", "support@", "notifications@",
]

MAX_URLS = 5
LINK_DOMINANT_MIN_URLS = 3
LINK_DOMINANT_MIN_TEXT_LENGTH = 200

_URL_SCHEME_RE = re.compile(r"https?://")
_URL_RE = re.compile(r"https?://\S+")


def count_urls(text: str) -> int:
    """Count occurrences of http:// or https:// in text."""
    return len(_URL_SCHEME_RE.findall(text or ""))


def strip_urls(text: str) -> str:
    """Remove every URL from text and trim the remainder."""
    return _URL_RE.sub("", text or "").strip()


def find_marketing_pattern(item: RawItem) -> Optional[str]:
    """Return the first marketing pattern found in subject, body or sender, if any."""
    subject = item.subject.lower()
    body = item.content.lower()
    sender = item.sender.lower()

    for pattern in MARKETING_PATTERNS:
        if pattern in subject or pattern in body or pattern in sender:
            return pattern
    return None


def is_obvious_non_feedback(item: RawItem) -> bool:
    """
    Check if an item is obviously not feedback.

    Args:
        item: Inbound raw item

    Returns:
        True if the item should be rejected without classification
    """
    if find_marketing_pattern(item) is not None:
        return True

    body = item.content.lower()
    url_count = count_urls(body)

    # Marketing mail tends to be link-heavy
    if url_count > MAX_URLS:
        return True

    # Mostly links with negligible prose
    if url_count > LINK_DOMINANT_MIN_URLS and len(strip_urls(body)) < LINK_DOMINANT_MIN_TEXT_LENGTH:
        return True

    return False
