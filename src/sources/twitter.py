# src/sources/twitter.py
"""Convert Twitter API v2 tweet objects into RawItems."""

from typing import Dict, Any, Optional

from src.models.schemas import RawItem, Platform


def parse_tweet(tweet: Dict[str, Any], users: Optional[Dict[str, Dict[str, Any]]] = None) -> RawItem:
    """
    Build a RawItem from a tweet.

    Args:
        tweet: Tweet object (id, text, author_id, created_at)
        users: Optional map of author_id to user objects from the `includes.users` expansion

    Returns:
        RawItem for the twitter platform
    """
    author_id = tweet.get("author_id")
    author = (users or {}).get(author_id) or tweet.get("author") or {}
    username = author.get("username")

    if username:
        sender = f"@{username}"
    else:
        sender = str(author_id) if author_id else ""

    return RawItem.parse({
        "source_id": tweet.get("id"),
        "platform": Platform.TWITTER,
        "body": tweet.get("text"),
        "from": sender,
        "date_header": tweet.get("created_at"),
    })
