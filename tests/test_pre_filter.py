"""Unit tests for the non-feedback pre-filter."""
import pytest
from src.filtering.pre_filter import (
    MARKETING_PATTERNS, count_urls, strip_urls, find_marketing_pattern, is_obvious_non_feedback
)
from src.models.schemas import RawItem


LONG_PROSE = (
    "I have been using the dashboard every day for the last two months and the export "
    "button keeps timing out when the report has more than a few hundred rows in it. "
    "It used to work fine before the last update, so something must have changed there."
)


def make_item(**fields):
    fields.setdefault("source_id", "msg-1")
    fields.setdefault("platform", "gmail")
    return RawItem.parse(fields)


class TestHelpers:
    """Test URL helpers."""

    def test_count_urls(self):
        assert count_urls("") == 0
        assert count_urls("see http://a.example and https://b.example") == 2
        assert count_urls(None) == 0

    def test_strip_urls(self):
        assert strip_urls("  go to https://a.example/x?y=1 now  ") == "go to  now"
        assert strip_urls("https://a.example") == ""


class TestMarketingPatterns:
    """Test marketing/notification pattern matching."""

    @pytest.mark.parametrize("pattern", MARKETING_PATTERNS)
    def test_every_pattern_rejects_in_body(self, pattern):
        """Test each pattern in the list rejects when present in the body."""
        item = make_item(body=f"Hello there, {pattern} here", **{"from": "person@example.com"})
        assert is_obvious_non_feedback(item) is True

    def test_pattern_in_subject(self):
        item = make_item(subject="Big SALE this weekend", body="Hi")
        assert find_marketing_pattern(item) == "sale"
        assert is_obvious_non_feedback(item) is True

    def test_pattern_in_sender(self):
        item = make_item(subject="Hi", body="A message", **{"from": "NoReply@service.example"})
        assert is_obvious_non_feedback(item) is True

    def test_noreply_sender_rejects_regardless_of_body(self):
        item = make_item(subject="Bug report", body=LONG_PROSE, **{"from": "noreply@example.com"})
        assert is_obvious_non_feedback(item) is True

    def test_unsubscribe_body_rejects_regardless_of_sender(self):
        item = make_item(subject="Bug report", body=LONG_PROSE + " Unsubscribe", **{"from": "user@example.com"})
        assert is_obvious_non_feedback(item) is True

    def test_snippet_used_when_body_missing(self):
        item = make_item(snippet="Click to unsubscribe")
        assert is_obvious_non_feedback(item) is True


class TestUrlHeuristics:
    """Test the excessive-URL and link-dominant heuristics."""

    def test_more_than_five_urls_rejects(self):
        urls = " ".join(f"https://site{i}.example/page" for i in range(6))
        item = make_item(body=f"{LONG_PROSE} {urls}")
        assert is_obvious_non_feedback(item) is True

    def test_five_urls_with_prose_passes(self):
        urls = " ".join(f"https://site{i}.example/page" for i in range(5))
        item = make_item(body=f"{LONG_PROSE} {urls}", **{"from": "user@example.com"})
        assert is_obvious_non_feedback(item) is False

    def test_link_dominant_rejects(self):
        urls = " ".join(f"http://site{i}.example/page" for i in range(4))
        item = make_item(body=f"Check these: {urls}")
        assert is_obvious_non_feedback(item) is True

    def test_four_urls_with_enough_prose_passes(self):
        urls = " ".join(f"http://site{i}.example/page" for i in range(4))
        item = make_item(body=f"{LONG_PROSE} {urls}")
        assert len(strip_urls(item.body)) >= 200
        assert is_obvious_non_feedback(item) is False

    def test_three_urls_short_prose_passes(self):
        urls = " ".join(f"http://site{i}.example/page" for i in range(3))
        item = make_item(body=f"Screenshots: {urls}")
        assert is_obvious_non_feedback(item) is False


class TestPassThrough:
    """Test genuine feedback passes the pre-filter."""

    def test_empty_item_does_not_crash(self):
        item = make_item()
        assert is_obvious_non_feedback(item) is False

    def test_bug_report_passes(self):
        item = make_item(
            subject="Bug report: Login broken",
            body="The login button does nothing when clicked.",
            **{"from": "user@example.com"}
        )
        assert is_obvious_non_feedback(item) is False

    def test_deterministic(self):
        item = make_item(subject="Feature request", body=LONG_PROSE)
        assert is_obvious_non_feedback(item) == is_obvious_non_feedback(item)
