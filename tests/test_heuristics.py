"""Unit tests for keyword heuristics and the offline classifier."""
from src.filtering.heuristics import KeywordClassifier, estimate_priority, estimate_category
from src.models.schemas import RawItem, Category, Priority, Sentiment


def make_item(subject="", body=""):
    return RawItem(source_id="msg-1", platform="gmail", subject=subject, body=body)


class TestEstimatePriority:
    """Test keyword-based priority."""

    def test_urgent_keyword_is_high(self):
        assert estimate_priority(make_item(subject="URGENT: checkout down")) == Priority.HIGH
        assert estimate_priority(make_item(body="please fix asap")) == Priority.HIGH

    def test_important_keyword_is_medium(self):
        assert estimate_priority(make_item(body="Found a bug in search")) == Priority.MEDIUM

    def test_urgent_wins_over_important(self):
        assert estimate_priority(make_item(subject="Critical bug")) == Priority.HIGH

    def test_default_is_low(self):
        assert estimate_priority(make_item(body="Love the new colours")) == Priority.LOW


class TestEstimateCategory:
    """Test keyword-based category."""

    def test_bug(self):
        assert estimate_category(make_item(subject="Error on save")) == Category.BUG

    def test_feature(self):
        assert estimate_category(make_item(body="Please add an enhancement for exports")) == Category.FEATURE

    def test_support(self):
        assert estimate_category(make_item(body="I have a question about billing")) == Category.SUPPORT

    def test_bug_checked_before_feature(self):
        assert estimate_category(make_item(body="This feature has an issue")) == Category.BUG

    def test_general(self):
        assert estimate_category(make_item(body="Hello there")) == Category.GENERAL


class TestKeywordClassifier:
    """Test the offline classifier."""

    def test_analyze_bug(self):
        result = KeywordClassifier().analyze(
            "The login button does nothing when clicked.",
            "gmail",
            {"subject": "Bug report: Login broken", "from": "user@example.com"}
        )
        assert result.category == Category.BUG
        assert result.confidence == 0.85
        assert result.sentiment == Sentiment.NEGATIVE
        assert result.priority == Priority.MEDIUM
        assert result.platform_context["platform"] == "gmail"

    def test_analyze_general(self):
        result = KeywordClassifier().analyze("Just saying hi", "manual")
        assert result.category == Category.GENERAL
        assert result.confidence == 0.5
        assert result.sentiment == Sentiment.NEUTRAL
        assert result.priority == Priority.LOW
