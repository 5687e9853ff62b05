# src/filtering/heuristics.py
"""Keyword heuristics for priority/category, and an offline classifier built on them.

Useful for dry runs and tests without an OpenAI API key.
"""

from typing import Optional, Dict, Any

from src.models.schemas import RawItem, ClassificationResult, Category, Priority, Sentiment


URGENT_KEYWORDS = ["urgent", "critical", "emergency", "asap", "immediate"]
IMPORTANT_KEYWORDS = ["important", "bug", "error", "issue", "problem"]

# Checked in order, first match wins
CATEGORY_KEYWORDS = [
    (Category.BUG, ["bug", "error", "issue"]),
    (Category.FEATURE, ["feature", "enhancement", "improve"]),
    (Category.SUPPORT, ["question", "help", "support"]),
]


def _estimate_priority_text(subject: str, body: str) -> Priority:
    subject = subject.lower()
    body = body.lower()

    if any(keyword in subject or keyword in body for keyword in URGENT_KEYWORDS):
        return Priority.HIGH
    if any(keyword in subject or keyword in body for keyword in IMPORTANT_KEYWORDS):
        return Priority.MEDIUM
    return Priority.LOW


def _estimate_category_text(subject: str, body: str) -> Category:
    text = f"{subject} {body}".lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return Category.GENERAL


def estimate_priority(item: RawItem) -> Priority:
    """Priority from urgency keywords in subject and content."""
    return _estimate_priority_text(item.subject, item.content)


def estimate_category(item: RawItem) -> Category:
    """Category from topic keywords in subject and content."""
    return _estimate_category_text(item.subject, item.content)


class KeywordClassifier:
    """Classifier collaborator that needs no network access."""

    MATCHED_CONFIDENCE = 0.85
    GENERAL_CONFIDENCE = 0.5

    def analyze(self, content: str, platform: str, context: Optional[Dict[str, Any]] = None) -> ClassificationResult:
        """
        Classify content with keyword heuristics.

        Args:
            content: Feedback text
            platform: Platform the content came from
            context: Optional dict with subject/from/date

        Returns:
            ClassificationResult
        """
        context = context or {}
        subject = context.get("subject") or ""

        category = _estimate_category_text(subject, content)
        priority = _estimate_priority_text(subject, content)
        confidence = self.GENERAL_CONFIDENCE if category == Category.GENERAL else self.MATCHED_CONFIDENCE
        sentiment = Sentiment.NEGATIVE if category == Category.BUG else Sentiment.NEUTRAL

        return ClassificationResult(
            category=category,
            confidence=confidence,
            sentiment=sentiment,
            priority=priority,
            reasoning="Keyword heuristics",
            platform_context={"platform": platform, "metadata": context}
        )
