# src/pipelines/feedback_pipeline.py
"""
Per-item decision pipeline: pre-filter, classify, then apply the acceptance gate.
Stateless apart from the injected classifier, safe to share across threads.
"""

from typing import Optional, Dict, Any, Protocol
from datetime import datetime
import logging

from src.filtering.acceptance import AcceptancePolicy, accept, reject_non_feedback
from src.filtering.normalize import resolve_date
from src.filtering.pre_filter import is_obvious_non_feedback
from src.models.schemas import RawItem, ClassificationResult, FeedbackDecision


logger = logging.getLogger(__name__)


class Classifier(Protocol):
    def analyze(self, content: str, platform: str, context: Optional[Dict[str, Any]] = None) -> ClassificationResult:
        ...


class FeedbackPipeline:
    """Decide whether a single raw item is accepted as feedback."""

    def __init__(self, classifier: Classifier, policy: AcceptancePolicy = AcceptancePolicy.STRICT):
        self.classifier = classifier
        self.policy = AcceptancePolicy(policy)

    def evaluate(self, item: RawItem, now: Optional[datetime] = None) -> FeedbackDecision:
        """
        Run one item through the pipeline.

        Args:
            item: Inbound raw item
            now: Processing time for the normalized record

        Returns:
            FeedbackDecision

        Raises:
            ClassifierFailure: If the classifier call fails; the item should be retried later
        """
        if is_obvious_non_feedback(item):
            logger.debug(f"{item.platform.value} item {item.source_id} filtered out as non-feedback")
            return reject_non_feedback()

        context = {
            "subject": item.subject,
            "from": item.sender,
            "date": resolve_date(item.date_header, item.internal_date, now),
        }
        result = self.classifier.analyze(item.content, item.platform.value, context)

        return accept(result, item, self.policy, now=now)
