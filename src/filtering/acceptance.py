# src/filtering/acceptance.py
"""
Acceptance gate applied to classifier output.

Two policies exist for two trust contexts:
- strict: unattended/scheduled ingestion, no human review step
- lenient: interactive/manual submission, a human already believes it is feedback
"""

from typing import Optional, Union, Dict, Any
from datetime import datetime
from enum import Enum

from pydantic import ValidationError

from src.exceptions import InvalidInputError
from src.filtering.normalize import build_normalized_record
from src.models.schemas import (
    RawItem, ClassificationResult, FeedbackDecision, RejectionReason, Category
)


FEEDBACK_CATEGORIES = frozenset({
    Category.BUG,
    Category.FEATURE,
    Category.IMPROVEMENT,
    Category.COMPLAINT,
    Category.PRAISE,
    Category.SUGGESTION,
})

STRICT_CONFIDENCE_THRESHOLD = 0.8
LENIENT_CONFIDENCE_THRESHOLD = 0.7


class AcceptancePolicy(str, Enum):
    STRICT = "strict"
    LENIENT = "lenient"


def passes_strict_gate(result: ClassificationResult) -> bool:
    """Recognized feedback category and confidence strictly above 0.8."""
    return result.category in FEEDBACK_CATEGORIES and result.confidence > STRICT_CONFIDENCE_THRESHOLD


def passes_lenient_gate(result: ClassificationResult) -> bool:
    """Any non-general category, or confidence above 0.7, or a recognized feedback category."""
    return (
        result.category != Category.GENERAL
        or result.confidence > LENIENT_CONFIDENCE_THRESHOLD
        or result.category in FEEDBACK_CATEGORIES
    )


_GATES = {
    AcceptancePolicy.STRICT: passes_strict_gate,
    AcceptancePolicy.LENIENT: passes_lenient_gate,
}


def _coerce_result(result: Union[ClassificationResult, Dict[str, Any]]) -> ClassificationResult:
    if isinstance(result, ClassificationResult):
        return result
    if isinstance(result, dict):
        try:
            return ClassificationResult.model_validate(result)
        except ValidationError as e:
            raise InvalidInputError(f"Malformed classification result: {e}") from e
    raise InvalidInputError(
        f"Expected a ClassificationResult, got {type(result).__name__}"
    )


def reject_non_feedback() -> FeedbackDecision:
    """Decision for an item the pre-filter rejected."""
    return FeedbackDecision(
        accepted=False,
        rejection_reason=RejectionReason.OBVIOUS_NON_FEEDBACK
    )


def accept(
    result: Union[ClassificationResult, Dict[str, Any]],
    item: RawItem,
    policy: AcceptancePolicy = AcceptancePolicy.STRICT,
    now: Optional[datetime] = None
) -> FeedbackDecision:
    """
    Decide whether a classified item is accepted as feedback.

    Args:
        result: Classifier output (a dict is validated against ClassificationResult)
        item: The raw item that was classified
        policy: Which acceptance policy to apply
        now: Processing time for the normalized record

    Returns:
        FeedbackDecision, with a normalized record only when accepted

    Raises:
        InvalidInputError: If the classification result is missing required fields
    """
    result = _coerce_result(result)
    policy = AcceptancePolicy(policy)

    if not _GATES[policy](result):
        return FeedbackDecision(
            accepted=False,
            rejection_reason=RejectionReason.LOW_CONFIDENCE_CATEGORY
        )

    record = build_normalized_record(
        item,
        result,
        auto_processed=policy == AcceptancePolicy.STRICT,
        now=now
    )
    return FeedbackDecision(
        accepted=True,
        rejection_reason=RejectionReason.NONE,
        normalized_record=record
    )
