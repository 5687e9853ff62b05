from pydantic import BaseModel, Field, ConfigDict, StrictInt, StrictStr, ValidationError, field_validator
from typing import Optional, List, Union, Any, Dict
from datetime import datetime
from enum import Enum

from src.exceptions import InvalidInputError


class Platform(str, Enum):
    """Channel an inbound item arrived from."""
    GMAIL = "gmail"
    TWITTER = "twitter"
    MANUAL = "manual"


class Category(str, Enum):
    """Category labels produced by the classifier."""
    BUG = "bug"
    FEATURE = "feature"
    IMPROVEMENT = "improvement"
    COMPLAINT = "complaint"
    PRAISE = "praise"
    SUGGESTION = "suggestion"
    QUESTION = "question"
    SUPPORT = "support"
    GENERAL = "general"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RejectionReason(str, Enum):
    OBVIOUS_NON_FEEDBACK = "obvious_non_feedback"
    LOW_CONFIDENCE_CATEGORY = "low_confidence_category"
    NONE = "none"


class ItemStatus(str, Enum):
    """What the ingestion loop did with an item."""
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    DEFERRED = "deferred"
    DUPLICATE = "duplicate"


class RawItem(BaseModel):
    """Inbound message prior to filtering."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source_id: StrictStr = Field(..., min_length=1)
    platform: Platform
    subject: StrictStr = ""
    body: StrictStr = ""
    snippet: StrictStr = ""
    sender: StrictStr = Field("", alias="from")
    to: StrictStr = ""
    thread_id: Optional[StrictStr] = None
    date_header: Optional[StrictStr] = None
    internal_date: Optional[Union[StrictInt, StrictStr]] = None

    @field_validator("subject", "body", "snippet", "sender", "to", mode="before")
    @classmethod
    def _missing_as_empty(cls, value):
        return "" if value is None else value

    @property
    def content(self) -> str:
        """Body text, falling back to the snippet."""
        return self.body or self.snippet or ""

    @classmethod
    def parse(cls, data: Dict[str, Any]) -> "RawItem":
        """Validate a raw payload, raising InvalidInputError on contract violations."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidInputError(f"Malformed raw item: {e}") from e


class ClassificationResult(BaseModel):
    """Structured output of the external classifier."""
    model_config = ConfigDict(extra="allow")

    category: Category
    confidence: float = Field(..., ge=0.0, le=1.0)
    sentiment: Sentiment
    priority: Priority

    # Advisory fields, passed through unchanged
    keywords: List[str] = Field(default_factory=list)
    user_intent: Optional[str] = None
    business_impact: Optional[str] = None
    urgency: Optional[str] = None
    reasoning: Optional[str] = None
    suggested_action: Optional[str] = None
    summary: Optional[str] = None
    insights: Optional[Any] = None
    platform_context: Optional[Dict[str, Any]] = None


class FeedbackMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject: str
    sender: str = Field(..., alias="from")
    to: str = ""
    date: str
    processed_at: str
    thread_id: Optional[str] = None
    ai_analyzed: bool = True
    auto_processed: bool = False


class NormalizedRecord(BaseModel):
    """Accepted feedback, shaped for the storage collaborator."""
    model_config = ConfigDict(use_enum_values=True)

    content: str
    category: Category
    priority: Priority
    sentiment: Sentiment
    metadata: FeedbackMetadata
    ai_analysis: Dict[str, Any] = Field(default_factory=dict)


class FeedbackDecision(BaseModel):
    accepted: bool
    rejection_reason: RejectionReason = RejectionReason.NONE
    normalized_record: Optional[NormalizedRecord] = None


class ItemOutcome(BaseModel):
    source_id: str
    status: ItemStatus
    decision: Optional[FeedbackDecision] = None
    error: Optional[str] = None


class StoredFeedback(BaseModel):
    """Accepted feedback as read back from storage."""
    id: str
    platform: str
    content: str
    category: str
    priority: str
    sentiment: str
    ai_analysis: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class FeedbackCluster(BaseModel):
    """A group of related stored feedback with a generated label."""
    cluster_id: str
    label: str
    category: str
    feedback_ids: List[str]
    item_count: int
    priority: str
    platforms: List[str] = Field(default_factory=list)
    sentiment_distribution: Dict[str, int] = Field(default_factory=dict)
