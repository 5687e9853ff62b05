"""Custom exceptions for the FeedbackSpec ingestion core."""


class FeedbackSpecError(Exception):
    """Base exception for the FeedbackSpec ingestion core."""

    pass


class InvalidInputError(FeedbackSpecError, ValueError):
    """Raised when a raw item or classification result violates its contract."""

    pass


class ClassifierFailure(FeedbackSpecError):
    """Raised when the external classifier call fails or returns a malformed result."""

    pass
