"""Extraction errors."""


class ExtractionError(Exception):
    """Base exception for extraction errors."""
    pass


class NoStructuredDataFound(ExtractionError):
    """
    Neither strict JSON nor the regex fallback found an amount.

    Fatal for this attempt; the caller should ask the user to retry.
    Nothing is cached.
    """

    def __init__(self, raw_text: str):
        self.raw_text = raw_text
        super().__init__(
            f"Couldn't understand that input. Raw: {self.preview}"
        )

    @property
    def preview(self) -> str:
        return self.raw_text[:120]


class MalformedJSON(ExtractionError):
    """
    Braces were found but did not decode to the schema.

    Internal: recovered by the regex fallback before reaching callers.
    """

    def __init__(self, json_text: str, reason: str):
        self.json_text = json_text
        self.reason = reason
        super().__init__(f"Failed to parse expense data: {reason}")


class ModelInvocationError(ExtractionError):
    """The model call failed or returned nothing usable."""

    def __init__(self, message: str, service: str = "model"):
        self.service = service
        super().__init__(message)
