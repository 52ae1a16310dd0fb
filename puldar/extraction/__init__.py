"""Model-output extraction package."""

from puldar.extraction.cache import DEFAULT_MAX_ENTRIES, ParseCache, make_key
from puldar.extraction.errors import (
    ExtractionError,
    MalformedJSON,
    ModelInvocationError,
    NoStructuredDataFound,
)
from puldar.extraction.extractor import (
    decode_strict,
    extract,
    extract_with_path,
    isolate_json,
    regex_fallback,
)
from puldar.extraction.prompt import build_system_prompt
from puldar.extraction.signals import (
    CREDIT_SIGNALS,
    INCOME_SIGNALS,
    has_credit_signal,
    is_income,
    signed_amount,
)

__all__ = [
    "CREDIT_SIGNALS",
    "DEFAULT_MAX_ENTRIES",
    "INCOME_SIGNALS",
    "ExtractionError",
    "MalformedJSON",
    "ModelInvocationError",
    "NoStructuredDataFound",
    "ParseCache",
    "build_system_prompt",
    "decode_strict",
    "extract",
    "extract_with_path",
    "has_credit_signal",
    "is_income",
    "isolate_json",
    "make_key",
    "regex_fallback",
    "signed_amount",
]
