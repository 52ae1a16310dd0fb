"""
Result Extractor

Turns raw model text into an ExtractionResult.

Small models sometimes wrap the JSON in markdown fences, add
commentary, or emit almost-JSON. Extraction therefore has two paths:

PATH 1 - STRICT:
- Slice from the first "{" to the last "}" after it
- Decode strictly into the schema (wrong types fail)

PATH 2 - REGEX FALLBACK:
- Used when there are no braces or strict decoding fails
- amount: first "$12.50" / "12.50" style number (required)
- merchant, category, transactionType: first quoted "key": "value"

Both paths are pure functions and can be tested on their own;
extract() is the single entry point callers use.
"""

import math
import re
from typing import Optional

import structlog
from pydantic import ValidationError

from puldar.extraction.errors import MalformedJSON, NoStructuredDataFound
from puldar.models.ledger import ExtractionResult, TransactionType


logger = structlog.get_logger(__name__)

DEFAULT_MERCHANT = "Unknown"
DEFAULT_CATEGORY = "other"

_AMOUNT_PATTERN = re.compile(r"\$?\s*(\d+\.?\d*)")


def _quoted_field_pattern(key: str) -> re.Pattern:
    # The opening quote on the key is optional; a preceding word
    # character (e.g. "subcategory") does not count as a match.
    return re.compile(rf'(?<![\w"])"?{key}"\s*:\s*"([^"]+)"')


_MERCHANT_PATTERN = _quoted_field_pattern("merchant")
_CATEGORY_PATTERN = _quoted_field_pattern("category")
_TRANSACTION_TYPE_PATTERN = _quoted_field_pattern("transactionType")


def isolate_json(text: str) -> Optional[str]:
    """
    Return the substring from the first "{" to the last "}" after it.

    None when either brace is missing.
    """
    start = text.find("{")
    if start < 0:
        return None
    end = text.rfind("}")
    if end < start:
        return None
    return text[start:end + 1]


def decode_strict(json_text: str) -> ExtractionResult:
    """
    Decode a JSON object into the model-output schema.

    Raises:
        MalformedJSON: Invalid JSON or a schema mismatch
    """
    try:
        return ExtractionResult.model_validate_json(json_text)
    except ValidationError as e:
        raise MalformedJSON(json_text, f"{e.error_count()} schema errors") from e


def regex_fallback(text: str) -> ExtractionResult:
    """
    Last-resort parser for semi-structured but malformed output.

    Raises:
        NoStructuredDataFound: No finite amount anywhere in the text
    """
    amount_match = _AMOUNT_PATTERN.search(text)
    if amount_match is None:
        raise NoStructuredDataFound(text)
    try:
        amount = float(amount_match.group(1))
    except ValueError as e:
        raise NoStructuredDataFound(text) from e
    if not math.isfinite(amount):
        raise NoStructuredDataFound(text)

    merchant_match = _MERCHANT_PATTERN.search(text)
    merchant = merchant_match.group(1) if merchant_match else DEFAULT_MERCHANT

    category_match = _CATEGORY_PATTERN.search(text)
    category = category_match.group(1) if category_match else DEFAULT_CATEGORY

    transaction_type = None
    type_match = _TRANSACTION_TYPE_PATTERN.search(text)
    if type_match:
        try:
            transaction_type = TransactionType(type_match.group(1).lower())
        except ValueError:
            transaction_type = None

    return ExtractionResult(
        merchant=merchant,
        amount=amount,
        category=category,
        transaction_type=transaction_type,
    )


def extract_with_path(text: str) -> tuple[ExtractionResult, bool]:
    """
    Extract and report which path produced the result.

    Returns:
        (result, used_fallback)
    """
    json_text = isolate_json(text)
    if json_text is not None:
        try:
            return decode_strict(json_text), False
        except MalformedJSON as e:
            logger.debug("strict_decode_failed", reason=e.reason)

    return regex_fallback(text), True


def extract(text: str) -> ExtractionResult:
    """
    Find and decode an expense record in raw model output.

    Raises:
        NoStructuredDataFound: Neither path located an amount
    """
    result, _ = extract_with_path(text)
    return result
