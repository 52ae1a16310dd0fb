"""
Utterance Signals

Deterministic keyword checks over the ORIGINAL user text (not the model
output). They decide:
1. Whether an amount is a credit (reduces spend) or an expense
2. Whether the utterance is income (routes to the income pseudo-category)

The two checks are independent: "got paid 500" is both a credit and
income; "refund from target" is only a credit.
"""

import math
from typing import Optional

from puldar.models.ledger import TransactionType


CREDIT_SIGNALS = (
    "gave me",
    "gift",
    "refund",
    "reimburs",
    "cashback",
    "cash back",
    "found",
    "increase",
    "add ",
    "added ",
    "credit",
    "deposit",
    "income",
    "paid me",
    "sent me",
    "received",
    "got paid",
)

INCOME_SIGNALS = (
    "salary",
    "paycheck",
    "pay check",
    "got paid",
    "paid me",
    "direct deposit",
    "payroll",
    "wages",
    "bonus",
    "freelance",
    "invoice",
    "client paid",
    "income",
)


def has_credit_signal(utterance: str) -> bool:
    lowered = utterance.lower()
    return any(signal in lowered for signal in CREDIT_SIGNALS)


def is_income(utterance: str) -> bool:
    """True when the utterance describes earned income."""
    lowered = utterance.lower()
    return any(signal in lowered for signal in INCOME_SIGNALS)


def signed_amount(
    amount: float,
    transaction_type: Optional[TransactionType],
    utterance: str,
) -> float:
    """
    Apply the ledger sign convention.

    The magnitude is always abs(amount). The result is negative (a
    credit) when the model returned a negative amount, the model said
    "credit", or the utterance contains a credit signal.
    """
    if not math.isfinite(amount):
        return 0.0

    magnitude = abs(amount)
    is_credit = (
        amount < 0
        or transaction_type is TransactionType.CREDIT
        or has_credit_signal(utterance)
    )
    return -magnitude if is_credit else magnitude
