"""
PULDAR - Ledger Core

Natural-language expense capture and 50/30/20 budgeting.

DESIGN PRINCIPLES:
1. The model translates, deterministic code decides
2. Fail early, fail visibly (but never lose the user's input)
3. No silent corrections to stored data
4. Every step must be auditable
5. Storage and model are swappable ports
"""

__version__ = "1.0.0"
__author__ = "PULDAR Team"
