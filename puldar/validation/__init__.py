"""Entry and allocation validation package."""

from puldar.validation.validator import EntryValidator

__all__ = ["EntryValidator"]
