"""
Model Client Port

DESIGN DECISION: The language model is a TRANSLATOR, not an ORACLE.
It turns an utterance into one JSON object; everything after that
(decoding, category resolution, budget math) is deterministic code.

The port is a single async call so tests can substitute a fake that
returns canned text.
"""

from abc import ABC, abstractmethod


class ModelError(Exception):
    """Base exception for model client failures."""

    def __init__(self, message: str, service: str = "model"):
        self.service = service
        super().__init__(message)


class ModelClient(ABC):
    """Produces raw text for a system prompt plus user utterance."""

    @property
    def model_name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def complete(self, system_prompt: str, user_input: str) -> str:
        """
        Run one completion.

        Args:
            system_prompt: Instructions including the allowed labels
            user_input: The raw utterance

        Returns:
            The model's raw text, unparsed

        Raises:
            ModelError: If the call fails after retries
        """
        pass
