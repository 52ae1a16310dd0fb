"""Language model client package."""

from puldar.services.model.gemini import GeminiModelClient
from puldar.services.model.interface import ModelClient, ModelError

__all__ = [
    "GeminiModelClient",
    "ModelClient",
    "ModelError",
]
