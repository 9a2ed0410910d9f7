"""Model capability providers."""

from .base import ModelProvider, ProviderError
from .errors import ErrorMapper

__all__ = ["ModelProvider", "ProviderError", "ErrorMapper"]
