from .adapter import OpenAIChatProvider

__all__ = ["OpenAIChatProvider"]
