"""AI client, prompts, tools and the editing loop."""

from .client import AIClient, ApproxByteCounter, ClientSettings, TiktokenCounter

__all__ = ["AIClient", "ClientSettings", "ApproxByteCounter", "TiktokenCounter"]
