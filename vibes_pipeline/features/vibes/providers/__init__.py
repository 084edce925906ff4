"""
LLM provider clients for the vibes feature.
"""

from .openrouter_client import OpenRouterClient

__all__ = ["OpenRouterClient"]
