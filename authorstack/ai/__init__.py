"""
AI insights, pricing and forecasting
"""
from .openrouter import OpenRouterClient
from .service import AIService

__all__ = ["OpenRouterClient", "AIService"]
