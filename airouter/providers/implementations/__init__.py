"""
Vendor adapter implementations

Exports:
    - OpenAIProvider: OpenAI chat, images and speech
    - GoogleProvider: Gemini text, Imagen images and Veo video
    - OpenRouterProvider: OpenRouter chat-completions text and images
"""

from airouter.providers.implementations.google import GoogleProvider
from airouter.providers.implementations.openai import OpenAIProvider
from airouter.providers.implementations.openrouter import OpenRouterProvider

__all__ = [
    "OpenAIProvider",
    "GoogleProvider",
    "OpenRouterProvider",
]
