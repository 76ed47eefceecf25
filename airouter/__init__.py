"""
ai-router: route text, image, audio and video generation requests across
AI vendors (OpenAI, Google AI, OpenRouter) behind one capability interface.
"""

__version__ = "1.0.0"
