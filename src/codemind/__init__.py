"""Caching GitHub proxy and Gemini gateway for repository analysis."""

__version__ = "0.1.0"
