"""
Adapters for model-serving backends.

Protocol defines WHAT, implementations define HOW.
"""

from .base import HostAdapter
from .ollama import OllamaAdapter
from .schema import ChatTask

__all__ = ["HostAdapter", "OllamaAdapter", "ChatTask"]
