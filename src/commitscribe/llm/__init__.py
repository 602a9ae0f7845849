"""
Language model integration for commitscribe.

This package contains the :class:`OllamaClient` used to talk to an Ollama
server, the prompt templates and the data types exchanged with the model.
"""

from .ollama_client import LLMError, LLMRequestTimeout, OllamaClient  # noqa: F401
from .types import ChangeCategory, ChangeType, CommitAnalysis, ModelResponse  # noqa: F401
