"""
Client for interacting with an Ollama LLM server.

This client wraps HTTP requests to the Ollama REST API and is the language
model collaborator of :class:`commitscribe.analysis.commit_analyzer.CommitAnalyzer`.
It only returns raw text; parsing and validating that text is the
analyzer's job. HTTP errors raise :class:`LLMError`, and HTTP timeouts
raise the more specific :class:`LLMRequestTimeout`.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests


logger = logging.getLogger(__name__)
# Attach a null handler to avoid "No handler" warnings when the root
# logger is not configured.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class LLMError(Exception):
    """Raised when communication with the LLM server fails."""

    pass


class LLMRequestTimeout(LLMError):
    """Raised when the HTTP request to the LLM server times out."""

    pass


_THINKING_PATTERNS = (
    r"<think>.*?</think>",
    r"<thinking>.*?</thinking>",
    r"<thought>.*?</thought>",
    r"<reasoning>.*?</reasoning>",
)


def strip_thinking_tags(text: str) -> str:
    """Remove reasoning blocks such as ``<think>...</think>`` from model output.

    Examples
    --------
    >>> strip_thinking_tags('<think>reasoning...</think>{"type": "fix"}')
    '{"type": "fix"}'
    """
    result = text
    for pattern in _THINKING_PATTERNS:
        result = re.sub(pattern, "", result, flags=re.DOTALL | re.IGNORECASE)
    return result.strip()


@dataclass
class OllamaClient:
    """Client for interacting with an Ollama server.

    Parameters
    ----------
    base_url : str
        Base URL of the Ollama server, e.g. ``"http://localhost"``.
    port : int
        Port number of the Ollama server, e.g. ``11434``.
    model : str
        Name of the model to use for generation, e.g. ``"llama3"``.
    request_timeout : float, optional
        Timeout in seconds for HTTP requests. Defaults to 60 seconds.
    max_tokens : int, optional
        Maximum number of tokens to generate, passed as ``num_predict``.
    format : str, optional
        Output format hint for the server, usually ``"json"``.
    """

    base_url: str
    port: int
    model: str
    request_timeout: float = 60.0
    max_tokens: Optional[int] = None
    format: Optional[str] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any], max_timeout: Optional[float] = None) -> "OllamaClient":
        """Build a client from a validated configuration mapping.

        ``max_timeout`` caps ``request_timeout`` so that a request abandoned
        by the caller does not outlive the caller's own deadline.
        """
        request_timeout = float(config.get("request_timeout", 60))
        if max_timeout is not None:
            request_timeout = min(request_timeout, max_timeout)
        return cls(
            base_url=config["base_url"],
            port=config["port"],
            model=config["model"],
            request_timeout=request_timeout,
            max_tokens=config.get("max_tokens"),
            format=config.get("format"),
        )

    def _endpoint(self) -> str:
        return f"{self.base_url}:{self.port}/api/generate"

    def generate(self, prompt: str) -> str:
        """Generate a completion from the model.

        Parameters
        ----------
        prompt : str
            The prompt to send to the model.

        Returns
        -------
        str
            The generated response text with reasoning blocks removed.

        Raises
        ------
        LLMRequestTimeout
            If the server does not answer within ``request_timeout``.
        LLMError
            If the request fails or the server returns an error.
        """
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
        }
        if self.format:
            payload["format"] = self.format
        if self.max_tokens is not None:
            payload["options"] = {"num_predict": self.max_tokens}
        url = self._endpoint()
        logger.debug("Sending request to LLM at %s (model %s)", url, self.model)
        try:
            response = requests.post(url, json=payload, timeout=self.request_timeout)
        except requests.Timeout as exc:
            logger.error("LLM request timed out after %ss", self.request_timeout)
            raise LLMRequestTimeout(str(exc)) from exc
        except requests.RequestException as exc:
            logger.error("Failed to connect to LLM: %s", exc)
            raise LLMError(str(exc)) from exc
        if response.status_code != 200:
            logger.error(
                "LLM returned non-200 status %s: %s", response.status_code, response.text
            )
            raise LLMError(f"LLM returned status {response.status_code}: {response.text}")
        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            logger.error("Failed to parse LLM response: %s", exc)
            raise LLMError("Failed to parse LLM response") from exc
        # /api/generate answers in 'response'; /api/chat-style payloads use 'message'.
        if "response" in data:
            return strip_thinking_tags(data.get("response", "").strip())
        if "message" in data and isinstance(data["message"], dict):
            return strip_thinking_tags(data["message"].get("content", "").strip())
        raise LLMError("Unexpected response structure from LLM")
