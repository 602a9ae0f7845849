"""
Configuration loader for commitscribe.

The tool expects a JSON configuration file named ``.ollama_config.json``
located in the ``~/.ollama_server/`` directory. The file describes how to
reach the Ollama server and, optionally, how the analyzer batches, retries
and caches model calls::

    {
      "base_url": "http://localhost",
      "port": 11434,
      "model": "llama3",
      "request_timeout": 60,
      "format": "json",
      "analysis": {"call_timeout_ms": 20000, "batch_size": 3}
    }

If the configuration file is missing, malformed, or has keys of the wrong
type, a :class:`ConfigError` is raised.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Tuple


logger = logging.getLogger(__name__)
# Attach a null handler to avoid "No handler" warnings when the root
# logger is not configured.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


CONFIG_FILE_NAME = ".ollama_config.json"

_ANALYSIS_INT_KEYS: Tuple[str, ...] = (
    "call_timeout_ms",
    "max_retries",
    "retry_base_delay_ms",
    "batch_size",
    "batch_delay_ms",
    "max_lines_per_file",
    "max_diff_bytes",
    "cache_size",
)


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""

    pass


def _get_config_directory() -> Path:
    """Return the directory holding the configuration file (``~/.ollama_server``)."""
    return Path.home() / ".ollama_server"


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_analysis(analysis: Any) -> None:
    if not isinstance(analysis, dict):
        raise ConfigError("'analysis' must be an object")
    for key in _ANALYSIS_INT_KEYS:
        if key in analysis and not _is_int(analysis[key]):
            raise ConfigError(f"'analysis.{key}' must be an integer")
    if "cache_ttl_hours" in analysis and not _is_number(analysis["cache_ttl_hours"]):
        raise ConfigError("'analysis.cache_ttl_hours' must be a number")
    patterns = analysis.get("exclude_patterns")
    if patterns is not None and (
        not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns)
    ):
        raise ConfigError("'analysis.exclude_patterns' must be a list of strings")


def load_config() -> Dict[str, Any]:
    """Load and validate the configuration file.

    Returns:
        A dictionary with the validated configuration:
        - base_url (str): The base URL of the Ollama server
        - port (int): The port number
        - model (str): The model name
        - request_timeout (int|float, optional): HTTP timeout in seconds
        - max_tokens (int, optional): Maximum tokens for generation
        - format (str, optional): Output format requested from the server
        - analysis (dict, optional): Analyzer and cache settings

    Raises:
        ConfigError: If the file is missing, malformed, or invalid.
    """
    config_dir = _get_config_directory()
    config_path = config_dir / CONFIG_FILE_NAME

    if not config_path.exists():
        logger.error("Configuration file '%s' does not exist", config_path)
        raise ConfigError(
            f"Missing Ollama configuration file: {config_path}. "
            f"Expected location: {config_dir}"
        )

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to read or parse configuration file: %s", exc)
        raise ConfigError(f"Invalid JSON in {config_path.name}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path.name} must contain a JSON object")

    required_keys = ["base_url", "port", "model"]
    missing = [key for key in required_keys if key not in data]
    if missing:
        logger.error("Configuration file missing required keys: %s", missing)
        raise ConfigError(f"Missing required configuration keys: {', '.join(missing)}")

    if not isinstance(data.get("base_url"), str):
        raise ConfigError("'base_url' must be a string")
    if not _is_int(data.get("port")):
        raise ConfigError("'port' must be an integer")
    if not isinstance(data.get("model"), str):
        raise ConfigError("'model' must be a string")

    if "request_timeout" in data and not _is_number(data["request_timeout"]):
        raise ConfigError("'request_timeout' must be a number")
    if "max_tokens" in data and not _is_int(data["max_tokens"]):
        raise ConfigError("'max_tokens' must be an integer")
    if "format" in data and not isinstance(data["format"], str):
        raise ConfigError("'format' must be a string")
    if "analysis" in data:
        _validate_analysis(data["analysis"])

    logger.debug("Loaded Ollama configuration from: %s", config_path)
    return data
