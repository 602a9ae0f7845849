"""
Configuration loading for commitscribe.

See :mod:`commitscribe.config.loader` for the file format.
"""

from .loader import ConfigError, load_config  # noqa: F401
