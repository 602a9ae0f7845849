"""
Response caching for commitscribe.

See :mod:`commitscribe.cache.commit_cache`.
"""

from .commit_cache import CacheEntry, CommitCache, commit_cache  # noqa: F401
