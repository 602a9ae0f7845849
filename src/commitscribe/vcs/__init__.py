"""
Version control integration.

Only Git is supported. :class:`GitClient` supplies the staged diff the
analyzer works on and the working-tree changes listed by the tools.
"""

from .git_client import GitClient, GitError  # noqa: F401
