"""
Top-level package for commitscribe.

commitscribe reads the staged diff of a Git repository, asks a language
model for a Conventional Commit message and writes a Markdown review. The
command line entry point lives in :mod:`commitscribe.cli`.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
