"""
Writing code reviews to disk.

:func:`write_review` refuses any path containing a ``..`` segment before
touching the filesystem. :func:`render_review` turns an analysis result
into the Markdown the CLI saves next to the commit message.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePath
from typing import List, Union

from commitscribe.errors import InputValidationError
from commitscribe.llm.types import AnalysisResult


logger = logging.getLogger(__name__)
# Attach a null handler to avoid "No handler" warnings when the root
# logger is not configured.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class ReviewPathError(InputValidationError):
    """Raised when a review path is empty or escapes via ``..``."""


def validate_review_path(file_path: Union[str, Path]) -> Path:
    """Return ``file_path`` as a :class:`Path` after rejecting traversal."""
    if not str(file_path).strip():
        raise ReviewPathError("Invalid file path: path must not be empty")
    # Split on both separators so "a\\..\\b" is caught on POSIX too.
    segments = str(file_path).replace("\\", "/").split("/")
    if ".." in segments or ".." in PurePath(file_path).parts:
        raise ReviewPathError("Invalid file path: directory traversal not allowed")
    return Path(file_path)


def write_review(file_path: Union[str, Path], content: str) -> str:
    """Write ``content`` to ``file_path`` as UTF-8 and return a confirmation.

    Raises
    ------
    ReviewPathError
        If the path is empty or contains a ``..`` segment.
    InputValidationError
        If ``content`` is empty.
    OSError
        If the file cannot be written.
    """
    path = validate_review_path(file_path)
    if not content:
        raise InputValidationError("Review content must not be empty")
    path.write_text(content, encoding="utf-8")
    logger.info("Review written to %s", path)
    return f"Review written to {path}"


def render_review(result: AnalysisResult) -> str:
    """Render an analysis result as a Markdown review.

    The model's file-by-file review comes right after the suggested
    message when the result carries one; the analysis summary follows.
    """
    analysis = result.analysis
    lines: List[str] = ["# Code Review", "", "## Suggested commit message", "", "```", result.message, "```", ""]
    if result.review:
        lines += ["## File review", "", result.review, ""]
    if analysis.summary:
        lines += ["## Summary", "", analysis.summary, ""]
    lines += ["## Files", ""]
    lines += [f"- `{file}`" for file in analysis.files] or ["_No files changed._"]
    lines.append("")
    if analysis.change_types:
        lines += ["## Changes", ""]
        for category in analysis.change_types:
            scope = f"({category.scope})" if category.scope else ""
            lines.append(f"- **{category.type.value}{scope}**: {category.description}")
        lines.append("")
    if analysis.impacted_areas:
        lines += ["## Impacted areas", "", ", ".join(analysis.impacted_areas), ""]
    lines.append(f"**Breaking changes:** {'yes' if analysis.breaking_changes else 'no'}")
    return "\n".join(lines) + "\n"
