"""
Unified diff parsing and sanitisation.

:func:`parse_diff` splits ``git diff`` output into one :class:`ParsedDiff`
per file, keeping only added and removed lines. Every captured line is
passed through :func:`sanitize_line`, which redacts long tokens, password
values and e-mail addresses before anything is sent to a language model.

The redaction is a best-effort heuristic. It is not a secret scanner and
the absence of ``[REDACTED]`` markers says nothing about whether a diff is
free of credentials.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import PurePosixPath
from typing import List, Optional, Sequence, Tuple

from commitscribe.errors import InputValidationError


logger = logging.getLogger(__name__)
# Attach a null handler to avoid "No handler" warnings when the root
# logger is not configured.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


CHANGE_ADDED = "added"
CHANGE_MODIFIED = "modified"
CHANGE_DELETED = "deleted"

DIFF_FILE_MARKER = "diff --git"
DEFAULT_MAX_LINES_PER_FILE = 50
DEFAULT_MAX_DIFF_BYTES = 1024 * 1024
DEFAULT_EXCLUDE_PATTERNS: Tuple[str, ...] = ("package-lock.json", "yarn.lock", "*.log")

_FILE_PATH_RE = re.compile(r"a/(.+) b/")
# Order matters: the password rule must not see tokens the first rule
# already replaced, and e-mail redaction runs last.
_SANITIZERS: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"(['\"])?[a-zA-Z0-9]{32,}(['\"])?"), "[REDACTED]"),
    (re.compile(r"(password['\"]?\s*[:=]\s*['\"]?)[^'\")\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"), "[EMAIL]"),
)


class DiffValidationError(InputValidationError):
    """Raised when diff input is not text or exceeds the size limit."""


@dataclass(frozen=True)
class ParsedDiff:
    """Added and removed lines of a single file in a diff.

    Attributes
    ----------
    file_path : str
        Path of the file relative to the repository root.
    additions : Tuple[str, ...]
        Sanitised added lines, without the leading ``+``.
    deletions : Tuple[str, ...]
        Sanitised removed lines, without the leading ``-``.
    change_type : str
        ``"added"``, ``"modified"`` or ``"deleted"``; see
        :func:`determine_change_type`.
    """

    file_path: str
    additions: Tuple[str, ...]
    deletions: Tuple[str, ...]
    change_type: str


@dataclass
class DiffParseOptions:
    """Options for :func:`parse_diff`.

    ``include_context`` is accepted for compatibility with callers that
    set it; context lines are never captured.
    """

    max_lines_per_file: int = DEFAULT_MAX_LINES_PER_FILE
    include_context: bool = True
    exclude_patterns: Sequence[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    max_diff_bytes: int = DEFAULT_MAX_DIFF_BYTES


def determine_change_type(additions_count: int, deletions_count: int) -> str:
    """Return the change type implied by the number of added and removed lines."""
    if additions_count > 0 and deletions_count == 0:
        return CHANGE_ADDED
    if additions_count == 0 and deletions_count > 0:
        return CHANGE_DELETED
    return CHANGE_MODIFIED


def sanitize_line(line: str) -> str:
    """Redact likely secrets and e-mail addresses from a diff line."""
    for pattern, replacement in _SANITIZERS:
        line = pattern.sub(replacement, line)
    return line.strip()


def should_exclude_file(file_path: str, patterns: Sequence[str]) -> bool:
    """Return True if ``file_path`` or its file name matches any glob in ``patterns``."""
    name = PurePosixPath(file_path).name
    return any(fnmatch(file_path, pattern) or fnmatch(name, pattern) for pattern in patterns)


def _parse_chunk(lines: Sequence[str], max_lines: int) -> Tuple[List[str], List[str]]:
    additions: List[str] = []
    deletions: List[str] = []
    for line in lines:
        if line.startswith("+") and not line.startswith("++"):
            if len(additions) < max_lines:
                additions.append(sanitize_line(line[1:]))
        elif line.startswith("-") and not line.startswith("--"):
            if len(deletions) < max_lines:
                deletions.append(sanitize_line(line[1:]))
    return additions, deletions


def parse_diff(diff_text: str, options: Optional[DiffParseOptions] = None) -> List[ParsedDiff]:
    """Parse unified diff text into per-file change records.

    Parameters
    ----------
    diff_text : str
        Raw output of ``git diff``. May be empty.
    options : DiffParseOptions, optional
        Parsing options. Defaults are used when omitted.

    Returns
    -------
    List[ParsedDiff]
        One record per file block that has a path and is not excluded,
        in the order the blocks appear.

    Raises
    ------
    DiffValidationError
        If ``diff_text`` is not a string or is larger than
        ``options.max_diff_bytes``.
    """
    opts = options or DiffParseOptions()
    if not isinstance(diff_text, str):
        raise DiffValidationError(
            f"Diff must be a string, got {type(diff_text).__name__}"
        )
    size = len(diff_text.encode("utf-8"))
    if size > opts.max_diff_bytes:
        raise DiffValidationError(
            f"Diff is {size} bytes, larger than the {opts.max_diff_bytes} byte limit"
        )

    parsed: List[ParsedDiff] = []
    for chunk in diff_text.split(DIFF_FILE_MARKER):
        if not chunk.strip():
            continue
        lines = chunk.split("\n")
        match = _FILE_PATH_RE.search(lines[0])
        file_path = match.group(1) if match else ""
        if not file_path:
            continue
        if should_exclude_file(file_path, opts.exclude_patterns):
            logger.debug("Skipping excluded file %s", file_path)
            continue
        additions, deletions = _parse_chunk(lines, opts.max_lines_per_file)
        parsed.append(
            ParsedDiff(
                file_path=file_path,
                additions=tuple(additions),
                deletions=tuple(deletions),
                change_type=determine_change_type(len(additions), len(deletions)),
            )
        )
    logger.debug("Parsed %d file(s) from diff", len(parsed))
    return parsed
