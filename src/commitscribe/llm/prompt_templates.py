"""
Prompt templates for commit message generation.

All functions here are pure: they only format strings. The prompts ask the
model for a JSON object matching :class:`commitscribe.llm.types.ModelResponse`.
"""

from __future__ import annotations

import json
import re
from textwrap import dedent
from typing import Sequence

from commitscribe.diff.diff_parser import ParsedDiff
from commitscribe.llm.types import ChangeType, CommitAnalysis


CACHE_KEY_PREVIEW_CHARS = 100

RESPONSE_SHAPE = dedent(
    """
    {
      "type": "feat|fix|refactor|docs|test|chore|style|perf",
      "scope": "optional area affected",
      "commitMessage": "full commit message",
      "breaking": boolean,
      "details": "optional detailed explanation"
    }
    """
).strip()

COMMIT_ANALYSIS_PROMPT = dedent(
    """
    Analyze the following git changes and generate a conventional commit message.
    Focus on the main purpose of the changes and categorize them appropriately.

    Changes:
    {diff}

    Modified files:
    {files}

    Generate a commit message following these rules:
    1. Use conventional commit format: type(scope): description
    2. Keep the first line under 72 characters
    3. Use present tense ("add" not "added")
    4. Be descriptive but concise
    5. Include scope if changes are isolated to specific area
    6. Mark breaking changes with BREAKING CHANGE: prefix

    Response must be valid JSON matching this structure:
    {shape}
    """
).strip()

MULTI_CHANGE_PROMPT = dedent(
    """
    Analyze multiple changes and generate a commit message that covers all changes:

    {changes}

    Group related changes and generate a commit message that:
    1. Uses the most significant change type
    2. Lists other changes in the body
    3. Separates different changes with blank lines
    4. Marks any breaking changes

    Response must be valid JSON matching this structure:
    {shape}
    """
).strip()

CODE_REVIEW_PROMPT = dedent(
    """
    You are an experienced reviewer. Review the following git changes file by file.

    Proposed commit message:
    {message}

    Changes:
    {diff}

    For each file write a Markdown section that:
    1. Starts with a "### <file path>" heading
    2. Summarises what changed in one or two sentences
    3. Lists concrete suggestions as bullet points (bugs, naming, tests, readability)
    4. Says "No suggestions." when the change looks fine

    Answer with the Markdown sections only, without any preamble.
    """
).strip()


def format_diff_for_prompt(diffs: Sequence[ParsedDiff]) -> str:
    """Render parsed diffs as ``File``/``Type``/``Additions``/``Deletions`` blocks."""
    blocks = []
    for diff in diffs:
        parts = [f"File: {diff.file_path}", f"Type: {diff.change_type}"]
        if diff.additions:
            parts.append("\nAdditions:\n" + "\n".join(diff.additions))
        if diff.deletions:
            parts.append("\nDeletions:\n" + "\n".join(diff.deletions))
        blocks.append("\n".join(parts))
    return "\n\n".join(blocks)


def single_change_prompt(diff: ParsedDiff) -> str:
    """Build the categorisation prompt for one file."""
    # str.replace rather than str.format: diff lines routinely contain braces.
    return (
        COMMIT_ANALYSIS_PROMPT.replace("{shape}", RESPONSE_SHAPE)
        .replace("{files}", diff.file_path)
        .replace("{diff}", format_diff_for_prompt([diff]))
    )


def multi_change_prompt(analysis: CommitAnalysis) -> str:
    """Build the prompt that merges per-file analyses into one message."""
    changes = json.dumps(analysis.to_dict(), indent=2)
    return MULTI_CHANGE_PROMPT.replace("{shape}", RESPONSE_SHAPE).replace("{changes}", changes)


def code_review_prompt(diffs: Sequence[ParsedDiff], message: str) -> str:
    """Build the prompt asking for a file-by-file review of ``diffs``."""
    return CODE_REVIEW_PROMPT.replace("{message}", message).replace(
        "{diff}", format_diff_for_prompt(diffs)
    )


def fallback_message(files: Sequence[str], type: str = ChangeType.CHORE.value) -> str:
    """Deterministic commit message used when the model cannot be used."""
    return f"{type}: update {', '.join(files)}"


def diff_fingerprint_text(diffs: Sequence[ParsedDiff]) -> str:
    """Join the captured lines of all diffs into the text used for cache keys."""
    return "\n".join(
        "\n".join(diff.additions) + "\n" + "\n".join(diff.deletions) for diff in diffs
    )


def cache_key(files: Sequence[str], diff_text: str) -> str:
    """Derive a cache key from the file set and the start of the diff.

    File order does not matter. Only the first
    :data:`CACHE_KEY_PREVIEW_CHARS` characters of the diff are used, with
    whitespace runs collapsed, so distinct diffs can share a key.
    """
    file_part = "|".join(sorted(files))
    preview = re.sub(r"\s+", " ", diff_text[:CACHE_KEY_PREVIEW_CHARS])
    return f"{file_part}:{preview}"
