"""
Heuristics for classifying file changes into Conventional Commit types.

Used when the language model cannot be used: the analyzer still needs a
type for its fallback message. The rules are deterministic so they can be
unit tested without a model, and they only ever return one of the
:class:`~commitscribe.llm.types.ChangeType` values.
"""

from __future__ import annotations

import re
from collections import Counter
from pathlib import PurePosixPath
from typing import Sequence

from commitscribe.diff.diff_parser import ParsedDiff
from commitscribe.llm.types import ChangeType


DOC_EXTENSIONS = {".md", ".rst", ".txt", ".adoc"}

_FIX_RE = re.compile(r"\b(fix(e[ds])?|bug|error|issue|patch|hotfix)\b", re.IGNORECASE)
_REFACTOR_RE = re.compile(r"\brefactor\b", re.IGNORECASE)
_PERF_RE = re.compile(r"\bperf(ormance)?\b", re.IGNORECASE)
_FEAT_RE = re.compile(r"\bfeat(ure)?\b", re.IGNORECASE)
_STRUCTURE_RE = re.compile(r"\b(class|def|function|interface)\b", re.IGNORECASE)


def _is_whitespace_only(diff: str) -> bool:
    changed = [
        line for line in diff.splitlines()
        if line.startswith(("+", "-")) and not line.startswith(("++", "--"))
    ]
    if not changed:
        return False
    minus = "".join(re.sub(r"\s", "", line[1:]) for line in changed if line.startswith("-"))
    plus = "".join(re.sub(r"\s", "", line[1:]) for line in changed if line.startswith("+"))
    if any(line.startswith("-") for line in changed) and any(line.startswith("+") for line in changed):
        if minus == plus:
            return True
    # blank lines added or removed
    return not minus and not plus


def classify_change(file_path: str, diff: str) -> str:
    """Classify a change into a Conventional Commit type.

    Parameters
    ----------
    file_path : str
        Path to the changed file relative to the repository root.
    diff : str
        Unified diff lines of the file (``+``/``-`` prefixed).

    Returns
    -------
    str
        One of ``feat``, ``fix``, ``refactor``, ``docs``, ``test``,
        ``chore``, ``style`` or ``perf``. ``chore`` when nothing matches.
    """
    path = PurePosixPath(file_path)
    if path.suffix.lower() in DOC_EXTENSIONS:
        return ChangeType.DOCS.value
    if (
        path.name.startswith("test_")
        or path.stem.endswith(("_test", ".test", ".spec"))
        or "tests" in path.parts
        or "__tests__" in path.parts
    ):
        return ChangeType.TEST.value
    if _is_whitespace_only(diff):
        return ChangeType.STYLE.value
    if _FIX_RE.search(diff):
        return ChangeType.FIX.value
    if _REFACTOR_RE.search(diff):
        return ChangeType.REFACTOR.value
    if _PERF_RE.search(diff):
        return ChangeType.PERF.value
    if _FEAT_RE.search(diff):
        return ChangeType.FEAT.value
    if _STRUCTURE_RE.search(diff) and "\n+" in "\n" + diff:
        return ChangeType.FEAT.value
    return ChangeType.CHORE.value


def diff_lines(diff: ParsedDiff) -> str:
    """Rebuild ``+``/``-`` prefixed lines from a parsed diff."""
    lines = [f"-{line}" for line in diff.deletions] + [f"+{line}" for line in diff.additions]
    return "\n".join(lines)


def infer_change_type(diffs: Sequence[ParsedDiff]) -> str:
    """Return the most common classification across ``diffs``.

    Ties go to the type seen first. ``chore`` when ``diffs`` is empty.
    """
    counts = Counter(classify_change(diff.file_path, diff_lines(diff)) for diff in diffs)
    if not counts:
        return ChangeType.CHORE.value
    return counts.most_common(1)[0][0]
