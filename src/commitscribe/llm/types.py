"""
Data types shared by the prompt templates, the cache and the analyzer.

Conventional Commit categories are modelled as :class:`ChangeType`.
Analyses are plain dataclasses; :class:`ModelResponse` is a pydantic model
because it is built from untrusted model output and must be validated on
receipt (see :func:`parse_model_response`).
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from commitscribe.errors import InvalidResponseError


class ChangeType(str, Enum):
    """Conventional Commit types the model may choose from."""

    FEAT = "feat"
    FIX = "fix"
    REFACTOR = "refactor"
    DOCS = "docs"
    TEST = "test"
    CHORE = "chore"
    STYLE = "style"
    PERF = "perf"


CHANGE_TYPE_VALUES = tuple(member.value for member in ChangeType)


@dataclass
class ChangeCategory:
    """A categorised change: type, optional scope and description."""

    type: ChangeType
    scope: Optional[str]
    description: str

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value, "description": self.description}
        if self.scope:
            data["scope"] = self.scope
        return data


@dataclass
class CommitAnalysis:
    """Consolidated analysis of all files in a commit.

    Attributes
    ----------
    files : List[str]
        Changed file paths, in diff order.
    summary : str
        Short summary of the change; may be empty.
    impacted_areas : List[str]
        De-duplicated, non-empty scopes touched by the change.
    change_types : List[ChangeCategory]
        Categories, at most one per ``(type, scope)`` pair.
    breaking_changes : bool
        True if any file analysis was flagged as breaking.
    """

    files: List[str] = field(default_factory=list)
    summary: str = ""
    impacted_areas: List[str] = field(default_factory=list)
    change_types: List[ChangeCategory] = field(default_factory=list)
    breaking_changes: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Return the camelCase JSON shape used in prompts."""
        return {
            "files": list(self.files),
            "summary": self.summary,
            "impactedAreas": list(self.impacted_areas),
            "changeTypes": [category.to_dict() for category in self.change_types],
            "breakingChanges": self.breaking_changes,
        }


@dataclass
class FileAnalysis:
    """The model's categorisation of a single file."""

    file: str
    type: ChangeType
    scope: Optional[str]
    description: str
    breaking: bool = False


@dataclass
class AnalysisResult:
    """Final commit message together with the analysis it was built from.

    ``review`` holds the model's file-by-file review when one was
    requested and could be generated.
    """

    message: str
    analysis: CommitAnalysis
    review: Optional[str] = None


class ModelResponse(BaseModel):
    """Validated model output for a commit categorisation request."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    commit_message: str = Field(alias="commitMessage", min_length=1)
    type: ChangeType
    scope: Optional[str] = None
    breaking: bool = False
    details: Optional[str] = None


_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def parse_model_response(raw: str) -> ModelResponse:
    """Parse and validate raw model text.

    A surrounding Markdown code fence is tolerated since many models wrap
    JSON output in one.

    Raises
    ------
    InvalidResponseError
        If the text is not JSON, not an object, misses ``type`` or
        ``commitMessage``, or names a type outside :class:`ChangeType`.
    """
    text = (raw or "").strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidResponseError("Invalid JSON response from LLM") from exc
    if not isinstance(data, dict):
        raise InvalidResponseError("Response must be an object")
    if not data.get("type") or not data.get("commitMessage"):
        raise InvalidResponseError("Missing required fields: type or commitMessage")
    if data["type"] not in CHANGE_TYPE_VALUES:
        raise InvalidResponseError(f"Invalid change type: {data['type']}")
    try:
        return ModelResponse.model_validate(data)
    except ValidationError as exc:
        raise InvalidResponseError(str(exc)) from exc


_MARKDOWN_FENCE_RE = re.compile(r"^```(?:markdown|md)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def parse_review_text(raw: str) -> str:
    """Return the Markdown review in raw model text.

    Raises
    ------
    InvalidResponseError
        If the model returned nothing usable.
    """
    text = (raw or "").strip()
    fenced = _MARKDOWN_FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1).strip()
    if not text:
        raise InvalidResponseError("Empty review from LLM")
    return text
