"""
Externally invocable tools.

Each :class:`Tool` pairs a pydantic input model with a handler. Input is
validated before the handler runs, so an invalid request never reaches
Git, the model or the filesystem. Every failure surfaces as a
:class:`ToolError` with a descriptive message; the original exception is
chained as its cause.

The default toolset built by :func:`build_toolset` mirrors the commands of
the CLI:

``get_file_changes_in_directory``
    ``{"rootDir": str}`` → ``[{"file": str, "diff": str}, ...]``
``generate_commit_message``
    ``{"rootDir": str}`` → commit message
``write_review_to_markdown``
    ``{"filePath": str, "reviewContent": str}`` → confirmation text
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from commitscribe.analysis.commit_analyzer import CommitAnalyzer
from commitscribe.diff.diff_parser import DEFAULT_EXCLUDE_PATTERNS, should_exclude_file
from commitscribe.tools.review_writer import validate_review_path, write_review
from commitscribe.vcs.git_client import GitClient


logger = logging.getLogger(__name__)
# Attach a null handler to avoid "No handler" warnings when the root
# logger is not configured.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


EXCLUDED_FILES = ("dist/*", "bun.lock") + DEFAULT_EXCLUDE_PATTERNS


class ToolError(Exception):
    """Raised when a tool rejects its input or fails to run."""

    pass


class FileChangesInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    root_dir: str = Field(alias="rootDir", min_length=1, description="The root directory")


class CommitInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    root_dir: str = Field(
        alias="rootDir", min_length=1, description="The root directory with staged changes"
    )


class ReviewInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(alias="filePath", min_length=1, description="Path to save the review markdown")
    review_content: str = Field(alias="reviewContent", min_length=1, description="Content of the code review")

    @field_validator("file_path")
    @classmethod
    def _reject_traversal(cls, value: str) -> str:
        validate_review_path(value)
        return value


@dataclass
class Tool:
    """A named operation with a validated input model."""

    name: str
    description: str
    input_model: Type[BaseModel]
    handler: Callable[[Any], Any]
    failure_message: str

    def input_schema(self) -> Dict[str, Any]:
        """Return the JSON schema of the tool's input."""
        return self.input_model.model_json_schema(by_alias=True)

    def execute(self, payload: Mapping[str, Any]) -> Any:
        """Validate ``payload`` and run the tool.

        Raises
        ------
        ToolError
            If validation fails or the handler raises.
        """
        try:
            params = self.input_model.model_validate(payload)
        except ValidationError as exc:
            raise ToolError(f"Invalid input for {self.name}: {exc}") from exc
        try:
            return self.handler(params)
        except ToolError:
            raise
        except Exception as exc:
            logger.debug("Tool %s failed: %s", self.name, exc)
            raise ToolError(f"{self.failure_message}: {exc}") from exc


class ToolRegistry:
    """Name to :class:`Tool` mapping."""

    def __init__(self) -> None:
        self._tools: Dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def names(self) -> List[str]:
        return list(self._tools)

    def get(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolError(f"Unknown tool: {name}") from None

    def schemas(self) -> Dict[str, Dict[str, Any]]:
        """Describe every tool as ``{"description": ..., "inputSchema": ...}``."""
        return {
            name: {"description": tool.description, "inputSchema": tool.input_schema()}
            for name, tool in self._tools.items()
        }

    def invoke(self, name: str, payload: Mapping[str, Any]) -> Any:
        return self.get(name).execute(payload)


def get_file_changes_in_directory(
    root_dir: str, vcs_client_factory: Callable[[Path], Any] = GitClient
) -> List[Dict[str, str]]:
    """Return the working-tree diff of every changed, non-excluded file."""
    client = vcs_client_factory(Path(root_dir))
    changes: List[Dict[str, str]] = []
    for file_path in client.get_diff_summary():
        if should_exclude_file(file_path, EXCLUDED_FILES):
            continue
        changes.append({"file": file_path, "diff": client.get_diff(file_path)})
    return changes


def build_toolset(
    analyzer: CommitAnalyzer, vcs_client_factory: Callable[[Path], Any] = GitClient
) -> ToolRegistry:
    """Create the registry of the three standard tools."""
    registry = ToolRegistry()
    registry.register(
        Tool(
            name="get_file_changes_in_directory",
            description="Gets the code changes made in given directory",
            input_model=FileChangesInput,
            handler=lambda params: get_file_changes_in_directory(params.root_dir, vcs_client_factory),
            failure_message="Failed to get file changes",
        )
    )
    registry.register(
        Tool(
            name="generate_commit_message",
            description="Generates a commit message suggestion from staged changes",
            input_model=CommitInput,
            handler=lambda params: asyncio.run(analyzer.analyze(params.root_dir)).message,
            failure_message="Failed to generate commit message",
        )
    )
    registry.register(
        Tool(
            name="write_review_to_markdown",
            description="Writes the code review to a markdown file",
            input_model=ReviewInput,
            handler=lambda params: write_review(params.file_path, params.review_content),
            failure_message="Failed to write review file",
        )
    )
    return registry
