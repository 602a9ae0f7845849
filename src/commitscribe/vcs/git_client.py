"""
Git client implementation for commitscribe.

This module is the diff source collaborator of the commit analyzer. It
wraps the handful of Git commands the tool needs: reading the staged
diff, listing and diffing working-tree changes, and committing. All
subprocess calls go through :meth:`GitClient._run` so unit tests can mock
a single method.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from commitscribe.errors import SourceControlError


logger = logging.getLogger(__name__)
# Attach a null handler to avoid "No handler" warnings when the root
# logger is not configured.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class GitError(SourceControlError):
    """Raised when a Git command fails."""

    pass


class GitClient:
    """Client for interacting with a Git repository."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = Path(repo_root)

    # ------------------------------------------------------------------
    # Static helpers
    # ------------------------------------------------------------------
    @staticmethod
    def find_repo_root(start: Path) -> Optional[Path]:
        """Find the root of the Git repository containing ``start``.

        Walk upwards until a ``.git`` entry is found or the filesystem
        root is reached.
        """
        current = Path(start).resolve()
        while True:
            if (current / ".git").exists():
                return current
            if current.parent == current:
                return None
            current = current.parent

    # ------------------------------------------------------------------
    # Basic Git commands
    # ------------------------------------------------------------------
    def _run(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a Git command in the repository root.

        Raises
        ------
        GitError
            If Git cannot be started, or exits non-zero when ``check`` is True.
        """
        full_cmd = ["git"] + args
        command = " ".join(full_cmd)
        logger.debug("Executing Git command: %s", command)
        try:
            result = subprocess.run(
                full_cmd,
                cwd=self.repo_root,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            logger.error("Failed to run Git: %s", exc)
            raise GitError(command, str(exc)) from exc

        if check and result.returncode != 0:
            logger.error(
                "Git command failed: %s\nSTDOUT: %s\nSTDERR: %s",
                command,
                result.stdout,
                result.stderr,
            )
            raise GitError(command, result.stderr.strip() or result.stdout.strip())
        return result

    # ------------------------------------------------------------------
    # Diffs
    # ------------------------------------------------------------------
    def get_staged_diff(self) -> str:
        """Return the unified diff of the staged changes (``git diff --cached``)."""
        return self._run(["diff", "--cached"]).stdout

    def get_diff_summary(self) -> List[str]:
        """Return the paths changed in the working tree relative to the index."""
        result = self._run(["diff", "--name-only"])
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def get_diff(self, file_path: str) -> str:
        """Return the working-tree diff of a single file."""
        return self._run(["diff", "--", file_path]).stdout

    # ------------------------------------------------------------------
    # Committing
    # ------------------------------------------------------------------
    def commit(self, message: str) -> None:
        """Commit the staged changes with ``message``.

        Multi-line messages are passed through unchanged.
        """
        self._run(["commit", "-m", message])
