"""
Command line interface for commitscribe.

The ``commitscribe`` command groups three operations:

``changes``
    print the working-tree changes of a repository as JSON;
``message``
    generate a commit message for the staged changes, optionally write a
    Markdown review and commit;
``write-review``
    write text to a review file.

Exit codes are defined below and shared by all commands.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Optional

import click

from commitscribe import __version__
from commitscribe.analysis.commit_analyzer import AnalyzerSettings, AnalyzerState, CommitAnalyzer
from commitscribe.cache.commit_cache import CommitCache
from commitscribe.config.loader import ConfigError, load_config
from commitscribe.errors import InputValidationError, SourceControlError
from commitscribe.llm.ollama_client import LLMError, OllamaClient
from commitscribe.tools.registry import get_file_changes_in_directory
from commitscribe.tools.review_writer import render_review, write_review
from commitscribe.vcs.git_client import GitClient


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS = 0
EXIT_GENERIC_ERROR = 1
EXIT_INVALID_USAGE = 2
EXIT_NO_REPO = 3
EXIT_NO_CHANGES = 4
EXIT_CONFIG_ERROR = 5
EXIT_VCS_FAILURE = 6
EXIT_LLM_FAILURE = 7


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------

class ProgressIndicator:
    """Print a one-line progress message and how long the step took."""

    def __init__(self, message: str) -> None:
        self.message = message
        self.start_time = 0.0

    def __enter__(self) -> "ProgressIndicator":
        self.start_time = time.time()
        click.echo(f"⠋ {self.message}...", nl=False, err=True)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        elapsed = time.time() - self.start_time
        mark = "✗" if exc_type else "✓"
        click.echo(f"\r{mark} {self.message} (took {elapsed:.1f}s)", err=True)
        return False


def print_info(message: str, indent: int = 0) -> None:
    click.echo(f"{'  ' * indent}ℹ {message}", err=True)


def print_success(message: str, indent: int = 0) -> None:
    click.echo(f"{'  ' * indent}✓ {message}", err=True)


def print_warning(message: str, indent: int = 0) -> None:
    click.echo(f"{'  ' * indent}⚠ {message}", err=True)


def print_error(message: str, indent: int = 0) -> None:
    click.echo(f"{'  ' * indent}✗ {message}", err=True)


def _resolve_repo_root(root: str) -> Path:
    repo_root = GitClient.find_repo_root(Path(root))
    if repo_root is None:
        print_error(f"No Git repository found at or above: {root}")
        raise click.exceptions.Exit(EXIT_NO_REPO)
    return repo_root


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@click.group()
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@click.version_option(version=__version__, prog_name="commitscribe")
def main(verbose: bool) -> None:
    """AI-assisted commit messages and code reviews for Git repositories."""
    # force=True so repeated invocations (tests) reconfigure the handlers.
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
        force=True,
    )


@main.command("changes")
@click.argument("root", default=".", type=click.Path(file_okay=False))
def changes_command(root: str) -> None:
    """Print the working-tree changes under ROOT as JSON."""
    repo_root = _resolve_repo_root(root)
    try:
        changes = get_file_changes_in_directory(str(repo_root))
    except SourceControlError as exc:
        print_error(f"VCS error: {exc}")
        raise click.exceptions.Exit(EXIT_VCS_FAILURE)
    click.echo(json.dumps(changes, indent=2))


@main.command("message")
@click.argument("root", default=".", type=click.Path(file_okay=False))
@click.option("--review-file", type=click.Path(dir_okay=False), help="Write a Markdown review to this file.")
@click.option("--commit", "do_commit", is_flag=True, help="Commit the staged changes with the generated message.")
@click.option("--yes", is_flag=True, help="Commit without asking for confirmation.")
def message_command(root: str, review_file: Optional[str], do_commit: bool, yes: bool) -> None:
    """Generate a commit message for the staged changes under ROOT."""
    repo_root = _resolve_repo_root(root)

    try:
        config = load_config()
    except ConfigError as exc:
        print_error(f"Configuration error: {exc}")
        raise click.exceptions.Exit(EXIT_CONFIG_ERROR)

    settings = AnalyzerSettings.from_config(config)
    analyzer = CommitAnalyzer(
        OllamaClient.from_config(config, max_timeout=settings.call_timeout_ms / 1000),
        cache=CommitCache.from_config(config),
        settings=settings,
    )
    try:
        with ProgressIndicator(f"Analyzing staged changes with {config['model']}"):
            result = asyncio.run(analyzer.analyze(repo_root, review=bool(review_file)))
    except SourceControlError as exc:
        print_error(f"VCS error: {exc}")
        raise click.exceptions.Exit(EXIT_VCS_FAILURE)
    except InputValidationError as exc:
        print_error(str(exc))
        raise click.exceptions.Exit(EXIT_INVALID_USAGE)
    except LLMError as exc:
        print_error(f"LLM error: {exc}")
        print_info("Make sure Ollama is running and accessible", indent=1)
        raise click.exceptions.Exit(EXIT_LLM_FAILURE)
    except Exception as exc:
        logger.exception("Unhandled error: %s", exc)
        print_error(f"Unexpected error: {exc}")
        raise click.exceptions.Exit(EXIT_GENERIC_ERROR)

    if not result.analysis.files:
        print_warning(result.message)
        if do_commit:
            raise click.exceptions.Exit(EXIT_NO_CHANGES)
        return

    if analyzer.state is AnalyzerState.FALLBACK:
        print_warning("The language model could not be used; showing a fallback message.")
    click.echo(result.message)

    if review_file:
        if result.review is None:
            print_warning("No review from the language model; writing the analysis summary only.")
        try:
            print_success(write_review(review_file, render_review(result)))
        except InputValidationError as exc:
            print_error(str(exc))
            raise click.exceptions.Exit(EXIT_INVALID_USAGE)
        except OSError as exc:
            print_error(f"Failed to write review file: {exc}")
            raise click.exceptions.Exit(EXIT_GENERIC_ERROR)

    if do_commit:
        if not yes and not click.confirm("Commit the staged changes with this message?", default=True):
            print_info("Commit skipped")
            return
        try:
            GitClient(repo_root).commit(result.message)
        except SourceControlError as exc:
            print_error(f"Failed to commit: {exc}")
            raise click.exceptions.Exit(EXIT_VCS_FAILURE)
        print_success("Committed staged changes")


@main.command("write-review")
@click.argument("path")
@click.option("--content", help="Review text. Read from standard input when omitted.")
def write_review_command(path: str, content: Optional[str]) -> None:
    """Write review text to PATH."""
    text = content if content is not None else sys.stdin.read()
    try:
        print_success(write_review(path, text))
    except InputValidationError as exc:
        print_error(str(exc))
        raise click.exceptions.Exit(EXIT_INVALID_USAGE)
    except OSError as exc:
        print_error(f"Failed to write review file: {exc}")
        raise click.exceptions.Exit(EXIT_GENERIC_ERROR)
