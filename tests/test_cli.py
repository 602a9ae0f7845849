import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

import commitscribe.cli as cli
from commitscribe.analysis.commit_analyzer import AnalyzerState
from commitscribe.config.loader import ConfigError
from commitscribe.errors import SourceControlError
from commitscribe.llm.ollama_client import LLMError
from commitscribe.llm.types import AnalysisResult, ChangeCategory, ChangeType, CommitAnalysis


CONFIG = {"base_url": "http://localhost", "port": 11434, "model": "llama3"}


class DummyAnalyzer:
    def __init__(self, result=None, error=None, state=AnalyzerState.DONE):
        self.result = result
        self.error = error
        self.state = state

    async def analyze(self, repo_root, review=False):
        self.repo_root = repo_root
        self.review = review
        if self.error is not None:
            raise self.error
        return self.result


class DummyGitClient:
    def __init__(self, commit_error=None):
        self.commit_error = commit_error
        self.commit_called = []

    def commit(self, message):
        if self.commit_error is not None:
            raise self.commit_error
        self.commit_called.append(message)


def feature_result() -> AnalysisResult:
    return AnalysisResult(
        "feat(api): add endpoint",
        CommitAnalysis(
            files=["src/api.py"],
            impacted_areas=["api"],
            change_types=[ChangeCategory(ChangeType.FEAT, "api", "feat(api): add endpoint")],
        ),
    )


class CliTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = CliRunner()
        self.git = DummyGitClient()
        git_cls = MagicMock(return_value=self.git)
        git_cls.find_repo_root.return_value = Path("/repo")
        self.git_cls = git_cls
        for name, value in (
            ("GitClient", git_cls),
            ("load_config", MagicMock(return_value=CONFIG)),
            ("OllamaClient", MagicMock()),
        ):
            patcher = patch.object(cli, name, value)
            patcher.start()
            self.addCleanup(patcher.stop)

    def run_message(self, analyzer, args=(), **kwargs):
        with patch.object(cli, "CommitAnalyzer", return_value=analyzer):
            return self.runner.invoke(cli.main, ["message", *args], **kwargs)


class TestMessageCommand(CliTestCase):
    def test_prints_message(self) -> None:
        analyzer = DummyAnalyzer(feature_result())
        result = self.run_message(analyzer)

        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
        self.assertIn("feat(api): add endpoint", result.output)
        self.assertEqual(analyzer.repo_root, Path("/repo"))
        self.assertEqual(self.git.commit_called, [])

    def test_commit_with_yes(self) -> None:
        result = self.run_message(DummyAnalyzer(feature_result()), ["--commit", "--yes"])

        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
        self.assertEqual(self.git.commit_called, ["feat(api): add endpoint"])
        self.git_cls.assert_called_with(Path("/repo"))

    def test_commit_declined(self) -> None:
        result = self.run_message(DummyAnalyzer(feature_result()), ["--commit"], input="n\n")

        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
        self.assertEqual(self.git.commit_called, [])
        self.assertIn("Commit skipped", result.output)

    def test_commit_failure(self) -> None:
        self.git.commit_error = SourceControlError("git commit -m x", "nothing to commit")
        result = self.run_message(DummyAnalyzer(feature_result()), ["--commit", "--yes"])
        self.assertEqual(result.exit_code, cli.EXIT_VCS_FAILURE)

    def test_no_changes(self) -> None:
        empty = AnalysisResult("No changes staged for commit", CommitAnalysis())

        result = self.run_message(DummyAnalyzer(empty))
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
        self.assertIn("No changes staged for commit", result.output)

        result = self.run_message(DummyAnalyzer(empty), ["--commit", "--yes"])
        self.assertEqual(result.exit_code, cli.EXIT_NO_CHANGES)
        self.assertEqual(self.git.commit_called, [])

    def test_fallback_warning(self) -> None:
        fallback = AnalysisResult("feat: update src/api.py", CommitAnalysis(files=["src/api.py"]))
        result = self.run_message(DummyAnalyzer(fallback, state=AnalyzerState.FALLBACK))

        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
        self.assertIn("fallback message", result.output)
        self.assertIn("feat: update src/api.py", result.output)

    def test_error_exit_codes(self) -> None:
        cases = [
            (SourceControlError("git diff --cached", "fatal"), cli.EXIT_VCS_FAILURE),
            (cli.InputValidationError("Diff is too large"), cli.EXIT_INVALID_USAGE),
            (LLMError("connection refused"), cli.EXIT_LLM_FAILURE),
            (RuntimeError("boom"), cli.EXIT_GENERIC_ERROR),
        ]
        for error, code in cases:
            with self.subTest(error=type(error).__name__):
                result = self.run_message(DummyAnalyzer(error=error))
                self.assertEqual(result.exit_code, code)

    def test_config_error(self) -> None:
        with patch.object(cli, "load_config", side_effect=ConfigError("missing")):
            result = self.run_message(DummyAnalyzer(feature_result()))
        self.assertEqual(result.exit_code, cli.EXIT_CONFIG_ERROR)
        self.assertIn("Configuration error: missing", result.output)

    def test_no_repository(self) -> None:
        self.git_cls.find_repo_root.return_value = None
        result = self.run_message(DummyAnalyzer(feature_result()))
        self.assertEqual(result.exit_code, cli.EXIT_NO_REPO)

    def test_review_file(self) -> None:
        reviewed = feature_result()
        reviewed.review = "### src/api.py\n\n- Validate the request body."
        analyzer = DummyAnalyzer(reviewed)
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "review.md"
            result = self.run_message(analyzer, ["--review-file", str(target)])

            self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
            text = target.read_text(encoding="utf-8")
        self.assertTrue(analyzer.review)
        self.assertIn("# Code Review", text)
        self.assertIn("feat(api): add endpoint", text)
        self.assertIn("- Validate the request body.", text)
        self.assertNotIn("analysis summary only", result.output)

    def test_review_file_without_model_review(self) -> None:
        analyzer = DummyAnalyzer(feature_result())
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "review.md"
            result = self.run_message(analyzer, ["--review-file", str(target)])

            self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
            text = target.read_text(encoding="utf-8")
        self.assertIn("writing the analysis summary only", result.output)
        self.assertIn("- **feat(api)**: feat(api): add endpoint", text)
        self.assertNotIn("## File review", text)

    def test_review_not_requested_without_file(self) -> None:
        analyzer = DummyAnalyzer(feature_result())
        self.run_message(analyzer)
        self.assertFalse(analyzer.review)

    def test_client_timeout_capped_at_call_deadline(self) -> None:
        config = dict(CONFIG, analysis={"call_timeout_ms": 1500})
        with patch.object(cli, "load_config", return_value=config):
            self.run_message(DummyAnalyzer(feature_result()))
        cli.OllamaClient.from_config.assert_called_once_with(config, max_timeout=1.5)

    def test_review_file_traversal(self) -> None:
        result = self.run_message(DummyAnalyzer(feature_result()), ["--review-file", "../review.md"])
        self.assertEqual(result.exit_code, cli.EXIT_INVALID_USAGE)
        self.assertIn("directory traversal not allowed", result.output)


class TestOtherCommands(CliTestCase):
    def test_changes(self) -> None:
        changes = [{"file": "a.py", "diff": "+a\n"}]
        with patch.object(cli, "get_file_changes_in_directory", return_value=changes):
            result = self.runner.invoke(cli.main, ["changes"])

        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
        start = result.output.index("[")
        self.assertEqual(json.loads(result.output[start:]), changes)

    def test_changes_vcs_error(self) -> None:
        error = SourceControlError("git diff --name-only", "fatal")
        with patch.object(cli, "get_file_changes_in_directory", side_effect=error):
            result = self.runner.invoke(cli.main, ["changes"])
        self.assertEqual(result.exit_code, cli.EXIT_VCS_FAILURE)

    def test_write_review_from_stdin(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "review.md"
            result = self.runner.invoke(cli.main, ["write-review", str(target)], input="LGTM\n")
            self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
            self.assertEqual(target.read_text(encoding="utf-8"), "LGTM\n")

    def test_write_review_content_option(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "r.md"
            result = self.runner.invoke(cli.main, ["write-review", str(target), "--content", "Ship it"])
            self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
            self.assertIn(f"Review written to {target}", result.output)
            self.assertEqual(target.read_text(encoding="utf-8"), "Ship it")

    def test_write_review_rejects_traversal(self) -> None:
        result = self.runner.invoke(cli.main, ["write-review", "../r.md", "--content", "x"])
        self.assertEqual(result.exit_code, cli.EXIT_INVALID_USAGE)

    def test_version(self) -> None:
        result = self.runner.invoke(cli.main, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn(cli.__version__, result.output)


if __name__ == "__main__":
    unittest.main()
