import subprocess
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

from commitscribe.errors import ErrorKind, SourceControlError
from commitscribe.vcs.git_client import GitClient, GitError


class DummyProc(SimpleNamespace):
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""


class TestGitClient(unittest.TestCase):
    def test_get_staged_diff(self) -> None:
        calls = []

        def fake_run(self, args, check=True):
            calls.append(args)
            return DummyProc(returncode=0, stdout="diff --git a/x b/x\n", stderr="")

        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.side_effect = fake_run
            diff = GitClient(Path("/repo")).get_staged_diff()

        self.assertEqual(diff, "diff --git a/x b/x\n")
        self.assertEqual(calls, [["diff", "--cached"]])

    def test_get_diff_summary_skips_blank_lines(self) -> None:
        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.return_value = DummyProc(stdout="a.py\n\n  src/b.py \n")
            files = GitClient(Path("/repo")).get_diff_summary()

        self.assertEqual(files, ["a.py", "src/b.py"])
        mock_run.assert_called_once()
        self.assertEqual(mock_run.call_args.args[1], ["diff", "--name-only"])

    def test_get_diff_for_file(self) -> None:
        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.return_value = DummyProc(stdout="+x\n")
            self.assertEqual(GitClient(Path("/repo")).get_diff("a.py"), "+x\n")
        self.assertEqual(mock_run.call_args.args[1], ["diff", "--", "a.py"])

    def test_commit_passes_multiline_message(self) -> None:
        message = "feat: add x\n\nLonger body"
        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.return_value = DummyProc()
            GitClient(Path("/repo")).commit(message)
        self.assertEqual(mock_run.call_args.args[1], ["commit", "-m", message])

    def test_run_failure_raises_git_error(self) -> None:
        proc = DummyProc(returncode=128, stdout="", stderr="fatal: not a git repository\n")
        with patch("subprocess.run", return_value=proc):
            with self.assertRaises(GitError) as ctx:
                GitClient(Path("/repo")).get_staged_diff()

        error = ctx.exception
        self.assertIsInstance(error, SourceControlError)
        self.assertEqual(error.kind, ErrorKind.SOURCE_CONTROL)
        self.assertEqual(error.command, "git diff --cached")
        self.assertEqual(str(error), "Git command 'git diff --cached' failed: fatal: not a git repository")

    def test_run_unchecked_returns_failed_process(self) -> None:
        proc = DummyProc(returncode=1, stdout="", stderr="boom")
        with patch("subprocess.run", return_value=proc):
            self.assertIs(GitClient(Path("/repo"))._run(["status"], check=False), proc)

    def test_missing_git_binary(self) -> None:
        with patch("subprocess.run", side_effect=FileNotFoundError("git")):
            with self.assertRaises(GitError):
                GitClient(Path("/repo")).get_staged_diff()

    def test_run_uses_repo_root(self) -> None:
        with patch("subprocess.run", return_value=DummyProc()) as mock_run:
            GitClient(Path("/repo")).get_staged_diff()
        args, kwargs = mock_run.call_args
        self.assertEqual(args[0], ["git", "diff", "--cached"])
        self.assertEqual(kwargs["cwd"], Path("/repo"))
        self.assertEqual(kwargs["stdout"], subprocess.PIPE)

    def test_find_repo_root(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / ".git").mkdir()
            nested = root / "src" / "pkg"
            nested.mkdir(parents=True)
            self.assertEqual(GitClient.find_repo_root(nested), root)

    def test_find_repo_root_none(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with patch("pathlib.Path.exists", return_value=False):
                self.assertIsNone(GitClient.find_repo_root(Path(tmp)))


if __name__ == "__main__":
    unittest.main()
