"""
Commit analysis using an LLM.

:class:`CommitAnalyzer` turns the staged diff of a repository into a
Conventional Commit message:

1. the staged diff is read from the VCS client and parsed;
2. a cached response for the same change is reused when available;
3. otherwise every file is categorised by the model, in batches that run
   concurrently within a batch and sequentially across batches;
4. the per-file results are consolidated and, when more than one file
   changed, merged into one message by a final model call;
5. the result is cached;
6. on request, the model writes a file-by-file review of the changes.

Each model call is retried with exponential backoff and every attempt is
raced against a timeout. When the model times out or keeps returning
unusable output, a deterministic fallback message is produced instead.
Failures of the VCS client are never recovered here; they propagate to
the caller unchanged.

Model calls run on a thread pool owned by the current run. The pool is
shut down without waiting when the run ends, so a call that lost the race
against its timeout never delays the caller.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar, Union

from commitscribe.analysis.change_classifier import infer_change_type
from commitscribe.cache.commit_cache import CommitCache, commit_cache
from commitscribe.diff.diff_parser import DiffParseOptions, ParsedDiff, parse_diff
from commitscribe.errors import (
    InvalidResponseError,
    LLMTimeoutError,
    NoChangesError,
    Recovery,
    error_kind,
    recovery_for,
)
from commitscribe.llm.ollama_client import LLMError, LLMRequestTimeout
from commitscribe.llm.prompt_templates import (
    cache_key,
    code_review_prompt,
    diff_fingerprint_text,
    fallback_message,
    multi_change_prompt,
    single_change_prompt,
)
from commitscribe.llm.types import (
    AnalysisResult,
    ChangeCategory,
    ChangeType,
    CommitAnalysis,
    FileAnalysis,
    ModelResponse,
    parse_model_response,
    parse_review_text,
)
from commitscribe.vcs.git_client import GitClient


logger = logging.getLogger(__name__)
# Attach a null handler to avoid "No handler" warnings when the root
# logger is not configured.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


DEFAULT_CALL_TIMEOUT_MS = 2000
DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_BASE_DELAY_MS = 100
DEFAULT_BATCH_SIZE = 3
DEFAULT_BATCH_DELAY_MS = 100

T = TypeVar("T")


class AnalyzerState(Enum):
    """Phases of a single :meth:`CommitAnalyzer.analyze` run."""

    IDLE = "idle"
    BATCH_IN_FLIGHT = "batch_in_flight"
    CONSOLIDATING = "consolidating"
    REVIEWING = "reviewing"
    DONE = "done"
    FALLBACK = "fallback"


@dataclass
class AnalyzerSettings:
    """Tunables for :class:`CommitAnalyzer`.

    Attributes
    ----------
    call_timeout_ms : int
        Deadline for a single model call attempt.
    max_retries : int
        Maximum number of attempts per model call.
    retry_base_delay_ms : int
        Backoff base; the pause after attempt ``n`` is ``base * 2**n``.
    batch_size : int
        Number of files categorised concurrently.
    batch_delay_ms : int
        Pause between consecutive batches.
    parse_options : DiffParseOptions
        Options passed to the diff parser.
    """

    call_timeout_ms: int = DEFAULT_CALL_TIMEOUT_MS
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_base_delay_ms: int = DEFAULT_RETRY_BASE_DELAY_MS
    batch_size: int = DEFAULT_BATCH_SIZE
    batch_delay_ms: int = DEFAULT_BATCH_DELAY_MS
    parse_options: DiffParseOptions = field(default_factory=DiffParseOptions)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "AnalyzerSettings":
        """Build settings from the ``analysis`` section of the configuration."""
        analysis = config.get("analysis", {})
        parse_options = DiffParseOptions()
        if "max_lines_per_file" in analysis:
            parse_options.max_lines_per_file = analysis["max_lines_per_file"]
        if "max_diff_bytes" in analysis:
            parse_options.max_diff_bytes = analysis["max_diff_bytes"]
        if "exclude_patterns" in analysis:
            parse_options.exclude_patterns = list(analysis["exclude_patterns"])
        return cls(
            call_timeout_ms=analysis.get("call_timeout_ms", DEFAULT_CALL_TIMEOUT_MS),
            max_retries=analysis.get("max_retries", DEFAULT_MAX_RETRIES),
            retry_base_delay_ms=analysis.get("retry_base_delay_ms", DEFAULT_RETRY_BASE_DELAY_MS),
            batch_size=analysis.get("batch_size", DEFAULT_BATCH_SIZE),
            batch_delay_ms=analysis.get("batch_delay_ms", DEFAULT_BATCH_DELAY_MS),
            parse_options=parse_options,
        )


def consolidate_analysis(file_analyses: Sequence[FileAnalysis]) -> CommitAnalysis:
    """Merge per-file analyses into one :class:`CommitAnalysis`.

    Categories are de-duplicated by ``(type, scope)`` and the first
    description for a pair wins. The summary is left empty.
    """
    impacted_areas: List[str] = []
    categories: Dict[tuple, ChangeCategory] = {}
    for item in file_analyses:
        if item.scope and item.scope not in impacted_areas:
            impacted_areas.append(item.scope)
        key = (item.type, item.scope or "")
        if key not in categories:
            categories[key] = ChangeCategory(type=item.type, scope=item.scope, description=item.description)
    return CommitAnalysis(
        files=list(dict.fromkeys(item.file for item in file_analyses)),
        summary="",
        impacted_areas=impacted_areas,
        change_types=list(categories.values()),
        breaking_changes=any(item.breaking for item in file_analyses),
    )


def analysis_from_response(response: ModelResponse, files: Sequence[str]) -> CommitAnalysis:
    """Build the analysis described by a single model response."""
    return CommitAnalysis(
        files=list(files),
        summary=response.details or "",
        impacted_areas=[response.scope] if response.scope else [],
        change_types=[
            ChangeCategory(type=response.type, scope=response.scope, description=response.commit_message)
        ],
        breaking_changes=response.breaking,
    )


def response_from_result(result: AnalysisResult) -> ModelResponse:
    """Condense a result into the response stored in the cache."""
    primary = result.analysis.change_types[0] if result.analysis.change_types else None
    return ModelResponse(
        commit_message=result.message,
        type=primary.type if primary else ChangeType.CHORE,
        scope=primary.scope if primary else None,
        breaking=result.analysis.breaking_changes,
        details=result.analysis.summary or None,
    )


class CommitAnalyzer:
    """Generate commit messages for staged changes with an LLM.

    Parameters
    ----------
    llm_client : object
        Language model client exposing ``generate(prompt) -> str``, such as
        :class:`~commitscribe.llm.ollama_client.OllamaClient`.
    vcs_client_factory : Callable[[Path], object], optional
        Builds the diff source for a repository root. The result must
        expose ``get_staged_diff() -> str``. Defaults to :class:`GitClient`.
    cache : CommitCache, optional
        Response cache. Defaults to the process-wide ``commit_cache``.
    settings : AnalyzerSettings, optional
        Timeouts, retries and batching. Defaults to :class:`AnalyzerSettings`.
    sleep : Callable[[float], Awaitable], optional
        Coroutine used for backoff and batch pauses. Defaults to
        :func:`asyncio.sleep`.
    """

    def __init__(
        self,
        llm_client: Any,
        vcs_client_factory: Callable[[Path], Any] = GitClient,
        cache: Optional[CommitCache] = None,
        settings: Optional[AnalyzerSettings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.llm_client = llm_client
        self.vcs_client_factory = vcs_client_factory
        self.cache = cache if cache is not None else commit_cache
        self.settings = settings or AnalyzerSettings()
        self._sleep = sleep
        self._executor: Optional[ThreadPoolExecutor] = None
        self.state = AnalyzerState.IDLE

    def _transition(self, state: AnalyzerState) -> None:
        logger.debug("Analyzer state: %s -> %s", self.state.value, state.value)
        self.state = state

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    async def analyze(self, repo_root: Union[str, Path], review: bool = False) -> AnalysisResult:
        """Analyse the staged changes of ``repo_root``.

        Parameters
        ----------
        repo_root : str or Path
            Root of the repository whose staged diff is analysed.
        review : bool, optional
            Also ask the model for a file-by-file review. The review is
            left as ``None`` when it cannot be generated or when the
            commit message itself fell back.

        Returns
        -------
        AnalysisResult
            The commit message and the analysis behind it. When nothing is
            staged the message is ``"No changes staged for commit"`` and the
            analysis is empty.

        Raises
        ------
        SourceControlError
            If the staged diff cannot be read. Propagated unchanged.
        InputValidationError
            If the diff is rejected by the parser.
        Exception
            Any other unexpected failure, after it has been logged.
        """
        self._transition(AnalyzerState.IDLE)
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, self.settings.batch_size) * max(1, self.settings.max_retries),
            thread_name_prefix="commitscribe-llm",
        )
        try:
            return await self._run(repo_root, review)
        finally:
            # Timed-out calls still hold their threads; never wait for them.
            self._executor.shutdown(wait=False)
            self._executor = None

    async def _run(self, repo_root: Union[str, Path], review: bool) -> AnalysisResult:
        diffs: List[ParsedDiff] = []
        try:
            vcs_client = self.vcs_client_factory(Path(repo_root))
            raw_diff = await asyncio.to_thread(vcs_client.get_staged_diff)
            diffs = parse_diff(raw_diff, self.settings.parse_options)
            if not diffs:
                raise NoChangesError()

            files = [diff.file_path for diff in diffs]
            key = cache_key(files, diff_fingerprint_text(diffs))
            cached = self.cache.get(key)
            if cached is not None:
                logger.info("Using cached commit message for %d file(s)", len(files))
                result = AnalysisResult(cached.commit_message, analysis_from_response(cached, files))
            else:
                result = await self._generate(diffs)
                self.cache.set(key, response_from_result(result))

            if review:
                result.review = await self._review(diffs, result.message)
            self._transition(AnalyzerState.DONE)
            return result
        except Exception as exc:
            action = recovery_for(error_kind(exc))
            if action is Recovery.EMPTY_RESULT:
                logger.info("%s", exc)
                self._transition(AnalyzerState.DONE)
                return AnalysisResult(str(exc), CommitAnalysis())
            if action is Recovery.FALLBACK:
                return self._fallback(exc, diffs)
            if action is Recovery.REPORT_AND_PROPAGATE:
                logger.exception("Unexpected error analyzing commit: %s", exc)
            raise

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------
    async def _generate(self, diffs: Sequence[ParsedDiff]) -> AnalysisResult:
        responses = await self._analyze_files(diffs)
        self._transition(AnalyzerState.CONSOLIDATING)
        files = [diff.file_path for diff in diffs]
        if len(responses) == 1:
            final = responses[0]
        else:
            draft = consolidate_analysis(
                [
                    FileAnalysis(
                        file=diff.file_path,
                        type=response.type,
                        scope=response.scope,
                        description=response.commit_message,
                        breaking=response.breaking,
                    )
                    for diff, response in zip(diffs, responses)
                ]
            )
            final = await self._request(multi_change_prompt(draft))
        return AnalysisResult(final.commit_message, analysis_from_response(final, files))

    async def _analyze_files(self, diffs: Sequence[ParsedDiff]) -> List[ModelResponse]:
        """Categorise every file, ``batch_size`` files at a time."""
        responses: List[ModelResponse] = []
        batch_size = max(1, self.settings.batch_size)
        for start in range(0, len(diffs), batch_size):
            batch = diffs[start:start + batch_size]
            self._transition(AnalyzerState.BATCH_IN_FLIGHT)
            logger.debug(
                "Categorising files %d-%d of %d", start + 1, start + len(batch), len(diffs)
            )
            results = await asyncio.gather(
                *(self._request(single_change_prompt(diff)) for diff in batch)
            )
            responses.extend(results)
            if start + batch_size < len(diffs):
                await self._sleep(self.settings.batch_delay_ms / 1000)
        return responses

    async def _review(self, diffs: Sequence[ParsedDiff], message: str) -> Optional[str]:
        """Ask for a file-by-file review; ``None`` when none can be had."""
        self._transition(AnalyzerState.REVIEWING)
        try:
            return await self._request(code_review_prompt(diffs, message), parse_review_text)
        except (LLMTimeoutError, InvalidResponseError, LLMError) as exc:
            logger.warning("Could not generate review: %s", exc)
            return None

    async def _request(
        self, prompt: str, parse: Callable[[str], T] = parse_model_response
    ) -> T:
        """Call the model with retries and exponential backoff."""
        attempt = 1
        while True:
            try:
                return await self._attempt(prompt, parse)
            except (LLMTimeoutError, InvalidResponseError, LLMError) as exc:
                if attempt >= self.settings.max_retries:
                    raise
                delay = self.settings.retry_base_delay_ms * (2 ** attempt) / 1000
                logger.debug(
                    "Model call attempt %d failed (%s); retrying in %.2fs", attempt, exc, delay
                )
                await self._sleep(delay)
                attempt += 1

    async def _attempt(self, prompt: str, parse: Callable[[str], T]) -> T:
        """Make one model call raced against the call timeout."""
        timeout_ms = self.settings.call_timeout_ms
        loop = asyncio.get_running_loop()
        try:
            raw = await asyncio.wait_for(
                loop.run_in_executor(self._executor, self.llm_client.generate, prompt),
                timeout=timeout_ms / 1000,
            )
        except asyncio.TimeoutError as exc:
            raise LLMTimeoutError(timeout_ms) from exc
        except LLMRequestTimeout as exc:
            raise LLMTimeoutError(timeout_ms) from exc
        return parse(raw)

    def _fallback(self, exc: Exception, diffs: Sequence[ParsedDiff]) -> AnalysisResult:
        self._transition(AnalyzerState.FALLBACK)
        logger.warning("LLM error: %s, falling back to simple commit message", exc)
        files = [diff.file_path for diff in diffs]
        change_type = infer_change_type(diffs)
        return AnalysisResult(fallback_message(files, change_type), CommitAnalysis(files=files))


def analyze_commit(
    repo_root: Union[str, Path], llm_client: Any, review: bool = False, **kwargs: Any
) -> AnalysisResult:
    """Blocking wrapper around :meth:`CommitAnalyzer.analyze`.

    Keyword arguments are passed to :class:`CommitAnalyzer`.
    """
    analyzer = CommitAnalyzer(llm_client, **kwargs)
    return asyncio.run(analyzer.analyze(repo_root, review=review))
