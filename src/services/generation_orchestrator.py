"""Batch Orchestrator - drives one generation run from theme to asset list.

One run expands the theme into variations, then fetches them strictly one at
a time with a fixed pause between requests. Each success is published as soon
as it lands. A rate-limit failure aborts the run. Any other per-item
failure is logged and skipped; credential failures are remembered so an
empty run can report them.
"""

import asyncio
import uuid
from datetime import datetime
from typing import Awaitable, Callable, Optional, Protocol

from models.asset import (
    AssetContent,
    AssetKind,
    GeneratedAsset,
    GenerationRun,
    RunStatus,
    VariationRequest,
    new_asset_id,
)
from services.credentials import CredentialBroker
from utils.logging import clear_run_context, get_logger, set_run_context
from utils.retry import EmptyRunError, ErrorKind, error_kind

logger = get_logger(__name__)

DEFAULT_TARGET_COUNT = 20
DEFAULT_PACING_DELAY_MS = 4000
# One fetch in flight at a time keeps steady-state load under the rate limit
BATCH_SIZE = 1

RATE_LIMIT_MESSAGE = (
    "Rate limit exceeded. The API is temporarily blocking requests. "
    "Please wait 1-2 minutes before trying again."
)
AUTHENTICATION_MESSAGE = "API Authentication Error. Re-selecting your API key might help."
EMPTY_RUN_MESSAGE = (
    "Could not forge any elements. Service might be busy. Try again in a few moments."
)
GENERIC_FAILURE_MESSAGE = "Failed to forge elements. Please try again."

# Lower rank wins when more than one run-level failure is seen
RUN_ERROR_PRECEDENCE = {
    ErrorKind.RATE_LIMITED: 0,
    ErrorKind.AUTHENTICATION_INVALID: 1,
}
RUN_ABORTING_KINDS = frozenset({ErrorKind.RATE_LIMITED})

ProgressCallback = Callable[[GenerationRun, Optional[GeneratedAsset]], Awaitable[None]]


class Expander(Protocol):
    async def expand_variations(self, base_prompt: str, kind: AssetKind, count: int) -> list[str]: ...


class Fetcher(Protocol):
    async def fetch_asset(self, prompt: str, kind: AssetKind) -> AssetContent: ...


def user_message(kind: ErrorKind) -> str:
    """User-facing text for a run-level failure (details stay in the log)."""
    if kind is ErrorKind.RATE_LIMITED:
        return RATE_LIMIT_MESSAGE
    if kind is ErrorKind.AUTHENTICATION_INVALID:
        return AUTHENTICATION_MESSAGE
    if kind is ErrorKind.EMPTY_RUN:
        return EMPTY_RUN_MESSAGE
    return GENERIC_FAILURE_MESSAGE


def pick_run_error(kinds: list[ErrorKind]) -> ErrorKind:
    """Choose the reported failure: rate-limit > authentication > anything else."""
    if not kinds:
        return ErrorKind.UNKNOWN
    return min(kinds, key=lambda k: RUN_ERROR_PRECEDENCE.get(k, len(RUN_ERROR_PRECEDENCE)))


class GenerationOrchestrator:
    """Runs the variation → fetch → aggregate pipeline for one request."""

    def __init__(
        self,
        expander: Expander,
        fetcher: Fetcher,
        credentials: Optional[CredentialBroker] = None,
        pacing_delay_ms: float = DEFAULT_PACING_DELAY_MS,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """Initialize the orchestrator.

        Args:
            expander: Produces the variation prompts
            fetcher: Produces one asset per prompt
            credentials: Asked to re-select the key after an auth failure
            pacing_delay_ms: Fixed pause between consecutive fetches
            sleep: Awaitable sleep in seconds (injectable for tests)
        """
        self.expander = expander
        self.fetcher = fetcher
        self.credentials = credentials
        self.pacing_delay_ms = pacing_delay_ms
        self.sleep = sleep or asyncio.sleep

    def create_run(
        self, base_prompt: str, kind: AssetKind, count: int = DEFAULT_TARGET_COUNT
    ) -> GenerationRun:
        request = VariationRequest(base_prompt=base_prompt.strip(), kind=kind, count=count)
        return GenerationRun(run_id=uuid.uuid4().hex[:12], request=request)

    async def run_generation(
        self,
        base_prompt: str,
        kind: AssetKind,
        count: int = DEFAULT_TARGET_COUNT,
        on_progress: Optional[ProgressCallback] = None,
    ) -> GenerationRun:
        """Create and execute a run in one call."""
        run = self.create_run(base_prompt, kind, count)
        return await self.execute(run, on_progress=on_progress)

    async def execute(
        self,
        run: GenerationRun,
        on_progress: Optional[ProgressCallback] = None,
    ) -> GenerationRun:
        """Execute a previously created run.

        The run object is updated in place while the run progresses, so
        observers holding a reference see assets as they arrive. The run
        never raises for upstream failures: they end up in
        ``run.terminal_error`` and ``run.error_message``.

        Args:
            run: Run created by :meth:`create_run`
            on_progress: Awaited after every status change and every new asset

        Returns:
            The same run, finished
        """
        set_run_context(run.run_id)
        request = run.request
        run.progress_percent = 0
        run.started_at = datetime.now()

        try:
            run.status = RunStatus.EXPANDING
            await self._notify(on_progress, run, None)
            try:
                prompts = await self.expander.expand_variations(
                    request.base_prompt, request.kind, request.count
                )
            except Exception as e:
                logger.error("variation_expansion_failed", error=str(e), kind=error_kind(e).value)
                self._fail(run, error_kind(e), e)
                return run

            run.status = RunStatus.GENERATING
            await self._notify(on_progress, run, None)
            logger.info("generation_started", variations=len(prompts), kind=request.kind.value)

            run_errors = await self._fetch_all(run, prompts, on_progress)
            kinds = [k for k, _ in run_errors]

            if ErrorKind.RATE_LIMITED in kinds or not run.completed_assets:
                kind = pick_run_error([*kinds, ErrorKind.EMPTY_RUN])
                error = next((e for k, e in run_errors if k is kind), None)
                self._fail(run, kind, error or EmptyRunError(EMPTY_RUN_MESSAGE))
            else:
                run.status = RunStatus.COMPLETED
                logger.info(
                    "generation_completed",
                    completed=len(run.completed_assets),
                    requested=len(prompts),
                )
            return run
        finally:
            run.progress_percent = 0
            run.completed_at = datetime.now()
            clear_run_context()

    async def _fetch_all(
        self,
        run: GenerationRun,
        prompts: list[str],
        on_progress: Optional[ProgressCallback],
    ) -> list[tuple[ErrorKind, BaseException]]:
        """Fetch every prompt in order.

        Returns the rate-limit and credential failures seen, in order. A
        rate-limit failure ends the loop and is always the last entry.
        """
        kind = run.request.kind
        total = len(prompts)
        run_errors: list[tuple[ErrorKind, BaseException]] = []

        for i in range(0, total, BATCH_SIZE):
            batch = prompts[i : i + BATCH_SIZE]
            for offset, prompt in enumerate(batch):
                index = i + offset
                run.attempted_prompts.append(prompt)
                try:
                    content = await self.fetcher.fetch_asset(prompt, kind)
                except Exception as e:
                    kind_of_error = error_kind(e)
                    logger.warning(
                        "variation_failed",
                        index=index,
                        prompt=prompt,
                        kind=kind_of_error.value,
                        error=str(e),
                    )
                    if kind_of_error in RUN_ABORTING_KINDS:
                        run_errors.append((kind_of_error, e))
                        return run_errors
                    if kind_of_error in RUN_ERROR_PRECEDENCE:
                        run_errors.append((kind_of_error, e))
                    run.advance_progress(index + 1, total)
                    await self._notify(on_progress, run, None)
                    continue

                asset = GeneratedAsset(
                    id=new_asset_id(),
                    content=content,
                    kind=kind,
                    source_prompt=prompt,
                    is_motion=kind.is_motion,
                )
                run.completed_assets.append(asset)
                run.advance_progress(index + 1, total)
                await self._notify(on_progress, run, asset)

            if i + BATCH_SIZE < total:
                await self.sleep(self.pacing_delay_ms / 1000)

        return run_errors

    def _fail(self, run: GenerationRun, kind: ErrorKind, error: BaseException) -> None:
        run.status = RunStatus.FAILED
        run.terminal_error = kind
        run.error_message = user_message(kind)
        logger.error("generation_failed", kind=kind.value, message=run.error_message, error=str(error))

        if kind is ErrorKind.AUTHENTICATION_INVALID and self.credentials is not None:
            try:
                self.credentials.prompt_credential_selection()
            except Exception as e:
                logger.debug("credential_selection_unavailable", error=str(e))

    async def _notify(
        self,
        callback: Optional[ProgressCallback],
        run: GenerationRun,
        asset: Optional[GeneratedAsset],
    ) -> None:
        if callback is None:
            return
        try:
            await callback(run, asset)
        except Exception as e:
            logger.warning("progress_callback_error", error=str(e))
