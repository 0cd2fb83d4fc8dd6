"""Unit tests for the batch orchestrator."""

from unittest.mock import Mock

import pytest

from models.asset import AssetKind, RunStatus
from services.generation_orchestrator import (
    AUTHENTICATION_MESSAGE,
    EMPTY_RUN_MESSAGE,
    GENERIC_FAILURE_MESSAGE,
    RATE_LIMIT_MESSAGE,
    GenerationOrchestrator,
    pick_run_error,
    user_message,
)
from utils.retry import (
    APIRateLimitError,
    AuthenticationError,
    ErrorKind,
    NoOutputError,
    TemporaryServiceError,
    UpstreamError,
)


class ProgressLog:
    """Records (status, progress, asset id) for every notification."""

    def __init__(self):
        self.events: list[tuple] = []

    async def __call__(self, run, asset):
        self.events.append((run.status, run.progress_percent, asset.id if asset else None))

    @property
    def progress(self) -> list[int]:
        """Progress values after each fetch (skips the two status-change events)."""
        return [p for _, p, _ in self.events[2:]]


def _orchestrator(expander, fetcher, no_sleep, credentials=None) -> GenerationOrchestrator:
    return GenerationOrchestrator(
        expander=expander,
        fetcher=fetcher,
        credentials=credentials,
        pacing_delay_ms=4000,
        sleep=no_sleep,
    )


class TestRunErrorPolicy:
    def test_rate_limit_wins_over_authentication(self):
        kinds = [ErrorKind.UNKNOWN, ErrorKind.AUTHENTICATION_INVALID, ErrorKind.RATE_LIMITED]
        assert pick_run_error(kinds) is ErrorKind.RATE_LIMITED

    def test_authentication_wins_over_generic(self):
        kinds = [ErrorKind.TRANSIENT_UPSTREAM, ErrorKind.AUTHENTICATION_INVALID]
        assert pick_run_error(kinds) is ErrorKind.AUTHENTICATION_INVALID

    def test_no_kinds_is_unknown(self):
        assert pick_run_error([]) is ErrorKind.UNKNOWN

    def test_messages(self):
        assert user_message(ErrorKind.RATE_LIMITED) == RATE_LIMIT_MESSAGE
        assert user_message(ErrorKind.AUTHENTICATION_INVALID) == AUTHENTICATION_MESSAGE
        assert user_message(ErrorKind.EMPTY_RUN) == EMPTY_RUN_MESSAGE
        assert user_message(ErrorKind.UNKNOWN) == GENERIC_FAILURE_MESSAGE
        assert "Rate limit" in RATE_LIMIT_MESSAGE


@pytest.mark.unit
@pytest.mark.asyncio
async def test_twenty_successful_stickers(no_sleep, fake_expander, fake_fetcher):
    progress = ProgressLog()
    orchestrator = _orchestrator(fake_expander, fake_fetcher, no_sleep)

    run = await orchestrator.run_generation("red balloon", AssetKind.STICKER, 20, on_progress=progress)

    assert run.status == RunStatus.COMPLETED
    assert run.error_message is None
    assert run.terminal_error is None
    assert len(run.completed_assets) == 20
    assert all(asset.kind is AssetKind.STICKER for asset in run.completed_assets)
    assert progress.progress == [round(100 * k / 20) for k in range(1, 21)]
    assert progress.progress[-1] == 100
    # fixed pause between fetches, none after the last
    assert no_sleep.delays == [4.0] * 19
    assert fake_expander.calls == [("red balloon", AssetKind.STICKER, 20)]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_assets_follow_expander_output_in_order(no_sleep, fake_fetcher, make_expander):
    expander = make_expander(variations=["alpha", "beta", "gamma"])
    orchestrator = _orchestrator(expander, fake_fetcher, no_sleep)

    run = await orchestrator.run_generation("theme", AssetKind.PHOTO, 3)

    assert [a.source_prompt for a in run.completed_assets] == ["alpha", "beta", "gamma"]
    assert fake_fetcher.prompts == ["alpha", "beta", "gamma"]
    assert run.attempted_prompts == ["alpha", "beta", "gamma"]
    assert len({a.id for a in run.completed_assets}) == 3


@pytest.mark.unit
@pytest.mark.asyncio
async def test_rate_limit_on_fifth_item_aborts_run(no_sleep, fake_expander, make_fetcher):
    fetcher = make_fetcher(failures={4: APIRateLimitError("429 RESOURCE_EXHAUSTED", 429)})
    orchestrator = _orchestrator(fake_expander, fetcher, no_sleep)

    run = await orchestrator.run_generation("red balloon", AssetKind.STICKER, 20)

    assert run.status == RunStatus.FAILED
    assert run.terminal_error is ErrorKind.RATE_LIMITED
    assert run.error_message == RATE_LIMIT_MESSAGE
    assert len(run.completed_assets) == 4
    # no fetch after the rate-limited one
    assert len(fetcher.prompts) == 5
    assert run.progress_percent == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_other_failures_are_skipped(no_sleep, fake_expander, make_fetcher):
    fetcher = make_fetcher(
        failures={
            1: NoOutputError("Failed to generate image data"),
            3: TemporaryServiceError("503"),
            4: ValueError("unexpected payload"),
        }
    )
    progress = ProgressLog()
    orchestrator = _orchestrator(fake_expander, fetcher, no_sleep)

    run = await orchestrator.run_generation("moon", AssetKind.GRAPHIC, 6, on_progress=progress)

    assert run.status == RunStatus.COMPLETED
    assert len(fetcher.prompts) == 6
    assert len(run.completed_assets) == 3
    assert progress.progress == [17, 33, 50, 67, 83, 100]
    assert len([e for e in progress.events if e[2] is not None]) == 3


@pytest.mark.unit
@pytest.mark.asyncio
async def test_authentication_failure_on_one_item_is_skipped(no_sleep, fake_expander, make_fetcher):
    credentials = Mock()
    fetcher = make_fetcher(failures={2: AuthenticationError("Requested entity was not found", 404)})
    orchestrator = _orchestrator(fake_expander, fetcher, no_sleep, credentials=credentials)

    run = await orchestrator.run_generation("coin", AssetKind.GIF, 5)

    assert run.status == RunStatus.COMPLETED
    assert run.error_message is None
    assert len(fetcher.prompts) == 5
    assert len(run.completed_assets) == 4
    assert all(asset.is_motion for asset in run.completed_assets)
    credentials.prompt_credential_selection.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_empty_run_with_credential_failures_requests_new_key(no_sleep, fake_expander, make_fetcher):
    credentials = Mock()
    fetcher = make_fetcher(
        failures={
            0: NoOutputError("nothing"),
            1: AuthenticationError("bad key", 401),
            2: TemporaryServiceError("503"),
        }
    )
    orchestrator = _orchestrator(fake_expander, fetcher, no_sleep, credentials=credentials)

    run = await orchestrator.run_generation("coin", AssetKind.GIF, 3)

    assert run.status == RunStatus.FAILED
    assert run.terminal_error is ErrorKind.AUTHENTICATION_INVALID
    assert run.error_message == AUTHENTICATION_MESSAGE
    assert len(fetcher.prompts) == 3
    credentials.prompt_credential_selection.assert_called_once()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_rate_limit_wins_over_earlier_credential_failure(no_sleep, fake_expander, make_fetcher):
    credentials = Mock()
    fetcher = make_fetcher(
        failures={
            0: AuthenticationError("bad key", 401),
            1: APIRateLimitError("429", 429),
        }
    )
    orchestrator = _orchestrator(fake_expander, fetcher, no_sleep, credentials=credentials)

    run = await orchestrator.run_generation("coin", AssetKind.STICKER, 4)

    assert run.terminal_error is ErrorKind.RATE_LIMITED
    assert run.error_message == RATE_LIMIT_MESSAGE
    assert len(fetcher.prompts) == 2
    credentials.prompt_credential_selection.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_credential_selection_failure_is_swallowed(no_sleep, fake_expander, make_fetcher):
    credentials = Mock()
    credentials.prompt_credential_selection.side_effect = RuntimeError("no browser")
    fetcher = make_fetcher(failures={i: AuthenticationError("bad key", 401) for i in range(2)})
    orchestrator = _orchestrator(fake_expander, fetcher, no_sleep, credentials=credentials)

    run = await orchestrator.run_generation("coin", AssetKind.STICKER, 2)

    assert run.error_message == AUTHENTICATION_MESSAGE


@pytest.mark.unit
@pytest.mark.asyncio
async def test_expander_failure_aborts_with_generic_message(no_sleep, fake_fetcher, make_expander):
    expander = make_expander(error=UpstreamError("model exploded", 400))
    orchestrator = _orchestrator(expander, fake_fetcher, no_sleep)

    run = await orchestrator.run_generation("red balloon", AssetKind.STICKER, 20)

    assert run.status == RunStatus.FAILED
    assert run.error_message == GENERIC_FAILURE_MESSAGE
    assert run.completed_assets == []
    assert fake_fetcher.prompts == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_expander_rate_limit_reports_rate_limit(no_sleep, fake_fetcher, make_expander):
    expander = make_expander(error=APIRateLimitError("429"))
    orchestrator = _orchestrator(expander, fake_fetcher, no_sleep)

    run = await orchestrator.run_generation("red balloon", AssetKind.STICKER, 20)

    assert run.error_message == RATE_LIMIT_MESSAGE


@pytest.mark.unit
@pytest.mark.asyncio
async def test_all_items_failing_is_an_empty_run(no_sleep, fake_expander, make_fetcher):
    fetcher = make_fetcher(failures={i: NoOutputError("nothing") for i in range(3)})
    orchestrator = _orchestrator(fake_expander, fetcher, no_sleep)

    run = await orchestrator.run_generation("moon", AssetKind.PHOTO, 3)

    assert run.status == RunStatus.FAILED
    assert run.terminal_error is ErrorKind.EMPTY_RUN
    assert run.error_message == EMPTY_RUN_MESSAGE


@pytest.mark.unit
@pytest.mark.asyncio
async def test_status_notifications_precede_assets(no_sleep, fake_expander, fake_fetcher):
    progress = ProgressLog()
    orchestrator = _orchestrator(fake_expander, fake_fetcher, no_sleep)

    await orchestrator.run_generation("moon", AssetKind.PHOTO, 2, on_progress=progress)

    statuses = [status for status, _, _ in progress.events]
    assert statuses[0] == RunStatus.EXPANDING
    assert statuses[1] == RunStatus.GENERATING
    assert progress.events[1][2] is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failing_progress_callback_does_not_break_run(no_sleep, fake_expander, fake_fetcher):
    async def broken(run, asset):
        raise RuntimeError("socket closed")

    orchestrator = _orchestrator(fake_expander, fake_fetcher, no_sleep)

    run = await orchestrator.run_generation("moon", AssetKind.PHOTO, 2, on_progress=broken)

    assert run.status == RunStatus.COMPLETED
    assert len(run.completed_assets) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_finished_run_resets_progress_and_stamps_completion(no_sleep, fake_expander, fake_fetcher):
    orchestrator = _orchestrator(fake_expander, fake_fetcher, no_sleep)

    run = await orchestrator.run_generation("moon", AssetKind.PHOTO, 2)

    assert run.progress_percent == 0
    assert run.completed_at is not None
    assert not run.is_active
