"""Asset Fetcher - produces one image or video for one (prompt, kind) pair."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from models.asset import AssetContent, AssetKind
from services.background_stripper import DEFAULT_THRESHOLD, strip_white_background_async
from services.credentials import CredentialBroker
from services.gemini_client import GeminiClient, extract_video_uri
from services.prompts import build_asset_prompt
from utils.retry import (
    DEFAULT_INITIAL_DELAY_MS,
    DEFAULT_MAX_ATTEMPTS,
    AuthenticationError,
    NoOutputError,
    NotFoundError,
    with_retry,
)

logger = logging.getLogger(__name__)

VIDEO_POLL_INTERVAL_SECONDS = 15
STATIC_ASPECT_RATIO = "1:1"


class AssetFetcher:
    """Fetches a single asset, applying kind-specific templating and post-processing."""

    def __init__(
        self,
        gemini: GeminiClient,
        credentials: CredentialBroker,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_delay_ms: float = DEFAULT_INITIAL_DELAY_MS,
        poll_interval_seconds: float = VIDEO_POLL_INTERVAL_SECONDS,
        transparency_threshold: int = DEFAULT_THRESHOLD,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """Initialize the fetcher.

        Args:
            gemini: Boundary client for image and video generation
            credentials: Broker consulted before motion jobs
            max_attempts: Retry budget per upstream call
            initial_delay_ms: First backoff delay
            poll_interval_seconds: Wait between Veo status polls
            transparency_threshold: Near-white cutoff for background removal
            sleep: Awaitable sleep in seconds (injectable for tests)
        """
        self.gemini = gemini
        self.credentials = credentials
        self.max_attempts = max_attempts
        self.initial_delay_ms = initial_delay_ms
        self.poll_interval_seconds = poll_interval_seconds
        self.transparency_threshold = transparency_threshold
        self.sleep = sleep or asyncio.sleep

    async def _retry(self, operation, label: str):
        return await with_retry(
            operation,
            max_attempts=self.max_attempts,
            initial_delay_ms=self.initial_delay_ms,
            label=label,
            sleep=self.sleep,
        )

    async def fetch_asset(self, prompt: str, kind: AssetKind) -> AssetContent:
        """Generate one asset for ``prompt``.

        Args:
            prompt: One variation description (untemplated)
            kind: Asset category

        Returns:
            Image bytes (PNG with transparency for isolated kinds) or video bytes
        """
        final_prompt = build_asset_prompt(kind, prompt)

        if kind.is_motion:
            return await self._fetch_motion(final_prompt)

        content = await self._retry(
            lambda: self.gemini.generate_image(final_prompt, aspect_ratio=STATIC_ASPECT_RATIO),
            label="generate_image",
        )

        if kind.needs_transparency:
            data = await strip_white_background_async(content.data, self.transparency_threshold)
            if data is not content.data:
                content = AssetContent(data=data, mime_type="image/png")

        return content

    async def _fetch_motion(self, final_prompt: str) -> AssetContent:
        if not self.credentials.has_credential():
            logger.info("No credential selected; requesting selection before motion job")
            self.credentials.prompt_credential_selection()

        try:
            operation = await self._retry(
                lambda: self.gemini.start_video_job(final_prompt), label="start_video_job"
            )

            while not operation.get("done"):
                await self.sleep(self.poll_interval_seconds)
                current = operation
                operation = await self._retry(
                    lambda: self.gemini.get_video_job(current), label="poll_video_job"
                )

            uri = extract_video_uri(operation)
            if not uri:
                raise NoOutputError("Video job finished without a video")

            return await self._retry(lambda: self.gemini.download_video(uri), label="download_video")

        except NotFoundError as e:
            # Veo answers "Requested entity was not found" for a revoked key/project
            raise AuthenticationError(str(e), e.status_code)
