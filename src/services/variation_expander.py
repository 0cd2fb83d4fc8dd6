"""Variation Expander - turns one theme into N distinct prompt strings."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from models.asset import AssetKind
from services.gemini_client import GeminiClient
from services.prompts import build_variation_prompt, parse_string_array
from utils.retry import DEFAULT_INITIAL_DELAY_MS, DEFAULT_MAX_ATTEMPTS, with_retry

logger = logging.getLogger(__name__)

DEFAULT_VARIATION_COUNT = 20


class VariationExpander:
    """Expands a base prompt into themed variations with one AI call."""

    def __init__(
        self,
        gemini: GeminiClient,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_delay_ms: float = DEFAULT_INITIAL_DELAY_MS,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.gemini = gemini
        self.max_attempts = max_attempts
        self.initial_delay_ms = initial_delay_ms
        self.sleep = sleep or asyncio.sleep

    async def expand_variations(
        self,
        base_prompt: str,
        kind: AssetKind,
        count: int = DEFAULT_VARIATION_COUNT,
    ) -> list[str]:
        """Generate ``count`` related prompt strings for ``base_prompt``.

        Unusable model output never fails the call: the list falls back to
        copies of ``base_prompt`` so the run still attempts ``count`` assets.
        Upstream errors (after retries) do propagate.

        Args:
            base_prompt: The user's theme
            kind: Asset category the variations are for
            count: Number of variations wanted

        Returns:
            Exactly ``count`` prompt strings
        """
        if count < 1:
            raise ValueError("count must be at least 1")

        instruction = build_variation_prompt(base_prompt, kind, count)
        raw = await with_retry(
            lambda: self.gemini.generate_string_list(instruction),
            max_attempts=self.max_attempts,
            initial_delay_ms=self.initial_delay_ms,
            label="expand_variations",
            sleep=self.sleep,
        )
        return normalize_variations(raw, base_prompt, count)


def normalize_variations(raw: str, base_prompt: str, count: int) -> list[str]:
    """Coerce raw model output into exactly ``count`` prompts.

    Unparsable or empty output becomes ``count`` copies of ``base_prompt``.
    A short list is padded with ``base_prompt`` and a long one is truncated.
    """
    try:
        variations = parse_string_array(raw)
    except ValueError as e:
        # json.JSONDecodeError is a ValueError
        logger.error(f"Failed to parse variations: {e}")
        return [base_prompt] * count

    if not variations:
        logger.warning("Variation expansion returned no usable entries; reusing base prompt")
        return [base_prompt] * count

    if len(variations) < count:
        logger.warning(
            f"Variation expansion returned {len(variations)}/{count} entries; "
            f"padding with base prompt"
        )
        variations.extend([base_prompt] * (count - len(variations)))

    return variations[:count]
