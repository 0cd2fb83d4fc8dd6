"""Command-line entry point for the forge."""

import argparse
import asyncio
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from tqdm import tqdm

from models.asset import AssetKind, GeneratedAsset, GenerationRun, RunStatus
from services.asset_exporter import EXPORT_FORMATS, export_asset
from services.asset_fetcher import AssetFetcher
from services.credentials import StaticCredentialBroker
from services.gemini_client import GeminiClient
from services.generation_orchestrator import GenerationOrchestrator
from services.quota_service import InMemoryQuotaService, SQLiteQuotaService
from services.variation_expander import VariationExpander
from utils.config import load_config, setup_logging, validate_config

logger = logging.getLogger(__name__)


class ProgressBarCallback:
    """Progress bar that also writes each asset to disk as soon as it lands."""

    def __init__(self, output_dir: Path, fmt: str):
        self.output_dir = output_dir
        self.fmt = fmt
        self.written: list[Path] = []
        self.bar = tqdm(total=100, desc="Forging", unit="%", leave=True)

    async def __call__(self, run: GenerationRun, asset: Optional[GeneratedAsset]) -> None:
        if run.status == RunStatus.EXPANDING:
            self.bar.set_description("Expanding variations")
        elif run.status == RunStatus.GENERATING:
            self.bar.set_description(f"Forging {run.request.kind.value}")

        if asset is not None:
            exported = await asyncio.to_thread(export_asset, asset, self.fmt)
            path = self.output_dir / exported.filename
            path.write_bytes(exported.data)
            self.written.append(path)
            self.bar.set_postfix(saved=len(self.written))

        self.bar.n = run.progress_percent
        self.bar.refresh()

    def close(self):
        self.bar.close()


class ForgeApp:
    """Runs one generation from the terminal."""

    def __init__(self, args: argparse.Namespace):
        self.args = args
        self.config = load_config()

    async def run(self) -> int:
        """Execute the run; returns the process exit code."""
        problems = validate_config(self.config)
        if problems:
            for problem in problems:
                logger.error(problem)
            return 2

        kind = AssetKind(self.args.type)
        output_dir = Path(self.args.out)
        output_dir.mkdir(parents=True, exist_ok=True)

        if self.args.no_quota:
            quota = InMemoryQuotaService(limit=sys.maxsize)
        else:
            quota = SQLiteQuotaService(
                db_path=self.config["quota_db_path"],
                limit=self.config["daily_generation_limit"],
            )
            await quota.connect()

        credentials = StaticCredentialBroker(self.config["gemini_api_key"])
        gemini = GeminiClient(
            credentials=credentials,
            text_model=self.config["text_model"],
            image_model=self.config["image_model"],
            video_model=self.config["video_model"],
        )

        try:
            if not await quota.check_and_consume(date.today()):
                logger.error(
                    f"Daily generation limit reached ({quota.limit}). Try again tomorrow "
                    "or pass --no-quota."
                )
                return 3

            orchestrator = GenerationOrchestrator(
                expander=VariationExpander(
                    gemini,
                    max_attempts=self.config["retry_max_attempts"],
                    initial_delay_ms=self.config["retry_initial_delay_ms"],
                ),
                fetcher=AssetFetcher(
                    gemini,
                    credentials,
                    max_attempts=self.config["retry_max_attempts"],
                    initial_delay_ms=self.config["retry_initial_delay_ms"],
                    poll_interval_seconds=self.config["video_poll_interval_seconds"],
                    transparency_threshold=self.config["transparency_threshold"],
                ),
                credentials=credentials,
                pacing_delay_ms=self.config["pacing_delay_ms"],
            )

            progress = ProgressBarCallback(output_dir, self.args.format)
            try:
                run = await orchestrator.run_generation(
                    self.args.prompt, kind, self.args.count, on_progress=progress
                )
            finally:
                progress.close()

            if run.status == RunStatus.FAILED:
                logger.error(run.error_message)
                if progress.written:
                    logger.info(f"Kept {len(progress.written)} assets in {output_dir}")
                return 1

            logger.info(
                f"Forged {len(run.completed_assets)}/{run.request.count} "
                f"{kind.value} assets into {output_dir}"
            )
            return 0
        finally:
            await gemini.close()
            if isinstance(quota, SQLiteQuotaService):
                await quota.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Forge themed design assets with Gemini",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  forge "red balloon" --type Sticker          # 20 transparent stickers
  forge "neon city" --type Photo --count 5 --format jpeg
  forge "spinning coin" --type "GIF (Motion)" --count 2
        """,
    )
    parser.add_argument("prompt", help="Theme to generate variations of")
    parser.add_argument(
        "-t", "--type",
        default=AssetKind.STICKER.value,
        choices=[kind.value for kind in AssetKind],
        help="Asset type (default: Sticker)",
    )
    parser.add_argument(
        "-n", "--count",
        type=int,
        default=None,
        help="Number of variations (default: VARIATION_COUNT or 20)",
    )
    parser.add_argument("-o", "--out", default="./forge", help="Output directory")
    parser.add_argument(
        "-f", "--format",
        default="png",
        choices=sorted(EXPORT_FORMATS),
        help="Export format for static assets (motion assets are always MP4)",
    )
    parser.add_argument(
        "--no-quota",
        action="store_true",
        help="Skip the daily generation limit",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    return parser


def main():
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args()

    config = load_config()
    setup_logging(args.log_level or config["log_level"])
    if args.count is None:
        args.count = config["variation_count"]
    if args.count < 1:
        parser.error("--count must be at least 1")

    app = ForgeApp(args)

    try:
        exit_code = asyncio.run(app.run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        exit_code = 130
    except Exception as e:
        logger.error(f"Application error: {e}")
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
