"""Service singletons and dependency injection for the Forge API."""

from typing import Optional

from services.asset_fetcher import AssetFetcher
from services.credentials import CredentialBroker, EnvCredentialBroker
from services.gemini_client import GeminiClient
from services.generation_orchestrator import GenerationOrchestrator
from services.quota_service import QuotaService, SQLiteQuotaService
from services.variation_expander import VariationExpander
from utils.config import PROJECT_ROOT, load_config

# Service singletons
_credentials: Optional[CredentialBroker] = None
_gemini_client: Optional[GeminiClient] = None
_expander: Optional[VariationExpander] = None
_fetcher: Optional[AssetFetcher] = None
_orchestrator: Optional[GenerationOrchestrator] = None
_quota_service: Optional[QuotaService] = None


def get_credentials() -> CredentialBroker:
    """Get or create the credential broker."""
    global _credentials
    if _credentials is None:
        config = load_config()
        _credentials = EnvCredentialBroker(
            api_key=config.get("gemini_api_key"),
            env_file=PROJECT_ROOT / ".env",
        )
    return _credentials


def get_gemini_client() -> GeminiClient:
    """Get or create the Gemini client instance."""
    global _gemini_client
    if _gemini_client is None:
        config = load_config()
        _gemini_client = GeminiClient(
            credentials=get_credentials(),
            text_model=config["text_model"],
            image_model=config["image_model"],
            video_model=config["video_model"],
        )
    return _gemini_client


def get_expander() -> VariationExpander:
    """Get or create the variation expander instance."""
    global _expander
    if _expander is None:
        config = load_config()
        _expander = VariationExpander(
            gemini=get_gemini_client(),
            max_attempts=config["retry_max_attempts"],
            initial_delay_ms=config["retry_initial_delay_ms"],
        )
    return _expander


def get_fetcher() -> AssetFetcher:
    """Get or create the asset fetcher instance."""
    global _fetcher
    if _fetcher is None:
        config = load_config()
        _fetcher = AssetFetcher(
            gemini=get_gemini_client(),
            credentials=get_credentials(),
            max_attempts=config["retry_max_attempts"],
            initial_delay_ms=config["retry_initial_delay_ms"],
            poll_interval_seconds=config["video_poll_interval_seconds"],
            transparency_threshold=config["transparency_threshold"],
        )
    return _fetcher


def get_orchestrator() -> GenerationOrchestrator:
    """Get or create the generation orchestrator instance."""
    global _orchestrator
    if _orchestrator is None:
        config = load_config()
        _orchestrator = GenerationOrchestrator(
            expander=get_expander(),
            fetcher=get_fetcher(),
            credentials=get_credentials(),
            pacing_delay_ms=config["pacing_delay_ms"],
        )
    return _orchestrator


def get_quota_service() -> QuotaService:
    """Get or create the quota service (connected in the app lifespan)."""
    global _quota_service
    if _quota_service is None:
        config = load_config()
        _quota_service = SQLiteQuotaService(
            db_path=config["quota_db_path"],
            limit=config["daily_generation_limit"],
        )
    return _quota_service


def override_services(
    *,
    credentials: Optional[CredentialBroker] = None,
    gemini_client: Optional[GeminiClient] = None,
    orchestrator: Optional[GenerationOrchestrator] = None,
    quota_service: Optional[QuotaService] = None,
) -> None:
    """Replace singletons (tests and embedding)."""
    global _credentials, _gemini_client, _orchestrator, _quota_service
    if credentials is not None:
        _credentials = credentials
    if gemini_client is not None:
        _gemini_client = gemini_client
    if orchestrator is not None:
        _orchestrator = orchestrator
    if quota_service is not None:
        _quota_service = quota_service


def reset_services() -> None:
    """Drop all singletons so the next call rebuilds them from config."""
    global _credentials, _gemini_client, _expander, _fetcher, _orchestrator, _quota_service
    _credentials = None
    _gemini_client = None
    _expander = None
    _fetcher = None
    _orchestrator = None
    _quota_service = None


async def close_services() -> None:
    """Release network clients and the quota database."""
    if _gemini_client is not None:
        await _gemini_client.close()
    close = getattr(_quota_service, "close", None)
    if close is not None:
        await close()
