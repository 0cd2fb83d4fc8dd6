"""Credential brokers for the Gemini/Veo API key."""

import logging
import os
from pathlib import Path
from typing import Optional, Protocol

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class CredentialBroker(Protocol):
    """Supplies the service credential and can ask for a new one."""

    def get_credential(self) -> Optional[str]: ...

    def has_credential(self) -> bool: ...

    def prompt_credential_selection(self) -> None: ...


class EnvCredentialBroker:
    """Reads the API key from the environment.

    Re-selection reloads the project's ``.env`` file with override enabled,
    so an operator can rotate a revoked key without restarting the server.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        env_var: str = "GEMINI_API_KEY",
        env_file: Optional[Path] = None,
    ):
        self.env_var = env_var
        self.env_file = env_file
        self._api_key = api_key or os.getenv(env_var) or None

    def get_credential(self) -> Optional[str]:
        return self._api_key

    def has_credential(self) -> bool:
        return bool(self._api_key)

    def prompt_credential_selection(self) -> None:
        if self.env_file is not None:
            load_dotenv(self.env_file, override=True)
        refreshed = os.getenv(self.env_var) or None

        if refreshed and refreshed != self._api_key:
            logger.info(f"Reloaded {self.env_var} from environment")
        elif not refreshed:
            logger.warning(f"{self.env_var} is not set; motion generation will fail")
        self._api_key = refreshed


class StaticCredentialBroker:
    """Fixed key, selection is a no-op (CLI and tests)."""

    def __init__(self, api_key: Optional[str]):
        self._api_key = api_key

    def get_credential(self) -> Optional[str]:
        return self._api_key

    def has_credential(self) -> bool:
        return bool(self._api_key)

    def prompt_credential_selection(self) -> None:
        logger.info("Credential selection requested; static broker keeps its key")
