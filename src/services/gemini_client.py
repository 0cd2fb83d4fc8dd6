"""Gemini / Veo client - the single boundary where upstream errors are classified.

Text generation goes through the ``google-genai`` SDK. Image and video
generation use the REST endpoints directly over ``httpx``. Both paths turn
failures into ``utils.retry`` error types based on HTTP status and the API's
``error.status`` field.
"""

import base64
import logging
import time
from typing import Optional

import httpx
from google.genai import Client, errors, types

from models.asset import AssetContent
from services.credentials import CredentialBroker
from utils.retry import (
    APIRateLimitError,
    AuthenticationError,
    NetworkError,
    NoOutputError,
    NotFoundError,
    TemporaryServiceError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

DEFAULT_TEXT_MODEL = "gemini-3-flash-preview"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_VIDEO_MODEL = "veo-3.1-fast-generate-preview"

TRANSIENT_STATUSES = frozenset({"UNAVAILABLE", "INTERNAL", "DEADLINE_EXCEEDED"})

STRING_ARRAY_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    items=types.Schema(type=types.Type.STRING),
)


def classify_error(
    status_code: Optional[int],
    status: Optional[str] = None,
    message: str = "",
) -> UpstreamError:
    """Map an upstream failure to a classified error.

    Args:
        status_code: HTTP status code, if a response was received
        status: Google API status string (e.g. ``RESOURCE_EXHAUSTED``)
        message: Human readable detail, carried through untouched

    Returns:
        An ``UpstreamError`` subclass instance (not raised)
    """
    detail = message or f"HTTP {status_code}"
    if status_code == 429 or status == "RESOURCE_EXHAUSTED":
        return APIRateLimitError(detail, status_code)
    if status_code in (401, 403) or status in ("UNAUTHENTICATED", "PERMISSION_DENIED"):
        return AuthenticationError(detail, status_code)
    if status_code == 404 or status == "NOT_FOUND":
        return NotFoundError(detail, status_code)
    if (status_code is not None and status_code >= 500) or status in TRANSIENT_STATUSES:
        return TemporaryServiceError(detail, status_code)
    return UpstreamError(detail, status_code)


def classify_http_response(response: httpx.Response) -> UpstreamError:
    """Classify a non-2xx REST response using its JSON error envelope."""
    status = None
    message = ""
    try:
        error = response.json().get("error", {})
        status = error.get("status")
        message = error.get("message", "")
    except Exception:
        message = response.text
    return classify_error(response.status_code, status, message)


def classify_genai_error(error: errors.APIError) -> UpstreamError:
    return classify_error(error.code, error.status, error.message or str(error))


class GeminiClient:
    """Async access to Gemini text/image generation and Veo video jobs."""

    def __init__(
        self,
        credentials: CredentialBroker,
        text_model: str = DEFAULT_TEXT_MODEL,
        image_model: str = DEFAULT_IMAGE_MODEL,
        video_model: str = DEFAULT_VIDEO_MODEL,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the client.

        Args:
            credentials: Broker supplying the API key (read per request)
            text_model: Model used for structured text output
            image_model: Model used for image generation
            video_model: Veo model used for motion assets
            http_client: Optional preconfigured httpx client
        """
        self.credentials = credentials
        self.text_model = text_model
        self.image_model = image_model
        self.video_model = video_model
        # Long timeout for image generation (can take a while)
        self.client = http_client or httpx.AsyncClient(timeout=120.0)
        self._genai: Optional[Client] = None
        self._genai_key: Optional[str] = None

    def _api_key(self) -> str:
        api_key = self.credentials.get_credential()
        if not api_key:
            raise AuthenticationError("GEMINI_API_KEY not configured. Set it in your .env file.")
        return api_key

    def _headers(self) -> dict:
        return {"x-goog-api-key": self._api_key(), "Content-Type": "application/json"}

    def _genai_client(self) -> Client:
        api_key = self._api_key()
        if self._genai is None or self._genai_key != api_key:
            self._genai = Client(api_key=api_key)
            self._genai_key = api_key
        return self._genai

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(f"Gemini transport error: {e}")
        if response.is_error:
            raise classify_http_response(response)
        return response

    # =========================================================================
    # Text (structured output)
    # =========================================================================

    async def generate_string_list(self, prompt: str) -> str:
        """Ask the text model for a JSON string array.

        Returns:
            Raw response text (parsing is left to the caller)
        """
        try:
            response = await self._genai_client().aio.models.generate_content(
                model=self.text_model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=STRING_ARRAY_SCHEMA,
                ),
            )
        except errors.APIError as e:
            raise classify_genai_error(e)
        except httpx.TransportError as e:
            raise NetworkError(f"Gemini transport error: {e}")
        return response.text or ""

    # =========================================================================
    # Images
    # =========================================================================

    async def generate_image(self, prompt: str, aspect_ratio: Optional[str] = "1:1") -> AssetContent:
        """Generate one image and return the first inline payload.

        Raises:
            NoOutputError: If the response carries no inline image
        """
        url = f"{GEMINI_API_BASE}/models/{self.image_model}:generateContent"
        generation_config: dict = {"responseModalities": ["IMAGE"]}
        if aspect_ratio:
            generation_config["imageConfig"] = {"aspectRatio": aspect_ratio}
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }

        start_time = time.time()
        response = await self._request("POST", url, headers=self._headers(), json=payload)
        generation_time_ms = int((time.time() - start_time) * 1000)

        content = extract_inline_image(response.json())
        if content is None:
            raise NoOutputError("Failed to generate image data")

        logger.info(f"Gemini generated image ({content.mime_type}) in {generation_time_ms}ms")
        return content

    # =========================================================================
    # Video (Veo long-running operations)
    # =========================================================================

    async def start_video_job(self, prompt: str) -> dict:
        """Submit a Veo job; returns the operation resource."""
        url = f"{GEMINI_API_BASE}/models/{self.video_model}:predictLongRunning"
        payload = {
            "instances": [{"prompt": prompt}],
            "parameters": {
                "sampleCount": 1,
                "resolution": "720p",
                "aspectRatio": "1:1",
            },
        }
        response = await self._request("POST", url, headers=self._headers(), json=payload)
        operation = response.json()
        logger.info(f"Started Veo job {operation.get('name')}")
        return operation

    async def get_video_job(self, operation: dict) -> dict:
        name = operation.get("name")
        if not name:
            raise NoOutputError("Veo operation has no name")
        response = await self._request(
            "GET", f"{GEMINI_API_BASE}/{name}", headers=self._headers()
        )
        return response.json()

    async def download_video(self, uri: str) -> AssetContent:
        response = await self._request(
            "GET", uri, headers={"x-goog-api-key": self._api_key()}, follow_redirects=True
        )
        mime_type = response.headers.get("content-type", "video/mp4").split(";")[0]
        return AssetContent(data=response.content, mime_type=mime_type or "video/mp4")

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()


def extract_inline_image(result_data: dict) -> Optional[AssetContent]:
    """Pull the first ``inlineData`` part out of a generateContent response."""
    candidates = result_data.get("candidates") or []
    if not candidates:
        return None
    parts = (candidates[0].get("content") or {}).get("parts") or []
    for part in parts:
        inline_data = part.get("inlineData") or {}
        if inline_data.get("data"):
            return AssetContent(
                data=base64.b64decode(inline_data["data"]),
                mime_type=inline_data.get("mimeType", "image/png"),
            )
    return None


def extract_video_uri(operation: dict) -> Optional[str]:
    """First generated sample URI from a finished Veo operation, if any."""
    if operation.get("error"):
        error = operation["error"]
        # operation errors carry gRPC codes, not HTTP statuses
        raise classify_error(None, error.get("status"), error.get("message", ""))
    samples = (
        (operation.get("response") or {})
        .get("generateVideoResponse", {})
        .get("generatedSamples")
        or []
    )
    if not samples:
        return None
    return (samples[0].get("video") or {}).get("uri")
