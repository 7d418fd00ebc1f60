"""Official Gemini API: request payloads, headers, and auxiliary endpoints."""

from __future__ import annotations

import gzip
import json
import logging
from typing import Dict, List, Optional, Tuple

from requests.exceptions import RequestException

from stream.decoders import SseDecoder
from streaming_client import StreamingClient, parse_error_message


logger = logging.getLogger(__name__)

API_BASE = "https://generativelanguage.googleapis.com/v1beta"
STREAM_ENDPOINT = "streamGenerateContent?alt=sse"
COUNT_TOKENS_ENDPOINT = "countTokens"
MODELS_PAGE_SIZE = 50


class GeminiAPIError(Exception):
    """A non-streaming API call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def endpoint_url(model: str, endpoint: str) -> str:
    return f"{API_BASE}/models/{model}:{endpoint}"


def build_payload(contents: List[dict], settings) -> dict:
    """Construct a generateContent request body.

    `contents` is the history in wire form (role + parts). Sampling keys topK and
    topP are only sent when set to a positive value.
    """
    body: Dict = {}
    if settings.system_prompt:
        body["systemInstruction"] = {"parts": [{"text": settings.system_prompt}]}
    body["contents"] = contents

    tools = []
    if settings.url_context:
        tools.append({"urlContext": {}})
    if settings.google_grounding:
        tools.append({"googleSearch": {}})
    if tools:
        body["tools"] = tools

    generation: Dict = {
        "temperature": settings.temperature,
        "maxOutputTokens": settings.max_output_tokens,
        "seed": settings.seed,
    }
    if settings.top_k > 0:
        generation["topK"] = settings.top_k
    if settings.top_p > 0:
        generation["topP"] = settings.top_p
    generation["thinkingConfig"] = {"thinkingBudget": settings.thinking_budget}
    body["generationConfig"] = generation
    return body


def encode_body(payload: dict) -> bytes:
    """Serialize compactly and gzip the request body."""
    raw = json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return gzip.compress(raw)


def build_headers(settings, *, compressed: bool = True) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    if compressed:
        headers["Content-Type"] = "application/json"
        headers["Content-Encoding"] = "gzip"
    headers["x-goog-api-key"] = settings.api_key
    if settings.origin and settings.origin != "default":
        headers["Origin"] = settings.origin
    return headers


def make_decoder() -> SseDecoder:
    return SseDecoder()


def stream_url(settings) -> str:
    return endpoint_url(settings.model, STREAM_ENDPOINT)


def count_tokens(client: StreamingClient, contents: List[dict], settings) -> Optional[int]:
    """Return the total token count for `contents`, or None if it cannot be fetched."""
    payload = build_payload(contents, settings)
    payload.pop("generationConfig", None)
    payload.pop("tools", None)

    try:
        response = client.request(
            "POST",
            endpoint_url(settings.model, COUNT_TOKENS_ENDPOINT),
            data=encode_body(payload),
            headers=build_headers(settings),
            proxy=settings.proxy,
        )
    except RequestException as e:
        logger.warning("Token count request failed: %s", e)
        return None

    if response.status_code != 200:
        logger.warning(
            "Token count failed (HTTP %s): %s",
            response.status_code,
            parse_error_message(response.text) or "no details",
        )
        return None
    try:
        total = response.json().get("totalTokens")
    except ValueError:
        return None
    return total if isinstance(total, int) else None


def list_models(client: StreamingClient, settings) -> List[Tuple[str, str]]:
    """Fetch every available model as (name, display name), following pagination.

    Raises:
        GeminiAPIError: On a transport failure, a non-200 response, or an
            unparseable page
    """
    models: List[Tuple[str, str]] = []
    page_token = ""
    while True:
        params = {"pageSize": str(MODELS_PAGE_SIZE)}
        if page_token:
            params["pageToken"] = page_token
        try:
            response = client.request(
                "GET",
                f"{API_BASE}/models",
                params=params,
                headers=build_headers(settings, compressed=False),
                proxy=settings.proxy,
            )
        except RequestException as e:
            raise GeminiAPIError(f"Network error: {e}") from e

        if response.status_code != 200:
            detail = parse_error_message(response.text)
            message = f"API call to list models failed (Last HTTP code: {response.status_code})"
            if detail:
                message += f": {detail}"
            raise GeminiAPIError(message, response.status_code)

        try:
            page = response.json()
        except ValueError as e:
            raise GeminiAPIError("Failed to parse JSON response for models list") from e

        for item in page.get("models") or []:
            name = item.get("name")
            if not isinstance(name, str):
                continue
            if name.startswith("models/"):
                name = name[len("models/"):]
            display = item.get("displayName")
            models.append((name, display if isinstance(display, str) else "N/A"))

        page_token = page.get("nextPageToken") or ""
        if not isinstance(page_token, str) or not page_token:
            break
    return models
