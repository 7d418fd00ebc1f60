"""StreamingClient for Gemini streaming and plain API requests."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from requests.exceptions import RequestException, ReadTimeout, ConnectTimeout
import requests

from rich.console import Console
from stream.assembler import StreamAssembler
from stream.buffer import StreamBuffer
from stream.sink import TerminalSink


logger = logging.getLogger(__name__)

RETRYABLE_STATUS = 503


@dataclass
class StreamResult:
    """Outcome of one streamed request, after retries."""
    text: str
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    aborted: bool = False
    location_gathered: bool = False
    attempts: int = 0
    error_body: Optional[str] = None


def parse_error_message(body: Optional[str]) -> Optional[str]:
    """Extract `error.message` from an API error body.

    The JSON object may be preceded by other text. Returns the raw body when it
    holds no JSON object, and None when nothing useful can be extracted.
    """
    if not body:
        return None
    start = body.find("{")
    if start == -1:
        return body.strip() or None
    try:
        obj = json.loads(body[start:])
    except json.JSONDecodeError:
        return None
    error = obj.get("error") if isinstance(obj, dict) else None
    message = error.get("message") if isinstance(error, dict) else None
    return message if isinstance(message, str) else None


def proxies_for(proxy: Optional[str]) -> Optional[Dict[str, str]]:
    if not proxy:
        return None
    return {"http": proxy, "https": proxy}


class StreamingClient:
    """Sends requests with the whole-request 503 retry policy.

    Streaming responses are fed chunk by chunk into a fresh StreamAssembler per
    attempt, so a retried request never sees bytes from a failed one.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        timeout: float = 300.0,
        sleep: Callable[[float], None] = time.sleep,
        console: Optional[Console] = None,
    ):
        self.session = session or requests.Session()
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.sleep = sleep
        self.console = console or Console(stderr=True)

    def _announce_retry(self, attempt: int) -> None:
        self.console.print(
            f"\nAPI returned 503 (Service Unavailable), retrying... ({attempt}/{self.max_retries})",
            markup=False,
        )
        if attempt < self.max_retries:
            self.sleep(self.retry_delay)

    def stream(
        self,
        url: str,
        *,
        data,
        headers: Dict[str, str],
        decoder_factory: Callable[[], object],
        sink: Optional[TerminalSink] = None,
        buffer_factory: Callable[[], StreamBuffer] = StreamBuffer,
        proxy: Optional[str] = None,
    ) -> StreamResult:
        """POST `data` and stream the response through the assembler pipeline.

        Args:
            url: Endpoint URL
            data: Request body (bytes or a form dict)
            headers: Request headers
            decoder_factory: Builds the line decoder for each attempt
            sink: Where reconciled text is written
            buffer_factory: Builds the line buffer for each attempt
            proxy: Optional proxy URL for both schemes

        Returns:
            StreamResult for the last attempt made
        """
        result = StreamResult(text="", ok=False)
        for attempt in range(1, self.max_retries + 1):
            assembler = StreamAssembler(decoder_factory(), sink, buffer_factory())
            result = self._attempt(url, data, headers, assembler, proxy)
            result.attempts = attempt
            if result.ok or result.status_code != RETRYABLE_STATUS:
                break
            self._announce_retry(attempt)
        return result

    def _attempt(self, url: str, data, headers: Dict[str, str], assembler: StreamAssembler,
                 proxy: Optional[str]) -> StreamResult:
        aborted = False
        try:
            with self.session.post(
                url,
                data=data,
                headers=headers,
                stream=True,
                timeout=self.timeout,
                proxies=proxies_for(proxy),
            ) as r:
                status = r.status_code
                if status != 200:
                    return StreamResult(
                        text="",
                        ok=False,
                        status_code=status,
                        error=f"HTTP {status}",
                        error_body=r.text,
                    )
                for chunk in r.iter_content(chunk_size=None):
                    if not chunk:
                        continue
                    if assembler.feed(chunk) < len(chunk):
                        aborted = True
                        break
        except (ReadTimeout, ConnectTimeout) as e:
            return StreamResult(text=assembler.final_text, ok=False, error=f"Request timed out: {e}")
        except RequestException as e:
            return StreamResult(text=assembler.final_text, ok=False, error=f"Network error: {e}")

        text = assembler.finish()
        result = StreamResult(
            text=text,
            ok=True,
            status_code=status,
            aborted=aborted,
            location_gathered=assembler.location_gathered,
        )
        if assembler.resource_error:
            result.ok = False
            result.error = "Out of memory while reading the response"
        elif aborted and not assembler.location_gathered:
            result.ok = False
            result.error = "Transfer aborted"
        elif assembler.errors:
            result.ok = False
            result.error = assembler.errors[-1]
        logger.debug("Stream finished: status=%s ok=%s aborted=%s chars=%d", status, result.ok, aborted, len(text))
        return result

    def request(self, method: str, url: str, *, proxy: Optional[str] = None, **kwargs) -> requests.Response:
        """Plain request with the same 503 retry policy; transport errors propagate."""
        response = None
        for attempt in range(1, self.max_retries + 1):
            response = self.session.request(
                method, url, timeout=self.timeout, proxies=proxies_for(proxy), **kwargs
            )
            if response.status_code != RETRYABLE_STATUS:
                break
            self._announce_retry(attempt)
        return response
