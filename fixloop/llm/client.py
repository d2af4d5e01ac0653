"""
LLM Streaming Client
====================
Opens streaming chat completions against an OpenAI-compatible backend.

start_text_stream() is the generation API the failover orchestrator
drives. It returns only once the backend has ACCEPTED the request
(2xx status with the body still open), and raises otherwise, so a
backend that cannot start a response is distinguishable from a stream
that breaks part-way through.

Start Failures (raised):
    - Connection errors, timeouts (httpx.TransportError)
    - Non-2xx status, including 429 rate limits (httpx.HTTPStatusError)

Mid-Stream Failures:
    - Reported to StreamOptions.on_error, then re-raised to the consumer.
    - Never replayed against another backend.
"""
import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx

from fixloop.llm.backends import Backend

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request Options
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class StreamErrorEvent:
    """What an on_error observer receives."""
    error: BaseException
    backend_name: str = ""


ErrorObserver = Callable[[StreamErrorEvent], None]


@dataclass(frozen=True)
class StreamOptions:
    """One logical generation request."""
    backend: Backend
    messages: List[Dict[str, str]] = field(default_factory=list)
    system: Optional[str] = None
    temperature: float = 0.1
    max_tokens: int = 8192
    on_error: Optional[ErrorObserver] = None

    def with_backend(self, backend: Backend, on_error: Optional[ErrorObserver] = None) -> "StreamOptions":
        """Identical request against another backend, with its own observer."""
        return replace(self, backend=backend, on_error=on_error)

    def to_payload(self) -> Dict[str, Any]:
        messages = list(self.messages)
        if self.system:
            messages.insert(0, {"role": "system", "content": self.system})
        return {
            "model": self.backend.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": True,
        }


# ---------------------------------------------------------------------------
# SSE Parsing
# ---------------------------------------------------------------------------
def parse_sse_delta(line: str) -> Optional[str]:
    """
    Extract the text delta from one server-sent-event line.

    Returns None for keep-alives, comments, non-data lines, chunks with no
    content and the terminating ``[DONE]`` marker.
    """
    line = line.strip()
    if not line.startswith("data:"):
        return None
    data = line[len("data:"):].strip()
    if not data or data == "[DONE]":
        return None
    try:
        chunk = json.loads(data)
        choices = chunk.get("choices") or []
        if choices:
            return (choices[0].get("delta") or {}).get("content") or None
    except (json.JSONDecodeError, AttributeError, TypeError):
        logger.warning("Unparseable stream chunk: %s", data[:200])
    return None


def _is_done(line: str) -> bool:
    return line.strip() == "data: [DONE]"


# ---------------------------------------------------------------------------
# Stream Handle
# ---------------------------------------------------------------------------
class StreamHandle:
    """
    An accepted stream, bound to the backend that accepted it.

    Usage:
        handle = await start_text_stream(options)
        async for text in handle:
            ...
        # or: text = await handle.collect_text()
    """

    def __init__(
        self,
        backend: Backend,
        response: httpx.Response,
        on_error: Optional[ErrorObserver] = None,
        owned_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.backend = backend
        self._response = response
        self._on_error = on_error
        self._owned_client = owned_client
        self.closed = False

    def __aiter__(self) -> AsyncIterator[str]:
        return self.text_stream()

    async def text_stream(self) -> AsyncIterator[str]:
        try:
            async for line in self._response.aiter_lines():
                if _is_done(line):
                    break
                delta = parse_sse_delta(line)
                if delta:
                    yield delta
        except httpx.HTTPError as e:
            logger.error("Stream from %s failed mid-transmission: %s", self.backend.name, e)
            if self._on_error:
                self._on_error(StreamErrorEvent(error=e, backend_name=self.backend.name))
            raise
        finally:
            await self.aclose()

    async def collect_text(self) -> str:
        return "".join([chunk async for chunk in self.text_stream()])

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self._response.aclose()
        if self._owned_client is not None:
            await self._owned_client.aclose()


# ---------------------------------------------------------------------------
# Start
# ---------------------------------------------------------------------------
async def start_text_stream(
    options: StreamOptions,
    http: Optional[httpx.AsyncClient] = None,
) -> StreamHandle:
    """
    Open a streaming chat completion and wait until the backend accepts it.

    Parameters
    ----------
    options : StreamOptions
        Request, including the backend to send it to.
    http : httpx.AsyncClient, optional
        Shared client. When omitted a client is created and owned by the
        returned handle.

    Raises
    ------
    httpx.HTTPStatusError
        Backend answered with a non-2xx status.
    httpx.TransportError
        Backend could not be reached.
    """
    backend = options.backend
    owned_client = None
    if http is None:
        http = owned_client = httpx.AsyncClient(timeout=httpx.Timeout(backend.timeout_seconds))

    headers = {
        "Authorization": f"Bearer {backend.api_key}",
        "Content-Type": "application/json",
        "Accept": "text/event-stream",
    }
    request = http.build_request(
        "POST", backend.chat_completions_url, json=options.to_payload(), headers=headers,
    )

    try:
        response = await http.send(request, stream=True)
        if response.is_error:
            await response.aread()
            await response.aclose()
            response.raise_for_status()
    except BaseException:
        if owned_client is not None:
            await owned_client.aclose()
        raise

    logger.debug("Stream accepted by %s (%s)", backend.name, backend.model)
    return StreamHandle(backend, response, on_error=options.on_error, owned_client=owned_client)
