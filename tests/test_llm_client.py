"""
Unit Tests — LLM Streaming Client & Backends
============================================
HTTP is served by httpx.MockTransport — no real API calls.
"""
import asyncio
import json
from functools import partial

import httpx
import pytest

from fixloop.llm.backends import Backend, build_backend, get_backup_backends, PROVIDER_DEFAULTS
from fixloop.llm.client import (
    StreamOptions,
    parse_sse_delta,
    start_text_stream,
)
from fixloop.llm.failover import stream_with_failover


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _sse(*deltas: str) -> bytes:
    events = [
        "data: " + json.dumps({"choices": [{"delta": {"content": d}}]}) + "\n\n"
        for d in deltas
    ]
    events.append("data: [DONE]\n\n")
    return "".join(events).encode("utf-8")


def _backend(name="primary", host="primary.example") -> Backend:
    return Backend(name=name, model=f"{name}-model", base_url=f"https://{host}/v1", api_key=f"key-{name}")


def _options(**overrides) -> StreamOptions:
    values = dict(
        backend=_backend(),
        system="You fix TypeScript.",
        messages=[{"role": "user", "content": "Fix it"}],
    )
    values.update(overrides)
    return StreamOptions(**values)


class BrokenStream(httpx.AsyncByteStream):
    async def __aiter__(self):
        yield b'data: {"choices": [{"delta": {"content": "half"}}]}\n\n'
        raise httpx.ReadError("connection reset")


# ---------------------------------------------------------------------------
# 1. SSE parsing
# ---------------------------------------------------------------------------
class TestParseSseDelta:

    def test_content_delta(self):
        assert parse_sse_delta('data: {"choices": [{"delta": {"content": "hi"}}]}') == "hi"

    @pytest.mark.parametrize("line", [
        "", ": keep-alive", "event: ping", "data: [DONE]",
        'data: {"choices": [{"delta": {"role": "assistant"}}]}',
        'data: {"choices": []}',
        "data: {not json",
    ])
    def test_non_content_lines(self, line):
        assert parse_sse_delta(line) is None


# ---------------------------------------------------------------------------
# 2. start_text_stream
# ---------------------------------------------------------------------------
class TestStartTextStream:

    def test_streams_text_and_sends_openai_payload(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=_sse("const ", "x = 1;"),
                                  headers={"content-type": "text/event-stream"})

        async def run_test():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                handle = await start_text_stream(_options(), http=http)
                assert handle.backend.name == "primary"
                return await handle.collect_text()

        assert asyncio.run(run_test()) == "const x = 1;"
        assert seen["url"] == "https://primary.example/v1/chat/completions"
        assert seen["auth"] == "Bearer key-primary"
        assert seen["body"]["stream"] is True
        assert seen["body"]["model"] == "primary-model"
        assert seen["body"]["messages"][0] == {"role": "system", "content": "You fix TypeScript."}
        assert seen["body"]["messages"][1] == {"role": "user", "content": "Fix it"}

    def test_error_status_fails_to_start(self):
        def handler(request):
            return httpx.Response(429, json={"error": "rate limited"})

        async def run_test():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                await start_text_stream(_options(), http=http)

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            asyncio.run(run_test())
        assert exc_info.value.response.status_code == 429

    def test_connection_error_fails_to_start(self):
        def handler(request):
            raise httpx.ConnectError("no route to host")

        async def run_test():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                await start_text_stream(_options(), http=http)

        with pytest.raises(httpx.ConnectError):
            asyncio.run(run_test())

    def test_mid_stream_error_notifies_observer_and_raises(self):
        observed = []

        def handler(request):
            return httpx.Response(200, stream=BrokenStream())

        async def run_test():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                handle = await start_text_stream(_options(on_error=observed.append), http=http)
                chunks = []
                with pytest.raises(httpx.ReadError):
                    async for chunk in handle:
                        chunks.append(chunk)
                assert handle.closed
                return chunks

        assert asyncio.run(run_test()) == ["half"]
        assert len(observed) == 1
        assert observed[0].backend_name == "primary"


# ---------------------------------------------------------------------------
# 3. Failover over HTTP
# ---------------------------------------------------------------------------
class TestFailoverOverHttp:

    def test_503_primary_fails_over_to_backup(self):
        observed = []

        def handler(request):
            if request.url.host == "primary.example":
                return httpx.Response(503, text="overloaded")
            return httpx.Response(200, content=_sse("fixed"))

        async def run_test():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                handle = await stream_with_failover(
                    _options(on_error=observed.append),
                    [_backend("backup", host="backup.example")],
                    start_stream=partial(start_text_stream, http=http),
                )
                return handle.backend.name, await handle.collect_text()

        assert asyncio.run(run_test()) == ("backup", "fixed")
        assert len(observed) == 1
        assert observed[0].error.response.status_code == 503


# ---------------------------------------------------------------------------
# 4. Backends
# ---------------------------------------------------------------------------
class TestBackends:

    def test_build_known_backend(self):
        backend = build_backend("groq", model="custom-model")
        assert backend.base_url == PROVIDER_DEFAULTS["groq"][0]
        assert backend.model == "custom-model"
        assert backend.chat_completions_url.endswith("/openai/v1/chat/completions")

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            build_backend("no-such-provider")

    def test_backups_keep_order_and_drop_primary_keyless_unknown(self, monkeypatch):
        monkeypatch.setitem(PROVIDER_DEFAULTS, "groq", ("https://g/v1", "g-model", "gk"))
        monkeypatch.setitem(PROVIDER_DEFAULTS, "openrouter", ("https://o/v1", "o-model", "ok"))
        monkeypatch.setitem(PROVIDER_DEFAULTS, "gemini", ("https://ge/v1", "ge-model", ""))

        backups = get_backup_backends(
            ["openrouter", "openai", "gemini", "mystery", "groq"], primary_name="openai",
        )

        assert [b.name for b in backups] == ["openrouter", "groq"]
