"""
Tests for GeminiClient: endpoint fallback, retries, rate limiting and timeouts.

HTTP traffic goes through httpx.MockTransport; the client's sleep is an
AsyncMock so backoff delays are recorded instead of waited out.
"""
import asyncio
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from smart_search.config import AIConfig
from smart_search.errors import (
    AllEndpointsFailedError,
    ConnectivityUnavailableError,
    InvalidConfigurationError,
    MalformedEnvelopeError,
    RequestTimeoutError,
)
from smart_search.gemini_client import (
    GeminiClient,
    ServiceMode,
    build_payload,
    network_backoff,
    rate_limit_backoff,
)
from smart_search.models import SmartSearchResult
from smart_search.prompts import RequestKind, chat_prompt, enhance_query_prompt

VALID_KEY = "AIzaSyTestKey1234567890"
ENDPOINTS = [
    "https://gemini.test/models/first:generateContent",
    "https://gemini.test/models/second:generateContent",
    "https://gemini.test/models/third:generateContent",
]


def gemini_body(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def endpoint_of(request):
    return str(request.url).split("?")[0]


def make_client(handler, rng=None, **config_overrides):
    settings = {"gemini_api_key": VALID_KEY, "endpoints": ENDPOINTS}
    settings.update(config_overrides)
    config = AIConfig(**settings)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    sleep = AsyncMock()
    client = GeminiClient(config, http_client=http_client, sleep=sleep, rng=rng)
    return client, sleep


class Recorder:
    """Handler that answers from a list of (status, body) and records requests"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        status, body = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return httpx.Response(status, json=body)

    @property
    def endpoints(self):
        return [endpoint_of(r) for r in self.requests]


def test_backoff_schedule(first_choice_rng):
    assert rate_limit_backoff(0, first_choice_rng) == 2.5
    assert rate_limit_backoff(1, first_choice_rng) == 4.5
    assert rate_limit_backoff(2, first_choice_rng) == 8.5
    assert network_backoff(first_choice_rng) == 1.5


def test_payload_shape():
    assert build_payload("hi") == {"contents": [{"parts": [{"text": "hi"}]}]}


@pytest.mark.asyncio
async def test_success_sends_key_and_payload():
    recorder = Recorder((200, gemini_body("model says hi")))
    client, _ = make_client(recorder)

    text = await client.make_api_request("hello", RequestKind.CHAT)

    assert text == "model says hi"
    request = recorder.requests[0]
    assert endpoint_of(request) == ENDPOINTS[0]
    assert request.url.params["key"] == VALID_KEY
    assert request.headers["content-type"] == "application/json"
    assert json.loads(request.content) == build_payload("hello")


@pytest.mark.asyncio
async def test_falls_back_to_next_endpoint_on_server_error():
    recorder = Recorder(
        (500, {"error": "boom"}),
        (200, gemini_body("from second")),
    )
    client, sleep = make_client(recorder)

    text = await client.make_api_request("hello", RequestKind.CHAT)

    assert text == "from second"
    assert recorder.endpoints == ENDPOINTS[:2]
    sleep.assert_not_awaited()
    assert client.mode is ServiceMode.LIVE


@pytest.mark.asyncio
async def test_all_endpoints_failing_raises_with_last_status():
    recorder = Recorder((503, {"error": "unavailable"}))
    client, _ = make_client(recorder)

    with pytest.raises(AllEndpointsFailedError) as exc_info:
        await client.make_api_request("hello", RequestKind.CHAT)

    assert recorder.endpoints == ENDPOINTS
    assert exc_info.value.last_status == 503
    assert "503" in str(exc_info.value)
    assert not exc_info.value.rate_limited
    assert client.mode is ServiceMode.LIVE


@pytest.mark.asyncio
async def test_rate_limit_exhausts_retries_then_forces_mock(first_choice_rng):
    # The endpoint would recover on the fourth call; the retry budget stops at three
    recorder = Recorder(
        (429, {"error": "quota"}),
        (429, {"error": "quota"}),
        (429, {"error": "quota"}),
        (200, gemini_body("too late")),
    )
    client, sleep = make_client(recorder, rng=first_choice_rng)

    response = await client.make_request_with_retry(ENDPOINTS[0], "hello")

    assert response is None
    assert len(recorder.requests) == 3
    assert [call.args[0] for call in sleep.await_args_list] == [2.5, 4.5]
    assert client.mode is ServiceMode.FORCED_MOCK
    assert client.use_mock_data


@pytest.mark.asyncio
async def test_rate_limit_recovers_within_budget(first_choice_rng):
    recorder = Recorder(
        (429, {"error": "quota"}),
        (200, gemini_body("recovered")),
    )
    client, sleep = make_client(recorder, rng=first_choice_rng)

    response = await client.make_request_with_retry(ENDPOINTS[0], "hello")

    assert response.status_code == 200
    sleep.assert_awaited_once_with(2.5)
    assert client.mode is ServiceMode.LIVE


@pytest.mark.asyncio
async def test_rate_limited_request_answers_with_mock_output():
    recorder = Recorder((429, {"error": "quota"}))
    client, _ = make_client(recorder)

    result = await client.make_api_request(enhance_query_prompt("iphone 15"), RequestKind.SMART_SEARCH)

    assert isinstance(result, SmartSearchResult)
    assert result.enhanced_query == "iphone 15 best deals 2024"
    # Only the first endpoint is tried; the rest of the process stays on mock data
    assert set(recorder.endpoints) == {ENDPOINTS[0]}

    calls_before = len(recorder.requests)
    await client.make_api_request("hello again", RequestKind.CHAT)
    assert len(recorder.requests) == calls_before


def test_mock_mode_never_reverts():
    client, _ = make_client(Recorder((200, gemini_body("unused"))))

    client.force_mock_mode()
    client.force_mock_mode("again")

    assert client.mode is ServiceMode.FORCED_MOCK
    assert not client.enabled


@pytest.mark.asyncio
async def test_transport_error_is_retried_once(first_choice_rng):
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("connection reset", request=request)
        return httpx.Response(200, json=gemini_body("second try"))

    client, sleep = make_client(handler, rng=first_choice_rng)

    text = await client.make_api_request("hello", RequestKind.CHAT)

    assert text == "second try"
    assert len(calls) == 2
    sleep.assert_awaited_once_with(1.5)


@pytest.mark.asyncio
async def test_persistent_transport_errors_exhaust_every_endpoint():
    calls = []

    def handler(request):
        calls.append(endpoint_of(request))
        raise httpx.ConnectError("network unreachable", request=request)

    client, sleep = make_client(handler)

    with pytest.raises(AllEndpointsFailedError) as exc_info:
        await client.make_api_request("hello", RequestKind.CHAT)

    # One retry per endpoint, then move on
    assert calls == [ENDPOINTS[0], ENDPOINTS[0], ENDPOINTS[1], ENDPOINTS[1], ENDPOINTS[2], ENDPOINTS[2]]
    assert sleep.await_count == 3
    assert exc_info.value.last_status is None
    assert "ConnectError" in str(exc_info.value)


@pytest.mark.asyncio
async def test_malformed_envelope_is_rejected():
    recorder = Recorder((200, {"candidates": []}))
    client, _ = make_client(recorder)

    with pytest.raises(MalformedEnvelopeError):
        await client.make_api_request("hello", RequestKind.CHAT)

    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_non_text_part_is_rejected():
    client, _ = make_client(Recorder((200, {"candidates": [{"content": {"parts": [{"text": 42}]}}]})))

    with pytest.raises(MalformedEnvelopeError):
        await client.make_api_request("hello", RequestKind.CHAT)


@pytest.mark.asyncio
async def test_offline_fails_fast():
    recorder = Recorder((200, gemini_body("unused")))
    config = AIConfig(gemini_api_key=VALID_KEY, endpoints=ENDPOINTS)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    client = GeminiClient(config, http_client=http_client, is_online=lambda: False, sleep=AsyncMock())

    with pytest.raises(ConnectivityUnavailableError):
        await client.make_api_request("hello", RequestKind.CHAT)

    assert recorder.requests == []


@pytest.mark.asyncio
async def test_overall_timeout_aborts_in_flight_request():
    state = {"started": 0, "finished": 0}

    async def slow_handler(request):
        state["started"] += 1
        await asyncio.sleep(5)
        state["finished"] += 1
        return httpx.Response(200, json=gemini_body("too slow"))

    client, _ = make_client(slow_handler, request_timeout=0.05)

    with pytest.raises(RequestTimeoutError):
        await client.make_api_request("hello", RequestKind.CHAT)

    assert state == {"started": 1, "finished": 0}


@pytest.mark.asyncio
async def test_production_never_calls_the_api():
    recorder = Recorder((200, gemini_body("unused")))
    client, _ = make_client(recorder, production=True)

    assert client.mode is ServiceMode.ALWAYS_MOCK
    assert client.api_key == ""
    assert await client.make_request_with_retry(ENDPOINTS[0], "hello") is None

    reply = await client.make_api_request(chat_prompt("hello there"))
    assert isinstance(reply, str) and reply
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_kind_is_sniffed_from_prompt_markers():
    client, _ = make_client(Recorder((200, gemini_body("unused"))), production=True)

    structured = await client.make_api_request(enhance_query_prompt("gaming laptop"))
    conversational = await client.make_api_request(chat_prompt("hello there"))

    assert isinstance(structured, SmartSearchResult)
    assert structured.enhanced_query == "gaming laptop best deals 2024"
    assert isinstance(conversational, str)


@pytest.mark.asyncio
async def test_missing_key_is_a_configuration_error():
    recorder = Recorder((200, gemini_body("unused")))
    client, _ = make_client(recorder, gemini_api_key=None)

    with pytest.raises(InvalidConfigurationError):
        await client.make_api_request("hello", RequestKind.CHAT)

    assert recorder.requests == []


def undecodable_gzip():
    return httpx.Response(200, headers={"content-encoding": "gzip"}, content=b"definitely not gzip")


@pytest.mark.asyncio
async def test_decoding_error_moves_on_to_next_endpoint(first_choice_rng):
    calls = []

    def handler(request):
        calls.append(endpoint_of(request))
        if endpoint_of(request) == ENDPOINTS[0]:
            return undecodable_gzip()
        return httpx.Response(200, json=gemini_body("from second"))

    client, sleep = make_client(handler, rng=first_choice_rng)

    text = await client.make_api_request("hello", RequestKind.CHAT)

    assert text == "from second"
    assert calls == [ENDPOINTS[0], ENDPOINTS[0], ENDPOINTS[1]]
    sleep.assert_awaited_once_with(1.5)


@pytest.mark.asyncio
async def test_undecodable_responses_everywhere_fail_as_all_endpoints():
    client, _ = make_client(lambda request: undecodable_gzip())

    with pytest.raises(AllEndpointsFailedError) as exc_info:
        await client.make_api_request("hello", RequestKind.CHAT)

    assert "DecodingError" in str(exc_info.value)


@pytest.mark.asyncio
async def test_rate_limited_request_uses_callers_mock():
    recorder = Recorder((429, {"error": "quota"}))
    client, _ = make_client(recorder)

    result = await client.make_api_request(
        "Categorize these products: Samsung Galaxy phone",
        RequestKind.CATEGORIES,
        mock=lambda: ["built by caller"],
    )

    assert result == ["built by caller"]
    assert client.mode is ServiceMode.FORCED_MOCK
    # Once in mock mode the caller's mock still wins over prompt-based synthesis
    assert await client.make_api_request("anything", RequestKind.CATEGORIES, mock=lambda: "again") == "again"


@pytest.mark.asyncio
async def test_overall_timeout_cuts_backoff_sleep_short(first_choice_rng):
    recorder = Recorder((429, {"error": "quota"}))
    config = AIConfig(gemini_api_key=VALID_KEY, endpoints=ENDPOINTS, request_timeout=0.2)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    # Real sleep: the first backoff is 2.5s, far past the 0.2s budget
    client = GeminiClient(config, http_client=http_client, sleep=asyncio.sleep, rng=first_choice_rng)

    loop = asyncio.get_running_loop()
    started = loop.time()
    with pytest.raises(RequestTimeoutError):
        await client.make_api_request("hello", RequestKind.CHAT)

    assert loop.time() - started < 2
    assert recorder.endpoints == [ENDPOINTS[0]]
    assert client.mode is ServiceMode.LIVE
