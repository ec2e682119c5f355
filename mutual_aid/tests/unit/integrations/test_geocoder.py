"""
Unit tests for the geocoding client.

HTTP traffic goes through an ``httpx.MockTransport`` and backoff sleeps are
patched out, so the retry schedule is observed without waiting.
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from mutual_aid.core.errors import InvalidAddressError, InvalidCoordinatesError, ServiceUnavailableError
from mutual_aid.integrations.geocoder import GeocodeState, GeocodingClient, RetryPolicy

SEARCH_URL = "https://geocoder.test/search"


def _hit(lat="40.7128", lon="-74.0060"):
    return [{"lat": lat, "lon": lon, "display_name": "New York"}]


class ScriptedService:
    """Replays a fixed sequence of responses and records each request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def sleep_mock(mocker):
    return mocker.patch("mutual_aid.integrations.geocoder.asyncio.sleep", new_callable=AsyncMock)


def _client(service: ScriptedService) -> GeocodingClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(service), headers={"User-Agent": "MutualAidApp/1.0"})
    return GeocodingClient(base_url=SEARCH_URL, policy=RetryPolicy(max_attempts=3, base_delay=1.0), client=http)


class TestRetryPolicy:
    """The state transition and backoff tables."""

    def test_rate_limit_backs_off_twice_as_long(self):
        policy = RetryPolicy(base_delay=1.0)
        assert policy.delay_for(GeocodeState.RATE_LIMITED, 1) == 2.0
        assert policy.delay_for(GeocodeState.RATE_LIMITED, 2) == 4.0
        assert policy.delay_for(GeocodeState.TRANSIENT_FAILURE, 1) == 1.0
        assert policy.delay_for(GeocodeState.TRANSIENT_FAILURE, 2) == 2.0

    def test_terminal_states_do_not_retry(self):
        policy = RetryPolicy()
        for state in (GeocodeState.SUCCESS, GeocodeState.NOT_FOUND, GeocodeState.INVALID_ADDRESS):
            assert policy.next_state(state, 1) == state

    def test_budget_exhaustion(self):
        policy = RetryPolicy(max_attempts=3)
        assert policy.next_state(GeocodeState.TRANSIENT_FAILURE, 2) == GeocodeState.ATTEMPTING
        assert policy.next_state(GeocodeState.TRANSIENT_FAILURE, 3) == GeocodeState.SERVICE_UNAVAILABLE
        assert policy.next_state(GeocodeState.RATE_LIMITED, 3) == GeocodeState.SERVICE_UNAVAILABLE


class TestGeocodingClient:
    """Behaviour of a full lookup against scripted service responses."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, sleep_mock):
        service = ScriptedService(httpx.Response(200, json=_hit()))
        client = _client(service)

        result = await client.geocode("123 Main St", "10001")

        assert result.latitude == pytest.approx(40.7128)
        assert result.longitude == pytest.approx(-74.006)
        assert len(service.requests) == 1
        params = service.requests[0].url.params
        assert params["q"] == "123 Main St 10001"
        assert params["format"] == "json"
        assert params["limit"] == "1"
        assert service.requests[0].headers["User-Agent"] == "MutualAidApp/1.0"
        sleep_mock.assert_not_awaited()
        await client.close()

    @pytest.mark.asyncio
    async def test_empty_result_is_not_found(self, sleep_mock):
        service = ScriptedService(httpx.Response(200, json=[]))

        assert await _client(service).geocode("Nowhere", "00000") is None
        assert len(service.requests) == 1

    @pytest.mark.asyncio
    async def test_persistent_rate_limit_exhausts_budget(self, sleep_mock):
        service = ScriptedService(*(httpx.Response(429) for _ in range(3)))

        with pytest.raises(ServiceUnavailableError):
            await _client(service).geocode("123 Main St", "10001")

        assert len(service.requests) == 3
        # No sleep after the final attempt
        assert [call.args[0] for call in sleep_mock.await_args_list] == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_transient_failures_then_success(self, sleep_mock):
        service = ScriptedService(
            httpx.ConnectError("connection refused"),
            httpx.Response(503),
            httpx.Response(200, json=_hit()),
        )

        result = await _client(service).geocode("123 Main St", "10001")

        assert result is not None
        assert len(service.requests) == 3
        assert [call.args[0] for call in sleep_mock.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self, sleep_mock):
        service = ScriptedService(httpx.ReadTimeout("timed out"), httpx.Response(200, json=_hit()))

        assert await _client(service).geocode("123 Main St", "10001") is not None
        assert len(service.requests) == 2

    @pytest.mark.parametrize("status", [400, 422])
    @pytest.mark.asyncio
    async def test_malformed_input_is_not_retried(self, sleep_mock, status):
        service = ScriptedService(httpx.Response(status))

        with pytest.raises(InvalidAddressError):
            await _client(service).geocode("???", "10001")

        assert len(service.requests) == 1
        sleep_mock.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_undecodable_body_is_transient(self, sleep_mock):
        service = ScriptedService(
            httpx.Response(200, content=b"<html>oops</html>"),
            httpx.Response(200, json={"unexpected": "shape"}),
            httpx.Response(200, json=_hit()),
        )

        assert await _client(service).geocode("123 Main St", "10001") is not None
        assert len(service.requests) == 3

    @pytest.mark.asyncio
    async def test_out_of_range_coordinates_raise(self, sleep_mock):
        service = ScriptedService(httpx.Response(200, json=_hit(lat="123.0")))

        with pytest.raises(InvalidCoordinatesError):
            await _client(service).geocode("123 Main St", "10001")

    @pytest.mark.asyncio
    async def test_non_numeric_coordinates_raise(self, sleep_mock):
        service = ScriptedService(httpx.Response(200, json=[{"lat": "north", "lon": "-74"}]))

        with pytest.raises(InvalidCoordinatesError):
            await _client(service).geocode("123 Main St", "10001")
