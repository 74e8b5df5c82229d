"""
Tests for the Open-Meteo client, the shared request handling and the rate limiter.
"""

from unittest.mock import AsyncMock, patch

import pytest

from tonemap.api.rate_limiter import RateLimiter
from tonemap.api.weather_client import OpenMeteoClient, condition_from_wmo_code
from tonemap.exceptions import ExternalLookupError
from tonemap.models.listening_models import WeatherCondition


class FakeResponse:
    def __init__(self, status=200, payload=None, headers=None):
        self.status = status
        self.payload = payload or {}
        self.headers = headers or {}

    async def json(self):
        return self.payload


class FakeRequestContext:
    def __init__(self, response):
        self.response = response

    async def __aenter__(self):
        return self.response

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """Returns queued responses in order and records each request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def request(self, **kwargs):
        self.requests.append(kwargs)
        return FakeRequestContext(self.responses.pop(0))

    async def close(self):
        self.closed = True


@pytest.fixture
def client(clock):
    weather = OpenMeteoClient(52.52, 13.41, rate_limiter=RateLimiter(), clock=clock)
    weather.open = AsyncMock()
    return weather


@pytest.fixture
def no_sleep():
    with patch("tonemap.api.base_client.asyncio.sleep", new=AsyncMock()) as sleep:
        yield sleep


class TestWmoCodes:
    @pytest.mark.parametrize("code,condition", [
        (0, WeatherCondition.SUNNY),
        (2, WeatherCondition.PARTLY_CLOUDY),
        (3, WeatherCondition.CLOUDY),
        (45, WeatherCondition.FOGGY),
        (61, WeatherCondition.RAINY),
        (81, WeatherCondition.RAINY),
        (73, WeatherCondition.SNOWY),
        (86, WeatherCondition.SNOWY),
        (95, WeatherCondition.STORMY),
        (120, WeatherCondition.CLOUDY),
    ])
    def test_mapping(self, code, condition):
        assert condition_from_wmo_code(code) is condition


class TestGetCurrentWeather:
    @pytest.mark.asyncio
    async def test_reading_from_response(self, client, now):
        client.session = FakeSession(
            FakeResponse(payload={"current": {"temperature_2m": 14.2, "weather_code": 63}})
        )

        reading = await client.get_current_weather()

        assert reading.condition is WeatherCondition.RAINY
        assert reading.temperature_c == 14.2
        assert reading.fetched_at == now
        request = client.session.requests[0]
        assert request["url"] == "https://api.open-meteo.com/v1/forecast"
        assert request["params"]["latitude"] == 52.52

    @pytest.mark.asyncio
    async def test_missing_code_is_an_error(self, client):
        client.session = FakeSession(FakeResponse(payload={"current": {"temperature_2m": 3.0}}))

        with pytest.raises(ExternalLookupError):
            await client.get_current_weather()

    @pytest.mark.asyncio
    async def test_error_body_is_an_error(self, client):
        client.session = FakeSession(FakeResponse(payload={"error": True, "reason": "bad latitude"}))

        with pytest.raises(ExternalLookupError, match="bad latitude"):
            await client.get_current_weather()


class TestRequestHandling:
    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self, client, no_sleep):
        client.session = FakeSession(
            FakeResponse(status=503),
            FakeResponse(payload={"current": {"weather_code": 0}}),
        )

        reading = await client.get_current_weather()

        assert reading.condition is WeatherCondition.SUNNY
        assert len(client.session.requests) == 2

    @pytest.mark.asyncio
    async def test_rate_limit_honours_retry_after(self, client, no_sleep):
        client.session = FakeSession(
            FakeResponse(status=429, headers={"Retry-After": "7"}),
            FakeResponse(payload={"current": {"weather_code": 3}}),
        )

        await client.get_current_weather()

        no_sleep.assert_any_await(7.0)

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, client, no_sleep):
        client.session = FakeSession(FakeResponse(status=404))

        with pytest.raises(ExternalLookupError, match="404"):
            await client.get_current_weather()
        assert len(client.session.requests) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self, client, no_sleep):
        client.session = FakeSession(*(FakeResponse(status=500) for _ in range(3)))

        with pytest.raises(ExternalLookupError, match="3 attempts"):
            await client.get_current_weather()

    @pytest.mark.asyncio
    async def test_closed_session_is_an_error(self, client):
        with pytest.raises(ExternalLookupError):
            await client.get_current_weather()

    @pytest.mark.asyncio
    async def test_close_releases_session(self, client):
        session = FakeSession()
        client.session = session

        await client.close()

        assert session.closed
        assert client.session is None


class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_burst_passes_without_waiting(self):
        limiter = RateLimiter(calls_per_second=5)
        with patch("tonemap.api.rate_limiter.asyncio.sleep", new=AsyncMock()) as sleep:
            for _ in range(limiter.burst_size):
                await limiter.wait_if_needed()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_minute_window_blocks_extra_calls(self):
        limiter = RateLimiter(calls_per_minute=2)
        with patch("tonemap.api.rate_limiter.asyncio.sleep", new=AsyncMock()) as sleep:
            await limiter.wait_if_needed()
            await limiter.wait_if_needed()
            await limiter.wait_if_needed()
        sleep.assert_awaited_once()
        assert sleep.await_args.args[0] == pytest.approx(60.0, abs=1.0)

    def test_usage_and_reset(self):
        limiter = RateLimiter(calls_per_minute=10)
        limiter.request_times.extend([0.0] * 3)
        limiter.reset()
        assert limiter.get_current_usage()["requests_last_minute"] == 0
