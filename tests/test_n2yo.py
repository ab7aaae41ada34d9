"""Tests for the N2YO client."""

import logging

import httpx
import pytest

from satwatch.config.models import ConfigError, N2YOConfig
from satwatch.errors import UpstreamFetchError
from satwatch.predictions.n2yo import N2YOClient
from tests.conftest import make_location

API_KEY = "ABCDEF-123456-GHIJKL-7890"

RADIOPASSES_PAYLOAD = {
    "info": {"satid": 25338, "satname": "NOAA 15", "transactionscount": 4, "passescount": 2},
    "passes": [
        {
            "startAz": 320.5,
            "startAzCompass": "NW",
            "startUTC": 5000,
            "maxAz": 250.1,
            "maxAzCompass": "WSW",
            "maxEl": 32.4,
            "maxUTC": 5300,
            "endAz": 180.2,
            "endAzCompass": "S",
            "endUTC": 5600,
        },
        {
            "startAz": 10.0,
            "startAzCompass": "N",
            "startUTC": 1000,
            "maxAz": 80.0,
            "maxAzCompass": "E",
            "maxEl": 61.0,
            "maxUTC": 1150,
            "endAz": 170.0,
            "endAzCompass": "S",
            "endUTC": 1300,
        },
    ],
}


def make_client(handler) -> N2YOClient:
    return N2YOClient(
        API_KEY,
        base_url="https://api.test/rest/v1/satellite/",
        transport=httpx.MockTransport(handler),
    )


class TestFetchPasses:
    async def test_request_path(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=RADIOPASSES_PAYLOAD)

        client = make_client(handler)
        await client.fetch_passes(25338, make_location(), 2, 15.0)
        await client.close()

        url = str(seen[0].url)
        assert url.startswith(
            "https://api.test/rest/v1/satellite/radiopasses/25338/51.5/-0.1/20.0/2/15.0"
        )
        assert url.endswith(f"&apiKey={API_KEY}")
        assert seen[0].headers["User-Agent"] == "satwatch"

    async def test_parses_and_sorts_passes(self):
        client = make_client(lambda request: httpx.Response(200, json=RADIOPASSES_PAYLOAD))
        result = await client.fetch_passes(25338, make_location(), 1, 10.0)

        assert result.object_id == 25338
        assert result.object_name == "NOAA 15"
        assert [p.window for p in result.passes] == [(1000, 1300), (5000, 5600)]
        first = result.passes[0]
        assert first.max_elevation == 61.0
        assert first.max_time == 1150
        assert first.start_compass == "N"
        assert first.end_azimuth == 170.0

    async def test_missing_passes_means_none(self):
        payload = {"info": {"satid": 25338, "satname": "NOAA 15", "passescount": 0}}
        client = make_client(lambda request: httpx.Response(200, json=payload))
        result = await client.fetch_passes(25338, make_location(), 1, 10.0)
        assert result.passes == []

    async def test_api_error_field(self):
        payload = {"error": "Invalid API Key!"}
        client = make_client(lambda request: httpx.Response(200, json=payload))
        with pytest.raises(UpstreamFetchError, match="Invalid API Key"):
            await client.fetch_passes(25338, make_location(), 1, 10.0)

    async def test_http_error(self):
        client = make_client(lambda request: httpx.Response(500, text="oops"))
        with pytest.raises(UpstreamFetchError, match="HTTP 500"):
            await client.fetch_passes(25338, make_location(), 1, 10.0)

    async def test_transport_error_hides_key(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(UpstreamFetchError) as exc_info:
            await client.fetch_passes(25338, make_location(), 1, 10.0)
        assert API_KEY not in str(exc_info.value)

    async def test_invalid_json(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(UpstreamFetchError, match="invalid JSON"):
            await client.fetch_passes(25338, make_location(), 1, 10.0)

    async def test_malformed_pass(self):
        payload = {"info": {"satname": "NOAA 15"}, "passes": [{"startUTC": 1000}]}
        client = make_client(lambda request: httpx.Response(200, json=payload))
        with pytest.raises(UpstreamFetchError, match="Malformed"):
            await client.fetch_passes(25338, make_location(), 1, 10.0)

    async def test_non_object_payload(self):
        client = make_client(lambda request: httpx.Response(200, json=[1, 2, 3]))
        with pytest.raises(UpstreamFetchError):
            await client.fetch_passes(25338, make_location(), 1, 10.0)

    async def test_key_never_logged(self, caplog):
        caplog.set_level(logging.DEBUG, logger="satwatch")
        client = make_client(lambda request: httpx.Response(200, json=RADIOPASSES_PAYLOAD))
        await client.fetch_passes(25338, make_location(), 1, 10.0)
        for record in caplog.records:
            if not record.name.startswith("satwatch"):
                continue
            assert API_KEY not in record.getMessage()
            assert API_KEY not in str(record.__dict__)


class TestFetchObjectName:
    async def test_reads_satname(self):
        seen: list[str] = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(
                200, json={"info": {"satid": 33591, "satname": "NOAA 19"}, "tle": "..."}
            )

        client = make_client(handler)
        assert await client.fetch_object_name(33591) == "NOAA 19"
        assert "/tle/33591&apiKey=" in seen[0]

    async def test_unknown_object(self):
        payload = {"info": {"satid": 0, "satname": None}, "tle": ""}
        client = make_client(lambda request: httpx.Response(200, json=payload))
        with pytest.raises(UpstreamFetchError, match="Unknown satellite"):
            await client.fetch_object_name(99999999)


class TestFromConfig:
    def test_requires_key(self):
        with pytest.raises(ConfigError):
            N2YOClient.from_config(N2YOConfig())

    async def test_uses_config_values(self):
        config = N2YOConfig(api_key=API_KEY, base_url="https://example.test", timeout=5.0)
        client = N2YOClient.from_config(config)
        assert client._base_url == "https://example.test"
        assert client._client.timeout.read == 5.0
        await client.close()
