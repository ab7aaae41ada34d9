"""N2YO REST API client.

API reference: https://www.n2yo.com/api/

N2YO appends the API key as ``&apiKey=`` directly after the path rather than
as a regular query string, so URLs are assembled by hand. The key is kept out
of every log line.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from satwatch.errors import UpstreamFetchError
from satwatch.predictions.types import SatellitePass, SatellitePasses

if TYPE_CHECKING:
    from satwatch.config.models import N2YOConfig
    from satwatch.state.types import Location

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.n2yo.com/rest/v1/satellite"


class N2YOClient:
    """Pass prediction source backed by api.n2yo.com."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        user_agent: str = "satwatch",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            headers={"User-Agent": user_agent},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: N2YOConfig) -> N2YOClient:
        if config.api_key is None:
            from satwatch.config.models import ConfigError

            raise ConfigError("Missing setting n2yo.api_key")
        return cls(
            config.api_key.get_secret_value(),
            base_url=config.base_url,
            user_agent=config.user_agent,
            timeout=config.timeout,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_passes(
        self,
        object_id: int,
        location: Location,
        days: int,
        min_elevation: float,
    ) -> SatellitePasses:
        """Get radio passes for an object over a location.

        Raises:
            UpstreamFetchError: On transport errors, HTTP errors, API errors
                or malformed payloads.
        """
        path = (
            f"radiopasses/{object_id}/{location.latitude}/{location.longitude}/"
            f"{location.altitude}/{days}/{min_elevation}"
        )
        payload = await self._get(path)
        try:
            info = payload["info"]
            passes = [SatellitePass.from_n2yo(p) for p in payload.get("passes") or []]
            return SatellitePasses(
                object_id=int(info.get("satid", object_id)),
                object_name=str(info["satname"]),
                passes=sorted(passes, key=lambda p: p.start),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamFetchError(
                f"Malformed pass data for satellite {object_id}: {e}"
            ) from e

    async def fetch_object_name(self, object_id: int) -> str:
        """Get the catalogue name of an object.

        Raises:
            UpstreamFetchError: If the lookup fails or the object is unknown.
        """
        payload = await self._get(f"tle/{object_id}")
        try:
            name = payload["info"]["satname"]
        except (KeyError, TypeError) as e:
            raise UpstreamFetchError(
                f"Malformed TLE data for satellite {object_id}: {e}"
            ) from e
        if not name:
            raise UpstreamFetchError(f"Unknown satellite: {object_id}")
        return str(name)

    async def _get(self, path: str) -> dict[str, Any]:
        url = f"{self._base_url}/{path}&apiKey={self._api_key}"
        logger.debug("n2yo_request", extra={"http.path": path})
        try:
            response = await self._client.get(url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamFetchError(
                f"N2YO returned HTTP {e.response.status_code} for {path}"
            ) from e
        except httpx.HTTPError as e:
            # The URL carries the API key; keep it out of the message.
            raise UpstreamFetchError(
                f"N2YO request failed for {path}: {type(e).__name__}"
            ) from e
        except ValueError as e:
            raise UpstreamFetchError(f"N2YO returned invalid JSON for {path}") from e

        if not isinstance(payload, dict):
            raise UpstreamFetchError(f"N2YO returned unexpected payload for {path}")
        if error := payload.get("error"):
            raise UpstreamFetchError(f"N2YO error: {error}")
        return payload
