"""Pass prediction types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from satwatch.state.types import Location


@dataclass(frozen=True)
class SatellitePass:
    """A predicted visibility window. Times are UNIX seconds (UTC)."""

    start: int
    end: int
    max_elevation: float
    max_time: int | None = None
    start_azimuth: float | None = None
    start_compass: str | None = None
    max_azimuth: float | None = None
    max_compass: str | None = None
    end_azimuth: float | None = None
    end_compass: str | None = None

    @property
    def window(self) -> tuple[int, int]:
        return (self.start, self.end)

    @property
    def duration(self) -> int:
        return self.end - self.start

    @classmethod
    def from_n2yo(cls, data: dict[str, Any]) -> SatellitePass:
        """Parse one entry of an N2YO ``passes`` array."""
        return cls(
            start=int(data["startUTC"]),
            end=int(data["endUTC"]),
            max_elevation=float(data["maxEl"]),
            max_time=_opt_int(data.get("maxUTC")),
            start_azimuth=_opt_float(data.get("startAz")),
            start_compass=data.get("startAzCompass"),
            max_azimuth=_opt_float(data.get("maxAz")),
            max_compass=data.get("maxAzCompass"),
            end_azimuth=_opt_float(data.get("endAz")),
            end_compass=data.get("endAzCompass"),
        )


@dataclass(frozen=True)
class SatellitePasses:
    """Passes for one object, as returned by the prediction source."""

    object_id: int
    object_name: str
    passes: list[SatellitePass] = field(default_factory=list)


class PredictionSource(Protocol):
    """Anything that can predict passes for an object over a location."""

    async def fetch_passes(
        self,
        object_id: int,
        location: Location,
        days: int,
        min_elevation: float,
    ) -> SatellitePasses:
        """Raises UpstreamFetchError on any failure."""
        ...

    async def fetch_object_name(self, object_id: int) -> str:
        """Raises UpstreamFetchError on any failure."""
        ...


def _opt_int(value: Any) -> int | None:
    return int(value) if value is not None else None


def _opt_float(value: Any) -> float | None:
    return float(value) if value is not None else None
