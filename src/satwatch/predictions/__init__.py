"""Pass prediction sources."""

from satwatch.predictions.n2yo import N2YOClient
from satwatch.predictions.types import (
    PredictionSource,
    SatellitePass,
    SatellitePasses,
)

__all__ = [
    "N2YOClient",
    "PredictionSource",
    "SatellitePass",
    "SatellitePasses",
]
