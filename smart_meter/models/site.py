"""Caller-supplied inputs and outputs of the weather-driven estimation flow."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SiteLocation:
    """Geographic position of the generation site."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90 <= self.latitude <= 90:
            raise ValueError(f"latitude must be within [-90, 90], got {self.latitude}")
        if not -180 <= self.longitude <= 180:
            raise ValueError(f"longitude must be within [-180, 180], got {self.longitude}")


@dataclass(frozen=True)
class GenerationAssetConfig:
    """Rated capacities of the site's generation assets."""

    solar_rated_kw: float = 0.0
    wind_rated_kw: float = 0.0


@dataclass(frozen=True)
class AmbientConditions:
    """Weather inputs to the power model."""

    irradiance_w_m2: float
    temperature_c: float
    wind_speed_ms: float


@dataclass(frozen=True)
class PowerEstimate:
    """Predicted output for a site under given ambient conditions."""

    solar_kw: float
    wind_kw: float
    ambient: AmbientConditions

    @property
    def total_kw(self) -> float:
        return self.solar_kw + self.wind_kw

    def to_dict(self) -> dict:
        return {
            "irradiance_w_m2": round(self.ambient.irradiance_w_m2, 1),
            "temperature_c": round(self.ambient.temperature_c, 1),
            "wind_speed_ms": round(self.ambient.wind_speed_ms, 1),
            "solar_kw": round(self.solar_kw, 2),
            "wind_kw": round(self.wind_kw, 2),
            "total_kw": round(self.total_kw, 2),
        }
