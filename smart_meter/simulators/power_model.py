"""Approximate solar and wind output curves.

These are reproducible approximations for estimation and demos, not
certified physical models.
"""

from smart_meter.models import AmbientConditions, GenerationAssetConfig, PowerEstimate

REFERENCE_IRRADIANCE_W_M2 = 1000.0
REFERENCE_TEMPERATURE_C = 25.0
TEMPERATURE_COEFFICIENT = -0.004  # -0.4% per degree C above 25
PERFORMANCE_RATIO = 0.8  # Wiring and inverter losses

CUT_IN_SPEED_MS = 3.0
RATED_SPEED_MS = 12.0


def estimate_solar_kw(irradiance_w_m2: float, rated_kw: float, temperature_c: float) -> float:
    """
    Estimate PV output from irradiance and air temperature.

    P = rated * (irr / 1000) * (1 - 0.004 * (T - 25)) * 0.8, never negative.

    Args:
        irradiance_w_m2: Global horizontal irradiance; negative values count as 0
        rated_kw: Array rating at the reference irradiance
        temperature_c: Ambient temperature

    Returns:
        Estimated output in kW
    """
    normalized_irradiance = max(0.0, irradiance_w_m2) / REFERENCE_IRRADIANCE_W_M2
    temperature_factor = 1 + TEMPERATURE_COEFFICIENT * (temperature_c - REFERENCE_TEMPERATURE_C)
    return max(0.0, rated_kw * normalized_irradiance * temperature_factor * PERFORMANCE_RATIO)


def estimate_wind_kw(wind_speed_ms: float, rated_kw: float) -> float:
    """
    Estimate turbine output with a cubic power curve.

    Zero at or below cut-in, cubic ramp up to rated speed, flat above it.
    """
    if wind_speed_ms <= CUT_IN_SPEED_MS:
        return 0.0
    if wind_speed_ms >= RATED_SPEED_MS:
        return rated_kw
    ratio = (wind_speed_ms - CUT_IN_SPEED_MS) / (RATED_SPEED_MS - CUT_IN_SPEED_MS)
    return rated_kw * ratio**3


def estimate_output(ambient: AmbientConditions, assets: GenerationAssetConfig) -> PowerEstimate:
    """Estimate combined site output for the given conditions."""
    return PowerEstimate(
        solar_kw=estimate_solar_kw(ambient.irradiance_w_m2, assets.solar_rated_kw, ambient.temperature_c),
        wind_kw=estimate_wind_kw(ambient.wind_speed_ms, assets.wind_rated_kw),
        ambient=ambient,
    )
