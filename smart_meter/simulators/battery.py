"""Battery charge state machine driven by per-tick net power."""

import logging

from smart_meter.errors import ConfigurationInvalid
from smart_meter.models import BatteryMode, BatteryState, BatteryUpdate

logger = logging.getLogger(__name__)


class BatteryModel:
    """
    Tracks battery charge level from the net power of each tick.

    Surplus power charges the battery, deficits discharge it until the
    reserve floor is reached. Below the floor the deficit is left for the
    grid; the caller is told through BatteryUpdate.grid_support_required.

    Energy moved per tick is net_power_kw * tick_hours. Charging gains
    efficiency times that energy, discharging costs it divided by the
    efficiency, so a full cycle loses energy in both directions.
    """

    def __init__(
        self,
        capacity_kwh: float = 10.0,
        round_trip_efficiency: float = 0.9,
        reserve_floor_pct: float = 5.0,
        initial_level_pct: float = 78.0,
        tick_hours: float = 5 / 60,
        initial_mode: BatteryMode = BatteryMode.CHARGING,
    ):
        """
        Initialize the battery model.

        Args:
            capacity_kwh: Usable capacity in kWh
            round_trip_efficiency: Efficiency applied to each transfer (0-1]
            reserve_floor_pct: Level at or below which discharging stops
            initial_level_pct: Starting charge level (0-100)
            tick_hours: Hours of power flow represented by one tick
            initial_mode: Starting charge direction

        Raises:
            ConfigurationInvalid: If any parameter is out of range
        """
        if capacity_kwh <= 0:
            raise ConfigurationInvalid("capacity_kwh must be positive")
        if not 0 < round_trip_efficiency <= 1:
            raise ConfigurationInvalid("round_trip_efficiency must be in the range (0, 1]")
        if not 0 <= reserve_floor_pct <= 100:
            raise ConfigurationInvalid("reserve_floor_pct must be within [0, 100]")
        if not 0 <= initial_level_pct <= 100:
            raise ConfigurationInvalid("initial_level_pct must be within [0, 100]")
        if tick_hours <= 0:
            raise ConfigurationInvalid("tick_hours must be positive")

        self.reserve_floor_pct = reserve_floor_pct
        self.tick_hours = tick_hours
        self._initial_level_pct = initial_level_pct
        self._state = BatteryState(
            level_pct=initial_level_pct,
            mode=initial_mode,
            capacity_kwh=capacity_kwh,
            round_trip_efficiency=round_trip_efficiency,
        )

    @property
    def state(self) -> BatteryState:
        """Copy of the current state."""
        return BatteryState(
            level_pct=self._state.level_pct,
            mode=self._state.mode,
            capacity_kwh=self._state.capacity_kwh,
            round_trip_efficiency=self._state.round_trip_efficiency,
        )

    @property
    def level_pct(self) -> float:
        return self._state.level_pct

    @property
    def mode(self) -> BatteryMode:
        return self._state.mode

    @property
    def is_charging(self) -> bool:
        return self._state.is_charging

    @property
    def capacity_kwh(self) -> float:
        return self._state.capacity_kwh

    @property
    def round_trip_efficiency(self) -> float:
        return self._state.round_trip_efficiency

    @property
    def at_reserve_floor(self) -> bool:
        return self._state.level_pct <= self.reserve_floor_pct

    def _energy_to_pct(self, energy_kwh: float) -> float:
        return energy_kwh / self._state.capacity_kwh * 100

    def update(self, net_power_kw: float) -> BatteryUpdate:
        """
        Apply one tick of net power.

        Args:
            net_power_kw: Generation minus consumption (positive = surplus)

        Returns:
            BatteryUpdate describing the new level and direction
        """
        state = self._state
        before = state.level_pct

        if net_power_kw > 0:
            stored_kwh = net_power_kw * self.tick_hours * state.round_trip_efficiency
            state.level_pct = min(100.0, before + self._energy_to_pct(stored_kwh))
            state.mode = BatteryMode.CHARGING
        elif net_power_kw < 0:
            if self.at_reserve_floor:
                logger.debug(
                    "Battery at reserve floor (%.1f%%), %.2f kW deficit left for grid",
                    before,
                    -net_power_kw,
                )
                return BatteryUpdate(
                    level_pct=before,
                    mode=state.mode,
                    delta_pct=0.0,
                    grid_support_required=True,
                )
            drawn_kwh = -net_power_kw * self.tick_hours / state.round_trip_efficiency
            state.level_pct = max(0.0, before - self._energy_to_pct(drawn_kwh))
            state.mode = BatteryMode.DISCHARGING

        return BatteryUpdate(
            level_pct=state.level_pct,
            mode=state.mode,
            delta_pct=state.level_pct - before,
        )

    def restart(self, level_pct: float | None = None) -> None:
        """Reset the battery (explicit restart only), by default to its initial level."""
        if level_pct is None:
            level_pct = self._initial_level_pct
        if not 0 <= level_pct <= 100:
            raise ValueError("level_pct must be within [0, 100]")
        self._state.level_pct = level_pct
        self._state.mode = BatteryMode.CHARGING
        logger.info("Battery restarted at %.1f%%", self._state.level_pct)
