"""Bounded, time-ordered telemetry history with persistence round-trip."""

import json
import logging
import threading
from collections import deque
from datetime import datetime
from typing import Any, Optional

from smart_meter.errors import PersistenceCorrupt, PersistenceUnavailable
from smart_meter.models import Reading
from smart_meter.storage.persistence import PersistencePort

logger = logging.getLogger(__name__)

STATE_KEY = "smart_meter_data"
STATE_VERSION = 1


class HistoryStore:
    """Keeps the most recent readings in chronological order.

    Appending beyond max_in_memory evicts the oldest reading. persist()
    writes only the newest max_persisted readings plus caller settings.

    Example:
        >>> store = HistoryStore(max_in_memory=1000, persistence=InMemoryPersistence())
        >>> store.append(reading)
        >>> store.persist({"mode": "auto"})
    """

    def __init__(
        self,
        max_in_memory: int = 1000,
        max_persisted: int = 100,
        persistence: Optional[PersistencePort] = None,
        state_key: str = STATE_KEY,
    ) -> None:
        """Initialize the store.

        Args:
            max_in_memory: Number of readings retained in memory
            max_persisted: Number of newest readings written by persist()
            persistence: Port used by persist()/restore(); None disables both
            state_key: Key of the state blob in the persistence port

        Raises:
            ValueError: If a bound is not positive
        """
        if max_in_memory <= 0 or max_persisted <= 0:
            raise ValueError("max_in_memory and max_persisted must be positive")
        self.max_in_memory = max_in_memory
        self.max_persisted = max_persisted
        self.persistence = persistence
        self.state_key = state_key
        self._readings: deque[Reading] = deque(maxlen=max_in_memory)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._readings)

    def size(self) -> int:
        return len(self._readings)

    def append(self, reading: Reading) -> None:
        """Append a reading, evicting the oldest one when full.

        Raises:
            ValueError: If the reading is older than the newest stored reading
        """
        with self._lock:
            if self._readings and reading.timestamp < self._readings[-1].timestamp:
                raise ValueError(
                    f"Reading at {reading.timestamp.isoformat()} is older than "
                    f"latest {self._readings[-1].timestamp.isoformat()}"
                )
            self._readings.append(reading)

    def snapshot(self) -> tuple[Reading, ...]:
        """Point-in-time copy of the history, oldest first."""
        with self._lock:
            return tuple(self._readings)

    def latest(self) -> Optional[Reading]:
        with self._lock:
            return self._readings[-1] if self._readings else None

    def clear(self) -> None:
        with self._lock:
            self._readings.clear()

    def prune_older_than(self, cutoff: datetime) -> int:
        """Drop readings strictly older than cutoff.

        Returns:
            Number of readings removed
        """
        removed = 0
        with self._lock:
            while self._readings and self._readings[0].timestamp < cutoff:
                self._readings.popleft()
                removed += 1
        if removed:
            logger.info("Pruned %d readings older than %s", removed, cutoff.isoformat())
        return removed

    def _encode(self, settings: dict[str, Any]) -> str:
        recent = self.snapshot()[-self.max_persisted :]
        return json.dumps(
            {
                "version": STATE_VERSION,
                "history": [r.to_dict() for r in recent],
                "settings": settings,
            }
        )

    @staticmethod
    def _decode(blob: str) -> tuple[list[Reading], dict[str, Any]]:
        """Parse a state blob.

        Raises:
            PersistenceCorrupt: If the blob is not a valid state document
        """
        try:
            data = json.loads(blob)
            if not isinstance(data, dict):
                raise TypeError("state blob is not an object")
            history = data.get("history") or []
            settings = data.get("settings") or {}
            if not isinstance(history, list) or not isinstance(settings, dict):
                raise TypeError("history must be a list and settings an object")
            readings = [Reading.from_dict(entry) for entry in history]
            for previous, current in zip(readings, readings[1:]):
                if current.timestamp < previous.timestamp:
                    raise ValueError("history is not in chronological order")
        except (ValueError, KeyError, TypeError) as e:
            raise PersistenceCorrupt(f"Unreadable state blob: {e}") from e
        return readings, settings

    def persist(self, settings: Optional[dict[str, Any]] = None) -> bool:
        """Write the newest readings and settings to the persistence port.

        Failures are logged and reported as False; they never raise.
        """
        if self.persistence is None:
            return True

        try:
            blob = self._encode(settings or {})
            saved = self.persistence.save(self.state_key, blob)
            if not saved:
                raise PersistenceUnavailable(f"save of {self.state_key!r} was rejected")
        except (PersistenceUnavailable, OSError, ValueError, TypeError) as e:
            logger.error("Failed to persist history, continuing in memory: %s", e)
            return False
        return True

    def restore(self) -> dict[str, Any]:
        """Replace the in-memory history with the last persisted state.

        Missing or corrupt state yields an empty history.

        Returns:
            The settings stored alongside the history ({} when none)
        """
        if self.persistence is None:
            return {}

        try:
            blob = self.persistence.load(self.state_key)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to load persisted history, starting empty: %s", e)
            blob = None
        if blob is None:
            logger.info("No persisted history found, starting empty")
            self.clear()
            return {}

        try:
            readings, settings = self._decode(blob)
        except PersistenceCorrupt as e:
            logger.warning("Discarding persisted history: %s", e)
            self.clear()
            return {}

        with self._lock:
            self._readings.clear()
            self._readings.extend(readings)
        logger.info("Restored %d readings from persisted history", len(self._readings))
        return settings
