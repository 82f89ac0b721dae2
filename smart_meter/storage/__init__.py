"""Storage modules for telemetry history and persistence."""

from smart_meter.storage.persistence import (
    FilePersistence,
    InMemoryPersistence,
    PersistencePort,
)
from smart_meter.storage.history import HistoryStore
from smart_meter.storage.influxdb_client import (
    InfluxDBStorage,
    InfluxDBConfig,
)

__all__ = [
    "FilePersistence",
    "HistoryStore",
    "InMemoryPersistence",
    "InfluxDBConfig",
    "InfluxDBStorage",
    "PersistencePort",
]
