"""Error types raised and handled across the smart meter core.

Only ConfigurationInvalid is fatal. Everything else is recoverable and is
normally caught at the engine, store or query boundary and logged.
"""


class SmartMeterError(Exception):
    """Base class for smart meter errors."""


class ProviderUnavailable(SmartMeterError):
    """A feed or weather fetch failed or timed out."""

    def __init__(self, provider: str, cause: str) -> None:
        self.provider = provider
        self.cause = cause
        super().__init__(f"{provider} unavailable: {cause}")


class PersistenceCorrupt(SmartMeterError):
    """A stored blob could not be parsed."""


class PersistenceUnavailable(SmartMeterError):
    """A persistence write failed."""


class InvalidFilterRange(SmartMeterError):
    """A filter's end date falls before its start date."""


class ConfigurationInvalid(SmartMeterError, ValueError):
    """A configuration value is out of range."""
