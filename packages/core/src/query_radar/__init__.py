"""query-radar: ranked query patterns and warehouse sizing from platform telemetry."""

__version__ = "0.1.0"
