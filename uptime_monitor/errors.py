"""Exception types raised by the uptime monitor."""


class MonitorError(Exception):
    """Base class for monitor failures that should abort a run."""


class ConfigError(MonitorError):
    """Raised when the environment or YAML configuration is invalid."""
