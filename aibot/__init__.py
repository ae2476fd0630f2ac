"""AI bot service: startup/shutdown orchestration around storage, controller and HTTP listener."""

__version__ = "0.1.0"
