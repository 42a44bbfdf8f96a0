"""Track editor sessions from ActivityWatch as Solidtime time entries."""

__version__ = "0.1.0"
