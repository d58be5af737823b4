"""Restaurant reservation bot with capacity admission control."""

__version__ = "1.0.0"
