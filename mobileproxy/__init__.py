"""Backend proxy for the mobile app."""

__version__ = "1.0.0"
