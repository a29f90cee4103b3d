"""Media Inventory API."""

__version__ = "1.0.0"
