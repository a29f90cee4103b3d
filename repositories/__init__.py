"""Storage backends for the inventory engine."""
