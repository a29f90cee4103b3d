"""Runtime configuration: settings and logging."""
