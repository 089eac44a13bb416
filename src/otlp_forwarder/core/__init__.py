"""Core infrastructure: configuration, logging, clock and secret access."""
