"""Configuration and cross-process locking."""
