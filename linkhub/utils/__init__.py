"""Logging and exceptions."""
