"""Logging setup and error messaging."""
