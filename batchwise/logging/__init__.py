"""Logging configuration."""

from batchwise.logging.setup import ComponentLevelFilter, setup_logging

__all__ = ["ComponentLevelFilter", "setup_logging"]
