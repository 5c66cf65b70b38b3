"""Scheduled update execution and notification delivery service."""

from app import logging_config  # noqa: F401  registers the TRACE level

__version__ = "1.0.0"
