"""Logging setup and logger access."""

from s3manager.shared.telemetry.logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
