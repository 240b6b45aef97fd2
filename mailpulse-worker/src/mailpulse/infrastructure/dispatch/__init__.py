"""Dispatch sink implementations."""

from mailpulse.infrastructure.dispatch.log_sink import LoggingDispatchSink

__all__ = ["LoggingDispatchSink"]
