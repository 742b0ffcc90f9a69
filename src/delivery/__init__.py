"""
Pipeline telemetry delivery.

Sinks that receive one record per item-generation attempt:
- LoggingTelemetrySink: loguru
- JsonlTelemetrySink: daily JSONL files, written off the caller thread
- InMemoryTelemetrySink: in-process list
"""
from .telemetry import (
    CompositeSink,
    InMemoryTelemetrySink,
    JsonlTelemetrySink,
    LoggingTelemetrySink,
    PipelineTelemetry,
    TelemetrySink,
    build_default_sink,
    close_sink,
    emit_safely,
    flush_sink,
)

__all__ = [
    "CompositeSink",
    "InMemoryTelemetrySink",
    "JsonlTelemetrySink",
    "LoggingTelemetrySink",
    "PipelineTelemetry",
    "TelemetrySink",
    "build_default_sink",
    "close_sink",
    "emit_safely",
    "flush_sink",
]
