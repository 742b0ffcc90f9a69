"""
Pipeline Telemetry.

One entry per generation attempt, plus one for the fallback:
- request_id: shared by every attempt of one generate_item() call
- attempt: 0-based attempt index (fallback uses max_retries)
- reason: "accepted", "fallback", "difficulty_miss", violation tags, ...

Sinks are observers. The orchestrator emits through emit_safely(), so a
broken sink never changes what the learner is shown.
"""

from __future__ import annotations

import json
import queue
import threading
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from loguru import logger


@dataclass
class PipelineTelemetry:
    """A single generation-attempt record."""

    request_id: str
    concept_id: str
    attempt: int
    accepted: bool
    reason: str
    rated_overall: int | None = None
    fallback_used: bool = False
    violations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


class TelemetrySink(Protocol):
    def emit(self, entry: PipelineTelemetry) -> None:
        ...


# =============================================================================
# Sinks
# =============================================================================


class LoggingTelemetrySink:
    """Writes each entry to the loguru logger."""

    def emit(self, entry: PipelineTelemetry) -> None:
        status = "accepted" if entry.accepted else "rejected"
        logger.info(
            f"[{entry.request_id}] {entry.concept_id} attempt={entry.attempt} {status} "
            f"reason={entry.reason} rated={entry.rated_overall} fallback={entry.fallback_used}"
        )


class InMemoryTelemetrySink:
    """Keeps entries in a list. Used by the CLI summary and tests."""

    def __init__(self) -> None:
        self.entries: list[PipelineTelemetry] = []

    def emit(self, entry: PipelineTelemetry) -> None:
        self.entries.append(entry)

    def for_request(self, request_id: str) -> list[PipelineTelemetry]:
        return [e for e in self.entries if e.request_id == request_id]

    def clear(self) -> None:
        self.entries.clear()


class JsonlTelemetrySink:
    """
    Appends entries as JSON lines, one file per day.

    emit() only enqueues; a single writer thread does the file I/O, so
    the orchestration loop never waits on disk. Call flush() to wait for
    queued lines and close() to stop the writer.

    File Structure:
        <log_dir>/2026-10-19_pipeline.jsonl
    """

    def __init__(self, log_dir: Path):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._queue: queue.Queue[dict[str, Any] | None] = queue.Queue()
        self._closed = False
        self._writer = threading.Thread(target=self._drain, name="telemetry-jsonl", daemon=True)
        self._writer.start()

    def _current_file(self) -> Path:
        date_str = datetime.now(UTC).strftime("%Y-%m-%d")
        return self.log_dir / f"{date_str}_pipeline.jsonl"

    def emit(self, entry: PipelineTelemetry) -> None:
        record = {"timestamp": datetime.now(UTC).isoformat(), **entry.to_dict()}
        if self._closed:
            self._write(record)
            return
        self._queue.put(record)

    def flush(self) -> None:
        """Block until every queued entry is on disk."""
        if not self._closed:
            self._queue.join()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put(None)
        self._writer.join()

    def _write(self, record: dict[str, Any]) -> None:
        with open(self._current_file(), "a", encoding="utf-8") as f:
            f.write(json.dumps(record) + "\n")

    def _drain(self) -> None:
        while True:
            record = self._queue.get()
            try:
                if record is None:
                    return
                self._write(record)
            except OSError as e:
                logger.warning(f"Telemetry write to {self.log_dir} failed: {e}")
            finally:
                self._queue.task_done()


class CompositeSink:
    """Fans an entry out to several sinks; one failing sink does not stop the others."""

    def __init__(self, *sinks: TelemetrySink):
        self.sinks = list(sinks)

    def emit(self, entry: PipelineTelemetry) -> None:
        for sink in self.sinks:
            emit_safely(sink, entry)

    def flush(self) -> None:
        for sink in self.sinks:
            flush_sink(sink)

    def close(self) -> None:
        for sink in self.sinks:
            close_sink(sink)


def emit_safely(sink: TelemetrySink | None, entry: PipelineTelemetry) -> None:
    """Emit an entry, logging and discarding any sink error."""
    if sink is None:
        return
    try:
        sink.emit(entry)
    except Exception as e:
        logger.warning(f"Telemetry sink {type(sink).__name__} failed: {e}")


def flush_sink(sink: TelemetrySink | None) -> None:
    """Flush a sink that buffers; a no-op for the others."""
    flush = getattr(sink, "flush", None)
    if flush is not None:
        flush()


def close_sink(sink: TelemetrySink | None) -> None:
    close = getattr(sink, "close", None)
    if close is not None:
        close()


def build_default_sink(telemetry_dir: Path | None = None) -> TelemetrySink:
    """Logging sink, plus a JSONL sink when a directory is configured."""
    if telemetry_dir is None:
        return LoggingTelemetrySink()
    return CompositeSink(LoggingTelemetrySink(), JsonlTelemetrySink(telemetry_dir))
