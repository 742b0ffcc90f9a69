"""
Unit tests for pipeline telemetry sinks.

Run: pytest tests/unit/test_telemetry.py -v
"""

import json
import threading

from src.delivery.telemetry import (
    CompositeSink,
    InMemoryTelemetrySink,
    JsonlTelemetrySink,
    LoggingTelemetrySink,
    PipelineTelemetry,
    build_default_sink,
    close_sink,
    emit_safely,
    flush_sink,
)


def entry(**overrides):
    data = dict(request_id="abc123", concept_id="tri.structure.legs", attempt=0, accepted=True, reason="accepted")
    data.update(overrides)
    return PipelineTelemetry(**data)


class FailingSink:
    def emit(self, entry):
        raise RuntimeError("sink offline")


class TestSinks:
    def test_in_memory_filters_by_request(self):
        sink = InMemoryTelemetrySink()
        sink.emit(entry())
        sink.emit(entry(request_id="other"))

        assert len(sink.for_request("abc123")) == 1
        sink.clear()
        assert sink.entries == []

    def test_jsonl_appends_lines(self, tmp_path):
        sink = JsonlTelemetrySink(tmp_path / "telemetry")
        sink.emit(entry())
        sink.emit(entry(attempt=1, accepted=False, reason="schema", violations=["schema"]))
        sink.flush()

        files = list((tmp_path / "telemetry").glob("*_pipeline.jsonl"))
        assert len(files) == 1
        lines = [json.loads(line) for line in files[0].read_text(encoding="utf-8").splitlines()]
        assert [line["reason"] for line in lines] == ["accepted", "schema"]
        assert lines[1]["violations"] == ["schema"]
        assert "timestamp" in lines[0]

    def test_composite_continues_after_failure(self):
        memory = InMemoryTelemetrySink()
        CompositeSink(FailingSink(), memory).emit(entry())
        assert len(memory.entries) == 1

    def test_emit_safely_swallows_sink_errors(self):
        emit_safely(FailingSink(), entry())
        emit_safely(None, entry())


class TestDefaultSink:
    def test_logging_only(self):
        assert isinstance(build_default_sink(None), LoggingTelemetrySink)

    def test_with_directory(self, tmp_path):
        sink = build_default_sink(tmp_path)
        assert isinstance(sink, CompositeSink)
        assert any(isinstance(s, JsonlTelemetrySink) for s in sink.sinks)


class TestJsonlWriter:
    def test_emit_does_not_write_on_caller_thread(self, tmp_path, monkeypatch):
        sink = JsonlTelemetrySink(tmp_path)
        writer_threads = []
        original = sink._write

        def record_thread(record):
            writer_threads.append(threading.current_thread().name)
            original(record)

        monkeypatch.setattr(sink, "_write", record_thread)
        sink.emit(entry())
        sink.flush()

        assert writer_threads == ["telemetry-jsonl"]
        sink.close()

    def test_close_drains_queue(self, tmp_path):
        sink = JsonlTelemetrySink(tmp_path)
        for attempt in range(5):
            sink.emit(entry(attempt=attempt))
        sink.close()

        lines = next(tmp_path.glob("*_pipeline.jsonl")).read_text(encoding="utf-8").splitlines()
        assert [json.loads(line)["attempt"] for line in lines] == [0, 1, 2, 3, 4]

    def test_emit_after_close_writes_directly(self, tmp_path):
        sink = JsonlTelemetrySink(tmp_path)
        sink.close()
        sink.emit(entry())
        sink.flush()

        assert len(next(tmp_path.glob("*_pipeline.jsonl")).read_text(encoding="utf-8").splitlines()) == 1

    def test_composite_flush_and_close(self, tmp_path):
        jsonl = JsonlTelemetrySink(tmp_path)
        composite = CompositeSink(InMemoryTelemetrySink(), jsonl)
        composite.emit(entry())
        flush_sink(composite)

        assert len(next(tmp_path.glob("*_pipeline.jsonl")).read_text(encoding="utf-8").splitlines()) == 1
        close_sink(composite)
        assert not jsonl._writer.is_alive()
        close_sink(None)
