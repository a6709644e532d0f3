"""Unit tests for logging configuration and trace correlation."""

from __future__ import annotations

import json
from typing import Any

import pytest
import structlog
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.sampling import ALWAYS_ON

from vsx_publish.telemetry import add_trace_context, configure_logging


class TestAddTraceContext:
    """Tests for the add_trace_context processor."""

    def test_adds_ids_inside_span(self) -> None:
        """Test trace_id and span_id are injected as hex strings."""
        tracer = TracerProvider(sampler=ALWAYS_ON).get_tracer("test")

        with tracer.start_as_current_span("publish"):
            result = add_trace_context(None, "info", {"event": "x"})

        assert len(result["trace_id"]) == 32
        assert len(result["span_id"]) == 16
        assert all(c in "0123456789abcdef" for c in result["trace_id"])

    def test_no_ids_without_span(self) -> None:
        """Test the event is unchanged outside a span."""
        event_dict: dict[str, Any] = {"event": "x"}

        assert add_trace_context(None, "info", event_dict) == {"event": "x"}


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_output_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test JSON rendering goes to stderr, leaving stdout clean."""
        configure_logging("INFO", json_output=True)

        structlog.get_logger("test").info("publish_completed", extension="acme.ext@1.0.0")

        captured = capsys.readouterr()
        assert captured.out == ""
        record = json.loads(captured.err.strip().splitlines()[-1])
        assert record["event"] == "publish_completed"
        assert record["level"] == "info"
        assert record["extension"] == "acme.ext@1.0.0"

    def test_level_filtering(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test events below the configured level are dropped."""
        configure_logging("WARNING")

        structlog.get_logger("test").info("hidden_event")

        assert "hidden_event" not in capsys.readouterr().err

    def test_unknown_level_rejected(self) -> None:
        """Test an unknown level name raises ValueError."""
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging("CHATTY")
