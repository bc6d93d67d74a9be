"""Unit tests for pommel's logging helpers."""

import io
import json
import logging
from collections.abc import Iterator

import pytest

from pommel.utils.correlation import CorrelationContext
from pommel.utils.logging import (
    CorrelationIDFilter,
    StructuredFormatter,
    configure_logging,
    get_logger,
    log_with_context,
)


def _record(msg: str = "copy finished", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="pommel.copier",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    record.__dict__.update(extra)
    return record


@pytest.fixture
def restore_pommel_logger() -> Iterator[logging.Logger]:
    logger = logging.getLogger("pommel")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


def test_structured_formatter_emits_json() -> None:
    payload = json.loads(StructuredFormatter().format(_record(backend="local", bucket="secret")))

    assert payload["message"] == "copy finished"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "pommel.copier"
    assert payload["backend"] == "local"
    assert payload["bucket"] == "secret"
    assert "correlation_id" not in payload


def test_structured_formatter_merges_extra_fields() -> None:
    payload = json.loads(StructuredFormatter().format(_record(extra_fields={"bytes": 42})))

    assert payload["bytes"] == 42
    assert "extra_fields" not in payload


def test_structured_formatter_includes_correlation_id() -> None:
    with CorrelationContext.context("cid-123"):
        payload = json.loads(StructuredFormatter().format(_record()))

    assert payload["correlation_id"] == "cid-123"


def test_correlation_filter_tags_records() -> None:
    record = _record()

    with CorrelationContext.context("cid-456"):
        assert CorrelationIDFilter().filter(record)

    assert record.correlation_id == "cid-456"  # type: ignore[attr-defined]


def test_correlation_context_restores_previous_id() -> None:
    with CorrelationContext.context("outer"):
        with CorrelationContext.context() as inner:
            assert CorrelationContext.get() == inner
            assert inner != "outer"
        assert CorrelationContext.get() == "outer"
    assert CorrelationContext.get() is None


def test_get_logger_namespaces_under_pommel() -> None:
    logger = get_logger("providers.local")

    assert logger.name == "pommel.providers.local"
    assert get_logger("pommel.copier").name == "pommel.copier"
    assert get_logger().name == "pommel"
    assert sum(isinstance(f, CorrelationIDFilter) for f in get_logger("providers.local").filters) == 1


def test_configure_logging_structured(restore_pommel_logger: logging.Logger) -> None:
    stream = io.StringIO()

    configure_logging(level="INFO", format_style="structured", stream=stream)
    log_with_context(get_logger("copier"), logging.INFO, "copied", bytes=7)

    payload = json.loads(stream.getvalue().splitlines()[-1])
    assert payload["message"] == "copied"
    assert payload["bytes"] == 7
    assert not restore_pommel_logger.propagate


def test_configure_logging_respects_level(restore_pommel_logger: logging.Logger) -> None:
    stream = io.StringIO()

    configure_logging(level="WARNING", format_style="simple", stream=stream)
    get_logger("copier").info("hidden")
    get_logger("copier").warning("shown")

    assert "hidden" not in stream.getvalue()
    assert "WARNING - shown" in stream.getvalue()
