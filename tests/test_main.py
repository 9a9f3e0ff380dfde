import logging
import sys

import anyio
import pytest

from extension_harness.__main__ import quiet_client_disconnects


def _record(exc: BaseException | None) -> logging.LogRecord:
    exc_info = (type(exc), exc, None) if exc is not None else None
    return logging.LogRecord(
        "mcp.server.streamable_http_manager", logging.ERROR, __file__, 1,
        "Error in message router: %s", ("boom",), exc_info,
    )


def test_client_disconnect_is_downgraded():
    record = _record(anyio.ClosedResourceError())

    assert quiet_client_disconnects(record) is True
    assert record.levelno == logging.DEBUG
    assert record.levelname == "DEBUG"
    assert record.exc_info is None
    assert record.getMessage() == "Client disconnected before the response was sent"


@pytest.mark.skipif(sys.version_info < (3, 11), reason="needs BaseExceptionGroup")
def test_grouped_client_disconnect_is_downgraded():
    group = BaseExceptionGroup("task group", [anyio.ClosedResourceError()])  # noqa: F821
    record = _record(group)

    quiet_client_disconnects(record)

    assert record.levelno == logging.DEBUG


def test_other_errors_pass_through():
    record = _record(RuntimeError("real failure"))

    assert quiet_client_disconnects(record) is True
    assert record.levelno == logging.ERROR
    assert record.exc_info is not None
    assert record.getMessage() == "Error in message router: boom"


def test_plain_records_pass_through():
    record = _record(None)

    assert quiet_client_disconnects(record) is True
    assert record.levelno == logging.ERROR
