"""Tests for operation ids in log output."""

import contextvars
import io
import logging

import pytest

from studiosync.logging_context import (
    LOG_FORMAT,
    NO_OPERATION,
    get_operation_id,
    install_operation_id_filter,
    new_operation_id,
)


@pytest.fixture
def captured():
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    parent = logging.getLogger("studiosync-logtest")
    parent.addHandler(handler)
    parent.setLevel(logging.INFO)
    parent.propagate = False
    install_operation_id_filter(parent)
    yield stream
    parent.removeHandler(handler)


class TestOperationIds:
    def test_new_id_uses_prefix(self):
        def run():
            operation_id = new_operation_id("booking-update")
            return operation_id, get_operation_id()

        operation_id, current = contextvars.copy_context().run(run)
        assert operation_id.startswith("booking-update-")
        assert current == operation_id

    def test_fresh_context_has_no_operation(self):
        assert contextvars.Context().run(get_operation_id) == NO_OPERATION

    def test_plain_module_logger_shows_operation(self, captured):
        def run():
            new_operation_id("drain")
            logging.getLogger("studiosync-logtest.queue").info("Applying entry")

        contextvars.copy_context().run(run)
        line = captured.getvalue()
        assert "[op=drain-" in line
        assert "Applying entry" in line

    def test_records_outside_an_operation_still_format(self, captured):
        contextvars.Context().run(logging.getLogger("studiosync-logtest.store").info, "Schema ready")
        assert f"[op={NO_OPERATION}] INFO: Schema ready" in captured.getvalue()
