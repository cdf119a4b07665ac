"""Operation IDs for following one write through the logs.

Entity services and the sync engine start an operation with
``new_operation_id("booking-update")``. Everything logged in the same async
context, from the local store to the cloud client, then carries that id in
``record.operation_id`` and shows it in the ``[op=...]`` slot of
``LOG_FORMAT``.

Usage:
    from studiosync.logging_context import get_op_logger, new_operation_id

    logger = get_op_logger(__name__)
    new_operation_id("drain")
    logger.info("Applying entry")  # ... [op=drain-3f9a1c] Applying entry
"""

import logging
import uuid
from contextvars import ContextVar

LOG_FORMAT = "%(asctime)s [%(name)s] [op=%(operation_id)s] %(levelname)s: %(message)s"
NO_OPERATION = "-"

_operation_id: ContextVar[str] = ContextVar("operation_id", default=NO_OPERATION)


def set_operation_id(operation_id: str) -> None:
    _operation_id.set(operation_id)


def get_operation_id() -> str:
    return _operation_id.get()


def new_operation_id(prefix: str) -> str:
    """Install a fresh id like ``drain-3f9a1c`` for the current async context."""
    operation_id = f"{prefix}-{uuid.uuid4().hex[:6]}"
    set_operation_id(operation_id)
    return operation_id


class OperationIdFilter(logging.Filter):
    """Stamps the current operation id on each record it sees."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.operation_id = _operation_id.get()  # type: ignore[attr-defined]
        return True


def _attach(filterer: logging.Filterer) -> None:
    if not any(isinstance(f, OperationIdFilter) for f in filterer.filters):
        filterer.addFilter(OperationIdFilter())


def get_op_logger(name: str) -> logging.Logger:
    """``logging.getLogger`` with the operation id filter attached."""
    logger = logging.getLogger(name)
    _attach(logger)
    return logger


def install_operation_id_filter(logger: logging.Logger = logging.getLogger()) -> None:
    """
    Attach the filter to every handler of ``logger`` (the root by default).

    Handler filters see records propagated from any module, so a format
    using ``%(operation_id)s`` never meets a record without one.
    """
    for handler in logger.handlers:
        _attach(handler)
