"""Last-resort crash recording for sync and event-loop exceptions."""

import json
import os
import sys
import traceback
import uuid

from internal.logging import format_timestamp

_crash_file = "logs/crash.log"


def _record(exc, context=None):
    """Append one crash record to the crash file. Never raises."""
    crash_id = uuid.uuid4().hex[:12]
    record = {
        "id": crash_id,
        "timestamp": format_timestamp(),
        "type": type(exc).__name__ if exc else "Unknown",
        "msg": str(exc) if exc else "",
        "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)) if exc else None,
    }
    if context:
        record["context"] = context
    try:
        log_dir = os.path.dirname(_crash_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        with open(_crash_file, "a") as file:
            file.write(json.dumps(record, default=str) + "\n")
    except OSError:
        pass
    return record


def _excepthook(exc_type, exc_value, exc_tb):
    record = _record(exc_value)
    sys.stderr.write(f"\n{'=' * 60}\nCRASH [{record['id']}] {record['timestamp']}\n{'=' * 60}\n")
    sys.stderr.write(record["traceback"] or f"{exc_type.__name__}\n")


def install_crash_handler(crash_file=None):
    global _crash_file
    if crash_file:
        _crash_file = crash_file
    sys.excepthook = _excepthook


def create_async_handler(logger=None):
    """Event-loop exception handler for tasks that die with nobody awaiting them."""
    def handler(loop, context):
        exc = context.get("exception")
        record = _record(exc, {"message": context.get("message"), "task": str(context.get("future", ""))})
        if logger:
            logger.error("unhandled async exception", error=record["msg"] or context.get("message"),
                         crash_id=record["id"])
    return handler
