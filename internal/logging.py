import asyncio
import json
import os
import sys
import threading
from datetime import datetime, timezone
from enum import IntEnum


class LogLevel(IntEnum):
    DEBUG = 10
    INFO = 20
    WARN = 30
    ERROR = 40


def format_timestamp(moment=None):
    """ISO 8601 UTC with microseconds, e.g. 2024-01-01T00:00:00.000000Z."""
    moment = moment or datetime.now(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.%f") + "Z"


_logger = None
_logger_lock = threading.Lock()


class StructuredLogger:
    """JSON-lines logger on stderr. Never raises into the caller.

    bind() returns a child that stamps fixed fields (a player id, say) on
    every record it writes.
    """

    def __init__(self, level=LogLevel.INFO, stream=None, context=None):
        self.level = level
        self.stream = stream
        self.context = context or {}

    def bind(self, **fields):
        return StructuredLogger(self.level, self.stream, {**self.context, **fields})

    def enabled(self, level):
        return level >= self.level

    def _emit(self, level, message, error=None, **fields):
        if not self.enabled(level):
            return
        record = {"timestamp": format_timestamp(), "level": level.name, "msg": message}
        record.update(self.context)
        record.update(fields)
        if error is not None:
            record["err"] = str(error)
        try:
            line = json.dumps(record, default=str)
            print(line, file=self.stream or sys.stderr, flush=True)
        except (TypeError, ValueError, OSError):
            pass

    def debug(self, message, **fields):
        self._emit(LogLevel.DEBUG, message, **fields)

    def info(self, message, **fields):
        self._emit(LogLevel.INFO, message, **fields)

    def warn(self, message, error=None, **fields):
        self._emit(LogLevel.WARN, message, error, **fields)

    def error(self, message, error=None, **fields):
        self._emit(LogLevel.ERROR, message, error, **fields)

    @classmethod
    def configure(cls, min_level=LogLevel.INFO, stream=None):
        """Install the process logger returned by get_logger()."""
        global _logger
        with _logger_lock:
            _logger = cls(min_level, stream)
        return _logger


def get_logger(**fields):
    global _logger
    if _logger is None:
        with _logger_lock:
            if _logger is None:
                _logger = StructuredLogger()
    return _logger.bind(**fields) if fields else _logger


class AsyncFileLogger:
    """Event journal for connects, disconnects, resets and rejected frames.

    try_log() never blocks the caller: records go on a bounded queue and a
    single writer task appends them to the file as JSON lines, a batch per
    wake-up. Overflow is counted, not raised.
    """

    def __init__(self, file_path, queue_size=1000):
        self.path = file_path
        self.queue = asyncio.Queue(maxsize=queue_size)
        self._task = None
        self._stop = asyncio.Event()
        self.written = 0
        self.dropped = 0

    def try_log(self, kind, data):
        record = {"timestamp": format_timestamp(), "kind": kind, "data": data}
        try:
            self.queue.put_nowait(record)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True

    async def start(self):
        if self._task:
            return
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        self._stop.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self):
        """Signal the writer and wait until everything queued is on disk."""
        self._stop.set()
        if self._task:
            await self._task
            self._task = None

    def get_stats(self):
        return {"queued": self.queue.qsize(), "written": self.written, "dropped": self.dropped}

    def _take_batch(self, first=None):
        batch = [] if first is None else [first]
        while not self.queue.empty():
            batch.append(self.queue.get_nowait())
        return batch

    def _flush_batch(self, file, batch):
        try:
            file.writelines(json.dumps(record, default=str) + "\n" for record in batch)
            file.flush()
        except OSError as exc:
            self.dropped += len(batch)
            get_logger().warn("journal write failed", error=exc, path=self.path, lost=len(batch))
            return
        self.written += len(batch)

    async def _run(self):
        with open(self.path, "a") as file:
            while not self._stop.is_set():
                try:
                    first = await asyncio.wait_for(self.queue.get(), timeout=0.5)
                except asyncio.TimeoutError:
                    continue
                self._flush_batch(file, self._take_batch(first))
            self._flush_batch(file, self._take_batch())
