from internal.logging import AsyncFileLogger, LogLevel, StructuredLogger, format_timestamp, get_logger

__all__ = [
    "AsyncFileLogger",
    "LogLevel",
    "StructuredLogger",
    "format_timestamp",
    "get_logger",
]
