"""
Level-partitioned operational event log

Every event is appended to ``<log_dir>/<level>.log`` as one line:

    2025-01-01T12:00:00.000Z [SUCCESS] - New entry added: {"id":1}

and mirrored to the console. Appends go through the standard logging
handler machinery, so a single handler lock serializes concurrent writers
and I/O errors are reported by ``Handler.handleError`` instead of being
raised into the pipeline.
"""
import logging
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TextIO

from record_sync.core.models import LogEvent, LogLevel
from record_sync.observability.logger import build_formatter
from record_sync.observability.metrics import increment_counter, log_events_total

EVENT_LOGGER_NAME = "record_sync.events"

# Numeric severities handed to the logging machinery; the tag itself rides on the record
LEVEL_NUMBERS = {
    "INFO": logging.INFO,
    "SUCCESS": 25,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}

LEVEL_NAME_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*$")
ENTRY_PATTERN = re.compile(
    r"^(?P<timestamp>\S+) \[(?P<level>[A-Z][A-Z0-9_]*)\] - (?P<message>.*)$"
)


def normalize_level(level: LogLevel | str) -> str:
    """
    Turn a level into its upper-case tag.

    Raises:
        ValueError: If the name is empty or not a plain identifier (it is
            used as a file name)
    """
    if isinstance(level, LogLevel):
        return level.value
    tag = str(level).strip().upper()
    if not LEVEL_NAME_PATTERN.match(tag):
        raise ValueError(f"Invalid log level: {level!r}")
    return tag


def format_timestamp(created: float) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    stamp = datetime.fromtimestamp(created, tz=timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(text: str) -> datetime:
    return datetime.fromisoformat(text.replace("Z", "+00:00"))


def format_entry(event: LogEvent) -> str:
    """Render an event back into its on-disk line."""
    stamp = event.timestamp.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return f"{stamp.replace('+00:00', 'Z')} [{event.level}] - {event.message}"


class EventFormatter(logging.Formatter):
    """Renders ``<timestamp> [<LEVEL>] - <message>`` with newlines escaped."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage().replace("\r", "\\r").replace("\n", "\\n")
        level = getattr(record, "event_level", record.levelname)
        return f"{format_timestamp(record.created)} [{level}] - {message}"


class LevelPartitionedHandler(logging.Handler):
    """
    Routes each record to ``<log_dir>/<event_level>.log``.

    The directory and the per-level files are created on first use. Callers
    go through ``handle()``, which holds this handler's lock, so the inner
    file handlers never see concurrent writes.
    """

    def __init__(self, log_dir: Path):
        super().__init__()
        self.log_dir = Path(log_dir)
        self._files: dict[str, logging.FileHandler] = {}

    def path_for(self, level: str) -> Path:
        return self.log_dir / f"{level.lower()}.log"

    def _handler_for(self, level: str) -> logging.FileHandler:
        handler = self._files.get(level)
        if handler is None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(self.path_for(level), encoding="utf-8", delay=True)
            handler.setFormatter(self.formatter)
            self._files[level] = handler
        return handler

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._handler_for(record.event_level).emit(record)
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        self.acquire()
        try:
            for handler in self._files.values():
                handler.close()
            self._files.clear()
        finally:
            self.release()
        super().close()


class LogSink:
    """
    Append-only, level-partitioned event store.

    Pass one instance to every component that reports events; there is no
    module-level sink.

    Args:
        log_dir: Directory holding one ``<level>.log`` file per level
        console: Mirror each event to ``stream`` (stdout by default)
        console_format: "text" (same line as the file) or "json"
        stream: Console stream override
    """

    def __init__(
        self,
        log_dir: str | Path = "logs",
        console: bool = True,
        console_format: str = "text",
        stream: TextIO | None = None,
    ) -> None:
        self.log_dir = Path(log_dir)

        self._file_handler = LevelPartitionedHandler(self.log_dir)
        self._file_handler.setFormatter(EventFormatter())
        self._handlers: list[logging.Handler] = [self._file_handler]

        if console:
            console_handler = logging.StreamHandler(stream or sys.stdout)
            if console_format == "json":
                console_handler.setFormatter(build_formatter("json"))
            else:
                console_handler.setFormatter(EventFormatter())
            self._handlers.append(console_handler)

    def path_for(self, level: LogLevel | str) -> Path:
        return self._file_handler.path_for(normalize_level(level))

    def append(self, level: LogLevel | str, message: str) -> None:
        """
        Write one timestamped entry for ``level`` and mirror it to the console.

        Storage errors are reported on stderr by the logging machinery and
        never raised here.
        """
        tag = normalize_level(level)
        record = logging.LogRecord(
            name=EVENT_LOGGER_NAME,
            level=LEVEL_NUMBERS.get(tag, logging.INFO),
            pathname=__file__,
            lineno=0,
            msg=str(message),
            args=None,
            exc_info=None,
        )
        record.event_level = tag
        for handler in self._handlers:
            handler.handle(record)
        increment_counter(log_events_total, level=tag)

    def info(self, message: str) -> None:
        self.append(LogLevel.INFO, message)

    def warn(self, message: str) -> None:
        self.append(LogLevel.WARN, message)

    def error(self, message: str) -> None:
        self.append(LogLevel.ERROR, message)

    def success(self, message: str) -> None:
        self.append(LogLevel.SUCCESS, message)

    def query(self, level: LogLevel | str) -> list[LogEvent]:
        """
        Entries appended with ``level``, oldest first.

        Lines are matched on their own ``[LEVEL]`` tag, so a message that
        merely mentions another level's name never leaks into the result.
        Returns an empty list when nothing has been logged at that level.
        """
        tag = normalize_level(level)
        path = self._file_handler.path_for(tag)

        # Hold the write lock so a half-written trailing line is never read
        self._file_handler.acquire()
        try:
            if not path.exists():
                return []
            with path.open("r", encoding="utf-8") as fh:
                lines = fh.read().splitlines()
        finally:
            self._file_handler.release()

        events = []
        for line in lines:
            match = ENTRY_PATTERN.match(line)
            if match is None or match.group("level") != tag:
                continue
            try:
                timestamp = parse_timestamp(match.group("timestamp"))
            except ValueError:
                continue
            events.append(LogEvent(timestamp=timestamp, level=tag, message=match.group("message")))
        return events

    def close(self) -> None:
        for handler in self._handlers:
            handler.close()
