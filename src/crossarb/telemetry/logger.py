"""
Queue-based logging for the scanner.

Stream feeds can emit a log line per frame under load, so every record
goes through a bounded in-memory queue and is written by a listener
thread. When the queue is full new records are counted and dropped
instead of stalling the event loop.
"""

import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from typing import TextIO

from crossarb.config.constants import LOG_FORMAT, MAX_LOG_QUEUE_SIZE
from crossarb.utils.time import format_timestamp_ms


# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("aiohttp", "asyncio", "ccxt", "urllib3")


class EpochMillisFormatter(logging.Formatter):
    """Render record times in UTC with millisecond precision, like quote timestamps."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return format_timestamp_ms(int(record.created * 1000), include_date=True)


class DroppingQueueHandler(QueueHandler):
    """QueueHandler that drops records when the queue is full."""

    def __init__(self, log_queue: "queue.Queue[logging.LogRecord]") -> None:
        super().__init__(log_queue)
        self.dropped = 0

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            self.dropped += 1


class AsyncLogger:
    """
    Owns the queue, the root queue handler and the writer thread.

    Records from every logger, including ccxt and aiohttp, pass
    through the same queue.
    """

    def __init__(
        self,
        level: int = logging.INFO,
        log_file: Path | None = None,
        queue_size: int = MAX_LOG_QUEUE_SIZE,
        stream: TextIO | None = None,
    ) -> None:
        """
        Initialize async logger.

        Args:
            level: Console logging level.
            log_file: Optional file receiving DEBUG and above.
            queue_size: Maximum records buffered before dropping.
            stream: Console stream, stdout by default.
        """
        self._level = level
        self._log_file = log_file
        self._stream = stream if stream is not None else sys.stdout
        self._queue: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=queue_size)
        self._handler = DroppingQueueHandler(self._queue)
        self._listener: QueueListener | None = None

    def _build_handlers(self) -> list[logging.Handler]:
        formatter = EpochMillisFormatter(LOG_FORMAT)

        console = logging.StreamHandler(self._stream)
        console.setFormatter(formatter)
        console.setLevel(self._level)
        handlers: list[logging.Handler] = [console]

        if self._log_file:
            self._log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self._log_file, encoding="utf-8")
            file_handler.setFormatter(formatter)
            file_handler.setLevel(logging.DEBUG)
            handlers.append(file_handler)

        return handlers

    def start(self) -> None:
        """Attach to the root logger and start the writer thread."""
        if self._listener is not None:
            return

        root = logging.getLogger()
        root.addHandler(self._handler)
        # File output wants DEBUG even when the console does not
        root.setLevel(logging.DEBUG if self._log_file else self._level)

        self._listener = QueueListener(self._queue, *self._build_handlers(), respect_handler_level=True)
        self._listener.start()

    def stop(self) -> None:
        """Flush queued records and detach from the root logger."""
        if self._listener is None:
            return

        logging.getLogger().removeHandler(self._handler)
        self._listener.stop()
        self._listener = None

        if self._handler.dropped:
            print(f"Logging dropped {self._handler.dropped} records (queue full)", file=sys.stderr)

    @property
    def dropped(self) -> int:
        """Records discarded because the queue was full."""
        return self._handler.dropped

    @property
    def is_running(self) -> bool:
        return self._listener is not None

    def __enter__(self) -> "AsyncLogger":
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()


def setup_logging(level: str = "INFO", log_file: Path | None = None) -> AsyncLogger:
    """
    Route all logging through a started AsyncLogger.

    Existing root handlers are removed and third-party libraries are
    capped at WARNING.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional log file path.

    Returns:
        The started AsyncLogger; call ``stop()`` on shutdown.
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    numeric_level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
    async_logger = AsyncLogger(level=numeric_level, log_file=log_file)
    async_logger.start()

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return async_logger
