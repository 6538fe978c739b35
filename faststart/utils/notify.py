"""
Diagnostic channel for fast-start runs.

Every run reports through a ``Reporter``: messages always go to the module
logger, and are additionally forwarded to an optional ``NotificationSink``
supplied by the caller (console, HTTP handler, tests). The sink is purely an
observer; a run behaves identically with or without one.
"""

import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationSink(Protocol):
    """
    Protocol for receiving human-readable progress and diagnostics.

    Implementations must provide:
    - message(): informational text
    - error(): failure text
    - warning(): suspicious-but-recoverable conditions
    - verbose(): per-box detail
    - progress(): byte counters while copying boxes
    """

    def message(self, text: str) -> None: ...

    def error(self, text: str) -> None: ...

    def warning(self, text: str) -> None: ...

    def verbose(self, text: str) -> None: ...

    def progress(self, current: int, total: int, label: str | None = None) -> None: ...


class Reporter:
    """Process-wide logger plus an optional per-run sink."""

    def __init__(
        self,
        sink: NotificationSink | None = None,
        task_name: str = "",
        output_progress_log: bool = False,
        log: logging.Logger | None = None,
    ) -> None:
        self.sink = sink
        self.task_name = task_name
        self.output_progress_log = output_progress_log
        self.log = log or logger

    def _format(self, text: str) -> str:
        return f"[{self.task_name}]-{text}" if self.task_name else text

    def verbose(self, text: str) -> None:
        text = self._format(text)
        if self.sink is not None:
            self.sink.verbose(text)
        self.log.debug(text)

    def message(self, text: str) -> None:
        text = self._format(text)
        if self.sink is not None:
            self.sink.message(text)
        self.log.info(text)

    def warning(self, text: str) -> None:
        text = self._format(text)
        if self.sink is not None:
            self.sink.warning(text)
        self.log.warning(text)

    def error(self, text: str, exc_info: BaseException | None = None) -> None:
        text = self._format(text)
        if self.sink is not None:
            self.sink.error(text)
        self.log.error(text, exc_info=exc_info)

    def exception(self, exc: BaseException) -> None:
        """Report an exception with its traceback in the log."""
        self.error(f"{type(exc).__name__}: {exc}", exc_info=exc)

    def progress(self, current: int, total: int, label: str | None = None) -> None:
        if label is not None:
            label = self._format(label)
        if self.sink is not None:
            self.sink.progress(current, total, label)
        if self.output_progress_log:
            if label is not None:
                self.log.info("%s: %d / %d", label, current, total)
            else:
                self.log.info("%d / %d", current, total)
