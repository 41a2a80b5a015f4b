"""
Structured logging for coordinator events.
Provides JSON-lines logs with session context alongside the normal console log.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any


class StructuredLogger:
    """
    Logger that outputs both human-readable and machine-parseable entries.

    Usage:
        logger = StructuredLogger("asset_refresher", log_dir=Path("logs"))
        logger.info("job_submitted", job_id=3, kind="update")
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_console: bool = True,
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_console: Mirror events to the standard logger
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = log_dir is not None
        self.enable_console = enable_console

        self._logger = logging.getLogger(name)

        self._json_file = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            json_log_path = log_dir / f"asset_refresher_{timestamp}.jsonl"
            self._json_file = open(json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Session context (added to all log entries)
        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    def set_session_context(self, **kwargs) -> None:
        """Set session-level context that appears in all logs."""
        self._session_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        parts = [f"[{event}]"]
        for key, value in context.items():
            parts.append(f"{key}={value}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        if not self._json_file or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }

        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except (OSError, ValueError) as e:
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def _log(self, level: int, event: str, **context) -> None:
        if self.enable_console:
            self._logger.log(level, self._format_message(event, **context))
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        self._log(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        self._log(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        self._log(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        self._log(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class RefreshLogger:
    """Specialized logger for coordinator events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def state_changed(self, previous: str, current: str, trigger: str):
        self.logger.debug(
            "state_changed", previous=previous, current=current, trigger=trigger
        )

    def job_submitted(self, job_id: int, kind: str, url: str, destination: str):
        self.logger.info(
            "job_submitted", job_id=job_id, kind=kind, url=url, destination=destination
        )

    def job_finished(self, job_id: int, kind: str, status: str, local_path: str | None):
        """Log a download job reaching a terminal status."""
        log = self.logger.info if status == "successful" else self.logger.warning
        log(
            "job_finished",
            job_id=job_id,
            kind=kind,
            status=status,
            local_path=local_path,
        )

    def revalidated(self, url: str, result: str, known_last_modified: float | None):
        self.logger.info(
            "revalidated",
            url=url,
            result=result,
            known_last_modified=known_last_modified,
        )

    def promoted(self, source: str, destination: str, success: bool):
        """Log the outcome of moving a download into place."""
        if success:
            self.logger.info("promoted", source=source, destination=destination)
        else:
            self.logger.error("promotion_failed", source=source, destination=destination)

    def siblings_purged(self, canonical: str, removed: list[str]):
        self.logger.debug(
            "siblings_purged", canonical=canonical, removed=removed, count=len(removed)
        )


def create_structured_logger(
    log_dir: Path | None = None, enable_console: bool = False
) -> tuple[StructuredLogger, RefreshLogger]:
    """
    Create the structured loggers.

    Console mirroring is off by default because the coordinator already logs
    through its module logger.

    Returns:
        Tuple of (base_logger, refresh_logger)
    """
    base = StructuredLogger(
        "asset_refresher.events", log_dir=log_dir, enable_console=enable_console
    )
    return base, RefreshLogger(base)
