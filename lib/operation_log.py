"""JSON audit trail for provisioning runs, built on logging_utils."""

from __future__ import annotations
import json
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from lib.logging_utils import DEFAULT_LOG_DIR, get_rotating_logger, log_message


class OperationLogger:
    """Writes one JSON object per event (step, handler, error, completion) to a log file."""

    def __init__(self, operation_id: str, log_file: str):
        """Initialize operation logger.

        Args:
            operation_id: Unique identifier for the run
            log_file: Path to log file
        """
        self.operation_id = operation_id
        self.log_file = log_file
        self.logger = get_rotating_logger(f"operation_{operation_id}", log_file)
        self.start_time = time.time()
        self.current_step: Optional[str] = None
        self.status = "running"
        self.changed_steps: list[str] = []

        self._log_event("operation_start", {
            "operation_id": operation_id,
            "start_time": datetime.fromtimestamp(self.start_time).isoformat(),
            "log_file": log_file
        })

    def log_step(self, step: str, status: str, details: Optional[str] = None, duration: Optional[float] = None) -> None:
        """Log a step in the run.

        Args:
            step: Step name
            status: 'started', 'ok', 'changed' or 'failed'
            details: Optional module message
            duration: Optional duration in seconds
        """
        self.current_step = step
        if status == "changed":
            self.changed_steps.append(step)

        event_data: dict[str, Any] = {
            "step": step,
            "status": status,
            "timestamp": datetime.now().isoformat()
        }
        if details:
            event_data["details"] = details
        if duration is not None:
            event_data["duration_seconds"] = round(duration, 2)

        self._log_event("step", event_data)

    def log_handler(self, handler: str, status: str, notified_by: list[str]) -> None:
        self._log_event("handler", {
            "handler": handler,
            "status": status,
            "notified_by": notified_by,
            "timestamp": datetime.now().isoformat()
        })

    def log_error(self, error_type: str, error_message: str, context: Optional[dict[str, Any]] = None) -> None:
        """Log an error with the step that was running when it happened."""
        error_data: dict[str, Any] = {
            "error_type": error_type,
            "error_message": error_message,
            "timestamp": datetime.now().isoformat(),
            "current_step": self.current_step
        }
        if context:
            error_data["context"] = context

        self._log_event("error", error_data)

    def complete(self, status: str = "completed", summary: Optional[str] = None) -> None:
        """Complete the run with final status ('completed' or 'failed')."""
        self.status = status
        end_time = time.time()

        completion_data: dict[str, Any] = {
            "status": status,
            "end_time": datetime.fromtimestamp(end_time).isoformat(),
            "duration_seconds": round(end_time - self.start_time, 2),
            "changed_steps": len(self.changed_steps)
        }
        if summary:
            completion_data["summary"] = summary

        self._log_event("operation_complete", completion_data)

    def _log_event(self, event_type: str, data: dict[str, Any]) -> None:
        log_entry: dict[str, Any] = {
            "event_type": event_type,
            "operation_id": self.operation_id,
            **data
        }
        log_message(self.logger, json.dumps(log_entry, default=str))


def create_operation_logger(operation_type: str, base_log_dir: Optional[str] = None) -> OperationLogger:
    """Create a logger writing to <base_log_dir>/operations/<type>_<timestamp>_<id>.log."""
    operation_id = str(uuid.uuid4())[:8]
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_dir = Path(base_log_dir or DEFAULT_LOG_DIR) / "operations"
    log_file = log_dir / f"{operation_type}_{timestamp}_{operation_id}.log"
    return OperationLogger(operation_id, str(log_file))
