"""
Logging Configuration for the apuração engine.

Provides structured logging with:
- JSON formatting for production
- Human-readable formatting for development
- Run-specific logging for audit trails (taxpayer, period, timings)

The library never configures handlers on import; applications call
configure_logging() once at startup.
"""

import logging
import json
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Context variable for correlating all log lines of one run
run_id_var: ContextVar[Optional[str]] = ContextVar('run_id', default=None)


class JsonFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Outputs logs as JSON objects for easy parsing by log aggregators.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        run_id = run_id_var.get()
        if run_id:
            log_data["run_id"] = run_id

        if hasattr(record, 'extra_data'):
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ReadableFormatter(logging.Formatter):
    """
    Human-readable log formatter for development.
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime('%H:%M:%S.%f')[:-3]
        message = f"{timestamp} {record.levelname:8s} [{record.name}] {record.getMessage()}"

        if hasattr(record, 'extra_data') and record.extra_data:
            extras = ' | '.join(f"{k}={v}" for k, v in record.extra_data.items())
            message += f" | {extras}"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that includes run context in all log messages.
    """

    def process(self, msg: str, kwargs: Dict) -> tuple:
        extra = kwargs.get('extra', {})

        if 'extra_data' not in extra:
            extra['extra_data'] = {}
        run_id = run_id_var.get()
        if run_id:
            extra['extra_data'].setdefault('run_id', run_id)
        extra['extra_data'].update(self.extra)

        kwargs['extra'] = extra
        return msg, kwargs


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[Path] = None
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON formatted logs
        log_file: Optional file path for log output (always JSON)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter = JsonFormatter() if json_output else ReadableFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JsonFormatter())
        root_logger.addHandler(file_handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str, **extra) -> ContextLogger:
    """
    Get a context-aware logger.

    Args:
        name: Logger name (typically __name__)
        **extra: Additional context to include in all logs

    Returns:
        ContextLogger instance
    """
    return ContextLogger(logging.getLogger(name), extra)


class RunLogger:
    """
    Logger for one apuração run.

    Records the run start, timed steps and the final outcome with the
    taxpayer and period attached to every line.
    """

    def __init__(self, kind: str, taxpayer_id: str, period: str):
        self.run_id = f"{kind}:{taxpayer_id}:{period}:{int(time.time() * 1000)}"
        self.logger = get_logger(
            "apuracao.run", kind=kind, taxpayer_id=taxpayer_id, period=period
        )
        self._start_time: Optional[float] = None
        self._step_times: Dict[str, int] = {}
        self._token = None

    def start(self, item_count: int) -> None:
        self._start_time = time.time()
        self._token = run_id_var.set(self.run_id)
        self.logger.info(
            "Starting apuração run",
            extra={'extra_data': {'item_count': item_count}}
        )

    def step(self, step_name: str) -> float:
        self.logger.debug(f"Run step: {step_name}", extra={'extra_data': {'step': step_name}})
        return time.time()

    def complete_step(self, step_name: str, step_start: float, **result: Any) -> None:
        duration_ms = int((time.time() - step_start) * 1000)
        self._step_times[step_name] = duration_ms
        self.logger.debug(
            f"Completed step: {step_name}",
            extra={'extra_data': {'step': step_name, 'duration_ms': duration_ms, **result}}
        )

    def finish(self, status: str, confidence: int = 0, **data: Any) -> None:
        duration_ms = int((time.time() - self._start_time) * 1000) if self._start_time else 0
        log = self.logger.info if status == "done" else self.logger.warning
        log(
            f"Apuração run {status}",
            extra={'extra_data': {
                'status': status,
                'confidence': confidence,
                'duration_ms': duration_ms,
                'step_times': self._step_times,
                **data,
            }}
        )
        if self._token is not None:
            run_id_var.reset(self._token)
            self._token = None
