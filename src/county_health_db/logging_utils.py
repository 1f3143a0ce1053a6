"""
Structured logging for the pipeline scripts.

Each script run writes human-readable lines to stdout and machine-readable
JSON lines to logs/<script>_<run_id>.jsonl. A JSON line carries:

    ts, run_id, script, level, event, msg, ctx (and exc on errors)

Library functions take an optional logger and emit typed events through
log_event(); the helpers below cover the events the scripts report
(steps, joins, QA checks, model fits, written outputs).
"""

import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from county_health_db.paths import paths, ensure_dir


CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
CONSOLE_DATEFMT = "%Y-%m-%d %H:%M:%S"

_active_run_id: str | None = None
_loggers: dict[tuple[str, str], logging.Logger] = {}


def generate_run_id() -> str:
    """UTC timestamp plus a short random suffix, e.g. 20240601_142233_1a2b3c4d."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{stamp}_{uuid.uuid4().hex[:8]}"


def get_run_id() -> str:
    """Run ID shared by every logger of this process."""
    global _active_run_id
    if _active_run_id is None:
        _active_run_id = generate_run_id()
    return _active_run_id


def set_run_id(run_id: str) -> None:
    global _active_run_id
    _active_run_id = run_id


class JSONLHandler(logging.Handler):
    """Append one JSON object per record to a log file (opened on first write)."""

    def __init__(self, log_path: Path, run_id: str, script_name: str):
        super().__init__()
        self.log_path = Path(log_path)
        self.run_id = run_id
        self.script_name = script_name
        self._stream = None

    def _record_to_dict(self, record: logging.LogRecord) -> dict[str, Any]:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "run_id": self.run_id,
            "script": self.script_name,
            "level": record.levelname,
            "event": getattr(record, "event_type", "message"),
            "msg": record.getMessage(),
        }
        ctx = getattr(record, "context", None)
        if ctx:
            entry["ctx"] = ctx
        if record.exc_info:
            entry["exc"] = logging.Formatter().formatException(record.exc_info)
        return entry

    def emit(self, record: logging.LogRecord):
        try:
            if self._stream is None:
                ensure_dir(self.log_path.parent)
                self._stream = open(self.log_path, "a", encoding="utf-8")
            self._stream.write(json.dumps(self._record_to_dict(record), default=str) + "\n")
            self._stream.flush()
        except Exception:
            self.handleError(record)

    def close(self):
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        super().close()


def get_logger(
    script_name: str,
    run_id: str | None = None,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    log_dir: Path | None = None,
) -> logging.Logger:
    """
    Logger for one pipeline script run.

    Calling again with the same script and run ID returns the same logger,
    so handlers are never attached twice.

    Args:
        script_name: Script name without extension, e.g. "01_build_county_database".
        run_id: Run ID to use; defaults to the process-wide run ID.
        console_level: Level for the stdout handler.
        file_level: Level for the JSONL handler.
        log_dir: Directory for the JSONL file (default: logs/).

    Returns:
        Configured logger.
    """
    if run_id is None:
        run_id = get_run_id()
    else:
        set_run_id(run_id)

    cache_key = (script_name, run_id)
    if cache_key in _loggers:
        return _loggers[cache_key]

    logger = logging.getLogger(f"county_health_db.{script_name}.{run_id}")
    logger.setLevel(min(console_level, file_level))
    logger.propagate = False
    logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT))
    logger.addHandler(console)

    jsonl = JSONLHandler((log_dir or paths.logs) / f"{script_name}_{run_id}.jsonl", run_id, script_name)
    jsonl.setLevel(file_level)
    logger.addHandler(jsonl)

    _loggers[cache_key] = logger
    log_event(logger, logging.DEBUG, f"Logging {script_name} run {run_id}", "logger_init",
              script_name=script_name, run_id=run_id)
    return logger


def log_event(
    logger: logging.Logger,
    level: int,
    message: str,
    event_type: str,
    **context: Any
) -> None:
    """Emit a message tagged with an event type and keyword context."""
    logger.log(level, message, extra={"event_type": event_type, "context": context})


def log_step_start(logger: logging.Logger, step_name: str, **context: Any) -> None:
    log_event(logger, logging.INFO, f"Starting: {step_name}", "step_start",
              step_name=step_name, **context)


def log_step_end(logger: logging.Logger, step_name: str, **context: Any) -> None:
    log_event(logger, logging.INFO, f"Completed: {step_name}", "step_end",
              step_name=step_name, **context)


def log_qa_check(
    logger: logging.Logger,
    check_name: str,
    passed: bool,
    details: str | None = None,
    **context: Any
) -> None:
    """Failed checks are logged at ERROR, passing ones at INFO."""
    verdict = "PASSED" if passed else "FAILED"
    message = f"QA [{check_name}] {verdict}" + (f": {details}" if details else "")
    log_event(logger, logging.INFO if passed else logging.ERROR, message, "qa_check",
              check_name=check_name, passed=passed, details=details, **context)


def log_join(
    logger: logging.Logger,
    source: str,
    anchor_rows: int,
    matched_rows: int,
    **context: Any
) -> None:
    """Match rate of one source joined onto the anchor; partial matches warn."""
    rate = matched_rows / anchor_rows if anchor_rows else 0.0
    level = logging.INFO if matched_rows == anchor_rows else logging.WARNING
    log_event(logger, level,
              f"Joined {source}: {matched_rows}/{anchor_rows} counties matched ({rate:.0%})", "join",
              source=source, anchor_rows=anchor_rows, matched_rows=matched_rows,
              match_rate=rate, **context)


def log_model_fit(
    logger: logging.Logger,
    model_name: str,
    family: str,
    n_obs: int,
    aic: float,
    dispersion: float | None = None,
    **context: Any
) -> None:
    """Headline diagnostics of a fitted model."""
    message = f"Fitted {model_name} ({family}): n={n_obs}, AIC={aic:.2f}"
    if dispersion is not None:
        message += f", dispersion={dispersion:.3f}"
    log_event(logger, logging.INFO, message, "model_fit",
              model_name=model_name, family=family, n_obs=n_obs,
              aic=aic, dispersion=dispersion, **context)


def log_output_written(
    logger: logging.Logger,
    output_path: str | Path,
    row_count: int | None = None,
    **context: Any
) -> None:
    rows = f" ({row_count:,} rows)" if row_count is not None else ""
    log_event(logger, logging.INFO, f"Wrote {output_path}{rows}", "output_written",
              output_path=str(output_path), row_count=row_count, **context)
