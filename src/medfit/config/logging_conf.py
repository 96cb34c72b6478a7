"""Logging setup for medfit runs.

:func:`configure_logging` installs the root handlers: one stream handler and
a copy in ``logs_dir/medfit.log``, either as plain text or as JSON lines.

:func:`run_context` tags every record emitted while a bootstrap run is in
progress with the identity of that run (``method``, ``n_boot``, ``seed``,
``entropy``). Plain lines get a ``[method=... seed=...]`` suffix and JSON
lines get the fields as top-level keys, so output from two runs in one
process can be told apart and a seedless run can be replayed from its log.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Iterator, Mapping

from .settings import Settings, get_settings

__all__ = [
    "RUN_FIELDS",
    "JSONFormatter",
    "PlainFormatter",
    "RunContextFilter",
    "configure_logging",
    "current_run_context",
    "run_context",
]

RUN_FIELDS = ("method", "n_boot", "seed", "entropy")
"""Run attributes attached to records by :func:`run_context`, in display order."""

LOG_FILE_NAME = "medfit.log"

_RUN_CONTEXT: ContextVar[Mapping[str, Any] | None] = ContextVar(
    "medfit_run_context", default=None
)

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "run_context"}


def current_run_context() -> dict[str, Any]:
    """Fields of the innermost active :func:`run_context` (empty outside a run)."""
    return dict(_RUN_CONTEXT.get() or {})


@contextmanager
def run_context(**fields: Any) -> Iterator[dict[str, Any]]:
    """Attach ``fields`` to every record logged inside the ``with`` block.

    Nested contexts extend the outer one. The context follows the current
    thread (and tasks submitted by :func:`medfit.utils.parallel.parallel_map`
    on the thread backend); worker processes do not inherit it.
    """
    merged = {**current_run_context(), **fields}
    token = _RUN_CONTEXT.set(merged)
    try:
        yield dict(merged)
    finally:
        _RUN_CONTEXT.reset(token)


def _ordered(context: Mapping[str, Any]) -> list[tuple[str, Any]]:
    known = [(key, context[key]) for key in RUN_FIELDS if key in context]
    extra = [(key, value) for key, value in context.items() if key not in RUN_FIELDS]
    return known + extra


class RunContextFilter(logging.Filter):
    """Copy the active run context onto the record as ``record.run_context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "run_context"):
            record.run_context = current_run_context()
        return True


class PlainFormatter(logging.Formatter):
    """``time | level | logger | message`` with the run context appended."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "run_context", None)
        if not context:
            return line
        tags = " ".join(f"{key}={value}" for key, value in _ordered(context))
        first, newline, rest = line.partition("\n")
        return f"{first} [{tags}]{newline}{rest}"


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Keys, lowest precedence first: ``default_context``, the run context,
    fields passed through ``extra``. The fixed keys (timestamp, level, logger,
    message) always win.
    """

    def __init__(self, *, default_context: Mapping[str, Any] | None = None) -> None:
        super().__init__()
        self._default_context = dict(default_context or {})

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = dict(self._default_context)
        payload.update(getattr(record, "run_context", None) or {})
        payload.update(
            (key, value) for key, value in vars(record).items() if key not in _RECORD_ATTRS
        )
        payload.update(
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            level=record.levelname,
            logger=record.name,
            message=record.getMessage(),
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = record.stack_info
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(
    *,
    settings: Settings | None = None,
    level: int | str = logging.INFO,
    structured: bool | None = None,
    module_levels: Mapping[str, int | str] | None = None,
    stream: IO[str] | None = None,
    context: Mapping[str, Any] | None = None,
    log_file: Path | None = None,
) -> None:
    """Replace the root handlers with the medfit stream and file handlers.

    Parameters
    ----------
    settings:
        Source of ``structured_logging`` and ``logs_dir``; defaults to
        :func:`get_settings`.
    level:
        Level of both handlers.
    structured:
        JSON lines when ``True``, plain text when ``False``. ``None`` follows
        ``settings.structured_logging``.
    module_levels:
        ``logger name -> level`` overrides, e.g.
        ``{"medfit.bootstrap.estimators": logging.DEBUG}`` to see every
        excluded resample.
    stream:
        Target of the stream handler; ``sys.stderr`` by default.
    context:
        Fields added to every JSON record (the CLI passes the command name).
    log_file:
        Appended copy of the output. Defaults to ``settings.logs_dir / 'medfit.log'``.
    """

    settings = settings or get_settings()
    structured = settings.structured_logging if structured is None else structured
    formatter: logging.Formatter = (
        JSONFormatter(default_context=context) if structured else PlainFormatter()
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.DEBUG)

    handlers: list[logging.Handler] = [logging.StreamHandler(stream)]
    file_target = log_file or (settings.logs_dir / LOG_FILE_NAME)
    file_error: OSError | None = None
    try:
        file_target.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(file_target, encoding="utf-8"))
    except OSError as exc:
        file_error = exc

    run_filter = RunContextFilter()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(run_filter)
        root_logger.addHandler(handler)

    for logger_name, logger_level in (module_levels or {}).items():
        logging.getLogger(logger_name).setLevel(logger_level)

    if file_error is not None:
        logging.getLogger(__name__).warning(
            "Log file %s unavailable, logging to stream only: %s", file_target, file_error
        )
