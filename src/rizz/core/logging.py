"""structlog setup for rizz.

Every module logs through ``structlog.get_logger()`` with snake_case events
(``migration_applied``, ``statement_prepared``, ``sqlite_busy_retry``). Events
are routed through the stdlib root logger, so each configured output gets its
own level and renderer.

Work submitted to the writer or a reader thread runs inside a statement
scope; every event logged there carries the same ``statement_id``.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar, Token
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from rizz.config.models import LoggingConfig, LogOutputConfig

# Libraries that get chatty once the root logger has handlers
_QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")

_statement_id: ContextVar[str | None] = ContextVar("statement_id", default=None)


def get_statement_id() -> str | None:
    return _statement_id.get()


def set_statement_id(statement_id: str | None = None) -> str:
    """Bind ``statement_id`` (or a fresh one) to the current context."""
    value = statement_id or uuid4().hex[:12]
    _statement_id.set(value)
    return value


def clear_statement_id() -> None:
    _statement_id.set(None)


class statement_scope:  # noqa: N801
    """Tag every event logged inside the block with one statement id.

    Exceptions pass through untouched; the previous id is restored on exit.
    """

    def __init__(self, statement_id: str | None = None) -> None:
        self._value = statement_id or uuid4().hex[:12]
        self._token: Token[str | None] | None = None

    def __enter__(self) -> str:
        self._token = _statement_id.set(self._value)
        return self._value

    def __exit__(self, *exc_info: object) -> None:
        if self._token is not None:
            _statement_id.reset(self._token)
            self._token = None


def _inject_statement_id(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    statement_id = _statement_id.get()
    if statement_id is not None:
        event_dict.setdefault("statement_id", statement_id)
    return event_dict


def _level(name: str | None, fallback: int = logging.INFO) -> int:
    if name is None:
        return fallback
    value = logging.getLevelName(name.upper())
    return value if isinstance(value, int) else fallback


def _open_stream(destination: str) -> logging.Handler:
    streams = {"stderr": sys.stderr, "stdout": sys.stdout}
    if destination in streams:
        return logging.StreamHandler(streams[destination])
    path = Path(destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a", encoding="utf-8")


def _build_handler(
    output: LogOutputConfig,
    level: int,
    pre_chain: list[structlog.types.Processor],
) -> logging.Handler:
    if output.format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        tty = output.destination in ("stderr", "stdout") and sys.stderr.isatty()
        renderer = structlog.dev.ConsoleRenderer(colors=tty, pad_event_to=0, pad_level=False)

    handler = _open_stream(output.destination)
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain)
    )
    return handler


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
) -> None:
    """Install rizz's logging setup, replacing any previous one.

    Either pass a full ``LoggingConfig`` or let ``json_format`` and ``level``
    describe a single stderr output.
    """
    from rizz.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            level=level,  # type: ignore[arg-type]
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )
    root_level = _level(config.level)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        _inject_statement_id,  # type: ignore[list-item]
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(root_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    for output in config.outputs:
        root.addHandler(_build_handler(output, _level(output.level, root_level), pre_chain))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """A structlog logger, bound to ``logger=name`` when a name is given."""
    logger = structlog.get_logger()
    return logger.bind(logger=name) if name else logger  # type: ignore[no-any-return]
