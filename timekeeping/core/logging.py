import logging

import structlog


def configure_logging(level: str = "INFO", *, json: bool = True) -> None:
    """Route structlog through the stdlib root logger so command output on stdout stays clean."""
    level = level.upper()
    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
    )

    logging.basicConfig(level=level)


def bind_command(command: str, **context) -> None:
    """Attach the running CLI command to every log line emitted while it runs."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(command=command, **context)


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)
