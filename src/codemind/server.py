"""Entry point: ``python -m codemind.server`` or the ``codemind`` script.

Configuration errors and a missing Gemini key abort startup with a non-zero
exit before the listener binds.
"""

from __future__ import annotations

import logging
import sys

import structlog
import uvicorn

from codemind.api import create_app
from codemind.config import Settings

log = structlog.get_logger()


def setup_logging(settings: Settings) -> None:
    """Configure structlog to write to stderr in the configured format."""
    level = logging.getLevelNamesMapping()[settings.logging.level]

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.logging.format == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def main() -> None:
    settings = Settings()
    setup_logging(settings)

    if not settings.llm.api_key:
        log.error(
            "startup_failed",
            reason="Gemini API key is not configured",
            hint="set CODEMIND__LLM__API_KEY or llm.api_key in codemind.yaml",
        )
        sys.exit(1)

    if settings.server.env == "development":
        log.info("dev_mode", detail="frontend assets are served by the external dev server")

    log.info("server_starting", host=settings.server.host, port=settings.server.port)
    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        lifespan="on",
        log_level=settings.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
