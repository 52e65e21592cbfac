"""FastAPI application factory."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from fastapi import FastAPI

from surveylens import __version__
from surveylens.analysis.cache import SeriesCache
from surveylens.config import SurveylensSettings, load_settings
from surveylens.server.routes.health import router as health_router
from surveylens.server.routes.series import router as series_router

logger = logging.getLogger(__name__)


def create_app(
    settings: SurveylensSettings | None = None,
    log_dir: Path | None = None,
    verbose: bool = False,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Engine settings.  Loaded from the environment when omitted.
        log_dir: When provided, a rotating log file is written under
                 ``<log_dir>/.surveylens/``.
        verbose: When True, terminal handler shows DEBUG-level messages.

    When uvicorn calls this factory with no arguments on reload, the CLI's
    choices are recovered from ``_SURVEYLENS_*`` environment variables.
    """
    if log_dir is None:
        env_dir = os.environ.get("_SURVEYLENS_LOG_DIR")
        if env_dir:
            log_dir = Path(env_dir)
    if not verbose and os.environ.get("_SURVEYLENS_VERBOSE") == "1":
        verbose = True

    if log_dir is not None:
        from surveylens.logging import setup_logging

        setup_logging(output_dir=log_dir, verbose=verbose)

    if settings is None:
        settings = load_settings()

    app = FastAPI(
        title="surveylens",
        version=__version__,
        docs_url="/api/docs",
        redoc_url=None,
    )

    # Stateless apart from the memo cache; nothing is persisted
    app.state.settings = settings
    app.state.series_cache = SeriesCache(maxsize=settings.cache_size)

    app.include_router(health_router)
    app.include_router(series_router)

    logger.info("surveylens %s API ready (cache size %d)", __version__, settings.cache_size)
    return app
