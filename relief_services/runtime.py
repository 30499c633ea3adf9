"""
Process bootstrap: settings in, ready ``StockGateway`` out.

``bootstrap`` initializes logging and the engine from settings, creates the
schema when asked, and installs the append-only listeners before any
session is handed out.
"""

from __future__ import annotations

from relief_config import get_active_settings
from relief_config.schema import LedgerSettings
from relief_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from relief_kernel.db.immutability import register_immutability_listeners
from relief_kernel.domain.clock import Clock
from relief_kernel.logging_config import configure_logging, get_logger
from relief_services.gateway import StockGateway

logger = get_logger("services.runtime")


def bootstrap(
    settings: LedgerSettings | None = None,
    clock: Clock | None = None,
    create_schema: bool = True,
) -> StockGateway:
    """
    Wire the ledger for one process.

    Args:
        settings: Settings to use; ``get_active_settings()`` when None.
        clock: Time source for the gateway; system time when None.
        create_schema: Create missing tables after the engine is up.
    """
    settings = settings or get_active_settings()
    configure_logging(level=settings.logging.level)

    db = settings.database
    init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        lock_timeout_seconds=db.lock_timeout_seconds,
    )
    register_immutability_listeners()
    if create_schema:
        create_tables()

    logger.info(
        "ledger_runtime_ready",
        extra={"settings_checksum": settings.checksum, "schema_created": create_schema},
    )
    return StockGateway(get_session_factory(), clock=clock, settings=settings)
