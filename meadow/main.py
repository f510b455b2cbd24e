"""
Meadow - Application Entry Point
================================

Bootstrap
---------
- Config validation
- Economy configuration load
- Database initialization and schema
- Economy engine and sweeps
- Graceful shutdown on SIGINT/SIGTERM
"""

import asyncio
import signal
import sys

from meadow.core.config.config import Config
from meadow.core.config.economy import load_economy_config
from meadow.core.database.service import DatabaseService
from meadow.core.logging.logger import get_logger, shutdown_logging
from meadow.modules.economy import EconomyEngine

logger = get_logger(__name__)


# ============================================================================
# Application Bootstrap
# ============================================================================

async def _startup(db: DatabaseService) -> EconomyEngine:
    """Initialize infrastructure and start the engine's sweeps."""
    logger.info("========== MEADOW INITIALIZATION START ==========")

    try:
        Config.validate()
        logger.info("✓ Configuration validated", extra=Config.get_config_summary())
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    try:
        economy = load_economy_config()
        logger.info("✓ Economy configuration loaded")
    except Exception as exc:
        logger.critical(f"Economy configuration failed: {exc}", exc_info=True)
        raise

    try:
        await db.initialize()
        await db.create_schema()
        logger.info("✓ Database service initialized")
    except Exception as exc:
        logger.critical(f"Database initialization failed: {exc}", exc_info=True)
        raise

    engine = EconomyEngine(db, economy)
    await engine.start()
    logger.info("✓ Sweeps started")

    logger.info("========== MEADOW INITIALIZED SUCCESSFULLY ==========")
    return engine


# ============================================================================
# Application Shutdown
# ============================================================================

async def _shutdown(engine: EconomyEngine | None, db: DatabaseService) -> None:
    """Stop sweeps, then release the database."""
    logger.info("========== MEADOW SHUTDOWN START ==========")

    if engine is not None:
        try:
            await engine.stop()
            logger.info("✓ Sweeps stopped")
        except Exception as exc:
            logger.error(f"Error while stopping sweeps: {exc}", exc_info=True)

    try:
        await db.shutdown()
        logger.info("✓ Database service shut down")
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Application Entrypoint
# ============================================================================

def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            logger.debug(f"{sig.name} handler not supported on this platform")


async def main() -> None:
    """
    Lifecycle:
        1. Validate configuration
        2. Initialize infrastructure (DB, economy engine)
        3. Run sweeps until a stop signal arrives
        4. Shut down gracefully
    """
    db = DatabaseService()
    engine: EconomyEngine | None = None
    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    try:
        engine = await _startup(db)
        await stop_event.wait()
        logger.info("Stop signal received")
    except asyncio.CancelledError:
        logger.warning("Asyncio task cancellation received; shutting down gracefully.")
        raise
    finally:
        await _shutdown(engine, db)


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Meadow manually stopped via keyboard interrupt.")
    except Exception as exc:
        logger.critical(f"Startup failure: {exc}", exc_info=True)
        sys.exit(1)
    finally:
        shutdown_logging()


if __name__ == "__main__":
    run()
