"""
Periodic Expiry Reaper Worker

Runs ExpiryReaper.sweep() on a fixed interval. The API process starts one
inside its lifespan; it can also run on its own:

    python -m smartshort_app.reaper.reaper_worker
"""

import asyncio
import logging
import signal
import sys

from smartshort_app.config import settings
from smartshort_app.services.expiry_reaper import ExpiryReaper

logger = logging.getLogger(__name__)


class ReaperWorker:
    """
    Interval loop around the expiry reaper.

    A failing sweep never stops the loop; the reaper logs and the next
    tick tries again.
    """

    def __init__(self, reaper: ExpiryReaper = None, interval: float = None):
        """
        Args:
            reaper: ExpiryReaper to drive
            interval: Seconds between sweeps
        """
        self.reaper = reaper if reaper is not None else ExpiryReaper()
        self.interval = interval or settings.reaper_interval_seconds
        self.sweeps = 0
        self.deactivated_total = 0
        self._stop = asyncio.Event()

    @property
    def running(self) -> bool:
        return not self._stop.is_set()

    async def run_once(self) -> int:
        count = await self.reaper.sweep()
        self.sweeps += 1
        self.deactivated_total += count
        return count

    async def start(self):
        """Sweep immediately, then every `interval` seconds until stopped."""
        self._stop.clear()
        logger.info("🚀 Expiry reaper started (interval %ss)", self.interval)

        while self.running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                logger.info("Reaper task cancelled.")
                raise
            except Exception:
                logger.exception("❌ Unexpected reaper failure")

            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

        logger.info("🛑 Expiry reaper stopped after %d sweeps", self.sweeps)

    def stop(self):
        """Stop the worker after the current sweep"""
        self._stop.set()


async def main():
    """
    Stand-alone entry point.

    Usage:
        python -m smartshort_app.reaper.reaper_worker
    """
    from smartshort_app.database.connection import close_db, init_db
    from smartshort_app.logging_config import setup_logging

    setup_logging()
    print("=" * 60)
    print("🔧 SmartShort - Expiry Reaper")
    print("=" * 60)
    print(f"Environment: {settings.environment}")
    print(f"Interval: {settings.reaper_interval_seconds}s")
    print("=" * 60)

    await init_db()
    worker = ReaperWorker()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, worker.stop)
        except NotImplementedError:
            # Windows event loops lack signal handlers
            signal.signal(signum, lambda *_: worker.stop())

    try:
        await worker.start()
    except Exception as e:
        logger.error("❌ Fatal error: %s", e)
        sys.exit(1)
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
