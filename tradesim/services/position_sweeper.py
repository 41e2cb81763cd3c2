"""
Position Sweeper

Background loop running the engine's auto-close sweep on a fixed interval
for the lifetime of the application.

Author: Tradesim Team
"""

import asyncio
from typing import Optional

from tradesim.services.trading_engine import TradingEngine
from tradesim.core.logger import get_logger

logger = get_logger(__name__)


class PositionSweeper:
    """
    Position Sweeper

    Usage:
        sweeper = PositionSweeper(engine, interval_seconds=30)
        sweeper.start()
        ...
        await sweeper.stop()
    """

    def __init__(self, engine: TradingEngine, interval_seconds: float = 30.0):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.engine = engine
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self.sweeps_completed = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Position sweeper started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Position sweeper stopped")

    async def _run_loop(self) -> None:
        while True:
            await self.sweep_once()
            await asyncio.sleep(self.interval_seconds)

    async def sweep_once(self) -> int:
        """
        Run one sweep. A failing sweep is logged and does not stop the loop.

        Returns:
            Number of positions closed (0 on failure)
        """
        try:
            results = await self.engine.run_sweep()
        except Exception as e:
            logger.error(f"Sweep failed: {str(e)}", exc_info=True)
            return 0
        self.sweeps_completed += 1
        return len(results)
