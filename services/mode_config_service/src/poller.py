import asyncio
from enum import Enum
from typing import Optional

from shared.common_utils.logger import logger

from .config_store import ConfigStore
from .schemas import ReloadOutcome

STOPPING_OUTCOMES = (ReloadOutcome.NOT_FOUND, ReloadOutcome.ERROR)


class PollerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class ConfigPoller:
    """Checks the config file for external changes on a fixed period.

    STOPPED -> RUNNING: ``start()`` (file found at startup, or a save succeeded).
    RUNNING -> STOPPED: a reload reports a missing or unreadable file, or ``stop()``.

    Ticks never overlap. A tick that overruns its period makes the poller skip
    the ticks it missed instead of running them back to back.
    """

    def __init__(self, store: ConfigStore, interval: float = 0.1):
        self.store = store
        self.interval = interval
        self._state = PollerState.STOPPED
        self._task: Optional[asyncio.Task] = None
        self._ticking = False

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is PollerState.RUNNING

    def start(self) -> bool:
        """Start polling; returns False if it was already running."""
        if self._state is PollerState.RUNNING:
            return False
        self._state = PollerState.RUNNING
        self._task = asyncio.create_task(self._run(), name="config-poller")
        logger.info(f"Config polling started (interval={self.interval}s)")
        return True

    async def stop(self) -> None:
        task, self._task = self._task, None
        was_running = self._state is PollerState.RUNNING
        self._state = PollerState.STOPPED
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if was_running:
            logger.info("Config polling stopped")

    async def tick(self) -> Optional[ReloadOutcome]:
        """Run one reload check. Returns None when a check is already in flight."""
        if self._ticking:
            logger.debug("Poll tick skipped: previous reload still running")
            return None

        self._ticking = True
        try:
            return await self.store.load()
        except Exception as e:
            logger.error(f"Unexpected error while reloading configuration: {e}", exc_info=e)
            return ReloadOutcome.ERROR
        finally:
            self._ticking = False

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_due = loop.time() + self.interval

        while True:
            await asyncio.sleep(max(0.0, next_due - loop.time()))
            outcome = await self.tick()

            if outcome in STOPPING_OUTCOMES:
                if self._task is asyncio.current_task():
                    self._task = None
                    self._state = PollerState.STOPPED
                logger.warning(f"Config polling stopped: reload reported {outcome.value}")
                return

            next_due += self.interval
            now = loop.time()
            if next_due <= now:
                skipped = int((now - next_due) // self.interval) + 1
                next_due += skipped * self.interval
                logger.debug(f"Skipped {skipped} poll tick(s) after a slow reload")
