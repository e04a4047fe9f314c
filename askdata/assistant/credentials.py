"""Bearer credential for the chat gateway and its periodic refresh job."""
from __future__ import annotations

import asyncio
import os
from datetime import datetime, timezone
from typing import Callable, Optional

from askdata.core.logger import get_logger

from .config import llm_config

logger = get_logger(__name__)


def env_loader(variable: str) -> Callable[[], Optional[str]]:
    """Return a loader that reads the credential from an environment variable."""

    def _load() -> Optional[str]:
        return os.getenv(variable) or None

    return _load


class CredentialStore:
    """Single owned credential cell.

    Readers call :meth:`current` without locking; a refresh swaps the value in
    one assignment, so a request that captured the old value keeps using it.
    """

    def __init__(self, loader: Optional[Callable[[], Optional[str]]] = None) -> None:
        self._loader = loader or env_loader(llm_config.api_key_env)
        self._credential: Optional[str] = None
        self.refreshed_at: Optional[datetime] = None

    def current(self) -> Optional[str]:
        return self._credential

    @property
    def available(self) -> bool:
        return bool(self._credential)

    def refresh(self) -> Optional[str]:
        """Reload the credential from its source."""
        credential = self._loader()
        self._credential = credential
        self.refreshed_at = datetime.now(timezone.utc)
        if credential:
            logger.info("LLM API credential refreshed at %s", self.refreshed_at.isoformat())
        else:
            logger.warning("LLM API credential is not configured")
        return credential


class CredentialRefresher:
    """Runs :meth:`CredentialStore.refresh` on a fixed period."""

    def __init__(self, store: CredentialStore, interval_seconds: Optional[float] = None) -> None:
        self.store = store
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else llm_config.token_refresh_minutes * 60
        )
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            logger.info("Refreshing LLM API credential")
            try:
                self.store.refresh()
            except Exception:
                logger.exception("Credential refresh failed; keeping the previous credential")

    def start(self) -> None:
        """Schedule the refresh loop on the running event loop (restarts if already running)."""
        if self.running:
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(
            "Credential refresh job started (every %.0f minutes)", self.interval_seconds / 60
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Credential refresh job stopped")


__all__ = ["CredentialRefresher", "CredentialStore", "env_loader"]
