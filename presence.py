"""
Bot presence ("Watching RAM: ...") kept in sync with the server's resource usage.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Awaitable, Callable, Optional, Tuple

import discord

import config
from remote_commander import RemoteCommander, ResourceSnapshot

log = logging.getLogger("restart_bot.presence")

GIB = 1024 ** 3
MIB = 1024 ** 2


def to_fixed(value: float, places: int) -> str:
    """Format with a fixed number of decimals, rounding ties away from zero."""
    return str(Decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))


def bytes_to_gb(value: int) -> str:
    return to_fixed(value / GIB, 2)


def bytes_to_mb(value: int) -> str:
    return to_fixed(value / MIB, 2)


def ram_usage(snapshot: ResourceSnapshot, max_ram_gb: int) -> Tuple[str, str]:
    """Return (used GB with two decimals, percent of max_ram_gb with no decimals)."""
    used = bytes_to_gb(snapshot.memory_bytes)
    pct = to_fixed(float(used) / max_ram_gb * 100, 0)
    return used, pct


def presence_text(snapshot: Optional[ResourceSnapshot], max_ram_gb: int = config.MAX_RAM_GB) -> str:
    if snapshot is None:
        return "Server Offline"
    if not snapshot.is_running:
        return f"Server {snapshot.current_state}"
    used, pct = ram_usage(snapshot, max_ram_gb)
    return f"RAM: {used}GB/{max_ram_gb}GB ({pct}%)"


class PresenceReporter:
    """Polls the panel on a fixed interval and publishes the result as the bot's activity."""

    def __init__(
        self,
        client: discord.Client,
        commander: RemoteCommander,
        max_ram_gb: int = config.MAX_RAM_GB,
        interval_sec: float = config.STATUS_UPDATE_INTERVAL_SEC,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.commander = commander
        self.max_ram_gb = max_ram_gb
        self.interval_sec = interval_sec
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def update(self) -> str:
        """One tick: fetch, format, publish. Returns the text that was published."""
        try:
            snapshot = await self.commander.get_resources_async()
            text = presence_text(snapshot, self.max_ram_gb)
        except Exception:
            log.exception("Error updating bot status")
            text = "Status Error"

        activity = discord.Activity(type=discord.ActivityType.watching, name=text)
        await self.client.change_presence(activity=activity)
        log.info("Updated status: %s", text)
        return text

    async def run(self) -> None:
        while True:
            try:
                await self.update()
            except Exception:
                # Publishing failed (gateway hiccup); the next tick tries again.
                log.exception("Failed to publish bot presence")
            await self._sleep(self.interval_sec)

    def start(self) -> None:
        """Starts the loop; the first update happens immediately. No-op if already running."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self.run(), name="presence-reporter")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
