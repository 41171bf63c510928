"""
Restart vote state and the graceful restart sequence.

A restart goes through: announce -> save -> wait -> stop -> poll until stopped -> start.
Only one restart can be in flight; RestartSession tracks that, and VoteTimer is the
cancellable countdown that precedes it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import config
import server_commands
from remote_commander import PowerSignal, RemoteCommander

log = logging.getLogger("restart_bot.restart_workflow")

SleepFn = Callable[[float], Awaitable[None]]
ProgressFn = Callable[[str], Awaitable[None]]

# States that mean the stop request has been taken up by the daemon.
STOPPED_STATES = ("offline", "stopping")


class RestartTimeout(Exception):
    """The server did not report stopping within the configured number of polls."""


class VoteTimer:
    """
    One-shot countdown that runs a coroutine callback when it expires.

    Can be canceled until it fires; after that the callback runs to completion.
    """

    def __init__(self, delay_sec: float, callback: Callable[[], Awaitable[None]], sleep: SleepFn = asyncio.sleep):
        self.delay_sec = delay_sec
        self._callback = callback
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._fired = False
        self._canceled = False

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def canceled(self) -> bool:
        return self._canceled

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._fired and not self._canceled

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def arm(self) -> None:
        if self._task is not None:
            raise RuntimeError("VoteTimer can only be armed once")
        self._task = asyncio.get_running_loop().create_task(self._run(), name="restart-vote-timer")

    def cancel(self) -> bool:
        """Stops the countdown. Returns False if it already fired (or was never armed)."""
        if not self.pending:
            return False
        self._canceled = True
        self._task.cancel()
        return True

    async def _run(self) -> None:
        await self._sleep(self.delay_sec)
        if self._canceled:
            return
        self._fired = True
        try:
            await self._callback()
        except Exception:
            log.exception("Restart vote callback failed")


@dataclass
class RestartSession:
    in_progress: bool = False
    timer: Optional[VoteTimer] = None

    @property
    def vote_pending(self) -> bool:
        return self.in_progress and self.timer is not None and self.timer.pending

    @property
    def restarting(self) -> bool:
        """True once the vote passed and the restart sequence is running."""
        return self.in_progress and self.timer is not None and self.timer.fired

    def begin(self, timer: VoteTimer) -> None:
        if self.in_progress:
            raise RuntimeError("A restart is already in progress")
        self.in_progress = True
        self.timer = timer
        timer.arm()

    def cancel(self) -> bool:
        if not self.vote_pending:
            return False
        self.timer.cancel()
        self.finish()
        return True

    def finish(self) -> None:
        self.in_progress = False
        self.timer = None


class RestartWorkflow:
    def __init__(
        self,
        commander: RemoteCommander,
        warning_sec: int = config.RESTART_WARNING_SEC,
        poll_interval_sec: float = config.STOP_POLL_INTERVAL_SEC,
        max_poll_attempts: int = config.STOP_POLL_MAX_ATTEMPTS,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.commander = commander
        self.warning_sec = warning_sec
        self.poll_interval_sec = poll_interval_sec
        self.max_poll_attempts = max_poll_attempts
        self._sleep = sleep

    async def run(self, session: RestartSession, report: ProgressFn) -> bool:
        """
        Restarts the server, reporting each step through report().

        Returns True on success. Errors are reported to the user rather than raised,
        and the session is released either way.
        """
        try:
            await server_commands.announce_restart(self.commander, self.warning_sec)

            await report("Saving the world...")
            await server_commands.save_all(self.commander)

            await self._sleep(self.warning_sec)

            await report("Stopping the server...")
            if not await self.commander.set_power_state_async(PowerSignal.STOP):
                log.warning("Stop request failed; waiting for the server anyway")

            await report("Waiting for server to stop...")
            await self._wait_until_stopped()

            await report("Starting the server back up...")
            if not await self.commander.set_power_state_async(PowerSignal.START):
                log.warning("Start request failed")

            await report("Server has been restarted successfully!")
            log.info("Restart finished")
            return True
        except Exception as e:
            log.exception("Error during restart")
            try:
                await report(f"Error during restart: {e}")
            except Exception:
                log.exception("Could not report the restart failure")
            return False
        finally:
            session.finish()

    async def _wait_until_stopped(self) -> None:
        attempts = 0
        while True:
            snapshot = await self.commander.get_resources_async()
            await self._sleep(self.poll_interval_sec)
            attempts += 1
            # An unreadable snapshot ends the wait as well.
            if snapshot is None or snapshot.current_state in STOPPED_STATES:
                return
            if self.max_poll_attempts and attempts >= self.max_poll_attempts:
                raise RestartTimeout(
                    f"server still {snapshot.current_state} after {attempts} checks"
                )
