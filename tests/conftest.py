import asyncio
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from remote_commander import PanelResult, PowerSignal, ResourceSnapshot

GIB = 1024 ** 3


def make_snapshot(state: str = "running", **resources: Any) -> ResourceSnapshot:
    values = dict(
        current_state=state,
        is_suspended=False,
        memory_bytes=4 * GIB,
        cpu_absolute=12.34,
        disk_bytes=2 * GIB,
        network_rx_bytes=5 * 1024 ** 2,
        network_tx_bytes=3 * 1024 ** 2,
    )
    values.update(resources)
    return ResourceSnapshot(**values)


class FakeCommander:
    """Records every panel call into a shared event list."""

    def __init__(self, events: Optional[list] = None, snapshots: Optional[List[Optional[ResourceSnapshot]]] = None):
        self.events = events if events is not None else []
        self.snapshots = list(snapshots or [])
        self.fail_on: Dict[str, Exception] = {}

    def _maybe_fail(self, key: str) -> None:
        if key in self.fail_on:
            raise self.fail_on[key]

    async def send_command_async(self, command: str) -> PanelResult:
        self.events.append(("command", command))
        self._maybe_fail(command)
        return PanelResult(ok=True, status="Success", status_code=204)

    async def set_power_state_async(self, signal: PowerSignal) -> PanelResult:
        signal = PowerSignal(signal)
        self.events.append(("power", signal.value))
        self._maybe_fail(signal.value)
        return PanelResult(ok=True, status="Success", status_code=204)

    async def get_resources_async(self) -> Optional[ResourceSnapshot]:
        self.events.append(("resources",))
        self._maybe_fail("resources")
        if not self.snapshots:
            return None
        if len(self.snapshots) == 1:
            return self.snapshots[0]
        return self.snapshots.pop(0)

    @property
    def commands(self) -> List[str]:
        return [e[1] for e in self.events if e[0] == "command"]

    @property
    def power_signals(self) -> List[str]:
        return [e[1] for e in self.events if e[0] == "power"]


class RecordingSleep:
    """Returns straight away, logging the requested delay."""

    def __init__(self, events: Optional[list] = None):
        self.events = events if events is not None else []

    async def __call__(self, seconds: float) -> None:
        self.events.append(("sleep", seconds))
        await asyncio.sleep(0)


class GatedSleep:
    """Blocks every sleeper until release() is called."""

    def __init__(self):
        self.calls: List[float] = []
        self._gate = asyncio.Event()

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await self._gate.wait()

    def release(self) -> None:
        self._gate.set()


class DummyResponse:
    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.deferred = False
        self._done = False

    def is_done(self) -> bool:
        return self._done

    async def send_message(self, content=None, *, embed=None, ephemeral=False):
        self.sent.append({"content": content, "embed": embed, "ephemeral": ephemeral})
        self._done = True

    async def defer(self, **kwargs):
        self.deferred = True
        self._done = True


class DummyFollowup:
    def __init__(self):
        self.sent: List[Dict[str, Any]] = []

    async def send(self, content=None, *, ephemeral=False):
        self.sent.append({"content": content, "ephemeral": ephemeral})


class DummyInteraction:
    def __init__(self, user=None, guild_id: Optional[int] = None, channel_id: Optional[int] = None):
        self.user = user or SimpleNamespace(id=1, name="tester", roles=[], guild_permissions=SimpleNamespace(administrator=False))
        self.guild = SimpleNamespace(id=guild_id) if guild_id else None
        self.channel = SimpleNamespace(id=channel_id) if channel_id else None
        self.response = DummyResponse()
        self.followup = DummyFollowup()
        self.edits: List[Dict[str, Any]] = []

    async def edit_original_response(self, *, content=None, embed=None):
        self.edits.append({"content": content, "embed": embed})

    @property
    def edit_texts(self) -> List[str]:
        return [e["content"] for e in self.edits if e["content"] is not None]


@pytest.fixture
def events():
    return []


@pytest.fixture
def commander(events):
    return FakeCommander(events=events)


@pytest.fixture
def interaction():
    return DummyInteraction()
