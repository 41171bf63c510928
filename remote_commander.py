import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import requests

import config

log = logging.getLogger("restart_bot.remote_commander")


class PowerSignal(str, Enum):
    """Power actions accepted by the panel's /power endpoint."""
    START = "start"
    STOP = "stop"
    KILL = "kill"


@dataclass(frozen=True)
class PanelResult:
    """
    Outcome of a panel call that has no useful response body.

    status is "Success" for 2xx responses, "HttpError" for any other HTTP status
    and "NetworkError" when the request never got an answer.
    """
    ok: bool
    status: str
    status_code: int = 0
    error: str = ""

    def __bool__(self) -> bool:
        return self.ok


@dataclass(frozen=True)
class ResourceSnapshot:
    current_state: str
    is_suspended: bool
    memory_bytes: int
    cpu_absolute: float
    disk_bytes: int
    network_rx_bytes: int
    network_tx_bytes: int
    uptime_ms: int = 0
    online_players: Optional[int] = None
    max_players: Optional[int] = None

    @property
    def is_running(self) -> bool:
        return self.current_state == "running"

    @classmethod
    def from_attributes(cls, attributes: Dict[str, Any]) -> "ResourceSnapshot":
        """
        Build a snapshot from the "attributes" object of a /resources response.
        Raises KeyError/TypeError/ValueError when the payload is not the expected shape.
        """
        res = attributes["resources"]
        online = res.get("online_players")
        max_players = res.get("max_players")
        return cls(
            current_state=str(attributes["current_state"]),
            is_suspended=bool(attributes.get("is_suspended", False)),
            memory_bytes=int(res["memory_bytes"]),
            cpu_absolute=float(res["cpu_absolute"]),
            disk_bytes=int(res["disk_bytes"]),
            network_rx_bytes=int(res["network_rx_bytes"]),
            network_tx_bytes=int(res["network_tx_bytes"]),
            uptime_ms=int(res.get("uptime") or 0),
            online_players=int(online) if online is not None else None,
            max_players=int(max_players) if max_players else None,
        )


class RemoteCommander:
    """
    Client for the three Pterodactyl client-API endpoints the bot uses.

    Every public method makes exactly one attempt and never raises: failures are
    logged and turned into a failed PanelResult (or None for resources).
    The *_async variants run the blocking request in a worker thread so the
    Discord event loop keeps serving interactions.
    """

    def __init__(
        self,
        base_url: str = config.API_URL,
        server_id: str = config.SERVER_ID,
        api_key: str = config.API_KEY,
        timeout_sec: int = config.REQUEST_TIMEOUT_SEC,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.server_id = server_id
        self.timeout_sec = timeout_sec
        self._session = session or requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Accept": config.API_ACCEPT,
        })

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/client/servers/{self.server_id}/{endpoint}"

    def _post(self, endpoint: str, payload: Dict[str, Any]) -> PanelResult:
        url = self._url(endpoint)
        try:
            resp = self._session.post(url, json=payload, timeout=self.timeout_sec)
        except requests.RequestException as e:
            return PanelResult(ok=False, status="NetworkError", error=str(e))

        if not resp.ok:
            preview = (resp.text or "").strip()
            if len(preview) > 400:
                preview = preview[:400] + "..."
            return PanelResult(
                ok=False,
                status="HttpError",
                status_code=resp.status_code,
                error=f"HTTP {resp.status_code}: {preview}" if preview else f"HTTP {resp.status_code}",
            )
        return PanelResult(ok=True, status="Success", status_code=resp.status_code)

    def send_command(self, command: str) -> PanelResult:
        """Runs a console command on the server."""
        result = self._post("command", {"command": command})
        if result:
            log.info("Sent console command: %s", command)
        else:
            log.error("Error sending command %r: %s", command, result.error)
        return result

    def set_power_state(self, signal: PowerSignal) -> PanelResult:
        """Requests a power state change (start/stop/kill)."""
        signal = PowerSignal(signal)
        result = self._post("power", {"signal": signal.value})
        if result:
            log.info("Power signal sent: %s", signal.value)
        else:
            log.error("Error setting power state to %s: %s", signal.value, result.error)
        return result

    def get_resources(self) -> Optional[ResourceSnapshot]:
        """Current state and usage of the server, or None if it could not be read."""
        try:
            resp = self._session.get(self._url("resources"), timeout=self.timeout_sec)
            resp.raise_for_status()
            return ResourceSnapshot.from_attributes(resp.json()["attributes"])
        except requests.RequestException as e:
            log.error("Error getting server resources: %s", e)
        except (KeyError, TypeError, ValueError) as e:
            log.error("Error getting server resources: unexpected response (%s)", e)
        return None

    async def send_command_async(self, command: str) -> PanelResult:
        return await asyncio.to_thread(self.send_command, command)

    async def set_power_state_async(self, signal: PowerSignal) -> PanelResult:
        return await asyncio.to_thread(self.set_power_state, signal)

    async def get_resources_async(self) -> Optional[ResourceSnapshot]:
        return await asyncio.to_thread(self.get_resources)
