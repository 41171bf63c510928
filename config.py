import os
from typing import List, Optional

from dotenv import load_dotenv

# Values in a local .env file fill in anything not already set in the environment.
load_dotenv()


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_optional_int(name: str) -> Optional[int]:
    raw = _env_str(name)
    return int(raw) if raw.isdigit() else None


def _env_bool(name: str, default: bool) -> bool:
    raw = _env_str(name).lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _env_id_list(name: str) -> List[int]:
    return [int(x.strip()) for x in _env_str(name).split(",") if x.strip().isdigit()]


# =============================
# Pterodactyl panel (client API)
# =============================
API_URL = _env_str("PTERODACTYL_API_URL", "https://mc.bloom.host/api").rstrip("/")
SERVER_ID = _env_str("PTERODACTYL_SERVER_ID", "0b2bfe5d")
API_KEY = _env_str("PTERODACTYL_API_KEY")      # REQUIRED
API_ACCEPT = "Application/vnd.pterodactyl.v1+json"
REQUEST_TIMEOUT_SEC = 10

# =============================
# Discord
# =============================
DISCORD_TOKEN = _env_str("DISCORD_TOKEN")      # REQUIRED
# Guild sync is instant; without a guild id commands are synced globally.
GUILD_ID = _env_optional_int("DISCORD_GUILD_ID")
CHANNEL_ID = _env_optional_int("DISCORD_CHANNEL_ID")
# Roles allowed to /force-restart (administrators always are). Empty = everyone.
ALLOWED_ROLE_IDS = _env_id_list("DISCORD_ALLOWED_ROLE_IDS")

# =============================
# Restart vote / workflow timings (seconds)
# =============================
VOTE_TIMEOUT = _env_int("VOTE_TIMEOUT", 60)
RESTART_WARNING_SEC = 10
STOP_POLL_INTERVAL_SEC = 2
# 0 keeps polling until the server reports stopped.
STOP_POLL_MAX_ATTEMPTS = _env_int("STOP_POLL_MAX_ATTEMPTS", 0)
FORCE_RESTART_DELAY_SEC = 5

# =============================
# Status / presence
# =============================
MAX_RAM_GB = _env_int("MAX_RAM_GB", 12)
STATUS_UPDATE_INTERVAL_SEC = _env_int("STATUS_UPDATE_INTERVAL_SEC", 60)
# False gives the minimal bot: no /status and no RAM presence.
STATUS_COMMAND_ENABLED = _env_bool("STATUS_COMMAND_ENABLED", True)

# =============================
# Logging
# =============================
LOG_FILE = _env_str("LOG_FILE")


def missing_settings() -> List[str]:
    """Names of required environment variables that are not set."""
    required = {
        "DISCORD_TOKEN": DISCORD_TOKEN,
        "PTERODACTYL_API_KEY": API_KEY,
    }
    return [name for name, value in required.items() if not value]
