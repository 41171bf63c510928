# =============================
# Minecraft restart bot launcher
# =============================
import logging
import sys

import config
from discord_bot import AccessPolicy, CommandDispatcher, RestartBotClient
from remote_commander import RemoteCommander
from restart_workflow import RestartWorkflow

_LOG_FORMAT = "[restart-bot] %(asctime)s %(levelname)s %(message)s"
log = logging.getLogger("restart_bot.app")


def setup_logging(log_file: str = config.LOG_FILE) -> None:
    logging.basicConfig(level=logging.INFO, format=_LOG_FORMAT)
    if log_file:
        root = logging.getLogger()
        # Avoid duplicating handlers if setup runs twice.
        if not any(getattr(h, "baseFilename", "") == log_file for h in root.handlers):
            fh = logging.FileHandler(log_file, encoding="utf-8")
            fh.setLevel(logging.INFO)
            fh.setFormatter(logging.Formatter(_LOG_FORMAT))
            root.addHandler(fh)


def build_client() -> RestartBotClient:
    commander = RemoteCommander(config.API_URL, config.SERVER_ID, config.API_KEY)
    workflow = RestartWorkflow(
        commander,
        warning_sec=config.RESTART_WARNING_SEC,
        poll_interval_sec=config.STOP_POLL_INTERVAL_SEC,
        max_poll_attempts=config.STOP_POLL_MAX_ATTEMPTS,
    )
    dispatcher = CommandDispatcher(
        commander,
        workflow=workflow,
        access=AccessPolicy(
            guild_id=config.GUILD_ID,
            channel_id=config.CHANNEL_ID,
            allowed_role_ids=list(config.ALLOWED_ROLE_IDS),
        ),
        vote_timeout=config.VOTE_TIMEOUT,
        force_restart_delay=config.FORCE_RESTART_DELAY_SEC,
        max_ram_gb=config.MAX_RAM_GB,
    )
    return RestartBotClient(dispatcher, guild_id=config.GUILD_ID, status_enabled=config.STATUS_COMMAND_ENABLED)


def main() -> int:
    setup_logging()

    missing = config.missing_settings()
    if missing:
        log.error("Missing required settings: %s (set them in the environment or .env)", ", ".join(missing))
        return 1

    log.info("Managing server %s at %s", config.SERVER_ID, config.API_URL)
    client = build_client()
    # Root logging is already configured; keep discord.py from adding its own handler.
    client.run(config.DISCORD_TOKEN, log_handler=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
