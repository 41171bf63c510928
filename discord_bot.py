"""
Discord front end for the Minecraft restart bot.

Design goals:
- One fixed server, four slash commands: /restart, /cancel, /force-restart, /status.
- /restart is a vote: it only goes ahead if nobody runs /cancel within VOTE_TIMEOUT seconds.
- Every handler is its own error boundary; a failing command never takes the bot down.

Notes for users:
- Slash commands do not need the Message Content Intent.
- Set DISCORD_GUILD_ID for instant command sync; global sync can take a while to show up.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Tuple

import discord
from discord import app_commands

import config
import server_commands
from presence import PresenceReporter, bytes_to_gb, bytes_to_mb, ram_usage, to_fixed
from remote_commander import PowerSignal, RemoteCommander, ResourceSnapshot
from restart_workflow import RestartSession, RestartWorkflow, SleepFn, VoteTimer

log = logging.getLogger("restart_bot.discord_bot")

COLOR_WARN = discord.Color(0xFF9900)
COLOR_OK = discord.Color(0x00FF00)
COLOR_DANGER = discord.Color(0xFF0000)

COMMAND_DESCRIPTIONS = {
    "restart": "Start a vote to restart the Minecraft server",
    "cancel": "Cancel an ongoing restart vote",
    "force-restart": "Force restart the Minecraft server (Admin only)",
    "status": "Show current server status and resource usage",
}


# ----------------------------
# Embeds
# ----------------------------

def _embed(title: str, description: str, color: discord.Color) -> discord.Embed:
    return discord.Embed(title=title, description=description, color=color, timestamp=discord.utils.utcnow())


def vote_embed(vote_timeout: int) -> discord.Embed:
    return _embed(
        "Server Restart Vote",
        f"Server restart initiated.\nThe server will restart in {vote_timeout} seconds "
        f"unless canceled with `/cancel`.",
        COLOR_WARN,
    )


def vote_passed_embed() -> discord.Embed:
    return _embed("Server Restart", "Restart vote passed! Restarting server now...", COLOR_OK)


def canceled_embed() -> discord.Embed:
    return _embed("Restart Canceled", "The server restart has been canceled.", COLOR_OK)


def force_restart_embed() -> discord.Embed:
    return _embed("Force Restart", "Force restarting the server...", COLOR_DANGER)


def status_embed(snapshot: ResourceSnapshot, max_ram_gb: int = config.MAX_RAM_GB) -> discord.Embed:
    ram_gb, ram_pct = ram_usage(snapshot, max_ram_gb)
    suspended = " (SUSPENDED)" if snapshot.is_suspended else ""

    embed = _embed(
        "Minecraft Server Status",
        f"Current State: **{snapshot.current_state}**{suspended}",
        COLOR_OK if snapshot.is_running else COLOR_WARN,
    )
    embed.add_field(name="RAM Usage", value=f"{ram_gb} GB / {max_ram_gb} GB ({ram_pct}%)", inline=True)
    embed.add_field(name="CPU Usage", value=f"{to_fixed(snapshot.cpu_absolute, 1)}%", inline=True)
    embed.add_field(name="Disk Usage", value=f"{bytes_to_gb(snapshot.disk_bytes)} GB", inline=True)
    embed.add_field(
        name="Network",
        value=f"↓ {bytes_to_mb(snapshot.network_rx_bytes)} MB / ↑ {bytes_to_mb(snapshot.network_tx_bytes)} MB",
        inline=True,
    )
    if snapshot.is_running and snapshot.online_players is not None:
        embed.add_field(
            name="Players",
            value=f"{snapshot.online_players} / {snapshot.max_players or 'Unknown'}",
            inline=True,
        )
    return embed


# ----------------------------
# Access control
# ----------------------------

@dataclass
class AccessPolicy:
    guild_id: Optional[int] = None
    channel_id: Optional[int] = None
    allowed_role_ids: List[int] = field(default_factory=list)

    def interaction_allowed(self, interaction: discord.Interaction) -> Tuple[bool, str]:
        if self.guild_id and getattr(getattr(interaction, "guild", None), "id", None) != self.guild_id:
            return False, "This command can only be used in the configured server."
        if self.channel_id and getattr(getattr(interaction, "channel", None), "id", None) != self.channel_id:
            return False, "This command can only be used in the configured channel."
        return True, ""

    def may_force_restart(self, member) -> bool:
        # No role list configured: open to everyone, like the other commands.
        if not self.allowed_role_ids:
            return True
        if getattr(getattr(member, "guild_permissions", None), "administrator", False):
            return True
        allowed = set(self.allowed_role_ids)
        return any(getattr(r, "id", None) in allowed for r in (getattr(member, "roles", None) or []))


async def _send_ephemeral(interaction: discord.Interaction, text: str) -> None:
    try:
        if interaction.response.is_done():
            await interaction.followup.send(text, ephemeral=True)
        else:
            await interaction.response.send_message(text, ephemeral=True)
    except discord.HTTPException:
        log.exception("Failed to send reply")


# ----------------------------
# Command handling
# ----------------------------

class CommandDispatcher:
    """
    Owns the restart session and implements the slash command handlers.

    Handlers take the raw interaction so they can be driven directly in tests.
    """

    def __init__(
        self,
        commander: RemoteCommander,
        workflow: Optional[RestartWorkflow] = None,
        session: Optional[RestartSession] = None,
        access: Optional[AccessPolicy] = None,
        vote_timeout: int = config.VOTE_TIMEOUT,
        force_restart_delay: float = config.FORCE_RESTART_DELAY_SEC,
        max_ram_gb: int = config.MAX_RAM_GB,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.commander = commander
        self.workflow = workflow or RestartWorkflow(commander, sleep=sleep)
        self.session = session or RestartSession()
        self.access = access or AccessPolicy()
        self.vote_timeout = vote_timeout
        self.force_restart_delay = force_restart_delay
        self.max_ram_gb = max_ram_gb
        self._sleep = sleep

    def register(
        self,
        tree: app_commands.CommandTree,
        guild: Optional[discord.abc.Snowflake] = None,
        include_status: bool = True,
    ) -> List[str]:
        """
        Adds the bot's commands to the tree, replacing any with the same name.
        Returns the registered command names.
        """
        handlers = {
            "restart": self.handle_restart,
            "cancel": self.handle_cancel,
            "force-restart": self.handle_force_restart,
        }
        if include_status:
            handlers["status"] = self.handle_status

        for name, handler in handlers.items():
            tree.add_command(
                app_commands.Command(
                    name=name,
                    description=COMMAND_DESCRIPTIONS[name],
                    callback=self._make_callback(handler),
                ),
                guild=guild,
                override=True,
            )
        return list(handlers)

    def _make_callback(self, handler: Callable[[discord.Interaction], Awaitable[None]]):
        async def callback(interaction: discord.Interaction):
            await self.dispatch(interaction, handler)
        return callback

    async def dispatch(
        self,
        interaction: discord.Interaction,
        handler: Callable[[discord.Interaction], Awaitable[None]],
    ) -> None:
        ok, why = self.access.interaction_allowed(interaction)
        if not ok:
            await _send_ephemeral(interaction, f"❌ {why}")
            return
        try:
            await handler(interaction)
        except Exception:
            log.exception("Command handler %s failed", getattr(handler, "__name__", handler))
            await _send_ephemeral(interaction, "❌ Something went wrong while running this command.")

    # /restart
    async def handle_restart(self, interaction: discord.Interaction) -> None:
        if self.session.in_progress:
            await interaction.response.send_message("A restart is already in progress!")
            return

        timer = VoteTimer(self.vote_timeout, lambda: self._vote_passed(interaction), sleep=self._sleep)
        self.session.begin(timer)
        log.info("Restart vote started by %s (%ss)", getattr(interaction, "user", None), self.vote_timeout)
        try:
            await interaction.response.send_message(embed=vote_embed(self.vote_timeout))
        except Exception:
            self.session.cancel()
            raise

    async def _vote_passed(self, interaction: discord.Interaction) -> None:
        log.info("Restart vote passed, restarting server")
        try:
            await interaction.edit_original_response(embed=vote_passed_embed())
        except Exception:
            log.exception("Could not update the restart vote message")

        async def report(text: str) -> None:
            try:
                await interaction.edit_original_response(content=text)
            except Exception:
                log.exception("Could not post restart progress: %s", text)

        try:
            await self.workflow.run(self.session, report)
        finally:
            self.session.finish()

    # /cancel
    async def handle_cancel(self, interaction: discord.Interaction) -> None:
        if not self.session.in_progress:
            await interaction.response.send_message("There is no restart in progress to cancel!")
            return
        if self.session.restarting:
            await interaction.response.send_message("The restart is already underway and can no longer be canceled.")
            return

        self.session.cancel()
        log.info("Restart vote canceled by %s", getattr(interaction, "user", None))
        await interaction.response.send_message(embed=canceled_embed())
        await server_commands.announce_restart_canceled(self.commander)

    # /force-restart
    async def handle_force_restart(self, interaction: discord.Interaction) -> None:
        if not self.access.may_force_restart(getattr(interaction, "user", None)):
            await _send_ephemeral(interaction, "❌ You are not allowed to force restart the server.")
            return

        log.warning("Force restart requested by %s", getattr(interaction, "user", None))
        await interaction.response.send_message(embed=force_restart_embed())
        try:
            await server_commands.announce_force_restart(self.commander)
            await self.commander.set_power_state_async(PowerSignal.KILL)
            # Give the daemon time to take the kill before starting again.
            await self._sleep(self.force_restart_delay)
            await self.commander.set_power_state_async(PowerSignal.START)
            await interaction.edit_original_response(content="Server has been force restarted!")
        except Exception as e:
            log.exception("Error during force restart")
            await interaction.edit_original_response(content=f"Error during force restart: {e}")

    # /status
    async def handle_status(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer()
        try:
            snapshot = await self.commander.get_resources_async()
            if snapshot is None:
                await interaction.edit_original_response(
                    content="Failed to get server status. The server might be offline."
                )
                return
            embed = status_embed(snapshot, self.max_ram_gb)
        except Exception:
            log.exception("Error getting status")
            await interaction.edit_original_response(content="Failed to get server status due to an error.")
            return
        await interaction.edit_original_response(embed=embed)


# ----------------------------
# Client
# ----------------------------

class RestartBotClient(discord.Client):
    def __init__(
        self,
        dispatcher: CommandDispatcher,
        guild_id: Optional[int] = None,
        status_enabled: bool = True,
    ):
        intents = discord.Intents.default()
        # Slash commands do NOT require Message Content Intent.
        intents.message_content = False
        intents.guilds = True
        intents.members = False
        intents.presences = False
        super().__init__(intents=intents)

        self.dispatcher = dispatcher
        self.guild_obj = discord.Object(id=guild_id) if guild_id else None
        self.tree = app_commands.CommandTree(self)
        self.command_names = dispatcher.register(self.tree, guild=self.guild_obj, include_status=status_enabled)
        self.presence = PresenceReporter(self, dispatcher.commander, max_ram_gb=dispatcher.max_ram_gb) if status_enabled else None

    async def setup_hook(self) -> None:
        # sync() overwrites the remote command list, so re-running it never duplicates commands.
        try:
            if self.guild_obj is not None:
                # Drop stale global registrations so users do not see every command twice.
                self.tree.clear_commands(guild=None)
                await self.tree.sync()
                synced = await self.tree.sync(guild=self.guild_obj)
                log.info("Slash commands synced to guild_id=%s: %s", self.guild_obj.id, [c.name for c in synced])
            else:
                synced = await self.tree.sync()
                log.warning("guild_id not set; %d slash commands synced globally (can take time to appear).", len(synced))
        except discord.HTTPException:
            log.exception("Failed to sync slash commands")

    async def on_ready(self) -> None:
        log.info("Logged in as %s (id=%s)", self.user, getattr(self.user, "id", None))
        if self.presence is not None:
            self.presence.start()

    async def on_error(self, event_method: str, *args, **kwargs) -> None:
        log.exception("Discord on_error event=%s", event_method)

    async def close(self) -> None:
        if self.presence is not None:
            self.presence.stop()
        await super().close()
