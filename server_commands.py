"""
This module provides the Minecraft console commands the bot sends to the server.
"""

from remote_commander import PanelResult, RemoteCommander


async def say(commander: RemoteCommander, message: str) -> PanelResult:
    """Broadcasts a message to everyone in game."""
    return await commander.send_command_async(f"say {message}")


async def save_all(commander: RemoteCommander) -> PanelResult:
    """Flushes the world to disk."""
    return await commander.send_command_async("save-all")


async def announce_restart(commander: RemoteCommander, seconds: int) -> PanelResult:
    """Warns players that the server goes down in the given number of seconds."""
    return await say(commander, f"Server will restart in {seconds} seconds!")


async def announce_restart_canceled(commander: RemoteCommander) -> PanelResult:
    return await say(commander, "Server restart has been canceled.")


async def announce_force_restart(commander: RemoteCommander) -> PanelResult:
    return await say(commander, "SERVER IS BEING FORCE RESTARTED!")
