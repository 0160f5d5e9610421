"""discord.py client that feeds gateway events into an EventRouter."""

from __future__ import annotations

import logging

import discord
from discord import app_commands

from router import COMMANDS, EventRouter

LOGGER = logging.getLogger(__name__)


def build_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.message_content = True
    return intents


class PaperBot(discord.Client):
    """Gateway client; all paper logic lives in the router."""

    def __init__(self, router: EventRouter, *, intents: discord.Intents | None = None) -> None:
        super().__init__(intents=intents or build_intents())
        self.router = router
        self.tree = app_commands.CommandTree(self)
        for name, description in COMMANDS.items():
            self.tree.add_command(self._make_command(name, description))

    def _make_command(self, name: str, description: str) -> app_commands.Command:
        # Visible to channel managers by default; server admins can widen it.
        @app_commands.default_permissions(manage_channels=True)
        @app_commands.guild_only()
        async def callback(interaction: discord.Interaction) -> None:
            reply = await self.router.handle_command(name, interaction.channel_id)
            if reply is not None:
                await interaction.response.send_message(reply)

        return app_commands.Command(name=name, description=description, callback=callback)

    async def on_ready(self) -> None:
        LOGGER.info("Connected as %s", self.user)
        try:
            synced = await self.tree.sync()
            LOGGER.info("Synced %d commands", len(synced))
        except discord.DiscordException as exc:
            LOGGER.exception("Failed to sync commands: %s", exc)

    async def on_message(self, message: discord.Message) -> None:
        if message.author == self.user:
            return
        await self.router.on_message(message)

    async def on_thread_create(self, thread: discord.Thread) -> None:
        # Threads the bot starts from messages are already being published into.
        if self.user is not None and thread.owner_id == self.user.id:
            return
        await self.router.on_thread_create(thread)


def build_client(router: EventRouter) -> PaperBot:
    return PaperBot(router)
