"""Dispatch Discord events through gate -> extract -> resolve -> publish."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import discord

from channel_gate import ChannelGate
from identifier import find_arxiv_id
from models import Paper
from publisher import PublicationError, ThreadPublisher
from resolver import ResolutionError, resolve_paper

LOGGER = logging.getLogger(__name__)

# name -> description, registered as global slash commands.
COMMANDS: dict[str, str] = {
    "enable": "Enable the bot in this channel",
    "disable": "Disable the bot in this channel",
}


class EventRouter:
    """Event handlers for one bot process; holds the channel gate it was given.

    Handlers take duck-typed Discord objects (message.channel.id, thread.parent_id,
    ...) and never raise: each event's failure is logged and stays with that event.
    """

    def __init__(
        self,
        gate: ChannelGate,
        resolver: Callable[[str], Awaitable[Paper]] = resolve_paper,
        publisher: ThreadPublisher | None = None,
    ) -> None:
        self.gate = gate
        self.resolver = resolver
        self.publisher = publisher or ThreadPublisher()

    async def handle_command(self, name: str, channel_id: int) -> str | None:
        """Apply an admin command to the gate; returns the reply text, or None if unknown."""
        if name == "enable":
            await self.gate.add(channel_id)
            reply = "Enabled the bot in this channel"
        elif name == "disable":
            await self.gate.remove(channel_id)
            reply = "Disabled the bot in this channel"
        else:
            LOGGER.debug("Ignoring unknown command %r", name)
            return None
        await self.gate.save()
        LOGGER.info("Command /%s applied to channel_id=%s", name, channel_id)
        return reply

    async def on_message(self, message: Any) -> None:
        if not await self.gate.contains(message.channel.id):
            return
        arxiv_id = find_arxiv_id(message.content)
        if arxiv_id is None:
            return
        LOGGER.info("Found arXiv id %s in message id=%s channel_id=%s", arxiv_id, message.id, message.channel.id)

        paper = await self._resolve(arxiv_id)
        if paper is None:
            return
        await self._publish(arxiv_id, self.publisher.publish_from_message(paper, message))

    async def on_thread_create(self, thread: Any) -> None:
        parent_id = getattr(thread, "parent_id", None)
        if parent_id is None or not await self.gate.contains(parent_id):
            return
        arxiv_id = find_arxiv_id(thread.name)
        if arxiv_id is None:
            return
        LOGGER.info("Found arXiv id %s in thread name id=%s parent_id=%s", arxiv_id, thread.id, parent_id)

        paper = await self._resolve(arxiv_id)
        if paper is None:
            await self._notify_unresolved(thread, arxiv_id)
            return
        await self._publish(arxiv_id, self.publisher.publish_from_thread_rename(paper, thread))

    async def _resolve(self, arxiv_id: str) -> Paper | None:
        try:
            return await self.resolver(arxiv_id)
        except ResolutionError as exc:
            LOGGER.warning("%s (cause: %r)", exc, exc.__cause__)
        except Exception:
            LOGGER.exception("Unexpected failure resolving arXiv:%s", arxiv_id)
        return None

    async def _publish(self, arxiv_id: str, publication: Awaitable[Any]) -> None:
        try:
            await publication
        except PublicationError as exc:
            LOGGER.error("Publishing arXiv:%s stopped: %s", arxiv_id, exc, exc_info=exc)
        except Exception:
            LOGGER.exception("Unexpected failure publishing arXiv:%s", arxiv_id)

    async def _notify_unresolved(self, thread: Any, arxiv_id: str) -> None:
        try:
            await thread.send(content=f"Could not resolve arXiv:{arxiv_id}")
        except discord.DiscordException as exc:
            LOGGER.error("Failed to post resolution notice in thread id=%s: %s", thread.id, exc)
