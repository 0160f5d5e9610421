"""End-to-end tests for EventRouter with a real gate and publisher, fake Discord objects."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
import requests

from channel_gate import ChannelGate
from models import Author, Paper
from publisher import ThreadPublisher, format_block
from resolver import STAGE_TRANSLATION, ResolutionError
from router import COMMANDS, EventRouter

CHANNEL_ID = 1111
OTHER_CHANNEL_ID = 2222

_PAPER = Paper(
    title="A Very Long Title About Thread-Native Paper Bots " * 4,
    published=datetime(2023, 1, 28, 18, 59, 59, tzinfo=UTC),
    summary="We study how paper bots scale.",
    translated_summary="論文ボットのスケーリングを研究する。",
    semantic_scholar_url="https://www.semanticscholar.org/paper/abc123",
    connected_papers_url="https://www.connectedpapers.com/main/abc123",
    authors=(Author(name="Grace Hopper"),),
)


def _thread(thread_id: int = 9000, name: str = "", parent_id: int | None = CHANNEL_ID) -> MagicMock:
    thread = MagicMock()
    thread.id = thread_id
    thread.name = name
    thread.parent_id = parent_id
    thread.send = AsyncMock()
    thread.edit = AsyncMock()
    return thread


def _message(content: str, channel_id: int = CHANNEL_ID) -> tuple[MagicMock, MagicMock]:
    thread = _thread()
    message = MagicMock()
    message.id = 77
    message.content = content
    message.channel.id = channel_id
    message.create_thread = AsyncMock(return_value=thread)
    return message, thread


def _forbidden() -> discord.Forbidden:
    response = MagicMock()
    response.status = 403
    response.reason = "Forbidden"
    return discord.Forbidden(response, "Missing Permissions")


@pytest.fixture
def gate_path(tmp_path: Path) -> Path:
    return tmp_path / "enabled_channels.json"


def _router(gate_path: Path, resolver: AsyncMock | None = None) -> EventRouter:
    return EventRouter(
        ChannelGate(gate_path),
        resolver=resolver or AsyncMock(return_value=_PAPER),
        publisher=ThreadPublisher(),
    )


# ---------------------------------------------------------------------------
# Admin commands
# ---------------------------------------------------------------------------

def test_command_table() -> None:
    assert set(COMMANDS) == {"enable", "disable"}


def test_enable_command_opens_gate_and_persists(gate_path: Path) -> None:
    router = _router(gate_path)

    async def scenario() -> tuple[str | None, bool]:
        reply = await router.handle_command("enable", CHANNEL_ID)
        return reply, await router.gate.contains(CHANNEL_ID)

    reply, enabled = asyncio.run(scenario())

    assert reply == "Enabled the bot in this channel"
    assert enabled is True
    assert json.loads(gate_path.read_text(encoding="utf-8")) == [CHANNEL_ID]


def test_disable_command_closes_gate_and_persists(gate_path: Path) -> None:
    gate_path.write_text(json.dumps([CHANNEL_ID, OTHER_CHANNEL_ID]), encoding="utf-8")
    router = _router(gate_path)

    reply = asyncio.run(router.handle_command("disable", CHANNEL_ID))

    assert reply == "Disabled the bot in this channel"
    assert json.loads(gate_path.read_text(encoding="utf-8")) == [OTHER_CHANNEL_ID]


def test_disable_on_never_enabled_channel_is_noop(gate_path: Path) -> None:
    router = _router(gate_path)
    reply = asyncio.run(router.handle_command("disable", CHANNEL_ID))
    assert reply == "Disabled the bot in this channel"
    assert json.loads(gate_path.read_text(encoding="utf-8")) == []


def test_unknown_command_is_ignored(gate_path: Path) -> None:
    router = _router(gate_path)

    assert asyncio.run(router.handle_command("purge", CHANNEL_ID)) is None
    assert not gate_path.exists()


def test_enabled_state_survives_restart(gate_path: Path) -> None:
    asyncio.run(_router(gate_path).handle_command("enable", CHANNEL_ID))

    restarted = _router(gate_path)
    assert asyncio.run(restarted.gate.contains(CHANNEL_ID)) is True


# ---------------------------------------------------------------------------
# Message path
# ---------------------------------------------------------------------------

def test_disabled_channel_triggers_nothing(gate_path: Path) -> None:
    resolver = AsyncMock(return_value=_PAPER)
    router = _router(gate_path, resolver)
    message, _ = _message("see 2301.12345 for details")

    asyncio.run(router.on_message(message))

    resolver.assert_not_awaited()
    message.create_thread.assert_not_awaited()


def test_enabled_channel_message_creates_thread_with_three_posts(gate_path: Path) -> None:
    resolver = AsyncMock(return_value=_PAPER)
    router = _router(gate_path, resolver)
    message, thread = _message("see 2301.12345 for details")

    async def scenario() -> None:
        await router.handle_command("enable", CHANNEL_ID)
        await router.on_message(message)

    asyncio.run(scenario())

    resolver.assert_awaited_once_with("2301.12345")
    name = message.create_thread.await_args.kwargs["name"]
    assert len(name) == 100
    assert _PAPER.title.startswith(name)
    sent = [c.kwargs for c in thread.send.await_args_list]
    assert len(sent) == 3
    assert sent[0]["embed"].title == _PAPER.title
    assert sent[1] == {"content": format_block("Summary", _PAPER.summary)}
    assert sent[2] == {"content": format_block("Translated", _PAPER.translated_summary)}


def test_single_author_without_id_renders_plain_name(gate_path: Path) -> None:
    router = _router(gate_path)
    message, thread = _message("2301.12345")

    async def scenario() -> None:
        await router.handle_command("enable", CHANNEL_ID)
        await router.on_message(message)

    asyncio.run(scenario())

    embed = thread.send.await_args_list[0].kwargs["embed"]
    authors = next(field.value for field in embed.fields if field.name == "Authors")
    assert authors == "Grace Hopper"


def test_message_without_identifier_is_ignored(gate_path: Path) -> None:
    resolver = AsyncMock(return_value=_PAPER)
    router = _router(gate_path, resolver)
    message, _ = _message("nothing to see here")

    async def scenario() -> None:
        await router.handle_command("enable", CHANNEL_ID)
        await router.on_message(message)

    asyncio.run(scenario())

    resolver.assert_not_awaited()


def test_resolution_error_on_message_path_is_silent(gate_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    error = ResolutionError("2301.12345", STAGE_TRANSLATION, requests.ConnectionError("down"))
    router = _router(gate_path, AsyncMock(side_effect=error))
    message, _ = _message("see 2301.12345")

    async def scenario() -> None:
        await router.handle_command("enable", CHANNEL_ID)
        await router.on_message(message)

    with caplog.at_level(logging.WARNING):
        asyncio.run(scenario())

    message.create_thread.assert_not_awaited()
    message.reply.assert_not_called()
    assert "stage=translation" in caplog.text


def test_publication_error_is_logged_not_raised(gate_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    router = _router(gate_path)
    message, thread = _message("see 2301.12345")
    thread.send.side_effect = [None, _forbidden(), None]

    async def scenario() -> None:
        await router.handle_command("enable", CHANNEL_ID)
        await router.on_message(message)

    with caplog.at_level(logging.ERROR):
        asyncio.run(scenario())

    assert thread.send.await_count == 2
    assert "step=summary" in caplog.text


def test_unexpected_resolver_failure_does_not_escape(gate_path: Path) -> None:
    router = _router(gate_path, AsyncMock(side_effect=KeyError("boom")))
    message, _ = _message("see 2301.12345")

    async def scenario() -> None:
        await router.handle_command("enable", CHANNEL_ID)
        await router.on_message(message)

    asyncio.run(scenario())

    message.create_thread.assert_not_awaited()


def test_failure_in_one_event_does_not_affect_another(gate_path: Path) -> None:
    async def resolve(arxiv_id: str) -> Paper:
        if arxiv_id == "2301.00001":
            raise ResolutionError(arxiv_id, STAGE_TRANSLATION, RuntimeError("nope"))
        await asyncio.sleep(0)
        return _PAPER

    router = _router(gate_path, AsyncMock(side_effect=resolve))
    bad, bad_thread = _message("2301.00001")
    good, good_thread = _message("2301.00002")

    async def scenario() -> None:
        await router.handle_command("enable", CHANNEL_ID)
        await asyncio.gather(router.on_message(bad), router.on_message(good))

    asyncio.run(scenario())

    bad.create_thread.assert_not_awaited()
    assert good_thread.send.await_count == 3


# ---------------------------------------------------------------------------
# Thread path
# ---------------------------------------------------------------------------

def test_thread_under_enabled_parent_is_renamed_and_posted(gate_path: Path) -> None:
    resolver = AsyncMock(return_value=_PAPER)
    router = _router(gate_path, resolver)
    thread = _thread(name="discussing 1912.01234 results")

    async def scenario() -> None:
        await router.handle_command("enable", CHANNEL_ID)
        await router.on_thread_create(thread)

    asyncio.run(scenario())

    resolver.assert_awaited_once_with("1912.01234")
    thread.edit.assert_awaited_once()
    assert _PAPER.title.startswith(thread.edit.await_args.kwargs["name"])
    sent = [c.kwargs for c in thread.send.await_args_list]
    assert "embed" in sent[0]
    assert sent[1]["content"].startswith("**Summary:**")
    assert sent[2]["content"].startswith("**Translated:**")


def test_thread_under_disabled_parent_is_ignored(gate_path: Path) -> None:
    resolver = AsyncMock(return_value=_PAPER)
    router = _router(gate_path, resolver)
    thread = _thread(name="discussing 1912.01234 results", parent_id=OTHER_CHANNEL_ID)

    async def scenario() -> None:
        await router.handle_command("enable", CHANNEL_ID)
        await router.on_thread_create(thread)

    asyncio.run(scenario())

    resolver.assert_not_awaited()
    thread.edit.assert_not_awaited()


def test_thread_without_parent_is_ignored(gate_path: Path) -> None:
    resolver = AsyncMock(return_value=_PAPER)
    router = _router(gate_path, resolver)
    thread = _thread(name="1912.01234", parent_id=None)

    asyncio.run(router.on_thread_create(thread))

    resolver.assert_not_awaited()


def test_thread_resolution_error_posts_notice(gate_path: Path) -> None:
    error = ResolutionError("1912.01234", STAGE_TRANSLATION, RuntimeError("down"))
    router = _router(gate_path, AsyncMock(side_effect=error))
    thread = _thread(name="discussing 1912.01234 results")

    async def scenario() -> None:
        await router.handle_command("enable", CHANNEL_ID)
        await router.on_thread_create(thread)

    asyncio.run(scenario())

    thread.edit.assert_not_awaited()
    thread.send.assert_awaited_once_with(content="Could not resolve arXiv:1912.01234")


def test_thread_notice_failure_is_swallowed(gate_path: Path) -> None:
    error = ResolutionError("1912.01234", STAGE_TRANSLATION, RuntimeError("down"))
    router = _router(gate_path, AsyncMock(side_effect=error))
    thread = _thread(name="1912.01234")
    thread.send.side_effect = _forbidden()

    async def scenario() -> None:
        await router.handle_command("enable", CHANNEL_ID)
        await router.on_thread_create(thread)

    asyncio.run(scenario())

    thread.send.assert_awaited_once()
