"""Publish a resolved Paper into a Discord thread as three ordered messages."""

from __future__ import annotations

import logging
import unicodedata
from collections.abc import Awaitable, Callable, Iterable, Iterator
from typing import Any

import discord

from models import Author, Paper

THREAD_NAME_MAX_LENGTH = 100
EMBED_TITLE_MAX_LENGTH = 256
EMBED_FIELD_MAX_LENGTH = 1024
MESSAGE_MAX_LENGTH = 2000
UNTITLED_THREAD_NAME = "Untitled paper"
PUBLISHED_DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S UTC"

LOGGER = logging.getLogger(__name__)

# Posts one message to the publication destination (thread.send or equivalent).
Send = Callable[..., Awaitable[Any]]

_ZWJ = "\u200d"


class PublicationError(RuntimeError):
    """A Discord write failed; step names which one and __cause__ holds the API error."""

    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(f"Publication failed at step={step}: {cause}")
        self.step = step
        self.__cause__ = cause


def _extends_cluster(prev: str, char: str, ri_run: int) -> bool:
    """True if char belongs to the same user-perceived character as prev."""
    code = ord(char)
    if prev == _ZWJ or char == _ZWJ:
        return True
    if unicodedata.category(char) in ("Mn", "Me", "Mc"):
        return True
    if 0xFE00 <= code <= 0xFE0F or 0xE0100 <= code <= 0xE01EF:
        return True  # variation selectors
    if 0x1F3FB <= code <= 0x1F3FF or 0xE0020 <= code <= 0xE007F:
        return True  # skin-tone modifiers, emoji tag sequences
    if 0x1160 <= code <= 0x11FF or 0xD7B0 <= code <= 0xD7FF:
        return True  # Hangul medial vowels and final consonants
    # Regional indicators pair up into flags.
    return 0x1F1E6 <= code <= 0x1F1FF and ri_run % 2 == 1


def iter_graphemes(text: str) -> Iterator[str]:
    """Split text into approximate grapheme clusters.

    Covers combining marks, variation selectors, emoji modifiers, ZWJ sequences,
    conjoining Hangul jamo and flag pairs; enough to keep a cut from landing
    inside a visible glyph.
    """
    cluster = ""
    ri_run = 0
    for char in text:
        if cluster and _extends_cluster(cluster[-1], char, ri_run):
            cluster += char
        else:
            if cluster:
                yield cluster
            cluster = char
        ri_run = ri_run + 1 if 0x1F1E6 <= ord(char) <= 0x1F1FF else 0
    if cluster:
        yield cluster


def truncate_title(title: str, limit: int = THREAD_NAME_MAX_LENGTH) -> str:
    """Cut a thread name to at most limit user-perceived characters."""
    title = title.strip()
    if not title:
        return UNTITLED_THREAD_NAME
    clusters: list[str] = []
    for cluster in iter_graphemes(title):
        if len(clusters) == limit:
            break
        clusters.append(cluster)
    return "".join(clusters)


def _clamp(text: str, limit: int) -> str:
    """Fit text into limit code points, ending with an ellipsis when clipped."""
    if len(text) <= limit:
        return text
    kept = ""
    for cluster in iter_graphemes(text):
        if len(kept) + len(cluster) > limit - 1:
            break
        kept += cluster
    return kept + "…"


def format_author(author: Author) -> str:
    if author.author_url:
        return f"[{author.name}]({author.author_url})"
    return author.name


def format_authors(authors: Iterable[Author]) -> str:
    return ", ".join(format_author(author) for author in authors)


def build_summary_embed(paper: Paper) -> discord.Embed:
    """Summary card: title, publication time, paper-graph links, authors."""
    embed = discord.Embed(title=_clamp(paper.title, EMBED_TITLE_MAX_LENGTH))
    embed.add_field(name="Published", value=paper.published.strftime(PUBLISHED_DISPLAY_FORMAT), inline=False)
    embed.add_field(name="Semantic Scholar", value=paper.semantic_scholar_url, inline=False)
    embed.add_field(name="Connected Papers", value=paper.connected_papers_url, inline=False)
    # Discord rejects empty field values.
    authors = format_authors(paper.authors) or "Unknown"
    embed.add_field(name="Authors", value=_clamp(authors, EMBED_FIELD_MAX_LENGTH), inline=False)
    return embed


def format_block(label: str, text: str) -> str:
    """Render text as a fenced code block under a bold label, within the message limit."""
    # A literal ``` in the abstract would close the fence early.
    body = text.replace("```", "`\u200b`\u200b`")
    header = f"**{label}:**\n```\n"
    footer = "\n```"
    return header + _clamp(body, MESSAGE_MAX_LENGTH - len(header) - len(footer)) + footer


class ThreadPublisher:
    """Creates or renames the discussion thread, then posts the paper into it."""

    async def publish_from_message(self, paper: Paper, message: Any) -> Any:
        """Start a thread on message named after the paper and post the paper into it."""
        name = truncate_title(paper.title)
        try:
            thread = await message.create_thread(name=name)
        except discord.DiscordException as exc:
            raise PublicationError("create_thread", exc) from exc
        LOGGER.info("Created thread %r (id=%s) from message id=%s", name, thread.id, message.id)
        await self._post_paper(paper, thread.send)
        return thread

    async def publish_from_thread_rename(self, paper: Paper, thread: Any) -> Any:
        """Rename an existing thread after the paper and post the paper into it."""
        name = truncate_title(paper.title)
        try:
            await thread.edit(name=name)
        except discord.DiscordException as exc:
            raise PublicationError("rename_thread", exc) from exc
        LOGGER.info("Renamed thread id=%s to %r", thread.id, name)
        await self._post_paper(paper, thread.send)
        return thread

    async def _post_paper(self, paper: Paper, send: Send) -> None:
        # Each post is awaited before the next; readers rely on this order.
        posts: list[tuple[str, dict[str, Any]]] = [
            ("summary_card", {"embed": build_summary_embed(paper)}),
            ("summary", {"content": format_block("Summary", paper.summary)}),
            ("translated", {"content": format_block("Translated", paper.translated_summary)}),
        ]
        for step, kwargs in posts:
            try:
                await send(**kwargs)
            except discord.DiscordException as exc:
                raise PublicationError(step, exc) from exc
        LOGGER.debug("Posted %s messages for %r", len(posts), paper.title)
