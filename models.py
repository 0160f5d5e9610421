"""Shared typed models for paper resolution and publication."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Author:
    """One paper author; author_url is set only when Semantic Scholar knows the author."""

    name: str
    author_url: str | None = None


@dataclass(frozen=True, slots=True)
class Paper:
    """Resolved paper record published into a Discord thread."""

    title: str
    published: datetime
    summary: str
    translated_summary: str
    semantic_scholar_url: str
    connected_papers_url: str
    authors: tuple[Author, ...] = field(default_factory=tuple)
