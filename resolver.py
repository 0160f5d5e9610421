"""Resolve an arXiv id into a fully populated Paper.

Three upstream calls feed one Paper:

- arXiv export API: title, abstract, publication time
- Semantic Scholar Graph API: paper-graph id and authors
- LLM translation of the abstract

The first two are independent and run concurrently; translation needs the
abstract and runs afterwards. Any failure aborts the whole resolution with a
single ResolutionError naming the stage that failed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from arxiv_feed import ArxivEntry, fetch_arxiv_entry
from models import Author, Paper
from semantic_scholar import ScholarRecord, author_url, connected_papers_url, fetch_scholar_record, paper_url
from translator import translate_text

STAGE_ARXIV = "arxiv"
STAGE_SEMANTIC_SCHOLAR = "semantic_scholar"
STAGE_TRANSLATION = "translation"

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class ResolutionError(RuntimeError):
    """Resolution failed at one upstream stage; the original error is __cause__."""

    def __init__(self, arxiv_id: str, stage: str, cause: BaseException) -> None:
        super().__init__(f"Failed to resolve arXiv:{arxiv_id} at stage={stage}: {cause}")
        self.arxiv_id = arxiv_id
        self.stage = stage
        self.__cause__ = cause


async def _run_stage(arxiv_id: str, stage: str, func: Callable[..., T], *args: Any) -> T:
    """Run a blocking upstream call off the event loop, tagging failures with the stage."""
    try:
        return await asyncio.to_thread(func, *args)
    except Exception as exc:
        raise ResolutionError(arxiv_id, stage, exc) from exc


async def resolve_paper(arxiv_id: str) -> Paper:
    """Fetch, merge and translate; returns a Paper or raises ResolutionError."""
    LOGGER.info("Resolving arXiv:%s", arxiv_id)

    entry, record = await asyncio.gather(
        _run_stage(arxiv_id, STAGE_ARXIV, fetch_arxiv_entry, arxiv_id),
        _run_stage(arxiv_id, STAGE_SEMANTIC_SCHOLAR, fetch_scholar_record, arxiv_id),
    )
    translated = await _run_stage(arxiv_id, STAGE_TRANSLATION, translate_text, entry.summary)

    paper = build_paper(entry, record, translated)
    LOGGER.info(
        "Resolved arXiv:%s title=%r authors=%s paper_id=%s",
        arxiv_id,
        paper.title,
        len(paper.authors),
        record.paper_id,
    )
    return paper


def build_paper(entry: ArxivEntry, record: ScholarRecord, translated_summary: str) -> Paper:
    """Merge the arXiv entry, Semantic Scholar record and translation into one Paper."""
    return Paper(
        title=entry.title,
        published=entry.published,
        summary=entry.summary,
        translated_summary=translated_summary,
        semantic_scholar_url=paper_url(record.paper_id),
        connected_papers_url=connected_papers_url(record.paper_id),
        authors=tuple(
            Author(name=author.name, author_url=author_url(author.author_id))
            for author in record.authors
        ),
    )
