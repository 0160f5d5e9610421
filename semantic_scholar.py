"""Semantic Scholar Graph API client for author lists and paper-graph links."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

SEMANTIC_SCHOLAR_PAPER_API_URL = "https://api.semanticscholar.org/graph/v1/paper/URL:{url}"
ARXIV_ABS_BASE_URL = "https://arxiv.org/abs/"
SEMANTIC_SCHOLAR_PAPER_URL = "https://www.semanticscholar.org/paper/{paper_id}"
SEMANTIC_SCHOLAR_AUTHOR_URL = "https://www.semanticscholar.org/author/{author_id}"
CONNECTED_PAPERS_URL = "https://www.connectedpapers.com/main/{paper_id}"
REQUEST_TIMEOUT_SECONDS = 30

LOGGER = logging.getLogger(__name__)


class SemanticScholarError(RuntimeError):
    """Semantic Scholar did not return a usable paper record."""


@dataclass(frozen=True, slots=True)
class ScholarAuthor:
    name: str
    author_id: str | None = None


@dataclass(frozen=True, slots=True)
class ScholarRecord:
    paper_id: str
    authors: list[ScholarAuthor] = field(default_factory=list)


def fetch_scholar_record(arxiv_id: str) -> ScholarRecord:
    """Look a paper up by its arXiv abstract URL and return its graph id and authors."""
    abs_url = f"{ARXIV_ABS_BASE_URL}{arxiv_id}"
    url = SEMANTIC_SCHOLAR_PAPER_API_URL.format(url=quote(abs_url, safe=""))

    headers: dict[str, str] = {}
    api_key = os.getenv("SEMANTIC_SCHOLAR_API_KEY")
    if api_key:
        headers["x-api-key"] = api_key

    LOGGER.info("Semantic Scholar fetch: id=%s", arxiv_id)
    response = requests.get(
        url,
        params={"fields": "authors"},
        headers=headers,
        timeout=REQUEST_TIMEOUT_SECONDS,
    )
    response.raise_for_status()

    try:
        body = response.json()
    except ValueError as exc:
        raise SemanticScholarError(f"Semantic Scholar returned non-JSON for id={arxiv_id}") from exc
    return _parse_record(body)


def _parse_record(payload: Any) -> ScholarRecord:
    if not isinstance(payload, dict):
        raise SemanticScholarError("Unexpected Semantic Scholar payload shape: expected an object")

    paper_id = payload.get("paperId")
    if not isinstance(paper_id, str) or not paper_id:
        raise SemanticScholarError(f"Semantic Scholar payload missing paperId: {payload}")

    raw_authors = payload.get("authors")
    if not isinstance(raw_authors, list):
        raise SemanticScholarError(f"Semantic Scholar payload missing authors list for paperId={paper_id}")

    authors: list[ScholarAuthor] = []
    for item in raw_authors:
        if not isinstance(item, dict) or not isinstance(item.get("name"), str):
            raise SemanticScholarError(f"Malformed author entry for paperId={paper_id}: {item!r}")
        author_id = item.get("authorId")
        authors.append(
            ScholarAuthor(
                name=item["name"],
                author_id=author_id if isinstance(author_id, str) and author_id else None,
            )
        )

    return ScholarRecord(paper_id=paper_id, authors=authors)


def paper_url(paper_id: str) -> str:
    return SEMANTIC_SCHOLAR_PAPER_URL.format(paper_id=paper_id)


def connected_papers_url(paper_id: str) -> str:
    return CONNECTED_PAPERS_URL.format(paper_id=paper_id)


def author_url(author_id: str | None) -> str | None:
    """Profile link for an author, or None when Semantic Scholar has no id for them."""
    if not author_id:
        return None
    return SEMANTIC_SCHOLAR_AUTHOR_URL.format(author_id=author_id)
