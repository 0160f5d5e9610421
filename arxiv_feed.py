"""arXiv export API client: one Atom entry per identifier."""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import UTC, datetime

import requests

ARXIV_API_URL = "http://export.arxiv.org/api/query"
REQUEST_TIMEOUT_SECONDS = 30
PUBLISHED_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
# strptime accepts unpadded fields; the feed format is fixed-width.
_PUBLISHED_RE = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z", re.ASCII)

_ATOM_NS = {"atom": "http://www.w3.org/2005/Atom"}

LOGGER = logging.getLogger(__name__)


class ArxivFeedError(RuntimeError):
    """The arXiv feed was unreachable or did not describe exactly one paper."""


@dataclass(frozen=True, slots=True)
class ArxivEntry:
    title: str
    summary: str
    published: datetime


def fetch_arxiv_entry(arxiv_id: str) -> ArxivEntry:
    """Fetch title, abstract and publication time for one arXiv id."""
    LOGGER.info("arXiv fetch: id=%s", arxiv_id)
    response = requests.get(
        ARXIV_API_URL,
        params={"id_list": arxiv_id},
        timeout=REQUEST_TIMEOUT_SECONDS,
    )
    response.raise_for_status()
    return _parse_feed(response.content, arxiv_id)


def _parse_feed(content: bytes | str, arxiv_id: str) -> ArxivEntry:
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise ArxivFeedError(f"Unparseable arXiv feed for id={arxiv_id}: {exc}") from exc

    entry = root.find("atom:entry", _ATOM_NS)
    if entry is None:
        raise ArxivFeedError(f"arXiv feed has no entry for id={arxiv_id}")

    title = _collapse_ws(_entry_text(entry, "title"))
    summary = _entry_text(entry, "summary").strip()
    published_raw = _entry_text(entry, "published").strip()

    # Unknown or malformed ids come back as a single entry titled "Error".
    if not title or title == "Error":
        raise ArxivFeedError(f"arXiv returned no paper for id={arxiv_id}: {summary or 'empty entry'}")

    return ArxivEntry(
        title=title,
        summary=summary,
        published=parse_published(published_raw),
    )


def parse_published(raw: str) -> datetime:
    """Parse arXiv's YYYY-MM-DDTHH:MM:SSZ timestamp as an aware UTC datetime."""
    if not _PUBLISHED_RE.fullmatch(raw):
        raise ArxivFeedError(f"Unexpected arXiv published timestamp: {raw!r}")
    try:
        parsed = datetime.strptime(raw, PUBLISHED_FORMAT)
    except ValueError as exc:
        raise ArxivFeedError(f"Unexpected arXiv published timestamp: {raw!r}") from exc
    return parsed.replace(tzinfo=UTC)


def _entry_text(entry: ET.Element, tag: str) -> str:
    element = entry.find(f"atom:{tag}", _ATOM_NS)
    if element is None or element.text is None:
        return ""
    return element.text


def _collapse_ws(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()
