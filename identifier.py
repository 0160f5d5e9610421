"""arXiv identifier extraction from free text (no network, no validation)."""

from __future__ import annotations

import re

# New-style arXiv ids: YYMM.NNNN (pre-2015) or YYMM.NNNNN.
ARXIV_ID_PATTERN: re.Pattern[str] = re.compile(r"\d{4}\.\d{4,5}", re.ASCII)


def find_arxiv_id(text: str | None) -> str | None:
    """Return the first candidate arXiv id in text, or None.

    The match is lexical only: "1234.56789" in a version string is returned
    just the same, and callers find out at resolution time.
    """
    if not text:
        return None
    match = ARXIV_ID_PATTERN.search(text)
    return match.group(0) if match else None
