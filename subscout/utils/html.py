"""HTML-to-text conversion for email bodies.

Plenty of signup confirmations (app stores, streaming services) arrive as
HTML-only mail or with a text part that is just a "view in browser" link.
This module turns the HTML part into plain text for the extractors.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from subscout.observability.logging import get_logger

logger = get_logger(__name__)


def html_to_text(html: str) -> str:
    """Convert HTML email body to plain text.

    Args:
        html: Raw HTML string from email body.

    Returns:
        Plain text extracted from the HTML.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(["script", "style", "head"]):
        tag.decompose()

    # Keep link targets visible so cancel/manage URLs survive conversion
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"]
        if href.startswith("http") and href not in anchor.get_text():
            anchor.append(f" ({href})")

    text = soup.get_text(separator="\n")

    # Collapse whitespace: multiple blank lines -> single, strip each line
    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def is_body_boilerplate(body: str, min_chars: int) -> bool:
    """Check if body text is empty or just boilerplate (URLs, separators)."""
    if not body:
        return True
    stripped = re.sub(r"https?://\S+", "", body)
    stripped = re.sub(r"[=\-_*]{3,}", "", stripped)
    stripped = re.sub(r"\s+", " ", stripped).strip()
    return len(stripped) < min_chars


def resolve_body(body: str, body_html: str | None, min_chars: int) -> str:
    """Return the plain body, or the converted HTML body when the plain one is useless."""
    if body_html and is_body_boilerplate(body, min_chars):
        converted = html_to_text(body_html)
        if converted:
            logger.debug("Using HTML body (%d chars) instead of plain text", len(converted))
            return converted
    return body or ""
