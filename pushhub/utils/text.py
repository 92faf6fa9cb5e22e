"""Reduce operator-authored rich text to the plain text pushed to devices."""
from __future__ import annotations

import re

from bs4 import BeautifulSoup

_BLOCK_TAGS = ["p", "div", "li", "tr", "h1", "h2", "h3", "h4", "h5", "h6", "blockquote"]
_WHITESPACE = re.compile(r"[ \t\f\v\r]+")


def html_to_plain_text(value: str | None) -> str:
    """Strip markup, scripts and styles, keeping line breaks between blocks."""

    if not value:
        return ""
    if "<" not in value and "&" not in value:
        return value.strip()

    soup = BeautifulSoup(value, "html.parser")
    for tag in soup(["script", "style", "iframe", "object"]):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(_BLOCK_TAGS):
        block.append("\n")

    lines = [_WHITESPACE.sub(" ", line).strip() for line in soup.get_text().splitlines()]
    return "\n".join(line for line in lines if line)
