"""Comment stripping for Starbound's JSON-with-comments config files."""

import json
from pathlib import Path
from typing import Any

from starbound_kb.ingestion.discovery import read_text
from starbound_kb.logging import get_logger

logger = get_logger(__name__)

QUOTE_CHARS = ('"', "'")


def strip_json_comments(text: str) -> str:
    """
    Remove ``//`` and ``/* */`` comments outside of string literals.

    Single pass over the text tracking whether we are inside a string and
    which quote opened it. Backslash escapes inside strings are copied as a
    pair so an escaped quote never closes the string. A line comment ends
    before its newline (the newline is kept); an unterminated block comment
    runs to the end of input.

    Args:
        text: JSON text that may contain C-style comments

    Returns:
        The text with comments removed and string contents untouched
    """
    out: list[str] = []
    in_string = False
    quote = ""
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]

        if in_string:
            if ch == "\\" and i + 1 < n:
                out.append(text[i : i + 2])
                i += 2
                continue
            if ch == quote:
                in_string = False
            out.append(ch)
            i += 1
            continue

        if ch in QUOTE_CHARS:
            in_string = True
            quote = ch
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            newline = text.find("\n", i)
            i = n if newline == -1 else newline
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = n if end == -1 else end + 2
        else:
            out.append(ch)
            i += 1

    return "".join(out)


def parse_json_text(text: str) -> Any | None:
    """Strip comments and parse; None when the result is not valid JSON."""
    try:
        return json.loads(strip_json_comments(text.lstrip("\ufeff")))
    except ValueError:
        return None


def read_json_file(path: Path) -> Any | None:
    """
    Read and parse a JSON-with-comments file.

    Args:
        path: File to read

    Returns:
        Parsed data, or None if the file is missing or malformed
    """
    text = read_text(path)
    if text is None:
        return None

    data = parse_json_text(text)
    if data is None:
        logger.debug("Malformed JSON in %s", path, extra={"source_file": str(path)})
    return data
