import logging
import re
from typing import Dict

from pydantic import BaseModel, ConfigDict

from respatch.errors import GrammarError

logger = logging.getLogger(__name__)

_HEADER_RE = re.compile(r"\[([^\]]+)\]")
_KEY_RE = re.compile(r"([A-Za-z0-9]+)[ \t]*=[ \t]*")
# May span lines; anything after the closing quote up to the line end is dropped
_QUOTED_RE = re.compile(r'"([^"]*)"[^\r\n]*')
_UNQUOTED_RE = re.compile(r"[^;#\r\n]*")
# Blank lines, indentation and whole or trailing comments between entries
_FILLER_RE = re.compile(r"(?:\s+|[;#][^\r\n]*)*")


class RawSection(BaseModel):
    """Represents a named group of key-value pairs as written in the document"""

    model_config = ConfigDict(frozen=True)

    name: str
    items: Dict[str, str]


def _line_of(text: str, pos: int) -> int:
    return text.count("\n", 0, pos) + 1


def parse_document(text: str) -> Dict[str, RawSection]:
    """Parse configuration text into its sections.

    Text before the first '[' is ignored. Each section is a '[name]' header
    followed by one or more 'key = value' lines; blank lines and comments
    starting with ';' or '#' may appear between them. Values are either
    double-quoted, keeping inner whitespace and line breaks, or run up to a
    comment marker or the line end and are right-trimmed.

    Args:
        text: Whole configuration text, LF or CRLF line endings

    Returns:
        Dictionary mapping section names to their RawSection, in document order

    Raises:
        GrammarError: If the text contains no section, a section has no
            key-value pairs, or a line cannot be parsed
    """
    pos = text.find("[")
    if pos == -1:
        raise GrammarError("No section header found")

    sections: Dict[str, RawSection] = {}
    end = len(text)

    while pos < end:
        header = _HEADER_RE.match(text, pos)
        if header is None:
            raise GrammarError("Expected a section header", _line_of(text, pos))

        name = header.group(1)
        pos = _FILLER_RE.match(text, header.end()).end()

        items: Dict[str, str] = {}
        while True:
            kv = _KEY_RE.match(text, pos)
            if kv is None:
                break

            key = kv.group(1)
            quoted = _QUOTED_RE.match(text, kv.end())
            if quoted is not None:
                value = quoted.group(1)
                pos = quoted.end()
            else:
                unquoted = _UNQUOTED_RE.match(text, kv.end())
                value = unquoted.group(0).rstrip()
                pos = unquoted.end()

            if key in items:
                logger.warning(
                    "Duplicate key '%s' in section [%s] at line %d, using the last value",
                    key,
                    name,
                    _line_of(text, kv.start()),
                )
            items[key] = value
            pos = _FILLER_RE.match(text, pos).end()

        if not items:
            raise GrammarError(
                f"Section [{name}] has no key-value pairs", _line_of(text, header.start())
            )

        if pos < end and text[pos] != "[":
            raise GrammarError(
                "Expected a key-value pair or section header", _line_of(text, pos)
            )

        if name in sections:
            logger.warning("Duplicate section [%s], using the last one", name)
        sections[name] = RawSection(name=name, items=items)
        logger.debug("Parsed section [%s] with %d key(s)", name, len(items))

    return sections
