"""Heading-based section spans over the source lines of a document"""

from dataclasses import dataclass

from mdmigrate.core.utils.tokens import heading_level, inline_after


@dataclass
class SectionSpan:
    title: str
    level: int
    heading: int    # heading line
    start: int      # first body line (after the heading)
    end: int        # exclusive


def find_title(tokens: list) -> str | None:
    """Return the text of the first h1 heading, or None."""
    for i, tok in enumerate(tokens):
        if heading_level(tok) == 1:
            return inline_after(tokens, i) or None
    return None


def group_sections(tokens: list, line_count: int, max_level: int) -> tuple[int, list[SectionSpan]]:
    """Split a document into sections at headings of level 2..max_level.

    Returns (preamble_end, spans): lines before preamble_end belong to no section.
    Deeper headings stay inside the enclosing section's body.
    """
    spans: list[SectionSpan] = []
    preamble_end = line_count

    for i, tok in enumerate(tokens):
        level = heading_level(tok)
        if level is None or level < 2 or level > max_level or not tok.map:
            continue
        if spans:
            spans[-1].end = tok.map[0]
        else:
            preamble_end = tok.map[0]
        spans.append(SectionSpan(
            title=inline_after(tokens, i),
            level=level,
            heading=tok.map[0],
            start=tok.map[1],
            end=line_count,
        ))

    return preamble_end, spans
