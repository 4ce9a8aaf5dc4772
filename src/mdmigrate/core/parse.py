"""Document discovery, markdown-it tokenization and ParsedDocument assembly"""

import logging
from pathlib import Path

from markdown_it import MarkdownIt

from mdmigrate.core.extract import blocks
from mdmigrate.core.extract.sections import find_title, group_sections
from mdmigrate.core.extract.steps import scan_steps
from mdmigrate.core.models import ParsedDocument, Section
from mdmigrate.core.utils.fs import MD_EXTENSIONS, iter_markdown_files
from mdmigrate.core.utils.hashing import sha256
from mdmigrate.errors import NotFoundError, ParseError


logger = logging.getLogger(__name__)

UNTITLED = 'Untitled Document'
EXPECTED_SECTIONS = ('overview', 'setup', 'configuration')


def _make_parser(preset: str) -> MarkdownIt:
    """Build a MarkdownIt instance for the given preset name."""
    return MarkdownIt(preset, options_update={"linkify": False})


def discover_files(path: Path) -> list[Path]:
    """Return sorted .md/.mdx files under path, or [path] if a single file."""
    if path.is_file():
        return [path] if path.suffix in MD_EXTENSIONS else []
    return list(iter_markdown_files(path))


def parse_text(
    raw: str,
    path: Path = Path('<memory>'),
    parser_config: str = 'gfm-like',
    max_section_level: int = 3,
    ) -> ParsedDocument:
    """Parse markdown text; missing structure yields empty lists, never an error."""
    tokens = _make_parser(parser_config).parse(raw)
    lines = raw.splitlines()
    preamble_end, spans = group_sections(tokens, len(lines), max_section_level)

    sections = [
        Section(
            title=span.title,
            level=span.level,
            raw_content='\n'.join(lines[span.start:span.end]).strip('\n'),
            steps=scan_steps(lines[span.start:span.end], offset=span.start),
            line=span.heading,
        )
        for span in spans
    ]
    preamble_steps = scan_steps(lines[:preamble_end])
    doc_links = blocks.links(tokens)

    return ParsedDocument(
        path=path,
        title=find_title(tokens) or UNTITLED,
        sections=sections,
        steps=preamble_steps + [step for s in sections for step in s.steps],
        code_blocks=blocks.code_blocks(tokens),
        links=doc_links,
        requirements=blocks.requirements(lines, spans),
        provider_references=blocks.provider_references(doc_links, raw),
        hash=sha256(raw),
    )


def parse_file(path: Path, parser_config: str = 'gfm-like', max_section_level: int = 3) -> ParsedDocument:
    """Parse a single markdown file into a ParsedDocument.

    Raises NotFoundError when the path is missing and ParseError when the
    file cannot be decoded as UTF-8.
    """
    path = Path(path)
    if not path.is_file():
        raise NotFoundError(path, f"Document not found: {path}")
    try:
        raw = path.read_text(encoding='utf-8')
    except UnicodeDecodeError as e:
        raise ParseError(f"Cannot decode {path}: {e}") from e
    doc = parse_text(raw, path, parser_config, max_section_level)
    logger.debug("parsed %s: %d sections, %d steps, %d code blocks",
                 path.name, len(doc.sections), len(doc.steps), len(doc.code_blocks))
    return doc


def validate_document(doc: ParsedDocument) -> list[str]:
    """Return structural warnings for a setup guide; an empty list means well-formed."""
    warnings = []
    if doc.title == UNTITLED:
        warnings.append("Document has no title")
    if not doc.sections:
        warnings.append("Document has no sections")
    if not doc.steps:
        warnings.append("Document has no actionable steps")
    titles = ' '.join(s.title.lower() for s in doc.sections)
    for name in EXPECTED_SECTIONS:
        if name not in titles:
            warnings.append(f"Missing {name} section")
    return warnings
