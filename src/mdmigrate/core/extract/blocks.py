"""Token- and line-level extraction of code blocks, links, requirements and provider references"""

import fnmatch
import re
from pathlib import PurePosixPath

from mdmigrate.core.extract.sections import SectionSpan
from mdmigrate.core.models import CodeBlock, Link, ProviderReference


PROVIDER_TEXT_RE = re.compile(r'\b(\w+Auth\.md)\b')
PROVIDER_LINK_GLOB = '*Auth.md'
REQUIREMENT_PREFIX_RE = re.compile(r'^\s*(?:[-*]\s+)?(?:Required?|Prerequisites?|Dependenc(?:y|ies))\s*:\s*(.+)', re.IGNORECASE)
REQUIREMENT_BULLET_RE = re.compile(r'^\s*[-*]\s+\*\*([^*]+)\*\*\s*:?\s*(.*)')
TABLE_ROW_RE = re.compile(r'^\s*\|(.+)\|\s*$')
TABLE_SEPARATOR_RE = re.compile(r'^[\s|:\-]+$')
REQUIREMENT_TITLE_RE = re.compile(r'requirement|prerequisite|dependenc', re.IGNORECASE)


def code_blocks(tokens: list) -> list[CodeBlock]:
    """Return fenced and indented code blocks in document order."""
    blocks: list[CodeBlock] = []
    for tok in tokens:
        if tok.type not in ('fence', 'code_block'):
            continue
        language = (tok.info or '').strip().split(' ')[0].lower() if tok.type == 'fence' else ''
        blocks.append(CodeBlock(
            language=language or 'text',
            content=tok.content,
            line=tok.map[0] if tok.map else None,
        ))
    return blocks


def links(tokens: list) -> list[Link]:
    """Return [text](target) pairs from all inline tokens."""
    found: list[Link] = []
    for tok in tokens:
        if tok.type != 'inline' or not tok.children:
            continue
        href, text = None, []
        for child in tok.children:
            if child.type == 'link_open':
                href, text = child.attrs.get('href', ''), []
            elif child.type == 'link_close' and href is not None:
                found.append(Link(text=''.join(text).strip(), target=href))
                href = None
            elif href is not None and child.type in ('text', 'code_inline'):
                text.append(child.content)
    return found


def provider_references(doc_links: list[Link], text: str) -> list[ProviderReference]:
    """Collect provider auth documents named by link target or in body text.

    The generic Auth.md itself is not a provider reference.
    """
    files: list[str] = []
    for link in doc_links:
        name = PurePosixPath(link.target.split('#')[0]).name
        if fnmatch.fnmatchcase(name, PROVIDER_LINK_GLOB):
            files.append(name)
    files.extend(PROVIDER_TEXT_RE.findall(text))

    refs: list[ProviderReference] = []
    seen: set[str] = set()
    for f in files:
        provider = f[:-len('Auth.md')]
        if not provider or f in seen:
            continue
        seen.add(f)
        refs.append(ProviderReference(name=provider, file=f))
    return refs


def _table_rows(lines: list[str]) -> list[str]:
    rows = []
    for line in lines:
        m = TABLE_ROW_RE.match(line)
        if not m or TABLE_SEPARATOR_RE.match(m.group(1)):
            continue
        cells = [c.strip() for c in m.group(1).split('|')]
        rows.append(' - '.join(c for c in cells if c))
    return rows[1:]  # first row is the header


def requirements(lines: list[str], spans: list[SectionSpan]) -> list[str]:
    """Return requirement lines.

    Prefixed lines count anywhere; bold-name bullets and table rows count only
    inside sections titled like requirements/prerequisites/dependencies.
    """
    found = [m.group(1).strip() for line in lines if (m := REQUIREMENT_PREFIX_RE.match(line))]
    for span in spans:
        if not REQUIREMENT_TITLE_RE.search(span.title):
            continue
        body = lines[span.start:span.end]
        for line in body:
            m = REQUIREMENT_BULLET_RE.match(line)
            if m:
                name, desc = m.group(1).strip(), m.group(2).strip()
                found.append(f"{name}: {desc}" if desc else name)
        found.extend(_table_rows(body))
    return found
