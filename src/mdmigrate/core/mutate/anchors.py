"""Anchor catalog and fallback-chain insertion for text mutation primitives

Each locator inspects the target's lines and returns an Anchor (line index to
insert before, plus the indentation to apply) or None. insert_with_fallback walks
a chain of locators in order of decreasing specificity and logs every attempt.
"""

import logging
import re
import textwrap
from dataclasses import dataclass
from typing import Callable, Optional

from mdmigrate.errors import MutationWarning


logger = logging.getLogger(__name__)

IMPORT_START_RE = re.compile(r'^\s*import\b')
IMPORT_END_RE = re.compile(r'''['"][^'"]+['"]\s*;?\s*$''')
OPENERS, CLOSERS = '([{', ')]}'


@dataclass(frozen=True)
class Anchor:
    index: int              # insert before this line
    indent: str = ''


@dataclass(frozen=True)
class Insertion:
    content: str
    strategy: str           # locator name, or "present" for a no-op
    applied: bool


Locator = Callable[[list[str]], Optional[Anchor]]


def _indent_of(line: str) -> str:
    return line[:len(line) - len(line.lstrip())]


def _stripped_lines(text: str) -> list[str]:
    return [line.strip() for line in text.strip().splitlines() if line.strip()]


def contains_fragment(content: str, fragment: str) -> bool:
    """True if the trimmed fragment is already present.

    Falls back to a line-wise comparison ignoring indentation so a re-indented
    multi-line fragment is still recognised.
    """
    trimmed = fragment.strip()
    if not trimmed or trimmed in content:
        return True
    frag = '\n'.join(_stripped_lines(fragment))
    body = '\n'.join(_stripped_lines(content))
    return f"\n{frag}\n" in f"\n{body}\n"


# --- locators ---

def import_statement_ranges(lines: list[str]) -> list[tuple[int, int]]:
    """Return (start, end) inclusive line ranges of import statements, multi-line aware."""
    ranges = []
    start = None
    for i, line in enumerate(lines):
        if start is None:
            if not IMPORT_START_RE.match(line):
                continue
            start = i
        if IMPORT_END_RE.search(line):
            ranges.append((start, i))
            start = None
    return ranges


def import_block_end(lines: list[str]) -> Optional[Anchor]:
    ranges = import_statement_ranges(lines)
    if not ranges:
        return None
    return Anchor(ranges[-1][1] + 1)


def top_of_file(lines: list[str]) -> Optional[Anchor]:
    return Anchor(0)


def end_of_file(lines: list[str]) -> Optional[Anchor]:
    end = len(lines)
    while end > 0 and not lines[end - 1].strip():
        end -= 1
    return Anchor(end)


def before_last_closing_brace(lines: list[str]) -> Optional[Anchor]:
    for i in range(len(lines) - 1, -1, -1):
        if lines[i].lstrip().startswith('}'):
            return Anchor(i, _indent_of(lines[i]) + '  ')
    return None


def before_line(pattern: str) -> Locator:
    """Insert before the first line containing pattern, at that line's indentation."""
    def locate(lines: list[str]) -> Optional[Anchor]:
        for i, line in enumerate(lines):
            if pattern in line:
                return Anchor(i, _indent_of(line))
        return None
    locate.__name__ = f"before:{pattern}"
    return locate


def after_last_line(pattern: str) -> Locator:
    """Insert after the last line containing pattern, and after its closing tag if multi-line."""
    def locate(lines: list[str]) -> Optional[Anchor]:
        for i in range(len(lines) - 1, -1, -1):
            if pattern in lines[i]:
                end = i
                if not lines[i].rstrip().endswith(('/>', '>', ';', ',')):
                    end = next((j for j in range(i + 1, len(lines)) if lines[j].rstrip().endswith(('/>', '>'))), i)
                return Anchor(end + 1, _indent_of(lines[i]))
        return None
    locate.__name__ = f"after-last:{pattern}"
    return locate


def definition_range(lines: list[str], name: str) -> Optional[tuple[int, int]]:
    """Return the inclusive line range of `const <name> =`, matched by bracket depth."""
    start_re = re.compile(rf'^\s*(?:export\s+)?const\s+{re.escape(name)}\b')
    for i, line in enumerate(lines):
        if not start_re.match(line):
            continue
        depth = 0
        seen_open = False
        for j in range(i, len(lines)):
            for ch in lines[j]:
                if ch in OPENERS:
                    depth += 1
                    seen_open = True
                elif ch in CLOSERS:
                    depth -= 1
            if depth <= 0 and (seen_open or lines[j].rstrip().endswith(';')):
                return i, j
        return i, len(lines) - 1
    return None


def before_definition(name: str) -> Locator:
    def locate(lines: list[str]) -> Optional[Anchor]:
        found = definition_range(lines, name)
        return Anchor(found[0]) if found else None
    locate.__name__ = f"before-const:{name}"
    return locate


def inside_element(tag: str, opener: str = None, within: str = None) -> Locator:
    """Insert just before the closing tag of the first <tag> element.

    opener narrows the match to an opening line containing that text; within
    restricts the search to the body of a named const definition.
    """
    open_re = re.compile(rf'<{re.escape(tag)}(?=[\s>])')
    close_token = f'</{tag}>'

    def locate(lines: list[str]) -> Optional[Anchor]:
        lo, hi = 0, len(lines) - 1
        if within:
            found = definition_range(lines, within)
            if not found:
                return None
            lo, hi = found
        for i in range(lo, hi + 1):
            line = lines[i]
            if not open_re.search(line) or (opener and opener not in line):
                continue
            if line.rstrip().endswith('/>'):
                continue
            depth = 0
            for j in range(i, hi + 1):
                opens = len(open_re.findall(lines[j]))
                if opens and lines[j].rstrip().endswith('/>'):
                    opens -= 1
                depth += opens - lines[j].count(close_token)
                if depth <= 0 and j > i:
                    return Anchor(j, _indent_of(lines[j]) + '  ')
            return None
        return None
    locate.__name__ = f"inside:<{tag}>" + (f"@{within}" if within else '')
    return locate


# --- splicing ---

def _render(fragment: str, indent: str) -> list[str]:
    body = textwrap.dedent(fragment.strip('\n'))
    return [indent + line if line.strip() else '' for line in body.split('\n')]


def _splice(lines: list[str], anchor: Anchor, fragment: str, pad: bool) -> list[str]:
    new = _render(fragment, anchor.indent)
    before, after = lines[:anchor.index], lines[anchor.index:]
    if pad:
        if before and before[-1].strip():
            new = [''] + new
        if after and after[0].strip():
            new = new + ['']
    return before + new + after


def insert_with_fallback(
    content: str,
    fragment: str,
    chain: list[Locator],
    label: str = 'target',
    pad: bool = False,
    ) -> Insertion:
    """Insert fragment at the first anchor the chain locates; no-op if already present.

    Raises MutationWarning when no locator in the chain finds an anchor.
    """
    if contains_fragment(content, fragment):
        logger.debug("%s already contains fragment; skipping", label)
        return Insertion(content, "present", False)

    trailing_newline = content.endswith('\n')
    lines = content.split('\n')
    if trailing_newline:
        lines = lines[:-1]

    for n, locate in enumerate(chain):
        anchor = locate(lines)
        if anchor is None:
            logger.debug("anchor %s not found in %s", locate.__name__, label)
            continue
        if n:
            logger.warning("fell back to anchor %s in %s", locate.__name__, label)
        else:
            logger.info("inserting into %s at anchor %s", label, locate.__name__)
        out = '\n'.join(_splice(lines, anchor, fragment, pad))
        return Insertion(out + '\n' if trailing_newline or not content else out, locate.__name__, True)

    raise MutationWarning(f"No anchor found in {label} for fragment: {fragment.strip()[:60]}")
