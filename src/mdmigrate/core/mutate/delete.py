"""Pattern deletion: remove snippet variants, imports and registrations, then tidy blank lines"""

import logging
import re


logger = logging.getLogger(__name__)

BLANK_RUN_RE = re.compile(r'\n{3,}')
ALLOW_ALL_POLICY = '@backstage/plugin-permission-backend-module-allow-all-policy'


def collapse_blank_lines(content: str) -> str:
    """Collapse runs of blank lines to at most one."""
    return BLANK_RUN_RE.sub('\n\n', content)


def snippet_variants(snippet: str) -> list[re.Pattern]:
    """Build regexes matching snippet with any whitespace and either quote style.

    The strictest variant comes first; a trailing semicolon and newline are optional.
    """
    text = snippet.strip().rstrip(';')
    if not text:
        return []
    exact = re.escape(text)
    tolerant = ''
    for ch in text:
        if ch in '\'"`':
            tolerant += '[\'"`]'
        elif ch.isspace():
            if not tolerant.endswith(r'\s*'):
                tolerant += r'\s*'
        elif ch in '([{,)]}':
            tolerant += r'\s*' + re.escape(ch) + r'\s*'
        else:
            tolerant += re.escape(ch)
    tolerant = re.sub(r'(?:\\s\*){2,}', r'\\s*', tolerant)
    return [
        re.compile(exact + r';?[ \t]*\n?'),
        re.compile(tolerant + r';?[ \t]*\n?'),
    ]


def registration_variants(module: str) -> list[re.Pattern]:
    """Patterns for backend.add(import('<module>')) and its bare-string form."""
    mod = re.escape(module)
    return [
        re.compile(rf'backend\.add\(\s*import\(\s*["\']{mod}["\']\s*\)\s*\);?[ \t]*\n?'),
        re.compile(rf'backend\.add\(\s*["\']{mod}["\']\s*\);?[ \t]*\n?'),
        re.compile(rf'import\(\s*["\']{mod}["\']\s*\),?[ \t]*\n?'),
    ]


def import_variants(module: str) -> list[re.Pattern]:
    """Patterns for single- and multi-line import statements from module."""
    mod = re.escape(module)
    return [re.compile(rf'^[ \t]*import\b[^;]*?\bfrom\s+["\']{mod}["\'];?[ \t]*\n?', re.MULTILINE),
            re.compile(rf'^[ \t]*import\s+["\']{mod}["\'];?[ \t]*\n?', re.MULTILINE)]


def delete_patterns(content: str, patterns: list[re.Pattern]) -> tuple[str, int]:
    """Remove every match of every pattern; returns (content, matches removed).

    Blank-line runs are collapsed only when something was removed, so a
    no-match call returns content unchanged.
    """
    removed = 0
    for pattern in patterns:
        content, n = pattern.subn('', content)
        removed += n
    if removed:
        content = collapse_blank_lines(content)
        logger.debug("removed %d match(es)", removed)
    return content, removed


def remove_lines_pattern(line: str) -> re.Pattern:
    """Pattern for lines exactly equal (after stripping) to line, e.g. '/packages' in .gitignore."""
    return re.compile(rf'^[ \t]*{re.escape(line.strip())}[ \t]*$\n?', re.MULTILINE)


def remove_lines(content: str, line: str) -> tuple[str, int]:
    return delete_patterns(content, [remove_lines_pattern(line)])
