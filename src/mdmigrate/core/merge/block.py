"""Restricted indentation grammar for configuration blocks embedded in guides

Supported: `key:` opening a nested mapping or list, `key: value` leaves,
`- value` and `- key: value` list items, full-line and trailing `#` comments.
Anything else is a ParseError; this is not a general YAML parser.
"""

import re
import textwrap
from typing import Any

from mdmigrate.errors import ParseError


KEY_RE = re.compile(r'''^("[^"]+"|'[^']+'|[^\s:#'"][^:#]*?)\s*:(?:\s+(.*))?$''')
INT_RE = re.compile(r'^-?\d+$')


def _strip_comment(value: str) -> str:
    if value[:1] in ('"', "'"):
        return value
    return value.split(' #', 1)[0].rstrip()


def _unquote(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ('"', "'"):
        return text[1:-1]
    return text


def scalar(value: str) -> Any:
    """Coerce a leaf: quoted strings stay strings; true/false/null/ints are typed."""
    value = _strip_comment(value.strip())
    if value[:1] in ('"', "'"):
        return _unquote(value)
    lowered = value.lower()
    if lowered in ('true', 'false'):
        return lowered == 'true'
    if lowered in ('null', '~', ''):
        return None
    if INT_RE.match(value):
        return int(value)
    if value == '[]':
        return []
    if value == '{}':
        return {}
    return value


def _lines(text: str) -> list[tuple[int, str, int]]:
    out = []
    for n, raw in enumerate(textwrap.dedent(text).splitlines(), start=1):
        if not raw.strip() or raw.lstrip().startswith('#'):
            continue
        if '\t' in raw[:len(raw) - len(raw.lstrip())]:
            raise ParseError(f"line {n}: tabs are not allowed in indentation")
        indent = len(raw) - len(raw.lstrip(' '))
        out.append((indent, raw.strip(), n))
    return out


def _is_item(text: str) -> bool:
    return text == '-' or text.startswith('- ')


def extract_structured_block(text: str) -> dict[str, Any]:
    """Parse the text of one fenced configuration block into nested dicts/lists."""
    entries = _lines(text)
    root: dict[str, Any] = {}
    stack: list[tuple[int, Any]] = [(0, root)]

    def assign(container: dict, key_match, idx: int, indent: int) -> None:
        key = _unquote(key_match.group(1).strip())
        value = key_match.group(2)
        if value is not None and _strip_comment(value):
            container[key] = scalar(value)
            return
        nxt = entries[idx + 1] if idx + 1 < len(entries) else None
        if nxt and (nxt[0] > indent or (nxt[0] == indent and _is_item(nxt[1]))):
            child = [] if _is_item(nxt[1]) else {}
            container[key] = child
            stack.append((nxt[0], child))
        else:
            container[key] = None

    for idx, (indent, line, n) in enumerate(entries):
        item = _is_item(line)
        while len(stack) > 1 and (
            indent < stack[-1][0]
            or (isinstance(stack[-1][1], list) and indent == stack[-1][0] and not item)
        ):
            stack.pop()
        level, container = stack[-1]
        if indent != level:
            raise ParseError(f"line {n}: unexpected indentation")

        if item:
            if not isinstance(container, list):
                raise ParseError(f"line {n}: list item outside a list")
            body = line[1:].strip()
            if not body:
                raise ParseError(f"line {n}: empty list item")
            m = KEY_RE.match(body)
            if m:
                mapping: dict[str, Any] = {}
                container.append(mapping)
                stack.append((indent + 2, mapping))
                assign(mapping, m, idx, indent + 2)
            else:
                container.append(scalar(body))
            continue

        if not isinstance(container, dict):
            raise ParseError(f"line {n}: expected a list item")
        m = KEY_RE.match(line)
        if not m:
            raise ParseError(f"line {n}: expected 'key: value' or 'key:'")
        assign(container, m, idx, indent)

    return root
