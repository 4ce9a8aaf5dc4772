"""Placeholder tokens in configuration leaves: normalization, discovery and substitution"""

import re
from typing import Any


PLACEHOLDER_RE = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')
ANGLE_RE = re.compile(r'<([A-Za-z][A-Za-z0-9 _.-]*)>')
YOUR_RE = re.compile(r'\bYOUR_([A-Z0-9_]+)\b')


def placeholder_name(text: str) -> str:
    """'GitHub client ID' -> 'GITHUB_CLIENT_ID'"""
    return re.sub(r'[^A-Za-z0-9]+', '_', text).strip('_').upper()


def normalize_placeholders(value: str) -> str:
    """Rewrite <Some Name> and YOUR_NAME tokens as ${NAME}."""
    value = ANGLE_RE.sub(lambda m: '${' + placeholder_name(m.group(1)) + '}', value)
    return YOUR_RE.sub(lambda m: '${' + m.group(1) + '}', value)


def is_placeholder(value: Any) -> bool:
    """True if a leaf is a placeholder rather than a captured literal value."""
    return isinstance(value, str) and bool(
        PLACEHOLDER_RE.search(value) or ANGLE_RE.search(value) or YOUR_RE.search(value)
    )


def map_leaves(data: Any, fn) -> Any:
    """Return a copy of data with fn applied to every string leaf."""
    if isinstance(data, dict):
        return {k: map_leaves(v, fn) for k, v in data.items()}
    if isinstance(data, list):
        return [map_leaves(v, fn) for v in data]
    if isinstance(data, str):
        return fn(data)
    return data


def normalize_tree(data: Any) -> Any:
    return map_leaves(data, normalize_placeholders)


def placeholders_in(data: Any) -> set[str]:
    """Names of all ${NAME} tokens in string leaves."""
    found: set[str] = set()
    map_leaves(data, lambda s: found.update(PLACEHOLDER_RE.findall(s)) or s)
    return found


def substitute(data: Any, values: dict[str, str]) -> Any:
    """Replace ${NAME} tokens that have a value; unknown names are left in place."""
    def render(s: str) -> str:
        return PLACEHOLDER_RE.sub(lambda m: str(values.get(m.group(1), m.group(0))), s)
    return map_leaves(data, render)
