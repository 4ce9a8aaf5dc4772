"""Unit tests for core/merge/placeholders.py"""

from mdmigrate.core.merge.placeholders import (
    is_placeholder,
    normalize_placeholders,
    normalize_tree,
    placeholder_name,
    placeholders_in,
    substitute,
)


def test_placeholder_name():
    """Free text becomes an upper-case identifier."""
    assert placeholder_name("GitHub client ID") == "GITHUB_CLIENT_ID"
    assert placeholder_name(" org-name ") == "ORG_NAME"


def test_normalize_placeholders_forms():
    """<Name> and YOUR_NAME tokens are rewritten as ${NAME}."""
    assert normalize_placeholders("<Client ID>") == "${CLIENT_ID}"
    assert normalize_placeholders("YOUR_CLIENT_SECRET") == "${CLIENT_SECRET}"
    assert normalize_placeholders("https://<org>.example.com") == "https://${ORG}.example.com"
    assert normalize_placeholders("${ALREADY}") == "${ALREADY}"


def test_is_placeholder():
    """Any placeholder form marks a leaf as a placeholder; literals and non-strings do not."""
    assert is_placeholder("${X}")
    assert is_placeholder("<Token>")
    assert is_placeholder("YOUR_TOKEN")
    assert not is_placeholder("abc123")
    assert not is_placeholder(7007)


def test_normalize_tree_only_touches_strings():
    """Nested string leaves are normalized; other leaves are kept."""
    data = {"a": ["<X>", 1, None], "b": {"c": "YOUR_Y"}}
    assert normalize_tree(data) == {"a": ["${X}", 1, None], "b": {"c": "${Y}"}}


def test_placeholders_in_and_substitute():
    """Known names are substituted; unknown ones are left in place."""
    data = {"auth": {"clientId": "${ID}", "secret": "${SECRET}", "url": "https://${HOST}/cb"}}
    assert placeholders_in(data) == {"ID", "SECRET", "HOST"}
    assert substitute(data, {"ID": "abc", "HOST": "portal.io"}) == {
        "auth": {"clientId": "abc", "secret": "${SECRET}", "url": "https://portal.io/cb"},
    }
