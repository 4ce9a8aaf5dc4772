"""Line-level change statistics for mutation provenance"""

import difflib


def diff_summary(old: str, new: str) -> dict[str, int]:
    """Return added/deleted/unchanged line counts between two versions of a file."""
    old_lines, new_lines = old.splitlines(), new.splitlines()
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines)
    added = deleted = unchanged = 0

    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            unchanged += i2 - i1
        elif tag in ("replace", "delete"):
            deleted += i2 - i1
        if tag in ("replace", "insert"):
            added += j2 - j1

    return {"added": added, "deleted": deleted, "unchanged": unchanged}


def describe_change(old: str, new: str) -> str:
    """Return a compact '+A -D' label, or 'unchanged' when identical."""
    if old == new:
        return "unchanged"
    stats = diff_summary(old, new)
    return f"+{stats['added']} -{stats['deleted']}"
