"""Line-pattern step extraction with code-block snippet attachment"""

import re

from mdmigrate.core.models import CodeBlock, Step, StepKind


NUMBERED_RE = re.compile(r'^\s*(\d+)\.\s*(.+)')
BULLET_RE = re.compile(r'^\s*[-*]\s+(.+)')
FENCE_RE = re.compile(r'^( {0,12})(`{3,}|~{3,})\s*([^\s`]*)')
ACTION_VERB_RE = re.compile(
    r'\b(?:cop(?:y|ies|ied|ying)|creat\w*|updat\w*|modif\w*|add(?:s|ed|ing)?|'
    r'remov\w*|delet\w*|configur\w*|install\w*|set\s?up)\b',
    re.IGNORECASE,
)


def has_action_verb(text: str) -> bool:
    return bool(ACTION_VERB_RE.search(text))


def _is_fence_close(line: str, marker: str) -> bool:
    stripped = line.strip()
    return len(stripped) >= len(marker) and set(stripped) == {marker[0]}


def _dedent(lines: list[str], indent: int) -> str:
    out = []
    for line in lines:
        strip = min(indent, len(line) - len(line.lstrip(' ')))
        out.append(line[strip:])
    return '\n'.join(out) + '\n' if out else ''


def scan_steps(lines: list[str], offset: int = 0) -> list[Step]:
    """Extract numbered and action-bullet steps from a block of source lines.

    Lines inside fenced code are never steps. A fence that follows a step line
    (before the next step) is attached to that step as its snippet.
    """
    steps: list[Step] = []
    fence = None  # (marker, indent, language, start line, body lines)

    for i, line in enumerate(lines):
        if fence is not None:
            marker, indent, language, start, body = fence
            if _is_fence_close(line, marker):
                block = CodeBlock(language=language, content=_dedent(body, indent), line=offset + start)
                if steps and steps[-1].snippet is None:
                    steps[-1] = steps[-1].model_copy(update={"snippet": block})
                fence = None
            else:
                body.append(line)
            continue

        m = FENCE_RE.match(line)
        if m:
            fence = (m.group(2), len(m.group(1)), m.group(3).lower() or 'text', i, [])
            continue

        m = NUMBERED_RE.match(line)
        if m:
            steps.append(Step(number=int(m.group(1)), kind=StepKind.numbered, instruction_text=m.group(2).strip(),
                              line=offset + i))
            continue

        m = BULLET_RE.match(line)
        if m and has_action_verb(m.group(1)):
            steps.append(Step(kind=StepKind.action, instruction_text=m.group(1).strip(), line=offset + i))

    return steps
