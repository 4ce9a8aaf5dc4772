"""Document pipeline: parse -> classify -> dispatch, with unclaimed code blocks applied in place"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from mdmigrate.core.classify import classify
from mdmigrate.core.context import MigrationContext
from mdmigrate.core.dispatch import Executor
from mdmigrate.core.models import ParsedDocument
from mdmigrate.core.parse import parse_file, validate_document


logger = logging.getLogger(__name__)


@dataclass
class DocumentRun:
    document: ParsedDocument
    instructions: list = field(default_factory=list)
    blocks_applied: int = 0
    warnings: list[str] = field(default_factory=list)


def run_document(path: Path, ctx: MigrationContext, normalize: bool = False, hint: str = '') -> DocumentRun:
    """Apply one setup guide to the destination tree, in document order.

    Code blocks not consumed by a step are applied by language at their place
    in the document: after the step that precedes them and before the next
    one, so a later block supersedes an earlier one. hint (e.g. "backend")
    steers role inference for targets the text does not name. Primitive
    failures become context warnings; a missing document raises NotFoundError.
    """
    settings = ctx.settings
    doc = parse_file(Path(path), settings.parser_config, settings.max_section_level)
    for issue in validate_document(doc):
        logger.debug("%s: %s", doc.path.name, issue)

    executor = Executor(ctx, hint)
    run = DocumentRun(document=doc)
    run.instructions = [classify(step) for step in doc.steps]
    claimed = {
        ins.step.snippet.line for ins in run.instructions
        if executor.claims_snippet(ins) and ins.step.snippet.line is not None
    }
    pending = [block for block in doc.code_blocks if block.line not in claimed]
    section_for_line = _section_titles(doc)

    def apply_blocks_before(line: int | None) -> None:
        while pending and (line is None or (pending[0].line is not None and pending[0].line < line)):
            block = pending.pop(0)
            block_hint = f"{hint} {doc.path.stem} {section_for_line(block.line)}".strip()
            executor.apply_block(block, label=f"{doc.path.name}:{block.line}", hint=block_hint)
            run.blocks_applied += 1

    warnings_before = len(ctx.warnings)
    previous = ctx.normalize
    ctx.normalize = normalize
    try:
        for instruction in run.instructions:
            if instruction.step.line is not None:
                apply_blocks_before(instruction.step.line)
            executor.execute(instruction)
        apply_blocks_before(None)
    finally:
        ctx.normalize = previous

    run.warnings = ctx.warnings[warnings_before:]
    logger.info("%s: %d instruction(s), %d block(s), %d warning(s)",
                doc.path.name, len(run.instructions), run.blocks_applied, len(run.warnings))
    return run


def _section_titles(doc: ParsedDocument):
    """Return a lookup from source line to the enclosing section title."""
    starts = [(s.line, s.title) for s in doc.sections if s.line is not None]

    def lookup(line: int | None) -> str:
        if line is None:
            return ''
        return next((title for start, title in reversed(starts) if start <= line), '')
    return lookup
