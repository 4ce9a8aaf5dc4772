"""Executor: applies classified instructions and code blocks to the target tree

Every primitive failure is converted to a warning on the context so later
instructions still run. Fatal errors (a missing required document) propagate.
"""

import logging
import re
from pathlib import Path
from typing import Any

from mdmigrate.core.classify import (
    AddImport,
    CopyPath,
    DeletePattern,
    Generic,
    INSTALL_CMD_RE,
    InstallPackage,
    InstructionKind,
    RemoveImport,
    UpdateConfig,
    split_imports,
)
from mdmigrate.core.context import MigrationContext
from mdmigrate.core.merge.block import extract_structured_block
from mdmigrate.core.merge.deep import merge_into
from mdmigrate.core.merge.placeholders import normalize_tree, placeholders_in
from mdmigrate.core.models import CodeBlock
from mdmigrate.core.mutate import delete
from mdmigrate.core.mutate.copy import copy_path
from mdmigrate.core.mutate.manifest import merge_dependencies, parse_manifest_fragment
from mdmigrate.core.mutate.targets import (
    MutationOutcome,
    MutationTarget,
    TargetRole,
    apply_deletion,
    apply_target,
)
from mdmigrate.errors import MutationWarning, ParseError, SourceNotFoundError


logger = logging.getLogger(__name__)

YAML_LANGUAGES = {'yaml', 'yml'}
CODE_LANGUAGES = {'ts', 'tsx', 'typescript', 'js', 'jsx', 'javascript'}
SHELL_LANGUAGES = {'bash', 'sh', 'shell', 'console', 'zsh', 'text'}
CATALOG_KEYS = {'apiVersion', 'kind', 'metadata'}
RECOVERABLE = (MutationWarning, SourceNotFoundError, ParseError, OSError)

CONST_RE = re.compile(r'^\s*(?:export\s+)?const\s+(\w+)\s*[:=]')


def split_statements(code: str) -> list[str]:
    """Split code into top-level statements by bracket depth and blank lines."""
    statements, current, depth = [], [], 0
    for line in code.splitlines():
        if not current and not line.strip():
            continue
        current.append(line)
        depth += sum(line.count(c) for c in '([{') - sum(line.count(c) for c in ')]}')
        stripped = line.rstrip()
        if depth <= 0 and (not stripped or stripped.endswith((';', '}', '/>', '>', ')'))):
            statements.append('\n'.join(current).strip())
            current, depth = [], 0
    if current:
        statements.append('\n'.join(current).strip())
    return [s for s in statements if s]


def _without_imports(code: str) -> str:
    for statement in split_imports(code):
        code = code.replace(statement, '')
    return code


class Executor:
    """Dispatches each Instruction kind to its handler."""

    def __init__(self, ctx: MigrationContext, hint: str = ''):
        self.ctx = ctx
        self.hint = hint
        self.handlers = {
            InstructionKind.copy_path:       self._copy,
            InstructionKind.delete_pattern:  self._delete,
            InstructionKind.update_config:   self._update_config,
            InstructionKind.add_import:      self._add_import,
            InstructionKind.remove_import:   self._remove_import,
            InstructionKind.install_package: self._install,
            InstructionKind.generic:         self._generic,
        }

    # --- entry points ---

    def execute(self, instruction) -> None:
        try:
            self.handlers[instruction.kind](instruction)
        except RECOVERABLE as e:
            self._failed(instruction.kind.value, e)

    def apply_block(self, block: CodeBlock, label: str, hint: str = '') -> None:
        """Apply a code block that no step claimed, according to its language."""
        try:
            self._apply_block(block, label, hint)
        except RECOVERABLE as e:
            self._failed(f"{block.language} block", e)

    @staticmethod
    def claims_snippet(instruction) -> bool:
        """True if the instruction's handler consumes the step's attached code block."""
        snippet = instruction.step.snippet
        if snippet is None:
            return False
        if instruction.kind == InstructionKind.update_config:
            return snippet.language in YAML_LANGUAGES | CODE_LANGUAGES
        if instruction.kind == InstructionKind.install_package:
            return snippet.language in SHELL_LANGUAGES
        return instruction.kind in (
            InstructionKind.add_import, InstructionKind.remove_import, InstructionKind.delete_pattern,
        )

    # --- helpers ---

    def _failed(self, what: str, error: Exception) -> None:
        self.ctx.warn(f"{what}: {error}")
        path = str(getattr(error, 'path', '') or '')
        self.ctx.record(MutationOutcome(path=path, primitive=what, strategy="-", status="failed", detail=str(error)))

    def _dest(self, relative: str) -> Path:
        return self.ctx.destination / relative

    def _infer_role(self, text: str) -> TargetRole:
        hinted = f"{self.hint} {text}".lower()
        return TargetRole.backend_entry if 'backend' in hinted else TargetRole.app_entry

    def _target_path(self, target: str | None, text: str) -> tuple[TargetRole | None, Path]:
        if target:
            return None, self._dest(target)
        role = self._infer_role(text)
        return role, self.ctx.path_for(role)

    def _insert(self, role: TargetRole | None, path: Path, fragment: str, primitive: str) -> None:
        self.ctx.record(apply_target(self.ctx.fs, MutationTarget(role, path, fragment, primitive)))

    # --- instruction handlers ---

    def _copy(self, ins: CopyPath) -> None:
        if not ins.source:
            raise MutationWarning(f"No path found in copy instruction: {ins.step.instruction_text}")
        s = self.ctx.settings
        self.ctx.record(copy_path(
            self.ctx.fs, self.ctx.source, self.ctx.destination, ins.source, ins.destination,
            excluded=s.excluded_dirs, optional_assets=s.optional_assets,
        ))

    def _delete(self, ins: DeletePattern) -> None:
        text = ins.step.instruction_text
        lower = text.lower()
        named = ins.snippets + ins.modules
        if 'allow-all' in lower or 'allow all' in lower or any(delete.ALLOW_ALL_POLICY in s for s in named):
            _, path = self._target_path(ins.target, f"{text} {delete.ALLOW_ALL_POLICY}")
            self.ctx.record(apply_deletion(
                self.ctx.fs, path, delete.registration_variants(delete.ALLOW_ALL_POLICY), primitive="remove-registration",
            ))
            return
        if 'import' in lower and not named:
            raise MutationWarning(f"No import named in: {text}")
        patterns: list[re.Pattern] = []
        if 'import' in lower:
            for module in ins.modules:
                patterns.extend(delete.import_variants(module))
        for snippet in ins.snippets:
            patterns.extend(delete.snippet_variants(snippet))
        if not patterns:
            raise MutationWarning(f"Nothing to delete in: {text}")
        _, path = self._target_path(ins.target, text + ' '.join(named))
        self.ctx.record(apply_deletion(self.ctx.fs, path, patterns))

    def _update_config(self, ins: UpdateConfig) -> None:
        snippet = ins.step.snippet
        if snippet is None:
            logger.info("config update without a block, nothing to apply: %s", ins.step.instruction_text)
            return
        if snippet.language in YAML_LANGUAGES:
            target = ins.target if ins.target and ins.target.endswith(('.yaml', '.yml')) else None
            self.apply_config(extract_structured_block(snippet.content), ins.step.instruction_text, target)
        elif snippet.language in CODE_LANGUAGES:
            target = self._dest(ins.target) if ins.target else None
            self.apply_code(snippet.content, ins.step.instruction_text, target)

    def _add_import(self, ins: AddImport) -> None:
        if not ins.statements:
            raise MutationWarning(f"No import statement found in: {ins.step.instruction_text}")
        hint = ins.step.instruction_text + ' '.join(ins.statements)
        role, path = self._target_path(ins.target, hint)
        for statement in ins.statements:
            self._insert(role, path, statement, "import")

    def _remove_import(self, ins: RemoveImport) -> None:
        modules = list(ins.modules)
        if ins.step.snippet:
            modules += [m.group(1) for m in re.finditer(r'''from\s+['"]([^'"]+)['"]''', ins.step.snippet.content)]
        if not modules:
            raise MutationWarning(f"No module named in: {ins.step.instruction_text}")
        patterns = [p for m in modules for p in delete.import_variants(m)]
        _, path = self._target_path(ins.target, ins.step.instruction_text + ' '.join(modules))
        self.ctx.record(apply_deletion(self.ctx.fs, path, patterns, primitive="remove-import"))

    def _install(self, ins: InstallPackage) -> None:
        new = [p for p in ins.packages if p not in self.ctx.pending_packages]
        self.ctx.pending_packages.extend(new)
        logger.info("queued %d package(s) for installation: %s", len(new), ", ".join(new) or "-")

    def _generic(self, ins: Generic) -> None:
        logger.info("no automated action for: %s", ins.step.instruction_text)

    # --- code blocks ---

    def _apply_block(self, block: CodeBlock, label: str, hint: str) -> None:
        lang = block.language
        if lang in YAML_LANGUAGES:
            fragment = extract_structured_block(block.content)
            if CATALOG_KEYS & set(fragment):
                self.apply_catalog(fragment, label)
            else:
                self.apply_config(fragment, label)
        elif lang in CODE_LANGUAGES:
            self.apply_code(block.content, hint or label)
        elif lang == 'json':
            role = TargetRole.backend_manifest if 'backend' in hint.lower() else TargetRole.package_manifest
            self.ctx.record(merge_dependencies(
                self.ctx.fs, self.ctx.path_for(role), parse_manifest_fragment(block.content),
            ))
        elif lang in SHELL_LANGUAGES:
            for m in INSTALL_CMD_RE.finditer(block.content):
                packages = [p for p in m.group(1).split() if not p.startswith('-')]
                self.ctx.pending_packages.extend(p for p in packages if p not in self.ctx.pending_packages)
        else:
            logger.debug("ignoring %s block in %s", lang, label)

    def apply_config(self, fragment: dict[str, Any], label: str, target: str = None) -> None:
        """Merge a configuration fragment now and register it with the accumulator."""
        if self.ctx.normalize:
            fragment = normalize_tree(fragment)
        if target and target != self.ctx.settings.template_config:
            path = self._dest(target)
            changed = merge_into(path, fragment, label, self.ctx.fs)
        else:
            names = placeholders_in(fragment)
            values = {k: v for k, v in self.ctx.values.items() if k in names}
            self.ctx.accumulator.contribute(fragment, label, values)
            path = self.ctx.template_config
            changed = merge_into(path, fragment, label, self.ctx.fs)
        self.ctx.record(MutationOutcome(
            path=str(path), primitive="config-merge", strategy="deep-merge",
            status="applied" if changed else "skipped", detail=label,
        ))

    def apply_catalog(self, fragment: dict[str, Any], label: str) -> None:
        path = self.ctx.path_for(TargetRole.catalog_descriptor)
        if not self.ctx.fs.exists(path):
            raise MutationWarning(f"Catalog descriptor missing: {path}")
        changed = merge_into(path, fragment, label, self.ctx.fs)
        self.ctx.record(MutationOutcome(
            path=str(path), primitive="catalog-merge", strategy="deep-merge",
            status="applied" if changed else "skipped", detail=label,
        ))

    def apply_code(self, code: str, hint: str, target: Path = None) -> None:
        """Route a source snippet: imports, registrations, routes and constants to their roles."""
        imports = split_imports(code)
        statements = split_statements(_without_imports(code))
        hint_lower = hint.lower()

        if target is not None:
            role = None
        elif 'backend.add(' in code:
            role = TargetRole.backend_entry
        elif '<EntityLayout.Route' in code or 'entity' in hint_lower:
            role = TargetRole.entity_page
        elif 'createApp(' in code or '<Route' in code:
            role = TargetRole.app_entry
        else:
            role = self._infer_role(hint)
        path = target or self.ctx.path_for(role)

        for statement in imports:
            self._insert(role, path, statement, "import")

        for statement in statements:
            primitive = self._primitive_for(statement, role)
            if primitive is None:
                logger.debug("no anchor shape for statement in %s: %s", path.name, statement.splitlines()[0])
                continue
            try:
                self._insert(role, path, statement, primitive)
            except RECOVERABLE as e:
                self._failed(primitive, e)

    @staticmethod
    def _primitive_for(statement: str, role: TargetRole | None) -> str | None:
        head = statement.lstrip()
        if head.startswith('backend.add('):
            return "registration"
        if head.startswith('<EntityLayout.Route'):
            return "entity-route"
        if head.startswith('<Route'):
            return "route"
        m = CONST_RE.match(statement)
        if m and m.group(1) != 'app' and 'createApp(' not in statement:
            return "constant" if role == TargetRole.entity_page else "app-constant"
        if head.startswith('<') and role == TargetRole.entity_page:
            return "component"
        return None
