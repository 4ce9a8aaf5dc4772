"""Instruction classifier: ordered keyword rules mapping a Step to a typed Instruction"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Callable, Literal, Optional, Union

from pydantic import BaseModel, Field

from mdmigrate.core.models import Step


logger = logging.getLogger(__name__)

BACKTICK_RE = re.compile(r'`([^`]+)`')
FROM_TO_BACKTICK_RE = re.compile(r'\bfrom\s+`([^`]+)`\s+(?:in)?to\s+`([^`]+)`', re.IGNORECASE)
FROM_TO_PLAIN_RE = re.compile(r'\bfrom\s+([\w./@-]+)\s+(?:in)?to\s+([\w./@-]+)', re.IGNORECASE)
SOURCE_FILE_RE = re.compile(r'\.(?:tsx?|jsx?|mjs|cjs)$')
FILE_EXT_RE = re.compile(r'\.[A-Za-z0-9]{1,6}$')
PACKAGE_NAME_RE = re.compile(r'^@?[a-z0-9][\w.-]*(?:/[\w.-]+)?(?:@[\w.^~-]+)?$')
INSTALL_CMD_RE = re.compile(r'(?:yarn(?:[ \t]+--cwd[ \t]+\S+)?[ \t]+add|npm[ \t]+(?:install|i))[ \t]+((?:[^\s&|;]+[ \t]*)+)')
IMPORT_START_RE = re.compile(r'^\s*import\b')
IMPORT_END_RE = re.compile(r'''['"][^'"]+['"]\s*;?\s*$''')
STATEMENT_CHARS = set('();\'"<>')


class InstructionKind(str, Enum):
    copy_path = "copy_path"
    delete_pattern = "delete_pattern"
    update_config = "update_config"
    add_import = "add_import"
    remove_import = "remove_import"
    install_package = "install_package"
    generic = "generic"


class CopyPath(BaseModel):
    kind: Literal[InstructionKind.copy_path] = InstructionKind.copy_path
    step: Step
    source: Optional[str] = None
    destination: Optional[str] = None


class DeletePattern(BaseModel):
    kind: Literal[InstructionKind.delete_pattern] = InstructionKind.delete_pattern
    step: Step
    target: Optional[str] = None
    snippets: list[str] = []
    modules: list[str] = []


class UpdateConfig(BaseModel):
    kind: Literal[InstructionKind.update_config] = InstructionKind.update_config
    step: Step
    target: Optional[str] = None


class AddImport(BaseModel):
    kind: Literal[InstructionKind.add_import] = InstructionKind.add_import
    step: Step
    target: Optional[str] = None
    statements: list[str] = []


class RemoveImport(BaseModel):
    kind: Literal[InstructionKind.remove_import] = InstructionKind.remove_import
    step: Step
    target: Optional[str] = None
    modules: list[str] = []


class InstallPackage(BaseModel):
    kind: Literal[InstructionKind.install_package] = InstructionKind.install_package
    step: Step
    packages: list[str] = []


class Generic(BaseModel):
    kind: Literal[InstructionKind.generic] = InstructionKind.generic
    step: Step


Instruction = Annotated[
    Union[CopyPath, DeletePattern, UpdateConfig, AddImport, RemoveImport, InstallPackage, Generic],
    Field(discriminator="kind"),
]


# --- text helpers ---

def backticks(text: str) -> list[str]:
    return [t.strip() for t in BACKTICK_RE.findall(text)]


def _is_path(token: str) -> bool:
    if ' ' in token or token.startswith('@') or any(c in token for c in STATEMENT_CHARS):
        return False
    return '/' in token or bool(FILE_EXT_RE.search(token))


def _source_target(text: str) -> str | None:
    """First backtick token that names a source file (.ts/.tsx/.js...)."""
    return next((t for t in backticks(text) if _is_path(t) and SOURCE_FILE_RE.search(t)), None)


def _any_path(text: str) -> str | None:
    return next((t for t in backticks(text) if _is_path(t)), None)


def split_imports(code: str) -> list[str]:
    """Return complete import statements from code, joining multi-line grouped imports."""
    statements: list[str] = []
    current: list[str] = []
    for line in code.splitlines():
        if not current and not IMPORT_START_RE.match(line):
            continue
        current.append(line.rstrip())
        if IMPORT_END_RE.search(line):
            statements.append('\n'.join(current).strip())
            current = []
    return statements


def _snippet_code(step: Step) -> str:
    return step.snippet.content if step.snippet else ''


# --- builders ---

def _build_copy(step: Step) -> CopyPath:
    text = step.instruction_text
    m = FROM_TO_BACKTICK_RE.search(text)
    if m:
        return CopyPath(step=step, source=m.group(1), destination=m.group(2))
    paths = [t for t in backticks(text) if _is_path(t)]
    if len(paths) >= 2:
        return CopyPath(step=step, source=paths[0], destination=paths[1])
    m = FROM_TO_PLAIN_RE.search(text)
    if m:
        return CopyPath(step=step, source=m.group(1).rstrip('.,'), destination=m.group(2).rstrip('.,'))
    if paths:
        return CopyPath(step=step, source=paths[0], destination=paths[0])
    return CopyPath(step=step)


def is_statement(token: str) -> bool:
    """True for a complete statement or element (`foo();`, `<Banner />`), never a bare identifier."""
    return token.rstrip().endswith((';', ')', '/>'))


def _build_delete(step: Step) -> DeletePattern:
    """Only the attached block and statement-shaped tokens become deletion snippets.

    Scoped package names (`@scope/pkg`) are kept as modules for import removal.
    """
    text = step.instruction_text
    tokens = [t for t in backticks(text) if not _is_path(t)]
    snippets = [t for t in tokens if is_statement(t)]
    if step.snippet:
        snippets.append(step.snippet.content.strip())
    modules = [t for t in tokens if t.startswith('@') and not is_statement(t)]
    return DeletePattern(step=step, target=_any_path(text), snippets=snippets, modules=modules)


def _build_update(step: Step) -> UpdateConfig:
    return UpdateConfig(step=step, target=_any_path(step.instruction_text))


def _build_add_import(step: Step) -> AddImport:
    inline = [t for t in backticks(step.instruction_text) if IMPORT_START_RE.match(t)]
    return AddImport(
        step=step,
        target=_source_target(step.instruction_text),
        statements=inline + split_imports(_snippet_code(step)),
    )


def _build_remove_import(step: Step) -> RemoveImport:
    modules = [t for t in backticks(step.instruction_text) if not _is_path(t) or t.startswith('@')]
    return RemoveImport(step=step, target=_source_target(step.instruction_text), modules=modules)


def _build_install(step: Step) -> InstallPackage:
    packages = [t for t in backticks(step.instruction_text) if PACKAGE_NAME_RE.match(t) and not FILE_EXT_RE.search(t)]
    for m in INSTALL_CMD_RE.finditer(_snippet_code(step)):
        packages.extend(p for p in m.group(1).split() if not p.startswith('-'))
    return InstallPackage(step=step, packages=list(dict.fromkeys(packages)))


# --- predicates over lower-cased text ---

def _is_copy(t: str) -> bool:
    return ('copy' in t and ('file' in t or 'from' in t)) or ('create' in t and 'file' in t)


def _is_delete(t: str) -> bool:
    return 'delete' in t or 'remove' in t


def _is_update_config(t: str) -> bool:
    return 'update' in t and ('config' in t or '.ts' in t or '.yaml' in t)


def _is_add_import(t: str) -> bool:
    return 'add' in t and 'import' in t


def _is_remove_import(t: str) -> bool:
    return 'import' in t and any(w in t for w in ('remove', 'drop', 'strip'))


def _is_install(t: str) -> bool:
    return 'install' in t and ('package' in t or 'dependenc' in t)


@dataclass(frozen=True)
class Rule:
    kind: InstructionKind
    matches: Callable[[str], bool]
    build: Callable[[Step], BaseModel]


# First match wins; order is the tie-break.
RULES: tuple[Rule, ...] = (
    Rule(InstructionKind.copy_path,       _is_copy,          _build_copy),
    Rule(InstructionKind.delete_pattern,  _is_delete,        _build_delete),
    Rule(InstructionKind.update_config,   _is_update_config, _build_update),
    Rule(InstructionKind.add_import,      _is_add_import,    _build_add_import),
    Rule(InstructionKind.remove_import,   _is_remove_import, _build_remove_import),
    Rule(InstructionKind.install_package, _is_install,       _build_install),
)


def classify(step: Step, rules: tuple[Rule, ...] = RULES) -> Instruction:
    """Map a step to the Instruction built by the first rule whose predicate matches."""
    text = step.instruction_text.lower()
    for rule in rules:
        if rule.matches(text):
            return rule.build(step)
    logger.info("unclassified step treated as generic: %s", step.instruction_text)
    return Generic(step=step)
