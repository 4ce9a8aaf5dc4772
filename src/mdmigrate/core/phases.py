"""Phase state machine: scaffold -> auth -> templates/plugins

Entry to each phase is decided by probing marker files and keys on disk, so a
migration can resume after a restart. Fatal errors abort the current phase
only; primitive failures are already warnings by the time they reach here.
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Callable, Protocol

from mdmigrate.core.context import MigrationContext
from mdmigrate.core.mutate import delete
from mdmigrate.core.mutate.copy import copy_path
from mdmigrate.core.mutate.manifest import merge_dependencies
from mdmigrate.core.mutate.targets import DEFAULT_ROLE_PATHS, TargetRole, apply_deletion
from mdmigrate.core.parse import parse_file
from mdmigrate.core.pipeline import run_document
from mdmigrate.core.validate import CheckKind, Expectation, ValidationResult, check_dual_parity, report, validate
from mdmigrate.errors import MigrationError, MutationWarning, NotFoundError, PrerequisiteError


logger = logging.getLogger(__name__)

README = "Readme.md"
UI_CHANGES = "UI-Changes.md"
AUTH_DOC = "Auth.md"
CONFIGURATION_DIR = "configuration"
CORE_APP = "packages-core/app"
CORE_BACKEND = "packages-core/backend"
APP_DIR = "packages/app"
BACKEND_DIR = "packages/backend"

BASE_CONFIG_FILES = ("Dockerfile", ".dockerignore", ".gitignore", ".yarnrc.yml", "yarn.lock", ".yarn", "package.json")

# (relative path, required)
ESSENTIAL_APP_FILES = (
    ("src/assets", True),
    ("src/components/theme", True),
    ("src/components/Root", True),
    ("src/components/search", False),
    ("src/global.css", False),
    ("public/favicon.ico", False),
    ("public/favicon-16x16.png", False),
    ("public/favicon-32x32.png", False),
    ("public/apple-touch-icon.png", False),
)
ESSENTIAL_BACKEND_FILES = (("src/types.ts", False),)

CRITICAL_AUTH_FILES = (
    ("packages-core/backend/src/plugins/helper/auth-helper.ts", "packages/backend/src/plugins/helper/auth-helper.ts"),
    ("packages-core/app/src/cookieAuth.ts", "packages/app/src/cookieAuth.ts"),
    ("packages-core/backend/src/plugins/permission.ts", "packages/backend/src/plugins/permission.ts"),
    ("packages-core/backend/src/plugins/database", "packages/backend/src/plugins/database"),
)
PERMISSION_POLICY = "packages/backend/src/plugins/permission.ts"


class Phase(IntEnum):
    SCAFFOLD = 1
    AUTH = 2
    PLUGINS = 3


PHASE_NAMES = {Phase.SCAFFOLD: "scaffold", Phase.AUTH: "auth", Phase.PLUGINS: "templates/plugins"}
DECLARED_STEPS = {Phase.SCAFFOLD: 7, Phase.AUTH: 6, Phase.PLUGINS: 4}


class StepCounter:
    """Monotonic step counter; an overflow grows the declared total with a warning."""

    def __init__(self, total: int, label: str = "phase"):
        self.total = total
        self.current = 0
        self.label = label

    def advance(self, message: str) -> int:
        self.current += 1
        if self.current > self.total:
            logger.warning("%s: step %d exceeds declared total %d; adjusting", self.label, self.current, self.total)
            self.total = self.current
        logger.info("[%s %d/%d] %s", self.label, self.current, self.total, message)
        return self.current


@dataclass
class PhaseOutcome:
    success: bool
    summary: str
    expectations: list[Expectation] = field(default_factory=list)


class PhaseOrchestrator(Protocol):
    """External collaborator driving the templates/plugins phase."""

    def validate_prerequisites(self) -> None: ...

    def execute(self, context: MigrationContext) -> PhaseOutcome: ...


@dataclass
class PhaseReport:
    phase: Phase
    success: bool = False
    steps_completed: int = 0
    steps_total: int = 0
    summary: str = ""
    validation: ValidationResult = field(default_factory=ValidationResult)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    prerequisite: "PhaseReport | None" = None

    @property
    def name(self) -> str:
        return PHASE_NAMES[self.phase]


# --- markers ---

def _role_rel(ctx: MigrationContext, role: TargetRole) -> str:
    return ctx.settings.role_paths.get(role.value) or DEFAULT_ROLE_PATHS[role]


def phase_markers(phase: Phase, ctx: MigrationContext) -> list[Expectation]:
    """Expectations that hold once the given phase has completed."""
    config = ctx.settings.template_config
    markers = [
        Expectation(path=f"{APP_DIR}/src/components/Root"),
        Expectation(path=_role_rel(ctx, TargetRole.theme_root)),
        Expectation(path=f"{APP_DIR}/src/assets"),
        Expectation(path=config),
    ]
    if phase >= Phase.AUTH:
        markers += [
            Expectation(path=config, kind=CheckKind.key, needle="auth.providers"),
            Expectation(path=_role_rel(ctx, TargetRole.backend_entry)),
            Expectation(path=_role_rel(ctx, TargetRole.backend_entry), kind=CheckKind.absent,
                        needle=delete.ALLOW_ALL_POLICY, soft=True, label="allow-all policy removed"),
        ]
    return markers


def check_prerequisites(phase: Phase, ctx: MigrationContext) -> ValidationResult:
    """Validate the markers of the phase before `phase`; Phase 1 has none."""
    if phase == Phase.SCAFFOLD:
        return ValidationResult()
    return validate(ctx.destination, phase_markers(Phase(phase - 1), ctx), ctx.fs)


# --- step plumbing ---

def _step(counter: StepCounter, rep: PhaseReport, message: str, fn: Callable, *args):
    counter.advance(message)
    try:
        return fn(*args)
    except (MigrationError, OSError) as e:
        rep.errors.append(f"step {counter.current} ({message}): {e}")
        raise


def _guarded(ctx: MigrationContext, what: str, fn: Callable, *args) -> None:
    """Run one primitive; a recoverable failure becomes a warning."""
    try:
        ctx.record(fn(*args))
    except (MutationWarning, NotFoundError, OSError) as e:
        ctx.warn(f"{what}: {e}")


# --- phase 1: scaffold ---

def _validate_sources(ctx: MigrationContext) -> None:
    required = [ctx.docs / README, ctx.source / CONFIGURATION_DIR, ctx.source / CORE_APP, ctx.source / CORE_BACKEND]
    for path in required:
        if not ctx.fs.exists(path):
            raise NotFoundError(path, f"Required path not found: {path}")
    if not ctx.fs.is_dir(ctx.destination):
        raise NotFoundError(ctx.destination, f"Destination scaffold not found: {ctx.destination}")


def _load_readme(ctx: MigrationContext) -> None:
    doc = parse_file(ctx.docs / README, ctx.settings.parser_config, ctx.settings.max_section_level)
    for line in doc.requirements:
        logger.info("requirement: %s", line)


def _apply_base_configuration(ctx: MigrationContext) -> None:
    source = ctx.source / CONFIGURATION_DIR
    for name in BASE_CONFIG_FILES:
        if ctx.fs.exists(source / name):
            _guarded(ctx, f"copy {name}", copy_path, ctx.fs, source, ctx.destination, name)
    gitignore = ctx.destination / ".gitignore"
    if ctx.fs.exists(gitignore):
        _guarded(ctx, "fix .gitignore", apply_deletion, ctx.fs, gitignore,
                 [delete.remove_lines_pattern("/packages")], "gitignore")


def _update_manifests(ctx: MigrationContext) -> None:
    deps = ctx.settings.essential_dependencies
    manifest = ctx.path_for(TargetRole.package_manifest)
    if deps and ctx.fs.exists(manifest):
        _guarded(ctx, "app manifest", merge_dependencies, ctx.fs, manifest, {"dependencies": deps})


def _apply_ui_changes(ctx: MigrationContext) -> None:
    path = ctx.docs / UI_CHANGES
    if not ctx.fs.exists(path):
        logger.info("%s not present; no UI customizations to apply", UI_CHANGES)
        return
    run_document(path, ctx)


def _configure_core_packages(ctx: MigrationContext) -> None:
    s = ctx.settings
    for root, dest, files in ((CORE_APP, APP_DIR, ESSENTIAL_APP_FILES), (CORE_BACKEND, BACKEND_DIR, ESSENTIAL_BACKEND_FILES)):
        for rel, required in files:
            ctx.record(copy_path(
                ctx.fs, ctx.source / root, ctx.destination / dest, rel,
                excluded=s.excluded_dirs, optional_assets=s.optional_assets, optional=not required,
            ))
    if ctx.fs.remove(ctx.destination / BACKEND_DIR / "Dockerfile"):
        logger.info("removed backend Dockerfile")


def _run_scaffold(ctx: MigrationContext, counter: StepCounter, rep: PhaseReport, orchestrator) -> None:
    _step(counter, rep, "Validating source paths", _validate_sources, ctx)
    _step(counter, rep, "Loading documentation", _load_readme, ctx)
    _step(counter, rep, "Applying base configuration files", _apply_base_configuration, ctx)
    _step(counter, rep, "Updating package manifests", _update_manifests, ctx)
    _step(counter, rep, "Applying UI customizations", _apply_ui_changes, ctx)
    _step(counter, rep, "Configuring core packages", _configure_core_packages, ctx)
    counter.advance("Validating scaffold")
    rep.validation = validate(ctx.destination, phase_markers(Phase.SCAFFOLD, ctx), ctx.fs)


# --- phase 2: auth ---

def find_auth_reference(ctx: MigrationContext) -> Path | None:
    """Return the auth document the Readme points at, or None if none is referenced."""
    doc = parse_file(ctx.docs / README, ctx.settings.parser_config, ctx.settings.max_section_level)
    for link in doc.links:
        target = link.target.split('#')[0]
        if Path(target).name == AUTH_DOC:
            return ctx.docs / target
    for section in doc.sections:
        text = section.raw_content.lower()
        if AUTH_DOC.lower() in text or 'authentication' in text:
            return ctx.docs / AUTH_DOC
    return None


def _ensure_phase1(ctx: MigrationContext, rep: PhaseReport) -> None:
    result = check_prerequisites(Phase.AUTH, ctx)
    if result.ok:
        logger.info("scaffold markers present")
        return
    if not ctx.settings.auto_prerequisites:
        raise PrerequisiteError(f"Scaffold phase incomplete: {', '.join(result.failed)}")
    logger.warning("scaffold markers missing (%s); running scaffold phase first", ", ".join(result.failed))
    rep.prerequisite = run_phase(Phase.SCAFFOLD, ctx)
    ctx.phase = int(Phase.AUTH)
    if not rep.prerequisite.success:
        raise PrerequisiteError("Scaffold phase failed; cannot continue with auth")


def _configure_auth(ctx: MigrationContext, auth_doc: Path) -> list:
    run = run_document(auth_doc, ctx)
    for src, dst in CRITICAL_AUTH_FILES:
        ctx.record(copy_path(ctx.fs, ctx.source, ctx.destination, src, dst,
                             excluded=ctx.settings.excluded_dirs, optional=True))
    return run.document.provider_references


def _configure_providers(ctx: MigrationContext, references: list) -> None:
    for ref in references:
        path = ctx.docs / ref.file
        if not ctx.fs.exists(path):
            ctx.warn(f"provider document {ref.file} referenced but not found")
            continue
        logger.info("configuring %s provider from %s", ref.name, ref.file)
        run_document(path, ctx, normalize=True)


def _apply_permission_policy(ctx: MigrationContext) -> None:
    if ctx.fs.exists(ctx.destination / PERMISSION_POLICY):
        _guarded(ctx, "remove allow-all policy", apply_deletion, ctx.fs, ctx.path_for(TargetRole.backend_entry),
                 delete.registration_variants(delete.ALLOW_ALL_POLICY), "remove-registration")
    ctx.accumulator.flush(ctx.destination)


def _validate_auth(ctx: MigrationContext) -> ValidationResult:
    result = validate(ctx.destination, phase_markers(Phase.AUTH, ctx), ctx.fs)
    if ctx.accumulator.dual_mode:
        result.extend(check_dual_parity(ctx.template_config, ctx.local_config, ctx.fs))
    return result


def _run_auth(ctx: MigrationContext, counter: StepCounter, rep: PhaseReport, orchestrator) -> None:
    _step(counter, rep, "Checking scaffold markers", _ensure_phase1, ctx, rep)
    auth_doc = _step(counter, rep, "Parsing documentation", find_auth_reference, ctx)
    if auth_doc is None:
        rep.summary = "no authentication referenced in Readme"
        logger.info(rep.summary)
        counter.advance("Validating scaffold")
        rep.validation = validate(ctx.destination, phase_markers(Phase.SCAFFOLD, ctx), ctx.fs)
        return
    refs = _step(counter, rep, "Configuring authentication", _configure_auth, ctx, auth_doc)
    _step(counter, rep, "Configuring auth providers", _configure_providers, ctx, refs)
    _step(counter, rep, "Applying permission policy", _apply_permission_policy, ctx)
    counter.advance("Validating authentication configuration")
    rep.validation = _validate_auth(ctx)
    rep.summary = f"auth configured from {auth_doc.name} with {len(refs)} provider(s)"


# --- phase 3: templates/plugins ---

def _run_plugins(ctx: MigrationContext, counter: StepCounter, rep: PhaseReport, orchestrator) -> None:
    counter.advance("Checking auth markers")
    result = check_prerequisites(Phase.PLUGINS, ctx)
    if not result.ok:
        rep.errors.append(f"auth markers missing: {', '.join(result.failed)}")
        raise PrerequisiteError(f"Auth phase incomplete: {', '.join(result.failed)}")
    if orchestrator is None:
        rep.errors.append("no orchestrator supplied")
        raise PrerequisiteError("Templates/plugins phase requires an orchestrator")
    _step(counter, rep, "Validating orchestrator prerequisites", orchestrator.validate_prerequisites)
    outcome = _step(counter, rep, "Integrating templates and plugins", orchestrator.execute, ctx)
    rep.summary = outcome.summary
    if not outcome.success:
        rep.errors.append(f"orchestrator reported failure: {outcome.summary}")
    counter.advance("Validating integration")
    ctx.accumulator.flush(ctx.destination)
    rep.validation = validate(ctx.destination, phase_markers(Phase.AUTH, ctx) + outcome.expectations, ctx.fs)
    if ctx.accumulator.dual_mode:
        rep.validation.extend(check_dual_parity(ctx.template_config, ctx.local_config, ctx.fs))


RUNNERS = {Phase.SCAFFOLD: _run_scaffold, Phase.AUTH: _run_auth, Phase.PLUGINS: _run_plugins}


def run_phase(phase: Phase, ctx: MigrationContext, orchestrator: PhaseOrchestrator = None) -> PhaseReport:
    """Run one phase to completion or to its first fatal error.

    MigrationError and OSError (an unreadable source during a copy) end the
    phase and are reported as phase errors; neither escapes.
    """
    phase = Phase(phase)
    rep = PhaseReport(phase=phase)
    counter = StepCounter(DECLARED_STEPS[phase], f"phase {int(phase)}")
    ctx.phase = int(phase)
    warnings_before = len(ctx.warnings)
    logger.info("starting phase %d (%s)", phase, rep.name)

    try:
        RUNNERS[phase](ctx, counter, rep, orchestrator)
    except (MigrationError, OSError) as e:
        if not rep.errors:
            rep.errors.append(str(e))
        logger.error("phase %d aborted: %s", phase, e)

    rep.steps_completed, rep.steps_total = counter.current, counter.total
    rep.warnings = ctx.warnings[warnings_before:]
    ctx.errors.extend(rep.errors)
    rep.success = not rep.errors and rep.validation.ok
    report(rep.validation, f"phase {int(phase)} ({rep.name})")
    return rep


def run_migration(ctx: MigrationContext, through: Phase, orchestrator: PhaseOrchestrator = None, only: bool = False) -> list[PhaseReport]:
    """Run phases 1..through in order (or just `through` when only is set); stop at the first failure."""
    phases = [Phase(through)] if only else [p for p in Phase if p <= through]
    reports = []
    for phase in phases:
        rep = run_phase(phase, ctx, orchestrator)
        reports.append(rep)
        if not rep.success:
            break
    return reports


def summarize(reports: list[PhaseReport]) -> list[str]:
    """Human-readable migration summary lines."""
    lines = []
    for rep in reports:
        c = rep.validation.counts()
        status = "ok" if rep.success else "FAILED"
        lines.append(
            f"Phase {int(rep.phase)} ({rep.name}): {status} - steps {rep.steps_completed}/{rep.steps_total}, "
            f"{c['passed']} passed, {c['failed']} failed, {len(rep.warnings)} warning(s)"
        )
        if rep.summary:
            lines.append(f"  {rep.summary}")
        lines.extend(f"  error: {e}" for e in rep.errors)
        lines.extend(f"  failed: {f}" for f in rep.validation.failed)
    return lines
