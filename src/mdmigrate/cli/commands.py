"""CLI command implementations"""

import logging
import sys
from pathlib import Path
from typing import Annotated, Optional
from uuid import UUID

import typer
from sqlmodel import Session, SQLModel

from mdmigrate.config import Settings, load_config, load_values
from mdmigrate.core.classify import classify
from mdmigrate.core.context import MigrationContext
from mdmigrate.core.parse import discover_files, parse_file
from mdmigrate.core.phases import Phase, phase_markers, run_migration, summarize
from mdmigrate.core.plugins import CatalogMode, PluginOrchestrator, RemoteRepository
from mdmigrate.core.validate import check_dual_parity, raise_for_failures, validate
from mdmigrate.crud.database import init_db, make_engine
from mdmigrate.crud.runs import (
    finish_run,
    get_mutations,
    get_phases,
    get_run,
    list_runs,
    record_journal,
    record_phase,
    start_run,
)
from mdmigrate.errors import MigrationError, ValidationFailure


def setup_logging(log_level: str = "WARNING") -> None:
    """Configure root logging for a CLI run."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    logging.getLogger("markdown_it").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.ERROR)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)


def _fail(msg: str, cause: Exception = None) -> None:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling."""
    try:
        settings = load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))
    setup_logging(settings.log_level)
    return settings


def _parse_values(pairs: list[str]) -> dict[str, str]:
    """['NAME=value', ...] -> {'NAME': 'value'}"""
    values = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            _fail(f"Invalid --value {pair!r}; expected NAME=VALUE")
        values[name.strip()] = value
    return values


def _documents(path: str, settings: Settings):
    p = Path(path)
    if not p.exists():
        _fail(f"Path not found: {path}")
    files = discover_files(p)
    if not files:
        _fail(f"No markdown files found under: {path}")
    for f in files:
        try:
            yield parse_file(f, settings.parser_config, settings.max_section_level)
        except MigrationError as e:
            _fail(f"Could not parse {f}", e)


def parse_cmd(
    path: Annotated[str, typer.Argument(help="Markdown file or directory")],
    as_json: Annotated[bool, typer.Option("--json", help="Print the parsed document as JSON")] = False,
    parser: Annotated[Optional[str], typer.Option("--parser-config", help="MarkdownIt preset name")] = None,
    ):
    """Parse setup guides and print their structure."""
    settings = _settings(overrides={"parser_config": parser})
    for doc in _documents(path, settings):
        if as_json:
            typer.echo(doc.model_dump_json(indent=2))
            continue
        typer.echo(f"{doc.path}: {doc.title}")
        typer.echo(
            f"  {len(doc.sections)} section(s), {len(doc.steps)} step(s), "
            f"{len(doc.code_blocks)} code block(s), {len(doc.links)} link(s)"
        )
        for ref in doc.provider_references:
            typer.echo(f"  provider: {ref.name} ({ref.file})")


def classify_cmd(
    path: Annotated[str, typer.Argument(help="Markdown file or directory")],
    ):
    """Classify every step of the given guides into instruction kinds."""
    settings = _settings()
    for doc in _documents(path, settings):
        typer.echo(f"{doc.path}:")
        for step in doc.steps:
            ins = classify(step)
            number = step.number if step.number is not None else "-"
            typer.echo(f"  {number:>3}  {ins.kind.value:<16} {step.instruction_text}")


def migrate_cmd(
    phase: Annotated[int, typer.Option("--phase", min=1, max=3, help="Run phases up to and including this one")] = 1,
    source: Annotated[Optional[str], typer.Option("--source", help="Source tree holding docs and reference files")] = None,
    dest: Annotated[Optional[str], typer.Option("--dest", help="Destination scaffold to mutate")] = None,
    value: Annotated[Optional[list[str]], typer.Option("--value", help="Placeholder value as NAME=VALUE (repeatable)")] = None,
    values_file: Annotated[Optional[str], typer.Option("--values-file", help="YAML map of placeholder values")] = None,
    only: Annotated[bool, typer.Option("--only", help="Run only the requested phase")] = False,
    integration: Annotated[str, typer.Option("--integration", help="templates, plugins or both")] = "both",
    plugin: Annotated[Optional[list[str]], typer.Option("--plugin", help="Plugin name to integrate (repeatable; default all)")] = None,
    template: Annotated[Optional[list[str]], typer.Option("--template", help="Template name to integrate (repeatable; default all)")] = None,
    catalog: Annotated[Optional[list[str]], typer.Option("--catalog", help="Catalog onboarding: manual, remote or local")] = None,
    catalog_repo: Annotated[Optional[list[str]], typer.Option("--catalog-repo", help="Remote catalog URL[,RULES] (repeatable)")] = None,
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Logging level")] = None,
    ):
    """Apply the setup guides to the destination scaffold, phase by phase."""
    settings = _settings(overrides={
        "source_dir": source, "dest_dir": dest, "values_file": values_file, "log_level": log_level,
    })
    try:
        values = load_values(settings.values_file)
    except ValueError as e:
        _fail(str(e))
    values.update(_parse_values(value or []))

    orchestrator = None
    if phase >= Phase.PLUGINS:
        try:
            modes = [CatalogMode(c) for c in (catalog or ["manual"])]
        except ValueError as e:
            _fail("Invalid --catalog", e)
        repos = []
        for entry in catalog_repo or []:
            url, _, rules = entry.partition(",")
            repos.append(RemoteRepository(url=url, rules=rules) if rules else RemoteRepository(url=url))
        orchestrator = PluginOrchestrator(
            integration_type=integration, plugins=plugin, templates=template,
            catalog_modes=modes, repositories=repos,
        )

    ctx = MigrationContext(settings, Path(settings.source_dir), Path(settings.dest_dir), values=values)
    engine = make_engine(settings.db_url)
    init_db(engine)

    with Session(engine) as session:
        run = start_run(session, str(ctx.source), str(ctx.destination), phase)
        reports = run_migration(ctx, Phase(phase), orchestrator, only=only)
        for rep in reports:
            if rep.prerequisite is not None:
                record_phase(session, run, rep.prerequisite)
            record_phase(session, run, rep)
        record_journal(session, run, ctx.journal)
        success = bool(reports) and all(r.success for r in reports)
        finish_run(session, run, success, ctx.accumulator.dual_mode)
        session.commit()
        run_id = run.id

    for line in summarize(reports):
        typer.echo(line)
    if ctx.pending_packages:
        typer.echo(f"Packages to install: {' '.join(ctx.pending_packages)}")
    typer.echo(f"Run {run_id} {'completed' if success else 'failed'}")
    if not success:
        raise typer.Exit(1)


def validate_cmd(
    phase: Annotated[int, typer.Option("--phase", min=1, max=3, help="Check the markers of this phase")] = 1,
    dest: Annotated[Optional[str], typer.Option("--dest", help="Destination scaffold")] = None,
    ):
    """Check the destination tree against a phase's expected state."""
    settings = _settings(overrides={"dest_dir": dest})
    ctx = MigrationContext(settings, Path(settings.source_dir), Path(settings.dest_dir))
    if not ctx.destination.is_dir():
        _fail(f"Destination not found: {ctx.destination}")

    result = validate(ctx.destination, phase_markers(Phase(min(phase, Phase.AUTH)), ctx), ctx.fs)
    if phase >= Phase.AUTH and ctx.local_config.exists():
        result.extend(check_dual_parity(ctx.template_config, ctx.local_config, ctx.fs))

    for item in result.passed:
        typer.echo(f"  ok: {item}")
    for item in result.warnings:
        typer.echo(f"  warning: {item}")
    for item in result.failed:
        typer.echo(f"  FAILED: {item}")
    c = result.counts()
    typer.echo(f"Validation: {c['passed']} passed, {c['failed']} failed, {c['warnings']} warning(s)")
    try:
        raise_for_failures(result)
    except ValidationFailure as e:
        _fail(str(e))


def history_cmd(
    run_id: Annotated[Optional[str], typer.Option("--run", help="Show details for one run id")] = None,
    limit: Annotated[int, typer.Option("--limit", help="Max runs to list")] = 20,
    failed_only: Annotated[bool, typer.Option("--failed", help="Only show failed mutations for --run")] = False,
    ):
    """List recorded migration runs, or show one run's phases and mutations."""
    settings = _settings()
    engine = make_engine(settings.db_url)
    init_db(engine)
    with Session(engine) as session:
        if run_id is None:
            runs = list_runs(session, limit)
            if not runs:
                typer.echo("No migration runs recorded.")
                raise typer.Exit(1)
            for r in runs:
                status = "running" if r.success is None else ("ok" if r.success else "failed")
                typer.echo(f"{r.id}  {r.started_at:%Y-%m-%d %H:%M:%S}  phase {r.target_phase}  {status}  {r.destination}")
            return

        try:
            run = get_run(session, UUID(run_id))
        except ValueError as e:
            _fail(f"Invalid run id: {run_id}", e)
        if run is None:
            _fail(f"Run not found: {run_id}")
        typer.echo(f"Run {run.id}: {run.source} -> {run.destination}")
        for p in get_phases(session, run.id):
            typer.echo(
                f"  phase {p.phase} ({p.name}): {'ok' if p.success else 'FAILED'} - "
                f"steps {p.steps_completed}/{p.steps_total}, {p.passed} passed, {p.failed} failed"
            )
        for m in get_mutations(session, run.id, "failed" if failed_only else None):
            typer.echo(f"    [{m.phase}] {m.status:<8} {m.primitive:<14} {m.strategy:<24} {m.path}")


def init_cmd(
    reset: Annotated[bool, typer.Option("--reset", help="Drop and recreate all tables")] = False,
    ):
    """Initialize the run ledger schema. Use --reset to clear existing data."""
    settings = _settings()
    engine = make_engine(settings.db_url)
    if reset:
        SQLModel.metadata.drop_all(engine)
        typer.echo("Existing data cleared.")
    init_db(engine)
    typer.echo(f"Database initialized at: {settings.db_url}")
