"""Templates/plugins orchestration: plugin discovery, per-plugin handlers, catalog onboarding

PluginOrchestrator is the default PhaseOrchestrator for the templates/plugins
phase. Plugins are described in docs/Plugin-Integration.md by headings of the
form "### <Display> Plugin" followed by Frontend/Backend README links.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Callable

from mdmigrate.core.context import MigrationContext
from mdmigrate.core.dispatch import Executor
from mdmigrate.core.mutate.copy import copy_path
from mdmigrate.core.phases import PhaseOutcome
from mdmigrate.core.pipeline import run_document
from mdmigrate.core.validate import CheckKind, Expectation
from mdmigrate.errors import MigrationError, MutationWarning, PrerequisiteError


logger = logging.getLogger(__name__)

INTEGRATION_DOC = "Plugin-Integration.md"
PLUGINS_DIR = "plugins"
TEMPLATES_DIR = "templates"
TEMPLATE_FILE = "template.yaml"
LOCAL_CATALOG_TARGET = "../../catalog-info.yaml"
DEFAULT_RULES = "Component,System,API,Resource,Location"

INTEGRATION_TYPES = ("templates", "plugins", "both")

PLUGIN_HEADING_RE = re.compile(r'^###\s+(.+?)\s+Plugin\s*$', re.IGNORECASE)
README_LINK_RE = re.compile(r'\[[^\]]*README\]\(([^)]*?\.md)\)')


@dataclass(frozen=True)
class PluginMetadata:
    name:          str
    display_name:  str
    frontend_path: str | None = None
    backend_path:  str | None = None


# Given a plugin name, return its metadata or None if the producer does not know it.
MetadataProducer = Callable[[str], PluginMetadata | None]


class CatalogMode(str, Enum):
    manual = "manual"
    remote = "remote"
    local = "local"


@dataclass(frozen=True)
class RemoteRepository:
    url:   str
    rules: str = DEFAULT_RULES


def plugin_slug(display_name: str) -> str:
    """'CI/CD GitHub' -> 'ci-cd-github'"""
    slug = display_name.lower()
    slug = re.sub(r'\s+', '-', slug)
    slug = re.sub(r'[/\\]', '-', slug)
    slug = re.sub(r'[^\w-]', '', slug)
    slug = re.sub(r'-+', '-', slug)
    return slug.strip('-')


def discover_plugins(text: str, docs: Path, fs=None) -> list[PluginMetadata]:
    """Parse plugin sections from the integration document.

    README links are resolved relative to docs; links to missing files are
    dropped with a warning, and plugins left with no README are skipped.
    """
    plugins: list[PluginMetadata] = []
    current: dict[str, Any] | None = None

    def close():
        if current and (current['frontend_path'] or current['backend_path']):
            plugins.append(PluginMetadata(**current))

    for raw in text.splitlines():
        line = raw.strip()
        if m := PLUGIN_HEADING_RE.match(line):
            close()
            display = m.group(1).strip()
            current = {'name': plugin_slug(display), 'display_name': display,
                       'frontend_path': None, 'backend_path': None}
            continue
        if current is None:
            continue
        for label, key in (("**Frontend**", 'frontend_path'), ("**Backend**", 'backend_path')):
            if line.startswith(f"- {label}:") and (link := README_LINK_RE.search(line)):
                target = link.group(1)
                if _exists(docs / target, fs):
                    current[key] = target
                else:
                    logger.warning("%s README not found for %s: %s", key.split('_')[0], current['display_name'], target)
    close()
    logger.info("discovered %d plugin(s)", len(plugins))
    return plugins


def _exists(path: Path, fs) -> bool:
    return fs.exists(path) if fs is not None else path.exists()


def plugin_dir_name(readme_path: str) -> str | None:
    """'../../plugins/flowsource-jira/README.md' -> 'flowsource-jira'"""
    parent = PurePosixPath(readme_path.replace('\\', '/')).parent
    return parent.name or None


class DocumentMetadataProducer:
    """MetadataProducer backed by the integration document."""

    def __init__(self, ctx: MigrationContext, doc_name: str = INTEGRATION_DOC):
        self.path = ctx.docs / doc_name
        self.ctx = ctx
        self._plugins: list[PluginMetadata] | None = None

    @property
    def plugins(self) -> list[PluginMetadata]:
        if self._plugins is None:
            if not self.ctx.fs.exists(self.path):
                logger.warning("%s not found; no plugins discovered", self.path)
                self._plugins = []
            else:
                self._plugins = discover_plugins(self.ctx.fs.read(self.path), self.ctx.docs, self.ctx.fs)
        return self._plugins

    def __call__(self, name: str) -> PluginMetadata | None:
        return next((p for p in self.plugins if p.name == name), None)


# --- handlers ---

@dataclass
class PluginResult:
    plugin:  str
    success: bool
    copied:  list[str] = field(default_factory=list)
    error:   str | None = None


class PluginHandler:
    """Copies a plugin's directories and applies its frontend/backend READMEs."""

    normalize = False

    def __init__(self, metadata: PluginMetadata):
        self.metadata = metadata

    def copy_directories(self, ctx: MigrationContext) -> list[str]:
        copied = []
        for readme in (self.metadata.frontend_path, self.metadata.backend_path):
            name = readme and plugin_dir_name(readme)
            if not name:
                continue
            rel = f"{PLUGINS_DIR}/{name}"
            outcome = ctx.record(copy_path(
                ctx.fs, ctx.source, ctx.destination, rel,
                excluded=ctx.settings.excluded_dirs, optional=True,
            ))
            if outcome.status == "applied":
                copied.append(rel)
        return copied

    def integrate(self, ctx: MigrationContext) -> PluginResult:
        result = PluginResult(plugin=self.metadata.name, success=True)
        result.copied = self.copy_directories(ctx)
        for readme, hint in ((self.metadata.frontend_path, "frontend"), (self.metadata.backend_path, "backend")):
            if readme:
                run_document(ctx.docs / readme, ctx, normalize=self.normalize, hint=hint)
        return result


class GithubPluginHandler(PluginHandler):
    """GitHub plugins carry token/app-id placeholders in <Name> form."""

    normalize = True


HANDLERS: dict[str, type[PluginHandler]] = {
    "github": GithubPluginHandler,
}


def handler_for(metadata: PluginMetadata) -> PluginHandler:
    cls = next((h for key, h in HANDLERS.items() if key in metadata.name), PluginHandler)
    return cls(metadata)


# --- catalog ---

def catalog_fragment(
    modes: list[CatalogMode],
    repositories: list[RemoteRepository] = (),
    templates: list[str] = (),
    ) -> tuple[dict[str, Any], dict[str, str]]:
    """Build one catalog.locations fragment plus the literal values for its placeholders.

    Lists replace wholesale on merge, so every location (templates, local and
    remote onboarding) is emitted in a single fragment.
    """
    locations: list[dict[str, Any]] = []
    values: dict[str, str] = {}
    for name in templates:
        locations.append({
            'type': 'file',
            'target': f"../../{TEMPLATES_DIR}/{name}/{TEMPLATE_FILE}",
            'rules': [{'allow': ['Template']}],
        })
    if CatalogMode.local in modes:
        locations.append({'type': 'file', 'target': LOCAL_CATALOG_TARGET})
    if CatalogMode.remote in modes:
        for i, repo in enumerate(repositories, start=1):
            locations.append({
                'type': 'url',
                'target': f"${{CATALOG_REPO_{i}_URL}}",
                'rules': [{'allow': f"${{CATALOG_REPO_{i}_RULES}}"}],
            })
            values[f"CATALOG_REPO_{i}_URL"] = repo.url
            values[f"CATALOG_REPO_{i}_RULES"] = repo.rules
    if not locations:
        return {}, values
    fragment: dict[str, Any] = {'catalog': {'locations': locations}}
    if CatalogMode.remote in modes and repositories:
        fragment['catalog']['useUrlReadersSearch'] = False
    return fragment, values


def available_templates(ctx: MigrationContext) -> list[str]:
    root = ctx.source / TEMPLATES_DIR
    if not ctx.fs.is_dir(root):
        return []
    return sorted(p.name for p in root.iterdir() if ctx.fs.exists(p / TEMPLATE_FILE))


# --- orchestrator ---

class PluginOrchestrator:
    """Default orchestrator for the templates/plugins phase."""

    def __init__(
        self,
        integration_type: str = "both",
        plugins: list[str] = None,
        templates: list[str] = None,
        catalog_modes: list[CatalogMode] = None,
        repositories: list[RemoteRepository] = None,
        producers: list[MetadataProducer] = None,
        ):
        self.integration_type = integration_type
        self.plugins = list(plugins or [])
        self.templates = list(templates or [])
        self.catalog_modes = [CatalogMode(m) for m in (catalog_modes or [CatalogMode.manual])]
        self.repositories = list(repositories or [])
        self.producers = producers

    def validate_prerequisites(self) -> None:
        if self.integration_type not in INTEGRATION_TYPES:
            raise PrerequisiteError(
                f"Unknown integration type {self.integration_type!r}; expected one of {', '.join(INTEGRATION_TYPES)}"
            )
        if CatalogMode.remote in self.catalog_modes and not self.repositories:
            raise PrerequisiteError("Remote catalog onboarding needs at least one repository URL")

    def resolve_plugins(self, ctx: MigrationContext) -> tuple[list[PluginMetadata], list[str]]:
        """Return (known metadata, unknown names) for the requested plugins."""
        producers = self.producers
        names = self.plugins
        if producers is None:
            document = DocumentMetadataProducer(ctx)
            producers = [document]
            names = names or [p.name for p in document.plugins]
        found, missing = [], []
        for name in names:
            meta = next((m for m in (p(name) for p in producers) if m is not None), None)
            if meta is None:
                missing.append(name)
            else:
                found.append(meta)
        return found, missing

    def _integrate_templates(self, ctx: MigrationContext, expectations: list[Expectation]) -> list[str]:
        names = self.templates or available_templates(ctx)
        done = []
        for name in names:
            rel = f"{TEMPLATES_DIR}/{name}"
            try:
                ctx.record(copy_path(ctx.fs, ctx.source, ctx.destination, rel, excluded=ctx.settings.excluded_dirs))
            except (MutationWarning, MigrationError) as e:
                ctx.warn(f"template {name}: {e}")
                continue
            done.append(name)
            expectations.append(Expectation(path=f"{rel}/{TEMPLATE_FILE}", label=f"template {name}"))
        return done

    def _integrate_plugins(self, ctx: MigrationContext, expectations: list[Expectation]) -> list[PluginResult]:
        metadata, missing = self.resolve_plugins(ctx)
        results = [PluginResult(plugin=name, success=False, error="plugin not found") for name in missing]
        for name in missing:
            ctx.warn(f"plugin {name} not found in available plugins")
        for meta in metadata:
            logger.info("integrating plugin %s", meta.display_name)
            try:
                result = handler_for(meta).integrate(ctx)
            except MigrationError as e:
                ctx.warn(f"plugin {meta.name}: {e}")
                results.append(PluginResult(plugin=meta.name, success=False, error=str(e)))
                continue
            results.append(result)
            expectations.extend(
                Expectation(path=rel, soft=True, label=f"plugin {meta.name} copied") for rel in result.copied
            )
        return results

    def execute(self, ctx: MigrationContext) -> PhaseOutcome:
        expectations: list[Expectation] = []
        templates: list[str] = []
        results: list[PluginResult] = []

        if self.integration_type in ("templates", "both"):
            templates = self._integrate_templates(ctx, expectations)
        if self.integration_type in ("plugins", "both"):
            results = self._integrate_plugins(ctx, expectations)

        fragment, values = catalog_fragment(self.catalog_modes, self.repositories, templates)
        if fragment:
            ctx.values.update(values)
            Executor(ctx).apply_config(fragment, "catalog locations")
            expectations.append(Expectation(path=ctx.settings.template_config, kind=CheckKind.key,
                                            needle="catalog.locations"))

        failed = [r.plugin for r in results if not r.success]
        summary = f"{len(templates)} template(s), {len(results) - len(failed)} plugin(s) integrated"
        if failed:
            summary += f", failed: {', '.join(failed)}"
        return PhaseOutcome(success=not failed, summary=summary, expectations=expectations)
