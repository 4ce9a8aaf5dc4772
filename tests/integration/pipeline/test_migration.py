"""Integration test: all three phases over the shared source and scaffold trees.

Phase 1 (scaffold)  copies configuration/ and packages-core/, fixes .gitignore
                    and drops the backend Dockerfile.
Phase 2 (auth)      follows Readme -> Auth.md -> GithubAuth.md; captured values
                    CLIENT_ID/CLIENT_SECRET put the run in dual-config mode.
Phase 3 (plugins)   copies templates/service and the Jira plugin pair, applies
                    both READMEs and registers catalog locations (local mode).
"""

import pytest
import yaml

from mdmigrate.core.context import MigrationContext
from mdmigrate.core.merge.deep import key_paths
from mdmigrate.core.phases import Phase, run_migration, summarize
from mdmigrate.core.plugins import CatalogMode, PluginOrchestrator


SNAPSHOT = [
    ".gitignore",
    "app-config.yaml",
    "app-config.local.yaml",
    "packages/app/src/App.tsx",
    "packages/backend/src/index.ts",
]


def _orchestrator():
    return PluginOrchestrator(integration_type="both", catalog_modes=[CatalogMode.local])


@pytest.fixture(name="reports")
def reports_fixture(ctx):
    return run_migration(ctx, Phase.PLUGINS, _orchestrator())


def test_all_phases_succeed(reports):
    """Three reports, all successful, with the plugins summary last."""
    assert [r.phase for r in reports] == [Phase.SCAFFOLD, Phase.AUTH, Phase.PLUGINS]
    assert all(r.success for r in reports), summarize(reports)
    assert reports[-1].summary == "1 template(s), 1 plugin(s) integrated"


def test_dual_configuration(reports, dest):
    """Template keeps placeholders, local holds literals, both share key paths."""
    template = yaml.safe_load((dest / "app-config.yaml").read_text())
    local = yaml.safe_load((dest / "app-config.local.yaml").read_text())
    assert key_paths(template) == key_paths(local)
    assert template["auth"]["providers"]["github"]["development"]["clientSecret"] == "${CLIENT_SECRET}"
    assert local["auth"]["providers"]["github"]["development"]["clientSecret"] == "s3cret"
    targets = [loc["target"] for loc in local["catalog"]["locations"]]
    assert targets == ["../../templates/service/template.yaml", "../../catalog-info.yaml"]


def test_plugins_integrated(reports, dest):
    """Plugin directories are copied and their README snippets applied."""
    assert (dest / "plugins/jira/package.json").exists()
    assert (dest / "templates/service/template.yaml").exists()
    app = (dest / "packages/app/src/App.tsx").read_text()
    index = (dest / "packages/backend/src/index.ts").read_text()
    assert "@internal/plugin-jira'" in app
    assert "backend.add(import('@internal/plugin-jira-backend'));" in index
    assert "allow-all-policy" not in index


def test_rerun_is_idempotent(reports, settings, source, dest):
    """A fresh run over the migrated tree succeeds and changes none of the key files."""
    before = {rel: (dest / rel).read_text() for rel in SNAPSHOT}
    ctx = MigrationContext(settings, source, dest, values={"CLIENT_ID": "abc123", "CLIENT_SECRET": "s3cret"})
    again = run_migration(ctx, Phase.PLUGINS, _orchestrator())
    assert all(r.success for r in again), summarize(again)
    assert {rel: (dest / rel).read_text() for rel in SNAPSHOT} == before
