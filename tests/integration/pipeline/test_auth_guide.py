"""Integration test: one authentication guide applied to a fresh scaffold.

The guide (docs/Auth.md in the shared source tree) has three numbered steps:

    1. Copy the auth helper from packages-core/... to packages/backend/...
    2. Add two imports to packages/app/src/App.tsx   (tsx block)
    3. Update the auth configuration in app-config.yaml (yaml block)

Journal after the first run (4 entries, all applied):
    copy          packages/backend/src/plugins/helper/auth-helper.ts
    import        packages/app/src/App.tsx   (githubAuthApiRef)
    import        packages/app/src/App.tsx   (SignInPage)
    config-merge  app-config.yaml

A second run over the same tree changes nothing and journals 4 skips.
"""

import pytest
import yaml

from mdmigrate.core.pipeline import run_document


TOUCHED = [
    "packages/backend/src/plugins/helper/auth-helper.ts",
    "packages/app/src/App.tsx",
    "app-config.yaml",
]


@pytest.fixture(name="auth_run")
def auth_run_fixture(ctx, source):
    return run_document(source / "docs" / "Auth.md", ctx)


def test_auth_guide_classifies_three_steps(auth_run):
    """The three steps classify as copy, add-import and config update."""
    kinds = [i.kind.value for i in auth_run.instructions]
    assert kinds == ["copy_path", "add_import", "update_config"]
    assert auth_run.blocks_applied == 0
    assert auth_run.warnings == []


def test_auth_guide_copies_helper(auth_run, dest):
    """The helper lands under the backend package with the source contents."""
    helper = dest / "packages/backend/src/plugins/helper/auth-helper.ts"
    assert helper.read_text() == "export const helper = 1;\n"


def test_auth_guide_adds_imports_after_import_block(auth_run, dest):
    """Both imports follow the existing imports, in guide order."""
    lines = (dest / "packages/app/src/App.tsx").read_text().splitlines()
    assert lines[:4] == [
        "import React from 'react';",
        "import { createApp } from '@backstage/app-defaults';",
        "import { githubAuthApiRef } from '@backstage/core-plugin-api';",
        "import { SignInPage } from '@backstage/core-components';",
    ]


def test_auth_guide_merges_configuration(auth_run, dest):
    """The auth section is merged and existing keys survive."""
    config = yaml.safe_load((dest / "app-config.yaml").read_text())
    assert config["app"] == {"title": "Scaffold"}
    assert config["auth"]["environment"] == "development"
    assert "providers" in config["auth"]


def test_auth_guide_journal(auth_run, ctx):
    """Every mutation is journaled as applied on the first run."""
    outcomes = [e.outcome for e in ctx.journal]
    assert [o.primitive for o in outcomes] == ["copy", "import", "import", "config-merge"]
    assert {o.status for o in outcomes} == {"applied"}


def test_auth_guide_second_run_is_noop(auth_run, ctx, source, dest):
    """Re-running the guide leaves every file byte-identical and journals only skips."""
    before = {rel: (dest / rel).read_text() for rel in TOUCHED}
    ctx.journal.clear()
    run_document(source / "docs" / "Auth.md", ctx)
    assert {rel: (dest / rel).read_text() for rel in TOUCHED} == before
    assert {e.outcome.status for e in ctx.journal} == {"skipped"}
