"""Root test configuration: session-level cleanup of runtime artifacts and shared project trees"""

from pathlib import Path

import pytest

from mdmigrate.config import Settings
from mdmigrate.core.context import MigrationContext


_PROJECT_ROOT = Path(__file__).parent.parent

_CLEANUP_FILES = ["mdmigrate.db", "test.db"]


README_MD = """\
# Developer Portal Setup

Setup guide for the portal.

## Overview

This guide migrates a fresh scaffold.

## Prerequisites

- **Node.js**: version 18 or newer
- **Yarn**: classic

## Authentication

Follow [the authentication guide](Auth.md) once the scaffold is in place.
"""

AUTH_MD = """\
# Authentication

Provider specifics live in [GithubAuth.md](GithubAuth.md).

## Setup

1. Copy the auth helper from `packages-core/backend/src/plugins/helper/auth-helper.ts` to `packages/backend/src/plugins/helper/auth-helper.ts`
2. Add the following imports to `packages/app/src/App.tsx`:
```tsx
import { githubAuthApiRef } from '@backstage/core-plugin-api';
import { SignInPage } from '@backstage/core-components';
```
3. Update the auth configuration in `app-config.yaml`:
```yaml
auth:
  environment: development
  providers:
```
"""

GITHUB_AUTH_MD = """\
# GitHub Authentication

## Configuration

1. Update the provider config in `app-config.yaml`:
```yaml
auth:
  providers:
    github:
      development:
        clientId: <Client ID>
        clientSecret: YOUR_CLIENT_SECRET
```
"""

PLUGIN_INTEGRATION_MD = """\
# Plugin Integration

### Plugin Directory Setup

Copy the plugin directories first.

### Jira Plugin

- **Frontend**: [Jira README](../plugins/jira/README.md)
- **Backend**: [Jira Backend README](../plugins/jira-backend/README.md)

### Missing Plugin

- **Frontend**: [Missing README](../plugins/missing/README.md)
"""

JIRA_README_MD = """\
# Jira

## Setup

1. Add the import to `packages/app/src/App.tsx`:
```tsx
import { JiraPage } from '@internal/plugin-jira';
```
"""

JIRA_BACKEND_README_MD = """\
# Jira Backend

## Setup

Register the plugin in the backend:

```ts
backend.add(import('@internal/plugin-jira-backend'));
```
"""

APP_TSX = """\
import React from 'react';
import { createApp } from '@backstage/app-defaults';

const app = createApp({
  apis: [],
});

const routes = (
  <FlatRoutes>
    <Route path="/catalog" element={<CatalogIndexPage />} />
  </FlatRoutes>
);

export default app.createRoot(routes);
"""

BACKEND_INDEX_TS = """\
import { createBackend } from '@backstage/backend-defaults';

const backend = createBackend();

backend.add(import('@backstage/plugin-app-backend'));
backend.add(import('@backstage/plugin-permission-backend-module-allow-all-policy'));

backend.start();
"""

SOURCE_FILES = {
    "docs/Readme.md": README_MD,
    "docs/Auth.md": AUTH_MD,
    "docs/GithubAuth.md": GITHUB_AUTH_MD,
    "docs/Plugin-Integration.md": PLUGIN_INTEGRATION_MD,
    "plugins/jira/README.md": JIRA_README_MD,
    "plugins/jira/package.json": '{"name": "@internal/plugin-jira"}\n',
    "plugins/jira-backend/README.md": JIRA_BACKEND_README_MD,
    "configuration/Dockerfile": "FROM node:18\n",
    "configuration/.gitignore": "node_modules\n/packages\n/packages/app/dist\n",
    "packages-core/app/src/assets/logo.txt": "logo\n",
    "packages-core/app/src/components/theme/theme.ts": "export const theme = {};\n",
    "packages-core/app/src/components/Root/Root.tsx": "export const Root = () => null;\n",
    "packages-core/app/src/cookieAuth.ts": "export const cookieAuth = () => {};\n",
    "packages-core/backend/src/types.ts": "export type Env = {};\n",
    "packages-core/backend/src/plugins/helper/auth-helper.ts": "export const helper = 1;\n",
    "packages-core/backend/src/plugins/permission.ts": "export const policy = {};\n",
    "templates/service/template.yaml": "apiVersion: scaffolder.backstage.io/v1beta3\nkind: Template\n",
}

DEST_FILES = {
    "app-config.yaml": "app:\n  title: Scaffold\n",
    "catalog-info.yaml": "apiVersion: backstage.io/v1alpha1\nkind: Component\nmetadata:\n  name: portal\n",
    "package.json": '{"name": "root"}\n',
    "packages/app/package.json": '{\n  "name": "app",\n  "dependencies": {\n    "react": "^18.0.0"\n  }\n}\n',
    "packages/app/src/App.tsx": APP_TSX,
    "packages/backend/package.json": '{"name": "backend"}\n',
    "packages/backend/src/index.ts": BACKEND_INDEX_TS,
    "packages/backend/Dockerfile": "FROM scratch\n",
}


@pytest.fixture(scope="session", autouse=True)
def cleanup_artifacts():
    """Remove DB files created during the test session."""
    yield
    for name in _CLEANUP_FILES:
        p = _PROJECT_ROOT / name
        if p.exists():
            p.unlink()


@pytest.fixture(name="write_tree")
def write_tree_fixture():
    """Return a helper that writes {relative path: text} under a root directory."""
    def write(root: Path, files: dict[str, str]) -> Path:
        for rel, text in files.items():
            p = root / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(text)
        return root
    return write


@pytest.fixture(name="source")
def source_fixture(tmp_path, write_tree):
    """Source tree with guides, configuration files, core packages, plugins and templates."""
    return write_tree(tmp_path / "source", SOURCE_FILES)


@pytest.fixture(name="dest")
def dest_fixture(tmp_path, write_tree):
    """Freshly generated scaffold to be migrated."""
    return write_tree(tmp_path / "dest", DEST_FILES)


@pytest.fixture(name="settings")
def settings_fixture(source, dest):
    return Settings(source_dir=str(source), dest_dir=str(dest))


@pytest.fixture(name="ctx")
def ctx_fixture(settings, source, dest):
    """MigrationContext over the source/dest trees with GitHub credentials captured."""
    return MigrationContext(settings, source, dest, values={"CLIENT_ID": "abc123", "CLIENT_SECRET": "s3cret"})
