"""Shared fixtures for core unit tests"""

import pytest
from markdown_it import MarkdownIt


SAMPLE_MD = """\
# Sample Guide

Intro paragraph.

## Overview

- **Node.js**: 18+

## Setup

1. Copy the file `src/a.ts` to `src/b.ts`
2. Add the import to `packages/app/src/App.tsx`:
```tsx
import { A } from '@x/a';
```
- remove the old banner
- a plain bullet

### Details

Deep heading stays inside Setup.

## Configuration

```yaml
app:
  title: Portal
```
"""


@pytest.fixture(name="parser")
def parser_fixture():
    return MarkdownIt("gfm-like", options_update={"linkify": False})


@pytest.fixture(name="sample_tokens")
def sample_tokens_fixture(parser):
    return parser.parse(SAMPLE_MD)


@pytest.fixture(name="sample_lines")
def sample_lines_fixture():
    return SAMPLE_MD.splitlines()
