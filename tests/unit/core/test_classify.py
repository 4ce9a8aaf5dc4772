"""Unit tests for core/classify.py"""

import pytest

from mdmigrate.core.classify import (
    RULES,
    AddImport,
    CopyPath,
    DeletePattern,
    Generic,
    InstallPackage,
    InstructionKind,
    RemoveImport,
    Rule,
    UpdateConfig,
    classify,
    split_imports,
)
from mdmigrate.core.models import CodeBlock, Step, StepKind


def _step(text: str, code: str = None, language: str = "ts") -> Step:
    snippet = CodeBlock(language=language, content=code, line=0) if code is not None else None
    return Step(number=1, kind=StepKind.numbered, instruction_text=text, snippet=snippet)


@pytest.mark.parametrize("text, kind", [
    ("Copy the file `a.ts` to `b.ts`", InstructionKind.copy_path),
    ("Create a file named `x.ts`", InstructionKind.copy_path),
    ("Delete the sample component", InstructionKind.delete_pattern),
    ("Update the config in `app-config.yaml`", InstructionKind.update_config),
    ("Add the following import to `App.tsx`", InstructionKind.add_import),
    ("Drop the import of `@old/pkg`", InstructionKind.remove_import),
    ("Install the required packages", InstructionKind.install_package),
    ("Restart the dev server", InstructionKind.generic),
])
def test_classify_kinds(text, kind):
    """Each keyword rule maps to its instruction kind; no match is generic."""
    assert classify(_step(text)).kind == kind


def test_classify_tie_break_first_rule_wins():
    """Text matching several rules takes the earliest rule in order."""
    ins = classify(_step("Copy the file and remove the old one, then update config"))
    assert isinstance(ins, CopyPath)


def test_classify_remove_import_is_delete_first():
    """'remove ... import' matches the delete rule before the remove-import rule."""
    ins = classify(_step("Remove the import of `@old/pkg`"))
    assert isinstance(ins, DeletePattern)
    assert ins.modules == ["@old/pkg"]
    assert ins.snippets == []


def test_classify_copy_from_to_backticks():
    """'from `a` to `b`' fills source and destination."""
    ins = classify(_step("Copy the helper from `core/h.ts` to `packages/h.ts`"))
    assert (ins.source, ins.destination) == ("core/h.ts", "packages/h.ts")


def test_classify_copy_single_path():
    """A single path is both source and destination."""
    ins = classify(_step("Copy the file `src/theme/index.ts`"))
    assert (ins.source, ins.destination) == ("src/theme/index.ts", "src/theme/index.ts")


def test_classify_copy_plain_from_to():
    """Unquoted 'from x to y' is recognised."""
    ins = classify(_step("Copy files from core/assets into app/assets."))
    assert (ins.source, ins.destination) == ("core/assets", "app/assets")


def test_classify_copy_without_path():
    """A copy step without any path has no source."""
    assert classify(_step("Copy the file somewhere sensible")).source is None


def test_classify_delete_collects_snippets_and_target():
    """Inline non-path code and the attached block are deletion snippets; a path is the target."""
    ins = classify(_step("Delete `<Banner />` from `packages/app/src/App.tsx`", code="<OldBanner />\n"))
    assert ins.target == "packages/app/src/App.tsx"
    assert ins.snippets == ["<Banner />", "<OldBanner />"]


def test_classify_delete_ignores_bare_identifiers():
    """Bare identifiers are never deletion snippets; full statements are, even when they contain a slash."""
    ins = classify(_step(
        "Remove the `createApp` call and `backend.add(import('@x/y'));` from `packages/app/src/App.tsx`"
    ))
    assert ins.target == "packages/app/src/App.tsx"
    assert ins.snippets == ["backend.add(import('@x/y'));"]
    assert ins.modules == []


def test_classify_update_target():
    """Update config picks the first path token as target."""
    ins = classify(_step("Update the config in `app-config.yaml`"))
    assert isinstance(ins, UpdateConfig)
    assert ins.target == "app-config.yaml"


def test_classify_add_import_statements():
    """Inline import code and multi-line snippet imports become statements."""
    code = "import {\n  A,\n  B,\n} from '@x/ab';\nimport C from 'c';\n\nconst x = 1;\n"
    ins = classify(_step("Add the import `import D from 'd';` to `packages/app/src/App.tsx`", code=code))
    assert isinstance(ins, AddImport)
    assert ins.target == "packages/app/src/App.tsx"
    assert ins.statements == [
        "import D from 'd';",
        "import {\n  A,\n  B,\n} from '@x/ab';",
        "import C from 'c';",
    ]


def test_classify_remove_import_modules():
    """Module names in backticks are collected; source files become the target."""
    ins = classify(_step("Strip the import of `@old/pkg` from `src/App.tsx`"))
    assert isinstance(ins, RemoveImport)
    assert ins.modules == ["@old/pkg"]
    assert ins.target == "src/App.tsx"


def test_classify_install_packages():
    """Packages come from backticks and from yarn/npm commands in the snippet, deduplicated."""
    code = "yarn --cwd packages/app add @x/plugin react-use\nnpm install -D @x/plugin\n"
    ins = classify(_step("Install the packages `@x/plugin`", code=code, language="bash"))
    assert isinstance(ins, InstallPackage)
    assert ins.packages == ["@x/plugin", "react-use"]


def test_classify_generic_keeps_step():
    """A generic instruction carries the original step."""
    step = _step("Restart the dev server")
    ins = classify(step)
    assert isinstance(ins, Generic)
    assert ins.step == step


def test_classify_custom_rules():
    """Rule order can be overridden by passing a rule tuple."""
    rules = (Rule(InstructionKind.install_package, lambda t: True, RULES[-1].build),)
    assert classify(_step("anything"), rules).kind == InstructionKind.install_package


def test_split_imports_ignores_other_code():
    """Only import statements are returned."""
    assert split_imports("const a = 1;\nimport x from 'x';\nfoo();\n") == ["import x from 'x';"]
