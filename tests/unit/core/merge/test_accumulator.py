"""Unit tests for core/merge/accumulator.py"""

from mdmigrate.core.merge.accumulator import ConfigAccumulator, local_only
from mdmigrate.core.merge.deep import key_paths, load_document
from mdmigrate.core.utils.fs import FileSystem
from mdmigrate.core.validate import check_dual_parity


GITHUB = {"auth": {"providers": {"github": {"development": {"clientId": "${CLIENT_ID}"}}}}}


def test_dual_mode_requires_captured_value():
    """Placeholders without values keep the accumulator in single-document mode."""
    acc = ConfigAccumulator()
    acc.contribute(GITHUB, "github")
    assert not acc.dual_mode
    acc.contribute({"backend": {"port": 7007}}, "backend", {"UNUSED": "x"})
    assert not acc.dual_mode
    acc.contribute(GITHUB, "github values", {"CLIENT_ID": "abc"})
    assert acc.dual_mode


def test_contribute_copies_fragment():
    """Later changes to the caller's fragment do not leak into the accumulator."""
    acc = ConfigAccumulator()
    fragment = {"a": {"b": 1}}
    acc.contribute(fragment, "a")
    fragment["a"]["b"] = 2
    assert acc.template_fragment() == {"a": {"b": 1}}


def test_template_and_local_fragments():
    """The local fragment substitutes values; the template keeps placeholders."""
    acc = ConfigAccumulator()
    acc.contribute(GITHUB, "github", {"CLIENT_ID": "abc"})
    acc.contribute({"app": {"title": "Portal"}}, "app")
    assert acc.template_fragment()["auth"]["providers"]["github"]["development"]["clientId"] == "${CLIENT_ID}"
    assert acc.local_fragment()["auth"]["providers"]["github"]["development"]["clientId"] == "abc"
    assert acc.local_fragment()["app"] == {"title": "Portal"}


def test_build_dual_documents_skipped_without_literals(tmp_path):
    """No captured values means no local document is written."""
    acc = ConfigAccumulator()
    acc.contribute(GITHUB, "github")
    assert acc.build_dual_documents(tmp_path) is None
    assert not (tmp_path / "app-config.local.yaml").exists()


def test_build_dual_documents_key_parity(tmp_path):
    """Both documents expose the same key paths, seeded from the existing template."""
    (tmp_path / "app-config.yaml").write_text("app:\n  title: Portal\nbackend:\n  baseUrl: ${BACKEND_URL}\n")
    acc = ConfigAccumulator(fs=FileSystem())
    acc.contribute(GITHUB, "github", {"CLIENT_ID": "abc"})
    pair = acc.build_dual_documents(tmp_path)

    template = load_document(pair.template_path)
    local = load_document(pair.local_path)
    assert key_paths(template) == key_paths(local)
    assert template["auth"]["providers"]["github"]["development"]["clientId"] == "${CLIENT_ID}"
    assert local["auth"]["providers"]["github"]["development"]["clientId"] == "abc"
    assert local["backend"]["baseUrl"] == "${BACKEND_URL}"


def test_build_dual_documents_preserves_existing_local(tmp_path):
    """An existing local document keeps its own keys and gains the new ones."""
    (tmp_path / "app-config.yaml").write_text("app:\n  title: Portal\n")
    (tmp_path / "app-config.local.yaml").write_text("app:\n  title: Local Portal\n")
    acc = ConfigAccumulator()
    acc.contribute(GITHUB, "github", {"CLIENT_ID": "abc"})
    acc.build_dual_documents(tmp_path)
    local = load_document(tmp_path / "app-config.local.yaml")
    assert local["app"]["title"] == "Local Portal"
    assert local["auth"]["providers"]["github"]["development"]["clientId"] == "abc"


def test_build_dual_documents_existing_local_gains_template_keys(tmp_path):
    """A comment-only local document still receives every template key path."""
    (tmp_path / "app-config.yaml").write_text("app:\n  title: Portal\nbackend:\n  baseUrl: http://localhost:7007\n")
    (tmp_path / "app-config.local.yaml").write_text("# local overrides\n")
    acc = ConfigAccumulator()
    acc.contribute(GITHUB, "github", {"CLIENT_ID": "abc"})
    pair = acc.build_dual_documents(tmp_path)

    assert check_dual_parity(pair.template_path, pair.local_path).ok
    local = load_document(pair.local_path)
    assert local["app"]["title"] == "Portal"
    assert local["backend"]["baseUrl"] == "http://localhost:7007"
    assert local["auth"]["providers"]["github"]["development"]["clientId"] == "abc"


def test_build_dual_documents_carries_local_only_keys(tmp_path):
    """Keys only the local document has reach the template as placeholders, never as literals."""
    (tmp_path / "app-config.yaml").write_text("app:\n  title: Portal\n")
    (tmp_path / "app-config.local.yaml").write_text("auth:\n  session:\n    secret: hunter2\n")
    acc = ConfigAccumulator()
    acc.contribute(GITHUB, "github", {"CLIENT_ID": "abc"})
    pair = acc.build_dual_documents(tmp_path)

    template = load_document(pair.template_path)
    assert key_paths(template) == key_paths(load_document(pair.local_path))
    assert template["auth"]["session"] == {"secret": "${AUTH_SESSION_SECRET}"}
    assert "hunter2" not in pair.template_path.read_text()


def test_local_only():
    """Only keys missing from the template are returned, as placeholders named by their path."""
    template = {"app": {"title": "x"}, "auth": None}
    local = {"app": {"title": "y", "port": 3000}, "auth": {"secret": "s"}, "tags": []}
    assert local_only(template, local) == {
        "app": {"port": "${APP_PORT}"}, "auth": {"secret": "${AUTH_SECRET}"}, "tags": "${TAGS}",
    }


def test_flush_single_mode_merges_template_only(tmp_path):
    """flush without literals merges contributions into the template document only."""
    (tmp_path / "app-config.yaml").write_text("app:\n  title: Portal\n")
    acc = ConfigAccumulator()
    acc.contribute({"auth": {"environment": "development"}}, "auth")
    assert acc.flush(tmp_path) is None
    assert load_document(tmp_path / "app-config.yaml") == {
        "app": {"title": "Portal"}, "auth": {"environment": "development"},
    }
    assert not (tmp_path / "app-config.local.yaml").exists()


def test_flush_dual_mode_is_idempotent(tmp_path):
    """A second flush leaves both documents byte-identical."""
    (tmp_path / "app-config.yaml").write_text("app:\n  title: Portal\n")
    acc = ConfigAccumulator()
    acc.contribute(GITHUB, "github", {"CLIENT_ID": "abc"})
    acc.flush(tmp_path)
    first = ((tmp_path / "app-config.yaml").read_text(), (tmp_path / "app-config.local.yaml").read_text())
    acc.flush(tmp_path)
    second = ((tmp_path / "app-config.yaml").read_text(), (tmp_path / "app-config.local.yaml").read_text())
    assert first == second
