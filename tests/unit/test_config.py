"""Unit tests for config.py"""

import pytest

from mdmigrate.config import load_config, load_values


def test_load_config_uses_env_db_url(monkeypatch):
    """MDMIGRATE_DB_URL env var is picked up by load_config."""
    monkeypatch.setenv("MDMIGRATE_DB_URL", "sqlite:///env.db")
    settings = load_config()
    assert settings.db_url == "sqlite:///env.db"


def test_load_config_env_overrides_config_yaml(tmp_path, monkeypatch):
    """MDMIGRATE_DEST_DIR takes precedence over config.yaml dest_dir."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("dest_dir: from-yaml\n")
    monkeypatch.setenv("MDMIGRATE_DEST_DIR", "from-env")
    settings = load_config()
    assert settings.dest_dir == "from-env"


def test_load_config_reads_config_yaml(tmp_path, monkeypatch):
    """Values in config.yaml are applied when no env var or override is set."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("docs_dir: guides\nmax_section_level: 4\n")
    settings = load_config()
    assert settings.docs_dir == "guides"
    assert settings.max_section_level == 4


def test_load_config_cli_overrides_env(monkeypatch):
    """A non-None CLI override beats the env var."""
    monkeypatch.setenv("MDMIGRATE_SOURCE_DIR", "env-src")
    settings = load_config(overrides={"source_dir": "cli-src"})
    assert settings.source_dir == "cli-src"


def test_load_config_none_override_ignored(monkeypatch):
    """None-valued overrides leave the lower-precedence value in place."""
    monkeypatch.setenv("MDMIGRATE_SOURCE_DIR", "env-src")
    settings = load_config(overrides={"source_dir": None})
    assert settings.source_dir == "env-src"


def test_load_config_defaults(tmp_path, monkeypatch):
    """Defaults apply when no config.yaml, env var, or override exists."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("MDMIGRATE_DB_URL", raising=False)
    settings = load_config()
    assert settings.db_url == "sqlite:///mdmigrate.db"
    assert settings.template_config == "app-config.yaml"
    assert settings.local_config == "app-config.local.yaml"
    assert settings.auto_prerequisites is True


def test_load_config_env_list_field(monkeypatch):
    """Comma-separated env values populate list fields."""
    monkeypatch.setenv("MDMIGRATE_OPTIONAL_ASSETS", "*.png, *.gif ,")
    settings = load_config()
    assert settings.optional_assets == ["*.png", "*.gif"]


def test_load_config_env_int_coerced(monkeypatch):
    """MDMIGRATE_MAX_SECTION_LEVEL is coerced to int."""
    monkeypatch.setenv("MDMIGRATE_MAX_SECTION_LEVEL", "5")
    assert load_config().max_section_level == 5


def test_load_config_invalid_yaml(tmp_path, monkeypatch):
    """load_config raises ValueError when config.yaml contains invalid YAML."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("key: [unclosed\n")
    with pytest.raises(ValueError, match="Invalid config.yaml"):
        load_config()


# --- values file ---

def test_load_values_none_is_empty():
    """No values file configured yields an empty mapping."""
    assert load_values(None) == {}


def test_load_values_reads_mapping(tmp_path):
    """Values are read as strings keyed by placeholder name."""
    f = tmp_path / "values.yaml"
    f.write_text("GITHUB_CLIENT_ID: abc\nPORT: 7007\n")
    assert load_values(str(f)) == {"GITHUB_CLIENT_ID": "abc", "PORT": "7007"}


def test_load_values_missing_file(tmp_path):
    """A configured but missing values file is an error."""
    with pytest.raises(ValueError, match="not found"):
        load_values(str(tmp_path / "nope.yaml"))


def test_load_values_not_a_mapping(tmp_path):
    """A values file holding a list is rejected."""
    f = tmp_path / "values.yaml"
    f.write_text("- a\n- b\n")
    with pytest.raises(ValueError, match="expected a mapping"):
        load_values(str(f))
