"""Unit tests for core config parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.config import CastConfig, resolve_store_root
from core.errors import CastConfigError


def test_from_env_reads_store_root(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Config should resolve the store root from the environment."""
    monkeypatch.setenv("CAST_STORE", str(tmp_path / "env-store"))

    config = CastConfig.from_env()

    assert config.store_root == tmp_path / "env-store"


def test_from_env_rejects_relative_store_root(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should refuse a relative storage root."""
    monkeypatch.setenv("CAST_STORE", "relative/store")

    with pytest.raises(CastConfigError, match="absolute"):
        CastConfig.from_env()


def test_from_env_leaves_store_root_unset_without_sources() -> None:
    """Config should not invent a default storage root."""
    config = CastConfig.from_env()

    assert config.store_root is None and config.config_file is None


def test_from_env_reads_yaml_config_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Config should read roots from the YAML config file."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        f"store_root: {tmp_path / 'yaml-store'}\nwork_root: {tmp_path / 'scratch'}\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("CAST_CONFIG_FILE", str(config_file))

    config = CastConfig.from_env()

    assert config.store_root == tmp_path / "yaml-store"
    assert config.work_root == tmp_path / "scratch"
    assert config.config_file == config_file


def test_environment_overrides_config_file(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    """Environment variables should take priority over the config file."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(f"store_root: {tmp_path / 'yaml-store'}\n", encoding="utf-8")
    monkeypatch.setenv("CAST_CONFIG_FILE", str(config_file))
    monkeypatch.setenv("CAST_STORE", str(tmp_path / "env-store"))

    config = CastConfig.from_env()

    assert config.store_root == tmp_path / "env-store"


def test_from_env_raises_for_invalid_yaml(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Config should fail with a config error on malformed YAML."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("store_root: [unclosed\n", encoding="utf-8")
    monkeypatch.setenv("CAST_CONFIG_FILE", str(config_file))

    with pytest.raises(CastConfigError, match="YAML"):
        CastConfig.from_env()


def test_from_env_raises_for_non_mapping_file(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    """Config should require a mapping at the top of the config file."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("- one\n- two\n", encoding="utf-8")
    monkeypatch.setenv("CAST_CONFIG_FILE", str(config_file))

    with pytest.raises(CastConfigError, match="mapping"):
        CastConfig.from_env()


def test_resolve_store_root_prefers_explicit_path(tmp_path: Path) -> None:
    """An explicit path should win over the configured root."""
    config = CastConfig(store_root=tmp_path / "configured")

    resolved = resolve_store_root(tmp_path / "explicit", config)

    assert resolved == tmp_path / "explicit"


def test_resolve_store_root_uses_config_when_no_override(tmp_path: Path) -> None:
    """The configured root should be used when no override is passed."""
    config = CastConfig(store_root=tmp_path / "configured")

    assert resolve_store_root(None, config) == tmp_path / "configured"


def test_resolve_store_root_fails_with_remediation() -> None:
    """Missing configuration should explain how to set the root."""
    with pytest.raises(CastConfigError, match="CAST_STORE"):
        resolve_store_root(None, CastConfig())


def test_require_store_root_rejects_relative_config() -> None:
    """A relative configured root should be rejected when required."""
    config = CastConfig(store_root=Path("relative"))

    with pytest.raises(CastConfigError):
        config.require_store_root()
