"""Tests for config loading and address normalization."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from matrixfs.config import (
    DEFAULT_ADDRESS,
    InvitePolicy,
    create_config,
    load_config,
    normalize_address,
)

_ENV = (
    "MATRIXFS_ADDRESS",
    "MATRIXFS_USER",
    "MATRIXFS_PASSWORD",
    "MATRIXFS_DEVICE_ID",
    "MATRIXFS_SYNC_TIMEOUT_MS",
    "MATRIXFS_DATA_DIR",
    "MATRIXFS_BUFFER_DIR",
    "MATRIXFS_INVITE_POLICY",
    "MATRIXFS_HISTORY_WINDOW",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)


def _write(path: Path, data: dict) -> Path:
    path.write_text(yaml.dump(data))
    return path


class TestNormalizeAddress:
    def test_adds_scheme(self) -> None:
        assert normalize_address("matrix.example.org") == "https://matrix.example.org"

    def test_keeps_port_and_http(self) -> None:
        assert normalize_address("localhost:8008") == "https://localhost:8008"
        assert normalize_address("http://localhost:8008/") == "http://localhost:8008"

    def test_rejects_bad_input(self) -> None:
        with pytest.raises(ValueError):
            normalize_address("   ")
        with pytest.raises(ValueError, match="scheme"):
            normalize_address("ftp://matrix.example.org")


class TestLoadConfig:
    def test_defaults_to_guest(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "config.yaml", {"app": {"data_dir": str(tmp_path / "data")}})
        config = load_config(path)
        assert config.matrix.address == DEFAULT_ADDRESS
        assert config.matrix.is_guest
        assert config.app.invite_policy is InvitePolicy.NOTIFY
        assert config.app.buffers_root == tmp_path / "data" / "buffers"
        assert config.redaction.history_window == 50
        assert (tmp_path / "data").is_dir()

    def test_yaml_values(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "config.yaml",
            {
                "matrix": {"address": "hs.example.org", "user": "@alice:hs", "password": "pw"},
                "app": {
                    "data_dir": str(tmp_path / "data"),
                    "buffer_dir": str(tmp_path / "bufs"),
                    "invite_policy": "auto_join",
                    "status_buffer": "status",
                },
                "redaction": {"history_window": 20},
            },
        )
        config = load_config(path)
        assert config.matrix.address == "https://hs.example.org"
        assert config.matrix.user == "@alice:hs"
        assert not config.matrix.is_guest
        assert config.app.buffers_root == tmp_path / "bufs"
        assert config.app.invite_policy is InvitePolicy.AUTO_JOIN
        assert config.app.status_buffer == "status"
        assert config.redaction.history_window == 20

    def test_env_fallbacks(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MATRIXFS_ADDRESS", "https://env.example.org")
        monkeypatch.setenv("MATRIXFS_USER", "@bob:hs")
        monkeypatch.setenv("MATRIXFS_PASSWORD", "secret")
        monkeypatch.setenv("MATRIXFS_DATA_DIR", str(tmp_path / "envdata"))
        monkeypatch.setenv("MATRIXFS_HISTORY_WINDOW", "5000")
        config = load_config(tmp_path / "missing.yaml")
        assert config.matrix.address == "https://env.example.org"
        assert config.matrix.password == "secret"
        assert config.app.data_dir == tmp_path / "envdata"
        assert config.redaction.history_window == 1000

    def test_empty_sections(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MATRIXFS_DATA_DIR", str(tmp_path / "data"))
        path = tmp_path / "config.yaml"
        path.write_text("matrix:\napp:\nredaction:\n")
        config = load_config(path)
        assert config.matrix.is_guest
        assert config.app.data_dir == tmp_path / "data"
        assert config.redaction.history_window == 50

    def test_password_required(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "config.yaml",
            {"matrix": {"user": "@alice:hs"}, "app": {"data_dir": str(tmp_path / "data")}},
        )
        with pytest.raises(ValueError, match="password"):
            load_config(path)

    def test_invalid_invite_policy(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "config.yaml",
            {"app": {"data_dir": str(tmp_path / "data"), "invite_policy": "sometimes"}},
        )
        with pytest.raises(ValueError, match="invite_policy"):
            load_config(path)


class TestCreateConfig:
    def test_writes_loadable_file(self, tmp_path: Path) -> None:
        path = create_config(tmp_path / "conf" / "config.yaml")
        raw = yaml.safe_load(path.read_text())
        assert raw["matrix"]["user"] == "guest"
        assert raw["app"]["invite_policy"] == "notify"
        assert path.stat().st_mode & 0o777 == 0o600

    def test_refuses_overwrite(self, tmp_path: Path) -> None:
        path = create_config(tmp_path / "config.yaml")
        with pytest.raises(ValueError, match="already exists"):
            create_config(path)
        assert create_config(path, overwrite=True) == path
