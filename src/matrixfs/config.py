"""Configuration loader: YAML file with environment variable fallbacks."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml

DEFAULT_ADDRESS = "https://matrix.org"
GUEST_USER = "guest"
DEFAULT_HISTORY_WINDOW = 50
_MAX_HISTORY_WINDOW = 1000


class InvitePolicy(str, Enum):
    NOTIFY = "notify"
    AUTO_JOIN = "auto_join"
    IGNORE = "ignore"


@dataclass
class MatrixConfig:
    address: str = DEFAULT_ADDRESS
    user: str = GUEST_USER
    password: str = ""
    device_id: str = "matrixfs"
    sync_timeout_ms: int = 30000

    @property
    def is_guest(self) -> bool:
        return self.user == GUEST_USER


@dataclass
class AppSettings:
    data_dir: Path = field(default_factory=lambda: Path.home() / ".matrixfs")
    buffer_dir: Path | None = None
    status_buffer: str = "server"
    invite_policy: InvitePolicy = InvitePolicy.NOTIFY
    shutdown_grace: float = 5.0

    @property
    def buffers_root(self) -> Path:
        return self.buffer_dir or self.data_dir / "buffers"


@dataclass
class RedactionConfig:
    history_window: int = DEFAULT_HISTORY_WINDOW


@dataclass
class AppConfig:
    matrix: MatrixConfig = field(default_factory=MatrixConfig)
    app: AppSettings = field(default_factory=AppSettings)
    redaction: RedactionConfig = field(default_factory=RedactionConfig)


def _get_config_path(data_dir: Path | None = None) -> Path:
    if data_dir:
        return data_dir / "config.yaml"
    return Path.home() / ".matrixfs" / "config.yaml"


def normalize_address(address: str) -> str:
    """Return *address* as an absolute URL, defaulting the scheme to https."""
    address = address.strip()
    if not address:
        raise ValueError("Matrix server address is empty")
    parsed = urlparse(address)
    if not parsed.scheme or not parsed.netloc:
        # "matrix.example.org" parses as a bare path; re-parse with a scheme so netloc is set
        parsed = urlparse(f"https://{address.split('://', 1)[-1]}")
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"Unsupported URL scheme: {parsed.scheme}")
    return parsed.geturl().rstrip("/")


def _parse_invite_policy(raw: Any) -> InvitePolicy:
    try:
        return InvitePolicy(str(raw).lower())
    except ValueError:
        choices = ", ".join(p.value for p in InvitePolicy)
        raise ValueError(f"Invalid invite_policy '{raw}'. Expected one of: {choices}") from None


def load_config(config_path: Path | None = None) -> AppConfig:
    raw: dict[str, Any] = {}
    path = config_path or _get_config_path()

    if path.exists():
        with open(path) as f:
            raw = yaml.safe_load(f) or {}

    mx_raw = raw.get("matrix") or {}
    address = mx_raw.get("address") or os.environ.get("MATRIXFS_ADDRESS", DEFAULT_ADDRESS)
    user = mx_raw.get("user") or os.environ.get("MATRIXFS_USER", GUEST_USER)
    password = mx_raw.get("password") or os.environ.get("MATRIXFS_PASSWORD", "")
    device_id = mx_raw.get("device_id") or os.environ.get("MATRIXFS_DEVICE_ID", "matrixfs")
    sync_timeout_ms = int(mx_raw.get("sync_timeout_ms") or os.environ.get("MATRIXFS_SYNC_TIMEOUT_MS", "30000"))

    if user != GUEST_USER and not password:
        raise ValueError(
            f"Matrix password is required for user '{user}'. Set 'matrix.password' in config.yaml "
            f"({path}) or MATRIXFS_PASSWORD environment variable, or use the '{GUEST_USER}' user."
        )

    matrix = MatrixConfig(
        address=normalize_address(address),
        user=user,
        password=password,
        device_id=device_id,
        sync_timeout_ms=max(0, sync_timeout_ms),
    )

    app_raw = raw.get("app") or {}
    data_dir = Path(os.path.expanduser(app_raw.get("data_dir") or os.environ.get("MATRIXFS_DATA_DIR", "~/.matrixfs")))
    buffer_dir_raw = app_raw.get("buffer_dir") or os.environ.get("MATRIXFS_BUFFER_DIR", "")
    invite_policy = _parse_invite_policy(app_raw.get("invite_policy") or os.environ.get("MATRIXFS_INVITE_POLICY", "notify"))

    app_settings = AppSettings(
        data_dir=data_dir,
        buffer_dir=Path(os.path.expanduser(buffer_dir_raw)) if buffer_dir_raw else None,
        status_buffer=app_raw.get("status_buffer", "server"),
        invite_policy=invite_policy,
        shutdown_grace=float(app_raw.get("shutdown_grace", 5.0)),
    )

    red_raw = raw.get("redaction") or {}
    window = int(red_raw.get("history_window") or os.environ.get("MATRIXFS_HISTORY_WINDOW", DEFAULT_HISTORY_WINDOW))
    redaction = RedactionConfig(history_window=max(1, min(window, _MAX_HISTORY_WINDOW)))

    app_settings.data_dir.mkdir(parents=True, exist_ok=True)
    try:
        app_settings.data_dir.chmod(stat.S_IRWXU)  # 0700
        if path.exists():
            path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 0600
    except OSError:
        pass  # May fail on Windows or non-owned files

    return AppConfig(matrix=matrix, app=app_settings, redaction=redaction)


def create_config(config_path: Path | None = None, *, overwrite: bool = False) -> Path:
    """Write a default config.yaml and return its path."""
    path = config_path or _get_config_path()
    if path.exists() and not overwrite:
        raise ValueError(f"Config file already exists: {path}")

    defaults = AppConfig()
    raw = {
        "matrix": {
            "address": defaults.matrix.address,
            "user": defaults.matrix.user,
            "password": "",
            "device_id": defaults.matrix.device_id,
        },
        "app": {
            "status_buffer": defaults.app.status_buffer,
            "invite_policy": defaults.app.invite_policy.value,
        },
        "redaction": {
            "history_window": defaults.redaction.history_window,
        },
    }

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(raw, f, default_flow_style=False, sort_keys=False)
    try:
        path.chmod(stat.S_IRUSR | stat.S_IWUSR)
    except OSError:
        pass
    return path
