from __future__ import annotations

import ipaddress
import os
import stat
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, field_validator

DEFAULT_DATA_DIR = Path.home() / ".session_insights"
DEFAULT_CONFIG_PATH = DEFAULT_DATA_DIR / "config.toml"
DB_FILENAME = "session_insights.db"
DEFAULT_DB_PATH = DEFAULT_DATA_DIR / DB_FILENAME
ENV_PREFIX = "SESSION_INSIGHTS_"


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)
    _data_dir: Path = PrivateAttr(default=DEFAULT_DATA_DIR)
    _db_path: Path = PrivateAttr(default=DEFAULT_DB_PATH)

    web_host: str = "127.0.0.1"
    web_port: int = Field(default=8780, ge=1, le=65535)
    dev_enable_docs: bool = False
    dev_enable_premium_toggle: bool = False
    log_format: str = "text"
    history_window: int = Field(default=5, ge=1, le=50)
    synergy_window: int = Field(default=15, ge=2, le=200)
    synergy_min_sessions: int = Field(default=5, ge=2, le=200)
    synergy_threshold: float = Field(default=0.45, ge=0.0, le=1.0)
    mood_ema_alpha: float = Field(default=0.35, gt=0.0, le=1.0)

    @field_validator("web_host")
    @classmethod
    def validate_localhost_only(cls, value: str) -> str:
        host = value.strip()
        if host == "localhost":
            return host
        try:
            ip = ipaddress.ip_address(host)
        except ValueError as exc:
            raise ValueError("web_host must be localhost or a loopback IP") from exc
        if not ip.is_loopback:
            raise ValueError("web_host must be a loopback address")
        return host

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, value: str) -> str:
        lowered = value.strip().lower()
        if lowered not in {"text", "json"}:
            raise ValueError("log_format must be 'text' or 'json'")
        return lowered

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def db_path(self) -> Path:
        return self._db_path


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"invalid boolean: {raw}")


def _env_overrides() -> dict[str, Any]:
    mapping: dict[str, tuple[str, str]] = {
        f"{ENV_PREFIX}HOST": ("web_host", "str"),
        f"{ENV_PREFIX}PORT": ("web_port", "int"),
        f"{ENV_PREFIX}DEV_ENABLE_DOCS": ("dev_enable_docs", "bool"),
        f"{ENV_PREFIX}DEV_ENABLE_PREMIUM_TOGGLE": ("dev_enable_premium_toggle", "bool"),
        f"{ENV_PREFIX}LOG_FORMAT": ("log_format", "str"),
        f"{ENV_PREFIX}HISTORY_WINDOW": ("history_window", "int"),
        f"{ENV_PREFIX}SYNERGY_WINDOW": ("synergy_window", "int"),
        f"{ENV_PREFIX}SYNERGY_MIN_SESSIONS": ("synergy_min_sessions", "int"),
        f"{ENV_PREFIX}SYNERGY_THRESHOLD": ("synergy_threshold", "float"),
        f"{ENV_PREFIX}MOOD_EMA_ALPHA": ("mood_ema_alpha", "float"),
    }
    out: dict[str, Any] = {}
    for env_name, (field_name, kind) in mapping.items():
        raw = os.getenv(env_name)
        if raw is None:
            continue
        if kind == "int":
            out[field_name] = int(raw)
        elif kind == "float":
            out[field_name] = float(raw)
        elif kind == "bool":
            out[field_name] = _parse_bool(raw)
        else:
            out[field_name] = raw
    return out


def secure_path(path: Path, mode: int) -> None:
    path.chmod(mode)
    actual = stat.S_IMODE(path.stat().st_mode)
    if actual != mode:
        raise PermissionError(f"failed to enforce permissions {oct(mode)} on {path}")


def default_config_toml() -> str:
    return """web_host = \"127.0.0.1\"
web_port = 8780
dev_enable_docs = false
dev_enable_premium_toggle = false
log_format = \"text\"
history_window = 5
synergy_window = 15
synergy_min_sessions = 5
synergy_threshold = 0.45
mood_ema_alpha = 0.35
"""


def ensure_app_paths(config_path: Path = DEFAULT_CONFIG_PATH) -> None:
    data_dir = config_path.expanduser().resolve(strict=False).parent
    if data_dir.exists() and data_dir.is_symlink():
        raise ValueError(f"refusing symlinked data directory: {data_dir}")
    data_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
    secure_path(data_dir, 0o700)

    if config_path.exists() and config_path.is_symlink():
        raise ValueError(f"refusing symlinked config file: {config_path}")
    if not config_path.exists():
        config_path.write_text(default_config_toml(), encoding="utf-8")
    secure_path(config_path, 0o600)


def load_config(config_path: Path | None = None) -> AppConfig:
    path = (config_path or DEFAULT_CONFIG_PATH).expanduser().resolve(strict=False)
    ensure_app_paths(path)
    parsed: dict[str, Any]
    try:
        with path.open("rb") as handle:
            parsed = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"invalid config at {path}: {exc}") from exc
    try:
        parsed.update(_env_overrides())
        config = AppConfig.model_validate(parsed)
    except ValidationError as exc:
        raise ValueError(f"invalid config at {path}: {exc}") from exc
    config._data_dir = path.parent
    config._db_path = path.parent / DB_FILENAME
    return config
