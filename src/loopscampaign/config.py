from __future__ import annotations

import os
import pathlib
import tomllib
from dataclasses import dataclass
from typing import Any

from platformdirs import user_config_dir

DEFAULT_BASE_URL = "https://app.loops.so/api"
DEFAULT_TIMEOUT_SECONDS = 20.0


@dataclass(frozen=True)
class Settings:
    session_token: str
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    # The dashboard authenticates with the next-auth session cookie.
    cookie_name: str = "__Secure-next-auth.session-token"

    @property
    def cookie(self) -> str:
        return f"{self.cookie_name}={self.session_token}"


class ConfigError(RuntimeError):
    pass


def _load_toml(path: pathlib.Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to parse config TOML: {path}: {e}") from e
    return data


def default_config_paths() -> list[pathlib.Path]:
    # Later files win.
    xdg = pathlib.Path(user_config_dir("loopscampaign")) / "config.toml"
    legacy = pathlib.Path.home() / ".loopscampaign.toml"
    return [xdg, legacy]


def load_settings(
    *,
    session_token: str | None = None,
    base_url: str | None = None,
    timeout_seconds: float | None = None,
) -> Settings:
    """Load settings using precedence:

    1) explicit function args
    2) env vars
    3) config file(s)
    4) defaults

    Env vars:
    - LOOPS_SESSION_TOKEN
    - LOOPS_BASE_URL
    - LOOPS_TIMEOUT_SECONDS
    """

    file_cfg: dict[str, Any] = {}
    for p in default_config_paths():
        file_cfg.update(_load_toml(p))

    env_cfg: dict[str, Any] = {
        "session_token": os.getenv("LOOPS_SESSION_TOKEN"),
        "base_url": os.getenv("LOOPS_BASE_URL"),
        "timeout_seconds": os.getenv("LOOPS_TIMEOUT_SECONDS"),
    }

    def pick(key: str, explicit: Any) -> Any:
        if explicit is not None:
            return explicit
        if env_cfg.get(key) not in (None, ""):
            return env_cfg[key]
        if file_cfg.get(key) not in (None, ""):
            return file_cfg[key]
        return None

    final_token = pick("session_token", session_token)
    if not final_token:
        raise ConfigError(
            "Missing session_token. Set LOOPS_SESSION_TOKEN or add session_token to config.toml."
        )

    final_base_url = pick("base_url", base_url) or DEFAULT_BASE_URL

    ts = pick("timeout_seconds", timeout_seconds)
    try:
        timeout_f = float(ts) if ts is not None else DEFAULT_TIMEOUT_SECONDS
    except (TypeError, ValueError) as e:
        raise ConfigError("timeout_seconds must be a number") from e

    return Settings(
        session_token=str(final_token),
        base_url=str(final_base_url).rstrip("/"),
        timeout_seconds=timeout_f,
    )
