import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .yaml_loader import load_yaml

DEFAULT_CONFIG_PATH = "config/relay.yaml"


@dataclass
class RelayConfig:
    """Typed view over ``relay.yaml`` with environment overrides applied.

    Credentials are normally supplied through the environment only; the YAML
    file carries the policy knobs (quota, window size, prompt) so that they
    can be changed without touching code.  The raw mapping is retained for
    diagnostics.
    """

    completion_api_key: str = ""
    completion_base_url: str = "https://openrouter.ai/api/v1"
    completion_model: str = "moonshotai/kimi-k2:free"
    system_prompt: str = "You are a helpful assistant."
    completion_timeout_seconds: float = 60.0
    completion_max_retries: int = 0

    telegram_bot_token: str = ""
    telegram_api_base: str = "https://api.telegram.org"
    max_message_length: int = 4096
    telegram_timeout_seconds: float = 30.0

    store_url: str = ""
    store_project_id: str = ""
    database_id: str = "relay"

    usage_limit: int = 5
    limit_notice: str = "You got limited"
    history_window: int = 10

    dedupe_updates: bool = False
    log_level: str = "INFO"

    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        if not self.store_url:
            self.store_url = f"sqlite:///./data/{self.database_id}.db"
        if self.usage_limit < 0:
            raise ValueError("quota.limit must be non-negative")
        if self.history_window < 1:
            raise ValueError("history.window must be a positive integer")


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _from_mapping(raw: Mapping[str, Any]) -> Dict[str, Any]:
    completion = raw.get("completion", {}) or {}
    telegram = raw.get("telegram", {}) or {}
    store = raw.get("store", {}) or {}
    quota = raw.get("quota", {}) or {}
    history = raw.get("history", {}) or {}

    values: Dict[str, Any] = {
        "completion_api_key": completion.get("api_key"),
        "completion_base_url": completion.get("base_url"),
        "completion_model": completion.get("model"),
        "system_prompt": completion.get("system_prompt"),
        "completion_timeout_seconds": completion.get("timeout_seconds"),
        "completion_max_retries": completion.get("max_retries"),
        "telegram_bot_token": telegram.get("bot_token"),
        "telegram_api_base": telegram.get("api_base"),
        "max_message_length": telegram.get("max_message_length"),
        "telegram_timeout_seconds": telegram.get("timeout_seconds"),
        "store_url": store.get("url"),
        "store_project_id": store.get("project_id"),
        "database_id": store.get("database_id"),
        "usage_limit": quota.get("limit"),
        "limit_notice": quota.get("notice"),
        "history_window": history.get("window"),
        "dedupe_updates": raw.get("dedupe_updates"),
        "log_level": raw.get("log_level"),
    }
    return {k: v for k, v in values.items() if v is not None}


_ENV_OVERRIDES = {
    "OPENROUTER_API_KEY": ("completion_api_key", str),
    "COMPLETION_BASE_URL": ("completion_base_url", str),
    "COMPLETION_MODEL": ("completion_model", str),
    "TELEGRAM_BOT_TOKEN": ("telegram_bot_token", str),
    "TELEGRAM_API_BASE": ("telegram_api_base", str),
    "DATABASE_URL": ("store_url", str),
    "STORE_PROJECT_ID": ("store_project_id", str),
    "DATABASE_ID": ("database_id", str),
    "USAGE_LIMIT": ("usage_limit", int),
    "HISTORY_WINDOW": ("history_window", int),
    "DEDUPE_UPDATES": ("dedupe_updates", _as_bool),
    "LOG_LEVEL": ("log_level", str),
}


def load_relay_config(
    path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None
) -> RelayConfig:
    """Load the relay configuration and return a :class:`RelayConfig`.

    Parameters
    ----------
    path:
        Location of the YAML file.  Defaults to ``$RELAY_CONFIG`` and then to
        ``config/relay.yaml``; a missing file is not an error.
    environ:
        Mapping consulted for overrides, ``os.environ`` when omitted.
    """

    env = os.environ if environ is None else environ
    path = path or env.get("RELAY_CONFIG") or DEFAULT_CONFIG_PATH
    raw = load_yaml(path) if Path(path).exists() else {}

    values = _from_mapping(raw)
    for var, (attr, cast) in _ENV_OVERRIDES.items():
        if env.get(var):
            values[attr] = cast(env[var])
    for attr in ("completion_timeout_seconds", "telegram_timeout_seconds"):
        if attr in values:
            values[attr] = float(values[attr])
    for attr in ("usage_limit", "history_window", "max_message_length", "completion_max_retries"):
        if attr in values:
            values[attr] = int(values[attr])
    if "dedupe_updates" in values:
        values["dedupe_updates"] = _as_bool(values["dedupe_updates"])
    return RelayConfig(raw=raw, **values)


__all__ = ["RelayConfig", "load_relay_config", "DEFAULT_CONFIG_PATH"]
