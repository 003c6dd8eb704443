from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import SimpleNamespace
from typing import Mapping, Optional

import yaml

from .cache import DEFAULT_CACHE_KEY

LOGGER = logging.getLogger(__name__)

_BOOLEAN_TRUE = {"1", "true", "yes", "on"}

DEFAULT_APP_ID = "construction-budget-pro-v2"
DEFAULT_POLL_INTERVAL = 2.0

DEFAULT_ANALYSIS_PROMPT = (
    "分析以下工程數據：{projects}。"
    "請識別異常項目、計算健康度並提供 3 點專業管理建議（繁體中文）。"
)


@dataclass(frozen=True)
class RemoteConfig:
    """Location and credentials of the shared project document."""

    root: Path
    access_key: str
    poll_interval: Optional[float] = DEFAULT_POLL_INTERVAL


@dataclass(frozen=True)
class AIConfig:
    enabled: bool = True
    api_key_path: Optional[Path] = None
    api_key_env: str = "OPENAI_API_KEY"
    model: str = "gpt-4o-mini"
    prompt_template: str = DEFAULT_ANALYSIS_PROMPT
    max_context_chars: int = 15000

    def resolve_api_key(self) -> Optional[str]:
        """Return the API key from the environment or configured file."""
        if self.api_key_env and self.api_key_env in os.environ:
            token = os.environ[self.api_key_env].strip()
            if token:
                return token
        if self.api_key_path:
            try:
                content = Path(self.api_key_path).expanduser().read_text(encoding="utf-8")
            except FileNotFoundError:
                return None
            except OSError:
                LOGGER.debug("Unable to read AI API key from %s", self.api_key_path)
                return None
            token = content.strip()
            return token or None
        return None


@dataclass(frozen=True)
class Config:
    """Runtime configuration assembled from environment variables and CLI options."""

    cache_dir: Path
    cache_key: str
    app_id: str
    output_dir: Path
    remote: Optional[RemoteConfig] = None
    ai: AIConfig = field(default_factory=AIConfig)
    verbose: bool = False


def _to_path(value: object | None) -> Optional[Path]:
    if value is None:
        return None
    if isinstance(value, Path):
        return value.expanduser().resolve()
    text = str(value).strip()
    if not text:
        return None
    return Path(text).expanduser().resolve()


def _to_float(value: object | None) -> Optional[float]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _flag(value: object | None) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _BOOLEAN_TRUE


def _namespace(cli_args: object | None) -> SimpleNamespace:
    if cli_args is None:
        return SimpleNamespace()
    if isinstance(cli_args, SimpleNamespace):
        return cli_args
    if hasattr(cli_args, "__dict__"):
        return SimpleNamespace(**{k: v for k, v in vars(cli_args).items()})
    return SimpleNamespace()


def _read_remote_source(value: str) -> Optional[dict]:
    if value.startswith("{"):
        return json.loads(value)
    path = Path(value).expanduser()
    if not path.exists():
        LOGGER.warning("Remote configuration file not found: %s", path)
        return None
    with path.open("r", encoding="utf-8") as f:
        if path.suffix.lower() in {".yaml", ".yml"}:
            return yaml.safe_load(f)
        return json.load(f)


def parse_remote_config(value: object | None) -> Optional[RemoteConfig]:
    """
    Interpret ``COSTTRACK_REMOTE_CONFIG``: inline JSON or a JSON/YAML file path.

    Returns ``None`` (offline) when the value is missing, unreadable, or lacks
    a usable ``root`` and ``api_key``.
    """

    text = str(value or "").strip()
    if not text:
        return None
    try:
        raw = _read_remote_source(text)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        LOGGER.warning("Ignoring unreadable remote configuration: %s", exc)
        return None
    if not isinstance(raw, dict):
        return None

    access_key = str(raw.get("api_key") or raw.get("apiKey") or "").strip()
    if not access_key or access_key == "undefined":
        return None
    root = _to_path(raw.get("root"))
    if root is None:
        return None
    poll_interval = _to_float(raw.get("poll_interval"))
    return RemoteConfig(
        root=root,
        access_key=access_key,
        poll_interval=DEFAULT_POLL_INTERVAL if poll_interval is None else poll_interval,
    )


def load_config(env: Mapping[str, str], cli_args: object | None = None) -> Config:
    """Build a runtime :class:`Config` from environment variables and CLI options."""

    cache_dir = _to_path(env.get("COSTTRACK_CACHE_DIR")) or (Path.home() / ".costtrack").resolve()
    cache_key = (env.get("COSTTRACK_CACHE_KEY") or "").strip() or DEFAULT_CACHE_KEY
    app_id = (env.get("COSTTRACK_APP_ID") or "").strip() or DEFAULT_APP_ID
    output_dir = _to_path(env.get("COSTTRACK_OUTPUT_DIR")) or Path.cwd().resolve()
    remote_source: object | None = env.get("COSTTRACK_REMOTE_CONFIG")
    disable_ai = _flag(env.get("DISABLE_OPENAI"))
    api_key_path = _to_path(env.get("OPENAI_API_KEY_FILE"))
    model = (env.get("OPENAI_MODEL") or "").strip() or AIConfig.model
    verbose = False

    cli_ns = _namespace(cli_args)
    if getattr(cli_ns, "cache_dir", None):
        cache_dir = _to_path(cli_ns.cache_dir) or cache_dir
    if getattr(cli_ns, "app_id", None):
        app_id = str(cli_ns.app_id).strip() or app_id
    if getattr(cli_ns, "output_dir", None):
        output_dir = _to_path(cli_ns.output_dir) or output_dir
    if getattr(cli_ns, "remote_config", None):
        remote_source = cli_ns.remote_config
    if getattr(cli_ns, "disable_ai", False):
        disable_ai = True
    if getattr(cli_ns, "verbose", False):
        verbose = bool(cli_ns.verbose)

    return Config(
        cache_dir=cache_dir,
        cache_key=cache_key,
        app_id=app_id,
        output_dir=output_dir,
        remote=parse_remote_config(remote_source),
        ai=AIConfig(enabled=not disable_ai, api_key_path=api_key_path, model=model),
        verbose=verbose,
    )


__all__ = ["Config", "RemoteConfig", "AIConfig", "load_config", "parse_remote_config", "DEFAULT_APP_ID"]
