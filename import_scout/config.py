from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import load_dotenv

from core.errors import ConfigurationError


class ConfigManager:
    """Reads the optional YAML/JSON overlay for pipeline settings once and keeps it."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._config: Optional[Dict[str, Any]] = None

    def get(self) -> Dict[str, Any]:
        if self._config is None:
            self._config = self._load()
        return dict(self._config)

    def _load(self) -> Dict[str, Any]:
        if not self._path.exists():
            raise ConfigurationError("Config overlay not found", path=str(self._path))
        text = self._path.read_text(encoding="utf-8")
        suffix = self._path.suffix.lower()
        if suffix in {".yaml", ".yml"}:
            loaded = yaml.safe_load(text) or {}
        elif suffix == ".json":
            loaded = json.loads(text)
        else:
            raise ConfigurationError(f"Unsupported config file extension: {self._path.suffix}", path=str(self._path))
        if not isinstance(loaded, dict):
            raise ConfigurationError("Config overlay must be a mapping", path=str(self._path))
        return loaded


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in {"true", "1", "yes", "on"}


def _env_int(value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"Expected an integer, got {value!r}") from exc


@dataclass
class Settings:
    """Process-wide settings; credentials come from the environment."""

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: Optional[str] = None
    serpapi_api_key: Optional[str] = None
    serpapi_base_url: str = "https://serpapi.com/search.json"
    serpapi_results_per_page: int = 10
    serpapi_trends_date: str = "today 12-m"
    aliexpress_app_key: Optional[str] = None
    aliexpress_app_secret: Optional[str] = None
    tavily_api_key: Optional[str] = None
    tavily_search_depth: str = "advanced"
    tavily_max_results: int = 5
    tavily_include_answer: bool = True
    database_url: str = "sqlite+aiosqlite:///./import_scout.db"
    geolocation_api_url: str = "http://ip-api.com/json"
    exchange_rate_api_url: str = "https://open.er-api.com/v6/latest/USD"
    exchange_rate_ttl_seconds: int = 3600
    cors_origin: str = "http://localhost:3000"
    timeouts: Dict[str, float] = field(
        default_factory=lambda: {
            "serpapi": 15.0,
            "aliexpress": 15.0,
            "tavily": 20.0,
            "geolocation": 5.0,
            "exchange_rate": 8.0,
        }
    )

    REQUIRED = ("openai_api_key", "serpapi_api_key", "tavily_api_key")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, *, load_dotenv_file: bool = True) -> "Settings":
        if env is None:
            if load_dotenv_file:
                load_dotenv()
            env = os.environ
        settings = cls(
            openai_api_key=env.get("OPENAI_API_KEY") or None,
            openai_model=env.get("OPENAI_MODEL") or cls.openai_model,
            openai_base_url=env.get("OPENAI_BASE_URL") or None,
            serpapi_api_key=env.get("SERPAPI_API_KEY") or None,
            serpapi_base_url=env.get("SERPAPI_BASE_URL") or cls.serpapi_base_url,
            serpapi_results_per_page=_env_int(env.get("SERPAPI_RESULTS_PER_PAGE"), cls.serpapi_results_per_page),
            serpapi_trends_date=env.get("SERPAPI_TRENDS_DATE") or cls.serpapi_trends_date,
            aliexpress_app_key=env.get("ALIEXPRESS_APP_KEY") or None,
            aliexpress_app_secret=env.get("ALIEXPRESS_APP_SECRET") or None,
            tavily_api_key=env.get("TAVILY_API_KEY") or None,
            tavily_search_depth=env.get("TAVILY_SEARCH_DEPTH") or cls.tavily_search_depth,
            tavily_max_results=_env_int(env.get("TAVILY_MAX_RESULTS"), cls.tavily_max_results),
            tavily_include_answer=_env_bool(env.get("TAVILY_INCLUDE_ANSWER"), cls.tavily_include_answer),
            database_url=env.get("DATABASE_URL") or cls.database_url,
            geolocation_api_url=env.get("GEOLOCATION_API_URL") or cls.geolocation_api_url,
            exchange_rate_api_url=env.get("EXCHANGE_RATE_API_URL") or cls.exchange_rate_api_url,
            cors_origin=env.get("CORS_ORIGIN") or cls.cors_origin,
        )
        overlay_path = env.get("IMPORT_SCOUT_CONFIG")
        if overlay_path:
            settings.apply_overlay(ConfigManager(Path(overlay_path)).get())
        return settings

    def apply_overlay(self, overlay: Mapping[str, Any]) -> None:
        """Merge non-secret tunables from a config file into these settings."""
        known = {f.name for f in fields(self)}
        for key, value in overlay.items():
            if key == "timeouts" and isinstance(value, Mapping):
                self.timeouts.update({k: float(v) for k, v in value.items()})
            elif key in known and not key.endswith(("_api_key", "_secret")):
                setattr(self, key, value)

    def missing_credentials(self) -> List[str]:
        return [name for name in self.REQUIRED if not getattr(self, name)]

    def validate(self) -> "Settings":
        missing = self.missing_credentials()
        if missing:
            raise ConfigurationError(
                "Missing required credentials: " + ", ".join(name.upper() for name in missing),
                missing=missing,
            )
        if self.tavily_search_depth not in {"basic", "advanced"}:
            raise ConfigurationError("TAVILY_SEARCH_DEPTH must be 'basic' or 'advanced'")
        return self

    @property
    def aliexpress_configured(self) -> bool:
        return bool(self.aliexpress_app_key and self.aliexpress_app_secret)

    def timeout_for(self, provider: str) -> float:
        return float(self.timeouts.get(provider, 15.0))


__all__ = ["ConfigManager", "Settings"]
