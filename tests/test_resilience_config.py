import asyncio
from pathlib import Path

import pytest

from core.errors import ConfigurationError
from import_scout.cache import TTLCache
from import_scout.config import ConfigManager, Settings
from import_scout.resilience import CircuitBreaker, CircuitBreakerOpen, ProviderGuard


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_config_manager_reads_overlay_once(tmp_path: Path):
    config_path = tmp_path / "import_scout.yaml"
    config_path.write_text("serpapi_results_per_page: 5\ntimeouts:\n  tavily: 30\n")
    manager = ConfigManager(config_path)
    first = manager.get()

    config_path.write_text("serpapi_results_per_page: 8\n")
    assert manager.get() == first == {"serpapi_results_per_page": 5, "timeouts": {"tavily": 30}}

    json_path = tmp_path / "import_scout.json"
    json_path.write_text('{"tavily_max_results": 3}')
    assert ConfigManager(json_path).get() == {"tavily_max_results": 3}


def test_config_manager_rejects_bad_overlays(tmp_path: Path):
    toml_path = tmp_path / "import_scout.toml"
    toml_path.write_text("x = 1\n")
    list_path = tmp_path / "list.yaml"
    list_path.write_text("- 1\n- 2\n")

    for path in (toml_path, list_path, tmp_path / "missing.yaml"):
        with pytest.raises(ConfigurationError):
            ConfigManager(path).get()


def test_settings_from_env_reads_credentials_and_overlay(tmp_path: Path):
    overlay = tmp_path / "overlay.yaml"
    overlay.write_text("serpapi_results_per_page: 7\nopenai_api_key: ignored\ntimeouts:\n  serpapi: 4\n")
    settings = Settings.from_env(
        {
            "OPENAI_API_KEY": "sk-env",
            "SERPAPI_API_KEY": "serp-env",
            "TAVILY_API_KEY": "tvly-env",
            "TAVILY_INCLUDE_ANSWER": "false",
            "IMPORT_SCOUT_CONFIG": str(overlay),
        }
    )

    assert settings.openai_api_key == "sk-env"
    assert settings.tavily_include_answer is False
    assert settings.serpapi_results_per_page == 7
    assert settings.timeout_for("serpapi") == 4.0
    assert settings.timeout_for("unknown") == 15.0
    assert settings.aliexpress_configured is False
    assert settings.validate() is settings


def test_settings_validate_names_missing_credentials():
    settings = Settings.from_env({"OPENAI_API_KEY": "sk-env"})
    with pytest.raises(ConfigurationError) as excinfo:
        settings.validate()
    assert excinfo.value.details["missing"] == ["serpapi_api_key", "tavily_api_key"]

    with pytest.raises(ConfigurationError):
        Settings.from_env({"TAVILY_MAX_RESULTS": "many"})


@pytest.mark.asyncio
async def test_circuit_breaker_recovery():
    clock = FakeClock()
    breaker = CircuitBreaker("serpapi", failure_threshold=1, recovery_timeout=30.0, clock=clock)

    async def failing():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await breaker.run(failing)
    assert breaker.state == "open"

    with pytest.raises(CircuitBreakerOpen):
        await breaker.run(failing)

    clock.now += 31

    async def succeeding():
        return "ok"

    assert await breaker.run(succeeding) == "ok"
    assert breaker.state == "closed"


def test_open_breaker_without_timestamp_allows_a_trial_call():
    breaker = CircuitBreaker("tavily", failure_threshold=1, recovery_timeout=30.0, clock=FakeClock())
    breaker._state = "open"

    assert breaker.allow() is True
    assert breaker.state == "half_open"


@pytest.mark.asyncio
async def test_provider_guard_isolates_providers_and_caps_concurrency():
    guard = ProviderGuard(failure_threshold=1, max_concurrency=2)
    in_flight = 0
    peak = 0

    async def slow():
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return True

    assert all(await asyncio.gather(*(guard.run("tavily", slow) for _ in range(5))))
    assert peak == 2

    async def failing():
        raise RuntimeError("down")

    with pytest.raises(RuntimeError):
        await guard.run("serpapi", failing)
    with pytest.raises(CircuitBreakerOpen):
        await guard.run("serpapi", slow)
    assert await guard.run("tavily", slow) is True


def test_ttl_cache_expiry():
    clock = FakeClock()
    cache = TTLCache(ttl=60, clock=clock)
    cache.put("CLP", 950.0)
    cache.put("EUR", 0.92, ttl=600)

    clock.now += 59
    assert cache.get("CLP") == 950.0
    clock.now += 2
    assert cache.get("CLP") is None
    assert "EUR" in cache

    forever = TTLCache(clock=clock)
    forever.put("marketplaces", ["falabella.com"])
    clock.now += 10 ** 6
    assert forever.get("marketplaces") == ["falabella.com"]
