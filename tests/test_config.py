import pytest

from pricecrawl.config import CrawlerConfig, load_config
from pricecrawl.errors import ConfigError


def test_defaults_without_file() -> None:
    config = load_config(None, environ={})

    assert config == CrawlerConfig()
    assert config.user_agent.startswith("ghost/1.0")
    assert config.request_delay_ms == 2500
    assert config.cooldown_ms == 5000
    assert config.max_manufacturers == 0


def test_yaml_then_env_then_overrides(tmp_path) -> None:
    path = tmp_path / "config.yml"
    path.write_text(
        "crawler:\n"
        "  request_delay_ms: 500\n"
        "  max_retries: 5\n"
        "database:\n"
        "  url: sqlite:///other.sqlite\n"
        "schedule:\n"
        "  days: 1\n",
        encoding="utf-8",
    )

    config = load_config(
        path,
        environ={"PRICECRAWL_MAX_RETRIES": "2", "PRICECRAWL_BACKOFF_MULTIPLIER": "1.5"},
        max_manufacturers=3,
        request_delay_ms=None,
    )

    assert config.request_delay_ms == 500
    assert config.max_retries == 2
    assert config.backoff_multiplier == 1.5
    assert config.max_manufacturers == 3
    assert config.database_url == "sqlite:///other.sqlite"
    assert config.schedule_days == 1
    assert config.base_url == CrawlerConfig().base_url


def test_missing_file_falls_back_to_defaults(tmp_path) -> None:
    assert load_config(tmp_path / "absent.yml", environ={}) == CrawlerConfig()


def test_invalid_env_value_is_ignored() -> None:
    config = load_config(None, environ={"PRICECRAWL_REQUEST_DELAY_MS": "soon"})
    assert config.request_delay_ms == 2500


@pytest.mark.parametrize(
    "values",
    [
        {"max_retries": -1},
        {"request_delay_ms": -5},
        {"backoff_multiplier": 0.5},
        {"max_manufacturers": -1},
        {"schedule_days": 0},
        {"base_url": ""},
    ],
)
def test_invalid_values_raise(values) -> None:
    with pytest.raises(ConfigError):
        CrawlerConfig(**values)


def test_unknown_keys_raise(tmp_path) -> None:
    path = tmp_path / "config.yml"
    path.write_text("crawler:\n  turbo: true\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="turbo"):
        load_config(path, environ={})


def test_non_mapping_file_raises(tmp_path) -> None:
    path = tmp_path / "config.yml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(path, environ={})


@pytest.mark.parametrize(
    "body",
    [
        "crawler: 5\n",
        "database: sqlite:///prices.sqlite\n",
        "crawler:\n  max_retries: three\n",
        "crawler:\n  request_delay_ms: true\n",
        "crawler:\n  base_url: 42\n",
    ],
)
def test_wrong_value_types_raise_config_error(tmp_path, body) -> None:
    path = tmp_path / "config.yml"
    path.write_text(body, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(path, environ={})


def test_numeric_strings_and_ints_are_converted(tmp_path) -> None:
    path = tmp_path / "config.yml"
    path.write_text("crawler:\n  max_retries: '5'\n  backoff_multiplier: 3\n", encoding="utf-8")

    config = load_config(path, environ={})

    assert config.max_retries == 5
    assert config.backoff_multiplier == 3.0
    assert isinstance(config.backoff_multiplier, float)
