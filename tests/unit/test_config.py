"""Tests for configuration loading and validation."""

import json
import pytest

from video_digest.config import load_config, get_schedule_config, DEFAULT_CONFIG
from video_digest.errors import ConfigError, ErrorCode
from video_digest.models import ScheduleConfig


@pytest.fixture
def env():
    """A complete minimal environment."""
    return {
        "EVOLUTION_API_URL": "https://evo.example.com/",
        "EVOLUTION_API_KEY": "secret",
        "EVOLUTION_INSTANCE": "bot",
        "WHATSAPP_TARGETS": "5511999998888,120363123456789@g.us",
        "OPENAI_API_KEY": "sk-test",
    }


@pytest.fixture(autouse=True)
def no_config_file(monkeypatch, tmp_path):
    """Keep the default search paths from picking up a real config file."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))


def test_load_from_env(env):
    """Environment variables populate the config and defaults fill the rest."""
    cfg = load_config(env=env)

    assert cfg["gateway"]["base_url"] == "https://evo.example.com"  # trailing slash stripped
    assert cfg["gateway"]["api_key"] == "secret"
    assert cfg["gateway"]["instance"] == "bot"
    assert cfg["gateway"]["targets"] == "5511999998888,120363123456789@g.us"
    assert cfg["llm"]["provider"] == "openai"
    assert cfg["llm"]["openai_model"] == "gpt-4o-mini"
    assert cfg["schedule"]["cron"] == "0 6 * * *"
    assert cfg["schedule"]["timezone"] == "America/Sao_Paulo"
    assert cfg["delivery"]["pacing_seconds"] == 10
    assert cfg["timeouts"] == {"status": 10, "fetch": 15, "send": 30, "llm": 120}


def test_defaults_not_mutated(env):
    load_config(env={**env, "CRON_SCHEDULE": "30 7 * * 1"})
    assert DEFAULT_CONFIG["schedule"]["cron"] == "0 6 * * *"


def test_missing_fields_listed_together():
    """Every missing variable is reported in one error."""
    with pytest.raises(ConfigError) as exc:
        load_config(env={})

    assert exc.value.code == ErrorCode.CONFIG_MISSING_REQUIRED_FIELD
    for name in ("EVOLUTION_API_URL", "EVOLUTION_API_KEY", "EVOLUTION_INSTANCE",
                 "WHATSAPP_TARGETS", "OPENAI_API_KEY"):
        assert name in exc.value.message


def test_legacy_group_id_fallback(env):
    """WHATSAPP_GROUP_ID is used when WHATSAPP_TARGETS is absent."""
    del env["WHATSAPP_TARGETS"]
    env["WHATSAPP_GROUP_ID"] = "120363123456789@g.us"

    cfg = load_config(env=env)
    assert cfg["gateway"]["targets"] == "120363123456789@g.us"


def test_targets_win_over_legacy(env):
    env["WHATSAPP_GROUP_ID"] = "legacy@g.us"
    cfg = load_config(env=env)
    assert cfg["gateway"]["targets"] == "5511999998888,120363123456789@g.us"


def test_gemini_provider_requires_gemini_key(env):
    env["LLM_PROVIDER"] = "Gemini"
    with pytest.raises(ConfigError) as exc:
        load_config(env=env)
    assert "GEMINI_API_KEY" in exc.value.message

    env["GEMINI_API_KEY"] = "g-key"
    cfg = load_config(env=env)
    assert cfg["llm"]["provider"] == "gemini"


def test_unknown_provider(env):
    env["LLM_PROVIDER"] = "smoke_signals"
    with pytest.raises(ConfigError) as exc:
        load_config(env=env)
    assert exc.value.code == ErrorCode.CONFIG_INVALID_VALUE


def test_numeric_env_coerced(env):
    env["SEND_PACING_SECONDS"] = "2.5"
    cfg = load_config(env=env)
    assert cfg["delivery"]["pacing_seconds"] == 2.5


def test_zero_pacing_allowed(env):
    env["SEND_PACING_SECONDS"] = "0"
    cfg = load_config(env=env)
    assert cfg["delivery"]["pacing_seconds"] == 0


def test_non_numeric_rejected(env):
    env["SEND_PACING_SECONDS"] = "ten"
    with pytest.raises(ConfigError) as exc:
        load_config(env=env)
    assert exc.value.code == ErrorCode.CONFIG_INVALID_VALUE


def test_invalid_url_rejected(env):
    env["EVOLUTION_API_URL"] = "evo.example.com"
    with pytest.raises(ConfigError) as exc:
        load_config(env=env)
    assert exc.value.code == ErrorCode.CONFIG_INVALID_VALUE


def test_config_file_merged_under_env(env, tmp_path):
    """Config file values apply; environment variables override them."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({
        "schedule": {"cron": "0 7 * * *"},
        "delivery": {"pacing_seconds": 3},
        "gateway": {"instance": "from-file"},
    }))

    cfg = load_config(str(config_file), env=env)
    assert cfg["schedule"]["cron"] == "0 7 * * *"
    assert cfg["schedule"]["timezone"] == "America/Sao_Paulo"
    assert cfg["delivery"]["pacing_seconds"] == 3
    assert cfg["gateway"]["instance"] == "bot"


def test_config_file_in_search_path(env, tmp_path):
    (tmp_path / "video-digest.json").write_text(json.dumps({"schedule": {"timezone": "UTC"}}))
    cfg = load_config(env=env)
    assert cfg["schedule"]["timezone"] == "UTC"


def test_missing_config_file(env, tmp_path):
    with pytest.raises(ConfigError) as exc:
        load_config(str(tmp_path / "nope.json"), env=env)
    assert exc.value.code == ErrorCode.CONFIG_FILE_NOT_FOUND


def test_invalid_json(env, tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text("not json")
    with pytest.raises(ConfigError) as exc:
        load_config(str(config_file), env=env)
    assert exc.value.code == ErrorCode.CONFIG_INVALID_JSON


@pytest.mark.parametrize("content, section", [
    ({"delivery": None}, "delivery"),
    ({"gateway": []}, "gateway"),
    ({"schedule": "0 6 * * *"}, "schedule"),
])
def test_non_object_section_rejected(env, tmp_path, content, section):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(content))
    with pytest.raises(ConfigError) as exc:
        load_config(str(config_file), env=env)
    assert exc.value.code == ErrorCode.CONFIG_INVALID_VALUE
    assert f"{section} must be an object" in exc.value.message


def test_skip_validation():
    cfg = load_config(env={}, validate=False)
    assert cfg["gateway"]["base_url"] is None


def test_get_schedule_config(env):
    env["CRON_SCHEDULE"] = " 30 5 * * 1-5 "
    env["TIMEZONE"] = "UTC"
    schedule = get_schedule_config(load_config(env=env))
    assert schedule == ScheduleConfig(cron_expression="30 5 * * 1-5", timezone="UTC")
