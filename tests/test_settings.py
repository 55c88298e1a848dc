import pytest

import settings
from settings import (
    load_env_file,
    max_sessions,
    model_overrides,
    resolve_service_key,
    selected_service,
    update_env_file,
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for key in (
        "PROMPT_SERVICE",
        "GEMINI_API_KEY",
        "GOOGLE_AI_STUDIO_API",
        "OPENAI_API_KEY",
        "GROK_API_KEY",
        "GROK_TEXT_MODEL",
        "MAX_SESSIONS",
    ):
        monkeypatch.delenv(key, raising=False)


def test_missing_env_file(tmp_path):
    assert load_env_file(tmp_path / ".env") == ({}, False)


def test_quoted_values_are_unwrapped(tmp_path):
    env_path = tmp_path / ".env"
    env_path.write_text('# keys\nGEMINI_API_KEY="abc123"\nPROMPT_SERVICE=gemini\n', encoding="utf-8")

    values, exists = load_env_file(env_path)

    assert exists
    assert values == {"GEMINI_API_KEY": "abc123", "PROMPT_SERVICE": "gemini"}


def test_update_rewrites_and_keeps_other_lines(tmp_path):
    env_path = tmp_path / ".env"
    env_path.write_text("# keys\nPROMPT_SERVICE=gemini\nLOG_LEVEL=DEBUG\n", encoding="utf-8")

    update_env_file({"PROMPT_SERVICE": "grok", "GROK_API_KEY": "xai-1"}, env_path)

    text = env_path.read_text(encoding="utf-8")
    assert "# keys" in text
    assert load_env_file(env_path)[0] == {
        "PROMPT_SERVICE": "grok",
        "LOG_LEVEL": "DEBUG",
        "GROK_API_KEY": "xai-1",
    }


def test_empty_value_removes_key(tmp_path):
    env_path = tmp_path / ".env"
    env_path.write_text("OPENAI_API_KEY=sk-old\nPROMPT_SERVICE=openai\n", encoding="utf-8")

    update_env_file({"OPENAI_API_KEY": "", "GROK_API_KEY": ""}, env_path)

    assert load_env_file(env_path)[0] == {"PROMPT_SERVICE": "openai"}


def test_update_creates_the_file(tmp_path):
    env_path = tmp_path / ".env"

    update_env_file({"PROMPT_SERVICE": "openai"}, env_path)

    assert load_env_file(env_path) == ({"PROMPT_SERVICE": "openai"}, True)


def test_default_path_follows_module_setting(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "ENV_PATH", tmp_path / "custom.env")

    update_env_file({"PROMPT_SERVICE": "grok"})

    assert (tmp_path / "custom.env").exists()


def test_service_key_resolution(monkeypatch):
    assert resolve_service_key("gemini", {"GOOGLE_AI_STUDIO_API": "studio"}) == "studio"
    assert resolve_service_key("gemini", {"GEMINI_API_KEY": "g", "GOOGLE_AI_STUDIO_API": "studio"}) == "g"

    monkeypatch.setenv("OPENAI_API_KEY", " from-env ")
    assert resolve_service_key("openai", {}) == "from-env"
    assert resolve_service_key("grok", {}) == ""


def test_selected_service_and_models():
    assert selected_service({}) == "gemini"
    assert selected_service({"PROMPT_SERVICE": "OpenAI"}) == "openai"
    assert model_overrides({"GROK_TEXT_MODEL": "grok-custom"})["grok"] == "grok-custom"


@pytest.mark.parametrize("raw, expected", [("", 200), ("5", 5), ("0", 1), ("lots", 200)])
def test_max_sessions(monkeypatch, raw, expected):
    monkeypatch.setenv("MAX_SESSIONS", raw)

    assert max_sessions() == expected
