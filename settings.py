from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values, set_key, unset_key

BASE_DIR = Path(__file__).parent
ENV_PATH = Path(os.environ.get("PROMPT_STUDIO_ENV", str(BASE_DIR / ".env")))

SERVICE_KEYS = {
    "gemini": ("GEMINI_API_KEY", "GOOGLE_AI_STUDIO_API"),
    "openai": ("OPENAI_API_KEY",),
    "grok": ("GROK_API_KEY",),
}
MODEL_KEYS = {
    "gemini": "GEMINI_TEXT_MODEL",
    "openai": "OPENAI_TEXT_MODEL",
    "grok": "GROK_TEXT_MODEL",
}
DEFAULT_MAX_SESSIONS = 200


def load_env_file(env_path: Optional[Path] = None) -> tuple[dict[str, str], bool]:
    env_path = env_path or ENV_PATH
    if not env_path.exists():
        return {}, False
    values = dotenv_values(env_path, encoding="utf-8")
    return {key: value for key, value in values.items() if value is not None}, True


def update_env_file(updates: dict[str, str], env_path: Optional[Path] = None) -> None:
    """Write each key to the env file; an empty value removes the key."""

    env_path = env_path or ENV_PATH
    current, _ = load_env_file(env_path)
    for key, value in updates.items():
        if value:
            env_path.touch(exist_ok=True)
            set_key(env_path, key, value, quote_mode="never", encoding="utf-8")
        elif key in current:
            unset_key(env_path, key, encoding="utf-8")


def _lookup(key: str, env_values: dict[str, str]) -> str:
    return (env_values.get(key) or os.environ.get(key) or "").strip()


def service_key_name(service: str) -> str:
    return SERVICE_KEYS.get(service.lower(), SERVICE_KEYS["gemini"])[0]


def resolve_service_key(service: str, env_values: dict[str, str]) -> str:
    for key in SERVICE_KEYS.get(service.lower(), SERVICE_KEYS["gemini"]):
        value = _lookup(key, env_values)
        if value:
            return value
    return ""


def selected_service(env_values: dict[str, str]) -> str:
    return _lookup("PROMPT_SERVICE", env_values).lower() or "gemini"


def model_overrides(env_values: dict[str, str]) -> dict[str, str]:
    return {service: _lookup(key, env_values) for service, key in MODEL_KEYS.items()}


def seed_example_templates() -> bool:
    return os.environ.get("SEED_EXAMPLE_TEMPLATES", "true").strip().lower() not in {"0", "false", "no"}


def max_sessions() -> int:
    """Number of browser sessions kept in memory before the oldest is dropped."""

    raw = os.environ.get("MAX_SESSIONS", "").strip()
    try:
        value = int(raw) if raw else DEFAULT_MAX_SESSIONS
    except ValueError:
        return DEFAULT_MAX_SESSIONS
    return max(value, 1)
