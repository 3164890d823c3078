"""YAML and env loader with fail-fast validation."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

from proposal_engine.models import SettingsConfig

DEFAULT_SETTINGS_PATH = Path(__file__).with_name("settings.yaml")

# model string prefix -> env var the provider needs
_PREFIX_TO_ENV: dict[str, str] = {
    "google-gla:": "GEMINI_API_KEY",
    "google-vertex:": "GEMINI_API_KEY",
    "anthropic:": "ANTHROPIC_API_KEY",
    "openai:": "OPENAI_API_KEY",
    "groq:": "GROQ_API_KEY",
    "mistral:": "MISTRAL_API_KEY",
    "cohere:": "CO_API_KEY",
}


def _read_yaml(path: str | Path) -> dict:
    resolved = Path(path)
    if not resolved.exists():
        raise FileNotFoundError(f"Missing config file: {path}")
    with resolved.open("r", encoding="utf-8") as file_obj:
        loaded = yaml.safe_load(file_obj) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Expected object at root of YAML file: {path}")
    return loaded


def get_required_env_keys(settings: SettingsConfig) -> list[str]:
    """API key env vars implied by the configured model prefixes.

    Models with no recognized prefix add nothing; a configuration whose models
    all lack a prefix falls back to GEMINI_API_KEY.
    """
    required: set[str] = set()
    for agent_cfg in settings.agents.values():
        for prefix, env_key in _PREFIX_TO_ENV.items():
            if agent_cfg.model.startswith(prefix):
                required.add(env_key)
    if not required:
        required.add("GEMINI_API_KEY")
    return sorted(required)


def load_settings(path: str | Path | None = None) -> SettingsConfig:
    """Load ``.env`` then validate the settings file (the bundled default when ``path`` is None)."""
    load_dotenv()
    return SettingsConfig.model_validate(_read_yaml(path or DEFAULT_SETTINGS_PATH))


def validate_secret_env(settings: SettingsConfig | None = None) -> list[str]:
    """Return the required env var names that are not set."""
    load_dotenv()
    required = get_required_env_keys(settings) if settings is not None else ["GEMINI_API_KEY"]
    return [key for key in required if not os.getenv(key)]
