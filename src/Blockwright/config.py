"""Settings loader for Blockwright."""

from pathlib import Path
from typing import Any, Literal

import tomllib
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


def _toml_settings_source() -> dict[str, Any]:
    """Load settings from config.toml with keys mapped to Settings fields.

    This source has LOWER priority than env/.env so those can override TOML.
    Only keys present in the file are returned so field defaults still apply.
    """
    cfg_path = Path("config.toml")
    if not cfg_path.exists():
        return {}
    with cfg_path.open("rb") as f:
        t = tomllib.load(f)

    mapping: dict[str, tuple[str, str]] = {
        "env": ("app", "env"),
        "agent_username": ("agent", "username"),
        "owner_username": ("agent", "owner"),
        "planner_enabled": ("planner", "enabled"),
        "planner_interval_seconds": ("planner", "interval_seconds"),
        "planner_max_steps": ("planner", "max_steps"),
        "planner_step_delay_ms": ("planner", "step_delay_ms"),
        "chat_max_actions": ("chat", "max_actions"),
        "chat_action_delay_ms": ("chat", "action_delay_ms"),
        "max_step_distance": ("validation", "max_distance"),
        "auth_elevated": ("auth", "elevated"),
        "auth_commands_enabled": ("auth", "commands_enabled"),
        "llm_api_provider": ("llm", "api_provider"),
        "llm_api_url": ("llm", "api_url"),
        "llm_model_name": ("llm", "model_name"),
        "llm_temperature": ("llm", "temperature"),
        "llm_max_tokens": ("llm", "max_tokens"),
        "llm_timeout_seconds": ("llm", "timeout_seconds"),
        "logging_level": ("logging", "level"),
        "logging_file_path": ("logging", "file_path"),
        "logging_max_bytes": ("logging", "max_bytes"),
        "logging_backup_count": ("logging", "backup_count"),
    }
    out: dict[str, Any] = {}
    for field_name, (section, key) in mapping.items():
        sect = t.get(section, {}) or {}
        if key in sect and sect[key] is not None:
            out[field_name] = sect[key]

    # Per-handler levels: strings INFO|DEBUG|WARNING|ERROR|CRITICAL|NONE.
    # Booleans map True -> overall level, False -> NONE.
    log_cfg = t.get("logging", {}) or {}
    overall = str(out.get("logging_level", "INFO")).upper()

    def _norm_level(v: Any) -> str | None:
        if isinstance(v, str):
            return v.upper()
        if isinstance(v, bool):
            return overall if v else "NONE"
        return None

    for field_name, key in (("logging_console", "console"), ("logging_file", "to_file")):
        lvl = _norm_level(log_cfg.get(key))
        if lvl is not None:
            out[field_name] = lvl
    return out


class Settings(BaseSettings):
    env: str = Field(default="dev")

    # --- Agent identity ---
    agent_username: str = "AI"
    # Trusted principal allowed to toggle authorization flags
    owner_username: str | None = None

    # --- Planner loop ---
    planner_enabled: bool = True
    planner_interval_seconds: float = Field(default=5.0, gt=0)
    planner_max_steps: int = Field(default=8, ge=1)
    planner_step_delay_ms: int = Field(default=200, ge=0)

    # --- Chat-triggered actions ---
    chat_max_actions: int = Field(default=10, ge=1)
    chat_action_delay_ms: int = Field(default=150, ge=0)

    # --- Validation ---
    max_step_distance: float = Field(default=10.0, gt=0)

    # --- Authorization defaults (process lifetime) ---
    auth_elevated: bool = True
    auth_commands_enabled: bool = False

    # --- LLM Configuration ---
    llm_api_provider: Literal["openai", "ollama"] = Field(
        default="openai",
        description="The type of LLM API to use ('openai' compatible or 'ollama').",
    )
    llm_api_url: str | None = "http://127.0.0.1:4891/v1"
    llm_api_key: SecretStr | None = Field(
        default=None, description="API key for OpenAI-compatible services."
    )
    llm_model_name: str = "Llama 3 8B Instruct"
    llm_temperature: float = 0.12
    llm_max_tokens: int = 2048
    llm_timeout_seconds: float = 60.0

    # --- Logging ---
    logging_enabled: bool = True
    logging_level: str = "INFO"
    logging_console: str = "INFO"
    logging_file: str = "INFO"
    logging_file_path: str = "logs/blockwright.jsonl"
    logging_max_bytes: int = 5_000_000
    logging_backup_count: int = 5

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Precedence (highest to lowest):
        # 1) init_settings (explicit overrides in code/tests)
        # 2) dotenv (.env in cwd)
        # 3) env_settings (OS env)
        # 4) TOML (config.toml)
        # 5) file_secret_settings
        return (
            init_settings,
            dotenv_settings,
            env_settings,
            _toml_settings_source,
            file_secret_settings,
        )

    @property
    def planner_step_delay(self) -> float:
        return self.planner_step_delay_ms / 1000

    @property
    def chat_action_delay(self) -> float:
        return self.chat_action_delay_ms / 1000


def load_settings() -> Settings:
    return Settings()
