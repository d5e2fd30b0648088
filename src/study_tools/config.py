"""Application configuration and persisted user settings."""
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from study_tools.db import DEFAULT_DB_PATH, get_connection
from study_tools.models import PomodoroSettings


class Settings(BaseSettings):
    """Environment-driven settings. Variables use the STUDY_TOOLS_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="STUDY_TOOLS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    db_path: str = DEFAULT_DB_PATH
    log_level: str = "WARNING"

    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("STUDY_TOOLS_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.2
    openai_max_content_length: int = 4000
    openai_base_url: str = "https://api.openai.com/v1"
    openai_timeout: float = 30.0


def get_settings(**overrides) -> Settings:
    return Settings(**overrides)


def get_setting(db_path: str, key: str, default: str = None) -> str | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT value FROM user_settings WHERE key = ?", (key,)).fetchone()
    conn.close()
    return row["value"] if row else default


def set_setting(db_path: str, key: str, value: str) -> None:
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO user_settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=?",
        (key, value, value),
    )
    conn.commit()
    conn.close()


POMODORO_KEYS = {
    "work_duration": "pomodoro_work_duration",
    "short_break_duration": "pomodoro_short_break_duration",
    "long_break_duration": "pomodoro_long_break_duration",
    "sessions_until_long_break": "pomodoro_sessions_until_long_break",
}


def load_pomodoro_settings(db_path: str) -> PomodoroSettings:
    """Pomodoro durations from user_settings. Bad or missing values fall back to defaults."""
    values = {}
    for field_name, key in POMODORO_KEYS.items():
        raw = get_setting(db_path, key)
        if raw is None:
            continue
        try:
            value = int(raw)
        except ValueError:
            continue
        if value > 0:
            values[field_name] = value
    return PomodoroSettings(**values)


def save_pomodoro_settings(db_path: str, settings: PomodoroSettings) -> None:
    for field_name, key in POMODORO_KEYS.items():
        set_setting(db_path, key, str(getattr(settings, field_name)))
