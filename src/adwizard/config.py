from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Loads keys from process env, and also from a local .env file for convenience.
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")

    data_dir: str = "data"
    log_level: str = "INFO"

    # Keys
    gemini_api_key: str | None = None
    openai_api_key: str | None = None

    # Models
    gemini_vision_model: str = "gemini-2.5-pro"
    gemini_text_model: str = "gemini-2.5-pro"
    gemini_image_model: str = "gemini-2.5-flash-image"
    openai_text_model: str = "gpt-4.1-mini"

    # "gemini" or "openai"; only ad copy can be routed elsewhere.
    copy_provider: str = "gemini"
    content_language: str = "English"

    # Scene selection
    scene_batch_size: int = 10
    scene_placeholder_description: str = "An additional scene of your choice"

    accepted_mime_types: tuple[str, ...] = ("image/jpeg", "image/png")


settings = Settings()
