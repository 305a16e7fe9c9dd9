from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "extra": "ignore",
        "env_prefix": "",
        "case_sensitive": False,
    }

    # Gemini
    google_ai_api_key: str = ""
    edit_model: str = "gemini-2.5-flash-image"
    chat_model: str = "gemini-3-pro-preview"
    chat_history_window: int = 10  # prior turns forwarded per chat call

    # Uploads and sessions
    max_upload_bytes: int = 20 * 1024 * 1024
    max_sessions: int = 100  # oldest session is evicted past this

    # App
    environment: str = "development"
    log_level: str = "INFO"
    log_file: str = ""


settings = Settings()
