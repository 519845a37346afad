"""Application configuration from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    inkscribe_env: str = "development"
    inkscribe_log_level: str = "debug"
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Recognizer (TorchScript CTC model + JSON vocabulary)
    recognizer_model_path: str = ""
    recognizer_vocab_path: str = ""
    recognizer_input_size: int = 96
    top_k: int = 5
    beam_width: int = 25
    per_step_top: int = 25

    # Sessions
    debounce_ms: int = 180
    canvas_width: int = 512
    canvas_height: int = 512
    stroke_width_px: float = 14.0
    max_sessions: int = 64
    worker_threads: int = 2

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
