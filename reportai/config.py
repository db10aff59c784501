"""Runtime configuration resolved from environment variables and ``.env``."""

import logging
import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# --- Truncation budgets (characters) ---
# Initial ingestion and later chat reuse use different budgets for the same
# document; both are kept as named values until product confirms one.
ANALYZE_INPUT_CHARS = 20_000
COMPARE_INPUT_CHARS = 40_000
CHAT_CONTEXT_CHARS = 50_000
CHAT_COMPARE_SIDE_CHARS = 30_000
CHAT_COMPARE_DIFF_CHARS = 2_000


class Settings(BaseModel):
    """Configuration handed to the database, model and auth collaborators."""

    database_url: str = Field(default="sqlite:///./reportai.db")
    jwt_secret: str = Field(default="your-secret-key")
    jwt_expires_hours: int = Field(default=24)
    llm_model: str = Field(default="llama3.2")
    llm_base_url: Optional[str] = Field(default=None)
    llm_timeout_seconds: float = Field(default=120.0)
    max_upload_bytes: int = Field(default=50 * 1024 * 1024)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field(default="INFO")

    analyze_input_chars: int = Field(default=ANALYZE_INPUT_CHARS)
    compare_input_chars: int = Field(default=COMPARE_INPUT_CHARS)
    chat_context_chars: int = Field(default=CHAT_CONTEXT_CHARS)
    chat_compare_side_chars: int = Field(default=CHAT_COMPARE_SIDE_CHARS)
    chat_compare_diff_chars: int = Field(default=CHAT_COMPARE_DIFF_CHARS)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (after loading ``.env``)."""
        load_dotenv()
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./reportai.db"),
            jwt_secret=os.getenv("JWT_SECRET", "your-secret-key"),
            jwt_expires_hours=int(os.getenv("JWT_EXPIRES_HOURS", "24")),
            llm_model=os.getenv("LLM_MODEL", "llama3.2"),
            llm_base_url=os.getenv("OLLAMA_BASE_URL") or None,
            llm_timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "120")),
            max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024))),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            analyze_input_chars=int(os.getenv("ANALYZE_INPUT_CHARS", str(ANALYZE_INPUT_CHARS))),
            compare_input_chars=int(os.getenv("COMPARE_INPUT_CHARS", str(COMPARE_INPUT_CHARS))),
            chat_context_chars=int(os.getenv("CHAT_CONTEXT_CHARS", str(CHAT_CONTEXT_CHARS))),
            chat_compare_side_chars=int(os.getenv("CHAT_COMPARE_SIDE_CHARS", str(CHAT_COMPARE_SIDE_CHARS))),
            chat_compare_diff_chars=int(os.getenv("CHAT_COMPARE_DIFF_CHARS", str(CHAT_COMPARE_DIFF_CHARS))),
        )


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings, created on first access."""
    return Settings.from_env()


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
