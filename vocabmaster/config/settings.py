"""Global settings and configuration."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load from project root
_env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(_env_path)


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


def _env_days(name: str, default: list) -> list:
    raw = os.environ.get(name)
    if not raw:
        return list(default)
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        return list(default)


class Config:
    """Application-wide configuration."""

    # Lookup endpoints
    DICTIONARY_API_URL: str = os.environ.get(
        "DICTIONARY_API_URL", "https://api.dictionaryapi.dev/api/v2/entries/en"
    )
    WIKTIONARY_API_URL: str = os.environ.get(
        "WIKTIONARY_API_URL", "https://en.wiktionary.org/api/rest_v1/page/definition"
    )
    TRANSLATION_API_URL: str = os.environ.get(
        "TRANSLATION_API_URL", "https://api.mymemory.translated.net/get"
    )

    # Every outbound call is bounded by this many seconds
    TIMEOUT: int = _env_int("TIMEOUT", 10)

    # LLM fallback
    # Store the key in the environment or .env file: LLM_API_KEY
    LLM_PROVIDER: str = os.environ.get("LLM_PROVIDER", "deepseek")
    LLM_API_KEY: str = os.environ.get("LLM_API_KEY", "")
    LLM_MODEL: str = os.environ.get("LLM_MODEL", "")
    LLM_BASE_URL: str = os.environ.get("LLM_BASE_URL", "")

    # Spaced repetition
    REVIEW_INTERVAL_DAYS: list = _env_days("REVIEW_INTERVAL_DAYS", [1, 2, 4, 7, 15, 30])
    MASTERED_INTERVAL_DAYS: int = _env_int("MASTERED_INTERVAL_DAYS", 60)

    # BASE_DIR is the project root (parent of vocabmaster/)
    BASE_DIR: Path = Path(__file__).parent.parent.parent.resolve()

    DATA_DIR: str = os.environ.get("DATA_DIR", str(BASE_DIR / "data"))
    STORE_FILE: str = os.environ.get("STORE_FILE", str(Path(DATA_DIR) / "vocabmaster_data.json"))
    # Mirror directory (e.g. a synced cloud folder); empty disables mirroring
    MIRROR_DIR: str = os.environ.get("MIRROR_DIR", "")
    SETTINGS_FILE: str = os.environ.get("SETTINGS_FILE", str(Path(DATA_DIR) / "settings.json"))

    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE: str = os.environ.get("LOG_FILE", "")
