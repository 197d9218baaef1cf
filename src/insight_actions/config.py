"""
Configuration management for the Insight Action engine.

Loads settings from environment variables with sensible defaults.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / '.env'
if _env_file.exists():
    load_dotenv(_env_file)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Configuration settings loaded from environment."""

    # Signal extractor (any OpenAI-compatible chat endpoint)
    LLM_API_KEY: str = os.getenv('LLM_API_KEY', '') or os.getenv('OPENAI_API_KEY', '')
    LLM_BASE_URL: str = os.getenv('LLM_BASE_URL', 'https://api.groq.com/openai/v1')
    LLM_CHAT_MODEL: str = os.getenv('LLM_CHAT_MODEL', 'llama-3.1-8b-instant')
    EXTRACTION_TIMEOUT_SECONDS: float = float(os.getenv('EXTRACTION_TIMEOUT_SECONDS', '30'))

    # Postgres
    DATABASE_URL: str = os.getenv('DATABASE_URL', '')
    DATABASE_REQUIRE_SSL: bool = _env_flag('DATABASE_REQUIRE_SSL', 'true')

    # Scheduling
    SCHEDULING_TIMEZONE: str = os.getenv('SCHEDULING_TIMEZONE', 'UTC')
    DEFAULT_FOLLOWUP_DELAY_HOURS: int = int(os.getenv('DEFAULT_FOLLOWUP_DELAY_HOURS', '24'))

    # Derivation
    INFER_STAGE_FROM_SIGNAL: bool = _env_flag('INFER_STAGE_FROM_SIGNAL', 'true')

    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')

    @classmethod
    def validate(cls) -> list[str]:
        """
        Validate that required configuration is present.

        Returns:
            List of missing required configuration keys
        """
        missing = []
        if not cls.LLM_API_KEY:
            missing.append('LLM_API_KEY')
        if not cls.DATABASE_URL:
            missing.append('DATABASE_URL')
        return missing


# Singleton config instance
config = Config()
