"""Application configuration."""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration."""

    # OpenAI Settings
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "")
    GENERATOR_MODEL: str = os.getenv("GENERATOR_MODEL", "gpt-4o")
    GENERATOR_TIMEOUT: int = int(os.getenv("GENERATOR_TIMEOUT", "120"))
    GENERATOR_MAX_RETRIES: int = int(os.getenv("GENERATOR_MAX_RETRIES", "3"))

    # Sampling per call type
    GENERATION_TEMPERATURE: float = float(os.getenv("GENERATION_TEMPERATURE", "0.2"))
    REPAIR_TEMPERATURE: float = float(os.getenv("REPAIR_TEMPERATURE", "0.2"))
    SURGICAL_TEMPERATURE: float = float(os.getenv("SURGICAL_TEMPERATURE", "0.4"))
    MAX_OUTPUT_TOKENS: int = int(os.getenv("MAX_OUTPUT_TOKENS", "16000"))
    SURGICAL_MAX_OUTPUT_TOKENS: int = int(os.getenv("SURGICAL_MAX_OUTPUT_TOKENS", "500"))

    # App Settings
    APP_NAME: str = os.getenv("APP_NAME", "Copy Repair API")
    APP_VERSION: str = os.getenv("APP_VERSION", "1.0.0")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Repair loop
    MAX_REPAIR_ATTEMPTS: int = int(os.getenv("MAX_REPAIR_ATTEMPTS", "3"))
    ENABLE_REPAIR_LOOP: bool = _env_bool("ENABLE_REPAIR_LOOP", "true")

    # Validation
    DISCOUNT_DISTINCT_THRESHOLD: int = int(os.getenv("DISCOUNT_DISTINCT_THRESHOLD", "2"))

    # Rulebook documentation (*.md / *.txt, one section per file)
    KNOWLEDGE_DIR: str = os.getenv("KNOWLEDGE_DIR", "./knowledge")


config = Config()
