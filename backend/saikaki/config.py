import os
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parents[2]  # repo root (parent of backend/)
env_path = BASE_DIR / ".env"
load_dotenv(dotenv_path=env_path)


def _csv(name: str, default: str) -> list:
    raw = os.getenv(name, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings:
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./saikaki.db")
    SQL_ECHO = os.getenv("SQL_ECHO", "0") == "1"
    RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "1") == "1"

    # Completion provider
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_FALLBACK_MODEL = os.getenv("OPENAI_FALLBACK_MODEL", "")
    OPENAI_TEMPERATURE = float(os.getenv("OPENAI_TEMPERATURE", 0.8))
    LLM_TIMEOUT_S = float(os.getenv("LLM_TIMEOUT_S", 60))

    # How many stored messages are sent as conversation context
    HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", 10))

    # Enrichment: "websearch" | "pinecone" | "none"
    ENRICHMENT_PROVIDER = os.getenv("ENRICHMENT_PROVIDER", "websearch")
    WEB_SEARCH_URL = os.getenv("WEB_SEARCH_URL", "https://api.duckduckgo.com/")
    WEB_SEARCH_TIMEOUT_S = float(os.getenv("WEB_SEARCH_TIMEOUT_S", 8))
    PINECONE_API_KEY = os.getenv("PINECONE_API_KEY", "")
    PINECONE_INDEX = os.getenv("PINECONE_INDEX", "")
    PINECONE_HOST = os.getenv("PINECONE_HOST", "")
    PINECONE_MIN_SCORE = float(os.getenv("PINECONE_MIN_SCORE", 0.35))

    # Vision / image providers
    HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY", "")
    GOOGLE_VISION_API_KEY = os.getenv("GOOGLE_VISION_API_KEY", "")
    IMAGE_HTTP_TIMEOUT_S = float(os.getenv("IMAGE_HTTP_TIMEOUT_S", 15))

    CORS_ORIGINS = _csv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")

settings = Settings()
