import os

from dotenv import load_dotenv

# Values in a local .env file are picked up before the settings are read
load_dotenv()


def _env_list(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    APP_NAME: str = os.getenv("APP_NAME", "Korean Pronunciation Analysis API")
    APP_VERSION: str = "0.1.0"
    # "development" exposes error details in 5xx responses, "production" hides them
    APP_ENV: str = os.getenv("APP_ENV", "development")

    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    CORS_ORIGINS: list[str] = _env_list("CORS_ORIGINS", "*")

    # Assuming 'assets' is a sibling to 'core', 'services' etc. inside the package
    BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    ASSETS_DIR = os.getenv("ASSETS_DIR", os.path.join(BASE_DIR, "assets"))

    RULES_PATH: str = os.getenv("RULES_PATH", os.path.join(ASSETS_DIR, "korean_pronunciation_rules.json"))
    PATTERNS_PATH: str = os.getenv("PATTERNS_PATH", os.path.join(ASSETS_DIR, "korean_pronunciation_patterns.json"))

    LOGS_DIR: str = os.getenv("LOGS_DIR", "logs")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "")

    # Reasoning backend (OpenAI chat completions)
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    REASONING_MODEL_NAME: str = os.getenv("REASONING_MODEL_NAME", "gpt-4o")
    REASONING_TEMPERATURE: float = float(os.getenv("REASONING_TEMPERATURE", "0.1"))
    REASONING_TIMEOUT_SECONDS: float = float(os.getenv("REASONING_TIMEOUT_SECONDS", "60"))
    REASONING_MAX_RETRIES: int = int(os.getenv("REASONING_MAX_RETRIES", "2"))

    # Semantic retrieval over the rule corpus
    EMBEDDING_MODEL_NAME: str = os.getenv(
        "EMBEDDING_MODEL_NAME", "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2"
    )
    RETRIEVAL_TOP_K: int = int(os.getenv("RETRIEVAL_TOP_K", "4"))
    CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "1000"))
    CHUNK_OVERLAP: int = int(os.getenv("CHUNK_OVERLAP", "200"))

    # Model names from Hugging Face / local paths if downloaded
    WHISPER_MODEL_NAME: str = os.getenv("WHISPER_MODEL_NAME", "openai/whisper-small")
    TRANSCRIPTION_LANGUAGE: str = os.getenv("TRANSCRIPTION_LANGUAGE", "korean")

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() == "production"

    @property
    def log_level(self) -> str:
        if self.LOG_LEVEL:
            return self.LOG_LEVEL.upper()
        return "INFO" if self.is_production else "DEBUG"


settings = Settings()
