import os

from pydantic import BaseModel


def _csv(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


class Settings(BaseModel):
    DATA_DIR: str = os.getenv("DATA_DIR", "data")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Worker pool
    SCAN_CONCURRENCY: int = int(os.getenv("SCAN_CONCURRENCY", "5"))
    JOB_MAX_ATTEMPTS: int = int(os.getenv("JOB_MAX_ATTEMPTS", "3"))
    JOB_BACKOFF_BASE: float = float(os.getenv("JOB_BACKOFF_BASE", "2.0"))
    JOB_BACKOFF_CAP: float = float(os.getenv("JOB_BACKOFF_CAP", "30.0"))

    # Timeouts (seconds) for calls into external collaborators
    CLONE_TIMEOUT: float = float(os.getenv("CLONE_TIMEOUT", "120"))
    DETECTOR_TIMEOUT: float = float(os.getenv("DETECTOR_TIMEOUT", "300"))
    LLM_TIMEOUT: float = float(os.getenv("LLM_TIMEOUT", "120"))
    SCM_TIMEOUT: float = float(os.getenv("SCM_TIMEOUT", "30"))

    # Progress channel
    PROGRESS_QUEUE_SIZE: int = int(os.getenv("PROGRESS_QUEUE_SIZE", "100"))

    # GitHub
    GITHUB_TOKEN: str | None = os.getenv("GITHUB_TOKEN")
    GITHUB_API_BASE: str = os.getenv("GITHUB_API_BASE", "https://api.github.com")
    BRANCH_PREFIX: str = os.getenv("BRANCH_PREFIX", "vibesec-fix")

    # LLM: OpenAI
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")

    # LLM: Anthropic
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
    ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-3-5-haiku-20241022")

    # LLM: Ollama
    OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    OLLAMA_MODEL: str = os.getenv("OLLAMA_MODEL", "llama3.1:8b")

    # LLM: shared
    LLM_FALLBACK_MODELS: list[str] = _csv(
        os.getenv("LLM_FALLBACK_MODELS", "gpt-5-mini,gpt-4o-mini,claude-3-5-haiku-20241022")
    )
    TOKEN_BUDGET: int = int(os.getenv("TOKEN_BUDGET", "20000"))


settings = Settings()
