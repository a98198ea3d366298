"""Configuration management for the kubeinfra application."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration with sensible defaults."""

    # Where persisted infra status documents live
    STATE_DIR: str = os.getenv("STATE_DIR", str(Path.home() / ".kubeinfra"))

    # Timeouts (in seconds)
    API_TIMEOUT: int = int(os.getenv("API_TIMEOUT", "30"))
    SSH_TIMEOUT: int = int(os.getenv("SSH_TIMEOUT", "30"))

    # Retry configuration
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
    RETRY_DELAY: float = float(os.getenv("RETRY_DELAY", "1.0"))

    # File distribution
    TRANSFER_CHUNK_SIZE: int = int(os.getenv("TRANSFER_CHUNK_SIZE", str(1024 * 1024)))
    # 0 means one worker per target host
    MAX_CONCURRENT_TRANSFERS: int = int(os.getenv("MAX_CONCURRENT_TRANSFERS", "0"))
    STRICT_CHECKSUM: bool = _env_bool("STRICT_CHECKSUM")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    LOG_FILE: str = os.getenv("LOG_FILE", "")
    LOG_MAX_SIZE_MB: int = int(os.getenv("LOG_MAX_SIZE_MB", "100"))
    LOG_BACKUP_COUNT: int = int(os.getenv("LOG_BACKUP_COUNT", "5"))

    # API
    API_KEY: str = os.getenv("KUBEINFRA_API_KEY", "kubeinfra-secret")

    # Security
    REDACT_KEYS: tuple = ("access_secret", "password", "passwd", "secret", "token", "pk_password")

    @classmethod
    def validate(cls) -> None:
        """Validate configuration values that have hard constraints."""
        problems = []
        if cls.TRANSFER_CHUNK_SIZE <= 0:
            problems.append("TRANSFER_CHUNK_SIZE must be positive")
        if cls.MAX_CONCURRENT_TRANSFERS < 0:
            problems.append("MAX_CONCURRENT_TRANSFERS must be >= 0")
        if cls.MAX_RETRIES < 1:
            problems.append("MAX_RETRIES must be >= 1")
        if problems:
            raise ValueError(f"Invalid configuration: {', '.join(problems)}")

# Don't validate on import to allow for dynamic configuration
# Call Config.validate() explicitly when needed
