"""Configuration loaded from the environment (and a .env file)."""
import os
from dataclasses import dataclass

from dotenv import load_dotenv
load_dotenv(override=True)


def _env_bool(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Runtime settings."""

    # Timer defaults
    interval: int = 1000
    stop_on_completed: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        try:
            interval = int(os.getenv("TASKTIMER_INTERVAL", "1000"))
        except ValueError:
            interval = 1000

        return cls(
            interval=interval if interval > 0 else 1000,
            stop_on_completed=_env_bool("TASKTIMER_STOP_ON_COMPLETED"),
            log_level=os.getenv("TASKTIMER_LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("TASKTIMER_LOG_JSON"),
        )


# Global settings instance
settings = Settings.from_env()
