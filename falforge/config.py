"""
Configuration settings for falforge.

Every component reads its URLs, limits, retry policy and credentials from the
``Settings`` object defined here. Values come from the environment or a
``.env`` file.
"""

import logging
import os
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

SECRET_FIELDS = ("openai_api_key", "fal_key")
QUIET_LOGGERS = ("openai", "httpx", "aiohttp", "urllib3")
EXECUTION_MODES = ("submit", "subscribe")


class Settings(BaseSettings):
    """
    falforge settings.

    Defaults are read from the process environment (after ``.env`` loading),
    and explicit keyword arguments win over both.
    """
    # Text generation
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_base_url: Optional[str] = os.getenv("OPENAI_BASE_URL") or None
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o")
    openai_selector_model: str = os.getenv("OPENAI_SELECTOR_MODEL", "gpt-4o-mini")
    openai_max_tokens: int = int(os.getenv("OPENAI_MAX_TOKENS", "2000"))
    openai_temperature: float = float(os.getenv("OPENAI_TEMPERATURE", "0.2"))

    # FAL services
    fal_key: str = os.getenv("FAL_KEY", "")
    fal_catalog_url: str = os.getenv("FAL_CATALOG_URL", "https://fal.ai/api/trpc/models.list")
    fal_openapi_url: str = os.getenv("FAL_OPENAPI_URL", "https://fal.ai/api/openapi/queue/openapi.json")
    fal_queue_url: str = os.getenv("FAL_QUEUE_URL", "https://queue.fal.run")

    # Catalog and ranking
    catalog_search_limit: int = int(os.getenv("CATALOG_SEARCH_LIMIT", "20"))
    catalog_preload_limit: int = int(os.getenv("CATALOG_PRELOAD_LIMIT", "100"))
    ranker_result_limit: int = int(os.getenv("RANKER_RESULT_LIMIT", "3"))

    # Tool execution: "submit" returns once queued, "subscribe" waits for the result
    execution_mode: str = os.getenv("EXECUTION_MODE", "submit")
    queue_poll_interval: float = float(os.getenv("QUEUE_POLL_INTERVAL", "1.0"))
    queue_max_polls: int = int(os.getenv("QUEUE_MAX_POLLS", "300"))

    # Agent loop
    agent_max_steps: int = int(os.getenv("AGENT_MAX_STEPS", "5"))

    # HTTP
    request_timeout_seconds: int = int(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))
    max_retries: int = int(os.getenv("MAX_RETRIES", "3"))
    retry_delay_seconds: float = float(os.getenv("RETRY_DELAY_SECONDS", "1.0"))
    retry_backoff: float = float(os.getenv("RETRY_BACKOFF", "2.0"))

    # Logging
    debug: bool = os.getenv("DEBUG", "False").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: Optional[str] = os.getenv("LOG_FILE", None)
    enable_file_logging: bool = os.getenv("ENABLE_FILE_LOGGING", "False").lower() == "true"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def missing_credentials(self) -> List[str]:
        """Environment variable names of the credentials that are not set."""
        missing = []
        if not self.fal_key:
            missing.append("FAL_KEY")
        if not self.openai_api_key:
            missing.append("OPENAI_API_KEY")
        return missing

    def validate_settings(self) -> Dict[str, str]:
        """
        Check the settings for values the components cannot work with.

        Returns:
            Mapping of setting name to problem description, empty when all is well
        """
        problems: Dict[str, str] = {}

        missing = self.missing_credentials()
        if missing:
            problems["credentials"] = f"Missing credentials: {', '.join(missing)}"

        if self.execution_mode not in EXECUTION_MODES:
            problems["execution_mode"] = (
                f"Unknown execution mode '{self.execution_mode}', expected one of {', '.join(EXECUTION_MODES)}"
            )

        if self.queue_poll_interval <= 0:
            problems["queue_poll_interval"] = "Queue poll interval must be positive"

        for name in ("catalog_search_limit", "ranker_result_limit", "queue_max_polls", "agent_max_steps"):
            if getattr(self, name) < 1:
                problems[name] = f"{name} must be at least 1"

        return problems

    def configure_logging(self) -> None:
        """Set up root logging from ``log_level`` and the optional log file."""
        options = {
            "level": logging.DEBUG if self.debug else getattr(logging, self.log_level.upper(), logging.INFO),
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        }
        if self.enable_file_logging and self.log_file:
            options.update(filename=self.log_file, filemode="a")

        logging.basicConfig(**options)

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


settings = Settings()

settings.configure_logging()


def mask_secret(value: str) -> str:
    """Keep only the last four characters of a secret."""
    if not value:
        return "Not set"
    if len(value) <= 4:
        return "********"
    return f"{'*' * 8}{value[-4:]}"


def print_settings(include_secrets: bool = False) -> str:
    """
    Render the current settings, one ``name: value`` line each.

    Args:
        include_secrets: Show API keys in full instead of masked

    Returns:
        Printable settings listing
    """
    lines = ["Current Settings:"]
    for name, value in sorted(settings.model_dump().items()):
        if name in SECRET_FIELDS and not include_secrets:
            value = mask_secret(value)
        lines.append(f"  {name}: {value}")
    return "\n".join(lines)


def validate_environment() -> Dict[str, str]:
    """Log every settings problem and return them."""
    logger = logging.getLogger(__name__)

    problems = settings.validate_settings()
    for name, message in problems.items():
        logger.warning(f"Configuration problem ({name}): {message}")
    if not problems:
        logger.info("Configuration OK")

    return problems
