"""
Configuration for the Headset Fleet Scheduler
=============================================
Runtime settings for the entity API client, the retry policy, batch
execution and recurrence limits, all read from ``FLEET_*`` environment
variables. Sets up the logging configuration as well.
"""

import os
from contextlib import suppress
from dataclasses import dataclass, field

from app.constants import Batch, Recurrence, Retry, Timeouts
from app.domain.exceptions import ConfigurationError


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be a number.") from None


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("FLEET_ENV", "development"))

    # Entity API
    api_base_url: str = field(default_factory=lambda: os.getenv("FLEET_API_BASE_URL", ""))
    api_key: str = field(default_factory=lambda: os.getenv("FLEET_API_KEY", ""), repr=False)
    app_id: str = field(default_factory=lambda: os.getenv("FLEET_APP_ID", ""))
    api_timeout_seconds: float = field(
        default_factory=lambda: _env_float("FLEET_API_TIMEOUT_SECONDS", Timeouts.HTTP_REQUEST_TIMEOUT)
    )

    # Rate-limit retry policy
    retry_max: int = field(default_factory=lambda: _env_int("FLEET_RETRY_MAX", Retry.MAX_RETRIES))
    retry_base_delay_ms: int = field(
        default_factory=lambda: _env_int("FLEET_RETRY_BASE_DELAY_MS", Retry.BASE_DELAY_MS)
    )
    retry_factor: float = field(default_factory=lambda: _env_float("FLEET_RETRY_FACTOR", Retry.BACKOFF_FACTOR))

    # Bounded batch execution
    batch_max_workers: int = field(default_factory=lambda: _env_int("FLEET_BATCH_MAX_WORKERS", Batch.MAX_WORKERS))
    batch_chunk_size: int = field(default_factory=lambda: _env_int("FLEET_BATCH_CHUNK_SIZE", Batch.CHUNK_SIZE))
    batch_chunk_pause_ms: int = field(
        default_factory=lambda: _env_int("FLEET_BATCH_CHUNK_PAUSE_MS", Batch.CHUNK_PAUSE_MS)
    )

    # Recurrence expansion limits
    recurrence_max_iterations: int = field(
        default_factory=lambda: _env_int("FLEET_RECURRENCE_MAX_ITERATIONS", Recurrence.MAX_ITERATIONS)
    )
    recurrence_max_occurrences: int = field(
        default_factory=lambda: _env_int("FLEET_RECURRENCE_MAX_OCCURRENCES", Recurrence.MAX_OCCURRENCES)
    )

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("FLEET_LOG_LEVEL", "INFO"))
    log_file: str = field(default_factory=lambda: os.getenv("FLEET_LOG_FILE", "logs/fleet.log"))
    audit_log_path: str = field(default_factory=lambda: os.getenv("FLEET_AUDIT_LOG_PATH", "logs/audit.log"))
    DEBUG: bool = field(default_factory=lambda: _env_bool("FLEET_DEBUG", False))

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.environment == "production" and not self.api_base_url:
            raise ConfigurationError(
                "FLEET_API_BASE_URL must be set in production.\n"
                "Point it at the entity API root, e.g. https://api.example.com/api/apps/<app-id>"
            )

    @property
    def offline(self) -> bool:
        """No entity API configured; services run on in-memory stores."""
        return not self.api_base_url


# ==================== CONFIGURATION VALIDATION ====================


def validate_config(config: AppConfig) -> list[str]:
    """
    Validate configuration and return list of warnings.

    Args:
        config: AppConfig instance

    Returns:
        List of warning messages (empty if all valid)

    Raises:
        ConfigurationError: A value makes the service unusable
    """
    errors = []
    if config.retry_max < 0:
        errors.append(f"FLEET_RETRY_MAX must be >= 0 (got {config.retry_max})")
    if config.retry_base_delay_ms < 0:
        errors.append(f"FLEET_RETRY_BASE_DELAY_MS must be >= 0 (got {config.retry_base_delay_ms})")
    if config.batch_max_workers < 1:
        errors.append(f"FLEET_BATCH_MAX_WORKERS must be >= 1 (got {config.batch_max_workers})")
    if config.batch_chunk_size < 1:
        errors.append(f"FLEET_BATCH_CHUNK_SIZE must be >= 1 (got {config.batch_chunk_size})")
    if config.recurrence_max_iterations < 1:
        errors.append(f"FLEET_RECURRENCE_MAX_ITERATIONS must be >= 1 (got {config.recurrence_max_iterations})")
    if config.recurrence_max_occurrences < 1:
        errors.append(f"FLEET_RECURRENCE_MAX_OCCURRENCES must be >= 1 (got {config.recurrence_max_occurrences})")
    if config.api_timeout_seconds <= 0:
        errors.append(f"FLEET_API_TIMEOUT_SECONDS must be > 0 (got {config.api_timeout_seconds})")
    if errors:
        raise ConfigurationError("; ".join(errors), detail={"errors": errors})

    warnings = []

    if config.offline:
        warnings.append("FLEET_API_BASE_URL is not set; running on in-memory stores")
    elif not config.api_key:
        warnings.append("FLEET_API_KEY is not set; entity API calls are unauthenticated")

    # More than a handful of parallel writes trips the entity API rate limiter
    if config.batch_max_workers > 8:
        warnings.append(
            f"Batch workers ({config.batch_max_workers}) is high and will hit rate limits. Recommended: 2-6"
        )

    if config.retry_max == 0:
        warnings.append("FLEET_RETRY_MAX is 0; rate-limited calls fail on the first 429")

    if config.recurrence_max_occurrences > config.recurrence_max_iterations:
        warnings.append(
            f"Occurrence cap ({config.recurrence_max_occurrences}) exceeds iteration cap "
            f"({config.recurrence_max_iterations}); the iteration cap wins"
        )

    return warnings


def setup_logging(debug: bool = False, log_file: str | None = None, level: str | None = None) -> None:
    """Setup logging configuration."""
    import logging
    import sys
    from logging.handlers import RotatingFileHandler

    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, (level or "INFO").upper(), logging.INFO)

    # Root logger
    root = logging.getLogger()
    root.setLevel(log_level)

    # Avoid adding duplicates when setup is called multiple times
    has_console = any(getattr(h, "name", "") == "fleet_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "fleet_file" for h in root.handlers)
    added_handler = False

    # Console handler (UTF-8 so Hebrew labels in records print on any terminal)
    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "fleet_console"
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    # File handler
    if log_file and not has_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "fleet_file"
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    # Ensure handler levels follow the desired log level
    for handler in root.handlers:
        if getattr(handler, "name", "") in {"fleet_console", "fleet_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info("Logging initialized at level: %s", logging.getLevelName(log_level))

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_config() -> AppConfig:
    """Helper for callers to load and validate configuration."""
    import logging

    config = AppConfig()
    logger = logging.getLogger("config_loader")
    for warning in validate_config(config):
        logger.warning(warning)
    return config
