"""Service settings loaded from environment variables.

Settings are read and validated once at startup. The activity file filter is
compiled here so an invalid pattern stops the application from starting
instead of failing every activity request.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from services.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_REPOSITORY_DIRECTORY = "repositories"
DEFAULT_FILE_FILTER = (
    r"\.(ts|tsx|js|jsx|mjs|cjs|py|go|rs|java|kt|c|cc|cpp|h|hpp|cs|rb|php|swift"
    r"|scala|vue|svelte)$"
)
DEFAULT_ACTIVITY_WINDOW = 20
DEFAULT_COMMITS_PER_REPOSITORY = 20

ERROR_POLICY_SKIP = "skip"
ERROR_POLICY_FAIL = "fail"


@dataclass(frozen=True)
class Settings:
    """Immutable service configuration."""

    repository_directory: Path
    file_filter: re.Pattern
    activity_window: int = DEFAULT_ACTIVITY_WINDOW
    commits_per_repository: int = DEFAULT_COMMITS_PER_REPOSITORY
    error_policy: str = ERROR_POLICY_SKIP
    log_level: str = "INFO"
    context_path: str = ""
    port: int = 3000


def compile_file_filter(pattern: str) -> re.Pattern:
    """Compile the activity file filter, raising ConfigurationError if invalid."""
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(
            f"Invalid ACTIVITY_FILE_FILTER pattern {pattern!r}: {e}"
        ) from e


def _get_positive_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def get_error_policy() -> str:
    """Get the activity error policy from ACTIVITY_ERROR_POLICY.

    Returns:
        "skip" or "fail". Defaults to "skip" if unset or invalid.
    """
    raw = os.getenv("ACTIVITY_ERROR_POLICY", ERROR_POLICY_SKIP).strip().lower()
    if raw in (ERROR_POLICY_SKIP, ERROR_POLICY_FAIL):
        return raw
    if raw == "":
        return ERROR_POLICY_SKIP
    logger.warning(
        f"Invalid ACTIVITY_ERROR_POLICY value '{raw}'. Falling back to '{ERROR_POLICY_SKIP}'."
    )
    return ERROR_POLICY_SKIP


def get_log_level() -> str:
    """Get the root log level from LOG_LEVEL, defaulting to INFO if unset or unknown."""
    raw = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    if isinstance(logging.getLevelName(raw), int):
        return raw
    if raw:
        logger.warning(f"Invalid LOG_LEVEL value '{raw}'. Falling back to 'INFO'.")
    return "INFO"


def _normalize_context_path(raw: str) -> str:
    path = raw.strip().rstrip("/")
    if path and not path.startswith("/"):
        path = "/" + path
    return path


def load_settings() -> Settings:
    """Build Settings from the process environment.

    Raises:
        ConfigurationError: If the file filter or a numeric value is invalid.
    """
    repository_directory = os.getenv("REPOSITORY_DIRECTORY", "").strip()
    file_filter = os.getenv("ACTIVITY_FILE_FILTER", "").strip()

    return Settings(
        repository_directory=Path(repository_directory or DEFAULT_REPOSITORY_DIRECTORY),
        file_filter=compile_file_filter(file_filter or DEFAULT_FILE_FILTER),
        activity_window=_get_positive_int("ACTIVITY_WINDOW", DEFAULT_ACTIVITY_WINDOW),
        commits_per_repository=_get_positive_int(
            "ACTIVITY_COMMITS_PER_REPOSITORY", DEFAULT_COMMITS_PER_REPOSITORY
        ),
        error_policy=get_error_policy(),
        log_level=get_log_level(),
        context_path=_normalize_context_path(os.getenv("CONTEXT_PATH", "")),
        port=_get_positive_int("PORT", 3000),
    )
