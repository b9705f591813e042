"""Application settings loaded from the environment and an optional .env file."""
import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from signup_ledger.utils.exceptions import ConfigurationError

DEFAULT_SLOT_PREFERENCES = ("6:00 AM", "8:00 AM", "10:00 AM", "6:00 PM")
STORAGE_BACKENDS = ("local", "github", "browser")
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _is_truthy(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _split_labels(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return DEFAULT_SLOT_PREFERENCES
    labels = tuple(label.strip() for label in value.split(",") if label.strip())
    return labels or DEFAULT_SLOT_PREFERENCES


@dataclass(frozen=True)
class Settings:
    """Runtime configuration."""

    port: int = 3000
    host: str = "0.0.0.0"
    data_file: str = "calendar-data.json"
    csv_dir: str = "."
    storage_backend: str = "local"
    github_token: Optional[str] = None
    github_repo: Optional[str] = None
    github_branch: str = "main"
    github_data_path: str = "calendar-data.json"
    github_csv_dir: str = "exports"
    remote_timeout: float = 10.0
    enforce_slot_dates: bool = False
    strict_slot_preferences: bool = False
    slot_preferences: Tuple[str, ...] = field(default=DEFAULT_SLOT_PREFERENCES)
    auto_write_csv: bool = True
    admin_username: str = "admin"
    admin_password: str = ""
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate settings after initialization."""
        if self.storage_backend not in STORAGE_BACKENDS:
            raise ConfigurationError(
                f"STORAGE_BACKEND must be one of {list(STORAGE_BACKENDS)}, got: {self.storage_backend}"
            )
        if self.storage_backend == "github" and not self.remote_configured:
            raise ConfigurationError("STORAGE_BACKEND=github requires GITHUB_TOKEN and GITHUB_REPO")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"PORT must be between 1 and 65535, got: {self.port}")
        if self.remote_timeout <= 0:
            raise ConfigurationError("REMOTE_TIMEOUT must be positive")

    @property
    def remote_configured(self) -> bool:
        """True when remote repository credentials are present."""
        return bool(self.github_token and self.github_repo)

    @property
    def allowed_slot_preferences(self) -> Optional[Tuple[str, ...]]:
        """Labels a signup must use, or None when any label is accepted."""
        return self.slot_preferences if self.strict_slot_preferences else None


def load_settings(env: Optional[Mapping[str, str]] = None, dotenv_path: Optional[str] = None) -> Settings:
    """
    Build settings from environment variables.

    Args:
        env: Mapping to read instead of os.environ (no .env loading then)
        dotenv_path: Explicit .env file; defaults to searching from the cwd

    Raises:
        ConfigurationError: If a value is invalid
    """
    if env is None:
        # Variables already set in the environment take precedence
        load_dotenv(dotenv_path=dotenv_path, override=False)
        env = os.environ

    try:
        port = int(env.get("PORT", "3000"))
        remote_timeout = float(env.get("REMOTE_TIMEOUT", "10"))
    except ValueError as e:
        raise ConfigurationError(f"Invalid numeric setting: {e}") from e

    return Settings(
        port=port,
        host=env.get("HOST", "0.0.0.0"),
        data_file=env.get("DATA_FILE", "calendar-data.json"),
        csv_dir=env.get("CSV_DIR", "."),
        storage_backend=env.get("STORAGE_BACKEND", "local").strip().lower(),
        github_token=env.get("GITHUB_TOKEN") or None,
        github_repo=env.get("GITHUB_REPO") or None,
        github_branch=env.get("GITHUB_BRANCH", "main"),
        github_data_path=env.get("GITHUB_DATA_PATH", "calendar-data.json"),
        github_csv_dir=env.get("GITHUB_CSV_DIR", "exports"),
        remote_timeout=remote_timeout,
        enforce_slot_dates=_is_truthy(env.get("ENFORCE_SLOT_DATES")),
        strict_slot_preferences=_is_truthy(env.get("STRICT_SLOT_PREFERENCES")),
        slot_preferences=_split_labels(env.get("SLOT_PREFERENCES")),
        auto_write_csv=_is_truthy(env.get("AUTO_WRITE_CSV", "true")),
        admin_username=env.get("ADMIN_USERNAME", "admin"),
        admin_password=env.get("ADMIN_PASSWORD", ""),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for an entry point."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
