"""Build the ledger and its backends from settings."""
import logging
from typing import Any, MutableMapping, Optional

from signup_ledger.config import Settings
from signup_ledger.services.backends import (
    GitHubBackend,
    LocalFileBackend,
    MemoryBackend,
    PersistenceBackend,
)
from signup_ledger.services.ledger_service import SignupLedger
from signup_ledger.services.remote_sync import RemoteSync

logger = logging.getLogger(__name__)


def build_github_backend(settings: Settings) -> GitHubBackend:
    return GitHubBackend(
        token=settings.github_token,
        repo=settings.github_repo,
        branch=settings.github_branch,
        data_path=settings.github_data_path,
        csv_dir=settings.github_csv_dir,
        timeout=settings.remote_timeout,
    )


def build_backend(settings: Settings, store: Optional[MutableMapping[str, Any]] = None) -> PersistenceBackend:
    """
    Select the primary persistence backend.

    Args:
        settings: Runtime settings
        store: Mapping for the "browser" backend (e.g. st.session_state)
    """
    if settings.storage_backend == "github":
        return build_github_backend(settings)
    if settings.storage_backend == "browser":
        return MemoryBackend(store)
    return LocalFileBackend(settings.data_file, settings.csv_dir)


def build_ledger(settings: Settings, store: Optional[MutableMapping[str, Any]] = None) -> SignupLedger:
    """
    Create a SignupLedger with the commit hooks the settings ask for.

    - AUTO_WRITE_CSV: rewrite both CSV artifacts on the primary backend
    - GitHub credentials with a non-GitHub primary: push CSVs remotely
      in the background
    """
    backend = build_backend(settings, store)
    ledger = SignupLedger(
        backend,
        enforce_slot_dates=settings.enforce_slot_dates,
        allowed_slot_preferences=settings.allowed_slot_preferences,
    )

    if settings.auto_write_csv:
        ledger.add_commit_hook(lambda _snapshot: ledger.write_csv_files())

    if settings.remote_configured and settings.storage_backend != "github":
        ledger.add_commit_hook(RemoteSync(build_github_backend(settings)))
    else:
        logger.debug("Remote sync disabled")

    logger.info("Signup ledger using %s backend", backend.name)
    return ledger
