"""Best-effort copy of CSV exports to a remote repository after each signup."""
import logging
import threading
from datetime import date
from typing import List, Optional

from signup_ledger.services.backends import PersistenceBackend
from signup_ledger.services.export_service import ExportVariant, export_filename, ledger_to_csv
from signup_ledger.services.ledger_service import Ledger
from signup_ledger.utils.exceptions import RemoteSyncFailed, StorageUnavailable

logger = logging.getLogger(__name__)


class RemoteSync:
    """
    Commit hook pushing both CSV variants to a remote backend.

    Calling the instance starts a daemon thread and returns immediately;
    failures are logged and never reach the signup that triggered them.
    """

    def __init__(self, remote: PersistenceBackend) -> None:
        self.remote = remote
        self._threads: List[threading.Thread] = []

    def push(self, snapshot: Ledger, today: Optional[date] = None) -> List[str]:
        """
        Write both CSV variants of `snapshot` to the remote backend.

        Raises:
            RemoteSyncFailed: If any write fails
        """
        written = []
        for variant in ExportVariant:
            filename = export_filename(variant, "csv", today)
            try:
                written.append(self.remote.write_artifact(filename, ledger_to_csv(snapshot, variant)))
            except (StorageUnavailable, ValueError) as e:
                raise RemoteSyncFailed(f"Could not push {filename}: {e}") from e
        return written

    def _run(self, snapshot: Ledger) -> None:
        try:
            locations = self.push(snapshot)
        except RemoteSyncFailed as e:
            logger.warning("Remote sync failed: %s", e.message)
        else:
            logger.info("Remote sync wrote %s", ", ".join(locations))

    def __call__(self, snapshot: Ledger) -> threading.Thread:
        thread = threading.Thread(target=self._run, args=(snapshot,), name="remote-sync", daemon=True)
        self._threads = [t for t in self._threads if t.is_alive()]
        self._threads.append(thread)
        thread.start()
        return thread

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight pushes (used on shutdown and in tests)."""
        for thread in list(self._threads):
            thread.join(timeout)
