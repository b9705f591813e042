"""Persistence backends for the signup ledger.

Backends are swappable: the ledger depends only on `PersistenceBackend`
and every implementation stores the same JSON document shape.
"""
import base64
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from contextlib import ExitStack, contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, MutableMapping, Optional

import requests

from signup_ledger.services.storage_service import load_json, lock_file, save_json, save_text
from signup_ledger.utils.exceptions import StorageUnavailable

logger = logging.getLogger(__name__)

LOCAL_STORAGE_KEY = "thanksgivingCalendar"
GITHUB_API_URL = "https://api.github.com"


def is_safe_artifact_name(filename: str) -> bool:
    """Accept only plain `*.csv` file names (no directories, no traversal)."""
    return (
        bool(filename)
        and filename.endswith(".csv")
        and os.path.basename(filename) == filename
        and filename not in {".", ".."}
        and not filename.startswith(".")
    )


@dataclass(frozen=True)
class ArtifactInfo:
    """Metadata of a written CSV artifact."""

    filename: str
    size: int
    created: Optional[str] = None
    modified: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PersistenceBackend(ABC):
    """Interface for ledger persistence operations."""

    name = "backend"

    def __init__(self) -> None:
        self._thread_lock = threading.RLock()

    @abstractmethod
    def read(self) -> Dict[str, Any]:
        """Return the persisted ledger document, or {} if nothing is stored."""
        ...

    @abstractmethod
    def write(self, data: Dict[str, Any]) -> None:
        """Durably replace the complete ledger document."""
        ...

    @abstractmethod
    def write_artifact(self, filename: str, content: str) -> str:
        """Store a CSV artifact and return where it was written."""
        ...

    @abstractmethod
    def list_artifacts(self) -> List[ArtifactInfo]:
        """Return written artifacts, most recently modified first."""
        ...

    @abstractmethod
    def read_artifact(self, filename: str) -> Optional[str]:
        """Return an artifact's content, or None if it does not exist."""
        ...

    @contextmanager
    def lock(self) -> Iterator[None]:
        """Serialize read-modify-write cycles against this backend."""
        with self._thread_lock:
            yield

    def clear(self) -> None:
        """Delete the ledger document and all artifacts."""
        raise NotImplementedError(f"The {self.name} backend cannot be cleared")


class LocalFileBackend(PersistenceBackend):
    """Ledger kept in a JSON file, CSV artifacts in a directory."""

    name = "local"

    def __init__(self, data_file: str, csv_dir: str = ".", lock_timeout: float = 5.0) -> None:
        super().__init__()
        self.data_file = data_file
        self.csv_dir = csv_dir
        self.lock_timeout = lock_timeout

    def _ensure_data_file(self) -> None:
        if not os.path.exists(self.data_file):
            save_json(self.data_file, {}, backup=False)

    def read(self) -> Dict[str, Any]:
        try:
            self._ensure_data_file()
            data = load_json(self.data_file)
        except (OSError, ValueError) as e:
            logger.error("Failed to read ledger file %s", self.data_file, exc_info=True)
            raise StorageUnavailable("Failed to read calendar data") from e

        if not isinstance(data, dict):
            raise StorageUnavailable("Failed to read calendar data")
        return data

    def write(self, data: Dict[str, Any]) -> None:
        try:
            save_json(self.data_file, data, backup=True)
        except OSError as e:
            logger.error("Failed to write ledger file %s", self.data_file, exc_info=True)
            raise StorageUnavailable("Failed to save calendar data") from e

    def write_artifact(self, filename: str, content: str) -> str:
        if not is_safe_artifact_name(filename):
            raise ValueError(f"Invalid artifact name: {filename}")
        path = os.path.join(self.csv_dir, filename)
        try:
            save_text(path, content)
        except OSError as e:
            logger.error("Failed to write CSV artifact %s", path, exc_info=True)
            raise StorageUnavailable("Failed to write CSV file") from e
        return os.path.abspath(path)

    def list_artifacts(self) -> List[ArtifactInfo]:
        if not os.path.isdir(self.csv_dir):
            return []

        artifacts = []
        try:
            for entry in os.scandir(self.csv_dir):
                if not entry.is_file() or not is_safe_artifact_name(entry.name):
                    continue
                stats = entry.stat()
                created = getattr(stats, "st_birthtime", stats.st_ctime)
                artifacts.append((
                    stats.st_mtime,
                    ArtifactInfo(
                        filename=entry.name,
                        size=stats.st_size,
                        created=_iso_from_epoch(created),
                        modified=_iso_from_epoch(stats.st_mtime),
                    ),
                ))
        except OSError as e:
            raise StorageUnavailable("Failed to list CSV files") from e

        artifacts.sort(key=lambda item: item[0], reverse=True)
        return [info for _, info in artifacts]

    def read_artifact(self, filename: str) -> Optional[str]:
        if not is_safe_artifact_name(filename):
            return None
        path = os.path.join(self.csv_dir, filename)
        if not os.path.isfile(path):
            return None
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                return f.read()
        except OSError as e:
            raise StorageUnavailable("Failed to download CSV file") from e

    @contextmanager
    def lock(self) -> Iterator[None]:
        with self._thread_lock, ExitStack() as stack:
            try:
                self._ensure_data_file()
                stack.enter_context(lock_file(self.data_file, timeout=self.lock_timeout))
            except OSError as e:
                raise StorageUnavailable("Calendar data is busy, please retry") from e
            yield


class MemoryBackend(PersistenceBackend):
    """
    Ledger kept as JSON text under a fixed key in a mutable mapping.

    The client-only Streamlit variant passes `st.session_state`, mirroring
    a browser's local storage; tests pass a plain dict.
    """

    name = "browser"

    def __init__(self, store: Optional[MutableMapping[str, Any]] = None, key: str = LOCAL_STORAGE_KEY) -> None:
        super().__init__()
        self.store = store if store is not None else {}
        self.key = key
        self._artifact_key = f"{key}:artifacts"

    def read(self) -> Dict[str, Any]:
        saved = self.store.get(self.key)
        if not saved:
            return {}
        try:
            data = json.loads(saved)
        except (TypeError, ValueError) as e:
            raise StorageUnavailable("Failed to read calendar data") from e
        if not isinstance(data, dict):
            raise StorageUnavailable("Failed to read calendar data")
        return data

    def write(self, data: Dict[str, Any]) -> None:
        self.store[self.key] = json.dumps(data, ensure_ascii=False)

    def _artifacts(self) -> Dict[str, Dict[str, Any]]:
        if self._artifact_key not in self.store:
            self.store[self._artifact_key] = {}
        return self.store[self._artifact_key]

    def write_artifact(self, filename: str, content: str) -> str:
        if not is_safe_artifact_name(filename):
            raise ValueError(f"Invalid artifact name: {filename}")
        now = _iso_from_epoch(datetime.now(timezone.utc).timestamp())
        existing = self._artifacts().get(filename)
        self._artifacts()[filename] = {
            "content": content,
            "created": existing["created"] if existing else now,
            "modified": now,
        }
        return f"{self.key}/{filename}"

    def list_artifacts(self) -> List[ArtifactInfo]:
        infos = [
            ArtifactInfo(
                filename=filename,
                size=len(entry["content"].encode("utf-8")),
                created=entry["created"],
                modified=entry["modified"],
            )
            for filename, entry in self._artifacts().items()
        ]
        return sorted(infos, key=lambda info: info.modified or "", reverse=True)

    def read_artifact(self, filename: str) -> Optional[str]:
        entry = self._artifacts().get(filename)
        return entry["content"] if entry else None

    def clear(self) -> None:
        """Forget all stored data (operator reset)."""
        self.store.pop(self.key, None)
        self.store.pop(self._artifact_key, None)


class GitHubBackend(PersistenceBackend):
    """
    Ledger and CSV artifacts stored in a GitHub repository.

    Uses the repository contents API. Within one lock() cycle the blob sha
    of the first read is sent with the write, so a commit made from
    elsewhere in between makes the write fail instead of being overwritten.
    """

    name = "github"

    def __init__(
        self,
        token: str,
        repo: str,
        branch: str = "main",
        data_path: str = "calendar-data.json",
        csv_dir: str = "exports",
        timeout: float = 10.0,
        api_url: str = GITHUB_API_URL,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__()
        self.repo = repo
        self.branch = branch
        self.data_path = data_path.strip("/")
        self.csv_dir = csv_dir.strip("/")
        self.timeout = timeout
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        })
        # Revision of the ledger document seen by the first read of the
        # current lock cycle; only the lock owner records or uses it
        self._cycle_owner: Optional[int] = None
        self._cycle_sha: Optional[str] = None
        self._cycle_read = False

    def _contents_url(self, path: str) -> str:
        return f"{self.api_url}/repos/{self.repo}/contents/{path}"

    def _artifact_path(self, filename: str) -> str:
        return f"{self.csv_dir}/{filename}" if self.csv_dir else filename

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = self._contents_url(path)
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            logger.error("GitHub %s %s timed out after %ss", method, path, self.timeout)
            raise StorageUnavailable("Remote storage timed out") from e
        except requests.RequestException as e:
            logger.error("GitHub %s %s failed", method, path, exc_info=True)
            raise StorageUnavailable("Remote storage unreachable") from e

    def _get_file(self, path: str) -> Optional[Dict[str, Any]]:
        response = self._request("GET", path, params={"ref": self.branch})
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.error("GitHub GET %s returned %s", path, response.status_code)
            raise StorageUnavailable("Failed to read remote data")
        return response.json()

    def _put_file(self, path: str, content: str, message: str, sha: Optional[str]) -> Dict[str, Any]:
        payload = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": self.branch,
        }
        if sha:
            payload["sha"] = sha

        response = self._request("PUT", path, json=payload)
        if response.status_code in (409, 422):
            logger.error("GitHub PUT %s rejected: revision conflict", path)
            raise StorageUnavailable("Remote data changed concurrently, please retry")
        if response.status_code not in (200, 201):
            logger.error("GitHub PUT %s returned %s", path, response.status_code)
            raise StorageUnavailable("Failed to write remote data")
        return response.json()

    @staticmethod
    def _decode(file_info: Dict[str, Any]) -> str:
        return base64.b64decode(file_info.get("content", "")).decode("utf-8")

    def _in_cycle(self) -> bool:
        return self._cycle_owner == threading.get_ident()

    @contextmanager
    def lock(self) -> Iterator[None]:
        with self._thread_lock:
            self._cycle_owner = threading.get_ident()
            self._cycle_sha = None
            self._cycle_read = False
            try:
                yield
            finally:
                self._cycle_owner = None
                self._cycle_sha = None
                self._cycle_read = False

    def read(self) -> Dict[str, Any]:
        file_info = self._get_file(self.data_path)
        sha = file_info.get("sha") if file_info else None
        if self._in_cycle() and not self._cycle_read:
            self._cycle_sha = sha
            self._cycle_read = True

        if file_info is None:
            return {}
        try:
            data = json.loads(self._decode(file_info) or "{}")
        except ValueError as e:
            raise StorageUnavailable("Failed to read remote data") from e
        if not isinstance(data, dict):
            raise StorageUnavailable("Failed to read remote data")
        return data

    def write(self, data: Dict[str, Any]) -> None:
        """
        Commit the ledger document.

        Inside lock() the commit is based on the revision of the cycle's
        first read and is rejected if the document changed since. Outside
        lock() it replaces the latest revision.
        """
        if self._in_cycle() and self._cycle_read:
            sha = self._cycle_sha
        else:
            existing = self._get_file(self.data_path)
            sha = existing.get("sha") if existing else None

        result = self._put_file(
            self.data_path,
            json.dumps(data, ensure_ascii=False, indent=2),
            "Update calendar data",
            sha,
        )
        if self._in_cycle():
            self._cycle_sha = result.get("content", {}).get("sha")
            self._cycle_read = True

    def write_artifact(self, filename: str, content: str) -> str:
        if not is_safe_artifact_name(filename):
            raise ValueError(f"Invalid artifact name: {filename}")
        path = self._artifact_path(filename)
        existing = self._get_file(path)
        self._put_file(
            path,
            content,
            f"Update {filename}",
            existing.get("sha") if existing else None,
        )
        return f"{self.repo}@{self.branch}:{path}"

    def list_artifacts(self) -> List[ArtifactInfo]:
        response = self._request("GET", self.csv_dir, params={"ref": self.branch})
        if response.status_code == 404:
            return []
        if response.status_code != 200:
            raise StorageUnavailable("Failed to list CSV files")

        entries = response.json()
        artifacts = [
            ArtifactInfo(filename=entry["name"], size=entry.get("size", 0))
            for entry in entries
            if entry.get("type") == "file" and is_safe_artifact_name(entry.get("name", ""))
        ]
        # The contents API has no timestamps; file names carry the date
        return sorted(artifacts, key=lambda info: info.filename, reverse=True)

    def read_artifact(self, filename: str) -> Optional[str]:
        if not is_safe_artifact_name(filename):
            return None
        file_info = self._get_file(self._artifact_path(filename))
        if file_info is None:
            return None
        return self._decode(file_info)


def _iso_from_epoch(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat(timespec="seconds")
