"""Low-level JSON and text file I/O with atomic writes and locking."""
import json
import os
import shutil
import sys
import tempfile
import time
from contextlib import contextmanager
from typing import Any, Dict

if sys.platform != "win32":
    import fcntl


def load_json(file_path: str, retry_count: int = 3, retry_delay: float = 0.1) -> Dict[str, Any]:
    """
    Load and parse a JSON document with UTF-8 encoding.

    Args:
        file_path: Path to JSON file
        retry_count: Number of attempts for permission errors (default: 3)
        retry_delay: Delay in seconds between attempts (default: 0.1)

    Returns:
        dict: Parsed JSON content

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If JSON is malformed
        PermissionError: If file not readable after retries
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")

    for attempt in range(retry_count):
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except PermissionError:
            if attempt < retry_count - 1:
                time.sleep(retry_delay)
        except json.JSONDecodeError as e:
            raise json.JSONDecodeError(
                f"Malformed JSON in {file_path}: {e.msg}",
                e.doc,
                e.pos
            )

    raise PermissionError(f"Cannot read file after {retry_count} attempts: {file_path}")


def _atomic_write(file_path: str, content: str, suffix: str) -> None:
    """Write text to a temp file beside `file_path`, fsync, then rename over it."""
    dir_path = os.path.dirname(file_path)
    if dir_path and not os.path.exists(dir_path):
        os.makedirs(dir_path, exist_ok=True)

    temp_fd, temp_path = tempfile.mkstemp(
        dir=dir_path if dir_path else ".",
        prefix=".tmp_",
        suffix=suffix
    )

    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, file_path)
    except OSError as e:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise IOError(f"Failed to write file {file_path}: {e}") from e


def save_json(file_path: str, data: Dict[str, Any], backup: bool = True) -> None:
    """
    Save data to a JSON file atomically with UTF-8 encoding.

    Args:
        file_path: Path to JSON file
        data: Dictionary to save
        backup: If True, copy the previous version to `<file>.backup` first

    Raises:
        IOError: If the backup or the write fails
    """
    if backup and os.path.exists(file_path):
        try:
            shutil.copy2(file_path, f"{file_path}.backup")
        except OSError as e:
            raise IOError(f"Failed to create backup: {e}") from e

    _atomic_write(file_path, json.dumps(data, ensure_ascii=False, indent=2), ".json")


def save_text(file_path: str, content: str) -> None:
    """
    Save a text artifact (e.g. a CSV export) atomically.

    Raises:
        IOError: If the write fails
    """
    _atomic_write(file_path, content, os.path.splitext(file_path)[1] or ".txt")


@contextmanager
def lock_file(file_path: str, timeout: float = 5.0):
    """
    Context manager for an exclusive inter-process lock on a file.

    Args:
        file_path: Path to file to lock
        timeout: Maximum seconds to wait for lock acquisition (default: 5.0)

    Usage:
        with lock_file('calendar-data.json'):
            data = load_json('calendar-data.json')
            data.setdefault('2025-11-30', []).append(record)
            save_json('calendar-data.json', data)

    Raises:
        TimeoutError: If unable to acquire lock within timeout
        FileNotFoundError: If file doesn't exist
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Cannot lock non-existent file: {file_path}")

    start_time = time.time()

    # Windows: a sibling lock file created exclusively stands in for flock
    if sys.platform == "win32":
        lock_file_path = f"{file_path}.lock"
        while True:
            try:
                lock_fd = os.open(lock_file_path, os.O_CREAT | os.O_EXCL | os.O_RDWR)
                break
            except FileExistsError:
                if time.time() - start_time > timeout:
                    raise TimeoutError(f"Could not acquire lock on {file_path} within {timeout}s")
                time.sleep(0.05)

        try:
            yield
        finally:
            os.close(lock_fd)
            if os.path.exists(lock_file_path):
                os.remove(lock_file_path)
        return

    # The lock is taken on a sidecar file so atomic renames of the data
    # file do not drop it
    with open(f"{file_path}.lock", "a") as lock_fd:
        while True:
            try:
                fcntl.flock(lock_fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except OSError:
                if time.time() - start_time > timeout:
                    raise TimeoutError(f"Could not acquire lock on {file_path} within {timeout}s")
                time.sleep(0.05)

        try:
            yield
        finally:
            fcntl.flock(lock_fd.fileno(), fcntl.LOCK_UN)
