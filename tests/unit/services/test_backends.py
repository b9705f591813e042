"""Unit tests for persistence backends."""
import base64
import json
import threading
from unittest.mock import MagicMock

import pytest
import requests

from signup_ledger.services.backends import (
    LOCAL_STORAGE_KEY,
    GitHubBackend,
    LocalFileBackend,
    MemoryBackend,
    is_safe_artifact_name,
)
from signup_ledger.utils.exceptions import StorageUnavailable


def _response(status_code, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


def _encoded(text):
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


class TestArtifactNames:
    """Test artifact file name checks."""

    def test_plain_csv_name_is_safe(self):
        assert is_safe_artifact_name("thanksgiving-calendar-public-2025-11-20.csv") is True

    @pytest.mark.parametrize("name", ["", "../secret.csv", "dir/file.csv", ".hidden.csv", "data.json"])
    def test_unsafe_names(self, name):
        assert is_safe_artifact_name(name) is False


class TestLocalFileBackend:
    """Test the JSON file backend."""

    def test_missing_file_reads_as_empty_and_is_created(self, tmp_path):
        data_file = tmp_path / "calendar-data.json"
        backend = LocalFileBackend(str(data_file), csv_dir=str(tmp_path))

        assert backend.read() == {}
        assert json.loads(data_file.read_text(encoding="utf-8")) == {}

    def test_write_then_read(self, tmp_path):
        backend = LocalFileBackend(str(tmp_path / "calendar-data.json"), csv_dir=str(tmp_path))
        document = {"2025-11-30": [{"name": "Alice", "phone": "1", "mass": "8:00 AM", "addedAt": ""}]}

        backend.write(document)

        assert backend.read() == document

    def test_corrupt_file_raises_storage_unavailable(self, tmp_path):
        data_file = tmp_path / "calendar-data.json"
        data_file.write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageUnavailable, match="Failed to read calendar data"):
            LocalFileBackend(str(data_file)).read()

    def test_non_object_document_raises_storage_unavailable(self, tmp_path):
        data_file = tmp_path / "calendar-data.json"
        data_file.write_text("[]", encoding="utf-8")

        with pytest.raises(StorageUnavailable):
            LocalFileBackend(str(data_file)).read()

    def test_write_failure_raises_storage_unavailable(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        backend = LocalFileBackend(str(blocker / "calendar-data.json"))

        with pytest.raises(StorageUnavailable, match="Failed to save calendar data"):
            backend.write({})

    def test_artifacts(self, tmp_path):
        csv_dir = tmp_path / "exports"
        backend = LocalFileBackend(str(tmp_path / "calendar-data.json"), csv_dir=str(csv_dir))

        location = backend.write_artifact("a.csv", "Date,Name")
        (csv_dir / "notes.txt").write_text("ignored", encoding="utf-8")

        assert location == str(csv_dir / "a.csv")
        assert [info.filename for info in backend.list_artifacts()] == ["a.csv"]
        info = backend.list_artifacts()[0]
        assert info.size == len("Date,Name")
        assert info.modified.endswith("+00:00")
        assert backend.read_artifact("a.csv") == "Date,Name"

    def test_list_artifacts_without_directory(self, tmp_path):
        backend = LocalFileBackend(str(tmp_path / "calendar-data.json"), csv_dir=str(tmp_path / "missing"))

        assert backend.list_artifacts() == []

    def test_read_artifact_rejects_traversal(self, tmp_path):
        (tmp_path / "secret.csv").write_text("x", encoding="utf-8")
        backend = LocalFileBackend(str(tmp_path / "data.json"), csv_dir=str(tmp_path / "exports"))

        assert backend.read_artifact("../secret.csv") is None
        assert backend.read_artifact("missing.csv") is None

    def test_write_artifact_rejects_unsafe_name(self, tmp_path):
        backend = LocalFileBackend(str(tmp_path / "data.json"), csv_dir=str(tmp_path))

        with pytest.raises(ValueError, match="Invalid artifact name"):
            backend.write_artifact("../escape.csv", "x")

    def test_cannot_be_cleared(self, tmp_path):
        with pytest.raises(NotImplementedError):
            LocalFileBackend(str(tmp_path / "data.json")).clear()

    def test_lock_is_reentrant_across_calls(self, tmp_path):
        backend = LocalFileBackend(str(tmp_path / "data.json"))

        with backend.lock():
            backend.write({"2025-11-30": []})
        with backend.lock():
            assert backend.read() == {"2025-11-30": []}


class TestMemoryBackend:
    """Test the session-state backend."""

    def test_stores_json_text_under_fixed_key(self):
        store = {}
        backend = MemoryBackend(store)

        backend.write({"2025-11-30": []})

        assert json.loads(store[LOCAL_STORAGE_KEY]) == {"2025-11-30": []}
        assert backend.read() == {"2025-11-30": []}

    def test_empty_store_reads_as_empty(self):
        assert MemoryBackend({}).read() == {}

    def test_invalid_saved_text_raises_storage_unavailable(self):
        with pytest.raises(StorageUnavailable):
            MemoryBackend({LOCAL_STORAGE_KEY: "{broken"}).read()

    def test_artifacts_and_clear(self):
        store = {}
        backend = MemoryBackend(store)

        backend.write({"k": []})
        backend.write_artifact("a.csv", "Date,Name")

        assert backend.read_artifact("a.csv") == "Date,Name"
        assert backend.list_artifacts()[0].size == 9
        assert backend.read_artifact("b.csv") is None

        backend.clear()

        assert store == {}
        assert backend.read() == {}


class TestGitHubBackend:
    """Test the GitHub contents API backend with a mocked session."""

    @pytest.fixture
    def session(self):
        session = MagicMock()
        session.headers = {}
        return session

    @pytest.fixture
    def backend(self, session):
        return GitHubBackend("token", "parish/calendar", session=session, timeout=3)

    def test_sets_auth_headers(self, backend, session):
        assert session.headers["Authorization"] == "Bearer token"

    def test_read_missing_document_is_empty(self, backend, session):
        session.request.return_value = _response(404)

        assert backend.read() == {}

    def test_read_decodes_document_and_sends_sha_on_write(self, backend, session):
        document = {"2025-11-30": [{"name": "Alice"}]}
        session.request.side_effect = [
            _response(200, {"sha": "abc", "content": _encoded(json.dumps(document))}),
            _response(200, {"content": {"sha": "def"}}),
        ]

        with backend.lock():
            assert backend.read() == document
            backend.write(document)

        method, url = session.request.call_args.args
        payload = session.request.call_args.kwargs["json"]
        assert method == "PUT"
        assert url == "https://api.github.com/repos/parish/calendar/contents/calendar-data.json"
        assert payload["sha"] == "abc"
        assert payload["branch"] == "main"
        assert json.loads(base64.b64decode(payload["content"])) == document
        assert session.request.call_args.kwargs["timeout"] == 3

    def test_later_read_in_cycle_does_not_move_revision(self, backend, session):
        """A newer revision seen mid-cycle must not be written over."""
        session.request.side_effect = [
            _response(200, {"sha": "A", "content": _encoded("{}")}),
            _response(200, {"sha": "B", "content": _encoded("{}")}),
            _response(409),
        ]

        with backend.lock():
            backend.read()
            backend.read()
            with pytest.raises(StorageUnavailable, match="changed concurrently"):
                backend.write({})

        assert session.request.call_args.kwargs["json"]["sha"] == "A"

    def test_read_from_other_thread_does_not_move_revision(self, backend, session):
        session.request.side_effect = [
            _response(200, {"sha": "A", "content": _encoded("{}")}),
            _response(200, {"sha": "B", "content": _encoded("{}")}),
            _response(200, {"content": {"sha": "C"}}),
        ]

        with backend.lock():
            backend.read()
            reader = threading.Thread(target=backend.read)
            reader.start()
            reader.join()
            backend.write({})

        assert session.request.call_args.kwargs["json"]["sha"] == "A"

    def test_write_outside_lock_uses_latest_revision(self, backend, session):
        session.request.side_effect = [
            _response(200, {"sha": "A", "content": _encoded("{}")}),
            _response(200, {"sha": "B", "content": _encoded("{}")}),
            _response(200, {"content": {"sha": "C"}}),
        ]

        backend.read()
        backend.write({})

        assert session.request.call_args.kwargs["json"]["sha"] == "B"

    def test_lock_cycle_state_is_reset(self, backend, session):
        session.request.side_effect = [
            _response(200, {"sha": "A", "content": _encoded("{}")}),
            _response(200, {"sha": "B", "content": _encoded("{}")}),
            _response(200, {"content": {"sha": "C"}}),
        ]

        with backend.lock():
            backend.read()
        with backend.lock():
            backend.read()
            backend.write({})

        assert session.request.call_args.kwargs["json"]["sha"] == "B"

    def test_cannot_be_cleared(self, backend):
        with pytest.raises(NotImplementedError):
            backend.clear()

    def test_concurrent_change_raises_storage_unavailable(self, backend, session):
        session.request.side_effect = [
            _response(200, {"sha": "A", "content": _encoded("{}")}),
            _response(409),
        ]

        with backend.lock():
            backend.read()
            with pytest.raises(StorageUnavailable, match="changed concurrently"):
                backend.write({})

    def test_timeout_raises_storage_unavailable(self, backend, session):
        session.request.side_effect = requests.Timeout()

        with pytest.raises(StorageUnavailable, match="timed out"):
            backend.read()

    def test_connection_error_raises_storage_unavailable(self, backend, session):
        session.request.side_effect = requests.ConnectionError()

        with pytest.raises(StorageUnavailable, match="unreachable"):
            backend.read()

    def test_server_error_raises_storage_unavailable(self, backend, session):
        session.request.return_value = _response(500)

        with pytest.raises(StorageUnavailable):
            backend.read()

    def test_write_artifact_updates_existing_file(self, backend, session):
        session.request.side_effect = [
            _response(200, {"sha": "old", "content": _encoded("x")}),
            _response(200, {"content": {"sha": "new"}}),
        ]

        location = backend.write_artifact("a.csv", "Date,Name")

        assert location == "parish/calendar@main:exports/a.csv"
        assert session.request.call_args.kwargs["json"]["sha"] == "old"

    def test_list_and_read_artifacts(self, backend, session):
        session.request.side_effect = [
            _response(200, [
                {"type": "file", "name": "a-2025-11-20.csv", "size": 10},
                {"type": "file", "name": "a-2025-11-21.csv", "size": 12},
                {"type": "dir", "name": "old.csv"},
                {"type": "file", "name": "README.md", "size": 3},
            ]),
            _response(200, {"sha": "s", "content": _encoded("Date,Name")}),
        ]

        names = [info.filename for info in backend.list_artifacts()]

        assert names == ["a-2025-11-21.csv", "a-2025-11-20.csv"]
        assert backend.read_artifact("a-2025-11-21.csv") == "Date,Name"

    def test_missing_export_directory_lists_nothing(self, backend, session):
        session.request.return_value = _response(404)

        assert backend.list_artifacts() == []
        assert backend.read_artifact("a.csv") is None
