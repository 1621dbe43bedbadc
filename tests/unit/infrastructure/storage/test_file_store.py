import json
from unittest.mock import patch

import pytest

from telemetry_client.infrastructure.storage import FileStore


class TestFileStoreLoad:
    def test_missing_file_yields_empty_store(self, tmp_path):
        store = FileStore(tmp_path / "absent.json")

        assert store.get("cly_queue") is None
        assert store.get("cly_queue", []) == []

    def test_corrupt_file_yields_empty_store(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")

        store = FileStore(path)

        assert store.get("cly_id") is None

    def test_non_object_blob_is_ignored(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")

        assert FileStore(path).get("cly_queue") is None

    def test_existing_state_is_loaded(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(
            json.dumps({"cly_queue": [{"begin_session": 1}], "cly_id": "abc"}),
            encoding="utf-8",
        )

        store = FileStore(path)

        assert store.get("cly_queue") == [{"begin_session": 1}]
        assert store.get("cly_id") == "abc"


class TestFileStoreWrites:
    def test_set_outside_loop_writes_whole_blob(self, store, store_path):
        store.set("cly_id", "device-1")
        store.set("cly_timed", {"checkout": 10})

        on_disk = json.loads(store_path.read_text(encoding="utf-8"))
        assert on_disk == {"cly_id": "device-1", "cly_timed": {"checkout": 10}}

    def test_durable_set_writes_before_returning(self, store, store_path):
        with patch.object(store, "flush", wraps=store.flush) as flush:
            store.set("cly_id", "device-1", durable=True)

        flush.assert_called_once()
        assert json.loads(store_path.read_text())["cly_id"] == "device-1"

    def test_write_failure_is_logged_not_raised(self, tmp_path):
        # The target path is a directory, so the atomic replace fails.
        target = tmp_path / "occupied"
        target.mkdir()
        store = FileStore(target)

        with patch("telemetry_client.infrastructure.storage.file_store.logger") as log:
            store.set("cly_id", "device-1")
            assert store.flush() is False

        assert log.exception.called
        # In-memory state stays authoritative
        assert store.get("cly_id") == "device-1"

    def test_reload_sees_previous_writes(self, store, store_path):
        store.set("cly_queue", [{"begin_session": 1, "app_key": "k"}])

        reloaded = FileStore(store_path)

        assert reloaded.get("cly_queue") == [{"begin_session": 1, "app_key": "k"}]


@pytest.mark.asyncio
async def test_set_inside_loop_is_written_in_background(store, store_path):
    store.set("cly_id", "device-1")
    assert store.pending_write

    await store.aclose()

    assert not store.pending_write
    assert json.loads(store_path.read_text())["cly_id"] == "device-1"


@pytest.mark.asyncio
async def test_background_writes_converge_to_latest_state(store, store_path):
    for i in range(20):
        store.set("cly_queue", [{"n": n} for n in range(i + 1)])

    await store.aclose()

    on_disk = json.loads(store_path.read_text())
    assert on_disk["cly_queue"] == [{"n": n} for n in range(20)]
