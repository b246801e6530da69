"""
Tests for read-state persistence.

Covers:
- Version-2 encoding and the version-1 legacy list
- Corrupt payloads decoding to the empty set
- In-memory, JSON-file and SQL stores
- Write failures surfacing as ReadStateWriteError
"""

import json
import logging

import pytest

from inventory_config.schema import EngineSettings
from inventory_engines.alerts import AlertId
from inventory_kernel.db.engine import session_scope
from inventory_kernel.exceptions import ReadStateWriteError
from inventory_services.read_state import (
    InMemoryReadStateStore,
    JsonFileReadStateStore,
    SqlReadStateStore,
    decode_read_ids,
    encode_read_ids,
    read_state_from_settings,
)

IDS = frozenset({AlertId.product(1), AlertId.maintenance(9)})


class TestCodec:
    def test_encoded_payload(self):
        assert json.loads(encode_read_ids(IDS)) == {
            "version": 2,
            "ids": ["maintenance:9", "product:1"],
        }

    def test_round_trip(self):
        assert decode_read_ids(encode_read_ids(IDS)) == IDS

    def test_encoding_is_idempotent(self):
        once = encode_read_ids(IDS)
        assert encode_read_ids(decode_read_ids(once)) == once

    def test_legacy_integer_list(self):
        assert decode_read_ids("[1, 100009]") == IDS

    def test_legacy_offset_configurable(self):
        assert decode_read_ids([1009], legacy_offset=1000) == {AlertId.maintenance(9)}

    @pytest.mark.parametrize("raw", [None, ""])
    def test_missing_state_is_empty(self, raw):
        assert decode_read_ids(raw) == frozenset()

    @pytest.mark.parametrize("raw", [
        "{not json",
        '{"version": 3, "ids": []}',
        '{"version": 2, "ids": "product:1"}',
        '{"version": 2, "ids": ["vehicle:1"]}',
        '{"version": 2, "ids": [5]}',
        '["product:1"]',
        "[true]",
        "42",
    ])
    def test_corrupt_state_is_empty_and_logged(self, raw, caplog):
        with caplog.at_level(logging.WARNING, logger="inventory_kernel"):
            assert decode_read_ids(raw) == frozenset()
        assert any(r.message == "read_state_corrupt" for r in caplog.records)


class TestInMemoryStore:
    def test_save_then_load(self):
        store = InMemoryReadStateStore()
        store.save(IDS)
        assert store.load() == IDS

    def test_seeded_with_legacy_payload(self):
        store = InMemoryReadStateStore(initial="[100009]")
        assert store.load() == {AlertId.maintenance(9)}

    def test_last_write_wins(self):
        store = InMemoryReadStateStore()
        store.save(IDS)
        store.save({AlertId.product(5)})
        assert store.load() == {AlertId.product(5)}


class TestJsonFileStore:
    def test_missing_file_is_empty(self, tmp_path):
        assert JsonFileReadStateStore(tmp_path / "state.json").load() == frozenset()

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "state.json"
        JsonFileReadStateStore(path).save(IDS)

        assert JsonFileReadStateStore(path).load() == IDS
        document = json.loads(path.read_text(encoding="utf-8"))
        assert json.loads(document["readAlerts"])["version"] == 2

    def test_other_keys_preserved(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"theme": "dark"}), encoding="utf-8")

        JsonFileReadStateStore(path).save(IDS)

        assert json.loads(path.read_text(encoding="utf-8"))["theme"] == "dark"

    def test_storage_keys_are_independent(self, tmp_path):
        path = tmp_path / "state.json"
        JsonFileReadStateStore(path, storage_key="alice").save(IDS)

        assert JsonFileReadStateStore(path, storage_key="bob").load() == frozenset()

    def test_legacy_value_in_document(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"readAlerts": "[1, 100009]"}), encoding="utf-8")

        assert JsonFileReadStateStore(path).load() == IDS

    def test_corrupt_document_is_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{{{", encoding="utf-8")

        assert JsonFileReadStateStore(path).load() == frozenset()

    def test_write_failure_raises(self, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("", encoding="utf-8")
        store = JsonFileReadStateStore(blocker / "state.json")

        with pytest.raises(ReadStateWriteError) as exc_info:
            store.save(IDS)
        assert exc_info.value.storage_key == "readAlerts"
        assert exc_info.value.code == "READ_STATE_WRITE_FAILED"


class TestSqlStore:
    def test_empty(self, session):
        assert SqlReadStateStore(session).load() == frozenset()

    def test_save_then_load(self, session, clock):
        store = SqlReadStateStore(session, clock=clock)
        store.save(IDS)
        session.commit()

        assert SqlReadStateStore(session).load() == IDS

    def test_save_replaces_previous_rows(self, session, clock):
        store = SqlReadStateStore(session, clock=clock)
        store.save(IDS)
        store.save({AlertId.product(2)})
        session.commit()

        assert store.load() == {AlertId.product(2)}

    def test_storage_keys_are_independent(self, session, clock):
        SqlReadStateStore(session, storage_key="alice", clock=clock).save(IDS)
        session.commit()

        assert SqlReadStateStore(session, storage_key="bob").load() == frozenset()

    def test_visible_from_another_session(self, session, clock):
        with session_scope() as writer:
            SqlReadStateStore(writer, clock=clock).save(IDS)

        with session_scope() as reader:
            assert SqlReadStateStore(reader).load() == IDS

    def test_failed_scope_rolls_back(self, session, clock):
        with pytest.raises(RuntimeError):
            with session_scope() as writer:
                SqlReadStateStore(writer, clock=clock).save(IDS)
                raise RuntimeError("aborted")

        with session_scope() as reader:
            assert SqlReadStateStore(reader).load() == frozenset()


class TestStoreFromSettings:
    SETTINGS = EngineSettings(legacy_maintenance_offset=500, read_state_storage_key="u-7")

    def test_in_memory_by_default(self):
        store = read_state_from_settings(self.SETTINGS)

        assert isinstance(store, InMemoryReadStateStore)
        store.raw = "[509]"
        assert store.load() == {AlertId.maintenance(9)}

    def test_json_file_for_path(self, tmp_path):
        store = read_state_from_settings(self.SETTINGS, path=tmp_path / "state.json")
        store.save(IDS)

        document = json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))
        assert isinstance(store, JsonFileReadStateStore)
        assert list(document) == ["u-7"]

    def test_sql_for_session(self, session, clock):
        store = read_state_from_settings(self.SETTINGS, session=session, clock=clock)
        store.save(IDS)

        assert isinstance(store, SqlReadStateStore)
        assert SqlReadStateStore(session, storage_key="u-7").load() == IDS

    def test_session_and_path_rejected(self, session, tmp_path):
        with pytest.raises(ValueError):
            read_state_from_settings(self.SETTINGS, session=session, path=tmp_path / "s.json")
