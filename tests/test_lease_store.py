import json
import threading

import pytest

from vault_lease_cache.errors import LeaseStoreError
from vault_lease_cache.services.lease_store import InMemoryLeaseStore, JsonFileLeaseStore, LeaseRecord


@pytest.fixture
def record():
    return LeaseRecord.issue(
        data='{"access_key": "AKIA"}',
        lease_id="aws/creds/deploy/abc123",
        lease_duration=3600,
        issued_at=1000,
    )


class TestLeaseRecord:
    def test_issue_derives_expiry(self, record):
        assert record.lease_expiry == 4600

    def test_validity_window(self, record):
        assert record.is_valid(4599)
        assert not record.is_valid(4600)
        assert not record.is_valid(4601)

    def test_dict_round_trip(self, record):
        assert LeaseRecord.from_dict(record.to_dict()) == record


class TestInMemoryLeaseStore:
    def test_get_missing(self):
        assert InMemoryLeaseStore().get("ns.missing") is None

    def test_set_get_delete(self, record):
        store = InMemoryLeaseStore()
        store.set("ns.deploy", record)
        assert store.get("ns.deploy") == record

        store.delete("ns.deploy")
        assert store.get("ns.deploy") is None

    def test_delete_missing_is_ignored(self):
        store = InMemoryLeaseStore()
        store.delete("ns.missing")
        assert len(store) == 0


class TestJsonFileLeaseStore:
    def test_persists_across_instances(self, tmp_path, record):
        path = tmp_path / "leases.json"
        JsonFileLeaseStore(path).set("ns.deploy", record)

        assert JsonFileLeaseStore(path).get("ns.deploy") == record

    def test_file_layout(self, tmp_path, record):
        path = tmp_path / "leases.json"
        JsonFileLeaseStore(path).set("ns.deploy", record)

        state = json.loads(path.read_text())
        assert state["ns.deploy"]["lease_id"] == "aws/creds/deploy/abc123"
        assert state["ns.deploy"]["lease_expiry"] == 4600

    def test_set_replaces_record(self, tmp_path, record):
        store = JsonFileLeaseStore(tmp_path / "leases.json")
        store.set("ns.deploy", record)
        newer = LeaseRecord.issue("{}", "aws/creds/deploy/def456", 60, issued_at=5000)

        store.set("ns.deploy", newer)

        assert store.get("ns.deploy") == newer

    def test_delete_keeps_other_keys(self, tmp_path, record):
        store = JsonFileLeaseStore(tmp_path / "leases.json")
        store.set("ns.deploy", record)
        store.set("ns.backup", record)

        store.delete("ns.deploy")

        assert store.get("ns.deploy") is None
        assert store.get("ns.backup") == record

    def test_delete_missing_does_not_create_file(self, tmp_path):
        path = tmp_path / "leases.json"
        JsonFileLeaseStore(path).delete("ns.deploy")
        assert not path.exists()

    def test_no_temp_files_left_behind(self, tmp_path, record):
        JsonFileLeaseStore(tmp_path / "leases.json").set("ns.deploy", record)
        assert not list(tmp_path.glob("*.tmp"))

    def test_rejects_non_object_state(self, tmp_path):
        path = tmp_path / "leases.json"
        path.write_text("[]")
        with pytest.raises(LeaseStoreError, match="not a JSON object"):
            JsonFileLeaseStore(path).get("ns.deploy")

    def test_corrupt_state_raises_store_error(self, tmp_path, record):
        path = tmp_path / "leases.json"
        path.write_text("{not json")
        store = JsonFileLeaseStore(path)

        for operation in (lambda: store.get("ns.deploy"), lambda: store.set("ns.deploy", record),
                          lambda: store.delete("ns.deploy")):
            with pytest.raises(LeaseStoreError, match="corrupt"):
                operation()

    def test_malformed_record_raises_store_error(self, tmp_path):
        path = tmp_path / "leases.json"
        path.write_text(json.dumps({"ns.deploy": {"data": "{}"}}))
        with pytest.raises(LeaseStoreError, match="Malformed"):
            JsonFileLeaseStore(path).get("ns.deploy")

    def test_unreadable_state_raises_store_error(self, tmp_path):
        path = tmp_path / "leases.json"
        path.mkdir()
        with pytest.raises(LeaseStoreError):
            JsonFileLeaseStore(path).get("ns.deploy")

    def test_instances_sharing_a_file_keep_every_update(self, tmp_path, record):
        path = tmp_path / "leases.json"
        stores = [JsonFileLeaseStore(path), JsonFileLeaseStore(path)]

        def write(store, prefix):
            for i in range(50):
                store.set(f"{prefix}.{i}", record)

        threads = [
            threading.Thread(target=write, args=(store, f"ns{n}"))
            for n, store in enumerate(stores)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(json.loads(path.read_text())) == 100
