"""
Tests for the local file and remote document storage backends.
"""
import json
from unittest.mock import MagicMock

import pytest
import requests

from line_planner.constants import StorageSettings
from line_planner.errors import ConfigurationError, StorageError
from line_planner.repository import (
    LocalFileRepository,
    RemoteDocumentRepository,
    create_repository,
)


def _response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    else:
        response.raise_for_status.return_value = None
    return response


class TestLocalFileRepository:
    def test_missing_file_is_empty(self, local_repository):
        assert local_repository.load_all() == {}

    def test_upsert_and_load(self, local_repository, make_item):
        item = make_item("08:00")

        local_repository.upsert(item)

        assert local_repository.load_all() == {item.id: item}

    def test_file_holds_camel_case_records(self, local_repository, make_item):
        item = make_item("08:00")

        local_repository.upsert(item)

        records = json.loads(local_repository.path.read_text(encoding="utf-8"))
        assert records[0]["id"] == item.id
        assert records[0]["startTime"] == "2024-05-10T08:00:00"
        assert records[0]["totalDurationMinutes"] == 75

    def test_upsert_overwrites_same_id(self, local_repository, make_item):
        item = make_item("08:00", total_coils=10)
        edited = make_item("08:00", total_coils=30).with_id(item.id)

        local_repository.upsert(item)
        local_repository.upsert(edited)

        snapshot = local_repository.load_all()
        assert len(snapshot) == 1
        assert snapshot[item.id].total_coils == 30

    def test_stored_in_start_order(self, local_repository, make_item):
        late = make_item("14:00")
        early = make_item("06:00")

        local_repository.upsert(late)
        local_repository.upsert(early)

        assert list(local_repository.load_all()) == [early.id, late.id]

    def test_remove(self, local_repository, make_item):
        first = make_item("08:00")
        second = make_item("09:00")
        local_repository.upsert(first)
        local_repository.upsert(second)

        local_repository.remove(first.id)

        assert list(local_repository.load_all()) == [second.id]

    def test_remove_unknown_id_is_noop(self, local_repository, make_item):
        item = make_item("08:00")
        local_repository.upsert(item)

        local_repository.remove("missing")
        local_repository.remove("missing")

        assert list(local_repository.load_all()) == [item.id]

    def test_corrupt_file_loads_empty(self, local_repository):
        local_repository.path.parent.mkdir(parents=True)
        local_repository.path.write_text("{not json", encoding="utf-8")

        assert local_repository.load_all() == {}

    def test_unreadable_record_is_skipped(self, local_repository, make_item):
        item = make_item("08:00")
        local_repository.path.parent.mkdir(parents=True)
        local_repository.path.write_text(
            json.dumps([{"product": "no id"}, item.to_dict()]), encoding="utf-8"
        )

        assert list(local_repository.load_all()) == [item.id]

    def test_subscribe_receives_snapshots(self, local_repository, make_item):
        snapshots = []
        unsubscribe = local_repository.subscribe(snapshots.append)
        item = make_item("08:00")

        local_repository.upsert(item)
        unsubscribe()
        local_repository.remove(item.id)

        assert snapshots == [{}, {item.id: item}]

    def test_write_failure_raises_storage_error(self, tmp_path, make_item):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        repository = LocalFileRepository(blocker / "items.json")

        with pytest.raises(StorageError) as exc_info:
            repository.upsert(make_item("08:00"))

        assert exc_info.value.backend == "local"


class TestRemoteDocumentRepository:
    @pytest.fixture
    def session(self):
        return MagicMock()

    @pytest.fixture
    def repository(self, session):
        return RemoteDocumentRepository(
            "https://store.example.com/api/", "productionItems", timeout=3, session=session
        )

    def test_load_list_of_documents(self, repository, session, make_item):
        item = make_item("08:00")
        session.get.return_value = _response(payload=[item.to_dict()])

        assert repository.load_all() == {item.id: item}
        session.get.assert_called_once_with(
            "https://store.example.com/api/productionItems", timeout=3
        )

    def test_load_mapping_of_documents(self, repository, session, make_item):
        item = make_item("08:00")
        record = item.to_dict()
        del record["id"]
        session.get.return_value = _response(payload={item.id: record})

        assert repository.load_all() == {item.id: item}

    @pytest.mark.parametrize("status_code, payload", [(404, None), (200, None)])
    def test_empty_collection(self, repository, session, status_code, payload):
        session.get.return_value = _response(status_code, payload)

        assert repository.load_all() == {}

    def test_upsert_puts_document(self, repository, session, make_item):
        item = make_item("08:00")
        session.put.return_value = _response()

        repository.upsert(item)

        session.put.assert_called_once_with(
            f"https://store.example.com/api/productionItems/{item.id}",
            json=item.to_dict(),
            timeout=3,
        )

    def test_document_ids_are_quoted(self, repository):
        assert repository.document_url("a/b c") == \
            "https://store.example.com/api/productionItems/a%2Fb%20c"

    def test_remove_missing_document_is_noop(self, repository, session):
        session.delete.return_value = _response(404)

        repository.remove("missing")

        session.delete.assert_called_once()

    @pytest.mark.parametrize("operation", ["load", "upsert", "remove"])
    def test_network_failure_raises_storage_error(self, repository, session, make_item, operation):
        session.get.side_effect = requests.ConnectionError("down")
        session.put.side_effect = requests.ConnectionError("down")
        session.delete.side_effect = requests.ConnectionError("down")

        with pytest.raises(StorageError) as exc_info:
            if operation == "load":
                repository.load_all()
            elif operation == "upsert":
                repository.upsert(make_item("08:00"))
            else:
                repository.remove("abc")

        assert exc_info.value.backend == "remote"
        assert exc_info.value.operation == operation

    def test_rejected_write_raises_storage_error(self, repository, session, make_item):
        session.put.return_value = _response(500)

        with pytest.raises(StorageError):
            repository.upsert(make_item("08:00"))

    def test_poll_notifies_only_on_change(self, repository, session, make_item):
        item = make_item("08:00")
        snapshots = []
        repository._add_subscriber(snapshots.append)
        session.get.return_value = _response(payload=[item.to_dict()])

        assert repository.poll_once() is True
        assert repository.poll_once() is False

        session.get.return_value = _response(payload=[])
        assert repository.poll_once() is True
        assert snapshots == [{item.id: item}, {}]

    def test_poll_overlapping_a_write_is_dropped(self, repository, session, make_item):
        item = make_item("08:00")
        snapshots = []
        repository._add_subscriber(snapshots.append)
        session.put.return_value = _response()

        def stale_get(url, timeout):
            repository.upsert(item)
            return _response(payload=[])

        session.get.side_effect = stale_get
        assert repository.poll_once() is False
        assert snapshots == []

        session.get.side_effect = None
        session.get.return_value = _response(payload=[item.to_dict()])
        assert repository.poll_once() is True
        assert snapshots == [{item.id: item}]

    def test_poll_during_pending_write_is_dropped(self, repository, session, make_item):
        item = make_item("08:00")
        snapshots = []
        repository._add_subscriber(snapshots.append)
        session.get.return_value = _response(payload=[])
        results = []

        def put_with_concurrent_poll(url, json, timeout):
            results.append(repository.poll_once())
            return _response()

        session.put.side_effect = put_with_concurrent_poll
        repository.upsert(item)

        assert results == [False]
        assert snapshots == []

    def test_poll_failure_is_not_raised(self, repository, session):
        session.get.side_effect = requests.Timeout("slow")

        assert repository.poll_once() is False

    def test_subscribe_delivers_current_snapshot(self, session, make_item):
        repository = RemoteDocumentRepository(
            "https://store.example.com", "items", poll_interval=3600, session=session
        )
        item = make_item("08:00")
        session.get.return_value = _response(payload=[item.to_dict()])
        snapshots = []

        unsubscribe = repository.subscribe(snapshots.append)
        try:
            assert snapshots == [{item.id: item}]
            assert repository.poll_once() is False
        finally:
            unsubscribe()

        assert repository._stop.is_set()


class TestCreateRepository:
    def test_local_resolves_relative_path(self, tmp_path):
        repository = create_repository(
            StorageSettings(backend="local", local_path="data/items.json"), base_path=tmp_path
        )

        assert isinstance(repository, LocalFileRepository)
        assert repository.path == tmp_path / "data" / "items.json"

    def test_remote(self):
        repository = create_repository(StorageSettings(
            backend="remote", remote_url="https://store.example.com", collection="orders",
            timeout_seconds=2, poll_interval_seconds=1,
        ))

        assert isinstance(repository, RemoteDocumentRepository)
        assert repository.collection_url == "https://store.example.com/orders"
        assert repository.timeout == 2

    def test_remote_without_url(self):
        with pytest.raises(ConfigurationError):
            create_repository(StorageSettings(backend="remote"))

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError):
            create_repository(StorageSettings(backend="sqlite"))
