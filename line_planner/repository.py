# Storage backends for production items.
# Version: 1.0.0
# A local JSON file and a remote HTTP document collection behind one interface.

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator
from urllib.parse import quote

import requests

from .calculated_fields import ProductionItem
from .constants import StorageSettings
from .errors import ConfigurationError, StorageError
from .sequencer import sort_by_start


logger = logging.getLogger(__name__)

Snapshot = dict[str, ProductionItem]
SnapshotCallback = Callable[[Snapshot], None]
Unsubscribe = Callable[[], None]


def items_to_snapshot(items: list[ProductionItem]) -> Snapshot:
    """Key items by id, keeping their order. Later duplicates win."""
    return {item.id: item for item in items}


def _records_to_snapshot(records: Any, source: str) -> Snapshot:
    """Parse stored records, skipping any that cannot be read.

    Accepts a list of records or a mapping of id to record.
    """
    if isinstance(records, dict):
        records = [{"id": key, **value} if isinstance(value, dict) else value
                   for key, value in records.items()]
    if not isinstance(records, list):
        logger.error("Ignoring %s: expected a list of records, got %s",
                     source, type(records).__name__)
        return {}

    snapshot: Snapshot = {}
    for record in records:
        try:
            item = ProductionItem.from_dict(record)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping unreadable record in %s: %s", source, e)
            continue
        snapshot[item.id] = item
    return snapshot


class ProductionRepository(ABC):
    """Collection of production items keyed by id.

    Writes are last-write-wins per record. Subscribers receive the whole
    collection each time it changes.
    """

    backend_name = "base"

    def __init__(self) -> None:
        self._subscribers: list[SnapshotCallback] = []
        self._lock = threading.Lock()

    @abstractmethod
    def load_all(self) -> Snapshot:
        """Return the current collection in stored order."""

    @abstractmethod
    def upsert(self, item: ProductionItem) -> None:
        """Insert or fully overwrite the item with item.id."""

    @abstractmethod
    def remove(self, item_id: str) -> None:
        """Delete the item with item_id. Unknown ids are a no-op."""

    def subscribe(self, callback: SnapshotCallback) -> Unsubscribe:
        """Register a snapshot callback and deliver the current snapshot.

        Returns:
            Function that removes the subscription.
        """
        unsubscribe = self._add_subscriber(callback)
        callback(self.load_all())
        return unsubscribe

    def _add_subscriber(self, callback: SnapshotCallback) -> Unsubscribe:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, snapshot: Snapshot) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Snapshot subscriber failed")


class LocalFileRepository(ProductionRepository):
    """Production items stored as a JSON array in a local file.

    The array is kept sorted by start time, so the stored order is the
    display order.

    Attributes:
        path: JSON file location. Created on first write.
    """

    backend_name = "local"

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)
        self._file_lock = threading.RLock()

    def load_all(self) -> Snapshot:
        """Read the file. A missing file is an empty collection.

        Raises:
            StorageError: If the file exists but cannot be read.
        """
        with self._file_lock:
            if not self.path.exists():
                return {}
            try:
                text = self.path.read_text(encoding="utf-8")
            except OSError as e:
                logger.error("Failed to read %s: %s", self.path, e)
                raise StorageError(self.backend_name, "load", e)

        if not text.strip():
            return {}
        try:
            records = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error("Failed to parse %s, starting empty: %s", self.path, e)
            return {}
        return _records_to_snapshot(records, str(self.path))

    def upsert(self, item: ProductionItem) -> None:
        with self._file_lock:
            snapshot = self.load_all()
            snapshot[item.id] = item
            self._write(list(snapshot.values()))

    def remove(self, item_id: str) -> None:
        with self._file_lock:
            snapshot = self.load_all()
            if item_id not in snapshot:
                return
            del snapshot[item_id]
            self._write(list(snapshot.values()))

    def _write(self, items: list[ProductionItem]) -> None:
        """Replace the file contents atomically and notify subscribers.

        Raises:
            StorageError: If the file cannot be written.
        """
        items = sort_by_start(items)
        payload = json.dumps([item.to_dict() for item in items], ensure_ascii=False, indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error("Failed to write %s: %s", self.path, e)
            raise StorageError(self.backend_name, "write", e)

        self._notify(items_to_snapshot(items))


class RemoteDocumentRepository(ProductionRepository):
    """Production items stored in a remote JSON document collection.

    Documents live at {base_url}/{collection}/{id}. GET on the collection
    returns either a list of documents or a mapping of id to document.
    Subscriptions poll the collection in a background thread and deliver
    a snapshot whenever it changes.

    Attributes:
        base_url: Store base URL without trailing slash.
        collection: Collection name.
        timeout: HTTP timeout in seconds.
        poll_interval: Seconds between subscription polls.
    """

    backend_name = "remote"

    def __init__(
        self,
        base_url: str,
        collection: str,
        timeout: float = 10.0,
        poll_interval: float = 5.0,
        session: requests.Session | None = None
    ) -> None:
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.collection = collection
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.session = session or requests.Session()
        self._stop = threading.Event()
        self._poller: threading.Thread | None = None
        self._last_seen: list[dict] | None = None
        self._write_generation = 0
        self._pending_writes = 0

    @property
    def collection_url(self) -> str:
        return f"{self.base_url}/{self.collection}"

    def document_url(self, item_id: str) -> str:
        return f"{self.collection_url}/{quote(item_id, safe='')}"

    def load_all(self) -> Snapshot:
        """Fetch the whole collection.

        Raises:
            StorageError: If the request fails or the body is not JSON.
        """
        try:
            response = self.session.get(self.collection_url, timeout=self.timeout)
            if response.status_code == 404:
                return {}
            response.raise_for_status()
            records = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Failed to load %s: %s", self.collection_url, e)
            raise StorageError(self.backend_name, "load", e)

        if records is None:
            return {}
        return _records_to_snapshot(records, self.collection_url)

    @contextmanager
    def _local_write(self) -> Iterator[None]:
        """Mark a write in flight so polls started around it are discarded."""
        with self._lock:
            self._pending_writes += 1
            self._write_generation += 1
        try:
            yield
        finally:
            with self._lock:
                self._pending_writes -= 1
                self._write_generation += 1

    def upsert(self, item: ProductionItem) -> None:
        url = self.document_url(item.id)
        with self._local_write():
            try:
                response = self.session.put(url, json=item.to_dict(), timeout=self.timeout)
                response.raise_for_status()
            except requests.RequestException as e:
                logger.error("Failed to upsert %s: %s", url, e)
                raise StorageError(self.backend_name, "upsert", e)

    def remove(self, item_id: str) -> None:
        url = self.document_url(item_id)
        with self._local_write():
            try:
                response = self.session.delete(url, timeout=self.timeout)
                if response.status_code == 404:
                    return
                response.raise_for_status()
            except requests.RequestException as e:
                logger.error("Failed to remove %s: %s", url, e)
                raise StorageError(self.backend_name, "remove", e)

    def subscribe(self, callback: SnapshotCallback) -> Unsubscribe:
        """Register a callback and start polling if not already running."""
        unsubscribe = self._add_subscriber(callback)
        snapshot = self.load_all()
        self._last_seen = [item.to_dict() for item in snapshot.values()]
        callback(snapshot)

        if self._poller is None or not self._poller.is_alive():
            self._stop.clear()
            self._poller = threading.Thread(
                target=self._poll_loop,
                name=f"poll-{self.collection}",
                daemon=True
            )
            self._poller.start()

        def stop_when_idle() -> None:
            unsubscribe()
            with self._lock:
                idle = not self._subscribers
            if idle:
                self.close()

        return stop_when_idle

    def poll_once(self) -> bool:
        """Fetch the collection and notify subscribers if it changed.

        Failures are logged and reported as no change. A snapshot fetched
        while this repository was writing may predate the write, so it is
        dropped and the next poll picks up the new state.

        Returns:
            True if subscribers were notified.
        """
        with self._lock:
            generation = self._write_generation
        try:
            snapshot = self.load_all()
        except StorageError as e:
            logger.warning("Snapshot poll failed, will retry: %s", e)
            return False

        with self._lock:
            stale = self._pending_writes > 0 or generation != self._write_generation
        if stale:
            logger.debug("Dropping snapshot of %s fetched during a write", self.collection_url)
            return False

        seen = [item.to_dict() for item in snapshot.values()]
        if seen == self._last_seen:
            return False
        self._last_seen = seen
        self._notify(snapshot)
        return True

    def _poll_loop(self) -> None:
        while not self._stop.wait(self.poll_interval):
            self.poll_once()

    def close(self) -> None:
        """Stop the polling thread."""
        self._stop.set()


def create_repository(
    settings: StorageSettings,
    base_path: str | Path | None = None
) -> ProductionRepository:
    """Create the repository selected by the storage settings.

    Args:
        settings: Storage section of the planner settings.
        base_path: Directory that relative local paths are resolved against.

    Returns:
        LocalFileRepository or RemoteDocumentRepository.

    Raises:
        ConfigurationError: If the backend is unknown or incomplete.
    """
    if settings.backend == "local":
        path = Path(settings.local_path)
        if base_path is not None and not path.is_absolute():
            path = Path(base_path) / path
        return LocalFileRepository(path)

    if settings.backend == "remote":
        if not settings.remote_url:
            raise ConfigurationError("storage", "remote_url is required for the remote backend")
        return RemoteDocumentRepository(
            base_url=settings.remote_url,
            collection=settings.collection,
            timeout=settings.timeout_seconds,
            poll_interval=settings.poll_interval_seconds,
        )

    raise ConfigurationError("storage", f"Unknown backend {settings.backend!r}")
