import gzip
import importlib
import os
import sys
from pathlib import Path

import pytest


def _prepare_storage(tmp_path, monkeypatch, *, disabled="false"):
    project_root = Path(__file__).resolve().parents[1]
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        sys.path.insert(0, project_root_str)

    monkeypatch.setenv("STORAGE_DIR", str(tmp_path))
    monkeypatch.setenv("STORAGE_DISABLED", disabled)
    monkeypatch.setenv("ENABLE_CLEANER", "false")
    monkeypatch.delenv("OBSOLETE_STATS_DAYS", raising=False)

    # Reload modules so configuration changes take effect cleanly.
    for module_name in ["countervault.config", "countervault.storage"]:
        module = importlib.import_module(module_name)
        importlib.reload(module)

    return sys.modules["countervault.storage"]


@pytest.fixture
def storage(tmp_path, monkeypatch):
    return _prepare_storage(tmp_path, monkeypatch)


def _busy_counter(name="http", application="shop"):
    from countervault.models import Counter

    counter = Counter(name=name, application=application)
    counter.add_hits("/checkout", 120)
    counter.add_hits("/checkout", 80, system_error=True)
    counter.add_hits("/cart", 15)
    counter.add_error("NullPointer in cart", request_name="/cart", remote_user="alice")
    return counter


def test_write_then_read_returns_equal_counter(storage, tmp_path):
    counter = _busy_counter()

    size = storage.CounterStorage(counter).write_to_file()

    path = tmp_path / "shop" / "http.ser.gz"
    assert path.exists()
    assert size is not None and size > 0

    restored = storage.CounterStorage(counter).read_from_file()
    assert restored is not None
    assert restored.application == "shop"
    assert restored.get_storage_name() == "http"
    assert restored.requests_count == 2
    assert restored.errors_count == 1
    assert restored.requests["/checkout"].hits == 2
    assert restored.requests["/checkout"].system_errors == 1
    assert restored.requests["/checkout"].mean == 100
    assert restored.errors[0].remote_user == "alice"


def test_write_returns_uncompressed_size(storage, tmp_path):
    counter = _busy_counter()

    size = storage.CounterStorage(counter).write_to_file()

    with gzip.open(tmp_path / "shop" / "http.ser.gz", "rb") as f:
        assert len(f.read()) == size


def test_read_counter_by_application_and_storage_name(storage):
    counter = _busy_counter(name="sql")
    counter.storage_name = "sql-primary"
    storage.CounterStorage(counter).write_to_file()

    restored = storage.read_counter("shop", "sql-primary")

    assert restored is not None
    assert restored.name == "sql"
    assert storage.read_counter("shop", "sql") is None


def test_empty_counter_without_file_is_skipped(storage, tmp_path):
    from countervault.models import Counter

    counter = Counter(name="ejb", application="shop")

    assert storage.CounterStorage(counter).write_to_file() is None
    assert not (tmp_path / "shop" / "ejb.ser.gz").exists()


def test_empty_counter_overwrites_existing_file(storage):
    counter = _busy_counter()
    storage.CounterStorage(counter).write_to_file()

    counter.clear()
    size = storage.CounterStorage(counter).write_to_file()

    assert size is not None
    restored = storage.CounterStorage(counter).read_from_file()
    assert restored.requests_count == 0
    assert restored.errors_count == 0


def test_missing_file_reads_as_none(storage):
    assert storage.read_counter("shop", "http") is None


def test_disabled_storage_skips_write_and_read(storage, tmp_path):
    counter = _busy_counter()
    storage.CounterStorage(counter).write_to_file()
    path = tmp_path / "shop" / "http.ser.gz"
    before = path.read_bytes()

    storage.disable_storage()
    counter.add_hits("/after-disable", 10)

    assert storage.is_storage_disabled()
    assert storage.CounterStorage(counter).write_to_file() is None
    assert storage.CounterStorage(counter).read_from_file() is None
    assert storage.read_counter("shop", "http") is None
    assert path.read_bytes() == before


def test_storage_disabled_from_environment(tmp_path, monkeypatch):
    storage = _prepare_storage(tmp_path, monkeypatch, disabled="true")

    assert storage.is_storage_disabled()
    assert storage.CounterStorage(_busy_counter()).write_to_file() is None
    assert not (tmp_path / "shop").exists()


def test_corrupt_snapshot_raises_decode_error(storage, tmp_path):
    from countervault.core.exceptions import SnapshotDecodeError

    directory = tmp_path / "shop"
    directory.mkdir()
    (directory / "http.ser.gz").write_bytes(b"definitely not gzip")

    with pytest.raises(SnapshotDecodeError) as excinfo:
        storage.read_counter("shop", "http")
    assert isinstance(excinfo.value, OSError)


def test_snapshot_of_unknown_type_raises_decode_error(storage, tmp_path):
    from countervault.core.exceptions import SnapshotDecodeError

    directory = tmp_path / "shop"
    directory.mkdir()
    with gzip.open(directory / "http.ser.gz", "wb") as f:
        f.write(b'["not", "a", "counter"]')

    with pytest.raises(SnapshotDecodeError):
        storage.read_counter("shop", "http")


def test_uncreatable_directory_raises_storage_error(tmp_path, monkeypatch):
    from countervault.core.exceptions import StorageError

    blocker = tmp_path / "blocker"
    blocker.write_text("a file where the storage directory should be")
    storage = _prepare_storage(blocker, monkeypatch)

    with pytest.raises(StorageError):
        storage.CounterStorage(_busy_counter()).write_to_file()


def test_counter_storage_requires_counter(storage):
    with pytest.raises(ValueError):
        storage.CounterStorage(None)


def test_snapshot_path_uses_application_directory(storage, tmp_path):
    path = storage.snapshot_path("shop", "http")

    assert path == os.path.join(str(tmp_path), "shop", "http.ser.gz")
