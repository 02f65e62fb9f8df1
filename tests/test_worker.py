"""
Тесты цикла воркера: классификация результатов, публикация и остановка
"""

import random
import threading
import time
from collections import Counter

import pytest

from loadgen.errors import ConfigError, SetupError
from loadgen.filesystem import FilesystemBackend
from loadgen.native_s3 import S3Backend
from loadgen.webdav import WebDavBackend
from loadgen.worker import BACKENDS, Worker, create_backend
from loadgen.workloads import Operation


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        assert time.monotonic() < deadline, "timed out waiting for worker"
        time.sleep(0.005)


def run_in_thread(worker):
    thread = threading.Thread(target=worker.run, daemon=True)
    thread.start()
    return thread


class TestCreateBackend:
    """Тесты выбора backend'а по протоколу"""

    def test_registry(self):
        assert BACKENDS['s3'] is S3Backend
        assert BACKENDS['webdav'] is WebDavBackend
        assert BACKENDS['fs'] is FilesystemBackend

    def test_filesystem(self, make_config, tmp_path):
        backend = create_backend(make_config(protocol='fs', target=str(tmp_path)), worker_id=4)
        assert isinstance(backend, FilesystemBackend)
        assert backend.worker_id == 4

    def test_unknown_protocol(self, make_config):
        with pytest.raises(ConfigError, match="unknown protocol"):
            create_backend(make_config(protocol='ftp'))


class TestWorkerLoop:
    """Тесты Worker.run"""

    def test_publishes_completed_writes(self, memory_backend, make_config, channel):
        worker = Worker(0, make_config(pause_ms=1))
        thread = run_in_thread(worker)

        wait_for(lambda: worker.completed >= 5)
        worker.stop()
        thread.join(timeout=5)

        assert not thread.is_alive()
        results = channel.drain()
        assert len(results) >= 5
        assert all(r.operation is Operation.WRITE for r in results)
        assert all(r.size == 10 and r.worker_id == 0 for r in results)

    def test_skipped_operations_not_published(self, memory_backend, make_config, channel):
        worker = Worker(0, make_config(operations=[Operation.READ, Operation.DELETE],
                                       pause_ms=1))
        thread = run_in_thread(worker)

        wait_for(lambda: worker.skipped >= 5)
        worker.stop()
        thread.join(timeout=5)

        assert channel.drain() == []
        assert worker.completed == 0
        assert worker.failed == 0

    def test_failures_published_as_errors(self, failing_backend, make_config, channel):
        worker = Worker(1, make_config(protocol='failing', pause_ms=1))
        thread = run_in_thread(worker)

        wait_for(lambda: worker.failed >= 3)
        worker.stop()
        thread.join(timeout=5)

        results = channel.drain()
        assert results
        assert all(r.operation is Operation.ERROR for r in results)
        assert all("Writing" in r.error for r in results)
        assert all(r.worker_id == 1 for r in results)

    def test_exits_when_channel_closed(self, memory_backend, make_config, channel):
        worker = Worker(0, make_config())
        thread = run_in_thread(worker)

        wait_for(lambda: worker.completed >= 1)
        channel.close()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert not worker.stop_event.is_set()

    def test_stop_before_start(self, memory_backend, make_config, channel):
        worker = Worker(0, make_config())
        worker.stop()
        worker.run()

        assert worker.completed == 0
        assert channel.drain() == []

    def test_stop_interrupts_pause(self, memory_backend, make_config):
        worker = Worker(0, make_config(pause_ms=60_000))
        thread = run_in_thread(worker)

        wait_for(lambda: worker.completed >= 1)
        worker.stop()
        thread.join(timeout=5)

        assert not thread.is_alive()

    def test_bad_key_does_not_kill_worker(self, make_config, object_queue, channel, tmp_path):
        object_queue.insert("bad\0key")
        worker = Worker(0, make_config(protocol='fs', target=str(tmp_path),
                                       operations=[Operation.READ], pause_ms=1))
        thread = run_in_thread(worker)

        wait_for(lambda: worker.failed >= 3)
        assert thread.is_alive()
        worker.stop()
        thread.join(timeout=5)

        results = channel.drain()
        assert len(results) >= 3
        assert all(r.operation is Operation.ERROR for r in results)
        assert "Reading" in results[0].error
        assert object_queue.keys() == ["bad\0key"]

    def test_unexpected_exception_published_as_error(self, memory_backend, make_config,
                                                     channel, monkeypatch):
        class BrokenBackend(memory_backend):
            def put_object(self, key, size):
                raise RuntimeError("boom")

        monkeypatch.setitem(BACKENDS, 'broken', BrokenBackend)
        worker = Worker(2, make_config(protocol='broken', pause_ms=1))
        thread = run_in_thread(worker)

        wait_for(lambda: worker.failed >= 3)
        assert thread.is_alive()
        worker.stop()
        thread.join(timeout=5)

        results = channel.drain()
        assert all(r.operation is Operation.ERROR for r in results)
        assert all(r.error == "boom" and r.worker_id == 2 for r in results)
        assert worker.completed == 0

    def test_unexpected_delete_failure_requeues(self, memory_backend, make_config,
                                                object_queue, channel, monkeypatch):
        class BrokenBackend(memory_backend):
            def delete_object(self, key):
                raise RuntimeError("boom")

        monkeypatch.setitem(BACKENDS, 'broken', BrokenBackend)
        object_queue.insert("k")
        worker = Worker(0, make_config(protocol='broken', operations=[Operation.DELETE],
                                       pause_ms=1))
        thread = run_in_thread(worker)

        wait_for(lambda: worker.failed >= 2)
        worker.stop()
        thread.join(timeout=5)

        assert object_queue.keys() == ["k"]

    def test_setup_failure_ends_worker(self, make_config, tmp_path):
        worker = Worker(0, make_config(protocol='fs', target=str(tmp_path / "missing")))
        worker.run()

        assert isinstance(worker.error, SetupError)
        assert worker.completed == 0


class TestOperationSelection:

    def test_weighted_choice(self, make_config):
        ops = [Operation.READ] * 3 + [Operation.WRITE]
        worker = Worker(0, make_config(operations=ops), rng=random.Random(42))

        counts = Counter(worker.choose_operation() for _ in range(40000))

        assert set(counts) == {Operation.READ, Operation.WRITE}
        assert 2.8 < counts[Operation.READ] / counts[Operation.WRITE] < 3.2
