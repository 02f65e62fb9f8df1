"""
Настройка pytest: backend в памяти и общие фикстуры
"""

import io
import threading

import pytest

from loadgen.base import Backend, WorkerConfig
from loadgen.channel import ResultChannel
from loadgen.errors import BackendError
from loadgen.object_queue import ObjectQueue, QueuePolicy
from loadgen.worker import BACKENDS
from loadgen.workloads import Operation


class MemoryBackend(Backend):
    """Backend без ввода-вывода: объекты хранятся в общем словаре"""

    protocol = 'memory'
    store = {}
    lock = threading.Lock()

    def object_key(self, object_id):
        return object_id

    def put_object(self, key, size):
        with self.lock:
            self.store[key] = size
        return 0.0

    def get_object(self, key):
        with self.lock:
            if key not in self.store:
                raise BackendError(f"Reading {key} failed: not found")
            return self.store[key], 0.0

    def delete_object(self, key):
        with self.lock:
            if self.store.pop(key, None) is None:
                raise BackendError(f"Deleting {key} failed: not found")


class FailingBackend(MemoryBackend):
    """Все операции транспорта завершаются ошибкой"""

    def put_object(self, key, size):
        raise BackendError(f"Writing {key} failed: 503")

    def get_object(self, key):
        raise BackendError(f"Reading {key} failed: 503")

    def delete_object(self, key):
        raise BackendError(f"Deleting {key} failed: 503")


@pytest.fixture
def memory_backend(monkeypatch):
    """Регистрирует протокол 'memory' и очищает хранилище"""
    MemoryBackend.store = {}
    monkeypatch.setitem(BACKENDS, MemoryBackend.protocol, MemoryBackend)
    return MemoryBackend


@pytest.fixture
def failing_backend(monkeypatch):
    monkeypatch.setitem(BACKENDS, 'failing', FailingBackend)
    return FailingBackend


@pytest.fixture
def channel():
    return ResultChannel()


@pytest.fixture
def object_queue():
    return ObjectQueue(QueuePolicy.OLDEST_FIRST, capacity=100)


@pytest.fixture
def make_config(channel, object_queue):
    """Фабрика WorkerConfig с разумными значениями по умолчанию"""
    def factory(**overrides):
        params = dict(
            protocol='memory',
            target='memory',
            distribution=[10],
            operations=[Operation.WRITE],
            results=channel,
            queue=object_queue,
            read_queue=True,
        )
        params.update(overrides)
        return WorkerConfig(**params)
    return factory


@pytest.fixture
def stdout():
    return io.StringIO()
