"""Базовые классы для backend'ов хранилищ"""

import os
import queue
import random
import time
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Tuple

from .channel import ResultChannel
from .object_queue import ObjectQueue
from .state import DebugState
from .workloads import Operation, WorkloadConfig


@dataclass
class OperationInfo:
    """Результат одной операции"""
    operation: Operation
    size: int
    ttfb_ms: float
    rtt_ms: float
    worker_id: int
    error: Optional[str] = None


@dataclass(frozen=True)
class WorkerConfig:
    """Неизменяемые настройки, общие для всех воркеров"""
    protocol: str
    target: str
    distribution: List[int]
    operations: List[Operation]
    results: ResultChannel
    queue: ObjectQueue
    pause_ms: int = 0
    read_queue: bool = True
    debug: Optional[queue.Queue] = None
    namespace: str = WorkloadConfig.NAMESPACE
    sync: bool = False


def elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class Backend(ABC):
    """
    Базовый класс для всех протоколов.

    Подклассы реализуют только транспорт (put/get/delete одного объекта),
    а работа с очередью, выбор размера и замер времени выполняются здесь.
    Ошибки транспорта подклассы переводят в BackendError.
    """

    protocol = None

    def __init__(self, config: WorkerConfig, worker_id: int = 0):
        self.config = config
        self.worker_id = worker_id
        self.rng = random.Random()
        # Данные для записи генерируются один раз и переиспользуются
        self.buf = os.urandom(WorkloadConfig.PAYLOAD_BUFFER)

    def setup(self):
        """Однократная подготовка перед циклом (создание bucket и т.п.)"""
        pass

    def close(self):
        """Освобождение ресурсов транспорта"""
        pass

    @abstractmethod
    def object_key(self, object_id: str) -> str:
        """Ключ, по которому объект адресуется на целевом хранилище"""
        pass

    @abstractmethod
    def put_object(self, key: str, size: int) -> float:
        """Записать size байт. Возвращает ttfb в мс (0, если не измеряется)"""
        pass

    @abstractmethod
    def get_object(self, key: str) -> Tuple[int, float]:
        """Прочитать объект. Возвращает (размер, ttfb в мс)"""
        pass

    @abstractmethod
    def delete_object(self, key: str):
        """Удалить объект"""
        pass

    def write(self) -> OperationInfo:
        size = self.choose_size()
        key = self.object_key(str(uuid.uuid4()))

        start = time.perf_counter()
        ttfb = self.put_object(key, size)
        rtt = elapsed_ms(start)

        # Неудачная запись сюда не доходит и в очередь не попадает
        if self.config.read_queue:
            self.config.queue.insert(key)

        return self._info(Operation.WRITE, size, ttfb, rtt)

    def read(self) -> Optional[OperationInfo]:
        key = self.config.queue.sample()
        if key is None:
            return None

        start = time.perf_counter()
        size, ttfb = self.get_object(key)
        rtt = elapsed_ms(start)

        return self._info(Operation.READ, size, ttfb, rtt)

    def delete(self) -> Optional[OperationInfo]:
        key = self.config.queue.take()
        if key is None:
            return None

        start = time.perf_counter()
        try:
            self.delete_object(key)
        except Exception:
            # Объект все еще существует, оставляем его для будущих операций
            self.config.queue.insert(key)
            raise
        rtt = elapsed_ms(start)

        return self._info(Operation.DELETE, 0, 0.0, rtt)

    def choose_size(self) -> int:
        return self.rng.choice(self.config.distribution)

    def payload(self, size: int) -> bytes:
        """Ровно size байт из заранее сгенерированного буфера"""
        repeats, tail = divmod(size, len(self.buf))
        return self.buf * repeats + self.buf[:tail]

    def iter_payload(self, size: int) -> Iterator[memoryview]:
        """То же, что payload(), но кусками без копирования"""
        view = memoryview(self.buf)
        remaining = size
        while remaining > 0:
            chunk = view[:min(remaining, len(view))]
            remaining -= len(chunk)
            yield chunk

    @property
    def host(self) -> str:
        return f"worker-{self.worker_id}"

    def send_state(self, state: str, begin: datetime, end: datetime):
        if self.config.debug is not None:
            self.config.debug.put(DebugState(self.host, state, begin, end))

    @contextmanager
    def span(self, state: str):
        """Замер интервала для отладочного таймлайна"""
        begin = datetime.now(timezone.utc)
        try:
            yield
        finally:
            self.send_state(state, begin, datetime.now(timezone.utc))

    def _info(self, operation: Operation, size: int, ttfb: float,
              rtt: float) -> OperationInfo:
        return OperationInfo(
            operation=operation,
            size=size,
            ttfb_ms=ttfb,
            rtt_ms=rtt,
            worker_id=self.worker_id
        )
