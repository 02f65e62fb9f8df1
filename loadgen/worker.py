"""Воркер: цикл выбора и выполнения операций"""

import logging
import random
import threading
from typing import Optional

from .base import Backend, OperationInfo, WorkerConfig
from .errors import BackendError, ChannelClosed, ConfigError, LoadgenError
from .filesystem import FilesystemBackend
from .native_s3 import S3Backend
from .webdav import WebDavBackend
from .workloads import Operation

logger = logging.getLogger(__name__)

BACKENDS = {
    S3Backend.protocol: S3Backend,
    WebDavBackend.protocol: WebDavBackend,
    FilesystemBackend.protocol: FilesystemBackend,
}


def create_backend(config: WorkerConfig, worker_id: int = 0) -> Backend:
    """Создание backend по имени протокола"""
    backend_cls = BACKENDS.get(config.protocol)
    if backend_cls is None:
        raise ConfigError(
            f"unknown protocol '{config.protocol}' "
            f"(expected one of: {', '.join(sorted(BACKENDS))})")
    return backend_cls(config, worker_id)


class Worker:
    """
    Владеет одним backend'ом и в цикле выполняет случайно выбранные
    операции, пока не получит сигнал остановки или пока сборщик
    статистики не закроет канал результатов.
    """

    def __init__(self, worker_id: int, config: WorkerConfig,
                 stop_event: threading.Event = None, rng: random.Random = None):
        self.worker_id = worker_id
        self.config = config
        self.stop_event = stop_event or threading.Event()
        self.rng = rng or random.Random()
        self.error: Optional[LoadgenError] = None
        self.completed = 0
        self.failed = 0
        self.skipped = 0

    def stop(self):
        self.stop_event.set()

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set() or self.config.results.closed

    def choose_operation(self) -> Operation:
        """Равномерный выбор из развернутого списка дает взвешенный выбор"""
        return self.rng.choice(self.config.operations)

    def run(self):
        logger.debug(f"Worker {self.worker_id} starting ({self.config.protocol})")
        try:
            backend = create_backend(self.config, self.worker_id)
            backend.setup()
        except LoadgenError as e:
            logger.error(f"Worker {self.worker_id}: backend setup failed: {e}")
            self.error = e
            return

        try:
            self.work(backend)
        finally:
            backend.close()
        logger.debug(f"Worker {self.worker_id} stopped: {self.completed} done, "
                     f"{self.failed} failed, {self.skipped} skipped")

    def error_info(self, error: Exception) -> OperationInfo:
        return OperationInfo(
            operation=Operation.ERROR,
            size=0,
            ttfb_ms=0.0,
            rtt_ms=0.0,
            worker_id=self.worker_id,
            error=str(error) or repr(error)
        )

    def work(self, backend: Backend):
        operations = {
            Operation.READ: backend.read,
            Operation.WRITE: backend.write,
            Operation.DELETE: backend.delete,
        }

        while not self.stopped:
            op = self.choose_operation()

            try:
                info = operations[op]()
            except BackendError as e:
                self.failed += 1
                info = self.error_info(e)
            except Exception as e:
                # Неожиданная ошибка тоже считается неудачной операцией
                logger.exception(f"Worker {self.worker_id}: {op} raised {e!r}")
                self.failed += 1
                info = self.error_info(e)
            else:
                if info is None:
                    # Очередь пуста - это не ошибка и в статистику не идет
                    self.skipped += 1
                else:
                    self.completed += 1

            if info is not None:
                try:
                    self.config.results.send(info)
                except ChannelClosed:
                    break

            if self.config.pause_ms > 0:
                self.stop_event.wait(self.config.pause_ms / 1000)
