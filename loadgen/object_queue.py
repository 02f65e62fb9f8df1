"""Очередь известных объектов, общая для всех воркеров"""

import logging
import random
import threading
from enum import Enum
from pathlib import Path
from typing import List, Optional

from .errors import ConfigError

logger = logging.getLogger(__name__)


class QueuePolicy(Enum):
    """
    Политика выбора ключа.

    OLDEST_FIRST - FIFO: вытесняется, читается и удаляется самый старый ключ.
    NEWEST_FIRST - вытесняется самый старый ключ, а читается и удаляется
                   самый свежий.
    UNIFORM      - каждый раз выбирается случайный ключ.
    """
    OLDEST_FIRST = "lru"
    NEWEST_FIRST = "mru"
    UNIFORM = "rand"


class ObjectQueue:
    """
    Ограниченный реестр ключей объектов, существующих на целевом хранилище.

    Каждый вызов выполняется целиком под одной блокировкой, поэтому длина
    очереди никогда не превышает capacity. capacity = 0 означает очередь
    без ограничения.
    """

    def __init__(self, policy: QueuePolicy = QueuePolicy.UNIFORM,
                 capacity: int = 1000, rng: random.Random = None):
        if capacity < 0:
            raise ConfigError(f"queue capacity must be >= 0, got {capacity}")
        self.policy = policy
        self.capacity = capacity
        self._items: List[str] = []
        self._lock = threading.Lock()
        self._rng = rng or random.Random()

    def __len__(self):
        with self._lock:
            return len(self._items)

    def __contains__(self, key):
        with self._lock:
            return key in self._items

    def keys(self) -> List[str]:
        """Копия содержимого в порядке вставки (для UNIFORM порядок не важен)"""
        with self._lock:
            return list(self._items)

    def insert(self, key: str):
        """Добавить ключ, при заполненной очереди вытеснить один по политике"""
        with self._lock:
            if self.capacity and len(self._items) >= self.capacity:
                self._evict()
            self._items.append(key)

    def sample(self) -> Optional[str]:
        """Вернуть ключ без удаления или None, если очередь пуста"""
        with self._lock:
            if not self._items:
                return None
            return self._items[self._index()]

    def take(self) -> Optional[str]:
        """Удалить и вернуть ключ или None, если очередь пуста"""
        with self._lock:
            if not self._items:
                return None
            return self._remove(self._index())

    def _index(self) -> int:
        if self.policy is QueuePolicy.OLDEST_FIRST:
            return 0
        if self.policy is QueuePolicy.NEWEST_FIRST:
            return len(self._items) - 1
        return self._rng.randrange(len(self._items))

    def _evict(self):
        # Самый старый ключ уходит и для NEWEST_FIRST: окно скользит
        if self.policy is QueuePolicy.UNIFORM:
            self._remove(self._rng.randrange(len(self._items)))
        else:
            self._remove(0)

    def _remove(self, index: int) -> str:
        if self.policy is QueuePolicy.UNIFORM:
            # Порядок не важен, меняем с последним вместо сдвига
            last = self._items.pop()
            if index == len(self._items):
                return last
            key = self._items[index]
            self._items[index] = last
            return key
        return self._items.pop(index)


def populate_queue(queue: ObjectQueue, read_list: str) -> int:
    """
    Загрузка ключей из файла (по одному на строку) до старта воркеров.
    Возвращает количество загруженных ключей.
    """
    path = Path(read_list)
    try:
        lines = path.read_text(encoding='utf-8').splitlines()
    except OSError as e:
        raise ConfigError(f"failed to open read listing file {path}: {e}") from e

    count = 0
    for line in lines:
        key = line.strip()
        if not key:
            continue
        queue.insert(key)
        count += 1

    logger.info(f"Loaded {count} keys from {path}")
    return count
