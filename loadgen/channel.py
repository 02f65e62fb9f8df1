"""Канал результатов: много производителей, один потребитель"""

import queue
from typing import List

from .errors import ChannelClosed


class ResultChannel:
    """
    Неограниченная очередь результатов операций.

    Воркеры никогда не блокируются на отправке. После close() отправка
    поднимает ChannelClosed, по этому признаку воркер завершает работу.
    """

    def __init__(self):
        self._queue = queue.SimpleQueue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, item):
        if self._closed:
            raise ChannelClosed()
        self._queue.put(item)

    def drain(self) -> List:
        """Забрать все, что накопилось, не дожидаясь новых сообщений"""
        items = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except queue.Empty:
                return items

    def close(self):
        self._closed = True
