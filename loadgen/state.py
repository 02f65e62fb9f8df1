"""Отладочные интервалы состояний воркеров для построения таймлайна"""

import json
import logging
import queue
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

STATES_FILE = "states.out"


@dataclass
class DebugState:
    """Один интервал: воркер host находился в состоянии state"""
    host: str
    state: str
    start_time: datetime
    end_time: datetime

    def to_dict(self):
        return {
            'host': self.host,
            'state': self.state,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat(),
        }


def close_sink(sink: queue.Queue):
    """Сигнал слушателю дописать файл и завершиться"""
    sink.put(None)


def state_listener(sink: queue.Queue, output_path: Path) -> int:
    """Пишет интервалы в файл по одному JSON-объекту на строку до закрытия sink"""
    written = 0
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        while True:
            item = sink.get()
            if item is None:
                break
            f.write(json.dumps(item.to_dict()) + "\n")
            written += 1

    logger.info(f"Debug states saved: {output_path} ({written} spans)")
    return written
