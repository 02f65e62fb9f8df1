"""Запуск воркеров и сборщика статистики, согласованная остановка"""

import logging
import queue
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .base import WorkerConfig
from .channel import ResultChannel
from .errors import ConfigError
from .metrics import StatsCollector
from .object_queue import ObjectQueue, QueuePolicy, populate_queue
from .state import STATES_FILE, close_sink, state_listener
from .visualize import generate_all_plots
from .worker import BACKENDS, Worker
from .workloads import (
    Operation,
    OutputFormat,
    WorkloadConfig,
    needs_read_queue,
    parse_distribution,
    parse_human,
    parse_operations,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_WORKERS_FAILED = 1
EXIT_INTERRUPTED = 130


@dataclass
class RunConfig:
    """Проверенная конфигурация одного запуска"""
    target: str
    protocol: str = WorkloadConfig.PROTOCOL
    concurrency: int = WorkloadConfig.CONCURRENCY
    pause_ms: int = WorkloadConfig.SLEEP_MS
    distribution: List[int] = field(
        default_factory=lambda: parse_distribution(WorkloadConfig.DISTRIBUTION))
    operations: List[Operation] = field(
        default_factory=lambda: parse_operations(WorkloadConfig.WORKLOAD))
    interval: float = WorkloadConfig.INTERVAL_SEC
    output_format: OutputFormat = OutputFormat.HUMAN
    data_cap: int = 0
    queue_policy: QueuePolicy = QueuePolicy(WorkloadConfig.QUEUE_MODE)
    queue_capacity: int = WorkloadConfig.QUEUE_CAPACITY
    read_list: Optional[str] = None
    debug: bool = False
    sync: bool = False
    namespace: str = WorkloadConfig.NAMESPACE
    output_dir: Optional[str] = None

    @property
    def read_queue(self) -> bool:
        return needs_read_queue(self.operations)

    def validate(self):
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.protocol not in BACKENDS:
            raise ConfigError(
                f"unknown protocol '{self.protocol}' "
                f"(expected one of: {', '.join(sorted(BACKENDS))})")
        if not self.distribution:
            raise ConfigError("size distribution is empty")
        if not self.operations:
            raise ConfigError("workload selects no operations")
        if self.interval <= 0:
            raise ConfigError(f"interval must be positive, got {self.interval}")
        if self.pause_ms < 0:
            raise ConfigError(f"sleep must be >= 0, got {self.pause_ms}")
        if self.data_cap < 0:
            raise ConfigError(f"data cap must be >= 0, got {self.data_cap}")
        if self.queue_capacity < 0:
            raise ConfigError(
                f"queue capacity must be >= 0, got {self.queue_capacity}")


def resolve_data_cap(value: str, protocol: str, target: str) -> int:
    """
    Лимит данных в байтах. '0' - без лимита, '10g' - объем записи,
    '80%' - заполнить файловую систему с target до 80% (только для fs).
    """
    value = value.strip()
    if not value.endswith('%'):
        return parse_human(value)

    if protocol != 'fs':
        raise ConfigError("percentage data cap is only supported for the fs protocol")

    try:
        percent = float(value[:-1])
    except ValueError:
        raise ConfigError(f"invalid percentage '{value}'") from None
    if not 0 < percent <= 100:
        raise ConfigError(f"percentage must be in (0, 100], got '{value}'")

    try:
        usage = shutil.disk_usage(target)
    except OSError as e:
        raise ConfigError(f"failed to query capacity of {target}: {e}") from e

    # Уже заполненная цель останавливается после первого интервала
    remaining = int(usage.total * percent / 100) - usage.used
    logger.info(f"Filling {target} to {percent}%: {max(remaining, 1)} bytes to write")
    return max(remaining, 1)


class Launcher:
    """Создает общую очередь и канал, запускает N воркеров и сборщик"""

    def __init__(self, config: RunConfig, out=None):
        config.validate()
        self.config = config

        self.queue = ObjectQueue(config.queue_policy, config.queue_capacity)
        if config.read_list:
            populate_queue(self.queue, config.read_list)

        self.channel = ResultChannel()
        self.debug_sink = queue.Queue() if config.debug else None

        self.worker_config = WorkerConfig(
            protocol=config.protocol,
            target=config.target,
            distribution=list(config.distribution),
            operations=list(config.operations),
            results=self.channel,
            queue=self.queue,
            pause_ms=config.pause_ms,
            read_queue=config.read_queue,
            debug=self.debug_sink,
            namespace=config.namespace,
            sync=config.sync,
        )

        self.collector = StatsCollector(
            self.channel,
            interval=config.interval,
            output_format=config.output_format,
            data_cap=config.data_cap,
            out=out
        )

        self.workers = [
            Worker(i, self.worker_config) for i in range(config.concurrency)
        ]

    @property
    def output_dir(self) -> Optional[Path]:
        if self.config.output_dir:
            return Path(self.config.output_dir)
        return None

    def run(self) -> int:
        """Блокирует до остановки сборщика. Возвращает код выхода"""
        debug_thread = None
        if self.debug_sink is not None:
            states_path = (self.output_dir or Path('.')) / STATES_FILE
            debug_thread = threading.Thread(
                target=state_listener, args=(self.debug_sink, states_path),
                name="debug-states", daemon=True)
            debug_thread.start()

        worker_threads = []
        for worker in self.workers:
            thread = threading.Thread(
                target=worker.run, name=f"worker-{worker.worker_id}", daemon=True)
            thread.start()
            worker_threads.append(thread)

        stats_thread = threading.Thread(
            target=self.collector.run, name="stats", daemon=True)
        stats_thread.start()

        logger.info(f"Started {len(worker_threads)} workers against "
                    f"{self.config.protocol}://{self.config.target}")

        status = EXIT_OK
        poll = min(0.5, self.config.interval)
        try:
            while stats_thread.is_alive():
                stats_thread.join(timeout=poll)
                if status == EXIT_OK and not self.channel.closed and \
                        not any(t.is_alive() for t in worker_threads):
                    logger.error("All workers exited, stopping")
                    self.collector.stop()
                    status = EXIT_WORKERS_FAILED
        except KeyboardInterrupt:
            logger.info("Interrupted, stopping workers")
            self.collector.stop()
            status = EXIT_INTERRUPTED
        finally:
            self.shutdown(stats_thread, worker_threads, debug_thread)

        if self.output_dir is not None:
            self.save_results(self.output_dir)

        return status

    def shutdown(self, stats_thread: threading.Thread,
                 worker_threads: List[threading.Thread],
                 debug_thread: Optional[threading.Thread] = None):
        stats_thread.join()
        self.channel.close()

        for worker in self.workers:
            worker.stop()
        # Операция в процессе всегда доводится до конца
        for thread in worker_threads:
            thread.join()

        if debug_thread is not None:
            close_sink(self.debug_sink)
            debug_thread.join()

        logger.info(f"Stopped: {self.collector.bytes_written} bytes written")

    def save_results(self, output_dir: Path):
        self.collector.save_raw_data(output_dir)
        self.collector.generate_report(output_dir)
        if self.collector.history:
            generate_all_plots(self.collector.history, output_dir)
