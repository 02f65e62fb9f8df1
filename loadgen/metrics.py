"""Сбор и обработка метрик"""

import json
import logging
import sys
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from .base import OperationInfo
from .channel import ResultChannel
from .workloads import Operation, OutputFormat

logger = logging.getLogger(__name__)


def format_size(size_bytes: float) -> str:
    """Форматирование размера в человекочитаемый вид"""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} TB"


@dataclass
class AggregateBucket:
    """Накопитель по одной операции"""
    objects: int = 0
    bytes: int = 0
    ttfb_ms: float = 0.0
    rtt_ms: float = 0.0

    def add(self, info: OperationInfo):
        self.objects += 1
        self.bytes += info.size
        self.ttfb_ms += info.ttfb_ms
        self.rtt_ms += info.rtt_ms

    def clear(self):
        self.objects = 0
        self.bytes = 0
        self.ttfb_ms = 0.0
        self.rtt_ms = 0.0

    @property
    def avg_ttfb_ms(self) -> Optional[float]:
        if not self.objects:
            return None
        return self.ttfb_ms / self.objects

    @property
    def avg_rtt_ms(self) -> Optional[float]:
        if not self.objects:
            return None
        return self.rtt_ms / self.objects

    def describe(self) -> str:
        """Показатели за интервал. Вызывать только при objects > 0"""
        return (f"{self.objects} objects, {format_size(self.bytes)}, "
                f"avg ttfb {self.avg_ttfb_ms:.2f} ms, "
                f"avg rtt {self.avg_rtt_ms:.2f} ms")

    def describe_total(self, elapsed_sec: float) -> str:
        """Показатели с начала работы плюс средняя пропускная способность"""
        if elapsed_sec > 0:
            objs_per_sec = self.objects / elapsed_sec
            bytes_per_sec = self.bytes / elapsed_sec
        else:
            objs_per_sec = bytes_per_sec = 0.0
        return (f"{self.describe()}, {objs_per_sec:.2f} objects/s, "
                f"{format_size(bytes_per_sec)}/s")


def render_human(ticks: Dict[Operation, AggregateBucket],
                 totals: Dict[Operation, AggregateBucket],
                 elapsed_sec: float,
                 thread_ticks: Dict[Operation, Dict[int, AggregateBucket]] = None
                 ) -> List[str]:
    """Блок текста за один интервал"""
    lines = ["---"]
    operations = [op for op in Operation if op in totals]

    if thread_ticks is not None:
        for op in operations:
            workers = thread_ticks.get(op)
            if not workers:
                continue
            lines.append(f"Thread ({op})")
            for worker_id in sorted(workers):
                bucket = workers[worker_id]
                if op is Operation.ERROR:
                    lines.append(f"\t{worker_id}: {bucket.objects} errors")
                else:
                    lines.append(f"\t{worker_id}: {bucket.describe()}")

    for op in operations:
        bucket = ticks.get(op)
        if bucket is None or not bucket.objects:
            lines.append(f"Tick ({op})\tno activity this tick")
        elif op is Operation.ERROR:
            lines.append(f"Tick ({op})\t{bucket.objects} errors")
        else:
            lines.append(f"Tick ({op})\t{bucket.describe()}")

    for op in operations:
        bucket = totals[op]
        if not bucket.objects:
            lines.append(f"Total ({op})\tno activity")
        elif op is Operation.ERROR:
            lines.append(f"Total ({op})\t{bucket.objects} errors")
        else:
            lines.append(f"Total ({op})\t{bucket.describe_total(elapsed_sec)}")

    return lines


def render_tabular(ticks: Dict[Operation, AggregateBucket],
                   timestamp: float = None) -> str:
    """
    Одна строка на интервал для gnuplot и прочих программ:
    время, объекты r/w, байты r/w, средний ttfb r/w, средний rtt r/w, ошибки
    """
    empty = AggregateBucket()
    reads = ticks.get(Operation.READ, empty)
    writes = ticks.get(Operation.WRITE, empty)
    errors = ticks.get(Operation.ERROR, empty)

    if timestamp is None:
        timestamp = time.time()

    return " ".join([
        str(int(timestamp)),
        str(reads.objects), str(writes.objects),
        str(reads.bytes), str(writes.bytes),
        f"{reads.avg_ttfb_ms or 0.0:.2f}", f"{writes.avg_ttfb_ms or 0.0:.2f}",
        f"{reads.avg_rtt_ms or 0.0:.2f}", f"{writes.avg_rtt_ms or 0.0:.2f}",
        str(errors.objects),
    ])


class StatsCollector:
    """
    Единственный потребитель результатов.

    Раз в interval секунд забирает все накопленные результаты и ведет три
    уровня агрегации по операциям:
    - по воркерам за интервал (печатается только в human-verbose)
    - за интервал
    - за все время работы (никогда не сбрасывается)

    Когда суммарный объем записи достигает data_cap, сборщик завершается.
    Это единственный штатный путь остановки всей программы.
    """

    def __init__(self, channel: ResultChannel, interval: float = 2,
                 output_format: OutputFormat = OutputFormat.HUMAN,
                 data_cap: int = 0, out=None):
        self.channel = channel
        self.interval = interval
        self.output_format = output_format
        self.data_cap = data_cap
        self.out = out or sys.stdout

        self.thread_ticks: Dict[Operation, Dict[int, AggregateBucket]] = {}
        self.ticks: Dict[Operation, AggregateBucket] = {}
        self.totals: Dict[Operation, AggregateBucket] = {}
        self.bytes_written = 0
        self.cap_reached = False

        self.history: List[Dict] = []
        self.timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.start_time = time.monotonic()
        self._last_tick = self.start_time
        self._stop = threading.Event()

    @property
    def verbose(self) -> bool:
        return self.output_format is OutputFormat.HUMAN_VERBOSE

    def record(self, info: OperationInfo):
        """Учесть один результат во всех трех уровнях"""
        if info.operation is Operation.ERROR:
            logger.debug(f"Worker {info.worker_id}: {info.error}")
            if self.verbose:
                print(info.error, file=self.out)
        elif info.operation is Operation.WRITE:
            self.bytes_written += info.size

        workers = self.thread_ticks.setdefault(info.operation, {})
        workers.setdefault(info.worker_id, AggregateBucket()).add(info)
        self.ticks.setdefault(info.operation, AggregateBucket()).add(info)
        self.totals.setdefault(info.operation, AggregateBucket()).add(info)

    def tick(self) -> bool:
        """
        Обработка одного интервала.
        Возвращает True, если лимит данных достигнут и пора завершаться.
        """
        for info in self.channel.drain():
            self.record(info)

        now = time.monotonic()
        self.render(now - self.start_time)
        self._snapshot(now)

        # Интервальные уровни обнуляются, общий - никогда
        self.thread_ticks = {}
        self.ticks = {}
        self._last_tick = now

        if self.data_cap > 0 and self.bytes_written >= self.data_cap:
            self.cap_reached = True
            logger.info(f"Data cap reached: {self.bytes_written} bytes written "
                        f"(cap {self.data_cap})")
            return True
        return False

    def render(self, elapsed_sec: float):
        if self.output_format is OutputFormat.TABULAR:
            lines = [render_tabular(self.ticks)]
        else:
            lines = render_human(
                self.ticks, self.totals, elapsed_sec,
                self.thread_ticks if self.verbose else None)

        print("\n".join(lines), file=self.out, flush=True)

    def run(self):
        """Цикл сборщика; канал закрывается при любом выходе"""
        try:
            while not self._stop.wait(self.interval):
                if self.tick():
                    break
        finally:
            self.channel.close()

    def stop(self):
        """Внешняя остановка (Ctrl-C или гибель всех воркеров)"""
        self._stop.set()

    def _snapshot(self, now: float):
        operations = {}
        for op, bucket in self.ticks.items():
            operations[op.value] = {
                'objects': bucket.objects,
                'bytes': bucket.bytes,
                'avg_ttfb_ms': bucket.avg_ttfb_ms,
                'avg_rtt_ms': bucket.avg_rtt_ms,
            }

        self.history.append({
            'timestamp': time.time(),
            'elapsed_sec': now - self.start_time,
            'interval_sec': now - self._last_tick,
            'operations': operations,
        })

    def save_raw_data(self, output_dir: Path) -> Path:
        """Сохранить сырые данные по интервалам в JSON"""
        output_dir.mkdir(parents=True, exist_ok=True)

        data = {
            'timestamp': self.timestamp,
            'data_cap': self.data_cap,
            'bytes_written': self.bytes_written,
            'totals': {
                op.value: {
                    'objects': bucket.objects,
                    'bytes': bucket.bytes,
                    'avg_ttfb_ms': bucket.avg_ttfb_ms,
                    'avg_rtt_ms': bucket.avg_rtt_ms,
                }
                for op, bucket in self.totals.items()
            },
            'intervals': self.history,
        }

        output_file = output_dir / f"loadgen_raw_{self.timestamp}.json"
        with open(output_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        logger.info(f"Raw data saved: {output_file}")
        return output_file

    def interval_series(self, op: Operation, field: str) -> np.ndarray:
        """Значения поля по интервалам, где операция была активна"""
        values = [
            snapshot['operations'][op.value][field]
            for snapshot in self.history
            if op.value in snapshot['operations']
            and snapshot['operations'][op.value][field] is not None
        ]
        return np.array(values, dtype=float)

    def throughput_series(self, op: Operation) -> np.ndarray:
        """Байт в секунду по каждому интервалу"""
        values = []
        for snapshot in self.history:
            stats = snapshot['operations'].get(op.value)
            if stats is None or snapshot['interval_sec'] <= 0:
                continue
            values.append(stats['bytes'] / snapshot['interval_sec'])
        return np.array(values, dtype=float)

    def generate_report(self, output_dir: Path) -> str:
        """Генерация текстового отчета"""
        output_dir.mkdir(parents=True, exist_ok=True)
        elapsed = self.history[-1]['elapsed_sec'] if self.history else 0.0

        report_lines = []
        report_lines.append("=" * 80)
        report_lines.append("STORAGE LOAD GENERATOR REPORT")
        report_lines.append("=" * 80)
        report_lines.append(f"Timestamp:      {self.timestamp}")
        report_lines.append(f"Duration:       {elapsed:.2f} sec ({len(self.history)} intervals)")
        report_lines.append(f"Bytes written:  {format_size(self.bytes_written)}")
        if self.data_cap:
            report_lines.append(f"Data cap:       {format_size(self.data_cap)}"
                                f" ({'reached' if self.cap_reached else 'not reached'})")

        for op in Operation:
            bucket = self.totals.get(op)
            if bucket is None:
                continue

            report_lines.append(f"\n{'=' * 80}")
            report_lines.append(f"OPERATION: {op.value.upper()}")
            report_lines.append('=' * 80)

            if op is Operation.ERROR:
                report_lines.append(f"    Errors:            {bucket.objects:>10}")
                continue
            if not bucket.objects:
                report_lines.append("    No activity")
                continue

            report_lines.append(f"    Objects:           {bucket.objects:>10}")
            report_lines.append(f"    Data:              {format_size(bucket.bytes):>13}")
            report_lines.append(f"    Latency ttfb (avg):{bucket.avg_ttfb_ms:>10.2f} ms")
            report_lines.append(f"    Latency rtt (avg): {bucket.avg_rtt_ms:>10.2f} ms")

            throughput = self.throughput_series(op) / (1024 * 1024)
            rtt = self.interval_series(op, 'avg_rtt_ms')
            if throughput.size:
                report_lines.append(f"  {'─' * 70}")
                report_lines.append(f"    Throughput (mean): {np.mean(throughput):>10.2f} MB/s")
                report_lines.append(f"    Throughput (p95):  {np.percentile(throughput, 95):>10.2f} MB/s")
                report_lines.append(f"    Throughput (p99):  {np.percentile(throughput, 99):>10.2f} MB/s")
            if rtt.size:
                report_lines.append(f"    Interval rtt (p95):{np.percentile(rtt, 95):>10.2f} ms")
                report_lines.append(f"    Interval rtt (p99):{np.percentile(rtt, 99):>10.2f} ms")

        report_lines.append("\n" + "=" * 80)

        report_text = "\n".join(report_lines)

        report_file = output_dir / f"loadgen_report_{self.timestamp}.txt"
        with open(report_file, 'w', encoding='utf-8') as f:
            f.write(report_text)

        logger.info(f"Report saved: {report_file}")
        return report_text
