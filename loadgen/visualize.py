"""Визуализация статистики по интервалам"""

import logging
from pathlib import Path
from typing import Dict, List

import numpy as np
import matplotlib.pyplot as plt

from .workloads import Operation

logger = logging.getLogger(__name__)

COLORS = {
    Operation.READ: '#3498db',
    Operation.WRITE: '#2ecc71',
    Operation.DELETE: '#e67e22',
    Operation.ERROR: '#e74c3c',
}


def generate_all_plots(history: List[Dict], output_dir: Path) -> List[Path]:
    """Генерация всех графиков"""
    output_dir.mkdir(parents=True, exist_ok=True)

    plots = [
        plot_throughput(history, output_dir / "01_throughput.png"),
        plot_objects(history, output_dir / "02_objects_per_interval.png"),
        plot_latency(history, output_dir / "03_latency.png"),
    ]

    logger.info(f"All plots saved to {output_dir}/")
    return plots


def _series(history: List[Dict], op: Operation, field: str):
    """Точки (время, значение) для операции; пропуски там, где не было активности"""
    x = np.array([s['elapsed_sec'] for s in history], dtype=float)
    values = []
    for snapshot in history:
        stats = snapshot['operations'].get(op.value)
        value = stats.get(field) if stats else None
        values.append(np.nan if value is None else value)
    return x, np.array(values, dtype=float)


def _active_operations(history: List[Dict]) -> List[Operation]:
    seen = set()
    for snapshot in history:
        seen.update(snapshot['operations'])
    return [op for op in Operation if op.value in seen]


def plot_throughput(history: List[Dict], output_path: Path) -> Path:
    """Пропускная способность (MB/s) по интервалам"""
    fig, ax = plt.subplots(figsize=(14, 7))

    intervals = np.array([s['interval_sec'] for s in history], dtype=float)
    intervals[intervals <= 0] = np.nan

    for op in _active_operations(history):
        if op is Operation.ERROR:
            continue
        x, data = _series(history, op, 'bytes')
        ax.plot(x, data / intervals / (1024 * 1024), 'o-', linewidth=2,
                label=op.value, color=COLORS[op])

    ax.set_xlabel('Elapsed (sec)', fontsize=12, fontweight='bold')
    ax.set_ylabel('Throughput (MB/s)', fontsize=12, fontweight='bold')
    ax.set_title('Throughput per Interval', fontsize=14, fontweight='bold', pad=20)
    ax.legend(fontsize=11, loc='upper right')
    ax.grid(axis='y', alpha=0.3, linestyle='--')

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close()
    logger.info(f"  ✓ {output_path.name}")
    return output_path


def plot_objects(history: List[Dict], output_path: Path) -> Path:
    """Количество объектов (и ошибок) за интервал"""
    fig, ax = plt.subplots(figsize=(14, 7))

    operations = _active_operations(history)
    x = np.arange(len(history))
    width = 0.8 / max(1, len(operations))

    for i, op in enumerate(operations):
        _, data = _series(history, op, 'objects')
        offset = width * (i - len(operations) / 2 + 0.5)
        ax.bar(x + offset, np.nan_to_num(data), width,
               label=op.value, color=COLORS[op])

    ax.set_xlabel('Interval', fontsize=12, fontweight='bold')
    ax.set_ylabel('Objects', fontsize=12, fontweight='bold')
    ax.set_title('Objects per Interval', fontsize=14, fontweight='bold', pad=20)
    ax.legend(fontsize=11, loc='upper right')
    ax.grid(axis='y', alpha=0.3, linestyle='--')

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close()
    logger.info(f"  ✓ {output_path.name}")
    return output_path


def plot_latency(history: List[Dict], output_path: Path) -> Path:
    """Средние ttfb и rtt по интервалам"""
    fig, ax = plt.subplots(figsize=(14, 7))

    for op in _active_operations(history):
        if op is Operation.ERROR:
            continue
        x, rtt = _series(history, op, 'avg_rtt_ms')
        _, ttfb = _series(history, op, 'avg_ttfb_ms')
        ax.plot(x, rtt, 'o-', linewidth=2, label=f"{op.value} rtt",
                color=COLORS[op])
        if np.nansum(ttfb) > 0:
            ax.plot(x, ttfb, 's--', linewidth=1.5, label=f"{op.value} ttfb",
                    color=COLORS[op], alpha=0.6)

    ax.set_xlabel('Elapsed (sec)', fontsize=12, fontweight='bold')
    ax.set_ylabel('Latency (ms)', fontsize=12, fontweight='bold')
    ax.set_title('Average Latency per Interval', fontsize=14, fontweight='bold', pad=20)
    ax.legend(fontsize=11)
    ax.grid(axis='y', alpha=0.3, linestyle='--')

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close()
    logger.info(f"  ✓ {output_path.name}")
    return output_path
