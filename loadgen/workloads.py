"""Определения нагрузки: операции, значения по умолчанию, разбор токенов"""

import re
from enum import Enum
from typing import List

from .errors import ConfigError


class WorkloadConfig:
    """Значения по умолчанию"""

    CONCURRENCY = 1
    SLEEP_MS = 0
    DISTRIBUTION = "128k,256k,512k"
    WORKLOAD = "r,w"
    INTERVAL_SEC = 2
    QUEUE_MODE = "rand"
    QUEUE_CAPACITY = 1000
    DATA_CAP = "0"
    NAMESPACE = "loadgen"
    PROTOCOL = "webdav"

    # Размер заранее сгенерированного буфера с полезной нагрузкой
    PAYLOAD_BUFFER = 64 * 1024


class Operation(Enum):
    """Типы операций. ERROR используется только для учета ошибок"""
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    ERROR = "error"

    def __str__(self):
        return self.value


class OutputFormat(Enum):
    """Форматы вывода статистики"""
    HUMAN = "human"
    HUMAN_VERBOSE = "human-verbose"
    TABULAR = "tabular"


OPERATION_TOKENS = {
    'r': Operation.READ,
    'read': Operation.READ,
    'w': Operation.WRITE,
    'write': Operation.WRITE,
    'd': Operation.DELETE,
    'delete': Operation.DELETE,
}

UNITS = {
    'k': 1024,
    'm': 1024 ** 2,
    'g': 1024 ** 3,
    't': 1024 ** 4,
}

_HUMAN_RE = re.compile(r"(\d+)([kmgt])", re.IGNORECASE | re.ASCII)


def parse_human(value: str) -> int:
    """Перевод размера вида '4k' в байты (4096)"""
    if value == "0":
        return 0

    match = _HUMAN_RE.fullmatch(value)
    if not match:
        raise ConfigError(
            f"invalid size '{value}': provided value must be a positive "
            f"number with a unit suffix (k, m, g, t)")

    return int(match.group(1)) * UNITS[match.group(2).lower()]


def expand_distribution(value: str) -> List[str]:
    """
    Разворачивает строку вида '1:3,2,3' в ['1', '1', '1', '2', '3'].

    Правый операнд задает количество копий левого, по умолчанию 1.
    Работает и для операций: 'r:2,w:2' -> ['r', 'r', 'w', 'w'].
    """
    expanded = []

    for token in value.split(','):
        parts = token.strip().split(':')
        if len(parts) == 1:
            expanded.append(parts[0])
        elif len(parts) == 2:
            try:
                weight = int(parts[1])
            except ValueError:
                raise ConfigError(
                    f"failed to parse '{parts[1]}' as a number") from None
            if weight < 0:
                raise ConfigError(f"negative weight in token '{token}'")
            expanded.extend([parts[0]] * weight)
        else:
            raise ConfigError(f"too many multiples in token '{token}'")

    return expanded


def parse_distribution(value: str) -> List[int]:
    """Список размеров объектов в байтах"""
    sizes = [parse_human(s) for s in expand_distribution(value)]
    if not sizes:
        raise ConfigError(f"size distribution '{value}' is empty")
    return sizes


def parse_operations(value: str) -> List[Operation]:
    """Взвешенный список операций для равномерного выбора"""
    operations = []

    for token in expand_distribution(value):
        op = OPERATION_TOKENS.get(token.lower())
        if op is None:
            raise ConfigError(f"unknown operation '{token}' (expected r, w or d)")
        operations.append(op)

    if not operations:
        raise ConfigError(f"workload '{value}' selects no operations")

    return operations


def needs_read_queue(operations: List[Operation]) -> bool:
    """Записи попадают в очередь, если нагрузка читает или удаляет"""
    return any(op in (Operation.READ, Operation.DELETE) for op in operations)
