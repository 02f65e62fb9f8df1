"""Backend для локальной или смонтированной файловой системы"""

import os
from datetime import date
from pathlib import Path
from typing import Tuple

from .base import Backend, WorkerConfig
from .errors import BackendError, SetupError

# Максимум файлов в одной директории, после него начинается новый шард
MAX_DIRENTS = 100_000


class FilesystemBackend(Backend):
    """
    Файлы раскладываются по директориям <год>/<ММДД>/<шард>/<id>
    относительно целевой директории. Ключ в очереди - этот относительный путь.
    """

    protocol = 'fs'

    def __init__(self, config: WorkerConfig, worker_id: int = 0):
        super().__init__(config, worker_id)
        self.root = Path(config.target)
        self.files_in_shard = 0
        self.shard = 0

    def setup(self):
        """Проверка целевой директории"""
        if not self.root.exists():
            raise SetupError(f"target directory does not exist: {self.root}")
        if not self.root.is_dir():
            raise SetupError(f"target is not a directory: {self.root}")

    def object_key(self, object_id: str) -> str:
        self.files_in_shard += 1
        if self.files_in_shard > MAX_DIRENTS:
            self.files_in_shard = 0
            self.shard += 1

        today = date.today()
        return f"{today:%Y}/{today:%m%d}/{self.shard}/{object_id}"

    def path(self, key: str, action: str) -> Path:
        """Путь к объекту. Ключи, ведущие за пределы целевой директории, отклоняются"""
        try:
            root = self.root.resolve()
            file_path = (root / key).resolve()
        except (OSError, ValueError) as e:
            raise BackendError(f"{action} {key} failed: {e}") from e

        if root not in file_path.parents:
            raise BackendError(
                f"{action} {key} failed: path is outside of {self.root}")
        return file_path

    def put_object(self, key: str, size: int) -> float:
        file_path = self.path(key, "Writing")

        with self.span("write::mkdir"):
            try:
                file_path.parent.mkdir(parents=True, exist_ok=True)
            except (OSError, ValueError) as e:
                raise BackendError(f"Writing {key} failed: {e}") from e

        try:
            with self.span("write::open"):
                f = open(file_path, 'wb')
            with f:
                with self.span("write::write"):
                    for chunk in self.iter_payload(size):
                        f.write(chunk)
                    f.flush()
                if self.config.sync:
                    with self.span("write::fsync"):
                        os.fsync(f.fileno())
        except (OSError, ValueError) as e:
            raise BackendError(f"Writing {key} failed: {e}") from e

        return 0.0

    def get_object(self, key: str) -> Tuple[int, float]:
        file_path = self.path(key, "Reading")
        size = 0

        try:
            with self.span("read::open"):
                f = open(file_path, 'rb')
            with f:
                with self.span("read::read"):
                    while True:
                        chunk = f.read(len(self.buf))
                        if not chunk:
                            break
                        size += len(chunk)
        except (OSError, ValueError) as e:
            raise BackendError(f"Reading {key} failed: {e}") from e

        return size, 0.0

    def delete_object(self, key: str):
        with self.span("delete::rm"):
            try:
                self.path(key, "Deleting").unlink()
            except (OSError, ValueError) as e:
                raise BackendError(f"Deleting {key} failed: {e}") from e
