"""Backend для WebDAV (requests)"""

from typing import Tuple

import requests

from .base import Backend, WorkerConfig
from .errors import BackendError, SetupError

# 201 - объект создан, 204 - перезаписан, некоторые серверы отвечают 200
WRITE_OK = (200, 201, 204)
READ_OK = (200,)
DELETE_OK = (200, 204)


class WebDavBackend(Backend):
    """HTTP PUT/GET/DELETE в одну коллекцию на сервере"""

    protocol = 'webdav'

    def __init__(self, config: WorkerConfig, worker_id: int = 0,
                 timeout: float = None):
        super().__init__(config, worker_id)
        base_url = config.target
        if '://' not in base_url:
            base_url = f"http://{base_url}"
        self.base_url = base_url.rstrip('/')
        self.collection_url = f"{self.base_url}/{config.namespace}"
        self.timeout = timeout
        self.session = requests.Session()

    def setup(self):
        """Создаем коллекцию, 405 означает, что она уже есть"""
        try:
            response = self.session.request(
                'MKCOL', self.collection_url + '/', timeout=self.timeout)
        except requests.RequestException as e:
            raise SetupError(f"WebDAV server unreachable: {e}") from e

        if response.status_code not in (200, 201, 405):
            raise SetupError(
                f"Creating collection {self.collection_url} failed: "
                f"{response.status_code}")

    def close(self):
        self.session.close()

    def object_key(self, object_id: str) -> str:
        return object_id

    def url(self, key: str) -> str:
        return f"{self.collection_url}/{key}"

    def put_object(self, key: str, size: int) -> float:
        body = self.payload(size)
        with self.span("write::put"):
            try:
                response = self.session.put(
                    self.url(key), data=body, timeout=self.timeout)
            except requests.RequestException as e:
                raise BackendError(f"Writing {key} failed: {e}") from e

        if response.status_code not in WRITE_OK:
            raise BackendError(
                f"Writing {key} failed: {response.status_code}")
        return response.elapsed.total_seconds() * 1000

    def get_object(self, key: str) -> Tuple[int, float]:
        size = 0
        with self.span("read::get"):
            try:
                with self.session.get(self.url(key), stream=True,
                                      timeout=self.timeout) as response:
                    if response.status_code not in READ_OK:
                        raise BackendError(
                            f"Reading {key} failed: {response.status_code}")
                    for chunk in response.iter_content(chunk_size=64 * 1024):
                        size += len(chunk)
            except requests.RequestException as e:
                raise BackendError(f"Reading {key} failed: {e}") from e

        # elapsed - время до получения заголовков ответа
        return size, response.elapsed.total_seconds() * 1000

    def delete_object(self, key: str):
        with self.span("delete::delete"):
            try:
                response = self.session.delete(self.url(key), timeout=self.timeout)
            except requests.RequestException as e:
                raise BackendError(f"Deleting {key} failed: {e}") from e

        if response.status_code not in DELETE_OK:
            raise BackendError(
                f"Deleting {key} failed: {response.status_code}")
