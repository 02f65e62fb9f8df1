"""Backend для S3 API (boto3)"""

import os
import time
from typing import Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .base import Backend, WorkerConfig, elapsed_ms
from .errors import BackendError, SetupError

# Бакет уже создан другим воркером или в прошлом запуске
BUCKET_EXISTS_CODES = ('BucketAlreadyOwnedByYou', 'BucketAlreadyExists')


class S3Backend(Backend):
    """Запись, чтение и удаление объектов через boto3"""

    protocol = 's3'

    def __init__(self, config: WorkerConfig, worker_id: int = 0,
                 access_key: str = None, secret_key: str = None):
        super().__init__(config, worker_id)
        self.bucket_name = config.namespace

        endpoint_url = config.target
        if '://' not in endpoint_url:
            endpoint_url = f"http://{endpoint_url}"

        # Без повторов в SDK: каждая неудача попадает в статистику
        self.s3_client = boto3.client(
            's3',
            endpoint_url=endpoint_url,
            region_name=os.getenv('AWS_DEFAULT_REGION', 'us-east-1'),
            aws_access_key_id=access_key or os.getenv('AWS_ACCESS_KEY_ID', 'minioadmin'),
            aws_secret_access_key=secret_key or os.getenv('AWS_SECRET_ACCESS_KEY', 'minioadmin'),
            config=Config(retries={'max_attempts': 1, 'mode': 'standard'})
        )

    def setup(self):
        """Создаем bucket, если не существует"""
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            return
        except ClientError:
            pass
        except BotoCoreError as e:
            raise SetupError(f"S3 endpoint unreachable: {e}") from e

        try:
            self.s3_client.create_bucket(Bucket=self.bucket_name)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in BUCKET_EXISTS_CODES:
                return
            raise SetupError(
                f"Creating bucket {self.bucket_name} failed: {e}") from e
        except BotoCoreError as e:
            raise SetupError(
                f"Creating bucket {self.bucket_name} failed: {e}") from e

    def close(self):
        self.s3_client.close()

    def object_key(self, object_id: str) -> str:
        return f"v2/{self.bucket_name}/{object_id[:2]}/{object_id}"

    def put_object(self, key: str, size: int) -> float:
        body = self.payload(size)
        with self.span("write::put"):
            try:
                self.s3_client.put_object(
                    Bucket=self.bucket_name,
                    Key=key,
                    Body=body
                )
            except (ClientError, BotoCoreError) as e:
                raise BackendError(f"Writing {key} failed: {e}") from e
        # SDK не отдает время до первого байта ответа на PUT
        return 0.0

    def get_object(self, key: str) -> Tuple[int, float]:
        size = 0
        with self.span("read::get"):
            start = time.perf_counter()
            try:
                response = self.s3_client.get_object(
                    Bucket=self.bucket_name, Key=key)
                ttfb = elapsed_ms(start)

                # Содержимое не проверяем, только считаем байты
                for chunk in response['Body'].iter_chunks():
                    size += len(chunk)
            except (ClientError, BotoCoreError) as e:
                raise BackendError(f"Reading {key} failed: {e}") from e
        return size, ttfb

    def delete_object(self, key: str):
        with self.span("delete::delete"):
            try:
                self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
            except (ClientError, BotoCoreError) as e:
                raise BackendError(f"Deleting {key} failed: {e}") from e
