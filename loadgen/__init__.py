"""Storage Load Generator"""

from .base import Backend, OperationInfo, WorkerConfig
from .channel import ResultChannel
from .filesystem import FilesystemBackend
from .native_s3 import S3Backend
from .webdav import WebDavBackend
from .object_queue import ObjectQueue, QueuePolicy
from .metrics import StatsCollector
from .runner import Launcher, RunConfig
from .worker import Worker, create_backend
from .workloads import Operation, OutputFormat

__all__ = [
    'Backend',
    'OperationInfo',
    'WorkerConfig',
    'ResultChannel',
    'FilesystemBackend',
    'S3Backend',
    'WebDavBackend',
    'ObjectQueue',
    'QueuePolicy',
    'StatsCollector',
    'Launcher',
    'RunConfig',
    'Worker',
    'create_backend',
    'Operation',
    'OutputFormat',
]
