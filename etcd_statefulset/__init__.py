"""
etcd StatefulSet deployer: composes, syncs and awaits the StatefulSet
that runs an etcd cluster together with its backup-restore sidecar.
"""

from .config import RetryConfig
from .errors import OperationCancelledError, RetryError, RetryTimeoutError, SevereRetryError
from .models import BackupStore, SecretReference, StorageProvider, TLSConfig, Values
from .statefulset import StatefulSetDeployer

__all__ = [
    "BackupStore",
    "OperationCancelledError",
    "RetryConfig",
    "RetryError",
    "RetryTimeoutError",
    "SecretReference",
    "SevereRetryError",
    "StatefulSetDeployer",
    "StorageProvider",
    "TLSConfig",
    "Values",
]
