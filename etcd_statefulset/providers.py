"""
Backup storage provider resolution.

Turns the abstract backup store descriptor into the volume mounts, volumes
and environment variables the backup-restore sidecar needs to reach its
storage backend. Unknown or incomplete descriptors contribute nothing.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from kubernetes.client import (
    V1EnvVar,
    V1EnvVarSource,
    V1HostPathVolumeSource,
    V1SecretKeySelector,
    V1SecretVolumeSource,
    V1Volume,
    V1VolumeMount,
)

from .models import BackupStore, StorageProvider

LOCAL_PREFIX = "/etc/gardener/local-backupbuckets"

HOST_STORAGE_VOLUME = "host-storage"
BACKUP_SECRET_VOLUME = "etcd-backup"

CREDENTIALS_MOUNT_PATH = "/root/etcd-backup"
GCS_MOUNT_PATH = "/root/.gcp/"
GCS_CREDENTIALS_FILE = "/root/.gcp/serviceaccount.json"

# Providers whose credentials file lives in the shared etcd-backup mount
_CREDENTIALS_FILE_ENV = {
    StorageProvider.S3: "AWS_APPLICATION_CREDENTIALS",
    StorageProvider.ABS: "AZURE_APPLICATION_CREDENTIALS",
    StorageProvider.SWIFT: "OPENSTACK_APPLICATION_CREDENTIALS",
    StorageProvider.OSS: "ALICLOUD_APPLICATION_CREDENTIALS",
    StorageProvider.OCS: "OPENSHIFT_APPLICATION_CREDENTIALS",
}

# ECS reads discrete credentials from keys of the backup secret
_ECS_SECRET_ENV = (
    ("ECS_ENDPOINT", "endpoint"),
    ("ECS_ACCESS_KEY_ID", "accessKeyID"),
    ("ECS_SECRET_ACCESS_KEY", "secretAccessKey"),
)


@dataclass
class ProviderContribution:
    mounts: List[V1VolumeMount] = field(default_factory=list)
    volumes: List[V1Volume] = field(default_factory=list)
    env: List[V1EnvVar] = field(default_factory=list)


def resolve(store: Optional[BackupStore]) -> ProviderContribution:
    """Return the mounts, volumes and env vars for a backup store."""
    if store is None:
        return ProviderContribution()
    provider = StorageProvider.from_infra(store.provider)
    if provider is None:
        return ProviderContribution()

    if provider == StorageProvider.LOCAL:
        return _local(store)
    if store.secret_ref is None:
        return ProviderContribution()

    secret_name = store.secret_ref.name
    if provider == StorageProvider.ECS:
        return ProviderContribution(env=[
            secret_env_var(name, secret_name, key) for name, key in _ECS_SECRET_ENV
        ])
    if provider == StorageProvider.GCS:
        return ProviderContribution(
            mounts=[V1VolumeMount(name=BACKUP_SECRET_VOLUME, mount_path=GCS_MOUNT_PATH)],
            volumes=[_secret_volume(secret_name)],
            env=[V1EnvVar(name="GOOGLE_APPLICATION_CREDENTIALS", value=GCS_CREDENTIALS_FILE)],
        )
    if provider in _CREDENTIALS_FILE_ENV:
        return ProviderContribution(
            mounts=[V1VolumeMount(name=BACKUP_SECRET_VOLUME, mount_path=CREDENTIALS_MOUNT_PATH + "/")],
            volumes=[_secret_volume(secret_name)],
            env=[V1EnvVar(name=_CREDENTIALS_FILE_ENV[provider], value=CREDENTIALS_MOUNT_PATH)],
        )
    return ProviderContribution()


def _local(store: BackupStore) -> ProviderContribution:
    if not store.container:
        return ProviderContribution()
    return ProviderContribution(
        mounts=[V1VolumeMount(name=HOST_STORAGE_VOLUME, mount_path=store.container)],
        volumes=[V1Volume(
            name=HOST_STORAGE_VOLUME,
            host_path=V1HostPathVolumeSource(
                path=f"{LOCAL_PREFIX}/{store.container}",
                type="Directory",
            ),
        )],
    )


def _secret_volume(secret_name: str) -> V1Volume:
    return V1Volume(
        name=BACKUP_SECRET_VOLUME,
        secret=V1SecretVolumeSource(secret_name=secret_name),
    )


def secret_env_var(name: str, secret_name: str, key: str) -> V1EnvVar:
    return V1EnvVar(
        name=name,
        value_from=V1EnvVarSource(
            secret_key_ref=V1SecretKeySelector(name=secret_name, key=key),
        ),
    )
