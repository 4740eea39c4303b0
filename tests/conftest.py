from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from kubernetes.client import (
    ApiException,
    V1ObjectMeta,
    V1StatefulSetStatus,
)

from etcd_statefulset import composer
from etcd_statefulset.config import RetryConfig
from etcd_statefulset.models import BackupStore, SecretReference, TLSConfig, Values
from etcd_statefulset.statefulset import StatefulSetDeployer


class FakeClock:
    """Stands in for the ``time`` module inside etcd_statefulset.retry."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeStop:
    """Stop event that gets set the first time the poll loop sleeps on it."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self._set = False

    def is_set(self) -> bool:
        return self._set

    def wait(self, seconds: float) -> bool:
        self.clock.now += seconds / 2
        self._set = True
        return True


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    fake = FakeClock()
    monkeypatch.setattr(
        "etcd_statefulset.retry.time",
        SimpleNamespace(monotonic=fake.monotonic, sleep=fake.sleep),
    )
    return fake


def not_found() -> ApiException:
    return ApiException(status=404, reason="Not Found")


def server_error() -> ApiException:
    return ApiException(status=500, reason="Internal Server Error")


def make_values(**overrides) -> Values:
    fields = dict(
        name="myetcd",
        namespace="shoot--dev--foo",
        etcd_uid="1b2c3d",
        replicas=3,
        status_replicas=3,
        service_name="myetcd-peer",
        etcd_image="etcd:v3.4.13",
        backup_image="etcdbrctl:v0.15.0",
        etcd_command=["/var/etcd/bin/bootstrap.sh"],
        etcd_backup_command=["etcdbrctl", "server"],
        readiness_probe_command=["/bin/sh", "-ec", "ETCDCTL_API=3 etcdctl get foo"],
        liveness_probe_command=["/bin/sh", "-ec", "ETCDCTL_API=3 etcdctl endpoint health"],
        volume_claim_template_name="data",
        storage_class="gp2",
        config_map_name="etcd-bootstrap-1b2c3d",
        labels={"role": "main"},
        annotations={"checksum/config": "abc"},
    )
    fields.update(overrides)
    return Values(**fields)


def tls_config(prefix: str) -> TLSConfig:
    return TLSConfig(
        tls_ca_secret_ref=SecretReference(name=f"{prefix}-ca"),
        server_tls_secret_ref=SecretReference(name=f"{prefix}-server"),
        client_tls_secret_ref=SecretReference(name=f"{prefix}-client"),
    )


def backup_store(provider: str | None, container: str | None = "bucket", secret: str | None = "backup-secret") -> BackupStore:
    return BackupStore(
        provider=provider,
        container=container,
        secret_ref=SecretReference(name=secret) if secret else None,
    )


def existing_stateful_set(values: Values, generation: int, ready: bool = False):
    """A StatefulSet as the API server would return it for ``values``."""
    sts = composer.compose(values)
    sts.metadata = V1ObjectMeta(
        name=values.name,
        namespace=values.namespace,
        generation=generation,
        resource_version="4711",
        uid="sts-uid",
        labels=composer.object_labels(values),
        annotations=composer.object_annotations(values),
        owner_references=composer.owner_references(values),
    )
    replicas = values.replicas
    sts.status = V1StatefulSetStatus(
        replicas=replicas,
        observed_generation=generation,
        ready_replicas=replicas if ready else 0,
        updated_replicas=replicas,
        current_replicas=replicas,
        current_revision="myetcd-abc",
        update_revision="myetcd-abc",
    )
    return sts


@pytest.fixture
def values() -> Values:
    return make_values()


@pytest.fixture
def apps_api() -> Mock:
    return Mock()


@pytest.fixture
def core_api() -> Mock:
    api = Mock()
    api.list_namespaced_persistent_volume_claim.return_value = SimpleNamespace(items=[])
    api.list_namespaced_event.return_value = SimpleNamespace(items=[])
    return api


@pytest.fixture
def deployer_for(apps_api: Mock, core_api: Mock):
    def build(values: Values) -> StatefulSetDeployer:
        return StatefulSetDeployer(
            apps_api, core_api, values, RetryConfig(interval=5, timeout=90)
        )
    return build
