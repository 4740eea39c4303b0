"""
Desired-state composer for the etcd StatefulSet.

Pure functions only: every helper maps a Values snapshot to kubernetes
client models, with no API calls and no logging. The same snapshot always
yields an equal StatefulSet.

Layout of the generated pod:
  - etcd            the etcd server, probed via exec commands
  - backup-restore  sidecar that snapshots etcd; shares the pod's process
                    namespace and gets SYS_PTRACE so it can signal etcd
"""
import copy
from typing import Dict, List, Optional

from kubernetes.client import (
    V1Capabilities,
    V1ConfigMapVolumeSource,
    V1Container,
    V1ContainerPort,
    V1EnvVar,
    V1EnvVarSource,
    V1ExecAction,
    V1HostAlias,
    V1KeyToPath,
    V1LabelSelector,
    V1ObjectFieldSelector,
    V1ObjectMeta,
    V1OwnerReference,
    V1PersistentVolumeClaim,
    V1PersistentVolumeClaimSpec,
    V1PodSpec,
    V1PodTemplateSpec,
    V1Probe,
    V1ResourceRequirements,
    V1SecretVolumeSource,
    V1SecurityContext,
    V1StatefulSet,
    V1StatefulSetSpec,
    V1StatefulSetUpdateStrategy,
    V1Volume,
    V1VolumeMount,
    V1VolumeResourceRequirements,
)

from . import providers
from .models import TLSConfig, Values

DEFAULT_SERVER_PORT = 2380
DEFAULT_CLIENT_PORT = 2379
DEFAULT_BACKUP_PORT = 8080
DEFAULT_STORAGE_CAPACITY = "16Gi"
DEFAULT_RESOURCE_REQUESTS = {"cpu": "50m", "memory": "128Mi"}

OWNER_API_VERSION = "druid.gardener.cloud/v1alpha1"
OWNER_KIND = "Etcd"

CONFIG_VOLUME = "etcd-config-file"
CONFIG_FILE = "etcd.conf.yaml"

# Probe timings are fixed, not part of Values
PROBE_INITIAL_DELAY_SECONDS = 15
PROBE_PERIOD_SECONDS = 5
PROBE_FAILURE_THRESHOLD = 5


# ---------------------------------------------------------------------------
# Labels, annotations, owner linkage
# ---------------------------------------------------------------------------

def merge_string_maps(*maps: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Merge maps left to right; later keys win."""
    out: Dict[str, str] = {}
    for m in maps:
        if m:
            out.update(m)
    return out


def common_labels(values: Values) -> Dict[str, str]:
    return {"name": "etcd", "instance": values.name}


def object_labels(values: Values) -> Dict[str, str]:
    return merge_string_maps(common_labels(values), values.labels)


def object_annotations(values: Values) -> Dict[str, str]:
    return merge_string_maps(
        {
            "gardener.cloud/owned-by": f"{values.namespace}/{values.name}",
            "gardener.cloud/owner-type": "etcd",
        },
        values.annotations,
    )


def owner_references(values: Values) -> List[V1OwnerReference]:
    return [
        V1OwnerReference(
            api_version=OWNER_API_VERSION,
            kind=OWNER_KIND,
            name=values.name,
            uid=values.etcd_uid,
            controller=True,
            block_owner_deletion=True,
        )
    ]


def compose_object_meta(values: Values) -> V1ObjectMeta:
    return V1ObjectMeta(
        name=values.name,
        namespace=values.namespace,
        labels=object_labels(values),
        annotations=object_annotations(values),
        owner_references=owner_references(values),
    )


# ---------------------------------------------------------------------------
# Env helpers
# ---------------------------------------------------------------------------

def value_env_var(name: str, value: str) -> V1EnvVar:
    return V1EnvVar(name=name, value=value)


def field_env_var(name: str, field_path: str) -> V1EnvVar:
    return V1EnvVar(
        name=name,
        value_from=V1EnvVarSource(field_ref=V1ObjectFieldSelector(field_path=field_path)),
    )


def etcd_env(values: Values) -> List[V1EnvVar]:
    tls = values.backup_tls is not None
    protocol = "https" if tls else "http"
    port = _or_default(values.backup_port, DEFAULT_BACKUP_PORT)
    return [
        value_env_var("ENABLE_TLS", "true" if tls else "false"),
        value_env_var("BACKUP_ENDPOINT", f"{protocol}://{values.name}-local:{port}"),
    ]


def backup_restore_env(values: Values) -> List[V1EnvVar]:
    container = ""
    if values.backup_store is not None:
        container = values.backup_store.container or ""
    env = [
        value_env_var("STORAGE_CONTAINER", container),
        field_env_var("POD_NAME", "metadata.name"),
        field_env_var("POD_NAMESPACE", "metadata.namespace"),
    ]
    return env + providers.resolve(values.backup_store).env


# ---------------------------------------------------------------------------
# Ports, resources, probes
# ---------------------------------------------------------------------------

def _or_default(value, default):
    return default if value is None else value


def etcd_ports(values: Values) -> List[V1ContainerPort]:
    return [
        V1ContainerPort(
            name="server", protocol="TCP",
            container_port=_or_default(values.server_port, DEFAULT_SERVER_PORT),
        ),
        V1ContainerPort(
            name="client", protocol="TCP",
            container_port=_or_default(values.client_port, DEFAULT_CLIENT_PORT),
        ),
    ]


def backup_ports(values: Values) -> List[V1ContainerPort]:
    return [
        V1ContainerPort(
            name="server", protocol="TCP",
            container_port=_or_default(values.backup_port, DEFAULT_BACKUP_PORT),
        ),
    ]


def resources_or_default(requirements: Optional[V1ResourceRequirements]) -> V1ResourceRequirements:
    if requirements is not None:
        return copy.deepcopy(requirements)
    return V1ResourceRequirements(requests=dict(DEFAULT_RESOURCE_REQUESTS))


def exec_probe(command: Optional[List[str]]) -> V1Probe:
    return V1Probe(
        _exec=V1ExecAction(command=command),
        initial_delay_seconds=PROBE_INITIAL_DELAY_SECONDS,
        period_seconds=PROBE_PERIOD_SECONDS,
        failure_threshold=PROBE_FAILURE_THRESHOLD,
    )


# ---------------------------------------------------------------------------
# Volumes
# ---------------------------------------------------------------------------

def tls_volume_mounts(values: Values) -> List[V1VolumeMount]:
    mounts = []
    if values.client_url_tls is not None:
        mounts += [
            V1VolumeMount(name="client-url-ca-etcd", mount_path="/var/etcd/ssl/client/ca"),
            V1VolumeMount(name="client-url-etcd-server-tls", mount_path="/var/etcd/ssl/client/server"),
            V1VolumeMount(name="client-url-etcd-client-tls", mount_path="/var/etcd/ssl/client/client"),
        ]
    if values.peer_url_tls is not None:
        mounts += [
            V1VolumeMount(name="peer-url-ca-etcd", mount_path="/var/etcd/ssl/peer/ca"),
            V1VolumeMount(name="peer-url-etcd-server-tls", mount_path="/var/etcd/ssl/peer/server"),
        ]
    return mounts


def _secret_volume(name: str, secret_name: str) -> V1Volume:
    return V1Volume(name=name, secret=V1SecretVolumeSource(secret_name=secret_name))


def tls_volumes(values: Values) -> List[V1Volume]:
    volumes = []
    client_tls: Optional[TLSConfig] = values.client_url_tls
    if client_tls is not None:
        volumes += [
            _secret_volume("client-url-ca-etcd", client_tls.tls_ca_secret_ref.name),
            _secret_volume("client-url-etcd-server-tls", client_tls.server_tls_secret_ref.name),
            _secret_volume("client-url-etcd-client-tls", client_tls.client_tls_secret_ref.name),
        ]
    peer_tls: Optional[TLSConfig] = values.peer_url_tls
    if peer_tls is not None:
        volumes += [
            _secret_volume("peer-url-ca-etcd", peer_tls.tls_ca_secret_ref.name),
            _secret_volume("peer-url-etcd-server-tls", peer_tls.server_tls_secret_ref.name),
        ]
    return volumes


def etcd_volume_mounts(values: Values) -> List[V1VolumeMount]:
    return [
        V1VolumeMount(name=values.volume_claim_template_name, mount_path="/var/etcd/data/"),
    ] + tls_volume_mounts(values)


def backup_restore_volume_mounts(values: Values) -> List[V1VolumeMount]:
    mounts = [
        V1VolumeMount(name=values.volume_claim_template_name, mount_path="/var/etcd/data"),
        V1VolumeMount(name=CONFIG_VOLUME, mount_path="/var/etcd/config/"),
    ]
    return mounts + tls_volume_mounts(values) + providers.resolve(values.backup_store).mounts


def pod_volumes(values: Values) -> List[V1Volume]:
    config_volume = V1Volume(
        name=CONFIG_VOLUME,
        config_map=V1ConfigMapVolumeSource(
            name=values.config_map_name,
            items=[V1KeyToPath(key=CONFIG_FILE, path=CONFIG_FILE)],
            default_mode=0o644,
        ),
    )
    return [config_volume] + tls_volumes(values) + providers.resolve(values.backup_store).volumes


def volume_claim_templates(values: Values) -> List[V1PersistentVolumeClaim]:
    capacity = values.storage_capacity or DEFAULT_STORAGE_CAPACITY
    return [
        V1PersistentVolumeClaim(
            metadata=V1ObjectMeta(name=values.volume_claim_template_name),
            spec=V1PersistentVolumeClaimSpec(
                access_modes=["ReadWriteOnce"],
                storage_class_name=values.storage_class,
                resources=V1VolumeResourceRequirements(requests={"storage": capacity}),
            ),
        )
    ]


# ---------------------------------------------------------------------------
# Pod + StatefulSet
# ---------------------------------------------------------------------------

def containers(values: Values) -> List[V1Container]:
    etcd = V1Container(
        name="etcd",
        image=values.etcd_image,
        image_pull_policy="IfNotPresent",
        command=values.etcd_command,
        readiness_probe=exec_probe(values.readiness_probe_command),
        liveness_probe=exec_probe(values.liveness_probe_command),
        ports=etcd_ports(values),
        resources=resources_or_default(values.etcd_resources),
        env=etcd_env(values),
        volume_mounts=etcd_volume_mounts(values),
    )
    backup_restore = V1Container(
        name="backup-restore",
        image=values.backup_image,
        image_pull_policy="IfNotPresent",
        command=values.etcd_backup_command,
        ports=backup_ports(values),
        resources=resources_or_default(values.backup_resources),
        env=backup_restore_env(values),
        volume_mounts=backup_restore_volume_mounts(values),
        security_context=V1SecurityContext(capabilities=V1Capabilities(add=["SYS_PTRACE"])),
    )
    return [etcd, backup_restore]


def compose_pod_spec(values: Values) -> V1PodSpec:
    # Unset scheduling hints stay None and are dropped on serialization
    return V1PodSpec(
        host_aliases=[V1HostAlias(ip="127.0.0.1", hostnames=[f"{values.name}-local"])],
        service_account_name=values.service_account_name,
        priority_class_name=values.priority_class_name,
        affinity=copy.deepcopy(values.affinity),
        topology_spread_constraints=copy.deepcopy(values.topology_spread_constraints),
        containers=containers(values),
        share_process_namespace=True,
        volumes=pod_volumes(values),
    )


def compose_spec(values: Values) -> V1StatefulSetSpec:
    # Template labels always carry the selector labels, whatever the user set
    template_labels = merge_string_maps(object_labels(values), common_labels(values))
    return V1StatefulSetSpec(
        pod_management_policy="Parallel",
        update_strategy=V1StatefulSetUpdateStrategy(type="RollingUpdate"),
        replicas=values.replicas,
        service_name=values.service_name,
        selector=V1LabelSelector(match_labels=common_labels(values)),
        template=V1PodTemplateSpec(
            metadata=V1ObjectMeta(
                annotations=dict(values.annotations) or None,
                labels=template_labels,
            ),
            spec=compose_pod_spec(values),
        ),
        volume_claim_templates=volume_claim_templates(values),
    )


def compose(values: Values) -> V1StatefulSet:
    """Return the complete desired StatefulSet for a snapshot."""
    return V1StatefulSet(
        api_version="apps/v1",
        kind="StatefulSet",
        metadata=compose_object_meta(values),
        spec=compose_spec(values),
    )


def apply_desired_state(sts: V1StatefulSet, values: Values) -> V1StatefulSet:
    """
    Write the desired state into a working copy of a fetched (or placeholder)
    StatefulSet. Server-managed metadata and status are left untouched, and
    an existing selector is kept as-is since the API server rejects
    selector changes.
    """
    sts.api_version = "apps/v1"
    sts.kind = "StatefulSet"
    if sts.metadata is None:
        sts.metadata = V1ObjectMeta()
    desired_meta = compose_object_meta(values)
    sts.metadata.name = desired_meta.name
    sts.metadata.namespace = desired_meta.namespace
    sts.metadata.labels = desired_meta.labels
    sts.metadata.annotations = desired_meta.annotations
    sts.metadata.owner_references = desired_meta.owner_references

    existing_selector = None
    if sts.spec is not None and (sts.metadata.generation or 0) > 0:
        existing_selector = sts.spec.selector
    sts.spec = compose_spec(values)
    if existing_selector is not None:
        sts.spec.selector = existing_selector
    return sts
