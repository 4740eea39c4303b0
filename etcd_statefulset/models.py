"""
Pydantic models for the configuration snapshot the deployer reconciles.

The snapshot is produced (and defaulted) by the caller once per
reconciliation; these models only describe its shape.
"""
from enum import Enum
from typing import Dict, List, Optional

from kubernetes.client import V1Affinity, V1ResourceRequirements, V1TopologySpreadConstraint
from pydantic import BaseModel, ConfigDict, Field


class StorageProvider(str, Enum):
    LOCAL = "Local"
    S3 = "S3"
    ABS = "ABS"
    GCS = "GCS"
    SWIFT = "Swift"
    OSS = "OSS"
    ECS = "ECS"
    OCS = "OCS"

    @classmethod
    def from_infra(cls, identifier: Optional[str]) -> Optional["StorageProvider"]:
        """
        Map an infrastructure provider name (aws, gcp, ...) or a canonical
        storage provider name to a StorageProvider. Returns None for empty
        or unsupported identifiers.
        """
        if not identifier:
            return None
        return _INFRA_ALIASES.get(identifier)


_INFRA_ALIASES = {
    "aws": StorageProvider.S3,
    "azure": StorageProvider.ABS,
    "gcp": StorageProvider.GCS,
    "openstack": StorageProvider.SWIFT,
    "alicloud": StorageProvider.OSS,
    "dell": StorageProvider.ECS,
    "openshift": StorageProvider.OCS,
    "local": StorageProvider.LOCAL,
}
_INFRA_ALIASES.update({p.value: p for p in StorageProvider})


class SecretReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    namespace: Optional[str] = None


class TLSConfig(BaseModel):
    """Secret references for one TLS endpoint (client or peer)."""
    model_config = ConfigDict(frozen=True)

    tls_ca_secret_ref: SecretReference
    server_tls_secret_ref: SecretReference
    client_tls_secret_ref: SecretReference


class BackupStore(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: Optional[str] = None
    container: Optional[str] = None
    secret_ref: Optional[SecretReference] = None


class Values(BaseModel):
    """Desired state of one etcd StatefulSet."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    # Identity
    name: str
    namespace: str
    etcd_uid: str = ""

    # Topology
    replicas: int = Field(default=1, ge=0)
    status_replicas: int = Field(default=0, ge=0)
    service_name: str = ""

    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)

    # Containers
    etcd_image: str = ""
    backup_image: str = ""
    etcd_command: Optional[List[str]] = None
    etcd_backup_command: Optional[List[str]] = None
    readiness_probe_command: Optional[List[str]] = None
    liveness_probe_command: Optional[List[str]] = None

    server_port: Optional[int] = None
    client_port: Optional[int] = None
    backup_port: Optional[int] = None

    etcd_resources: Optional[V1ResourceRequirements] = None
    backup_resources: Optional[V1ResourceRequirements] = None

    # Storage
    volume_claim_template_name: str = ""
    storage_class: Optional[str] = None
    storage_capacity: Optional[str] = None
    config_map_name: str = ""
    backup_store: Optional[BackupStore] = None

    # TLS
    client_url_tls: Optional[TLSConfig] = None
    peer_url_tls: Optional[TLSConfig] = None
    backup_tls: Optional[TLSConfig] = None

    # Scheduling
    service_account_name: Optional[str] = None
    priority_class_name: Optional[str] = None
    affinity: Optional[V1Affinity] = None
    topology_spread_constraints: Optional[List[V1TopologySpreadConstraint]] = None
