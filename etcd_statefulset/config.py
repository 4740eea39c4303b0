"""
Configuration module: settings from env vars with sensible defaults.

Also owns the one-time kube config loading and hands out API objects, so the
deployer itself never touches cluster credentials.
"""
import os
from dataclasses import dataclass

from kubernetes import client, config


@dataclass(frozen=True)
class Settings:
    # Kubernetes
    KUBECONFIG: str = os.environ.get("KUBECONFIG", "")
    IN_CLUSTER: bool = os.environ.get("IN_CLUSTER", "false").lower() == "true"

    # Waiters (seconds)
    WAIT_INTERVAL: float = float(os.environ.get("ETCD_STS_WAIT_INTERVAL", "5"))
    WAIT_TIMEOUT: float = float(os.environ.get("ETCD_STS_WAIT_TIMEOUT", "90"))


settings = Settings()

# Defaults for the two polling loops
DEFAULT_INTERVAL = 5.0
DEFAULT_TIMEOUT = 90.0


@dataclass(frozen=True)
class RetryConfig:
    """Polling cadence shared by the convergence and teardown waiters."""
    interval: float = DEFAULT_INTERVAL
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "RetryConfig":
        return cls(interval=s.WAIT_INTERVAL, timeout=s.WAIT_TIMEOUT)


_k8s_loaded = False


def _ensure_k8s():
    """Load Kubernetes config exactly once."""
    global _k8s_loaded
    if _k8s_loaded:
        return
    if settings.IN_CLUSTER:
        config.load_incluster_config()
    else:
        config.load_kube_config(config_file=settings.KUBECONFIG or None)
    _k8s_loaded = True


def apps_api() -> client.AppsV1Api:
    _ensure_k8s()
    return client.AppsV1Api()


def core_api() -> client.CoreV1Api:
    _ensure_k8s()
    return client.CoreV1Api()
