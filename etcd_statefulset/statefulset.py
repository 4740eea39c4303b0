"""
etcd StatefulSet deployer.

Reconciles the single StatefulSet backing an etcd cluster:

  deploy()        fetch → decide (create / patch / recreate) → apply
  destroy()       delete, 404 counts as success
  wait()          poll until the rollout is complete, attach PVC warnings on failure
  wait_cleanup()  poll until the StatefulSet is gone

Topology migration:
  Clusters created as a single member addressed the StatefulSet through the
  client service. Scaling such a cluster to multiple members needs a new
  addressing scheme that cannot be patched in, so the StatefulSet is
  destroyed (waiting for it to disappear) and created from scratch.

The deployer never retries deploy/destroy itself and keeps no state between
calls; the caller serializes calls for the same etcd.
"""

import copy
import logging
import threading
from typing import Optional

from kubernetes.client import ApiException, AppsV1Api, CoreV1Api, V1ObjectMeta, V1StatefulSet

from . import config, retry
from .composer import apply_desired_state
from .config import RetryConfig
from .errors import OperationCancelledError, RetryError, is_not_found
from .events import fetch_pvc_event_messages
from .health import StatefulSetNotReady, check_stateful_set
from .models import Values
from .patch import MERGE_PATCH_CONTENT_TYPE, merge_patch_from

logger = logging.getLogger("etcd-statefulset")


def cluster_scaled_up_to_multi_node(values: Values) -> bool:
    # status_replicas is 0 for clusters that never recorded it
    return values.replicas > 1 and values.status_replicas in (0, 1)


class StatefulSetDeployer:
    def __init__(
        self,
        apps_api: AppsV1Api,
        core_api: CoreV1Api,
        values: Values,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.apps_api = apps_api
        self.core_api = core_api
        self.values = values
        self.retry_config = retry_config or RetryConfig()

    @classmethod
    def from_cluster(cls, values: Values) -> "StatefulSetDeployer":
        """Build a deployer against the configured cluster and settings."""
        return cls(config.apps_api(), config.core_api(), values, RetryConfig.from_settings())

    @property
    def _key(self) -> str:
        return f"{self.values.namespace}/{self.values.name}"

    def _empty_stateful_set(self) -> V1StatefulSet:
        return V1StatefulSet(
            api_version="apps/v1",
            kind="StatefulSet",
            metadata=V1ObjectMeta(name=self.values.name, namespace=self.values.namespace),
        )

    # -----------------------------------------------------------------------
    # Read
    # -----------------------------------------------------------------------

    def get(self, stopped: Optional[threading.Event] = None) -> V1StatefulSet:
        """Fetch the StatefulSet. ApiExceptions (including 404) are raised unchanged."""
        retry.raise_if_stopped(stopped)
        return self.apps_api.read_namespaced_stateful_set(
            name=self.values.name, namespace=self.values.namespace
        )

    # -----------------------------------------------------------------------
    # Deploy / destroy
    # -----------------------------------------------------------------------

    def deploy(self, stopped: Optional[threading.Event] = None):
        """Create or patch the StatefulSet, recreating it on topology migration."""
        try:
            sts = self.get(stopped)
        except ApiException as e:
            if not is_not_found(e):
                raise
            logger.info(f"[{self._key}] StatefulSet not found, will create")
            sts = self._empty_stateful_set()

        if (sts.metadata.generation or 0) > 1 and cluster_scaled_up_to_multi_node(self.values):
            logger.warning(
                f"[{self._key}] Scaling from {self.values.status_replicas} to "
                f"{self.values.replicas} replicas, recreating StatefulSet"
            )
            self.destroy(stopped)
            self.wait_cleanup(stopped)
            sts = self._empty_stateful_set()

        self._sync(sts, stopped)

    def _sync(self, sts: V1StatefulSet, stopped: Optional[threading.Event]):
        baseline = copy.deepcopy(sts)
        apply_desired_state(sts, self.values)

        retry.raise_if_stopped(stopped)
        if (baseline.metadata.generation or 0) > 0:
            body = merge_patch_from(baseline, sts)
            if not body:
                logger.info(f"[{self._key}] StatefulSet up to date, nothing to patch")
                return
            self.apps_api.patch_namespaced_stateful_set(
                name=self.values.name,
                namespace=self.values.namespace,
                body=body,
                _content_type=MERGE_PATCH_CONTENT_TYPE,
            )
            logger.info(f"[{self._key}] StatefulSet patched (replicas={self.values.replicas})")
            return

        self.apps_api.create_namespaced_stateful_set(namespace=self.values.namespace, body=sts)
        logger.info(f"[{self._key}] StatefulSet created (replicas={self.values.replicas})")

    def destroy(self, stopped: Optional[threading.Event] = None):
        """Delete the StatefulSet, ignore 404."""
        retry.raise_if_stopped(stopped)
        try:
            self.apps_api.delete_namespaced_stateful_set(
                name=self.values.name, namespace=self.values.namespace
            )
            logger.info(f"[{self._key}] StatefulSet deletion initiated")
        except ApiException as e:
            if not is_not_found(e):
                raise
            logger.info(f"[{self._key}] StatefulSet already gone")

    # -----------------------------------------------------------------------
    # Waiters
    # -----------------------------------------------------------------------

    def wait(self, stopped: Optional[threading.Event] = None):
        """
        Block until the StatefulSet is rolled out with the desired replicas.

        Raises RetryTimeoutError, SevereRetryError or OperationCancelledError.
        Timeout and severe errors carry warning events of pending PVCs in
        their details when any can be found.
        """

        def poll() -> retry.Result:
            try:
                sts = self.get(stopped)
            except OperationCancelledError:
                raise
            except ApiException as e:
                if is_not_found(e):
                    return retry.minor_error(e)
                return retry.severe_error(e)
            except Exception as e:
                # connection-level failures surface from urllib3
                return retry.severe_error(e)
            try:
                check_stateful_set(self.values.replicas, sts)
            except StatefulSetNotReady as e:
                return retry.minor_error(e)
            return retry.ok()

        try:
            retry.until_timeout(
                poll, self.retry_config.interval, self.retry_config.timeout, stopped
            )
        except OperationCancelledError:
            raise
        except RetryError as err:
            messages, fetch_err = fetch_pvc_event_messages(
                self.core_api, self.values.namespace, self._claim_prefix()
            )
            if fetch_err is not None:
                # Best effort only: the wait error is raised unchanged
                logger.error(
                    f"[{self._key}] Error while fetching events for depending PVC: {fetch_err}",
                    exc_info=fetch_err,
                )
            elif messages:
                err.details = messages
            raise
        logger.info(f"[{self._key}] StatefulSet is ready")

    def wait_cleanup(self, stopped: Optional[threading.Event] = None):
        """Block until the StatefulSet no longer exists."""

        def poll() -> retry.Result:
            try:
                self.get(stopped)
            except OperationCancelledError:
                raise
            except ApiException as e:
                if is_not_found(e):
                    return retry.ok()
                return retry.severe_error(e)
            except Exception as e:
                return retry.severe_error(e)
            return retry.minor_error()

        retry.until_timeout(
            poll, self.retry_config.interval, self.retry_config.timeout, stopped
        )
        logger.info(f"[{self._key}] StatefulSet removed")

    def _claim_prefix(self) -> str:
        return f"{self.values.volume_claim_template_name}-{self.values.name}"
