"""StatefulSet readiness checks."""
from kubernetes.client import V1StatefulSet


class StatefulSetNotReady(Exception):
    """Readiness predicate not satisfied yet."""


def check_stateful_set(replicas: int, sts: V1StatefulSet):
    """
    Raise StatefulSetNotReady unless the StatefulSet has rolled out
    ``replicas`` ready members at its latest generation.
    """
    status = sts.status
    if status is None:
        raise StatefulSetNotReady("status not reported yet")

    generation = sts.metadata.generation or 0
    observed = status.observed_generation or 0
    if observed < generation:
        raise StatefulSetNotReady(f"observed generation outdated ({observed}/{generation})")

    desired = 1 if sts.spec is None or sts.spec.replicas is None else sts.spec.replicas
    if desired != replicas:
        raise StatefulSetNotReady(f"not enough desired replicas ({desired}/{replicas})")

    updated = status.updated_replicas or 0
    if updated < desired:
        raise StatefulSetNotReady(f"not enough updated replicas ({updated}/{desired})")

    ready = status.ready_replicas or 0
    if ready < desired:
        raise StatefulSetNotReady(f"not enough ready replicas ({ready}/{desired})")

    if status.current_revision != status.update_revision:
        raise StatefulSetNotReady(
            f"current revision {status.current_revision} is older than "
            f"update revision {status.update_revision}"
        )

    current = status.current_replicas or 0
    if current != updated:
        raise StatefulSetNotReady(f"current replicas ({current}) != updated replicas ({updated})")
