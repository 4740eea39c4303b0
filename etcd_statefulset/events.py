"""
PVC event diagnostics.

When a StatefulSet does not come up, the usual culprit is storage that never
got provisioned. These helpers collect the latest warning events of the
StatefulSet's unbound PVCs so they can be attached to the wait error.
"""
from datetime import datetime, timezone
from typing import Optional

from kubernetes.client import CoreV1Api, CoreV1Event

EVENT_TYPE_WARNING = "Warning"
CLAIM_BOUND = "Bound"
MAX_EVENTS_PER_CLAIM = 2

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _event_time(event: CoreV1Event) -> datetime:
    ts = event.last_timestamp or event.event_time
    if ts is None and event.metadata is not None:
        ts = event.metadata.creation_timestamp
    return ts or _EPOCH


def fetch_event_messages(
    core: CoreV1Api,
    namespace: str,
    pvc_name: str,
    event_type: str = EVENT_TYPE_WARNING,
    limit: int = MAX_EVENTS_PER_CLAIM,
) -> str:
    """Return the ``limit`` most recent events of ``event_type`` for a PVC, formatted."""
    selector = ",".join([
        "involvedObject.kind=PersistentVolumeClaim",
        f"involvedObject.name={pvc_name}",
        f"involvedObject.namespace={namespace}",
        f"type={event_type}",
    ])
    events = core.list_namespaced_event(namespace, field_selector=selector).items
    if not events:
        return ""
    latest = sorted(events, key=_event_time)[-limit:]
    lines = ["-> Events:"]
    for e in latest:
        lines.append(f"* {e.reason}: {e.message}")
    return "\n".join(lines)


def fetch_pvc_event_messages(
    core: CoreV1Api,
    namespace: str,
    claim_prefix: str,
) -> tuple[str, Optional[Exception]]:
    """
    Collect warning events for every unbound PVC whose name starts with
    ``claim_prefix``. Returns (messages, error); on error the messages are
    empty and the caller decides what to do with the failure.
    """
    try:
        pvcs = core.list_namespaced_persistent_volume_claim(namespace).items
        messages = ""
        for pvc in pvcs:
            phase = pvc.status.phase if pvc.status else None
            if not pvc.metadata.name.startswith(claim_prefix) or phase == CLAIM_BOUND:
                continue
            found = fetch_event_messages(core, namespace, pvc.metadata.name)
            if found:
                messages += f"Warning for PVC {pvc.metadata.name}:\n{found}\n"
        return messages, None
    except Exception as e:
        return "", e
