"""Conversion of Longhorn custom resources and Kubernetes objects into models.

``CustomObjectsApi`` returns plain dicts; numbers may come back as ints,
floats or strings depending on the serializer, so every numeric field goes
through ``as_int``.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from lhcli.core.models import (
    Backup,
    BackupTarget,
    Condition,
    Disk,
    EngineImage,
    Event,
    Node,
    PVMapping,
    Replica,
    Setting,
    Snapshot,
    Volume,
)

logger = logging.getLogger(__name__)

LONGHORN_CSI_DRIVER = "driver.longhorn.io"
VOLUME_LABEL = "longhornvolume"
BACKUP_VOLUME_LABEL = "backup-volume"


def as_int(value: Any) -> int:
    """Coerce an int, float or numeric string to int, 0 for anything else."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return 0
    return 0


def as_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _metadata(obj: Dict[str, Any]) -> Dict[str, Any]:
    return obj.get("metadata") or {}


def _spec(obj: Dict[str, Any]) -> Dict[str, Any]:
    return obj.get("spec") or {}


def _status(obj: Dict[str, Any]) -> Dict[str, Any]:
    return obj.get("status") or {}


def _strings(values: Any) -> List[str]:
    return [v for v in (values or []) if isinstance(v, str)]


def conditions_to_map(conditions: Any) -> Dict[str, Condition]:
    """Key a CRD condition list by condition type.

    Entries without a type are dropped. A map (as served by the REST API)
    is passed through.
    """
    if isinstance(conditions, dict):
        return {key: Condition.model_validate(value) for key, value in conditions.items()}
    result: Dict[str, Condition] = {}
    for item in conditions or []:
        if not isinstance(item, dict) or not item.get("type"):
            continue
        result[item["type"]] = Condition(
            type=item["type"],
            status=as_str(item.get("status")),
            reason=as_str(item.get("reason")),
            message=as_str(item.get("message")),
            last_probe_time=as_str(item.get("lastProbeTime")),
            last_transition_time=as_str(item.get("lastTransitionTime")),
        )
    return result


def volume_from_crd(obj: Dict[str, Any]) -> Volume:
    meta, spec, status = _metadata(obj), _spec(obj), _status(obj)
    return Volume(
        name=meta["name"],
        namespace=meta.get("namespace"),
        labels=meta.get("labels") or {},
        created=as_str(meta.get("creationTimestamp")),
        size=as_str(spec.get("size")),
        number_of_replicas=as_int(spec.get("numberOfReplicas")),
        frontend=as_str(spec.get("frontend")),
        data_locality=as_str(spec.get("dataLocality")),
        access_mode=as_str(spec.get("accessMode")),
        migratable=bool(spec.get("migratable", False)),
        encrypted=bool(spec.get("encrypted", False)),
        image=as_str(spec.get("image")),
        state=as_str(status.get("state")),
        robustness=as_str(status.get("robustness")),
        last_backup=as_str(status.get("lastBackup")),
        last_backup_at=as_str(status.get("lastBackupAt")),
        actual_size=as_int(status.get("actualSize")),
        conditions=conditions_to_map(status.get("conditions")),
    )


def disk_from_crd(disk_spec: Dict[str, Any], disk_status: Optional[Dict[str, Any]]) -> Disk:
    disk_status = disk_status or {}
    return Disk(
        path=as_str(disk_spec.get("path")),
        allow_scheduling=bool(disk_spec.get("allowScheduling", False)),
        eviction_requested=bool(disk_spec.get("evictionRequested", False)),
        storage_reserved=as_int(disk_spec.get("storageReserved")),
        disk_type=as_str(disk_spec.get("diskType")),
        tags=_strings(disk_spec.get("tags")),
        storage_maximum=as_int(disk_status.get("storageMaximum")),
        storage_available=as_int(disk_status.get("storageAvailable")),
        storage_scheduled=as_int(disk_status.get("storageScheduled")),
        disk_uuid=as_str(disk_status.get("diskUUID")),
        scheduled_replica={
            name: as_int(size) for name, size in (disk_status.get("scheduledReplica") or {}).items()
        },
        conditions=conditions_to_map(disk_status.get("conditions")),
    )


def node_from_crd(obj: Dict[str, Any]) -> Node:
    meta, spec, status = _metadata(obj), _spec(obj), _status(obj)
    disk_statuses = status.get("diskStatus") or {}
    disks = {
        disk_id: disk_from_crd(disk_spec, disk_statuses.get(disk_id))
        for disk_id, disk_spec in (spec.get("disks") or {}).items()
        if isinstance(disk_spec, dict)
    }
    return Node(
        name=meta["name"],
        namespace=meta.get("namespace"),
        created=as_str(meta.get("creationTimestamp")),
        allow_scheduling=bool(spec.get("allowScheduling", False)),
        eviction_requested=bool(spec.get("evictionRequested", False)),
        tags=_strings(spec.get("tags")),
        address=as_str(status.get("address")),
        region=as_str(status.get("region")),
        zone=as_str(status.get("zone")),
        conditions=conditions_to_map(status.get("conditions")),
        disks=disks,
    )


def replica_from_crd(obj: Dict[str, Any]) -> Replica:
    meta, spec, status = _metadata(obj), _spec(obj), _status(obj)
    volume_name = as_str(spec.get("volumeName")) or (meta.get("labels") or {}).get(VOLUME_LABEL, "")
    return Replica(
        name=meta["name"],
        volume_name=volume_name,
        volume_size=as_str(spec.get("volumeSize")),
        node_id=as_str(spec.get("nodeID")),
        disk_id=as_str(spec.get("diskID")),
        disk_path=as_str(spec.get("diskPath")),
        data_path=as_str(spec.get("dataDirectoryName")),
        failed_at=as_str(spec.get("failedAt")),
        data_engine=as_str(spec.get("dataEngine")),
        image=as_str(spec.get("image")),
        instance_manager=as_str(status.get("instanceManagerName")),
        current_state=as_str(status.get("currentState")),
        ip=as_str(status.get("ip")),
        port=as_int(status.get("port")),
        running=bool(status.get("started", False)),
        storage_ip=as_str(status.get("storageIP")),
        current_image=as_str(status.get("currentImage")),
    )


def snapshot_from_crd(obj: Dict[str, Any]) -> Snapshot:
    meta, spec, status = _metadata(obj), _spec(obj), _status(obj)
    children = status.get("children") or {}
    if isinstance(children, dict):
        children = [name for name, present in children.items() if present]
    return Snapshot(
        name=meta["name"],
        volume_name=as_str(spec.get("volume")) or (meta.get("labels") or {}).get(VOLUME_LABEL, ""),
        parent=as_str(status.get("parent")),
        children=_strings(children),
        created=as_str(status.get("creationTime") or meta.get("creationTimestamp")),
        size=as_str(status.get("size")),
        user_created=bool(status.get("userCreated", False)),
        removed=bool(status.get("markRemoved", False)),
        ready_to_use=bool(status.get("readyToUse", False)),
        labels=status.get("labels") or spec.get("labels") or {},
    )


def backup_from_crd(obj: Dict[str, Any]) -> Backup:
    meta, spec, status = _metadata(obj), _spec(obj), _status(obj)
    return Backup(
        name=meta["name"],
        state=as_str(status.get("state")),
        progress=as_int(status.get("progress")),
        error=as_str(status.get("error")),
        url=as_str(status.get("url")),
        snapshot_name=as_str(status.get("snapshotName") or spec.get("snapshotName")),
        snapshot_created=as_str(status.get("snapshotCreatedAt")),
        created=as_str(status.get("backupCreatedAt") or meta.get("creationTimestamp")),
        size=as_str(status.get("size")),
        labels=status.get("labels") or spec.get("labels") or {},
        volume_name=as_str(status.get("volumeName")) or (meta.get("labels") or {}).get(BACKUP_VOLUME_LABEL, ""),
        volume_size=as_str(status.get("volumeSize")),
        volume_created=as_str(status.get("volumeCreated")),
    )


def backup_target_from_crd(obj: Dict[str, Any]) -> BackupTarget:
    meta, spec, status = _metadata(obj), _spec(obj), _status(obj)
    message = ""
    for condition in conditions_to_map(status.get("conditions")).values():
        if condition.message:
            message = condition.message
            break
    return BackupTarget(
        name=meta.get("name", "default"),
        backup_target_url=as_str(spec.get("backupTargetURL")),
        credential_secret=as_str(spec.get("credentialSecret")),
        available=bool(status.get("available", False)),
        message=message,
    )


def setting_from_crd(obj: Dict[str, Any]) -> Setting:
    # Settings keep their value at the top level, not under spec
    return Setting(name=_metadata(obj)["name"], value=as_str(obj.get("value")))


def engine_image_from_crd(obj: Dict[str, Any]) -> EngineImage:
    meta, spec, status = _metadata(obj), _spec(obj), _status(obj)
    return EngineImage(
        name=meta["name"],
        image=as_str(spec.get("image")),
        created=as_str(meta.get("creationTimestamp")),
        state=as_str(status.get("state")),
        ref_count=as_int(status.get("refCount")),
        node_deployment_map={
            node: bool(deployed) for node, deployed in (status.get("nodeDeploymentMap") or {}).items()
        },
        conditions=conditions_to_map(status.get("conditions")),
    )


def _timestamp(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return as_str(value)


def event_from_k8s(event: Any) -> Event:
    """Convert a ``V1Event`` (or ``CoreV1Event``) into an ``Event``."""
    involved = event.involved_object
    return Event(
        type=event.type or "",
        object=f"{involved.kind}/{involved.name}",
        reason=event.reason or "",
        message=(event.message or "").strip(),
        first_timestamp=_timestamp(event.first_timestamp or event.metadata.creation_timestamp),
        last_timestamp=_timestamp(event.last_timestamp or event.first_timestamp),
        count=event.count or 1,
    )


def pv_to_mapping(pv: Any) -> Optional[PVMapping]:
    """Map a ``V1PersistentVolume`` to its Longhorn volume.

    Returns:
        The mapping, or None if the PV is not provisioned by Longhorn
    """
    csi = pv.spec.csi if pv.spec else None
    if csi is None or csi.driver != LONGHORN_CSI_DRIVER:
        return None
    claim = pv.spec.claim_ref
    return PVMapping(
        pv=pv.metadata.name,
        volume=csi.volume_handle,
        pvc=claim.name if claim else None,
        namespace=claim.namespace if claim else None,
    )
