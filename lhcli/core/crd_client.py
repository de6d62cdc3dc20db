"""Longhorn backend that works directly on the ``longhorn.io`` custom resources."""

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from kubernetes import watch
from kubernetes.client import CoreV1Api, CustomObjectsApi
from kubernetes.client.rest import ApiException
from pydantic import ValidationError as PydanticValidationError

from lhcli.core.config import DEFAULT_NAMESPACE
from lhcli.core.converters import (
    BACKUP_VOLUME_LABEL,
    VOLUME_LABEL,
    backup_from_crd,
    backup_target_from_crd,
    engine_image_from_crd,
    event_from_k8s,
    node_from_crd,
    pv_to_mapping,
    replica_from_crd,
    setting_from_crd,
    snapshot_from_crd,
    volume_from_crd,
)
from lhcli.core.exceptions import (
    APIError,
    NotFoundError,
    UnsupportedOperationError,
    ValidationError,
)
from lhcli.core.models import (
    Backup,
    BackupCreateInput,
    BackupTarget,
    DiskUpdate,
    EngineImage,
    Event,
    Node,
    NodeUpdate,
    PVMapping,
    Replica,
    Setting,
    Snapshot,
    SnapshotCreateInput,
    Volume,
    VolumeAttachInput,
    VolumeCreateInput,
    VolumeUpdateInput,
    disk_id_for_path,
)
from lhcli.core.size import parse_size

logger = logging.getLogger(__name__)

GROUP = "longhorn.io"
VERSION = "v1beta2"
API_VERSION = f"{GROUP}/{VERSION}"

DEFAULT_BACKUP_TARGET = "default"
DEFAULT_ENGINE_IMAGE_SETTING = "default-engine-image"

ATTACHER_TYPE = "longhorn-api"
ATTACH_TICKET_ID = "longhorn-api"

# Event involvedObject kinds accepted by ``--resource``
RESOURCE_KINDS = {
    "volume": "Volume",
    "node": "Node",
    "replica": "Replica",
    "engine": "Engine",
    "snapshot": "Snapshot",
    "backup": "Backup",
    "engineimage": "EngineImage",
}


def event_field_selector(
    resource: Optional[str] = None,
    name: Optional[str] = None,
    event_type: Optional[str] = None,
) -> Optional[str]:
    """Build the field selector used to filter core events."""
    selectors = []
    if resource:
        kind = RESOURCE_KINDS.get(resource.lower(), resource)
        selectors.append(f"involvedObject.kind={kind}")
    if name:
        selectors.append(f"involvedObject.name={name}")
    if event_type:
        selectors.append(f"type={event_type.capitalize()}")
    return ",".join(selectors) or None


def list_pv_mappings(core_api: CoreV1Api, pv_name: Optional[str] = None) -> List[PVMapping]:
    """Map Kubernetes PersistentVolumes provisioned by Longhorn to their volumes.

    Args:
        core_api: CoreV1Api client
        pv_name: Only map this PersistentVolume

    Raises:
        NotFoundError: If ``pv_name`` is given and does not exist
        APIError: If the Kubernetes API call fails
    """
    try:
        if pv_name:
            pvs = [core_api.read_persistent_volume(pv_name)]
        else:
            pvs = core_api.list_persistent_volume().items
    except ApiException as e:
        if e.status == 404 and pv_name:
            raise NotFoundError("persistent volume", pv_name)
        raise APIError(f"failed to list persistent volumes: {e.reason}", status_code=e.status)

    mappings = []
    for pv in pvs:
        mapping = pv_to_mapping(pv)
        if mapping is not None:
            mappings.append(mapping)
    return mappings


class LonghornCRDClient:
    """Longhorn operations implemented on top of ``CustomObjectsApi``.

    Mutations read the current object, change its spec and replace it, so
    fields the CLI does not know about are preserved.
    """

    def __init__(
        self,
        custom_api: CustomObjectsApi,
        core_api: Optional[CoreV1Api] = None,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        self.custom_api = custom_api
        self.core_api = core_api
        self.namespace = namespace or DEFAULT_NAMESPACE

    # Low-level access

    def _call(self, op: str, kind: str, target: Optional[str], fn: Callable[..., Any], **kwargs: Any) -> Any:
        # kwargs go to the API call untouched, including its own "name"
        try:
            return fn(group=GROUP, version=VERSION, namespace=self.namespace, **kwargs)
        except ApiException as e:
            if e.status == 404 and target:
                raise NotFoundError(kind, target)
            what = f"{kind} {target}" if target else kind
            raise APIError(f"failed to {op} {what}: {e.reason}", status_code=e.status)

    def _list(self, plural: str, kind: str, label_selector: Optional[str] = None) -> List[Dict[str, Any]]:
        logger.debug("Listing %s in %s (selector=%s)", plural, self.namespace, label_selector)
        kwargs: Dict[str, Any] = {"plural": plural}
        if label_selector:
            kwargs["label_selector"] = label_selector
        result = self._call("list", kind, None, self.custom_api.list_namespaced_custom_object, **kwargs)
        return result.get("items") or []

    def _get(self, plural: str, kind: str, name: str) -> Dict[str, Any]:
        logger.debug("Getting %s %s in %s", kind, name, self.namespace)
        return self._call("get", kind, name, self.custom_api.get_namespaced_custom_object, plural=plural, name=name)

    def _create(self, plural: str, kind: str, body: Dict[str, Any]) -> Dict[str, Any]:
        name = body["metadata"].get("name") or body["metadata"].get("generateName", "")
        logger.debug("Creating %s %s in %s", kind, name, self.namespace)
        try:
            return self.custom_api.create_namespaced_custom_object(
                group=GROUP, version=VERSION, namespace=self.namespace, plural=plural, body=body
            )
        except ApiException as e:
            raise APIError(f"failed to create {kind} {name}: {e.reason}", status_code=e.status)

    def _replace(self, plural: str, kind: str, name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug("Updating %s %s in %s", kind, name, self.namespace)
        return self._call(
            "update", kind, name, self.custom_api.replace_namespaced_custom_object,
            plural=plural, name=name, body=body,
        )

    def _delete(self, plural: str, kind: str, name: str) -> None:
        logger.debug("Deleting %s %s in %s", kind, name, self.namespace)
        self._call("delete", kind, name, self.custom_api.delete_namespaced_custom_object, plural=plural, name=name)

    def _modify(self, plural: str, kind: str, name: str, mutate: Callable[[Dict[str, Any]], None]) -> Dict[str, Any]:
        obj = self._get(plural, kind, name)
        mutate(obj)
        return self._replace(plural, kind, name, obj)

    @staticmethod
    def _convert_all(items: List[Dict[str, Any]], convert: Callable[[Dict[str, Any]], Any], kind: str) -> List[Any]:
        converted = []
        for item in items:
            try:
                converted.append(convert(item))
            except (KeyError, TypeError, ValueError, PydanticValidationError) as e:
                name = (item.get("metadata") or {}).get("name", "<unknown>")
                logger.debug("Skipping %s %s: failed to convert: %s", kind, name, e)
        return converted

    def _new_object(self, kind: str, name: str, spec: Dict[str, Any], labels: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {"name": name, "namespace": self.namespace}
        if labels:
            metadata["labels"] = dict(labels)
        return {"apiVersion": API_VERSION, "kind": kind, "metadata": metadata, "spec": spec}

    # Volumes

    def list_volumes(self) -> List[Volume]:
        volumes = self._convert_all(self._list("volumes", "volumes"), volume_from_crd, "volume")

        try:
            replicas = self.list_replicas()
        except APIError as e:
            logger.debug("Failed to list replicas, returning volumes without them: %s", e)
            return volumes

        by_volume: Dict[str, List[Replica]] = {}
        for replica in replicas:
            if replica.volume_name:
                by_volume.setdefault(replica.volume_name, []).append(replica)
        for volume in volumes:
            volume.replicas = by_volume.get(volume.name, [])
        return volumes

    def get_volume(self, name: str) -> Volume:
        volume = volume_from_crd(self._get("volumes", "volume", name))
        try:
            items = self._list("replicas", "replicas", label_selector=f"{VOLUME_LABEL}={name}")
        except APIError as e:
            logger.debug("Failed to list replicas for volume %s: %s", name, e)
            return volume
        volume.replicas = self._convert_all(items, replica_from_crd, "replica")
        return volume

    def create_volume(self, volume: VolumeCreateInput) -> Volume:
        try:
            size_bytes = parse_size(volume.size)
        except ValueError as e:
            raise ValidationError(f"invalid size: {e}")

        spec: Dict[str, Any] = {
            "size": str(size_bytes),
            "numberOfReplicas": volume.number_of_replicas,
        }
        if volume.frontend:
            spec["frontend"] = volume.frontend
        if volume.data_locality:
            spec["dataLocality"] = volume.data_locality
        if volume.access_mode:
            spec["accessMode"] = volume.access_mode
        if volume.migratable:
            spec["migratable"] = True
        if volume.encrypted:
            spec["encrypted"] = True
        if volume.node_selector:
            spec["nodeSelector"] = list(volume.node_selector)
        if volume.disk_selector:
            spec["diskSelector"] = list(volume.disk_selector)

        body = self._new_object("Volume", volume.name, spec, labels=volume.labels)
        return volume_from_crd(self._create("volumes", "volume", body))

    def delete_volume(self, name: str) -> None:
        self._delete("volumes", "volume", name)

    def update_volume(self, name: str, update: VolumeUpdateInput) -> Volume:
        def mutate(obj: Dict[str, Any]) -> None:
            spec = obj.setdefault("spec", {})
            if update.number_of_replicas is not None:
                spec["numberOfReplicas"] = update.number_of_replicas
            if update.data_locality:
                spec["dataLocality"] = update.data_locality
            if update.access_mode:
                spec["accessMode"] = update.access_mode
            if update.labels:
                labels = obj.setdefault("metadata", {}).get("labels") or {}
                labels.update(update.labels)
                obj["metadata"]["labels"] = labels

        return volume_from_crd(self._modify("volumes", "volume", name, mutate))

    def attach_volume(self, name: str, attach: VolumeAttachInput) -> Volume:
        self._get("volumes", "volume", name)

        def mutate(obj: Dict[str, Any]) -> None:
            tickets = obj.setdefault("spec", {}).get("attachmentTickets") or {}
            tickets[ATTACH_TICKET_ID] = {
                "id": ATTACH_TICKET_ID,
                "type": ATTACHER_TYPE,
                "nodeID": attach.host_id,
                "parameters": {"disableFrontend": "true" if attach.disable_frontend else "false"},
                "generation": 0,
            }
            obj["spec"]["attachmentTickets"] = tickets

        self._modify("volumeattachments", "volume attachment", name, mutate)
        return self.get_volume(name)

    def detach_volume(self, name: str) -> Volume:
        def mutate(obj: Dict[str, Any]) -> None:
            tickets = obj.setdefault("spec", {}).get("attachmentTickets") or {}
            obj["spec"]["attachmentTickets"] = {
                ticket_id: ticket
                for ticket_id, ticket in tickets.items()
                if (ticket or {}).get("type") != ATTACHER_TYPE
            }

        self._modify("volumeattachments", "volume attachment", name, mutate)
        return self.get_volume(name)

    # Nodes

    def list_nodes(self) -> List[Node]:
        return self._convert_all(self._list("nodes", "nodes"), node_from_crd, "node")

    def get_node(self, name: str) -> Node:
        return node_from_crd(self._get("nodes", "node", name))

    def update_node(self, name: str, update: NodeUpdate) -> Node:
        def mutate(obj: Dict[str, Any]) -> None:
            spec = obj.setdefault("spec", {})
            if update.allow_scheduling is not None:
                spec["allowScheduling"] = update.allow_scheduling
            if update.eviction_requested is not None:
                spec["evictionRequested"] = update.eviction_requested
            if update.tags is not None:
                spec["tags"] = list(update.tags)

        return node_from_crd(self._modify("nodes", "node", name, mutate))

    def enable_node_scheduling(self, name: str) -> Node:
        return self.update_node(name, NodeUpdate(allow_scheduling=True))

    def disable_node_scheduling(self, name: str) -> Node:
        return self.update_node(name, NodeUpdate(allow_scheduling=False))

    def evict_node(self, name: str) -> Node:
        return self.update_node(name, NodeUpdate(eviction_requested=True))

    def add_node_tag(self, name: str, tag: str) -> Node:
        node = self.get_node(name)
        if tag in node.tags:
            return node
        return self.update_node(name, NodeUpdate(tags=node.tags + [tag]))

    def remove_node_tag(self, name: str, tag: str) -> Node:
        node = self.get_node(name)
        return self.update_node(name, NodeUpdate(tags=[t for t in node.tags if t != tag]))

    def _modify_disks(self, node_name: str, mutate: Callable[[Dict[str, Any]], None]) -> Node:
        def mutate_node(obj: Dict[str, Any]) -> None:
            spec = obj.setdefault("spec", {})
            disks = spec.get("disks") or {}
            mutate(disks)
            spec["disks"] = disks

        return node_from_crd(self._modify("nodes", "node", node_name, mutate_node))

    def add_disk(self, node_name: str, disk: DiskUpdate) -> str:
        """Add a disk to a node.

        Returns:
            The generated disk id

        Raises:
            ValidationError: If a disk with the same path already exists
        """
        disk_id = disk_id_for_path(disk.path)

        def mutate(disks: Dict[str, Any]) -> None:
            if disk_id in disks:
                raise ValidationError(f"disk with path {disk.path} already exists")
            entry: Dict[str, Any] = {
                "path": disk.path,
                "allowScheduling": True if disk.allow_scheduling is None else disk.allow_scheduling,
                "evictionRequested": False,
                "storageReserved": disk.storage_reserved or 0,
            }
            if disk.tags:
                entry["tags"] = list(disk.tags)
            disks[disk_id] = entry

        self._modify_disks(node_name, mutate)
        return disk_id

    def remove_disk(self, node_name: str, disk_id: str) -> None:
        def mutate(disks: Dict[str, Any]) -> None:
            if disk_id not in disks:
                raise NotFoundError("disk", f"{disk_id} on node {node_name}")
            del disks[disk_id]

        self._modify_disks(node_name, mutate)

    def update_disk(
        self,
        node_name: str,
        disk_id: str,
        tags: Optional[List[str]] = None,
        allow_scheduling: Optional[bool] = None,
        storage_reserved: Optional[int] = None,
    ) -> Node:
        """Change a disk's tags, scheduling or reserved storage.

        An empty ``tags`` list removes all tags; ``None`` leaves them alone.
        """
        def mutate(disks: Dict[str, Any]) -> None:
            disk = disks.get(disk_id)
            if not isinstance(disk, dict):
                raise NotFoundError("disk", f"{disk_id} on node {node_name}")
            if tags is not None:
                if tags:
                    disk["tags"] = list(tags)
                else:
                    disk.pop("tags", None)
            if allow_scheduling is not None:
                disk["allowScheduling"] = allow_scheduling
            if storage_reserved is not None:
                disk["storageReserved"] = storage_reserved

        return self._modify_disks(node_name, mutate)

    def enable_disk_scheduling(self, node_name: str, disk_id: str) -> Node:
        return self.update_disk(node_name, disk_id, allow_scheduling=True)

    def disable_disk_scheduling(self, node_name: str, disk_id: str) -> Node:
        return self.update_disk(node_name, disk_id, allow_scheduling=False)

    # Replicas

    def list_replicas(self) -> List[Replica]:
        return self._convert_all(self._list("replicas", "replicas"), replica_from_crd, "replica")

    def get_replica(self, name: str) -> Replica:
        return replica_from_crd(self._get("replicas", "replica", name))

    def delete_replica(self, name: str) -> None:
        self._delete("replicas", "replica", name)

    # Snapshots

    def list_snapshots(self, volume_name: str) -> List[Snapshot]:
        items = self._list("snapshots", "snapshots", label_selector=f"{VOLUME_LABEL}={volume_name}")
        return self._convert_all(items, snapshot_from_crd, "snapshot")

    def create_snapshot(self, volume_name: str, snapshot: SnapshotCreateInput) -> Snapshot:
        self._get("volumes", "volume", volume_name)
        spec: Dict[str, Any] = {"volume": volume_name, "createSnapshot": True}
        if snapshot.labels:
            spec["labels"] = dict(snapshot.labels)
        body = self._new_object("Snapshot", snapshot.name, spec, labels={VOLUME_LABEL: volume_name})
        if not snapshot.name:
            del body["metadata"]["name"]
            body["metadata"]["generateName"] = f"{volume_name}-"
        return snapshot_from_crd(self._create("snapshots", "snapshot", body))

    def delete_snapshot(self, volume_name: str, name: str) -> None:
        self._delete("snapshots", "snapshot", name)

    # Backups

    def list_backups(self, volume_name: Optional[str] = None) -> List[Backup]:
        selector = f"{BACKUP_VOLUME_LABEL}={volume_name}" if volume_name else None
        return self._convert_all(self._list("backups", "backups", label_selector=selector), backup_from_crd, "backup")

    def get_backup(self, name: str, volume_name: Optional[str] = None) -> Backup:
        return backup_from_crd(self._get("backups", "backup", name))

    def create_backup(self, volume_name: str, backup: BackupCreateInput) -> Backup:
        spec: Dict[str, Any] = {"snapshotName": backup.snapshot_name}
        if backup.labels:
            spec["labels"] = dict(backup.labels)
        body = {
            "apiVersion": API_VERSION,
            "kind": "Backup",
            "metadata": {
                "generateName": "backup-",
                "namespace": self.namespace,
                "labels": {BACKUP_VOLUME_LABEL: volume_name},
            },
            "spec": spec,
        }
        return backup_from_crd(self._create("backups", "backup", body))

    def delete_backup(self, name: str, volume_name: Optional[str] = None) -> None:
        self._delete("backups", "backup", name)

    def get_backup_target(self) -> BackupTarget:
        return backup_target_from_crd(self._get("backuptargets", "backup target", DEFAULT_BACKUP_TARGET))

    def set_backup_target(self, url: str, credential_secret: str = "") -> BackupTarget:
        def mutate(obj: Dict[str, Any]) -> None:
            spec = obj.setdefault("spec", {})
            spec["backupTargetURL"] = url
            spec["credentialSecret"] = credential_secret

        return backup_target_from_crd(
            self._modify("backuptargets", "backup target", DEFAULT_BACKUP_TARGET, mutate)
        )

    # Settings

    def list_settings(self) -> Dict[str, Setting]:
        settings = self._convert_all(self._list("settings", "settings"), setting_from_crd, "setting")
        return {setting.name: setting for setting in settings}

    def get_setting(self, name: str) -> Setting:
        return setting_from_crd(self._get("settings", "setting", name))

    def update_setting(self, name: str, value: str) -> Setting:
        def mutate(obj: Dict[str, Any]) -> None:
            obj["value"] = value

        return setting_from_crd(self._modify("settings", "setting", name, mutate))

    # Engine images

    def _default_engine_image(self) -> str:
        try:
            return self.get_setting(DEFAULT_ENGINE_IMAGE_SETTING).value
        except APIError as e:
            logger.debug("Could not read %s: %s", DEFAULT_ENGINE_IMAGE_SETTING, e)
            return ""

    def list_engine_images(self) -> List[EngineImage]:
        images = self._convert_all(self._list("engineimages", "engine images"), engine_image_from_crd, "engine image")
        default = self._default_engine_image()
        for image in images:
            image.default = bool(default) and image.image == default
        return images

    def get_engine_image(self, name: str) -> EngineImage:
        image = engine_image_from_crd(self._get("engineimages", "engine image", name))
        default = self._default_engine_image()
        image.default = bool(default) and image.image == default
        return image

    def delete_engine_image(self, name: str) -> None:
        self._delete("engineimages", "engine image", name)

    # Kubernetes events and persistent volumes

    def _require_core_api(self, what: str) -> CoreV1Api:
        if self.core_api is None:
            raise UnsupportedOperationError(f"{what} require access to the Kubernetes core API")
        return self.core_api

    def _fetch_events(self, selector: Optional[str]) -> Tuple[List[Event], str]:
        core_api = self._require_core_api("events")
        try:
            result = core_api.list_namespaced_event(self.namespace, field_selector=selector)
        except ApiException as e:
            raise APIError(f"failed to list events: {e.reason}", status_code=e.status)
        events = sorted((event_from_k8s(item) for item in result.items), key=lambda event: event.last_timestamp)
        return events, result.metadata.resource_version

    def list_events(
        self,
        resource: Optional[str] = None,
        name: Optional[str] = None,
        event_type: Optional[str] = None,
    ) -> List[Event]:
        events, _ = self._fetch_events(event_field_selector(resource, name, event_type))
        return events

    def watch_events(
        self,
        resource: Optional[str] = None,
        name: Optional[str] = None,
        event_type: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
    ) -> Iterator[Event]:
        """Yield the current events, then stream new ones as they happen.

        The watch starts at the resource version of the initial list, so
        events already yielded are not replayed.
        """
        selector = event_field_selector(resource, name, event_type)
        events, resource_version = self._fetch_events(selector)
        yield from events

        kwargs: Dict[str, Any] = {"field_selector": selector}
        if resource_version:
            kwargs["resource_version"] = resource_version
        if timeout_seconds:
            kwargs["timeout_seconds"] = timeout_seconds
        w = watch.Watch()
        try:
            for item in w.stream(self.core_api.list_namespaced_event, self.namespace, **kwargs):
                if item.get("type") in ("ADDED", "MODIFIED"):
                    yield event_from_k8s(item["object"])
        except ApiException as e:
            raise APIError(f"failed to watch events: {e.reason}", status_code=e.status)
        finally:
            w.stop()

    def list_pv_mappings(self, pv_name: Optional[str] = None) -> List[PVMapping]:
        return list_pv_mappings(self._require_core_api("persistent volumes"), pv_name)
