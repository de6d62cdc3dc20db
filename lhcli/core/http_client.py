"""Longhorn backend that talks to the Longhorn manager REST API."""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from lhcli.core.config import DEFAULT_NAMESPACE
from lhcli.core.exceptions import (
    APIError,
    ConfigError,
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
    ErrorResponse,
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
from lhcli.settings import settings

logger = logging.getLogger(__name__)

BODY_PREVIEW_LENGTH = 500
DEFAULT_BACKUP_TARGET = "default"


class LonghornHTTPClient:
    """Longhorn operations over the manager's ``/v1`` REST API.

    Every call is a single request with a fixed timeout; failures are
    raised, never retried.
    """

    def __init__(
        self,
        endpoint: str,
        namespace: str = DEFAULT_NAMESPACE,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        insecure: bool = False,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            endpoint: Longhorn manager URL, e.g. ``http://longhorn-frontend``
            namespace: Longhorn namespace, sent as ``X-Namespace``
            token: Bearer token
            timeout: Request timeout in seconds (defaults to ``LHCLI_REQUEST_TIMEOUT``)
            insecure: Skip TLS certificate verification
            transport: Custom transport (used by tests)

        Raises:
            ConfigError: If no endpoint is given
        """
        if not endpoint:
            raise ConfigError("endpoint is required")

        self.endpoint = endpoint.rstrip("/")
        self.base_url = f"{self.endpoint}/v1"
        self.namespace = namespace or DEFAULT_NAMESPACE

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-Namespace": self.namespace,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout or settings.request_timeout),
            verify=not insecure,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    # Low-level access

    def _request(
        self,
        method: str,
        path: str,
        what: str,
        *,
        params: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
        kind: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Any:
        logger.debug("Request: %s %s%s params=%s", method, self.base_url, path, params)
        try:
            response = self._client.request(method, path, params=params, json=body)
        except httpx.HTTPError as e:
            raise APIError(f"failed to {what}: request failed: {e}")

        logger.debug("Response status: %s", response.status_code)
        preview = response.text
        if len(preview) > BODY_PREVIEW_LENGTH:
            preview = preview[:BODY_PREVIEW_LENGTH] + "..."
        logger.debug("Response body preview: %s", preview)

        if response.status_code == 404 and kind and name:
            raise NotFoundError(kind, name)
        if not response.is_success:
            raise APIError(f"failed to {what}: {_error_message(response)}", status_code=response.status_code)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise APIError(f"failed to {what}: failed to decode response: {e}")

    def _action(self, path: str, action: str, what: str, body: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Any:
        return self._request("POST", path, what, params={"action": action}, body=body or {}, **kwargs)

    @staticmethod
    def _items(payload: Any) -> List[Dict[str, Any]]:
        if isinstance(payload, dict):
            return payload.get("data") or []
        return payload or []

    @staticmethod
    def _parse_all(model: Any, items: List[Dict[str, Any]], kind: str) -> List[Any]:
        parsed = []
        for item in items:
            try:
                parsed.append(model.model_validate(item))
            except PydanticValidationError as e:
                logger.debug("Skipping %s %s: %s", kind, item.get("name", "<unknown>"), e)
        return parsed

    # Volumes

    def list_volumes(self) -> List[Volume]:
        payload = self._request("GET", "/volumes", "list volumes")
        return self._parse_all(Volume, self._items(payload), "volume")

    def get_volume(self, name: str) -> Volume:
        payload = self._request("GET", f"/volumes/{name}", f"get volume {name}", kind="volume", name=name)
        return Volume.model_validate(payload)

    def create_volume(self, volume: VolumeCreateInput) -> Volume:
        try:
            size_bytes = parse_size(volume.size)
        except ValueError as e:
            raise ValidationError(f"invalid size: {e}")
        body = volume.to_dict()
        body["size"] = str(size_bytes)
        payload = self._request("POST", "/volumes", f"create volume {volume.name}", body=body)
        return Volume.model_validate(payload)

    def delete_volume(self, name: str) -> None:
        self._request("DELETE", f"/volumes/{name}", f"delete volume {name}", kind="volume", name=name)

    def update_volume(self, name: str, update: VolumeUpdateInput) -> Volume:
        if update.labels:
            raise UnsupportedOperationError("updating volume labels requires the kubeconfig backend")
        path = f"/volumes/{name}"
        if update.number_of_replicas is not None:
            self._action(path, "updateReplicaCount", f"update volume {name}",
                         {"replicaCount": update.number_of_replicas}, kind="volume", name=name)
        if update.data_locality:
            self._action(path, "updateDataLocality", f"update volume {name}",
                         {"dataLocality": update.data_locality}, kind="volume", name=name)
        if update.access_mode:
            self._action(path, "updateAccessMode", f"update volume {name}",
                         {"accessMode": update.access_mode}, kind="volume", name=name)
        return self.get_volume(name)

    def attach_volume(self, name: str, attach: VolumeAttachInput) -> Volume:
        payload = self._action(f"/volumes/{name}", "attach", f"attach volume {name}",
                               attach.to_dict(), kind="volume", name=name)
        return Volume.model_validate(payload)

    def detach_volume(self, name: str) -> Volume:
        payload = self._action(f"/volumes/{name}", "detach", f"detach volume {name}",
                               {"hostId": "", "forceDetach": False}, kind="volume", name=name)
        return Volume.model_validate(payload)

    # Nodes

    def list_nodes(self) -> List[Node]:
        payload = self._request("GET", "/nodes", "list nodes")
        return self._parse_all(Node, self._items(payload), "node")

    def get_node(self, name: str) -> Node:
        payload = self._request("GET", f"/nodes/{name}", f"get node {name}", kind="node", name=name)
        return Node.model_validate(payload)

    def update_node(self, name: str, update: NodeUpdate) -> Node:
        node = self.get_node(name)
        body = {
            "allowScheduling": node.allow_scheduling if update.allow_scheduling is None else update.allow_scheduling,
            "evictionRequested": node.eviction_requested if update.eviction_requested is None else update.eviction_requested,
            "tags": node.tags if update.tags is None else list(update.tags),
        }
        payload = self._request("PUT", f"/nodes/{name}", f"update node {name}", body=body, kind="node", name=name)
        return Node.model_validate(payload)

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

    def _update_disks(self, node_name: str, disks: Dict[str, Dict[str, Any]]) -> Node:
        payload = self._action(f"/nodes/{node_name}", "diskUpdate", f"update disks on node {node_name}",
                               {"disks": disks}, kind="node", name=node_name)
        return Node.model_validate(payload)

    @staticmethod
    def _disk_map(node: Node) -> Dict[str, Dict[str, Any]]:
        return {
            disk_id: {
                "path": disk.path,
                "allowScheduling": disk.allow_scheduling,
                "evictionRequested": disk.eviction_requested,
                "storageReserved": disk.storage_reserved,
                "tags": list(disk.tags),
                "diskType": disk.disk_type or "filesystem",
            }
            for disk_id, disk in node.disks.items()
        }

    def add_disk(self, node_name: str, disk: DiskUpdate) -> str:
        node = self.get_node(node_name)
        disk_id = disk_id_for_path(disk.path)
        if disk_id in node.disks:
            raise ValidationError(f"disk with path {disk.path} already exists")
        disks = self._disk_map(node)
        disks[disk_id] = {
            "path": disk.path,
            "allowScheduling": True if disk.allow_scheduling is None else disk.allow_scheduling,
            "evictionRequested": False,
            "storageReserved": disk.storage_reserved or 0,
            "tags": list(disk.tags or []),
            "diskType": "filesystem",
        }
        self._update_disks(node_name, disks)
        return disk_id

    def remove_disk(self, node_name: str, disk_id: str) -> None:
        node = self.get_node(node_name)
        if disk_id not in node.disks:
            raise NotFoundError("disk", f"{disk_id} on node {node_name}")
        disks = self._disk_map(node)
        del disks[disk_id]
        self._update_disks(node_name, disks)

    def update_disk(
        self,
        node_name: str,
        disk_id: str,
        tags: Optional[List[str]] = None,
        allow_scheduling: Optional[bool] = None,
        storage_reserved: Optional[int] = None,
    ) -> Node:
        node = self.get_node(node_name)
        if disk_id not in node.disks:
            raise NotFoundError("disk", f"{disk_id} on node {node_name}")
        disks = self._disk_map(node)
        if tags is not None:
            disks[disk_id]["tags"] = list(tags)
        if allow_scheduling is not None:
            disks[disk_id]["allowScheduling"] = allow_scheduling
        if storage_reserved is not None:
            disks[disk_id]["storageReserved"] = storage_reserved
        return self._update_disks(node_name, disks)

    def enable_disk_scheduling(self, node_name: str, disk_id: str) -> Node:
        return self.update_disk(node_name, disk_id, allow_scheduling=True)

    def disable_disk_scheduling(self, node_name: str, disk_id: str) -> Node:
        return self.update_disk(node_name, disk_id, allow_scheduling=False)

    # Replicas

    def list_replicas(self) -> List[Replica]:
        payload = self._request("GET", "/replicas", "list replicas")
        return self._parse_all(Replica, self._items(payload), "replica")

    def get_replica(self, name: str) -> Replica:
        payload = self._request("GET", f"/replicas/{name}", f"get replica {name}", kind="replica", name=name)
        return Replica.model_validate(payload)

    def delete_replica(self, name: str) -> None:
        self._request("DELETE", f"/replicas/{name}", f"delete replica {name}", kind="replica", name=name)

    # Snapshots

    def list_snapshots(self, volume_name: str) -> List[Snapshot]:
        payload = self._action(f"/volumes/{volume_name}", "snapshotList", f"list snapshots of volume {volume_name}",
                               kind="volume", name=volume_name)
        snapshots = self._parse_all(Snapshot, self._items(payload), "snapshot")
        for snapshot in snapshots:
            snapshot.volume_name = snapshot.volume_name or volume_name
        return snapshots

    def create_snapshot(self, volume_name: str, snapshot: SnapshotCreateInput) -> Snapshot:
        payload = self._action(f"/volumes/{volume_name}", "snapshotCreate", f"create snapshot of volume {volume_name}",
                               snapshot.to_dict(), kind="volume", name=volume_name)
        created = Snapshot.model_validate(payload)
        created.volume_name = created.volume_name or volume_name
        return created

    def delete_snapshot(self, volume_name: str, name: str) -> None:
        self._action(f"/volumes/{volume_name}", "snapshotDelete", f"delete snapshot {name}",
                     {"name": name}, kind="volume", name=volume_name)

    # Backups

    def _backup_volume_names(self) -> List[str]:
        payload = self._request("GET", "/backupvolumes", "list backup volumes")
        return [item["name"] for item in self._items(payload) if item.get("name")]

    def _list_volume_backups(self, volume_name: str) -> List[Backup]:
        payload = self._action(f"/backupvolumes/{volume_name}", "backupList", f"list backups of volume {volume_name}",
                               kind="backup volume", name=volume_name)
        backups = self._parse_all(Backup, self._items(payload), "backup")
        for backup in backups:
            backup.volume_name = backup.volume_name or volume_name
        return backups

    def list_backups(self, volume_name: Optional[str] = None) -> List[Backup]:
        if volume_name:
            return self._list_volume_backups(volume_name)
        backups: List[Backup] = []
        for name in self._backup_volume_names():
            backups.extend(self._list_volume_backups(name))
        return backups

    def _find_backup_volume(self, name: str) -> str:
        for backup in self.list_backups():
            if backup.name == name:
                return backup.volume_name
        raise NotFoundError("backup", name)

    def get_backup(self, name: str, volume_name: Optional[str] = None) -> Backup:
        volume_name = volume_name or self._find_backup_volume(name)
        payload = self._action(f"/backupvolumes/{volume_name}", "backupGet", f"get backup {name}",
                               {"name": name}, kind="backup", name=name)
        backup = Backup.model_validate(payload)
        backup.volume_name = backup.volume_name or volume_name
        return backup

    def create_backup(self, volume_name: str, backup: BackupCreateInput) -> Backup:
        body = {"name": backup.snapshot_name, "labels": dict(backup.labels)}
        self._action(f"/volumes/{volume_name}", "snapshotBackup", f"back up volume {volume_name}",
                     body, kind="volume", name=volume_name)
        # The action returns the volume; the backup itself appears asynchronously
        return Backup(
            name="",
            state="InProgress",
            snapshot_name=backup.snapshot_name,
            labels=dict(backup.labels),
            volume_name=volume_name,
        )

    def delete_backup(self, name: str, volume_name: Optional[str] = None) -> None:
        volume_name = volume_name or self._find_backup_volume(name)
        self._action(f"/backupvolumes/{volume_name}", "backupDelete", f"delete backup {name}",
                     {"name": name}, kind="backup", name=name)

    def get_backup_target(self) -> BackupTarget:
        payload = self._request("GET", "/backuptargets", "get backup target")
        targets = self._parse_all(BackupTarget, self._items(payload), "backup target")
        for target in targets:
            if target.name == DEFAULT_BACKUP_TARGET:
                return target
        if targets:
            return targets[0]
        raise NotFoundError("backup target", DEFAULT_BACKUP_TARGET)

    def set_backup_target(self, url: str, credential_secret: str = "") -> BackupTarget:
        body = {"backupTargetURL": url, "credentialSecret": credential_secret}
        payload = self._action(f"/backuptargets/{DEFAULT_BACKUP_TARGET}", "backupTargetUpdate",
                               "update backup target", body, kind="backup target", name=DEFAULT_BACKUP_TARGET)
        return BackupTarget.model_validate(payload)

    # Settings

    def list_settings(self) -> Dict[str, Setting]:
        payload = self._request("GET", "/settings", "list settings")
        items = self._parse_all(Setting, self._items(payload), "setting")
        return {setting.name: setting for setting in items}

    def get_setting(self, name: str) -> Setting:
        payload = self._request("GET", f"/settings/{name}", f"get setting {name}", kind="setting", name=name)
        return Setting.model_validate(payload)

    def update_setting(self, name: str, value: str) -> Setting:
        payload = self._request("PUT", f"/settings/{name}", f"update setting {name}",
                                body={"value": value}, kind="setting", name=name)
        return Setting.model_validate(payload)

    # Engine images

    def list_engine_images(self) -> List[EngineImage]:
        payload = self._request("GET", "/engineimages", "list engine images")
        return self._parse_all(EngineImage, self._items(payload), "engine image")

    def get_engine_image(self, name: str) -> EngineImage:
        payload = self._request("GET", f"/engineimages/{name}", f"get engine image {name}",
                                kind="engine image", name=name)
        return EngineImage.model_validate(payload)

    def delete_engine_image(self, name: str) -> None:
        self._request("DELETE", f"/engineimages/{name}", f"delete engine image {name}",
                      kind="engine image", name=name)

    # Kubernetes-only operations

    def list_events(self, resource: Optional[str] = None, name: Optional[str] = None,
                    event_type: Optional[str] = None) -> List[Event]:
        raise UnsupportedOperationError("events are not available over the REST API; use a kubeconfig context")

    def watch_events(self, resource: Optional[str] = None, name: Optional[str] = None,
                     event_type: Optional[str] = None, timeout_seconds: Optional[int] = None):
        raise UnsupportedOperationError("events are not available over the REST API; use a kubeconfig context")

    def list_pv_mappings(self, pv_name: Optional[str] = None) -> List[PVMapping]:
        raise UnsupportedOperationError("persistent volume mapping requires a kubeconfig context")


def _error_message(response: httpx.Response) -> str:
    try:
        error = ErrorResponse.model_validate(response.json())
    except (ValueError, PydanticValidationError):
        error = None
    if error is not None and error.message:
        return error.message
    return f"unexpected status code: {response.status_code}"
