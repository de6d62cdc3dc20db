"""Backend selection: build a Longhorn client from a config context."""

import logging
from typing import Dict, Iterator, List, Optional, Protocol

from lhcli.core.config import AUTH_KUBECONFIG, AUTH_NONE, AUTH_TOKEN, DEFAULT_NAMESPACE, Config, Context
from lhcli.core.crd_client import LonghornCRDClient
from lhcli.core.exceptions import ConfigError
from lhcli.core.http_client import LonghornHTTPClient
from lhcli.core.k8s_client import K8sClientManager
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
)

logger = logging.getLogger(__name__)


class LonghornBackend(Protocol):
    """Operations every Longhorn backend provides."""

    namespace: str

    # Volumes
    def list_volumes(self) -> List[Volume]: ...
    def get_volume(self, name: str) -> Volume: ...
    def create_volume(self, volume: VolumeCreateInput) -> Volume: ...
    def delete_volume(self, name: str) -> None: ...
    def update_volume(self, name: str, update: VolumeUpdateInput) -> Volume: ...
    def attach_volume(self, name: str, attach: VolumeAttachInput) -> Volume: ...
    def detach_volume(self, name: str) -> Volume: ...

    # Nodes
    def list_nodes(self) -> List[Node]: ...
    def get_node(self, name: str) -> Node: ...
    def update_node(self, name: str, update: NodeUpdate) -> Node: ...
    def enable_node_scheduling(self, name: str) -> Node: ...
    def disable_node_scheduling(self, name: str) -> Node: ...
    def evict_node(self, name: str) -> Node: ...
    def add_node_tag(self, name: str, tag: str) -> Node: ...
    def remove_node_tag(self, name: str, tag: str) -> Node: ...
    def add_disk(self, node_name: str, disk: DiskUpdate) -> str: ...
    def remove_disk(self, node_name: str, disk_id: str) -> None: ...
    def update_disk(
        self,
        node_name: str,
        disk_id: str,
        tags: Optional[List[str]] = None,
        allow_scheduling: Optional[bool] = None,
        storage_reserved: Optional[int] = None,
    ) -> Node: ...
    def enable_disk_scheduling(self, node_name: str, disk_id: str) -> Node: ...
    def disable_disk_scheduling(self, node_name: str, disk_id: str) -> Node: ...

    # Replicas
    def list_replicas(self) -> List[Replica]: ...
    def get_replica(self, name: str) -> Replica: ...
    def delete_replica(self, name: str) -> None: ...

    # Snapshots
    def list_snapshots(self, volume_name: str) -> List[Snapshot]: ...
    def create_snapshot(self, volume_name: str, snapshot: SnapshotCreateInput) -> Snapshot: ...
    def delete_snapshot(self, volume_name: str, name: str) -> None: ...

    # Backups
    def list_backups(self, volume_name: Optional[str] = None) -> List[Backup]: ...
    def get_backup(self, name: str, volume_name: Optional[str] = None) -> Backup: ...
    def create_backup(self, volume_name: str, backup: BackupCreateInput) -> Backup: ...
    def delete_backup(self, name: str, volume_name: Optional[str] = None) -> None: ...
    def get_backup_target(self) -> BackupTarget: ...
    def set_backup_target(self, url: str, credential_secret: str = "") -> BackupTarget: ...

    # Settings
    def list_settings(self) -> Dict[str, Setting]: ...
    def get_setting(self, name: str) -> Setting: ...
    def update_setting(self, name: str, value: str) -> Setting: ...

    # Engine images
    def list_engine_images(self) -> List[EngineImage]: ...
    def get_engine_image(self, name: str) -> EngineImage: ...
    def delete_engine_image(self, name: str) -> None: ...

    # Kubernetes
    def list_events(
        self,
        resource: Optional[str] = None,
        name: Optional[str] = None,
        event_type: Optional[str] = None,
    ) -> List[Event]: ...
    def watch_events(
        self,
        resource: Optional[str] = None,
        name: Optional[str] = None,
        event_type: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
    ) -> Iterator[Event]: ...
    def list_pv_mappings(self, pv_name: Optional[str] = None) -> List[PVMapping]: ...


def resolve_namespace(context: Context, namespace: Optional[str] = None) -> str:
    """Pick the namespace: explicit flag, then the context, then ``longhorn-system``."""
    return namespace or context.namespace or DEFAULT_NAMESPACE


def build_kube_manager(config: Config, context_name: Optional[str] = None) -> K8sClientManager:
    """Create a Kubernetes client manager for a kubeconfig context.

    Raises:
        ConfigError: If the context does not use kubeconfig auth, or the
            kubeconfig cannot be loaded
    """
    context = config.get_context(context_name)
    if context.auth.type != AUTH_KUBECONFIG:
        raise ConfigError(
            f"context {context.name} uses {context.auth.type or AUTH_NONE} auth; "
            "this command requires kubeconfig auth"
        )
    return K8sClientManager(kubeconfig_path=context.auth.path, context=context.auth.context)


def build_client(
    config: Config,
    context_name: Optional[str] = None,
    namespace: Optional[str] = None,
) -> LonghornBackend:
    """Create the backend for a context.

    Args:
        config: Loaded config
        context_name: Context to use (defaults to the current context)
        namespace: Namespace override

    Returns:
        A CRD backend for kubeconfig auth, otherwise a REST backend

    Raises:
        ConfigError: If the context is missing or its auth type is unknown
    """
    context = config.get_context(context_name)
    ns = resolve_namespace(context, namespace)
    auth_type = context.auth.type or AUTH_NONE

    if auth_type == AUTH_KUBECONFIG:
        logger.debug("Using CRD backend for context %s (namespace %s)", context.name, ns)
        manager = build_kube_manager(config, context.name)
        return LonghornCRDClient(
            manager.get_custom_objects_api(),
            core_api=manager.get_core_v1_api(),
            namespace=ns,
        )

    if auth_type in (AUTH_TOKEN, AUTH_NONE):
        if auth_type == AUTH_TOKEN and not context.auth.token:
            raise ConfigError(f"context {context.name} uses token auth but has no token")
        logger.debug("Using REST backend %s for context %s (namespace %s)", context.endpoint, context.name, ns)
        return LonghornHTTPClient(
            endpoint=context.endpoint or "",
            namespace=ns,
            token=context.auth.token if auth_type == AUTH_TOKEN else None,
            timeout=config.defaults.timeout_seconds(),
            insecure=context.insecure,
        )

    raise ConfigError(f"unsupported auth type: {auth_type}")
