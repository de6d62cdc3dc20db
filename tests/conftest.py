"""Shared fixtures: an in-memory backend and a fake Kubernetes custom objects API."""

import copy
from typing import Any, Dict, List, Optional

import pytest
from click.testing import CliRunner
from kubernetes.client.rest import ApiException

from lhcli.cli import main
from lhcli.commands.common import CLIContext
from lhcli.core.config import Auth, Config, Context, Defaults
from lhcli.core.exceptions import NotFoundError, UnsupportedOperationError
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

GiB = 1024 ** 3


class FakeBackend:
    """In-memory stand-in for the REST and CRD backends."""

    def __init__(self) -> None:
        self.namespace = "longhorn-system"
        self.calls: List[tuple] = []
        self.volumes: Dict[str, Volume] = {}
        self.nodes: Dict[str, Node] = {}
        self.replicas: Dict[str, Replica] = {}
        self.snapshots: Dict[str, List[Snapshot]] = {}
        self.backups: Dict[str, Backup] = {}
        self.backup_target = BackupTarget(backup_target_url="s3://backups@us-east-1/", available=True)
        self.settings: Dict[str, Setting] = {}
        self.engine_images: List[EngineImage] = []
        self.events: List[Event] = []
        self.new_events: List[Event] = []
        self.pv_mappings: List[PVMapping] = []
        self.fail: Dict[str, Exception] = {}

    def _record(self, op: str, *args: Any) -> None:
        self.calls.append((op,) + args)
        if op in self.fail:
            raise self.fail[op]

    # Volumes

    def list_volumes(self) -> List[Volume]:
        self._record("list_volumes")
        return list(self.volumes.values())

    def get_volume(self, name):
        self._record("get_volume", name)
        if name not in self.volumes:
            raise NotFoundError("volume", name)
        return self.volumes[name]

    def create_volume(self, volume):
        self._record("create_volume", volume)
        created = Volume(
            name=volume.name,
            size=str(volume.size),
            number_of_replicas=volume.number_of_replicas,
            frontend=volume.frontend,
            access_mode=volume.access_mode,
            labels=volume.labels,
        )
        self.volumes[volume.name] = created
        return created

    def delete_volume(self, name):
        self._record("delete_volume", name)
        self.volumes.pop(name, None)

    def update_volume(self, name, update):
        self._record("update_volume", name, update)
        return self.get_volume(name)

    def attach_volume(self, name, attach):
        self._record("attach_volume", name, attach)
        return self.get_volume(name)

    def detach_volume(self, name):
        self._record("detach_volume", name)
        return self.get_volume(name)

    # Nodes

    def list_nodes(self):
        self._record("list_nodes")
        return list(self.nodes.values())

    def get_node(self, name):
        self._record("get_node", name)
        if name not in self.nodes:
            raise NotFoundError("node", name)
        return self.nodes[name]

    def update_node(self, name, update):
        self._record("update_node", name, update)
        return self.get_node(name)

    def enable_node_scheduling(self, name):
        self._record("enable_node_scheduling", name)
        return self.get_node(name)

    def disable_node_scheduling(self, name):
        self._record("disable_node_scheduling", name)
        return self.get_node(name)

    def evict_node(self, name):
        self._record("evict_node", name)
        return self.get_node(name)

    def add_node_tag(self, name, tag):
        self._record("add_node_tag", name, tag)
        return self.get_node(name)

    def remove_node_tag(self, name, tag):
        self._record("remove_node_tag", name, tag)
        return self.get_node(name)

    def add_disk(self, node_name, disk):
        self._record("add_disk", node_name, disk)
        return "disk-" + disk.path.lstrip("/").replace("/", "-")

    def remove_disk(self, node_name, disk_id):
        self._record("remove_disk", node_name, disk_id)

    def update_disk(self, node_name, disk_id, tags=None, allow_scheduling=None, storage_reserved=None):
        self._record("update_disk", node_name, disk_id, tags, allow_scheduling, storage_reserved)
        return self.get_node(node_name)

    def enable_disk_scheduling(self, node_name, disk_id):
        return self.update_disk(node_name, disk_id, allow_scheduling=True)

    def disable_disk_scheduling(self, node_name, disk_id):
        return self.update_disk(node_name, disk_id, allow_scheduling=False)

    # Replicas

    def list_replicas(self):
        self._record("list_replicas")
        return list(self.replicas.values())

    def get_replica(self, name):
        self._record("get_replica", name)
        if name not in self.replicas:
            raise NotFoundError("replica", name)
        return self.replicas[name]

    def delete_replica(self, name):
        self._record("delete_replica", name)
        self.replicas.pop(name, None)

    # Snapshots

    def list_snapshots(self, volume_name):
        self._record("list_snapshots", volume_name)
        return self.snapshots.get(volume_name, [])

    def create_snapshot(self, volume_name, snapshot):
        self._record("create_snapshot", volume_name, snapshot)
        created = Snapshot(name=snapshot.name, volume_name=volume_name, user_created=True, labels=snapshot.labels)
        self.snapshots.setdefault(volume_name, []).append(created)
        return created

    def delete_snapshot(self, volume_name, name):
        self._record("delete_snapshot", volume_name, name)

    # Backups

    def list_backups(self, volume_name=None):
        self._record("list_backups", volume_name)
        return [b for b in self.backups.values() if not volume_name or b.volume_name == volume_name]

    def get_backup(self, name, volume_name=None):
        self._record("get_backup", name, volume_name)
        if name not in self.backups:
            raise NotFoundError("backup", name)
        return self.backups[name]

    def create_backup(self, volume_name, backup):
        self._record("create_backup", volume_name, backup)
        return Backup(name="", state="InProgress", snapshot_name=backup.snapshot_name, volume_name=volume_name)

    def delete_backup(self, name, volume_name=None):
        self._record("delete_backup", name, volume_name)

    def get_backup_target(self):
        self._record("get_backup_target")
        return self.backup_target

    def set_backup_target(self, url, credential_secret=""):
        self._record("set_backup_target", url, credential_secret)
        self.backup_target = BackupTarget(backup_target_url=url, credential_secret=credential_secret)
        return self.backup_target

    # Settings

    def list_settings(self):
        self._record("list_settings")
        return dict(self.settings)

    def get_setting(self, name):
        self._record("get_setting", name)
        if name not in self.settings:
            raise NotFoundError("setting", name)
        return self.settings[name]

    def update_setting(self, name, value):
        self._record("update_setting", name, value)
        self.settings[name] = Setting(name=name, value=value)
        return self.settings[name]

    # Engine images

    def list_engine_images(self):
        self._record("list_engine_images")
        return list(self.engine_images)

    def get_engine_image(self, name):
        self._record("get_engine_image", name)
        for image in self.engine_images:
            if image.name == name:
                return image
        raise NotFoundError("engine image", name)

    def delete_engine_image(self, name):
        self._record("delete_engine_image", name)

    # Kubernetes

    def list_events(self, resource=None, name=None, event_type=None):
        self._record("list_events", resource, name, event_type)
        return list(self.events)

    def watch_events(self, resource=None, name=None, event_type=None, timeout_seconds=None):
        self._record("watch_events", resource, name, event_type)
        return iter(self.events + self.new_events)

    def list_pv_mappings(self, pv_name=None):
        self._record("list_pv_mappings", pv_name)
        if self.pv_mappings is None:
            raise UnsupportedOperationError("persistent volumes require access to the Kubernetes core API")
        return [m for m in self.pv_mappings if not pv_name or m.pv == pv_name]


def ready(status: str = "True") -> Dict[str, Condition]:
    return {"Ready": Condition(type="Ready", status=status)}


@pytest.fixture
def backend() -> FakeBackend:
    """A backend with two volumes, two nodes and three replicas."""
    fake = FakeBackend()
    fake.volumes = {
        "pvc-data": Volume(
            name="pvc-data",
            size=str(10 * GiB),
            number_of_replicas=3,
            state="attached",
            robustness="healthy",
            frontend="blockdev",
            access_mode="rwo",
            created="2024-01-01T00:00:00Z",
            labels={"app": "db"},
        ),
        "pvc-logs": Volume(
            name="pvc-logs",
            size=str(2 * GiB),
            number_of_replicas=2,
            state="detached",
            robustness="",
            frontend="blockdev",
            access_mode="rwx",
        ),
    }
    fake.nodes = {
        "worker-1": Node(
            name="worker-1",
            allow_scheduling=True,
            conditions=ready(),
            region="eu",
            zone="eu-1a",
            tags=["ssd"],
            disks={
                "disk-1": Disk(
                    path="/var/lib/longhorn",
                    allow_scheduling=True,
                    storage_maximum=100 * GiB,
                    storage_available=60 * GiB,
                    scheduled_replica={"pvc-data-r-1": 10 * GiB},
                ),
            },
        ),
        "worker-2": Node(name="worker-2", allow_scheduling=False, conditions=ready("False")),
    }
    fake.replicas = {
        "pvc-data-r-1": Replica(
            name="pvc-data-r-1",
            volume_name="pvc-data",
            node_id="worker-1",
            disk_id="disk-1",
            disk_path="/var/lib/longhorn",
            volume_size=str(10 * GiB),
            current_state="running",
            running=True,
            ip="10.0.0.5",
        ),
        "pvc-data-r-2": Replica(
            name="pvc-data-r-2",
            volume_name="pvc-data",
            node_id="worker-2",
            mode="RW",
        ),
        "pvc-logs-r-1": Replica(name="pvc-logs-r-1", volume_name="pvc-logs", node_id="worker-1"),
    }
    fake.settings = {
        "current-longhorn-version": Setting(name="current-longhorn-version", value="v1.6.0"),
        "default-engine-image": Setting(name="default-engine-image", value="longhornio/longhorn-engine:v1.6.0"),
    }
    fake.engine_images = [
        EngineImage(name="ei-1", image="longhornio/longhorn-engine:v1.6.0", default=True),
        EngineImage(name="ei-0", image="longhornio/longhorn-engine:v1.5.3"),
    ]
    return fake


@pytest.fixture
def config() -> Config:
    return Config(
        contexts=[
            Context(name="prod", endpoint="http://longhorn.example.com", auth=Auth(type="token", token="s3cr3t")),
            Context(name="lab", namespace="storage", auth=Auth(type="kubeconfig", path="/tmp/kubeconfig")),
        ],
        current_context="prod",
        defaults=Defaults(),
    )


@pytest.fixture
def invoke(backend: FakeBackend, config: Config):
    """Run the CLI against the fake backend."""

    def _invoke(*args: str, input: Optional[str] = None):
        runner = CliRunner()
        return runner.invoke(main, list(args), obj=CLIContext(config=config, client=backend), input=input)

    return _invoke


class FakeCustomObjectsApi:
    """Enough of ``CustomObjectsApi`` to exercise the CRD backend."""

    def __init__(self, objects: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> None:
        self.objects: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self.errors: Dict[str, ApiException] = {}
        for plural, items in (objects or {}).items():
            for item in items:
                self.objects.setdefault(plural, {})[item["metadata"]["name"]] = copy.deepcopy(item)

    def _check(self, op: str, plural: str) -> None:
        error = self.errors.get(f"{op}:{plural}")
        if error is not None:
            raise error

    def list_namespaced_custom_object(self, group, version, namespace, plural, label_selector=None):
        self.calls.append(("list", plural, label_selector))
        self._check("list", plural)
        items = list(self.objects.get(plural, {}).values())
        if label_selector:
            key, _, value = label_selector.partition("=")
            items = [i for i in items if (i["metadata"].get("labels") or {}).get(key) == value]
        return {"items": copy.deepcopy(items)}

    def get_namespaced_custom_object(self, group, version, namespace, plural, name):
        self.calls.append(("get", plural, name))
        self._check("get", plural)
        try:
            return copy.deepcopy(self.objects[plural][name])
        except KeyError:
            raise ApiException(status=404, reason="Not Found")

    def create_namespaced_custom_object(self, group, version, namespace, plural, body):
        self.calls.append(("create", plural, body))
        self._check("create", plural)
        obj = copy.deepcopy(body)
        meta = obj["metadata"]
        if not meta.get("name"):
            meta["name"] = meta.pop("generateName") + "x7k2p"
        if meta["name"] in self.objects.get(plural, {}):
            raise ApiException(status=409, reason="Conflict")
        meta.setdefault("creationTimestamp", "2024-05-01T12:00:00Z")
        self.objects.setdefault(plural, {})[meta["name"]] = obj
        return copy.deepcopy(obj)

    def replace_namespaced_custom_object(self, group, version, namespace, plural, name, body):
        self.calls.append(("replace", plural, name))
        self._check("replace", plural)
        if name not in self.objects.get(plural, {}):
            raise ApiException(status=404, reason="Not Found")
        self.objects[plural][name] = copy.deepcopy(body)
        return copy.deepcopy(body)

    def delete_namespaced_custom_object(self, group, version, namespace, plural, name):
        self.calls.append(("delete", plural, name))
        self._check("delete", plural)
        if name not in self.objects.get(plural, {}):
            raise ApiException(status=404, reason="Not Found")
        del self.objects[plural][name]
        return {}


@pytest.fixture
def make_custom_api():
    """Factory for a ``FakeCustomObjectsApi`` seeded with objects by plural."""
    return FakeCustomObjectsApi
