"""Pydantic models for Longhorn resources.

Field names follow Python conventions; aliases follow the camelCase names used
by the Longhorn manager API and the ``longhorn.io`` CRDs, and are what JSON and
YAML output use.
"""

from typing import Annotated, Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class LonghornModel(BaseModel):
    """Base model for all Longhorn data-transfer objects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # The manager sends null for empty lists and maps
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data

    def to_dict(self) -> Dict[str, Any]:
        """Dump the model with API field names, ready for JSON or YAML."""
        return self.model_dump(mode="json", by_alias=True)


# Shared

class Condition(LonghornModel):
    """A resource condition."""

    type: str = ""
    status: str = ""
    last_probe_time: str = ""
    last_transition_time: str = ""
    reason: str = ""
    message: str = ""


def _conditions_by_type(value: Any) -> Any:
    # CRDs carry conditions as a list, the manager API as a map
    if isinstance(value, list):
        return {c["type"]: c for c in value if isinstance(c, dict) and c.get("type")}
    return value


def _child_names(value: Any) -> Any:
    if isinstance(value, dict):
        return [name for name, present in value.items() if present]
    return value


Conditions = Annotated[Dict[str, Condition], BeforeValidator(_conditions_by_type)]
Children = Annotated[List[str], BeforeValidator(_child_names)]


# Node Models

class Disk(LonghornModel):
    """A disk attached to a Longhorn node."""

    path: str = ""
    allow_scheduling: bool = False
    eviction_requested: bool = False
    storage_maximum: int = 0
    storage_available: int = 0
    storage_reserved: int = 0
    storage_scheduled: int = 0
    disk_uuid: str = Field(default="", alias="diskUUID")
    disk_type: str = ""
    conditions: Conditions = Field(default_factory=dict)
    scheduled_replica: Dict[str, int] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)


class Node(LonghornModel):
    """A Longhorn node."""

    name: str
    namespace: Optional[str] = None
    address: str = ""
    allow_scheduling: bool = False
    eviction_requested: bool = False
    conditions: Conditions = Field(default_factory=dict)
    disks: Dict[str, Disk] = Field(default_factory=dict)
    region: str = ""
    zone: str = ""
    tags: List[str] = Field(default_factory=list)
    created: str = ""

    @property
    def status(self) -> str:
        """Readiness derived from the ``Ready`` condition."""
        ready = self.conditions.get("Ready")
        if ready is None:
            return "Unknown"
        return "Ready" if ready.status == "True" else "NotReady"

    @property
    def scheduled_replica_count(self) -> int:
        """Number of replicas scheduled across all disks."""
        return sum(len(disk.scheduled_replica) for disk in self.disks.values())


class NodeUpdate(LonghornModel):
    """Node fields that can be changed."""

    allow_scheduling: Optional[bool] = None
    eviction_requested: Optional[bool] = None
    tags: Optional[List[str]] = None


class DiskUpdate(LonghornModel):
    """Disk fields used when adding or changing a disk."""

    path: str
    allow_scheduling: Optional[bool] = None
    eviction_requested: Optional[bool] = None
    storage_reserved: Optional[int] = None
    tags: Optional[List[str]] = None


def disk_id_for_path(path: str) -> str:
    """Derive a disk id from its mount path, e.g. ``/mnt/disk1`` -> ``disk-mnt-disk1``."""
    return "disk-" + path.lstrip("/").replace("/", "-")


# Volume Models

class Replica(LonghornModel):
    """A volume replica."""

    name: str
    volume_name: str = ""
    volume_size: str = ""
    node_id: str = Field(default="", alias="nodeID")
    disk_id: str = Field(default="", alias="diskID")
    disk_path: str = ""
    data_path: str = ""
    mode: str = ""
    current_state: str = ""
    failed_at: str = ""
    running: bool = False
    spec_size: str = ""
    actual_size: str = ""
    ip: str = ""
    port: int = 0
    instance_manager: str = ""
    image: str = ""
    current_image: str = ""
    storage_ip: str = Field(default="", alias="storageIP")
    storage_port: int = 0
    data_engine: str = ""

    @property
    def state(self) -> str:
        """Current state from the CRD, falling back to the API mode."""
        return self.current_state or self.mode or "unknown"

    @property
    def size(self) -> str:
        """Replica size from the CRD, falling back to the API spec size."""
        return self.volume_size or self.spec_size


class Volume(LonghornModel):
    """A Longhorn volume."""

    name: str
    namespace: Optional[str] = None
    size: str = ""
    actual_size: int = 0
    number_of_replicas: int = 0
    state: str = ""
    robustness: str = ""
    frontend: str = ""
    data_locality: str = ""
    access_mode: str = ""
    migratable: bool = False
    encrypted: bool = False
    image: str = ""
    last_backup: str = ""
    last_backup_at: str = ""
    created: str = ""
    conditions: Conditions = Field(default_factory=dict)
    replicas: List[Replica] = Field(default_factory=list)
    labels: Dict[str, str] = Field(default_factory=dict)

    @property
    def display_state(self) -> str:
        """State to show, derived from conditions when the state is empty."""
        if self.state:
            return self.state
        scheduled = self.conditions.get("Scheduled")
        if scheduled is not None and scheduled.status == "True":
            return "Attached"
        return "Detached"


class VolumeCreateInput(LonghornModel):
    """Parameters for creating a volume."""

    name: str
    size: str
    number_of_replicas: int = 3
    frontend: str = "blockdev"
    data_locality: str = ""
    access_mode: str = "rwo"
    migratable: bool = False
    encrypted: bool = False
    node_selector: List[str] = Field(default_factory=list)
    disk_selector: List[str] = Field(default_factory=list)
    labels: Dict[str, str] = Field(default_factory=dict)


class VolumeUpdateInput(LonghornModel):
    """Volume fields that can be changed."""

    number_of_replicas: Optional[int] = None
    data_locality: Optional[str] = None
    access_mode: Optional[str] = None
    labels: Optional[Dict[str, str]] = None


class VolumeAttachInput(LonghornModel):
    """Parameters for attaching a volume to a node."""

    host_id: str
    disable_frontend: bool = False
    attached_by: str = ""


# Snapshot and Backup Models

class Snapshot(LonghornModel):
    """A volume snapshot."""

    name: str
    volume_name: str = ""
    parent: str = ""
    children: Children = Field(default_factory=list)
    created: str = ""
    size: str = ""
    user_created: bool = Field(
        default=False,
        alias="userCreated",
        validation_alias=AliasChoices("userCreated", "usercreated", "user_created"),
    )
    removed: bool = False
    ready_to_use: bool = False
    labels: Dict[str, str] = Field(default_factory=dict)


class SnapshotCreateInput(LonghornModel):
    """Parameters for creating a snapshot."""

    name: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)


class Backup(LonghornModel):
    """A volume backup stored on the backup target."""

    name: str
    state: str = ""
    progress: int = 0
    error: str = ""
    url: str = ""
    snapshot_name: str = ""
    snapshot_created: str = ""
    created: str = ""
    size: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)
    volume_name: str = ""
    volume_size: str = ""
    volume_created: str = ""


class BackupCreateInput(LonghornModel):
    """Parameters for creating a backup."""

    snapshot_name: str
    labels: Dict[str, str] = Field(default_factory=dict)


class BackupTarget(LonghornModel):
    """The backup target configuration."""

    name: str = "default"
    backup_target_url: str = Field(default="", alias="backupTargetURL")
    credential_secret: str = ""
    available: bool = False
    message: str = ""


# Setting and Engine Image Models

class SettingDefinition(LonghornModel):
    """Setting metadata."""

    description: str = ""
    type: str = ""
    required: bool = False
    read_only: bool = False
    default: str = ""
    options: List[str] = Field(default_factory=list)


class Setting(LonghornModel):
    """A Longhorn setting."""

    name: str
    value: str = ""
    default: Optional[str] = None
    definition: SettingDefinition = Field(default_factory=SettingDefinition)


class EngineImage(LonghornModel):
    """A Longhorn engine image."""

    name: str
    image: str = ""
    default: bool = False
    state: str = ""
    ref_count: int = 0
    created: str = ""
    node_deployment_map: Dict[str, bool] = Field(default_factory=dict)
    conditions: Conditions = Field(default_factory=dict)


# Kubernetes Models

class Event(LonghornModel):
    """A Kubernetes event about a Longhorn resource."""

    type: str = ""
    object: str = ""
    reason: str = ""
    message: str = ""
    first_timestamp: str = ""
    last_timestamp: str = ""
    count: int = 0


class PVMapping(LonghornModel):
    """Mapping from a Kubernetes PersistentVolume to a Longhorn volume."""

    pv: str
    volume: str
    pvc: Optional[str] = None
    namespace: Optional[str] = None


class ErrorResponse(LonghornModel):
    """Error body returned by the Longhorn manager."""

    type: str = ""
    status: int = 0
    code: str = ""
    message: str = ""
