"""Health checks and diagnostics run against a Longhorn backend."""

import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from lhcli.core.exceptions import LonghornError
from lhcli.core.models import EngineImage
from lhcli.core.size import format_size

logger = logging.getLogger(__name__)

VERSION_SETTING = "current-longhorn-version"
ENGINE_IMAGE_SETTING = "default-engine-image"

# A disk is low on space when less than 1/LOW_SPACE_RATIO of it is free
LOW_SPACE_RATIO = 10


def find_issues(client) -> List[str]:
    """Run every check and return a description of each problem found.

    A listing that fails is itself reported as an issue, so the remaining
    checks still run.
    """
    issues: List[str] = []

    try:
        volumes = client.list_volumes()
    except LonghornError as e:
        issues.append(f"failed to list volumes: {e}")
    else:
        volume_names = {volume.name for volume in volumes}
        try:
            replicas = client.list_replicas()
        except LonghornError as e:
            issues.append(f"failed to list replicas: {e}")
        else:
            for replica in replicas:
                if replica.volume_name not in volume_names:
                    issues.append(f"orphaned replica {replica.name} on node {replica.node_id}")

    try:
        nodes = client.list_nodes()
    except LonghornError as e:
        issues.append(f"failed to list nodes: {e}")
    else:
        for node in nodes:
            if node.status != "Ready":
                issues.append(f"node {node.name} is not ready")
            if not node.allow_scheduling:
                issues.append(f"node {node.name} scheduling disabled")
            for disk_id, disk in node.disks.items():
                if disk.storage_maximum > 0 and disk.storage_available * LOW_SPACE_RATIO < disk.storage_maximum:
                    issues.append(
                        f"low disk space on {node.name}[{disk_id}]: "
                        f"{format_size(disk.storage_available)} free of {format_size(disk.storage_maximum)}"
                    )

    logger.debug("Troubleshoot found %d issue(s)", len(issues))
    return issues


class DiagnosticsReport(BaseModel):
    """Version information about a Longhorn installation."""

    version: Optional[str] = Field(default=None, description="Longhorn version")
    default_engine_image: Optional[str] = Field(default=None, description="Default engine image")
    engine_images: List[EngineImage] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


def collect_diagnostics(client) -> DiagnosticsReport:
    """Gather version settings and engine images.

    Failures become warnings on the report instead of errors.
    """
    report = DiagnosticsReport()

    try:
        report.version = client.get_setting(VERSION_SETTING).value
    except LonghornError as e:
        report.warnings.append(f"failed to get version: {e}")

    try:
        report.default_engine_image = client.get_setting(ENGINE_IMAGE_SETTING).value
    except LonghornError as e:
        report.warnings.append(f"failed to get default engine image: {e}")

    try:
        report.engine_images = client.list_engine_images()
    except LonghornError as e:
        report.warnings.append(f"failed to list engine images: {e}")

    return report
