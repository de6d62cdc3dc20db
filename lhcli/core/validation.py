"""Validation of user input before it is sent to Longhorn."""

import re
from typing import Dict, Iterable

from lhcli.core.exceptions import ValidationError

VOLUME_NAME_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
SIZE_PATTERN = re.compile(r"^(\d+)([KMGT]i?)$")
LABEL_PATTERN = re.compile(r"^[a-zA-Z0-9]([-_.a-zA-Z0-9]*[a-zA-Z0-9])?$")

FRONTENDS = ["blockdev", "iscsi"]
ACCESS_MODES = ["rwo", "rwx"]
DATA_LOCALITIES = ["disabled", "best-effort", "strict-local"]

MAX_REPLICAS = 10


def validate_volume_name(name: str) -> None:
    """Validate a volume name against Kubernetes naming rules."""
    if not name:
        raise ValidationError("volume name cannot be empty")
    if len(name) > 253:
        raise ValidationError("volume name must be no more than 253 characters")
    if not VOLUME_NAME_PATTERN.match(name):
        raise ValidationError(
            "volume name must consist of lower case alphanumeric characters or '-', "
            "and must start and end with an alphanumeric character"
        )


def validate_size(size: str) -> None:
    """Validate a size string such as ``10Gi`` or ``1Ti``."""
    if not size:
        raise ValidationError("size cannot be empty")
    match = SIZE_PATTERN.match(size)
    if not match:
        raise ValidationError(
            f"invalid size format: {size} (expected format: 10Gi, 1Ti, etc.)"
        )
    if int(match.group(1)) <= 0:
        raise ValidationError("size must be positive")


def validate_replica_count(count: int) -> None:
    """Validate the number of replicas."""
    if count < 1 or count > MAX_REPLICAS:
        raise ValidationError(f"replica count must be between 1 and {MAX_REPLICAS}")


def _validate_choice(kind: str, value: str, choices: Iterable[str]) -> None:
    choices = list(choices)
    if value not in choices:
        raise ValidationError(
            f"invalid {kind}: {value} (valid types: {', '.join(choices)})"
        )


def validate_frontend(frontend: str) -> None:
    """Validate the volume frontend type."""
    _validate_choice("frontend type", frontend, FRONTENDS)


def validate_access_mode(access_mode: str) -> None:
    """Validate the volume access mode."""
    _validate_choice("access mode", access_mode, ACCESS_MODES)


def validate_data_locality(data_locality: str) -> None:
    """Validate the volume data locality."""
    _validate_choice("data locality", data_locality, DATA_LOCALITIES)


def validate_label_key(key: str) -> None:
    """Validate a label key."""
    if not key:
        raise ValidationError("label key cannot be empty")
    if len(key) > 63:
        raise ValidationError("label key must be no more than 63 characters")
    if not LABEL_PATTERN.match(key):
        raise ValidationError(f"invalid label key: {key}")


def validate_label_value(value: str) -> None:
    """Validate a label value. Empty values are allowed."""
    if len(value) > 63:
        raise ValidationError("label value must be no more than 63 characters")
    if value and not LABEL_PATTERN.match(value):
        raise ValidationError(f"invalid label value: {value}")


def validate_labels(labels: Dict[str, str]) -> None:
    """Validate every key and value of a label map."""
    for key, value in labels.items():
        validate_label_key(key)
        validate_label_value(value)


def parse_labels(labels: Iterable[str]) -> Dict[str, str]:
    """Parse ``key=value`` strings into a label map.

    Args:
        labels: Strings of the form ``key=value``

    Returns:
        Dict of labels

    Raises:
        ValidationError: If a string has no ``=`` or an empty key
    """
    result: Dict[str, str] = {}
    for label in labels:
        key, sep, value = label.partition("=")
        if not sep:
            raise ValidationError(f"invalid label format: {label}")
        key = key.strip()
        if not key:
            raise ValidationError(f"empty label key in: {label}")
        result[key] = value.strip()
    return result
