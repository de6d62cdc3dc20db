"""Tests for size and duration parsing."""

import pytest

from lhcli.core.size import format_size, format_size_in_gi, parse_duration, parse_size, to_quantity

KiB = 1024
GiB = 1024 ** 3


@pytest.mark.parametrize(
    "text, expected",
    [
        ("10Gi", 10 * GiB),
        ("10G", 10 * GiB),
        ("10GiB", 10 * GiB),
        ("512Mi", 512 * 1024 ** 2),
        ("1T", 1024 ** 4),
        ("1.5Gi", int(1.5 * GiB)),
        ("2048", 2048),
        ("0", 0),
        ("", 0),
        ("  4ki ", 4 * KiB),
    ],
)
def test_parse_size(text, expected) -> None:
    """Test that every unit is binary and a bare number is bytes."""
    assert parse_size(text) == expected


@pytest.mark.parametrize("text", ["ten", "10Xi", "-1Gi", "Gi", "10i", "10IB", "10GiBB"])
def test_parse_size_invalid(text) -> None:
    """Test that malformed sizes are rejected."""
    with pytest.raises(ValueError):
        parse_size(text)


def test_format_size() -> None:
    """Test human readable sizes."""
    assert format_size(512) == "512 B"
    assert format_size(KiB) == "1.0 KiB"
    assert format_size(10 * GiB) == "10.0 GiB"
    assert format_size(1536 * 1024 ** 2) == "1.5 GiB"
    assert format_size_in_gi(GiB // 2) == "0.50Gi"


def test_to_quantity_is_exact() -> None:
    """Test that quantities use the largest exact unit."""
    assert to_quantity(0) == "0"
    assert to_quantity(10 * GiB) == "10Gi"
    assert to_quantity(1536 * 1024 ** 2) == "1536Mi"
    assert to_quantity(1000) == "1000"
    for size in (0, 1, 4096, 10 * GiB, 3 * 1024 ** 4 + KiB):
        assert parse_size(to_quantity(size)) == size


def test_parse_duration() -> None:
    """Test duration units."""
    assert parse_duration("5s") == 5
    assert parse_duration("2m") == 120
    assert parse_duration("1h") == 3600
    assert parse_duration("250ms") == 0.25
    assert parse_duration("30") == 30
    with pytest.raises(ValueError):
        parse_duration("soon")
