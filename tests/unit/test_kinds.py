# tests/unit/test_kinds.py
import stat

import pytest

from fsresources.domain.kinds import ResourceKind, classify


@pytest.mark.parametrize(
    "bits, expected",
    [
        (stat.S_IFSOCK, ResourceKind.SOCKET),
        (stat.S_IFLNK, ResourceKind.LINK),
        (stat.S_IFREG, ResourceKind.FILE),
        (stat.S_IFBLK, ResourceKind.BLOCK_DEVICE),
        (stat.S_IFDIR, ResourceKind.DIRECTORY),
        (stat.S_IFCHR, ResourceKind.CHAR_DEVICE),
        (stat.S_IFIFO, ResourceKind.PIPE),
    ],
)
def test_classify_known_formats(bits, expected):
    assert classify(bits) is expected


def test_classify_ignores_permission_bits():
    assert classify(stat.S_IFREG | 0o644) is ResourceKind.FILE
    assert classify(stat.S_IFDIR | 0o4755) is ResourceKind.DIRECTORY


@pytest.mark.parametrize("bits", [0, 0o644, 0o110000, 0o170000, -1])
def test_classify_is_total(bits):
    # unrecognised format patterns fall through to UNKNOWN rather than raising
    assert classify(bits) is ResourceKind.UNKNOWN


def test_kind_values_are_strings():
    assert ResourceKind.PIPE.value == "fifo"
    assert ResourceKind("dir") is ResourceKind.DIRECTORY
