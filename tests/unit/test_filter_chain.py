# tests/unit/test_filter_chain.py
import pytest

from fsresources.adapters.filesystem.local_fs import LocalFS
from fsresources.domain.errors import PreconditionViolation
from fsresources.domain.models import FilterDirection, FilterPosition
from fsresources.services.filter_chain import FilterChain
from fsresources.services.lifecycle import CloseResult, HandleLifecycle


class RecordingFS(LocalFS):
    """LocalFS that logs filter attach/detach calls."""

    def __init__(self):
        super().__init__()
        self.log = []
        self.fail_detach = set()

    def attach_filter(self, handle, name, direction, params=None, position=FilterPosition.APPEND):
        self.log.append(("attach", name, position))
        return super().attach_filter(handle, name, direction, params, position)

    def detach_filter(self, ref):
        if ref.name in self.fail_detach:
            self.fail_detach.discard(ref.name)
            raise OSError("detach failed")
        if ref.attached:
            self.log.append(("detach", ref.name))
        return super().detach_filter(ref)


def _chain():
    fs = RecordingFS()
    lc = HandleLifecycle(
        lambda mode, options: fs.open_handle("memory://", "w+", {}),
        fs.close_handle,
        describe=lambda: "memory://",
    )
    return fs, lc, FilterChain(fs, lc)


def test_mutations_require_open_handle():
    fs, lc, chain = _chain()
    with pytest.raises(PreconditionViolation) as info:
        chain.append("string.rot13")
    assert info.value.operation == "append_filter"
    with pytest.raises(PreconditionViolation):
        chain.prepend("string.rot13")
    with pytest.raises(PreconditionViolation):
        chain.remove("string.rot13")
    assert fs.log == []


def test_append_prepend_and_lookup():
    fs, lc, chain = _chain()
    lc.open()
    a = chain.append("string.rot13")
    b = chain.prepend("string.toupper", FilterDirection.WRITE)
    assert a.position is FilterPosition.APPEND
    assert b.position is FilterPosition.PREPEND
    assert b.direction is FilterDirection.WRITE
    assert chain.get("string.rot13") is a
    assert chain.get("missing") is None
    assert chain.names() == ["string.rot13", "string.toupper"]
    assert len(chain) == 2
    assert "string.toupper" in chain
    assert [e.name for e in chain] == ["string.rot13", "string.toupper"]


def test_duplicate_name_detaches_then_replaces():
    fs, lc, chain = _chain()
    handle = lc.open()
    first = chain.append("string.rot13")
    second = chain.append("string.rot13", params={"x": 1})
    assert len(chain) == 1
    assert chain.get("string.rot13") is second
    assert first.ref.attached is False
    assert [s.attachment for s in handle.read_slots] == [second.ref]
    assert fs.log == [
        ("attach", "string.rot13", FilterPosition.APPEND),
        ("detach", "string.rot13"),
        ("attach", "string.rot13", FilterPosition.APPEND),
    ]


def test_remove():
    fs, lc, chain = _chain()
    lc.open()
    chain.append("string.rot13")
    assert chain.remove("nope") is False
    assert chain.remove("string.rot13") is True
    assert len(chain) == 0
    assert fs.log[-1] == ("detach", "string.rot13")


def test_close_tears_down_in_reverse_order():
    fs, lc, chain = _chain()
    lc.open()
    chain.append("string.rot13")
    chain.append("string.toupper")
    chain.append("string.tolower")
    fs.log.clear()
    assert lc.close() is CloseResult.CLOSED
    assert fs.log == [
        ("detach", "string.tolower"),
        ("detach", "string.toupper"),
        ("detach", "string.rot13"),
    ]
    assert len(chain) == 0


def test_teardown_continues_after_failed_detach():
    fs, lc, chain = _chain()
    lc.open()
    chain.append("string.rot13")
    chain.append("string.toupper")
    fs.fail_detach.add("string.toupper")
    with pytest.raises(OSError, match="detach failed"):
        lc.close()
    assert ("detach", "string.rot13") in fs.log
    assert len(chain) == 0
    assert not lc.is_open
