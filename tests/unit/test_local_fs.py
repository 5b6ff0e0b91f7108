# tests/unit/test_local_fs.py
import io
import os
import zlib

import pytest

from fsresources.adapters.filesystem.local_fs import LocalFS
from fsresources.domain.errors import InvalidArgumentError
from fsresources.domain.kinds import ResourceKind
from fsresources.domain.models import FilterDirection, FilterPosition, LockMode


@pytest.fixture
def fs():
    return LocalFS()


def _memory(fs, data: bytes = b""):
    h = fs.open_handle("memory://", "w+", {})
    if data:
        fs.write_handle(h, data)
        fs.seek_handle(h, 0, os.SEEK_SET)
    return h


def test_memory_read_line_and_eof(fs):
    h = _memory(fs, b"hello\nworld")
    assert fs.read_line_handle(h) == b"hello\n"
    assert not fs.is_eof_handle(h)
    assert fs.read_handle(h, 100) == b"world"
    assert fs.is_eof_handle(h)
    fs.seek_handle(h, 0, os.SEEK_SET)
    assert not fs.is_eof_handle(h)


def test_read_line_respects_limit(fs):
    h = _memory(fs, b"abcdef\n")
    assert fs.read_line_handle(h, 3) == b"abc"
    assert not fs.is_eof_handle(h)
    assert fs.read_line_handle(h) == b"def\n"


def test_negative_size_reads_everything(fs):
    h = _memory(fs, b"x" * 20000)
    assert fs.read_handle(h, -1) == b"x" * 20000


def test_plain_file_modes(fs, tmp_path):
    p = str(tmp_path / "f.txt")
    h = fs.open_handle(p, "w", {})
    assert fs.write_handle(h, b"abc") == 3
    assert fs.close_handle(h) is True
    assert fs.close_handle(h) is False

    h = fs.open_handle(p, "a+", {})
    fs.write_handle(h, b"def")
    fs.seek_handle(h, 0, os.SEEK_SET)
    assert fs.read_handle(h, 10) == b"abcdef"
    fs.close_handle(h)

    with pytest.raises(FileExistsError):
        fs.open_handle(p, "xb", {})


def test_open_missing_file_for_reading_raises(fs, tmp_path):
    with pytest.raises(FileNotFoundError):
        fs.open_handle(str(tmp_path / "missing"), "r", {})


def test_invalid_mode_and_scheme(fs, tmp_path):
    with pytest.raises(InvalidArgumentError):
        fs.open_handle(str(tmp_path / "f"), "q", {})
    with pytest.raises(InvalidArgumentError):
        fs.open_handle("http://example.com/", "r", {})


def test_file_uri_is_a_plain_path(fs, tmp_path):
    p = tmp_path / "u.txt"
    p.write_bytes(b"uri")
    h = fs.open_handle(f"file://{p}", "r", {})
    assert fs.read_handle(h, 10) == b"uri"
    fs.close_handle(h)


def test_temp_stream(fs):
    h = fs.open_handle("temp://", "w+", {"max_memory": 4})
    fs.write_handle(h, b"spilled to disk")
    fs.seek_handle(h, 0, os.SEEK_SET)
    assert fs.read_handle(h, 100) == b"spilled to disk"
    assert fs.handle_metadata(h)["wrapper_type"] == "temp"
    fs.close_handle(h)


def test_query_type_and_locality(fs):
    assert fs.query_type("memory://") is ResourceKind.FILE
    assert fs.query_type("temp://") is ResourceKind.FILE
    assert fs.query_type("/etc") is None
    assert fs.is_local("memory://")
    assert fs.is_local("/tmp")
    assert not fs.is_local("http://example.com")
    assert fs.exists("memory://")
    with pytest.raises(FileNotFoundError):
        fs.stat_path("memory://")


def test_descriptor_stream_is_not_closed_on_release(fs):
    r, w = os.pipe()
    try:
        assert fs.query_type(f"fd://{r}") is ResourceKind.PIPE
        h = fs.open_handle(f"fd://{r}", "r", {})
        os.write(w, b"data")
        assert fs.read_handle(h, 4) == b"data"
        assert fs.close_handle(h) is True
        os.fstat(r)  # still open
    finally:
        os.close(r)
        os.close(w)


def test_timeout_on_empty_pipe(fs):
    r, w = os.pipe()
    try:
        h = fs.open_handle(f"fd://{r}", "r", {})
        assert fs.set_timeout_handle(h, 0.01) is True
        with pytest.raises(TimeoutError):
            fs.read_handle(h, 1)
        assert fs.handle_metadata(h)["timed_out"] is True
        fs.close_handle(h)
    finally:
        os.close(r)
        os.close(w)


def test_set_timeout_on_memory_reports_false(fs):
    h = _memory(fs)
    assert fs.set_timeout_handle(h, 1.0) is False
    assert fs.handle_metadata(h)["timeout"] == 1.0


def test_read_filter_applies(fs):
    h = _memory(fs, b"abc")
    fs.attach_filter(h, "string.rot13", FilterDirection.READ)
    assert fs.read_handle(h, 3) == b"nop"


def test_prepend_puts_filter_first(fs):
    h = _memory(fs, b"abc")
    fs.attach_filter(h, "string.toupper", FilterDirection.READ)
    fs.attach_filter(h, "convert.base64-encode", FilterDirection.READ, position=FilterPosition.PREPEND)
    # base64 first ("YWJj"), then upper-cased
    assert fs.read_handle(h, 4) == b"YWJJ"


def test_append_order(fs):
    h = _memory(fs, b"abc")
    fs.attach_filter(h, "string.toupper", FilterDirection.READ)
    fs.attach_filter(h, "convert.base64-encode", FilterDirection.READ)
    assert fs.read_handle(h, 4) == b"QUJD"


def test_write_filter_and_flush_on_detach(fs):
    h = _memory(fs)
    ref = fs.attach_filter(h, "convert.base64-encode", FilterDirection.WRITE)
    # partial group is held back, but the whole input counts as written
    assert fs.write_handle(h, b"ab") == 2
    assert h.raw.getvalue() == b""
    assert fs.detach_filter(ref) is True
    assert fs.detach_filter(ref) is False
    assert h.raw.getvalue() == b"YWI="


def test_close_flushes_attached_write_filters(fs, tmp_path):
    p = tmp_path / "z.bin"
    h = fs.open_handle(str(p), "w", {})
    fs.attach_filter(h, "zlib.deflate", FilterDirection.WRITE)
    fs.write_handle(h, b"hello " * 100)
    assert fs.close_handle(h) is True
    assert zlib.decompress(p.read_bytes(), -zlib.MAX_WBITS) == b"hello " * 100


def test_tell_accounts_for_unread_filtered_bytes(fs):
    h = _memory(fs, b"ab\ncd")
    fs.attach_filter(h, "string.toupper", FilterDirection.READ)
    assert fs.read_line_handle(h) == b"AB\n"
    assert fs.tell_handle(h) == 3
    assert fs.handle_metadata(h)["unread_bytes"] == 2
    # writing lands at the logical position, not after the read-ahead
    fs.write_handle(h, b"x")
    assert h.raw.getvalue() == b"ab\nxd"


def test_unknown_filter_name(fs):
    h = _memory(fs)
    with pytest.raises(InvalidArgumentError):
        fs.attach_filter(h, "nope", FilterDirection.READ)


def test_memory_handles_cannot_lock(fs):
    h = _memory(fs)
    assert fs.supports_lock(h) is False
    with pytest.raises(io.UnsupportedOperation):
        fs.lock_handle(h, LockMode.EXCLUSIVE)


def test_lock_conflict_between_handles(fs, tmp_path):
    pytest.importorskip("fcntl")
    p = str(tmp_path / "lock")
    a = fs.open_handle(p, "c+", {})
    b = fs.open_handle(p, "c+", {})
    try:
        assert fs.lock_handle(a, LockMode.EXCLUSIVE) is True
        assert fs.lock_handle(b, LockMode.EXCLUSIVE, blocking=False) is False
        fs.unlock_handle(a)
        assert fs.lock_handle(b, LockMode.SHARED, blocking=False) is True
        assert fs.handle_metadata(b)["locked"] == "shared"
    finally:
        fs.close_handle(a)
        fs.close_handle(b)


def test_directory_handles(fs, tmp_path):
    (tmp_path / "b").write_text("x")
    (tmp_path / "a").mkdir()
    h = fs.open_dir_handle(str(tmp_path))
    names = []
    while True:
        name = fs.read_dir_handle(h)
        if name is None:
            break
        names.append(name)
    assert names == [".", "..", "a", "b"]
    fs.rewind_dir_handle(h)
    assert fs.read_dir_handle(h) == "."
    assert fs.close_dir_handle(h) is True


def test_path_mutation_helpers(fs, tmp_path):
    fifo = str(tmp_path / "p")
    assert fs.make_fifo(fifo) is True
    assert fs.make_fifo(fifo) is False
    assert fs.lstat_path(fifo).kind is ResourceKind.PIPE

    target = tmp_path / "t.txt"
    target.write_text("t")
    link = str(tmp_path / "l")
    assert fs.make_symlink(link, str(target)) is True
    assert fs.read_link(link) == str(target)
    assert fs.lstat_path(link).kind is ResourceKind.LINK
    assert fs.stat_path(link).kind is ResourceKind.FILE

    d = str(tmp_path / "x" / "y")
    assert fs.make_dir(d) is True
    assert fs.make_dir(d) is False
    fs.put_contents(os.path.join(d, "f"), b"12345")
    assert fs.get_contents(os.path.join(d, "f"), 1, 2) == b"23"

    copy = str(tmp_path / "copy")
    os.mkdir(copy)
    assert fs.copy_path(str(tmp_path / "x"), copy) is True
    assert os.path.exists(os.path.join(copy, "y", "f"))

    assert fs.delete_path(str(tmp_path / "x")) is True
    assert not os.path.exists(str(tmp_path / "x"))


def test_touch_creates_and_sets_times(fs, tmp_path):
    p = str(tmp_path / "new")
    assert fs.touch(p, mtime=1_000_000) is True
    assert fs.stat_path(p).mtime == 1_000_000
    assert fs.real_path(p) == os.path.realpath(p)
    assert fs.real_path(str(tmp_path / "missing")) is None


def test_disk_usage(fs, tmp_path):
    total, used, free = fs.disk_usage(str(tmp_path))
    assert total > 0
    assert 0 <= free <= total


def test_seek_restarts_stateful_read_filters(fs):
    h = _memory(fs, b"abcde")
    fs.attach_filter(h, "convert.base64-encode", FilterDirection.READ)
    first = fs.read_handle(h, 4)
    fs.seek_handle(h, 0, os.SEEK_SET)
    assert fs.read_handle(h, 4) == first == b"YWJj"


def test_seek_restarts_inflate_filter(fs):
    h = _memory(fs, zlib.compress(b"payload " * 50)[2:-4])
    fs.attach_filter(h, "zlib.inflate", FilterDirection.READ)
    assert fs.read_handle(h, 7) == b"payload"
    fs.seek_handle(h, 0, os.SEEK_SET)
    assert fs.read_handle(h, 400) == b"payload " * 50


def test_seek_back_to_tell_with_length_preserving_filter(fs):
    h = _memory(fs, b"abc\ndef")
    fs.attach_filter(h, "string.toupper", FilterDirection.READ)
    assert fs.read_line_handle(h) == b"ABC\n"
    fs.seek_handle(h, fs.tell_handle(h), os.SEEK_SET)
    assert fs.read_handle(h, 10) == b"DEF"


def test_tell_never_negative_with_expanding_filter(fs):
    h = _memory(fs, b"abcdef")
    fs.attach_filter(h, "convert.base64-encode", FilterDirection.READ)
    assert fs.read_line_handle(h, 1) == b"Y"
    assert fs.tell_handle(h) == 0
    fs.write_handle(h, b"z")
    assert h.raw.getvalue() == b"zbcdef"
