# tests/unit/test_filters.py
import base64
import zlib

import pytest

from fsresources.adapters.filters.builtin import (
    Base64DecodeFilter,
    Base64EncodeFilter,
    DeflateFilter,
    FilterRegistry,
    InflateFilter,
)
from fsresources.domain.errors import InvalidArgumentError


def test_builtin_names_registered():
    names = FilterRegistry().names()
    for expected in (
        "string.rot13",
        "string.toupper",
        "string.tolower",
        "convert.base64-encode",
        "convert.base64-decode",
        "zlib.deflate",
        "zlib.inflate",
    ):
        assert expected in names


def test_unknown_filter_raises():
    with pytest.raises(InvalidArgumentError, match="Unable to locate filter"):
        FilterRegistry().create("no.such.filter")


def test_register_refuses_duplicates_and_unregister():
    reg = FilterRegistry()
    assert reg.register("custom.noop", lambda params: reg.create("string.tolower")) is True
    assert reg.register("custom.noop", lambda params: reg.create("string.tolower")) is False
    assert "custom.noop" in reg
    reg.unregister("custom.noop")
    assert "custom.noop" not in reg


def test_string_filters():
    reg = FilterRegistry()
    assert reg.create("string.rot13").filter(b"Hello") == b"Uryyb"
    assert reg.create("string.toupper").filter(b"Hello") == b"HELLO"
    assert reg.create("string.tolower").filter(b"Hello") == b"hello"


def test_base64_encode_across_chunks():
    f = Base64EncodeFilter()
    out = f.filter(b"ab") + f.filter(b"cd") + f.flush()
    assert out == base64.b64encode(b"abcd")


def test_base64_decode_across_chunks():
    encoded = base64.b64encode(b"hello world")
    f = Base64DecodeFilter()
    out = f.filter(encoded[:5]) + f.filter(encoded[5:]) + f.flush()
    assert out == b"hello world"


def test_deflate_then_inflate():
    d = DeflateFilter(9)
    packed = d.filter(b"x" * 1000) + d.flush()
    assert zlib.decompress(packed, -zlib.MAX_WBITS) == b"x" * 1000
    i = InflateFilter()
    assert i.filter(packed) + i.flush() == b"x" * 1000


@pytest.mark.parametrize("params", [10, "high", {"level": -2}])
def test_deflate_rejects_bad_level(params):
    with pytest.raises(InvalidArgumentError):
        DeflateFilter(params)
