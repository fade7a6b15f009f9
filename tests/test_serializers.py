"""Tests for tiercache.serializers."""

from __future__ import annotations

import pickle
from datetime import datetime, timezone

import pytest

from tiercache.models import DISTANT_FUTURE, Entry, SerializerName
from tiercache.serializers import JsonSerializer, PickleSerializer, get_serializer

WHEN = datetime(2030, 5, 4, 3, 2, 1, tzinfo=timezone.utc)


class TestPickleSerializer:
    def test_preserves_python_types(self) -> None:
        s = PickleSerializer()
        entry = Entry(value={"t": (1, 2), "s": {3}, "b": b"\x00"}, expires_at=WHEN)
        assert s.loads(s.dumps(entry)) == entry

    def test_never_expiring_entry(self) -> None:
        s = PickleSerializer()
        assert s.loads(s.dumps(Entry(value=1))).expires_at == DISTANT_FUTURE

    def test_garbage_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            PickleSerializer().loads(b"\x00garbage")

    def test_oversized_frame_length_raises_value_error(self) -> None:
        s = PickleSerializer()
        data = s.dumps(Entry(value="hello", expires_at=WHEN))
        assert data[2:3] == b"\x95"  # FRAME opcode, then an 8-byte length
        damaged = data[:3] + b"\xff" * 8 + data[11:]
        with pytest.raises(ValueError):
            s.loads(damaged)

    @pytest.mark.parametrize("size", [1, 2, 5, 12, 20])
    def test_truncated_record_raises_value_error(self, size: int) -> None:
        s = PickleSerializer()
        data = s.dumps(Entry(value="hello", expires_at=WHEN))
        with pytest.raises(ValueError):
            s.loads(data[:size])

    def test_foreign_pickle_rejected(self) -> None:
        with pytest.raises(ValueError, match="not a cache entry"):
            PickleSerializer().loads(pickle.dumps([1, 2, 3]))


class TestJsonSerializer:
    def test_readable_output(self) -> None:
        data = JsonSerializer().dumps(Entry(value={"name": "Ada"}, expires_at=WHEN))
        assert b'"name":"Ada"' in data
        assert b"2030-05-04T03:02:01" in data

    def test_never_expiring_entry(self) -> None:
        s = JsonSerializer()
        assert s.loads(s.dumps(Entry(value="x"))).expires_at == DISTANT_FUTURE

    def test_invalid_json_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            JsonSerializer().loads(b"{not json")


class TestGetSerializer:
    def test_by_enum(self) -> None:
        assert isinstance(get_serializer(SerializerName.JSON), JsonSerializer)

    def test_by_name(self) -> None:
        assert isinstance(get_serializer("pickle"), PickleSerializer)

    def test_unknown(self) -> None:
        with pytest.raises(ValueError):
            get_serializer("yaml")
