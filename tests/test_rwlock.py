"""Tests for tiercache.rwlock.ReadWriteLock."""

from __future__ import annotations

import threading
import time

import pytest

from tiercache.rwlock import ReadWriteLock


def test_readers_share() -> None:
    lock = ReadWriteLock()
    inside = threading.Barrier(3, timeout=5)

    def reader() -> None:
        with lock.shared():
            inside.wait()

    threads = [threading.Thread(target=reader) for _ in range(2)]
    for t in threads:
        t.start()
    inside.wait()
    for t in threads:
        t.join(timeout=5)


def test_writer_excludes_readers() -> None:
    lock = ReadWriteLock()
    events: list[str] = []
    lock.acquire_exclusive()

    def reader() -> None:
        with lock.shared():
            events.append("read")

    t = threading.Thread(target=reader)
    t.start()
    time.sleep(0.05)
    events.append("write-done")
    lock.release_exclusive()
    t.join(timeout=5)
    assert events == ["write-done", "read"]


def test_waiting_writer_blocks_new_readers() -> None:
    lock = ReadWriteLock()
    events: list[str] = []
    lock.acquire_shared()

    def writer() -> None:
        with lock.exclusive():
            events.append("write")

    def late_reader() -> None:
        with lock.shared():
            events.append("late-read")

    w = threading.Thread(target=writer)
    w.start()
    time.sleep(0.05)
    r = threading.Thread(target=late_reader)
    r.start()
    time.sleep(0.05)
    assert events == []
    lock.release_shared()
    w.join(timeout=5)
    r.join(timeout=5)
    assert events == ["write", "late-read"]


def test_unbalanced_release_raises() -> None:
    lock = ReadWriteLock()
    with pytest.raises(RuntimeError):
        lock.release_shared()
    with pytest.raises(RuntimeError):
        lock.release_exclusive()
