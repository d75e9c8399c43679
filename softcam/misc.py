"""Timing helpers and inter-process primitives: a named mutex and shared memory."""

from __future__ import annotations

import hashlib
import os
import tempfile
import threading
import time
import weakref
from multiprocessing import shared_memory

from filelock import FileLock


class Timer:
    """Measures elapsed seconds from a start point that can be moved."""

    def __init__(self) -> None:
        self._clock = time.perf_counter()

    def get(self) -> float:
        """Seconds elapsed since the start point."""
        return time.perf_counter() - self._clock

    def rewind(self, delta: float) -> None:
        """Move the start point forward by ``delta`` seconds."""
        self._clock += delta

    def reset(self) -> None:
        """Make the start point now."""
        self._clock = time.perf_counter()


def sleep(seconds: float) -> None:
    """Sleep with millisecond granularity; non-positive values return at once."""
    if seconds <= 0.0:
        return
    delay_msec = round(seconds * 1000.0) or 1
    time.sleep(delay_msec / 1000.0)


def _system_name(name: str, prefix: str) -> str:
    digest = hashlib.sha1(name.encode("utf-8")).hexdigest()[:16]
    return f"{prefix}{digest}"


_mutex_registry: dict[str, tuple[threading.RLock, FileLock]] = {}
_registry_lock = threading.Lock()


class NamedMutex:
    """A recursive mutex shared by every thread and process using the same name."""

    def __init__(self, name: str) -> None:
        self.name = name
        with _registry_lock:
            entry = _mutex_registry.get(name)
            if entry is None:
                path = os.path.join(
                    tempfile.gettempdir(), _system_name(name, "softcam-") + ".lock"
                )
                entry = (threading.RLock(), FileLock(path))
                _mutex_registry[name] = entry
        self._local, self._file = entry

    def lock(self) -> None:
        """Block until the mutex is held by the calling thread."""
        self._local.acquire()
        try:
            self._file.acquire()
        except BaseException:
            self._local.release()
            raise

    def unlock(self) -> None:
        """Release the mutex; raises RuntimeError if the caller does not hold it."""
        self._local.release()
        self._file.release()

    def __enter__(self) -> NamedMutex:
        self.lock()
        return self

    def __exit__(self, *args) -> None:
        self.unlock()


# Segments created by this process; only these are left to the resource tracker.
_owned_segments: set[str] = set()


def _close_segment(segment: shared_memory.SharedMemory, owner: bool) -> None:
    try:
        segment.close()
    except BufferError:
        pass
    if owner:
        _owned_segments.discard(segment.name)
        try:
            segment.unlink()
        except FileNotFoundError:
            pass


class SharedMemory:
    """A named block of memory shared between processes.

    An instance is falsy when it holds no mapping, e.g. after a failed
    create or open, or after release.
    """

    def __init__(self) -> None:
        self._segment: shared_memory.SharedMemory | None = None
        self._size = 0
        self._finalizer: weakref.finalize | None = None

    @classmethod
    def create(cls, name: str, size: int) -> SharedMemory:
        """Create a new block; the result is empty if the name is already in use."""
        shm = cls()
        if size <= 0:
            return shm
        sys_name = _system_name(name, "softcam_")
        try:
            segment = shared_memory.SharedMemory(name=sys_name, create=True, size=size)
        except (OSError, ValueError):
            return shm
        _owned_segments.add(segment.name)
        shm._attach(segment, size, owner=True)
        return shm

    @classmethod
    def open(cls, name: str) -> SharedMemory:
        """Attach to an existing block; the result is empty if there is none."""
        shm = cls()
        sys_name = _system_name(name, "softcam_")
        try:
            segment = shared_memory.SharedMemory(name=sys_name)
        except (OSError, ValueError):
            return shm
        if os.name == "posix" and segment.name not in _owned_segments:
            # Attaching must not make this process responsible for removing it.
            from multiprocessing import resource_tracker

            resource_tracker.unregister("/" + segment.name, "shared_memory")
        shm._attach(segment, segment.size, owner=False)
        return shm

    def _attach(self, segment: shared_memory.SharedMemory, size: int, owner: bool) -> None:
        self._segment = segment
        self._size = size
        self._finalizer = weakref.finalize(self, _close_segment, segment, owner)

    @property
    def size(self) -> int:
        """Usable size in bytes, 0 when empty."""
        return self._size

    @property
    def buf(self) -> memoryview | None:
        """The mapped memory, or None when empty."""
        return self._segment.buf if self._segment is not None else None

    def release(self) -> None:
        """Drop the mapping; the creator's release also removes the name."""
        if self._finalizer is not None:
            self._finalizer()
        self._finalizer = None
        self._segment = None
        self._size = 0

    def __bool__(self) -> bool:
        return self._segment is not None