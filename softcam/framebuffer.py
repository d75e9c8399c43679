"""A frame buffer in shared memory, written by a sender and read by receivers."""

from __future__ import annotations

import struct
import weakref
from typing import Callable

from .misc import NamedMutex, SharedMemory, Timer, sleep
from .watchdog import Watchdog

NAMED_MUTEX_NAME = "DirectShow Softcam/NamedMutex"
SHARED_MEMORY_NAME = "DirectShow Softcam/SharedMemory"
PROTOCOL_VERSION = 2

WATCHDOG_HEARTBEAT_INTERVAL = 0.02
WATCHDOG_MONITOR_INTERVAL = 0.02
WATCHDOG_TIMEOUT = 0.5

# image_offset, width, height, framerate, is_active, connected_min_version,
# sender heartbeat, receiver heartbeat, frame_counter
_HEADER = struct.Struct("<IHHfBBBBQ")
HEADER_SIZE = _HEADER.size

_OFF_IMAGE = 0
_OFF_WIDTH = 4
_OFF_HEIGHT = 6
_OFF_FRAMERATE = 8
_OFF_ACTIVE = 12
_OFF_VERSION = 13
_OFF_SENDER_HB = 14
_OFF_RECEIVER_HB = 15
_OFF_COUNTER = 16

_COUNTER_MASK = (1 << 64) - 1


class FrameBufferError(Exception):
    """Raised when a frame buffer cannot be created."""


def check_dimensions(width: int, height: int) -> bool:
    """Whether the size is within 1..16384 and a multiple of four on both axes."""
    return all(1 <= v <= 16384 and v % 4 == 0 for v in (width, height))


def calc_memory_size(width: int, height: int) -> int:
    """Bytes of shared memory needed for the header and an NV12 image."""
    return HEADER_SIZE + width * height * 3 // 2


def _read(buf: memoryview, fmt: str, offset: int):
    return struct.unpack_from("<" + fmt, buf, offset)[0]


def _write(buf: memoryview, fmt: str, offset: int, value) -> None:
    struct.pack_into("<" + fmt, buf, offset, value)


def _incrementer(mutex: NamedMutex, shm: SharedMemory, offset: int) -> Callable[[], None]:
    def increment() -> None:
        with mutex:
            buf = shm.buf
            if buf is not None:
                _write(buf, "B", offset, (_read(buf, "B", offset) + 1) & 0xFF)

    return increment


def _reader(mutex: NamedMutex, shm: SharedMemory, offset: int) -> Callable[[], int]:
    def read() -> int:
        with mutex:
            buf = shm.buf
            return 0 if buf is None else _read(buf, "B", offset)

    return read


def _shutdown(sender: Watchdog, receiver: Watchdog, shm: SharedMemory) -> None:
    receiver.stop()
    sender.stop()
    shm.release()


class FrameBuffer:
    """Shared NV12 frame buffer between a sender process and receiver processes.

    An instance is falsy when it is not attached to any shared memory.
    """

    def __init__(self) -> None:
        self._mutex = NamedMutex(NAMED_MUTEX_NAME)
        self._shmem = SharedMemory()
        self._sender_watchdog = Watchdog()
        self._receiver_watchdog = Watchdog()
        self._finalizer: weakref.finalize | None = None

    def _attach(self, shm: SharedMemory, sender: Watchdog, receiver: Watchdog) -> None:
        self._shmem = shm
        self._sender_watchdog = sender
        self._receiver_watchdog = receiver
        self._finalizer = weakref.finalize(self, _shutdown, sender, receiver, shm)

    @classmethod
    def create(cls, width: int, height: int, framerate: float = 0.0) -> FrameBuffer:
        """Create the shared buffer as the sender."""
        if not check_dimensions(width, height):
            raise FrameBufferError(f"unsupported dimensions {width}x{height}")
        if framerate < 0.0:
            raise FrameBufferError(f"negative framerate {framerate}")

        fb = cls()
        shm = SharedMemory.create(SHARED_MEMORY_NAME, calc_memory_size(width, height))
        if not shm:
            raise FrameBufferError("shared frame buffer could not be created")

        mutex = fb._mutex
        with mutex:
            _HEADER.pack_into(
                shm.buf, 0, HEADER_SIZE, width, height, framerate, 1, 0, 0, 0, 0
            )
            sender = Watchdog.create_heartbeat(
                WATCHDOG_HEARTBEAT_INTERVAL, _incrementer(mutex, shm, _OFF_SENDER_HB)
            )
            receiver = Watchdog.create_monitor(
                WATCHDOG_MONITOR_INTERVAL,
                WATCHDOG_TIMEOUT,
                _reader(mutex, shm, _OFF_RECEIVER_HB),
            )
        fb._attach(shm, sender, receiver)
        return fb

    @classmethod
    def open(cls) -> FrameBuffer:
        """Attach to the sender's buffer as a receiver; falsy if none is usable."""
        fb = cls()
        shm = SharedMemory.open(SHARED_MEMORY_NAME)
        if not shm:
            return fb

        mutex = fb._mutex
        with mutex:
            size = shm.size
            if size < HEADER_SIZE:
                shm.release()
                return fb
            buf = shm.buf
            width = _read(buf, "H", _OFF_WIDTH)
            height = _read(buf, "H", _OFF_HEIGHT)
            if not check_dimensions(width, height) or _read(buf, "f", _OFF_FRAMERATE) < 0.0:
                shm.release()
                return fb
            image_size = width * height * 3 // 2
            offset = _read(buf, "I", _OFF_IMAGE)
            if size <= offset or size - offset < image_size:
                shm.release()
                return fb

            sender = Watchdog.create_monitor(
                WATCHDOG_MONITOR_INTERVAL,
                WATCHDOG_TIMEOUT,
                _reader(mutex, shm, _OFF_SENDER_HB),
            )
            receiver = Watchdog.create_heartbeat(
                WATCHDOG_HEARTBEAT_INTERVAL, _incrementer(mutex, shm, _OFF_RECEIVER_HB)
            )
            version = _read(buf, "B", _OFF_VERSION)
            if version == 0 or PROTOCOL_VERSION <= version:
                _write(buf, "B", _OFF_VERSION, PROTOCOL_VERSION)
            _write(buf, "B", _OFF_RECEIVER_HB, (_read(buf, "B", _OFF_RECEIVER_HB) + 1) & 0xFF)
        fb._attach(shm, sender, receiver)
        return fb

    def __bool__(self) -> bool:
        return bool(self._shmem)

    def _field(self, fmt: str, offset: int, default):
        if not self._shmem:
            return default
        with self._mutex:
            buf = self._shmem.buf
            return default if buf is None else _read(buf, fmt, offset)

    def width(self) -> int:
        """Image width in pixels, 0 when detached."""
        return self._field("H", _OFF_WIDTH, 0)

    def height(self) -> int:
        """Image height in pixels, 0 when detached."""
        return self._field("H", _OFF_HEIGHT, 0)

    def framerate(self) -> float:
        """Frames per second announced by the sender, 0.0 when detached."""
        return self._field("f", _OFF_FRAMERATE, 0.0)

    def frame_counter(self) -> int:
        """Number of frames written so far, 0 when detached."""
        return self._field("Q", _OFF_COUNTER, 0)

    def active(self) -> bool:
        """Whether the sender is still sending."""
        return bool(self._field("B", _OFF_ACTIVE, 0))

    def connected(self) -> bool:
        """Whether a receiver is attached, as seen from the sender."""
        if not self._shmem:
            return False
        with self._mutex:
            version = _read(self._shmem.buf, "B", _OFF_VERSION)
            if version == 0:
                return False
            if version == 1:
                # Version 1 receivers have no heartbeat, so they always count.
                return True
            return self._receiver_watchdog.alive()

    def deactivate(self) -> None:
        """Mark the stream as no longer sending."""
        if not self._shmem:
            return
        with self._mutex:
            _write(self._shmem.buf, "B", _OFF_ACTIVE, 0)

    def _image_region(self, buf: memoryview) -> tuple[int, int]:
        width = _read(buf, "H", _OFF_WIDTH)
        height = _read(buf, "H", _OFF_HEIGHT)
        return _read(buf, "I", _OFF_IMAGE), width * height * 3 // 2

    def write(self, image_bits) -> None:
        """Copy a whole NV12 image into the buffer and count a new frame."""
        if not self._shmem:
            return
        with self._mutex, memoryview(image_bits) as view, view.cast("B") as source:
            buf = self._shmem.buf
            offset, size = self._image_region(buf)
            if source.nbytes < size:
                raise ValueError(f"image holds {source.nbytes} bytes, {size} needed")
            buf[offset : offset + size] = source[:size]
            counter = _read(buf, "Q", _OFF_COUNTER)
            _write(buf, "Q", _OFF_COUNTER, (counter + 1) & _COUNTER_MASK)

    def lock_frame_buffer(self) -> memoryview | None:
        """Hold the buffer and return a writable view of the image, or None if detached."""
        if not self._shmem:
            return None
        self._mutex.lock()
        buf = self._shmem.buf
        offset, size = self._image_region(buf)
        return buf[offset : offset + size]

    def unlock_frame_buffer(self) -> None:
        """Count a new frame and let go of the buffer held by lock_frame_buffer."""
        if not self._shmem:
            return
        buf = self._shmem.buf
        counter = _read(buf, "Q", _OFF_COUNTER)
        _write(buf, "Q", _OFF_COUNTER, (counter + 1) & _COUNTER_MASK)
        self._mutex.unlock()

    def transfer_to_dib(self, image_bits) -> int:
        """Copy the current image into ``image_bits`` and return its frame counter."""
        if not self._shmem:
            return 0
        with self._mutex, memoryview(image_bits) as view, view.cast("B") as target:
            buf = self._shmem.buf
            offset, size = self._image_region(buf)
            if target.nbytes < size:
                raise ValueError(f"target holds {target.nbytes} bytes, {size} needed")
            target[:size] = buf[offset : offset + size]
            return _read(buf, "Q", _OFF_COUNTER)

    def wait_for_new_frame(self, frame_counter: int, time_out: float = 0.5) -> bool:
        """Wait for a frame newer than ``frame_counter``.

        Returns True when one arrives or the timeout passes, False once the
        sender stops or its heartbeat is lost.
        """
        if not self._shmem:
            return False
        timer = Timer()
        while self.active() and self._sender_watchdog.alive():
            if self.frame_counter() > frame_counter:
                return True
            sleep(0.001)
            if 0.0 < time_out <= timer.get():
                return True
        return False

    def release(self) -> None:
        """Stop the watchdogs and detach from the shared memory."""
        if self._finalizer is not None:
            self._finalizer()
        self._finalizer = None
        self._shmem = SharedMemory()
        self._sender_watchdog = Watchdog()
        self._receiver_watchdog = Watchdog()