"""Sending side: one camera per process that publishes frames to receivers."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from .framebuffer import FrameBuffer, FrameBufferError
from .misc import Timer, sleep

__all__ = [
    "Camera",
    "create_camera",
    "delete_camera",
    "send_frame",
    "lock_frame_buffer",
    "unlock_frame_buffer",
    "wait_for_connection",
    "is_connected",
]


@dataclass(eq=False)
class Camera:
    """A virtual camera owning the shared frame buffer and its pacing timer."""

    frame_buffer: FrameBuffer
    timer: Timer = field(default_factory=Timer)


_current: Camera | None = None
_current_lock = threading.Lock()


def _is_current(camera: Camera | None) -> bool:
    return camera is not None and _current is camera


def create_camera(width: int, height: int, framerate: float = 60.0) -> Camera:
    """Create the process's camera.

    Raises FrameBufferError if the buffer cannot be created or a camera
    already exists.
    """
    global _current
    fb = FrameBuffer.create(width, height, framerate)
    camera = Camera(fb)
    with _current_lock:
        if _current is None:
            _current = camera
            return camera
    fb.release()
    raise FrameBufferError("a camera already exists")


def delete_camera(camera: Camera | None) -> None:
    """Deactivate and release the camera; stale or missing handles are ignored."""
    global _current
    with _current_lock:
        if camera is None or _current is not camera:
            return
        _current = None
    camera.frame_buffer.deactivate()
    camera.frame_buffer.release()


def send_frame(camera: Camera | None, image_bits) -> None:
    """Publish one NV12 image, pacing delivery to the camera's framerate."""
    if not _is_current(camera) or image_bits is None:
        return
    fb = camera.frame_buffer
    framerate = fb.framerate()
    frame_counter = fb.frame_counter()

    # Sleep until the frame is due; keep the timer running while delays stay
    # within half a period so regular delivery recovers, otherwise restart it.
    if framerate > 0.0:
        if frame_counter == 0:
            camera.timer.reset()
        else:
            ref_delta = 1.0 / framerate
            elapsed = camera.timer.get()
            if elapsed < ref_delta:
                sleep(ref_delta - elapsed)
            if elapsed < ref_delta * 1.5:
                camera.timer.rewind(ref_delta)
            else:
                camera.timer.reset()

    fb.write(image_bits)


def lock_frame_buffer(camera: Camera | None) -> memoryview | None:
    """Hold the buffer and return a writable view of the image, or None."""
    if not _is_current(camera):
        return None
    return camera.frame_buffer.lock_frame_buffer()


def unlock_frame_buffer(camera: Camera | None) -> None:
    """Count a new frame and let go of the buffer held by lock_frame_buffer."""
    if _is_current(camera):
        camera.frame_buffer.unlock_frame_buffer()


def wait_for_connection(camera: Camera | None, timeout: float = 0.0) -> bool:
    """Wait until a receiver connects; a non-positive timeout waits forever."""
    if not _is_current(camera):
        return False
    timer = Timer()
    while not camera.frame_buffer.connected():
        if 0.0 < timeout <= timer.get():
            return False
        sleep(0.001)
    return True


def is_connected(camera: Camera | None) -> bool:
    """Whether a receiver is attached to the camera."""
    if not _is_current(camera):
        return False
    return camera.frame_buffer.connected()