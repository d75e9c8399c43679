"""Shared-memory virtual camera: a sender publishes NV12 frames, readers copy them out."""

__version__ = "0.1.0"

__all__ = [
    "bitmapinfo",
    "framebuffer",
    "misc",
    "reftime",
    "sender",
    "watchdog",
]