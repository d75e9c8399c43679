import time

import pytest

from softcam import sender
from softcam.framebuffer import FrameBuffer, FrameBufferError

WIDTH = 8
HEIGHT = 4
IMAGE_SIZE = WIDTH * HEIGHT * 3 // 2


def _image(seed: int) -> bytes:
    return bytes((i * 7 + seed) % 256 for i in range(IMAGE_SIZE))


@pytest.fixture
def cameras():
    made = []

    def make(width=WIDTH, height=HEIGHT, framerate=0.0):
        cam = sender.create_camera(width, height, framerate)
        made.append(cam)
        return cam

    yield make
    for cam in made:
        sender.delete_camera(cam)


@pytest.fixture
def receivers():
    opened = []

    def open_():
        fb = FrameBuffer.open()
        opened.append(fb)
        return fb

    yield open_
    for fb in opened:
        fb.release()


def test_create_camera_attributes(cameras):
    cam = cameras(320, 240, 60.0)
    assert cam.frame_buffer.width() == 320
    assert cam.frame_buffer.height() == 240
    assert cam.frame_buffer.framerate() == 60.0
    assert cam.frame_buffer.active() is True


@pytest.mark.parametrize("width,height", [(0, 0), (321, 240), (320, 241), (16388, 4)])
def test_create_camera_rejects_bad_dimensions(width, height):
    with pytest.raises(FrameBufferError):
        sender.create_camera(width, height, 60.0)


def test_create_camera_rejects_negative_framerate():
    with pytest.raises(FrameBufferError):
        sender.create_camera(WIDTH, HEIGHT, -1.0)


def test_only_one_camera_at_a_time(cameras):
    first = cameras()
    with pytest.raises(FrameBufferError):
        sender.create_camera(WIDTH, HEIGHT, 0.0)
    sender.delete_camera(first)
    second = cameras()
    assert second.frame_buffer.width() == WIDTH


def test_send_frame_reaches_receiver(cameras, receivers):
    cam = cameras()
    rx = receivers()
    sender.send_frame(cam, _image(1))
    assert cam.frame_buffer.frame_counter() == 1
    target = bytearray(IMAGE_SIZE)
    counter = rx.transfer_to_dib(target)
    assert counter == 1
    assert bytes(target) == _image(1)


def test_send_frame_ignores_none(cameras):
    cam = cameras()
    sender.send_frame(cam, None)
    assert cam.frame_buffer.frame_counter() == 0


def test_stale_handle_is_ignored(cameras):
    old = cameras()
    sender.delete_camera(old)
    cam = cameras()
    sender.send_frame(old, _image(2))
    assert cam.frame_buffer.frame_counter() == 0
    assert sender.lock_frame_buffer(old) is None
    assert sender.is_connected(old) is False
    assert sender.wait_for_connection(old, 0.01) is False


def test_delete_camera_none_is_noop(cameras):
    cam = cameras()
    sender.delete_camera(None)
    sender.send_frame(cam, _image(3))
    assert cam.frame_buffer.frame_counter() == 1


def test_delete_camera_deactivates(cameras, receivers):
    cam = cameras()
    rx = receivers()
    assert rx.active() is True
    sender.delete_camera(cam)
    assert rx.active() is False
    assert not cam.frame_buffer


def test_lock_and_unlock_frame_buffer(cameras, receivers):
    cam = cameras()
    rx = receivers()
    view = sender.lock_frame_buffer(cam)
    assert len(view) == IMAGE_SIZE
    view[:] = _image(4)
    view.release()
    sender.unlock_frame_buffer(cam)
    assert cam.frame_buffer.frame_counter() == 1
    target = bytearray(IMAGE_SIZE)
    assert rx.transfer_to_dib(target) == 1
    assert bytes(target) == _image(4)


def test_not_connected_without_receiver(cameras):
    cam = cameras()
    assert sender.is_connected(cam) is False
    assert sender.wait_for_connection(cam, 0.05) is False


def test_connected_with_receiver(cameras, receivers):
    cam = cameras()
    receivers()
    assert sender.wait_for_connection(cam, 1.0) is True
    assert sender.is_connected(cam) is True


def test_send_frame_paces_to_framerate(cameras):
    cam = cameras(framerate=20.0)
    start = time.perf_counter()
    for seed in range(3):
        sender.send_frame(cam, _image(seed))
    elapsed = time.perf_counter() - start
    assert cam.frame_buffer.frame_counter() == 3
    assert elapsed >= 0.08


def test_send_frame_without_framerate_is_not_paced(cameras):
    cam = cameras(framerate=0.0)
    start = time.perf_counter()
    for seed in range(5):
        sender.send_frame(cam, _image(seed))
    elapsed = time.perf_counter() - start
    assert cam.frame_buffer.frame_counter() == 5
    assert elapsed < 0.5