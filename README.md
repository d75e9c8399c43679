# softcam

`softcam` is a virtual camera built on a frame buffer held in shared memory. One
process, the sender, creates a camera and pushes NV12 frames into it. Other
processes open the same buffer, wait for new frames and copy them out. Heartbeat
watchdogs run in both directions, so each side can tell whether the other is still
there.

## Installing

```
pip install softcam
```

To run the test suite as well:

```
pip install "softcam[test]"
pytest
```

## Frame format

Frames are NV12: a Y plane of `width * height` bytes followed by an interleaved UV
plane of `width * height / 2` bytes, so one frame is `width * height * 3 // 2` bytes.
Width and height must each be a multiple of 4, between 4 and 16384
(`softcam.framebuffer.check_dimensions` tells you whether a size is accepted).

## Sending frames

```python
from softcam import sender

camera = sender.create_camera(320, 240, 30.0)
frame = bytes(320 * 240 * 3 // 2)

sender.wait_for_connection(camera, 5.0)   # a timeout of 0 waits without limit
while sender.is_connected(camera):
    sender.send_frame(camera, frame)      # paced to the frame rate

sender.delete_camera(camera)
```

`create_camera` raises `softcam.framebuffer.FrameBufferError` if the size or frame
rate is not accepted, if the shared buffer cannot be created (for example because
another sender already holds it), or if this process already has a camera. A
process holds at most one camera at a time; `delete_camera` marks the stream as
inactive and releases it.

`send_frame` keeps frames evenly spaced according to the camera's frame rate: it
sleeps until the next frame is due, and restarts its timer if delivery falls more
than half a period behind. If you would rather write into the shared image directly,
call `lock_frame_buffer(camera)`, which returns a writable `memoryview` of the
image, and then `unlock_frame_buffer(camera)`; the unlock counts as a new frame.

## Reading frames

The reading side works with `softcam.framebuffer.FrameBuffer` directly:

```python
from softcam.framebuffer import FrameBuffer

fb = FrameBuffer.open()          # falsy if no usable sender buffer exists
if fb:
    image = bytearray(fb.width() * fb.height() * 3 // 2)
    counter = 0
    while fb.wait_for_new_frame(counter):
        counter = fb.transfer_to_dib(image)
        ...                      # use the frame in `image`
    fb.release()
```

`wait_for_new_frame(counter, time_out=0.5)` returns `True` when a frame newer than
`counter` has been written or the timeout has passed, and `False` once the sender
has deactivated the stream or its heartbeat has stopped. Opening the buffer starts
a heartbeat that the sender sees through `is_connected`.

`FrameBuffer` also reports `framerate()`, `frame_counter()` and `active()`.

## Lower-level pieces

- `softcam.framebuffer` holds `FrameBuffer`, `FrameBufferError`, `check_dimensions`
  and `calc_memory_size`.
- `softcam.watchdog.Watchdog` provides the heartbeat and monitor threads:
  `create_heartbeat(interval, increment)`, `create_monitor(interval, timeout, read)`,
  `alive()` and `stop()`.
- `softcam.misc` has `Timer`, `sleep`, `NamedMutex` (a recursive mutex shared by
  name across threads and processes) and `SharedMemory`.
- `softcam.reftime` has `RefTime`, reference times in 100 ns units, and
  `convert_to_milliseconds`.
- `softcam.bitmapinfo` has `BitmapInfoHeader`, `multiply_check_overflow` and
  `validate_bitmap_info_header`, which sanity-checks bitmap headers against
  overflowing size calculations and oversized palettes.

## What it does not do

`softcam` does not register a camera device with the operating system, so video
applications will not list it as a webcam. It has no media-type negotiation, no
stream-configuration queries and no ready-made reader that fills sample buffers or
shows a placeholder image when the sender goes away. Reading is done with
`FrameBuffer` as shown above. There is no command-line program either; the package
is a library.