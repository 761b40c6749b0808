"""
Picamera2 Device Adapter
========================

CameraDevice implementation on top of picamera2 (libcamera).

- Still configuration, ``RGB888`` (BGR in memory, OpenCV order)
- Stall detection: each capture job is waited on for ``stall_timeout``
  seconds; a timeout is reported as a TIMEOUT event
- request_quit() (wired to SIGINT/SIGTERM) turns the next wait into QUIT

picamera2 is imported when the device is opened, so the rest of the package
works on hosts without libcamera.
"""

import threading
from concurrent.futures import TimeoutError as JobTimeout
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Tuple

from .device import DeviceEvent, StreamInfo

STILL_STREAM = "main"
PIXEL_FORMAT = "RGB888"

# Granularity of quit checks while waiting for a capture job
QUIT_POLL_INTERVAL = 0.5


class Picamera2Device:
    """
    Camera device backed by picamera2.Picamera2.

    Attributes:
        camera_num: libcamera camera index
        size: Optional (width, height) of the still stream
        stall_timeout: Seconds without a completed request before TIMEOUT
    """

    def __init__(
        self,
        camera_num: int = 0,
        size: Optional[Tuple[int, int]] = None,
        stall_timeout: float = 5.0,
        buffer_count: int = 1
    ):
        if stall_timeout <= 0:
            raise ValueError(f"stall_timeout must be > 0, got {stall_timeout}")
        self.camera_num = camera_num
        self.size = size
        self.stall_timeout = stall_timeout
        self.buffer_count = buffer_count

        self._camera = None
        self._running = False
        self._job = None
        self._quit = threading.Event()

    @property
    def running(self) -> bool:
        return self._running

    def request_quit(self) -> None:
        """Ask the device to deliver QUIT at the next opportunity."""
        self._quit.set()

    def open(self) -> None:
        from picamera2 import Picamera2

        self._camera = Picamera2(self.camera_num)

    def configure(self) -> None:
        main = {"format": PIXEL_FORMAT}
        if self.size is not None:
            main["size"] = tuple(self.size)
        config = self._camera.create_still_configuration(
            main=main,
            buffer_count=self.buffer_count
        )
        self._camera.configure(config)

    def start(self) -> None:
        self._camera.start()
        self._running = True

    def stop(self) -> None:
        if self._camera is not None:
            self._camera.stop()
        self._running = False
        # a pending job belongs to the stopped session
        self._job = None

    def close(self) -> None:
        if self._camera is not None:
            self._camera.close()
            self._camera = None
        self._running = False

    def wait_for_event(self) -> DeviceEvent:
        """
        Wait for the next completed request.

        Returns TIMEOUT when no request completes within stall_timeout and
        QUIT when request_quit() was called.
        """
        if self._job is None:
            self._job = self._camera.capture_request(wait=False)

        waited = 0.0
        while waited < self.stall_timeout:
            if self._quit.is_set():
                return DeviceEvent.quit()
            step = min(QUIT_POLL_INTERVAL, self.stall_timeout - waited)
            try:
                request = self._camera.wait(self._job, timeout=step)
            except JobTimeout:
                waited += step
                continue
            self._job = None
            if self._quit.is_set():
                request.release()
                return DeviceEvent.quit()
            return DeviceEvent.frame_ready(
                stream=STILL_STREAM,
                request=request,
                metadata=request.get_metadata()
            )

        return DeviceEvent.timeout()

    def stream_info(self, stream: str) -> StreamInfo:
        config = self._camera.camera_configuration()[stream]
        width, height = config["size"]
        return StreamInfo(
            width=width,
            height=height,
            stride=config.get("stride", 0),
            pixel_format=str(config.get("format"))
        )

    @contextmanager
    def read_buffer(self, event: DeviceEvent) -> Iterator[Any]:
        """Yield the stream array; the request goes back to libcamera on exit."""
        request = event.request
        try:
            yield request.make_array(event.stream)
        finally:
            request.release()

    def release(self, event: DeviceEvent) -> None:
        event.request.release()
