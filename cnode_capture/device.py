"""
Camera Device Contract
======================

Bounded Context: Device Capability

The capture controller drives any object that satisfies CameraDevice. The
device delivers events from its own worker thread; wait_for_event() blocks
until the next one.

Events:
    TIMEOUT      device stall, no frame within the device's own deadline
    QUIT         the device was asked to stop
    FRAME_READY  a completed request for ``stream``
    OTHER        anything else (contract violation)
"""

from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol


class EventKind(str, Enum):
    """Kinds of event a camera device can deliver."""
    TIMEOUT = "timeout"
    QUIT = "quit"
    FRAME_READY = "frame_ready"
    OTHER = "other"


@dataclass(frozen=True)
class StreamInfo:
    """Geometry of a configured stream."""
    width: int
    height: int
    stride: int
    pixel_format: Optional[str] = None


@dataclass(frozen=True)
class DeviceEvent:
    """
    One event delivered by a camera device.

    Attributes:
        kind: Event kind
        stream: Stream the completed request belongs to (FRAME_READY only)
        request: Device-owned handle for the completed request
        metadata: Per-request capture metadata (exposure, gains, ...)
    """
    kind: EventKind
    stream: Optional[str] = None
    request: Any = field(default=None, repr=False, compare=False)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def timeout(cls) -> 'DeviceEvent':
        return cls(kind=EventKind.TIMEOUT)

    @classmethod
    def quit(cls) -> 'DeviceEvent':
        return cls(kind=EventKind.QUIT)

    @classmethod
    def frame_ready(
        cls,
        stream: str,
        request: Any,
        metadata: Optional[Dict[str, Any]] = None
    ) -> 'DeviceEvent':
        return cls(
            kind=EventKind.FRAME_READY,
            stream=stream,
            request=request,
            metadata=dict(metadata or {}),
        )


class CameraDevice(Protocol):
    """Capability the capture controller needs from a camera."""

    @property
    def running(self) -> bool:
        """True between start() and stop()."""
        ...

    def open(self) -> None:
        ...

    def configure(self) -> None:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def close(self) -> None:
        ...

    def wait_for_event(self) -> DeviceEvent:
        """Block until the device delivers the next event."""
        ...

    def stream_info(self, stream: str) -> StreamInfo:
        ...

    def read_buffer(self, event: DeviceEvent) -> AbstractContextManager:
        """
        Scoped read access to the frame of a FRAME_READY event.

        The yielded array is only valid inside the ``with`` block. Leaving it
        hands the buffer back to the device.
        """
        ...

    def release(self, event: DeviceEvent) -> None:
        """Hand back a completed request without reading it."""
        ...
