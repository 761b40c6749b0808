"""
Capture Controller
==================

Bounded Context: Single Still Capture

Turns the event-driven camera device into one blocking call:

    capture_once() -> CaptureResult

State machine:

    IDLE ──open/configure/start──▶ RUNNING
    RUNNING ──TIMEOUT──▶ STOPPING_FOR_RESTART ──start──▶ RUNNING
    RUNNING ──QUIT──▶ COMPLETE (no frame)
    RUNNING ──FRAME_READY(still)──▶ stop ▶ read ▶ COMPLETE (frame)
    RUNNING ──FRAME_READY(other stream)──▶ RUNNING
    RUNNING ──OTHER──▶ FAILED

The device is stopped before its buffer is read: a buffer handed back to a
running device gets overwritten. Restarts after a stall are governed by
RestartPolicy; the default never gives up.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from cnode_mqtt.logging import StructuredLogger, LogEvent

from .device import CameraDevice, DeviceEvent, EventKind, StreamInfo
from .encoder import StillEncoder

# Metadata keys worth surfacing at INFO level
SUMMARY_METADATA_KEYS = ("ExposureTime", "AnalogueGain", "DigitalGain", "Lux")


class CaptureError(RuntimeError):
    """Raised when capture cannot complete (contract violation, restart ceiling)."""
    pass


class StaleBufferError(CaptureError):
    """Raised when a frame buffer is read outside its valid scope."""
    pass


class CaptureState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING_FOR_RESTART = "stopping_for_restart"
    COMPLETE = "complete"
    FAILED = "failed"


class CaptureOutcome(str, Enum):
    FRAME = "frame"
    QUIT = "quit"


@dataclass(frozen=True)
class RestartPolicy:
    """
    How the controller reacts to device stalls.

    Attributes:
        max_restarts: Restarts allowed before failing (None: unlimited)
        backoff: Delay before the first restart, in seconds
        max_backoff: Upper bound for the doubling delay
    """
    max_restarts: Optional[int] = None
    backoff: float = 0.0
    max_backoff: float = 30.0

    def __post_init__(self):
        if self.max_restarts is not None and self.max_restarts < 0:
            raise ValueError(f"max_restarts must be >= 0, got {self.max_restarts}")
        if self.backoff < 0:
            raise ValueError(f"backoff must be >= 0, got {self.backoff}")
        if self.max_backoff < self.backoff:
            raise ValueError(
                f"max_backoff ({self.max_backoff}) must be >= backoff ({self.backoff})"
            )

    def allows(self, restarts: int) -> bool:
        """True if the ``restarts``-th restart may go ahead."""
        return self.max_restarts is None or restarts <= self.max_restarts

    def delay_for(self, restarts: int) -> float:
        """Delay before the ``restarts``-th restart (1-based)."""
        if self.backoff == 0:
            return 0.0
        return min(self.backoff * 2 ** (restarts - 1), self.max_backoff)


@dataclass(frozen=True)
class CapturedFrame:
    """Encoded still plus the context it was captured with."""
    data: bytes = field(repr=False)
    info: StreamInfo
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CaptureResult:
    outcome: CaptureOutcome
    frame: Optional[CapturedFrame] = None

    @classmethod
    def quit(cls) -> 'CaptureResult':
        return cls(outcome=CaptureOutcome.QUIT)

    @property
    def has_frame(self) -> bool:
        return self.frame is not None


class ScopedFrame:
    """
    Read handle for a device buffer.

    Valid only while the device is stopped and has not been restarted since
    the handle was created, and only until invalidate() is called.
    """

    def __init__(self, array: Any, is_valid: Callable[[], bool]):
        self._array = array
        self._is_valid = is_valid
        self._closed = False

    @property
    def valid(self) -> bool:
        return not self._closed and self._is_valid()

    def read(self) -> Any:
        if not self.valid:
            raise StaleBufferError("Frame buffer is no longer valid")
        return self._array

    def invalidate(self) -> None:
        self._closed = True
        self._array = None


class CaptureController:
    """
    Drives a CameraDevice until exactly one still frame (or a quit) arrives.

    Composition over inheritance: the controller holds a device and an
    encoder, both injectable.

    Attributes:
        device: Camera device capability
        encoder: Still encoder, called while the buffer is held
        restart_policy: Stall handling
        still_stream: Name of the still stream
        state: Current CaptureState
        restarts: Number of stall restarts performed

    Example:
        >>> controller = CaptureController(
        ...     device=Picamera2Device(CameraSettings()),
        ...     encoder=JpegEncoder(quality=90),
        ...     logger=create_logger("capture")
        ... )
        >>> result = controller.capture_once()
    """

    def __init__(
        self,
        device: CameraDevice,
        encoder: StillEncoder,
        logger: StructuredLogger,
        restart_policy: Optional[RestartPolicy] = None,
        still_stream: str = "main",
        sleep: Callable[[float], None] = time.sleep
    ):
        self.device = device
        self.encoder = encoder
        self.logger = logger
        self.restart_policy = restart_policy or RestartPolicy()
        self.still_stream = still_stream
        self._sleep = sleep

        self.state = CaptureState.IDLE
        self.restarts = 0
        self._generation = 0

    def capture_once(self) -> CaptureResult:
        """
        Block until a still frame is captured or the device quits.

        Returns:
            CaptureResult with outcome FRAME (and the frame) or QUIT

        Raises:
            CaptureError: On an unrecognized event, when the restart policy
                gives up, or when called a second time
            EncodeError: If the still encoder fails
        """
        if self.state is not CaptureState.IDLE:
            raise CaptureError(
                f"capture_once() already ran (state={self.state.value})"
            )

        try:
            result = self._run()
        except Exception as e:
            self.state = CaptureState.FAILED
            # reported once by the caller
            self.logger.debug(
                event=LogEvent.CAPTURE_ERROR,
                message="Capture failed",
                metadata={'restarts': self.restarts, 'error': f"{type(e).__name__}: {e}"}
            )
            raise
        finally:
            self._shutdown()

        self.state = CaptureState.COMPLETE
        return result

    def _run(self) -> CaptureResult:
        self.device.open()
        self.device.configure()
        self.device.start()
        self._generation += 1
        self.state = CaptureState.RUNNING
        self.logger.info(
            event=LogEvent.CAPTURE_STARTED,
            message="Camera started",
            metadata={'stream': self.still_stream}
        )

        while True:
            event = self.device.wait_for_event()

            if event.kind == EventKind.TIMEOUT:
                self._restart_after_stall()
                continue

            if event.kind == EventKind.QUIT:
                self.logger.info(
                    event=LogEvent.CAPTURE_QUIT,
                    message="Device asked to quit before a frame arrived"
                )
                return CaptureResult.quit()

            if event.kind == EventKind.FRAME_READY:
                if event.stream != self.still_stream:
                    self.device.release(event)
                    self.logger.debug(
                        event=LogEvent.CAPTURE_FRAME_IGNORED,
                        message="Ignoring completed request for non-still stream",
                        metadata={'stream': event.stream}
                    )
                    continue
                return CaptureResult(
                    outcome=CaptureOutcome.FRAME,
                    frame=self._take_frame(event)
                )

            raise CaptureError(f"Unrecognized device event: {event.kind!r}")

    def _restart_after_stall(self) -> None:
        self.restarts += 1
        if not self.restart_policy.allows(self.restarts):
            raise CaptureError(
                f"Device stalled {self.restarts} times, giving up after "
                f"{self.restart_policy.max_restarts} restarts"
            )

        self.logger.warning(
            event=LogEvent.CAPTURE_STALL,
            message="Device timeout detected, attempting a restart",
            metadata={'restarts': self.restarts}
        )

        self.state = CaptureState.STOPPING_FOR_RESTART
        self.device.stop()

        delay = self.restart_policy.delay_for(self.restarts)
        if delay > 0:
            self._sleep(delay)

        self.device.start()
        self._generation += 1
        self.state = CaptureState.RUNNING
        self.logger.info(
            event=LogEvent.CAPTURE_RESTARTED,
            message="Camera restarted",
            metadata={'restarts': self.restarts, 'delay': delay}
        )

    def _take_frame(self, event: DeviceEvent) -> CapturedFrame:
        self.device.stop()

        info = self.device.stream_info(event.stream)
        generation = self._generation

        with self.device.read_buffer(event) as array:
            scoped = ScopedFrame(
                array,
                lambda: not self.device.running and generation == self._generation
            )
            try:
                data = bytes(self.encoder.encode(scoped.read(), info, event.metadata))
            finally:
                scoped.invalidate()

        summary = {k: event.metadata[k] for k in SUMMARY_METADATA_KEYS if k in event.metadata}
        self.logger.info(
            event=LogEvent.CAPTURE_COMPLETE,
            message="Still capture image received",
            metadata={
                'width': info.width,
                'height': info.height,
                'bytes': len(data),
                'restarts': self.restarts,
                **summary
            }
        )
        self.logger.debug(
            event=LogEvent.CAPTURE_COMPLETE,
            message="Capture metadata",
            metadata=event.metadata
        )

        return CapturedFrame(data=data, info=info, metadata=dict(event.metadata))

    def _shutdown(self) -> None:
        if self.device.running:
            self.device.stop()
        self.device.close()
