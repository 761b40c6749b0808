"""tests/capture/test_controller.py — unit tests for cnode_capture/controller.py.

Tests cover:
  - stall restarts followed by a still frame
  - quit before a frame, unrecognized events
  - non-still streams are released and ignored
  - RestartPolicy ceiling and backoff
  - ScopedFrame invalidation
"""

from __future__ import annotations

import pytest

from cnode_capture import (
    CaptureController,
    CaptureError,
    CaptureOutcome,
    CaptureState,
    DeviceEvent,
    EventKind,
    RestartPolicy,
    ScopedFrame,
    StaleBufferError,
)
from tests.fakes import JPEG_BYTES, STREAM_INFO, PassThroughEncoder, ScriptedDevice, frame_event


def _controller(device, logger, **kwargs):
    return CaptureController(device=device, encoder=PassThroughEncoder(), logger=logger, **kwargs)


# ---------------------------------------------------------------------------
# Frame path
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("stalls", [0, 1, 2, 5])
def test_timeouts_then_frame_returns_frame(stalls, logger):
    events = [DeviceEvent.timeout()] * stalls + [frame_event(ExposureTime=1000)]
    device = ScriptedDevice(events)
    controller = _controller(device, logger)

    result = controller.capture_once()

    assert result.outcome is CaptureOutcome.FRAME
    assert result.frame.data == JPEG_BYTES
    assert result.frame.info == STREAM_INFO
    assert result.frame.metadata == {'ExposureTime': 1000}
    assert controller.restarts == stalls
    assert controller.state is CaptureState.COMPLETE


@pytest.mark.parametrize("stalls", [0, 3])
def test_device_stopped_exactly_once_before_read(stalls, logger):
    device = ScriptedDevice([DeviceEvent.timeout()] * stalls + [frame_event()])
    _controller(device, logger).capture_once()

    read_at = device.calls.index("read")
    last_start = max(i for i, call in enumerate(device.calls[:read_at]) if call == "start")
    assert device.calls[last_start:read_at].count("stop") == 1
    assert device.running_during_read is False
    # no further stop after the frame was taken
    assert device.calls[read_at:].count("stop") == 0
    assert device.calls[-1] == "close"


def test_each_stall_stops_and_restarts_device(logger):
    device = ScriptedDevice([DeviceEvent.timeout(), DeviceEvent.timeout(), frame_event()])
    _controller(device, logger).capture_once()

    assert device.calls[:3] == ["open", "configure", "start"]
    assert device.calls.count("configure") == 1
    assert device.calls.count("start") == 3
    assert device.calls.count("stop") == 3


def test_encoder_runs_inside_buffer_scope(logger):
    device = ScriptedDevice([frame_event()])
    encoder = PassThroughEncoder()
    controller = CaptureController(device=device, encoder=encoder, logger=logger)

    controller.capture_once()

    assert device.calls.index("read") < device.calls.index("buffer_released")
    assert encoder.calls[0]['info'] == STREAM_INFO
    assert encoder.calls[0]['frame'] == JPEG_BYTES


def test_non_still_stream_is_released_and_ignored(logger):
    preview = frame_event(b"preview", stream="lores")
    device = ScriptedDevice([preview, frame_event()])

    result = _controller(device, logger).capture_once()

    assert result.frame.data == JPEG_BYTES
    assert device.released == [preview]


# ---------------------------------------------------------------------------
# Quit and failure paths
# ---------------------------------------------------------------------------

def test_quit_returns_no_frame(logger):
    device = ScriptedDevice([DeviceEvent.quit()])
    controller = _controller(device, logger)

    result = controller.capture_once()

    assert result.outcome is CaptureOutcome.QUIT
    assert not result.has_frame
    assert controller.state is CaptureState.COMPLETE
    assert "read" not in device.calls
    assert device.calls[-2:] == ["stop", "close"]


def test_unrecognized_event_fails(logger):
    device = ScriptedDevice([DeviceEvent.timeout(), DeviceEvent(kind=EventKind.OTHER), frame_event()])
    controller = _controller(device, logger)

    with pytest.raises(CaptureError, match="Unrecognized device event"):
        controller.capture_once()

    assert controller.state is CaptureState.FAILED
    assert "read" not in device.calls
    assert not device.running
    assert device.calls[-1] == "close"


def test_capture_once_is_single_use(logger):
    controller = _controller(ScriptedDevice([DeviceEvent.quit()]), logger)
    controller.capture_once()

    with pytest.raises(CaptureError, match="already ran"):
        controller.capture_once()


def test_device_error_propagates_and_closes(logger):
    class BrokenDevice(ScriptedDevice):
        def wait_for_event(self):
            raise RuntimeError("camera vanished")

    device = BrokenDevice([])
    controller = _controller(device, logger)

    with pytest.raises(RuntimeError, match="camera vanished"):
        controller.capture_once()

    assert controller.state is CaptureState.FAILED
    assert device.calls[-2:] == ["stop", "close"]


# ---------------------------------------------------------------------------
# RestartPolicy
# ---------------------------------------------------------------------------

def test_restart_ceiling_fails(logger):
    device = ScriptedDevice([DeviceEvent.timeout()] * 3 + [frame_event()])
    controller = _controller(device, logger, restart_policy=RestartPolicy(max_restarts=2))

    with pytest.raises(CaptureError, match="giving up after 2 restarts"):
        controller.capture_once()

    assert controller.restarts == 3
    assert device.calls.count("start") == 3


def test_zero_restarts_fails_on_first_stall(logger):
    device = ScriptedDevice([DeviceEvent.timeout(), frame_event()])
    controller = _controller(device, logger, restart_policy=RestartPolicy(max_restarts=0))

    with pytest.raises(CaptureError):
        controller.capture_once()


def test_backoff_sleeps_between_stop_and_start(logger):
    sleeps = []
    device = ScriptedDevice([DeviceEvent.timeout()] * 3 + [frame_event()])
    controller = _controller(
        device,
        logger,
        restart_policy=RestartPolicy(backoff=0.5, max_backoff=1.0),
        sleep=sleeps.append,
    )

    controller.capture_once()

    assert sleeps == [0.5, 1.0, 1.0]


def test_no_backoff_never_sleeps(logger):
    sleeps = []
    device = ScriptedDevice([DeviceEvent.timeout(), frame_event()])
    _controller(device, logger, sleep=sleeps.append).capture_once()
    assert sleeps == []


@pytest.mark.parametrize("kwargs", [
    {'max_restarts': -1},
    {'backoff': -0.1},
    {'backoff': 5.0, 'max_backoff': 1.0},
])
def test_restart_policy_validation(kwargs):
    with pytest.raises(ValueError):
        RestartPolicy(**kwargs)


# ---------------------------------------------------------------------------
# ScopedFrame
# ---------------------------------------------------------------------------

def test_scoped_frame_invalid_after_scope():
    scoped = ScopedFrame(b"data", lambda: True)
    assert scoped.read() == b"data"

    scoped.invalidate()

    assert not scoped.valid
    with pytest.raises(StaleBufferError):
        scoped.read()


def test_scoped_frame_invalid_when_device_restarted():
    generation = {'current': 1}
    scoped = ScopedFrame(b"data", lambda: generation['current'] == 1)

    generation['current'] = 2

    with pytest.raises(StaleBufferError):
        scoped.read()
