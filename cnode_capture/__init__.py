"""
cnode Capture Package
=====================

Bounded Context: Single Still Capture

Turns an asynchronous camera device into a single blocking capture call that
survives device stalls and only hands out a frame once the device is
stopped.

Public API
----------
    CaptureController, RestartPolicy, CaptureResult, CapturedFrame
    CaptureOutcome, CaptureState, ScopedFrame
    CaptureError, StaleBufferError, EncodeError
    CameraDevice, DeviceEvent, EventKind, StreamInfo
    JpegEncoder, Picamera2Device
"""

from .device import CameraDevice, DeviceEvent, EventKind, StreamInfo
from .encoder import EncodeError, JpegEncoder, StillEncoder
from .controller import (
    CaptureController,
    CaptureError,
    CaptureOutcome,
    CaptureResult,
    CaptureState,
    CapturedFrame,
    RestartPolicy,
    ScopedFrame,
    StaleBufferError,
)
from .picamera import Picamera2Device

__all__ = [
    # Device contract
    'CameraDevice',
    'DeviceEvent',
    'EventKind',
    'StreamInfo',
    # Encoder
    'EncodeError',
    'JpegEncoder',
    'StillEncoder',
    # Controller
    'CaptureController',
    'CaptureError',
    'CaptureOutcome',
    'CaptureResult',
    'CaptureState',
    'CapturedFrame',
    'RestartPolicy',
    'ScopedFrame',
    'StaleBufferError',
    # Devices
    'Picamera2Device',
]
