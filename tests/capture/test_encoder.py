"""tests/capture/test_encoder.py — unit tests for cnode_capture/encoder.py."""

from __future__ import annotations

import cv2
import numpy as np
import pytest

from cnode_capture import EncodeError, JpegEncoder, StreamInfo


def _info(width=32, height=16):
    return StreamInfo(width=width, height=height, stride=width * 3, pixel_format="RGB888")


def test_encodes_bgr_frame_to_jpeg():
    frame = np.zeros((16, 32, 3), dtype=np.uint8)
    frame[:, :16] = (255, 0, 0)

    data = JpegEncoder(quality=90).encode(frame, _info(), {})

    assert data[:2] == b"\xff\xd8"
    assert data[-2:] == b"\xff\xd9"
    decoded = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    assert decoded.shape == (16, 32, 3)


def test_drops_padding_channel():
    frame = np.full((16, 32, 4), 128, dtype=np.uint8)
    data = JpegEncoder().encode(frame, _info(), {})
    assert data[:2] == b"\xff\xd8"


def test_rejects_shape_mismatch():
    frame = np.zeros((8, 8, 3), dtype=np.uint8)
    with pytest.raises(EncodeError, match="does not match"):
        JpegEncoder().encode(frame, _info(), {})


def test_rejects_empty_frame():
    with pytest.raises(EncodeError, match="empty"):
        JpegEncoder().encode(np.zeros((0, 0, 3), dtype=np.uint8), _info(0, 0), {})


@pytest.mark.parametrize("quality", [0, 101])
def test_quality_bounds(quality):
    with pytest.raises(ValueError):
        JpegEncoder(quality=quality)
