"""
Still Image Encoder
===================

Turns the pixel array of a completed still request into JPEG bytes.

The array is expected in OpenCV channel order (BGR), which is what the
picamera2 ``RGB888`` format delivers.
"""

from typing import Any, Dict, Protocol

import cv2
import numpy as np

from .device import StreamInfo


class EncodeError(RuntimeError):
    """Raised when the still encoder cannot produce image bytes."""
    pass


class StillEncoder(Protocol):
    def encode(self, frame: np.ndarray, info: StreamInfo, metadata: Dict[str, Any]) -> bytes:
        ...


class JpegEncoder:
    """
    JPEG encoder backed by cv2.imencode.

    Attributes:
        quality: JPEG quality, 1-100
    """

    def __init__(self, quality: int = 93):
        if not 1 <= quality <= 100:
            raise ValueError(f"JPEG quality must be in [1, 100], got {quality}")
        self.quality = quality

    def encode(self, frame: np.ndarray, info: StreamInfo, metadata: Dict[str, Any]) -> bytes:
        """
        Encode one frame.

        Args:
            frame: HxW (mono) or HxWx3 (BGR) uint8 array
            info: Stream geometry, used to check the array shape
            metadata: Capture metadata (not embedded)

        Returns:
            JPEG bytes, owned by the caller

        Raises:
            EncodeError: If the array is unusable or encoding fails
        """
        array = np.asarray(frame)
        if array.size == 0:
            raise EncodeError("Frame buffer is empty")
        if array.ndim not in (2, 3):
            raise EncodeError(f"Unsupported frame shape {array.shape}")
        if array.shape[0] != info.height or array.shape[1] != info.width:
            raise EncodeError(
                f"Frame shape {array.shape[:2]} does not match stream "
                f"{info.height}x{info.width}"
            )
        if array.ndim == 3 and array.shape[2] == 4:
            # XRGB8888 and friends carry a padding channel
            array = array[:, :, :3]

        ok, jpeg = cv2.imencode(
            ".jpg",
            np.ascontiguousarray(array),
            [int(cv2.IMWRITE_JPEG_QUALITY), self.quality]
        )
        if not ok:
            raise EncodeError("cv2.imencode failed")

        data = jpeg.tobytes()
        if not data:
            raise EncodeError("JPEG encoder produced no bytes")
        return data
