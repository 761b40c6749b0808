"""
Frame Envelope Schema
=====================

Bounded Context: Wire Payload

This module builds the payload published once per run: the node identity,
the creation time and the encoded still image, as a CBOR map.

Wire Format (CBOR map, keys in this order):
    cnode_id: text     node identifier from configuration
    created:  text     UTC time of encoding, YYYY-MM-DDTHH:MM:SSZ
    frame:    bytes    JPEG bytes from the still encoder, not re-encoded

Key order is part of the format. cbor2 writes maps in insertion order unless
``canonical=True``, which would sort ``created`` ahead of ``cnode_id``, so
canonical mode is never used here.

Example:
    >>> payload = build_envelope("1", jpeg_bytes)
    >>> FrameEnvelope.from_bytes(payload).node_id
    '1'
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional, Union

import cbor2

from .common import Timestamp, utc_now

KEY_NODE_ID = "cnode_id"
KEY_CREATED = "created"
KEY_FRAME = "frame"

ENVELOPE_KEYS = (KEY_NODE_ID, KEY_CREATED, KEY_FRAME)


class EnvelopeError(Exception):
    """Raised when an envelope cannot be built, serialized or decoded."""
    pass


@dataclass(frozen=True)
class FrameEnvelope:
    """
    Immutable envelope for one captured frame.

    Attributes:
        node_id: Identifier of this node
        created: Encode-time timestamp
        frame: Encoded still-image bytes

    Invariants:
        - node_id is a non-empty string
        - frame is non-empty
    """
    node_id: str
    created: Timestamp
    frame: bytes

    def __post_init__(self):
        """Validate invariants."""
        if not isinstance(self.node_id, str) or not self.node_id:
            raise EnvelopeError("node_id must be a non-empty string")
        if not isinstance(self.frame, (bytes, bytearray, memoryview)):
            raise EnvelopeError(
                f"frame must be bytes, got {type(self.frame).__name__}"
            )
        if len(self.frame) == 0:
            raise EnvelopeError("frame is empty")
        if not isinstance(self.frame, bytes):
            object.__setattr__(self, 'frame', bytes(self.frame))

    def to_dict(self) -> Dict[str, Union[str, bytes]]:
        """Ordered mapping in wire key order."""
        return {
            KEY_NODE_ID: self.node_id,
            KEY_CREATED: self.created.value,
            KEY_FRAME: self.frame,
        }

    def to_bytes(self) -> bytes:
        """
        Serialize to CBOR.

        Raises:
            EnvelopeError: If the codec fails
        """
        try:
            return cbor2.dumps(self.to_dict())
        except (cbor2.CBOREncodeError, MemoryError, TypeError, ValueError) as e:
            raise EnvelopeError(f"Failed to serialize envelope: {e}") from e

    @classmethod
    def from_bytes(cls, payload: bytes) -> 'FrameEnvelope':
        """
        Decode and validate a serialized envelope.

        Raises:
            EnvelopeError: If the payload is not a valid envelope
        """
        try:
            data = cbor2.loads(payload)
        except (cbor2.CBORDecodeError, ValueError) as e:
            raise EnvelopeError(f"Invalid CBOR payload: {e}") from e

        if not isinstance(data, dict):
            raise EnvelopeError(
                f"Envelope must be a map, got {type(data).__name__}"
            )
        if tuple(data.keys()) != ENVELOPE_KEYS:
            raise EnvelopeError(
                f"Envelope keys must be {list(ENVELOPE_KEYS)}, got {list(data.keys())}"
            )
        if not isinstance(data[KEY_CREATED], str):
            raise EnvelopeError("created must be text")

        try:
            created = Timestamp(value=data[KEY_CREATED])
        except ValueError as e:
            raise EnvelopeError(str(e)) from e

        return cls(node_id=data[KEY_NODE_ID], created=created, frame=data[KEY_FRAME])


def build_envelope(
    node_id: str,
    frame: bytes,
    captured_at: Optional[datetime] = None,
    clock: Callable[[], datetime] = utc_now
) -> bytes:
    """
    Build and serialize the envelope for one frame.

    Args:
        node_id: Non-empty node identifier
        frame: Non-empty encoded still image
        captured_at: Timestamp to stamp into ``created`` (default: clock())
        clock: Wall-clock source, used when captured_at is None

    Returns:
        CBOR bytes of the ordered map (cnode_id, created, frame)

    Raises:
        EnvelopeError: On invalid input or serialization failure
    """
    created = Timestamp.from_datetime(captured_at if captured_at is not None else clock())
    return FrameEnvelope(node_id=node_id, created=created, frame=frame).to_bytes()
