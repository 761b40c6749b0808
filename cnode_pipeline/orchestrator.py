"""
NodePipeline - one capture, one envelope, one publish

Bounded Context: Run orchestration
Responsibilities:
  - Sequence CaptureController → build_envelope → FramePublisher
  - Build the PublishRequest only after the envelope exists, so no broker
    connection is held open during local work
  - Catch every failure at one point, name the stage, map it to an exit code

Exit codes:
  0: frame published, or the device quit before producing a frame
  1: any capture, envelope or publish failure
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, TextIO

from cnode_capture import (
    CaptureController,
    CapturedFrame,
    JpegEncoder,
    Picamera2Device,
    RestartPolicy,
)
from cnode_mqtt import FramePublisher, PublishRequest, build_envelope
from cnode_mqtt.logging import StructuredLogger, LogEvent, create_logger
from cnode_mqtt.publishers import BasePublisher
from cnode_mqtt.schemas import utc_now

from .config import NodeConfig

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

PublisherFactory = Callable[[PublishRequest], BasePublisher]


class NodePipeline:
    """
    Runs the capture → envelope → publish sequence exactly once.

    Example:
        pipeline = NodePipeline(
            config=config,
            controller=build_controller(config, device, logger),
            logger=create_logger("pipeline")
        )
        sys.exit(pipeline.run())
    """

    def __init__(
        self,
        config: NodeConfig,
        controller: CaptureController,
        logger: StructuredLogger,
        publisher_factory: Optional[PublisherFactory] = None,
        clock: Callable[[], datetime] = utc_now,
        stderr: Optional[TextIO] = None,
    ):
        self.config = config
        self.controller = controller
        self.logger = logger
        self.publisher_factory = publisher_factory or self._default_publisher
        self.clock = clock
        self._stderr = stderr

    def run(self) -> int:
        """
        Execute the pipeline.

        Returns:
            Process exit code
        """
        stage = "capture"
        self.logger.info(
            event=LogEvent.PIPELINE_STARTED,
            message="Run started",
            metadata={'node_id': self.config.node_id}
        )

        try:
            result = self.controller.capture_once()
            if not result.has_frame:
                self.logger.info(
                    event=LogEvent.PIPELINE_COMPLETE,
                    message="No frame produced, nothing published",
                    metadata={'published': False}
                )
                return EXIT_SUCCESS

            frame = result.frame
            if self.config.capture_config.output is not None:
                stage = "output"
                self._save_still(frame, self.config.capture_config.output)

            stage = "envelope"
            payload = build_envelope(self.config.node_id, frame.data, captured_at=self.clock())
            self.logger.info(
                event=LogEvent.ENVELOPE_BUILT,
                message="Envelope built",
                metadata={'bytes': len(payload), 'frame_bytes': len(frame.data)}
            )

            stage = "publish"
            publisher = self.publisher_factory(self._build_request(payload))
            try:
                publisher.publish_once()
            finally:
                self._drain_connection_events(publisher)

        except Exception as e:
            self.logger.error(
                event=LogEvent.PIPELINE_FAILED,
                message=f"{stage} failed",
                exc_info=e,
                metadata={'stage': stage}
            )
            print(f"❌ Error: {stage} failed: {e}", file=self._stderr or sys.stderr)
            return EXIT_FAILURE

        self.logger.info(
            event=LogEvent.PIPELINE_COMPLETE,
            message="Frame published",
            metadata={'published': True, 'topic': self.config.mqtt_config.topic}
        )
        return EXIT_SUCCESS

    def _build_request(self, payload: bytes) -> PublishRequest:
        mqtt_config = self.config.mqtt_config
        return PublishRequest(
            broker_address=mqtt_config.broker,
            client_id=mqtt_config.client_id,
            topic=mqtt_config.topic,
            payload=payload,
            connect_timeout=mqtt_config.connect_timeout,
            publish_timeout=mqtt_config.publish_timeout,
            disconnect_timeout=mqtt_config.disconnect_timeout,
            username=mqtt_config.username,
            password=mqtt_config.password,
            will=mqtt_config.will,
            tls_ca_certs=mqtt_config.tls_ca_certs,
        )

    def _default_publisher(self, request: PublishRequest) -> BasePublisher:
        return FramePublisher(
            request,
            logger=create_logger("publisher", level=self.logger.logger.level)
        )

    def _drain_connection_events(self, publisher: BasePublisher) -> None:
        while not publisher.connection_events.empty():
            lost = publisher.connection_events.get_nowait()
            self.logger.warning(
                event=LogEvent.MQTT_CONNECTION_LOST,
                message="Broker connection was lost during the run",
                metadata={'broker': lost.broker, 'cause': lost.cause}
            )

    def _save_still(self, frame: CapturedFrame, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(frame.data)
        self.logger.info(
            event=LogEvent.CAPTURE_SAVED,
            message="Still image written",
            metadata={'path': str(path), 'bytes': len(frame.data)}
        )


def build_controller(
    config: NodeConfig,
    logger: StructuredLogger,
    device: Optional[Picamera2Device] = None,
) -> CaptureController:
    """
    Wire a CaptureController from configuration.

    Args:
        config: Validated node configuration
        logger: Logger for the capture stage
        device: Camera device (default: Picamera2Device from config)
    """
    capture = config.capture_config
    if device is None:
        device = Picamera2Device(
            camera_num=capture.camera_num,
            size=capture.size,
            stall_timeout=capture.stall_timeout,
        )

    return CaptureController(
        device=device,
        encoder=JpegEncoder(quality=capture.quality),
        logger=logger,
        restart_policy=RestartPolicy(
            max_restarts=capture.max_restarts,
            backoff=capture.restart_backoff,
            max_backoff=max(30.0, capture.restart_backoff),
        ),
    )
